"""
Management command to seed the database with sample data.

Usage: python manage.py seed_data

Everything goes through the service layer, so counters and achievements
end up exactly as real traffic would leave them.
"""

import random
from django.core.management.base import BaseCommand
from django.contrib.auth.models import User

from forum.achievements import seed_achievement_catalog
from forum.models import Post, Comment, Wave, UserAchievement
from forum.services import create_post, create_comment, toggle_wave


class Command(BaseCommand):
    help = 'Seed the database with sample data for testing'

    def add_arguments(self, parser):
        parser.add_argument(
            '--users',
            type=int,
            default=10,
            help='Number of users to create'
        )
        parser.add_argument(
            '--posts',
            type=int,
            default=20,
            help='Number of posts to create'
        )
        parser.add_argument(
            '--comments',
            type=int,
            default=100,
            help='Number of comments to create'
        )
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing data before seeding'
        )

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            UserAchievement.objects.all().delete()
            Wave.objects.all().delete()
            Comment.objects.all().delete()
            Post.objects.all().delete()
            User.objects.filter(is_superuser=False).delete()

        seed_achievement_catalog()

        self.stdout.write('Creating users...')
        users = self._create_users(options['users'])

        self.stdout.write('Creating posts...')
        posts = self._create_posts(users, options['posts'])

        self.stdout.write('Creating comments...')
        comments = self._create_comments(users, posts, options['comments'])

        self.stdout.write('Creating waves...')
        waves = self._create_waves(users, posts)

        self.stdout.write(self.style.SUCCESS(
            f'Successfully created:\n'
            f'  - {len(users)} users\n'
            f'  - {len(posts)} posts\n'
            f'  - {len(comments)} comments\n'
            f'  - {waves} waves'
        ))

    def _create_users(self, count):
        users = []
        for i in range(count):
            username = f'user{i+1}'
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(
                    username=username,
                    email=f'{username}@example.com',
                    password='password123'
                )
            users.append(user)
        return users

    def _create_posts(self, users, count):
        posts = []
        titles = [
            "Just discovered this amazing trick",
            "What do you think about",
            "Help needed with a problem",
            "Check out my latest project",
            "Unpopular opinion",
            "TIL something interesting",
            "Weekly roundup",
            "Question for the community",
        ]

        contents = [
            "I've been working on this for a while and wanted to share my thoughts with the community.",
            "Has anyone else experienced this? I'd love to hear your perspectives.",
            "This might be controversial, but I think we need to discuss this more openly.",
            "Here's what I learned after years of experience in this field.",
        ]

        if not users:
            return posts

        for i in range(count):
            result = create_post(
                random.choice(users),
                title=f"{random.choice(titles)} {i+1}",
                content=random.choice(contents),
            )
            if result.success:
                posts.append(result.post)
        return posts

    def _create_comments(self, users, posts, count):
        comments = []
        comment_texts = [
            "Great point! I totally agree.",
            "Hmm, I'm not sure about this...",
            "Thanks for sharing!",
            "Can you elaborate on this?",
            "Well said!",
        ]

        if not posts:
            return comments

        for _ in range(count):
            post = random.choice(posts)

            # 30% chance of replying to a top-level comment on the same post
            parent = None
            roots = [c for c in comments if c.post_id == post.id and c.depth == 0]
            if roots and random.random() < 0.3:
                parent = random.choice(roots)

            result = create_comment(
                random.choice(users),
                post,
                random.choice(comment_texts),
                parent=parent
            )
            comments.append(result.comment)

        return comments

    def _create_waves(self, users, posts):
        waves = 0
        for post in posts:
            wavers = random.sample(users, k=len(users) // 2)
            for waver in wavers:
                result = toggle_wave(waver, post.slug)
                if result.waved:
                    waves += 1
        return waves
