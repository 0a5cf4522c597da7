"""
Data Models for Waven
=====================

Design Philosophy:
------------------
1. Wave is the single source of truth for "user U waved post P"
   - Unique constraint (user, post) enforced at DB level
   - Post.wave_count and Profile.total_waves_received are derived counters
   - Counters only ever move through relative F() updates, never by writing
     a value read earlier in Python

2. Profile extends Django's built-in User with the counters we need
   - Created automatically by a post_save signal (see signals.py)
   - Keeps auth concerns in django.contrib.auth

3. Achievements are split into definition and unlock
   - Achievement: catalog row, seeded from achievements.CATALOG by name
   - UserAchievement: append-only unlock record, unique per (user, achievement)
   - Re-seeding updates Achievement rows in place and never touches unlocks

4. Comments use Adjacency List pattern with a single reply level

Indexes Strategy:
-----------------
- post.slug: unique, used by every wave/comment/detail lookup
- post.created_at + published: feed ordering
- wave (user, post): uniqueness + "has user waved" lookup
- comment (post, created_at): fetching all comments for a post
"""

from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinLengthValidator
from django.utils import timezone


class Profile(models.Model):
    """
    Per-user aggregate counters.

    total_waves_received must equal the sum of wave_count over the
    user's posts. Only the wave counter functions in services.py write it.
    """
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    total_waves_received = models.IntegerField(default=0)
    bio = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(default=timezone.now)

    def __str__(self):
        return f"Profile of {self.user.username}"


class Post(models.Model):
    """
    A forum post, addressed by its globally unique slug.
    """
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='posts',
        db_index=True
    )
    title = models.CharField(
        max_length=300,
        validators=[MinLengthValidator(3)]
    )
    slug = models.SlugField(max_length=320, unique=True)
    excerpt = models.CharField(max_length=500, blank=True, default='')
    content = models.TextField(
        validators=[MinLengthValidator(10)]
    )
    published = models.BooleanField(default=True)
    published_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True
    )
    updated_at = models.DateTimeField(auto_now=True)

    # Denormalized, moved only by F() deltas in services.py
    wave_count = models.IntegerField(default=0, db_index=True)
    comment_count = models.PositiveIntegerField(default=0)
    view_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['published', '-created_at'], name='forum_post_pub_created_idx'),
        ]

    def __str__(self):
        return f"{self.title[:50]} by {self.author.username}"


class Comment(models.Model):
    """
    Comment on a post, optionally a reply to another comment.

    Only one level of replies is allowed (depth 0 or 1), enforced in
    services.create_comment().
    """
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='comments',
        db_index=True
    )
    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='replies'
    )
    content = models.TextField(
        validators=[MinLengthValidator(1)]
    )
    depth = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(
        default=timezone.now,
        db_index=True
    )
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['post', 'created_at'], name='forum_cmt_post_created_idx'),
        ]

    def __str__(self):
        return f"Comment by {self.author.username} on {self.post_id}"


class Wave(models.Model):
    """
    "User waved post" relation.

    CONCURRENCY STRATEGY:
    - Unique constraint (user, post) enforced at DB level
    - A second concurrent create raises IntegrityError, which the toggle
      service reconciles as "wave already exists"
    """
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='waves'
    )
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='waves'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'post'],
                name='unique_wave_per_user_per_post'
            )
        ]

    def __str__(self):
        return f"{self.user.username} waved {self.post_id}"


class Achievement(models.Model):
    """
    Catalog row for an achievement definition.

    Seeded from achievements.CATALOG with update_or_create keyed by name,
    so the primary key (and every unlock pointing at it) survives edits.
    """

    class Rarity(models.TextChoices):
        COMMON = 'COMMON', 'Common'
        RARE = 'RARE', 'Rare'
        EPIC = 'EPIC', 'Epic'
        LEGENDARY = 'LEGENDARY', 'Legendary'

    name = models.CharField(max_length=100, unique=True)
    description = models.CharField(max_length=300)
    icon = models.CharField(max_length=16, blank=True, default='')
    color = models.CharField(max_length=16, blank=True, default='')
    rarity = models.CharField(
        max_length=10,
        choices=Rarity.choices,
        default=Rarity.COMMON
    )
    points = models.PositiveIntegerField(default=0)

    # {"type": "waves_received", "target": 10}
    condition = models.JSONField(default=dict)

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.name} ({self.rarity})"


class UserAchievement(models.Model):
    """
    Unlock record. Created exactly once per (user, achievement), never
    updated or deleted by application code.
    """
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='achievements'
    )
    achievement = models.ForeignKey(
        Achievement,
        on_delete=models.CASCADE,
        related_name='unlocks'
    )
    unlocked_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'achievement'],
                name='unique_unlock_per_user_per_achievement'
            )
        ]
        indexes = [
            models.Index(fields=['user', '-unlocked_at'], name='forum_unlock_user_time_idx'),
        ]

    def __str__(self):
        return f"{self.user.username} unlocked {self.achievement.name}"
