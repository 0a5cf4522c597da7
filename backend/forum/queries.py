"""
Read-side Query Functions
=========================

Lookups used by the service layer and the views. Each function is a
single, explicit query so the call sites can reason about query counts.

USER COUNTERS:
--------------
The achievement evaluator needs four aggregates plus the set of names
already unlocked. Each aggregate is its own indexed COUNT:

    SELECT COUNT(*) FROM forum_post    WHERE author_id = %s AND published
    SELECT COUNT(*) FROM forum_wave    WHERE user_id = %s
    SELECT COUNT(*) FROM forum_comment WHERE author_id = %s

They are never joined into one query: three LEFT JOINs multiply into
a posts x waves x comments row set.
"""

from dataclasses import dataclass
from typing import Optional

from django.contrib.auth.models import User
from django.db.models import Count, Q

from .models import Post, Comment, Wave, Achievement, UserAchievement, Profile


@dataclass(frozen=True)
class UserCounters:
    """Snapshot of the aggregates achievement conditions are checked against."""
    user_id: int
    posts_published: int
    waves_given: int
    comments_made: int
    waves_received: int
    unlocked: frozenset


def find_post_by_slug(slug: str) -> Optional[Post]:
    return (
        Post.objects
        .select_related('author__profile')
        .filter(slug=slug)
        .first()
    )


def find_published_post_by_slug(slug: str) -> Optional[Post]:
    """Like find_post_by_slug, but drafts are treated as missing."""
    return (
        Post.objects
        .select_related('author__profile')
        .filter(slug=slug, published=True)
        .first()
    )


def find_wave(user_id: int, post_id: int) -> Optional[Wave]:
    return Wave.objects.filter(user_id=user_id, post_id=post_id).first()


def has_waved(user_id: int, post_id: int) -> bool:
    return Wave.objects.filter(user_id=user_id, post_id=post_id).exists()


def get_post_wave_count(post_id: int) -> int:
    """Authoritative wave_count straight from the row, not a cached instance."""
    value = Post.objects.filter(id=post_id).values_list('wave_count', flat=True).first()
    return value or 0


def find_achievement_by_name(name: str) -> Optional[Achievement]:
    return Achievement.objects.filter(name=name).first()


def get_unlocked_achievement_names(user_id: int) -> frozenset:
    return frozenset(
        UserAchievement.objects
        .filter(user_id=user_id)
        .values_list('achievement__name', flat=True)
    )


def load_user_counters(user_id: int) -> Optional[UserCounters]:
    """
    Load everything the evaluator needs for one user.

    Returns None when the user does not exist.

    Query count: 5
    1. Profile counter (also tells us whether the user exists)
    2-4. Published posts, waves given, comments made
    5. Names of achievements already unlocked
    """
    row = (
        User.objects
        .filter(id=user_id)
        .values('id', 'profile__total_waves_received')
        .first()
    )
    if row is None:
        return None

    return UserCounters(
        user_id=row['id'],
        posts_published=Post.objects.filter(author_id=user_id, published=True).count(),
        waves_given=Wave.objects.filter(user_id=user_id).count(),
        comments_made=Comment.objects.filter(author_id=user_id).count(),
        waves_received=row['profile__total_waves_received'] or 0,
        unlocked=get_unlocked_achievement_names(user_id),
    )


def get_feed_queryset(author_id: Optional[int] = None, search: Optional[str] = None):
    """
    Published posts, newest first. Author joined for the serializer.

    author_id narrows to one author; search is a case-insensitive match
    on title, content or excerpt.
    """
    queryset = (
        Post.objects
        .filter(published=True)
        .select_related('author__profile')
    )
    if author_id is not None:
        queryset = queryset.filter(author_id=author_id)
    if search:
        queryset = queryset.filter(
            Q(title__icontains=search)
            | Q(content__icontains=search)
            | Q(excerpt__icontains=search)
        )
    return queryset.order_by('-created_at')


def get_all_comments_for_post(post_id: int) -> list[Comment]:
    """
    Fetch ALL comments for a post in a SINGLE query.

    Ordered by created_at so a parent always precedes its replies.
    """
    return list(
        Comment.objects
        .filter(post_id=post_id)
        .select_related('author__profile')
        .order_by('created_at')
    )


def build_comment_tree(flat_comments: list[Comment]) -> list[dict]:
    """
    Build nested tree structure from flat list.

    Algorithm: O(n) single pass with hash map.
    Comments whose parent is missing from the list are promoted to roots.
    """
    nodes = {}
    for comment in flat_comments:
        nodes[comment.id] = {
            'comment': comment,
            'replies': []
        }

    root_nodes = []
    for comment in flat_comments:
        node = nodes[comment.id]
        if comment.parent_id is None or comment.parent_id not in nodes:
            root_nodes.append(node)
        else:
            nodes[comment.parent_id]['replies'].append(node)

    return root_nodes


def get_user_achievements(user_id: int) -> list[UserAchievement]:
    """Unlocks for a user, newest first, with the achievement joined."""
    return list(
        UserAchievement.objects
        .filter(user_id=user_id)
        .select_related('achievement')
        .order_by('-unlocked_at', '-id')
    )


def get_profile(user_id: int) -> Optional[Profile]:
    return Profile.objects.select_related('user').filter(user_id=user_id).first()


def get_site_stats() -> dict:
    return {
        'total_posts': Post.objects.filter(published=True).count(),
        'total_users': User.objects.count(),
        'total_waves': Wave.objects.count(),
    }


def get_admin_stats(recent: int = 5) -> dict:
    """
    Totals for the admin dashboard plus the newest users and posts.

    Query count: 6
    """
    recent_users = list(
        User.objects
        .select_related('profile')
        .annotate(post_count=Count('posts'))
        .order_by('-date_joined', '-id')[:recent]
    )
    recent_posts = list(
        Post.objects
        .select_related('author__profile')
        .order_by('-created_at', '-id')[:recent]
    )
    return {
        'total_users': User.objects.count(),
        'total_posts': Post.objects.count(),
        'total_waves': Wave.objects.count(),
        'total_comments': Comment.objects.count(),
        'recent_users': recent_users,
        'recent_posts': recent_posts,
    }
