"""
Wave, Post & Comment Services
=============================

Every write the API performs goes through this module.

WAVE TOGGLE:
------------
State per (user, post): NOT_WAVED <-> WAVED. Every call flips it.

    NOT_WAVED --toggle--> create Wave,  post.wave_count += 1, author.total += 1
    WAVED     --toggle--> delete Wave,  post.wave_count -= 1, author.total -= 1

Invariants:
- post.wave_count == number of Wave rows for the post
- profile.total_waves_received == sum(wave_count) over the author's posts

Deleting a post or a user cascades to Wave rows outside toggle_wave;
signals.py calls release_post_waves() / release_user_waves() from
pre_delete so both invariants survive the cascade.

CONCURRENCY STRATEGY:
---------------------
Problem: read-existing → write-row → update-counter is three statements.
Two toggles by the same user can both read "no wave" and both try to
insert.

1. Steps run inside ONE transaction.atomic() block, so no reader ever
   sees a Wave row without its counter update (or the reverse)
2. Wave creation runs in a nested savepoint. The unique constraint on
   (user, post) makes the loser raise IntegrityError; we roll back the
   savepoint and report the wave as existing, with no counter change
3. Deletion only decrements when DELETE actually removed a row, so two
   concurrent un-waves decrement once
4. Counters move by F() deltas (UPDATE ... SET n = n + 1), never by
   writing back a value read into Python, so concurrent toggles by
   different users on the same post do not lose updates

ACHIEVEMENTS:
-------------
After the primary write commits, the evaluator runs for the actor and
then for the post author. Evaluation is best-effort: a failure there is
logged and never turns a successful toggle into an error.
"""

import logging
from typing import Literal, Optional

from django.contrib.auth.models import User
from django.db import transaction, IntegrityError, DatabaseError
from django.db.models import Count, F
from django.utils import timezone
from django.utils.text import slugify

from .achievements import evaluate_achievements
from .exceptions import InvalidComment
from .models import Post, Comment, Wave, Profile
from .queries import find_post_by_slug, find_wave, get_post_wave_count

logger = logging.getLogger(__name__)

# Replies are allowed one level deep
MAX_COMMENT_DEPTH = 1

SLUG_MAX_LENGTH = 300
SLUG_CREATE_ATTEMPTS = 3


class WaveResult:
    """Result of a wave toggle."""
    def __init__(
        self,
        success: bool,
        action: Literal['waved', 'unwaved', 'not_found', 'unauthorized', 'failed'],
        waved: bool = False,
        wave_count: int = 0,
        new_achievements: Optional[list] = None
    ):
        self.success = success
        self.action = action
        self.waved = waved
        self.wave_count = wave_count
        self.new_achievements = new_achievements or []


class PostResult:
    """Result of publishing a post."""
    def __init__(
        self,
        success: bool,
        action: Literal['created', 'unauthorized', 'failed'],
        post: Optional[Post] = None,
        new_achievements: Optional[list] = None
    ):
        self.success = success
        self.action = action
        self.post = post
        self.new_achievements = new_achievements or []


class CommentResult:
    """Result of adding a comment."""
    def __init__(self, comment: Comment, new_achievements: Optional[list] = None):
        self.success = True
        self.action = 'created'
        self.comment = comment
        self.new_achievements = new_achievements or []


def _is_anonymous(user) -> bool:
    return user is None or not user.is_authenticated


def _evaluate_quietly(user_id: int) -> list:
    """Run the evaluator without letting its failures escape."""
    try:
        return evaluate_achievements(user_id)
    except Exception:
        logger.warning(
            "Achievement evaluation failed for user %s", user_id, exc_info=True
        )
        return []


# ============================================================================
# WAVES
# ============================================================================

def adjust_wave_counters(post_id: int, author_id: int, delta: int) -> None:
    """
    Apply a relative change to both denormalized wave counters.

    Must run inside the same transaction as the Wave insert/delete.
    """
    Post.objects.filter(id=post_id).update(wave_count=F('wave_count') + delta)

    updated = Profile.objects.filter(user_id=author_id).update(
        total_waves_received=F('total_waves_received') + delta
    )
    if not updated:
        # Users created before profiles existed (or via raw SQL)
        Profile.objects.get_or_create(user_id=author_id)
        Profile.objects.filter(user_id=author_id).update(
            total_waves_received=F('total_waves_received') + delta
        )


def release_post_waves(post_id: int, author_id: int) -> None:
    """
    Take a post's waves out of its author's total before the post is deleted.

    Reads the stored counter, not the instance, so a stale copy cannot
    subtract the wrong amount.
    """
    wave_count = get_post_wave_count(post_id)
    if wave_count:
        Profile.objects.filter(user_id=author_id).update(
            total_waves_received=F('total_waves_received') - wave_count
        )


def release_user_waves(user_id: int) -> None:
    """
    Undo every wave a user gave, ahead of the user being deleted.

    Each (user, post) pair holds at most one wave, so every waved post
    loses exactly one.
    """
    per_author = (
        Wave.objects
        .filter(user_id=user_id)
        .values('post__author_id')
        .annotate(n=Count('id'))
    )
    for row in per_author:
        Profile.objects.filter(user_id=row['post__author_id']).update(
            total_waves_received=F('total_waves_received') - row['n']
        )
    Post.objects.filter(waves__user_id=user_id).update(wave_count=F('wave_count') - 1)


def remove_wave(wave: Wave) -> bool:
    """
    Delete one wave outside the toggle (admin) and release its counters.

    Returns False when the wave was already gone.
    """
    with transaction.atomic():
        deleted_count, _ = Wave.objects.filter(id=wave.id).delete()
        if deleted_count:
            adjust_wave_counters(wave.post_id, wave.post.author_id, -1)
    return bool(deleted_count)


def _apply_toggle(user_id: int, post: Post) -> bool:
    """
    Flip the wave state and the counters atomically.

    Returns the resulting state: True for WAVED.
    """
    with transaction.atomic():
        existing = find_wave(user_id, post.id)

        if existing is not None:
            deleted_count, _ = Wave.objects.filter(id=existing.id).delete()
            if deleted_count:
                adjust_wave_counters(post.id, post.author_id, -1)
            return False

        try:
            with transaction.atomic():
                Wave.objects.create(user_id=user_id, post_id=post.id)
        except IntegrityError:
            # A concurrent toggle inserted the same (user, post) first.
            # Its transaction owns the counter update.
            logger.info(
                "Duplicate wave by user %s on post %s; keeping existing wave",
                user_id, post.id
            )
            return True

        adjust_wave_counters(post.id, post.author_id, 1)
        return True


def toggle_wave(user: User, slug: str) -> WaveResult:
    """
    Wave or un-wave the post identified by slug.

    RETURNS:
    - action 'waved' / 'unwaved' on success, with the authoritative
      wave_count re-read from the database and any achievements unlocked
      for the actor or the post author
    - action 'unauthorized' for anonymous users (no store access)
    - action 'not_found' for an unknown slug
    - action 'failed' on a store error (nothing partially applied)
    """
    if _is_anonymous(user):
        return WaveResult(success=False, action='unauthorized')

    try:
        post = find_post_by_slug(slug)
        if post is None:
            return WaveResult(success=False, action='not_found')

        waved = _apply_toggle(user.id, post)
        wave_count = get_post_wave_count(post.id)
    except DatabaseError:
        logger.exception("Wave toggle failed for user %s on %r", user.id, slug)
        return WaveResult(success=False, action='failed')

    new_achievements = _evaluate_quietly(user.id)
    new_achievements += _evaluate_quietly(post.author_id)

    return WaveResult(
        success=True,
        action='waved' if waved else 'unwaved',
        waved=waved,
        wave_count=wave_count,
        new_achievements=new_achievements
    )


def reconcile_wave_counters() -> int:
    """
    Recompute every denormalized wave counter from live Wave rows.

    Repairs drift from out-of-band edits (admin deletes, raw SQL, restores).
    Returns the number of Post and Profile rows that were corrected.
    """
    corrected = 0
    with transaction.atomic():
        for user_id in User.objects.filter(profile__isnull=True).values_list('id', flat=True):
            Profile.objects.get_or_create(user_id=user_id)

        posts = Post.objects.annotate(live_waves=Count('waves')).values_list(
            'id', 'wave_count', 'live_waves'
        )
        for post_id, stored, live in posts:
            if stored != live:
                Post.objects.filter(id=post_id).update(wave_count=live)
                logger.warning(
                    "Post %s wave_count drifted: stored=%s live=%s", post_id, stored, live
                )
                corrected += 1

        profiles = Profile.objects.annotate(live_waves=Count('user__posts__waves')).values_list(
            'id', 'user_id', 'total_waves_received', 'live_waves'
        )
        for profile_id, user_id, stored, live in profiles:
            if stored != live:
                Profile.objects.filter(id=profile_id).update(total_waves_received=live)
                logger.warning(
                    "User %s total_waves_received drifted: stored=%s live=%s",
                    user_id, stored, live
                )
                corrected += 1

    return corrected


# ============================================================================
# POSTS
# ============================================================================

def generate_unique_slug(value: str) -> str:
    """
    Slugify value and append -1, -2, ... until no post uses it.
    """
    base = slugify(value)[:SLUG_MAX_LENGTH].strip('-') or 'post'
    slug = base
    counter = 1
    while Post.objects.filter(slug=slug).exists():
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def create_post(
    user: User,
    title: str,
    content: str,
    excerpt: str = '',
    slug: Optional[str] = None,
    published: bool = True
) -> PostResult:
    """
    Publish a post and evaluate the author's achievements.

    The slug defaults to the title. Two concurrent posts racing for the same
    slug are retried with a fresh suffix.
    """
    if _is_anonymous(user):
        return PostResult(success=False, action='unauthorized')

    post = None
    for _ in range(SLUG_CREATE_ATTEMPTS):
        try:
            with transaction.atomic():
                post = Post.objects.create(
                    author=user,
                    title=title,
                    content=content,
                    excerpt=excerpt or '',
                    slug=generate_unique_slug(slug or title),
                    published=published,
                    published_at=timezone.now() if published else None,
                )
            break
        except IntegrityError:
            logger.info("Slug collision while publishing %r; retrying", title)
        except DatabaseError:
            logger.exception("Publishing post failed for user %s", user.id)
            return PostResult(success=False, action='failed')

    if post is None:
        return PostResult(success=False, action='failed')

    logger.info("User %s published post %s (%s)", user.id, post.id, post.slug)

    return PostResult(
        success=True,
        action='created',
        post=post,
        new_achievements=_evaluate_quietly(user.id)
    )


def record_post_view(post: Post) -> int:
    """Bump the post's view counter and return the stored value."""
    Post.objects.filter(id=post.id).update(view_count=F('view_count') + 1)
    post.refresh_from_db(fields=['view_count'])
    return post.view_count


# ============================================================================
# COMMENTS
# ============================================================================

def create_comment(
    user: User,
    post: Post,
    content: str,
    parent: Optional[Comment] = None
) -> CommentResult:
    """
    Add a comment or a one-level reply.

    RAISES InvalidComment when the parent belongs to another post or is
    itself a reply. post.comment_count is maintained by signals.py.
    """
    depth = 0
    if parent is not None:
        if parent.post_id != post.id:
            raise InvalidComment('Parent comment must belong to the same post.')
        if parent.depth >= MAX_COMMENT_DEPTH:
            raise InvalidComment('Replies can only be one level deep.')
        depth = parent.depth + 1

    comment = Comment.objects.create(
        post=post,
        author=user,
        parent=parent,
        content=content,
        depth=depth
    )

    return CommentResult(
        comment=comment,
        new_achievements=_evaluate_quietly(user.id)
    )
