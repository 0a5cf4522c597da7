"""
Achievement Catalog & Evaluator
===============================

The catalog is DATA: an ordered tuple of AchievementDefinition values.
Conditions are a small tagged union ({type, target}) checked by ONE
dispatch table over a UserCounters snapshot. Adding an achievement means
adding a row to CATALOG, not a branch somewhere in the views.

SEEDING:
--------
seed_achievement_catalog() upserts every definition keyed by name:
- New names are created
- Existing names are updated in place (same primary key)
- UserAchievement rows are never touched, so unlock history and
  unlocked_at timestamps survive any number of re-seeds
- A name dropped from CATALOG keeps its row and its unlocks; it is
  simply never evaluated again

EVALUATION:
-----------
evaluate_achievements(user_id):
1. Load counters + unlocked names (2 queries, see queries.py)
2. Skip every definition already unlocked (this set check is what makes
   the evaluator idempotent, the unique constraint is only a backstop)
3. Award each newly satisfied definition in its own savepoint
4. Return the awarded Achievement rows in catalog order

FAILURE POLICY:
---------------
Each award is independently durable. If one award fails with a
DatabaseError it is logged and skipped; awards made earlier in the same
call stay committed. Callers treat achievements as best-effort relative to
the action that triggered them.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from django.db import transaction, DatabaseError

from .models import Achievement, UserAchievement
from .queries import UserCounters, load_user_counters, find_achievement_by_name

logger = logging.getLogger(__name__)

Rarity = Achievement.Rarity


class ConditionType(str, enum.Enum):
    WAVES_RECEIVED = 'waves_received'
    POSTS_CREATED = 'posts_created'
    COMMENTS_MADE = 'comments_made'
    FIRST_POST = 'first_post'
    FIRST_WAVE = 'first_wave'


@dataclass(frozen=True)
class Condition:
    type: ConditionType
    target: Optional[int] = None

    def to_json(self) -> dict:
        data = {'type': self.type.value}
        if self.target is not None:
            data['target'] = self.target
        return data


@dataclass(frozen=True)
class AchievementDefinition:
    name: str
    description: str
    icon: str
    color: str
    rarity: str
    points: int
    condition: Condition

    def as_defaults(self) -> dict:
        """Column values for update_or_create (everything except the key)."""
        return {
            'description': self.description,
            'icon': self.icon,
            'color': self.color,
            'rarity': self.rarity,
            'points': self.points,
            'condition': self.condition.to_json(),
        }


CATALOG: tuple[AchievementDefinition, ...] = (
    # First-time achievements
    AchievementDefinition(
        name='Welcome Aboard',
        description='Created your first account on Waven',
        icon='👋',
        color='#10b981',
        rarity=Rarity.COMMON,
        points=10,
        condition=Condition(ConditionType.FIRST_POST),
    ),
    AchievementDefinition(
        name='First Wave',
        description='Gave your first wave to another post',
        icon='🌊',
        color='#3b82f6',
        rarity=Rarity.COMMON,
        points=5,
        condition=Condition(ConditionType.FIRST_WAVE),
    ),
    AchievementDefinition(
        name='Author',
        description='Published your first post',
        icon='✍️',
        color='#8b5cf6',
        rarity=Rarity.COMMON,
        points=25,
        condition=Condition(ConditionType.FIRST_POST),
    ),

    # Wave-based achievements
    AchievementDefinition(
        name='Wave Rider',
        description='Received 10 waves on your content',
        icon='🏄',
        color='#06b6d4',
        rarity=Rarity.COMMON,
        points=50,
        condition=Condition(ConditionType.WAVES_RECEIVED, 10),
    ),
    AchievementDefinition(
        name='Tsunami',
        description='Received 100 waves on your content',
        icon='🌊',
        color='#0891b2',
        rarity=Rarity.RARE,
        points=200,
        condition=Condition(ConditionType.WAVES_RECEIVED, 100),
    ),
    AchievementDefinition(
        name='Ocean Master',
        description='Received 500 waves on your content',
        icon='🌀',
        color='#0e7490',
        rarity=Rarity.EPIC,
        points=500,
        condition=Condition(ConditionType.WAVES_RECEIVED, 500),
    ),

    # Content creation achievements
    AchievementDefinition(
        name='Prolific Writer',
        description='Published 10 posts',
        icon='📝',
        color='#7c3aed',
        rarity=Rarity.RARE,
        points=150,
        condition=Condition(ConditionType.POSTS_CREATED, 10),
    ),
    AchievementDefinition(
        name='Content Creator',
        description='Published 50 posts',
        icon='🎯',
        color='#6d28d9',
        rarity=Rarity.EPIC,
        points=750,
        condition=Condition(ConditionType.POSTS_CREATED, 50),
    ),
    AchievementDefinition(
        name='Waven Legend',
        description='Published 100 posts',
        icon='👑',
        color='#fbbf24',
        rarity=Rarity.LEGENDARY,
        points=1500,
        condition=Condition(ConditionType.POSTS_CREATED, 100),
    ),

    # Engagement achievements
    AchievementDefinition(
        name='Conversationalist',
        description='Made 25 comments',
        icon='💬',
        color='#f59e0b',
        rarity=Rarity.COMMON,
        points=75,
        condition=Condition(ConditionType.COMMENTS_MADE, 25),
    ),
    AchievementDefinition(
        name='Community Voice',
        description='Made 100 comments',
        icon='🗣️',
        color='#d97706',
        rarity=Rarity.RARE,
        points=250,
        condition=Condition(ConditionType.COMMENTS_MADE, 100),
    ),
)


# ---------------------------------------------------------------------------
# Condition checks: pure functions (target, counters) -> bool
# ---------------------------------------------------------------------------

def _check_waves_received(target: Optional[int], counters: UserCounters) -> bool:
    # Waves received on the user's posts, never waves the user gave
    return counters.waves_received >= (target or 0)


def _check_posts_created(target: Optional[int], counters: UserCounters) -> bool:
    return counters.posts_published >= (target or 0)


def _check_comments_made(target: Optional[int], counters: UserCounters) -> bool:
    return counters.comments_made >= (target or 0)


def _check_first_post(target: Optional[int], counters: UserCounters) -> bool:
    return counters.posts_published >= 1


def _check_first_wave(target: Optional[int], counters: UserCounters) -> bool:
    return counters.waves_given >= 1


CONDITION_CHECKS: dict[ConditionType, Callable[[Optional[int], UserCounters], bool]] = {
    ConditionType.WAVES_RECEIVED: _check_waves_received,
    ConditionType.POSTS_CREATED: _check_posts_created,
    ConditionType.COMMENTS_MADE: _check_comments_made,
    ConditionType.FIRST_POST: _check_first_post,
    ConditionType.FIRST_WAVE: _check_first_wave,
}


def is_satisfied(condition: Condition, counters: UserCounters) -> bool:
    check = CONDITION_CHECKS.get(condition.type)
    if check is None:
        logger.warning("No check registered for condition type %s", condition.type)
        return False
    return check(condition.target, counters)


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------

def upsert_achievement_definition(definition: AchievementDefinition) -> tuple[Achievement, bool]:
    """Create or update one catalog row in place, keyed by name."""
    return Achievement.objects.update_or_create(
        name=definition.name,
        defaults=definition.as_defaults(),
    )


def seed_achievement_catalog(catalog=CATALOG) -> tuple[int, int]:
    """
    Upsert every definition in the catalog.

    Safe to call any number of times. Returns (created, updated).
    """
    created_count = 0
    updated_count = 0
    with transaction.atomic():
        for definition in catalog:
            _, created = upsert_achievement_definition(definition)
            if created:
                created_count += 1
            else:
                updated_count += 1

    logger.info(
        "Achievement catalog seeded: %d created, %d updated",
        created_count, updated_count
    )
    return created_count, updated_count


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

def _award(user_id: int, definition: AchievementDefinition) -> Optional[Achievement]:
    """
    Persist one unlock in its own savepoint.

    Returns the Achievement row, or None when it could not be awarded.
    """
    achievement = find_achievement_by_name(definition.name)
    if achievement is None:
        logger.warning(
            "Achievement %r is satisfied for user %s but not seeded; skipping",
            definition.name, user_id
        )
        return None

    try:
        with transaction.atomic():
            UserAchievement.objects.create(user_id=user_id, achievement=achievement)
    except DatabaseError as exc:
        # IntegrityError included: a concurrent evaluation got there first
        logger.warning(
            "Could not award %r to user %s: %s",
            definition.name, user_id, exc
        )
        return None

    logger.info("User %s unlocked %r", user_id, definition.name)
    return achievement


def evaluate_achievements(user_id: int, catalog=CATALOG) -> list[Achievement]:
    """
    Award every catalog achievement the user newly satisfies.

    Unknown user → []. Calling twice with no state change in between
    returns [] the second time.
    """
    counters = load_user_counters(user_id)
    if counters is None:
        return []

    newly_unlocked = []
    for definition in catalog:
        if definition.name in counters.unlocked:
            continue
        if not is_satisfied(definition.condition, counters):
            continue

        achievement = _award(user_id, definition)
        if achievement is not None:
            newly_unlocked.append(achievement)

    return newly_unlocked
