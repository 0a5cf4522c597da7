"""
Wave Concurrency Verification Script
====================================
Fires real concurrent toggles from threads against the configured
database and checks the counter invariants afterwards.

Run against PostgreSQL (SQLite serializes writers and will mostly report
"database is locked"):

    DATABASE_URL=postgres://... python verification_script.py
"""

import os
import sys
import threading

import django

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'waven.settings')
django.setup()

from django.contrib.auth.models import User
from django.db import connection
from django.db.models import Count, Sum
from django.db.models.functions import Coalesce

from forum.achievements import seed_achievement_catalog
from forum.models import Post, Wave, Profile, UserAchievement
from forum.services import toggle_wave

THREADS_PER_USER = 4
USERS = 10

print("=" * 80)
print("WAVE CONCURRENCY VERIFICATION")
print(f"Database vendor: {connection.vendor}")
print("=" * 80)

# ============================================================================
# SETUP
# ============================================================================
print("\n[SETUP] Creating test data...")

User.objects.filter(username__startswith='verify_').delete()
seed_achievement_catalog()

author = User.objects.create_user('verify_author', 'a@test.com', 'pass')
wavers = [
    User.objects.create_user(f'verify_waver{i}', f'w{i}@test.com', 'pass')
    for i in range(USERS)
]
post = Post.objects.create(
    author=author,
    title='VERIFY concurrency',
    slug='verify-concurrency',
    content='Testing concurrent waves. ' * 5
)
print(f"Created post {post.slug} and {len(wavers)} wavers")


def run_toggles(user, results, errors):
    try:
        result = toggle_wave(user, post.slug)
        results.append((user.username, result.action, result.wave_count))
    except Exception as exc:
        errors.append((user.username, repr(exc)))
    finally:
        connection.close()


def check_invariants(label):
    post_row = Post.objects.annotate(live=Count('waves')).get(id=post.id)
    expected_total = Post.objects.filter(author=author).aggregate(
        total=Coalesce(Sum('wave_count'), 0)
    )['total']
    profile = Profile.objects.get(user=author)

    print(f"\n[{label}]")
    print(f"  post.wave_count           = {post_row.wave_count}")
    print(f"  live Wave rows            = {post_row.live}")
    print(f"  author.total_waves        = {profile.total_waves_received}")
    print(f"  sum(author posts' counts) = {expected_total}")

    ok = post_row.wave_count == post_row.live and profile.total_waves_received == expected_total
    print(f"  INVARIANTS HOLD: {'YES' if ok else 'NO - BUG!'}")
    return ok


# ============================================================================
# SECTION 1: SAME USER, SAME POST, MANY CONCURRENT TOGGLES
# ============================================================================
print("\n" + "=" * 80)
print(f"SECTION 1: one user, {THREADS_PER_USER} simultaneous toggles")
print("=" * 80)

results, errors = [], []
threads = [
    threading.Thread(target=run_toggles, args=(wavers[0], results, errors))
    for _ in range(THREADS_PER_USER)
]
for t in threads:
    t.start()
for t in threads:
    t.join()

for username, action, count in results:
    print(f"  {username}: action={action}, wave_count={count}")
for username, error in errors:
    print(f"  {username}: ERROR {error}")

rows = Wave.objects.filter(user=wavers[0], post=post).count()
print(f"\n  Wave rows for this user: {rows} (expected 0 or 1)")
section_1 = check_invariants('SECTION 1') and rows <= 1

# ============================================================================
# SECTION 2: MANY USERS, SAME POST
# ============================================================================
print("\n" + "=" * 80)
print(f"SECTION 2: {USERS} users x {THREADS_PER_USER} toggles on one post")
print("=" * 80)

results, errors = [], []
threads = [
    threading.Thread(target=run_toggles, args=(waver, results, errors))
    for waver in wavers
    for _ in range(THREADS_PER_USER)
]
for t in threads:
    t.start()
for t in threads:
    t.join()

print(f"  {len(results)} toggles completed, {len(errors)} errors")
actions = {}
for _, action, _ in results:
    actions[action] = actions.get(action, 0) + 1
print(f"  Actions: {actions}")
section_2 = check_invariants('SECTION 2')

# ============================================================================
# SECTION 3: ACHIEVEMENTS NEVER DUPLICATED
# ============================================================================
print("\n" + "=" * 80)
print("SECTION 3: unlock uniqueness")
print("=" * 80)

duplicates = (
    UserAchievement.objects
    .values('user_id', 'achievement_id')
    .annotate(n=Count('id'))
    .filter(n__gt=1)
    .count()
)
print(f"  Duplicate (user, achievement) pairs: {duplicates} (expected 0)")
section_3 = duplicates == 0

# ============================================================================
# CLEANUP
# ============================================================================
User.objects.filter(username__startswith='verify_').delete()

print("\n" + "=" * 80)
passed = section_1 and section_2 and section_3
print("VERIFICATION " + ("PASSED" if passed else "FAILED"))
print("=" * 80)
sys.exit(0 if passed else 1)
