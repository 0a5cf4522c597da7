"""
Tests for Waven

Focus areas:
1. Wave toggle keeps Wave rows and both counters in step
2. Achievement evaluation is exact and idempotent
3. Catalog seeding never disturbs unlock history
4. API surface maps service results to the right responses
"""

import dataclasses
from io import StringIO
from unittest.mock import patch

from django.contrib import admin
from django.contrib.auth.models import User, AnonymousUser
from django.core.management import call_command
from django.db import DatabaseError
from django.db.models import Count, Sum
from django.db.models.functions import Coalesce
from django.test import TestCase, RequestFactory
from django.urls import resolve
from rest_framework.test import APIClient

from .achievements import (
    CATALOG,
    CONDITION_CHECKS,
    ConditionType,
    evaluate_achievements,
    seed_achievement_catalog,
)
from .exceptions import InvalidComment
from .models import Post, Comment, Wave, Profile, Achievement, UserAchievement
from .queries import load_user_counters, build_comment_tree, get_all_comments_for_post
from .services import (
    WaveResult,
    toggle_wave,
    create_post,
    create_comment,
    adjust_wave_counters,
    reconcile_wave_counters,
)


def names(achievements):
    return [a.name for a in achievements]


def make_post(author, slug, published=True):
    return Post.objects.create(
        author=author,
        title=f'Post {slug}',
        slug=slug,
        content='Content ' * 10,
        published=published
    )


class WaveInvariantMixin:
    """Assertions shared by every test that mutates waves."""

    def assertWaveInvariants(self):
        for post in Post.objects.annotate(live=Count('waves')):
            self.assertEqual(
                post.wave_count, post.live,
                f'post {post.slug}: wave_count={post.wave_count}, live waves={post.live}'
            )
        for profile in Profile.objects.annotate(
            expected=Coalesce(Sum('user__posts__wave_count'), 0)
        ):
            self.assertEqual(
                profile.total_waves_received, profile.expected,
                f'user {profile.user_id}: total={profile.total_waves_received}, '
                f'sum of posts={profile.expected}'
            )


class CatalogTestCase(TestCase):
    """The static catalog itself."""

    def test_names_are_unique(self):
        catalog_names = [d.name for d in CATALOG]
        self.assertEqual(len(catalog_names), len(set(catalog_names)))

    def test_every_condition_type_has_a_check(self):
        for condition_type in ConditionType:
            self.assertIn(condition_type, CONDITION_CHECKS)

    def test_threshold_conditions_have_targets(self):
        threshold_types = {
            ConditionType.WAVES_RECEIVED,
            ConditionType.POSTS_CREATED,
            ConditionType.COMMENTS_MADE,
        }
        for definition in CATALOG:
            if definition.condition.type in threshold_types:
                self.assertGreater(definition.condition.target, 0, definition.name)


class CatalogSeedTestCase(TestCase):
    """
    Seeding is an upsert keyed by name.

    CRITICAL: re-seeding must never duplicate definitions or touch unlocks.
    """

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')

    def test_seed_creates_every_definition(self):
        created, updated = seed_achievement_catalog()

        self.assertEqual(created, len(CATALOG))
        self.assertEqual(updated, 0)
        self.assertEqual(Achievement.objects.count(), len(CATALOG))

        wave_rider = Achievement.objects.get(name='Wave Rider')
        self.assertEqual(wave_rider.condition, {'type': 'waves_received', 'target': 10})
        self.assertEqual(wave_rider.rarity, Achievement.Rarity.COMMON)
        self.assertEqual(wave_rider.points, 50)

    def test_reseed_does_not_duplicate(self):
        seed_achievement_catalog()
        created, updated = seed_achievement_catalog()

        self.assertEqual(created, 0)
        self.assertEqual(updated, len(CATALOG))
        self.assertEqual(Achievement.objects.count(), len(CATALOG))

    def test_reseed_keeps_unlocks_and_timestamps(self):
        seed_achievement_catalog()
        make_post(self.user, 'first')
        evaluate_achievements(self.user.id)

        before = dict(
            UserAchievement.objects.values_list('achievement__name', 'unlocked_at')
        )
        self.assertIn('Author', before)

        seed_achievement_catalog()
        seed_achievement_catalog()

        after = dict(
            UserAchievement.objects.values_list('achievement__name', 'unlocked_at')
        )
        self.assertEqual(before, after)

    def test_reseed_updates_definition_in_place(self):
        seed_achievement_catalog()
        original = Achievement.objects.get(name='Tsunami')

        edited = tuple(
            dataclasses.replace(d, points=999) if d.name == 'Tsunami' else d
            for d in CATALOG
        )
        seed_achievement_catalog(catalog=edited)

        refreshed = Achievement.objects.get(name='Tsunami')
        self.assertEqual(refreshed.pk, original.pk)
        self.assertEqual(refreshed.points, 999)

    def test_removed_definition_keeps_row_and_unlocks(self):
        seed_achievement_catalog()
        make_post(self.user, 'first')
        evaluate_achievements(self.user.id)

        trimmed = tuple(d for d in CATALOG if d.name != 'Author')
        seed_achievement_catalog(catalog=trimmed)

        self.assertTrue(Achievement.objects.filter(name='Author').exists())
        self.assertTrue(
            UserAchievement.objects.filter(user=self.user, achievement__name='Author').exists()
        )

    def test_management_command(self):
        call_command('seed_achievements', verbosity=0)
        call_command('seed_achievements', verbosity=0)
        self.assertEqual(Achievement.objects.count(), len(CATALOG))


class EvaluatorTestCase(TestCase):
    """Achievement evaluation against loaded counters."""

    def setUp(self):
        seed_achievement_catalog()
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.fan = User.objects.create_user('fan', 'f@test.com', 'pass')

    def test_unknown_user_returns_empty(self):
        self.assertEqual(evaluate_achievements(999999), [])

    def test_fresh_user_unlocks_nothing(self):
        self.assertEqual(evaluate_achievements(self.author.id), [])

    def test_first_post_unlocks_in_catalog_order(self):
        make_post(self.author, 'first')

        unlocked = evaluate_achievements(self.author.id)

        self.assertEqual(names(unlocked), ['Welcome Aboard', 'Author'])

    def test_second_evaluation_is_empty(self):
        make_post(self.author, 'first')

        self.assertNotEqual(evaluate_achievements(self.author.id), [])
        self.assertEqual(evaluate_achievements(self.author.id), [])
        self.assertEqual(UserAchievement.objects.filter(user=self.author).count(), 2)

    def test_unpublished_posts_do_not_count(self):
        make_post(self.author, 'draft', published=False)

        self.assertEqual(evaluate_achievements(self.author.id), [])

    def test_counters_snapshot(self):
        make_post(self.author, 'one')
        make_post(self.author, 'two')
        make_post(self.author, 'draft', published=False)
        post = Post.objects.get(slug='one')
        Comment.objects.create(post=post, author=self.author, content='hi')
        toggle_wave(self.author, 'two')

        counters = load_user_counters(self.author.id)

        self.assertEqual(counters.posts_published, 2)
        self.assertEqual(counters.waves_given, 1)
        self.assertEqual(counters.comments_made, 1)
        self.assertEqual(counters.waves_received, 1)
        self.assertIn('First Wave', counters.unlocked)

    def test_counters_do_not_multiply_across_relations(self):
        posts = [make_post(self.fan, f'fan-{i}') for i in range(3)]
        targets = [make_post(self.author, f'target-{i}') for i in range(3)]
        for target in targets:
            toggle_wave(self.fan, target.slug)
        for post in posts:
            Comment.objects.create(post=post, author=self.fan, content='hi')

        with self.assertNumQueries(5):
            counters = load_user_counters(self.fan.id)

        self.assertEqual(counters.posts_published, 3)
        self.assertEqual(counters.waves_given, 3)
        self.assertEqual(counters.comments_made, 3)
        self.assertEqual(counters.waves_received, 0)

    def test_threshold_exactness(self):
        """9 waves received is not Wave Rider; the 10th unlocks it once."""
        post = make_post(self.author, 'popular')
        wavers = [
            User.objects.create_user(f'waver{i}', f'w{i}@test.com', 'pass')
            for i in range(10)
        ]

        for waver in wavers[:9]:
            result = toggle_wave(waver, post.slug)
            self.assertNotIn('Wave Rider', names(result.new_achievements))

        self.author.profile.refresh_from_db()
        self.assertEqual(self.author.profile.total_waves_received, 9)
        self.assertNotIn('Wave Rider', names(evaluate_achievements(self.author.id)))

        result = toggle_wave(wavers[9], post.slug)
        self.assertEqual(names(result.new_achievements).count('Wave Rider'), 1)

        self.assertEqual(evaluate_achievements(self.author.id), [])
        self.assertEqual(
            UserAchievement.objects.filter(
                user=self.author, achievement__name='Wave Rider'
            ).count(),
            1
        )

    def test_waves_given_do_not_count_as_received(self):
        for i in range(10):
            post = make_post(self.author, f'post-{i}')
            toggle_wave(self.fan, post.slug)

        fan_unlocked = set(
            UserAchievement.objects.filter(user=self.fan)
            .values_list('achievement__name', flat=True)
        )
        author_unlocked = set(
            UserAchievement.objects.filter(user=self.author)
            .values_list('achievement__name', flat=True)
        )

        self.assertEqual(fan_unlocked, {'First Wave'})
        self.assertIn('Wave Rider', author_unlocked)
        self.assertIn('Prolific Writer', author_unlocked)

    def test_comments_threshold(self):
        post = make_post(self.fan, 'chatty')
        for i in range(24):
            Comment.objects.create(post=post, author=self.author, content=f'c{i}')

        self.assertNotIn('Conversationalist', names(evaluate_achievements(self.author.id)))

        Comment.objects.create(post=post, author=self.author, content='c24')

        self.assertEqual(names(evaluate_achievements(self.author.id)), ['Conversationalist'])

    def test_unseeded_catalog_awards_nothing(self):
        Achievement.objects.all().delete()
        make_post(self.author, 'first')

        self.assertEqual(evaluate_achievements(self.author.id), [])
        self.assertEqual(UserAchievement.objects.count(), 0)

    def test_failed_award_does_not_abort_the_rest(self):
        """One award failing leaves earlier and later awards committed."""
        make_post(self.author, 'first')
        original_create = UserAchievement.objects.create

        def flaky_create(**kwargs):
            if kwargs['achievement'].name == 'Welcome Aboard':
                raise DatabaseError('simulated write failure')
            return original_create(**kwargs)

        with patch.object(UserAchievement.objects, 'create', side_effect=flaky_create):
            unlocked = evaluate_achievements(self.author.id)

        self.assertEqual(names(unlocked), ['Author'])

        # Not marked unlocked, so the next evaluation picks it up
        self.assertEqual(names(evaluate_achievements(self.author.id)), ['Welcome Aboard'])


class WaveToggleTestCase(WaveInvariantMixin, TestCase):
    """
    Wave toggle counter consistency.

    CRITICAL: after every operation
    - post.wave_count == live Wave rows for the post
    - profile.total_waves_received == sum of the author's post wave_counts
    """

    def setUp(self):
        seed_achievement_catalog()
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.fan = User.objects.create_user('fan', 'f@test.com', 'pass')
        self.post = make_post(self.author, 'hello')

    def test_wave_updates_every_counter(self):
        result = toggle_wave(self.fan, self.post.slug)

        self.assertTrue(result.success)
        self.assertEqual(result.action, 'waved')
        self.assertTrue(result.waved)
        self.assertEqual(result.wave_count, 1)
        self.assertTrue(Wave.objects.filter(user=self.fan, post=self.post).exists())

        self.author.profile.refresh_from_db()
        self.assertEqual(self.author.profile.total_waves_received, 1)
        self.assertWaveInvariants()

    def test_toggle_twice_restores_state(self):
        first = toggle_wave(self.fan, self.post.slug)
        second = toggle_wave(self.fan, self.post.slug)

        self.assertTrue(first.waved)
        self.assertFalse(second.waved)
        self.assertEqual(second.action, 'unwaved')
        self.assertEqual(second.wave_count, 0)
        self.assertFalse(Wave.objects.exists())

        self.author.profile.refresh_from_db()
        self.assertEqual(self.author.profile.total_waves_received, 0)
        self.assertWaveInvariants()

    def test_unknown_slug(self):
        result = toggle_wave(self.fan, 'does-not-exist')

        self.assertFalse(result.success)
        self.assertEqual(result.action, 'not_found')
        self.assertFalse(Wave.objects.exists())

    def test_anonymous_user_touches_nothing(self):
        with self.assertNumQueries(0):
            anonymous = toggle_wave(AnonymousUser(), self.post.slug)
            missing = toggle_wave(None, self.post.slug)

        self.assertEqual(anonymous.action, 'unauthorized')
        self.assertEqual(missing.action, 'unauthorized')

    def test_self_wave(self):
        result = toggle_wave(self.author, self.post.slug)

        self.assertEqual(result.wave_count, 1)
        self.author.profile.refresh_from_db()
        self.assertEqual(self.author.profile.total_waves_received, 1)

        unlocked = names(result.new_achievements)
        self.assertIn('First Wave', unlocked)
        self.assertEqual(len(unlocked), len(set(unlocked)))
        self.assertEqual(
            UserAchievement.objects.filter(user=self.author).count(),
            len(unlocked)
        )
        self.assertWaveInvariants()

    def test_first_post_then_first_wave_scenario(self):
        """
        User A publishes their first post, user B waves it.

        A: first-post achievements on publish, nothing more on the wave.
        B: First Wave.
        """
        user_a = User.objects.create_user('user_a', 'ua@test.com', 'pass')
        user_b = User.objects.create_user('user_b', 'ub@test.com', 'pass')

        published = create_post(user_a, 'My first post', 'Hello everyone, glad to be here.')
        self.assertEqual(names(published.new_achievements), ['Welcome Aboard', 'Author'])

        result = toggle_wave(user_b, published.post.slug)

        self.assertEqual(names(result.new_achievements), ['First Wave'])
        self.assertEqual(result.wave_count, 1)
        user_a.profile.refresh_from_db()
        self.assertEqual(user_a.profile.total_waves_received, 1)
        self.assertNotIn(
            'Wave Rider',
            UserAchievement.objects.filter(user=user_a).values_list('achievement__name', flat=True)
        )

    def test_mixed_sequence_keeps_invariants(self):
        other_post = make_post(self.fan, 'other')
        users = [self.author, self.fan] + [
            User.objects.create_user(f'u{i}', f'u{i}@test.com', 'pass') for i in range(4)
        ]

        for round_number in range(3):
            for index, user in enumerate(users):
                slug = self.post.slug if (index + round_number) % 2 else other_post.slug
                toggle_wave(user, slug)
                self.assertWaveInvariants()

    def test_duplicate_insert_is_reconciled(self):
        """
        Simulates losing the race: the existence check saw no wave, but a
        concurrent request inserted one before us.
        """
        toggle_wave(self.fan, self.post.slug)

        with patch('forum.services.find_wave', return_value=None):
            result = toggle_wave(self.fan, self.post.slug)

        self.assertTrue(result.success)
        self.assertTrue(result.waved)
        self.assertEqual(result.wave_count, 1)
        self.assertEqual(Wave.objects.count(), 1)
        self.assertWaveInvariants()

    def test_concurrent_unwave_decrements_once(self):
        toggle_wave(self.fan, self.post.slug)
        stale = Wave.objects.get(user=self.fan, post=self.post)

        # Another request removes the wave (and its counters) first
        Wave.objects.filter(id=stale.id).delete()
        adjust_wave_counters(self.post.id, self.author.id, -1)

        with patch('forum.services.find_wave', return_value=stale):
            result = toggle_wave(self.fan, self.post.slug)

        self.assertFalse(result.waved)
        self.assertEqual(result.wave_count, 0)
        self.assertWaveInvariants()

    def test_store_failure_leaves_no_partial_state(self):
        with patch(
            'forum.services.adjust_wave_counters',
            side_effect=DatabaseError('simulated failure')
        ):
            result = toggle_wave(self.fan, self.post.slug)

        self.assertFalse(result.success)
        self.assertEqual(result.action, 'failed')
        self.assertFalse(Wave.objects.exists())
        self.assertWaveInvariants()

    def test_evaluation_failure_does_not_fail_toggle(self):
        with patch(
            'forum.services.evaluate_achievements',
            side_effect=DatabaseError('simulated failure')
        ):
            result = toggle_wave(self.fan, self.post.slug)

        self.assertTrue(result.success)
        self.assertTrue(result.waved)
        self.assertEqual(result.new_achievements, [])
        self.assertWaveInvariants()

    def test_unexpected_evaluation_error_does_not_fail_toggle(self):
        with patch(
            'forum.services.evaluate_achievements',
            side_effect=RuntimeError('simulated bug')
        ):
            result = toggle_wave(self.fan, self.post.slug)

        self.assertTrue(result.success)
        self.assertEqual(result.wave_count, 1)
        self.assertEqual(result.new_achievements, [])
        self.assertWaveInvariants()


class ReconcileTestCase(WaveInvariantMixin, TestCase):

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.fan = User.objects.create_user('fan', 'f@test.com', 'pass')
        self.post = make_post(self.author, 'hello')
        toggle_wave(self.fan, self.post.slug)

    def test_repairs_drifted_counters(self):
        Post.objects.filter(id=self.post.id).update(wave_count=7)
        Profile.objects.filter(user=self.author).update(total_waves_received=3)

        self.assertEqual(reconcile_wave_counters(), 2)
        self.assertWaveInvariants()

        self.post.refresh_from_db()
        self.assertEqual(self.post.wave_count, 1)
        self.assertEqual(reconcile_wave_counters(), 0)

    def test_creates_missing_profiles(self):
        Profile.objects.filter(user=self.author).delete()

        reconcile_wave_counters()

        self.assertEqual(Profile.objects.get(user=self.author).total_waves_received, 1)

    def test_management_command(self):
        Post.objects.filter(id=self.post.id).update(wave_count=0)
        call_command('reconcile_waves', verbosity=0)
        self.assertWaveInvariants()


class DeletionCounterTestCase(WaveInvariantMixin, TestCase):
    """
    Deleting posts, users or single waves outside toggle_wave must keep
    both counters in step with the remaining Wave rows.
    """

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.fan = User.objects.create_user('fan', 'f@test.com', 'pass')
        self.post = make_post(self.author, 'hello')
        self.other = make_post(self.author, 'other')
        self.fan_post = make_post(self.fan, 'fan-post')
        toggle_wave(self.fan, self.post.slug)
        toggle_wave(self.fan, self.other.slug)
        toggle_wave(self.author, self.fan_post.slug)

    def test_deleting_waved_post(self):
        self.post.delete()

        self.assertWaveInvariants()
        self.author.profile.refresh_from_db()
        self.assertEqual(self.author.profile.total_waves_received, 1)

    def test_deleting_posts_in_bulk(self):
        Post.objects.filter(author=self.author).delete()

        self.assertWaveInvariants()
        self.author.profile.refresh_from_db()
        self.assertEqual(self.author.profile.total_waves_received, 0)

    def test_deleting_user_who_waved(self):
        self.fan.delete()

        self.assertWaveInvariants()
        self.post.refresh_from_db()
        self.assertEqual(self.post.wave_count, 0)
        self.author.profile.refresh_from_db()
        self.assertEqual(self.author.profile.total_waves_received, 0)

    def test_deleting_user_with_self_wave(self):
        toggle_wave(self.fan, self.fan_post.slug)

        self.fan.delete()

        self.assertWaveInvariants()
        self.assertFalse(Wave.objects.exists())

    def test_admin_wave_delete_releases_counters(self):
        staff = User.objects.create_superuser('staff', 's@test.com', 'pass')
        request = RequestFactory().post('/admin/forum/wave/')
        request.user = staff
        wave_admin = admin.site._registry[Wave]

        wave_admin.delete_model(request, Wave.objects.get(user=self.fan, post=self.post))
        self.assertWaveInvariants()

        wave_admin.delete_queryset(request, Wave.objects.all())
        self.assertWaveInvariants()
        self.assertFalse(Wave.objects.exists())
        self.author.profile.refresh_from_db()
        self.assertEqual(self.author.profile.total_waves_received, 0)


class SeedDataCommandTestCase(TestCase):

    def test_comments_without_posts(self):
        call_command('seed_data', users=2, posts=0, comments=5, stdout=StringIO())

        self.assertEqual(User.objects.count(), 2)
        self.assertFalse(Post.objects.exists())
        self.assertFalse(Comment.objects.exists())

    def test_seeded_counters_are_consistent(self):
        call_command('seed_data', users=4, posts=3, comments=6, stdout=StringIO())

        self.assertEqual(Post.objects.count(), 3)
        self.assertEqual(Comment.objects.count(), 6)
        for post in Post.objects.annotate(live=Count('waves')):
            self.assertEqual(post.wave_count, post.live)


class PostServiceTestCase(TestCase):

    def setUp(self):
        seed_achievement_catalog()
        self.user = User.objects.create_user('writer', 'w@test.com', 'pass')

    def test_slug_is_unique(self):
        first = create_post(self.user, 'Hello World', 'Some content here.')
        second = create_post(self.user, 'Hello World', 'More content here.')
        third = create_post(self.user, 'Other', 'More content here.', slug='hello-world')

        self.assertEqual(first.post.slug, 'hello-world')
        self.assertEqual(second.post.slug, 'hello-world-1')
        self.assertEqual(third.post.slug, 'hello-world-2')

    def test_unpublished_post(self):
        result = create_post(self.user, 'Draft', 'Not ready yet at all.', published=False)

        self.assertIsNone(result.post.published_at)
        self.assertEqual(result.new_achievements, [])

    def test_published_post_is_stamped(self):
        result = create_post(self.user, 'Live', 'Ready for readers now.')

        self.assertIsNotNone(result.post.published_at)

    def test_anonymous_cannot_post(self):
        result = create_post(AnonymousUser(), 'Nope', 'Should not be saved.')

        self.assertFalse(result.success)
        self.assertEqual(result.action, 'unauthorized')
        self.assertFalse(Post.objects.exists())


class CommentServiceTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.post = make_post(self.user, 'thread')

    def test_comment_count_maintained_by_signals(self):
        result = create_comment(self.user, self.post, 'First!')
        create_comment(self.user, self.post, 'Reply', parent=result.comment)

        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 2)

        result.comment.delete()  # cascades to the reply
        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 0)

    def test_reply_depth_is_one_level(self):
        root = create_comment(self.user, self.post, 'Root').comment
        reply = create_comment(self.user, self.post, 'Reply', parent=root).comment

        self.assertEqual(reply.depth, 1)
        with self.assertRaises(InvalidComment):
            create_comment(self.user, self.post, 'Too deep', parent=reply)

    def test_parent_must_be_on_same_post(self):
        other = make_post(self.user, 'other')
        foreign = create_comment(self.user, other, 'Elsewhere').comment

        with self.assertRaises(InvalidComment):
            create_comment(self.user, self.post, 'Mismatch', parent=foreign)

    def test_tree_building(self):
        root = create_comment(self.user, self.post, 'Root').comment
        create_comment(self.user, self.post, 'Reply', parent=root)
        create_comment(self.user, self.post, 'Second root')

        tree = build_comment_tree(get_all_comments_for_post(self.post.id))

        self.assertEqual(len(tree), 2)
        self.assertEqual(tree[0]['comment'].id, root.id)
        self.assertEqual(len(tree[0]['replies']), 1)


class ApiTestCase(TestCase):
    """HTTP layer: status codes and payload shapes."""

    def setUp(self):
        seed_achievement_catalog()
        self.client = APIClient()
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.fan = User.objects.create_user('fan', 'f@test.com', 'pass')
        self.post = make_post(self.author, 'hello')

    def test_wave_requires_authentication(self):
        response = self.client.post('/api/posts/hello/wave/')

        self.assertEqual(response.status_code, 403)
        self.assertIn('error', response.data)
        self.assertFalse(Wave.objects.exists())

    def test_wave_unknown_post(self):
        self.client.force_authenticate(user=self.fan)

        response = self.client.post('/api/posts/missing/wave/')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error'], 'Post not found')

    def test_wave_toggle(self):
        self.client.force_authenticate(user=self.fan)

        response = self.client.post('/api/posts/hello/wave/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['waved'])
        self.assertEqual(response.data['wave_count'], 1)
        self.assertEqual(response.data['message'], 'Wave added!')
        self.assertIn('First Wave', [a['name'] for a in response.data['new_achievements']])

        response = self.client.post('/api/posts/hello/wave/')
        self.assertFalse(response.data['waved'])
        self.assertEqual(response.data['wave_count'], 0)
        self.assertNotIn('new_achievements', response.data)

    def test_create_post(self):
        self.client.force_authenticate(user=self.fan)

        response = self.client.post(
            '/api/posts/',
            {'title': 'Hello Waven', 'content': 'This is my very first post.'},
            format='json'
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['post']['slug'], 'hello-waven')
        self.assertEqual(
            [a['name'] for a in response.data['new_achievements']],
            ['Welcome Aboard', 'Author']
        )

    def test_create_post_validation(self):
        self.client.force_authenticate(user=self.fan)

        response = self.client.post('/api/posts/', {'title': 'Hi', 'content': 'short'}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertFalse(Post.objects.filter(author=self.fan).exists())

    def test_post_detail_with_comments(self):
        root = create_comment(self.fan, self.post, 'Nice post').comment
        create_comment(self.author, self.post, 'Thanks!', parent=root)
        toggle_wave(self.fan, self.post.slug)
        self.client.force_authenticate(user=self.fan)

        response = self.client.get('/api/posts/hello/')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['user_waved'])
        self.assertEqual(response.data['wave_count'], 1)
        self.assertEqual(len(response.data['comments']), 1)
        self.assertEqual(len(response.data['comments'][0]['replies']), 1)

    def test_post_detail_not_found(self):
        response = self.client.get('/api/posts/missing/')

        self.assertEqual(response.status_code, 404)

    def test_reply_too_deep_is_rejected(self):
        root = create_comment(self.author, self.post, 'Root').comment
        reply = create_comment(self.author, self.post, 'Reply', parent=root).comment
        self.client.force_authenticate(user=self.fan)

        response = self.client.post(
            '/api/posts/hello/comments/',
            {'content': 'Deeper', 'parent': reply.id},
            format='json'
        )

        self.assertEqual(response.status_code, 400)

    def test_feed_lists_published_posts_only(self):
        make_post(self.author, 'draft', published=False)

        response = self.client.get('/api/feed/')

        self.assertEqual(response.status_code, 200)
        slugs = [post['slug'] for post in response.data['results']]
        self.assertEqual(slugs, ['hello'])

    def test_achievement_list(self):
        response = self.client.get('/api/achievements/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), len(CATALOG))

    def test_achievement_init_requires_staff(self):
        self.client.force_authenticate(user=self.fan)
        self.assertEqual(self.client.post('/api/achievements/init/').status_code, 403)

        staff = User.objects.create_user('staff', 's@test.com', 'pass', is_staff=True)
        self.client.force_authenticate(user=staff)
        response = self.client.post('/api/achievements/init/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['created'], 0)
        self.assertEqual(response.data['updated'], len(CATALOG))

    def test_profile(self):
        self.client.force_authenticate(user=self.author)
        self.client.post(
            '/api/posts/',
            {'title': 'Another one', 'content': 'Second post from the author.'},
            format='json'
        )
        toggle_wave(self.fan, self.post.slug)

        response = self.client.get('/api/profile/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['total_waves_received'], 1)
        self.assertEqual(response.data['post_count'], 2)
        self.assertEqual(response.data['achievement_points'], 35)
        self.assertEqual(
            sorted(a['achievement']['name'] for a in response.data['achievements']),
            ['Author', 'Welcome Aboard']
        )

    def test_whoami(self):
        response = self.client.get('/api/auth/whoami/')
        self.assertFalse(response.data['authenticated'])

        self.client.force_authenticate(user=self.fan)
        response = self.client.get('/api/auth/whoami/')
        self.assertEqual(response.data['username'], 'fan')

    def test_draft_detail_is_not_found(self):
        make_post(self.author, 'draft', published=False)

        self.assertEqual(self.client.get('/api/posts/draft/').status_code, 404)

        self.client.force_authenticate(user=self.author)
        self.assertEqual(self.client.get('/api/posts/draft/').status_code, 404)

    def test_cannot_comment_on_draft(self):
        make_post(self.author, 'draft', published=False)
        self.client.force_authenticate(user=self.fan)

        response = self.client.post(
            '/api/posts/draft/comments/', {'content': 'Sneaky'}, format='json'
        )

        self.assertEqual(response.status_code, 404)
        self.assertFalse(Comment.objects.exists())

    def test_post_detail_counts_views(self):
        self.client.get('/api/posts/hello/')
        response = self.client.get('/api/posts/hello/')

        self.assertEqual(response.data['view_count'], 2)
        self.post.refresh_from_db()
        self.assertEqual(self.post.view_count, 2)

    def test_feed_filters_by_author(self):
        make_post(self.fan, 'by-fan')

        response = self.client.get('/api/feed/', {'author': self.fan.id})

        self.assertEqual([p['slug'] for p in response.data['results']], ['by-fan'])

    def test_feed_rejects_non_numeric_author(self):
        response = self.client.get('/api/feed/', {'author': 'fan'})

        self.assertEqual(response.status_code, 400)

    def test_feed_search_is_case_insensitive(self):
        Post.objects.create(
            author=self.fan, title='Surfing tips', slug='surfing',
            content='Paddle out early in the morning.'
        )
        Post.objects.create(
            author=self.fan, title='Weekend plans', slug='weekend',
            content='Nothing much going on here.', excerpt='Big SWELL expected'
        )

        by_title = self.client.get('/api/feed/', {'search': 'SURFING'})
        by_excerpt = self.client.get('/api/feed/', {'search': 'swell'})

        self.assertEqual([p['slug'] for p in by_title.data['results']], ['surfing'])
        self.assertEqual([p['slug'] for p in by_excerpt.data['results']], ['weekend'])

    def test_site_stats(self):
        make_post(self.author, 'draft', published=False)
        toggle_wave(self.fan, self.post.slug)

        response = self.client.get('/api/stats/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.data,
            {'total_posts': 1, 'total_users': 2, 'total_waves': 1}
        )

    def test_admin_stats_requires_staff(self):
        make_post(self.author, 'draft', published=False)
        create_comment(self.fan, self.post, 'Nice')
        self.client.force_authenticate(user=self.fan)
        self.assertEqual(self.client.get('/api/admin/stats/').status_code, 403)

        staff = User.objects.create_user('staff', 's@test.com', 'pass', is_staff=True)
        self.client.force_authenticate(user=staff)
        response = self.client.get('/api/admin/stats/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['total_users'], 3)
        self.assertEqual(response.data['total_posts'], 2)
        self.assertEqual(response.data['total_comments'], 1)
        self.assertEqual(response.data['total_waves'], 0)
        self.assertEqual(response.data['recent_users'][0]['username'], 'staff')
        self.assertEqual(response.data['recent_posts'][0]['slug'], 'draft')

    def test_failed_results_map_to_error_responses(self):
        self.client.force_authenticate(user=self.fan)

        with patch(
            'forum.views.toggle_wave',
            return_value=WaveResult(success=False, action='unauthorized')
        ):
            response = self.client.post('/api/posts/hello/wave/')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.data['error'], 'Unauthorized')

        with patch(
            'forum.views.toggle_wave',
            return_value=WaveResult(success=False, action='failed')
        ):
            response = self.client.post('/api/posts/hello/wave/')
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['error'], 'Internal server error')

    def test_api_root_lists_routable_endpoints(self):
        response = self.client.get('/')

        for path in response.json()['endpoints'].values():
            resolve(path.replace('<slug>', 'hello'))
