"""
Django Signals for Profile creation, comment counters and wave cleanup.

IMPORTANT: Signals do NOT fire on:
- bulk_create()
- QuerySet.update()

services.py moves wave counters with QuerySet.update(F(...)) directly,
so wave toggles are NOT counted here (which is correct!).

These signals ARE used for:
- Profile creation when a User is created
- Comment creation/deletion (post.comment_count)
- Releasing wave counters when a Post or User (and with it, its Wave
  rows) is deleted, including deletes from the admin

Deletion runs every pre_delete receiver before any row is removed, inside
the same transaction, so the Wave rows are still there to be counted.
"""

from django.contrib.auth.models import User
from django.db.models.signals import post_save, post_delete, pre_delete
from django.dispatch import receiver
from django.db.models import F

from .models import Comment, Post, Profile
from .services import release_post_waves, release_user_waves


@receiver(post_save, sender=User)
def create_profile(sender, instance, created, **kwargs):
    """Every user gets a Profile holding their wave counters."""
    if created:
        Profile.objects.get_or_create(user=instance)


@receiver(pre_delete, sender=User)
def release_waves_given(sender, instance, **kwargs):
    release_user_waves(instance.id)


@receiver(pre_delete, sender=Post)
def release_waves_received(sender, instance, **kwargs):
    release_post_waves(instance.id, instance.author_id)


@receiver(post_save, sender=Comment)
def increment_comment_count(sender, instance, created, **kwargs):
    if created:
        Post.objects.filter(id=instance.post_id).update(
            comment_count=F('comment_count') + 1
        )


@receiver(post_delete, sender=Comment)
def decrement_comment_count(sender, instance, **kwargs):
    """
    Fires once per deleted comment, including replies removed by cascade,
    so the count stays exact.
    """
    Post.objects.filter(id=instance.post_id, comment_count__gt=0).update(
        comment_count=F('comment_count') - 1
    )
