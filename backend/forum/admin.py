"""
Django Admin Configuration for Forum Models
"""
from django.contrib import admin, messages

from .models import Post, Comment, Wave, Profile, Achievement, UserAchievement
from .achievements import seed_achievement_catalog
from .services import reconcile_wave_counters, remove_wave


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'total_waves_received', 'created_at']
    search_fields = ['user__username']
    readonly_fields = ['total_waves_received', 'created_at']


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ['title', 'slug', 'author', 'published', 'wave_count', 'comment_count', 'view_count', 'created_at']
    list_filter = ['published', 'created_at']
    search_fields = ['title', 'slug', 'content', 'author__username']
    readonly_fields = ['wave_count', 'comment_count', 'view_count', 'created_at', 'updated_at']
    actions = ['reconcile_waves']

    @admin.action(description='Recount wave counters from wave rows')
    def reconcile_waves(self, request, queryset):
        corrected = reconcile_wave_counters()
        self.message_user(request, f'{corrected} counter(s) corrected.', messages.SUCCESS)


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ['id', 'post', 'author', 'parent', 'depth', 'created_at']
    list_filter = ['created_at', 'depth']
    search_fields = ['content', 'author__username']
    readonly_fields = ['depth', 'created_at', 'updated_at']


@admin.register(Wave)
class WaveAdmin(admin.ModelAdmin):
    list_display = ['user', 'post', 'created_at']
    list_filter = ['created_at']
    search_fields = ['user__username', 'post__slug']

    def has_add_permission(self, request):
        # Waves go through services.toggle_wave so counters stay in step
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def delete_model(self, request, obj):
        remove_wave(obj)

    def delete_queryset(self, request, queryset):
        for wave in queryset.select_related('post'):
            remove_wave(wave)


@admin.register(Achievement)
class AchievementAdmin(admin.ModelAdmin):
    list_display = ['name', 'rarity', 'points', 'condition']
    list_filter = ['rarity']
    search_fields = ['name', 'description']
    actions = ['seed_catalog']

    @admin.action(description='Seed achievement catalog')
    def seed_catalog(self, request, queryset):
        created, updated = seed_achievement_catalog()
        self.message_user(
            request,
            f'Catalog seeded: {created} created, {updated} updated.',
            messages.SUCCESS
        )


@admin.register(UserAchievement)
class UserAchievementAdmin(admin.ModelAdmin):
    list_display = ['user', 'achievement', 'unlocked_at']
    list_filter = ['achievement__rarity', 'unlocked_at']
    search_fields = ['user__username', 'achievement__name']
    readonly_fields = ['user', 'achievement', 'unlocked_at']

    def has_add_permission(self, request):
        # Unlocks are only created by the evaluator
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        # Unlock history is permanent
        return False
