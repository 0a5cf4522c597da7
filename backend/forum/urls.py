"""
Forum App URL Configuration
"""
from django.urls import path
from .views import (
    FeedView,
    PostCreateView,
    PostDetailView,
    CommentCreateView,
    WaveToggleView,
    AchievementListView,
    AchievementInitView,
    ProfileView,
    WhoAmIView,
    SiteStatsView,
    AdminStatsView,
)

urlpatterns = [
    # Feed
    path('feed/', FeedView.as_view(), name='feed'),

    # Posts
    path('posts/', PostCreateView.as_view(), name='post-create'),
    path('posts/<slug:slug>/', PostDetailView.as_view(), name='post-detail'),
    path('posts/<slug:slug>/comments/', CommentCreateView.as_view(), name='comment-create'),
    path('posts/<slug:slug>/wave/', WaveToggleView.as_view(), name='wave-toggle'),

    # Achievements
    path('achievements/', AchievementListView.as_view(), name='achievement-list'),
    path('achievements/init/', AchievementInitView.as_view(), name='achievement-init'),

    # Profile
    path('profile/', ProfileView.as_view(), name='profile'),

    # Auth
    path('auth/whoami/', WhoAmIView.as_view(), name='whoami'),

    # Stats
    path('stats/', SiteStatsView.as_view(), name='site-stats'),
    path('admin/stats/', AdminStatsView.as_view(), name='admin-stats'),
]
