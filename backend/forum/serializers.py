"""
DRF Serializers
===============

Serializers handle:
1. Validation of incoming data
2. Transformation of model instances to JSON
3. Nested comment tree serialization

Writes are NOT done through ModelSerializer.save(): views pass
validated_data to services.py so slug generation, counters and
achievement evaluation live in one place.
"""

from rest_framework import serializers
from django.contrib.auth.models import User

from .models import Post, Comment, Achievement, UserAchievement


class UserSerializer(serializers.ModelSerializer):
    """Minimal user representation for embedding in other objects."""
    total_waves_received = serializers.IntegerField(
        source='profile.total_waves_received', read_only=True
    )

    class Meta:
        model = User
        fields = ['id', 'username', 'total_waves_received']
        read_only_fields = fields


class RecentUserSerializer(serializers.ModelSerializer):
    """Row in the admin dashboard's newest-users list."""
    total_waves_received = serializers.IntegerField(
        source='profile.total_waves_received', read_only=True
    )
    post_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'date_joined', 'is_staff', 'total_waves_received', 'post_count']
        read_only_fields = fields


class AchievementSerializer(serializers.ModelSerializer):

    class Meta:
        model = Achievement
        fields = ['id', 'name', 'description', 'icon', 'color', 'rarity', 'points', 'condition']
        read_only_fields = fields


class UserAchievementSerializer(serializers.ModelSerializer):
    achievement = AchievementSerializer(read_only=True)

    class Meta:
        model = UserAchievement
        fields = ['achievement', 'unlocked_at']
        read_only_fields = fields


class PostListSerializer(serializers.ModelSerializer):
    """
    Serializer for feed list view. No nested comments.
    Uses select_related('author') in the view.
    """
    author = UserSerializer(read_only=True)

    class Meta:
        model = Post
        fields = [
            'id',
            'slug',
            'title',
            'excerpt',
            'content',
            'author',
            'published',
            'wave_count',
            'comment_count',
            'view_count',
            'published_at',
            'created_at'
        ]
        read_only_fields = fields


class PostCreateSerializer(serializers.Serializer):
    """
    Input for publishing a post.

    Author is taken from request.user in the view, never from input.
    """
    title = serializers.CharField(max_length=300)
    content = serializers.CharField()
    excerpt = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    slug = serializers.CharField(max_length=300, required=False, allow_blank=True, default='')
    published = serializers.BooleanField(required=False, default=True)

    def validate_title(self, value):
        if len(value.strip()) < 3:
            raise serializers.ValidationError("Title must be at least 3 characters.")
        return value.strip()

    def validate_content(self, value):
        if len(value.strip()) < 10:
            raise serializers.ValidationError("Content must be at least 10 characters.")
        return value.strip()


class CommentSerializer(serializers.ModelSerializer):
    author = UserSerializer(read_only=True)

    class Meta:
        model = Comment
        fields = [
            'id',
            'content',
            'author',
            'parent',
            'depth',
            'created_at'
        ]
        read_only_fields = fields


class CommentCreateSerializer(serializers.Serializer):
    """
    Input for a comment. Parent/post consistency and reply depth are
    checked by services.create_comment().
    """
    content = serializers.CharField()
    parent = serializers.PrimaryKeyRelatedField(
        queryset=Comment.objects.all(), required=False, allow_null=True
    )

    def validate_content(self, value):
        if not value.strip():
            raise serializers.ValidationError("Comment cannot be empty.")
        return value.strip()


class CommentTreeSerializer(serializers.Serializer):
    """
    Serializes the pre-built tree from queries.build_comment_tree().

    {"comment": {...}, "replies": [...]}
    """
    comment = CommentSerializer()
    replies = serializers.SerializerMethodField()

    def get_replies(self, obj):
        return CommentTreeSerializer(obj['replies'], many=True).data


class PostDetailSerializer(serializers.ModelSerializer):
    """
    Post detail with nested comments.

    Comments are passed as pre-built tree in context.
    """
    author = UserSerializer(read_only=True)
    comments = serializers.SerializerMethodField()
    user_waved = serializers.SerializerMethodField()

    class Meta:
        model = Post
        fields = [
            'id',
            'slug',
            'title',
            'excerpt',
            'content',
            'author',
            'published',
            'wave_count',
            'comment_count',
            'view_count',
            'published_at',
            'created_at',
            'updated_at',
            'comments',
            'user_waved'
        ]

    def get_comments(self, obj):
        comment_tree = self.context.get('comment_tree', [])
        return CommentTreeSerializer(comment_tree, many=True).data

    def get_user_waved(self, obj):
        return self.context.get('user_waved', False)
