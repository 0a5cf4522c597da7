"""
DRF Views
=========

API endpoints for the forum. Views stay thin: they validate input with a
serializer, call one service function, and map its result object to an
HTTP response.

AUTHENTICATION NOTE:
--------------------
Session authentication. Write endpoints require IsAuthenticated, which
rejects anonymous requests before any service or store access.
"""

from rest_framework import generics, status, permissions, serializers
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.pagination import CursorPagination
from django.db.models import Sum

from .achievements import seed_achievement_catalog
from .exceptions import PostNotFound, Unauthorized, StoreFailure
from .models import Achievement
from .serializers import (
    UserSerializer,
    AchievementSerializer,
    UserAchievementSerializer,
    PostListSerializer,
    PostCreateSerializer,
    PostDetailSerializer,
    CommentSerializer,
    CommentCreateSerializer,
    RecentUserSerializer,
)
from .queries import (
    find_published_post_by_slug,
    get_feed_queryset,
    get_all_comments_for_post,
    build_comment_tree,
    has_waved,
    get_user_achievements,
    get_profile,
    get_site_stats,
    get_admin_stats,
)
from .services import toggle_wave, create_post, create_comment, record_post_view

# WaveResult/PostResult.action -> error raised for the failure cases
FAILURE_ERRORS = {
    'unauthorized': Unauthorized,
    'not_found': PostNotFound,
    'failed': StoreFailure,
}


def _raise_failure(action):
    raise FAILURE_ERRORS[action]()


def _with_achievements(payload, achievements):
    """Attach new_achievements only when something was unlocked."""
    if achievements:
        payload['new_achievements'] = AchievementSerializer(achievements, many=True).data
    return payload


class FeedPagination(CursorPagination):
    """
    Cursor pagination for the feed.

    Trade-off: Can't jump to arbitrary page, but O(1) vs O(n).
    """
    page_size = 10
    ordering = '-created_at'
    cursor_query_param = 'cursor'


class FeedView(generics.ListAPIView):
    """
    GET /api/feed/?author=<user id>&search=<text>

    Published posts, newest first. Both filters are optional.
    """
    serializer_class = PostListSerializer
    pagination_class = FeedPagination
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        params = self.request.query_params
        author = params.get('author')
        if author is not None and not author.isdigit():
            raise serializers.ValidationError({'author': 'Must be a user id.'})

        return get_feed_queryset(
            author_id=int(author) if author is not None else None,
            search=params.get('search', '').strip() or None,
        )


class PostCreateView(APIView):
    """
    POST /api/posts/

    Body:
    {
        "title": "...",
        "content": "...",
        "excerpt": "...",      // optional
        "slug": "my-post",     // optional, derived from title
        "published": true      // optional
    }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = PostCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = create_post(request.user, **serializer.validated_data)
        if not result.success:
            _raise_failure(result.action)

        payload = {
            'message': 'Post created successfully',
            'post': PostListSerializer(result.post).data,
        }
        return Response(
            _with_achievements(payload, result.new_achievements),
            status=status.HTTP_201_CREATED
        )


class PostDetailView(APIView):
    """
    GET /api/posts/<slug>/

    Published post with its comment tree and whether the current user
    waved it. Drafts are 404. Every request counts as a view.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request, slug):
        post = find_published_post_by_slug(slug)
        if post is None:
            raise PostNotFound()

        record_post_view(post)

        comment_tree = build_comment_tree(get_all_comments_for_post(post.id))

        user_waved = False
        if request.user.is_authenticated:
            user_waved = has_waved(request.user.id, post.id)

        serializer = PostDetailSerializer(
            post,
            context={
                'comment_tree': comment_tree,
                'user_waved': user_waved,
                'request': request
            }
        )
        return Response(serializer.data)


class CommentCreateView(APIView):
    """
    POST /api/posts/<slug>/comments/

    Body:
    {
        "content": "Comment text",
        "parent": 123  // optional, for replies
    }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, slug):
        post = find_published_post_by_slug(slug)
        if post is None:
            raise PostNotFound()

        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = create_comment(
            request.user,
            post,
            serializer.validated_data['content'],
            parent=serializer.validated_data.get('parent')
        )

        payload = {'comment': CommentSerializer(result.comment).data}
        return Response(
            _with_achievements(payload, result.new_achievements),
            status=status.HTTP_201_CREATED
        )


class WaveToggleView(APIView):
    """
    POST /api/posts/<slug>/wave/

    Returns:
    {
        "waved": true | false,
        "wave_count": 42,
        "message": "Wave added!" | "Wave removed",
        "new_achievements": [...]   // only when something unlocked
    }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, slug):
        result = toggle_wave(request.user, slug)
        if not result.success:
            _raise_failure(result.action)

        payload = {
            'waved': result.waved,
            'wave_count': result.wave_count,
            'message': 'Wave added!' if result.waved else 'Wave removed',
        }
        return Response(_with_achievements(payload, result.new_achievements))


class AchievementListView(generics.ListAPIView):
    """
    GET /api/achievements/

    The seeded catalog.
    """
    serializer_class = AchievementSerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None
    queryset = Achievement.objects.all()


class AchievementInitView(APIView):
    """
    POST /api/achievements/init/

    Operator action: seed (or re-seed) the catalog. Idempotent.
    """
    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        created, updated = seed_achievement_catalog()
        return Response({
            'message': 'Achievements initialized successfully',
            'created': created,
            'updated': updated
        })


class ProfileView(APIView):
    """
    GET /api/profile/

    Current user's counters and unlocked achievements.
    """
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        user = request.user
        profile = get_profile(user.id)
        unlocks = get_user_achievements(user.id)
        total_points = user.achievements.aggregate(
            total=Sum('achievement__points')
        )['total'] or 0

        return Response({
            'user': UserSerializer(user).data,
            'total_waves_received': profile.total_waves_received if profile else 0,
            'post_count': user.posts.filter(published=True).count(),
            'comment_count': user.comments.count(),
            'waves_given': user.waves.count(),
            'achievement_points': total_points,
            'achievements': UserAchievementSerializer(unlocks, many=True).data,
        })


class WhoAmIView(APIView):
    """
    GET /api/auth/whoami/
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        if request.user.is_authenticated:
            return Response({
                'authenticated': True,
                'user_id': request.user.id,
                'username': request.user.username,
                'is_staff': request.user.is_staff
            })
        return Response({
            'authenticated': False,
            'user_id': None,
            'username': None,
            'is_staff': False
        })


class SiteStatsView(APIView):
    """
    GET /api/stats/

    Published posts, registered users and waves given, site-wide.
    """
    permission_classes = [permissions.AllowAny]

    def get(self, request):
        return Response(get_site_stats())


class AdminStatsView(APIView):
    """
    GET /api/admin/stats/

    Staff dashboard: totals plus the five newest users and posts.
    """
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        stats = get_admin_stats()
        stats['recent_users'] = RecentUserSerializer(stats['recent_users'], many=True).data
        stats['recent_posts'] = PostListSerializer(stats['recent_posts'], many=True).data
        return Response(stats)
