"""
Waven URL Configuration
"""
from django.contrib import admin
from django.urls import path, include
from django.http import JsonResponse


def api_root(request):
    """Root endpoint with API information."""
    return JsonResponse({
        'message': 'Waven API Server',
        'version': '1.0',
        'endpoints': {
            'feed': '/api/feed/',
            'create_post': '/api/posts/',
            'posts': '/api/posts/<slug>/',
            'comments': '/api/posts/<slug>/comments/',
            'wave': '/api/posts/<slug>/wave/',
            'achievements': '/api/achievements/',
            'achievements_init': '/api/achievements/init/',
            'profile': '/api/profile/',
            'stats': '/api/stats/',
            'admin_stats': '/api/admin/stats/',
            'whoami': '/api/auth/whoami/',
            'login': '/api-auth/login/',
        },
        'admin': '/admin/',
    })


urlpatterns = [
    path('', api_root, name='api-root'),
    path('admin/', admin.site.urls),
    path('api/', include('forum.urls')),
    path('api-auth/', include('rest_framework.urls')),
]
