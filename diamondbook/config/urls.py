"""
URL configuration for the DiamondBook backend.

Every app mounts its routes under ``/api/v1/``; see each app's ``urls.py``.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "DiamondBook Admin Panel"
admin.site.site_title = "DiamondBook Admin Portal"
admin.site.index_title = "Diamond Trading Management"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('diamondbook.core.urls')),
    path('api/v1/', include('diamondbook.clients.urls')),
    path('api/v1/', include('diamondbook.pricing.urls')),
    path('api/v1/', include('diamondbook.diamonds.urls')),
    path('api/v1/', include('diamondbook.invoices.urls')),
    path('api/v1/', include('diamondbook.reports.urls')),
    re_path(r'^static/(?P<path>.*)$', serve, {'document_root': settings.STATIC_ROOT}),
]
