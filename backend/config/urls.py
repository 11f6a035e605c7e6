"""
URL configuration for the backend project.

Every app mounts its routes under ``api/v1/``.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "SIGMA Management Admin Panel"
admin.site.site_title = "SIGMA Management Admin Portal"
admin.site.index_title = "Welcome to the SIGMA Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('backend.core.urls')),
    path('api/v1/', include('backend.parties.urls')),
    path('api/v1/', include('backend.projects.urls')),
    path('api/v1/', include('backend.finance.urls')),
    path('api/v1/', include('backend.dispatches.urls')),
]
