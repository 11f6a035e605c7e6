from django.urls import path
from . import views

urlpatterns = [
    path('dispatches/', views.dispatch_list_create, name='dispatch-list-create'),
    path('dispatches/stats/', views.dispatch_stats, name='dispatch-stats'),
    path('dispatches/<int:pk>/', views.dispatch_detail, name='dispatch-detail'),
    path('dispatches/<int:pk>/read/', views.dispatch_read, name='dispatch-read'),
    path('dispatches/<int:pk>/progress/', views.dispatch_progress, name='dispatch-progress'),
    path('dispatches/<int:pk>/resolve/', views.dispatch_resolve, name='dispatch-resolve'),
    path('dispatches/<int:pk>/convert-to-task/', views.dispatch_convert_to_task, name='dispatch-convert-to-task'),
]
