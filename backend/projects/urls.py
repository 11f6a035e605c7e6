from django.urls import path
from . import views

urlpatterns = [
    # Project endpoints
    path('projects/', views.project_list_create, name='project-list-create'),
    path('projects/<int:pk>/', views.project_detail, name='project-detail'),
    path('projects/<int:pk>/status/', views.project_change_status, name='project-change-status'),
    path('projects/<int:pk>/statistics/', views.project_statistics_view, name='project-statistics'),
    path('projects/<int:pk>/financial-stats/', views.project_financial_stats, name='project-financial-stats'),

    # Sprint endpoints
    path('sprints/', views.sprint_list_create, name='sprint-list-create'),
    path('sprints/<int:pk>/', views.sprint_detail, name='sprint-detail'),
    path('sprints/<int:pk>/burndown/', views.sprint_burndown_view, name='sprint-burndown'),
    path('sprints/<int:pk>/velocity/', views.sprint_velocity_view, name='sprint-velocity'),
    path('sprints/<int:pk>/statistics/', views.sprint_statistics_view, name='sprint-statistics'),

    # Task endpoints
    path('tasks/', views.task_list_create, name='task-list-create'),
    path('tasks/stats/dashboard/', views.task_dashboard_stats, name='task-dashboard-stats'),
    path('tasks/kanban/<int:project_id>/', views.task_kanban, name='task-kanban'),
    path('tasks/<int:pk>/', views.task_detail, name='task-detail'),
    path('tasks/<int:pk>/move/', views.task_move, name='task-move'),
    path('tasks/<int:pk>/assign/', views.task_assign, name='task-assign'),
    path('tasks/<int:pk>/comments/', views.task_comments, name='task-comments'),

    # Expense endpoints
    path('expenses/', views.expense_list_create, name='expense-list-create'),
    path('expenses/<int:pk>/', views.expense_detail, name='expense-detail'),

    # Time entry endpoints
    path('time-entries/', views.time_entry_list_create, name='time-entry-list-create'),
    path('time-entries/<int:pk>/', views.time_entry_detail, name='time-entry-detail'),
]
