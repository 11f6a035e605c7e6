from django.contrib import admin
from .models import Expense, Project, Sprint, Task, TaskComment, TimeEntry


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ['name', 'organization', 'status', 'owner', 'client', 'start_date', 'end_date', 'deleted_at']
    list_filter = ['status', 'organization']
    search_fields = ['name', 'description']
    filter_horizontal = ['co_owners', 'members']
    ordering = ['-created_at']


@admin.register(Sprint)
class SprintAdmin(admin.ModelAdmin):
    list_display = ['name', 'project', 'organization', 'start_date', 'end_date']
    list_filter = ['organization']
    search_fields = ['name', 'goal', 'project__name']
    filter_horizontal = ['members']


class TaskCommentInline(admin.TabularInline):
    model = TaskComment
    extra = 0
    readonly_fields = ['user', 'created_at']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'project', 'sprint', 'status', 'priority', 'assignee', 'position', 'due_date']
    list_filter = ['status', 'priority', 'organization']
    search_fields = ['title', 'description']
    inlines = [TaskCommentInline]


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ['description', 'organization', 'user', 'project', 'amount', 'currency', 'status', 'date']
    list_filter = ['status', 'currency', 'organization']
    search_fields = ['description', 'category']
    ordering = ['-date']


@admin.register(TimeEntry)
class TimeEntryAdmin(admin.ModelAdmin):
    list_display = ['user', 'project', 'task', 'hours', 'date', 'status']
    list_filter = ['status', 'organization']
    ordering = ['-date']
