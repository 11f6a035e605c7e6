from django.contrib import admin
from .models import Dispatch


@admin.register(Dispatch)
class DispatchAdmin(admin.ModelAdmin):
    list_display = ['content', 'organization', 'sender', 'recipient', 'urgency_level', 'status', 'due_date', 'created_at']
    list_filter = ['status', 'urgency_level', 'organization']
    search_fields = ['content', 'description', 'sender__username', 'recipient__username']
    readonly_fields = ['read_at', 'in_progress_at', 'resolved_at', 'task', 'created_at', 'updated_at']
    ordering = ['-created_at']
