from django.db import models
from backend.core.models import Organization, User
from backend.projects.models import Task


class Dispatch(models.Model):
    """Directive sent from one executive to another, optionally turned into a task"""
    URGENCY_CHOICES = [
        ('NORMAL', 'Normal'),
        ('URGENT', 'Urgent'),
        ('CRITICAL', 'Critical'),
    ]
    # Sort rank, most urgent first
    URGENCY_RANK = {'CRITICAL': 3, 'URGENT': 2, 'NORMAL': 1}

    STATUS_CHOICES = [
        ('SENT', 'Sent'),
        ('READ', 'Read'),
        ('IN_PROGRESS', 'In Progress'),
        ('RESOLVED', 'Resolved'),
        ('CONVERTED_TO_TASK', 'Converted to Task'),
    ]
    # Statuses that still need attention from the recipient
    OPEN_STATUSES = ('SENT', 'READ', 'IN_PROGRESS')

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='dispatches')
    sender = models.ForeignKey(User, on_delete=models.CASCADE, related_name='sent_dispatches')
    recipient = models.ForeignKey(User, on_delete=models.CASCADE, related_name='received_dispatches')
    content = models.TextField()
    description = models.TextField(blank=True)
    link = models.URLField(max_length=500, blank=True)
    urgency_level = models.CharField(max_length=20, choices=URGENCY_CHOICES, default='NORMAL')
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='SENT')
    read_at = models.DateTimeField(null=True, blank=True)
    in_progress_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolution_note = models.TextField(blank=True)
    task = models.OneToOneField(Task, on_delete=models.SET_NULL, null=True, blank=True, related_name='source_dispatch')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.content[:50]

    class Meta:
        db_table = 'dispatches'
        ordering = ['-created_at']
        verbose_name_plural = 'dispatches'
