"""
Dispatch lifecycle: SENT -> READ -> IN_PROGRESS -> RESOLVED, or
CONVERTED_TO_TASK from any open status.

Failures raise DRF exceptions so views can let them propagate.
"""
import logging

from django.db import transaction
from django.db.models import Case, IntegerField, Q, Value, When
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from backend.core.roles import is_executive_role, user_role_name
from backend.projects.models import Project, Task
from backend.projects.workflow import next_position
from .models import Dispatch

logger = logging.getLogger(__name__)

# Dispatch urgency -> task priority
URGENCY_TASK_PRIORITY = {
    'CRITICAL': 'URGENT',
    'URGENT': 'HIGH',
    'NORMAL': 'MEDIUM',
}


def order_by_urgency(queryset):
    """Most urgent first, newest first within the same urgency"""
    rank = Case(
        *[When(urgency_level=level, then=Value(value)) for level, value in Dispatch.URGENCY_RANK.items()],
        default=Value(0),
        output_field=IntegerField(),
    )
    return queryset.annotate(urgency_rank=rank).order_by('-urgency_rank', '-created_at')


def visible_dispatches(user, organization, kind=None):
    """Dispatches the user sent or received, narrowed by ``kind`` ('sent' or 'received')"""
    queryset = Dispatch.objects.filter(organization=organization)
    if kind == 'sent':
        return queryset.filter(sender=user)
    if kind == 'received':
        return queryset.filter(recipient=user)
    return queryset.filter(Q(sender=user) | Q(recipient=user))


def check_participant(dispatch, user):
    if user.id not in (dispatch.sender_id, dispatch.recipient_id):
        raise PermissionDenied('You do not have permission to view this dispatch.')


def check_recipient(dispatch, user, action):
    if dispatch.recipient_id != user.id:
        raise PermissionDenied(f'Only the recipient can {action}.')


def can_delete(dispatch, user):
    return dispatch.sender_id == user.id or is_executive_role(user_role_name(user))


def mark_read(dispatch, user):
    check_recipient(dispatch, user, 'mark a dispatch as read')
    if dispatch.status != 'SENT':
        raise ValidationError({'status': 'Dispatch has already been read.'})
    dispatch.status = 'READ'
    dispatch.read_at = timezone.now()
    dispatch.save(update_fields=['status', 'read_at', 'updated_at'])
    return dispatch


def mark_in_progress(dispatch, user):
    check_recipient(dispatch, user, 'mark a dispatch as in progress')
    if dispatch.status in ('RESOLVED', 'CONVERTED_TO_TASK'):
        raise ValidationError({'status': 'Cannot change status of a resolved or converted dispatch.'})
    now = timezone.now()
    dispatch.status = 'IN_PROGRESS'
    dispatch.in_progress_at = now
    dispatch.read_at = dispatch.read_at or now
    dispatch.save(update_fields=['status', 'in_progress_at', 'read_at', 'updated_at'])
    return dispatch


def resolve(dispatch, user, resolution_note=''):
    check_recipient(dispatch, user, 'resolve a dispatch')
    if dispatch.status == 'CONVERTED_TO_TASK':
        raise ValidationError({'status': 'Cannot resolve a dispatch that was converted to a task.'})
    now = timezone.now()
    dispatch.status = 'RESOLVED'
    dispatch.resolved_at = now
    dispatch.resolution_note = resolution_note or ''
    dispatch.read_at = dispatch.read_at or now
    dispatch.save(update_fields=['status', 'resolved_at', 'resolution_note', 'read_at', 'updated_at'])
    return dispatch


def _target_project(dispatch, user, project_id=None):
    """
    Project the new task goes to.

    Executives may pick any live project of the organization; anyone else
    needs a project the recipient owns or belongs to.
    """
    executive = is_executive_role(user_role_name(user))
    projects = Project.objects.filter(organization_id=dispatch.organization_id, deleted_at__isnull=True)
    if project_id is not None:
        projects = projects.filter(pk=project_id)
    if not executive:
        recipient = dispatch.recipient_id
        projects = projects.filter(
            Q(owner_id=recipient) | Q(co_owners__id=recipient) | Q(members__id=recipient)
        ).distinct()

    project = projects.order_by('created_at').first()
    if project is not None:
        return project
    if project_id is not None:
        message = ('Invalid project.' if executive
                   else 'Invalid project or recipient is not a member of the selected project.')
    else:
        message = ('No projects available in organization.' if executive
                   else 'Recipient must be assigned to at least one project to convert a dispatch to a task.')
    raise ValidationError({'project_id': message})


def convert_to_task(dispatch, user, project_id=None):
    """Create a task from the dispatch and link them. Returns the task."""
    check_participant(dispatch, user)
    if dispatch.status == 'CONVERTED_TO_TASK':
        raise ValidationError({'status': 'Dispatch has already been converted to a task.'})
    if dispatch.task_id:
        raise ValidationError({'task': 'Dispatch is already linked to a task.'})

    project = _target_project(dispatch, user, project_id)
    with transaction.atomic():
        task = Task.objects.create(
            organization_id=dispatch.organization_id,
            project=project,
            title=dispatch.content[:100],
            description=dispatch.content,
            status='TODO',
            priority=URGENCY_TASK_PRIORITY.get(dispatch.urgency_level, 'MEDIUM'),
            assignee_id=dispatch.recipient_id,
            reporter_id=dispatch.sender_id,
            due_date=dispatch.due_date,
            position=next_position(project, 'TODO'),
        )
        dispatch.status = 'CONVERTED_TO_TASK'
        dispatch.task = task
        dispatch.save(update_fields=['status', 'task', 'updated_at'])

    logger.info("Dispatch %s converted to task %s in project %s", dispatch.id, task.id, project.id)
    return task


def dispatch_statistics(user, organization):
    dispatches = Dispatch.objects.filter(organization=organization)
    received = dispatches.filter(recipient=user)
    return {
        'total_sent': dispatches.filter(sender=user).count(),
        'total_received': received.count(),
        'unread_count': received.filter(status='SENT').count(),
        'urgent_count': received.filter(urgency_level='URGENT', status__in=Dispatch.OPEN_STATUSES).count(),
    }
