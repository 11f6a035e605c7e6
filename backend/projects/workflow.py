"""
Access rules for projects, sprints and tasks.

Failures raise DRF ``PermissionDenied`` (403) or ``ValidationError`` (400)
so views can let them propagate to the exception handler.
"""
import logging

from django.db import transaction
from django.db.models import F, Q
from rest_framework.exceptions import PermissionDenied, ValidationError

from backend.core.roles import (
    is_executive_role, is_task_admin_role, is_sprint_admin_role, is_project_manager_role,
    user_role_name,
)
from .models import Project, Sprint, Task

logger = logging.getLogger(__name__)

# Statuses a REVIEW task goes back to when rejected
REJECT_STATUSES = ('IN_PROGRESS', 'TODO', 'BACKLOG')


def is_executive(user):
    return is_executive_role(user_role_name(user))


def is_task_admin(user):
    return is_task_admin_role(user_role_name(user))


def related_project_filter(user):
    """Projects where the user is primary owner, co-owner, member or task assignee"""
    return (
        Q(owner=user) |
        Q(co_owners=user) |
        Q(members=user) |
        Q(tasks__assignee=user)
    )


def visible_projects(organization, user):
    queryset = Project.objects.filter(organization=organization, deleted_at__isnull=True)
    if is_executive(user):
        return queryset
    return queryset.filter(related_project_filter(user)).distinct()


def is_related_to_project(project, user):
    if project.is_owner(user) or project.is_member(user):
        return True
    return project.tasks.filter(assignee=user).exists()


def check_project_access(project, user):
    if is_executive(user) or is_related_to_project(project, user):
        return
    raise PermissionDenied('You do not have permission to view this project.')


# Sprints
def can_view_all_sprints(user):
    role_name = user_role_name(user)
    return is_sprint_admin_role(role_name) or is_executive_role(role_name)


def visible_sprints(organization, user):
    queryset = Sprint.objects.filter(organization=organization)
    if can_view_all_sprints(user):
        return queryset
    projects = visible_projects(organization, user).values('id')
    return queryset.filter(project__in=projects)


def check_sprint_access(sprint, user):
    if can_view_all_sprints(user) or sprint.project.is_owner(user) or sprint.project.is_member(user):
        return
    if sprint.tasks.filter(assignee=user).exists():
        return
    raise PermissionDenied('You do not have permission to view this sprint.')


def can_manage_sprints(project, user):
    """
    Sprint admins manage any sprint; project managers manage sprints of the
    projects they own or belong to; everyone else needs project ownership.
    """
    role_name = user_role_name(user)
    if is_sprint_admin_role(role_name):
        return True
    if project.is_owner(user):
        return True
    return is_project_manager_role(role_name) and project.is_member(user)


def check_sprint_management(project, user, action='manage'):
    if not can_manage_sprints(project, user):
        raise PermissionDenied(f'You do not have permission to {action} sprints in this project.')


# Tasks
def visible_tasks(organization, user, project_id=None):
    """
    Tasks a user may list.

    Task admins see everything. Others see tasks assigned to them plus every
    task of the projects they own; inside a project they do not own only
    their assigned tasks are visible.
    """
    queryset = Task.objects.filter(organization=organization)
    if project_id:
        queryset = queryset.filter(project_id=project_id)
    if is_task_admin(user):
        return queryset

    owned = Project.objects.filter(organization=organization).filter(Q(owner=user) | Q(co_owners=user))
    if project_id:
        if owned.filter(pk=project_id).exists():
            return queryset
        return queryset.filter(assignee=user)
    return queryset.filter(Q(assignee=user) | Q(project__in=owned.values('id'))).distinct()


def check_task_access(task, user):
    if is_task_admin(user) or task.project.is_owner(user):
        return
    if user.id in (task.assignee_id, task.reporter_id):
        return
    raise PermissionDenied('You do not have permission to view this task.')


def check_task_creation(project, user):
    if is_task_admin(user) or project.is_owner(user):
        return
    raise PermissionDenied('You do not have permission to create tasks for this project.')


def check_task_deletion(task, user):
    if is_task_admin(user) or task.project.is_owner(user) or task.reporter_id == user.id:
        return
    raise PermissionDenied('You do not have permission to delete this task.')


def check_status_change(task, user, new_status):
    """DONE is reached only from REVIEW; leaving REVIEW needs an approver"""
    if not new_status or new_status == task.status:
        return
    can_approve = is_task_admin(user) or task.project.is_owner(user) or task.reporter_id == user.id

    if new_status == 'DONE':
        if task.status != 'REVIEW':
            raise PermissionDenied('Tasks must go through REVIEW before being marked as DONE.')
        if not can_approve:
            raise PermissionDenied('Only project owners, administrators or the task reporter can approve tasks.')
    elif task.status == 'REVIEW' and new_status in REJECT_STATUSES and not can_approve:
        raise PermissionDenied('Only project owners, administrators or the task reporter can reject tasks in REVIEW.')


def check_task_update(task, user, changed_fields):
    """Raise PermissionDenied when ``user`` may not apply ``changed_fields`` to ``task``"""
    admin = is_task_admin(user)
    if task.status == 'DONE' and not admin:
        raise PermissionDenied('Task is DONE and cannot be modified.')

    if not admin and not task.project.is_owner(user):
        extra = set(changed_fields) - {'status'}
        if extra:
            raise PermissionDenied('You can only update the status of this task.')

    check_status_change(task, user, changed_fields.get('status'))


def check_task_assignment(task, user, assignee):
    """Admins and project managers assign to anyone; owners only to project people"""
    role_name = user_role_name(user)
    admin = is_task_admin_role(role_name) or is_project_manager_role(role_name)
    if not admin and not task.project.is_owner(user):
        raise PermissionDenied('You do not have permission to assign tasks.')
    if not admin and not (task.project.is_owner(assignee) or task.project.is_member(assignee)):
        raise ValidationError({'assignee': 'Assignee must be a member of the project.'})


def next_position(project, status):
    last = (Task.objects.filter(project=project, status=status)
            .order_by('-position').values_list('position', flat=True).first())
    return (last or 0) + 1


def move_task(task, new_status, new_position):
    """
    Place a task at ``new_position`` of the ``new_status`` column.

    Siblings behind the old slot close the gap and siblings at or behind the
    new slot make room; everything happens in one transaction.
    """
    siblings = Task.objects.filter(project_id=task.project_id).exclude(pk=task.pk)
    old_status, old_position = task.status, task.position

    with transaction.atomic():
        if old_status != new_status:
            siblings.filter(status=old_status, position__gt=old_position).update(position=F('position') - 1)
            siblings.filter(status=new_status, position__gte=new_position).update(position=F('position') + 1)
        elif new_position > old_position:
            siblings.filter(
                status=new_status, position__gt=old_position, position__lte=new_position
            ).update(position=F('position') - 1)
        elif new_position < old_position:
            siblings.filter(
                status=new_status, position__gte=new_position, position__lt=old_position
            ).update(position=F('position') + 1)

        task.status = new_status
        task.position = new_position
        task.save(update_fields=['status', 'position', 'updated_at'])

    logger.info(f"Task {task.id} moved from {old_status}/{old_position} to {new_status}/{new_position}")
    return task
