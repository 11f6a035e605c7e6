import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.utils import timezone

from backend.core.pagination import paginated_response
from backend.core.permissions import permission_codes, resource_permission
from backend.core.roles import has_permissions
from backend.core.tenancy import get_request_organization
from backend.core.utils import create_audit_log, int_query_param, json_safe
from .filters import ExpenseFilter, ProjectFilter, SprintFilter, TaskFilter, TimeEntryFilter
from .models import Expense, Project, Sprint, Task, TaskComment, TimeEntry
from .serializers import (
    ExpenseSerializer, ProjectSerializer, ProjectStatusSerializer, SprintSerializer, TaskSerializer,
    TaskCommentSerializer, TaskMoveSerializer, TaskAssignSerializer, TimeEntrySerializer,
)
from .services import (
    project_statistics, project_financial_statistics, sprint_burndown, sprint_velocity,
    sprint_statistics, task_dashboard_statistics,
)
from . import workflow

logger = logging.getLogger(__name__)

PROJECT_PERMISSIONS = [IsAuthenticated, resource_permission('projects')]
SPRINT_PERMISSIONS = [IsAuthenticated, resource_permission('sprints')]
TASK_PERMISSIONS = [IsAuthenticated, resource_permission('tasks')]
EXPENSE_PERMISSIONS = [IsAuthenticated, resource_permission('expenses')]
TIME_ENTRY_PERMISSIONS = [IsAuthenticated, resource_permission('time-tracking')]


def _context(request, organization):
    return {'request': request, 'organization': organization}


def _forbidden(message):
    return Response({'error': message}, status=status.HTTP_403_FORBIDDEN)


def _get_project(organization, pk):
    return get_object_or_404(Project, pk=pk, organization=organization, deleted_at__isnull=True)


# Project views
@api_view(['GET', 'POST'])
@permission_classes(PROJECT_PERMISSIONS)
def project_list_create(request):
    """List visible projects or create a new one (executives only)"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = (workflow.visible_projects(organization, request.user)
                    .select_related('owner', 'client')
                    .prefetch_related('co_owners', 'members')
                    .order_by('-created_at'))
        queryset = ProjectFilter(request.query_params, queryset=queryset).qs
        return paginated_response(request, queryset, ProjectSerializer)
    else:
        if not workflow.is_executive(request.user):
            return _forbidden('Only executives can create projects.')
        serializer = ProjectSerializer(data=request.data, context=_context(request, organization))
        if serializer.is_valid():
            project = serializer.save(organization=organization)
            create_audit_log(request=request, action='create', model_name='Project',
                             object_id=project.id, object_name=project.name)
            return Response(ProjectSerializer(project).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(PROJECT_PERMISSIONS)
def project_detail(request, pk):
    """Retrieve, update or soft delete a project"""
    organization = get_request_organization(request)
    project = _get_project(organization, pk)

    if request.method == 'GET':
        workflow.check_project_access(project, request.user)
        return Response(ProjectSerializer(project).data)

    if not workflow.is_executive(request.user):
        return _forbidden('Only executives can edit projects.')

    if request.method in ('PUT', 'PATCH'):
        serializer = ProjectSerializer(
            project, data=request.data, partial=request.method == 'PATCH',
            context=_context(request, organization)
        )
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Project',
                             object_id=project.id, object_name=project.name,
                             changes=json_safe(dict(request.data)))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        project.deleted_at = timezone.now()
        project.save(update_fields=['deleted_at', 'updated_at'])
        create_audit_log(request=request, action='delete', model_name='Project',
                         object_id=project.id, object_name=project.name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated, permission_codes('projects:update')])
def project_change_status(request, pk):
    organization = get_request_organization(request)
    project = _get_project(organization, pk)
    if not workflow.is_executive(request.user):
        return _forbidden('Only executives can change the project status.')

    serializer = ProjectStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    old_status = project.status
    project.status = serializer.validated_data['status']
    project.save(update_fields=['status', 'updated_at'])
    create_audit_log(request=request, action='status_change', model_name='Project',
                     object_id=project.id, object_name=project.name,
                     changes={'status': {'old': old_status, 'new': project.status}})
    return Response(ProjectSerializer(project).data)


@api_view(['GET'])
@permission_classes(PROJECT_PERMISSIONS)
def project_statistics_view(request, pk):
    organization = get_request_organization(request)
    project = _get_project(organization, pk)
    workflow.check_project_access(project, request.user)
    return Response(project_statistics(project))


@api_view(['GET'])
@permission_classes(PROJECT_PERMISSIONS)
def project_financial_stats(request, pk):
    organization = get_request_organization(request)
    project = _get_project(organization, pk)
    workflow.check_project_access(project, request.user)
    return Response(project_financial_statistics(project, request.user))


# Sprint views
@api_view(['GET', 'POST'])
@permission_classes(SPRINT_PERMISSIONS)
def sprint_list_create(request):
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = (workflow.visible_sprints(organization, request.user)
                    .select_related('project').prefetch_related('members')
                    .order_by('-start_date'))
        queryset = SprintFilter(request.query_params, queryset=queryset).qs
        return paginated_response(request, queryset, SprintSerializer)
    else:
        serializer = SprintSerializer(data=request.data, context=_context(request, organization))
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        workflow.check_sprint_management(serializer.validated_data['project'], request.user, 'create')
        sprint = serializer.save(organization=organization)
        create_audit_log(request=request, action='create', model_name='Sprint',
                         object_id=sprint.id, object_name=sprint.name)
        return Response(SprintSerializer(sprint).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(SPRINT_PERMISSIONS)
def sprint_detail(request, pk):
    organization = get_request_organization(request)
    sprint = get_object_or_404(Sprint.objects.select_related('project'), pk=pk, organization=organization)
    workflow.check_sprint_access(sprint, request.user)

    if request.method == 'GET':
        return Response(SprintSerializer(sprint).data)
    elif request.method in ('PUT', 'PATCH'):
        workflow.check_sprint_management(sprint.project, request.user, 'update')
        serializer = SprintSerializer(
            sprint, data=request.data, partial=request.method == 'PATCH',
            context=_context(request, organization)
        )
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Sprint',
                             object_id=sprint.id, object_name=sprint.name,
                             changes=json_safe(dict(request.data)))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        workflow.check_sprint_management(sprint.project, request.user, 'delete')
        create_audit_log(request=request, action='delete', model_name='Sprint',
                         object_id=sprint.id, object_name=sprint.name)
        sprint.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


def _get_visible_sprint(request, pk):
    organization = get_request_organization(request)
    sprint = get_object_or_404(Sprint.objects.select_related('project'), pk=pk, organization=organization)
    workflow.check_sprint_access(sprint, request.user)
    return sprint


@api_view(['GET'])
@permission_classes(SPRINT_PERMISSIONS)
def sprint_burndown_view(request, pk):
    return Response(sprint_burndown(_get_visible_sprint(request, pk)))


@api_view(['GET'])
@permission_classes(SPRINT_PERMISSIONS)
def sprint_velocity_view(request, pk):
    return Response(sprint_velocity(_get_visible_sprint(request, pk)))


@api_view(['GET'])
@permission_classes(SPRINT_PERMISSIONS)
def sprint_statistics_view(request, pk):
    return Response(sprint_statistics(_get_visible_sprint(request, pk)))


# Task views
def _task_queryset(organization):
    return (Task.objects.filter(organization=organization)
            .select_related('project', 'sprint', 'assignee__role', 'reporter__role'))


@api_view(['GET', 'POST'])
@permission_classes(TASK_PERMISSIONS)
def task_list_create(request):
    """List visible tasks or create one in a project the user manages"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = workflow.visible_tasks(organization, request.user, int_query_param(request, 'project'))
        queryset = (TaskFilter(request.query_params, queryset=queryset).qs
                    .select_related('project', 'sprint', 'assignee__role', 'reporter__role')
                    .order_by('status', 'position'))
        return paginated_response(request, queryset, TaskSerializer, default_limit=50)
    else:
        serializer = TaskSerializer(data=request.data, context=_context(request, organization))
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        project = serializer.validated_data['project']
        workflow.check_task_creation(project, request.user)

        initial_comment = serializer.validated_data.pop('initial_comment', '').strip()
        task_status = serializer.validated_data.get('status', 'TODO')
        if serializer.validated_data.get('position') is None:
            serializer.validated_data['position'] = workflow.next_position(project, task_status)
        task = serializer.save(organization=organization, reporter=request.user)
        if initial_comment:
            TaskComment.objects.create(organization=organization, task=task, user=request.user,
                                       content=initial_comment)
        create_audit_log(request=request, action='create', model_name='Task',
                         object_id=task.id, object_name=task.title)
        return Response(TaskSerializer(task).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(TASK_PERMISSIONS)
def task_detail(request, pk):
    organization = get_request_organization(request)
    task = get_object_or_404(_task_queryset(organization), pk=pk)

    if request.method == 'GET':
        workflow.check_task_access(task, request.user)
        return Response(TaskSerializer(task).data)
    elif request.method in ('PUT', 'PATCH'):
        workflow.check_task_access(task, request.user)
        changed = {k: v for k, v in request.data.items() if k != 'initial_comment'}
        workflow.check_task_update(task, request.user, changed)
        old_status = task.status
        serializer = TaskSerializer(
            task, data=request.data, partial=request.method == 'PATCH',
            context=_context(request, organization)
        )
        if serializer.is_valid():
            serializer.validated_data.pop('initial_comment', None)
            serializer.save()
            action = 'status_change' if serializer.instance.status != old_status else 'update'
            create_audit_log(request=request, action=action, model_name='Task',
                             object_id=task.id, object_name=task.title,
                             changes=json_safe(changed))
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        workflow.check_task_deletion(task, request.user)
        create_audit_log(request=request, action='delete', model_name='Task',
                         object_id=task.id, object_name=task.title)
        task.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated, permission_codes('tasks:update')])
def task_move(request, pk):
    """Kanban drag and drop: new status column and position"""
    organization = get_request_organization(request)
    task = get_object_or_404(_task_queryset(organization), pk=pk)
    workflow.check_task_access(task, request.user)

    serializer = TaskMoveSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    new_status = serializer.validated_data['status']
    if task.status == 'DONE' and not workflow.is_task_admin(request.user):
        return _forbidden('Task is DONE and cannot be modified.')
    workflow.check_status_change(task, request.user, new_status)

    old = {'status': task.status, 'position': task.position}
    workflow.move_task(task, new_status, serializer.validated_data['position'])
    create_audit_log(request=request, action='task_move', model_name='Task',
                     object_id=task.id, object_name=task.title,
                     changes={'old': old, 'new': {'status': task.status, 'position': task.position}})
    return Response(TaskSerializer(task).data)


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated, permission_codes('tasks:update')])
def task_assign(request, pk):
    organization = get_request_organization(request)
    task = get_object_or_404(_task_queryset(organization), pk=pk)

    serializer = TaskAssignSerializer(data=request.data, context=_context(request, organization))
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    assignee = serializer.validated_data['assignee']
    workflow.check_task_assignment(task, request.user, assignee)

    old_assignee = task.assignee_id
    task.assignee = assignee
    task.save(update_fields=['assignee', 'updated_at'])
    create_audit_log(request=request, action='update', model_name='Task',
                     object_id=task.id, object_name=task.title,
                     changes={'assignee': {'old': old_assignee, 'new': assignee.id}})
    return Response(TaskSerializer(task).data)


@api_view(['GET'])
@permission_classes(TASK_PERMISSIONS)
def task_kanban(request, project_id):
    """Tasks of a project grouped by status column"""
    organization = get_request_organization(request)
    project = _get_project(organization, project_id)
    queryset = (Task.objects.filter(organization=organization, project=project)
                .select_related('assignee__role').order_by('position'))
    sprint_id = int_query_param(request, 'sprint')
    if sprint_id is not None:
        queryset = queryset.filter(sprint_id=sprint_id)

    board = {code: [] for code, _ in Task.STATUS_CHOICES}
    for task in queryset:
        board[task.status].append(TaskSerializer(task).data)
    return Response(board)


@api_view(['GET'])
@permission_classes(TASK_PERMISSIONS)
def task_dashboard_stats(request):
    organization = get_request_organization(request)
    return Response(task_dashboard_statistics(organization, request.user))


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, permission_codes('tasks:read')])
def task_comments(request, pk):
    """List comments of a task (newest first) or add one"""
    organization = get_request_organization(request)
    task = get_object_or_404(Task, pk=pk, organization=organization)
    if request.method == 'GET':
        comments = task.comments.select_related('user__role').order_by('-created_at', '-id')
        return Response(TaskCommentSerializer(comments, many=True).data)
    else:
        serializer = TaskCommentSerializer(data=request.data)
        if serializer.is_valid():
            comment = serializer.save(organization=organization, task=task, user=request.user)
            return Response(TaskCommentSerializer(comment).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# Expense views
EXPENSE_DECISION_STATUSES = ('APPROVED', 'REJECTED', 'REIMBURSED')


def _can_decide_expense(user, new_status, old_status):
    """Approving, rejecting and reimbursing need expenses:approve"""
    if new_status == old_status or new_status not in EXPENSE_DECISION_STATUSES:
        return True
    return has_permissions(user, ['expenses:approve'])


def _stamp_expense_status(expense, user, old_status):
    """Record who approved and when it was reimbursed when the status moves there"""
    if expense.status == old_status:
        return []
    now = timezone.now()
    if expense.status == 'APPROVED':
        expense.approved_by = user
        expense.approved_at = now
        return ['approved_by', 'approved_at']
    if expense.status == 'REIMBURSED':
        expense.reimbursed_at = now
        return ['reimbursed_at']
    return []


@api_view(['GET', 'POST'])
@permission_classes(EXPENSE_PERMISSIONS)
def expense_list_create(request):
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = (Expense.objects.filter(organization=organization)
                    .select_related('user__role', 'project')
                    .order_by('-date', '-created_at'))
        filterset = ExpenseFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginated_response(request, filterset.qs, ExpenseSerializer)
    else:
        serializer = ExpenseSerializer(data=request.data, context=_context(request, organization))
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        if not _can_decide_expense(request.user, serializer.validated_data.get('status', 'DRAFT'), 'DRAFT'):
            return _forbidden('You do not have permission to approve expenses.')
        expense = serializer.save(organization=organization, user=request.user)
        stamped = _stamp_expense_status(expense, request.user, 'DRAFT')
        if stamped:
            expense.save(update_fields=stamped)
        create_audit_log(request=request, action='create', model_name='Expense',
                         object_id=expense.id, object_name=expense.description,
                         changes={'amount': str(expense.amount), 'currency': expense.currency})
        return Response(ExpenseSerializer(expense).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(EXPENSE_PERMISSIONS)
def expense_detail(request, pk):
    organization = get_request_organization(request)
    expense = get_object_or_404(Expense.objects.select_related('user__role', 'project'),
                                pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(ExpenseSerializer(expense).data)
    elif request.method in ('PUT', 'PATCH'):
        old_status = expense.status
        serializer = ExpenseSerializer(
            expense, data=request.data, partial=request.method == 'PATCH',
            context=_context(request, organization)
        )
        if serializer.is_valid():
            if not _can_decide_expense(request.user, serializer.validated_data.get('status', old_status), old_status):
                return _forbidden('You do not have permission to approve expenses.')
            expense = serializer.save()
            stamped = _stamp_expense_status(expense, request.user, old_status)
            if stamped:
                expense.save(update_fields=stamped + ['updated_at'])
            create_audit_log(request=request, action='update', model_name='Expense',
                             object_id=expense.id, object_name=expense.description,
                             changes=json_safe(dict(request.data)))
            return Response(ExpenseSerializer(expense).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='Expense',
                         object_id=expense.id, object_name=expense.description)
        expense.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# Time entry views
@api_view(['GET', 'POST'])
@permission_classes(TIME_ENTRY_PERMISSIONS)
def time_entry_list_create(request):
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = (TimeEntry.objects.filter(organization=organization)
                    .select_related('user__role', 'project', 'task')
                    .order_by('-date', '-created_at'))
        filterset = TimeEntryFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginated_response(request, filterset.qs, TimeEntrySerializer, default_limit=50)
    else:
        serializer = TimeEntrySerializer(data=request.data, context=_context(request, organization))
        if serializer.is_valid():
            entry = serializer.save(organization=organization, user=request.user)
            return Response(TimeEntrySerializer(entry).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes(TIME_ENTRY_PERMISSIONS)
def time_entry_detail(request, pk):
    organization = get_request_organization(request)
    entry = get_object_or_404(TimeEntry.objects.select_related('user__role', 'project', 'task'),
                              pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(TimeEntrySerializer(entry).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = TimeEntrySerializer(
            entry, data=request.data, partial=request.method == 'PATCH',
            context=_context(request, organization)
        )
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        entry.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)
