import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.utils import timezone

from backend.core.pagination import paginated_response
from backend.core.permissions import IsCommandCenterMember
from backend.core.tenancy import get_request_organization
from backend.core.utils import create_audit_log, json_safe
from backend.projects.serializers import TaskSerializer
from .filters import DispatchFilter
from .models import Dispatch
from .serializers import (
    DispatchSerializer, DispatchPatchSerializer, DispatchResolveSerializer, DispatchConvertSerializer,
)
from .services import (
    order_by_urgency, visible_dispatches, check_participant, check_recipient, can_delete,
    mark_read, mark_in_progress, resolve, convert_to_task, dispatch_statistics,
)

logger = logging.getLogger(__name__)

DISPATCH_PERMISSIONS = [IsAuthenticated, IsCommandCenterMember]

# Timestamp stamped when a PATCH moves a dispatch into the status
STATUS_TIMESTAMPS = {
    'READ': 'read_at',
    'IN_PROGRESS': 'in_progress_at',
    'RESOLVED': 'resolved_at',
}


def _dispatches(organization):
    return Dispatch.objects.filter(organization=organization).select_related(
        'sender__role', 'recipient__role', 'task'
    )


def _get_dispatch(request, organization, pk):
    dispatch = get_object_or_404(_dispatches(organization), pk=pk)
    check_participant(dispatch, request.user)
    return dispatch


def _audit(request, action, dispatch, changes=None):
    create_audit_log(request=request, action=action, model_name='Dispatch', object_id=dispatch.id,
                     object_name=dispatch.content[:100], changes=json_safe(changes) if changes else None)


@api_view(['GET', 'POST'])
@permission_classes(DISPATCH_PERMISSIONS)
def dispatch_list_create(request):
    """
    List the user's dispatches or send one.

    ``type=sent`` or ``type=received`` narrows the list; by default both are
    returned, most urgent first.
    """
    organization = get_request_organization(request)
    if request.method == 'GET':
        kind = request.query_params.get('type')
        queryset = visible_dispatches(request.user, organization, kind).select_related(
            'sender__role', 'recipient__role', 'task'
        )
        filterset = DispatchFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return paginated_response(request, order_by_urgency(filterset.qs), DispatchSerializer)
    else:
        serializer = DispatchSerializer(data=request.data, context={'organization': organization})
        if serializer.is_valid():
            dispatch = serializer.save(organization=organization, sender=request.user)
            _audit(request, 'create', dispatch, {'recipient': dispatch.recipient_id,
                                                 'urgency_level': dispatch.urgency_level})
            logger.info("Dispatch %s sent by user %s to user %s", dispatch.id, request.user.id, dispatch.recipient_id)
            return Response(DispatchSerializer(dispatch).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes(DISPATCH_PERMISSIONS)
def dispatch_stats(request):
    organization = get_request_organization(request)
    return Response(dispatch_statistics(request.user, organization))


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes(DISPATCH_PERMISSIONS)
def dispatch_detail(request, pk):
    """Retrieve a dispatch, let its recipient edit it, or delete it"""
    organization = get_request_organization(request)
    dispatch = _get_dispatch(request, organization, pk)

    if request.method == 'GET':
        return Response(DispatchSerializer(dispatch).data)
    elif request.method == 'PATCH':
        check_recipient(dispatch, request.user, 'update a dispatch')
        serializer = DispatchPatchSerializer(dispatch, data=request.data, partial=True)
        if serializer.is_valid():
            new_status = serializer.validated_data.get('status')
            extra = {}
            if new_status and new_status != dispatch.status and new_status in STATUS_TIMESTAMPS:
                extra[STATUS_TIMESTAMPS[new_status]] = timezone.now()
            dispatch = serializer.save(**extra)
            _audit(request, 'update', dispatch, serializer.validated_data)
            return Response(DispatchSerializer(dispatch).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if not can_delete(dispatch, request.user):
            return Response({'error': 'Only the sender can delete this dispatch.'}, status=status.HTTP_403_FORBIDDEN)
        dispatch_id, content = dispatch.id, dispatch.content[:100]
        dispatch.delete()
        create_audit_log(request=request, action='delete', model_name='Dispatch', object_id=dispatch_id,
                         object_name=content)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST', 'PATCH'])
@permission_classes(DISPATCH_PERMISSIONS)
def dispatch_read(request, pk):
    organization = get_request_organization(request)
    dispatch = mark_read(_get_dispatch(request, organization, pk), request.user)
    _audit(request, 'status_change', dispatch, {'status': dispatch.status})
    return Response(DispatchSerializer(dispatch).data)


@api_view(['POST', 'PATCH'])
@permission_classes(DISPATCH_PERMISSIONS)
def dispatch_progress(request, pk):
    organization = get_request_organization(request)
    dispatch = mark_in_progress(_get_dispatch(request, organization, pk), request.user)
    _audit(request, 'status_change', dispatch, {'status': dispatch.status})
    return Response(DispatchSerializer(dispatch).data)


@api_view(['POST', 'PATCH'])
@permission_classes(DISPATCH_PERMISSIONS)
def dispatch_resolve(request, pk):
    organization = get_request_organization(request)
    dispatch = _get_dispatch(request, organization, pk)
    serializer = DispatchResolveSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    dispatch = resolve(dispatch, request.user, serializer.validated_data.get('resolution_note', ''))
    _audit(request, 'status_change', dispatch, {'status': dispatch.status})
    return Response(DispatchSerializer(dispatch).data)


@api_view(['POST'])
@permission_classes(DISPATCH_PERMISSIONS)
def dispatch_convert_to_task(request, pk):
    """Turn a dispatch into a TODO task assigned to its recipient"""
    organization = get_request_organization(request)
    dispatch = _get_dispatch(request, organization, pk)
    serializer = DispatchConvertSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    task = convert_to_task(dispatch, request.user, serializer.validated_data.get('project_id'))
    _audit(request, 'status_change', dispatch, {'status': dispatch.status, 'task': task.id})
    return Response({
        'task': TaskSerializer(task).data,
        'dispatch': DispatchSerializer(dispatch).data,
    }, status=status.HTTP_201_CREATED)
