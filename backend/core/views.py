import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from rest_framework_simplejwt.settings import api_settings as jwt_settings
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.db import transaction
from django.db.models import Q
from .models import Role, Permission, RolePermission, AuditLog
from .pagination import paginated_response
from .permissions import IsExecutive, IsSuperadmin
from .roles import is_executive_role, user_role_name
from .serializers import (
    UserSerializer, UserCreateSerializer, MeSerializer,
    RoleSerializer, RolePermissionsAssignSerializer, PermissionSerializer,
    AuditLogSerializer
)
from .tenancy import get_request_organization
from .utils import create_audit_log, date_query_param

logger = logging.getLogger(__name__)

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['org_id'] = user.organization_id
        token['role'] = user.role_name
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Token refresh that answers 401 when the user behind the token is gone"""
    def validate(self, attrs):
        try:
            refresh = RefreshToken(attrs['refresh'])
        except TokenError:
            raise InvalidToken('Token is invalid or expired.')

        user_id = refresh.payload.get(jwt_settings.USER_ID_CLAIM)
        if not User.objects.filter(pk=user_id, is_active=True).exists():
            raise InvalidToken('Token is invalid. User no longer exists.')

        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with organization, role and access flags"""
    return Response(MeSerializer(request.user).data)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsExecutive])
def user_list_create(request):
    """List users of the organization or create a new one"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        queryset = User.objects.filter(organization=organization).select_related('role').order_by('username')
        search = request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(
                Q(username__icontains=search) |
                Q(email__icontains=search) |
                Q(first_name__icontains=search) |
                Q(last_name__icontains=search)
            )
        is_active = request.query_params.get('is_active', None)
        if is_active is not None:
            queryset = queryset.filter(is_active=is_active.lower() == 'true')
        return paginated_response(request, queryset, UserSerializer)
    else:
        serializer = UserCreateSerializer(data=request.data, context={'organization': organization})
        if serializer.is_valid():
            user = serializer.save(organization=organization)
            create_audit_log(request=request, action='create', model_name='User',
                             object_id=user.id, object_name=user.username)
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsExecutive])
def user_detail(request, pk):
    """Retrieve, update or deactivate a user"""
    organization = get_request_organization(request)
    user = get_object_or_404(User, pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(UserSerializer(user).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(
            user, data=request.data, partial=request.method == 'PATCH',
            context={'organization': organization}
        )
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='User',
                             object_id=user.id, object_name=user.username,
                             changes={k: str(v) for k, v in request.data.items()})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE deactivates
        user.is_active = False
        user.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(request=request, action='delete', model_name='User',
                         object_id=user.id, object_name=user.username)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Role views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def role_list_create(request):
    """List roles of the organization or create a new role"""
    organization = get_request_organization(request)
    if request.method == 'GET':
        roles = Role.objects.filter(organization=organization).prefetch_related('permissions')
        return Response(RoleSerializer(roles, many=True).data)

    if not is_executive_role(user_role_name(request.user)):
        return Response({'error': 'Executive role required.'}, status=status.HTTP_403_FORBIDDEN)

    serializer = RoleSerializer(data=request.data)
    if serializer.is_valid():
        name = serializer.validated_data['name']
        if Role.objects.filter(organization=organization, name__iexact=name).exists():
            return Response({'error': f'Role "{name}" already exists in this organization.'},
                            status=status.HTTP_409_CONFLICT)
        role = serializer.save(organization=organization)
        create_audit_log(request=request, action='create', model_name='Role',
                         object_id=role.id, object_name=role.name)
        return Response(RoleSerializer(role).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def role_detail(request, pk):
    """Retrieve, update or delete a role"""
    organization = get_request_organization(request)
    role = get_object_or_404(Role, pk=pk, organization=organization)

    if request.method == 'GET':
        return Response(RoleSerializer(role).data)

    if not is_executive_role(user_role_name(request.user)):
        return Response({'error': 'Executive role required.'}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        serializer = RoleSerializer(role, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            name = serializer.validated_data.get('name')
            if name and Role.objects.filter(organization=organization, name__iexact=name).exclude(pk=role.pk).exists():
                return Response({'error': f'Role "{name}" already exists in this organization.'},
                                status=status.HTTP_409_CONFLICT)
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Role',
                             object_id=role.id, object_name=role.name)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if role.is_system:
            return Response({'error': 'System roles cannot be deleted.'}, status=status.HTTP_409_CONFLICT)
        role_id, role_name = role.id, role.name
        role.delete()
        create_audit_log(request=request, action='delete', model_name='Role',
                         object_id=role_id, object_name=role_name)
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['PUT', 'POST'])
@permission_classes([IsAuthenticated, IsExecutive])
def role_assign_permissions(request, pk):
    """Replace the permission set of a role"""
    organization = get_request_organization(request)
    role = get_object_or_404(Role, pk=pk, organization=organization)

    serializer = RolePermissionsAssignSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    permission_ids = serializer.validated_data['permission_ids']
    with transaction.atomic():
        RolePermission.objects.filter(role=role).delete()
        RolePermission.objects.bulk_create(
            [RolePermission(role=role, permission_id=pid) for pid in permission_ids]
        )

    create_audit_log(request=request, action='permissions_assign', model_name='Role',
                     object_id=role.id, object_name=role.name,
                     changes={'permission_ids': permission_ids})
    role.refresh_from_db()
    return Response(RoleSerializer(role).data)


# Permission views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def permission_list_create(request):
    """List permissions (optionally by resource) or create one"""
    if request.method == 'GET':
        queryset = Permission.objects.all()
        resource = request.query_params.get('resource', None)
        if resource:
            queryset = queryset.filter(resource=resource)
        return Response(PermissionSerializer(queryset, many=True).data)

    if not IsSuperadmin().has_permission(request, None):
        return Response({'error': 'Superadmin role required.'}, status=status.HTTP_403_FORBIDDEN)

    serializer = PermissionSerializer(data=request.data)
    if serializer.is_valid():
        resource = serializer.validated_data['resource']
        action = serializer.validated_data['action']
        if Permission.objects.filter(resource=resource, action=action).exists():
            return Response({'error': f'Permission {resource}:{action} already exists.'},
                            status=status.HTTP_409_CONFLICT)
        permission = serializer.save()
        return Response(PermissionSerializer(permission).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def permission_detail(request, pk):
    """Retrieve, update or delete a permission"""
    permission = get_object_or_404(Permission, pk=pk)

    if request.method == 'GET':
        return Response(PermissionSerializer(permission).data)

    if not IsSuperadmin().has_permission(request, None):
        return Response({'error': 'Superadmin role required.'}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        serializer = PermissionSerializer(permission, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            resource = serializer.validated_data.get('resource', permission.resource)
            action = serializer.validated_data.get('action', permission.action)
            if Permission.objects.filter(resource=resource, action=action).exclude(pk=permission.pk).exists():
                return Response({'error': f'Permission {resource}:{action} already exists.'},
                                status=status.HTTP_409_CONFLICT)
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        permission.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """List audit logs of the organization with filtering"""
    organization = get_request_organization(request)
    queryset = AuditLog.objects.filter(organization=organization).select_related('user')

    # Non-executives only see their own entries
    if not is_executive_role(user_role_name(request.user)):
        queryset = queryset.filter(user=request.user)

    action_filter = request.query_params.get('action', None)
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model', None)
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    date_from = date_query_param(request, 'date_from')
    date_to = date_query_param(request, 'date_to')
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    queryset = queryset.order_by('-created_at')
    return paginated_response(request, queryset, AuditLogSerializer, default_limit=50)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    organization = get_request_organization(request)
    audit_log = get_object_or_404(AuditLog, pk=pk, organization=organization)

    if not is_executive_role(user_role_name(request.user)) and audit_log.user_id != request.user.id:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    return Response(AuditLogSerializer(audit_log).data)
