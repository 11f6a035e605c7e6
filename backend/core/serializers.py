from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import User, Organization, Role, Permission, AuditLog
from .roles import get_role_level, is_executive_role, has_financial_access


class OrganizationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Organization
        fields = ['id', 'name', 'slug', 'tax_id', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class PermissionSerializer(serializers.ModelSerializer):
    code = serializers.CharField(read_only=True)

    class Meta:
        model = Permission
        fields = ['id', 'resource', 'action', 'code', 'description', 'created_at']
        read_only_fields = ['created_at']


class RoleSerializer(serializers.ModelSerializer):
    permissions = PermissionSerializer(many=True, read_only=True)
    users_count = serializers.SerializerMethodField()

    class Meta:
        model = Role
        fields = ['id', 'name', 'description', 'level', 'category', 'is_system',
                  'permissions', 'users_count', 'created_at', 'updated_at']
        read_only_fields = ['is_system', 'created_at', 'updated_at']

    def get_users_count(self, obj):
        return obj.users.count()

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Role name cannot be empty.')
        return value


class RolePermissionsAssignSerializer(serializers.Serializer):
    permission_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=True)

    def validate_permission_ids(self, value):
        ids = set(value)
        found = set(Permission.objects.filter(id__in=ids).values_list('id', flat=True))
        missing = ids - found
        if missing:
            raise serializers.ValidationError(f"Unknown permission ids: {sorted(missing)}")
        return sorted(ids)


class RoleSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = ['id', 'name', 'level', 'category']


class UserSerializer(serializers.ModelSerializer):
    role_detail = RoleSummarySerializer(source='role', read_only=True)

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'is_active',
                  'organization', 'role', 'role_detail', 'created_at', 'updated_at']
        read_only_fields = ['organization', 'created_at', 'updated_at']

    def validate_role(self, value):
        organization = self.context.get('organization')
        if value and organization and value.organization_id != organization.id:
            raise serializers.ValidationError('Role does not belong to this organization.')
        return value


class UserCreateSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ['username', 'email', 'password', 'password_confirm', 'first_name', 'last_name', 'phone', 'role']

    def validate_role(self, value):
        organization = self.context.get('organization')
        if value and organization and value.organization_id != organization.id:
            raise serializers.ValidationError('Role does not belong to this organization.')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        password = validated_data.pop('password')
        user = User.objects.create(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        return user


class MeSerializer(serializers.ModelSerializer):
    """Current user with tenant, role and derived access flags"""
    organization = OrganizationSerializer(read_only=True)
    role = RoleSummarySerializer(read_only=True)
    role_level = serializers.SerializerMethodField()
    is_executive = serializers.SerializerMethodField()
    has_financial_access = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name', 'phone', 'is_active',
                  'organization', 'role', 'role_level', 'is_executive', 'has_financial_access']

    def get_role_level(self, obj):
        return get_role_level(obj.role_name)

    def get_is_executive(self, obj):
        return is_executive_role(obj.role_name)

    def get_has_financial_access(self, obj):
        return has_financial_access(obj.role_name)


class AuditLogSerializer(serializers.ModelSerializer):
    user = serializers.StringRelatedField(read_only=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'action', 'model_name', 'object_id', 'object_name',
                  'object_reference', 'changes', 'ip_address', 'created_at']
