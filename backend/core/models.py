from django.contrib.auth.models import AbstractUser
from django.db import models


class Organization(models.Model):
    """Tenant that owns every business row"""
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=100, unique=True)
    tax_id = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'organizations'
        ordering = ['name']


class Role(models.Model):
    """Named role scoped to an organization"""
    CATEGORY_CHOICES = [
        ('executive', 'Executive'),
        ('financial', 'Financial'),
        ('operational', 'Operational'),
        ('base', 'Base'),
    ]

    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    level = models.PositiveSmallIntegerField(default=0)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='base')
    is_system = models.BooleanField(default=False)
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name='roles')
    permissions = models.ManyToManyField('Permission', through='RolePermission', related_name='roles', blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'roles'
        ordering = ['-level', 'name']
        constraints = [
            models.UniqueConstraint(fields=['name', 'organization'], name='unique_role_name_per_organization'),
        ]


class Permission(models.Model):
    """A resource:action pair that roles can hold"""
    resource = models.CharField(max_length=100)
    action = models.CharField(max_length=50)
    description = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.code

    @property
    def code(self):
        return f"{self.resource}:{self.action}"

    class Meta:
        db_table = 'permissions'
        ordering = ['resource', 'action']
        constraints = [
            models.UniqueConstraint(fields=['resource', 'action'], name='unique_permission_resource_action'),
        ]


class RolePermission(models.Model):
    role = models.ForeignKey(Role, on_delete=models.CASCADE, related_name='role_permissions')
    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name='role_permissions')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'role_permissions'
        constraints = [
            models.UniqueConstraint(fields=['role', 'permission'], name='unique_role_permission'),
        ]


class User(AbstractUser):
    """Extended user model bound to one organization and one role"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    organization = models.ForeignKey(Organization, on_delete=models.SET_NULL, null=True, blank=True, related_name='users')
    role = models.ForeignKey(Role, on_delete=models.SET_NULL, null=True, blank=True, related_name='users')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def role_name(self):
        return self.role.name if self.role_id else ''

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('status_change', 'Status Change'),
        ('payment_add', 'Payment Added'),
        ('po_submit', 'Purchase Order Submitted'),
        ('po_approve', 'Purchase Order Approved'),
        ('po_reject', 'Purchase Order Rejected'),
        ('po_paid', 'Purchase Order Paid'),
        ('task_move', 'Task Moved'),
        ('permissions_assign', 'Permissions Assigned'),
    ]

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, null=True, blank=True, related_name='audit_logs')
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., project name, folio)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Reference identifier (e.g., invoice number, purchase order folio)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_2d6c1e_idx'),
            models.Index(fields=['action'], name='audit_logs_action_5b1f0a_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_8e3c42_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__a7d910_idx'),
        ]
