from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from backend.core.models import Organization, Role, Permission, RolePermission


ROLES_CONFIG = [
    {
        'name': 'Superadmin',
        'description': 'Full system access with no restrictions',
        'level': 10,
        'category': 'executive',
        'is_system': True,
    },
    {
        'name': 'CEO',
        'description': 'Chief Executive Officer - Full business access',
        'level': 9,
        'category': 'executive',
        'is_system': False,
    },
    {
        'name': 'CFO',
        'description': 'Chief Financial Officer - Full financial access',
        'level': 8,
        'category': 'financial',
        'is_system': False,
    },
    {
        'name': 'Contador Senior',
        'description': 'Senior Accountant - Full accounting access with approval rights',
        'level': 7,
        'category': 'financial',
        'is_system': False,
    },
    {
        'name': 'Gerente Operaciones',
        'description': 'Operations Manager - Manages operations and projects',
        'level': 7,
        'category': 'operational',
        'is_system': False,
    },
    {
        'name': 'Supervisor',
        'description': 'Supervisor - Oversees teams and projects',
        'level': 6,
        'category': 'operational',
        'is_system': False,
    },
    {
        'name': 'Contador',
        'description': 'Accountant - Records and reconciles financial operations',
        'level': 6,
        'category': 'financial',
        'is_system': False,
    },
    {
        'name': 'Project Manager',
        'description': 'Project Manager - Manages assigned projects',
        'level': 5,
        'category': 'operational',
        'is_system': False,
    },
    {
        'name': 'Developer',
        'description': 'Developer - Works on assigned tasks',
        'level': 3,
        'category': 'base',
        'is_system': False,
    },
    {
        'name': 'Operario',
        'description': 'Operator - Executes operational tasks',
        'level': 3,
        'category': 'base',
        'is_system': False,
    },
]

RESOURCES = [
    'users', 'roles', 'organizations', 'settings',
    'projects', 'tasks', 'sprints', 'time-tracking', 'documents',
    'clients', 'suppliers', 'expenses',
    'finance', 'finance.accounts', 'finance.journal-entries', 'finance.invoices',
    'finance.expenses', 'finance.budgets', 'finance.reports',
    'crm', 'inventory', 'procurement',
    'analytics', 'reports',
    'audit-logs', 'notifications', 'webhooks',
]

ACTIONS = ['read', 'create', 'update', 'delete', 'export', 'approve', 'manage', 'admin']

PERMISSION_MATRIX = {
    'Superadmin': ['*:*'],
    'CEO': [
        'users:*', 'roles:read', 'organizations:*',
        'clients:*', 'suppliers:*',
        'projects:*', 'tasks:*', 'sprints:*', 'time-tracking:*', 'documents:*',
        'finance.*:*', 'expenses:*',
        'crm:*', 'inventory:*', 'procurement:*',
        'analytics:*', 'reports:*',
        'audit-logs:read', 'notifications:*',
    ],
    'CFO': [
        'users:read', 'projects:read',
        'clients:*', 'suppliers:*',
        'finance.*:*', 'expenses:*',
        'analytics:read', 'reports:read', 'audit-logs:read',
    ],
    'Contador Senior': [
        'clients:read', 'suppliers:read',
        'finance.*:*', 'expenses:*',
        'analytics:read', 'reports:read',
    ],
    'Contador': [
        'clients:read', 'suppliers:read',
        'finance.*:read', 'finance.*:create', 'finance.*:update', 'finance.*:export',
        'reports:read',
    ],
    'Gerente Operaciones': [
        'users:read',
        'clients:*', 'suppliers:*',
        'projects:*', 'tasks:*', 'sprints:*', 'time-tracking:*', 'expenses:*',
        'crm:*', 'inventory:read', 'procurement:read',
        'analytics:read',
    ],
    'Supervisor': [
        'users:read',
        'projects:read', 'projects:update',
        'tasks:*', 'sprints:read',
        'time-tracking:read', 'time-tracking:approve',
        'analytics:read',
    ],
    'Project Manager': [
        'users:read',
        'projects:read', 'projects:update',
        'tasks:*', 'sprints:*',
        'time-tracking:read', 'expenses:read', 'expenses:create', 'documents:*',
    ],
    'Developer': [
        'users:read', 'projects:read', 'sprints:read',
        'tasks:read', 'tasks:update',
        'time-tracking:create', 'time-tracking:read',
        'documents:read',
    ],
    'Operario': [
        'users:read', 'projects:read', 'sprints:read',
        'tasks:read', 'tasks:update',
        'time-tracking:create', 'time-tracking:read',
    ],
}


def pattern_matches(pattern, permission):
    """
    Match a seed pattern such as ``projects:*`` or ``finance.*:*`` against a permission row.

    ``finance.*`` covers the ``finance`` resource itself and every ``finance.<sub>`` resource.
    """
    resource_pattern, _, action_pattern = pattern.partition(':')
    if resource_pattern.endswith('.*'):
        resource_ok = permission.resource.startswith(resource_pattern[:-2])
    else:
        resource_ok = resource_pattern == '*' or permission.resource == resource_pattern
    action_ok = action_pattern == '*' or permission.action == action_pattern
    return resource_ok and action_ok


def ensure_permissions():
    """Create any missing resource x action row and return the full catalog of seeded permissions"""
    Permission.objects.bulk_create(
        [
            Permission(resource=resource, action=action, description=f'{action} access to {resource}')
            for resource in RESOURCES
            for action in ACTIONS
        ],
        ignore_conflicts=True,
    )
    return list(Permission.objects.filter(resource__in=RESOURCES, action__in=ACTIONS))


def grant_matrix_permissions(role, permissions=None):
    """
    Replace the role's permissions with the ones its matrix row grants.

    Roles that are not part of the standard set are left untouched. Returns
    the number of permissions assigned.
    """
    patterns = PERMISSION_MATRIX.get(role.name)
    if patterns is None:
        return 0
    if permissions is None:
        permissions = ensure_permissions()
    matching = [p for p in permissions if any(pattern_matches(pattern, p) for pattern in patterns)]
    RolePermission.objects.filter(role=role).delete()
    RolePermission.objects.bulk_create([RolePermission(role=role, permission=p) for p in matching])
    return len(matching)


class Command(BaseCommand):
    help = 'Create or update the standard role set and resource x action permission matrix'

    def add_arguments(self, parser):
        parser.add_argument(
            '--organization',
            type=int,
            help='Only seed roles for this organization id (default: all organizations)',
        )

    def handle(self, *args, **options):
        organizations = Organization.objects.all().order_by('id')
        if options.get('organization'):
            organizations = organizations.filter(id=options['organization'])
        if not organizations.exists():
            raise CommandError('No organizations found. Create one first.')

        with transaction.atomic():
            permissions = self.seed_permissions()
            for organization in organizations:
                self.stdout.write(self.style.WARNING(f'\nOrganization: {organization.name} (#{organization.id})'))
                self.seed_roles(organization, permissions)

        self.stdout.write(self.style.SUCCESS('\nRoles and permissions seeded successfully'))

    def seed_permissions(self):
        existing = Permission.objects.filter(resource__in=RESOURCES, action__in=ACTIONS).count()
        permissions = ensure_permissions()
        self.stdout.write(f'  Permissions: {len(permissions) - existing} created, {existing} existing')
        return permissions

    def seed_roles(self, organization, permissions):
        for role_config in ROLES_CONFIG:
            role, created = Role.objects.update_or_create(
                name=role_config['name'],
                organization=organization,
                defaults={
                    'description': role_config['description'],
                    'level': role_config['level'],
                    'category': role_config['category'],
                    'is_system': role_config['is_system'],
                },
            )
            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created role: {role.name} (Level {role.level})'))
            else:
                self.stdout.write(f'  Role already exists, updated: {role.name} (Level {role.level})')

            assigned = grant_matrix_permissions(role, permissions)
            self.stdout.write(f'  Assigned {assigned} permissions to {role.name}')
