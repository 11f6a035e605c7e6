"""
Role groups and hierarchy.

Role names are compared case-insensitively after trimming whitespace. The
hierarchy lookup additionally replaces inner whitespace with ``_`` so that
"Contador Senior" and "CONTADOR_SENIOR" resolve to the same level.
"""
import re

# Full access, no restrictions
SUPERADMIN_ROLES = [
    'SUPERADMIN',
    'SUPER_ADMIN',
    'SUPERADMINISTRATOR',
    'SUPER ADMIN',
    'SUPER ADMINISTRATOR',
    'ADMINISTRATOR',
    'ADMIN',
]

EXECUTIVE_C_LEVEL_ROLES = ['CEO', 'CFO', 'CTO', 'COO', 'CCO']

FINANCIAL_ROLES = [
    'CONTADOR',
    'CONTADOR SENIOR',
    'ACCOUNTANT',
    'FINANCIAL MANAGER',
    'GERENTE FINANCIERO',
]

PROJECT_MANAGEMENT_ROLES = ['PROJECT MANAGER', 'PM', 'SCRUM MASTER', 'PRODUCT OWNER']

DEVELOPMENT_ROLES = ['DEVELOPER', 'DEV', 'PROGRAMMER', 'SOFTWARE ENGINEER', 'ENGINEER']

OPERATIONS_ROLES = ['OPERARIO', 'OPERATOR', 'EMPLOYEE', 'WORKER']

EXECUTIVE_ROLES = SUPERADMIN_ROLES + EXECUTIVE_C_LEVEL_ROLES
FINANCIAL_ACCESS_ROLES = EXECUTIVE_ROLES + FINANCIAL_ROLES
PROJECT_MANAGEMENT_ACCESS_ROLES = EXECUTIVE_ROLES + PROJECT_MANAGEMENT_ROLES

# Roles allowed into the dispatch command center
COMMAND_CENTER_ROLES = EXECUTIVE_ROLES + ['GERENTE OPERACIONES']

# Roles allowed to manage any task of the organization
TASK_ADMIN_ROLES = [
    'ADMIN',
    'SUPER_ADMIN',
    'SUPERADMIN',
    'ADMINISTRATOR',
    'MANAGER',
    'CEO',
    'GERENTE OPERACIONES',
]

# Roles allowed to manage any sprint of the organization
SPRINT_ADMIN_ROLES = [
    'ADMIN',
    'SUPER_ADMIN',
    'SUPERADMIN',
    'ADMINISTRATOR',
    'GERENTE OPERACIONES',
]

# Greater number means more privilege
ROLE_HIERARCHY = {
    'SUPERADMIN': 100,
    'SUPER_ADMIN': 100,
    'SUPERADMINISTRATOR': 100,
    'ADMINISTRATOR': 100,
    'ADMIN': 100,

    'CEO': 90,
    'CFO': 90,
    'CTO': 90,
    'COO': 90,
    'CCO': 90,

    'CONTADOR': 70,
    'CONTADOR_SENIOR': 75,
    'ACCOUNTANT': 70,
    'FINANCIAL_MANAGER': 80,
    'GERENTE_FINANCIERO': 80,

    'PROJECT_MANAGER': 60,
    'PM': 60,
    'SCRUM_MASTER': 55,
    'PRODUCT_OWNER': 55,
    'MANAGER': 50,
    'GERENTE': 50,
    'GERENTE_OPERACIONES': 50,

    'DEVELOPER': 40,
    'DEV': 40,
    'PROGRAMMER': 40,
    'SOFTWARE_ENGINEER': 40,
    'ENGINEER': 40,

    'OPERARIO': 20,
    'OPERATOR': 20,
    'EMPLOYEE': 20,
    'WORKER': 20,
    'SUPERVISOR': 25,
}

SUPERADMIN_LEVEL = 100


def normalize_role_name(role_name):
    return (role_name or '').strip().upper()


def _in_group(role_name, group):
    return normalize_role_name(role_name) in group


def get_role_level(role_name):
    """Return the hierarchy level of a role name, 0 when unknown"""
    normalized = re.sub(r'\s+', '_', normalize_role_name(role_name))
    return ROLE_HIERARCHY.get(normalized, 0)


def has_minimum_role_level(role_name, minimum_level):
    return get_role_level(role_name) >= minimum_level


def is_superadmin_role(role_name):
    return _in_group(role_name, SUPERADMIN_ROLES)


def is_executive_role(role_name):
    return _in_group(role_name, EXECUTIVE_ROLES)


def is_command_center_role(role_name):
    return _in_group(role_name, COMMAND_CENTER_ROLES)


def has_financial_access(role_name):
    return _in_group(role_name, FINANCIAL_ACCESS_ROLES)


def has_project_management_access(role_name):
    return _in_group(role_name, PROJECT_MANAGEMENT_ACCESS_ROLES)


def is_project_manager_role(role_name):
    return _in_group(role_name, PROJECT_MANAGEMENT_ROLES)


def is_task_admin_role(role_name):
    return _in_group(role_name, TASK_ADMIN_ROLES)


def is_sprint_admin_role(role_name):
    return _in_group(role_name, SPRINT_ADMIN_ROLES)


def is_sprint_member_role(role_name):
    """Sprint members must hold a development or operations role"""
    return _in_group(role_name, DEVELOPMENT_ROLES) or _in_group(role_name, OPERATIONS_ROLES)


def user_role_name(user):
    if not user or not getattr(user, 'is_authenticated', False):
        return ''
    role = getattr(user, 'role', None)
    return role.name if role else ''


def permission_matches(held, required):
    """
    Check whether one held ``resource:action`` pattern grants a required one.

    ``resource:*``, ``*:action`` and ``*:*`` are honored.
    """
    held_resource, _, held_action = held.partition(':')
    required_resource, _, required_action = required.partition(':')
    resource_ok = held_resource == '*' or held_resource == required_resource
    action_ok = held_action == '*' or held_action == required_action
    return resource_ok and action_ok


def get_user_permission_codes(user):
    from .models import Permission

    role_id = getattr(user, 'role_id', None)
    if not role_id:
        return set()
    return {
        f"{resource}:{action}"
        for resource, action in Permission.objects.filter(roles__id=role_id).values_list('resource', 'action')
    }


def has_permissions(user, required_permissions):
    """
    Return True when the user holds every required permission.

    A role named ``Superadmin`` passes every check.
    """
    if normalize_role_name(user_role_name(user)) == 'SUPERADMIN':
        return True
    held = get_user_permission_codes(user)
    if not held:
        return not required_permissions
    for required in required_permissions:
        if required in held:
            continue
        if not any(permission_matches(code, required) for code in held):
            return False
    return True
