"""
Test suite for the core module
Tests: authentication, tenancy, users, roles, permissions, audit logs, seeding
"""
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from backend.core.exceptions import api_exception_handler
from backend.core.management.commands.seed_roles import (
    ACTIONS, RESOURCES, ROLES_CONFIG, grant_matrix_permissions, pattern_matches,
)
from backend.core.models import AuditLog, Permission, Role, RolePermission, User
from backend.core.roles import (
    get_role_level, has_financial_access, has_minimum_role_level, has_permissions,
    has_project_management_access, is_executive_role,
    is_sprint_member_role, permission_matches,
)
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.core.utils import create_audit_log, json_safe


class RoleHelperTests(TestCase):
    """Test role name grouping and permission matching"""

    def test_role_names_are_normalized(self):
        self.assertTrue(is_executive_role(' ceo '))
        self.assertTrue(has_financial_access('Contador Senior'))
        self.assertFalse(has_financial_access('Developer'))
        self.assertTrue(is_sprint_member_role('operario'))
        self.assertEqual(get_role_level('contador senior'), 75)
        self.assertEqual(get_role_level('Unknown Role'), 0)
        self.assertEqual(get_role_level(None), 0)

    def test_permission_matches_wildcards(self):
        self.assertTrue(permission_matches('projects:*', 'projects:read'))
        self.assertTrue(permission_matches('*:read', 'tasks:read'))
        self.assertTrue(permission_matches('*:*', 'finance.invoices:approve'))
        self.assertFalse(permission_matches('projects:*', 'tasks:read'))

    def test_has_permissions(self):
        org = TestDataFactory.create_organization()
        role = TestDataFactory.create_role(org, 'Auditor')
        user = TestDataFactory.create_user(organization=org, role=role)
        wildcard = Permission.objects.create(resource='tasks', action='*')
        RolePermission.objects.create(role=role, permission=wildcard)

        self.assertTrue(has_permissions(user, ['tasks:read', 'tasks:delete']))
        self.assertFalse(has_permissions(user, ['tasks:read', 'projects:read']))

    def test_superadmin_bypasses_permission_checks(self):
        org = TestDataFactory.create_organization()
        user = TestDataFactory.create_user(organization=org, role='Superadmin')
        self.assertTrue(has_permissions(user, ['anything:admin']))

    def test_minimum_level_and_management_access(self):
        self.assertTrue(has_minimum_role_level('Super Admin', 100))
        self.assertFalse(has_minimum_role_level('CEO', 100))
        self.assertTrue(has_project_management_access('scrum master'))
        self.assertTrue(has_project_management_access('CFO'))
        self.assertFalse(has_project_management_access('Supervisor'))

    def test_user_without_permissions(self):
        user = TestDataFactory.create_user()
        self.assertTrue(has_permissions(user, []))
        self.assertFalse(has_permissions(user, ['projects:read']))


class AuthTests(TestCase):
    """Test login, token refresh and the current user endpoint"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(organization=self.org, role='CFO', username='cfo_user')
        self.client = APIClient()

    def test_login_returns_tokens_with_tenant_claims(self):
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'cfo_user', 'password': 'testpass123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'cfo_user', 'password': 'wrong'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_disabled_user_cannot_login(self):
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v1/auth/login/', {
            'username': 'cfo_user', 'password': 'testpass123'
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh(self):
        login = self.client.post('/api/v1/auth/login/', {
            'username': 'cfo_user', 'password': 'testpass123'
        }, format='json')
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_for_deleted_user(self):
        login = self.client.post('/api/v1/auth/login/', {
            'username': 'cfo_user', 'password': 'testpass123'
        }, format='json')
        self.user.delete()
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_with_garbage_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me(self):
        client = AuthenticatedAPIClient()
        client.authenticate_user(self.user)
        response = client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['organization']['id'], self.org.id)
        self.assertEqual(response.data['role']['name'], 'CFO')
        self.assertEqual(response.data['role_level'], 90)
        self.assertTrue(response.data['is_executive'])
        self.assertTrue(response.data['has_financial_access'])

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class TenancyTests(TestCase):
    """Test organization resolution from the user and the tenant headers"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.other_org = TestDataFactory.create_organization()
        TestDataFactory.create_client(self.org, name='Home client')
        TestDataFactory.create_client(self.other_org, name='Foreign client')
        self.client = AuthenticatedAPIClient()

    def test_regular_user_ignores_header(self):
        user = TestDataFactory.create_user(organization=self.org, role='CEO')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/clients/', HTTP_X_ORG_ID=str(self.other_org.id))
        self.assertEqual([c['name'] for c in response.data['results']], ['Home client'])

    def test_superadmin_switches_organization(self):
        user = TestDataFactory.create_user(organization=self.org, role='Superadmin')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/clients/', HTTP_X_TENANT_ID=str(self.other_org.id))
        self.assertEqual([c['name'] for c in response.data['results']], ['Foreign client'])

    def test_superadmin_invalid_header(self):
        user = TestDataFactory.create_user(organization=self.org, role='Superadmin')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/clients/', HTTP_X_ORG_ID='abc')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_user_without_organization(self):
        user = TestDataFactory.create_user(organization=None)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/clients/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class UserAPITests(TestCase):
    """Test user management"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.ceo = TestDataFactory.create_user(organization=self.org, role='CEO')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.ceo)

    def test_list_is_scoped_to_organization(self):
        TestDataFactory.create_user(organization=self.org, username='colleague')
        TestDataFactory.create_user(organization=TestDataFactory.create_organization(), username='stranger')
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        usernames = [u['username'] for u in response.data['results']]
        self.assertIn('colleague', usernames)
        self.assertNotIn('stranger', usernames)

    def test_create_user(self):
        role = TestDataFactory.create_role(self.org, 'Developer')
        response = self.client.post('/api/v1/users/', {
            'username': 'new_dev',
            'email': 'dev@example.com',
            'password': 'Sigma-Secure-2024',
            'password_confirm': 'Sigma-Secure-2024',
            'role': role.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(username='new_dev')
        self.assertEqual(user.organization, self.org)
        self.assertTrue(user.check_password('Sigma-Secure-2024'))
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='User').exists())

    def test_create_user_password_mismatch(self):
        response = self.client.post('/api/v1/users/', {
            'username': 'new_dev',
            'password': 'Sigma-Secure-2024',
            'password_confirm': 'Other-Secure-2024',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_role_from_other_organization_rejected(self):
        foreign_role = TestDataFactory.create_role(TestDataFactory.create_organization(), 'Developer')
        response = self.client.post('/api/v1/users/', {
            'username': 'new_dev',
            'password': 'Sigma-Secure-2024',
            'password_confirm': 'Sigma-Secure-2024',
            'role': foreign_role.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data)

    def test_non_executive_forbidden(self):
        dev = TestDataFactory.create_user(organization=self.org, role='Developer')
        self.client.authenticate_user(dev)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_deactivates(self):
        user = TestDataFactory.create_user(organization=self.org)
        response = self.client.delete(f'/api/v1/users/{user.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        user.refresh_from_db()
        self.assertFalse(user.is_active)

    def test_filter_by_active(self):
        TestDataFactory.create_user(organization=self.org, username='inactive_one', is_active=False)
        response = self.client.get('/api/v1/users/', {'is_active': 'false'})
        self.assertEqual([u['username'] for u in response.data['results']], ['inactive_one'])


class RoleAPITests(TestCase):
    """Test role management"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.ceo = TestDataFactory.create_user(organization=self.org, role='CEO')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.ceo)

    def test_create_role(self):
        response = self.client.post('/api/v1/roles/', {'name': 'Auditor', 'level': 4}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Role.objects.filter(organization=self.org, name='Auditor').exists())

    def test_duplicate_role_name_conflict(self):
        TestDataFactory.create_role(self.org, 'Auditor')
        response = self.client.post('/api/v1/roles/', {'name': 'auditor'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_same_name_in_other_organization_allowed(self):
        TestDataFactory.create_role(TestDataFactory.create_organization(), 'Auditor')
        response = self.client.post('/api/v1/roles/', {'name': 'Auditor'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_non_executive_cannot_create(self):
        dev = TestDataFactory.create_user(organization=self.org, role='Developer')
        self.client.authenticate_user(dev)
        response = self.client.get('/api/v1/roles/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/roles/', {'name': 'Auditor'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_system_role_cannot_be_deleted(self):
        role = TestDataFactory.create_role(self.org, 'Superadmin', is_system=True)
        response = self.client.delete(f'/api/v1/roles/{role.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Role.objects.filter(pk=role.id).exists())

    def test_delete_role(self):
        role = TestDataFactory.create_role(self.org, 'Temporary')
        response = self.client.delete(f'/api/v1/roles/{role.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(AuditLog.objects.filter(action='delete', model_name='Role', object_name='Temporary').exists())

    def test_assign_permissions_replaces_set(self):
        role = TestDataFactory.create_role(self.org, 'Auditor')
        read = Permission.objects.create(resource='kpi', action='read')
        export = Permission.objects.create(resource='kpi', action='export')
        RolePermission.objects.create(role=role, permission=read)

        response = self.client.put(f'/api/v1/roles/{role.id}/permissions/',
                                   {'permission_ids': [export.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([p['code'] for p in response.data['permissions']], ['kpi:export'])

    def test_assign_unknown_permission(self):
        role = TestDataFactory.create_role(self.org, 'Auditor')
        response = self.client.put(f'/api/v1/roles/{role.id}/permissions/',
                                   {'permission_ids': [999999]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class PermissionAPITests(TestCase):
    """Test the global permission catalog"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.admin = TestDataFactory.create_user(organization=self.org, role='Superadmin')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_and_duplicate(self):
        response = self.client.post('/api/v1/permissions/', {'resource': 'kpi', 'action': 'read'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['code'], 'kpi:read')

        response = self.client.post('/api/v1/permissions/', {'resource': 'kpi', 'action': 'read'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_filter_by_resource(self):
        Permission.objects.create(resource='kpi', action='read')
        Permission.objects.create(resource='okr', action='read')
        response = self.client.get('/api/v1/permissions/', {'resource': 'kpi'})
        self.assertEqual([p['code'] for p in response.data], ['kpi:read'])

    def test_executive_cannot_write(self):
        ceo = TestDataFactory.create_user(organization=self.org, role='CEO')
        self.client.authenticate_user(ceo)
        response = self.client.post('/api/v1/permissions/', {'resource': 'kpi', 'action': 'read'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_update_into_duplicate(self):
        Permission.objects.create(resource='kpi', action='read')
        other = Permission.objects.create(resource='kpi', action='update')
        response = self.client.patch(f'/api/v1/permissions/{other.id}/', {'action': 'read'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class AuditLogTests(TestCase):
    """Test audit log helpers and endpoints"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.ceo = TestDataFactory.create_user(organization=self.org, role='CEO')
        self.dev = TestDataFactory.create_user(organization=self.org, role='Developer')
        create_audit_log(user=self.ceo, action='create', model_name='Project', object_id=1, object_name='A')
        create_audit_log(user=self.dev, action='update', model_name='Task', object_id=2, object_name='B')
        self.client = AuthenticatedAPIClient()

    def test_missing_fields_skip_entry(self):
        self.assertIsNone(create_audit_log(user=self.ceo, action='create', model_name='Project'))

    def test_json_safe(self):
        self.assertEqual(json_safe({'amount': Decimal('1.50'), 'ids': (1, 2)}), {'amount': '1.50', 'ids': [1, 2]})

    def test_executive_sees_all(self):
        self.client.authenticate_user(self.ceo)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/v1/audit-logs/', {'model': 'Task'})
        self.assertEqual(response.data['count'], 1)

    def test_malformed_date_filter_is_rejected(self):
        self.client.authenticate_user(self.ceo)
        response = self.client.get('/api/v1/audit-logs/', {'date_from': 'yesterday'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date_from', response.data)
        response = self.client.get('/api/v1/audit-logs/', {'date_to': '2099-12-31'})
        self.assertEqual(response.data['count'], 2)

    def test_non_executive_sees_own(self):
        self.client.authenticate_user(self.dev)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['model_name'], 'Task')

        foreign = AuditLog.objects.get(model_name='Project')
        response = self.client.get(f'/api/v1/audit-logs/{foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ExceptionHandlerTests(TestCase):

    def test_unhandled_error_becomes_500(self):
        response = api_exception_handler(RuntimeError('boom'), {'request': None})
        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'error': 'Internal server error'})


class SeedRolesCommandTests(TestCase):
    """Test the seed_roles management command"""

    def test_requires_organization(self):
        with self.assertRaises(CommandError):
            call_command('seed_roles', stdout=StringIO())

    def test_seed_is_idempotent(self):
        org = TestDataFactory.create_organization()
        call_command('seed_roles', stdout=StringIO())
        call_command('seed_roles', stdout=StringIO())

        self.assertEqual(Role.objects.filter(organization=org).count(), len(ROLES_CONFIG))
        self.assertEqual(Permission.objects.count(), len(RESOURCES) * len(ACTIONS))

        superadmin = Role.objects.get(organization=org, name='Superadmin')
        self.assertTrue(superadmin.is_system)
        self.assertEqual(superadmin.permissions.count(), len(RESOURCES) * len(ACTIONS))

        cfo = Role.objects.get(organization=org, name='CFO')
        codes = set(p.code for p in cfo.permissions.all())
        self.assertIn('finance.invoices:approve', codes)
        self.assertIn('finance:approve', codes)
        self.assertIn('clients:create', codes)
        self.assertNotIn('tasks:read', codes)

        contador = Role.objects.get(organization=org, name='Contador')
        codes = set(p.code for p in contador.permissions.all())
        self.assertIn('finance:update', codes)
        self.assertNotIn('finance:approve', codes)
        self.assertNotIn('clients:create', codes)

    def test_seed_single_organization(self):
        org = TestDataFactory.create_organization()
        other = TestDataFactory.create_organization()
        call_command('seed_roles', organization=org.id, stdout=StringIO())
        self.assertTrue(Role.objects.filter(organization=org).exists())
        self.assertFalse(Role.objects.filter(organization=other).exists())

    def test_finance_wildcard_includes_base_resource(self):
        finance = Permission(resource='finance', action='read')
        self.assertTrue(pattern_matches('finance.*:read', finance))
        self.assertTrue(pattern_matches('finance.*:*', Permission(resource='finance.invoices', action='approve')))
        self.assertFalse(pattern_matches('finance.*:read', Permission(resource='financial', action='read')))

    def test_custom_role_is_not_granted(self):
        role = TestDataFactory.create_role(TestDataFactory.create_organization(), 'Auditor')
        self.assertEqual(grant_matrix_permissions(role), 0)
        self.assertEqual(role.permissions.count(), 0)


class PermissionEnforcementTests(TestCase):
    """Test that endpoints require the resource:action codes of the user's role"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.client = AuthenticatedAPIClient()

    def test_role_without_permissions_is_forbidden(self):
        user = TestDataFactory.create_user(organization=self.org, role='Auditor')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/clients/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('clients:read', response.data['detail'])

    def test_action_follows_http_method(self):
        role = TestDataFactory.create_role(self.org, 'Auditor')
        read, _ = Permission.objects.get_or_create(resource='clients', action='read')
        RolePermission.objects.create(role=role, permission=read)
        user = TestDataFactory.create_user(organization=self.org, role=role)
        self.client.authenticate_user(user)

        self.assertEqual(self.client.get('/api/v1/clients/').status_code, status.HTTP_200_OK)
        response = self.client.post('/api/v1/clients/', {'name': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('clients:create', response.data['detail'])

    def test_developer_cannot_create_clients(self):
        dev = TestDataFactory.create_user(organization=self.org, role='Developer')
        self.client.authenticate_user(dev)
        response = self.client.post('/api/v1/clients/', {'name': 'Nope'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_superadmin_bypasses_matrix(self):
        role = TestDataFactory.create_role(self.org, 'Superadmin')
        RolePermission.objects.filter(role=role).delete()
        user = TestDataFactory.create_user(organization=self.org, role=role)
        self.client.authenticate_user(user)
        response = self.client.post('/api/v1/clients/', {'name': 'Allowed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
