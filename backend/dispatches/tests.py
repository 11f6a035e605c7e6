"""
Test suite for the dispatches module
Tests: command center access, sending, inbox filters and ordering, recipient
status changes, conversion to tasks, deletion rules
"""
from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.dispatches.models import Dispatch
from backend.projects.models import Task


class DispatchAccessTests(TestCase):
    """Test that only executives reach the command center"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.client = AuthenticatedAPIClient()

    def test_developer_is_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user(self.org, role='Developer'))
        response = self.client.get('/api/v1/dispatches/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_operations_manager_is_allowed(self):
        self.client.authenticate_user(TestDataFactory.create_user(self.org, role='Gerente Operaciones'))
        response = self.client.get('/api/v1/dispatches/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_unauthenticated_is_rejected(self):
        response = self.client.get('/api/v1/dispatches/stats/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class DispatchAPITests(TestCase):
    """Test sending and reading dispatches"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.ceo = TestDataFactory.create_user(self.org, role='CEO')
        self.cfo = TestDataFactory.create_user(self.org, role='CFO')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.ceo)

    def test_send_dispatch(self):
        response = self.client.post('/api/v1/dispatches/', {
            'content': 'Close the March books',
            'recipient': self.cfo.id,
            'urgency_level': 'URGENT',
            'due_date': '2025-04-05',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        dispatch = Dispatch.objects.get(pk=response.data['id'])
        self.assertEqual(dispatch.sender, self.ceo)
        self.assertEqual(dispatch.status, 'SENT')
        self.assertEqual(response.data['recipient_detail']['id'], self.cfo.id)
        self.assertTrue(AuditLog.objects.filter(model_name='Dispatch', action='create').exists())

    def test_urgency_defaults_to_normal(self):
        response = self.client.post('/api/v1/dispatches/', {'content': 'FYI', 'recipient': self.cfo.id},
                                    format='json')
        self.assertEqual(response.data['urgency_level'], 'NORMAL')

    def test_recipient_must_be_active_member(self):
        outsider = TestDataFactory.create_user(TestDataFactory.create_organization(), role='CEO')
        response = self.client.post('/api/v1/dispatches/', {'content': 'X', 'recipient': outsider.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        inactive = TestDataFactory.create_user(self.org, role='CTO', is_active=False)
        response = self.client.post('/api/v1/dispatches/', {'content': 'X', 'recipient': inactive.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Dispatch.objects.exists())

    def test_list_shows_own_dispatches_most_urgent_first(self):
        cto = TestDataFactory.create_user(self.org, role='CTO')
        TestDataFactory.create_dispatch(self.ceo, self.cfo, content='normal')
        TestDataFactory.create_dispatch(self.cfo, self.ceo, content='critical', urgency_level='CRITICAL')
        TestDataFactory.create_dispatch(self.ceo, cto, content='urgent', urgency_level='URGENT')
        TestDataFactory.create_dispatch(self.cfo, cto, content='not mine', urgency_level='CRITICAL')

        response = self.client.get('/api/v1/dispatches/')
        self.assertEqual([d['content'] for d in response.data['results']], ['critical', 'urgent', 'normal'])

        response = self.client.get('/api/v1/dispatches/', {'type': 'received'})
        self.assertEqual([d['content'] for d in response.data['results']], ['critical'])

        response = self.client.get('/api/v1/dispatches/', {'type': 'sent', 'urgency_level': 'URGENT'})
        self.assertEqual([d['content'] for d in response.data['results']], ['urgent'])

    def test_invalid_status_filter(self):
        response = self.client.get('/api/v1/dispatches/', {'status': 'LOST'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_stats(self):
        TestDataFactory.create_dispatch(self.ceo, self.cfo)
        TestDataFactory.create_dispatch(self.cfo, self.ceo, urgency_level='URGENT')
        TestDataFactory.create_dispatch(self.cfo, self.ceo, urgency_level='URGENT', status='RESOLVED')
        TestDataFactory.create_dispatch(self.cfo, self.ceo, status='READ')

        response = self.client.get('/api/v1/dispatches/stats/')
        self.assertEqual(response.data, {
            'total_sent': 1,
            'total_received': 3,
            'unread_count': 1,
            'urgent_count': 1,
        })

    def test_only_participants_can_view(self):
        cto = TestDataFactory.create_user(self.org, role='CTO')
        dispatch = TestDataFactory.create_dispatch(self.cfo, cto)
        response = self.client.get(f'/api/v1/dispatches/{dispatch.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_other_organization_dispatch_not_found(self):
        other = TestDataFactory.create_organization()
        dispatch = TestDataFactory.create_dispatch(TestDataFactory.create_user(other, role='CEO'),
                                                   TestDataFactory.create_user(other, role='CFO'))
        response = self.client.get(f'/api/v1/dispatches/{dispatch.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class DispatchStatusTests(TestCase):
    """Test the recipient-driven status changes"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.sender = TestDataFactory.create_user(self.org, role='CEO')
        self.recipient = TestDataFactory.create_user(self.org, role='Gerente Operaciones')
        self.dispatch = TestDataFactory.create_dispatch(self.sender, self.recipient)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.recipient)

    def url(self, action=''):
        return f'/api/v1/dispatches/{self.dispatch.id}/{action}'

    def test_mark_read_once(self):
        response = self.client.post(self.url('read/'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'READ')
        self.assertIsNotNone(response.data['read_at'])

        response = self.client.post(self.url('read/'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_sender_cannot_change_status(self):
        self.client.authenticate_user(self.sender)
        response = self.client.post(self.url('read/'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.patch(self.url(), {'description': 'edited'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_progress_marks_read(self):
        response = self.client.post(self.url('progress/'))
        self.assertEqual(response.data['status'], 'IN_PROGRESS')
        self.dispatch.refresh_from_db()
        self.assertIsNotNone(self.dispatch.read_at)
        self.assertIsNotNone(self.dispatch.in_progress_at)

    def test_resolve_then_progress_is_rejected(self):
        response = self.client.post(self.url('resolve/'), {'resolution_note': 'Budget closed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['resolution_note'], 'Budget closed')
        self.assertIsNotNone(response.data['resolved_at'])

        response = self.client.post(self.url('progress/'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_recipient_patch(self):
        response = self.client.patch(self.url(), {'status': 'IN_PROGRESS', 'description': 'On it'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.dispatch.refresh_from_db()
        self.assertEqual(self.dispatch.status, 'IN_PROGRESS')
        self.assertIsNotNone(self.dispatch.in_progress_at)

        response = self.client.patch(self.url(), {'status': 'CONVERTED_TO_TASK'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_rules(self):
        response = self.client.delete(self.url())
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.sender)
        response = self.client.delete(self.url())
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Dispatch.objects.filter(pk=self.dispatch.id).exists())

    def test_executive_recipient_can_delete(self):
        cfo = TestDataFactory.create_user(self.org, role='CFO')
        dispatch = TestDataFactory.create_dispatch(self.recipient, cfo)
        self.client.authenticate_user(cfo)
        response = self.client.delete(f'/api/v1/dispatches/{dispatch.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class DispatchConversionTests(TestCase):
    """Test turning dispatches into tasks"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.ceo = TestDataFactory.create_user(self.org, role='CEO')
        self.manager = TestDataFactory.create_user(self.org, role='Gerente Operaciones')
        self.project = TestDataFactory.create_project(self.org, owner=self.ceo, name='Planta Norte')
        self.client = AuthenticatedAPIClient()

    def test_executive_converts_into_first_project(self):
        dispatch = TestDataFactory.create_dispatch(self.ceo, self.manager, content='Inspect the plant',
                                                   urgency_level='CRITICAL')
        self.client.authenticate_user(self.ceo)
        response = self.client.post(f'/api/v1/dispatches/{dispatch.id}/convert-to-task/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        task = Task.objects.get(pk=response.data['task']['id'])
        self.assertEqual(task.project, self.project)
        self.assertEqual(task.title, 'Inspect the plant')
        self.assertEqual(task.priority, 'URGENT')
        self.assertEqual(task.status, 'TODO')
        self.assertEqual(task.assignee, self.manager)
        self.assertEqual(task.reporter, self.ceo)
        self.assertEqual(response.data['dispatch']['status'], 'CONVERTED_TO_TASK')

        response = self.client.post(f'/api/v1/dispatches/{dispatch.id}/convert-to-task/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Task.objects.count(), 1)

    def test_title_is_truncated(self):
        dispatch = TestDataFactory.create_dispatch(self.ceo, self.manager, content='x' * 150)
        self.client.authenticate_user(self.ceo)
        response = self.client.post(f'/api/v1/dispatches/{dispatch.id}/convert-to-task/', {}, format='json')
        self.assertEqual(len(response.data['task']['title']), 100)
        self.assertEqual(response.data['task']['priority'], 'MEDIUM')

    def test_non_executive_needs_recipient_project(self):
        cfo = TestDataFactory.create_user(self.org, role='CFO')
        dispatch = TestDataFactory.create_dispatch(self.manager, cfo)
        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/dispatches/{dispatch.id}/convert-to-task/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        project = TestDataFactory.create_project(self.org, owner=self.ceo, members=[cfo])
        response = self.client.post(f'/api/v1/dispatches/{dispatch.id}/convert-to-task/',
                                    {'project_id': self.project.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/dispatches/{dispatch.id}/convert-to-task/',
                                    {'project_id': project.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['task']['project'], project.id)

    def test_resolve_after_conversion_is_rejected(self):
        dispatch = TestDataFactory.create_dispatch(self.ceo, self.manager)
        self.client.authenticate_user(self.ceo)
        response = self.client.post(f'/api/v1/dispatches/{dispatch.id}/convert-to-task/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        self.client.authenticate_user(self.manager)
        response = self.client.post(f'/api/v1/dispatches/{dispatch.id}/resolve/', {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
