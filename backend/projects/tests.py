"""
Test suite for the projects module
Tests: project access and ownership, sprint rules and burndown, task workflow,
kanban moves, assignment and comments, expenses and time entries
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from backend.core.models import AuditLog
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.projects.models import Expense, Project, Task, TaskComment, TimeEntry
from backend.projects.services import sprint_burndown


def D(value):
    return Decimal(str(value))


class ProjectAPITests(TestCase):
    """Test project endpoints"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.ceo = TestDataFactory.create_user(self.org, role='CEO')
        self.dev = TestDataFactory.create_user(self.org, role='Developer')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.ceo)

    def test_create_defaults_owner_to_creator(self):
        response = self.client.post('/api/v1/projects/', {'name': 'Portal'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['owner']['id'], self.ceo.id)
        self.assertEqual(response.data['status'], 'PLANNING')

    def test_first_owner_is_primary(self):
        other = TestDataFactory.create_user(self.org, role='Project Manager')
        response = self.client.post('/api/v1/projects/', {
            'name': 'ERP',
            'owner_ids': [other.id, self.ceo.id],
            'member_ids': [self.dev.id],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        project = Project.objects.get(pk=response.data['id'])
        self.assertEqual(project.owner, other)
        self.assertEqual(list(project.co_owners.all()), [self.ceo])
        self.assertTrue(project.is_member(self.dev))

    def test_inactive_owner_is_rejected(self):
        inactive = TestDataFactory.create_user(self.org, role='CEO', is_active=False)
        response = self.client.post('/api/v1/projects/', {'name': 'X', 'owner_ids': [inactive.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_owner_from_other_organization_is_rejected(self):
        outsider = TestDataFactory.create_user(role='CEO')
        response = self.client.post('/api/v1/projects/', {'name': 'X', 'owner_ids': [outsider.id]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_only_executives_create(self):
        self.client.authenticate_user(self.dev)
        response = self.client.post('/api/v1/projects/', {'name': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_visibility(self):
        member_of = TestDataFactory.create_project(self.org, owner=self.ceo, members=[self.dev])
        assigned_in = TestDataFactory.create_project(self.org, owner=self.ceo)
        TestDataFactory.create_task(assigned_in, assignee=self.dev)
        TestDataFactory.create_project(self.org, owner=self.ceo)

        response = self.client.get('/api/v1/projects/')
        self.assertEqual(response.data['count'], 3)

        self.client.authenticate_user(self.dev)
        response = self.client.get('/api/v1/projects/')
        ids = {row['id'] for row in response.data['results']}
        self.assertEqual(ids, {member_of.id, assigned_in.id})

    def test_list_filters(self):
        TestDataFactory.create_project(self.org, name='Migración ERP', status='ACTIVE')
        TestDataFactory.create_project(self.org, name='App móvil')
        response = self.client.get('/api/v1/projects/', {'status': 'ACTIVE'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/projects/', {'search': 'móvil'})
        self.assertEqual(response.data['results'][0]['name'], 'App móvil')

    def test_detail_access(self):
        project = TestDataFactory.create_project(self.org, owner=self.ceo)
        self.client.authenticate_user(self.dev)
        response = self.client.get(f'/api/v1/projects/{project.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        other = TestDataFactory.create_project(TestDataFactory.create_organization())
        self.client.authenticate_user(self.ceo)
        response = self.client.get(f'/api/v1/projects/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete_is_soft(self):
        project = TestDataFactory.create_project(self.org, owner=self.ceo)
        response = self.client.delete(f'/api/v1/projects/{project.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        project.refresh_from_db()
        self.assertIsNotNone(project.deleted_at)

        response = self.client.get(f'/api/v1/projects/{project.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        response = self.client.get('/api/v1/projects/')
        self.assertEqual(response.data['count'], 0)

    def test_change_status(self):
        project = TestDataFactory.create_project(self.org, owner=self.ceo)
        response = self.client.patch(f'/api/v1/projects/{project.id}/status/', {'status': 'ACTIVE'}, format='json')
        self.assertEqual(response.data['status'], 'ACTIVE')
        self.assertTrue(AuditLog.objects.filter(model_name='Project', action='status_change').exists())

        response = self.client.patch(f'/api/v1/projects/{project.id}/status/', {'status': 'UNKNOWN'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_statistics(self):
        project = TestDataFactory.create_project(self.org, owner=self.ceo)
        TestDataFactory.create_task(project, status='DONE')
        TestDataFactory.create_task(project, status='TODO')
        TestDataFactory.create_task(project, status='TODO')
        TestDataFactory.create_sprint(project)
        response = self.client.get(f'/api/v1/projects/{project.id}/statistics/')
        self.assertEqual(response.data['total_tasks'], 3)
        self.assertEqual(response.data['completed_tasks'], 1)
        self.assertEqual(D(response.data['progress']), D('33.33'))
        self.assertEqual(response.data['tasks_by_status'], {'DONE': 1, 'TODO': 2})
        self.assertEqual(response.data['total_sprints'], 1)

    def test_financial_stats(self):
        project = TestDataFactory.create_project(self.org, owner=self.ceo, members=[self.dev])
        TestDataFactory.create_account_receivable(self.org, amount=D('1000.00'), project=project,
                                                  amount_paid=D('400.00'))
        TestDataFactory.create_expense(self.org, amount=D('200.00'), project=project, status='APPROVED')
        TestDataFactory.create_expense(self.org, amount=D('100.00'), project=project)
        TestDataFactory.create_expense(self.org, amount=D('999.00'), project=project, status='REJECTED')
        TestDataFactory.create_purchase_order(self.org, amount=D('500.00'), project=project, status='APPROVED')
        TestDataFactory.create_time_entry(self.org, hours=D('6.5'), user=self.dev, project=project)
        TestDataFactory.create_time_entry(self.org, hours=D('2'), user=self.dev, project=project)

        response = self.client.get(f'/api/v1/projects/{project.id}/financial-stats/')
        self.assertEqual(D(response.data['total_invoiced']), D('1000.00'))
        self.assertEqual(D(response.data['total_paid']), D('400.00'))
        self.assertEqual(D(response.data['total_expenses']), D('300.00'))
        self.assertEqual(D(response.data['profit']), D('700.00'))
        self.assertEqual(D(response.data['margin']), D('70.00'))
        self.assertEqual(D(response.data['outstanding_amount']), D('600.00'))
        self.assertEqual(D(response.data['total_hours']), D('8.5'))

        self.client.authenticate_user(self.dev)
        response = self.client.get(f'/api/v1/projects/{project.id}/financial-stats/')
        self.assertEqual(D(response.data['total_invoiced']), D('0'))
        self.assertEqual(D(response.data['profit']), D('0'))
        self.assertEqual(D(response.data['total_hours']), D('8.5'))


class SprintAPITests(TestCase):
    """Test sprint rules, burndown and velocity"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.admin = TestDataFactory.create_user(self.org, role='Gerente Operaciones')
        self.pm = TestDataFactory.create_user(self.org, role='Project Manager')
        self.dev = TestDataFactory.create_user(self.org, role='Developer')
        self.cfo = TestDataFactory.create_user(self.org, role='CFO')
        self.project = TestDataFactory.create_project(self.org, owner=self.admin, members=[self.pm, self.dev])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _payload(self, **overrides):
        payload = {
            'project': self.project.id,
            'name': 'Sprint 1',
            'start_date': '2025-03-01',
            'end_date': '2025-03-14',
        }
        payload.update(overrides)
        return payload

    def test_create_with_members(self):
        response = self.client.post('/api/v1/sprints/', self._payload(member_ids=[self.dev.id]), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([m['id'] for m in response.data['members']], [self.dev.id])

    def test_end_date_must_follow_start_date(self):
        response = self.client.post('/api/v1/sprints/', self._payload(end_date='2025-03-01'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_members_must_be_developers_or_operators(self):
        response = self.client.post('/api/v1/sprints/', self._payload(member_ids=[self.cfo.id]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_project_manager_of_project_can_create(self):
        self.client.authenticate_user(self.pm)
        response = self.client.post('/api/v1/sprints/', self._payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_unrelated_users_cannot_create(self):
        outsider_pm = TestDataFactory.create_user(self.org, role='Project Manager')
        for user in (outsider_pm, self.dev):
            self.client.authenticate_user(user)
            response = self.client.post('/api/v1/sprints/', self._payload(), format='json')
            self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_partial_update_checks_existing_dates(self):
        sprint = TestDataFactory.create_sprint(self.project, start_date=timezone.localdate())
        response = self.client.patch(f'/api/v1/sprints/{sprint.id}/', {
            'end_date': (sprint.start_date - timedelta(days=1)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_member_sees_sprint_list(self):
        TestDataFactory.create_sprint(self.project)
        TestDataFactory.create_sprint(TestDataFactory.create_project(self.org))
        self.client.authenticate_user(self.dev)
        response = self.client.get('/api/v1/sprints/')
        self.assertEqual(response.data['count'], 1)

    def test_burndown(self):
        today = timezone.localdate()
        sprint = TestDataFactory.create_sprint(self.project, start_date=today - timedelta(days=2),
                                               end_date=today + timedelta(days=8))
        TestDataFactory.create_task(self.project, sprint=sprint, status='DONE', estimated_hours=D('10'),
                                    actual_hours=D('12'))
        TestDataFactory.create_task(self.project, sprint=sprint, estimated_hours=D('30'))

        response = self.client.get(f'/api/v1/sprints/{sprint.id}/burndown/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data
        self.assertEqual(D(data['total_estimated_hours']), D('40'))
        self.assertEqual(D(data['completed_hours']), D('10'))
        self.assertEqual(D(data['remaining_hours']), D('30'))
        self.assertEqual(data['total_days'], 10)
        self.assertEqual(data['days_passed'], 2)
        self.assertEqual(data['progress'], 50)
        self.assertEqual(len(data['chart_data']), 11)
        self.assertEqual(D(data['chart_data'][0]['ideal_remaining']), D('40.00'))
        self.assertEqual(D(data['chart_data'][10]['ideal_remaining']), D('0.00'))
        self.assertEqual(D(data['chart_data'][2]['actual_remaining']), D('30'))
        self.assertIsNone(data['chart_data'][3]['actual_remaining'])

    def test_burndown_of_single_day_sprint(self):
        today = timezone.localdate()
        sprint = TestDataFactory.create_sprint(self.project, start_date=today, end_date=today)
        data = sprint_burndown(sprint, today=today)
        self.assertEqual(data['total_days'], 1)
        self.assertEqual(data['progress'], 0)
        self.assertEqual(len(data['chart_data']), 2)

    def test_velocity_and_statistics(self):
        sprint = TestDataFactory.create_sprint(self.project)
        TestDataFactory.create_task(self.project, sprint=sprint, status='DONE', estimated_hours=D('5'),
                                    actual_hours=D('8'))
        TestDataFactory.create_task(self.project, sprint=sprint, status='REVIEW', estimated_hours=D('3'))

        response = self.client.get(f'/api/v1/sprints/{sprint.id}/velocity/')
        self.assertEqual(response.data['completed_tasks'], 1)
        self.assertEqual(D(response.data['completed_hours']), D('5'))

        response = self.client.get(f'/api/v1/sprints/{sprint.id}/statistics/')
        self.assertEqual(D(response.data['progress']), D('50.00'))
        self.assertEqual(D(response.data['hours_variance']), D('0'))


class TaskAPITests(TestCase):
    """Test task creation, workflow rules and kanban"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.owner = TestDataFactory.create_user(self.org, role='Project Manager')
        self.dev = TestDataFactory.create_user(self.org, role='Developer')
        self.ceo = TestDataFactory.create_user(self.org, role='CEO')
        self.project = TestDataFactory.create_project(self.org, owner=self.owner, members=[self.dev])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.owner)

    def _task(self, **kwargs):
        kwargs.setdefault('reporter', self.owner)
        return TestDataFactory.create_task(self.project, **kwargs)

    def test_create_sets_reporter_position_and_comment(self):
        self._task(position=4)
        response = self.client.post('/api/v1/tasks/', {
            'project': self.project.id,
            'title': 'Diseñar API',
            'assignee': self.dev.id,
            'initial_comment': '  Revisar contrato  ',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['position'], 5)
        self.assertEqual(response.data['reporter'], self.owner.id)
        comment = TaskComment.objects.get(task_id=response.data['id'])
        self.assertEqual(comment.content, 'Revisar contrato')

    def test_first_task_of_column_gets_position_one(self):
        response = self.client.post('/api/v1/tasks/', {
            'project': self.project.id, 'title': 'A', 'status': 'BACKLOG',
        }, format='json')
        self.assertEqual(response.data['position'], 1)

    def test_developer_cannot_create(self):
        self.client.authenticate_user(self.dev)
        response = self.client.post('/api/v1/tasks/', {'project': self.project.id, 'title': 'X'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_sprint_must_belong_to_project(self):
        other_sprint = TestDataFactory.create_sprint(TestDataFactory.create_project(self.org))
        response = self.client.post('/api/v1/tasks/', {
            'project': self.project.id, 'title': 'X', 'sprint': other_sprint.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inactive_assignee_is_rejected(self):
        inactive = TestDataFactory.create_user(self.org, role='Developer', is_active=False)
        response = self.client.post('/api/v1/tasks/', {
            'project': self.project.id, 'title': 'X', 'assignee': inactive.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_visibility(self):
        mine = self._task(assignee=self.dev)
        self._task()
        other_project = TestDataFactory.create_project(self.org, owner=self.ceo)
        TestDataFactory.create_task(other_project)

        response = self.client.get('/api/v1/tasks/')
        self.assertEqual(response.data['count'], 2)

        self.client.authenticate_user(self.dev)
        response = self.client.get('/api/v1/tasks/', {'project': self.project.id})
        self.assertEqual([row['id'] for row in response.data['results']], [mine.id])

        self.client.authenticate_user(self.ceo)
        response = self.client.get('/api/v1/tasks/')
        self.assertEqual(response.data['count'], 3)

    def test_assignee_may_only_change_status(self):
        task = self._task(assignee=self.dev)
        self.client.authenticate_user(self.dev)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'status': 'IN_PROGRESS'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'title': 'Nuevo'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_done_requires_review(self):
        task = self._task(status='IN_PROGRESS')
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'status': 'DONE'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_review_approval(self):
        task = self._task(status='REVIEW', assignee=self.dev)
        self.client.authenticate_user(self.dev)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'status': 'DONE'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'status': 'TODO'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.owner)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'status': 'DONE'}, format='json')
        self.assertEqual(response.data['status'], 'DONE')

    def test_reporter_can_approve(self):
        reporter = TestDataFactory.create_user(self.org, role='Developer')
        task = self._task(status='REVIEW', reporter=reporter)
        self.client.authenticate_user(reporter)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'status': 'DONE'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_done_task_is_locked_for_non_admins(self):
        task = self._task(status='DONE')
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'priority': 'HIGH'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.ceo)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/', {'priority': 'HIGH'}, format='json')
        self.assertEqual(response.data['priority'], 'HIGH')

    def test_detail_access(self):
        task = self._task()
        self.client.authenticate_user(self.dev)
        response = self.client.get(f'/api/v1/tasks/{task.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_move_between_columns(self):
        a = self._task(title='a', status='TODO', position=1)
        b = self._task(title='b', status='TODO', position=2)
        c = self._task(title='c', status='TODO', position=3)
        d = self._task(title='d', status='IN_PROGRESS', position=1)

        response = self.client.patch(f'/api/v1/tasks/{a.id}/move/', {'status': 'IN_PROGRESS', 'position': 1},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        positions = {t.title: (t.status, t.position) for t in Task.objects.filter(project=self.project)}
        self.assertEqual(positions, {
            'a': ('IN_PROGRESS', 1),
            'd': ('IN_PROGRESS', 2),
            'b': ('TODO', 1),
            'c': ('TODO', 2),
        })
        self.assertTrue(AuditLog.objects.filter(action='task_move', object_id=str(a.id)).exists())
        b.refresh_from_db()
        c.refresh_from_db()
        d.refresh_from_db()
        self.assertEqual((b.position, c.position, d.position), (1, 2, 2))

    def test_move_inside_column(self):
        a = self._task(title='a', position=1)
        b = self._task(title='b', position=2)
        c = self._task(title='c', position=3)
        self.client.patch(f'/api/v1/tasks/{c.id}/move/', {'status': 'TODO', 'position': 1}, format='json')
        order = list(Task.objects.filter(project=self.project).order_by('position').values_list('title', flat=True))
        self.assertEqual(order, ['c', 'a', 'b'])

        self.client.patch(f'/api/v1/tasks/{c.id}/move/', {'status': 'TODO', 'position': 3}, format='json')
        a.refresh_from_db()
        b.refresh_from_db()
        self.assertEqual((a.position, b.position), (1, 2))

    def test_move_to_done_requires_review(self):
        task = self._task(status='TODO')
        response = self.client.patch(f'/api/v1/tasks/{task.id}/move/', {'status': 'DONE', 'position': 1},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_kanban(self):
        sprint = TestDataFactory.create_sprint(self.project)
        self._task(status='TODO', sprint=sprint)
        self._task(status='DONE')
        response = self.client.get(f'/api/v1/tasks/kanban/{self.project.id}/')
        self.assertEqual(set(response.data.keys()), {'BACKLOG', 'TODO', 'IN_PROGRESS', 'REVIEW', 'DONE'})
        self.assertEqual(len(response.data['TODO']), 1)
        self.assertEqual(len(response.data['DONE']), 1)

        response = self.client.get(f'/api/v1/tasks/kanban/{self.project.id}/', {'sprint': sprint.id})
        self.assertEqual(len(response.data['DONE']), 0)

    def test_non_numeric_ids_in_query_are_rejected(self):
        response = self.client.get(f'/api/v1/tasks/kanban/{self.project.id}/', {'sprint': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('sprint', response.data)

        response = self.client.get('/api/v1/tasks/', {'project': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('project', response.data)

    def test_assign(self):
        supervisor = TestDataFactory.create_user(self.org, role='Supervisor')
        project = TestDataFactory.create_project(self.org, owner=supervisor, members=[self.dev])
        task = TestDataFactory.create_task(project)
        outsider = TestDataFactory.create_user(self.org, role='Developer')

        self.client.authenticate_user(supervisor)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/assign/', {'assignee': outsider.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.patch(f'/api/v1/tasks/{task.id}/assign/', {'assignee': self.dev.id}, format='json')
        self.assertEqual(response.data['assignee'], self.dev.id)

        # Project managers may assign anyone in the organization
        self.client.authenticate_user(self.owner)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/assign/', {'assignee': outsider.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.authenticate_user(self.dev)
        response = self.client.patch(f'/api/v1/tasks/{task.id}/assign/', {'assignee': self.dev.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_comments(self):
        task = self._task()
        self.client.post(f'/api/v1/tasks/{task.id}/comments/', {'content': 'primero'}, format='json')
        self.client.post(f'/api/v1/tasks/{task.id}/comments/', {'content': 'segundo'}, format='json')
        response = self.client.post(f'/api/v1/tasks/{task.id}/comments/', {'content': '   '}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(f'/api/v1/tasks/{task.id}/comments/')
        self.assertEqual([c['content'] for c in response.data], ['segundo', 'primero'])

    def test_delete_by_reporter(self):
        reporter = TestDataFactory.create_user(self.org, role='Supervisor')
        task = self._task(reporter=reporter)
        self.client.authenticate_user(self.dev)
        response = self.client.delete(f'/api/v1/tasks/{task.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(reporter)
        response = self.client.delete(f'/api/v1/tasks/{task.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_dashboard_stats(self):
        yesterday = timezone.localdate() - timedelta(days=1)
        self._task(assignee=self.dev, priority='HIGH', due_date=yesterday)
        self._task(assignee=self.dev, status='DONE', due_date=yesterday)
        self._task()

        self.client.authenticate_user(self.dev)
        response = self.client.get('/api/v1/tasks/stats/dashboard/')
        self.assertEqual(response.data['total_tasks'], 2)
        self.assertEqual(response.data['overdue_tasks'], 1)
        self.assertEqual(response.data['tasks_by_priority'], {'HIGH': 1, 'MEDIUM': 1})

        self.client.authenticate_user(self.ceo)
        response = self.client.get('/api/v1/tasks/stats/dashboard/')
        self.assertEqual(response.data['total_tasks'], 3)


class ExpenseAPITests(TestCase):
    """Test expense endpoints"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.cfo = TestDataFactory.create_user(self.org, role='CFO')
        self.pm = TestDataFactory.create_user(self.org, role='Project Manager')
        self.project = TestDataFactory.create_project(self.org, owner=self.pm)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.pm)

    def test_create_sets_user_and_organization(self):
        response = self.client.post('/api/v1/expenses/', {
            'description': 'Taxi aeropuerto',
            'amount': '350.00',
            'category': 'Transporte',
            'currency': 'mxn',
            'date': '2025-02-10',
            'project': self.project.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        expense = Expense.objects.get(pk=response.data['id'])
        self.assertEqual(expense.user, self.pm)
        self.assertEqual(expense.organization, self.org)
        self.assertEqual(expense.currency, 'MXN')
        self.assertEqual(expense.status, 'DRAFT')
        self.assertEqual(response.data['project_name'], self.project.name)

    def test_amount_must_be_positive(self):
        response = self.client.post('/api/v1/expenses/', {
            'description': 'x', 'amount': '0', 'category': 'x', 'date': '2025-02-10',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('amount', response.data)

    def test_project_of_other_organization_is_rejected(self):
        foreign = TestDataFactory.create_project(TestDataFactory.create_organization())
        response = self.client.post('/api/v1/expenses/', {
            'description': 'x', 'amount': '10', 'category': 'x', 'date': '2025-02-10', 'project': foreign.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters(self):
        TestDataFactory.create_expense(self.org, description='Hotel Monterrey', category='Hospedaje',
                                       status='SUBMITTED')
        TestDataFactory.create_expense(self.org, description='Comida cliente', category='Alimentos',
                                       project=self.project)
        TestDataFactory.create_expense(TestDataFactory.create_organization(), description='Ajeno')

        response = self.client.get('/api/v1/expenses/')
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/v1/expenses/', {'status': 'SUBMITTED'})
        self.assertEqual([e['description'] for e in response.data['results']], ['Hotel Monterrey'])
        response = self.client.get('/api/v1/expenses/', {'status': 'all', 'category': 'all'})
        self.assertEqual(response.data['count'], 2)
        response = self.client.get('/api/v1/expenses/', {'search': 'aliment'})
        self.assertEqual([e['description'] for e in response.data['results']], ['Comida cliente'])
        response = self.client.get('/api/v1/expenses/', {'project': self.project.id})
        self.assertEqual(response.data['count'], 1)

    def test_malformed_project_filter_is_rejected(self):
        response = self.client.get('/api/v1/expenses/', {'project': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_approval_requires_permission(self):
        expense = TestDataFactory.create_expense(self.org, user=self.pm, status='SUBMITTED')
        response = self.client.patch(f'/api/v1/expenses/{expense.id}/', {'status': 'APPROVED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_approval_and_reimbursement_are_stamped(self):
        expense = TestDataFactory.create_expense(self.org, user=self.pm, status='SUBMITTED')
        self.client.authenticate_user(self.cfo)
        response = self.client.patch(f'/api/v1/expenses/{expense.id}/', {'status': 'APPROVED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['approved_by'], self.cfo.id)
        self.assertIsNotNone(response.data['approved_at'])

        response = self.client.patch(f'/api/v1/expenses/{expense.id}/', {'status': 'REIMBURSED'}, format='json')
        self.assertIsNotNone(response.data['reimbursed_at'])
        self.assertTrue(AuditLog.objects.filter(model_name='Expense', action='update').exists())

    def test_project_manager_cannot_delete(self):
        expense = TestDataFactory.create_expense(self.org, user=self.pm)
        response = self.client.delete(f'/api/v1/expenses/{expense.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.cfo)
        response = self.client.delete(f'/api/v1/expenses/{expense.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Expense.objects.filter(pk=expense.id).exists())

    def test_developer_has_no_expense_access(self):
        dev = TestDataFactory.create_user(self.org, role='Developer')
        self.client.authenticate_user(dev)
        response = self.client.get('/api/v1/expenses/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class TimeEntryAPITests(TestCase):
    """Test time entry endpoints"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.dev = TestDataFactory.create_user(self.org, role='Developer')
        self.owner = TestDataFactory.create_user(self.org, role='Gerente Operaciones')
        self.project = TestDataFactory.create_project(self.org, owner=self.owner, members=[self.dev])
        self.task = TestDataFactory.create_task(self.project, assignee=self.dev)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.dev)

    def test_log_hours_against_task(self):
        response = self.client.post('/api/v1/time-entries/', {
            'task': self.task.id, 'hours': '3.5', 'date': '2025-02-11', 'description': 'Endpoints de login',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        entry = TimeEntry.objects.get(pk=response.data['id'])
        self.assertEqual(entry.user, self.dev)
        self.assertEqual(entry.project, self.project)
        self.assertEqual(response.data['task_title'], self.task.title)

    def test_task_must_belong_to_project(self):
        other = TestDataFactory.create_project(self.org)
        response = self.client.post('/api/v1/time-entries/', {
            'project': other.id, 'task': self.task.id, 'hours': '1', 'date': '2025-02-11',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('task', response.data)

    def test_hours_are_bounded(self):
        response = self.client.post('/api/v1/time-entries/', {
            'project': self.project.id, 'hours': '25', 'date': '2025-02-11',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_defaults_to_fifty_and_filters(self):
        TestDataFactory.create_time_entry(self.org, user=self.dev, project=self.project, task=self.task)
        TestDataFactory.create_time_entry(self.org, user=self.dev, project=self.project, status='APPROVED')
        TestDataFactory.create_time_entry(TestDataFactory.create_organization())

        response = self.client.get('/api/v1/time-entries/')
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(response.data['page_size'], 50)
        response = self.client.get('/api/v1/time-entries/', {'task': self.task.id})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/time-entries/', {'status': 'APPROVED'})
        self.assertEqual(response.data['count'], 1)

    def test_developer_cannot_edit_or_delete(self):
        entry = TestDataFactory.create_time_entry(self.org, user=self.dev, project=self.project)
        response = self.client.patch(f'/api/v1/time-entries/{entry.id}/', {'hours': '2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.owner)
        response = self.client.patch(f'/api/v1/time-entries/{entry.id}/', {'hours': '2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.delete(f'/api/v1/time-entries/{entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
