"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backend.core.management.commands.seed_roles import grant_matrix_permissions
from backend.core.models import Organization, Role
from backend.core.roles import get_role_level
from backend.parties.models import Client, Supplier
from backend.projects.models import Expense, Project, Sprint, Task, TimeEntry
from backend.finance.models import Account, AccountReceivable, AccountPayable, Invoice, PurchaseOrder
from backend.dispatches.models import Dispatch
from datetime import timedelta
from decimal import Decimal
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_organization(name=None, slug=None):
        """Create a test organization (tenant)"""
        if not name:
            name = f'Org_{TestDataFactory.random_string(6)}'
        if not slug:
            slug = f'org-{TestDataFactory.random_string(8).lower()}'
        return Organization.objects.create(name=name, slug=slug)

    @staticmethod
    def create_role(organization, name='CEO', level=None, is_system=False):
        """Get or create a role of the organization; standard roles get their seeded permissions"""
        role, created = Role.objects.get_or_create(
            organization=organization,
            name=name,
            defaults={
                'level': level if level is not None else get_role_level(name),
                'is_system': is_system,
            }
        )
        if created:
            grant_matrix_permissions(role)
        return role

    @staticmethod
    def create_user(organization=None, role=None, username=None, email=None, password='testpass123',
                    is_active=True):
        """
        Create a test user.

        ``role`` may be a Role or a role name; names are created inside the
        user's organization on demand.
        """
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        if isinstance(role, str):
            if organization is None:
                organization = TestDataFactory.create_organization()
            role = TestDataFactory.create_role(organization, role)
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            organization=organization,
            role=role,
        )
        if not is_active:
            user.is_active = False
            user.save(update_fields=['is_active'])
        return user

    @staticmethod
    def create_client(organization, name=None, **kwargs):
        """Create a test client"""
        if not name:
            name = f'Client_{TestDataFactory.random_string(6)}'
        return Client.objects.create(organization=organization, name=name, **kwargs)

    @staticmethod
    def create_supplier(organization, name=None, **kwargs):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        return Supplier.objects.create(organization=organization, name=name, **kwargs)

    @staticmethod
    def create_project(organization, owner=None, name=None, co_owners=None, members=None, **kwargs):
        """Create a test project"""
        if not name:
            name = f'Project_{TestDataFactory.random_string(6)}'
        project = Project.objects.create(organization=organization, owner=owner, name=name, **kwargs)
        if co_owners:
            project.co_owners.set(co_owners)
        if members:
            project.members.set(members)
        return project

    @staticmethod
    def create_sprint(project, name=None, start_date=None, end_date=None, members=None):
        """Create a test sprint, two weeks long by default"""
        if not name:
            name = f'Sprint_{TestDataFactory.random_string(4)}'
        if start_date is None:
            start_date = timezone.localdate()
        if end_date is None:
            end_date = start_date + timedelta(days=14)
        sprint = Sprint.objects.create(
            organization=project.organization,
            project=project,
            name=name,
            start_date=start_date,
            end_date=end_date,
        )
        if members:
            sprint.members.set(members)
        return sprint

    @staticmethod
    def create_task(project, title=None, status='TODO', position=0, **kwargs):
        """Create a test task"""
        if not title:
            title = f'Task_{TestDataFactory.random_string(6)}'
        return Task.objects.create(
            organization=project.organization,
            project=project,
            title=title,
            status=status,
            position=position,
            **kwargs
        )

    @staticmethod
    def create_expense(organization, amount=Decimal('100.00'), user=None, project=None, status='DRAFT', **kwargs):
        """Create a test expense"""
        return Expense.objects.create(
            organization=organization,
            user=user,
            project=project,
            description=kwargs.pop('description', f'Expense_{TestDataFactory.random_string(6)}'),
            amount=amount,
            category=kwargs.pop('category', 'Viáticos'),
            date=kwargs.pop('date', timezone.localdate()),
            status=status,
            **kwargs
        )

    @staticmethod
    def create_time_entry(organization, hours=Decimal('8.00'), user=None, project=None, **kwargs):
        """Create a test time entry"""
        return TimeEntry.objects.create(
            organization=organization,
            user=user,
            project=project,
            hours=hours,
            date=kwargs.pop('date', timezone.localdate()),
            **kwargs
        )

    @staticmethod
    def create_account_receivable(organization, amount=Decimal('1000.00'), concept=None, **kwargs):
        """Create a test account receivable with nothing paid"""
        if not concept:
            concept = f'AR_{TestDataFactory.random_string(6)}'
        kwargs.setdefault('amount_remaining', amount)
        return AccountReceivable.objects.create(organization=organization, concept=concept, amount=amount, **kwargs)

    @staticmethod
    def create_account_payable(organization, amount=Decimal('1000.00'), concept=None, **kwargs):
        """Create a test account payable with nothing paid"""
        if not concept:
            concept = f'AP_{TestDataFactory.random_string(6)}'
        kwargs.setdefault('amount_remaining', amount)
        return AccountPayable.objects.create(organization=organization, concept=concept, amount=amount, **kwargs)

    @staticmethod
    def create_invoice(organization, total=Decimal('1160.00'), number=None, status='SENT', **kwargs):
        """Create a test invoice"""
        if not number:
            number = f'INV-{TestDataFactory.random_string(6).upper()}'
        return Invoice.objects.create(
            organization=organization,
            number=number,
            amount=total,
            total=total,
            status=status,
            issue_date=kwargs.pop('issue_date', timezone.localdate()),
            **kwargs
        )

    @staticmethod
    def create_purchase_order(organization, amount=Decimal('1160.00'), folio=None, includes_vat=True,
                              status='DRAFT', created_by=None, **kwargs):
        """Create a test purchase order"""
        if not folio:
            folio = f'OC-{TestDataFactory.random_string(8).upper()}'
        return PurchaseOrder.objects.create(
            organization=organization,
            folio=folio,
            description=kwargs.pop('description', 'Test purchase order'),
            amount=amount,
            includes_vat=includes_vat,
            status=status,
            created_by=created_by,
            **kwargs
        )

    @staticmethod
    def create_ledger_account(organization, type='ASSET', code=None, name=None, **kwargs):
        """Create a chart-of-accounts entry"""
        if not code:
            code = TestDataFactory.random_string(6).upper()
        return Account.objects.create(organization=organization, code=code, name=name or f'Account {code}',
                                      type=type, **kwargs)

    @staticmethod
    def create_dispatch(sender, recipient, content='Review the quarterly budget', **kwargs):
        """Create a dispatch in the sender's organization"""
        return Dispatch.objects.create(organization=sender.organization, sender=sender, recipient=recipient,
                                       content=content, **kwargs)


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
