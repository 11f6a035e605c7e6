"""
Test suite for the finance module
Tests: amounts, payment registration, purchase order workflow, PDF, dashboard,
reconciliation and legacy import commands, journal and statements, flow recoveries,
tenant isolation
"""
import os
import tempfile
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status

from backend.core.models import AuditLog, Organization
from backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from backend.finance.legacy_import import parse_payment_complements
from backend.finance.models import (
    AccountReceivable, AccountPayable, PaymentComplement, Quote, QuoteItem, PurchaseOrder,
    JournalEntry, FlowRecovery, derive_payment_status,
)
from backend.finance.reconciliation import reconcile_organization, reconcile_receivable


def D(value):
    return Decimal(str(value))


class PaymentStatusTests(TestCase):
    """Test the shared status derivation"""

    def test_paid_when_nothing_remains(self):
        self.assertEqual(derive_payment_status(D('1000'), D('0')), 'PAID')
        self.assertEqual(derive_payment_status(D('999.99'), D('0.01')), 'PAID')

    def test_partial_when_something_paid(self):
        self.assertEqual(derive_payment_status(D('0.02'), D('999.98')), 'PARTIAL')

    def test_pending_when_nothing_paid(self):
        self.assertEqual(derive_payment_status(D('0'), D('1000')), 'PENDING')
        self.assertEqual(derive_payment_status(D('0.01'), D('999.99')), 'PENDING')


class PurchaseOrderModelTests(TestCase):
    """Test purchase order amount calculation"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()

    def test_amount_includes_vat(self):
        po = TestDataFactory.create_purchase_order(self.org, amount=D('1160.00'), includes_vat=True)
        self.assertEqual(po.subtotal, D('1000.00'))
        self.assertEqual(po.vat, D('160.00'))
        self.assertEqual(po.total, D('1160.00'))

    def test_amount_without_vat(self):
        po = TestDataFactory.create_purchase_order(self.org, amount=D('1000.00'), includes_vat=False)
        self.assertEqual(po.subtotal, D('1000.00'))
        self.assertEqual(po.vat, D('0.00'))
        self.assertEqual(po.total, D('1000.00'))

    def test_recalculated_when_vat_flag_changes(self):
        po = TestDataFactory.create_purchase_order(self.org, amount=D('1160.00'), includes_vat=False)
        po.includes_vat = True
        po.save()
        po.refresh_from_db()
        self.assertEqual(po.subtotal, D('1000.00'))
        self.assertEqual(po.total, D('1160.00'))

    def test_status_label(self):
        po = TestDataFactory.create_purchase_order(self.org, status='PENDING')
        self.assertEqual(po.status_label, 'Pendiente de Aprobación')


class QuoteModelTests(TestCase):
    def test_line_total_and_items_total(self):
        org = TestDataFactory.create_organization()
        quote = Quote.objects.create(organization=org, number='COT-1', date='2025-01-10')
        QuoteItem.objects.create(quote=quote, description='A', quantity=D('2'), unit_price=D('150.50'))
        QuoteItem.objects.create(quote=quote, description='B', quantity=D('1'), unit_price=D('99.00'))
        self.assertEqual(quote.get_items_total(), D('400.00'))


class FinanceAccessTests(TestCase):
    """Test that finance endpoints require financial access"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.client = AuthenticatedAPIClient()

    def test_developer_is_forbidden(self):
        user = TestDataFactory.create_user(self.org, role='Developer')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/accounts-receivable/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_accountant_is_allowed(self):
        user = TestDataFactory.create_user(self.org, role='Contador')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/accounts-receivable/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_accountant_cannot_approve_purchase_orders(self):
        user = TestDataFactory.create_user(self.org, role='Contador')
        po = TestDataFactory.create_purchase_order(self.org, status='PENDING')
        self.client.authenticate_user(user)
        response = self.client.patch(f'/api/v1/purchase-orders/{po.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertIn('finance:approve', response.data['detail'])

        response = self.client.patch(f'/api/v1/purchase-orders/{po.id}/submit/')
        self.assertNotEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        po.refresh_from_db()
        self.assertEqual(po.status, 'PENDING')

    def test_unauthenticated_is_rejected(self):
        response = self.client.get('/api/v1/accounts-payable/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_user_without_organization_is_forbidden(self):
        user = TestDataFactory.create_user(role='CFO')
        user.organization = None
        user.save()
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/invoices/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AccountReceivableAPITests(TestCase):
    """Test accounts receivable endpoints"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(self.org, role='CFO')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.customer = TestDataFactory.create_client(self.org)

    def test_create_sets_remaining_to_amount(self):
        response = self.client.post('/api/v1/accounts-receivable/', {
            'client': self.customer.id,
            'concept': 'Anticipo proyecto',
            'amount': '5000.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(D(response.data['amount_remaining']), D('5000.00'))
        self.assertEqual(D(response.data['amount_paid']), D('0.00'))
        self.assertEqual(response.data['status'], 'PENDING')
        self.assertTrue(AuditLog.objects.filter(model_name='AccountReceivable', action='create').exists())

    def test_create_rejects_client_of_other_organization(self):
        other_client = TestDataFactory.create_client(TestDataFactory.create_organization())
        response = self.client.post('/api/v1/accounts-receivable/', {
            'client': other_client.id,
            'concept': 'X',
            'amount': '10.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters_and_latest_payments(self):
        ar = TestDataFactory.create_account_receivable(self.org, concept='Servicio mensual', client=self.customer)
        TestDataFactory.create_account_receivable(self.org, concept='Otro', status='PAID')
        for day in range(1, 8):
            PaymentComplement.objects.create(organization=self.org, account_receivable=ar,
                                             amount=D('10.00'), payment_date=f'2025-01-0{day}')

        response = self.client.get('/api/v1/accounts-receivable/', {'status': 'PENDING'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        row = response.data['results'][0]
        self.assertEqual(len(row['payment_complements']), 5)
        self.assertEqual(row['payment_complements'][0]['payment_date'], '2025-01-07')

        response = self.client.get('/api/v1/accounts-receivable/', {'search': 'mensual'})
        self.assertEqual(response.data['count'], 1)

        response = self.client.get(f'/api/v1/accounts-receivable/{ar.id}/')
        self.assertEqual(len(response.data['payment_complements']), 7)

    def test_detail_of_other_organization_is_404(self):
        other = TestDataFactory.create_account_receivable(TestDataFactory.create_organization())
        response = self.client.get(f'/api/v1/accounts-receivable/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_statistics(self):
        TestDataFactory.create_account_receivable(self.org, amount=D('100.00'))
        TestDataFactory.create_account_receivable(self.org, amount=D('50.00'), status='OVERDUE')
        response = self.client.get('/api/v1/accounts-receivable/statistics/')
        self.assertEqual(D(response.data['total_pending']), D('100.00'))
        self.assertEqual(D(response.data['total_overdue']), D('50.00'))


class PaymentRegistrationTests(TestCase):
    """Test registering payments against receivables and payables"""

    def setUp(self):
        cache.clear()
        self.org = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(self.org, role='Contador')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.ar = TestDataFactory.create_account_receivable(self.org, amount=D('1000.00'))
        self.ap = TestDataFactory.create_account_payable(self.org, amount=D('500.00'))

    def test_partial_then_full_payment_on_receivable(self):
        response = self.client.post('/api/v1/payment-complements/', {
            'account_receivable': self.ar.id,
            'amount': '400.00',
            'payment_date': '2025-02-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.ar.refresh_from_db()
        self.assertEqual(self.ar.amount_paid, D('400.00'))
        self.assertEqual(self.ar.amount_remaining, D('600.00'))
        self.assertEqual(self.ar.status, 'PARTIAL')

        response = self.client.post('/api/v1/payment-complements/', {
            'account_receivable': self.ar.id,
            'amount': '600.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.ar.refresh_from_db()
        self.assertEqual(self.ar.amount_remaining, D('0.00'))
        self.assertEqual(self.ar.status, 'PAID')
        self.assertEqual(AuditLog.objects.filter(action='payment_add').count(), 2)

    def test_full_payment_marks_payable_paid(self):
        response = self.client.post('/api/v1/payment-complements/', {
            'account_payable': self.ap.id,
            'amount': '500.00',
            'payment_method': 'CASH',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.ap.refresh_from_db()
        self.assertTrue(self.ap.paid)
        self.assertEqual(self.ap.status, 'PAID')
        self.assertEqual(response.data['payment_method'], 'CASH')

    def test_zero_amount_is_rejected(self):
        response = self.client.post('/api/v1/payment-complements/', {
            'account_receivable': self.ar.id,
            'amount': '0',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(PaymentComplement.objects.count(), 0)

    def test_missing_account_is_rejected(self):
        response = self.client.post('/api/v1/payment-complements/', {'amount': '10.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_both_accounts_is_rejected(self):
        response = self.client.post('/api/v1/payment-complements/', {
            'account_receivable': self.ar.id,
            'account_payable': self.ap.id,
            'amount': '10.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_account_of_other_organization_is_404(self):
        other_ar = TestDataFactory.create_account_receivable(TestDataFactory.create_organization())
        response = self.client.post('/api/v1/payment-complements/', {
            'account_receivable': other_ar.id,
            'amount': '10.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        other_ar.refresh_from_db()
        self.assertEqual(other_ar.amount_paid, D('0.00'))

    def test_listings_by_account_client_and_supplier(self):
        customer = TestDataFactory.create_client(self.org)
        supplier = TestDataFactory.create_supplier(self.org)
        self.ar.client = customer
        self.ar.save()
        self.ap.supplier = supplier
        self.ap.save()
        self.client.post('/api/v1/payment-complements/', {'account_receivable': self.ar.id, 'amount': '1.00'}, format='json')
        self.client.post('/api/v1/payment-complements/', {'account_payable': self.ap.id, 'amount': '2.00'}, format='json')

        response = self.client.get(f'/api/v1/payment-complements/account-receivable/{self.ar.id}/')
        self.assertEqual(len(response.data), 1)
        response = self.client.get(f'/api/v1/payment-complements/account-payable/{self.ap.id}/')
        self.assertEqual(len(response.data), 1)
        response = self.client.get(f'/api/v1/payment-complements/client/{customer.id}/')
        self.assertEqual(response.data[0]['client_name'], customer.name)
        response = self.client.get(f'/api/v1/payment-complements/supplier/{supplier.id}/')
        self.assertEqual(response.data[0]['supplier_name'], supplier.name)
        response = self.client.get('/api/v1/payment-complements/')
        self.assertEqual(response.data['count'], 2)

    def test_dashboard_refreshes_after_payment(self):
        response = self.client.get('/api/v1/finance/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(D(response.data['accounts_receivable_pending']), D('1000.00'))
        self.assertEqual(D(response.data['accounts_payable_pending']), D('500.00'))

        self.client.post('/api/v1/payment-complements/', {'account_payable': self.ap.id, 'amount': '500.00'}, format='json')
        response = self.client.get('/api/v1/finance/dashboard/')
        self.assertEqual(D(response.data['accounts_payable_pending']), D('0'))


class PurchaseOrderAPITests(TestCase):
    """Test purchase order endpoints and workflow"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(self.org, role='CEO', username='director')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.supplier = TestDataFactory.create_supplier(self.org, tax_id='XAXX010101000')

    def test_create_computes_amounts(self):
        response = self.client.post('/api/v1/purchase-orders/', {
            'folio': 'OC-001',
            'description': 'Material eléctrico',
            'amount': '1160.00',
            'includes_vat': True,
            'supplier': self.supplier.id,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(D(response.data['subtotal']), D('1000.00'))
        self.assertEqual(D(response.data['vat']), D('160.00'))
        self.assertEqual(response.data['status'], 'DRAFT')
        self.assertEqual(response.data['created_by'], self.user.id)

    def test_duplicate_folio_is_rejected(self):
        TestDataFactory.create_purchase_order(self.org, folio='OC-DUP')
        response = self.client.post('/api/v1/purchase-orders/', {
            'folio': 'OC-DUP', 'description': 'x', 'amount': '10.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_payment_window_must_be_ordered(self):
        response = self.client.post('/api/v1/purchase-orders/', {
            'folio': 'OC-002', 'description': 'x', 'amount': '10.00',
            'min_payment_date': '2025-03-10', 'max_payment_date': '2025-03-01',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_workflow(self):
        po = TestDataFactory.create_purchase_order(self.org, created_by=self.user)

        response = self.client.post(f'/api/v1/purchase-orders/{po.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/purchase-orders/{po.id}/submit/')
        self.assertEqual(response.data['status'], 'PENDING')

        response = self.client.post(f'/api/v1/purchase-orders/{po.id}/approve/')
        self.assertEqual(response.data['status'], 'APPROVED')
        po.refresh_from_db()
        self.assertEqual(po.authorized_by, self.user)
        self.assertIsNotNone(po.authorized_at)

        response = self.client.post(f'/api/v1/purchase-orders/{po.id}/mark-paid/')
        self.assertEqual(response.data['status'], 'PAID')
        self.assertTrue(AuditLog.objects.filter(action='po_paid', object_reference=po.folio).exists())

    def test_reject_requires_pending(self):
        po = TestDataFactory.create_purchase_order(self.org, status='APPROVED')
        response = self.client.post(f'/api/v1/purchase-orders/{po.id}/reject/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filters(self):
        TestDataFactory.create_purchase_order(self.org, folio='OC-A', supplier=self.supplier, status='PENDING')
        TestDataFactory.create_purchase_order(self.org, folio='OC-B', comments='urgente')
        response = self.client.get('/api/v1/purchase-orders/', {'supplier': self.supplier.id})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/purchase-orders/', {'search': 'urgente'})
        self.assertEqual(response.data['results'][0]['folio'], 'OC-B')

    def test_statistics(self):
        TestDataFactory.create_purchase_order(self.org, amount=D('100.00'), includes_vat=False, status='PENDING')
        TestDataFactory.create_purchase_order(self.org, amount=D('200.00'), includes_vat=False, status='PENDING')
        TestDataFactory.create_purchase_order(self.org, amount=D('50.00'), includes_vat=False, status='PAID')
        response = self.client.get('/api/v1/purchase-orders/statistics/')
        self.assertEqual(response.data['pending'], 2)
        self.assertEqual(D(response.data['pending_amount']), D('300.00'))
        self.assertEqual(response.data['paid'], 1)
        self.assertEqual(response.data['draft'], 0)
        self.assertEqual(D(response.data['total_amount']), D('350.00'))

    def test_pdf(self):
        po = TestDataFactory.create_purchase_order(self.org, supplier=self.supplier, created_by=self.user,
                                                   comments='Entregar en obra',
                                                   min_payment_date='2025-03-01', max_payment_date='2025-03-15')
        response = self.client.get(f'/api/v1/purchase-orders/{po.id}/pdf/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertTrue(response.content.startswith(b'%PDF'))


class QuoteAndFixedCostAPITests(TestCase):
    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(self.org, role='CFO')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_quote_amount_from_items(self):
        response = self.client.post('/api/v1/quotes/', {
            'number': 'COT-10',
            'date': '2025-01-15',
            'amount': '1.00',
            'items': [
                {'description': 'Diseño', 'quantity': '2', 'unit_price': '500.00'},
                {'description': 'Hosting', 'quantity': '1', 'unit_price': '250.00'},
            ],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(D(response.data['amount']), D('1250.00'))
        self.assertEqual(len(response.data['items']), 2)

    def test_fixed_cost_monthly_total(self):
        self.client.post('/api/v1/fixed-costs/', {'name': 'Renta', 'amount': '8000.00', 'due_day': 5}, format='json')
        self.client.post('/api/v1/fixed-costs/', {'name': 'Seguro', 'amount': '12000.00', 'periodicity': 'ANNUAL'}, format='json')
        self.client.post('/api/v1/fixed-costs/', {'name': 'Viejo', 'amount': '99.00', 'is_active': False}, format='json')
        response = self.client.get('/api/v1/fixed-costs/statistics/')
        self.assertEqual(D(response.data['total_monthly']), D('8000.00'))

    def test_fixed_cost_due_day_range(self):
        response = self.client.post('/api/v1/fixed-costs/', {'name': 'X', 'amount': '1.00', 'due_day': 32}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_invoice_statistics(self):
        TestDataFactory.create_invoice(self.org, total=D('100.00'), status='PAID')
        TestDataFactory.create_invoice(self.org, total=D('40.00'), status='OVERDUE')
        response = self.client.get('/api/v1/invoices/statistics/')
        self.assertEqual(D(response.data['total_invoiced']), D('140.00'))
        self.assertEqual(D(response.data['total_paid']), D('100.00'))
        self.assertEqual(D(response.data['total_overdue']), D('40.00'))


class TenantHeaderTests(TestCase):
    """Test that superadmins may act on another organization"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.other_org = TestDataFactory.create_organization()
        TestDataFactory.create_account_receivable(self.other_org, concept='Ajena')
        self.client = AuthenticatedAPIClient()

    def test_superadmin_can_switch_organization(self):
        user = TestDataFactory.create_user(self.org, role='Superadmin')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/accounts-receivable/', HTTP_X_ORG_ID=str(self.other_org.id))
        self.assertEqual(response.data['count'], 1)

    def test_header_ignored_for_other_roles(self):
        user = TestDataFactory.create_user(self.org, role='CFO')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/accounts-receivable/', HTTP_X_ORG_ID=str(self.other_org.id))
        self.assertEqual(response.data['count'], 0)

    def test_unknown_organization_is_forbidden(self):
        user = TestDataFactory.create_user(self.org, role='Superadmin')
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/accounts-receivable/', HTTP_X_TENANT_ID='999999')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class ReconciliationTests(TestCase):
    """Test recomputing account aggregates from payment complements"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()

    def _pay(self, account, amount, **kwargs):
        field = 'account_receivable' if isinstance(account, AccountReceivable) else 'account_payable'
        return PaymentComplement.objects.create(organization=self.org, amount=D(amount),
                                                payment_date='2025-01-01', **{field: account}, **kwargs)

    def test_receivable_aggregates_are_recomputed(self):
        ar = TestDataFactory.create_account_receivable(self.org, amount=D('1000.00'))
        self._pay(ar, '300.00')
        self._pay(ar, '200.00')

        summary = reconcile_organization(self.org, apply=True)
        ar.refresh_from_db()
        self.assertEqual(ar.amount_paid, D('500.00'))
        self.assertEqual(ar.amount_remaining, D('500.00'))
        self.assertEqual(ar.status, 'PARTIAL')
        self.assertEqual(summary.ar_updated, 1)

    def test_consistent_account_is_unchanged(self):
        TestDataFactory.create_account_receivable(self.org, amount=D('1000.00'))
        summary = reconcile_organization(self.org, apply=True)
        self.assertEqual(summary.ar_unchanged, 1)
        self.assertEqual(summary.ar_updated, 0)

    def test_dry_run_writes_nothing(self):
        ar = TestDataFactory.create_account_receivable(self.org, amount=D('100.00'))
        self._pay(ar, '100.00')
        summary = reconcile_organization(self.org, apply=False)
        ar.refresh_from_db()
        self.assertEqual(summary.ar_updated, 1)
        self.assertEqual(ar.status, 'PENDING')
        self.assertEqual(summary.ar_changes[0].status_after, 'PAID')

    def test_payable_fully_paid_sets_flag(self):
        ap = TestDataFactory.create_account_payable(self.org, amount=D('250.00'))
        self._pay(ap, '250.00')
        reconcile_organization(self.org, apply=True)
        ap.refresh_from_db()
        self.assertEqual(ap.status, 'PAID')
        self.assertTrue(ap.paid)

    def test_payable_without_complements_keeps_recorded_payment(self):
        ap = TestDataFactory.create_account_payable(
            self.org, amount=D('1000.00'), amount_paid=D('400.00'), amount_remaining=D('1000.00'), status='PENDING'
        )
        summary = reconcile_organization(self.org, apply=True)
        ap.refresh_from_db()
        self.assertEqual(ap.amount_paid, D('400.00'))
        self.assertEqual(ap.amount_remaining, D('600.00'))
        self.assertEqual(ap.status, 'PARTIAL')
        self.assertTrue(summary.ap_changes[0].preserved)

    def test_settled_payable_is_stable_on_rerun(self):
        ap = TestDataFactory.create_account_payable(self.org, amount=D('250.00'))
        self._pay(ap, '250.00')
        first = reconcile_organization(self.org, apply=True)
        self.assertEqual(first.ap_updated, 1)
        ap.refresh_from_db()
        self.assertEqual(ap.amount_remaining, D('0.00'))

        second = reconcile_organization(self.org, apply=True)
        self.assertEqual(second.ap_updated, 0)
        self.assertEqual(second.ap_unchanged, 1)

    def test_preserved_payable_is_stable_on_rerun(self):
        TestDataFactory.create_account_payable(
            self.org, amount=D('1000.00'), amount_paid=D('400.00'), amount_remaining=D('1000.00')
        )
        reconcile_organization(self.org, apply=True)
        summary = reconcile_organization(self.org, apply=True)
        self.assertEqual(summary.ap_updated, 0)

    def test_failing_account_is_counted_and_skipped(self):
        broken = TestDataFactory.create_account_receivable(self.org, amount=D('100.00'))
        healthy = TestDataFactory.create_account_receivable(self.org, amount=D('100.00'))
        self._pay(broken, '100.00')
        self._pay(healthy, '100.00')
        original = reconcile_receivable

        def flaky(ar):
            if ar.id == broken.id:
                raise ValueError('corrupt row')
            return original(ar)

        with mock.patch('backend.finance.reconciliation.reconcile_receivable', side_effect=flaky):
            with self.assertLogs('backend.finance.reconciliation', level='ERROR') as logs:
                summary = reconcile_organization(self.org, apply=True)

        self.assertEqual(summary.ar_errors, 1)
        self.assertEqual(summary.ar_updated, 1)
        self.assertEqual(summary.ar_total, 2)
        self.assertIn(f'AR {broken.id}', logs.output[0])
        healthy.refresh_from_db()
        broken.refresh_from_db()
        self.assertEqual(healthy.status, 'PAID')
        self.assertEqual(broken.status, 'PENDING')

    def test_command_dry_run_and_apply(self):
        ar = TestDataFactory.create_account_receivable(self.org, amount=D('100.00'), concept='Cobro enero')
        self._pay(ar, '100.00')

        out = StringIO()
        call_command('link_payments_to_accounts', stdout=out)
        ar.refresh_from_db()
        self.assertEqual(ar.status, 'PENDING')
        self.assertIn('GLOBAL SUMMARY', out.getvalue())
        self.assertIn('Cobro enero', out.getvalue())

        call_command('link_payments_to_accounts', '--apply', '--organization', str(self.org.id), stdout=StringIO())
        ar.refresh_from_db()
        self.assertEqual(ar.status, 'PAID')

    def test_command_fails_without_organizations(self):
        Organization.objects.all().delete()
        with self.assertRaises(CommandError):
            call_command('link_payments_to_accounts', stdout=StringIO())


DUMP = """
-- MySQL dump
INSERT INTO `cuentas_cobrar` VALUES (1,'x');
INSERT INTO `complementos_pago` VALUES (10,501,'2024-05-03','Primer pago',862.07,1000.00,'2024-05-03 10:00:00','2024-05-03 10:00:00'),(11,501,'2024-06-03','Segundo pago',431.03,500.00,'2024-06-03 10:00:00','2024-06-03 10:00:00'),(12,999,'2024-06-04','Sin cuenta',10.00,11.60,'2024-06-04 10:00:00','2024-06-04 10:00:00');
"""


class LegacyImportTests(TestCase):
    """Test importing legacy partial payments"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.ar = TestDataFactory.create_account_receivable(self.org, amount=D('3000.00'), legacy_id=501)
        handle, self.path = tempfile.mkstemp(suffix='.sql')
        with os.fdopen(handle, 'w', encoding='utf-8') as f:
            f.write(DUMP)

    def tearDown(self):
        os.remove(self.path)

    def test_parse_rows(self):
        rows = parse_payment_complements(DUMP)
        self.assertEqual(len(rows), 3)
        self.assertEqual(rows[0].id, 10)
        self.assertEqual(rows[0].account_id, 501)
        self.assertEqual(rows[0].amount_with_vat, D('1000.00'))
        self.assertEqual(str(rows[1].payment_day), '2024-06-03')

    def test_parse_without_table(self):
        self.assertEqual(parse_payment_complements('INSERT INTO `otra` VALUES (1);'), [])

    def test_dry_run_creates_nothing(self):
        call_command('import_payment_complements', self.path, stdout=StringIO())
        self.assertEqual(PaymentComplement.objects.count(), 0)

    def test_apply_is_idempotent(self):
        call_command('import_payment_complements', self.path, '--apply', stdout=StringIO())
        self.assertEqual(PaymentComplement.objects.filter(account_receivable=self.ar).count(), 2)
        payment = PaymentComplement.objects.get(legacy_id=10)
        self.assertEqual(payment.amount, D('1000.00'))
        self.assertEqual(payment.payment_method, 'TRANSFER')
        self.assertEqual(payment.notes, 'Primer pago')

        call_command('import_payment_complements', self.path, '--apply', stdout=StringIO())
        self.assertEqual(PaymentComplement.objects.count(), 2)

        # Aggregates are only refreshed by the reconciliation command
        self.ar.refresh_from_db()
        self.assertEqual(self.ar.amount_paid, D('0.00'))
        call_command('link_payments_to_accounts', '--apply', stdout=StringIO())
        self.ar.refresh_from_db()
        self.assertEqual(self.ar.amount_paid, D('1500.00'))
        self.assertEqual(self.ar.status, 'PARTIAL')

    def test_apply_invalidates_dashboard_cache(self):
        with mock.patch('backend.finance.management.commands.import_payment_complements.invalidate_finance_dashboard') as invalidate:
            call_command('import_payment_complements', self.path, stdout=StringIO())
            invalidate.assert_not_called()
            call_command('import_payment_complements', self.path, '--apply', stdout=StringIO())
        invalidate.assert_called_once_with(self.org.id)

    def test_missing_file(self):
        with self.assertRaises(CommandError):
            call_command('import_payment_complements', '/nonexistent/dump.sql', stdout=StringIO())


class JournalEntryAPITests(TestCase):
    """Test the chart of accounts and journal postings"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.user = TestDataFactory.create_user(self.org, role='CFO')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.bank = TestDataFactory.create_ledger_account(self.org, 'ASSET', code='1010', name='Bank BBVA')
        self.sales = TestDataFactory.create_ledger_account(self.org, 'REVENUE', code='4010', name='Sales')

    def post_entry(self, debit, credit, amount, date='2025-03-10', description='Sale'):
        return self.client.post('/api/v1/journal-entries/', {
            'description': description,
            'date': date,
            'lines': [{'debit_account': debit.id, 'credit_account': credit.id, 'amount': str(amount)}],
        }, format='json')

    def test_create_account_and_duplicate_code(self):
        response = self.client.post('/api/v1/accounts/', {'code': '2010', 'name': 'Suppliers', 'type': 'LIABILITY'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(D(response.data['balance']), D('0'))

        response = self.client.post('/api/v1/accounts/', {'code': '2010', 'name': 'Again', 'type': 'LIABILITY'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_same_code_allowed_in_other_organization(self):
        other = TestDataFactory.create_organization()
        TestDataFactory.create_ledger_account(other, code='5010')
        response = self.client.post('/api/v1/accounts/', {'code': '5010', 'name': 'Rent', 'type': 'EXPENSE'},
                                    format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_list_filters_by_type(self):
        response = self.client.get('/api/v1/accounts/', {'type': 'REVENUE'})
        self.assertEqual([a['code'] for a in response.data], ['4010'])

    def test_posting_moves_balances(self):
        response = self.post_entry(self.bank, self.sales, D('1000.00'))
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(len(response.data['lines']), 1)

        self.bank.refresh_from_db()
        self.sales.refresh_from_db()
        self.assertEqual(self.bank.balance, D('1000.00'))
        self.assertEqual(self.sales.balance, D('-1000.00'))

        response = self.client.get(f'/api/v1/accounts/{self.sales.id}/balance/')
        self.assertEqual(D(response.data['credit_total']), D('1000.00'))
        self.assertEqual(D(response.data['balance']), D('1000.00'))

        response = self.client.get(f'/api/v1/accounts/{self.bank.id}/')
        self.assertEqual(response.data['debit_lines_count'], 1)
        self.assertEqual(len(response.data['recent_debit_lines']), 1)

    def test_entry_without_lines_is_rejected(self):
        response = self.client.post('/api/v1/journal-entries/', {'description': 'Empty', 'date': '2025-03-10',
                                                                 'lines': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(JournalEntry.objects.exists())

    def test_line_validation(self):
        response = self.post_entry(self.bank, self.sales, D('0'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self.post_entry(self.bank, self.bank, D('10.00'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_foreign_account_is_rejected(self):
        other = TestDataFactory.create_organization()
        foreign = TestDataFactory.create_ledger_account(other, 'ASSET')
        response = self.post_entry(foreign, self.sales, D('100.00'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(JournalEntry.objects.exists())
        foreign.refresh_from_db()
        self.assertEqual(foreign.balance, D('0'))

    def test_delete_reverses_balances(self):
        entry_id = self.post_entry(self.bank, self.sales, D('750.00')).data['id']
        response = self.client.delete(f'/api/v1/journal-entries/{entry_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.bank.refresh_from_db()
        self.sales.refresh_from_db()
        self.assertEqual(self.bank.balance, D('0'))
        self.assertEqual(self.sales.balance, D('0'))

    def test_locked_entry_cannot_change(self):
        entry_id = self.post_entry(self.bank, self.sales, D('300.00')).data['id']
        response = self.client.patch(f'/api/v1/journal-entries/{entry_id}/', {'reference': 'F-1'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['reference'], 'F-1')

        response = self.client.patch(f'/api/v1/journal-entries/{entry_id}/lock/')
        self.assertTrue(response.data['is_locked'])

        response = self.client.patch(f'/api/v1/journal-entries/{entry_id}/', {'reference': 'F-2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        response = self.client.delete(f'/api/v1/journal-entries/{entry_id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.bank.refresh_from_db()
        self.assertEqual(self.bank.balance, D('300.00'))

    def test_account_with_lines_cannot_be_deleted(self):
        self.post_entry(self.bank, self.sales, D('10.00'))
        response = self.client.delete(f'/api/v1/accounts/{self.bank.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        unused = TestDataFactory.create_ledger_account(self.org)
        response = self.client.delete(f'/api/v1/accounts/{unused.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_accountant_cannot_delete_entries(self):
        entry_id = self.post_entry(self.bank, self.sales, D('10.00')).data['id']
        contador = TestDataFactory.create_user(self.org, role='Contador')
        self.client.authenticate_user(contador)
        response = self.client.delete(f'/api/v1/journal-entries/{entry_id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertTrue(JournalEntry.objects.filter(pk=entry_id).exists())

    def test_list_filters_by_date(self):
        self.post_entry(self.bank, self.sales, D('10.00'), date='2025-01-15')
        self.post_entry(self.bank, self.sales, D('20.00'), date='2025-02-15')
        response = self.client.get('/api/v1/journal-entries/', {'start_date': '2025-02-01'})
        self.assertEqual(response.data['count'], 1)
        response = self.client.get('/api/v1/journal-entries/', {'start_date': 'febrero'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class FinancialStatementTests(TestCase):
    """Test statements computed from the journal"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(self.org, role='CFO'))
        create = TestDataFactory.create_ledger_account
        self.bank = create(self.org, 'ASSET', code='1010', name='Bank BBVA')
        self.equipment = create(self.org, 'ASSET', code='1500', name='Equipment')
        self.loan = create(self.org, 'LIABILITY', code='2100', name='Loan')
        self.capital = create(self.org, 'EQUITY', code='3000', name='Capital')
        self.sales = create(self.org, 'REVENUE', code='4010', name='Sales')
        self.rent = create(self.org, 'EXPENSE', code='5010', name='Rent')

    def post(self, date, debit, credit, amount):
        response = self.client.post('/api/v1/journal-entries/', {
            'description': 'Movement',
            'date': date,
            'lines': [{'debit_account': debit.id, 'credit_account': credit.id, 'amount': str(amount)}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def post_operations(self):
        self.post('2025-03-10', self.bank, self.sales, '2000.00')
        self.post('2025-03-15', self.rent, self.bank, '500.00')
        self.post('2025-05-01', self.bank, self.sales, '999.00')

    def test_trial_balance(self):
        self.post_operations()
        response = self.client.get('/api/v1/finance/reports/trial-balance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(D(response.data['totals']['debit']), D('3499.00'))
        self.assertTrue(response.data['totals']['balanced'])

        response = self.client.get('/api/v1/finance/reports/trial-balance/', {'as_of_date': '2025-03-31'})
        self.assertEqual(D(response.data['totals']['credit']), D('2500.00'))

    def test_income_statement_requires_dates(self):
        response = self.client.get('/api/v1/finance/reports/income-statement/', {'start_date': '2025-03-01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_income_statement(self):
        self.post_operations()
        response = self.client.get('/api/v1/finance/reports/income-statement/',
                                   {'start_date': '2025-03-01', 'end_date': '2025-03-31'})
        self.assertEqual(D(response.data['total_revenue']), D('2000.00'))
        self.assertEqual(D(response.data['total_expenses']), D('500.00'))
        self.assertEqual(D(response.data['net_income']), D('1500.00'))

    def test_balance_sheet(self):
        self.post('2025-01-02', self.bank, self.capital, '5000.00')
        self.post('2025-01-05', self.bank, self.loan, '1000.00')
        self.post('2025-01-06', self.equipment, self.bank, '1200.00')
        response = self.client.get('/api/v1/finance/reports/balance-sheet/')
        self.assertEqual(D(response.data['total_assets']), D('6000.00'))
        self.assertEqual(D(response.data['total_liabilities']), D('1000.00'))
        self.assertEqual(D(response.data['total_equity']), D('5000.00'))
        self.assertTrue(response.data['balanced'])
        self.assertEqual(len(response.data['assets']), 2)

    def test_general_ledger_running_balance(self):
        self.post_operations()
        response = self.client.get(f'/api/v1/finance/reports/ledger/{self.bank.id}/',
                                   {'start_date': '2025-03-01', 'end_date': '2025-03-31'})
        transactions = response.data['transactions']
        self.assertEqual([D(t['balance']) for t in transactions], [D('2000.00'), D('1500.00')])
        self.assertEqual(transactions[0]['contra_account']['code'], '4010')
        self.assertEqual(D(transactions[1]['credit']), D('500.00'))
        self.assertEqual(D(response.data['final_balance']), D('1500.00'))

    def test_ledger_of_other_organization_account(self):
        other = TestDataFactory.create_ledger_account(TestDataFactory.create_organization())
        response = self.client.get(f'/api/v1/finance/reports/ledger/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cash_flow_uses_cash_accounts(self):
        self.post_operations()
        self.post('2025-03-20', self.equipment, self.loan, '4000.00')
        response = self.client.get('/api/v1/finance/reports/cashflow/',
                                   {'start_date': '2025-03-01', 'end_date': '2025-03-31'})
        summary = response.data['summary']
        self.assertEqual(response.data['cash_accounts'], 1)
        self.assertEqual(D(summary['inflows']), D('2000.00'))
        self.assertEqual(D(summary['outflows']), D('500.00'))
        self.assertEqual(D(summary['net']), D('1500.00'))


class FlowRecoveryAPITests(TestCase):
    """Test client flow recovery records"""

    def setUp(self):
        self.org = TestDataFactory.create_organization()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(self.org, role='CFO'))
        self.customer = TestDataFactory.create_client(self.org, name='Constructora Sur')

    def test_create_derives_percentage(self):
        response = self.client.post('/api/v1/flow-recoveries/', {
            'client': self.customer.id,
            'period': '2025-03',
            'initial_amount': '8000.00',
            'actual_recoveries': '2000.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(D(response.data['recovered_percentage']), D('25.00'))
        self.assertEqual(response.data['client_name'], 'Constructora Sur')

    def test_update_recomputes_percentage(self):
        recovery = FlowRecovery.objects.create(organization=self.org, client=self.customer, period='Q1',
                                               initial_amount=D('1000.00'))
        response = self.client.patch(f'/api/v1/flow-recoveries/{recovery.id}/', {'actual_recoveries': '400.00'},
                                     format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(D(response.data['recovered_percentage']), D('40.00'))

    def test_client_of_other_organization_is_rejected(self):
        foreign = TestDataFactory.create_client(TestDataFactory.create_organization())
        response = self.client.post('/api/v1/flow-recoveries/', {
            'client': foreign.id, 'period': '2025-03', 'initial_amount': '100.00',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_and_delete(self):
        recovery = FlowRecovery.objects.create(organization=self.org, client=self.customer, period='2025-04',
                                               initial_amount=D('500.00'))
        other = TestDataFactory.create_organization()
        FlowRecovery.objects.create(organization=other, client=TestDataFactory.create_client(other),
                                    period='2025-04', initial_amount=D('1.00'))
        response = self.client.get('/api/v1/flow-recoveries/', {'client': self.customer.id})
        self.assertEqual(response.data['count'], 1)

        response = self.client.delete(f'/api/v1/flow-recoveries/{recovery.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(FlowRecovery.objects.filter(pk=recovery.id).exists())

    def test_developer_is_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user(self.org, role='Developer'))
        response = self.client.get('/api/v1/flow-recoveries/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
