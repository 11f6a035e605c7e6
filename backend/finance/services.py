"""Finance operations shared by views and management commands"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum, Count
from django.utils import timezone
from rest_framework.exceptions import ValidationError, NotFound

from backend.core.cache_utils import get_cached_finance_dashboard, cache_finance_dashboard, invalidate_finance_dashboard
from backend.core.utils import create_audit_log
from .models import (
    AccountReceivable, AccountPayable, PaymentComplement, Invoice, FixedCost, PurchaseOrder,
    PAYMENT_EPSILON,
)

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')

# action -> (required source status, target status, audit action)
PURCHASE_ORDER_TRANSITIONS = {
    'submit': ('DRAFT', 'PENDING', 'po_submit'),
    'approve': ('PENDING', 'APPROVED', 'po_approve'),
    'reject': ('PENDING', 'REJECTED', 'po_reject'),
    'mark_paid': ('APPROVED', 'PAID', 'po_paid'),
}


def _sum(queryset, field):
    return queryset.aggregate(total=Sum(field))['total'] or ZERO


def register_payment(organization, data, request=None):
    """
    Register a payment against one receivable or one payable.

    Creates the complement and updates the account totals in one transaction.
    ``data`` holds validated complement fields; the target account is given as
    ``account_receivable`` or ``account_payable`` (an id).
    """
    ar_id = data.get('account_receivable')
    ap_id = data.get('account_payable')
    if not ar_id and not ap_id:
        raise ValidationError({'error': 'Must provide either account_receivable or account_payable.'})
    if ar_id and ap_id:
        raise ValidationError({'error': 'A payment targets exactly one account.'})

    amount = Decimal(str(data['amount']))
    if amount <= 0:
        raise ValidationError({'amount': 'Payment amount must be greater than 0.'})

    model = AccountReceivable if ar_id else AccountPayable
    with transaction.atomic():
        try:
            account = model.objects.select_for_update().get(pk=ar_id or ap_id, organization=organization)
        except model.DoesNotExist:
            raise NotFound(f'{model._meta.verbose_name.title()} not found.')

        payment = PaymentComplement.objects.create(
            organization=organization,
            account_receivable=account if ar_id else None,
            account_payable=account if ap_id else None,
            amount=amount,
            payment_date=data.get('payment_date') or timezone.localdate(),
            payment_method=data.get('payment_method') or 'TRANSFER',
            reference=data.get('reference', ''),
            notes=data.get('notes', ''),
            cfdi_uuid=data.get('cfdi_uuid', ''),
            cfdi_url=data.get('cfdi_url', ''),
        )

        new_paid = (account.amount_paid or ZERO) + amount
        new_remaining = account.amount - new_paid
        new_status = 'PAID' if new_remaining <= PAYMENT_EPSILON else 'PARTIAL'

        account.amount_paid = new_paid
        account.amount_remaining = new_remaining
        account.status = new_status
        update_fields = ['amount_paid', 'amount_remaining', 'status', 'updated_at']
        if model is AccountPayable and new_status == 'PAID':
            account.paid = True
            account.payment_date = payment.payment_date
            update_fields += ['paid', 'payment_date']
        account.save(update_fields=update_fields)

    invalidate_finance_dashboard(organization.id)
    logger.info(f"Registered payment {payment.id} of {amount} on {model.__name__} {account.id} -> {new_status}")
    create_audit_log(
        request=request,
        action='payment_add',
        model_name=model.__name__,
        object_id=account.id,
        object_name=account.concept,
        changes={
            'payment_id': payment.id,
            'amount': str(amount),
            'amount_paid': str(new_paid),
            'amount_remaining': str(new_remaining),
            'status': new_status,
        },
        organization=organization,
    )
    return payment


def transition_purchase_order(purchase_order, action, request=None):
    """Move a purchase order along its approval workflow"""
    source, target, audit_action = PURCHASE_ORDER_TRANSITIONS[action]
    if purchase_order.status != source:
        raise ValidationError({
            'error': f'Cannot {action.replace("_", " ")} a purchase order in status {purchase_order.status}.'
        })

    old_status = purchase_order.status
    purchase_order.status = target
    if action in ('approve', 'reject'):
        purchase_order.authorized_by = request.user if request else None
        purchase_order.authorized_at = timezone.now()
    purchase_order.save()

    create_audit_log(
        request=request,
        action=audit_action,
        model_name='PurchaseOrder',
        object_id=purchase_order.id,
        object_name=purchase_order.folio,
        object_reference=purchase_order.folio,
        changes={'status': {'old': old_status, 'new': target}},
        organization=purchase_order.organization,
    )
    return purchase_order


def purchase_order_statistics(organization):
    """Count and total of purchase orders per status, plus the overall total"""
    stats = {'total': 0, 'total_amount': ZERO}
    for code, _ in PurchaseOrder.STATUS_CHOICES:
        key = code.lower()
        stats[key] = 0
        stats[f'{key}_amount'] = ZERO

    rows = (PurchaseOrder.objects.filter(organization=organization)
            .values('status').annotate(count=Count('id'), amount=Sum('total')).order_by())
    for row in rows:
        key = row['status'].lower()
        stats[key] = row['count']
        stats[f'{key}_amount'] = row['amount'] or ZERO
        stats['total'] += row['count']
        stats['total_amount'] += row['amount'] or ZERO
    return stats


def compute_dashboard(organization):
    return {
        'accounts_payable_pending': _sum(AccountPayable.objects.filter(organization=organization, paid=False), 'amount'),
        'accounts_receivable_pending': _sum(
            AccountReceivable.objects.filter(organization=organization, status='PENDING'), 'amount_remaining'
        ),
        'invoices_total': _sum(Invoice.objects.filter(organization=organization), 'total'),
        'fixed_costs_total': _sum(FixedCost.objects.filter(organization=organization), 'amount'),
        'purchase_orders_total': _sum(PurchaseOrder.objects.filter(organization=organization), 'total'),
    }


def get_finance_dashboard(organization):
    """Dashboard totals for one organization, served from cache when possible"""
    cached_data, cache_key = get_cached_finance_dashboard(organization.id)
    if cached_data is not None:
        return cached_data
    data = {k: str(v) for k, v in compute_dashboard(organization).items()}
    cache_finance_dashboard(cache_key, data)
    return data
