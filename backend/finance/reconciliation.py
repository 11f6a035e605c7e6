"""
Recompute payment aggregates of receivables and payables from their
payment complements.

The batch runs per organization in a single pass. Each account is handled on
its own: a failure is logged and counted and the run moves on.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.db.models import Prefetch

from .models import AccountReceivable, AccountPayable, PaymentComplement, PAYMENT_EPSILON, derive_payment_status

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')


@dataclass
class AccountChange:
    kind: str
    account_id: int
    concept: str
    amount: Decimal
    paid_before: Decimal
    paid_after: Decimal
    remaining_after: Decimal
    status_before: str
    status_after: str
    payment_count: int
    preserved: bool = False


@dataclass
class ReconciliationSummary:
    organization_name: str = ''
    ar_updated: int = 0
    ar_unchanged: int = 0
    ar_errors: int = 0
    ar_total: int = 0
    ap_updated: int = 0
    ap_unchanged: int = 0
    ap_errors: int = 0
    ap_total: int = 0
    ar_changes: list = field(default_factory=list)
    ap_changes: list = field(default_factory=list)

    def merge(self, other):
        for name in ('ar_updated', 'ar_unchanged', 'ar_errors', 'ar_total',
                     'ap_updated', 'ap_unchanged', 'ap_errors', 'ap_total'):
            setattr(self, name, getattr(self, name) + getattr(other, name))
        self.ar_changes.extend(other.ar_changes)
        self.ap_changes.extend(other.ap_changes)
        return self


def _sum_payments(account):
    return sum((p.amount for p in account.payment_complements.all()), ZERO)


def _differs(current, new):
    return abs(current - new) > PAYMENT_EPSILON


def reconcile_receivable(ar):
    """Return the (paid, remaining, status) an AR should hold"""
    paid = _sum_payments(ar)
    remaining = ar.amount - paid
    return paid, remaining, derive_payment_status(paid, remaining)


def reconcile_payable(ap):
    """
    Return the (paid, remaining, status, preserved) an AP should hold.

    A payable without complements but with a recorded paid amount was settled
    by hand before complements existed; its paid value is kept.
    """
    preserved = not ap.payment_complements.all() and ap.amount_paid > PAYMENT_EPSILON
    paid = ap.amount_paid if preserved else _sum_payments(ap)
    remaining = ap.amount - paid
    return paid, remaining, derive_payment_status(paid, remaining), preserved


def _complements_prefetch():
    return Prefetch('payment_complements', queryset=PaymentComplement.objects.order_by())


def reconcile_organization(organization, apply=False):
    """
    Reconcile every AR and AP of one organization.

    Nothing is written unless ``apply`` is True.
    """
    summary = ReconciliationSummary(organization_name=organization.name)

    receivables = AccountReceivable.objects.filter(organization=organization).prefetch_related(_complements_prefetch())
    for ar in receivables:
        summary.ar_total += 1
        try:
            paid, remaining, new_status = reconcile_receivable(ar)
            current_paid = ar.amount_paid or ZERO
            current_remaining = ar.amount_remaining if ar.amount_remaining is not None else ZERO

            if _differs(current_paid, paid) or _differs(current_remaining, remaining) or ar.status != new_status:
                summary.ar_changes.append(AccountChange(
                    kind='AR', account_id=ar.id, concept=ar.concept, amount=ar.amount,
                    paid_before=current_paid, paid_after=paid, remaining_after=remaining,
                    status_before=ar.status, status_after=new_status,
                    payment_count=len(ar.payment_complements.all()),
                ))
                if apply:
                    ar.amount_paid = paid
                    ar.amount_remaining = remaining
                    ar.status = new_status
                    ar.save(update_fields=['amount_paid', 'amount_remaining', 'status', 'updated_at'])
                summary.ar_updated += 1
            else:
                summary.ar_unchanged += 1
        except Exception as e:
            logger.error(f"Error reconciling AR {ar.id} of organization {organization.id}: {str(e)}")
            summary.ar_errors += 1

    payables = AccountPayable.objects.filter(organization=organization).prefetch_related(_complements_prefetch())
    for ap in payables:
        summary.ap_total += 1
        try:
            paid, remaining, new_status, preserved = reconcile_payable(ap)
            current_paid = ap.amount_paid or ZERO
            current_remaining = ap.amount_remaining if ap.amount_remaining is not None else ap.amount

            if _differs(current_paid, paid) or _differs(current_remaining, remaining) or ap.status != new_status:
                summary.ap_changes.append(AccountChange(
                    kind='AP', account_id=ap.id, concept=ap.concept, amount=ap.amount,
                    paid_before=current_paid, paid_after=paid, remaining_after=remaining,
                    status_before=ap.status, status_after=new_status,
                    payment_count=len(ap.payment_complements.all()), preserved=preserved,
                ))
                if apply:
                    ap.amount_paid = paid
                    ap.amount_remaining = remaining
                    ap.status = new_status
                    ap.paid = new_status == 'PAID'
                    ap.save(update_fields=['amount_paid', 'amount_remaining', 'status', 'paid', 'updated_at'])
                summary.ap_updated += 1
            else:
                summary.ap_unchanged += 1
        except Exception as e:
            logger.error(f"Error reconciling AP {ap.id} of organization {organization.id}: {str(e)}")
            summary.ap_errors += 1

    logger.info(
        f"Reconciled organization {organization.id}: AR {summary.ar_updated}/{summary.ar_total} changed, "
        f"AP {summary.ap_updated}/{summary.ap_total} changed (apply={apply})"
    )
    return summary
