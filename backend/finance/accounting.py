"""
Double-entry journal postings and the statements built from them.

Every journal line debits one account and credits another for the same
amount, so the stored ``Account.balance`` moves up on the debit side and
down on the credit side. Statements recompute totals from the lines.
"""
import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import F, Q, Sum
from rest_framework.exceptions import ValidationError

from .models import Account, JournalEntry, JournalLine, PAYMENT_EPSILON

logger = logging.getLogger(__name__)

ZERO = Decimal('0.00')

# Substrings that mark an asset account as cash for the cash-flow statement
CASH_ACCOUNT_KEYWORDS = ('cash', 'bank')


def signed_balance(account_type, debit, credit):
    """Balance on the account's natural side"""
    if account_type in Account.DEBIT_NORMAL_TYPES:
        return debit - credit
    return credit - debit


def _line_filter(start_date=None, end_date=None, prefix='journal_entry__'):
    q = Q()
    if start_date:
        q &= Q(**{f'{prefix}date__gte': start_date})
    if end_date:
        q &= Q(**{f'{prefix}date__lte': end_date})
    return q


def account_totals(account, start_date=None, end_date=None):
    """(debit_total, credit_total) for one account within the date range"""
    q = _line_filter(start_date, end_date)
    debit = account.debit_lines.filter(q).aggregate(total=Sum('amount'))['total'] or ZERO
    credit = account.credit_lines.filter(q).aggregate(total=Sum('amount'))['total'] or ZERO
    return debit, credit


def _totals_by_account(organization, start_date=None, end_date=None):
    """(account, debit, credit) for every account of the organization"""
    q = _line_filter(start_date, end_date)
    lines = JournalLine.objects.filter(q, journal_entry__organization=organization)
    debits = dict(lines.order_by().values('debit_account').annotate(total=Sum('amount')).values_list('debit_account', 'total'))
    credits = dict(lines.order_by().values('credit_account').annotate(total=Sum('amount')).values_list('credit_account', 'total'))
    accounts = Account.objects.filter(organization=organization).order_by('type', 'code')
    return [(account, debits.get(account.id) or ZERO, credits.get(account.id) or ZERO) for account in accounts]


@transaction.atomic
def post_journal_entry(organization, entry_data, lines_data, user=None):
    """
    Create a journal entry with its lines and move account balances.

    ``lines_data`` items hold ``debit_account`` and ``credit_account``
    (Account instances), ``amount`` and an optional ``description``.
    """
    if not lines_data:
        raise ValidationError({'lines': 'A journal entry needs at least one line.'})

    for line in lines_data:
        for field in ('debit_account', 'credit_account'):
            if line[field].organization_id != organization.id:
                raise ValidationError({field: 'Does not belong to this organization.'})

    entry = JournalEntry.objects.create(organization=organization, created_by=user, **entry_data)
    for line in lines_data:
        JournalLine.objects.create(journal_entry=entry, **line)
        Account.objects.filter(pk=line['debit_account'].pk).update(balance=F('balance') + line['amount'])
        Account.objects.filter(pk=line['credit_account'].pk).update(balance=F('balance') - line['amount'])

    logger.info("Posted journal entry %s with %s line(s) for org %s", entry.id, len(lines_data), organization.id)
    return entry


@transaction.atomic
def delete_journal_entry(entry):
    """Reverse the entry's balance movements and delete it"""
    for line in entry.lines.all():
        Account.objects.filter(pk=line.debit_account_id).update(balance=F('balance') - line.amount)
        Account.objects.filter(pk=line.credit_account_id).update(balance=F('balance') + line.amount)
    entry_id = entry.id
    entry.delete()
    logger.info("Deleted journal entry %s and reversed its balances", entry_id)


def trial_balance(organization, as_of_date=None):
    rows = []
    total_debit = total_credit = ZERO
    for account, debit, credit in _totals_by_account(organization, end_date=as_of_date):
        rows.append({
            'account_id': account.id,
            'code': account.code,
            'name': account.name,
            'type': account.type,
            'debit': debit,
            'credit': credit,
        })
        total_debit += debit
        total_credit += credit
    return {
        'as_of_date': as_of_date,
        'accounts': rows,
        'totals': {
            'debit': total_debit,
            'credit': total_credit,
            'balanced': abs(total_debit - total_credit) < PAYMENT_EPSILON,
        },
    }


def income_statement(organization, start_date, end_date):
    revenue, expenses = [], []
    total_revenue = total_expenses = ZERO
    for account, debit, credit in _totals_by_account(organization, start_date, end_date):
        if account.type not in ('REVENUE', 'EXPENSE'):
            continue
        amount = signed_balance(account.type, debit, credit)
        row = {'account_id': account.id, 'code': account.code, 'name': account.name, 'amount': amount}
        if account.type == 'REVENUE':
            revenue.append(row)
            total_revenue += amount
        else:
            expenses.append(row)
            total_expenses += amount
    return {
        'start_date': start_date,
        'end_date': end_date,
        'revenue': revenue,
        'expenses': expenses,
        'total_revenue': total_revenue,
        'total_expenses': total_expenses,
        'net_income': total_revenue - total_expenses,
    }


def balance_sheet(organization, as_of_date=None):
    sections = {'ASSET': [], 'LIABILITY': [], 'EQUITY': []}
    totals = {'ASSET': ZERO, 'LIABILITY': ZERO, 'EQUITY': ZERO}
    for account, debit, credit in _totals_by_account(organization, end_date=as_of_date):
        if account.type not in sections:
            continue
        amount = signed_balance(account.type, debit, credit)
        sections[account.type].append({
            'account_id': account.id, 'code': account.code, 'name': account.name, 'amount': amount,
        })
        totals[account.type] += amount
    liabilities_and_equity = totals['LIABILITY'] + totals['EQUITY']
    return {
        'as_of_date': as_of_date,
        'assets': sections['ASSET'],
        'liabilities': sections['LIABILITY'],
        'equity': sections['EQUITY'],
        'total_assets': totals['ASSET'],
        'total_liabilities': totals['LIABILITY'],
        'total_equity': totals['EQUITY'],
        'balanced': abs(totals['ASSET'] - liabilities_and_equity) < PAYMENT_EPSILON,
    }


def general_ledger(account, start_date=None, end_date=None):
    """Every movement of one account in date order, with a running balance"""
    q = _line_filter(start_date, end_date)
    lines = (JournalLine.objects
             .filter(q)
             .filter(Q(debit_account=account) | Q(credit_account=account))
             .select_related('journal_entry', 'debit_account', 'credit_account')
             .order_by('journal_entry__date', 'journal_entry_id', 'id'))

    transactions = []
    running = ZERO
    for line in lines:
        is_debit = line.debit_account_id == account.id
        debit = line.amount if is_debit else ZERO
        credit = ZERO if is_debit else line.amount
        running += signed_balance(account.type, debit, credit)
        contra = line.credit_account if is_debit else line.debit_account
        transactions.append({
            'date': line.journal_entry.date,
            'journal_entry_id': line.journal_entry_id,
            'description': line.description or line.journal_entry.description,
            'reference': line.journal_entry.reference,
            'contra_account': {'id': contra.id, 'code': contra.code, 'name': contra.name},
            'debit': debit,
            'credit': credit,
            'balance': running,
        })
    return {
        'account': {'id': account.id, 'code': account.code, 'name': account.name, 'type': account.type},
        'start_date': start_date,
        'end_date': end_date,
        'transactions': transactions,
        'final_balance': running,
    }


def is_cash_account(account):
    name = account.name.lower()
    return account.type == 'ASSET' and any(keyword in name for keyword in CASH_ACCOUNT_KEYWORDS)


def cash_flow(organization, start_date=None, end_date=None):
    """Inflows are debits to cash accounts, outflows are credits from them"""
    cash_ids = [a.id for a in Account.objects.filter(organization=organization, type='ASSET') if is_cash_account(a)]
    q = _line_filter(start_date, end_date)
    lines = JournalLine.objects.filter(q, journal_entry__organization=organization)
    inflows = lines.filter(debit_account_id__in=cash_ids).aggregate(total=Sum('amount'))['total'] or ZERO
    outflows = lines.filter(credit_account_id__in=cash_ids).aggregate(total=Sum('amount'))['total'] or ZERO
    return {
        'start_date': start_date,
        'end_date': end_date,
        'cash_accounts': len(cash_ids),
        'summary': {
            'inflows': inflows,
            'outflows': outflows,
            'net': inflows - outflows,
        },
    }
