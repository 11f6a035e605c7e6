"""Project, sprint and task statistics"""
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from django.db.models import Count, Sum
from django.utils import timezone

from backend.core.roles import has_project_management_access, is_executive_role, is_task_admin_role, user_role_name
from .models import Task

ZERO = Decimal('0.00')
CENTS = Decimal('0.01')


def _round(value, exp=CENTS):
    return Decimal(value).quantize(exp, rounding=ROUND_HALF_UP)


def _progress(completed, total, exp=CENTS):
    if not total:
        return ZERO
    return _round(Decimal(completed) * 100 / Decimal(total), exp)


def tasks_by_status(queryset):
    rows = queryset.values('status').annotate(count=Count('id')).order_by()
    return {row['status']: row['count'] for row in rows}


def _hours(queryset, field):
    return queryset.aggregate(total=Sum(field))['total'] or ZERO


def project_statistics(project):
    tasks = project.tasks.all()
    by_status = tasks_by_status(tasks)
    total = sum(by_status.values())
    completed = by_status.get('DONE', 0)
    return {
        'total_tasks': total,
        'completed_tasks': completed,
        'progress': _progress(completed, total),
        'tasks_by_status': by_status,
        'total_sprints': project.sprints.count(),
    }


def project_financial_statistics(project, user):
    """
    Money and hours flowing through a project: receivables against recorded
    expenses (rejected ones excluded). Logged hours are visible to everyone
    with project access; money figures only to executives, others get zeros.
    """
    from backend.finance.models import AccountReceivable

    stats = {
        'total_invoiced': ZERO,
        'total_paid': ZERO,
        'total_expenses': ZERO,
        'profit': ZERO,
        'margin': ZERO,
        'outstanding_amount': ZERO,
        'total_hours': project.time_entries.aggregate(total=Sum('hours'))['total'] or ZERO,
    }
    if not is_executive_role(user_role_name(user)):
        return stats

    receivables = AccountReceivable.objects.filter(organization=project.organization, project=project)
    totals = receivables.aggregate(invoiced=Sum('amount'), paid=Sum('amount_paid'))
    invoiced = totals['invoiced'] or ZERO
    paid = totals['paid'] or ZERO
    expenses = project.expenses.exclude(status='REJECTED').aggregate(total=Sum('amount'))['total'] or ZERO

    profit = invoiced - expenses
    stats.update({
        'total_invoiced': invoiced,
        'total_paid': paid,
        'total_expenses': expenses,
        'profit': profit,
        'margin': _round(profit * 100 / invoiced) if invoiced > 0 else ZERO,
        'outstanding_amount': invoiced - paid,
    })
    return stats


def sprint_burndown(sprint, today=None):
    """
    Burndown of a sprint measured in estimated hours.

    The ideal line drops linearly from the total estimate to zero over the
    sprint; the actual remaining value is only known for the current day.
    """
    today = today or timezone.localdate()
    tasks = list(sprint.tasks.all())

    total_estimated = sum((t.estimated for t in tasks), ZERO)
    total_actual = sum((t.actual for t in tasks), ZERO)
    done = [t for t in tasks if t.status == 'DONE']
    completed_hours = sum((t.estimated for t in done), ZERO)
    actual_remaining = total_estimated - completed_hours

    # A one-day sprint still burns over one day
    total_days = (sprint.end_date - sprint.start_date).days or 1
    days_passed = min((today - sprint.start_date).days, total_days)
    ideal_rate = total_estimated / total_days

    chart = []
    for day in range(total_days + 1):
        ideal = max(ZERO, total_estimated - ideal_rate * day)
        chart.append({
            'day': day,
            'date': (sprint.start_date + timedelta(days=day)).isoformat(),
            'ideal_remaining': _round(ideal),
            'actual_remaining': actual_remaining if day == days_passed else None,
        })

    return {
        'total_estimated_hours': total_estimated,
        'total_actual_hours': total_actual,
        'completed_hours': completed_hours,
        'remaining_hours': actual_remaining,
        'total_tasks': len(tasks),
        'completed_tasks': len(done),
        'progress': int(_progress(len(done), len(tasks), Decimal('1'))),
        'total_days': total_days,
        'days_passed': days_passed,
        'chart_data': chart,
    }


def sprint_velocity(sprint):
    done = sprint.tasks.filter(status='DONE')
    return {
        'sprint_id': sprint.id,
        'sprint_name': sprint.name,
        'completed_tasks': done.count(),
        'completed_hours': _hours(done, 'estimated_hours'),
    }


def sprint_statistics(sprint):
    tasks = sprint.tasks.all()
    by_status = tasks_by_status(tasks)
    total = sum(by_status.values())
    completed = by_status.get('DONE', 0)
    estimated = _hours(tasks, 'estimated_hours')
    actual = _hours(tasks, 'actual_hours')
    return {
        'total_tasks': total,
        'completed_tasks': completed,
        'progress': _progress(completed, total),
        'tasks_by_status': by_status,
        'total_estimated_hours': estimated,
        'total_actual_hours': actual,
        'hours_variance': actual - estimated,
    }


def task_dashboard_statistics(organization, user):
    """Task counters for the dashboard; non-managers only count their own tasks"""
    role_name = user_role_name(user)
    queryset = Task.objects.filter(organization=organization)
    if not (is_task_admin_role(role_name) or has_project_management_access(role_name)):
        queryset = queryset.filter(assignee=user)

    by_priority = queryset.values('priority').annotate(count=Count('id')).order_by()
    return {
        'total_tasks': queryset.count(),
        'tasks_by_status': tasks_by_status(queryset),
        'tasks_by_priority': {row['priority']: row['count'] for row in by_priority},
        'overdue_tasks': queryset.filter(due_date__lt=timezone.localdate()).exclude(status='DONE').count(),
    }
