"""
Recompute amount paid, amount remaining and status of receivables and
payables from their payment complements.

Runs as a dry run unless --apply is given.
"""
from django.core.management.base import BaseCommand, CommandError

from backend.core.cache_signals import suspend_cache_signals
from backend.core.cache_utils import invalidate_finance_dashboard
from backend.core.models import Organization
from backend.finance.reconciliation import ReconciliationSummary, reconcile_organization

EXAMPLE_LIMIT = 3


class Command(BaseCommand):
    help = 'Link payment complements to their accounts and recompute paid/remaining/status'

    def add_arguments(self, parser):
        parser.add_argument(
            '--apply',
            action='store_true',
            help='Write the changes (default is a dry run)',
        )
        parser.add_argument(
            '--organization',
            type=int,
            help='Only process the organization with this id',
        )

    def handle(self, *args, **options):
        apply = options['apply']
        organization_id = options.get('organization')

        if apply:
            self.stdout.write(self.style.WARNING('APPLY MODE: account amounts will be updated.\n'))
        else:
            self.stdout.write(self.style.WARNING('DRY RUN MODE: no changes will be saved.\n'))

        organizations = Organization.objects.all().order_by('id')
        if organization_id:
            organizations = organizations.filter(pk=organization_id)
        organizations = list(organizations)
        if not organizations:
            raise CommandError('No organizations found in the database')

        self.stdout.write(f"Found {len(organizations)} organization(s)")

        totals = ReconciliationSummary(organization_name='ALL')
        for organization in organizations:
            self.stdout.write('\n' + '=' * 60)
            self.stdout.write(f"Processing: {organization.name} ({organization.id})")
            self.stdout.write('=' * 60)

            with suspend_cache_signals():
                summary = reconcile_organization(organization, apply=apply)
            if apply:
                invalidate_finance_dashboard(organization.id)

            for change in summary.ar_changes + summary.ap_changes:
                note = ' (preserved)' if change.preserved else ''
                self.stdout.write(
                    f"  {change.kind}: {change.concept[:40]} | Payments: {change.payment_count} | "
                    f"Paid: {change.paid_before:.2f} -> {change.paid_after:.2f}{note} | "
                    f"Status: {change.status_before} -> {change.status_after}"
                )

            self._write_summary(f'SUMMARY {organization.name}', summary, apply)
            self._write_examples(summary)
            totals.merge(summary)

        self._write_summary('GLOBAL SUMMARY', totals, apply)
        self._write_examples(totals)

        if apply:
            self.stdout.write(self.style.SUCCESS('\nReconciliation complete and committed.'))
        else:
            if totals.ar_updated or totals.ap_updated:
                self.stdout.write('\nRun again with --apply to write the changes.')
            self.stdout.write(self.style.SUCCESS('\nDry run complete (no data was modified).'))

    def _write_summary(self, title, summary, apply):
        label = 'Updated' if apply else 'Would update'
        self.stdout.write('\n' + '=' * 60)
        self.stdout.write(title)
        self.stdout.write('=' * 60)
        self.stdout.write('\nACCOUNTS RECEIVABLE:')
        self.stdout.write(f"   {label}: {summary.ar_updated}")
        self.stdout.write(f"   Unchanged: {summary.ar_unchanged}")
        self.stdout.write(f"   Errors: {summary.ar_errors}")
        self.stdout.write(f"   Total processed: {summary.ar_total}")
        self.stdout.write('\nACCOUNTS PAYABLE:')
        self.stdout.write(f"   {label}: {summary.ap_updated}")
        self.stdout.write(f"   Unchanged: {summary.ap_unchanged}")
        self.stdout.write(f"   Errors: {summary.ap_errors}")
        self.stdout.write(f"   Total processed: {summary.ap_total}")

    def _write_examples(self, summary):
        examples = summary.ar_changes[:EXAMPLE_LIMIT] + summary.ap_changes[:EXAMPLE_LIMIT]
        if not examples:
            return
        self.stdout.write('\nEXAMPLE CHANGES:')
        for change in examples:
            self.stdout.write(f"\n   {change.concept[:50]}:")
            self.stdout.write(f"      Total amount: {change.amount:.2f}")
            self.stdout.write(f"      Paid: {change.paid_before:.2f} -> {change.paid_after:.2f}")
            self.stdout.write(f"      Remaining: {change.remaining_after:.2f}")
            self.stdout.write(f"      Status: {change.status_before} -> {change.status_after}")
            self.stdout.write(f"      Registered payments: {change.payment_count}")
