"""
Import legacy partial payments (``complementos_pago``) from a MySQL dump.

Only creates payment complements; existing rows are never modified or
deleted. Run link_payments_to_accounts afterwards to refresh the account
aggregates.
"""
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from backend.core.cache_utils import invalidate_finance_dashboard
from backend.core.cache_signals import suspend_cache_signals
from backend.core.models import Organization
from backend.finance.legacy_import import parse_payment_complements
from backend.finance.models import AccountReceivable, PaymentComplement


class Command(BaseCommand):
    help = 'Import legacy partial payments from a MySQL dump as payment complements'

    def add_arguments(self, parser):
        parser.add_argument('dump_file', type=str, help='Path to the SQL dump')
        parser.add_argument(
            '--apply',
            action='store_true',
            help='Create the payment complements (default is a dry run)',
        )
        parser.add_argument(
            '--organization',
            type=int,
            help='Organization id to import into (defaults to the first organization)',
        )

    def handle(self, *args, **options):
        apply = options['apply']
        dump_path = Path(options['dump_file'])

        if not dump_path.exists():
            raise CommandError(f'Backup file not found at: {dump_path}')

        if apply:
            self.stdout.write(self.style.WARNING('APPLY MODE: payment complements will be created.\n'))
        else:
            self.stdout.write(self.style.WARNING('DRY RUN MODE: no records will be created.\n'))

        legacy_payments = parse_payment_complements(dump_path.read_text(encoding='utf-8'))
        if not legacy_payments:
            self.stdout.write(self.style.SUCCESS('No partial payments to import.'))
            return

        self.stdout.write(f"Found {len(legacy_payments)} partial payments in the dump\n")

        organizations = Organization.objects.all().order_by('id')
        if options.get('organization'):
            organizations = organizations.filter(pk=options['organization'])
        organization = organizations.first()
        if organization is None:
            raise CommandError('No organizations found in the database')
        self.stdout.write(f"Using organization: {organization.name} ({organization.id})")

        migrated = skipped = errors = 0
        with suspend_cache_signals():
            for legacy in legacy_payments:
                try:
                    ar = AccountReceivable.objects.filter(organization=organization, legacy_id=legacy.account_id).first()
                    if ar is None:
                        self.stdout.write(self.style.NOTICE(
                            f"  No account receivable with legacy id {legacy.account_id} for payment {legacy.id}"
                        ))
                        skipped += 1
                        continue

                    if PaymentComplement.objects.filter(legacy_id=legacy.id).exists():
                        self.stdout.write(f"  Payment complement {legacy.id} already exists, skipping")
                        skipped += 1
                        continue

                    if apply:
                        PaymentComplement.objects.create(
                            organization=organization,
                            account_receivable=ar,
                            amount=legacy.amount_with_vat,
                            payment_date=legacy.payment_day,
                            payment_method='TRANSFER',
                            notes=legacy.concept or f'Imported from backup - partial payment #{legacy.id}',
                            legacy_id=legacy.id,
                        )
                        self.stdout.write(self.style.SUCCESS(
                            f"  Imported payment {legacy.id} ({legacy.amount_with_vat}) for AR {ar.id}"
                        ))
                    else:
                        self.stdout.write(
                            f"  [DRY RUN] Would create payment {legacy.id} ({legacy.amount_with_vat}) for AR {ar.id}"
                        )
                    migrated += 1
                except Exception as e:
                    self.stderr.write(self.style.ERROR(f"  Error importing payment {legacy.id}: {str(e)}"))
                    errors += 1

        if apply and migrated:
            invalidate_finance_dashboard(organization.id)

        self.stdout.write('\nImport summary:')
        self.stdout.write(f"   {'Imported' if apply else 'Would import'}: {migrated}")
        self.stdout.write(f"   Skipped: {skipped}")
        self.stdout.write(f"   Errors: {errors}")
        self.stdout.write(f"   Total processed: {len(legacy_payments)}")

        if not apply and migrated:
            self.stdout.write('\nRun again with --apply to create the records.')
        self.stdout.write(self.style.SUCCESS('\nDone. Refresh aggregates with link_payments_to_accounts.'))
