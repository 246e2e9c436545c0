"""
Management command to clear Invoices, Diamonds, Market Rates, Clients and Audit Logs from database
Usage: python manage.py clear_data
"""
from django.core.management.base import BaseCommand
from django.db import transaction
from diamondbook.clients.models import Client
from diamondbook.core.cache_signals import suspend_cache_signals
from diamondbook.core.models import AuditLog
from diamondbook.diamonds.models import Diamond
from diamondbook.invoices.models import Invoice, InvoiceItem
from diamondbook.pricing.models import MarketRate


class Command(BaseCommand):
    help = 'Clear Invoices, Diamonds, Market Rates, Clients and Audit Logs from database'

    def add_arguments(self, parser):
        parser.add_argument(
            '--confirm',
            action='store_true',
            help='Skip confirmation prompt',
        )
        parser.add_argument(
            '--keep-clients',
            action='store_true',
            help='Keep client records (and their rates)',
        )

    def handle(self, *args, **options):
        keep_clients = options['keep_clients']

        if not options['confirm']:
            self.stdout.write(self.style.WARNING('WARNING: This will delete ALL:'))
            self.stdout.write('  - Invoices (and their line items)')
            self.stdout.write('  - Diamond lots')
            self.stdout.write('  - Market rates')
            if not keep_clients:
                self.stdout.write('  - Clients')
            self.stdout.write('  - Audit Logs (history)')
            self.stdout.write('')

            confirm = input('Type "YES" to confirm: ')
            if confirm != 'YES':
                self.stdout.write(self.style.ERROR('Operation cancelled.'))
                return

        self.stdout.write('Starting data cleanup...')

        with transaction.atomic(), suspend_cache_signals():
            counts = {
                'Invoices': Invoice.objects.count(),
                'Diamond lots': Diamond.objects.count(),
                'Market rates': MarketRate.objects.count(),
                'Clients': 0 if keep_clients else Client.objects.count(),
                'Audit Logs': AuditLog.objects.count(),
            }

            # Children before parents: lots and clients are PROTECTed
            InvoiceItem.objects.all().delete()
            Invoice.objects.all().delete()
            self.stdout.write(self.style.SUCCESS('  Invoices deleted'))

            Diamond.objects.all().delete()
            self.stdout.write(self.style.SUCCESS('  Diamond lots deleted'))

            MarketRate.objects.all().delete()
            self.stdout.write(self.style.SUCCESS('  Market rates deleted'))

            if not keep_clients:
                Client.objects.all().delete()
                self.stdout.write(self.style.SUCCESS('  Clients deleted'))

            AuditLog.objects.all().delete()
            self.stdout.write(self.style.SUCCESS('  Audit Logs deleted'))

        self.stdout.write('')
        self.stdout.write(self.style.SUCCESS('Data cleanup completed successfully!'))
        self.stdout.write('Deleted:')
        for label, count in counts.items():
            self.stdout.write(f'  - {count} {label}')
