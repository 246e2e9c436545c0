"""
Management command to load the demo clients, market rate and diamond lots
Usage: python manage.py seed_demo_data [--with-invoice]
"""
from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from diamondbook.clients.models import Client
from diamondbook.core.cache_signals import suspend_cache_signals
from diamondbook.core.models import CompanyDetails
from diamondbook.diamonds.models import Diamond
from diamondbook.invoices.models import Invoice
from diamondbook.invoices.serializers import InvoiceSerializer
from diamondbook.pricing.models import MarketRate

DEMO_CLIENTS = [
    {
        'name': 'Diamond Traders Inc',
        'contact_person': 'John Smith',
        'phone': '123-456-7890',
        'email': 'john@diamondtraders.com',
        'company': 'Diamond Traders Inc',
        'four_p_plus_rate': Decimal('5000'),
        'four_p_minus_rate': Decimal('300'),
        'payment_terms': 'Net 30',
        'notes': 'Preferred client, provide priority service',
    },
    {
        'name': 'Gem Solutions LLC',
        'contact_person': 'Sarah Johnson',
        'phone': '987-654-3210',
        'email': 'sarah@gemsolutions.com',
        'company': 'Gem Solutions LLC',
        'four_p_plus_rate': Decimal('5200'),
        'four_p_minus_rate': Decimal('310'),
        'payment_terms': 'Net 15',
        'notes': 'New client, verify all orders',
    },
]

DEMO_MARKET_RATE = {'four_p_plus_rate': Decimal('5100'), 'four_p_minus_rate': Decimal('305')}

# (days ago, client name, kapan, pieces, karats)
DEMO_LOTS = [
    (5, 'Diamond Traders Inc', '203A', 20, Decimal('10.5')),
    (8, 'Diamond Traders Inc', '203A', 136, Decimal('18.2')),
    (0, 'Gem Solutions LLC', '415B', 45, Decimal('25.8')),
]

DEMO_COMPANY = {
    'company_name': 'DiamondBook Trading Co',
    'address': 'Opera House, Mumbai 400004',
    'phone': '+91 22 2345 6789',
    'email': 'accounts@diamondbook.example',
    'bank_name': 'State Bank of India',
    'account_holder_name': 'DiamondBook Trading Co',
    'account_number': '00000012345678',
    'ifsc_code': 'SBIN0000001',
    'branch': 'Opera House',
}


class Command(BaseCommand):
    help = 'Load demo clients, market rate, diamond lots and company details'

    def add_arguments(self, parser):
        parser.add_argument(
            '--with-invoice',
            action='store_true',
            help='Also bill the first demo client for its lots',
        )

    def handle(self, *args, **options):
        today = timezone.localdate()

        with transaction.atomic(), suspend_cache_signals():
            clients = {}
            for data in DEMO_CLIENTS:
                client, created = Client.objects.get_or_create(name=data['name'], defaults=data)
                clients[client.name] = client
                self.stdout.write(f"  {'Created' if created else 'Exists '}: client {client.name}")

            rate, created = MarketRate.objects.get_or_create(date=today, defaults=DEMO_MARKET_RATE)
            self.stdout.write(f"  {'Created' if created else 'Exists '}: market rate {rate}")

            if CompanyDetails.load() is None:
                CompanyDetails.objects.create(**DEMO_COMPANY)
                self.stdout.write('  Created: company details')

            for days_ago, client_name, kapan_id, pieces, karats in DEMO_LOTS:
                entry_date = today - timedelta(days=days_ago)
                diamond, created = Diamond.objects.get_or_create(
                    client=clients[client_name],
                    kapan_id=kapan_id,
                    entry_date=entry_date,
                    number_of_diamonds=pieces,
                    defaults={'weight_in_karats': karats},
                )
                if created:
                    diamond.market_rate = rate.rate_for_category(diamond.category)
                    diamond.save(update_fields=['market_rate'])
                self.stdout.write(
                    f"  {'Created' if created else 'Exists '}: lot {diamond.kapan_id} "
                    f"{diamond.category} {diamond.total_value}"
                )

            if options['with_invoice']:
                client = clients['Diamond Traders Inc']
                unbilled = client.diamonds.exclude(invoice_items__invoice__status__in=Invoice.ACTIVE_STATUSES)
                if unbilled.exists():
                    serializer = InvoiceSerializer(data={
                        'client': client.id,
                        'issue_date': today,
                        'diamonds': [d.id for d in unbilled],
                        'notes': 'Demo invoice',
                    })
                    serializer.is_valid(raise_exception=True)
                    invoice = serializer.save()
                    self.stdout.write(f"  Created: invoice {invoice.invoice_number} {invoice.total_amount}")

        self.stdout.write(self.style.SUCCESS('Demo data loaded.'))
