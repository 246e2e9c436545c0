"""
Management command to flag pending invoices whose due date has passed.
Meant to run daily (cron or scheduler).
"""
import logging
from datetime import datetime

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone
from diamondbook.core.utils import create_audit_log
from diamondbook.invoices.models import Invoice

logger = logging.getLogger('diamondbook.invoices')


class Command(BaseCommand):
    help = 'Mark pending invoices past their due date as overdue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be marked without saving',
        )
        parser.add_argument(
            '--as-of',
            type=str,
            help='Treat this date (YYYY-MM-DD) as today',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        as_of = timezone.localdate()
        if options.get('as_of'):
            as_of = datetime.strptime(options['as_of'], '%Y-%m-%d').date()

        overdue = Invoice.objects.select_related('client').filter(
            status=Invoice.STATUS_PENDING,
            due_date__lt=as_of,
        ).order_by('due_date')

        count = overdue.count()
        if count == 0:
            self.stdout.write(self.style.SUCCESS(f'No pending invoices past due as of {as_of}'))
            return

        for invoice in overdue:
            self.stdout.write(
                f'  {invoice.invoice_number}  {invoice.client.name}  due {invoice.due_date}  {invoice.total_amount}'
            )

        if dry_run:
            self.stdout.write(self.style.WARNING(f'DRY RUN: {count} invoice(s) would be marked overdue'))
            return

        with transaction.atomic():
            for invoice in overdue:
                invoice.status = Invoice.STATUS_OVERDUE
                invoice.save(update_fields=['status', 'updated_at'])
                create_audit_log(
                    action='invoice_overdue',
                    model_name='Invoice',
                    object_id=invoice.id,
                    object_name=f"Invoice {invoice.invoice_number}",
                    object_reference=invoice.invoice_number,
                    changes={'status': {'from': Invoice.STATUS_PENDING, 'to': Invoice.STATUS_OVERDUE},
                             'due_date': str(invoice.due_date)},
                )

        logger.info(f"Marked {count} invoice(s) overdue as of {as_of}")
        self.stdout.write(self.style.SUCCESS(f'Marked {count} invoice(s) overdue'))
