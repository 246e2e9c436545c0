"""
Management command to import clients from a CSV file

Expected columns: name, contact_person, company, four_p_plus_rate,
four_p_minus_rate and optionally phone, email, location, payment_terms, notes.
"""
import csv
import os
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from diamondbook.clients.serializers import ClientSerializer
from diamondbook.clients.models import Client
from diamondbook.core.cache_signals import suspend_cache_signals

OPTIONAL_COLUMNS = ['phone', 'email', 'location', 'payment_terms', 'notes']
REQUIRED_COLUMNS = ['name', 'contact_person', 'company', 'four_p_plus_rate', 'four_p_minus_rate']


class Command(BaseCommand):
    help = "Imports clients (with their 4P rates) from a CSV file"

    def add_arguments(self, parser):
        parser.add_argument('csv_file', type=str, help='Path to the CSV file')
        parser.add_argument(
            '--update',
            action='store_true',
            help='Update rates and details of clients that already exist (matched by name)',
        )

    def handle(self, *args, **options):
        csv_file = options['csv_file']
        update = options['update']

        if not os.path.exists(csv_file):
            raise CommandError(f"CSV file not found at {csv_file}")

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(self.style.SUCCESS("IMPORTING CLIENTS FROM CSV"))
        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"CSV File: {csv_file}")

        created_count = 0
        updated_count = 0
        skipped_count = 0
        error_count = 0
        seen_names = set()

        with open(csv_file, 'r', encoding='utf-8-sig', newline='') as f:
            reader = csv.DictReader(f)
            missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
            if missing:
                raise CommandError(f"CSV is missing required columns: {', '.join(missing)}")

            with transaction.atomic(), suspend_cache_signals():
                for line_number, row in enumerate(reader, start=2):
                    data = {c: (row.get(c) or '').strip() for c in REQUIRED_COLUMNS + OPTIONAL_COLUMNS}
                    for column in OPTIONAL_COLUMNS:
                        if not data[column]:
                            data[column] = None

                    name = data['name']
                    if not name:
                        skipped_count += 1
                        continue
                    if name.lower() in seen_names:
                        skipped_count += 1
                        self.stdout.write(self.style.WARNING(f"  Skipped (duplicate in CSV): {name}"))
                        continue
                    seen_names.add(name.lower())

                    existing = Client.objects.filter(name__iexact=name).first()
                    if existing and not update:
                        skipped_count += 1
                        self.stdout.write(self.style.WARNING(f"  Skipped (already exists): {name}"))
                        continue

                    serializer = ClientSerializer(existing, data=data)
                    if not serializer.is_valid():
                        error_count += 1
                        self.stdout.write(self.style.ERROR(f"  Line {line_number} ({name}): {dict(serializer.errors)}"))
                        continue

                    serializer.save()
                    if existing:
                        updated_count += 1
                        self.stdout.write(self.style.SUCCESS(f"  Updated: {name}"))
                    else:
                        created_count += 1
                        self.stdout.write(self.style.SUCCESS(f"  Created: {name}"))

        self.stdout.write(self.style.SUCCESS("=" * 80))
        self.stdout.write(f"Clients Created: {created_count}")
        self.stdout.write(f"Clients Updated: {updated_count}")
        self.stdout.write(f"Rows Skipped: {skipped_count}")
        if error_count > 0:
            self.stdout.write(self.style.ERROR(f"Rows with Errors: {error_count}"))
        self.stdout.write(f"Total Clients in Database: {Client.objects.count()}")
