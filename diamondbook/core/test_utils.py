"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from diamondbook.clients.models import Client
from diamondbook.core.models import CompanyDetails
from diamondbook.diamonds.models import Diamond
from diamondbook.invoices.models import Invoice, InvoiceItem
from diamondbook.diamonds.valuation import invoice_total
from diamondbook.pricing.models import MarketRate
from datetime import timedelta
from decimal import Decimal
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        return user

    @staticmethod
    def create_client(name=None, plus_rate=Decimal('5000.00'), minus_rate=Decimal('300.00'), **kwargs):
        """Create a test client with 4P rates"""
        if not name:
            name = f'Client_{TestDataFactory.random_string(6)}'
        defaults = {
            'contact_person': 'Test Contact',
            'company': f'{name} Co',
            'phone': f'9{random.randint(100000000, 999999999)}',
            'email': f'{name.lower()}@test.com',
        }
        defaults.update(kwargs)
        return Client.objects.create(
            name=name,
            four_p_plus_rate=plus_rate,
            four_p_minus_rate=minus_rate,
            **defaults
        )

    @staticmethod
    def create_diamond(client, pieces=20, karats=Decimal('10.500'), kapan_id=None, entry_date=None,
                       raw_damage_weight=None, user=None):
        """Create a test diamond lot; category and value come from the client's rates"""
        if not kapan_id:
            kapan_id = f'K{TestDataFactory.random_string(4).upper()}'
        return Diamond.objects.create(
            client=client,
            kapan_id=kapan_id,
            number_of_diamonds=pieces,
            weight_in_karats=Decimal(str(karats)),
            raw_damage_weight=Decimal(str(raw_damage_weight)) if raw_damage_weight is not None else None,
            entry_date=entry_date or timezone.localdate(),
            created_by=user,
        )

    @staticmethod
    def create_market_rate(date=None, plus_rate=Decimal('5100.00'), minus_rate=Decimal('305.00')):
        """Create a test market rate"""
        return MarketRate.objects.create(
            date=date or timezone.localdate(),
            four_p_plus_rate=plus_rate,
            four_p_minus_rate=minus_rate,
        )

    @staticmethod
    def create_invoice(client, diamonds, user=None, issue_date=None, due_date=None, status=Invoice.STATUS_PENDING):
        """Create a test invoice billing the given lots"""
        issue_date = issue_date or timezone.localdate()
        invoice = Invoice.objects.create(
            client=client,
            issue_date=issue_date,
            due_date=due_date or issue_date + timedelta(days=30),
            status=status,
            created_by=user,
            total_amount=invoice_total(diamonds),
        )
        for diamond in diamonds:
            InvoiceItem.for_lot(invoice, diamond).save()
        return invoice

    @staticmethod
    def create_company_details(**kwargs):
        """Create the company details record"""
        data = {
            'company_name': 'Test Diamonds Pvt Ltd',
            'address': '12 Diamond Market, Surat',
            'bank_name': 'Test Bank',
            'account_holder_name': 'Test Diamonds Pvt Ltd',
            'account_number': '1234567890',
            'ifsc_code': 'TEST0001234',
            'branch': 'Varachha',
        }
        data.update(kwargs)
        return CompanyDetails.objects.create(**data)


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()


class AuthenticatedTestCase(TestCase):
    """TestCase with an authenticated API client and an empty cache"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
