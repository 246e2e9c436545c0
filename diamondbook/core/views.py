import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, IsAdminUser, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.core.paginator import Paginator
from django.shortcuts import get_object_or_404
from django.db.models import Q
from .filters import AuditLogFilter
from .models import CompanyDetails, AuditLog
from .serializers import (
    UserSerializer, UserCreateSerializer,
    CompanyDetailsSerializer, AuditLogSerializer
)
from .utils import create_audit_log, field_changes, snapshot

User = get_user_model()

logger = logging.getLogger(__name__)

COMPANY_FIELDS = (
    'company_name', 'address', 'phone', 'email', 'gst_number',
    'bank_name', 'account_holder_name', 'account_number', 'ifsc_code', 'branch',
)


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        if not self.user.is_active:
            raise AuthenticationFailed('User account is disabled.')
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        token['is_staff'] = user.is_staff
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            # User referenced in token doesn't exist anymore
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """User registration endpoint"""
    serializer = UserCreateSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        token = CustomTokenObtainPairSerializer.get_token(user)
        logger.info(f"Registered user {user.username}")
        return Response({
            'user': UserSerializer(user).data,
            'access': str(token.access_token),
            'refresh': str(token),
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get or update the current user's profile"""
    user = request.user
    if request.method == 'PATCH':
        serializer = UserSerializer(user, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    user_data = UserSerializer(user).data
    user_data['is_admin'] = user.is_superuser or user.is_staff
    return Response(user_data)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def company_details(request):
    """Retrieve or update the company details printed on invoices"""
    company = CompanyDetails.load()

    if request.method == 'GET':
        if company is None:
            return Response({'error': 'Company details have not been set up'}, status=status.HTTP_404_NOT_FOUND)
        return Response(CompanyDetailsSerializer(company).data)

    partial = request.method == 'PATCH'
    if company is None and partial:
        return Response({'error': 'Company details have not been set up'}, status=status.HTTP_404_NOT_FOUND)

    before = snapshot(company, COMPANY_FIELDS) if company else {}
    serializer = CompanyDetailsSerializer(company, data=request.data, partial=partial)
    if serializer.is_valid():
        company = serializer.save()
        create_audit_log(
            request=request,
            action='update' if before else 'create',
            model_name='CompanyDetails',
            object_id=company.id,
            object_name=company.company_name,
            changes=field_changes(before, snapshot(company, COMPANY_FIELDS)),
        )
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_list(request):
    """
    Audit trail, newest first, paginated. Staff see every entry, other users
    only their own.

    Filters: action, model, reference (kapan id, invoice number, ...),
    date_from, date_to.
    """
    queryset = AuditLog.objects.select_related('user')
    if not request.user.is_staff:
        queryset = queryset.filter(user=request.user)

    params = request.query_params
    log_filter = AuditLogFilter(params, queryset=queryset)
    if not log_filter.is_valid():
        return Response(log_filter.errors, status=status.HTTP_400_BAD_REQUEST)
    queryset = log_filter.qs

    try:
        page = int(params.get('page', 1))
        limit = int(params.get('limit', 100))
    except ValueError:
        return Response({'error': 'page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)

    paginator = Paginator(queryset.order_by('-created_at', '-id'), max(1, min(limit, 500)))
    page_obj = paginator.get_page(page)
    return Response({
        'results': AuditLogSerializer(page_obj, many=True).data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': paginator.per_page,
        'total_pages': paginator.num_pages,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)

    if not request.user.is_staff and audit_log.user != request.user:
        return Response({'error': 'Permission denied'}, status=status.HTTP_403_FORBIDDEN)

    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminUser])
def user_list(request):
    """List all users (staff only)"""
    users = User.objects.all().order_by('username')
    return Response(UserSerializer(users, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def global_search(request):
    """Global search across clients, diamond lots and invoices"""
    query = request.query_params.get('q', '').strip()

    if not query:
        return Response({
            'clients': [],
            'diamonds': [],
            'invoices': [],
        })

    from diamondbook.clients.models import Client
    from diamondbook.diamonds.models import Diamond
    from diamondbook.invoices.models import Invoice
    from diamondbook.clients.serializers import ClientSerializer
    from diamondbook.diamonds.serializers import DiamondSerializer
    from diamondbook.invoices.serializers import InvoiceListSerializer

    clients = Client.objects.filter(
        Q(name__icontains=query) |
        Q(company__icontains=query) |
        Q(contact_person__icontains=query) |
        Q(phone__icontains=query) |
        Q(email__icontains=query)
    )[:20]

    diamonds = Diamond.objects.select_related('client').filter(
        Q(kapan_id__icontains=query)
    )[:20]

    invoices = Invoice.objects.select_related('client').filter(
        Q(invoice_number__icontains=query)
    )[:20]

    return Response({
        'clients': ClientSerializer(clients, many=True).data,
        'diamonds': DiamondSerializer(diamonds, many=True).data,
        'invoices': InvoiceListSerializer(invoices, many=True).data,
    })
