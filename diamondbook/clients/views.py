import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q, Sum, Count, ProtectedError
from django.shortcuts import get_object_or_404
from decimal import Decimal

from diamondbook.core.exceptions import protected_error_response
from diamondbook.core.model_cache import (
    get_cached_client, cache_client_data,
    get_cached_client_list, cache_client_list,
)
from diamondbook.core.utils import create_audit_log, field_changes, snapshot
from diamondbook.diamonds.models import Diamond
from diamondbook.diamonds.serializers import DiamondSerializer
from diamondbook.invoices.filters import InvoiceFilter
from diamondbook.invoices.models import Invoice
from diamondbook.invoices.serializers import InvoiceListSerializer
from .models import Client
from .serializers import ClientSerializer

logger = logging.getLogger('diamondbook.clients')

CLIENT_ORDERING_FIELDS = {'name', '-name', 'company', '-company', 'created_at', '-created_at'}

RATE_FIELDS = ('four_p_plus_rate', 'four_p_minus_rate')

AUDITED_FIELDS = (
    'name', 'contact_person', 'phone', 'email', 'company', 'location',
    'payment_terms', 'notes',
) + RATE_FIELDS


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def client_list_create(request):
    """List all clients or create a new client"""
    if request.method == 'GET':
        search = request.query_params.get('search', '').strip()
        ordering = request.query_params.get('ordering', '-created_at')
        if ordering not in CLIENT_ORDERING_FIELDS:
            ordering = '-created_at'

        cached_data, cache_key = get_cached_client_list(search, ordering)
        if cached_data is not None:
            response = Response(cached_data)
            response['Cache-Control'] = 'private, max-age=300, stale-while-revalidate=600'
            return response

        queryset = Client.objects.select_related('created_by').order_by(ordering)
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) |
                Q(company__icontains=search) |
                Q(contact_person__icontains=search) |
                Q(phone__icontains=search)
            )
        response_data = ClientSerializer(queryset, many=True).data
        cache_client_list(cache_key, response_data)

        response = Response(response_data)
        response['Cache-Control'] = 'private, max-age=300, stale-while-revalidate=600'
        return response
    else:
        serializer = ClientSerializer(data=request.data)
        if serializer.is_valid():
            client = serializer.save(created_by=request.user)
            logger.info(f"User {request.user.username} created client {client.name} (ID: {client.id})")
            create_audit_log(
                request=request,
                action='create',
                model_name='Client',
                object_id=client.id,
                object_name=client.name,
                changes={
                    'company': client.company,
                    'four_p_plus_rate': str(client.four_p_plus_rate),
                    'four_p_minus_rate': str(client.four_p_minus_rate),
                },
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def client_detail(request, pk):
    """Retrieve, update or delete a client"""
    if request.method == 'GET':
        cached_data = get_cached_client(pk)
        if cached_data:
            return Response(cached_data)

    client = get_object_or_404(Client, pk=pk)

    if request.method == 'GET':
        response_data = ClientSerializer(client).data
        cache_client_data(client.id, response_data)
        return Response(response_data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = ClientSerializer(client, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            before = snapshot(client, AUDITED_FIELDS)
            serializer.save()
            changes = field_changes(before, snapshot(client, AUDITED_FIELDS))
            rate_changed = any(field in changes for field in RATE_FIELDS)
            create_audit_log(
                request=request,
                action='rate_change' if rate_changed else 'update',
                model_name='Client',
                object_id=client.id,
                object_name=client.name,
                changes=changes,
            )
            if rate_changed:
                logger.info(f"Rates changed for client {client.name}: {changes}")
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            client.delete()
        except ProtectedError as e:
            logger.warning(f"Refused to delete client {client.id}: still has diamonds or invoices")
            return protected_error_response(e)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Client',
            object_id=pk,
            object_name=client.name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def client_summary(request, pk):
    """Everything the client detail page shows: totals, recent lots and invoices"""
    client = get_object_or_404(Client, pk=pk)

    diamonds = Diamond.objects.filter(client=client)
    diamond_totals = diamonds.aggregate(
        lots=Count('id'),
        pieces=Sum('number_of_diamonds'),
        karats=Sum('weight_in_karats'),
        value=Sum('total_value'),
    )

    invoices = Invoice.objects.filter(client=client).exclude(status=Invoice.STATUS_CANCELLED)
    invoiced_total = invoices.aggregate(total=Sum('total_amount'))['total'] or Decimal('0.00')
    outstanding_total = invoices.filter(
        status__in=[Invoice.STATUS_PENDING, Invoice.STATUS_OVERDUE]
    ).aggregate(total=Sum('total_amount'))['total'] or Decimal('0.00')

    category_breakdown = list(
        diamonds.values('category').annotate(
            pieces=Sum('number_of_diamonds'),
            karats=Sum('weight_in_karats'),
            value=Sum('total_value'),
        ).order_by('category')
    )

    return Response({
        'client': ClientSerializer(client).data,
        'totals': {
            'lots': diamond_totals['lots'] or 0,
            'pieces': diamond_totals['pieces'] or 0,
            'karats': float(diamond_totals['karats'] or 0),
            'value': float(diamond_totals['value'] or 0),
            'invoiced': float(invoiced_total),
            'outstanding': float(outstanding_total),
        },
        'category_breakdown': [
            {
                'category': row['category'],
                'pieces': row['pieces'],
                'karats': float(row['karats']),
                'value': float(row['value']),
            }
            for row in category_breakdown
        ],
        'recent_diamonds': DiamondSerializer(diamonds.order_by('-entry_date', '-id')[:10], many=True).data,
        'invoices': InvoiceListSerializer(invoices.order_by('-issue_date', '-id'), many=True).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def client_diamonds(request, pk):
    """All diamond lots entered for a client"""
    client = get_object_or_404(Client, pk=pk)
    diamonds = Diamond.objects.filter(client=client).select_related('client').order_by('-entry_date', '-id')
    uninvoiced = request.query_params.get('uninvoiced', '').lower() in ('1', 'true', 'yes')
    if uninvoiced:
        diamonds = diamonds.exclude(
            invoice_items__invoice__status__in=Invoice.ACTIVE_STATUSES
        )
    return Response(DiamondSerializer(diamonds, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def client_invoices(request, pk):
    """All invoices raised for a client"""
    client = get_object_or_404(Client, pk=pk)
    invoices = Invoice.objects.filter(client=client).select_related('client')
    invoice_filter = InvoiceFilter(request.query_params, queryset=invoices)
    if not invoice_filter.is_valid():
        return Response(invoice_filter.errors, status=status.HTTP_400_BAD_REQUEST)
    invoices = invoice_filter.qs.order_by('-issue_date', '-id')
    return Response(InvoiceListSerializer(invoices, many=True).data)
