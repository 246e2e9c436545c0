import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.paginator import Paginator
from django.utils import timezone
from django.shortcuts import get_object_or_404
from django.db import transaction
from django.db.models import Count, Sum
from decimal import Decimal

from diamondbook.core.models import CompanyDetails
from diamondbook.core.serializers import CompanyDetailsSerializer
from diamondbook.core.utils import create_audit_log
from diamondbook.clients.serializers import ClientSerializer
from diamondbook.diamonds.valuation import CATEGORY_CHOICES, FOUR_P_MINUS, FOUR_P_PLUS, billed_rate
from .filters import InvoiceFilter
from .models import Invoice
from .serializers import InvoiceSerializer, InvoiceListSerializer, InvoiceItemSerializer, MarkPaidSerializer

logger = logging.getLogger('diamondbook.invoices')


def _invoice_changes(invoice):
    return {
        'invoice_number': invoice.invoice_number,
        'client': invoice.client.name,
        'status': invoice.status,
        'total_amount': str(invoice.total_amount),
        'issue_date': str(invoice.issue_date),
        'due_date': str(invoice.due_date),
        'lots': [item.diamond.kapan_id for item in invoice.items.select_related('diamond')],
    }


def _log_status_change(request, invoice, action, previous_status):
    create_audit_log(
        request=request,
        action=action,
        model_name='Invoice',
        object_id=invoice.id,
        object_name=f"Invoice {invoice.invoice_number}",
        object_reference=invoice.invoice_number,
        changes={
            'status': {'from': previous_status, 'to': invoice.status},
            'payment_method': invoice.payment_method,
            'payment_date': str(invoice.payment_date) if invoice.payment_date else None,
            'total_amount': str(invoice.total_amount),
        }
    )
    logger.info(f"Invoice {invoice.invoice_number} status {previous_status} -> {invoice.status} by {request.user.username}")


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def invoice_list_create(request):
    """List all invoices or create a new invoice"""
    if request.method == 'GET':
        queryset = Invoice.objects.select_related('client', 'created_by').all()
        invoice_filter = InvoiceFilter(request.query_params, queryset=queryset)
        if not invoice_filter.is_valid():
            return Response(invoice_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = invoice_filter.qs.order_by('-issue_date', '-id')

        try:
            page = int(request.query_params.get('page', 1))
            limit = int(request.query_params.get('limit', 50))
        except ValueError:
            return Response({'error': 'page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)

        paginator = Paginator(queryset, max(1, min(limit, 500)))
        page_obj = paginator.get_page(page)

        serializer = InvoiceListSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': paginator.per_page,
            'total_pages': paginator.num_pages,
        })
    else:  # POST
        serializer = InvoiceSerializer(data=request.data)
        if serializer.is_valid():
            invoice = serializer.save(created_by=request.user)

            # Audit log: Invoice created
            create_audit_log(
                request=request,
                action='invoice_create',
                model_name='Invoice',
                object_id=invoice.id,
                object_name=f"Invoice {invoice.invoice_number}",
                object_reference=invoice.invoice_number,
                changes=_invoice_changes(invoice),
            )
            logger.info(f"Invoice {invoice.invoice_number} created for {invoice.client.name}: {invoice.total_amount}")

            return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def invoice_detail(request, pk):
    """Retrieve, update or delete an invoice"""
    invoice = get_object_or_404(Invoice.objects.select_related('client'), pk=pk)

    if request.method == 'GET':
        return Response(InvoiceSerializer(invoice).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = InvoiceSerializer(invoice, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            invoice = serializer.save()
            create_audit_log(
                request=request,
                action='invoice_update',
                model_name='Invoice',
                object_id=invoice.id,
                object_name=f"Invoice {invoice.invoice_number}",
                object_reference=invoice.invoice_number,
                changes=_invoice_changes(invoice),
            )
            return Response(InvoiceSerializer(invoice).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        invoice_number = invoice.invoice_number
        changes = _invoice_changes(invoice)
        invoice.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Invoice',
            object_id=pk,
            object_name=f"Invoice {invoice_number}",
            object_reference=invoice_number,
            changes=changes,
        )
        logger.info(f"Invoice {invoice_number} deleted by {request.user.username}")
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_mark_paid(request, pk):
    """Record payment of an invoice"""
    serializer = MarkPaidSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=pk)
        if invoice.status == Invoice.STATUS_CANCELLED:
            return Response({'error': 'A cancelled invoice cannot be marked paid.'}, status=status.HTTP_400_BAD_REQUEST)
        previous_status = invoice.status
        invoice.status = Invoice.STATUS_PAID
        invoice.payment_method = serializer.validated_data['payment_method']
        invoice.payment_date = serializer.validated_data.get('payment_date') or timezone.localdate()
        invoice.save()

    _log_status_change(request, invoice, 'invoice_paid', previous_status)
    return Response(InvoiceSerializer(invoice).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_mark_pending(request, pk):
    """Undo a recorded payment; the invoice goes back to pending (or overdue if past due)"""
    with transaction.atomic():
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=pk)
        if invoice.status == Invoice.STATUS_CANCELLED:
            return Response({'error': 'A cancelled invoice cannot be reopened.'}, status=status.HTTP_400_BAD_REQUEST)
        previous_status = invoice.status
        invoice.status = Invoice.STATUS_PENDING
        invoice.payment_method = None
        invoice.payment_date = None
        if invoice.is_overdue:
            invoice.status = Invoice.STATUS_OVERDUE
        invoice.save()

    _log_status_change(request, invoice, 'invoice_pending', previous_status)
    return Response(InvoiceSerializer(invoice).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_cancel(request, pk):
    """Cancel an invoice; its lots become available to bill again"""
    with transaction.atomic():
        invoice = get_object_or_404(Invoice.objects.select_for_update(), pk=pk)
        if invoice.status == Invoice.STATUS_CANCELLED:
            return Response({'error': 'Invoice is already cancelled.'}, status=status.HTTP_400_BAD_REQUEST)
        if invoice.status == Invoice.STATUS_PAID:
            return Response({'error': 'A paid invoice cannot be cancelled. Mark it pending first.'}, status=status.HTTP_400_BAD_REQUEST)
        previous_status = invoice.status
        invoice.status = Invoice.STATUS_CANCELLED
        invoice.save()

    _log_status_change(request, invoice, 'invoice_cancel', previous_status)
    return Response(InvoiceSerializer(invoice).data)


def _category_summary(invoice, items):
    """
    Per-category block of the printed invoice: lots, pieces, karats, subtotal
    and the rate the subtotal works out to (per karat for 4P Plus, per piece
    for 4P Minus). A category with no lots shows the client's own rate.
    """
    rows = {
        row['category']: row
        for row in items.order_by().values('category').annotate(
            lots=Count('id'),
            pieces=Sum('quantity'),
            karats=Sum('weight_in_karats'),
            value=Sum('price'),
        )
    }
    client_rates = {
        FOUR_P_PLUS: invoice.client.four_p_plus_rate,
        FOUR_P_MINUS: invoice.client.four_p_minus_rate,
    }
    summary = {}
    for category, _label in CATEGORY_CHOICES:
        row = rows.get(category)
        if row is None:
            summary[category] = {
                'lots': 0,
                'pieces': 0,
                'karats': Decimal('0.000'),
                'rate': client_rates[category],
                'value': Decimal('0.00'),
            }
            continue
        summary[category] = {
            'lots': row['lots'],
            'pieces': row['pieces'],
            'karats': row['karats'],
            'rate': billed_rate(category, row['value'], row['karats'], row['pieces']),
            'value': row['value'],
        }
    return summary


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_complete(request, pk):
    """
    Printable invoice document: the invoice, the billed client, the company's
    own (bank) details, one entry per lot with the rate it was billed at and
    a summary per category.
    """
    invoice = get_object_or_404(Invoice.objects.select_related('client', 'created_by'), pk=pk)
    items = invoice.items.select_related('diamond').order_by('diamond__entry_date', 'id')
    categories = _category_summary(invoice, items)

    company = CompanyDetails.load()
    if company is None:
        logger.warning(f"Invoice {invoice.invoice_number} rendered without company details")

    return Response({
        'invoice': InvoiceListSerializer(invoice).data,
        'notes': invoice.notes,
        'client': ClientSerializer(invoice.client).data,
        'company': CompanyDetailsSerializer(company).data if company else None,
        'entries': InvoiceItemSerializer(items, many=True).data,
        'categories': categories,
        'totals': {
            'pieces': sum(block['pieces'] for block in categories.values()),
            'karats': sum((block['karats'] for block in categories.values()), Decimal('0.000')),
            'value': sum((block['value'] for block in categories.values()), Decimal('0.00')),
        },
    })
