import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import ProtectedError, Sum, Count
from django.shortcuts import get_object_or_404

from diamondbook.core.exceptions import protected_error_response
from diamondbook.core.utils import create_audit_log, field_changes, snapshot
from .filters import DiamondFilter
from .models import Diamond
from .serializers import (
    DiamondSerializer, DiamondEstimateSerializer,
    CategoryRequestSerializer, ValueRequestSerializer,
)
from .valuation import calculate_value, determine_category

logger = logging.getLogger('diamondbook.diamonds')


AUDITED_FIELDS = (
    'kapan_id', 'client_id', 'entry_date', 'number_of_diamonds', 'weight_in_karats',
    'raw_damage_weight', 'market_rate', 'category', 'total_value',
)

VALUATION_FIELDS = ('category', 'total_value')

# Fields that decide a lot's value; frozen while the lot is billed
BILLED_FIELDS = ('client', 'number_of_diamonds', 'weight_in_karats', 'raw_damage_weight')


def _audit_changes(diamond):
    changes = snapshot(diamond, AUDITED_FIELDS)
    changes['client'] = diamond.client.name
    return changes


def _billed_conflict(diamond, item, attempted):
    logger.warning(f"Refused to {attempted} on lot {diamond.kapan_id} (ID: {diamond.id}): billed on {item.invoice.invoice_number}")
    return Response(
        {
            'error': f"Lot {diamond.kapan_id} is billed on invoice {item.invoice.invoice_number}. "
                     f"Cancel the invoice before you {attempted}.",
            'invoice': item.invoice.invoice_number,
        },
        status=status.HTTP_409_CONFLICT,
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def diamond_list_create(request):
    """List diamond lots (filtered, paginated) or enter a new lot"""
    if request.method == 'GET':
        queryset = Diamond.objects.select_related('client', 'created_by').all()
        diamond_filter = DiamondFilter(request.query_params, queryset=queryset)
        if not diamond_filter.is_valid():
            return Response(diamond_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = diamond_filter.qs.order_by('-entry_date', '-id')

        totals = queryset.aggregate(
            pieces=Sum('number_of_diamonds'),
            karats=Sum('weight_in_karats'),
            value=Sum('total_value'),
            lots=Count('id'),
        )

        try:
            page = int(request.query_params.get('page', 1))
            limit = int(request.query_params.get('limit', 50))
        except ValueError:
            return Response({'error': 'page and limit must be integers'}, status=status.HTTP_400_BAD_REQUEST)

        paginator = Paginator(queryset, max(1, min(limit, 500)))
        page_obj = paginator.get_page(page)

        serializer = DiamondSerializer(page_obj, many=True)
        return Response({
            'results': serializer.data,
            'count': paginator.count,
            'next': page_obj.next_page_number() if page_obj.has_next() else None,
            'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
            'page': page_obj.number,
            'page_size': paginator.per_page,
            'total_pages': paginator.num_pages,
            'totals': {
                'lots': totals['lots'] or 0,
                'pieces': totals['pieces'] or 0,
                'karats': float(totals['karats'] or 0),
                'value': float(totals['value'] or 0),
            },
        })
    else:  # POST
        serializer = DiamondSerializer(data=request.data)
        if serializer.is_valid():
            diamond = serializer.save(created_by=request.user)
            logger.info(
                f"User {request.user.username} entered lot {diamond.kapan_id} for {diamond.client.name}: "
                f"{diamond.category}, value {diamond.total_value}"
            )
            create_audit_log(
                request=request,
                action='create',
                model_name='Diamond',
                object_id=diamond.id,
                object_name=str(diamond),
                object_reference=diamond.kapan_id,
                changes=_audit_changes(diamond),
            )
            return Response(DiamondSerializer(diamond).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def diamond_detail(request, pk):
    """Retrieve, update or delete a diamond lot"""
    diamond = get_object_or_404(Diamond.objects.select_related('client'), pk=pk)

    if request.method == 'GET':
        return Response(DiamondSerializer(diamond).data)
    elif request.method in ('PUT', 'PATCH'):
        with transaction.atomic():
            diamond = Diamond.objects.select_for_update().select_related('client').get(pk=diamond.pk)
            serializer = DiamondSerializer(diamond, data=request.data, partial=request.method == 'PATCH')
            if not serializer.is_valid():
                return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

            before = snapshot(diamond, AUDITED_FIELDS)
            billed = diamond.active_invoice_item()
            if billed:
                locked = [
                    field for field in BILLED_FIELDS
                    if field in serializer.validated_data and serializer.validated_data[field] != getattr(diamond, field)
                ]
                if locked:
                    return _billed_conflict(diamond, billed, f"change its {', '.join(locked)}")
                # Billed lots keep the valuation printed on the invoice
                diamond = serializer.save(category=diamond.category, total_value=diamond.total_value)
            else:
                diamond = serializer.save()

        changes = field_changes(before, snapshot(diamond, AUDITED_FIELDS))
        if 'total_value' in changes:
            logger.info(f"Lot {diamond.kapan_id} (ID: {diamond.id}) revalued from {before['total_value']} to {diamond.total_value}")
        create_audit_log(
            request=request,
            action='update',
            model_name='Diamond',
            object_id=diamond.id,
            object_name=str(diamond),
            object_reference=diamond.kapan_id,
            changes=changes,
        )
        return Response(DiamondSerializer(diamond).data)
    else:  # DELETE
        try:
            diamond.delete()
        except ProtectedError as e:
            logger.warning(f"Refused to delete lot {diamond.kapan_id} (ID: {pk}): it is on an invoice")
            return protected_error_response(e)
        create_audit_log(
            request=request,
            action='delete',
            model_name='Diamond',
            object_id=pk,
            object_name=str(diamond),
            object_reference=diamond.kapan_id,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def diamond_recalculate(request, pk):
    """Revalue a lot with its client's current rates"""
    with transaction.atomic():
        diamond = get_object_or_404(Diamond.objects.select_for_update().select_related('client'), pk=pk)
        billed = diamond.active_invoice_item()
        if billed:
            return _billed_conflict(diamond, billed, 'recalculate it')
        before = snapshot(diamond, VALUATION_FIELDS)
        diamond.apply_valuation()
        diamond.save(update_fields=[*VALUATION_FIELDS, 'updated_at'])

    create_audit_log(
        request=request,
        action='diamond_recalculate',
        model_name='Diamond',
        object_id=diamond.id,
        object_name=str(diamond),
        object_reference=diamond.kapan_id,
        changes={'from': before, 'to': snapshot(diamond, VALUATION_FIELDS)},
    )
    logger.info(f"Recalculated lot {diamond.kapan_id} (ID: {diamond.id}): {before['total_value']} -> {diamond.total_value}")
    return Response(DiamondSerializer(diamond).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def diamond_estimate(request):
    """Live valuation preview for the entry form: category, value and weight per piece"""
    serializer = DiamondEstimateSerializer(data=request.data)
    if serializer.is_valid():
        return Response(serializer.estimate())
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def determine_diamond_category(request):
    """Classify a lot as 4P Plus or 4P Minus"""
    serializer = CategoryRequestSerializer(data=request.data)
    if serializer.is_valid():
        data = serializer.validated_data
        return Response({'category': determine_category(data['weight_in_karats'], data['number_of_diamonds'])})
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def calculate_diamond_value(request):
    """Value a lot for a given category with a client's (or explicit) rates"""
    serializer = ValueRequestSerializer(data=request.data)
    if serializer.is_valid():
        data = serializer.validated_data
        value = calculate_value(
            data['category'],
            data['weight_in_karats'],
            data['number_of_diamonds'],
            data['four_p_plus_rate'],
            data['four_p_minus_rate'],
            data.get('raw_damage_weight'),
        )
        return Response({'category': data['category'], 'total_value': value})
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
