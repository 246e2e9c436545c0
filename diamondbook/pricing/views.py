import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.utils import timezone
from datetime import timedelta

from diamondbook.core.utils import create_audit_log
from .filters import MarketRateFilter
from .models import MarketRate
from .serializers import MarketRateSerializer

logger = logging.getLogger('diamondbook.pricing')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def market_rate_list_create(request):
    """
    List market rates (newest first) or record a day's rates.

    Posting rates for a date that already has rates replaces that day's
    figures instead of failing.
    """
    if request.method == 'GET':
        queryset = MarketRate.objects.select_related('created_by').all()
        rate_filter = MarketRateFilter(request.query_params, queryset=queryset)
        if not rate_filter.is_valid():
            return Response(rate_filter.errors, status=status.HTTP_400_BAD_REQUEST)
        serializer = MarketRateSerializer(rate_filter.qs, many=True)
        return Response(serializer.data)
    else:  # POST
        serializer = MarketRateSerializer(data=request.data)
        if serializer.is_valid():
            data = serializer.validated_data
            rate_date = data.get('date') or timezone.localdate()
            market_rate, created = MarketRate.objects.update_or_create(
                date=rate_date,
                defaults={
                    'four_p_plus_rate': data['four_p_plus_rate'],
                    'four_p_minus_rate': data['four_p_minus_rate'],
                    'created_by': request.user,
                },
            )
            logger.info(
                f"User {request.user.username} {'recorded' if created else 'updated'} market rates for {rate_date}: "
                f"4P Plus {market_rate.four_p_plus_rate}, 4P Minus {market_rate.four_p_minus_rate}"
            )
            create_audit_log(
                request=request,
                action='rate_change',
                model_name='MarketRate',
                object_id=market_rate.id,
                object_name=f"Market rate {rate_date}",
                object_reference=str(rate_date),
                changes={
                    'four_p_plus_rate': str(market_rate.four_p_plus_rate),
                    'four_p_minus_rate': str(market_rate.four_p_minus_rate),
                    'created': created,
                },
            )
            return Response(
                MarketRateSerializer(market_rate).data,
                status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
            )
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def market_rate_detail(request, pk):
    """Retrieve, update or delete a market rate"""
    market_rate = get_object_or_404(MarketRate, pk=pk)

    if request.method == 'GET':
        return Response(MarketRateSerializer(market_rate).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = MarketRateSerializer(market_rate, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        market_rate.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def market_rate_latest(request):
    """Current market rate: the most recent day's figures"""
    market_rate = MarketRate.latest()
    if market_rate is None:
        return Response({'error': 'No market rates recorded yet'}, status=status.HTTP_404_NOT_FOUND)
    return Response(MarketRateSerializer(market_rate).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def market_rate_history(request):
    """Market rates over the last N days (default 30), oldest first for charting"""
    try:
        days = int(request.query_params.get('days', 30))
    except ValueError:
        return Response({'error': 'days must be an integer'}, status=status.HTTP_400_BAD_REQUEST)
    if days < 1:
        return Response({'error': 'days must be at least 1'}, status=status.HTTP_400_BAD_REQUEST)

    since = timezone.localdate() - timedelta(days=days - 1)
    rates = MarketRate.objects.filter(date__gte=since).order_by('date')
    return Response({
        'days': days,
        'from': since.isoformat(),
        'rates': [
            {
                'date': rate.date.isoformat(),
                'four_p_plus_rate': float(rate.four_p_plus_rate),
                'four_p_minus_rate': float(rate.four_p_minus_rate),
            }
            for rate in rates
        ],
    })
