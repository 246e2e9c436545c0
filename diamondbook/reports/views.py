import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Sum, Count, Q
from django.db.models.functions import TruncMonth
from django.utils import timezone
from datetime import date, timedelta
from decimal import Decimal

from diamondbook.clients.models import Client
from diamondbook.core.cache_utils import (
    cached_query, DASHBOARD_CACHE_TTL, DASHBOARD_NAMESPACE, REPORTS_CACHE_TTL, REPORTS_NAMESPACE,
)
from diamondbook.diamonds.models import Diamond
from diamondbook.diamonds.valuation import FOUR_P_PLUS, FOUR_P_MINUS
from diamondbook.invoices.models import Invoice
from diamondbook.pricing.models import MarketRate
from diamondbook.pricing.serializers import MarketRateSerializer

logger = logging.getLogger('diamondbook.reports')

DASHBOARD_TREND_DAYS = 5
RECENT_DAYS = 7
MAX_ANALYTICS_DAYS = 365
MONTHS_OF_WEIGHT_HISTORY = 6


def _int_param(request, name, default, minimum=1, maximum=None):
    """Parse a positive integer query parameter; raises ValueError with a readable message"""
    raw = request.query_params.get(name, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer")
    if value < minimum or (maximum is not None and value > maximum):
        raise ValueError(f"{name} must be between {minimum} and {maximum}" if maximum else f"{name} must be at least {minimum}")
    return value


def _daily_trend(today, days):
    """Pieces and value (in thousands) per entry date for the last ``days`` days, oldest first"""
    start = today - timedelta(days=days - 1)
    rows = Diamond.objects.filter(entry_date__gte=start, entry_date__lte=today).order_by().values('entry_date').annotate(
        pieces=Sum('number_of_diamonds'),
        value=Sum('total_value'),
    )
    by_day = {row['entry_date']: row for row in rows}

    trend = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        row = by_day.get(day, {})
        value = row.get('value') or Decimal('0')
        trend.append({
            'date': day.isoformat(),
            'label': day.strftime('%b %d'),
            'count': row.get('pieces') or 0,
            'value': float(value / 1000),
        })
    return trend


def _category_totals():
    rows = Diamond.objects.order_by().values('category').annotate(
        pieces=Sum('number_of_diamonds'),
        karats=Sum('weight_in_karats'),
        value=Sum('total_value'),
        lots=Count('id'),
    )
    totals = {row['category']: row for row in rows}
    return {
        category: {
            'pieces': totals.get(category, {}).get('pieces') or 0,
            'karats': totals.get(category, {}).get('karats') or Decimal('0'),
            'value': totals.get(category, {}).get('value') or Decimal('0'),
            'lots': totals.get(category, {}).get('lots') or 0,
        }
        for category in (FOUR_P_PLUS, FOUR_P_MINUS)
    }


def _client_distribution():
    """Total lot value per client, largest first"""
    rows = Diamond.objects.values('client_id', 'client__name').annotate(
        value=Sum('total_value'),
    ).order_by('-value', 'client__name')
    return [
        {'client_id': row['client_id'], 'name': row['client__name'], 'value': float(row['value'] or 0)}
        for row in rows
    ]


def _month_starts(today, months):
    """First day of each of the last ``months`` calendar months, oldest first"""
    year, month = today.year, today.month
    starts = []
    for _ in range(months):
        starts.append(date(year, month, 1))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(starts))


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=DASHBOARD_NAMESPACE)
def build_dashboard(today):
    totals = Diamond.objects.aggregate(
        pieces=Sum('number_of_diamonds'),
        karats=Sum('weight_in_karats'),
        value=Sum('total_value'),
    )
    recent_value = Diamond.objects.filter(
        entry_date__gte=today - timedelta(days=RECENT_DAYS)
    ).aggregate(value=Sum('total_value'))['value'] or Decimal('0')

    categories = _category_totals()
    latest_rate = MarketRate.latest()

    return {
        'total_pieces': totals['pieces'] or 0,
        'total_karats': float(totals['karats'] or 0),
        'total_value': float(totals['value'] or 0),
        'client_count': Client.objects.count(),
        'recent_value': float(recent_value),
        'recent_days': RECENT_DAYS,
        'category_distribution': [
            {'name': category, 'value': categories[category]['pieces']}
            for category in (FOUR_P_PLUS, FOUR_P_MINUS)
        ],
        'client_distribution': _client_distribution(),
        'trend': _daily_trend(today, DASHBOARD_TREND_DAYS),
        'market_rate': MarketRateSerializer(latest_rate).data if latest_rate else None,
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=REPORTS_NAMESPACE)
def build_analytics(today, days):
    totals = Diamond.objects.aggregate(
        pieces=Sum('number_of_diamonds'),
        karats=Sum('weight_in_karats'),
        value=Sum('total_value'),
    )
    pieces = totals['pieces'] or 0
    karats = totals['karats'] or Decimal('0')
    value = totals['value'] or Decimal('0')

    categories = _category_totals()

    # Weight by month, split by category
    months = _month_starts(today, MONTHS_OF_WEIGHT_HISTORY)
    rows = Diamond.objects.filter(entry_date__gte=months[0], entry_date__lte=today).annotate(
        month=TruncMonth('entry_date'),
    ).order_by().values('month', 'category').annotate(weight=Sum('weight_in_karats'))
    weights = {}
    for row in rows:
        month = row['month']
        if hasattr(month, 'date'):
            month = month.date()
        weights[(month.replace(day=1), row['category'])] = row['weight'] or Decimal('0')
    weight_by_month = [
        {
            'month': month.strftime('%Y-%m'),
            'label': month.strftime('%b'),
            'four_p_plus': float(weights.get((month, FOUR_P_PLUS), 0)),
            'four_p_minus': float(weights.get((month, FOUR_P_MINUS), 0)),
        }
        for month in months
    ]

    return {
        'period_days': days,
        'summary': {
            'total_pieces': pieces,
            'total_karats': float(karats),
            'total_value': float(value),
            'avg_karats_per_diamond': float(round(karats / pieces, 3)) if pieces else 0.0,
            'avg_value_per_karat': float(round(value / karats, 2)) if karats else 0.0,
        },
        'daily_trend': _daily_trend(today, days),
        'category_distribution': [
            {'name': category, 'pieces': categories[category]['pieces'], 'value': float(categories[category]['value'])}
            for category in (FOUR_P_PLUS, FOUR_P_MINUS)
        ],
        'client_distribution': _client_distribution(),
        'weight_by_month': weight_by_month,
        'top_clients': top_clients_data(5),
    }


def top_clients_data(limit):
    """Clients ranked by total lot value, each with its share of the overall value"""
    grand_total = Diamond.objects.aggregate(value=Sum('total_value'))['value'] or Decimal('0')
    clients = Client.objects.annotate(
        total_value=Sum('diamonds__total_value'),
        total_pieces=Sum('diamonds__number_of_diamonds'),
        total_karats=Sum('diamonds__weight_in_karats'),
        lot_count=Count('diamonds'),
    ).filter(total_value__gt=0).order_by('-total_value', 'name')[:limit]

    results = []
    for client in clients:
        share = (client.total_value / grand_total * 100) if grand_total else Decimal('0')
        results.append({
            'client_id': client.id,
            'name': client.name,
            'company': client.company,
            'value': float(client.total_value),
            'pieces': client.total_pieces or 0,
            'karats': float(client.total_karats or 0),
            'lots': client.lot_count,
            'percent': float(round(share, 1)),
        })
    return results


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    """Dashboard KPIs, distributions and the short trend"""
    return Response(build_dashboard(timezone.localdate()))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def analytics(request):
    """Analytics over the last N days (default 30)"""
    try:
        days = _int_param(request, 'days', 30, maximum=MAX_ANALYTICS_DAYS)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(build_analytics(timezone.localdate(), days))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def top_clients(request):
    """Top clients by total value"""
    try:
        limit = _int_param(request, 'limit', 5, maximum=100)
    except ValueError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    clients = top_clients_data(limit)
    grand_total = Diamond.objects.aggregate(value=Sum('total_value'))['value'] or Decimal('0')
    shown = sum(client['value'] for client in clients)
    return Response({
        'clients': clients,
        'total_value': float(grand_total),
        'others_value': float(grand_total) - shown,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_summary(request):
    """Invoice totals by status, outstanding and overdue amounts"""
    today = timezone.localdate()
    rows = Invoice.objects.order_by().values('status').annotate(count=Count('id'), total=Sum('total_amount'))
    by_status = {row['status']: row for row in rows}

    overdue = Invoice.objects.filter(
        Q(status=Invoice.STATUS_OVERDUE) | Q(status=Invoice.STATUS_PENDING, due_date__lt=today)
    ).aggregate(count=Count('id'), total=Sum('total_amount'))
    outstanding = Invoice.objects.filter(status__in=Invoice.UNPAID_STATUSES).aggregate(
        count=Count('id'), total=Sum('total_amount')
    )

    return Response({
        'by_status': {
            code: {
                'count': by_status.get(code, {}).get('count') or 0,
                'total': float(by_status.get(code, {}).get('total') or 0),
            }
            for code, _label in Invoice.STATUS_CHOICES
        },
        'outstanding': {'count': outstanding['count'] or 0, 'total': float(outstanding['total'] or 0)},
        'overdue': {'count': overdue['count'] or 0, 'total': float(overdue['total'] or 0)},
    })
