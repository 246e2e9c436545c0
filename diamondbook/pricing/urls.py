from django.urls import path
from .views import (
    market_rate_list_create, market_rate_detail,
    market_rate_latest, market_rate_history,
)

urlpatterns = [
    # MarketRate endpoints
    path('market-rates/', market_rate_list_create, name='market-rate-list-create'),
    path('market-rates/latest/', market_rate_latest, name='market-rate-latest'),
    path('market-rates/history/', market_rate_history, name='market-rate-history'),
    path('market-rates/<int:pk>/', market_rate_detail, name='market-rate-detail'),
]
