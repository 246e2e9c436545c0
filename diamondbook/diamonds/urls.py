from django.urls import path
from .views import (
    diamond_list_create, diamond_detail, diamond_recalculate,
    diamond_estimate, determine_diamond_category, calculate_diamond_value,
)

urlpatterns = [
    # Diamond endpoints
    path('diamonds/', diamond_list_create, name='diamond-list-create'),
    path('diamonds/<int:pk>/', diamond_detail, name='diamond-detail'),
    path('diamonds/<int:pk>/recalculate/', diamond_recalculate, name='diamond-recalculate'),

    # Valuation endpoints
    path('diamonds/estimate/', diamond_estimate, name='diamond-estimate'),
    path('diamonds/determine-category/', determine_diamond_category, name='diamond-determine-category'),
    path('diamonds/calculate-value/', calculate_diamond_value, name='diamond-calculate-value'),
]
