from django.urls import path
from .views import (
    client_list_create, client_detail, client_summary,
    client_diamonds, client_invoices,
)

urlpatterns = [
    # Client endpoints
    path('clients/', client_list_create, name='client-list-create'),
    path('clients/<int:pk>/', client_detail, name='client-detail'),
    path('clients/<int:pk>/summary/', client_summary, name='client-summary'),
    path('clients/<int:pk>/diamonds/', client_diamonds, name='client-diamonds'),
    path('clients/<int:pk>/invoices/', client_invoices, name='client-invoices'),
]
