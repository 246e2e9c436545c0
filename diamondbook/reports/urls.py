from django.urls import path
from . import views

urlpatterns = [
    path('reports/dashboard/', views.dashboard, name='dashboard'),
    path('reports/analytics/', views.analytics, name='analytics'),
    path('reports/top-clients/', views.top_clients, name='top-clients'),
    path('reports/invoices/', views.invoice_summary, name='invoice-summary'),
]
