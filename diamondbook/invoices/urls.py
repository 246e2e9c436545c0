from django.urls import path
from .views import (
    invoice_list_create, invoice_detail, invoice_mark_paid, invoice_mark_pending,
    invoice_cancel, invoice_complete,
)

urlpatterns = [
    # Invoice endpoints
    path('invoices/', invoice_list_create, name='invoice-list-create'),
    path('invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/mark-paid/', invoice_mark_paid, name='invoice-mark-paid'),
    path('invoices/<int:pk>/mark-pending/', invoice_mark_pending, name='invoice-mark-pending'),
    path('invoices/<int:pk>/cancel/', invoice_cancel, name='invoice-cancel'),
    path('invoices/<int:pk>/complete/', invoice_complete, name='invoice-complete'),
]
