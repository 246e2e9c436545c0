from django.apps import AppConfig


class PricingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'diamondbook.pricing'
    verbose_name = 'Market Rates'
