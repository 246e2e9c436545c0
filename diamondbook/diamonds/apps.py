from django.apps import AppConfig


class DiamondsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'diamondbook.diamonds'
    verbose_name = 'Diamond Inventory'
