"""App config for the sales module."""
from django.apps import AppConfig


class SalesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "sales"
    verbose_name = "Ventes"

    def ready(self):
        import sales.signals  # noqa: F401
