from django.apps import AppConfig


class LedgerAppConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ledger"
    verbose_name = "Studio ledger"

    def ready(self):
        from ledger import signals  # noqa: F401
