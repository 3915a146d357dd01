from django.apps import AppConfig


class CashCardsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cashcards"
    verbose_name = "Cash cards"
