from django.apps import AppConfig


class AgencyConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'gama_erp.agency'

    def ready(self):
        # Registers the status workflows of this app
        from . import utils  # noqa: F401
