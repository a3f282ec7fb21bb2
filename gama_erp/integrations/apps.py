from django.apps import AppConfig


class IntegrationsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'gama_erp.integrations'

    def ready(self):
        # Registers the status workflow of this app
        from . import utils  # noqa: F401
