from django.apps import AppConfig


class HseConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'gama_erp.hse'

    def ready(self):
        # Registers the status workflows of this app
        from . import utils  # noqa: F401
