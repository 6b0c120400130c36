from django.apps import AppConfig, apps
from django.conf import settings


class RoadworksConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "roadworks"
    verbose_name = "Road works inspections"

    registry = None

    def ready(self):
        from .services.workflows import load_registry

        self.registry = load_registry(settings.ROADWORKS_WORKFLOW_CATALOG)


def get_registry():
    """The workflow registry built when the app was loaded."""

    return apps.get_app_config("roadworks").registry
