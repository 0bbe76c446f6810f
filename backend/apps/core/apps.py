"""Core app configuration."""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Configuration for core app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.core"

    def ready(self) -> None:
        from apps.core.logging import configure_logging
        from config.settings.base import settings

        configure_logging(json_format=settings.LOG_JSON, log_level=settings.LOG_LEVEL)
