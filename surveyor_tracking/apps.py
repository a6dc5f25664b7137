"""App configuration for surveyor_tracking application."""
from django.apps import AppConfig


class SurveyorTrackingConfig(AppConfig):
    """Configuration for the surveyor_tracking app."""

    default_auto_field: str = 'django.db.models.BigAutoField'
    name: str = 'surveyor_tracking'
    verbose_name: str = 'Surveyor Tracking'
