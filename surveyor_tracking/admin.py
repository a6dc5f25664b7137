"""Django admin configuration for surveyor_tracking app."""
from django.contrib import admin

from .models import LocationTrack, Surveyor, SystemConfiguration


@admin.register(Surveyor)
class SurveyorAdmin(admin.ModelAdmin):
    """Admin interface for Surveyor model."""

    list_display: tuple[str, ...] = ('id', 'name', 'city', 'project_name', 'username', 'last_activity')
    list_filter: tuple[str, ...] = ('city', 'project_name')
    search_fields: tuple[str, ...] = ('id', 'name', 'username')
    readonly_fields: tuple[str, ...] = ('created_at', 'last_activity')
    exclude: tuple[str, ...] = ('password',)


@admin.register(LocationTrack)
class LocationTrackAdmin(admin.ModelAdmin):
    """Admin interface for LocationTrack model."""

    list_display: tuple[str, ...] = ('surveyor', 'latitude', 'longitude', 'timestamp', 'received_at')
    list_filter: tuple[str, ...] = ('surveyor', 'timestamp')
    search_fields: tuple[str, ...] = ('surveyor__id', 'surveyor__name')
    readonly_fields: tuple[str, ...] = ('received_at',)
    date_hierarchy: str = 'timestamp'


@admin.register(SystemConfiguration)
class SystemConfigurationAdmin(admin.ModelAdmin):
    """Admin interface for the configuration singleton."""

    list_display: tuple[str, ...] = ('__str__', 'updated_at')
    readonly_fields: tuple[str, ...] = ('updated_at',)
