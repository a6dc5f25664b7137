"""
Database models for surveyor location tracking.

This module defines the surveyors being tracked, the location samples
they report, and the singleton system configuration document.
"""
import copy
from datetime import timedelta
from typing import Any

from django.conf import settings
from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.utils import timezone

DEFAULT_SYSTEM_CONFIG: dict[str, Any] = {
    'map': {
        'defaultCenter': [17.3850, 78.4867],
        'defaultZoom': 10,
        'trackingInterval': 5000,
        'refreshInterval': 30000,
    },
    'features': {
        'realTimeTracking': True,
        'historicalRoutes': True,
        'geofencing': False,
        'notifications': False,
        'offlineMode': False,
        'analytics': False,
        'reporting': False,
        'darkMode': True,
        'customThemes': True,
        'exportData': True,
    },
    'ui': {
        'animations': True,
        'transitions': True,
        'loadingSpinners': True,
        'responsive': True,
    },
}

DEFAULT_CITIES: tuple[str, ...] = ('Hyderabad', 'Mumbai', 'Delhi', 'Bangalore', 'Chennai')
DEFAULT_PROJECTS: tuple[str, ...] = ('PTMS', 'Survey', 'Mapping', 'Inspection', 'Construction')
DEFAULT_STATUSES: tuple[str, ...] = (
    'Online', 'Offline', 'Busy', 'Available', 'On Break',
    'In Meeting', 'Traveling', 'On Site', 'Office', 'Field Work',
)
DEFAULT_ROLES: tuple[str, ...] = (
    'Surveyor', 'Supervisor', 'Manager', 'Coordinator', 'Technician',
    'Engineer', 'Analyst', 'Consultant', 'Inspector', 'Planner',
)


def online_window() -> timedelta:
    """Return how recent activity must be for a surveyor to count as online."""
    return timedelta(seconds=getattr(settings, 'SURVEYOR_ONLINE_TIMEOUT_SECONDS', 720))


class Surveyor(models.Model):
    """
    A field surveyor whose position is tracked.

    The primary key is the surveyor id used on the wire (e.g. ``SUR009``).
    """

    id = models.CharField(
        max_length=64,
        primary_key=True,
        help_text="Surveyor identifier (e.g. SUR009)"
    )
    name = models.CharField(
        max_length=200,
        blank=True,
        default='',
        help_text="Display name"
    )
    city = models.CharField(
        max_length=100,
        blank=True,
        default='',
        db_index=True,
        help_text="City the surveyor works in"
    )
    project_name = models.CharField(
        max_length=100,
        blank=True,
        default='',
        db_index=True,
        help_text="Project the surveyor is assigned to"
    )
    username = models.CharField(
        max_length=150,
        unique=True,
        null=True,
        blank=True,
        help_text="Login name for the mobile app"
    )
    password = models.CharField(
        max_length=128,
        blank=True,
        default='',
        help_text="Hashed password"
    )
    last_activity = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last login or location upload"
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When this surveyor was registered"
    )

    class Meta:
        ordering = ['id']
        verbose_name = 'Surveyor'
        verbose_name_plural = 'Surveyors'

    def __str__(self) -> str:
        """Return string representation of the surveyor."""
        if self.name:
            return f"{self.name} ({self.id})"
        return str(self.id)

    @property
    def is_admin(self) -> bool:
        """Admin accounts are identified by 'admin' in the id or username."""
        return 'admin' in str(self.id).lower() or 'admin' in (self.username or '').lower()

    def set_password(self, raw_password: str) -> None:
        self.password = make_password(raw_password)

    def check_password(self, raw_password: str) -> bool:
        if not self.password:
            return False
        return check_password(raw_password, self.password)

    def touch(self) -> None:
        """Record activity now."""
        self.last_activity = timezone.now()
        self.save(update_fields=['last_activity'])

    def latest_location(self) -> 'LocationTrack | None':
        return self.tracks.order_by('-timestamp').first()

    def is_online(self, now: Any = None) -> bool:
        """
        Return whether the surveyor reported recently.

        The latest sample's timestamp decides; without samples the last
        activity (login) is used.
        """
        now = now or timezone.now()
        cutoff = now - online_window()
        latest = self.latest_location()
        if latest is not None:
            return latest.timestamp >= cutoff
        return self.last_activity is not None and self.last_activity >= cutoff


class LocationTrack(models.Model):
    """A single location sample reported by a surveyor."""

    surveyor = models.ForeignKey(
        Surveyor,
        on_delete=models.CASCADE,
        related_name='tracks',
        help_text="The surveyor that reported this location"
    )
    latitude = models.FloatField(
        help_text="Latitude in decimal degrees (-90 to +90)"
    )
    longitude = models.FloatField(
        help_text="Longitude in decimal degrees (-180 to +180)"
    )
    timestamp = models.DateTimeField(
        db_index=True,
        help_text="When the device captured the position (UTC)"
    )
    received_at = models.DateTimeField(
        auto_now_add=True,
        help_text="When the server received this location"
    )

    class Meta:
        ordering = ['timestamp']
        verbose_name = 'Location Track'
        verbose_name_plural = 'Location Tracks'
        indexes = [
            models.Index(fields=['surveyor', 'timestamp'], name='track_surveyor_ts_idx'),
        ]

    def __str__(self) -> str:
        """Return string representation of the location."""
        return f"{self.surveyor_id} @ ({self.latitude}, {self.longitude}) on {self.timestamp}"


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class SystemConfiguration(models.Model):
    """
    Singleton holding the dashboard's system configuration.

    ``data`` stores only what differs from ``DEFAULT_SYSTEM_CONFIG``;
    ``effective()`` returns the merged document.
    """

    SINGLETON_ID = 1

    data = models.JSONField(
        default=dict,
        blank=True,
        help_text="Overrides merged over the built-in defaults"
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the configuration was last changed"
    )

    class Meta:
        verbose_name = 'System Configuration'
        verbose_name_plural = 'System Configuration'

    def __str__(self) -> str:
        return "System configuration"

    @classmethod
    def load(cls) -> 'SystemConfiguration':
        obj, _ = cls.objects.get_or_create(pk=cls.SINGLETON_ID)
        return obj

    def effective(self) -> dict[str, Any]:
        return _merge(DEFAULT_SYSTEM_CONFIG, self.data or {})

    def update(self, changes: dict[str, Any]) -> dict[str, Any]:
        """Merge changes into the stored overrides and return the effective document."""
        self.data = _merge(self.data or {}, changes)
        self.save()
        return self.effective()
