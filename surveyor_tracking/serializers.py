"""
Serializers for the surveyor tracking API.

This module provides DRF serializers for converting between the
camelCase wire format used by the dashboard and mobile app and the
model instances.
"""
import logging
from datetime import UTC
from typing import Any

from django.utils import timezone
from rest_framework import serializers

from .models import LocationTrack, Surveyor
from .utils import parse_instant

logger = logging.getLogger(__name__)


class SurveyorSerializer(serializers.ModelSerializer):
    """Serializer for Surveyor model; the password is write-only and stored hashed."""

    projectName = serializers.CharField(source='project_name', required=False, allow_blank=True)
    password = serializers.CharField(write_only=True, required=False, allow_blank=True)
    username = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    online = serializers.SerializerMethodField()
    lastActivity = serializers.DateTimeField(source='last_activity', read_only=True)

    class Meta:
        model = Surveyor
        fields = ['id', 'name', 'city', 'projectName', 'username', 'password', 'online', 'lastActivity']
        # Saving is create-or-update keyed on id, so the unique validators run in validate()
        extra_kwargs = {'id': {'validators': []}}

    def get_online(self, obj: Surveyor) -> bool:
        return obj.is_online()

    def validate_username(self, value: str | None) -> str | None:
        return value.strip() or None if value else None

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        username = attrs.get('username')
        surveyor_id = attrs.get('id') or (self.instance.id if self.instance else None)
        if username:
            taken = Surveyor.objects.filter(username=username).exclude(id=surveyor_id).exists()
            if taken:
                raise serializers.ValidationError(
                    {'username': f"Expected an unused username, got '{username}' which is taken"}
                )
        return attrs

    def save(self, **kwargs: Any) -> Surveyor:
        """Create the surveyor, or update it when the id already exists."""
        data = {**self.validated_data, **kwargs}
        raw_password = data.pop('password', None)
        surveyor_id = data.pop('id')
        surveyor, created = Surveyor.objects.update_or_create(id=surveyor_id, defaults=data)
        if raw_password:
            surveyor.set_password(raw_password)
            surveyor.save(update_fields=['password'])
        logger.info("%s surveyor %s", "Created" if created else "Updated", surveyor_id)
        self.instance = surveyor
        return surveyor


class LocationTrackSerializer(serializers.ModelSerializer):
    """Read representation of a stored location sample."""

    surveyorId = serializers.CharField(source='surveyor_id', read_only=True)
    timestamp = serializers.SerializerMethodField()

    class Meta:
        model = LocationTrack
        fields = ['id', 'surveyorId', 'latitude', 'longitude', 'timestamp']
        read_only_fields = fields

    def get_timestamp(self, obj: Any) -> str:
        return obj.timestamp.astimezone(UTC).strftime('%Y-%m-%dT%H:%M:%SZ')


class LiveLocationSerializer(serializers.Serializer):
    """
    Ingest payload posted by the mobile app.

    ``{"surveyorId": str, "latitude": float, "longitude": float, "timestamp": ISO 8601}``;
    ``subjectId`` is accepted in place of ``surveyorId`` and a missing
    timestamp means now.
    """

    surveyorId = serializers.CharField(max_length=64, required=False)
    subjectId = serializers.CharField(max_length=64, required=False, write_only=True)
    latitude = serializers.FloatField()
    longitude = serializers.FloatField()
    timestamp = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate_surveyorId(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Expected non-empty surveyor ID, got blank")
        return value

    def validate_subjectId(self, value: str) -> str:
        return self.validate_surveyorId(value)

    def validate_latitude(self, value: float) -> float:
        if not -90 <= value <= 90:
            raise serializers.ValidationError(f"Expected latitude between -90 and +90 degrees, got {value}")
        return value

    def validate_longitude(self, value: float) -> float:
        if not -180 <= value <= 180:
            raise serializers.ValidationError(f"Expected longitude between -180 and +180 degrees, got {value}")
        return value

    def validate_timestamp(self, value: str | None) -> Any:
        if not value:
            logger.debug("No timestamp provided, using current time")
            return timezone.now()
        try:
            return parse_instant(value)
        except ValueError as e:
            raise serializers.ValidationError(f"Expected ISO 8601 timestamp, got '{value}': {e}") from e

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        subject_id = attrs.pop('subjectId', None)
        if not attrs.get('surveyorId'):
            if not subject_id:
                raise serializers.ValidationError(
                    {'surveyorId': "Expected surveyorId (or subjectId), got neither"}
                )
            attrs['surveyorId'] = subject_id
        return attrs

    def create(self, validated_data: dict[str, Any]) -> LocationTrack:
        surveyor_id = validated_data['surveyorId']
        surveyor, created = Surveyor.objects.get_or_create(id=surveyor_id)
        if created:
            logger.info("New surveyor registered by location upload: %s", surveyor_id)
        track = LocationTrack.objects.create(
            surveyor=surveyor,
            latitude=validated_data['latitude'],
            longitude=validated_data['longitude'],
            timestamp=validated_data.get('timestamp') or timezone.now(),
        )
        surveyor.touch()
        return track
