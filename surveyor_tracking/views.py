"""
API views for surveyor location tracking.

This module provides REST API endpoints for managing surveyors,
receiving location samples from the mobile app, querying latest
positions and historical tracks, and reading dashboard configuration.
"""
import logging
import math
from datetime import UTC
from typing import Any

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response

from .models import (DEFAULT_CITIES, DEFAULT_PROJECTS, DEFAULT_ROLES,
                     DEFAULT_STATUSES, LocationTrack, Surveyor,
                     SystemConfiguration)
from .serializers import (LiveLocationSerializer, LocationTrackSerializer,
                          SurveyorSerializer)
from .utils import enhance_route, group_name, parse_instant

logger = logging.getLogger(__name__)

DEFAULT_TRACK_PAGE_SIZE = 1000


def _non_admin(queryset: Any) -> Any:
    return queryset.exclude(id__icontains='admin').exclude(username__icontains='admin')


def _status_label(surveyor: Surveyor) -> str:
    return 'Online' if surveyor.is_online() else 'Offline'


def _login(request: Request, touch: bool) -> Response:
    username = str(request.data.get('username') or '').strip()
    password = str(request.data.get('password') or '')
    if not username:
        return Response(
            {'authenticated': False, 'message': "Expected 'username', got nothing"},
            status=status.HTTP_400_BAD_REQUEST,
        )

    surveyor = Surveyor.objects.filter(username=username).first()
    if surveyor is None:
        logger.info("Login for unknown username %s", username)
        return Response(
            {'authenticated': False, 'message': 'Surveyor not found'},
            status=status.HTTP_404_NOT_FOUND,
        )
    if not surveyor.check_password(password):
        logger.info("Invalid credentials for %s", username)
        return Response(
            {'authenticated': False, 'message': 'Invalid credentials'},
            status=status.HTTP_401_UNAUTHORIZED,
        )

    if touch:
        surveyor.touch()
    logger.info("Surveyor %s logged in", surveyor.id)
    return Response({'authenticated': True, 'surveyor': SurveyorSerializer(surveyor).data})


@method_decorator(csrf_exempt, name='dispatch')
class SurveyorViewSet(viewsets.ViewSet):
    """
    ViewSet for managing surveyors.

    Provides endpoints for:
    - GET/POST /surveyors/: List, create or update surveyors
    - DELETE /surveyors/{id}/: Delete a surveyor and its tracks
    - GET /surveyors/filter/, /surveyors/status/, /surveyors/with-locations/
    - POST /surveyors/login/, /surveyors/admin/login/
    """

    permission_classes = [AllowAny]
    lookup_value_regex = '[^/]+'

    def _get_surveyor(self, pk: str) -> Surveyor | None:
        return Surveyor.objects.filter(pk=pk).first()

    def list(self, request: Request) -> Response:
        surveyors = Surveyor.objects.all()
        return Response(SurveyorSerializer(surveyors, many=True).data)

    def create(self, request: Request) -> Response:
        """
        Create a surveyor, or update it when the id already exists.

        Returns:
            Response with the saved surveyor (password omitted)
        """
        serializer = SurveyorSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        surveyor = serializer.save()
        return Response(SurveyorSerializer(surveyor).data, status=status.HTTP_200_OK)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        deleted, _ = Surveyor.objects.filter(pk=pk).delete()
        if not deleted:
            return Response(
                {'error': f"Expected existing surveyor ID, got '{pk}' which does not exist"},
                status=status.HTTP_404_NOT_FOUND,
            )
        logger.info("Deleted surveyor %s", pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def filter(self, request: Request) -> Response:
        """
        Non-admin surveyors matching optional filters.

        Query parameters:
        - city: Exact city (case-insensitive)
        - project: Exact project name (case-insensitive)
        - status: Online or Offline
        """
        queryset = _non_admin(Surveyor.objects.all())
        city = request.query_params.get('city')
        project = request.query_params.get('project')
        wanted_status = request.query_params.get('status')
        if city:
            queryset = queryset.filter(city__iexact=city)
        if project:
            queryset = queryset.filter(project_name__iexact=project)
        surveyors = list(queryset)
        if wanted_status:
            surveyors = [s for s in surveyors if _status_label(s).lower() == wanted_status.lower()]
        return Response(SurveyorSerializer(surveyors, many=True).data)

    @action(detail=False, methods=['get'], url_path='status')
    def status_map(self, request: Request) -> Response:
        """Map of non-admin surveyor ids to "Online" or "Offline"."""
        return Response({s.id: _status_label(s) for s in _non_admin(Surveyor.objects.all())})

    @action(detail=False, methods=['get'], url_path='with-locations')
    def with_locations(self, request: Request) -> Response:
        result = []
        for surveyor in Surveyor.objects.all():
            latest = surveyor.latest_location()
            entry = dict(SurveyorSerializer(surveyor).data)
            entry['latestLocation'] = LocationTrackSerializer(latest).data if latest else None
            result.append(entry)
        return Response(result)

    @action(detail=False, methods=['post'])
    def login(self, request: Request) -> Response:
        """Mobile app login; records activity so the surveyor shows as online."""
        return _login(request, touch=True)

    @action(detail=False, methods=['post'], url_path='admin/login')
    def admin_login(self, request: Request) -> Response:
        """Dashboard login; does not change the surveyor's activity."""
        return _login(request, touch=False)

    @action(detail=False, methods=['get'], url_path='check-username')
    def check_username(self, request: Request) -> Response:
        username = str(request.query_params.get('username') or '').strip()
        if not username:
            return Response(
                {'error': "Expected 'username' query parameter, got nothing"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        return Response({'available': not Surveyor.objects.filter(username=username).exists()})

    @action(detail=False, methods=['get'])
    def cities(self, request: Request) -> Response:
        return Response(_distinct(Surveyor.objects.all(), 'city'))

    @action(detail=False, methods=['get'])
    def projects(self, request: Request) -> Response:
        return Response(_distinct(Surveyor.objects.all(), 'project_name'))

    @action(detail=True, methods=['post'])
    def activity(self, request: Request, pk: str | None = None) -> Response:
        surveyor = self._get_surveyor(pk or '')
        if surveyor is None:
            return Response(status=status.HTTP_404_NOT_FOUND)
        surveyor.touch()
        return Response(status=status.HTTP_200_OK)

    @action(detail=True, methods=['get'], url_path='status')
    def online_status(self, request: Request, pk: str | None = None) -> Response:
        surveyor = self._get_surveyor(pk or '')
        if surveyor is None:
            return Response(status=status.HTTP_404_NOT_FOUND)
        return Response({'online': surveyor.is_online()})


def _distinct(queryset: Any, field: str) -> list[str]:
    values = queryset.exclude(**{field: ''}).values_list(field, flat=True).distinct()
    return sorted({v.strip() for v in values if v and v.strip()})


def _bad_range(message: str) -> Response:
    return Response({'error': message}, status=status.HTTP_400_BAD_REQUEST)


@method_decorator(csrf_exempt, name='dispatch')
class LocationViewSet(viewsets.ViewSet):
    """
    ViewSet for location samples.

    Provides endpoints for:
    - POST /location/: Receive a sample from the mobile app and broadcast it
    - GET /location/{id}/latest/: Latest sample (204 when none)
    - GET /location/{id}/track/: Samples in a time range, paged
    - GET /location/{id}/enhanced-track/: Samples with long gaps interpolated
    """

    permission_classes = [AllowAny]
    lookup_field = 'surveyor_id'
    lookup_value_regex = '[^/]+'

    def create(self, request: Request) -> Response:
        """
        Store a location sample and broadcast it to the surveyor's live topic.

        Args:
            request: HTTP request with {surveyorId, latitude, longitude, timestamp}

        Returns:
            Response with 201 Created and the stored sample

        Raises:
            ValidationError: If payload is invalid
        """
        logger.debug("Incoming location: %s", request.data)
        serializer = LiveLocationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        track = serializer.save()
        location_data = LocationTrackSerializer(track).data
        logger.info("Location stored for %s at %s", track.surveyor_id, location_data['timestamp'])

        channel_layer = get_channel_layer()
        if channel_layer:
            try:
                async_to_sync(channel_layer.group_send)(
                    group_name(track.surveyor_id),
                    {
                        "type": "location_update",
                        "data": dict(location_data),
                    }
                )
                logger.debug("Broadcast completed for location %s", location_data['id'])
            except Exception as e:
                logger.error(
                    "Live broadcast failed",
                    extra={"location_id": location_data['id'], "error": str(e)},
                    exc_info=True
                )
        else:
            logger.warning("Live broadcast skipped: no channel layer configured")

        return Response(location_data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'])
    def latest(self, request: Request, surveyor_id: str | None = None) -> Response:
        latest = LocationTrack.objects.filter(surveyor_id=surveyor_id).order_by('-timestamp').first()
        if latest is None:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response(LocationTrackSerializer(latest).data)

    def _range(self, request: Request, surveyor_id: str | None) -> Any:
        try:
            start = parse_instant(request.query_params.get('start'))
            end = parse_instant(request.query_params.get('end'))
        except ValueError as e:
            return _bad_range(f"Expected ISO 8601 'start' and 'end', got invalid value: {e}")
        if start > end:
            return _bad_range(f"Expected start <= end, got start={start.isoformat()} end={end.isoformat()}")
        return LocationTrack.objects.filter(
            surveyor_id=surveyor_id, timestamp__gte=start, timestamp__lte=end
        ).order_by('timestamp')

    @action(detail=True, methods=['get'])
    def track(self, request: Request, surveyor_id: str | None = None) -> Response:
        """
        Samples of one surveyor between ``start`` and ``end``, oldest first.

        Query parameters:
        - start, end: ISO 8601 bounds (inclusive)
        - page: Zero-based page number (default 0)
        - size: Page size (default 1000)
        - resolution: Minimum seconds between returned points; first and
          last points are always kept

        Returns:
            {content, totalElements, totalPages, number, size}; 204 when empty
        """
        queryset = self._range(request, surveyor_id)
        if isinstance(queryset, Response):
            return queryset

        try:
            page = int(request.query_params.get('page', 0))
            size = int(request.query_params.get('size', DEFAULT_TRACK_PAGE_SIZE))
        except ValueError:
            return _bad_range("Expected integer 'page' and 'size'")
        if page < 0 or size < 1:
            return _bad_range(f"Expected page >= 0 and size >= 1, got page={page} size={size}")

        points = list(queryset)
        resolution = request.query_params.get('resolution')
        if resolution is not None:
            try:
                resolution_seconds = int(resolution)
            except ValueError:
                return _bad_range(f"Expected integer for resolution, got '{resolution}'")
            if resolution_seconds > 0 and points:
                # Thin out to roughly one point per resolution_seconds
                thinned = [points[0]]
                last_timestamp = points[0].timestamp
                for loc in points[1:]:
                    if (loc.timestamp - last_timestamp).total_seconds() >= resolution_seconds:
                        thinned.append(loc)
                        last_timestamp = loc.timestamp
                if thinned[-1] != points[-1]:
                    thinned.append(points[-1])
                points = thinned

        if not points:
            return Response(status=status.HTTP_204_NO_CONTENT)

        total = len(points)
        content = points[page * size:(page + 1) * size]
        return Response({
            'content': LocationTrackSerializer(content, many=True).data,
            'totalElements': total,
            'totalPages': math.ceil(total / size),
            'number': page,
            'size': size,
        })

    @action(detail=True, methods=['get'], url_path='enhanced-track')
    def enhanced_track(self, request: Request, surveyor_id: str | None = None) -> Response:
        """Track with interpolated points filling gaps over five minutes and 100 m."""
        queryset = self._range(request, surveyor_id)
        if isinstance(queryset, Response):
            return queryset
        route = enhance_route(list(queryset))
        if not route:
            return Response(status=status.HTTP_204_NO_CONTENT)
        return Response([
            {
                'surveyorId': surveyor_id,
                'latitude': p.latitude,
                'longitude': p.longitude,
                'timestamp': p.timestamp.astimezone(UTC).strftime('%Y-%m-%dT%H:%M:%SZ'),
                'interpolated': p.interpolated,
            }
            for p in route
        ])


@method_decorator(csrf_exempt, name='dispatch')
class ConfigViewSet(viewsets.ViewSet):
    """
    ViewSet for dashboard configuration.

    Dropdown values come from registered surveyors plus values added
    through this API, falling back to built-in defaults when empty.
    """

    permission_classes = [AllowAny]

    @staticmethod
    def _options(field: str, key: str, defaults: tuple[str, ...]) -> list[str]:
        added = SystemConfiguration.load().data.get('dropdowns', {}).get(key, [])
        values = set(_distinct(Surveyor.objects.all(), field)) | {v for v in added if v}
        return sorted(values) if values else list(defaults)

    @staticmethod
    def _configured(key: str, defaults: tuple[str, ...]) -> list[str]:
        return list(SystemConfiguration.load().data.get('dropdowns', {}).get(key) or defaults)

    def _add(self, request: Request, key: str) -> Response:
        value = request.data.get('value') if hasattr(request.data, 'get') else request.data
        value = str(value or '').strip()
        if not value:
            return Response({'error': "Expected non-empty 'value', got nothing"},
                            status=status.HTTP_400_BAD_REQUEST)
        config = SystemConfiguration.load()
        existing = config.data.get('dropdowns', {}).get(key, [])
        if value not in existing:
            config.update({'dropdowns': {key: [*existing, value]}})
            logger.info("Added %s option '%s'", key, value)
        return Response({'status': 'added', key: value}, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get', 'post'])
    def cities(self, request: Request) -> Response:
        if request.method == 'POST':
            return self._add(request, 'cities')
        return Response(self._options('city', 'cities', DEFAULT_CITIES))

    @action(detail=False, methods=['get', 'post'])
    def projects(self, request: Request) -> Response:
        if request.method == 'POST':
            return self._add(request, 'projects')
        return Response(self._options('project_name', 'projects', DEFAULT_PROJECTS))

    @action(detail=False, methods=['get'])
    def statuses(self, request: Request) -> Response:
        return Response(self._configured('statuses', DEFAULT_STATUSES))

    @action(detail=False, methods=['get'])
    def roles(self, request: Request) -> Response:
        return Response(self._configured('roles', DEFAULT_ROLES))

    @action(detail=False, methods=['get'])
    def dropdowns(self, request: Request) -> Response:
        return Response({
            'cities': self._options('city', 'cities', DEFAULT_CITIES),
            'projects': self._options('project_name', 'projects', DEFAULT_PROJECTS),
            'statuses': self._configured('statuses', DEFAULT_STATUSES),
            'roles': self._configured('roles', DEFAULT_ROLES),
        })

    @action(detail=False, methods=['get', 'put'])
    def system(self, request: Request) -> Response:
        """Read the effective system configuration, or merge changes into it."""
        config = SystemConfiguration.load()
        if request.method == 'PUT':
            if not isinstance(request.data, dict):
                return Response({'error': "Expected a JSON object, got something else"},
                                status=status.HTTP_400_BAD_REQUEST)
            logger.info("System configuration updated: %s", sorted(request.data))
            return Response(config.update(dict(request.data)))
        return Response(config.effective())
