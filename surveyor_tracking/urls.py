"""URL routing for surveyor_tracking app."""

from django.urls import include, path, re_path
from django.urls.resolvers import URLPattern, URLResolver
from rest_framework.routers import DefaultRouter

from .events import location_events
from .views import ConfigViewSet, LocationViewSet, SurveyorViewSet


class OptionalSlashRouter(DefaultRouter):
    """Router that accepts URLs both with and without trailing slashes."""

    def __init__(self, *args: object, **kwargs: object) -> None:
        super().__init__(*args, **kwargs)
        self.trailing_slash = "/?"


router = OptionalSlashRouter()
router.register(r'surveyors', SurveyorViewSet, basename='surveyor')
router.register(r'location', LocationViewSet, basename='location')
router.register(r'config', ConfigViewSet, basename='config')

urlpatterns: list[URLPattern | URLResolver] = [
    re_path(r'^location/(?P<surveyor_id>[^/]+)/events/?$', location_events, name='location-events'),
    path('', include(router.urls)),
]
