"""
Command line front end.

    surveyor-tracking sample --subject SUR009 [--replay fixes.csv]
    surveyor-tracking live --subject SUR009 [--strategy push]
    surveyor-tracking history --subject SUR009 --start ... --end ...
    surveyor-tracking status
"""
import argparse
import asyncio
import json
import logging
import logging.config
from collections.abc import Sequence
from datetime import datetime

from .api import BackendClient
from .config import ClientConfig
from .dashboard import TrackingDashboard
from .errors import TrackingError
from .models import format_timestamp
from .sampler import (
    Accuracy,
    LocationSampler,
    ReplayPositionProvider,
    SamplerSettings,
    TermuxPositionProvider,
)
from .service import TrackingService
from .uplink import SampleUplink

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s.%(msecs)03d %(levelname)-7s %(module)s %(message)s'
LOG_DATEFMT = '%Y%m%d-%H:%M:%S'


def configure_logging(level: str = 'INFO') -> None:
    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'verbose': {'format': LOG_FORMAT, 'datefmt': LOG_DATEFMT},
        },
        'handlers': {
            'console': {'class': 'logging.StreamHandler', 'formatter': 'verbose'},
        },
        'root': {'handlers': ['console'], 'level': level},
        'loggers': {
            'httpx': {'level': 'WARNING'},
            'httpcore': {'level': 'WARNING'},
        },
    })


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected ISO 8601 date-time, got '{value}'") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='surveyor-tracking', description="Surveyor location tracking client")
    parser.add_argument('--backend', help="Backend base URL (default from TRACKING_BACKEND_* environment)")
    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    subparsers = parser.add_subparsers(dest='command', required=True)

    sample = subparsers.add_parser('sample', help="Sample positions and upload them")
    sample.add_argument('--subject', required=True, help="Surveyor id, e.g. SUR009")
    sample.add_argument('--replay', help="CSV file of latitude,longitude,timestamp fixes to replay")
    sample.add_argument('--pace', type=float, default=0.0, help="Seconds between replayed fixes")
    sample.add_argument('--accuracy', choices=[a.name.lower() for a in Accuracy], default='high')

    live = subparsers.add_parser('live', help="Follow a surveyor's live position")
    live.add_argument('--subject', required=True)
    live.add_argument('--strategy', choices=['poll', 'push'])
    live.add_argument('--duration', type=float, default=0.0, help="Seconds to follow (0 = until interrupted)")

    history = subparsers.add_parser('history', help="Print a surveyor's historical track")
    history.add_argument('--subject', required=True)
    history.add_argument('--start', required=True, type=_parse_datetime)
    history.add_argument('--end', required=True, type=_parse_datetime)

    subparsers.add_parser('status', help="Print the Online/Offline status map")
    return parser


def _config_from_args(args: argparse.Namespace) -> ClientConfig:
    overrides = {}
    if args.backend:
        overrides['backend_url'] = args.backend
    if getattr(args, 'strategy', None):
        overrides['live_strategy'] = args.strategy
    return ClientConfig.from_env(**overrides)


async def run_sample(args: argparse.Namespace, config: ClientConfig) -> int:
    if args.replay:
        provider = ReplayPositionProvider.from_csv(args.replay, pace=args.pace)
    else:
        provider = TermuxPositionProvider()
    settings = SamplerSettings(
        min_interval=config.sampler_min_interval,
        min_displacement_m=config.sampler_min_displacement_m,
        accuracy=Accuracy[args.accuracy.upper()],
    )
    async with BackendClient(config) as backend:
        uplink = SampleUplink(backend)
        service = TrackingService(LocationSampler(args.subject, provider, settings), uplink)
        service.start()
        try:
            await service.wait()
        finally:
            await service.stop()
        logger.info("Uploaded %d samples, dropped %d", uplink.sent, uplink.dropped)
        return 1 if service.failure else 0


async def run_live(args: argparse.Namespace, config: ClientConfig) -> int:
    dashboard = TrackingDashboard(config)

    def report(controller) -> None:
        sample = controller.latest_sample
        where = f" {sample.latitude:.6f},{sample.longitude:.6f} at {format_timestamp(sample.captured_at)}" if sample else ''
        demo = ' (demo)' if controller.is_fallback else ''
        print(f"{controller.status.value}{where}{demo}")

    dashboard.live.on_change = report
    dashboard.select_subject(args.subject)
    try:
        dashboard.toggle_live()
        if args.duration > 0:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    finally:
        await dashboard.aclose()
    return 0


async def run_history(args: argparse.Namespace, config: ClientConfig) -> int:
    dashboard = TrackingDashboard(config)
    try:
        dashboard.select_subject(args.subject)
        track = await dashboard.show_history(args.start, args.end)
    finally:
        await dashboard.aclose()
    if track is None:
        print(dashboard.view.validation_message)
        return 2
    print(json.dumps({
        'subject': track.subject_id,
        'start': format_timestamp(track.start),
        'end': format_timestamp(track.end),
        'points': [
            {'lat': p.lat, 'lng': p.lng, 'timestamp': format_timestamp(p.timestamp)} for p in track.points
        ],
        'distanceKm': round(track.distance_km, 3) if track.distance_km is not None else None,
        'demo': track.is_fallback,
        'demoReason': track.fallback_reason,
        'notice': dashboard.view.notice,
    }, indent=2))
    return 0


async def run_status(args: argparse.Namespace, config: ClientConfig) -> int:
    dashboard = TrackingDashboard(config)
    try:
        await dashboard.load_surveyors()
        statuses = dashboard.status_monitor.statuses
    finally:
        await dashboard.aclose()
    for subject_id, status in sorted(statuses.items()):
        print(f"{subject_id}\t{status.value}")
    if dashboard.view.fallback_banner:
        print(dashboard.view.fallback_banner)
    return 0


COMMANDS = {
    'sample': run_sample,
    'live': run_live,
    'history': run_history,
    'status': run_status,
}


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        config = _config_from_args(args)
        return asyncio.run(COMMANDS[args.command](args, config))
    except KeyboardInterrupt:
        return 130
    except (TrackingError, ValueError) as e:
        logger.error("%s", e)
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
