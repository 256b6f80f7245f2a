"""HTTP service serving Google Calendar events as flat JSON."""
import json
import logging
import os
import sys
from typing import Any, Dict, Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from calendar_api.google_calendar import GoogleCalendarClient
from config import ConfigError, Settings
from processor.event_processor import EventFetcher
from processor.models import Event
from storage.event_cache import EventCache

logger = logging.getLogger(__name__)

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


class SerializationError(Exception):
    """Raised when the event list cannot be encoded as JSON."""


class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def error_response(status_code: int, message: str, error: Exception) -> JSONResponse:
    """Log the underlying error and return a generic JSON error body."""
    logger.error(
        f"Error: {message}: {error}",
        extra={'error_type': type(error).__name__},
        exc_info=error
    )
    return JSONResponse(status_code=status_code, content={'error': message})


def encode_events(events: Sequence[Event]) -> str:
    """
    Encode events as a JSON array, leaving out empty optional fields.

    Raises:
        SerializationError: If an event cannot be encoded
    """
    try:
        return json.dumps(
            [event.to_dict() for event in events],
            ensure_ascii=False,
            separators=(',', ':')
        )
    except (TypeError, ValueError, AttributeError) as e:
        raise SerializationError(f"Failed to encode events: {e}") from e


def get_events(request: Request) -> Response:
    """
    Get calendar events.

    Returns the events of the configured calendar in the format expected
    by the Grafana Business Calendar panel.
    """
    fetcher: EventFetcher = request.app.state.fetcher

    try:
        events = fetcher.fetch_events()
    except Exception as e:
        # UpstreamError and anything unexpected get the same envelope
        return error_response(500, 'Failed to fetch events', e)

    try:
        body = encode_events(events)
    except SerializationError as e:
        return error_response(500, 'Failed to encode response', e)

    return Response(content=body, media_type='application/json')


def healthz() -> Dict[str, Any]:
    return {'status': 'ok'}


def create_app(fetcher: EventFetcher) -> FastAPI:
    """
    Build the FastAPI application around a configured fetcher.

    Args:
        fetcher: EventFetcher shared by all requests

    Returns:
        FastAPI app serving GET / and GET /events
    """
    app = FastAPI(
        title='GCalJSON API',
        version='1.0',
        description=(
            'Serves Google Calendar events as JSON for the Grafana '
            'Business Calendar panel.'
        )
    )
    app.state.fetcher = fetcher

    responses = {
        200: {'description': 'Array of events'},
        500: {'description': 'Error message'},
    }
    for path in ('/', '/events'):
        app.add_api_route(
            path, get_events, methods=['GET'], tags=['events'],
            summary='Get calendar events', responses=responses
        )
    app.add_api_route('/healthz', healthz, methods=['GET'], tags=['health'])
    return app


def main() -> int:
    """
    Start the service and block until it is shut down.

    Returns:
        Process exit status
    """
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))

    try:
        settings = Settings.from_env()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    setup_logging(settings.log_level)

    try:
        client = GoogleCalendarClient.from_service_account_info(
            settings.credential, timeout=settings.upstream_timeout
        )
    except ValueError as e:
        logger.error(
            f"Failed to create Google Calendar client: {e}",
            extra={'error_type': type(e).__name__}
        )
        return 1

    cache = EventCache(ttl_seconds=settings.cache_duration)
    fetcher = EventFetcher(
        client=client,
        calendar_id=settings.calendar_id,
        cache=cache,
        window_policy=settings.window_policy,
        days_ahead=settings.days_ahead,
        timezone=settings.tzinfo
    )
    app = create_app(fetcher)

    server = uvicorn.Server(uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        timeout_graceful_shutdown=max(1, round(settings.shutdown_timeout))
    ))

    logger.info(
        f"GCalJSON API server starting on {settings.host}:{settings.port}",
        extra={
            'cache_duration_seconds': settings.cache_duration,
            'window_policy': settings.window_policy
        }
    )
    cache.start_janitor()
    try:
        server.run()
    finally:
        cache.stop_janitor()
        client.close()
        logger.info("Server exiting")
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == '__main__':
    run()
