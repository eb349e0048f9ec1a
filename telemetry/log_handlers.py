"""
Telemetry - Log Publication Handlers.

Maps --log-uri values onto standard logging handlers:

- file:///var/log/router.log -> RotatingFileHandler
- tcp://host:port            -> SocketHandler (pickled LogRecords)

A URI that cannot be used is logged and skipped.
"""

from typing import List, Optional, Sequence
from urllib.parse import unquote, urlsplit
import logging
import logging.handlers
from pathlib import Path


logger = logging.getLogger(__name__)


LOG_FILE_MAX_BYTES = 50 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 10


def create_log_handler(uri: str) -> logging.Handler:
    """
    Build the handler for one log URI.

    Raises:
        ValueError: If the URI is malformed or its scheme unsupported
        OSError: If a log file cannot be opened
    """
    parts = urlsplit(uri)

    if parts.scheme == "file":
        path = unquote(parts.path)
        if not path:
            raise ValueError(f"Missing file path in {uri!r}")
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUP_COUNT,
        )

    if parts.scheme == "tcp":
        if not parts.hostname or not parts.port:
            raise ValueError(f"tcp log URI needs host and port: {uri!r}")
        return logging.handlers.SocketHandler(parts.hostname, parts.port)

    raise ValueError(f"Unsupported log URI scheme: {parts.scheme or uri!r}")


def attach_log_handlers(
    uris: Sequence[str],
    formatter: Optional[logging.Formatter] = None,
    target: Optional[logging.Logger] = None,
) -> List[logging.Handler]:
    """
    Attach one handler per usable log URI.

    Args:
        uris: Log URIs
        formatter: Formatter for the new handlers (default: copy the first root handler's)
        target: Logger to attach to (default: root)

    Returns:
        Handlers that were attached
    """
    target = target or logging.getLogger()
    if formatter is None and logging.getLogger().handlers:
        formatter = logging.getLogger().handlers[0].formatter

    attached: List[logging.Handler] = []
    for uri in uris:
        try:
            handler = create_log_handler(uri)
        except (ValueError, OSError) as e:
            logger.warning(f"Skipping log URI {uri}: {e}")
            continue

        if formatter is not None:
            handler.setFormatter(formatter)
        target.addHandler(handler)
        attached.append(handler)
        logger.info(f"Publishing logs to {uri}")

    return attached


def detach_log_handlers(
    handlers: Sequence[logging.Handler],
    target: Optional[logging.Logger] = None,
) -> None:
    """Remove and close handlers added by attach_log_handlers."""
    target = target or logging.getLogger()
    for handler in handlers:
        target.removeHandler(handler)
        handler.close()


__all__ = [
    "create_log_handler",
    "attach_log_handlers",
    "detach_log_handlers",
]
