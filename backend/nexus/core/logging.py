from __future__ import annotations

import logging
from typing import Optional

from .settings import LOG_LEVEL

_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for the service entry point."""
    resolved = (level or LOG_LEVEL).upper()
    numeric_level = getattr(logging, resolved, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
        logging.getLogger(__name__).warning(
            "Unknown log level %r. Falling back to INFO.", resolved
        )

    logging.basicConfig(level=numeric_level, format=_LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(numeric_level, logging.WARNING))
