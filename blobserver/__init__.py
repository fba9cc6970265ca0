import logging
import os
from pathlib import Path

import sentry_sdk
from dotenv import load_dotenv
from loguru import logger
from sentry_sdk.integrations.logging import LoggingIntegration

__version__ = "0.3.0"

# Load environment variables early so SENTRY_DSN and GCS_* are available for local/dev runs
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")

from blobserver.settings import get_sentry_settings  # noqa: E402


def _detect_build_version() -> str:
    explicit = os.getenv("APP_VERSION")
    if explicit:
        return explicit
    build_file = Path(__file__).resolve().parents[1] / "_build_version.txt"
    if build_file.exists():
        try:
            return build_file.read_text(encoding="utf-8").strip()
        except OSError:
            pass
    return __version__


APP_VERSION = _detect_build_version()

# Initialize Sentry as early as possible (only if DSN is provided)
_sentry = get_sentry_settings()
if _sentry.enabled:
    sentry_sdk.init(
        dsn=_sentry.dsn,
        integrations=[
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=_sentry.traces_sample_rate,
        environment=_sentry.environment or os.getenv("APP_ENV", "prod"),
        release=APP_VERSION,
    )
else:
    logging.getLogger(__name__).info("Sentry DSN not set; Sentry disabled")

logger.debug("startup: blobserver {} loaded", APP_VERSION)
