"""Sentry error tracking integration.

Initializes Sentry SDK if SENTRY_DSN env variable is set.
Does nothing otherwise, so it is safe to call unconditionally.
"""

import logging

from llmgate.core.config import settings
from llmgate.core.logging import redact_secrets

logger = logging.getLogger(__name__)

# Request headers are dropped from events wholesale; they carry provider keys.
_SENSITIVE_HEADERS = {"authorization", "x-api-key", "x-goog-api-key"}


def _scrub_event(event: dict, hint: dict) -> dict:
    request = event.get("request") or {}
    headers = request.get("headers")
    if isinstance(headers, dict):
        request["headers"] = {
            k: ("[REDACTED]" if k.lower() in _SENSITIVE_HEADERS else v) for k, v in headers.items()
        }
    for entry in (event.get("exception") or {}).get("values", []):
        if isinstance(entry.get("value"), str):
            entry["value"] = redact_secrets(entry["value"])
    return event


def init_sentry() -> bool:
    """Initialize Sentry if SENTRY_DSN is configured. Returns True when enabled."""
    if not settings.sentry_dsn:
        logger.debug("Sentry DSN not configured, skipping")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        traces_sample_rate=0.1 if settings.app_env == "production" else 1.0,
        send_default_pii=False,
        before_send=_scrub_event,
        integrations=[SqlalchemyIntegration()],
    )
    logger.info("Sentry initialized (env=%s)", settings.app_env)
    return True
