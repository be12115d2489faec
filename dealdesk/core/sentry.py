"""Error reporting for the DealDesk API.

Partner notes, pass reasons and borrower contact details travel in request
bodies, so events are scrubbed of bodies, cookies and bearer tokens before
they are sent.
"""

import structlog
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

logger = structlog.get_logger()

REDACTED = "[REDACTED]"
SERVICE_NAME = "dealdesk-api"

_SECRET_HEADERS = {"authorization", "cookie", "x-api-key"}


def _scrub_sensitive_data(event: dict, hint: dict) -> dict:
    """before_send hook: drop credentials and disclosure payloads from an event."""
    request = event.get("request")
    if not request:
        return event

    headers = request.get("headers") or {}
    for name in list(headers):
        if name.lower() in _SECRET_HEADERS:
            headers[name] = REDACTED

    if request.get("cookies"):
        request["cookies"] = REDACTED
    # Bodies carry notes, pass reasons and contact fields.
    if request.get("data"):
        request["data"] = REDACTED
    return event


def _traces_sample_rate(environment: str) -> float:
    return 0.1 if environment == "production" else 1.0


def init_sentry(
    dsn: str | None,
    environment: str = "development",
    release: str | None = None,
) -> None:
    """Start error reporting; without a DSN the API runs unreported."""
    if not dsn:
        logger.warning("sentry_disabled", reason="SENTRY_DSN not set")
        return

    sample_rate = _traces_sample_rate(environment)
    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        traces_sample_rate=sample_rate,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        send_default_pii=False,
        before_send=_scrub_sensitive_data,
    )
    sentry_sdk.set_tag("service", SERVICE_NAME)
    logger.info("sentry_initialized", environment=environment, traces_sample_rate=sample_rate)
