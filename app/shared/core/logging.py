import sys
import structlog
import logging
from app.shared.core.config import get_settings

def pii_redactor(logger, method_name, event_dict):
    """
    Redact common PII and sensitive fields from logs.
    Invitation targets are email addresses, so they never reach telemetry in clear.
    """
    pii_fields = {
        "email", "target_email", "party_id", "password", "token", "secret",
        "aws_access_key_id", "aws_secret_access_key", "aws_session_token",
    }

    for field in pii_fields:
        if field in event_dict:
            event_dict[field] = "[REDACTED]"

    for container in ["metadata", "payload", "details", "extra"]:
        if container in event_dict and isinstance(event_dict[container], dict):
            for field in pii_fields:
                if field in event_dict[container]:
                    event_dict[container][field] = "[REDACTED]"

    return event_dict

def setup_logging():
    settings = get_settings()

    if settings.DEBUG:
        renderer = structlog.dev.ConsoleRenderer()
        min_level = logging.DEBUG
    else:
        renderer = structlog.processors.JSONRenderer()
        min_level = logging.INFO

    processors = [
        structlog.contextvars.merge_contextvars, # Support async context
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        pii_redactor,                            # Must run before rendering
        renderer
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route stdlib loggers (uvicorn, botocore) through the same stream
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=min_level,
    )
    logging.getLogger("botocore").setLevel(logging.WARNING)
