from functools import wraps
from typing import Dict, Optional
import structlog
import tenacity
from botocore.config import Config as BotoConfig
from botocore.exceptions import ConnectTimeoutError, ReadTimeoutError, EndpointConnectionError
from pydantic import BaseModel

from app.shared.core.config import Settings
from app.shared.core.exceptions import AdapterError

logger = structlog.get_logger()

# Standardized boto config with timeouts to prevent indefinite hangs
DEFAULT_BOTO_CONFIG = BotoConfig(
    read_timeout=30,
    connect_timeout=10,
    retries={"max_attempts": 3, "mode": "adaptive"}
)

TRANSIENT_AWS_ERRORS = (ConnectTimeoutError, ReadTimeoutError, EndpointConnectionError)

# STS-style CamelCase keys to aioboto3 client kwargs
AWS_CREDENTIAL_MAPPING = {
    "AccessKeyId": "aws_access_key_id",
    "SecretAccessKey": "aws_secret_access_key",
    "SessionToken": "aws_session_token",
}


class AWSCredentials(BaseModel):
    """Static credentials for one named identity."""
    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None

    def as_client_kwargs(self) -> Dict[str, str]:
        return map_aws_credentials({
            "AccessKeyId": self.access_key_id,
            "SecretAccessKey": self.secret_access_key,
            "SessionToken": self.session_token,
        })


def map_aws_credentials(credentials: Dict[str, Optional[str]]) -> Dict[str, str]:
    """
    Maps CamelCase credentials to aioboto3 client kwargs.
    Empty values are dropped so boto can fall back to its own chain.
    """
    mapped: Dict[str, str] = {}
    if not credentials:
        return mapped

    for src, dst in AWS_CREDENTIAL_MAPPING.items():
        if credentials.get(src):
            mapped[dst] = credentials[src]

    return mapped


def management_credentials(settings: Settings) -> Optional[AWSCredentials]:
    """Organization-management identity; None means boto's default credential chain."""
    if not settings.AWS_ACCESS_KEY_ID:
        return None
    return AWSCredentials(
        access_key_id=settings.AWS_ACCESS_KEY_ID,
        secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
    )


def member_credentials(settings: Settings) -> Optional[AWSCredentials]:
    """Invited-account identity used to accept and list received invitations."""
    if not settings.AWS_MEMBER_ACCESS_KEY_ID:
        return None
    return AWSCredentials(
        access_key_id=settings.AWS_MEMBER_ACCESS_KEY_ID,
        secret_access_key=settings.AWS_MEMBER_SECRET_ACCESS_KEY,
    )


def _log_retry(retry_state: tenacity.RetryCallState) -> None:
    logger.warning(
        "aws_call_retrying",
        attempt=retry_state.attempt_number,
        error=str(retry_state.outcome.exception()) if retry_state.outcome else None,
    )


RETRY_CONFIG = {
    "retry": tenacity.retry_if_exception_type(TRANSIENT_AWS_ERRORS),
    "wait": tenacity.wait_exponential(multiplier=1, min=2, max=10),
    "stop": tenacity.stop_after_attempt(4),
    "before_sleep": _log_retry,
    "reraise": True,
}


# BE-ADAPT-2: Retry decorator for transient AWS connection issues
def with_aws_retry(func):
    """
    Exponential backoff retry decorator for AWS API calls.
    Targets transient network failures; once attempts are exhausted the
    failure surfaces as an AdapterError like any other provider error.
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            async for attempt in tenacity.AsyncRetrying(**RETRY_CONFIG):
                with attempt:
                    return await func(*args, **kwargs)
        except TRANSIENT_AWS_ERRORS as e:
            raise AdapterError(
                message=f"AWS endpoint unreachable: {str(e)}",
                code="connection_error",
            ) from e
    return wrapper
