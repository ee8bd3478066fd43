from typing import Optional, Dict, Any

class CloudLensException(Exception):
    """Base exception for all CloudLens errors."""
    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

class AdapterError(CloudLensException):
    """
    Raised when an external cloud adapter fails.
    BE-ADAPT-3: Automatically sanitizes error messages to avoid leaking internal cloud details.
    """
    def __init__(self, message: str, code: str = "adapter_error", details: Optional[Dict[str, Any]] = None):
        sanitized_message = self._sanitize(message)
        super().__init__(sanitized_message, code=code, status_code=502, details=details)

    def _sanitize(self, msg: str) -> str:
        """Remove sensitive tokens, request IDs, and internal paths from error messages."""
        import re
        # Remove UUIDs (likely Request IDs)
        msg = re.sub(r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}', '[REDACTED_ID]', msg, flags=re.IGNORECASE)
        msg = re.sub(r'(?i)(access_key|secret_key|token|password|signature)=[^&\s]+', r'\1=[REDACTED]', msg)
        if "AccessDenied" in msg or "Unauthorized" in msg:
            return "Permission denied: Ensure the configured AWS identity has the required permissions."
        if "Throttling" in msg or "RequestLimitExceeded" in msg:
            return "Cloud provider rate limit exceeded. Retry the request later."
        return msg

class ValidationError(CloudLensException):
    """Raised when a required input is missing or malformed. No remote call is made."""
    def __init__(self, message: str, code: str = "validation_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=400, details=details)

class MetricsUnavailableError(CloudLensException):
    """Raised when the combined metrics fetch fails as a whole."""
    def __init__(self, message: str = "Unable to fetch metrics", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="metrics_unavailable", status_code=503, details=details)

class CostParseError(CloudLensException):
    """Raised when a provider cost amount is present but is not a number."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="cost_parse_error", status_code=502, details=details)
