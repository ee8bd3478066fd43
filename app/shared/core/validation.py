from typing import Optional

from app.shared.core.exceptions import ValidationError


def require_text(value: Optional[str], field: str) -> str:
    """Stripped value, or ValidationError when missing or blank. Raised before any remote call."""
    if not value or not value.strip():
        raise ValidationError(f"Invalid {field}", details={"field": field})
    return value.strip()
