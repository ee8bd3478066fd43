from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator
from typing import Optional
from app.shared.core.constants import AWS_SUPPORTED_REGIONS


class Settings(BaseSettings):
    """
    Main configuration for CloudLens.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """
    APP_NAME: str = "CloudLens"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # local, development, staging, production
    OTEL_EXPORTER_OTLP_ENDPOINT: Optional[str] = None
    OTEL_EXPORTER_OTLP_INSECURE: bool = False
    TESTING: bool = False

    @model_validator(mode='after')
    def validate_aws_config(self) -> 'Settings':
        """Reject regions outside the whitelist and half-configured identities."""
        if self.TESTING:
            return self

        if self.AWS_DEFAULT_REGION not in self.AWS_SUPPORTED_REGIONS:
            raise ValueError(
                f"AWS_DEFAULT_REGION '{self.AWS_DEFAULT_REGION}' is not in AWS_SUPPORTED_REGIONS."
            )

        # A key id without its secret is always a mistake, in any environment
        for key_id, secret, label in (
            (self.AWS_ACCESS_KEY_ID, self.AWS_SECRET_ACCESS_KEY, "management"),
            (self.AWS_MEMBER_ACCESS_KEY_ID, self.AWS_MEMBER_SECRET_ACCESS_KEY, "member"),
        ):
            if bool(key_id) != bool(secret):
                raise ValueError(f"Incomplete AWS credentials for the {label} identity.")

        if self.is_production:
            if not self.AWS_ACCESS_KEY_ID:
                raise ValueError("AWS_ACCESS_KEY_ID is required in production (management identity).")
            if not self.AWS_MEMBER_ACCESS_KEY_ID:
                raise ValueError("AWS_MEMBER_ACCESS_KEY_ID is required in production (invited-account identity).")

        return self

    # AWS: organization-management identity (inventory, metrics, billing, invite/cancel)
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_DEFAULT_REGION: str = "us-east-1"
    AWS_ENDPOINT_URL: Optional[str] = None  # Local testing (MotoServer/LocalStack)

    # AWS: invited-account identity (accepts and lists received invitations)
    AWS_MEMBER_ACCESS_KEY_ID: Optional[str] = None
    AWS_MEMBER_SECRET_ACCESS_KEY: Optional[str] = None

    # Service endpoints
    CLOUDWATCH_REGION: Optional[str] = None  # Falls back to AWS_DEFAULT_REGION
    COST_EXPLORER_REGION: str = "us-east-1"  # CE is only served from us-east-1

    # Security
    CORS_ORIGINS: list[str] = []

    # AWS Regions (BE-ADAPT-1: Regional Whitelist)
    AWS_SUPPORTED_REGIONS: list[str] = AWS_SUPPORTED_REGIONS

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def metrics_region(self) -> str:
        return self.CLOUDWATCH_REGION or self.AWS_DEFAULT_REGION


@lru_cache
def get_settings():
    """Returns a singleton instance of the application settings."""
    return Settings()
