"""Configuration loading utilities."""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass
class ExchangeCredentials:
    """Credentials for Exchange Online PowerShell authentication."""

    tenant_id: str
    client_id: str
    organization: str
    certificate_thumbprint: str | None = None
    certificate_path: str | None = None
    certificate_password: str | None = None


def get_exchange_credentials() -> ExchangeCredentials:
    """Get Exchange Online credentials from environment.

    Uses certificate-based authentication for app-only access.
    Either certificate_thumbprint (Windows) or certificate_path + password
    (cross-platform) must be provided.

    Environment variables:
        EXCHANGE_TENANT_ID: Tenant ID
        EXCHANGE_CLIENT_ID: App registration client ID
        EXCHANGE_ORGANIZATION: Organization domain (e.g. contoso.onmicrosoft.com)
        EXCHANGE_CERTIFICATE_THUMBPRINT: Certificate thumbprint (Windows)
        EXCHANGE_CERTIFICATE_PATH: Path to .pfx certificate file
        EXCHANGE_CERTIFICATE_PASSWORD: Password for .pfx file

    Returns:
        ExchangeCredentials with certificate configuration

    Raises:
        ValueError: If a required variable or both certificate methods are missing
    """
    load_dotenv()

    tenant_id = os.getenv("EXCHANGE_TENANT_ID")
    client_id = os.getenv("EXCHANGE_CLIENT_ID")
    organization = os.getenv("EXCHANGE_ORGANIZATION")

    if not tenant_id or not client_id or not organization:
        raise ValueError(
            "Exchange credentials not set. Required: "
            "EXCHANGE_TENANT_ID, EXCHANGE_CLIENT_ID, EXCHANGE_ORGANIZATION"
        )

    thumbprint = os.getenv("EXCHANGE_CERTIFICATE_THUMBPRINT")
    cert_path = os.getenv("EXCHANGE_CERTIFICATE_PATH")
    cert_password = os.getenv("EXCHANGE_CERTIFICATE_PASSWORD")

    if not thumbprint and not cert_path:
        raise ValueError(
            "Exchange credentials not set. Required: "
            "EXCHANGE_CERTIFICATE_THUMBPRINT (Windows) or "
            "EXCHANGE_CERTIFICATE_PATH + EXCHANGE_CERTIFICATE_PASSWORD (cross-platform)"
        )

    if cert_path and cert_password is None:
        raise ValueError(
            "EXCHANGE_CERTIFICATE_PASSWORD is required when using EXCHANGE_CERTIFICATE_PATH "
            "(can be empty string for Key Vault generated certs)"
        )

    return ExchangeCredentials(
        tenant_id=tenant_id,
        client_id=client_id,
        organization=organization,
        certificate_thumbprint=thumbprint,
        certificate_path=cert_path,
        certificate_password=cert_password,
    )


class ReportSettings(BaseSettings):
    """Run options loaded from MAILBOX_REPORT_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MAILBOX_REPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    output_dir: Path = Field(default=Path("reports"), description="Directory for report files")
    auto_install: bool = Field(
        default=False, description="Install ExchangeOnlineManagement if it is missing"
    )
    auto_update: bool = Field(
        default=False, description="Update ExchangeOnlineManagement when a newer version exists"
    )
    disconnect_on_exit: bool = Field(
        default=True, description="End each PowerShell session with Disconnect-ExchangeOnline"
    )
    abort_on_fetch_error: bool = Field(
        default=False, description="Abort the run on any statistics fetch failure"
    )
    standard_user_type: str = Field(
        default="UserMailbox", description="RecipientTypeDetails value counted as a user mailbox"
    )
    list_timeout: int = Field(
        default=3600,
        gt=0,
        description="Seconds allowed for the session that lists mailboxes and their statistics",
    )


@lru_cache
def get_settings() -> ReportSettings:
    """Get cached settings instance."""
    return ReportSettings()
