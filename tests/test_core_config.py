"""Tests for mailbox_report.core.config."""

from pathlib import Path
from unittest.mock import patch

import pytest

from mailbox_report.core.config import ReportSettings, get_exchange_credentials


class TestGetExchangeCredentials:
    """Tests for get_exchange_credentials function."""

    def test_returns_credentials_with_thumbprint(self, mock_exchange_env):
        with patch("mailbox_report.core.config.load_dotenv"):
            creds = get_exchange_credentials()

        assert creds.tenant_id == "test-tenant-id"
        assert creds.client_id == "test-client-id"
        assert creds.organization == "contoso.onmicrosoft.com"
        assert creds.certificate_thumbprint == "ABC123"
        assert creds.certificate_path is None

    def test_returns_credentials_with_certificate_path(self, mock_exchange_env, monkeypatch):
        monkeypatch.delenv("EXCHANGE_CERTIFICATE_THUMBPRINT")
        monkeypatch.setenv("EXCHANGE_CERTIFICATE_PATH", "/certs/app.pfx")
        monkeypatch.setenv("EXCHANGE_CERTIFICATE_PASSWORD", "")

        with patch("mailbox_report.core.config.load_dotenv"):
            creds = get_exchange_credentials()

        assert creds.certificate_path == "/certs/app.pfx"
        assert creds.certificate_password == ""

    def test_raises_when_tenant_id_missing(self, mock_exchange_env, monkeypatch):
        monkeypatch.delenv("EXCHANGE_TENANT_ID")

        with (
            patch("mailbox_report.core.config.load_dotenv"),
            pytest.raises(ValueError, match="EXCHANGE_TENANT_ID"),
        ):
            get_exchange_credentials()

    def test_raises_when_organization_missing(self, mock_exchange_env, monkeypatch):
        monkeypatch.delenv("EXCHANGE_ORGANIZATION")

        with (
            patch("mailbox_report.core.config.load_dotenv"),
            pytest.raises(ValueError, match="EXCHANGE_ORGANIZATION"),
        ):
            get_exchange_credentials()

    def test_raises_when_no_certificate(self, mock_exchange_env, monkeypatch):
        monkeypatch.delenv("EXCHANGE_CERTIFICATE_THUMBPRINT")

        with (
            patch("mailbox_report.core.config.load_dotenv"),
            pytest.raises(ValueError, match="EXCHANGE_CERTIFICATE_THUMBPRINT"),
        ):
            get_exchange_credentials()

    def test_raises_when_certificate_password_missing(self, mock_exchange_env, monkeypatch):
        monkeypatch.delenv("EXCHANGE_CERTIFICATE_THUMBPRINT")
        monkeypatch.setenv("EXCHANGE_CERTIFICATE_PATH", "/certs/app.pfx")

        with (
            patch("mailbox_report.core.config.load_dotenv"),
            pytest.raises(ValueError, match="EXCHANGE_CERTIFICATE_PASSWORD"),
        ):
            get_exchange_credentials()


class TestReportSettings:
    """Tests for ReportSettings."""

    def test_defaults(self, monkeypatch):
        for name in (
            "OUTPUT_DIR",
            "AUTO_INSTALL",
            "AUTO_UPDATE",
            "DISCONNECT_ON_EXIT",
            "ABORT_ON_FETCH_ERROR",
            "STANDARD_USER_TYPE",
            "LIST_TIMEOUT",
        ):
            monkeypatch.delenv(f"MAILBOX_REPORT_{name}", raising=False)

        settings = ReportSettings(_env_file=None)

        assert settings.output_dir == Path("reports")
        assert settings.auto_install is False
        assert settings.auto_update is False
        assert settings.disconnect_on_exit is True
        assert settings.abort_on_fetch_error is False
        assert settings.standard_user_type == "UserMailbox"
        assert settings.list_timeout == 3600

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("MAILBOX_REPORT_OUTPUT_DIR", "/tmp/out")
        monkeypatch.setenv("MAILBOX_REPORT_AUTO_INSTALL", "true")
        monkeypatch.setenv("MAILBOX_REPORT_DISCONNECT_ON_EXIT", "false")
        monkeypatch.setenv("MAILBOX_REPORT_LIST_TIMEOUT", "7200")

        settings = ReportSettings(_env_file=None)

        assert settings.output_dir == Path("/tmp/out")
        assert settings.auto_install is True
        assert settings.disconnect_on_exit is False
        assert settings.list_timeout == 7200

    def test_reads_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("MAILBOX_REPORT_ABORT_ON_FETCH_ERROR", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text(
            "EXCHANGE_TENANT_ID=ignored\nMAILBOX_REPORT_ABORT_ON_FETCH_ERROR=true\n"
        )

        settings = ReportSettings(_env_file=env_file)

        assert settings.abort_on_fetch_error is True
