"""Exchange Online PowerShell client.

Executes Exchange Online PowerShell cmdlets via subprocess to list
mailboxes and read their usage statistics.

This uses the official Exchange Online PowerShell module which is fully
supported by Microsoft.

Prerequisites:
1. PowerShell 7+ (pwsh) on PATH

2. Exchange Online Management module (installed on demand with --auto-install):
   Install-Module -Name ExchangeOnlineManagement

3. For app-only (unattended) authentication, you need:
   - Azure AD App Registration with Exchange.ManageAsApp permission
   - A certificate (self-signed or CA-signed) uploaded to the app
   - The certificate installed locally (or accessible as .pfx file)
   - App assigned the "Global Reader" or "View-Only Recipients" role

References:
- https://learn.microsoft.com/en-us/powershell/exchange/app-only-auth-powershell-v2
- https://learn.microsoft.com/en-us/powershell/module/exchange/get-exomailboxstatistics
"""

import asyncio
import json
import logging
import re
import subprocess
from pathlib import Path

from mailbox_report.core.config import get_exchange_credentials
from mailbox_report.report.models import MailboxRecord, MailboxStatistics
from mailbox_report.report.normalize import parse_last_logon
from mailbox_report.report.runner import FetchError

logger = logging.getLogger(__name__)

MODULE_NAME = "ExchangeOnlineManagement"

# Hashtable fields projected from a Get-EXOMailboxStatistics result held in $s
_STATISTICS_FIELDS = (
    "TotalItemSize = $s.TotalItemSize.ToString(); ItemCount = $s.ItemCount; "
    "LastLogonTime = $(if ($s.LastLogonTime) { $s.LastLogonTime.ToString('o') } else { $null })"
)

# Errors that will recur for every mailbox, so retrying the next one is pointless
SYSTEMIC_ERROR_PATTERNS = [
    r"access (is )?denied",
    r"permission",
    r"unauthori[sz]ed",
    r"AADSTS\d+",
    r"is not recognized as (the name of )?a cmdlet",
    r"PowerShell \(pwsh\) not found",
    r"Import-Module",
    r"Connect-ExchangeOnline",
]


def is_systemic_error(error_msg: str) -> bool:
    """Check if an error message indicates a tenant-wide failure."""
    return any(re.search(pattern, error_msg, re.IGNORECASE) for pattern in SYSTEMIC_ERROR_PATTERNS)


def _version_tuple(version: str) -> tuple[int, ...]:
    """Turn "3.4.0" (or "3.5.0-Preview1") into a comparable tuple."""
    match = re.match(r"[\d.]+", version.strip())
    if not match:
        return ()
    return tuple(int(part) for part in match.group(0).split(".") if part)


def _as_list(data: dict | list | None) -> list[dict]:
    """Normalize ConvertTo-Json output (single objects are not wrapped in arrays)."""
    if not data:
        return []
    if isinstance(data, dict):
        return [data] if "raw" not in data else []
    return [item for item in data if isinstance(item, dict)]


def _as_bool(value: object) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "active", "1", "yes")


class ExchangeOnlineClient:
    """Client for Exchange Online PowerShell operations.

    Executes Exchange cmdlets via subprocess using the official
    ExchangeOnlineManagement PowerShell module.

    ``list_mailboxes`` connects once, lists every mailbox and collects the
    statistics of each one in the same session. ``get_mailbox_statistics``
    then answers from those results, so a full report authenticates once.
    ``disconnect_on_exit`` controls whether that session is explicitly
    closed when the script ends.
    """

    def __init__(
        self,
        certificate_thumbprint: str | None = None,
        certificate_path: Path | str | None = None,
        certificate_password: str | None = None,
        organization: str | None = None,
        disconnect_on_exit: bool = True,
        timeout: int = 120,
        list_timeout: int = 3600,
    ) -> None:
        """Initialize the Exchange Online client.

        Args:
            certificate_thumbprint: Thumbprint of installed certificate (Windows)
            certificate_path: Path to .pfx certificate file (cross-platform)
            certificate_password: Password for the .pfx file
            organization: The organization domain (overrides env config)
            disconnect_on_exit: Run Disconnect-ExchangeOnline when a session ends
            timeout: Seconds to wait for a single-mailbox or module pwsh call
            list_timeout: Seconds to wait for the session that lists all
                mailboxes and collects their statistics
        """
        creds = get_exchange_credentials()
        self.tenant_id = creds.tenant_id
        self.client_id = creds.client_id
        self.organization = organization or creds.organization
        self.certificate_thumbprint = certificate_thumbprint or creds.certificate_thumbprint
        self.certificate_path = certificate_path or creds.certificate_path
        self.certificate_password = certificate_password or creds.certificate_password
        self.disconnect_on_exit = disconnect_on_exit
        self.timeout = timeout
        self.list_timeout = list_timeout
        self.last_error: str | None = None
        self._statistics: dict[str, MailboxStatistics | FetchError] = {}

    def _build_connect_command(self) -> str:
        """Build the Connect-ExchangeOnline command."""
        # Suppress banner output with *>$null to prevent it from mixing with JSON output
        # Prefer certificate_path over thumbprint (thumbprint is Windows-only)
        if self.certificate_path:
            # For empty password (Key Vault certs), skip the -CertificatePassword param
            if self.certificate_password:
                secure_str = (
                    f"-CertificatePassword (ConvertTo-SecureString "
                    f"-String '{self.certificate_password}' -AsPlainText -Force) "
                )
            else:
                secure_str = ""
            return (
                f"Connect-ExchangeOnline "
                f"-AppId '{self.client_id}' "
                f"-CertificateFilePath '{self.certificate_path}' "
                f"{secure_str}"
                f"-Organization '{self.organization}' -ShowBanner:$false *>$null"
            )
        elif self.certificate_thumbprint:
            return (
                f"Connect-ExchangeOnline "
                f"-AppId '{self.client_id}' "
                f"-CertificateThumbprint '{self.certificate_thumbprint}' "
                f"-Organization '{self.organization}' -ShowBanner:$false *>$null"
            )
        else:
            raise ValueError("Either certificate_thumbprint or certificate_path must be provided")

    def _run_powershell(
        self,
        commands: list[str],
        parse_json: bool = True,
        connect: bool = True,
        timeout: int | None = None,
    ) -> dict | list | str | None:
        """Run PowerShell commands and return the result.

        Args:
            commands: List of PowerShell commands to execute
            parse_json: If True, parse output as JSON
            connect: If True, wrap commands in an Exchange Online session
            timeout: Seconds to wait (defaults to self.timeout)

        Returns:
            Parsed JSON, raw string output, or None on failure (see last_error)
        """
        self.last_error = None

        if connect:
            full_script = [
                f"Import-Module {MODULE_NAME} -ErrorAction Stop",
                self._build_connect_command(),
                *commands,
            ]
            if self.disconnect_on_exit:
                full_script.append("Disconnect-ExchangeOnline -Confirm:$false *>$null")
        else:
            full_script = list(commands)

        script = "; ".join(full_script)

        try:
            result = subprocess.run(  # noqa: S603
                ["pwsh", "-NoProfile", "-NonInteractive", "-Command", script],  # noqa: S607
                capture_output=True,
                text=True,
                timeout=timeout or self.timeout,
            )

            if result.returncode != 0:
                self.last_error = result.stderr.strip() or f"pwsh exited with {result.returncode}"
                logger.error(f"PowerShell error: {result.stderr}")
                return None

            output = result.stdout.strip()
            if not output:
                return {} if parse_json else ""

            if parse_json:
                try:
                    return json.loads(output)
                except json.JSONDecodeError:
                    # Warning text may precede JSON - try to find JSON in output
                    starts = [i for i in (output.find("{"), output.find("[")) if i != -1]
                    if starts:
                        try:
                            return json.loads(output[min(starts) :])
                        except json.JSONDecodeError:
                            pass
                    if "{" in output or "[" in output:
                        logger.warning(f"Failed to parse JSON output: {output[:200]}")
                    return {"raw": output}

            return output

        except subprocess.TimeoutExpired:
            self.last_error = "PowerShell command timed out"
            logger.error(self.last_error)
            return None
        except FileNotFoundError:
            self.last_error = "PowerShell (pwsh) not found. Install PowerShell 7+."
            logger.error(self.last_error)
            return None
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"Failed to run PowerShell: {e}")
            return None

    # -------------------------------------------------------------------------
    # Module management
    # -------------------------------------------------------------------------

    async def get_installed_module_version(self) -> str | None:
        """Get the newest installed ExchangeOnlineManagement version, if any."""
        commands = [
            f"Get-Module -ListAvailable -Name {MODULE_NAME} "
            "| Sort-Object Version -Descending | Select-Object -First 1 "
            "| ForEach-Object { $_.Version.ToString() }",
        ]
        result = await asyncio.to_thread(
            self._run_powershell, commands, parse_json=False, connect=False
        )
        if not result:
            return None
        return str(result).strip() or None

    async def get_latest_module_version(self) -> str | None:
        """Get the latest ExchangeOnlineManagement version on the PowerShell Gallery."""
        commands = [
            f"(Find-Module -Name {MODULE_NAME} -Repository PSGallery -ErrorAction Stop)"
            ".Version.ToString()",
        ]
        result = await asyncio.to_thread(
            self._run_powershell, commands, parse_json=False, connect=False
        )
        if not result:
            return None
        return str(result).strip() or None

    async def install_module(self) -> bool:
        """Install ExchangeOnlineManagement for the current user.

        Returns:
            True if successful
        """
        commands = [
            f"Install-Module -Name {MODULE_NAME} -Scope CurrentUser "
            "-Force -AllowClobber -ErrorAction Stop",
            "Write-Output 'SUCCESS'",
        ]
        result = await asyncio.to_thread(
            self._run_powershell, commands, parse_json=False, connect=False
        )
        if result and "SUCCESS" in str(result):
            logger.info(f"Installed {MODULE_NAME}")
            return True

        logger.error(f"Failed to install {MODULE_NAME}: {self.last_error}")
        return False

    async def update_module(self) -> bool:
        """Update ExchangeOnlineManagement to the latest version.

        Returns:
            True if successful
        """
        commands = [
            f"Update-Module -Name {MODULE_NAME} -Force -ErrorAction Stop",
            "Write-Output 'SUCCESS'",
        ]
        result = await asyncio.to_thread(
            self._run_powershell, commands, parse_json=False, connect=False
        )
        if result and "SUCCESS" in str(result):
            logger.info(f"Updated {MODULE_NAME}")
            return True

        logger.error(f"Failed to update {MODULE_NAME}: {self.last_error}")
        return False

    async def ensure_module(self, auto_install: bool = False, auto_update: bool = False) -> bool:
        """Make sure ExchangeOnlineManagement is available.

        Args:
            auto_install: Install the module if it is missing
            auto_update: Update the module if the gallery has a newer version

        Returns:
            True if the module is installed afterwards
        """
        installed = await self.get_installed_module_version()
        if not installed:
            if not auto_install:
                logger.error(
                    f"{MODULE_NAME} is not installed. Run "
                    f"'Install-Module -Name {MODULE_NAME}' or pass --auto-install"
                )
                return False
            logger.info(f"{MODULE_NAME} not found, installing...")
            return await self.install_module()

        logger.info(f"{MODULE_NAME} version {installed} installed")

        if auto_update:
            latest = await self.get_latest_module_version()
            if latest and _version_tuple(latest) > _version_tuple(installed):
                logger.info(f"Updating {MODULE_NAME} {installed} -> {latest}")
                # An older working module is still usable if the update fails
                await self.update_module()
            else:
                logger.debug(f"{MODULE_NAME} is up to date")

        return True

    # -------------------------------------------------------------------------
    # Mailboxes
    # -------------------------------------------------------------------------

    async def list_mailboxes(self) -> list[MailboxRecord]:
        """List all mailboxes in the tenant and collect their statistics.

        Runs one Exchange Online session: lists every mailbox, then fetches
        statistics for each in turn. Per-mailbox failures are kept and
        raised later by get_mailbox_statistics for that mailbox.

        Returns:
            MailboxRecords in the order Exchange returns them

        Raises:
            FetchError: If the session or the listing call fails
        """
        commands = [
            "$mailboxes = @(Get-EXOMailbox -ResultSize Unlimited "
            "-Properties IsMailboxEnabled, ArchiveStatus, Database -ErrorAction Stop "
            "| Select-Object UserPrincipalName, DisplayName, PrimarySmtpAddress, "
            "@{n='RecipientTypeDetails';e={[string]$_.RecipientTypeDetails}}, "
            "IsMailboxEnabled, "
            "@{n='ArchiveStatus';e={[string]$_.ArchiveStatus}}, "
            "@{n='Database';e={[string]$_.Database}})",
            (
                "$statistics = @(foreach ($m in $mailboxes) { "
                "$id = $(if ($m.UserPrincipalName) { $m.UserPrincipalName } "
                "else { [string]$m.PrimarySmtpAddress }); "
                "try { "
                "$s = Get-EXOMailboxStatistics -Identity $id "
                "-Properties LastLogonTime -ErrorAction Stop; "
                f"[pscustomobject]@{{ Identity = $id; {_STATISTICS_FIELDS}; Error = $null }} "
                "} catch { "
                "[pscustomobject]@{ Identity = $id; Error = $_.Exception.Message } "
                "} })"
            ),
            "@{ Mailboxes = $mailboxes; Statistics = $statistics } | ConvertTo-Json -Depth 4",
        ]

        result = await asyncio.to_thread(
            self._run_powershell, commands, timeout=self.list_timeout
        )
        if result is None:
            raise FetchError(
                f"Failed to list mailboxes: {self.last_error}",
                systemic=True,
            )

        data = result if isinstance(result, dict) else {}
        if "raw" in data:
            logger.warning(f"Unexpected output from mailbox listing: {data['raw'][:200]}")

        self._statistics = {}
        for item in _as_list(data.get("Statistics")):
            identity = item.get("Identity") or ""
            if not identity:
                continue
            error = item.get("Error")
            if error:
                self._statistics[identity] = FetchError(
                    f"Failed to get statistics for {identity}: {error}",
                    identity=identity,
                    systemic=is_systemic_error(error),
                )
                continue
            try:
                self._statistics[identity] = self._parse_statistics(identity, item)
            except FetchError as e:
                self._statistics[identity] = e

        mailboxes = []
        for item in _as_list(data.get("Mailboxes")):
            identity = item.get("UserPrincipalName") or item.get("PrimarySmtpAddress") or ""
            if not identity:
                logger.debug(f"Skipping mailbox without identity: {item}")
                continue
            enabled = _as_bool(item.get("IsMailboxEnabled"))
            mailboxes.append(
                MailboxRecord(
                    identity=identity,
                    display_name=item.get("DisplayName") or "",
                    primary_smtp_address=item.get("PrimarySmtpAddress") or "",
                    mailbox_type=item.get("RecipientTypeDetails") or "",
                    enabled=True if enabled is None else enabled,
                    archive_enabled=_as_bool(item.get("ArchiveStatus")),
                    database=item.get("Database") or None,
                )
            )

        logger.debug(
            f"Listed {len(mailboxes)} mailboxes, statistics for {len(self._statistics)}"
        )
        return mailboxes

    async def get_mailbox_statistics(self, identity: str) -> MailboxStatistics:
        """Get size, item count and last logon for one mailbox.

        Answers from the statistics collected by list_mailboxes. A mailbox
        that was not part of the listing is fetched in its own session.

        Args:
            identity: UserPrincipalName or SMTP address

        Returns:
            MailboxStatistics for the mailbox

        Raises:
            FetchError: If the statistics could not be retrieved
        """
        collected = self._statistics.pop(identity, None)
        if collected is None:
            return await self._fetch_mailbox_statistics(identity)
        if isinstance(collected, FetchError):
            raise collected
        return collected

    async def _fetch_mailbox_statistics(self, identity: str) -> MailboxStatistics:
        escaped_identity = identity.replace("'", "''")
        commands = [
            f"$s = Get-EXOMailboxStatistics -Identity '{escaped_identity}' "
            "-Properties LastLogonTime -ErrorAction Stop",
            f"[pscustomobject]@{{ {_STATISTICS_FIELDS} }} | ConvertTo-Json",
        ]

        result = await asyncio.to_thread(self._run_powershell, commands)
        if result is None:
            error = self.last_error or "unknown error"
            raise FetchError(
                f"Failed to get statistics for {identity}: {error}",
                identity=identity,
                systemic=is_systemic_error(error),
            )

        items = _as_list(result)
        if not items:
            raise FetchError(f"No statistics returned for {identity}", identity=identity)
        return self._parse_statistics(identity, items[0])

    def _parse_statistics(self, identity: str, data: dict) -> MailboxStatistics:
        """Build MailboxStatistics from one projected statistics object."""
        if not data.get("TotalItemSize"):
            raise FetchError(f"No statistics returned for {identity}", identity=identity)

        try:
            item_count = int(data.get("ItemCount") or 0)
        except (TypeError, ValueError):
            logger.warning(f"Invalid item count for {identity}: {data.get('ItemCount')!r}")
            item_count = 0

        return MailboxStatistics(
            total_item_size=str(data["TotalItemSize"]),
            item_count=item_count,
            last_logon_time=parse_last_logon(data.get("LastLogonTime")),
        )
