"""Long-lived PowerShell host used by the Exchange adapters.

Both Exchange Management Shell (on-premise) and Exchange Online PowerShell
are session oriented: a connection is made once and later cmdlets run in
that runspace. ``PowerShellHost`` keeps one ``pwsh`` process alive for the
lifetime of such a session and exchanges one command at a time over stdin.
"""

import asyncio
import base64
import json
import logging
import uuid
from typing import Any, Iterable, List, Optional

from ..exceptions import AuthenticationError, CommandError, ConnectionError


# Longest single output line accepted from the host (one serialized object)
STREAM_LIMIT = 64 * 1024 * 1024

# PowerShell accepts typographic single quotes as string delimiters too
_SINGLE_QUOTES = ("'", "‘", "’", "‚", "‛")


def ps_quote(value: str) -> str:
    """Render ``value`` as a single-quoted PowerShell string literal."""
    escaped = str(value)
    for quote in _SINGLE_QUOTES:
        escaped = escaped.replace(quote, quote * 2)
    return f"'{escaped}'"


def ps_array(values: Iterable[str]) -> str:
    """Render a PowerShell array literal of quoted strings."""
    return "@(" + ",".join(ps_quote(v) for v in values) + ")"


class PowerShellHost:
    """
    A single ``pwsh`` process driven over stdin/stdout.

    Every command is wrapped so that each object of its pipeline output
    comes back as one compressed JSON line, followed by a sentinel line
    reporting ``ok`` or ``error``. Terminating errors become ``CommandError``.
    """

    def __init__(self, executable: str = "pwsh"):
        self.executable = executable
        self.logger = logging.getLogger(__name__)
        self._process: Optional[asyncio.subprocess.Process] = None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def start(self) -> None:
        """Spawn the PowerShell process."""
        if self.is_running:
            return
        self.logger.debug(f"Starting PowerShell host: {self.executable}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.executable,
                "-NoLogo",
                "-NoProfile",
                "-NonInteractive",
                "-Command",
                "-",
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            self.logger.error(f"Failed to start PowerShell ({self.executable}): {e}")
            raise ConnectionError(f"Failed to start PowerShell ({self.executable}): {e}")

        try:
            await self.run("$ErrorActionPreference = 'Stop'; $ProgressPreference = 'SilentlyContinue'")
        except CommandError as e:
            await self.stop()
            raise ConnectionError(f"PowerShell host failed to initialise: {e}")

    def build_command(self, script: str, token: str) -> str:
        """Wrap ``script`` in the output protocol and encode it as one stdin line."""
        wrapped = (
            "try {\n"
            f"  $__result = @( {script} )\n"
            "  foreach ($__item in $__result) {\n"
            "    $__json = ConvertTo-Json -InputObject $__item -Depth 5 -Compress\n"
            f"    Write-Output ('<<DATA:{token}>>' + $__json)\n"
            "  }\n"
            f"  Write-Output '<<END:{token}:ok>>'\n"
            "} catch {\n"
            "  $__json = ConvertTo-Json -InputObject ([string]$_.Exception.Message) -Compress\n"
            f"  Write-Output ('<<DATA:{token}>>' + $__json)\n"
            f"  Write-Output '<<END:{token}:error>>'\n"
            "}"
        )
        encoded = base64.b64encode(wrapped.encode("utf-8")).decode("ascii")
        return (
            "Invoke-Expression ([System.Text.Encoding]::UTF8.GetString("
            f"[System.Convert]::FromBase64String('{encoded}')))\n"
        )

    def parse_output(self, lines: List[str], token: str, status: str, script: str) -> List[Any]:
        """Turn the captured lines of one command into its result list."""
        marker = f"<<DATA:{token}>>"
        items = []
        for line in lines:
            if line.startswith(marker):
                payload = line[len(marker):]
                if payload:
                    items.append(json.loads(payload))
            elif line.strip():
                self.logger.debug(f"pwsh: {line}")

        if status != "ok":
            message = items[0] if items and isinstance(items[0], str) and items[0] else "PowerShell command failed"
            raise CommandError(message, command=script)

        return [item for item in items if item is not None]

    async def run(self, script: str) -> List[Any]:
        """
        Execute ``script`` and return its pipeline output.

        Returns:
            List of JSON-decoded objects (empty when the script wrote nothing)

        Raises:
            CommandError: the script threw, or the host died mid-command
        """
        if not self.is_running:
            raise CommandError("PowerShell host is not running", command=script)

        token = uuid.uuid4().hex
        end_prefix = f"<<END:{token}:"

        self._process.stdin.write(self.build_command(script, token).encode("utf-8"))
        await self._process.stdin.drain()

        lines: List[str] = []
        while True:
            try:
                raw = await self._process.stdout.readline()
            except (ValueError, asyncio.LimitOverrunError) as e:
                raise CommandError(f"PowerShell output line exceeds the read limit: {e}", command=script)
            if not raw:
                raise CommandError("PowerShell host exited unexpectedly", command=script)
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            if line.startswith(end_prefix):
                status = line[len(end_prefix):].rstrip(">")
                break
            lines.append(line)

        return self.parse_output(lines, token, status, script)

    async def stop(self) -> None:
        """Exit the PowerShell process."""
        if self._process is None:
            return
        process, self._process = self._process, None
        if process.returncode is not None:
            return
        try:
            process.stdin.write(b"exit\n")
            await process.stdin.drain()
            process.stdin.close()
        except (BrokenPipeError, ConnectionResetError):
            pass
        await process.wait()
        self.logger.debug("PowerShell host stopped")


_AUTH_FAILURE_MARKERS = (
    "aadsts",
    "access is denied",
    "logon failure",
    "(401) unauthorized",
    "user name or password is incorrect",
)


def is_auth_failure(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _AUTH_FAILURE_MARKERS)


def credential_script(username: str, password: str, variable: str = "$__cred") -> str:
    """Statement that builds a PSCredential into ``variable``."""
    return (
        f"{variable} = New-Object System.Management.Automation.PSCredential("
        f"{ps_quote(username)}, (ConvertTo-SecureString {ps_quote(password)} -AsPlainText -Force))"
    )


async def open_host(executable: str, connect_script: str, target: str) -> PowerShellHost:
    """
    Start a host and run ``connect_script`` in it.

    The host is stopped again if the connection fails.

    Raises:
        AuthenticationError: the service rejected the credential
        ConnectionError: any other connection failure
    """
    logger = logging.getLogger(__name__)
    host = PowerShellHost(executable)
    await host.start()
    try:
        await host.run(connect_script)
    except CommandError as e:
        await host.stop()
        logger.error(f"Failed to connect to {target}: {e}")
        if is_auth_failure(str(e)):
            raise AuthenticationError(f"Authentication to {target} failed: {e}")
        raise ConnectionError(f"Failed to connect to {target}: {e}")
    return host


async def close_host(host: PowerShellHost, disconnect_script: str) -> None:
    """Best-effort release: failures are logged and never raised."""
    logger = logging.getLogger(__name__)
    try:
        if host.is_running:
            await host.run(disconnect_script)
    except Exception as e:
        logger.debug(f"Ignoring disconnect failure: {e}")
    try:
        await host.stop()
    except Exception as e:
        logger.debug(f"Ignoring PowerShell shutdown failure: {e}")
