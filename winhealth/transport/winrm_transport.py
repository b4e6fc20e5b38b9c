"""WinRM transport backed by pywinrm."""

import logging
import math
from typing import Tuple

import winrm
from winrm.exceptions import (
    WinRMError,
    WinRMOperationTimeoutError,
    WinRMTransportError,
)

from ..config.models import TargetConfig
from ..utils.errors import TransportError
from .base import CommandResult, RemoteTransport


class WinRMTransport(RemoteTransport):
    """Run PowerShell over WinRM using one pywinrm session per host."""

    # pywinrm polls in operation-timeout slices and requires read > operation
    OPERATION_TIMEOUT_SEC = 20

    def __init__(self, target: TargetConfig, logger: logging.Logger):
        super().__init__(target, logger)
        self._session = None

    @property
    def endpoint(self) -> str:
        return f"{self.target.winrm_scheme}://{self.target.host}:{self.target.effective_port}/wsman"

    def _get_session(self, timeout: float) -> "winrm.Session":
        operation_timeout, read_timeout = self._timeouts(timeout)
        if self._session is None:
            self.logger.debug(
                f"Opening WinRM session to {self.endpoint} as {self.target.username} "
                f"({self.target.winrm_transport})"
            )
            self._session = winrm.Session(
                self.endpoint,
                auth=(self.target.username, self.target.password or ""),
                transport=self.target.winrm_transport,
                server_cert_validation=self.target.server_cert_validation,
                operation_timeout_sec=operation_timeout,
                read_timeout_sec=read_timeout,
            )
        else:
            # Follow the caller's remaining budget on every call
            protocol = self._session.protocol
            protocol.operation_timeout_sec = operation_timeout
            protocol.read_timeout_sec = read_timeout
            protocol.transport.read_timeout_sec = read_timeout
        return self._session

    def _timeouts(self, timeout: float) -> Tuple[int, int]:
        """
        Operation and read timeouts for one call.

        These bound each WSMan request, not the whole command: pywinrm keeps
        polling for output until the remote command ends. The overall
        deadline is enforced by the caller, which abandons the call.
        """
        budget = max(1, math.ceil(timeout))
        operation_timeout = min(self.OPERATION_TIMEOUT_SEC, budget)
        return operation_timeout, max(operation_timeout + 1, budget + 5)

    def run_powershell(self, script: str, timeout: float) -> CommandResult:
        """
        Execute a PowerShell script through WinRM.

        Args:
            script: PowerShell source
            timeout: Caller deadline in seconds, used to size the per-request timeouts

        Returns:
            CommandResult: Decoded stdout/stderr and exit status

        Raises:
            TransportError: On any WinRM, HTTP or socket failure
        """
        try:
            response = self._get_session(timeout).run_ps(script)
        except WinRMOperationTimeoutError as e:
            raise TransportError(f"WinRM operation timed out on {self.target.host}: {e}", timed_out=True) from e
        except (WinRMError, WinRMTransportError) as e:
            raise TransportError(f"WinRM error on {self.target.host}: {e}") from e
        except OSError as e:
            # requests' ConnectionError / Timeout derive from OSError
            raise TransportError(f"Cannot reach {self.endpoint}: {e}") from e

        return CommandResult(
            stdout=response.std_out.decode('utf-8', errors='replace'),
            stderr=response.std_err.decode('utf-8', errors='replace'),
            exit_status=response.status_code,
        )

    def close(self) -> None:
        # pywinrm opens and deletes a remote shell per run_ps call
        self._session = None
