"""Remote execution transport interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
import logging

from ..config.models import TargetConfig


@dataclass
class CommandResult:
    """Raw output of one remote PowerShell invocation."""

    stdout: str
    stderr: str = ""
    exit_status: int = 0


class RemoteTransport(ABC):
    """
    Opaque remote execution channel to one Windows host.

    Implementations are blocking; callers run them in a worker thread and
    impose their own deadline. Authentication and encryption are entirely
    the underlying library's business.
    """

    def __init__(self, target: TargetConfig, logger: logging.Logger):
        self.target = target
        self.logger = logger.getChild(self.__class__.__name__)

    @abstractmethod
    def run_powershell(self, script: str, timeout: float) -> CommandResult:
        """
        Execute a PowerShell script on the target.

        Raises:
            TransportError: Connection, authentication or protocol failure
        """

    def close(self) -> None:
        """Release any connection held by the transport."""


def create_transport(target: TargetConfig, logger: logging.Logger) -> RemoteTransport:
    """
    Build the transport matching a target's connection type.

    Args:
        target: Target configuration
        logger: Logger instance

    Returns:
        RemoteTransport: Unconnected transport for the target
    """
    if target.connection == "ssh":
        from .ssh_transport import SSHTransport
        return SSHTransport(target, logger)

    from .winrm_transport import WinRMTransport
    return WinRMTransport(target, logger)
