"""SSH transport for Windows hosts running OpenSSH server."""

import base64
import logging
import os
import socket
from typing import Optional

import paramiko

from ..config.models import TargetConfig
from ..utils.errors import TransportError
from .base import CommandResult, RemoteTransport


class SSHTransport(RemoteTransport):
    """Run PowerShell over SSH with paramiko."""

    CONNECT_TIMEOUT = 10

    def __init__(self, target: TargetConfig, logger: logging.Logger):
        super().__init__(target, logger)
        self._client: Optional[paramiko.SSHClient] = None

    def _connect(self) -> paramiko.SSHClient:
        """
        Create SSH client with key or password authentication.

        Raises:
            TransportError: If connection fails
        """
        if self._client is not None:
            return self._client

        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            self.logger.debug(
                f"Connecting to {self.target.host}:{self.target.effective_port} as {self.target.username}"
            )

            client.connect(
                hostname=self.target.host,
                port=self.target.effective_port,
                username=self.target.username,
                password=self.target.password,
                key_filename=os.path.expanduser(self.target.ssh_key_path) if self.target.ssh_key_path else None,
                timeout=self.CONNECT_TIMEOUT,
                banner_timeout=self.CONNECT_TIMEOUT,
            )

        except paramiko.AuthenticationException as e:
            client.close()
            raise TransportError(f"Authentication failed for {self.target.host}: {e}") from e

        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise TransportError(f"Failed to connect to {self.target.host}: {e}") from e

        self.logger.debug(f"Successfully connected to {self.target.host}")
        self._client = client
        return client

    @staticmethod
    def encode_command(script: str) -> str:
        """Build a powershell.exe command line carrying the script as -EncodedCommand."""
        encoded = base64.b64encode(script.encode('utf-16-le')).decode('ascii')
        return f"powershell.exe -NoProfile -NonInteractive -EncodedCommand {encoded}"

    def run_powershell(self, script: str, timeout: float) -> CommandResult:
        """
        Execute a PowerShell script over SSH and return its output.

        Raises:
            TransportError: If the connection or channel fails
        """
        client = self._connect()

        try:
            stdin, stdout, stderr = client.exec_command(self.encode_command(script), timeout=timeout)

            # Reads honour the channel timeout; recv_exit_status does not
            stdout_data = stdout.read().decode('utf-8', errors='replace')
            stderr_data = stderr.read().decode('utf-8', errors='replace')
            exit_code = stdout.channel.recv_exit_status()

        except socket.timeout as e:
            raise TransportError(f"SSH command timed out on {self.target.host}", timed_out=True) from e

        except (paramiko.SSHException, OSError) as e:
            raise TransportError(f"SSH command failed on {self.target.host}: {e}") from e

        return CommandResult(stdout=stdout_data, stderr=stderr_data, exit_status=exit_code)

    def close(self) -> None:
        """Close SSH client connection."""
        try:
            if self._client:
                self._client.close()
                self.logger.debug("SSH connection closed")
        except Exception as e:
            self.logger.warning(f"Error closing SSH connection: {e}")
        finally:
            self._client = None
