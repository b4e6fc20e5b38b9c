"""Tests for WinRM and SSH transports."""

import base64
import socket
from unittest.mock import MagicMock, patch

import paramiko
import pytest
from winrm.exceptions import WinRMOperationTimeoutError, WinRMTransportError

from winhealth.config.models import TargetConfig
from winhealth.transport.base import create_transport
from winhealth.transport.ssh_transport import SSHTransport
from winhealth.transport.winrm_transport import WinRMTransport
from winhealth.utils.errors import TransportError


@pytest.fixture
def winrm_target():
    return TargetConfig(name="win-01", host="10.1.1.10", password="secret", winrm_scheme="https")


@pytest.fixture
def ssh_target():
    return TargetConfig(name="win-02", host="10.1.1.11", connection="ssh", password="secret")


def test_create_transport_dispatches_on_connection(logger, winrm_target, ssh_target):
    assert isinstance(create_transport(winrm_target, logger), WinRMTransport)
    assert isinstance(create_transport(ssh_target, logger), SSHTransport)


class TestWinRMTransport:

    def test_endpoint(self, logger, winrm_target):
        assert WinRMTransport(winrm_target, logger).endpoint == "https://10.1.1.10:5986/wsman"

    @patch('winhealth.transport.winrm_transport.winrm.Session')
    def test_run_powershell_decodes_output(self, mock_session_cls, logger, winrm_target):
        response = MagicMock(std_out=b"42\r\n", std_err=b"", status_code=0)
        mock_session_cls.return_value.run_ps.return_value = response

        result = WinRMTransport(winrm_target, logger).run_powershell("Get-Date", timeout=60)

        assert result.stdout == "42\r\n"
        assert result.exit_status == 0
        args, kwargs = mock_session_cls.call_args
        assert args[0] == "https://10.1.1.10:5986/wsman"
        assert kwargs["auth"] == ("Administrator", "secret")
        assert kwargs["transport"] == "ntlm"
        assert kwargs["read_timeout_sec"] > kwargs["operation_timeout_sec"]

    @patch('winhealth.transport.winrm_transport.winrm.Session')
    def test_session_is_reused(self, mock_session_cls, logger, winrm_target):
        mock_session_cls.return_value.run_ps.return_value = MagicMock(std_out=b"", std_err=b"", status_code=0)
        transport = WinRMTransport(winrm_target, logger)

        transport.run_powershell("a", 10)
        transport.run_powershell("b", 10)

        assert mock_session_cls.call_count == 1

    @patch('winhealth.transport.winrm_transport.winrm.Session')
    def test_timeouts_follow_each_call(self, mock_session_cls, logger, winrm_target):
        session = mock_session_cls.return_value
        session.run_ps.return_value = MagicMock(std_out=b"", std_err=b"", status_code=0)
        transport = WinRMTransport(winrm_target, logger)

        transport.run_powershell("a", 60)
        assert mock_session_cls.call_args.kwargs["operation_timeout_sec"] == 20
        assert mock_session_cls.call_args.kwargs["read_timeout_sec"] == 65

        transport.run_powershell("b", 9.2)
        assert session.protocol.operation_timeout_sec == 10
        assert session.protocol.read_timeout_sec == 15
        assert session.protocol.transport.read_timeout_sec == 15

    @pytest.mark.parametrize("error,timed_out", [
        (WinRMOperationTimeoutError(), True),
        (WinRMTransportError("http", 500, "Bad HTTP response"), False),
        (ConnectionRefusedError("refused"), False),
    ])
    @patch('winhealth.transport.winrm_transport.winrm.Session')
    def test_errors_map_to_transport_error(self, mock_session_cls, error, timed_out, logger, winrm_target):
        mock_session_cls.return_value.run_ps.side_effect = error

        with pytest.raises(TransportError) as exc_info:
            WinRMTransport(winrm_target, logger).run_powershell("Get-Date", timeout=10)

        assert exc_info.value.timed_out is timed_out


class TestSSHTransport:

    def test_encode_command(self):
        command = SSHTransport.encode_command("Get-Date")

        prefix = "powershell.exe -NoProfile -NonInteractive -EncodedCommand "
        assert command.startswith(prefix)
        assert base64.b64decode(command[len(prefix):]).decode("utf-16-le") == "Get-Date"

    @patch('winhealth.transport.ssh_transport.paramiko.SSHClient')
    def test_run_powershell(self, mock_client_cls, logger, ssh_target):
        client = mock_client_cls.return_value
        stdout = MagicMock()
        stdout.read.return_value = b'{"ok": true}'
        stdout.channel.recv_exit_status.return_value = 0
        stderr = MagicMock()
        stderr.read.return_value = b""
        client.exec_command.return_value = (MagicMock(), stdout, stderr)

        transport = SSHTransport(ssh_target, logger)
        result = transport.run_powershell("Get-Date", timeout=30)

        assert result.stdout == '{"ok": true}'
        assert result.exit_status == 0
        client.connect.assert_called_once()
        assert client.connect.call_args.kwargs["port"] == 22

        transport.close()
        client.close.assert_called_once()

    @patch('winhealth.transport.ssh_transport.paramiko.SSHClient')
    def test_authentication_failure(self, mock_client_cls, logger, ssh_target):
        mock_client_cls.return_value.connect.side_effect = paramiko.AuthenticationException("bad password")

        with pytest.raises(TransportError, match="Authentication failed"):
            SSHTransport(ssh_target, logger).run_powershell("Get-Date", timeout=30)

    @patch('winhealth.transport.ssh_transport.paramiko.SSHClient')
    def test_read_timeout(self, mock_client_cls, logger, ssh_target):
        stdout = MagicMock()
        stdout.read.side_effect = socket.timeout()
        mock_client_cls.return_value.exec_command.return_value = (MagicMock(), stdout, MagicMock())

        with pytest.raises(TransportError) as exc_info:
            SSHTransport(ssh_target, logger).run_powershell("Get-Date", timeout=1)

        assert exc_info.value.timed_out
