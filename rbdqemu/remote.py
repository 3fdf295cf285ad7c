"""Remote command execution over ssh for rbdqemu."""

from __future__ import annotations

import subprocess
import threading
from typing import IO, List, Protocol

from rbdqemu.exceptions import TransportFault
from rbdqemu.models import ClusterConfig, CommandResult
from rbdqemu.utils import log

SSH_CANNOT_CONNECT = 255


class RemoteExecutor(Protocol):
    def run(self, host: str, command: str) -> CommandResult:
        ...


def _drain(stream_name: str, stream: IO[str], lines: List[str]) -> None:
    """Log each line as it arrives and keep it for the caller."""
    for raw in stream:
        line = raw.rstrip("\n")
        log("DEBUG", f"{stream_name}:{line}")
        lines.append(line)
    stream.close()


class SSHExecutor:
    """Run one shell command on one host with the system ssh client.

    Host keys are not verified and BatchMode forbids interactive prompts.
    Output is streamed and logged line by line while the command runs;
    bytes that are not valid UTF-8 are replaced rather than rejected.
    There is no timeout; a hung session blocks the caller.
    """

    def __init__(self, config: ClusterConfig) -> None:
        self.config = config

    def build_command(self, host: str, command: str) -> List[str]:
        return [
            "ssh",
            "-i",
            self.config.ssh_private_key,
            "-o",
            "StrictHostKeyChecking=no",
            "-o",
            "BatchMode=yes",
            f"{self.config.ssh_user}@{host}",
            command,
        ]

    def run(self, host: str, command: str) -> CommandResult:
        log("DEBUG", f"connecting to {host}.")
        log("DEBUG", f"{{{command}}}")
        try:
            proc = subprocess.Popen(
                self.build_command(host, command),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            log("ERROR", f"Cannot exec ssh - {exc}")
            return CommandResult(fault=TransportFault(f"cannot exec ssh - {exc}"))

        out_lines: List[str] = []
        err_lines: List[str] = []
        # stderr is drained on its own thread so a full pipe cannot stall stdout.
        stderr_reader = threading.Thread(target=_drain, args=("stderr", proc.stderr, err_lines), daemon=True)
        stderr_reader.start()
        _drain("stdout", proc.stdout, out_lines)
        stderr_reader.join()
        returncode = proc.wait()

        result = CommandResult(stdout="\n".join(out_lines), stderr="\n".join(err_lines))
        if returncode == SSH_CANNOT_CONNECT:
            result.fault = TransportFault(f"cannot connect to {host}")
        elif returncode != 0:
            result.fault = TransportFault(f"command on {host} exited with status {returncode}")
        return result
