"""Worker endpoint resolution.

Decides whether the backend worker listens on a UNIX domain socket or a TCP
port and builds the matching command-line fragment.
"""

from __future__ import annotations

import os
import socket
from dataclasses import dataclass
from typing import Tuple, Union

SOCKET_PREFIX = ".mms.sock."


@dataclass(frozen=True)
class UnixEndpoint:
    """Worker listens on a UNIX domain socket."""

    path: str

    kind = "unix"

    def argv(self) -> Tuple[str, ...]:
        return ("--sock-name", self.path, "--sock-type", self.kind)

    def __str__(self) -> str:
        return f"unix:{self.path}"


@dataclass(frozen=True)
class TcpEndpoint:
    """Worker listens on a local TCP port."""

    port: int

    kind = "tcp"

    def argv(self) -> Tuple[str, ...]:
        return ("--port", str(self.port), "--sock-type", self.kind)

    def __str__(self) -> str:
        return f"tcp:127.0.0.1:{self.port}"


WorkerEndpoint = Union[UnixEndpoint, TcpEndpoint]


def unix_sockets_supported() -> bool:
    """Check if the platform offers UNIX domain sockets."""
    return hasattr(socket, "AF_UNIX")


def socket_path(port: int, socket_dir: str = "/tmp") -> str:
    """UNIX socket path for a worker port, e.g. /tmp/.mms.sock.9000."""
    return os.path.join(socket_dir, f"{SOCKET_PREFIX}{port}")


def resolve(
    port: int,
    prefer_unix: bool = False,
    socket_dir: str = "/tmp",
) -> Tuple[WorkerEndpoint, Tuple[str, ...]]:
    """
    Resolve the endpoint a worker should listen on.

    Args:
        port: Worker port, also used to name the UNIX socket
        prefer_unix: Host policy; use a UNIX socket when the platform allows
        socket_dir: Directory of the UNIX socket

    Returns:
        (endpoint, argv fragment for the worker command line)

    Raises:
        ValueError: If port is outside 0..65535
    """
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 65535:
        raise ValueError(f"Invalid worker port: {port!r}")

    endpoint: WorkerEndpoint
    if prefer_unix and unix_sockets_supported():
        endpoint = UnixEndpoint(path=socket_path(port, socket_dir))
    else:
        endpoint = TcpEndpoint(port=port)
    return endpoint, endpoint.argv()
