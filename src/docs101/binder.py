import errno
import os
import socket
from dataclasses import dataclass

from .errors import BindError, InvalidPortError, PortExhaustedError

MAX_PORT = 65535
BACKLOG = 128

_ADDR_IN_USE = {errno.EADDRINUSE, getattr(errno, "WSAEADDRINUSE", errno.EADDRINUSE)}


def resolve_port(port: str) -> int:
    """Turn a port string ("8080", "http") into a TCP port number."""
    text = str(port).strip()
    if text.isascii() and text.isdigit():
        number = int(text)
        if number > MAX_PORT:
            raise InvalidPortError(f"invalid port {port!r}: out of range")
        return number
    try:
        return socket.getservbyname(text, "tcp")
    except OSError:
        raise InvalidPortError(f"invalid port {port!r}: unknown port") from None


@dataclass(frozen=True)
class Listener:
    """A listening socket and the port it actually ended up on."""

    sock: socket.socket
    port: int

    @property
    def root_url(self) -> str:
        return f"http://localhost:{self.port}/"

    def close(self):
        self.sock.close()


def _listen(sock_factory, host: str, port: int, backlog: int) -> socket.socket:
    # ":port" means every interface, IPv6 included where the OS can do both
    dual_stack = host == "" and socket.has_dualstack_ipv6()
    family = socket.AF_INET6 if dual_stack else socket.AF_INET
    sock = sock_factory(family, socket.SOCK_STREAM)
    try:
        if os.name == "posix":
            # Lets us rebind over TIME_WAIT leftovers, a live listener still collides
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if dual_stack:
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
            sock.bind(("::", port))
        else:
            sock.bind((host, port))
        sock.listen(backlog)
    except BaseException:
        sock.close()
        raise
    return sock


def bind_listener(port, host: str = "", backlog: int = BACKLOG, socket_factory=socket.socket) -> Listener:
    """Listen on ``port``, moving up one port at a time while it is taken.

    ``port`` may be an int or a string accepted by resolve_port().
    Raises PortExhaustedError once the candidate would pass 65535, and
    BindError for any other failure.
    """
    candidate = port if isinstance(port, int) else resolve_port(port)
    while True:
        try:
            sock = _listen(socket_factory, host, candidate, backlog)
        except OSError as e:
            if e.errno not in _ADDR_IN_USE:
                raise BindError(f"listen tcp {host}:{candidate}: {e}") from e
            if candidate + 1 > MAX_PORT:
                raise PortExhaustedError(f"listen tcp {host}:{candidate}: {e}; no ports left to try") from e
            print(f"[SERVER] Port {candidate} in use, trying {candidate + 1}")
            candidate += 1
            continue
        # Port 0 asks the OS to pick, report what we got
        bound = sock.getsockname()[1]
        return Listener(sock=sock, port=bound)
