"""Dev-server port heuristics and probing."""

import asyncio
import logging
import re
import socket
from functools import lru_cache
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

MAX_PORT = 65535

# How many ports above the configured one a dev server may have moved to
PORT_SEARCH_SPAN = 10

# Ordered: explicit flags outrank bare literals
PORT_PATTERNS = [
    re.compile(r"--port[=\s]+(\d+)", re.IGNORECASE),
    re.compile(r"-p[=\s]+(\d+)", re.IGNORECASE),
    re.compile(r"PORT[=\s]*=?[=\s]*(\d+)", re.IGNORECASE),
    re.compile(r":(\d+)(?!\d)"),
    re.compile(r"port\s*:\s*(\d+)", re.IGNORECASE),
    re.compile(r"serve.*?(\d{4,5})", re.IGNORECASE),
]

# (substring, default port) for tools that don't spell out their port
TOOL_DEFAULT_PORTS = [
    ("vite", 5173),
    ("webpack-dev-server", 8080),
    ("next", 3000),
    ("react-scripts", 3000),
]

# Wildcard IPv6 first: dev servers on "localhost" often bind only ::1
IPV6_PROBE_HOST = "::"
PROBE_HOSTS = ("127.0.0.1", "0.0.0.0")

DEV_SERVER_PORT_BASE = 3000
DEV_SERVER_PORT_SPAN = 1000
DEV_SERVER_PORT_OVERRIDES = {
    "counter-app-dev": 3003,
}


def extract_port_from_script(script: Optional[str]) -> Optional[int]:
    """Guess the dev-server port from a package.json script.

    Args:
        script: Script command line, e.g. "vite --port 4000"

    Returns:
        Port number, or None if nothing matched
    """
    if not script:
        return None

    for pattern in PORT_PATTERNS:
        match = pattern.search(script)
        if match:
            port = int(match.group(1))
            logger.debug(f"Found port {port} in '{script}' using pattern {pattern.pattern}")
            return port

    for tool, port in TOOL_DEFAULT_PORTS:
        if tool in script:
            logger.debug(f"Using default {tool} port {port} for '{script}'")
            return port

    logger.debug(f"Could not extract port from script: {script}")
    return None


async def _can_bind(port: int, host: str) -> bool:
    loop = asyncio.get_running_loop()
    try:
        server = await loop.create_server(asyncio.Protocol, host=host, port=port)
    except OSError:
        return False
    server.close()
    await server.wait_closed()
    return True


@lru_cache(maxsize=1)
def ipv6_available() -> bool:
    """Whether this machine can bind an IPv6 socket at all."""
    if not socket.has_ipv6:
        return False
    try:
        with socket.socket(socket.AF_INET6, socket.SOCK_STREAM) as sock:
            sock.bind(("::1", 0))
    except OSError:
        return False
    return True


def probe_hosts() -> tuple:
    if ipv6_available():
        return (IPV6_PROBE_HOST,) + PROBE_HOSTS
    return PROBE_HOSTS


async def detect_port(port: int) -> int:
    """Return the first port >= `port` that is free on every probe host."""
    hosts = probe_hosts()
    candidate = port
    while candidate <= MAX_PORT:
        free = True
        for host in hosts:
            if not await _can_bind(candidate, host):
                free = False
                break
        if free:
            return candidate
        candidate += 1
    raise OSError(f"No free port at or above {port}")


async def is_port_in_use(port: int) -> bool:
    """Whether something already listens on `port`.

    Probe errors count as "not in use".
    """
    try:
        available = await detect_port(port)
        return available != port
    except Exception as e:
        logger.error(f"Error checking port {port}: {e}")
        return False


async def find_running_port(
    base_port: int,
    probe: Callable[[int], Awaitable[bool]] = is_port_in_use,
    span: int = PORT_SEARCH_SPAN,
) -> Optional[int]:
    """Probe base_port, then base_port+1 .. base_port+span, one at a time.

    Returns:
        The first occupied port, or None
    """
    for port in range(base_port, base_port + span + 1):
        if await probe(port):
            return port
    return None


def dev_server_port_for(plugin_id: str) -> int:
    """Deterministic dev-server port for a plugin id, in [3000, 4000)."""
    if plugin_id in DEV_SERVER_PORT_OVERRIDES:
        return DEV_SERVER_PORT_OVERRIDES[plugin_id]

    h = 0
    for ch in plugin_id:
        h = ((h << 5) - h + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return DEV_SERVER_PORT_BASE + abs(h) % DEV_SERVER_PORT_SPAN
