"""Network discovery for X32 consoles.

Consoles do not advertise themselves, so discovery sends an /xinfo query
to every candidate address and collects the replies. Candidates come from
an explicit IP, a /24 subnet sweep, or the local ARP cache.

Replies are matched to probes by source address rather than by OSC
address, since every console answers on the same "/xinfo" address.
"""

import asyncio
import ipaddress
import logging
import platform
import re
import socket
import subprocess
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Self

from x32ctl.api import addresses
from x32ctl.api.osc import OscMessage, encode_message
from x32ctl.api.transport import Address, UdpTransport
from x32ctl.models.console import ConsoleInfo, DiscoveryResult

logger = logging.getLogger(__name__)

DISCOVERY_TIMEOUT = 0.5  # per probe
PING_TIMEOUT = 2.0
BATCH_SIZE = 20
# Lists this short are probed one at a time for clearer logs
SEQUENTIAL_THRESHOLD = 10

_PROC_ARP = Path("/proc/net/arp")
_IPV4_PATTERN = re.compile(r"\b(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})\b")

# Progress callback: (processed, total, found)
ProgressCallback = Callable[[int, int, int], None]


def generate_subnet_ips(subnet: str) -> list[str]:
    """Return the host addresses of a /24 sweep.

    Accepts "192.168.1", "192.168.1.0/24" or any address inside the /24.
    The .0, .1 (usually the gateway) and .255 addresses are skipped.

    Raises:
        ValueError: If the subnet is not a valid IPv4 prefix.
    """
    prefix = subnet.split("/", 1)[0].strip().rstrip(".")
    octets = prefix.split(".")
    if len(octets) == 4:
        octets = octets[:3]
    if len(octets) != 3:
        raise ValueError(f"Expected a /24 prefix like 192.168.1, got {subnet!r}")

    network = ipaddress.IPv4Network(f"{'.'.join(octets)}.0/24")
    return [str(network.network_address + i) for i in range(2, 255)]


def is_candidate_ip(ip: str) -> bool:
    """Return True if an ARP entry could plausibly be a console."""
    try:
        address = ipaddress.IPv4Address(ip)
    except ValueError:
        return False
    if address.is_loopback or address.is_multicast or address.is_unspecified:
        return False
    last_octet = int(ip.rsplit(".", 1)[1])
    # Broadcast and gateway-looking addresses
    return last_octet not in (0, 1, 255)


def parse_neighbor_table(output: str) -> list[str]:
    """Extract candidate IPs from `arp -a` or /proc/net/arp output.

    Windows "Interface:" lines carry the local address and are skipped.

    Returns:
        Unique candidate IPs in first-seen order.
    """
    ips: list[str] = []
    for line in output.splitlines():
        if line.lstrip().startswith("Interface:"):
            continue
        match = _IPV4_PATTERN.search(line)
        if match and is_candidate_ip(match.group(1)):
            ips.append(match.group(1))
    return list(dict.fromkeys(ips))


def read_neighbor_table(timeout: float = 5.0) -> list[str]:
    """Read candidate IPs from the local ARP cache.

    Uses `arp -a` (subprocess, not shell) and falls back to /proc/net/arp
    on Linux systems without the arp tool.

    Returns:
        Candidate IPs, or an empty list if the table cannot be read.
    """
    try:
        result = subprocess.run(
            ["arp", "-a"],
            capture_output=True,
            timeout=timeout,
            text=True,
            check=False,
        )
        if result.returncode == 0:
            return parse_neighbor_table(result.stdout)
        logger.debug("arp -a failed with return code %d", result.returncode)
    except subprocess.TimeoutExpired:
        logger.debug("arp -a timed out after %.1fs", timeout)
    except OSError as e:
        logger.debug("arp command unavailable: %s", e)

    if platform.system().lower() == "linux" and _PROC_ARP.exists():
        try:
            # First line is a column header
            lines = _PROC_ARP.read_text().splitlines()[1:]
        except OSError as e:
            logger.warning("Could not read %s: %s", _PROC_ARP, e)
            return []
        return parse_neighbor_table("\n".join(lines))

    return []


class ConsoleProber:
    """Sends /xinfo probes on a dedicated discovery socket.

    Example:
        async with ConsoleProber(timeout=0.5) as prober:
            result = await prober.probe("192.168.1.50")
    """

    def __init__(
        self,
        port: int = addresses.DEFAULT_PORT,
        local_port: int = 0,
        timeout: float = DISCOVERY_TIMEOUT,
    ) -> None:
        """Initialize the prober.

        Args:
            port: Console OSC port to probe.
            local_port: Local UDP port to bind (0 for an ephemeral port).
            timeout: Seconds to wait for each reply.
        """
        self._port = port
        self._timeout = timeout
        self._transport = UdpTransport("discovery", local_port=local_port)
        self._pending: dict[str, asyncio.Future[DiscoveryResult | None]] = {}
        self._request = encode_message(OscMessage.create(addresses.INFO))

    async def open(self) -> None:
        """Bind the discovery socket."""
        await self._transport.open()
        self._transport.subscribe(self._on_message)

    def close(self) -> None:
        """Resolve outstanding probes as silent and close the socket."""
        for future in self._pending.values():
            if not future.done():
                future.set_result(None)
        self._pending.clear()
        self._transport.close()

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        self.close()

    async def probe(self, ip: str) -> DiscoveryResult | None:
        """Probe one address.

        Returns:
            The console's identification, or None if it stayed silent or
            the probe could not be sent.
        """
        future: asyncio.Future[DiscoveryResult | None] = asyncio.get_running_loop().create_future()
        self._pending[ip] = future
        try:
            self._transport.send_raw(self._request, ip, self._port)
            return await asyncio.wait_for(future, timeout=self._timeout)
        except TimeoutError:
            return None
        except (OSError, ConnectionError) as e:
            logger.debug("Probe to %s failed: %s", ip, e)
            return None
        finally:
            if self._pending.get(ip) is future:
                del self._pending[ip]

    def _on_message(self, item: tuple[OscMessage, Address]) -> None:
        message, (source_ip, _) = item
        future = self._pending.pop(source_ip, None)
        if future is None or future.done():
            return

        info = ConsoleInfo.from_message(message) if message.address == addresses.INFO else None
        if info is None:
            logger.debug("Unexpected reply from %s: %s", source_ip, message.format())
            future.set_result(None)
            return

        future.set_result(
            DiscoveryResult(
                ip=info.ip,
                name=info.name,
                model=info.model,
                firmware=info.firmware,
                source_ip=source_ip,
            )
        )


async def _resolve(host: str, port: int) -> str:
    """Return the IPv4 address for a host name (IPs pass through)."""
    try:
        ipaddress.IPv4Address(host)
        return host
    except ValueError:
        pass
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, port, family=socket.AF_INET)
    return infos[0][4][0]


async def probe_candidates(
    candidates: Iterable[str],
    port: int = addresses.DEFAULT_PORT,
    local_port: int = 0,
    timeout: float = DISCOVERY_TIMEOUT,
    on_progress: ProgressCallback | None = None,
) -> list[DiscoveryResult]:
    """Probe a list of addresses and return the consoles that answered.

    More than SEQUENTIAL_THRESHOLD candidates are probed in parallel batches
    of BATCH_SIZE; shorter lists are probed one at a time.
    """
    ips = list(dict.fromkeys(candidates))
    if not ips:
        return []

    found: list[DiscoveryResult] = []
    processed = 0

    async with ConsoleProber(port=port, local_port=local_port, timeout=timeout) as prober:
        if len(ips) > SEQUENTIAL_THRESHOLD:
            for start in range(0, len(ips), BATCH_SIZE):
                batch = ips[start : start + BATCH_SIZE]
                results = await asyncio.gather(*(prober.probe(ip) for ip in batch))
                found.extend(r for r in results if r is not None)
                processed += len(batch)
                if on_progress:
                    on_progress(processed, len(ips), len(found))
        else:
            for ip in ips:
                result = await prober.probe(ip)
                if result is not None:
                    found.append(result)
                processed += 1
                if on_progress:
                    on_progress(processed, len(ips), len(found))

    for result in found:
        logger.info(
            "Discovered X32: %s (%s, firmware %s) at %s",
            result.name,
            result.model,
            result.firmware,
            result.source_ip,
        )
    return found


async def discover(
    ip: str | None = None,
    subnet: str | None = None,
    local_port: int = 0,
    timeout: float = DISCOVERY_TIMEOUT,
    port: int = addresses.DEFAULT_PORT,
    on_progress: ProgressCallback | None = None,
) -> list[DiscoveryResult]:
    """Find X32 consoles on the network.

    Exactly one candidate source is used: `ip` if given, else `subnet`,
    else the ARP cache. Finding nothing is not an error.

    Args:
        ip: Single address to probe.
        subnet: /24 prefix to sweep (e.g. "192.168.1").
        local_port: Local UDP port to bind (0 for an ephemeral port).
        timeout: Seconds to wait for each probe.
        port: Console OSC port.
        on_progress: Called with (processed, total, found).

    Returns:
        The consoles that answered, possibly empty.
    """
    if ip:
        candidates = [await _resolve(ip, port)]
    elif subnet:
        candidates = generate_subnet_ips(subnet)
    else:
        candidates = await asyncio.to_thread(read_neighbor_table)
        logger.debug("ARP cache yielded %d candidate(s)", len(candidates))

    return await probe_candidates(candidates, port, local_port, timeout, on_progress)


async def ping_console(
    host: str,
    port: int = addresses.DEFAULT_PORT,
    timeout: float = PING_TIMEOUT,
) -> DiscoveryResult | None:
    """Check that a specific console answers /xinfo.

    Returns:
        The console's identification, or None if it did not answer.
    """
    results = await discover(ip=host, port=port, timeout=timeout)
    return results[0] if results else None
