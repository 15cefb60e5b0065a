"""Discovery of the address other devices on the LAN can reach us at."""

import contextlib
import ipaddress
import socket

# Any routable address works; connect() on a UDP socket sends nothing, it
# only makes the kernel pick the outbound interface.
_PROBE_ADDRESS = ("10.255.255.255", 1)


def _is_external_ipv4(address: str) -> bool:
    try:
        ip = ipaddress.IPv4Address(address)
    except ValueError:
        return False
    return not (ip.is_loopback or ip.is_unspecified or ip.is_link_local)


def get_local_ip_address() -> str | None:
    """Return the first non-loopback IPv4 address of this host, or None.

    Used by the onboarding screen to build a join link that phones on the
    same network can open.
    """
    with contextlib.suppress(OSError), socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.connect(_PROBE_ADDRESS)
        address = sock.getsockname()[0]
        if _is_external_ipv4(address):
            return address

    with contextlib.suppress(OSError):
        for info in socket.getaddrinfo(socket.gethostname(), None, family=socket.AF_INET):
            address = str(info[4][0])
            if _is_external_ipv4(address):
                return address

    return None
