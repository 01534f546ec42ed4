"""Client fingerprint derivation for the public redirect.

Each lookup below is independent and degrades to ``None`` or ``"Unknown"``
instead of raising, so a partial fingerprint is always produced.
"""
import ipaddress
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as LookupDeadlineExceeded
from dataclasses import dataclass
from http.client import HTTPException
from typing import Mapping, Optional
from urllib import error, parse, request

from qrtracker.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Order matters: Chromium user agents also contain "safari".
BROWSER_MARKERS = (
    ("chrome", "Chrome"),
    ("firefox", "Firefox"),
    ("safari", "Safari"),
    ("edge", "Edge"),
)
UNKNOWN_BROWSER = "Unknown"

DEVICE_MARKERS = (
    ("mobile", "Mobile"),
    ("tablet", "Tablet"),
)
DEFAULT_DEVICE = "Desktop"

PRIVATE_NETWORKS = (
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
)

# A worker that outlives its deadline keeps its slot until the socket timeout fires.
_lookup_pool = ThreadPoolExecutor(max_workers=8, thread_name_prefix="geolocation")


@dataclass(frozen=True)
class Geolocation:
    country: Optional[str] = None
    city: Optional[str] = None


@dataclass(frozen=True)
class ClientFingerprint:
    ip_address: Optional[str]
    user_agent: Optional[str]
    browser: str
    device_type: str
    country: Optional[str] = None
    city: Optional[str] = None


def _strip_port(address: str) -> str:
    if address.startswith("["):
        return address[1:].split("]", 1)[0]
    if address.count(":") == 1:
        return address.split(":", 1)[0]
    return address


def _valid_ip(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    # Zone ids are free text; only the address itself is kept.
    candidate = value.strip().split("%", 1)[0]
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return None
    return candidate


def extract_client_ip(headers: Mapping[str, str], peer_address: Optional[str]) -> Optional[str]:
    """Pick the client address from proxy headers, falling back to the peer.

    Header values are trusted as-is; this is used for analytics only. A source
    that does not hold a parsable IP address is skipped.
    """
    forwarded_for = (headers.get("x-forwarded-for") or "").strip()
    if forwarded_for:
        first = _valid_ip(forwarded_for.split(",")[0])
        if first:
            return first

    real_ip = _valid_ip(headers.get("x-real-ip"))
    if real_ip:
        return real_ip

    if peer_address:
        return _valid_ip(_strip_port(peer_address.strip()))
    return None


def classify_user_agent(user_agent: Optional[str]) -> tuple[str, str]:
    ua = (user_agent or "").lower()

    browser = UNKNOWN_BROWSER
    for marker, name in BROWSER_MARKERS:
        if marker in ua:
            browser = name
            break

    device_type = DEFAULT_DEVICE
    for marker, name in DEVICE_MARKERS:
        if marker in ua:
            device_type = name
            break

    return browser, device_type


def is_private_ip(ip: str) -> bool:
    try:
        address = ipaddress.ip_address(ip)
    except ValueError:
        return False
    if address.version == 6 and address.ipv4_mapped:
        address = address.ipv4_mapped
    if address.version != 4:
        return False
    return any(address in network for network in PRIVATE_NETWORKS)


def _text_field(data: dict, key: str) -> Optional[str]:
    value = data.get(key)
    if not isinstance(value, str):
        return None
    return value.strip() or None


def _fetch_geolocation(ip: str) -> Geolocation:
    query = parse.urlencode({"apiKey": settings.IPGEOLOCATION_API_KEY, "ip": ip})
    req = request.Request(f"{settings.GEOLOCATION_API_URL}?{query}", method="GET")
    try:
        with request.urlopen(req, timeout=settings.GEOLOCATION_TIMEOUT_SECONDS) as resp:
            status = getattr(resp, "status", 200)
            if status != 200:
                logger.warning("Geolocation lookup for %s returned status %s", ip, status)
                return Geolocation()
            data = json.loads(resp.read().decode("utf-8"))
    except error.HTTPError as exc:
        logger.warning("Geolocation lookup for %s returned status %s", ip, exc.code)
        return Geolocation()
    except (error.URLError, HTTPException, TimeoutError, OSError) as exc:
        logger.warning("Geolocation lookup for %s failed: %r", ip, exc)
        return Geolocation()
    except (ValueError, UnicodeDecodeError) as exc:
        logger.warning("Geolocation response for %s could not be decoded: %s", ip, exc)
        return Geolocation()

    if not isinstance(data, dict):
        logger.warning("Geolocation response for %s is not an object", ip)
        return Geolocation()
    return Geolocation(country=_text_field(data, "country_name"), city=_text_field(data, "city"))


def lookup_geolocation(ip: Optional[str]) -> Geolocation:
    """Query the geolocation provider for ``ip``.

    Returns an empty result without any network call when the provider is not
    configured or the address is private. Network errors, timeouts, non-200
    responses and undecodable bodies are logged and also yield an empty result.
    The whole call, DNS resolution included, is bounded by
    ``GEOLOCATION_DEADLINE_SECONDS``.
    """
    if not ip or not settings.geolocation_enabled or is_private_ip(ip):
        return Geolocation()

    future = _lookup_pool.submit(_fetch_geolocation, ip)
    try:
        return future.result(timeout=settings.GEOLOCATION_DEADLINE_SECONDS)
    except LookupDeadlineExceeded:
        future.cancel()
        logger.warning(
            "Geolocation lookup for %s exceeded %.2fs, continuing without it",
            ip,
            settings.GEOLOCATION_DEADLINE_SECONDS,
        )
        return Geolocation()


def resolve_fingerprint(headers: Mapping[str, str], peer_address: Optional[str]) -> ClientFingerprint:
    try:
        ip = extract_client_ip(headers, peer_address)
    except Exception:
        logger.exception("Client address extraction failed")
        ip = None

    user_agent = headers.get("user-agent") or None
    try:
        browser, device_type = classify_user_agent(user_agent)
    except Exception:
        logger.exception("User agent classification failed")
        browser, device_type = UNKNOWN_BROWSER, DEFAULT_DEVICE

    try:
        geo = lookup_geolocation(ip)
    except Exception:
        logger.exception("Geolocation lookup for %s failed", ip)
        geo = Geolocation()

    return ClientFingerprint(
        ip_address=ip,
        user_agent=user_agent,
        browser=browser,
        device_type=device_type,
        country=geo.country,
        city=geo.city,
    )
