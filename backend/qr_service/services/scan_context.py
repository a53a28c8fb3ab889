"""Best-effort device and location details from request headers."""

import re
from dataclasses import asdict, dataclass

from starlette.requests import Request

from qr_service.rate_limiter import UNKNOWN_CLIENT, client_address

# Order matters: Edge and Opera also advertise Chrome, Chrome advertises Safari
_BROWSERS = [
    ("Edge", re.compile(r"Edg(?:e|A|iOS)?/")),
    ("Opera", re.compile(r"OPR/|Opera")),
    ("Samsung Internet", re.compile(r"SamsungBrowser/")),
    ("Firefox", re.compile(r"Firefox/|FxiOS/")),
    ("Chrome", re.compile(r"Chrome/|CriOS/")),
    ("Safari", re.compile(r"Safari/")),
]

_OPERATING_SYSTEMS = [
    ("Android", re.compile(r"Android")),
    ("iOS", re.compile(r"iPhone|iPad|iPod")),
    ("Windows", re.compile(r"Windows")),
    ("macOS", re.compile(r"Mac OS X|Macintosh")),
    ("Linux", re.compile(r"Linux")),
]

# Geo headers set by common edges/CDNs, most specific first
_CITY_HEADERS = ("X-Vercel-IP-City", "CF-IPCity", "X-Geo-City")
_COUNTRY_HEADERS = ("X-Vercel-IP-Country", "CF-IPCountry", "X-Geo-Country")


def _first_match(patterns: list[tuple[str, re.Pattern]], user_agent: str) -> str | None:
    for name, pattern in patterns:
        if pattern.search(user_agent):
            return name
    return None


def _device_class(user_agent: str) -> str | None:
    if not user_agent:
        return None
    if re.search(r"iPad|Tablet", user_agent):
        return "tablet"
    if re.search(r"Mobile|iPhone|Android", user_agent):
        return "mobile"
    return "desktop"


def _location(request: Request) -> str | None:
    city = next((request.headers[h] for h in _CITY_HEADERS if request.headers.get(h)), None)
    country = next((request.headers[h] for h in _COUNTRY_HEADERS if request.headers.get(h)), None)
    parts = [p for p in (city, country) if p]
    return ", ".join(parts) or None


@dataclass(frozen=True)
class ScanContext:
    """What we could learn about the scanning client. Any field may be None."""

    device: str | None = None
    browser: str | None = None
    os: str | None = None
    location: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_request(cls, request: Request) -> "ScanContext":
        user_agent = request.headers.get("User-Agent", "")
        address = client_address(request)
        return cls(
            device=_device_class(user_agent),
            browser=_first_match(_BROWSERS, user_agent),
            os=_first_match(_OPERATING_SYSTEMS, user_agent),
            location=_location(request),
            ip_address=None if address == UNKNOWN_CLIENT else address[:45],
            user_agent=user_agent[:500] or None,
        )

    def as_fields(self) -> dict[str, str | None]:
        return asdict(self)
