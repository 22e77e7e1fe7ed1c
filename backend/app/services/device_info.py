"""Client device metadata captured when a session token is issued."""

import re
from dataclasses import asdict, dataclass
from typing import Any

from fastapi import Request

from app.core.request_utils import get_client_ip, get_user_agent

UNKNOWN = "Unknown"

# Checked in order: several browsers also advertise "Chrome/" or "Safari/"
_BROWSER_PATTERNS = [
    ("Edge", re.compile(r"Edg(?:e|A|iOS)?/")),
    ("Opera", re.compile(r"OPR/|Opera")),
    ("Samsung Internet", re.compile(r"SamsungBrowser/")),
    ("Firefox", re.compile(r"Firefox/|FxiOS/")),
    ("Chrome", re.compile(r"Chrome/|CriOS/")),
    ("Safari", re.compile(r"Version/[\d.]+.*Safari/")),
]

# iOS and Android before macOS and Linux, whose markers they also contain
_OS_PATTERNS = [
    ("Windows", re.compile(r"Windows NT|Windows Phone|Win64|Win32")),
    ("iOS", re.compile(r"iPhone|iPad|iPod")),
    ("Android", re.compile(r"Android")),
    ("macOS", re.compile(r"Macintosh|Mac OS X")),
    ("ChromeOS", re.compile(r"CrOS")),
    ("Linux", re.compile(r"Linux|X11")),
]


def _match(patterns: list[tuple[str, re.Pattern[str]]], user_agent: str) -> str:
    for name, pattern in patterns:
        if pattern.search(user_agent):
            return name
    return UNKNOWN


def parse_user_agent(user_agent: str) -> tuple[str, str]:
    """Return (browser, os) names for a User-Agent string."""
    if not user_agent:
        return UNKNOWN, UNKNOWN
    return _match(_BROWSER_PATTERNS, user_agent), _match(_OS_PATTERNS, user_agent)


@dataclass(frozen=True)
class DeviceInfo:
    """Audit metadata stored with each token record; never used for authorization."""

    user_agent: str = ""
    ip_address: str | None = None
    browser: str = UNKNOWN
    os: str = UNKNOWN

    @classmethod
    def from_user_agent(cls, user_agent: str, ip_address: str | None = None) -> "DeviceInfo":
        browser, os_name = parse_user_agent(user_agent)
        return cls(user_agent=user_agent, ip_address=ip_address, browser=browser, os=os_name)

    @classmethod
    def from_request(cls, request: Request) -> "DeviceInfo":
        return cls.from_user_agent(get_user_agent(request), get_client_ip(request))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "DeviceInfo":
        data = data or {}
        return cls(
            user_agent=data.get("user_agent") or "",
            ip_address=data.get("ip_address"),
            browser=data.get("browser") or UNKNOWN,
            os=data.get("os") or UNKNOWN,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
