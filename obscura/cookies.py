"""A thread-safe cookie jar keyed by domain and cookie name."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Any, Iterable
from urllib.parse import urlsplit

_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun",
           "jul", "aug", "sep", "oct", "nov", "dec")
_DAYS_IN_MONTH = (0, 31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


@dataclass
class CookieInfo:
    """A cookie as exchanged with DevTools clients."""

    name: str
    value: str
    domain: str
    path: str
    secure: bool = False
    http_only: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "domain": self.domain,
            "path": self.path,
            "secure": self.secure,
            "httpOnly": self.http_only,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CookieInfo":
        return cls(
            name=data["name"],
            value=data["value"],
            domain=data["domain"],
            path=data["path"],
            secure=bool(data["secure"]),
            http_only=bool(data["httpOnly"]),
        )


@dataclass
class _CookieEntry:
    name: str
    value: str
    path: str
    domain: str
    secure: bool
    http_only: bool
    expires: int | None
    same_site: str


def _now() -> int:
    return int(time.time())


def _is_leap(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def _parse_unsigned(text: str) -> int:
    body = text[1:] if text.startswith("+") else text
    if not body or not body.isascii() or not body.isdigit():
        raise ValueError(f"not an unsigned integer: {text!r}")
    return int(body)


def _parse_signed(text: str) -> int:
    body = text[1:] if text[:1] in ("+", "-") else text
    if not body or not body.isascii() or not body.isdigit():
        raise ValueError(f"not an integer: {text!r}")
    return int(text)


def parse_http_date(s: str) -> int:
    """Parse an HTTP cookie date into seconds since the Unix epoch.

    Raises ValueError when the date cannot be read.
    """
    parts = s.replace("-", " ").split()
    if len(parts) < 5:
        raise ValueError(f"malformed HTTP date: {s!r}")

    day = _parse_unsigned(parts[1])
    month_text = parts[2].lower()
    month = next(
        (index for index, name in enumerate(_MONTHS, start=1) if month_text.startswith(name)),
        None,
    )
    if month is None:
        raise ValueError(f"unknown month in HTTP date: {s!r}")
    year = _parse_unsigned(parts[3])
    if day < 1:
        raise ValueError(f"invalid day in HTTP date: {s!r}")

    def time_field(position: int) -> int:
        fields = parts[4].split(":")
        if position >= len(fields):
            return 0
        try:
            return _parse_unsigned(fields[position])
        except ValueError:
            return 0

    hour, minute, second = time_field(0), time_field(1), time_field(2)

    days_total = sum(366 if _is_leap(y) else 365 for y in range(1970, year))
    leap = _is_leap(year)
    days_total += sum(
        _DAYS_IN_MONTH[m] + (1 if m == 2 and leap else 0) for m in range(1, month)
    )
    days_total += day - 1

    return days_total * 86400 + hour * 3600 + minute * 60 + second


def domain_matches(host: str, domain: str) -> bool:
    """Whether a request host falls under a cookie domain."""
    host = host.lower()
    domain = domain.lstrip(".").lower()
    return host == domain or host.endswith("." + domain)


def _url_parts(url: str) -> tuple[str, str, str]:
    parts = urlsplit(url)
    return parts.scheme.lower(), (parts.hostname or "").lower(), parts.path or "/"


def _parse_cookie(cookie_str: str, url: str, honour_http_only: bool) -> _CookieEntry | None:
    name_value, sep, attributes = cookie_str.partition(";")
    name, eq, value = name_value.strip().partition("=")
    if not eq:
        return None

    _, host, url_path = _url_parts(url)
    entry = _CookieEntry(
        name=name.strip(),
        value=value.strip(),
        path=url_path,
        domain=host,
        secure=False,
        http_only=False,
        expires=None,
        same_site="Lax",
    )

    if sep:
        for raw in attributes.split(";"):
            attr = raw.strip()
            key, has_value, val = attr.partition("=")
            if has_value:
                key = key.strip().lower()
                val = val.strip()
                if key == "domain":
                    entry.domain = val.lstrip(".").lower()
                elif key == "path":
                    entry.path = val
                elif key == "expires":
                    try:
                        entry.expires = parse_http_date(val)
                    except ValueError:
                        pass
                elif key == "max-age":
                    try:
                        seconds = _parse_signed(val)
                    except ValueError:
                        continue
                    entry.expires = 0 if seconds <= 0 else _now() + seconds
                elif key == "samesite":
                    entry.same_site = val
            else:
                flag = attr.lower()
                if flag == "secure":
                    entry.secure = True
                elif flag == "httponly" and honour_http_only:
                    entry.http_only = True
    return entry


class CookieJar:
    """Stores cookies per domain and builds Cookie headers for requests."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._cookies: dict[str, dict[str, _CookieEntry]] = {}

    def _store(self, entry: _CookieEntry | None) -> None:
        if entry is None:
            return
        if entry.expires is not None:
            if entry.expires == 0:
                with self._lock:
                    self._cookies.get(entry.domain, {}).pop(entry.name, None)
                return
            if entry.expires < _now():
                return
        with self._lock:
            self._cookies.setdefault(entry.domain, {})[entry.name] = entry

    def _matching(self, url: str, include_http_only: bool) -> str:
        scheme, host, path = _url_parts(url)
        is_secure = scheme == "https"
        now = _now()
        with self._lock:
            pairs = [
                f"{entry.name}={entry.value}"
                for domain, entries in self._cookies.items()
                if domain_matches(host, domain)
                for entry in entries.values()
                if (include_http_only or not entry.http_only)
                and (entry.expires is None or entry.expires >= now)
                and (is_secure or not entry.secure)
                and path.startswith(entry.path)
            ]
        return "; ".join(pairs)

    def set_cookie(self, set_cookie_str: str, url: str) -> None:
        """Store a cookie from a Set-Cookie header received for ``url``."""
        self._store(_parse_cookie(set_cookie_str, url, honour_http_only=True))

    def get_cookie_header(self, url: str) -> str:
        """The Cookie header value to send with a request to ``url``."""
        return self._matching(url, include_http_only=True)

    def get_all_cookies(self) -> list[CookieInfo]:
        with self._lock:
            return [
                CookieInfo(
                    name=entry.name,
                    value=entry.value,
                    domain=entry.domain,
                    path=entry.path,
                    secure=entry.secure,
                    http_only=entry.http_only,
                )
                for entries in self._cookies.values()
                for entry in entries.values()
            ]

    def set_cookies_from_cdp(self, cookies: Iterable[CookieInfo]) -> None:
        with self._lock:
            for cookie in cookies:
                self._cookies.setdefault(cookie.domain, {})[cookie.name] = _CookieEntry(
                    name=cookie.name,
                    value=cookie.value,
                    path=cookie.path,
                    domain=cookie.domain,
                    secure=cookie.secure,
                    http_only=cookie.http_only,
                    expires=None,
                    same_site="Lax",
                )

    def get_js_visible_cookies(self, url: str) -> str:
        """The ``document.cookie`` string for a page at ``url``."""
        return self._matching(url, include_http_only=False)

    def set_cookie_from_js(self, cookie_str: str, url: str) -> None:
        """Store a cookie written through ``document.cookie``; HttpOnly is ignored."""
        self._store(_parse_cookie(cookie_str, url, honour_http_only=False))

    def delete_cookie(self, name: str, domain: str) -> None:
        with self._lock:
            if not domain:
                for entries in self._cookies.values():
                    entries.pop(name, None)
                return
            bare = domain.lstrip(".")
            for candidate in (domain, "." + bare, bare):
                entries = self._cookies.get(candidate)
                if entries is not None:
                    entries.pop(name, None)

    def clear(self) -> None:
        with self._lock:
            self._cookies.clear()