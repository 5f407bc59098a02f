"""A per-domain cache of robots.txt rules."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass
class RobotsRules:
    """Allow and Disallow path patterns that apply to one user agent."""

    disallowed: list[str] = field(default_factory=list)
    allowed: list[str] = field(default_factory=list)


def _directives(body: str):
    """Yield ``(key, value)`` pairs for every directive line of a robots.txt body."""
    for raw in body.split("\n"):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        yield key.strip().lower(), value.strip()


def parse_robots_txt(body: str, our_agent: str) -> RobotsRules:
    """Collect the rules for ``our_agent``, falling back to the ``*`` section.

    A section applies when its agent is ``*`` or when either agent name
    contains the other, case-insensitively. If no section names our agent
    specifically, only the ``*`` sections are used.
    """
    our_agent_lower = our_agent.lower()
    rules = RobotsRules()
    in_matching_section = False
    found_specific = False

    for key, value in _directives(body):
        if key == "user-agent":
            agent = value.lower()
            in_matching_section = (
                agent == "*" or agent in our_agent_lower or our_agent_lower in agent
            )
            if agent != "*" and in_matching_section:
                found_specific = True
        elif key == "disallow" and in_matching_section and value:
            rules.disallowed.append(value)
        elif key == "allow" and in_matching_section and value:
            rules.allowed.append(value)

    if found_specific:
        return rules

    rules = RobotsRules()
    in_matching_section = False
    for key, value in _directives(body):
        if key == "user-agent":
            in_matching_section = value == "*"
        elif key == "disallow" and in_matching_section and value:
            rules.disallowed.append(value)
        elif key == "allow" and in_matching_section and value:
            rules.allowed.append(value)
    return rules


def path_matches(path: str, pattern: str) -> bool:
    """Match a path against a pattern with an optional trailing ``*`` or ``$``."""
    if pattern.endswith("*"):
        return path.startswith(pattern[:-1])
    if pattern.endswith("$"):
        return path == pattern[:-1]
    return path.startswith(pattern)


class RobotsCache:
    """Thread-safe store of parsed robots.txt rules keyed by domain."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cache: dict[str, RobotsRules] = {}

    def parse_and_store(self, domain: str, body: str, our_agent: str) -> None:
        rules = parse_robots_txt(body, our_agent)
        with self._lock:
            self._cache[domain] = rules

    def is_allowed(self, domain: str, path: str) -> bool:
        """Whether ``path`` may be fetched; unknown domains are always allowed."""
        with self._lock:
            rules = self._cache.get(domain)
        if rules is None:
            return True
        if any(path_matches(path, pattern) for pattern in rules.allowed):
            return True
        if any(path_matches(path, pattern) for pattern in rules.disallowed):
            return False
        return True