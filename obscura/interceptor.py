"""Hooks that may inspect and alter requests before they are sent."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Union

from obscura.messages import RequestInfo, Response


@dataclass(frozen=True)
class Continue:
    """Send the request unchanged."""


@dataclass(frozen=True)
class Block:
    """Refuse the request."""


@dataclass(frozen=True)
class Fulfill:
    """Answer the request with the given response instead of the network."""

    response: Response


@dataclass(frozen=True)
class ModifyHeaders:
    """Add these headers to the client's extra headers, then send."""

    headers: dict[str, str] = field(default_factory=dict)


InterceptAction = Union[Continue, Block, Fulfill, ModifyHeaders]


class RequestInterceptor(abc.ABC):
    """Decides what happens to each outgoing request."""

    @abc.abstractmethod
    async def intercept(self, request: RequestInfo) -> InterceptAction:
        """Return the action to take for ``request``."""