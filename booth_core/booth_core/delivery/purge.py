"""Expiry rules for tokenized delivery links.

Two boundaries apply to a set's ``token_expires_at``:

* verification is exclusive: a token is usable only while
  ``now < token_expires_at``;
* purging is strict: a set is removed once ``token_expires_at < now``.

A set at exactly its expiry instant is therefore unusable but survives
until the next purge.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol, TypeVar


class _Expiring(Protocol):
    token_expires_at: datetime


T = TypeVar("T", bound=_Expiring)


def is_token_live(expires_at: datetime, now: datetime) -> bool:
    return now < expires_at


def partition_expired(sets: Iterable[T], now: datetime) -> tuple[list[T], list[T]]:
    """Split *sets* into ``(kept, expired)``; pure, no I/O."""
    kept: list[T] = []
    expired: list[T] = []
    for item in sets:
        (expired if item.token_expires_at < now else kept).append(item)
    return kept, expired
