from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class JSONCache(ABC):
    """Key/value store for JSON-compatible values. ``ttl_seconds=0`` means the entry never expires."""

    @abstractmethod
    def get_json(self, key: str) -> Any | None:
        raise NotImplementedError

    @abstractmethod
    def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError
