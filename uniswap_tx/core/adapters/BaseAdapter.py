from __future__ import annotations

from abc import ABC
from typing import Any

from loguru import logger


class BaseAdapter(ABC):
    """Config holder with a bound logger. Subclasses release I/O in ``close``."""

    adapter_type: str | None = None

    def __init__(self, name: str, config: dict[str, Any] | None = None):
        self.name = name
        self.config = config or {}
        self.logger = logger.bind(adapter=self.__class__.__name__)

    def require_config(self, key: str) -> Any:
        value = self.config.get(key)
        if value is None:
            raise ValueError(f"{key} is required for {self.__class__.__name__}")
        return value

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        pass
