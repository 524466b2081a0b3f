from abc import ABC, abstractmethod
from typing import Any, Optional

from app.utils.singleton import AbstractSingleton


class BaseCacheService(ABC, metaclass=AbstractSingleton):
    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        raise NotImplementedError()

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        raise NotImplementedError()

    @abstractmethod
    async def delete(self, key: str) -> bool:
        raise NotImplementedError()

    @abstractmethod
    async def exists(self, key: str) -> bool:
        raise NotImplementedError()
