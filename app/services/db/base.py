from abc import ABC, abstractmethod

from app.utils.singleton import AbstractSingleton


class BaseDBConnectionService(ABC, metaclass=AbstractSingleton):
    """Process-wide connection holder; every request shares the one client."""
    db = None

    @abstractmethod
    async def _connect(self, **kwargs):
        raise NotImplementedError()

    @abstractmethod
    async def _disconnect(self):
        raise NotImplementedError()

    async def connect(self):
        if self.db is None:
            return await self._connect()
        return self.db

    async def disconnect(self):
        if self.db is not None:
            await self._disconnect()
            self.db = None
