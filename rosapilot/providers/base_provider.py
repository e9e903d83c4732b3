from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from rosapilot.utils import setup_logger


class BaseProvider(ABC):
    name: str

    def __init__(self):
        self._logger = setup_logger(self.name.capitalize())

    @abstractmethod
    async def create_cluster(self, options: Any) -> str:
        pass

    @abstractmethod
    async def delete_cluster(self, options: Any) -> None:
        pass
