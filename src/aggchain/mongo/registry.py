"""Lookup of managers, connections and models by name."""

import logging
from typing import Dict, Optional

from pymongo import AsyncMongoClient

from aggchain.mongo.manager import MongoManager
from aggchain.mongo.model import Model

logger = logging.getLogger(__name__)


class Registry:
    """Named collection of managers. The first manager added becomes the default."""

    def __init__(self, default_manager: Optional[str] = None):
        self.default_manager = default_manager
        self._managers: Dict[str, object] = {}

    def add_manager(self, manager) -> None:
        self._managers[manager.name] = manager
        if self.default_manager is None:
            self.default_manager = manager.name
        logger.debug(f"Registered manager {manager.name}")

    def get_manager(self, name: Optional[str] = None):
        return self._managers.get(name or self.default_manager)

    def get_connection(self, name: Optional[str] = None):
        manager = self.get_manager(name)
        return manager.get_connection() if manager is not None else None

    def get_model(self, manager_name: str, model_name: Optional[str] = None):
        """Return a model from a manager.

        With one argument the name is a model name looked up on the default
        manager.
        """
        if model_name is None:
            manager_name, model_name = None, manager_name
        manager = self.get_manager(manager_name)
        if manager is None or model_name not in manager.model_settings:
            return None
        return manager.get_model(model_name)

    async def close(self) -> None:
        for manager in self._managers.values():
            await manager.close_connection()


def get_model(registry: Registry, manager_name: str, model_name: Optional[str] = None) -> Model:
    model = registry.get_model(manager_name, model_name)
    if model is None:
        raise LookupError(f'Could not find model "{model_name or manager_name}"')
    return model


def get_manager(registry: Registry, manager_name: Optional[str] = None) -> MongoManager:
    manager = registry.get_manager(manager_name)
    if manager is None:
        raise LookupError(f'Could not find manager "{manager_name or registry.default_manager}"')
    if not isinstance(manager, MongoManager):
        raise TypeError(f'Manager "{manager_name or registry.default_manager}" is not instance of MongoManager')
    return manager


def get_connection(registry: Registry, manager_name: Optional[str] = None) -> AsyncMongoClient:
    connection = registry.get_connection(manager_name)
    if connection is None:
        raise LookupError(f'Could not find connection "{manager_name or registry.default_manager}"')
    return connection
