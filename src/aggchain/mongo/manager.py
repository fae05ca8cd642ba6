"""Connection management for MongoDB-backed models.

A MongoManager owns one ``AsyncMongoClient`` and the models registered on it.
The client is created lazily and recreated after ``close_connection()``.
Connection lifecycle events reported by the driver are logged under this
module's logger.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import AsyncMongoClient, monitoring

from aggchain.mongo.model import Model
from aggchain.util.config import configure_logger, get_config

logger = logging.getLogger(__name__)


class ModelSettings(BaseModel):
    """Registration of a model on a manager."""
    name: str
    collection: Optional[str] = None


class ServerEventLogger(monitoring.ServerListener):
    def __init__(self, manager_name: str):
        self.manager_name = manager_name

    def opened(self, event):
        logger.info(f"[{self.manager_name}] connecting to {event.server_address}")

    def description_changed(self, event):
        previous = event.previous_description.server_type_name
        new = event.new_description.server_type_name
        if previous == new:
            return
        if new == "Unknown":
            logger.warning(f"[{self.manager_name}] {event.server_address} has been disconnected")
        elif previous == "Unknown":
            logger.info(f"[{self.manager_name}] connected to {event.server_address} ({new})")
        else:
            logger.warning(f"[{self.manager_name}] {event.server_address} changed from {previous} to {new}")

    def closed(self, event):
        logger.info(f"[{self.manager_name}] connection to {event.server_address} has been closed")


class HeartbeatEventLogger(monitoring.ServerHeartbeatListener):
    def __init__(self, manager_name: str):
        self.manager_name = manager_name

    def started(self, event):
        pass

    def succeeded(self, event):
        pass

    def failed(self, event):
        logger.warning(f"[{self.manager_name}] heartbeat to {event.connection_id} failed: {event.reply}")


class TopologyEventLogger(monitoring.TopologyListener):
    def __init__(self, manager_name: str):
        self.manager_name = manager_name

    def opened(self, event):
        logger.debug(f"[{self.manager_name}] topology {event.topology_id} opened")

    def description_changed(self, event):
        new = event.new_description
        if new.has_writable_server():
            logger.debug(f"[{self.manager_name}] topology is {new.topology_type_name} with a writable server")
        elif new.has_readable_server():
            logger.warning(f"[{self.manager_name}] topology is {new.topology_type_name} without a writable server")
        else:
            logger.error(f"[{self.manager_name}] no server available in {new.topology_type_name} topology")

    def closed(self, event):
        logger.debug(f"[{self.manager_name}] topology {event.topology_id} closed")


class MongoManager:
    """Creates the MongoDB client and hands out models bound to it.

    Args:
        uri: MongoDB connection string. Required.
        name: Name used in log messages and registry lookups.
        database: Database to use when the URI does not name one.
        models: Models to register. Entries without a name are ignored.
        options: Extra keyword arguments for ``AsyncMongoClient``.
    """

    type = "aggchain.mongo"

    _counter = 0

    def __init__(
        self,
        uri: Optional[str],
        name: Optional[str] = None,
        database: Optional[str] = None,
        models: Iterable[Any] = (),
        options: Optional[Dict[str, Any]] = None,
    ):
        if not uri:
            raise ValueError("Missing database uri")
        MongoManager._counter += 1
        self.name = name or f"mongo-{MongoManager._counter}"
        self.uri = uri
        self.database_name = database
        self.connect_options = dict(options or {})
        self.model_settings: Dict[str, ModelSettings] = {}
        for settings in models:
            if not settings:
                continue
            if isinstance(settings, str):
                settings = ModelSettings(name=settings)
            elif isinstance(settings, dict):
                if not settings.get("name"):
                    continue
                settings = ModelSettings(**settings)
            elif not isinstance(settings, ModelSettings):
                logger.warning(f"Ignoring model registration {settings!r}")
                continue
            if not settings.name:
                continue
            self.model_settings[settings.name] = settings

        self._client: Optional[AsyncMongoClient] = None
        self._models: Dict[str, Model] = {}

    @classmethod
    def from_config(cls, name: Optional[str] = None, models: Iterable[Any] = (), **options) -> "MongoManager":
        """Build a manager from the ``mongo_connection_string`` and ``mongo_database`` settings.

        ``logger_levels`` and ``logger_files``, when configured, are applied
        with configure_logger before the manager is created.
        """
        cfg = get_config()
        if cfg.get("logger_levels") or cfg.get("logger_files"):
            configure_logger(cfg.get("logger_levels"), logger_files=cfg.get("logger_files"))
        return cls(
            cfg.get("mongo_connection_string"),
            name=name,
            database=cfg.get("mongo_database"),
            models=models,
            options=options,
        )

    def _create_connection(self) -> AsyncMongoClient:
        logger.info(f"Create connection [{self.name}]")
        listeners = [
            ServerEventLogger(self.name),
            HeartbeatEventLogger(self.name),
            TopologyEventLogger(self.name),
        ]
        self._client = AsyncMongoClient(self.uri, event_listeners=listeners, **self.connect_options)
        self._models = {}
        return self._client

    def get_connection(self) -> AsyncMongoClient:
        """Return the client, creating it on first use or after close_connection().

        A client that lost its servers is kept: the driver reconnects on its
        own and reports the transitions through the event loggers.
        """
        if self._client is None:
            return self._create_connection()
        return self._client

    async def connect(self) -> AsyncMongoClient:
        client = self.get_connection()
        await client.admin.command("ping")
        logger.info(f"[{self.name}] connected!")
        return client

    async def close_connection(self) -> None:
        if self._client is not None:
            await self._client.close()
            logger.info(f"[{self.name}] has been closed!")
        self._client = None
        self._models = {}

    def add_model(self, name: str, collection: Optional[str] = None) -> None:
        self.model_settings[name] = ModelSettings(name=name, collection=collection)
        self._models.pop(name, None)

    def get_model(self, name: str) -> Model:
        if name in self._models:
            return self._models[name]
        try:
            settings = self.model_settings[name]
        except KeyError:
            raise KeyError(f"Model '{name}' is not registered on manager '{self.name}'") from None
        database = self.get_connection().get_default_database(self.database_name)
        logger.debug(f"Binding model {name} to {database.name}.{settings.collection or name}")
        model = Model(name, database[settings.collection or name])
        self._models[name] = model
        return model

    def to_object_id(self, value: Any = None) -> Optional[ObjectId]:
        """Coerce ``value`` to an ObjectId, or return None if it cannot be."""
        try:
            return ObjectId(value)
        except (InvalidId, TypeError) as e:
            logger.warning(f"Could not convert {value!r} to ObjectId: {e}")
            return None
