from aggchain.mongo.aggregate import Aggregate, AggregateCursor
from aggchain.mongo.manager import ModelSettings, MongoManager
from aggchain.mongo.model import Model
from aggchain.mongo.registry import Registry, get_connection, get_manager, get_model
