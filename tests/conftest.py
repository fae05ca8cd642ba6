"""PyTest configuration for aggchain tests.

Provides fixtures for both real MongoDB testing and mocked testing.
"""

import pytest
import logging
import mongomock
from pymongo import MongoClient

from aggchain.util.config import get_config, reset_config

logger = logging.getLogger(__name__)

TEST_DB_NAME = "aggchain_test_db"
TEST_COLLECTION = "movies"


def _connection_string():
    return get_config().get("mongo_connection_string")


def pytest_configure(config):
    """Check whether a MongoDB server is reachable."""
    config.is_mongodb_available = False
    try:
        client = MongoClient(_connection_string(), serverSelectionTimeoutMS=2000)
        client.server_info()
        config.is_mongodb_available = True
        logger.warning("MongoDB is available.")
        client.close()
    except Exception as e:
        logger.warning(f"MongoDB is not available: {e}.  Skipping tests that require it.")
    finally:
        reset_config()


@pytest.fixture
def requires_mongodb(request):
    """Skip the test if MongoDB is not available."""
    if not request.config.is_mongodb_available:
        pytest.skip("Test requires MongoDB, but MongoDB is not available")
    return True


@pytest.fixture
def mongodb_uri(requires_mongodb):
    return _connection_string() or "mongodb://localhost:27017"


@pytest.fixture(scope="function")
def mock_mongodb_client():
    """Create a mock MongoDB client using mongomock."""
    client = mongomock.MongoClient()
    yield client


@pytest.fixture
def movies_collection(mock_mongodb_client):
    """A mongomock collection seeded with a handful of movies."""
    collection = mock_mongodb_client[TEST_DB_NAME][TEST_COLLECTION]
    collection.insert_many([
        {"title": "Alien", "rate": 5, "genre": "horror", "year": 1979},
        {"title": "Heat", "rate": 4, "genre": "crime", "year": 1995},
        {"title": "Cats", "rate": 1, "genre": "musical", "year": 2019},
        {"title": "Ronin", "rate": 4, "genre": "crime", "year": 1998},
        {"title": "Thief", "rate": 3, "genre": "crime", "year": 1981},
    ])
    return collection


@pytest.fixture
def clean_config():
    reset_config()
    yield
    reset_config()
