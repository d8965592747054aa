# tests/conftest.py

import pytest
import sys
import os
from unittest.mock import Mock

from redis.exceptions import ConnectionError as RedisConnectionError

# Adicionar o diretório raiz ao path (raiz do projeto)
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from ipstory.tests.fakes import FakeRedis  # noqa: E402
from ipstory.services.backend import StoreConfig  # noqa: E402
from ipstory.services.history_service import HistoryService  # noqa: E402
from ipstory.services.query_service import QueryService  # noqa: E402
from ipstory.services.record_store import RecordStore  # noqa: E402


@pytest.fixture
def fake_redis():
    """Backend Redis em memória com contagem de comandos."""
    return FakeRedis()


@pytest.fixture
def store_config():
    return StoreConfig(redis_url='redis://localhost:6379/15', key_prefix='test:')


@pytest.fixture
def store(store_config, fake_redis):
    return RecordStore(store_config, client=fake_redis)


@pytest.fixture
def query_service(store):
    return QueryService(store)


@pytest.fixture
def history_service(store_config, fake_redis):
    return HistoryService(store_config, fake_redis)


@pytest.fixture
def down_redis():
    """Cliente cujo backend está fora do ar."""
    client = Mock()
    for command in ('get', 'set', 'delete', 'exists', 'ttl', 'ping',
                    'hset', 'hget', 'hdel', 'hvals', 'hlen'):
        getattr(client, command).side_effect = RedisConnectionError('Connection refused')
    client.pipeline.return_value.execute.side_effect = RedisConnectionError('Connection refused')
    return client


@pytest.fixture
def app(fake_redis):
    """Aplicação Flask de teste com o Redis em memória injetado."""
    from ipstory import create_app
    return create_app('testing', redis_client=fake_redis)


@pytest.fixture
def client(app):
    """Fixture para cliente de teste."""
    return app.test_client()


# Configurações para pytest
def pytest_configure(config):
    """Configuração do pytest."""
    import warnings
    warnings.filterwarnings("ignore", category=DeprecationWarning)
    warnings.filterwarnings("ignore", category=PendingDeprecationWarning)
