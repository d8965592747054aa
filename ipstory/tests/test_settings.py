"""
Testes de configuração: seleção de ambiente, validação e StoreConfig.
"""

import json
import logging

import pytest

from ipstory import create_app
from ipstory.services.backend import StoreConfig, create_redis_client
from ipstory.settings import config_map
from ipstory.settings.base import ConfigError, getenv_typed
from ipstory.settings.production import ProductionConfig
from ipstory.settings.testing import TestingConfig
from ipstory.tests.fakes import FakeRedis
from ipstory.utils.logging_config import StructuredFormatter, get_request_logger


class TestStoreConfig:

    @pytest.mark.parametrize('url', [
        None, '', '   ', 'http://localhost:6379', 'localhost:6379',
        'redis://', 'redis://localhost:99999/0', 'unix://',
    ])
    def test_missing_or_malformed_url(self, url):
        with pytest.raises(ConfigError):
            StoreConfig.from_mapping({'REDIS_URL': url})

    def test_from_mapping(self):
        config = StoreConfig.from_mapping({
            'REDIS_URL': 'redis://:secret@cache.local:6380/2',
            'REDIS_KEY_PREFIX': 'app',
            'REDIS_SOCKET_TIMEOUT': 2,
            'REDIS_MAX_CONNECTIONS': 20,
            'RECORD_MAX_TTL': 3600,
        })
        assert config.key_prefix == 'app:'
        assert config.socket_timeout == 2.0
        assert config.max_connections == 20
        assert config.max_ttl == 3600
        assert config.describe() == 'redis://cache.local:6380/2'
        assert 'secret' not in config.describe()

    def test_defaults(self):
        config = StoreConfig.from_mapping({'REDIS_URL': 'unix:///var/run/redis.sock'})
        assert config.key_prefix == 'ip-story:'
        assert config.max_ttl is None
        assert config.describe() == 'unix:///var/run/redis.sock'

    def test_client_is_created_without_connecting(self):
        config = StoreConfig(redis_url='redis://localhost:6379/3', socket_timeout=1.5, max_connections=7)
        client = create_redis_client(config)
        kwargs = client.connection_pool.connection_kwargs
        assert kwargs['socket_timeout'] == 1.5
        assert kwargs['db'] == 3
        assert client.connection_pool.max_connections == 7


class TestAppConfig:

    def test_config_map(self):
        assert set(config_map) == {'development', 'testing', 'production'}

    def test_unknown_environment(self):
        with pytest.raises(ConfigError):
            create_app('staging', redis_client=FakeRedis())

    def test_missing_redis_url_is_fatal(self):
        class NoRedisConfig(TestingConfig):
            REDIS_URL = None

        with pytest.raises(ConfigError):
            create_app(config_class=NoRedisConfig, redis_client=FakeRedis())

    def test_invalid_log_level(self):
        class NoisyConfig(TestingConfig):
            LOG_LEVEL = 'VERBOSE'

        with pytest.raises(ConfigError):
            create_app(config_class=NoisyConfig, redis_client=FakeRedis())

    def test_config_by_name(self):
        app = create_app(config_class='testing', redis_client=FakeRedis())
        assert app.config['TESTING'] is True
        assert app.config['API_MOUNTPOINT'] == '/api'

    def test_custom_mountpoint(self):
        class MountedConfig(TestingConfig):
            API_MOUNTPOINT = '/v1'

        client = create_app(config_class=MountedConfig, redis_client=FakeRedis()).test_client()
        assert client.get('/v1/health').status_code == 200
        assert client.get('/api/health').status_code == 404

    def test_production_requires_credentials_for_remote_redis(self, monkeypatch):
        monkeypatch.delenv('REDIS_ALLOW_ANONYMOUS', raising=False)

        class RemoteConfig(ProductionConfig):
            REDIS_URL = 'redis://cache.example.net:6379/0'

        with pytest.raises(ConfigError):
            RemoteConfig.validate()

        class AuthenticatedConfig(ProductionConfig):
            REDIS_URL = 'redis://:s3cret@cache.example.net:6379/0'

        AuthenticatedConfig.validate()

    def test_getenv_typed(self, monkeypatch):
        monkeypatch.setenv('IPSTORY_TEST_VALUE', '12')
        assert getenv_typed('IPSTORY_TEST_VALUE', int, 0) == 12

        monkeypatch.setenv('IPSTORY_TEST_VALUE', '')
        assert getenv_typed('IPSTORY_TEST_VALUE', int, 7) == 7

        monkeypatch.setenv('IPSTORY_TEST_VALUE', 'twelve')
        with pytest.raises(ConfigError):
            getenv_typed('IPSTORY_TEST_VALUE', int)


class TestLogging:

    def test_structured_formatter_emits_json(self):
        record = logging.LogRecord('ipstory.request', logging.INFO, __file__, 10,
                                   'GET /api/health -> 200', None, None)
        record.request_id = 'abc'
        record.status_code = 200

        entry = json.loads(StructuredFormatter().format(record))
        assert entry['level'] == 'INFO'
        assert entry['logger'] == 'ipstory.request'
        assert entry['request_id'] == 'abc'
        assert entry['status_code'] == 200
        assert entry['timestamp'].endswith('Z')

    def test_request_logger_carries_request_id(self, caplog):
        caplog.set_level(logging.INFO, logger='ipstory.request')
        get_request_logger('req-1').log_performance(logging.INFO, 'GET /api/ip/x', 0.0125, 404)

        [record] = [r for r in caplog.records if r.name == 'ipstory.request']
        assert record.request_id == 'req-1'
        assert record.status_code == 404
        assert 'GET /api/ip/x -> 404' in record.getMessage()
