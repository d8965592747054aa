#!/usr/bin/env python3
"""
Acesso de baixo nível ao Redis compartilhado pelos serviços.

- Configuração explícita (`StoreConfig`) construída uma única vez na
  inicialização
- Criação do cliente com pool de conexões (redis-py)
- Envelope de serialização com tag (`JSON:`) para detectar dados corrompidos
- Conversão de erros do Redis em erros do domínio
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Optional
from urllib.parse import urlparse

import redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from ipstory.errors import BackendError, BackendUnavailable, DeserializationError
from ipstory.settings.base import ConfigError

logger = logging.getLogger(__name__)

JSON_PREFIX = b'JSON:'

SUPPORTED_SCHEMES = ('redis', 'rediss', 'unix')


@dataclass(frozen=True)
class StoreConfig:
    """Configuração imutável do backend Redis."""
    redis_url: str
    key_prefix: str = 'ip-story:'
    socket_timeout: float = 5.0
    socket_connect_timeout: float = 5.0
    max_connections: Optional[int] = None
    health_check_interval: int = 30
    max_ttl: Optional[int] = None

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> 'StoreConfig':
        """
        Constrói a configuração a partir de `app.config`.

        Raises:
            ConfigError: se REDIS_URL estiver ausente ou malformada.
        """
        redis_url = (config.get('REDIS_URL') or '').strip()
        if not redis_url:
            raise ConfigError("REDIS_URL must be set")
        parsed = urlparse(redis_url)
        if parsed.scheme not in SUPPORTED_SCHEMES:
            raise ConfigError(f"Unsupported REDIS_URL scheme {parsed.scheme!r}")
        if parsed.scheme == 'unix':
            if not parsed.path:
                raise ConfigError("REDIS_URL unix socket path is empty")
        else:
            try:
                parsed.port  # porta inválida levanta ValueError
            except ValueError as e:
                raise ConfigError(f"REDIS_URL invalid: {e}")
            if not parsed.hostname:
                raise ConfigError("REDIS_URL has no host")

        prefix = config.get('REDIS_KEY_PREFIX') or cls.key_prefix
        if not prefix.endswith(':'):
            prefix += ':'

        return cls(
            redis_url=redis_url,
            key_prefix=prefix,
            socket_timeout=float(config.get('REDIS_SOCKET_TIMEOUT', cls.socket_timeout)),
            socket_connect_timeout=float(config.get('REDIS_SOCKET_CONNECT_TIMEOUT', cls.socket_connect_timeout)),
            max_connections=config.get('REDIS_MAX_CONNECTIONS') or None,
            health_check_interval=int(config.get('REDIS_HEALTH_CHECK_INTERVAL', cls.health_check_interval)),
            max_ttl=config.get('RECORD_MAX_TTL') or None,
        )

    def describe(self) -> str:
        """URL sem credenciais, para logs."""
        parsed = urlparse(self.redis_url)
        if parsed.scheme == 'unix':
            return f"unix://{parsed.path}"
        return f"{parsed.scheme}://{parsed.hostname}:{parsed.port or 6379}{parsed.path}"


def create_redis_client(config: StoreConfig) -> 'redis.Redis':
    """
    Cria o cliente Redis. A conexão é aberta sob demanda pelo pool; a
    reconexão é responsabilidade do próprio redis-py.
    """
    options = {
        'decode_responses': False,
        'socket_connect_timeout': config.socket_connect_timeout,
        'socket_timeout': config.socket_timeout,
        'health_check_interval': config.health_check_interval,
    }
    if config.max_connections:
        options['max_connections'] = config.max_connections
    try:
        client = redis.from_url(config.redis_url, **options)
    except ValueError as e:
        raise ConfigError(f"REDIS_URL invalid: {e}")
    logger.info(f"Cliente Redis configurado: {config.describe()}")
    return client


@contextmanager
def backend_call(operation: str, key: Optional[str] = None) -> Iterator[None]:
    """Converte exceções do redis-py nos erros do domínio, sem repetir o comando."""
    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as e:
        logger.error(f"Redis indisponível em {operation} {key}: {e}")
        raise BackendUnavailable(operation, key, str(e)) from e
    except RedisError as e:
        logger.error(f"Erro Redis em {operation} {key}: {e}")
        raise BackendError(operation, key, str(e)) from e


def encode_document(document: Mapping[str, Any]) -> bytes:
    """Serializa um documento JSON com a tag de formato."""
    serialized = json.dumps(document, ensure_ascii=False, separators=(',', ':'), allow_nan=False)
    return JSON_PREFIX + serialized.encode('utf-8')


def decode_document(key: str, data: Any) -> Any:
    """
    Desserializa bytes gravados por `encode_document`.

    Raises:
        DeserializationError: tag ausente, UTF-8 ou JSON inválidos.
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    if not isinstance(data, (bytes, bytearray)) or not data.startswith(JSON_PREFIX):
        raise DeserializationError(key, 'missing JSON tag')
    try:
        return json.loads(data[len(JSON_PREFIX):].decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as e:
        raise DeserializationError(key, e) from e
