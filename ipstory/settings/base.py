import os, logging
from logging import handlers
from pathlib import Path

class ConfigError(Exception):
    pass

def getenv_typed(name, cast, default=None):
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return cast(raw)
    except Exception as e:
        raise ConfigError(f"Env var {name} invalid: {e}")

class BaseConfig:
    DEBUG = False
    TESTING = False

    # Prefixo de montagem da API HTTP
    API_MOUNTPOINT = os.getenv('API_MOUNTPOINT', '/api')
    JSON_SORT_KEYS = False

    # -----------------------------
    # Redis (backend obrigatório)
    # -----------------------------
    # Sem fallback: ausência ou URL malformada impede a inicialização.
    REDIS_URL = os.getenv('REDIS_URL')
    REDIS_KEY_PREFIX = os.getenv('REDIS_KEY_PREFIX', 'ip-story:')
    REDIS_SOCKET_TIMEOUT = getenv_typed('REDIS_SOCKET_TIMEOUT', float, 5.0)
    REDIS_SOCKET_CONNECT_TIMEOUT = getenv_typed('REDIS_SOCKET_CONNECT_TIMEOUT', float, 5.0)
    REDIS_MAX_CONNECTIONS = getenv_typed('REDIS_MAX_CONNECTIONS', int, None)
    REDIS_HEALTH_CHECK_INTERVAL = getenv_typed('REDIS_HEALTH_CHECK_INTERVAL', int, 30)

    # TTL máximo aceito em PUT /ip/<ip> (None = sem limite)
    RECORD_MAX_TTL = getenv_typed('RECORD_MAX_TTL', int, None)

    # Segundos sugeridos no cabeçalho Retry-After quando o Redis está fora
    BACKEND_RETRY_AFTER = getenv_typed('BACKEND_RETRY_AFTER', int, 5)

    LOG_FILE = os.getenv('LOG_FILE', 'logs/ipstory.log')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
    # 'text' ou 'json' (uma linha JSON por evento)
    LOG_FORMAT = os.getenv('LOG_FORMAT', 'text').lower()

    @classmethod
    def init_app(cls, app):
        from ipstory.utils.logging_config import StructuredFormatter

        level = getattr(logging, cls.LOG_LEVEL)
        if cls.LOG_FORMAT == 'json':
            formatter = StructuredFormatter()
        else:
            formatter = logging.Formatter('%(asctime)s %(levelname)s [%(name)s] %(message)s')

        package_logger = logging.getLogger('ipstory')
        for handler in package_logger.handlers[:]:
            package_logger.removeHandler(handler)

        if cls.LOG_FILE:
            log_file = Path(cls.LOG_FILE)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            fh = handlers.RotatingFileHandler(str(log_file), maxBytes=10_000_000, backupCount=5)
            fh.setLevel(level)
            fh.setFormatter(formatter)
            package_logger.addHandler(fh)
        ch = logging.StreamHandler()
        ch.setLevel(level)
        ch.setFormatter(formatter)
        package_logger.addHandler(ch)
        package_logger.setLevel(level)
        app.logger.setLevel(level)

    @classmethod
    def validate(cls):
        if cls.LOG_LEVEL not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ConfigError(f"Unsupported LOG_LEVEL {cls.LOG_LEVEL}")
        if cls.LOG_FORMAT not in ('text', 'json'):
            raise ConfigError(f"Unsupported LOG_FORMAT {cls.LOG_FORMAT}")
        if not cls.REDIS_URL:
            raise ConfigError("REDIS_URL must be set")
        if not str(cls.API_MOUNTPOINT).startswith('/'):
            raise ConfigError("API_MOUNTPOINT must start with '/'")
