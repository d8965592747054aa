# settings/testing.py

from .base import BaseConfig

class TestingConfig(BaseConfig):
    """
    Ambiente de Teste.

    Os testes injetam um cliente Redis em memória em `create_app`, então a
    URL abaixo só precisa ser válida; nada conecta nela. Sem arquivo de log.
    """
    TESTING = True
    LOG_LEVEL = 'ERROR'
    LOG_FILE = ''
    LOG_FORMAT = 'text'
    API_MOUNTPOINT = '/api'

    REDIS_URL = 'redis://localhost:6379/15'
    REDIS_KEY_PREFIX = 'ip-story-test:'
    RECORD_MAX_TTL = 86400
    BACKEND_RETRY_AFTER = 5
