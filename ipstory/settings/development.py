# settings/development.py

import os
from .base import BaseConfig

class DevelopmentConfig(BaseConfig):
    """
    Ambiente de Desenvolvimento: DEBUG ligado, logs detalhados em arquivo
    separado e chaves Redis isoladas das de produção.
    """

    DEBUG: bool = True
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'DEBUG').upper()
    LOG_FILE = os.getenv('LOG_FILE', 'logs/ipstory-dev.log')

    REDIS_KEY_PREFIX = os.getenv('REDIS_KEY_PREFIX', 'ip-story-dev:')
