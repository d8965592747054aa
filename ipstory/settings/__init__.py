# settings/__init__.py

from .base import BaseConfig, ConfigError
from .development import DevelopmentConfig
from .testing import TestingConfig
from .production import ProductionConfig

config_map = {
    'development': DevelopmentConfig,
    'testing':     TestingConfig,
    'production':  ProductionConfig,
}

__all__ = ['BaseConfig', 'ConfigError', 'DevelopmentConfig', 'TestingConfig',
           'ProductionConfig', 'config_map']
