# settings/production.py

import os
from urllib.parse import urlparse
from .base import BaseConfig, ConfigError, getenv_typed

class ProductionConfig(BaseConfig):
    """
    Configurações específicas para o ambiente de Produção.
    DEBUG é desativado.
    Exige que REDIS_URL seja definido explicitamente no ambiente.
    """
    DEBUG = False

    # Limite padrão de 90 dias para TTL solicitado pelo cliente
    RECORD_MAX_TTL = getenv_typed('RECORD_MAX_TTL', int, 90 * 24 * 3600)

    @classmethod
    def validate(cls) -> None:
        # Chama a validação da classe base primeiro
        super().validate()
        # Em produção, exigir autenticação quando o Redis é remoto
        parsed = urlparse(cls.REDIS_URL)
        if parsed.scheme == 'redis' and parsed.hostname not in ('localhost', '127.0.0.1', '::1') \
                and not parsed.password and not os.getenv('REDIS_ALLOW_ANONYMOUS'):
            raise ConfigError("REDIS_URL for a remote host must carry credentials in production")
