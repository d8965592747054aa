#!/usr/bin/env python3
"""
Inicialização da aplicação ip-story.
Seleciona a configuração, constrói os serviços de armazenamento e registra a API.
"""

import os
import logging
from dataclasses import dataclass
from typing import Any, Optional, Type

from dotenv import load_dotenv
from flask import Flask, current_app

# .env precisa ser carregado antes das classes de configuração
load_dotenv()

from ipstory.extensions import init_extensions
from ipstory.settings import config_map
from ipstory.settings.base import BaseConfig, ConfigError
from ipstory.services.backend import StoreConfig
from ipstory.services.history_service import HistoryService
from ipstory.services.query_service import QueryService
from ipstory.services.record_store import RecordStore

logger = logging.getLogger(__name__)

EXTENSION_NAME = 'ipstory'


@dataclass
class Services:
    """Serviços construídos uma vez por aplicação."""
    store: RecordStore
    query: QueryService
    history: HistoryService


def get_services() -> Services:
    return current_app.extensions[EXTENSION_NAME]


def _select_config(env_name: Optional[str], config_class) -> Type[BaseConfig]:
    if config_class is None:
        env = (env_name or os.getenv('FLASK_ENV', 'development') or 'development').strip().lower()
        selected = config_map.get(env)
        if selected is None:
            raise ConfigError(f"Unknown environment {env!r}")
        return selected
    if isinstance(config_class, str):
        selected = config_map.get(config_class.strip().lower())
        if selected is None:
            raise ConfigError(f"Unknown environment {config_class!r}")
        return selected
    return config_class


def create_app(env_name: Optional[str] = None, config_class=None,
               redis_client: Any = None) -> Flask:
    """
    Factory para criar a aplicação Flask.

    Args:
        env_name: 'development', 'testing' ou 'production' (padrão: FLASK_ENV)
        config_class: classe de configuração ou nome do ambiente
        redis_client: cliente Redis a injetar no lugar do criado a partir de REDIS_URL

    Raises:
        ConfigError: configuração ausente ou inválida (fatal na inicialização).
    """
    app = Flask(__name__)

    selected_config = _select_config(env_name, config_class)
    selected_config.validate()
    app.config.from_object(selected_config)
    selected_config.init_app(app)

    # Configuração explícita do backend, construída uma única vez
    store_config = StoreConfig.from_mapping(app.config)
    store = RecordStore(store_config, client=redis_client)
    app.extensions[EXTENSION_NAME] = Services(
        store=store,
        query=QueryService(store),
        history=HistoryService(store_config, store.redis_client),
    )

    init_extensions(app)

    from ipstory.controllers.api_controller import api_bp
    app.register_blueprint(api_bp, url_prefix=app.config['API_MOUNTPOINT'])

    @app.after_request
    def _set_cache_headers(response):
        from flask import request as _req
        if _req.path.startswith(app.config['API_MOUNTPOINT']):
            response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
            response.headers['Pragma'] = 'no-cache'
        return response

    logger.info(f"ip-story iniciado ({selected_config.__name__}, backend {store_config.describe()})")
    return app
