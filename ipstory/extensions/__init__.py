"""
Extensões Flask da aplicação: por ora apenas o middleware de requisição.
"""

from flask import Flask

from .middleware import RequestContextMiddleware, audit_log, request_middleware

__all__ = ['RequestContextMiddleware', 'audit_log', 'init_extensions', 'request_middleware']


def init_extensions(app: Flask) -> None:
    """Registra as extensões compartilhadas na aplicação."""
    request_middleware.init_app(app)
