import logging
import re
import time
import uuid
from typing import Any, Mapping, Optional

from flask import Flask, Response, g, request

from ipstory.utils.logging_config import get_request_logger

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger('ipstory.audit')

# Valores aceitos vindos do cliente; qualquer outro é substituído
_REQUEST_ID = re.compile(r'^[A-Za-z0-9._-]{1,64}$')


class RequestContextMiddleware:
    """
    Atribui um request id a cada requisição (reaproveitando X-Request-ID
    quando válido), devolve-o no cabeçalho da resposta e registra rota,
    status e duração ao final.
    """

    header_name = 'X-Request-ID'

    def __init__(self, app: Optional[Flask] = None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        app.before_request(self._start)
        app.after_request(self._finish)

    def _start(self) -> None:
        incoming = request.headers.get(self.header_name, '')
        g.request_id = incoming if _REQUEST_ID.match(incoming) else uuid.uuid4().hex
        g.request_started = time.perf_counter()
        g.request_logger = get_request_logger(g.request_id)

    def _finish(self, response: Response) -> Response:
        request_id = g.get('request_id')
        if request_id is None:
            return response
        response.headers[self.header_name] = request_id

        elapsed = time.perf_counter() - g.request_started
        # 5xx sobe para WARNING para aparecer mesmo com LOG_LEVEL=WARNING
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        g.request_logger.log_performance(level, f"{request.method} {request.path}",
                                         elapsed, response.status_code)
        return response


def audit_log(action: str, resource_type: Optional[str] = None,
              resource_id: Optional[str] = None,
              details: Optional[Mapping[str, Any]] = None) -> None:
    """
    Registra uma escrita no logger `ipstory.audit`.

    Args:
        action: upsert, delete, add_entry, update_entry, delete_entry, clear_history
        resource_type: 'record' ou 'entry'
        resource_id: endereço ou uuid da entrada
        details: campos adicionais (versão, ttl, tipo da entrada...)
    """
    event = {
        'request_id': g.get('request_id'),
        'client': request.remote_addr,
        'user_agent': request.headers.get('User-Agent', ''),
        'endpoint': request.endpoint,
        'details': dict(details or {}),
    }
    audit_logger.info(
        f"AUDIT {action} {resource_type}:{resource_id} {event}",
        extra={'action': action, 'resource_type': resource_type, 'resource_id': resource_id},
    )


request_middleware = RequestContextMiddleware()
