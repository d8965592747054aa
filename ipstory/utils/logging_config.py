"""
Logs estruturados (uma linha JSON por evento) e logger por requisição.

`StructuredFormatter` é instalado por `BaseConfig.init_app` quando
LOG_FORMAT=json; `get_request_logger` é usado pelo middleware de requisição.
"""

import json
import logging
import traceback
from datetime import datetime, timezone

# Atributos passados via `extra=` que viram campos do JSON
CONTEXT_FIELDS = (
    'request_id', 'operation', 'processing_time', 'status_code',
    'address', 'action', 'resource_type', 'resource_id',
)


class StructuredFormatter(logging.Formatter):
    """Serializa o LogRecord como objeto JSON."""

    def format(self, record):
        event = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc)
                                 .isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': f"{record.module}:{record.funcName}:{record.lineno}",
        }
        event.update({name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)})

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            event['exception'] = {
                'type': exc_type.__name__,
                'message': str(exc_value),
                'traceback': ''.join(traceback.format_exception(exc_type, exc_value, exc_tb)),
            }

        return json.dumps(event, ensure_ascii=False, default=str)


class AppLoggerAdapter(logging.LoggerAdapter):
    """Acrescenta o contexto fixo (ex.: request_id) sem sobrescrever `extra` explícito."""

    def process(self, msg, kwargs):
        kwargs['extra'] = {**self.extra, **kwargs.get('extra', {})}
        return msg, kwargs

    def log_performance(self, level, operation, processing_time, status_code=None):
        """Uma linha por requisição: rota, status e duração em segundos."""
        self.log(
            level,
            f"{operation} -> {status_code} in {processing_time:.3f}s",
            extra={
                'operation': operation,
                'processing_time': round(processing_time, 6),
                'status_code': status_code,
            },
        )


def get_request_logger(request_id=None, name='ipstory.request'):
    context = {'request_id': request_id} if request_id else {}
    return AppLoggerAdapter(logging.getLogger(name), context)
