import os
import sys
from werkzeug.serving import run_simple

from ipstory import create_app
from ipstory.settings.base import ConfigError


def _env_flag(name: str, default: str = "false") -> bool:
    value = (os.getenv(name, default) or default).strip().lower()
    return value in ("1", "true", "yes", "on")


def _listen_address():
    host = os.getenv("BIND_HOST", "127.0.0.1")
    try:
        port = int(os.getenv("PORT", "8000"))
    except ValueError:
        port = 8000
    return host, port


try:
    app = create_app(os.getenv("FLASK_ENV") or "development")
except ConfigError as e:
    # Redis ausente ou mal configurado: a aplicação não sobe
    print(f"[ip-story] Configuração inválida: {e}", file=sys.stderr, flush=True)
    raise SystemExit(2)


if __name__ == "__main__":
    host, port = _listen_address()
    mountpoint = app.config["API_MOUNTPOINT"]
    print(f"[ip-story] API em http://{host}:{port}{mountpoint}/", flush=True)
    print(f"[ip-story] OpenAPI em http://{host}:{port}{mountpoint}/openapi/json", flush=True)
    run_simple(host, port, app,
               use_reloader=_env_flag("USE_RELOADER"),
               use_debugger=app.debug,
               threaded=True)
