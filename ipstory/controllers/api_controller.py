# controllers/api_controller.py

from typing import Any

from flask import Blueprint, jsonify, request, current_app
from flask.wrappers import Response
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from ipstory.errors import (
    BackendError, BackendUnavailable, DeserializationError, EntryConflict,
    InvalidAddress, InvalidPayload,
)
from ipstory.extensions import audit_log
from ipstory.main_startup import get_services
from ipstory.schemas.entry_schema import EntrySchema, SearchQuerySchema
from ipstory.schemas.record_schema import IpRecordSchema
from ipstory.controllers.openapi import build_openapi_document

api_bp = Blueprint('api', __name__)

_record_schema = IpRecordSchema(exclude=('format',))
_entry_schema = EntrySchema()
_search_schema = SearchQuerySchema()


def _ok(data: Any, status: int = 200) -> Response:
    return jsonify(data=data, error=None), status


def _fail(message: str, status: int, **extra) -> Response:
    body = {'data': None, 'error': message}
    body.update(extra)
    return jsonify(body), status


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidPayload({'_schema': ['Request body must be a JSON object.']})
    return body

# --- Blueprint-local error handlers ---

@api_bp.errorhandler(InvalidAddress)
def _handle_invalid_address(e: InvalidAddress) -> Response:
    return _fail(str(e), 400)

@api_bp.errorhandler(InvalidPayload)
def _handle_invalid_payload(e: InvalidPayload) -> Response:
    return _fail('invalid request data', 400, details=e.messages)

@api_bp.errorhandler(EntryConflict)
def _handle_entry_conflict(e: EntryConflict) -> Response:
    return _fail(str(e), 409)

@api_bp.errorhandler(DeserializationError)
def _handle_corrupt_data(e: DeserializationError) -> Response:
    current_app.logger.error(f"Stored data is corrupt at {e.key}: {e.reason}")
    return _fail('stored data is corrupt', 500)

@api_bp.errorhandler(BackendUnavailable)
def _handle_backend_unavailable(e: BackendUnavailable) -> Response:
    response, status = _fail('backend unavailable', 503, transient=True)
    response.headers['Retry-After'] = str(current_app.config.get('BACKEND_RETRY_AFTER', 5))
    return response, status

@api_bp.errorhandler(BackendError)
def _handle_backend_error(e: BackendError) -> Response:
    return _fail('backend error', 502)

@api_bp.errorhandler(HTTPException)
def _handle_http_error(e: HTTPException) -> Response:
    return _fail(e.description or e.name, e.code or 500)

@api_bp.errorhandler(Exception)
def _handle_unexpected_error(e: Exception) -> Response:
    current_app.logger.error("Unexpected error", exc_info=e)
    return _fail('internal server error', 500)

# --- IP records ---

@api_bp.route('/ip/<string:ip>', methods=['GET'])
def ip_lookup(ip: str) -> Response:
    """
    GET /api/ip/<ip>
    Retorna o registro do endereço e os segundos até a expiração (ou null).
    """
    found = get_services().query.describe(ip)
    if found is None:
        return _fail('not found', 404)
    record, ttl = found
    data = _record_schema.dump(record)
    data['expires_in'] = ttl
    return _ok(data)

@api_bp.route('/ip/<string:ip>/exists', methods=['GET'])
def ip_exists(ip: str) -> Response:
    return _ok(get_services().query.exists(ip))

@api_bp.route('/ip/<string:ip>', methods=['PUT'])
def ip_upsert(ip: str) -> Response:
    """
    PUT /api/ip/<ip>
    Corpo: {"payload": {...}, "ttl": <segundos, opcional>}
    """
    body = _json_body()
    record = get_services().query.upsert(ip, body.get('payload'), body.get('ttl'))
    audit_log('upsert', 'record', str(record.address),
              {'id': str(record.id), 'version': record.version, 'ttl': body.get('ttl')})
    return _ok(_record_schema.dump(record))

@api_bp.route('/ip/<string:ip>', methods=['DELETE'])
def ip_remove(ip: str) -> Response:
    removed = get_services().query.remove(ip)
    if removed:
        audit_log('delete', 'record', ip)
    return _ok(removed)

# --- IP history entries ---

@api_bp.route('/ip/<string:ip>/entry', methods=['POST'])
def ip_add_entry(ip: str) -> Response:
    """
    POST /api/ip/<ip>/entry
    Adiciona uma entrada ao histórico; um novo uuid é sempre atribuído.
    """
    entry = get_services().history.add_entry(ip, _json_body())
    audit_log('add_entry', 'entry', str(entry.uuid), {'address': ip, 'kind': entry.kind.value})
    return _ok(_entry_schema.dump(entry))

@api_bp.route('/ip/<string:ip>/entry/update', methods=['POST'])
def ip_update_entry(ip: str) -> Response:
    """
    POST /api/ip/<ip>/entry/update
    Atualiza a entrada identificada pelo uuid do corpo; data=false se não existir.
    """
    body = _json_body()
    updated = get_services().history.update_entry(ip, body)
    if updated:
        audit_log('update_entry', 'entry', str(body.get('uuid')), {'address': ip})
    return _ok(updated)

@api_bp.route('/ip/<string:ip>/entry/search', methods=['GET'])
def ip_search_entry(ip: str) -> Response:
    """
    GET /api/ip/<ip>/entry/search?kind=&offset=&limit=&order=asc|desc
    """
    try:
        params = _search_schema.load(request.args.to_dict())
    except ValidationError as err:
        raise InvalidPayload(err.messages) from err
    entries = get_services().history.search_entries(ip, **params)
    return _ok(_entry_schema.dump(entries, many=True))

@api_bp.route('/ip/<string:ip>/entry/<string:entry_uuid>', methods=['DELETE'])
def ip_del_entry(ip: str, entry_uuid: str) -> Response:
    entry = get_services().history.delete_entry(ip, entry_uuid)
    if entry is None:
        return _ok(None)
    audit_log('delete_entry', 'entry', entry_uuid, {'address': ip})
    return _ok(_entry_schema.dump(entry))

@api_bp.route('/ip/<string:ip>/entry', methods=['DELETE'])
def ip_clear_history(ip: str) -> Response:
    removed = get_services().history.clear_history(ip)
    if removed:
        audit_log('clear_history', 'entry', ip, {'removed': removed})
    return _ok(removed)

# --- Service endpoints ---

@api_bp.route('/openapi/json', methods=['GET'])
def openapi() -> Response:
    return _ok(build_openapi_document(current_app.config['API_MOUNTPOINT']))

@api_bp.route('/health', methods=['GET'])
def api_health() -> Response:
    """
    GET /api/health
    """
    services = get_services()
    services.store.ping()
    return _ok({'status': 'healthy', 'backend': services.store.config.describe()})
