"""
Documento OpenAPI 3.0 da API HTTP, servido em GET <mountpoint>/openapi/json.

Mantido à mão junto com `api_controller`; os valores de enumeração vêm dos
próprios modelos para não divergirem.
"""

from typing import Any, Dict

from ipstory.models.entry import DataKind, SearchOrder

API_TITLE = 'ip-story'
API_VERSION = '0.1.0'
TAG = 'IP Management'


def _envelope(data_schema: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'type': 'object',
        'properties': {
            'data': {**data_schema, 'nullable': True},
            'error': {'type': 'string', 'nullable': True},
        },
        'required': ['data', 'error'],
    }


def _response(description: str, data_schema: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'description': description,
        'content': {'application/json': {'schema': _envelope(data_schema)}},
    }


def _ref(name: str) -> Dict[str, Any]:
    return {'$ref': f'#/components/schemas/{name}'}


_IP_PARAM = {
    'name': 'ip', 'in': 'path', 'required': True,
    'description': 'IPv4 or IPv6 address (any textual form)',
    'schema': {'type': 'string'},
}

_ERRORS = {
    '400': _response('Invalid address or request data', {}),
    '503': _response('Backend unavailable (transient, see Retry-After)', {}),
}


def _components() -> Dict[str, Any]:
    return {
        'IpRecord': {
            'type': 'object',
            'properties': {
                'id': {'type': 'string', 'format': 'uuid'},
                'address': {'type': 'string'},
                'payload': {'type': 'object', 'additionalProperties': True},
                'created_at': {'type': 'string', 'format': 'date-time'},
                'updated_at': {'type': 'string', 'format': 'date-time'},
                'version': {'type': 'integer', 'minimum': 1},
                'expires_in': {'type': 'integer', 'nullable': True},
            },
            'required': ['id', 'address', 'payload', 'created_at', 'updated_at', 'version'],
        },
        'UpsertRequest': {
            'type': 'object',
            'properties': {
                'payload': {'type': 'object', 'additionalProperties': True},
                'ttl': {'type': 'integer', 'minimum': 1, 'nullable': True},
            },
            'required': ['payload'],
        },
        'DataKind': {'type': 'string', 'enum': [kind.value for kind in DataKind]},
        'SearchOrder': {'type': 'string', 'enum': [order.value for order in SearchOrder]},
        'Owner': {
            'type': 'object',
            'properties': {
                'name': {'type': 'string'},
                'address': {'type': 'string', 'nullable': True},
                'country': {'type': 'string', 'nullable': True},
                'abuse': {'type': 'string', 'nullable': True},
                'phone': {'type': 'string', 'nullable': True},
            },
            'required': ['name'],
        },
        'MispEvent': {
            'type': 'object',
            'properties': {
                'server': {'type': 'string', 'format': 'uri', 'nullable': True},
                'uuid': {'type': 'string', 'format': 'uuid'},
            },
            'required': ['uuid'],
        },
        'Ticket': {
            'type': 'object',
            'properties': {
                'server': {'type': 'string', 'format': 'uri', 'nullable': True},
                'id': {'oneOf': [{'type': 'integer', 'minimum': 0},
                                 {'type': 'string', 'format': 'uuid'}]},
            },
            'required': ['id'],
        },
        'EntryData': {
            'type': 'object',
            'description': 'Tagged value; the shape of "value" depends on "kind"',
            'properties': {
                'kind': _ref('DataKind'),
                'value': {'oneOf': [
                    _ref('Owner'),
                    {'type': 'integer', 'minimum': 0, 'maximum': 2**32 - 1},
                    _ref('MispEvent'),
                    _ref('Ticket'),
                    {'type': 'string'},
                    {},
                ]},
            },
            'required': ['kind', 'value'],
        },
        'Entry': {
            'type': 'object',
            'properties': {
                'uuid': {'type': 'string', 'format': 'uuid', 'nullable': True},
                'description': {'type': 'string', 'nullable': True},
                'ctime': {'type': 'string', 'format': 'date-time', 'nullable': True},
                'mtime': {'type': 'string', 'format': 'date-time', 'nullable': True},
                'tags': {'type': 'array', 'items': {'type': 'string'}, 'nullable': True},
                'data': _ref('EntryData'),
            },
            'required': ['data'],
        },
    }


def build_openapi_document(mountpoint: str = '/api') -> Dict[str, Any]:
    """Monta o documento OpenAPI com os caminhos relativos a `mountpoint`."""
    base = mountpoint.rstrip('/')
    entry_uuid = {
        'name': 'entry_uuid', 'in': 'path', 'required': True,
        'schema': {'type': 'string', 'format': 'uuid'},
    }
    paths = {
        f'{base}/ip/{{ip}}': {
            'parameters': [_IP_PARAM],
            'get': {
                'tags': [TAG], 'operationId': 'ip_lookup',
                'description': 'Returns the record stored for the address.',
                'responses': {'200': _response('Record found', _ref('IpRecord')),
                              '404': _response('No record for this address', {}),
                              **_ERRORS},
            },
            'put': {
                'tags': [TAG], 'operationId': 'ip_upsert',
                'description': 'Creates the record or replaces its payload. The id is kept across updates.',
                'requestBody': {'required': True, 'content': {'application/json': {'schema': _ref('UpsertRequest')}}},
                'responses': {'200': _response('Record written', _ref('IpRecord')), **_ERRORS},
            },
            'delete': {
                'tags': [TAG], 'operationId': 'ip_remove',
                'description': 'Deletes the record. data is false when nothing existed.',
                'responses': {'200': _response('Deletion result', {'type': 'boolean'}), **_ERRORS},
            },
        },
        f'{base}/ip/{{ip}}/exists': {
            'parameters': [_IP_PARAM],
            'get': {
                'tags': [TAG], 'operationId': 'ip_exists',
                'responses': {'200': _response('Existence flag', {'type': 'boolean'}), **_ERRORS},
            },
        },
        f'{base}/ip/{{ip}}/entry': {
            'parameters': [_IP_PARAM],
            'post': {
                'tags': [TAG], 'operationId': 'ip_add_entry',
                'description': 'Adds a history entry. A new uuid is always assigned.',
                'requestBody': {'required': True, 'content': {'application/json': {'schema': _ref('Entry')}}},
                'responses': {'200': _response('Entry created', _ref('Entry')),
                              '409': _response('An entry with this ctime already exists', {}),
                              **_ERRORS},
            },
            'delete': {
                'tags': [TAG], 'operationId': 'ip_clear_history',
                'responses': {'200': _response('Number of removed entries', {'type': 'integer'}), **_ERRORS},
            },
        },
        f'{base}/ip/{{ip}}/entry/update': {
            'parameters': [_IP_PARAM],
            'post': {
                'tags': [TAG], 'operationId': 'ip_update_entry',
                'description': 'Replaces the entry with the same uuid. data is false when it does not exist.',
                'requestBody': {'required': True, 'content': {'application/json': {'schema': _ref('Entry')}}},
                'responses': {'200': _response('Update result', {'type': 'boolean'}),
                              '409': _response('An entry with this ctime already exists', {}),
                              **_ERRORS},
            },
        },
        f'{base}/ip/{{ip}}/entry/search': {
            'parameters': [
                _IP_PARAM,
                {'name': 'kind', 'in': 'query', 'schema': _ref('DataKind')},
                {'name': 'offset', 'in': 'query', 'schema': {'type': 'integer', 'minimum': 0}},
                {'name': 'limit', 'in': 'query', 'schema': {'type': 'integer', 'minimum': 0}},
                {'name': 'order', 'in': 'query', 'schema': _ref('SearchOrder')},
            ],
            'get': {
                'tags': [TAG], 'operationId': 'ip_search_entry',
                'responses': {'200': _response('Matching entries', {'type': 'array', 'items': _ref('Entry')}),
                              **_ERRORS},
            },
        },
        f'{base}/ip/{{ip}}/entry/{{entry_uuid}}': {
            'parameters': [_IP_PARAM, entry_uuid],
            'delete': {
                'tags': [TAG], 'operationId': 'ip_del_entry',
                'responses': {'200': _response('Removed entry, or null', _ref('Entry')), **_ERRORS},
            },
        },
        f'{base}/health': {
            'get': {
                'operationId': 'api_health',
                'responses': {'200': _response('Backend reachable', {'type': 'object'}),
                              '503': _response('Backend unavailable', {})},
            },
        },
    }
    return {
        'openapi': '3.0.3',
        'info': {'title': API_TITLE, 'version': API_VERSION, 'description': 'Metadata about IP addresses stored in Redis'},
        'tags': [{'name': TAG}],
        'paths': paths,
        'components': {'schemas': _components()},
    }
