import json
from datetime import timezone
from typing import Any, Dict, Optional, Tuple

from marshmallow import Schema, ValidationError, fields, post_load, pre_dump, validate

from ipstory.errors import InvalidAddress, InvalidPayload
from ipstory.models.ip_record import IpRecord
from ipstory.utils.address import parse_address

# Tag gravado em todo documento de registro; muda quando o formato mudar.
RECORD_FORMAT = 'ip-record/1'


class IpAddressField(fields.Field):
    """Endereço IPv4/IPv6 serializado na forma canônica."""

    default_error_messages = {'invalid': 'Not a valid IPv4/IPv6 address.'}

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None:
            return None
        return str(value)

    def _deserialize(self, value, attr, data, **kwargs):
        try:
            return parse_address(value)
        except InvalidAddress as error:
            raise self.make_error('invalid') from error


class PayloadField(fields.Dict):
    """
    Mapeamento aberto de atributo -> valor JSON.

    As chaves devem ser strings não vazias e o conjunto precisa ser
    serializável em JSON estrito (sem NaN/Infinity).
    """

    def __init__(self, **kwargs):
        super().__init__(
            keys=fields.Str(validate=validate.Length(min=1)),
            values=fields.Raw(allow_none=True),
            **kwargs
        )

    def _deserialize(self, value, attr, data, **kwargs):
        result = super()._deserialize(value, attr, data, **kwargs)
        try:
            json.dumps(result, allow_nan=False)
        except (TypeError, ValueError) as error:
            raise ValidationError(f'Payload is not JSON-serializable: {error}') from error
        return result


class IpRecordSchema(Schema):
    """
    Schema do documento de registro armazenado no Redis.

    O campo `format` só existe no documento; use `exclude=('format',)` para
    respostas da API.
    """
    format = fields.Str(required=True, validate=validate.Equal(RECORD_FORMAT))
    id = fields.UUID(required=True)
    address = IpAddressField(required=True)
    payload = PayloadField(required=True)
    created_at = fields.AwareDateTime(required=True, default_timezone=timezone.utc)
    updated_at = fields.AwareDateTime(required=True, default_timezone=timezone.utc)
    version = fields.Int(required=True, strict=True, validate=validate.Range(min=1))

    @pre_dump
    def _as_document(self, record: IpRecord, **kwargs) -> Dict[str, Any]:
        return {
            'format': RECORD_FORMAT,
            'id': record.id,
            'address': record.address,
            'payload': record.payload,
            'created_at': record.created_at,
            'updated_at': record.updated_at,
            'version': record.version,
        }

    @post_load
    def _make_record(self, data: Dict[str, Any], **kwargs) -> IpRecord:
        data.pop('format', None)
        return IpRecord(**data)


class UpsertRequestSchema(Schema):
    """Corpo aceito por PUT /ip/<ip>."""
    payload = PayloadField(required=True)
    ttl = fields.Int(strict=True, allow_none=True, load_default=None,
                     validate=validate.Range(min=1))


_upsert_schema = UpsertRequestSchema()


def validate_payload(payload: Any, ttl: Optional[int] = None,
                     max_ttl: Optional[int] = None) -> Tuple[Dict[str, Any], Optional[int]]:
    """
    Valida payload e TTL na fronteira de escrita.

    Raises:
        InvalidPayload: com as mensagens do marshmallow.
    """
    try:
        data = _upsert_schema.load({'payload': payload, 'ttl': ttl})
    except ValidationError as err:
        raise InvalidPayload(err.messages) from err
    if max_ttl and data['ttl'] is not None and data['ttl'] > max_ttl:
        raise InvalidPayload({'ttl': [f'Must be less than or equal to {max_ttl}.']})
    return data['payload'], data['ttl']
