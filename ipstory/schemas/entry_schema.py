"""
Schemas das entradas do histórico de um IP.

O dado de cada entrada é uma união etiquetada `{"kind": ..., "value": ...}`;
o valor é validado e normalizado conforme o tipo antes de ser gravado.
"""

import json
from datetime import timezone
from typing import Any, Callable, Dict
from uuid import UUID

from marshmallow import EXCLUDE, Schema, ValidationError, fields, post_load, pre_dump, validate

from ipstory.models.entry import DataKind, Entry, SearchOrder

ENTRY_FORMAT = 'ip-entry/1'


class OwnerSchema(Schema):
    name = fields.Str(required=True, validate=validate.Length(min=1))
    address = fields.Str(allow_none=True)
    country = fields.Str(allow_none=True)
    abuse = fields.Str(allow_none=True)
    phone = fields.Str(allow_none=True)


class MispEventSchema(Schema):
    server = fields.Url(allow_none=True, require_tld=False)
    uuid = fields.UUID(required=True)


class TicketIdField(fields.Field):
    """Identificador de ticket: inteiro não negativo ou UUID."""

    default_error_messages = {'invalid': 'Ticket id must be a non-negative integer or a UUID.'}

    def _serialize(self, value, attr, obj, **kwargs):
        if value is None or isinstance(value, int):
            return value
        return str(value)

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, bool):
            raise self.make_error('invalid')
        if isinstance(value, int):
            if value < 0:
                raise self.make_error('invalid')
            return value
        if isinstance(value, str):
            try:
                return UUID(value)
            except ValueError:
                pass
        raise self.make_error('invalid')


class TicketSchema(Schema):
    server = fields.Url(allow_none=True, require_tld=False)
    id = TicketIdField(required=True)


def _with_schema(schema_cls) -> Callable[[Any], Any]:
    def normalize(value):
        schema = schema_cls()
        return schema.dump(schema.load(value))
    return normalize


def _with_field(field: fields.Field) -> Callable[[Any], Any]:
    def normalize(value):
        return field.deserialize(value)
    return normalize


def _json_value(value):
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as error:
        raise ValidationError(f'Not a JSON value: {error}') from error
    return value


DATA_NORMALIZERS: Dict[DataKind, Callable[[Any], Any]] = {
    DataKind.OWNER: _with_schema(OwnerSchema),
    DataKind.ASN: _with_field(fields.Int(strict=True, validate=validate.Range(min=0, max=2**32 - 1))),
    DataKind.MISP_EVENT: _with_schema(MispEventSchema),
    DataKind.TICKET: _with_schema(TicketSchema),
    DataKind.VULNERABLE: _with_field(fields.Str()),
    DataKind.TEXT: _with_field(fields.Str()),
    DataKind.JSON: _json_value,
}


class EntryDataSchema(Schema):
    kind = fields.Enum(DataKind, by_value=True, required=True)
    value = fields.Raw(required=True, allow_none=True)

    @post_load
    def _normalize_value(self, data, **kwargs):
        normalize = DATA_NORMALIZERS[data['kind']]
        try:
            data['value'] = normalize(data['value'])
        except ValidationError as err:
            raise ValidationError({'value': err.messages}) from err
        return data


class EntrySchema(Schema):
    """Entrada recebida pela API e devolvida nas respostas."""
    uuid = fields.UUID(allow_none=True, load_default=None)
    description = fields.Str(allow_none=True, load_default=None)
    ctime = fields.AwareDateTime(default_timezone=timezone.utc, allow_none=True, load_default=None)
    mtime = fields.AwareDateTime(default_timezone=timezone.utc, allow_none=True, load_default=None)
    tags = fields.List(fields.Str(validate=validate.Length(min=1)), allow_none=True, load_default=None)
    data = fields.Nested(EntryDataSchema, required=True)

    @pre_dump
    def _flatten(self, entry: Entry, **kwargs) -> Dict[str, Any]:
        return {
            'uuid': entry.uuid,
            'description': entry.description,
            'ctime': entry.ctime,
            'mtime': entry.mtime,
            'tags': sorted(entry.tags),
            'data': {'kind': entry.kind, 'value': entry.value},
        }

    @post_load
    def _make_entry(self, data: Dict[str, Any], **kwargs) -> Entry:
        payload = data.pop('data')
        tags = {tag.lower() for tag in (data.pop('tags') or [])}
        return Entry(kind=payload['kind'], value=payload['value'], tags=tags, **data)


class StoredEntrySchema(EntrySchema):
    """Documento gravado no hash de histórico: uuid e ctime obrigatórios."""
    format = fields.Str(required=True, validate=validate.Equal(ENTRY_FORMAT))
    uuid = fields.UUID(required=True)
    ctime = fields.AwareDateTime(default_timezone=timezone.utc, required=True)

    @pre_dump
    def _flatten(self, entry: Entry, **kwargs) -> Dict[str, Any]:
        document = super()._flatten(entry, **kwargs)
        document['format'] = ENTRY_FORMAT
        return document

    @post_load
    def _make_entry(self, data: Dict[str, Any], **kwargs) -> Entry:
        data.pop('format', None)
        return super()._make_entry(data, **kwargs)


class SearchQuerySchema(Schema):
    """Parâmetros de GET /ip/<ip>/entry/search."""

    class Meta:
        unknown = EXCLUDE

    kind = fields.Enum(DataKind, by_value=True, load_default=None)
    offset = fields.Int(load_default=0, validate=validate.Range(min=0))
    limit = fields.Int(allow_none=True, load_default=None, validate=validate.Range(min=0))
    order = fields.Enum(SearchOrder, by_value=True, load_default=SearchOrder.ASC)
