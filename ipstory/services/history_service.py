#!/usr/bin/env python3
"""
Histórico de entradas por endereço IP ("IP story").

Cada endereço tem um hash Redis `<prefix>history:<ip canônico>` que mapeia o
uuid da entrada para o documento serializado. Escritas de entradas
diferentes nunca se sobrescrevem, pois cada uma é um HSET independente.
"""

import logging
from typing import Any, List, Mapping, Optional, Union
from uuid import UUID, uuid4

from marshmallow import ValidationError

from ipstory.errors import DeserializationError, EntryConflict, InvalidPayload
from ipstory.models.entry import DataKind, Entry, SearchOrder
from ipstory.models.ip_record import utcnow
from ipstory.schemas.entry_schema import EntrySchema, StoredEntrySchema
from ipstory.services.backend import StoreConfig, backend_call, decode_document, encode_document
from ipstory.utils.address import IpAddress, parse_address

logger = logging.getLogger(__name__)

HISTORY_NAMESPACE = 'history'


class HistoryService:
    """Entradas datadas e tipadas associadas a um endereço."""

    def __init__(self, config: StoreConfig, client: Any):
        self.config = config
        self.redis_client = client
        self._input_schema = EntrySchema()
        self._stored_schema = StoredEntrySchema()

    def key_for(self, address: Union[str, IpAddress]) -> str:
        return f"{self.config.key_prefix}{HISTORY_NAMESPACE}:{parse_address(address)}"

    def _load_input(self, entry_data: Mapping[str, Any]) -> Entry:
        try:
            return self._input_schema.load(entry_data)
        except ValidationError as e:
            raise InvalidPayload(e.messages) from e

    def _encode(self, entry: Entry) -> bytes:
        return encode_document(self._stored_schema.dump(entry))

    def _decode(self, key: str, data: Any) -> Entry:
        document = decode_document(key, data)
        try:
            return self._stored_schema.load(document)
        except ValidationError as e:
            logger.error(f"Entrada corrompida em {key}: {e.messages}")
            raise DeserializationError(key, e.messages) from e

    def _entries(self, key: str) -> List[Entry]:
        with backend_call('history', key):
            values = self.redis_client.hvals(key)
        return [self._decode(key, value) for value in values]

    def _ensure_unique_ctime(self, ip: IpAddress, key: str, entry: Entry) -> None:
        for other in self._entries(key):
            if other.uuid != entry.uuid and other.ctime == entry.ctime:
                raise EntryConflict(str(ip), entry.ctime.isoformat())

    def _write(self, key: str, entry: Entry) -> None:
        with backend_call('history_write', key):
            self.redis_client.hset(key, str(entry.uuid), self._encode(entry))

    def add_entry(self, raw_address: str, entry_data: Mapping[str, Any]) -> Entry:
        """
        Adiciona uma entrada ao histórico do endereço.

        Um novo uuid é sempre gerado; `ctime` assume o instante atual quando
        omitido.

        Raises:
            EntryConflict: se outra entrada já usa o mesmo ctime.
        """
        ip = parse_address(raw_address)
        entry = self._load_input(entry_data)
        entry.uuid = uuid4()
        entry.mtime = None
        if entry.ctime is None:
            entry.ctime = utcnow()

        key = self.key_for(ip)
        self._ensure_unique_ctime(ip, key, entry)
        self._write(key, entry)
        logger.info(f"Entrada {entry.uuid} ({entry.kind.value}) adicionada a {ip}")
        return entry

    def update_entry(self, raw_address: str, entry_data: Mapping[str, Any]) -> bool:
        """
        Substitui uma entrada existente, localizada pelo uuid.

        Returns:
            False se não houver entrada com esse uuid.
        """
        ip = parse_address(raw_address)
        entry = self._load_input(entry_data)
        if entry.uuid is None:
            raise InvalidPayload({'uuid': ['Missing data for required field.']})

        key = self.key_for(ip)
        with backend_call('history_read', key):
            current = self.redis_client.hget(key, str(entry.uuid))
        if current is None:
            return False

        stored = self._decode(key, current)
        if entry.ctime is None:
            entry.ctime = stored.ctime
        entry.mtime = utcnow()
        if entry.ctime != stored.ctime:
            self._ensure_unique_ctime(ip, key, entry)
        self._write(key, entry)
        logger.info(f"Entrada {entry.uuid} de {ip} atualizada")
        return True

    def search_entries(self, raw_address: str, kind: Optional[Union[str, DataKind]] = None,
                       offset: int = 0, limit: Optional[int] = None,
                       order: Union[str, SearchOrder] = SearchOrder.ASC) -> List[Entry]:
        """Entradas ordenadas por ctime, filtradas por tipo e paginadas."""
        ip = parse_address(raw_address)
        try:
            kind = DataKind(kind) if kind is not None else None
            order = SearchOrder(order)
        except ValueError as e:
            raise InvalidPayload({'query': [str(e)]}) from e
        if offset < 0 or (limit is not None and limit < 0):
            raise InvalidPayload({'query': ['offset and limit must not be negative.']})

        entries = sorted(self._entries(self.key_for(ip)), key=Entry.sort_key,
                         reverse=(order is SearchOrder.DESC))
        if kind is not None:
            entries = [e for e in entries if e.kind is kind]
        entries = entries[offset:]
        if limit is not None:
            entries = entries[:limit]
        return entries

    def delete_entry(self, raw_address: str, entry_uuid: Union[str, UUID]) -> Optional[Entry]:
        """Remove e devolve a entrada; None se ela não existir."""
        ip = parse_address(raw_address)
        try:
            entry_uuid = entry_uuid if isinstance(entry_uuid, UUID) else UUID(str(entry_uuid))
        except ValueError as e:
            raise InvalidPayload({'uuid': ['Not a valid UUID.']}) from e

        key = self.key_for(ip)
        with backend_call('history_read', key):
            current = self.redis_client.hget(key, str(entry_uuid))
        if current is None:
            return None
        entry = self._decode(key, current)
        with backend_call('history_delete', key):
            removed = self.redis_client.hdel(key, str(entry_uuid))
        if not removed:
            return None
        logger.info(f"Entrada {entry_uuid} removida de {ip}")
        return entry

    def clear_history(self, raw_address: str) -> int:
        """Remove todas as entradas do endereço e retorna quantas havia."""
        ip = parse_address(raw_address)
        key = self.key_for(ip)
        # HLEN e DEL no mesmo MULTI/EXEC
        with backend_call('history_clear', key):
            pipe = self.redis_client.pipeline(transaction=True)
            pipe.hlen(key)
            pipe.delete(key)
            count, _ = pipe.execute()
        if count:
            logger.info(f"Histórico de {ip} removido ({count} entradas)")
        return int(count or 0)
