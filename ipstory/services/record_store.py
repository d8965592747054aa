#!/usr/bin/env python3
"""
Armazenamento de registros de IP no Redis.

Cada endereço tem sua própria chave (`<prefix>record:<ip canônico>`), de modo
que toda operação é um acesso pontual O(1) sem coordenação entre chaves.
"""

import logging
from typing import Any, Dict, Optional, Union

from marshmallow import ValidationError

from ipstory.errors import DeserializationError
from ipstory.models.ip_record import IpRecord, utcnow
from ipstory.schemas.record_schema import IpRecordSchema, validate_payload
from ipstory.services.backend import (
    StoreConfig, backend_call, create_redis_client, decode_document, encode_document,
)
from ipstory.utils.address import IpAddress, parse_address

logger = logging.getLogger(__name__)

RECORD_NAMESPACE = 'record'


class RecordStore:
    """
    Mapeamento durável endereço IP -> `IpRecord`.

    Não mantém estado mutável além do cliente Redis (e seu pool); pode ser
    compartilhado entre threads. Conflitos de escrita na mesma chave são
    resolvidos pelo Redis: vence a última escrita.
    """

    def __init__(self, config: StoreConfig, client: Any = None):
        """
        Args:
            config: configuração do backend
            client: cliente Redis já construído (usado em testes)
        """
        self.config = config
        self.redis_client = client if client is not None else create_redis_client(config)
        self._schema = IpRecordSchema()

    def key_for(self, address: Union[str, IpAddress]) -> str:
        """Chave derivada apenas do endereço canônico."""
        return f"{self.config.key_prefix}{RECORD_NAMESPACE}:{parse_address(address)}"

    def _encode(self, record: IpRecord) -> bytes:
        return encode_document(self._schema.dump(record))

    def _decode(self, key: str, address: IpAddress, data: Any) -> IpRecord:
        document = decode_document(key, data)
        try:
            record = self._schema.load(document)
        except ValidationError as e:
            raise DeserializationError(key, e.messages) from e
        if record.address != address:
            raise DeserializationError(key, f"stored address {record.address} does not match key")
        return record

    def get(self, address: Union[str, IpAddress]) -> Optional[IpRecord]:
        """Recupera o registro do endereço; None quando não existe."""
        ip = parse_address(address)
        key = self.key_for(ip)
        with backend_call('get', key):
            data = self.redis_client.get(key)
        if data is None:
            logger.debug(f"Registro não encontrado: {key}")
            return None
        try:
            return self._decode(key, ip, data)
        except DeserializationError as e:
            logger.error(f"Registro corrompido em {key}: {e.reason}")
            raise

    def put(self, address: Union[str, IpAddress], payload: Dict[str, Any],
            ttl: Optional[int] = None) -> IpRecord:
        """
        Cria ou substitui o registro do endereço.

        O payload é substituído por inteiro; `id` e `created_at` do registro
        existente são preservados. Com `ttl` a chave expira no próprio Redis;
        sem `ttl` qualquer expiração anterior é removida.
        """
        ip = parse_address(address)
        payload, ttl = validate_payload(payload, ttl, self.config.max_ttl)
        key = self.key_for(ip)

        with backend_call('put', key):
            current = self.redis_client.get(key)
        existing = self._decode(key, ip, current) if current is not None else None

        now = utcnow()
        if existing is None:
            record = IpRecord.create(ip, payload, now)
        else:
            record = existing.updated(payload, now)

        with backend_call('put', key):
            self.redis_client.set(key, self._encode(record), ex=ttl)

        logger.info(f"Registro gravado: {key} (versão {record.version}, ttl={ttl})")
        return record

    def delete(self, address: Union[str, IpAddress]) -> bool:
        """Remove o registro. Retorna se havia algo para remover."""
        key = self.key_for(address)
        with backend_call('delete', key):
            deleted = self.redis_client.delete(key)
        if deleted:
            logger.info(f"Registro removido: {key}")
        return bool(deleted)

    def exists(self, address: Union[str, IpAddress]) -> bool:
        """Verifica existência sem desserializar o registro."""
        key = self.key_for(address)
        with backend_call('exists', key):
            return bool(self.redis_client.exists(key))

    def get_ttl(self, address: Union[str, IpAddress]) -> Optional[int]:
        """Segundos restantes até a expiração; None sem expiração ou sem chave."""
        key = self.key_for(address)
        with backend_call('ttl', key):
            remaining = self.redis_client.ttl(key)
        if remaining is None or remaining < 0:
            return None
        return int(remaining)

    def ping(self) -> bool:
        with backend_call('ping'):
            return bool(self.redis_client.ping())
