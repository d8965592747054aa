import logging
from typing import Any, Dict, Optional, Tuple

from ipstory.models.ip_record import IpRecord
from ipstory.services.record_store import RecordStore
from ipstory.utils.address import parse_address

logger = logging.getLogger(__name__)


class QueryService:
    """
    Orquestração fina entre a camada HTTP e o `RecordStore`.

    Endereços malformados são rejeitados com `InvalidAddress` antes de
    qualquer acesso ao Redis. Erros do store são propagados sem alteração.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def lookup(self, raw_address: str) -> Optional[IpRecord]:
        ip = parse_address(raw_address)
        return self.store.get(ip)

    def describe(self, raw_address: str) -> Optional[Tuple[IpRecord, Optional[int]]]:
        """Registro e TTL restante, ou None quando o endereço não tem registro."""
        ip = parse_address(raw_address)
        record = self.store.get(ip)
        if record is None:
            return None
        return record, self.store.get_ttl(ip)

    def upsert(self, raw_address: str, payload: Dict[str, Any],
               ttl: Optional[int] = None) -> IpRecord:
        ip = parse_address(raw_address)
        record = self.store.put(ip, payload, ttl)
        logger.debug(f"upsert {ip} -> {record.id}")
        return record

    def remove(self, raw_address: str) -> bool:
        ip = parse_address(raw_address)
        return self.store.delete(ip)

    def exists(self, raw_address: str) -> bool:
        ip = parse_address(raw_address)
        return self.store.exists(ip)
