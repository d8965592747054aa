# models/ip_record.py

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict
from uuid import UUID, uuid4

from ipstory.utils.address import IpAddress


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class IpRecord:
    """
    Unidade de armazenamento: metadados de um único endereço IP.

    `id` é gerado na primeira escrita e preservado nas atualizações;
    `version` começa em 1 e é incrementado a cada escrita.
    """
    address: IpAddress
    payload: Dict[str, Any]
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 1

    @classmethod
    def create(cls, address: IpAddress, payload: Dict[str, Any], now: datetime) -> 'IpRecord':
        return cls(address=address, payload=payload, id=uuid4(),
                   created_at=now, updated_at=now, version=1)

    def updated(self, payload: Dict[str, Any], now: datetime) -> 'IpRecord':
        """Nova versão do registro com payload substituído (id preservado)."""
        return replace(
            self,
            payload=payload,
            # relógio pode andar para trás entre processos
            updated_at=max(now, self.updated_at),
            version=self.version + 1,
        )
