# models/entry.py

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Set
from uuid import UUID


class DataKind(str, Enum):
    """Tipos de dado aceitos em uma entrada do histórico."""
    OWNER = 'owner'
    ASN = 'asn'
    MISP_EVENT = 'misp-event'
    TICKET = 'ticket'
    VULNERABLE = 'vulnerable'
    TEXT = 'text'
    JSON = 'json'


class SearchOrder(str, Enum):
    ASC = 'asc'
    DESC = 'desc'


@dataclass
class Entry:
    """Entrada datada do histórico de um endereço IP."""
    kind: DataKind
    value: Any
    uuid: Optional[UUID] = None
    description: Optional[str] = None
    # Creation timestamp
    ctime: Optional[datetime] = None
    # Modification timestamp
    mtime: Optional[datetime] = None
    tags: Set[str] = field(default_factory=set)

    def sort_key(self):
        return (self.ctime, str(self.uuid))
