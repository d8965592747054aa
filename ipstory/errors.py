"""
Hierarquia de erros do domínio ip-story.

Os serviços levantam estes erros; a camada HTTP os converte em códigos de
status (ver `ipstory.controllers.api_controller`).
"""

from typing import Any, Optional


class IpStoryError(Exception):
    """Base de todos os erros do domínio."""

    transient = False


class InvalidAddress(IpStoryError, ValueError):
    """A string recebida não é um endereço IPv4/IPv6 válido."""

    def __init__(self, raw: Any):
        self.raw = raw
        super().__init__(f"invalid IP address: {raw!r}")


class InvalidPayload(IpStoryError, ValueError):
    """Payload, TTL ou entrada rejeitados na fronteira de escrita."""

    def __init__(self, messages: Any):
        self.messages = messages
        super().__init__(f"invalid data: {messages}")


class DeserializationError(IpStoryError):
    """Os bytes armazenados não correspondem ao formato esperado."""

    def __init__(self, key: str, reason: Any):
        self.key = key
        self.reason = reason
        super().__init__(f"cannot decode value stored at {key!r}: {reason}")


class BackendUnavailable(IpStoryError):
    """Falha de conexão ou timeout com o Redis. Pode ser repetida por quem chama."""

    transient = True

    def __init__(self, operation: str, key: Optional[str] = None, detail: str = ''):
        self.operation = operation
        self.key = key
        super().__init__(f"backend unavailable during {operation}: {detail}")


class BackendError(IpStoryError):
    """Erro do Redis que não é de conectividade (ex.: WRONGTYPE)."""

    def __init__(self, operation: str, key: Optional[str] = None, detail: str = ''):
        self.operation = operation
        self.key = key
        super().__init__(f"backend error during {operation}: {detail}")


class EntryConflict(IpStoryError):
    """Já existe uma entrada com o mesmo ctime para o endereço."""

    def __init__(self, address: str, ctime: Any):
        self.address = address
        self.ctime = ctime
        super().__init__(f"an entry with timestamp {ctime} is already present for {address}")
