# utils/address.py

import ipaddress
import re
from typing import Union

from ipstory.errors import InvalidAddress

IpAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_DOTTED_QUAD = re.compile(r'(?:^|(?<=:))([0-9]{1,3}(?:\.[0-9]{1,3}){3})$', re.ASCII)


def _strip_leading_zeros(text: str) -> str:
    # "010.001.000.001" -> "10.1.0.1", também na forma "::ffff:010.0.0.1";
    # octetos são lidos como decimais, nunca octais
    def _decimal(match):
        return '.'.join(str(int(octet)) for octet in match.group(1).split('.'))
    return _DOTTED_QUAD.sub(_decimal, text)


def parse_address(raw: Union[str, IpAddress]) -> IpAddress:
    """
    Converte uma representação textual em um endereço IP canônico.

    Aceita espaços nas bordas, zeros à esquerda em octetos IPv4, IPv6
    expandido ou comprimido, maiúsculas e colchetes ("[::1]"). Zone ids
    ("fe80::1%eth0") e dígitos não ASCII são rejeitados.

    Raises:
        InvalidAddress: se o valor não for um endereço IPv4/IPv6.
    """
    if isinstance(raw, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        if getattr(raw, 'scope_id', None):
            raise InvalidAddress(raw)
        return raw
    if not isinstance(raw, str):
        raise InvalidAddress(raw)

    text = raw.strip()
    if text.startswith('[') and text.endswith(']'):
        text = text[1:-1]
    text = _strip_leading_zeros(text)
    if '%' in text:
        # zone id (fe80::1%eth0) não identifica um endereço global
        raise InvalidAddress(raw)
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        raise InvalidAddress(raw) from None


def canonical_address(raw: Union[str, IpAddress]) -> str:
    """Forma textual canônica usada para derivar chaves."""
    return str(parse_address(raw))


def is_valid_address(raw) -> bool:
    try:
        parse_address(raw)
    except InvalidAddress:
        return False
    return True
