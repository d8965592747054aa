from .ip_record import IpRecord
from .entry import DataKind, Entry, SearchOrder

__all__ = ['IpRecord', 'Entry', 'DataKind', 'SearchOrder']
