"""
Testes do histórico de entradas por endereço.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from ipstory.errors import (
    BackendUnavailable, DeserializationError, EntryConflict, InvalidAddress, InvalidPayload,
)
from ipstory.models.entry import DataKind, SearchOrder
from ipstory.services.history_service import HistoryService

MISP_UUID = '5F0C5D4E-8E2B-4C5A-9E1D-2B8F3A7C6D10'


def _entry(kind, value, ctime=None, **extra):
    body = {'data': {'kind': kind, 'value': value}}
    if ctime is not None:
        body['ctime'] = ctime
    body.update(extra)
    return body


@pytest.fixture
def populated(history_service):
    """Três entradas com ctimes fora de ordem de inserção."""
    history_service.add_entry('192.0.2.1', _entry('text', 'first', '2024-01-01T00:00:00Z'))
    history_service.add_entry('192.0.2.1', _entry('asn', 64500, '2024-01-03T00:00:00Z'))
    history_service.add_entry('192.0.2.1', _entry('text', 'second', '2024-01-02T00:00:00Z'))
    return history_service


class TestAddEntry:

    def test_assigns_new_uuid_and_ctime(self, history_service):
        supplied = str(uuid4())
        entry = history_service.add_entry('192.0.2.1', _entry('text', 'hello', uuid=supplied))

        assert entry.uuid is not None
        assert str(entry.uuid) != supplied
        assert entry.ctime is not None
        assert entry.ctime.tzinfo is not None
        assert entry.mtime is None

    def test_entry_is_stored_in_history_hash(self, history_service, fake_redis):
        entry = history_service.add_entry('010.0.0.1', _entry('asn', 15169))

        key = history_service.key_for('10.0.0.1')
        assert key == 'test:history:10.0.0.1'
        stored = fake_redis.hashes[key][str(entry.uuid)]
        assert stored.startswith(b'JSON:')
        assert b'"format":"ip-entry/1"' in stored

    def test_values_are_normalized_by_kind(self, history_service):
        misp = history_service.add_entry('192.0.2.1', _entry('misp-event', {'uuid': MISP_UUID}, '2024-01-01T00:00:00Z'))
        assert misp.kind is DataKind.MISP_EVENT
        assert misp.value == {'uuid': MISP_UUID.lower()}

        ticket = history_service.add_entry('192.0.2.1', _entry('ticket', {'id': 42, 'server': 'https://rt.local'}, '2024-01-02T00:00:00Z'))
        assert ticket.value == {'id': 42, 'server': 'https://rt.local'}

        owner = history_service.add_entry('192.0.2.1', _entry('owner', {'name': 'Example Org', 'country': 'BR'}, '2024-01-03T00:00:00Z'))
        assert owner.value['name'] == 'Example Org'

        document = history_service.add_entry('192.0.2.1', _entry('json', {'nested': [1, 2, {'a': None}]}, '2024-01-04T00:00:00Z'))
        assert document.value == {'nested': [1, 2, {'a': None}]}

    def test_tags_are_lowercased(self, history_service):
        entry = history_service.add_entry('192.0.2.1', _entry('text', 'x', tags=['Scanner', 'TOR', 'tor']))
        assert entry.tags == {'scanner', 'tor'}

    def test_naive_ctime_is_taken_as_utc(self, history_service):
        entry = history_service.add_entry('192.0.2.1', _entry('text', 'x', '2024-05-01T12:00:00'))
        assert entry.ctime == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize('body', [
        {},
        {'data': {'kind': 'color', 'value': 'red'}},
        {'data': {'kind': 'asn'}},
        _entry('asn', -1),
        _entry('asn', 2**32),
        _entry('asn', 'AS15169'),
        _entry('owner', {'country': 'BR'}),
        _entry('misp-event', {'uuid': 'not-a-uuid'}),
        _entry('ticket', {'id': -3}),
        _entry('ticket', {'id': 'abc'}),
        _entry('text', 12),
        _entry('json', float('inf')),
        _entry('text', 'x', ctime='yesterday'),
    ])
    def test_invalid_entries_are_rejected(self, history_service, fake_redis, body):
        with pytest.raises(InvalidPayload):
            history_service.add_entry('192.0.2.1', body)
        assert fake_redis.total_calls == 0

    def test_invalid_address(self, history_service, fake_redis):
        with pytest.raises(InvalidAddress):
            history_service.add_entry('nope', _entry('text', 'x'))
        assert fake_redis.total_calls == 0

    def test_duplicate_ctime_conflicts(self, history_service):
        history_service.add_entry('192.0.2.1', _entry('text', 'a', '2024-01-01T00:00:00Z'))
        with pytest.raises(EntryConflict):
            history_service.add_entry('192.0.2.1', _entry('text', 'b', '2024-01-01T00:00:00+00:00'))

        # o mesmo instante em outro endereço não conflita
        history_service.add_entry('192.0.2.2', _entry('text', 'b', '2024-01-01T00:00:00Z'))


class TestSearchEntries:

    def test_default_order_is_ascending_ctime(self, populated):
        entries = populated.search_entries('192.0.2.1')
        assert [e.value for e in entries] == ['first', 'second', 64500]

    def test_descending_order(self, populated):
        entries = populated.search_entries('192.0.2.1', order='desc')
        assert [e.value for e in entries] == [64500, 'second', 'first']
        assert populated.search_entries('192.0.2.1', order=SearchOrder.DESC)[0].value == 64500

    def test_filter_by_kind(self, populated):
        entries = populated.search_entries('192.0.2.1', kind='text')
        assert [e.value for e in entries] == ['first', 'second']
        assert populated.search_entries('192.0.2.1', kind=DataKind.TICKET) == []

    def test_offset_and_limit(self, populated):
        assert [e.value for e in populated.search_entries('192.0.2.1', offset=1, limit=1)] == ['second']
        assert populated.search_entries('192.0.2.1', offset=5) == []
        assert populated.search_entries('192.0.2.1', limit=0) == []

    def test_unknown_address_has_empty_history(self, history_service):
        assert history_service.search_entries('203.0.113.9') == []

    @pytest.mark.parametrize('params', [
        {'kind': 'color'}, {'order': 'sideways'}, {'offset': -1}, {'limit': -1},
    ])
    def test_invalid_query(self, history_service, params):
        with pytest.raises(InvalidPayload):
            history_service.search_entries('192.0.2.1', **params)

    def test_corrupt_entry_raises(self, history_service, fake_redis):
        fake_redis.hashes[history_service.key_for('192.0.2.1')] = {'broken': b'garbage'}
        with pytest.raises(DeserializationError):
            history_service.search_entries('192.0.2.1')


class TestUpdateEntry:

    def test_replaces_data_and_keeps_ctime(self, history_service):
        entry = history_service.add_entry('192.0.2.1', _entry('text', 'old', '2024-01-01T00:00:00Z'))

        body = _entry('text', 'new', uuid=str(entry.uuid), tags=['Edited'])
        assert history_service.update_entry('192.0.2.1', body) is True

        [stored] = history_service.search_entries('192.0.2.1')
        assert stored.uuid == entry.uuid
        assert stored.value == 'new'
        assert stored.ctime == entry.ctime
        assert stored.mtime is not None
        assert stored.tags == {'edited'}

    def test_unknown_uuid_returns_false(self, history_service, fake_redis):
        assert history_service.update_entry('192.0.2.1', _entry('text', 'x', uuid=str(uuid4()))) is False
        assert fake_redis.calls['hset'] == 0

    def test_uuid_is_required(self, history_service):
        with pytest.raises(InvalidPayload):
            history_service.update_entry('192.0.2.1', _entry('text', 'x'))

    def test_moving_ctime_onto_another_entry_conflicts(self, history_service):
        history_service.add_entry('192.0.2.1', _entry('text', 'a', '2024-01-01T00:00:00Z'))
        other = history_service.add_entry('192.0.2.1', _entry('text', 'b', '2024-01-02T00:00:00Z'))

        body = _entry('text', 'b', '2024-01-01T00:00:00Z', uuid=str(other.uuid))
        with pytest.raises(EntryConflict):
            history_service.update_entry('192.0.2.1', body)


class TestDeleteEntries:

    def test_delete_entry_returns_removed_entry(self, history_service):
        entry = history_service.add_entry('192.0.2.1', _entry('vulnerable', 'CVE-2024-0001'))

        removed = history_service.delete_entry('192.0.2.1', str(entry.uuid))
        assert removed.uuid == entry.uuid
        assert removed.value == 'CVE-2024-0001'
        assert history_service.delete_entry('192.0.2.1', entry.uuid) is None
        assert history_service.search_entries('192.0.2.1') == []

    def test_delete_entry_with_malformed_uuid(self, history_service):
        with pytest.raises(InvalidPayload):
            history_service.delete_entry('192.0.2.1', 'not-a-uuid')

    def test_clear_history_counts_entries(self, populated):
        assert populated.clear_history('192.0.2.1') == 3
        assert populated.search_entries('192.0.2.1') == []
        assert populated.clear_history('192.0.2.1') == 0

    def test_clear_history_counts_and_deletes_atomically(self, populated, fake_redis):
        assert populated.clear_history('192.0.2.1') == 3
        assert fake_redis.calls['exec'] == 1
        assert populated.key_for('192.0.2.1') not in fake_redis.hashes

    def test_clear_history_accounts_for_concurrent_adds(self, history_service, fake_redis):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        bodies = [_entry('text', str(n), (base + timedelta(seconds=n)).isoformat()) for n in range(40)]

        with ThreadPoolExecutor(max_workers=4) as pool:
            adds = [pool.submit(history_service.add_entry, '192.0.2.1', body) for body in bodies]
            clears = [pool.submit(history_service.clear_history, '192.0.2.1') for _ in range(10)]
            for future in adds:
                future.result()
            cleared = sum(future.result() for future in clears)

        remaining = len(history_service.search_entries('192.0.2.1'))
        assert cleared + remaining == len(bodies)

    def test_clear_history_with_backend_down(self, store_config, down_redis):
        service = HistoryService(store_config, down_redis)
        with pytest.raises(BackendUnavailable):
            service.clear_history('192.0.2.1')

    def test_history_is_independent_from_record(self, history_service, query_service):
        history_service.add_entry('192.0.2.1', _entry('text', 'note'))
        query_service.upsert('192.0.2.1', {'a': 1})

        assert query_service.remove('192.0.2.1') is True
        assert len(history_service.search_entries('192.0.2.1')) == 1
        assert query_service.lookup('192.0.2.1') is None
