"""Recent entries list"""

import asyncio
import json

from orbitshell.core.state_manager import MAX_RECENT, RecentEntry, RecentStore


class Clock:

    def __init__(self, start=1000):
        self.now = start

    def __call__(self):
        return self.now


def test_add_recent_moves_entry_to_front(tmp_path):
    clock = Clock()
    store = RecentStore(tmp_path / 'recent.json', clock=clock)
    store.add_recent('/a')
    clock.now += 1
    store.add_recent('/b')
    clock.now += 1
    entries = store.add_recent('/a')
    assert [e.path for e in entries] == ['/a', '/b']
    assert entries[0].last_opened == 1002


def test_same_timestamp_keeps_touched_entry_first(tmp_path):
    store = RecentStore(tmp_path / 'recent.json', clock=Clock())
    store.add_recent('/a')
    store.add_recent('/b')
    assert [e.path for e in store.entries] == ['/b', '/a']


def test_list_is_capped(tmp_path):
    clock = Clock()
    store = RecentStore(tmp_path / 'recent.json', clock=clock)
    for i in range(MAX_RECENT + 5):
        clock.now += 1
        store.add_recent(f'/p{i}')
    assert len(store.entries) == MAX_RECENT
    assert store.entries[0].path == f'/p{MAX_RECENT + 4}'


def test_persisted_as_json(tmp_path):
    path = tmp_path / 'nested' / 'recent.json'
    store = RecentStore(path, clock=Clock(42))
    store.add_recent('/srv/app')
    assert json.loads(path.read_text(encoding='utf-8')) == [{'path': '/srv/app', 'last_opened': 42}]
    assert RecentStore(path).load() == [RecentEntry('/srv/app', 42)]


def test_malformed_file_loads_empty(tmp_path):
    path = tmp_path / 'recent.json'
    path.write_text('{"path": 1}')
    assert RecentStore(path).load() == []
    path.write_text('[{"path": "/x"}]')
    assert RecentStore(path).load() == []


def test_async_add_and_load(tmp_path):
    path = tmp_path / 'recent.json'
    store = RecentStore(path, clock=Clock(7))
    asyncio.run(store.add_recent_async('/a'))
    other = RecentStore(path)
    assert asyncio.run(other.load_async()) == [RecentEntry('/a', 7)]
