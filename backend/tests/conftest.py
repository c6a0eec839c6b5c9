"""
Shared fixtures: an in-memory, lock-protected stand-in for DynamoStore that
honours the same conditional-write and transaction semantics, plus
factories for seeding profiles and files.
"""
import copy
import os
import sys
import threading
import time
from collections import defaultdict
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from docstranslate.certification import CertificationEngine  # noqa: E402
from docstranslate.dynamo import ConditionFailed, Put, TransactionConflict, Update  # noqa: E402
from docstranslate.ledger import StatisticsLedger  # noqa: E402
from docstranslate.lifecycle import FileLifecycle  # noqa: E402
from docstranslate.models import FileStatus, Role, StorageType  # noqa: E402
from docstranslate.profiles import ProfileService  # noqa: E402
from docstranslate.projects import ProjectService  # noqa: E402
from docstranslate.reviews import ReviewTaskRegistry  # noqa: E402

TABLE_KEYS = {
    'files': 'fileId',
    'profiles': 'userId',
    'reviews': 'reviewId',
    'projects': 'projectId',
    'certificates': 'certificateId',
    'codes': 'verificationCode',
}

FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class InMemoryStore:
    """
    Applies Put/Update operations atomically under a single lock.

    With conflict_window set, transactions behave like TransactWriteItems
    under contention: each one holds its items for that many seconds before
    committing, and any transaction touching an item already held is
    cancelled with TransactionConflict.
    """

    def __init__(self):
        self.tables = defaultdict(dict)
        self.lock = threading.Lock()
        self.transactions = []
        self.conflict_window = 0
        self.in_flight = set()
        self.conflicts = 0

    @staticmethod
    def _key(key):
        return tuple(sorted(key.items()))

    def _item_key(self, table, item):
        key_name = TABLE_KEYS[table]
        return self._key({key_name: item[key_name]})

    def _current(self, op):
        if isinstance(op, Put):
            return self.tables[op.table].get(self._item_key(op.table, op.item))
        return self.tables[op.table].get(self._key(op.key))

    @staticmethod
    def _condition_holds(item, condition):
        item = item or {}
        if any(item.get(attr) != value for attr, value in condition.equals.items()):
            return False
        if any(attr not in item for attr in condition.exists):
            return False
        if any(attr in item for attr in condition.missing):
            return False
        if any(value in item.get(attr, set()) for attr, value in condition.not_in_set.items()):
            return False
        return True

    def _check(self, op):
        current = self._current(op)
        if isinstance(op, Put):
            return not (op.unique_key and current and op.unique_key in current)
        return self._condition_holds(current, op.condition)

    def _apply(self, op):
        if isinstance(op, Put):
            self.tables[op.table][self._item_key(op.table, op.item)] = copy.deepcopy(op.item)
            return op.item

        item = self.tables[op.table].setdefault(self._key(op.key), dict(op.key))
        for attr, value in op.set_fields.items():
            item[attr] = copy.deepcopy(value)
        for attr, entries in op.map_entries.items():
            # DynamoDB rejects nested paths whose parent map does not exist
            if attr not in item:
                raise ValueError(f'The document path provided in the update expression is invalid: {attr}')
            item[attr].update(copy.deepcopy(entries))
        for attr, amount in op.increments.items():
            item[attr] = item.get(attr, 0) + amount
        for attr, element in op.set_additions.items():
            item.setdefault(attr, set()).add(element)
        for attr, keys in op.map_removals.items():
            if attr not in item:
                raise ValueError(f'The document path provided in the update expression is invalid: {attr}')
            for key in keys:
                item[attr].pop(key, None)
        return item

    def get(self, table_name, key, consistent=False):
        with self.lock:
            return copy.deepcopy(self.tables[table_name].get(self._key(key)))

    def put(self, op):
        with self.lock:
            if not self._check(op):
                raise ConditionFailed([0])
            self._apply(op)

    def update(self, op):
        with self.lock:
            if not self._check(op):
                raise ConditionFailed([0])
            return copy.deepcopy(self._apply(op))

    def _op_key(self, op):
        if isinstance(op, Put):
            return op.table, self._item_key(op.table, op.item)
        return op.table, self._key(op.key)

    def transact(self, ops):
        if not self.conflict_window:
            with self.lock:
                self._commit(ops)
            return

        keys = {self._op_key(op) for op in ops}
        with self.lock:
            if keys & self.in_flight:
                self.conflicts += 1
                raise TransactionConflict(f'Transaction cancelled, overlapping keys {sorted(keys & self.in_flight)}')
            self.in_flight |= keys
        try:
            time.sleep(self.conflict_window)
            with self.lock:
                self._commit(ops)
        finally:
            with self.lock:
                self.in_flight -= keys

    def _commit(self, ops):
        failed = [i for i, op in enumerate(ops) if not self._check(op)]
        if failed:
            raise ConditionFailed(failed)
        for op in ops:
            self._apply(op)
        self.transactions.append(list(ops))

    def query(self, table_name, index_name, key_name, key_value, filters=None, limit=None, scan_forward=True):
        with self.lock:
            items = [
                copy.deepcopy(item) for item in self.tables[table_name].values()
                if item.get(key_name) == key_value
                and all(item.get(attr) == value for attr, value in (filters or {}).items())
            ]
        return items[:limit] if limit else items

    # Test helpers

    def item(self, table_name, **key):
        return self.get(table_name, key)

    def items(self, table_name):
        with self.lock:
            return [copy.deepcopy(item) for item in self.tables[table_name].values()]


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def ledger(store, clock):
    return StatisticsLedger(store, table_name='profiles', clock=clock)


@pytest.fixture
def certification(store, clock):
    return CertificationEngine(
        store,
        profiles_table='profiles',
        certificates_table='certificates',
        codes_table='codes',
        clock=clock,
        backoff=lambda attempt: None
    )


@pytest.fixture
def reviews(store, clock):
    return ReviewTaskRegistry(store, table_name='reviews', clock=clock)


@pytest.fixture
def profiles(store, clock):
    return ProfileService(store, table_name='profiles', clock=clock)


@pytest.fixture
def fetch_content():
    def _fetch(url):
        raise AssertionError(f'Unexpected content fetch for {url}')
    return _fetch


@pytest.fixture
def lifecycle(store, ledger, certification, reviews, profiles, clock, fetch_content):
    return FileLifecycle(
        store,
        ledger=ledger,
        certification=certification,
        reviews=reviews,
        profiles=profiles,
        fetch_content=fetch_content,
        files_table='files',
        projects_table='projects',
        clock=clock,
        backoff=lambda attempt: None
    )


@pytest.fixture
def projects(store, clock):
    return ProjectService(
        store,
        projects_table='projects',
        files_table='files',
        profiles_table='profiles',
        clock=clock
    )


@pytest.fixture
def seed_profile(store, profiles):
    """Create a profile, optionally with a role, words and owned tiers."""
    def _seed(user_id, role=Role.CONTRIBUTOR, words=0, certificates=None, name=''):
        profiles.initialize_profile(user_id, name=name or user_id.title())
        fields = {'role': role, 'isModerator': role in Role.REVIEWERS}
        if words:
            fields['totalWordsTranslated'] = words
        if certificates:
            fields['certificates'] = set(certificates)
        store.update(Update(table='profiles', key={'userId': user_id}, set_fields=fields))
        return store.item('profiles', userId=user_id)
    return _seed


@pytest.fixture
def seed_file(store):
    def _seed(file_id='file-1', status=FileStatus.NOT_STARTED, assigned=None, word_count=500,
              original_text='', project_id='project-1', storage_type=StorageType.INLINE,
              content_url=None, review_task_id=None):
        item = {
            'fileId': file_id,
            'projectId': project_id,
            'fileName': f'{file_id}.md',
            'status': status,
            'wordCount': word_count,
            'originalText': original_text,
            'translatedText': '',
            'storageType': storage_type,
            'createdAt': FIXED_NOW.isoformat(),
        }
        if assigned:
            item['assignedTranslatorId'] = assigned
        if content_url:
            item['contentUrl'] = content_url
        if review_task_id:
            item['reviewTaskId'] = review_task_id
        store.put(Put(table='files', item=item))
        return item
    return _seed
