from contextlib import contextmanager

import pytest

from voterlookup.config import SearchConfig, SearchWeights
from voterlookup.search import VoterSearchService


def is_trigram_sql(sql):
    return "similarity(" in sql


def is_pattern_sql(sql):
    return "first_word_pattern" in sql


def voter_row(name, epic, relation_name=None, score=0.0, words=0, **extra):
    row = {
        "epic_number": epic,
        "full_name": name,
        "relation_name": relation_name,
        "age": 40,
        "gender": "M",
        "part_no": "163",
        "sr_no": 1,
        "address": None,
        "house_number": None,
        "pincode": None,
        "match_score": score,
        "words_matched": words,
    }
    row.update(extra)
    return row


class FakeSession:
    """
    Stands in for PostgresSession.

    `rows` is a list returned for every statement, or a callable
    (sql, params) -> rows. `failures` maps an SQL marker to the exception
    raised when a statement containing it executes.
    """

    def __init__(self, rows=None, trigram=True, failures=None):
        self.rows = rows if rows is not None else []
        self.trigram = trigram
        self.failures = failures or {}
        self.executed = []
        self.extension_checks = []

    def fetch_all(self, sql, params=None):
        self.executed.append((sql, params))
        for marker, exc in self.failures.items():
            if marker(sql) if callable(marker) else marker in sql:
                raise exc
        rows = self.rows(sql, params) if callable(self.rows) else self.rows
        return [dict(r) for r in rows]

    def fetch_one(self, sql, params=None):
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def extension_exists(self, name):
        self.extension_checks.append(name)
        if isinstance(self.trigram, Exception):
            raise self.trigram
        return self.trigram


class FakeDatastore:
    def __init__(self, session):
        self._session = session
        self.checkouts = 0
        self.releases = 0

    @contextmanager
    def session(self):
        self.checkouts += 1
        try:
            yield self._session
        finally:
            self.releases += 1


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def datastore(session):
    return FakeDatastore(session)


@pytest.fixture
def search_config():
    return SearchConfig(
        result_limit=50,
        epic_limit=50,
        chat_results=5,
        trigram_extension="pg_trgm",
        weights=SearchWeights(),
    )


@pytest.fixture
def service(datastore, search_config):
    return VoterSearchService(datastore, search_config)
