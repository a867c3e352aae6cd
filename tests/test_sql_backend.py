"""
tests/test_sql_backend.py
Tests for the SQLAlchemy backend helpers and its error translation.
No database is touched: the session factory is replaced by one whose queries fail.
"""

import pytest
from sqlalchemy.exc import OperationalError

from shared.backend.protocol import AdminBackend, BackendError
from shared.backend.sql_backend import SqlAlchemyBackend, _by_id, _ids, get_backend, row_to_dict
from shared.models.models import Partner


class FailingSession:
    def __init__(self):
        self.rolled_back = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def scalar(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    scalars = execute = get = scalar

    async def commit(self):
        pass

    async def rollback(self):
        self.rolled_back = True

    async def close(self):
        pass


def test_row_to_dict_reads_column_attributes():
    partner = Partner(id="p-1", name="Ace", verified=True)
    row = row_to_dict(partner, only={"id", "name", "verified"})
    assert row == {"id": "p-1", "name": "Ace", "verified": True}
    assert "deleted_at" in row_to_dict(partner)
    assert row_to_dict(None) == {}


def test_id_helpers():
    rows = [{"id": "a"}, {"id": "b"}, {"id": "a"}, {"id": None}, {"user_id": "u"}]
    assert _ids(rows) == ["a", "b"]
    assert _ids(rows, key="user_id") == ["u"]
    assert set(_by_id(rows)) == {"a", "b"}


def test_get_backend_satisfies_protocol():
    assert isinstance(get_backend(), AdminBackend)


@pytest.mark.asyncio
async def test_database_errors_become_backend_errors():
    session = FailingSession()
    backend = SqlAlchemyBackend(session_factory=lambda: session)

    with pytest.raises(BackendError) as excinfo:
        await backend.list_partners(10)
    assert excinfo.value.operation == "list_partners"
    assert excinfo.value.message == "OperationalError"
    assert session.rolled_back is True


@pytest.mark.asyncio
async def test_mutation_errors_name_the_operation():
    backend = SqlAlchemyBackend(session_factory=FailingSession)
    with pytest.raises(BackendError) as excinfo:
        await backend.set_partner_disabled("p-1", True)
    assert excinfo.value.operation == "set_partner_disabled"
