from types import SimpleNamespace

import pytest

from splitledger.config import Settings
from splitledger.database import create_store
from splitledger.results import Success
from splitledger.services import groups, reports, users


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        app_env="test",
        database_url=f"sqlite:///{tmp_path / 'ledger.db'}",
        database_timeout_seconds=30,
    )


@pytest.fixture
def store(settings):
    store = create_store(settings)
    store.init_db()
    yield store
    store.dispose()


def ok(result):
    assert isinstance(result, Success), result
    return result.value


def balances(store, group_id):
    sheet = ok(reports.get_balance_sheet(store, group_id))
    return {m.user_id: m.balance for m in sheet.members}


@pytest.fixture
def seeded(store):
    """Group "Lunch" with members u1 (creator), u2, u3; u4 exists but is not a member."""
    u1 = ok(users.create_user(store, "User1", "u1@example.com"))
    u2 = ok(users.create_user(store, "User2", "u2@example.com"))
    u3 = ok(users.create_user(store, "User3", "u3@example.com"))
    u4 = ok(users.create_user(store, "Outsider", "u4@example.com"))
    group = ok(groups.create_group(store, "Lunch", created_by=u1.id))
    ok(groups.add_members(store, group.id, [u2.id, u3.id]))
    return SimpleNamespace(group=group.id, u1=u1.id, u2=u2.id, u3=u3.id, outsider=u4.id)
