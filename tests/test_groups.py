from decimal import Decimal

from sqlalchemy import select

from conftest import balances, ok
from splitledger import models
from splitledger.results import ErrorKind
from splitledger.services import groups, settlements, transactions, users


def test_creator_is_first_member_with_zero_balance(store, seeded):
    group = ok(groups.get_group_with_members(store, seeded.group))
    assert group.created_by == seeded.u1
    assert [m.id for m in group.members][0] == seeded.u1
    assert balances(store, seeded.group) == {
        seeded.u1: Decimal("0.00"), seeded.u2: Decimal("0.00"), seeded.u3: Decimal("0.00"),
    }


def test_create_group_requires_existing_creator(store):
    result = groups.create_group(store, "Ghost town", created_by=42)
    assert result.kind is ErrorKind.NOT_FOUND


def test_add_existing_member_is_invalid_state(store, seeded):
    result = groups.add_members(store, seeded.group, [seeded.u2])
    assert result.kind is ErrorKind.INVALID_STATE
    assert "already in this group" in result.message


def test_add_members_is_all_or_nothing(store, seeded):
    result = groups.add_members(store, seeded.group, [seeded.outsider, 999])
    assert result.kind is ErrorKind.NOT_FOUND
    members = ok(groups.get_group_with_members(store, seeded.group)).members
    assert seeded.outsider not in {m.id for m in members}


def test_add_members_rejects_duplicate_ids(store, seeded):
    result = groups.add_members(store, seeded.group, [seeded.outsider, seeded.outsider])
    assert result.kind is ErrorKind.INVALID_INPUT


def test_membership_race_reports_already_member(store, seeded, monkeypatch):
    # Pretend the pre-check missed a membership committed by a concurrent request.
    monkeypatch.setattr(groups, "is_member", lambda session, group_id, user_id: False)
    result = groups.add_members(store, seeded.group, [seeded.u2])
    assert result.kind is ErrorKind.INVALID_STATE
    assert result.message == "User is already a member of this group"
    assert len(ok(groups.get_group_with_members(store, seeded.group)).members) == 3


def test_remove_member_with_zero_balance(store, seeded):
    ok(groups.remove_member(store, seeded.group, seeded.u3))
    members = ok(groups.get_group_with_members(store, seeded.group)).members
    assert seeded.u3 not in {m.id for m in members}
    assert seeded.u3 not in balances(store, seeded.group)
    assert seeded.group not in {g.id for g in ok(groups.list_user_groups(store, seeded.u3))}


def test_remove_member_after_settlement(store, seeded):
    ok(transactions.record_transaction(store, seeded.group, seeded.u1, "8.00", [(seeded.u3, "8.00")], "2024-07-01"))
    assert groups.remove_member(store, seeded.group, seeded.u3).kind is ErrorKind.INVALID_STATE
    ok(settlements.settle(store, seeded.group, seeded.u1))
    ok(groups.remove_member(store, seeded.group, seeded.u3))


def test_remove_unknown_membership_is_not_found(store, seeded):
    assert groups.remove_member(store, seeded.group, seeded.outsider).kind is ErrorKind.NOT_FOUND
    assert groups.remove_member(store, 999, seeded.u1).kind is ErrorKind.NOT_FOUND


def test_removed_member_cannot_take_part(store, seeded):
    ok(groups.remove_member(store, seeded.group, seeded.u3))
    result = transactions.record_transaction(
        store, seeded.group, seeded.u1, "4.00", [(seeded.u3, "4.00")], "2024-07-01",
    )
    assert result.kind is ErrorKind.INVALID_STATE


def test_update_and_delete_group(store, seeded):
    updated = ok(groups.update_group(store, seeded.group, name="Dinner"))
    assert updated.name == "Dinner"
    assert updated.description is None

    ok(transactions.record_transaction(store, seeded.group, seeded.u1, "4.00", [(seeded.u2, "4.00")], "2024-07-01"))
    ok(groups.delete_group(store, seeded.group))
    assert groups.find_group(store, seeded.group).kind is ErrorKind.NOT_FOUND
    with store.snapshot() as session:
        assert session.scalars(select(models.Balance)).all() == []
        assert session.scalars(select(models.Transaction)).all() == []


def test_duplicate_email_is_invalid_state(store, seeded):
    result = users.create_user(store, "Again", "u1@example.com")
    assert result.kind is ErrorKind.INVALID_STATE


def test_user_with_ledger_history_cannot_be_deleted(store, seeded):
    assert users.delete_user(store, seeded.u2).kind is ErrorKind.INVALID_STATE
    ok(users.delete_user(store, seeded.outsider))
    assert users.find_user(store, seeded.outsider).kind is ErrorKind.NOT_FOUND
