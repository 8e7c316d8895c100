from datetime import datetime
from decimal import Decimal

import pytest

from conftest import balances, ok
from splitledger.results import ErrorKind, Failure
from splitledger.services import reports, transactions


def record(store, seeded, **overrides):
    args = dict(
        group_id=seeded.group,
        payer_id=seeded.u1,
        total_amount="20.00",
        shares=[(seeded.u1, "10.00"), (seeded.u2, "10.00")],
        transaction_date="2024-06-01",
    )
    args.update(overrides)
    return transactions.record_transaction(store, **args)


def test_unknown_group_is_not_found(store, seeded):
    result = record(store, seeded, group_id=999)
    assert isinstance(result, Failure)
    assert result.kind is ErrorKind.NOT_FOUND


def test_payer_must_be_member(store, seeded):
    result = record(store, seeded, payer_id=seeded.outsider)
    assert result.kind is ErrorKind.INVALID_STATE
    assert result.message == "Payer is not a member of this group"


def test_membership_is_checked_before_share_sum(store, seeded):
    result = record(store, seeded, shares=[(seeded.outsider, "1.00")])
    assert result.kind is ErrorKind.INVALID_STATE


@pytest.mark.parametrize("overrides", [
    {"total_amount": "0.00"},
    {"total_amount": "-5.00"},
    {"total_amount": "12.345"},
    {"shares": []},
    {"shares": [(1, "10.00"), (1, "10.00")]},
    {"shares": [(1, "25.00"), (2, "-5.00")]},
    {"transaction_date": "01/06/2024"},
    {"transaction_date": "20240601"},
    {"transaction_date": "2024-W22-6"},
    {"transaction_date": datetime(2024, 6, 1, 12, 0)},
    {"total_amount": "1_000.00"},
    {"total_amount": "100000000000000000000.00",
     "shares": [(1, "100000000000000000000.00")]},
    {"total_amount": "10000000000.00", "shares": [(1, "10000000000.00")]},
])
def test_malformed_requests_are_invalid_input(store, seeded, overrides):
    result = record(store, seeded, **overrides)
    assert isinstance(result, Failure)
    assert result.kind is ErrorKind.INVALID_INPUT
    assert ok(reports.get_balance_sheet(store, seeded.group)).total_transactions == 0


def test_payer_outside_the_split(store, seeded):
    ok(record(store, seeded, total_amount="25.50", shares=[(seeded.u2, "12.75"), (seeded.u3, "12.75")]))
    bals = balances(store, seeded.group)
    assert bals == {seeded.u1: Decimal("25.50"), seeded.u2: Decimal("-12.75"), seeded.u3: Decimal("-12.75")}


def test_equal_split_assigns_remainder_to_payer(store, seeded):
    txn = ok(transactions.record_equal_split(
        store, seeded.group, seeded.u2, "20.00", [seeded.u1, seeded.u2, seeded.u3], "2024-06-02", "Taxi",
    ))
    shares = {p.user_id: p.share_amount for p in txn.participants}
    assert shares == {seeded.u1: Decimal("6.66"), seeded.u2: Decimal("6.68"), seeded.u3: Decimal("6.66")}
    assert txn.description == "Taxi"
    bals = balances(store, seeded.group)
    assert bals[seeded.u2] == Decimal("13.32")
    assert sum(bals.values()) == Decimal("0.00")


def test_equal_split_rejects_empty_participants(store, seeded):
    result = transactions.record_equal_split(store, seeded.group, seeded.u1, "10.00", [], "2024-06-02")
    assert result.kind is ErrorKind.INVALID_INPUT


def test_get_transaction_not_found(store):
    result = transactions.get_transaction(store, 12345)
    assert result.kind is ErrorKind.NOT_FOUND


def test_list_group_transactions_newest_first(store, seeded):
    first = ok(record(store, seeded, description="Breakfast"))
    second = ok(record(store, seeded, total_amount="9.00",
                       shares=[(seeded.u1, "3.00"), (seeded.u2, "3.00"), (seeded.u3, "3.00")],
                       description="Coffee"))
    listed = ok(transactions.list_group_transactions(store, seeded.group))
    assert [t.id for t in listed] == [second.id, first.id]
    assert [t.participant_count for t in listed] == [3, 2]
    assert listed[0].paid_by_name == "User1"

    assert len(ok(transactions.list_group_transactions(store, seeded.group, limit=1, offset=1))) == 1
    assert transactions.list_group_transactions(store, 999).kind is ErrorKind.NOT_FOUND


def test_transaction_touches_last_updated(store, seeded):
    assert ok(reports.get_balance_sheet(store, seeded.group)).last_updated is None
    ok(record(store, seeded))
    sheet = ok(reports.get_balance_sheet(store, seeded.group))
    assert sheet.last_updated is not None
    assert sheet.total_transactions == 1


def test_store_failure_mid_unit_rolls_back_everything(store, seeded, monkeypatch):
    ok(record(store, seeded))
    before = balances(store, seeded.group)

    real_deltas = transactions.compute_deltas

    def deltas_with_missing_row(total, payer_id, shares):
        # The outsider has no balance row, so the last update matches nothing.
        return {**real_deltas(total, payer_id, shares), seeded.outsider: Decimal("0.00")}

    monkeypatch.setattr(transactions, "compute_deltas", deltas_with_missing_row)
    result = record(store, seeded, total_amount="9.00", shares=[(seeded.u2, "4.00"), (seeded.u3, "5.00")])

    assert isinstance(result, Failure)
    assert result.kind is ErrorKind.STORE_FAILURE
    assert balances(store, seeded.group) == before
    assert len(ok(transactions.list_group_transactions(store, seeded.group))) == 1
    assert ok(reports.get_balance_sheet(store, seeded.group)).total_transactions == 1
