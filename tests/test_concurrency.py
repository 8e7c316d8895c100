from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

from conftest import balances, ok
from splitledger.results import Success
from splitledger.services import groups, reports, settlements, transactions, users


def add_people(store, group_id, count):
    ids = [ok(users.create_user(store, f"Member{i}", f"member{i}@example.com")).id for i in range(count)]
    ok(groups.add_members(store, group_id, ids))
    return ids


def test_concurrent_transactions_on_disjoint_pairs(store, seeded):
    people = add_people(store, seeded.group, 8)
    pairs = [(people[i], people[i + 1]) for i in range(0, len(people), 2)]
    rounds = 5

    def pay(pair, n):
        payer, other = pair
        return transactions.record_transaction(
            store, seeded.group, payer, "10.00", [(payer, "3.33"), (other, "6.67")], "2024-08-01", f"round {n}",
        )

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [pool.submit(pay, pair, n) for n in range(rounds) for pair in pairs]
        results = [f.result() for f in futures]

    assert all(isinstance(r, Success) for r in results)
    bals = balances(store, seeded.group)
    assert sum(bals.values()) == Decimal("0.00")
    for payer, other in pairs:
        assert bals[payer] == Decimal("6.67") * rounds
        assert bals[other] == Decimal("-6.67") * rounds
    assert ok(reports.get_balance_sheet(store, seeded.group)).total_transactions == rounds * len(pairs)


def test_concurrent_transactions_on_shared_rows_do_not_lose_updates(store, seeded):
    def pay(n):
        return transactions.record_transaction(
            store, seeded.group, seeded.u1, "3.00",
            [(seeded.u1, "1.00"), (seeded.u2, "1.00"), (seeded.u3, "1.00")], "2024-08-02",
        )

    with ThreadPoolExecutor(max_workers=6) as pool:
        results = list(pool.map(pay, range(24)))

    assert all(isinstance(r, Success) for r in results)
    assert balances(store, seeded.group) == {
        seeded.u1: Decimal("48.00"), seeded.u2: Decimal("-24.00"), seeded.u3: Decimal("-24.00"),
    }


def test_settlement_racing_transactions_loses_nothing(store, seeded):
    def pay(n):
        return transactions.record_transaction(
            store, seeded.group, seeded.u1, "2.00", [(seeded.u2, "2.00")], "2024-08-03",
        )

    with ThreadPoolExecutor(max_workers=4) as pool:
        futures = [pool.submit(pay, n) for n in range(10)]
        futures.append(pool.submit(settlements.settle, store, seeded.group, seeded.u3))
        futures += [pool.submit(pay, n) for n in range(10)]
        results = [f.result() for f in futures]

    assert all(isinstance(r, Success) for r in results)
    bals = balances(store, seeded.group)
    assert sum(bals.values()) == Decimal("0.00")

    # Whatever was reset plus whatever remains accounts for every transaction.
    history = ok(settlements.list_settlements(store, seeded.group))
    reset = {b.user_id: b.balance_before for b in history[0].balances_before}
    assert reset[seeded.u1] + bals[seeded.u1] == Decimal("40.00")
    assert reset[seeded.u2] + bals[seeded.u2] == Decimal("-40.00")
