"""
Tests for the ledger adapters.
"""

import pytest

from tablewatch.blackjack.action import Action
from tablewatch.errors import LedgerActionError, LedgerQueryError, MalformedSnapshotError
from tablewatch.ledger.callables import CallableLedger
from tablewatch.ledger.memory import InMemoryLedger
from tablewatch.state.codec import as_bytes_payload, encode_table
from tablewatch.state.models import NoPlayers, Table


@pytest.mark.asyncio
async def test_memory_ledger_serves_and_records():
    ledger = InMemoryLedger(identity="wasm1alice", bank_balance=100)
    ledger.user_balances["wasm1alice"] = 5

    assert isinstance((await ledger.get_table()).state, NoPlayers)
    assert await ledger.get_bank_balance() == 100
    assert await ledger.get_user_balance("wasm1alice") == 5
    assert await ledger.get_user_balance("wasm1bob") == 0

    await ledger.bid(2, 1000)
    await ledger.kick(3, "wasm1bob")
    assert ledger.actions == [
        (Action.BID, 2, {"amount": 1000}),
        (Action.KICK, 3, {"target": "wasm1bob"}),
    ]
    assert ledger.actions_of(Action.KICK) == [(Action.KICK, 3, {"target": "wasm1bob"})]
    assert ledger.query_counts["get_user_balance"] == 2


@pytest.mark.asyncio
async def test_memory_ledger_scripted_failures():
    ledger = InMemoryLedger()
    ledger.fail_next("get_table")
    with pytest.raises(LedgerQueryError):
        await ledger.get_table()
    await ledger.get_table()

    ledger.reject_next(Action.HIT, "not your turn")
    with pytest.raises(LedgerActionError, match="not your turn"):
        await ledger.hit(1)
    await ledger.hit(1)
    assert ledger.actions == [(Action.HIT, 1, {})]


@pytest.mark.asyncio
async def test_memory_ledger_action_hook():
    def on_action(ledger, action, seat, extra):
        ledger.bank_balance += extra.get("amount", 0)

    ledger = InMemoryLedger(on_action=on_action)
    await ledger.bid(0, 50)
    assert ledger.bank_balance == 50


@pytest.mark.asyncio
async def test_callable_ledger_decodes_raw_responses():
    async def get_table():
        return {"get_table": {"table": as_bytes_payload(encode_table(Table()))}}

    ledger = CallableLedger(
        identity="wasm1alice",
        get_table=get_table,
        get_bank_balance=lambda: {"balance": "225000000"},
        get_user_balance=lambda address: {"balance": "0"},
    )

    assert await ledger.get_table() == Table()
    assert await ledger.get_bank_balance() == 225_000_000
    assert await ledger.get_user_balance("wasm1alice") == 0


@pytest.mark.asyncio
async def test_callable_ledger_wraps_transport_errors():
    def unreachable():
        raise ConnectionError("node down")

    ledger = CallableLedger(identity="", get_table=unreachable)
    with pytest.raises(LedgerQueryError) as excinfo:
        await ledger.get_table()
    assert excinfo.value.query == "get_table"
    assert isinstance(excinfo.value.__cause__, ConnectionError)


@pytest.mark.asyncio
async def test_callable_ledger_malformed_response():
    ledger = CallableLedger(identity="", get_table=lambda: {"players": []})
    with pytest.raises(MalformedSnapshotError):
        await ledger.get_table()


@pytest.mark.asyncio
async def test_callable_ledger_missing_callable():
    ledger = CallableLedger(identity="wasm1alice")
    with pytest.raises(LedgerQueryError):
        await ledger.get_score_report()
    with pytest.raises(LedgerActionError):
        await ledger.sit(0)


@pytest.mark.asyncio
async def test_callable_ledger_forwards_actions():
    calls = []

    async def kick(seat, target):
        calls.append((seat, target))

    ledger = CallableLedger(identity="wasm1alice", kick=kick)
    await ledger.kick(4, "wasm1bob")
    assert calls == [(4, "wasm1bob")]


def test_bind_identity():
    ledger = CallableLedger(identity="")
    assert ledger.identity == ""
    ledger.bind("wasm1alice")
    assert ledger.identity == "wasm1alice"
