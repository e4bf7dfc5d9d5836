"""
Decoding of ledger query responses into snapshot models, and back.

The ledger answers queries with JSON. Table and score queries wrap their
payload as a byte array (a JSON list of integers holding UTF-8 JSON) inside an
envelope such as ``{"get_table": {"table": [...]}}``. Every decoder here
accepts the full envelope, the inner byte array, a JSON string or an
already-decoded dictionary.
"""

import json
from typing import Any, Dict, List, Mapping, Optional

from tablewatch.common.card import Card
from tablewatch.errors import MalformedSnapshotError
from tablewatch.state.models import (
    DealerTurn,
    Hand,
    NoPlayers,
    Player,
    PlayerLocalState,
    PlayerScoreReport,
    PlayerTurn,
    ScoreReport,
    Table,
    TableState,
)

_PLAYER_STATE_ALIASES = {state.value.lower(): state for state in PlayerLocalState}
_PLAYER_STATE_ALIASES["unseated"] = PlayerLocalState.UNSEATED


def _load(raw: Any, envelope: Optional[str] = None, key: Optional[str] = None) -> Any:
    """Peel transport wrappers until a decoded JSON value remains."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = json.loads(bytes(raw).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedSnapshotError(f"invalid JSON payload: {e}") from e
        return _load(raw, envelope, key)

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedSnapshotError(f"invalid JSON payload: {e}") from e
        return _load(raw, envelope, key)

    if isinstance(raw, list) and raw and all(isinstance(b, int) for b in raw):
        try:
            return _load(bytes(raw), envelope, key)
        except ValueError as e:
            raise MalformedSnapshotError(f"invalid byte payload: {e}") from e

    if isinstance(raw, Mapping):
        if envelope and envelope in raw:
            return _load(raw[envelope], None, key)
        if key and key in raw and len(raw) == 1:
            return _load(raw[key], None, None)

    return raw


def _require(data: Any, name: str, field: str) -> Any:
    if not isinstance(data, Mapping):
        raise MalformedSnapshotError(f"expected an object, got {type(data).__name__}", field=field)
    try:
        return data[name]
    except KeyError as e:
        raise MalformedSnapshotError(f"missing key {name!r}", field=field) from e


def _int(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise MalformedSnapshotError(f"expected an integer, got {value!r}", field=field)
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MalformedSnapshotError(f"expected an integer, got {value!r}", field=field) from e


def decode_hand(data: Any) -> Optional[Hand]:
    if data is None:
        return None
    cards = _require(data, "cards", "hand")
    if not isinstance(cards, list):
        raise MalformedSnapshotError("cards must be a list", field="hand")
    return Hand(
        cards=tuple(Card.from_ledger(card) for card in cards),
        reported_total=_int(_require(data, "total_value", "hand"), "hand.total_value"),
    )


def decode_player_state(raw: Any) -> PlayerLocalState:
    state = _PLAYER_STATE_ALIASES.get(str(raw).lower())
    if state is None:
        raise MalformedSnapshotError(f"unknown player state {raw!r}", field="player.state")
    return state


def decode_table_state(raw: Any) -> TableState:
    """Decode ``"NoPlayers"``, ``"DealerTurn"`` or ``{"PlayerTurn": {...}}``."""
    if isinstance(raw, Mapping) and len(raw) == 1:
        (name, body), = raw.items()
    else:
        name, body = raw, None

    if name == "NoPlayers":
        return NoPlayers()
    if name == "DealerTurn":
        return DealerTurn()
    if name == "PlayerTurn" and isinstance(body, Mapping):
        is_first = _require(body, "is_first", "state")
        if not isinstance(is_first, bool):
            raise MalformedSnapshotError(f"is_first must be a bool, got {is_first!r}", field="state")
        return PlayerTurn(
            seat=_int(_require(body, "player_seat", "state"), "state.player_seat"),
            is_first=is_first,
            turn_start_time=_int(_require(body, "turn_start_time", "state"), "state.turn_start_time"),
        )
    raise MalformedSnapshotError(f"unknown table state {raw!r}", field="state")


def decode_table(raw: Any) -> Table:
    """
    Decode a table query response.

    Args:
        raw: The response in any of the accepted shapes

    Returns:
        A validated, immutable Table
    """
    data = _load(raw, envelope="get_table", key="table")
    players_raw = _require(data, "players", "table")
    if not isinstance(players_raw, list):
        raise MalformedSnapshotError("players must be a list", field="players")

    players = []
    for seat, entry in enumerate(players_raw):
        address = _require(entry, "address", f"players[{seat}]")
        players.append(
            Player(
                seat=seat,
                address=str(address or ""),
                hand=decode_hand(entry.get("hand")),
                state=decode_player_state(entry.get("state", "NotPlaying")),
            )
        )

    table = Table(
        players=tuple(players),
        dealer_hand=decode_hand(data.get("dealer_hand")),
        state=decode_table_state(_require(data, "state", "table")),
    )

    reported_count = data.get("players_count")
    if reported_count is not None and _int(reported_count, "players_count") != table.players_count:
        raise MalformedSnapshotError(
            f"players_count {reported_count} but {table.players_count} seats occupied",
            field="players_count",
        )
    return table


def decode_player_score(data: Any) -> Optional[PlayerScoreReport]:
    if data is None:
        return None
    won = _require(data, "won", "score")
    if not isinstance(won, bool):
        raise MalformedSnapshotError(f"won must be a bool, got {won!r}", field="score.won")
    return PlayerScoreReport(
        address=str(_require(data, "address", "score") or ""),
        won=won,
        score=_int(_require(data, "score", "score"), "score.score"),
        reward=_int(_require(data, "reward", "score"), "score.reward"),
    )


def decode_score_report(raw: Any) -> ScoreReport:
    """Decode the last-score query response."""
    data = _load(raw, envelope="get_last_score", key="last_score")
    players = _require(data, "players", "scores")
    if not isinstance(players, list):
        raise MalformedSnapshotError("players must be a list", field="scores.players")
    dealer = decode_player_score(_require(data, "dealer", "scores"))
    if dealer is None:
        raise MalformedSnapshotError("dealer score missing", field="scores.dealer")
    return ScoreReport(
        players=tuple(decode_player_score(entry) for entry in players),
        dealer=dealer,
    )


def decode_balance(raw: Any) -> int:
    """Decode a balance response (``{"get_user_balance": {"balance": "..."}}`` etc.)."""
    data = _load(raw)
    if isinstance(data, Mapping):
        if len(data) == 1:
            (name, body), = data.items()
            if name.startswith("get_") and isinstance(body, Mapping):
                data = body
        data = _require(data, "balance", "balance")
    balance = _int(data, "balance")
    if balance < 0:
        raise MalformedSnapshotError(f"negative balance {balance}", field="balance")
    return balance


def encode_hand(hand: Optional[Hand]) -> Optional[Dict[str, Any]]:
    if hand is None:
        return None
    return {
        "cards": [card.to_ledger() for card in hand.cards],
        "total_value": hand.reported_total,
    }


def encode_table_state(state: TableState) -> Any:
    match state:
        case NoPlayers():
            return "NoPlayers"
        case DealerTurn():
            return "DealerTurn"
        case PlayerTurn(seat=seat, is_first=is_first, turn_start_time=start):
            return {
                "PlayerTurn": {
                    "player_seat": seat,
                    "is_first": is_first,
                    "turn_start_time": start,
                }
            }
    raise TypeError(f"unknown table state {state!r}")


def encode_table(table: Table) -> Dict[str, Any]:
    """Encode a table in the ledger's JSON shape."""
    return {
        "players_count": table.players_count,
        "players": [
            {
                "address": player.address,
                "hand": encode_hand(player.hand),
                "state": player.state.value,
            }
            for player in table.players
        ],
        "dealer_hand": encode_hand(table.dealer_hand),
        "state": encode_table_state(table.state),
    }


def encode_player_score(report: Optional[PlayerScoreReport]) -> Optional[Dict[str, Any]]:
    if report is None:
        return None
    return {
        "address": report.address,
        "won": report.won,
        "score": report.score,
        "reward": str(report.reward),
    }


def encode_score_report(report: ScoreReport) -> Dict[str, Any]:
    return {
        "players": [encode_player_score(entry) for entry in report.players],
        "dealer": encode_player_score(report.dealer),
    }


def fingerprint(table: Table, balance: int) -> str:
    """Canonical JSON of a table and balance, used to detect changes between polls."""
    return json.dumps(
        {"table": encode_table(table), "balance": balance},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def as_bytes_payload(value: Dict[str, Any]) -> List[int]:
    """Wrap a JSON object as the ledger's byte-array payload."""
    return list(json.dumps(value).encode("utf-8"))
