"""Option position reconciliation: reduce a transaction ledger to open contracts.

The reconciler is a pure fold: it takes the transaction events of one
underlying, replays each contract's events in date order and returns the
contracts that are still open together with every ledger inconsistency it
noticed along the way. Nothing is read from or written to the database here;
see backend.services.reconciliation for the ledger side.

Sign convention (net quantity per contract):
    SoldShort      -qty        BoughtToCover  +qty
    BoughtToOpen   +qty        SoldToClose    -qty
    Assigned       closes the position (net -> 0)
    Expired        net -> 0 unconditionally
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from backend.utils.constants import TRANSACTION_TYPE_ACTIONS


class Action(str, Enum):
    SOLD_SHORT = "SoldShort"
    BOUGHT_TO_COVER = "BoughtToCover"
    BOUGHT_TO_OPEN = "BoughtToOpen"
    SOLD_TO_CLOSE = "SoldToClose"
    ASSIGNED = "Assigned"
    EXPIRED = "Expired"


class AnomalyKind(str, Enum):
    UNMATCHED_CLOSE = "UnmatchedClose"
    OVER_CLOSE = "OverClose"
    UNKNOWN_ACTION = "UnknownAction"


# Direction each trade action moves the net quantity
_TRADE_SIGNS = {
    Action.SOLD_SHORT: -1,
    Action.BOUGHT_TO_COVER: 1,
    Action.BOUGHT_TO_OPEN: 1,
    Action.SOLD_TO_CLOSE: -1,
}
_CLOSING_TRADES = {Action.BOUGHT_TO_COVER, Action.SOLD_TO_CLOSE}
_TERMINAL_ACTIONS = {Action.ASSIGNED, Action.EXPIRED}


def parse_action(value) -> Action | None:
    """Resolve an Action, its name, or a brokerage transaction_type string.

    Returns None for anything outside the fixed mapping.
    """
    if isinstance(value, Action):
        return value
    if not isinstance(value, str):
        return None
    text = " ".join(value.split())
    try:
        return Action(text)
    except ValueError:
        pass
    name = TRANSACTION_TYPE_ACTIONS.get(text.lower())
    return Action(name) if name else None


@dataclass(frozen=True)
class TransactionEvent:
    """One ledger event for one option contract.

    signed_quantity is taken as recorded; only its magnitude is used; the
    direction comes from the action. Assigned and Expired ignore it.
    """
    date: date | None
    contract_id: str | None
    action: Action | str | None
    signed_quantity: int | None = None
    source_id: int | None = None  # ledger row id, for reporting


@dataclass
class OpenPosition:
    contract_id: str
    net_quantity: int
    opened_on: date | None = None
    last_activity: date | None = None


@dataclass(frozen=True)
class Anomaly:
    kind: AnomalyKind
    contract_id: str
    date: date
    action: str
    index: int  # position of the event in the input sequence
    message: str
    source_id: int | None = None


@dataclass
class ReconciliationResult:
    positions: dict[str, OpenPosition] = field(default_factory=dict)
    anomalies: list[Anomaly] = field(default_factory=list)


class InvalidEvent(ValueError):
    """A structurally unusable event; the whole reconciliation call fails."""

    def __init__(self, index: int, event, reason: str):
        self.index = index
        self.event = event
        self.reason = reason
        source = getattr(event, "source_id", None)
        where = f"event {index}" + (f" (transaction {source})" if source is not None else "")
        super().__init__(f"Invalid {where}: {reason}")


@dataclass(frozen=True)
class _Step:
    index: int
    event: TransactionEvent
    day: date
    contract_id: str
    action: Action | None


def _validate(index: int, event) -> _Step:
    if not isinstance(event, TransactionEvent):
        raise InvalidEvent(index, event, f"expected TransactionEvent, got {type(event).__name__}")

    contract_id = event.contract_id.strip() if isinstance(event.contract_id, str) else None
    if not contract_id:
        raise InvalidEvent(index, event, "missing contract_id")

    day = event.date
    if isinstance(day, datetime):
        day = day.date()
    if not isinstance(day, date):
        raise InvalidEvent(index, event, "missing date")

    action = parse_action(event.action)
    if action in _TRADE_SIGNS:
        qty = event.signed_quantity
        if isinstance(qty, bool) or not isinstance(qty, int):
            raise InvalidEvent(index, event, f"quantity must be an integer, got {qty!r}")

    return _Step(index=index, event=event, day=day, contract_id=contract_id, action=action)


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def reconcile(events: Iterable[TransactionEvent]) -> ReconciliationResult:
    """Replay transaction events and return open positions plus anomalies.

    Raises InvalidEvent on the first structurally invalid event, before any
    position is computed.
    """
    # Validate everything up front so a bad record fails the whole batch
    groups: dict[str, list[_Step]] = {}
    for index, event in enumerate(events):
        step = _validate(index, event)
        groups.setdefault(step.contract_id, []).append(step)

    result = ReconciliationResult()
    for contract_id, steps in groups.items():
        _fold_contract(contract_id, steps, result)
    return result


def _fold_contract(contract_id: str, steps: list[_Step], result: ReconciliationResult):
    net = 0
    opened_on: date | None = None

    def flag(kind: AnomalyKind, step: _Step, message: str):
        result.anomalies.append(Anomaly(
            kind=kind,
            contract_id=contract_id,
            date=step.day,
            action=str(step.event.action.value if isinstance(step.event.action, Action) else step.event.action),
            index=step.index,
            message=message,
            source_id=step.event.source_id,
        ))

    # sorted() is stable: same-day events keep ingestion order
    for step in sorted(steps, key=lambda s: s.day):
        action = step.action
        prior = net

        if action is None:
            flag(AnomalyKind.UNKNOWN_ACTION, step, f"unrecognised action {step.event.action!r}, skipped")
            continue

        if action in _TERMINAL_ACTIONS:
            if prior == 0:
                flag(AnomalyKind.UNMATCHED_CLOSE, step, f"{action.value} with no open position")
                continue
            net = 0
        else:
            delta = _TRADE_SIGNS[action] * abs(step.event.signed_quantity)
            net = prior + delta
            if action in _CLOSING_TRADES and delta:
                if prior == 0 or _sign(prior) == _sign(delta):
                    flag(
                        AnomalyKind.UNMATCHED_CLOSE, step,
                        f"{action.value} of {abs(delta)} with nothing to close (net was {prior})",
                    )
                elif _sign(net) == _sign(delta):
                    flag(
                        AnomalyKind.OVER_CLOSE, step,
                        f"{action.value} of {abs(delta)} closes past zero (net {prior} -> {net})",
                    )

        if net == 0:
            result.positions.pop(contract_id, None)
            opened_on = None
            continue

        if prior == 0 or _sign(prior) != _sign(net):
            opened_on = step.day
        result.positions[contract_id] = OpenPosition(
            contract_id=contract_id,
            net_quantity=net,
            opened_on=opened_on,
            last_activity=step.day,
        )
