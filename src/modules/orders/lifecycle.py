"""Order lifecycle state machine.

Status only moves forward along ``STATUS_RANK``.  A request to move to an
equal or earlier status is not an error: it is a no-op reported through
``Transition.changed`` so handlers can answer "already advanced".
"""

from __future__ import annotations

from dataclasses import dataclass

from modules.orders.constants import STATUS_RANK, TERMINAL_STATES, OrderStatus


@dataclass(frozen=True)
class Transition:
    old: str
    new: str

    @property
    def changed(self) -> bool:
        return self.old != self.new


def coerce_status(raw: object) -> str:
    """Map stored values onto a canonical status; legacy free-form text reads as pending."""
    value = str(raw or "").strip().lower()
    if value in STATUS_RANK:
        return value
    return OrderStatus.PENDING


def status_rank(status: object) -> int:
    return STATUS_RANK[coerce_status(status)]


def can_advance(current: object, target: object) -> bool:
    return status_rank(target) > status_rank(current)


def is_terminal(status: object) -> bool:
    return coerce_status(status) in TERMINAL_STATES


def advance(current: object, target: object) -> Transition:
    """Compute the move from ``current`` towards ``target`` without ever regressing."""
    old = coerce_status(current)
    if can_advance(old, target):
        return Transition(old=old, new=coerce_status(target))
    return Transition(old=old, new=old)
