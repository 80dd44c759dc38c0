from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class Player:
    """
    Durable, human-registered player identity.

    A player may have played under many device identifiers and nicknames;
    those are stored separately and keyed by `id`.
    """

    id: int
    name: str
    created_at: Optional[datetime] = None


@dataclass
class LedgerEntry:
    """One device's line in a session ledger. Amounts are in cents."""

    device_id: str
    names: List[str]
    buy_in: int
    buy_out: int
    in_game: int
    net: int

    @property
    def first_nickname(self) -> str:
        return self.names[0] if self.names else "Unknown"


@dataclass
class Ledger:
    """
    Per-device breakdown of a single session export.

    `entries` keeps the order of the export so settlement output is
    reproducible for the same payload.
    """

    entries: List[LedgerEntry]
    buy_in_total: int = 0
    buy_out_total: int = 0
    in_game_total: int = 0
    has_rake: bool = False

    @property
    def net_total(self) -> int:
        return sum(entry.net for entry in self.entries)


@dataclass
class SessionRecord:
    id: str
    url: str
    ledger_data: dict
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class SessionParticipation:
    """
    A device's result in one session.

    Exactly one row exists per (session_id, device_id). `player_id` is a
    lookup reference and becomes None if the player is deleted.
    """

    session_id: str
    device_id: str
    player_id: Optional[int]
    nickname: str
    net: int
    buy_in: int
    buy_out: int
    in_game: int


@dataclass
class PlayerTotals:
    sessions: int
    net_winnings: int


@dataclass
class PlayerAggregate:
    """Cross-session standings for one player."""

    player_id: int
    player_name: str
    sessions: int = 0
    net_winnings: int = 0
    nicknames: List[str] = field(default_factory=list)
    device_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Transaction:
    """`payer` pays `amount` cents to `payee`."""

    payer: str
    payee: str
    amount: int
