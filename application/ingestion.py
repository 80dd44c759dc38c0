from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from application.identity import UnresolvedDevice, resolve_devices, unresolved_devices
from application.services import LedgerStore
from application.settlement import (
    DEFAULT_REPORT_FORMAT,
    ReportFormat,
    format_settlement_report,
    settle,
)
from domain.errors import MalformedSourceUrlError
from domain.ledger import extract_session_id, parse_ledger
from domain.models import SessionParticipation, SessionRecord, Transaction

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """
    Outcome of submitting a ledger.

    Either `blocked` lists the devices that must be linked before the ledger
    can be stored, or the session was stored and `settlement_report` holds
    the payout text. `imbalance` is the sum of all net results; it is
    non-zero only for an inconsistent export and is left unsettled.
    """

    blocked: List[UnresolvedDevice] = field(default_factory=list)
    session: Optional[SessionRecord] = None
    transactions: List[Transaction] = field(default_factory=list)
    settlement_report: Optional[str] = None
    imbalance: int = 0

    @property
    def is_blocked(self) -> bool:
        return bool(self.blocked)


def ingest_ledger(
    session_id: str,
    source_url: str,
    payload: dict,
    store: LedgerStore,
    report_format: ReportFormat = DEFAULT_REPORT_FORMAT,
) -> IngestResult:
    """
    Store a session ledger and compute its settlement.

    Device resolution and all writes happen in one transaction: if any
    device is unknown nothing is written and the unknown devices are
    returned; if a write fails the whole submission is rolled back.
    Submitting the same session id again replaces its earlier results.
    """

    ledger = parse_ledger(payload)

    with store.database.transaction():
        resolved = resolve_devices(ledger, store.identities)
        unresolved = unresolved_devices(ledger, resolved)
        if unresolved:
            logger.info(
                "Session %s blocked: %d unlinked device(s): %s",
                session_id,
                len(unresolved),
                ", ".join(d.device_id for d in unresolved),
            )
            return IngestResult(blocked=unresolved)

        record = store.sessions.save_session(session_id, source_url, payload)
        store.sessions.delete_participations(session_id)

        balances = []
        for entry in ledger.entries:
            player = resolved[entry.device_id]
            participation = SessionParticipation(
                session_id=session_id,
                device_id=entry.device_id,
                player_id=player.id,
                nickname=entry.first_nickname,
                net=entry.net,
                buy_in=entry.buy_in,
                buy_out=entry.buy_out,
                in_game=entry.in_game,
            )
            store.sessions.add_participation(participation)
            for nickname in entry.names:
                store.nicknames.add_nickname(player.id, nickname)
            balances.append((player.name, participation.net))

    imbalance = ledger.net_total
    if imbalance:
        logger.warning(
            "Session %s does not balance: net results sum to %d; settling best-effort",
            session_id,
            imbalance,
        )

    transactions = settle(balances)
    logger.info(
        "Session %s stored with %d participant(s), %d payout(s)",
        session_id,
        len(balances),
        len(transactions),
    )
    return IngestResult(
        session=record,
        transactions=transactions,
        settlement_report=format_settlement_report(transactions, report_format),
        imbalance=imbalance,
    )


def submit_ledger(
    source_url: str,
    payload: dict,
    store: LedgerStore,
    report_format: ReportFormat = DEFAULT_REPORT_FORMAT,
) -> IngestResult:
    """Derive the session id from the game URL and ingest the ledger."""

    session_id = extract_session_id(source_url)
    if session_id is None:
        raise MalformedSourceUrlError(source_url)
    return ingest_ledger(session_id, source_url, payload, store, report_format)
