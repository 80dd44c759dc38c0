from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from application.identity import link_device
from domain.errors import DuplicatePlayerError, InvalidPlayerNameError
from domain.models import Player
from domain.repositories import (
    Database,
    IdentityRepository,
    NicknameRepository,
    PlayerRepository,
    SessionRepository,
)

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50


@dataclass
class LedgerStore:
    """
    The repositories of one storage backend, bundled for the application layer.

    The application layer never depends on a concrete database; it only sees
    these protocols.
    """

    database: Database
    players: PlayerRepository
    identities: IdentityRepository
    nicknames: NicknameRepository
    sessions: SessionRepository


@dataclass
class DeviceLink:
    """A request to link a device identifier to a registered player."""

    device_id: str
    player_id: int


def _validate_player_name(name: str) -> Optional[str]:
    if len(name) < MIN_NAME_LENGTH:
        return f"Player name must be at least {MIN_NAME_LENGTH} characters."
    if len(name) > MAX_NAME_LENGTH:
        return f"Player name must be at most {MAX_NAME_LENGTH} characters."
    return None


def register_player(name: str, store: LedgerStore) -> Player:
    """
    Register a new player under a unique display name.

    Surrounding whitespace is ignored; names are compared case-sensitively.
    """

    name = (name or "").strip()
    error = _validate_player_name(name)
    if error:
        raise InvalidPlayerNameError(error)

    with store.database.transaction():
        if store.players.find_player_by_name(name) is not None:
            raise DuplicatePlayerError(name)
        player = store.players.create_player(name)

    logger.info("Registered player %s (id=%s)", player.name, player.id)
    return player


def remove_player(player_id: int, store: LedgerStore) -> None:
    """Delete a player together with its device links and nicknames."""

    store.players.delete_player(player_id)
    logger.info("Removed player id=%s", player_id)


def link_devices(links: Iterable[DeviceLink], store: LedgerStore) -> None:
    """
    Apply a batch of device links atomically.

    This is the manual step after a blocked ingestion; the caller submits the
    ledger again once it returns. Either every link is applied or none is.
    """

    links = list(links)
    with store.database.transaction():
        for link in links:
            link_device(link.device_id, link.player_id, store.identities, store.players)

    for link in links:
        logger.info("Linked device %s to player id=%s", link.device_id, link.player_id)
