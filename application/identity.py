from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from domain.errors import UnknownPlayerError
from domain.models import Ledger, Player
from domain.repositories import IdentityRepository, PlayerRepository


@dataclass
class UnresolvedDevice:
    """A device from a ledger that is not linked to any player yet."""

    device_id: str
    label: str


def resolve_device(device_id: str, identity_repo: IdentityRepository) -> Optional[Player]:
    return identity_repo.find_player_by_device(device_id)


def resolve_devices(
    ledger: Ledger,
    identity_repo: IdentityRepository,
) -> Dict[str, Optional[Player]]:
    """Look up every device of the ledger once; unlinked devices map to None."""

    return {
        entry.device_id: identity_repo.find_player_by_device(entry.device_id)
        for entry in ledger.entries
    }


def unresolved_devices(
    ledger: Ledger,
    resolved: Dict[str, Optional[Player]],
) -> List[UnresolvedDevice]:
    """
    Return the ledger's devices that have no player link, in ledger order.

    Each is labelled with the first nickname the device used so a human can
    tell who it was when linking it.
    """

    return [
        UnresolvedDevice(device_id=entry.device_id, label=entry.first_nickname)
        for entry in ledger.entries
        if resolved.get(entry.device_id) is None
    ]


def find_unresolved_devices(
    ledger: Ledger,
    identity_repo: IdentityRepository,
) -> List[UnresolvedDevice]:
    return unresolved_devices(ledger, resolve_devices(ledger, identity_repo))


def link_device(
    device_id: str,
    player_id: int,
    identity_repo: IdentityRepository,
    player_repo: PlayerRepository,
) -> None:
    """Point a device at a player, overwriting any previous link."""

    if player_repo.get_player(player_id) is None:
        raise UnknownPlayerError(player_id)
    identity_repo.link_device(device_id, player_id)
