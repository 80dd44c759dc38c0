from __future__ import annotations

from typing import ContextManager, Dict, List, Optional, Protocol

from .models import Player, PlayerTotals, SessionParticipation, SessionRecord


class Database(Protocol):
    """
    Transaction boundary shared by the repositories of one backend.

    Repository calls made inside `transaction()` on the same thread join that
    transaction; calls made outside it run in a transaction of their own.
    """

    def transaction(self) -> ContextManager[object]:
        ...


class PlayerRepository(Protocol):
    """
    Abstraction over player persistence.

    Implementations are responsible for:
    - Mapping between database rows and the `Player` domain model.
    - Enforcing unique player names.
    - Cascading a player deletion to its device links and nicknames.
    """

    def create_player(self, name: str) -> Player:
        """Persist a new player. Raises `DuplicatePlayerError` on a taken name."""

        ...

    def get_player(self, player_id: int) -> Optional[Player]:
        ...

    def find_player_by_name(self, name: str) -> Optional[Player]:
        ...

    def list_players(self) -> List[Player]:
        """Return all players ordered by name."""

        ...

    def delete_player(self, player_id: int) -> None:
        ...


class IdentityRepository(Protocol):
    """
    Maps device identifiers from ledger exports to internal player IDs.

    A device identifier points at exactly one player; many identifiers may
    point at the same player.
    """

    def find_player_by_device(self, device_id: str) -> Optional[Player]:
        """Return the player linked to `device_id`, if any."""

        ...

    def link_device(self, device_id: str, player_id: int) -> None:
        """
        Point `device_id` at `player_id`, replacing any earlier link.

        Raises `UnknownPlayerError` if the player does not exist.
        """

        ...

    def get_device_ids_for_player(self, player_id: int) -> List[str]:
        ...

    def get_all_device_ids(self) -> Dict[int, List[str]]:
        """Return every player's device identifiers keyed by player ID."""

        ...


class NicknameRepository(Protocol):
    def add_nickname(self, player_id: int, nickname: str) -> None:
        """Record a nickname for a player. Adding a known pair is a no-op."""

        ...

    def list_nicknames(self, player_id: int) -> List[str]:
        """Return the player's nicknames sorted alphabetically."""

        ...

    def get_all_nicknames(self) -> Dict[int, List[str]]:
        ...


class SessionRepository(Protocol):
    """
    Persistence for session records and their per-device participations.

    Participations are unique per (session, device) and are deleted together
    with their session.
    """

    def session_exists(self, session_id: str) -> bool:
        ...

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        ...

    def list_sessions(self) -> List[SessionRecord]:
        """Return all sessions, newest first."""

        ...

    def create_session(self, session_id: str, url: str, ledger_data: dict) -> SessionRecord:
        """Insert a new session. Raises `DuplicateSessionError` if it exists."""

        ...

    def update_session(
        self,
        session_id: str,
        url: str,
        ledger_data: dict,
    ) -> Optional[SessionRecord]:
        """Overwrite url/payload of an existing session; None if unknown."""

        ...

    def save_session(self, session_id: str, url: str, ledger_data: dict) -> SessionRecord:
        """Create the session, or update it if the id is already stored."""

        ...

    def delete_session(self, session_id: str) -> None:
        ...

    def delete_participations(self, session_id: str) -> None:
        ...

    def add_participation(self, participation: SessionParticipation) -> None:
        ...

    def list_participations_for_session(self, session_id: str) -> List[SessionParticipation]:
        ...

    def list_participations_for_player(self, player_id: int) -> List[SessionParticipation]:
        ...

    def get_player_totals(self) -> Dict[int, PlayerTotals]:
        """
        Return distinct session count and net sum per player.

        Computed from the participation table alone so the totals do not
        depend on how many devices or nicknames a player has.
        """

        ...
