from __future__ import annotations


class LedgerError(Exception):
    """Base class for all errors raised by the ledger engine."""


class UnknownPlayerError(LedgerError):
    def __init__(self, player_id: object) -> None:
        super().__init__(f"Player {player_id} does not exist.")
        self.player_id = player_id


class DuplicatePlayerError(LedgerError):
    def __init__(self, name: str) -> None:
        super().__init__(f"A player named {name!r} already exists.")
        self.name = name


class InvalidPlayerNameError(LedgerError):
    pass


class DuplicateSessionError(LedgerError):
    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session {session_id!r} already exists.")
        self.session_id = session_id


class DuplicateParticipationError(LedgerError):
    def __init__(self, session_id: str, device_id: str) -> None:
        super().__init__(
            f"Device {device_id!r} already has a result in session {session_id!r}."
        )
        self.session_id = session_id
        self.device_id = device_id


class MalformedSourceUrlError(LedgerError):
    def __init__(self, url: str) -> None:
        super().__init__(f"No session id found in URL {url!r}.")
        self.url = url


class InvalidLedgerError(LedgerError):
    """The ledger payload does not have the expected shape."""
