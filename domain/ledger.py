from __future__ import annotations

import re
from typing import Optional

from .errors import InvalidLedgerError
from .models import Ledger, LedgerEntry

GAMES_MARKER = "/games/"


def extract_session_id(url: str) -> Optional[str]:
    """
    Return the session id from a game URL, or None if there is none.

    The id is the single path segment after `/games/`; anything from the
    next `/`, `?` or `#` on is ignored.
    """

    if not url or GAMES_MARKER not in url:
        return None
    session_id = re.split(r"[/?#]", url.split(GAMES_MARKER, 1)[1], maxsplit=1)[0]
    return session_id or None


def _amount(info: dict, key: str, where: str) -> int:
    value = info.get(key)
    if value is None:
        return 0
    # bool is an int subclass but never a valid amount.
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidLedgerError(
            f"{where}: {key} must be an integer amount in cents, got {value!r}."
        )
    return value


def parse_ledger(payload: dict) -> Ledger:
    """
    Build a `Ledger` from an exported ledger payload.

    Expected shape::

        {
          "buyInTotal": 30222, "buyOutTotal": 30222, "inGameTotal": 0,
          "gameHasRake": false,
          "playersInfos": {
            "<device id>": {"names": [...], "buyInSum": ..., "buyOutSum": ...,
                            "inGame": ..., "net": ...}
          }
        }

    A missing `net` is derived as buy-out + in-game - buy-in.
    """

    if not isinstance(payload, dict):
        raise InvalidLedgerError("Ledger payload must be a JSON object.")
    infos = payload.get("playersInfos")
    if not isinstance(infos, dict):
        raise InvalidLedgerError("Ledger payload has no playersInfos mapping.")

    entries = []
    for device_id, info in infos.items():
        where = f"Device {device_id!r}"
        if not isinstance(info, dict):
            raise InvalidLedgerError(f"{where}: entry must be an object.")
        buy_in = _amount(info, "buyInSum", where)
        buy_out = _amount(info, "buyOutSum", where)
        in_game = _amount(info, "inGame", where)
        if info.get("net") is None:
            net = buy_out + in_game - buy_in
        else:
            net = _amount(info, "net", where)
        names = [str(name) for name in info.get("names") or []]
        entries.append(
            LedgerEntry(
                device_id=str(device_id),
                names=names,
                buy_in=buy_in,
                buy_out=buy_out,
                in_game=in_game,
                net=net,
            )
        )

    return Ledger(
        entries=entries,
        buy_in_total=_amount(payload, "buyInTotal", "Ledger"),
        buy_out_total=_amount(payload, "buyOutTotal", "Ledger"),
        in_game_total=_amount(payload, "inGameTotal", "Ledger"),
        has_rake=bool(payload.get("gameHasRake", False)),
    )
