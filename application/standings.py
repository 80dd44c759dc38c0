from __future__ import annotations

from typing import List, Optional

from application.services import LedgerStore
from application.settlement import format_amount
from domain.models import PlayerAggregate, PlayerTotals

_NO_SESSIONS = PlayerTotals(sessions=0, net_winnings=0)


def get_player_aggregate(player_id: int, store: LedgerStore) -> Optional[PlayerAggregate]:
    """
    Return cross-session standings for one player, or None if unknown.

    Session count and net total come from the participation table only;
    nicknames and device ids are fetched separately so that owning several
    of either never multiplies the totals.
    """

    with store.database.transaction():
        player = store.players.get_player(player_id)
        if player is None:
            return None
        participations = store.sessions.list_participations_for_player(player_id)
        nicknames = store.nicknames.list_nicknames(player_id)
        device_ids = store.identities.get_device_ids_for_player(player_id)

    return PlayerAggregate(
        player_id=player.id,
        player_name=player.name,
        sessions=len({p.session_id for p in participations}),
        net_winnings=sum(p.net for p in participations),
        nicknames=sorted(set(nicknames)),
        device_ids=sorted(set(device_ids)),
    )


def get_all_player_aggregates(store: LedgerStore) -> List[PlayerAggregate]:
    """
    Return standings for every registered player, biggest winner first.

    Players with equal winnings keep name order.
    """

    with store.database.transaction():
        players = store.players.list_players()
        totals = store.sessions.get_player_totals()
        nicknames = store.nicknames.get_all_nicknames()
        device_ids = store.identities.get_all_device_ids()

    aggregates = []
    for player in players:
        player_totals = totals.get(player.id, _NO_SESSIONS)
        aggregates.append(
            PlayerAggregate(
                player_id=player.id,
                player_name=player.name,
                sessions=player_totals.sessions,
                net_winnings=player_totals.net_winnings,
                nicknames=sorted(set(nicknames.get(player.id, []))),
                device_ids=sorted(set(device_ids.get(player.id, []))),
            )
        )

    aggregates.sort(key=lambda a: a.net_winnings, reverse=True)
    return aggregates


def format_standings(aggregates: List[PlayerAggregate], currency_symbol: str = "€") -> str:
    lines = []
    for rank, agg in enumerate(aggregates, start=1):
        lines.append(
            f"{rank}. {agg.player_name}: {format_amount(agg.net_winnings)}{currency_symbol} "
            f"({agg.sessions} session{'s' if agg.sessions != 1 else ''})"
        )
    return "\n".join(lines)
