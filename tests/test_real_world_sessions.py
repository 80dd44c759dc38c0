import os
import tempfile
import unittest

from application.ingestion import submit_ledger
from application.services import DeviceLink, link_devices, register_player
from application.standings import get_all_player_aggregates, get_player_aggregate
from infrastructure.db.stores import build_sqlite_store
from ledger_fixtures import DEVICE_OWNERS, PLAYER_NAMES, SESSIONS


class RealWorldAggregationTests(unittest.TestCase):
    """Three recorded sessions ingested end to end into SQLite."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = build_sqlite_store(os.path.join(self._tmp.name, "poker.db"))
        self.players = {name: register_player(name, self.store) for name in PLAYER_NAMES}
        link_devices(
            [
                DeviceLink(device_id=device_id, player_id=self.players[name].id)
                for device_id, name in DEVICE_OWNERS.items()
            ],
            self.store,
        )
        self.results = [
            submit_ledger(f"https://www.pokernow.com/games/session-{i}", payload, self.store)
            for i, payload in enumerate(SESSIONS, start=1)
        ]

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _aggregate(self, name):
        return get_player_aggregate(self.players[name].id, self.store)

    def test_every_session_was_settled(self):
        self.assertTrue(all(not r.is_blocked for r in self.results))
        self.assertEqual(
            self.results[0].settlement_report,
            "Payouts powered by Perkins-App:\n"
            "Akseli 20.00€ → Aleksi K.\n"
            "Lauri P. 1.44€ → Aleksi K.\n"
            "Lauri P. 10.06€ → Jussi\n"
            "Lauri P. 0.97€ → Lasse",
        )
        self.assertEqual(
            self.results[2].settlement_report,
            "Payouts powered by Perkins-App:\n"
            "Mikko 30.17€ → Lauri P.\n"
            "Mikko 2.15€ → Lasse\n"
            "Jussi 24.24€ → Lasse\n"
            "Jussi 5.76€ → Jaakko",
        )

    def test_player_with_two_devices_across_three_sessions(self):
        lauri = self._aggregate("Lauri P.")
        self.assertEqual(lauri.net_winnings, -2230)
        self.assertEqual(lauri.sessions, 3)
        self.assertEqual(lauri.device_ids, ["7C7WggNp1M", "RHb-0Unr50"])
        self.assertEqual(lauri.nicknames, ["Lauri P."])

    def test_player_using_alias_on_two_devices(self):
        akseli = self._aggregate("Akseli")
        self.assertEqual(akseli.net_winnings, 2000)
        self.assertEqual(akseli.sessions, 2)
        self.assertEqual(len(akseli.device_ids), 2)
        self.assertEqual(akseli.nicknames, ["Haamu"])

    def test_player_reusing_one_device(self):
        jussi = self._aggregate("Jussi")
        self.assertEqual(jussi.net_winnings, -1994)
        self.assertEqual(jussi.sessions, 2)
        self.assertEqual(jussi.device_ids, ["nDCo0CjA_m"])

    def test_single_session_players(self):
        self.assertEqual(self._aggregate("Aleksi K.").net_winnings, 2144)
        self.assertEqual(self._aggregate("Jaakko").nicknames, ["jaakko"])
        mikko = self._aggregate("Mikko")
        self.assertEqual((mikko.sessions, mikko.net_winnings), (1, -3232))

    def test_standings_are_ranked_and_balance_to_zero(self):
        aggregates = get_all_player_aggregates(self.store)

        self.assertEqual(
            [(a.player_name, a.net_winnings, a.sessions) for a in aggregates],
            [
                ("Lasse", 2736, 2),
                ("Aleksi K.", 2144, 1),
                ("Akseli", 2000, 2),
                ("Jaakko", 576, 1),
                ("Jussi", -1994, 2),
                ("Lauri P.", -2230, 3),
                ("Mikko", -3232, 1),
            ],
        )
        self.assertEqual(sum(a.net_winnings for a in aggregates), 0)

    def test_resubmitting_a_session_does_not_double_count(self):
        submit_ledger("https://www.pokernow.com/games/session-1/", SESSIONS[0], self.store)

        self.assertEqual(self._aggregate("Lauri P.").net_winnings, -2230)
        self.assertEqual(self._aggregate("Lauri P.").sessions, 3)
        self.assertEqual(len(self.store.sessions.list_participations_for_session("session-1")), 5)

    def test_unknown_device_in_new_session_blocks_without_writes(self):
        payload = {
            "playersInfos": {
                "RHb-0Unr50": {"names": ["Lauri P."], "buyInSum": 1000, "buyOutSum": 0, "inGame": 0, "net": -1000},
                "newDevice01": {"names": ["Stranger", "S"], "buyInSum": 1000, "buyOutSum": 2000, "inGame": 0, "net": 1000},
            }
        }

        result = submit_ledger("https://www.pokernow.com/games/session-4", payload, self.store)

        self.assertEqual([(d.device_id, d.label) for d in result.blocked], [("newDevice01", "Stranger")])
        self.assertFalse(self.store.sessions.session_exists("session-4"))
        self.assertEqual(self._aggregate("Lauri P.").sessions, 3)


if __name__ == "__main__":
    unittest.main()
