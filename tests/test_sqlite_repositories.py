import os
import sqlite3
import tempfile
import time
import unittest

from domain.errors import (
    DuplicateParticipationError,
    DuplicatePlayerError,
    DuplicateSessionError,
    UnknownPlayerError,
)
from domain.models import SessionParticipation
from infrastructure.db.stores import build_sqlite_store


def _participation(session_id, device_id, player_id, net=0, nickname="Player"):
    return SessionParticipation(
        session_id=session_id,
        device_id=device_id,
        player_id=player_id,
        nickname=nickname,
        net=net,
        buy_in=10000,
        buy_out=10000 + net,
        in_game=0,
    )


class SqliteTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self._tmp.name, "poker.db")
        self.store = build_sqlite_store(self.db_path)

    def tearDown(self) -> None:
        self._tmp.cleanup()


class SqlitePlayerRepositoryTests(SqliteTestCase):
    def test_create_and_get_player(self):
        player = self.store.players.create_player("Jussi")

        stored = self.store.players.get_player(player.id)
        self.assertEqual(stored.name, "Jussi")
        self.assertIsNotNone(stored.created_at)
        self.assertEqual(self.store.players.find_player_by_name("Jussi").id, player.id)

    def test_duplicate_name_raises(self):
        self.store.players.create_player("Jussi")
        with self.assertRaises(DuplicatePlayerError):
            self.store.players.create_player("Jussi")

    def test_lookups_for_missing_player_return_none(self):
        self.assertIsNone(self.store.players.get_player(42))
        self.assertIsNone(self.store.players.find_player_by_name("Nobody"))
        self.assertIsNone(self.store.players.find_player_by_name("jussi"))

    def test_players_listed_by_name(self):
        for name in ["Sampsa", "Aleksi", "Jussi"]:
            self.store.players.create_player(name)
        self.assertEqual(
            [p.name for p in self.store.players.list_players()],
            ["Aleksi", "Jussi", "Sampsa"],
        )

    def test_delete_cascades_to_devices_and_nicknames(self):
        player = self.store.players.create_player("Jussi")
        self.store.identities.link_device("dev-1", player.id)
        self.store.nicknames.add_nickname(player.id, "Perkins")

        self.store.players.delete_player(player.id)
        self.store.players.delete_player(player.id)

        self.assertIsNone(self.store.players.get_player(player.id))
        self.assertIsNone(self.store.identities.find_player_by_device("dev-1"))
        self.assertEqual(self.store.nicknames.list_nicknames(player.id), [])
        self.assertEqual(self.store.identities.get_all_device_ids(), {})

    def test_schema_survives_reopening(self):
        player = self.store.players.create_player("Jussi")
        reopened = build_sqlite_store(self.db_path)
        self.assertEqual(reopened.players.get_player(player.id).name, "Jussi")


class SqliteIdentityAndNicknameTests(SqliteTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.jussi = self.store.players.create_player("Jussi")
        self.dani = self.store.players.create_player("Dani")

    def test_link_overwrites_existing_mapping(self):
        self.store.identities.link_device("dev-1", self.jussi.id)
        self.store.identities.link_device("dev-1", self.dani.id)

        self.assertEqual(self.store.identities.find_player_by_device("dev-1").name, "Dani")
        self.assertEqual(self.store.identities.get_device_ids_for_player(self.jussi.id), [])
        self.assertEqual(self.store.identities.get_all_device_ids(), {self.dani.id: ["dev-1"]})

    def test_link_to_missing_player_raises(self):
        with self.assertRaises(UnknownPlayerError):
            self.store.identities.link_device("dev-1", 999)
        self.assertIsNone(self.store.identities.find_player_by_device("dev-1"))

    def test_device_ids_for_player(self):
        for device_id in ["b-dev", "a-dev"]:
            self.store.identities.link_device(device_id, self.jussi.id)
        self.assertEqual(self.store.identities.get_device_ids_for_player(self.jussi.id), ["a-dev", "b-dev"])
        self.assertEqual(self.store.identities.get_device_ids_for_player(999), [])

    def test_nicknames_are_idempotent_and_sorted(self):
        for nickname in ["Perkins", "Alpha", "Perkins"]:
            self.store.nicknames.add_nickname(self.jussi.id, nickname)
        self.store.nicknames.add_nickname(self.dani.id, "Perkins")

        self.assertEqual(self.store.nicknames.list_nicknames(self.jussi.id), ["Alpha", "Perkins"])
        self.assertEqual(
            self.store.nicknames.get_all_nicknames(),
            {self.jussi.id: ["Alpha", "Perkins"], self.dani.id: ["Perkins"]},
        )

    def test_nickname_for_missing_player_raises(self):
        with self.assertRaises(UnknownPlayerError):
            self.store.nicknames.add_nickname(999, "Ghost")


class SqliteSessionRepositoryTests(SqliteTestCase):
    def test_create_session_stores_payload(self):
        payload = {"test": "data", "players": []}
        record = self.store.sessions.create_session("session-123", "https://pokernow.com/games/session-123", payload)

        self.assertEqual(record.id, "session-123")
        self.assertEqual(record.ledger_data, payload)
        self.assertTrue(self.store.sessions.session_exists("session-123"))
        self.assertFalse(self.store.sessions.session_exists("other"))

    def test_duplicate_create_raises(self):
        self.store.sessions.create_session("dup", "https://test.com", {})
        with self.assertRaises(DuplicateSessionError):
            self.store.sessions.create_session("dup", "https://test.com", {})

    def test_update_session(self):
        before = self.store.sessions.create_session("s", "https://test.com/old", {"count": 1})
        time.sleep(0.01)

        after = self.store.sessions.update_session("s", "https://test.com/new", {"count": 2})

        self.assertEqual(after.url, "https://test.com/new")
        self.assertEqual(after.ledger_data, {"count": 2})
        self.assertEqual(after.created_at, before.created_at)
        self.assertGreater(after.updated_at, before.updated_at)
        self.assertIsNone(self.store.sessions.update_session("missing", "https://test.com", {}))

    def test_save_session_creates_then_updates(self):
        first = self.store.sessions.save_session("s", "https://test.com/1", {"v": 1})
        second = self.store.sessions.save_session("s", "https://test.com/2", {"v": 2})

        self.assertEqual(second.created_at, first.created_at)
        self.assertEqual(second.ledger_data, {"v": 2})
        self.assertEqual(len(self.store.sessions.list_sessions()), 1)

    def test_sessions_listed_newest_first(self):
        for session_id in ["session-1", "session-2", "session-3"]:
            self.store.sessions.create_session(session_id, "https://test.com", {})
            time.sleep(0.01)
        self.assertEqual(
            [s.id for s in self.store.sessions.list_sessions()],
            ["session-3", "session-2", "session-1"],
        )

    def test_delete_session_cascades_to_participations(self):
        player = self.store.players.create_player("Player1")
        self.store.sessions.create_session("keep", "https://test.com/1", {})
        self.store.sessions.create_session("gone", "https://test.com/2", {})
        self.store.sessions.add_participation(_participation("gone", "dev-1", player.id, 50))
        self.store.sessions.add_participation(_participation("keep", "dev-1", player.id, 20))

        self.store.sessions.delete_session("gone")
        self.store.sessions.delete_session("never-existed")

        self.assertIsNone(self.store.sessions.get_session("gone"))
        self.assertEqual(self.store.sessions.list_participations_for_session("gone"), [])
        self.assertEqual([s.id for s in self.store.sessions.list_sessions()], ["keep"])
        self.assertEqual(len(self.store.sessions.list_participations_for_player(player.id)), 1)

    def test_participation_unique_per_session_and_device(self):
        player = self.store.players.create_player("Player1")
        self.store.sessions.create_session("s", "https://test.com", {})
        self.store.sessions.add_participation(_participation("s", "dev-1", player.id, 30))

        with self.assertRaises(DuplicateParticipationError):
            self.store.sessions.add_participation(_participation("s", "dev-1", player.id, 30))

    def test_participation_for_missing_player_raises(self):
        self.store.sessions.create_session("s", "https://test.com", {})
        with self.assertRaises(UnknownPlayerError):
            self.store.sessions.add_participation(_participation("s", "dev-1", 999))

    def test_other_integrity_errors_are_not_reported_as_unknown_player(self):
        player = self.store.players.create_player("Player1")
        self.store.sessions.create_session("s", "https://test.com", {})

        with self.assertRaises(sqlite3.IntegrityError) as ctx:
            self.store.sessions.add_participation(_participation("s", "dev-1", player.id, nickname=None))

        self.assertNotIsInstance(ctx.exception, UnknownPlayerError)
        self.assertIn("NOT NULL", str(ctx.exception))

    def test_participations_keep_amounts_in_cents(self):
        players = [self.store.players.create_player(name) for name in ["P1", "P2", "P3"]]
        self.store.sessions.create_session("multi", "https://test.com", {})
        for i, (player, net) in enumerate(zip(players, [3000, -1000, -2000])):
            self.store.sessions.add_participation(_participation("multi", f"dev-{i}", player.id, net, f"N{i}"))

        rows = self.store.sessions.list_participations_for_session("multi")
        self.assertEqual([r.net for r in rows], [3000, -1000, -2000])
        self.assertEqual(rows[0].buy_out, 13000)
        self.assertEqual(rows[1].nickname, "N1")
        self.assertEqual(sum(r.net for r in rows), 0)

    def test_player_totals_count_distinct_sessions(self):
        player = self.store.players.create_player("Lauri P.")
        for device_id in ["dev-a", "dev-b", "dev-c"]:
            self.store.identities.link_device(device_id, player.id)
        for nickname in ["Lauri", "Lauri P.", "LP"]:
            self.store.nicknames.add_nickname(player.id, nickname)
        for session_id, net in [("s1", -1247), ("s2", -4000), ("s3", 3017)]:
            self.store.sessions.create_session(session_id, "https://test.com", {})
            self.store.sessions.add_participation(_participation(session_id, "dev-a", player.id, net))

        totals = self.store.sessions.get_player_totals()

        self.assertEqual(totals[player.id].sessions, 3)
        self.assertEqual(totals[player.id].net_winnings, -2230)

    def test_deleting_player_keeps_participation_without_owner(self):
        player = self.store.players.create_player("Gone")
        self.store.sessions.create_session("s", "https://test.com", {})
        self.store.sessions.add_participation(_participation("s", "dev-1", player.id, 500))

        self.store.players.delete_player(player.id)

        rows = self.store.sessions.list_participations_for_session("s")
        self.assertEqual(len(rows), 1)
        self.assertIsNone(rows[0].player_id)
        self.assertEqual(self.store.sessions.get_player_totals(), {})


class SqliteTransactionTests(SqliteTestCase):
    def test_error_inside_transaction_rolls_back_all_writes(self):
        player = self.store.players.create_player("Jussi")

        with self.assertRaises(DuplicateSessionError):
            with self.store.database.transaction():
                self.store.identities.link_device("dev-1", player.id)
                self.store.sessions.create_session("s", "https://test.com", {})
                self.store.sessions.create_session("s", "https://test.com", {})

        self.assertIsNone(self.store.identities.find_player_by_device("dev-1"))
        self.assertFalse(self.store.sessions.session_exists("s"))

    def test_writes_commit_when_block_completes(self):
        with self.store.database.transaction():
            player = self.store.players.create_player("Jussi")
            self.store.identities.link_device("dev-1", player.id)

        reopened = build_sqlite_store(self.db_path)
        self.assertEqual(reopened.identities.find_player_by_device("dev-1").name, "Jussi")


if __name__ == "__main__":
    unittest.main()
