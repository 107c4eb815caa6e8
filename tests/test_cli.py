import io
import os
import unittest
from unittest.mock import MagicMock, patch

from nodekiller import cli, config
from nodekiller.models import BulkKillOutcome, KillOutcome, ListeningProcess

NODE = ListeningProcess(4242, "dev", (3000, 9229), "node")
VITE = ListeningProcess(5173, None, (5173,), "vite")


class TestPresentation(unittest.TestCase):
    def test_labels(self):
        self.assertEqual(cli.format_process_label(NODE), "node 4242 (ports 3000, 9229) [dev]")
        self.assertEqual(cli.format_process_label(VITE), "vite 5173 (port 5173)")
        self.assertEqual(cli.format_ports(()), "")

    def test_render_snapshot(self):
        out = io.StringIO()
        cli.render_snapshot((NODE, VITE), out)
        self.assertEqual(out.getvalue().splitlines(), [
            "Node Killer - active processes: 2",
            "  node 4242 (ports 3000, 9229) [dev]",
            "  vite 5173 (port 5173)",
        ])

    def test_confirm(self):
        with patch("sys.stdout", new_callable=io.StringIO):
            self.assertTrue(cli.confirm("Kill?", stdin=io.StringIO("y\n")))
            self.assertTrue(cli.confirm("Kill?", stdin=io.StringIO("YES\n")))
            self.assertFalse(cli.confirm("Kill?", stdin=io.StringIO("\n")))
            self.assertFalse(cli.confirm("Kill?", stdin=io.StringIO("")))


class TestVersion(unittest.TestCase):
    def test_reads_version_file(self):
        with open(os.path.join(os.path.dirname(cli.__file__), "VERSION")) as f:
            self.assertEqual(cli._get_app_version(), f.read().strip())

    def test_fallback_matches_version_file(self):
        with open(os.path.join(os.path.dirname(cli.__file__), "VERSION")) as f:
            shipped = f.read().strip()
        with patch("builtins.open", side_effect=OSError("gone")):
            self.assertEqual(cli._get_app_version(), shipped)


class TestParseArgs(unittest.TestCase):
    def test_defaults(self):
        args = cli.parse_args([])
        self.assertFalse(args.list)
        self.assertIsNone(args.kill)
        self.assertIsNone(args.all_users)
        self.assertIsNone(args.types)
        self.assertIsNone(args.interval)

    def test_preferences(self):
        args = cli.parse_args(["--mine", "--types", "vite,bun", "--interval", "paused"])
        self.assertFalse(args.all_users)
        self.assertEqual(args.types, ["vite", "bun"])
        self.assertEqual(args.interval, config.PAUSED)
        self.assertTrue(cli.parse_args(["--all-users"]).all_users)

    def test_rejects_bad_values(self):
        bad = [
            ["--types", "deno"],
            ["--interval", "0"],
            ["--list", "--kill", "1"],
            ["--kill", "abc"],
        ]
        for argv in bad:
            with self.subTest(argv=argv), patch("sys.stderr", new_callable=io.StringIO):
                with self.assertRaises(SystemExit):
                    cli.parse_args(argv)

    def test_apply_preference_args(self):
        args = cli.parse_args(["--interval", "1000", "--all-users", "--types", "node"])
        with patch.object(config, "set_refresh_ms") as set_ms, \
                patch.object(config, "set_all_users") as set_users, \
                patch.object(config, "set_process_types") as set_types:
            cli.apply_preference_args(args)
        set_ms.assert_called_once_with(1000)
        set_users.assert_called_once_with(True)
        set_types.assert_called_once_with({"node": True})

    def test_apply_nothing_when_unset(self):
        with patch.object(config, "save_config") as save:
            cli.apply_preference_args(cli.parse_args([]))
        save.assert_not_called()


class TestHandleCommand(unittest.TestCase):
    def setUp(self):
        self.scheduler = MagicMock()
        self.scheduler.latest = (NODE, VITE)
        stdout = patch("sys.stdout", new_callable=io.StringIO)
        self.out = stdout.start()
        self.addCleanup(stdout.stop)

    def test_quit(self):
        self.assertFalse(cli.handle_command("q\n", self.scheduler))
        self.assertTrue(cli.handle_command("   \n", self.scheduler))

    def test_refresh(self):
        cli.handle_command("r", self.scheduler)
        self.scheduler.refresh_now.assert_called_once()

    def test_kill(self):
        cli.handle_command("k 4242", self.scheduler)
        self.scheduler.kill.assert_called_once_with(4242)

    def test_kill_needs_numeric_pid(self):
        cli.handle_command("k node", self.scheduler)
        cli.handle_command("k", self.scheduler)
        self.scheduler.kill.assert_not_called()
        self.assertIn("Usage: k <pid>", self.out.getvalue())

    def test_kill_all_asks_first(self):
        cli.handle_command("a", self.scheduler, io.StringIO("n\n"))
        self.scheduler.kill_all.assert_not_called()
        self.assertIn("Kill 2 processes?", self.out.getvalue())
        cli.handle_command("a", self.scheduler, io.StringIO("y\n"))
        self.scheduler.kill_all.assert_called_once()

    def test_kill_all_with_nothing_listed(self):
        self.scheduler.latest = ()
        cli.handle_command("a", self.scheduler, io.StringIO("y\n"))
        self.scheduler.kill_all.assert_not_called()

    def test_set_interval(self):
        with patch.object(config, "set_refresh_ms") as set_ms:
            cli.handle_command("p paused", self.scheduler)
            cli.handle_command("p -3", self.scheduler)
        set_ms.assert_called_once_with(config.PAUSED)
        self.scheduler.refresh_now.assert_called_once()

    def test_toggle_users(self):
        with patch.object(config, "get_all_users", return_value=False), \
                patch.object(config, "set_all_users", return_value=True) as set_users:
            cli.handle_command("u", self.scheduler)
        set_users.assert_called_once_with(True)
        self.assertIn("all users", self.out.getvalue())
        self.scheduler.refresh_now.assert_called_once()

    def test_unknown_prints_help(self):
        self.assertTrue(cli.handle_command("h", self.scheduler))
        self.assertIn("Commands:", self.out.getvalue())


class TestRunModes(unittest.TestCase):
    def setUp(self):
        stdout = patch("sys.stdout", new_callable=io.StringIO)
        self.out = stdout.start()
        self.addCleanup(stdout.stop)
        factory = patch.object(cli, "RefreshScheduler")
        self.factory = factory.start()
        self.addCleanup(factory.stop)
        self.scheduler = self.factory.return_value
        self.scheduler.latest = (NODE,)

    def test_list(self):
        self.assertEqual(cli.run_once(cli.parse_args(["--list"])), 0)
        self.scheduler.trigger_refresh.assert_called_once()
        self.scheduler.kill_all.assert_not_called()
        get_interval = self.factory.call_args.kwargs["get_interval"]
        self.assertEqual(get_interval(), config.PAUSED)

    def test_kill_exit_codes(self):
        self.scheduler.kill.return_value = KillOutcome(42, True, "graceful")
        self.assertEqual(cli.run_once(cli.parse_args(["--kill", "42"])), 0)
        self.scheduler.kill.return_value = KillOutcome(42, False, "graceful", "Operation not permitted")
        self.assertEqual(cli.run_once(cli.parse_args(["--kill", "42"])), 1)

    def test_kill_all_yes(self):
        self.scheduler.kill_all.return_value = BulkKillOutcome(1, 0)
        self.assertEqual(cli.run_once(cli.parse_args(["--kill-all", "-y"])), 0)
        self.scheduler.kill_all.return_value = BulkKillOutcome(0, 1, ("4242 (forceful)",))
        self.assertEqual(cli.run_once(cli.parse_args(["--kill-all", "--yes"])), 1)

    def test_kill_all_declined(self):
        code = cli.run_once(cli.parse_args(["--kill-all"]), io.StringIO("no\n"))
        self.assertEqual(code, 1)
        self.scheduler.kill_all.assert_not_called()
        self.assertIn("Aborted.", self.out.getvalue())

    def test_kill_all_nothing_to_do(self):
        self.scheduler.latest = ()
        self.assertEqual(cli.run_once(cli.parse_args(["--kill-all"])), 0)
        self.scheduler.kill_all.assert_not_called()

    def test_watch_loop(self):
        cli.run_watch(self.scheduler, io.StringIO("r\nq\nr\n"))
        self.scheduler.start.assert_called_once()
        self.scheduler.refresh_now.assert_called_once()
        self.scheduler.shutdown.assert_called_once()

    def test_watch_loop_shuts_down_on_eof(self):
        cli.run_watch(self.scheduler, io.StringIO(""))
        self.scheduler.shutdown.assert_called_once()


class TestEntry(unittest.TestCase):
    def test_one_shot_exits_with_code(self):
        with patch.object(config, "init_config"), \
                patch.object(cli, "run_once", return_value=1) as run_once:
            with self.assertRaises(SystemExit) as ctx:
                cli.cli_entry(["--list"])
        self.assertEqual(ctx.exception.code, 1)
        run_once.assert_called_once()

    def test_watch_mode(self):
        with patch.object(config, "init_config") as init, \
                patch.object(cli, "RefreshScheduler") as factory, \
                patch.object(cli, "run_watch") as run_watch:
            cli.cli_entry([])
        init.assert_called_once()
        run_watch.assert_called_once_with(factory.return_value)


if __name__ == "__main__":
    unittest.main()
