"""Tests for the CommandInterpreter and ControlReader."""

import io
import queue
import unittest

from hurl.commands import CommandInterpreter, ControlReader
from hurl.settings import SettingsStore


class TestCommandInterpreter(unittest.TestCase):
    """Verify control lines are parsed and applied to the settings store."""

    def setUp(self):
        self.settings = SettingsStore()
        self.changes = 0

        def on_change():
            self.changes += 1

        self.interpreter = CommandInterpreter(self.settings, on_change=on_change)

    def test_each_command_updates_its_field(self):
        self.assertTrue(self.interpreter.apply("p=8").accepted)
        self.assertTrue(self.interpreter.apply("r=16").accepted)
        self.assertTrue(self.interpreter.apply("t=250ms").accepted)
        self.assertTrue(self.interpreter.apply("c=5").accepted)
        snap = self.settings.snapshot()
        self.assertEqual(snap.parallelism, 8)
        self.assertEqual(snap.rate, 16)
        self.assertAlmostEqual(snap.timeout, 0.25)
        self.assertEqual(snap.retries, 5)
        self.assertEqual(self.changes, 4)

    def test_outcome_reports_name_and_value(self):
        outcome = self.interpreter.apply("  p=3  ")
        self.assertEqual(outcome.command, "p=3")
        self.assertEqual(outcome.name, "parallelism")
        self.assertEqual(outcome.value, 3)
        self.assertIsNone(outcome.error)

    def test_unparsable_value_changes_nothing(self):
        """p=abc must be rejected without touching any setting."""
        before = self.settings.snapshot()
        outcome = self.interpreter.apply("p=abc")
        self.assertFalse(outcome.accepted)
        self.assertEqual(outcome.name, "parallelism")
        self.assertIsNotNone(outcome.error)
        self.assertEqual(self.settings.snapshot(), before)
        self.assertEqual(self.changes, 0)

    def test_zero_rate_is_rejected(self):
        outcome = self.interpreter.apply("r=0")
        self.assertFalse(outcome.accepted)
        self.assertEqual(self.settings.rate, 1)

    def test_zero_parallelism_is_accepted(self):
        self.assertTrue(self.interpreter.apply("p=0").accepted)
        self.assertEqual(self.settings.parallelism, 0)

    def test_zero_retries_is_rejected(self):
        self.assertFalse(self.interpreter.apply("c=0").accepted)
        self.assertEqual(self.settings.retries, 3)

    def test_first_matching_prefix_wins(self):
        """A matching prefix with a bad value is not retried against later prefixes."""
        outcome = self.interpreter.apply("p=r=4")
        self.assertFalse(outcome.accepted)
        self.assertEqual(outcome.name, "parallelism")
        self.assertEqual(self.settings.rate, 1)

    def test_unknown_command(self):
        before = self.settings.snapshot()
        outcome = self.interpreter.apply("https://example.com/")
        self.assertFalse(outcome.accepted)
        self.assertIsNone(outcome.name)
        self.assertEqual(outcome.error, "unknown command")
        self.assertEqual(self.settings.snapshot(), before)

    def test_empty_line_is_ignored(self):
        self.assertFalse(self.interpreter.apply("   ").accepted)
        self.assertEqual(self.changes, 0)

    def test_apply_pending_drains_queue(self):
        commands = queue.Queue()
        for line in ("p=2", "bogus", "r=3"):
            commands.put(line)
        self.assertEqual(self.interpreter.apply_pending(commands), 3)
        self.assertTrue(commands.empty())
        self.assertEqual(self.settings.parallelism, 2)
        self.assertEqual(self.settings.rate, 3)
        self.assertEqual(self.interpreter.apply_pending(commands), 0)


class TestControlReader(unittest.TestCase):
    """Verify the reader forwards non-blank trimmed lines."""

    def test_reads_until_eof(self):
        reader = ControlReader(io.StringIO("p=4\n\n  r=2 \n"))
        reader.start()
        reader.join(timeout=2)
        lines = []
        while not reader.commands.empty():
            lines.append(reader.commands.get_nowait())
        self.assertEqual(lines, ["p=4", "r=2"])


if __name__ == "__main__":
    unittest.main()
