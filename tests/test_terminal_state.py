import unittest

from genterm.terminal_state import (
    CommandHistory,
    LineKind,
    TerminalMode,
    TerminalState,
)


class TestCommandHistory(unittest.TestCase):
    def test_up_up_down_recall_sequence(self):
        history = CommandHistory()
        history.record("a")
        history.record("b")
        recalled = [history.recall_older(), history.recall_older(), history.recall_newer()]
        self.assertEqual(recalled, ["b", "a", "b"])

    def test_up_is_bounded_at_oldest(self):
        history = CommandHistory()
        history.record("only")
        self.assertEqual(history.recall_older(), "only")
        self.assertIsNone(history.recall_older())
        self.assertEqual(history.index, 0)

    def test_down_past_newest_returns_live_line(self):
        history = CommandHistory()
        history.record("a")
        history.recall_older()
        self.assertEqual(history.recall_newer(), "")
        self.assertEqual(history.index, CommandHistory.NOT_RECALLING)
        self.assertIsNone(history.recall_newer())

    def test_recall_on_empty_history_does_nothing(self):
        history = CommandHistory()
        self.assertIsNone(history.recall_older())
        self.assertIsNone(history.recall_newer())

    def test_recall_never_mutates_entries_and_record_resets_cursor(self):
        history = CommandHistory()
        history.record("a")
        history.record("b")
        history.recall_older()
        history.recall_older()
        self.assertEqual(history.entries, ("a", "b"))
        history.record("c")
        self.assertEqual(history.index, CommandHistory.NOT_RECALLING)
        self.assertEqual(history.recall_older(), "c")

    def test_duplicates_are_kept(self):
        history = CommandHistory()
        history.record("same")
        history.record("same")
        self.assertEqual(history.entries, ("same", "same"))


class TestTerminalState(unittest.TestCase):
    def test_starts_uninitialized_and_attaches_session(self):
        state = TerminalState()
        self.assertIs(state.mode, TerminalMode.UNINITIALIZED)
        state.attach_session("sess-1")
        self.assertIs(state.mode, TerminalMode.IDLE)
        self.assertEqual(state.session_id, "sess-1")

    def test_attach_rejects_empty_session_id(self):
        with self.assertRaises(ValueError):
            TerminalState().attach_session("")

    def test_processing_transitions_and_prompt_label(self):
        state = TerminalState()
        state.attach_session("s")
        self.assertEqual(state.prompt_label, "genterm> ")
        state.begin_processing()
        self.assertTrue(state.is_processing)
        self.assertEqual(state.prompt_label, "processing... ")
        state.finish_processing()
        self.assertIs(state.mode, TerminalMode.IDLE)

    def test_cannot_begin_processing_unless_idle(self):
        state = TerminalState()
        with self.assertRaises(RuntimeError):
            state.begin_processing()
        state.attach_session("s")
        state.begin_processing()
        with self.assertRaises(RuntimeError):
            state.begin_processing()

    def test_clear_keeps_history(self):
        state = TerminalState()
        state.append("hi", LineKind.USER)
        state.history.record("hi")
        state.clear()
        self.assertEqual(state.lines, [])
        self.assertEqual(state.history.entries, ("hi",))

    def test_listener_sees_lines_and_clears(self):
        events = []
        state = TerminalState(listener=lambda st, line: events.append(line))
        line = state.error("boom")
        state.clear()
        self.assertEqual(events, [line, None])
        self.assertIs(line.kind, LineKind.ERROR)


if __name__ == "__main__":
    unittest.main()
