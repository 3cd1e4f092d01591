from __future__ import annotations

import contextlib
import io
import tempfile
import threading
import unittest
from dataclasses import replace
from datetime import date
from pathlib import Path

from gracelog.ai import AssistResponse, SharingSummary
from gracelog.app import GraceLogApp, main
from gracelog.database import GraceLogDatabase
from gracelog.errors import AssistBusyError, AssistError, PremiumRequiredError, ValidationError
from gracelog.models import Draft, LastReference, UserProfile

RESPONSE = AssistResponse(
    observations=["Context"],
    applications=["Live it"],
    prayers=["Amen"],
    sharing_summary=SharingSummary(summary="Essay", questions=["Why?"], prayer_point="Trust"),
)


class _Clock:
    def __init__(self, start: int = 1_000):
        self.value = start

    def __call__(self) -> int:
        return self.value


class _FakeAssistant:
    def __init__(self, response=RESPONSE, error: Exception | None = None):
        self.response = response
        self.error = error
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.response


class AppTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_file = Path(self._tmp.name) / "gracelog.sqlite3"
        self.today = date(2024, 1, 3)
        self.clock = _Clock()
        self.assistant = _FakeAssistant()
        self._counter = 0

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _next_id(self) -> str:
        self._counter += 1
        return f"entry-{self._counter}"

    def _app(self) -> GraceLogApp:
        return GraceLogApp(
            GraceLogDatabase(self.db_file),
            assistant_factory=lambda: self.assistant,
            today=lambda: self.today,
            clock=self.clock,
            id_factory=self._next_id,
        )

    def test_fresh_start_uses_locale_default(self) -> None:
        app = self._app()
        self.assertEqual(app.state.book, "창세기")
        self.assertEqual(app.state.chapter, 1)
        self.assertEqual(app.state.mode, "creating")

    def test_edits_are_written_through(self) -> None:
        app = self._app()
        app.edit(book="룻기", chapter=2, reflection_text="Where you go")
        app.add_tag("loyalty")
        db = GraceLogDatabase(self.db_file)
        self.assertEqual(db.load_draft().reflection_text, "Where you go")
        self.assertEqual(db.load_draft().tags, ("loyalty",))
        self.assertEqual(db.load_last_reference(), LastReference("룻기", 2))

    def test_draft_round_trip_across_sessions(self) -> None:
        app = self._app()
        app.edit(book="시편", chapter=23, verse_range="1-6", reflection_text="Shepherd")
        app.edit(application_text="Rest today", prayer_text="Lead me")
        app.add_tag("rest")
        before = app.state

        reopened = self._app()
        self.assertEqual(reopened.state, before)

    def test_save_clears_draft_and_keeps_last_reference(self) -> None:
        app = self._app()
        app.edit(book="요한복음", chapter=3, reflection_text="Love")
        entry = app.save()

        db = GraceLogDatabase(self.db_file)
        self.assertIsNone(db.load_draft())
        self.assertEqual(db.load_last_reference(), LastReference("요한복음", 3))
        self.assertEqual([stored.id for stored in db.load_entries()], [entry.id])

    def test_failed_save_keeps_draft(self) -> None:
        app = self._app()
        app.edit(reflection_text="  ")
        with self.assertRaises(ValidationError):
            app.save()
        self.assertEqual(len(app.repository), 0)
        self.assertIsNotNone(GraceLogDatabase(self.db_file).load_draft())

    def test_resave_updates_same_entry(self) -> None:
        app = self._app()
        app.edit(reflection_text="First")
        first = app.save()
        app.edit(reflection_text="Second")
        second = app.save()
        self.assertEqual(len(app.repository), 1)
        self.assertEqual(second.id, first.id)
        self.assertGreater(second.updated_at, first.updated_at)

    def test_todays_entry_reopens_in_editing_mode(self) -> None:
        app = self._app()
        app.edit(book="요한복음", chapter=3, reflection_text="Love")
        entry = app.save()
        app.set_locale("en")

        reopened = self._app()
        self.assertEqual(reopened.state.mode, "editing")
        self.assertEqual(reopened.state.editing_id, entry.id)
        self.assertEqual(reopened.state.book, "John")

    def test_next_day_starts_from_last_reference(self) -> None:
        app = self._app()
        app.edit(book="마가복음", chapter=5, reflection_text="Healing")
        app.save()

        self.today = date(2024, 1, 4)
        reopened = self._app()
        self.assertEqual(reopened.state.mode, "creating")
        self.assertEqual((reopened.state.book, reopened.state.chapter), ("마가복음", 5))
        self.assertEqual(reopened.state.reflection_text, "")

    def test_open_entry_translates_book(self) -> None:
        app = self._app()
        app.edit(book="요한복음", chapter=3, reflection_text="Love")
        entry = app.save()
        app.set_locale("en")
        state = app.open_entry(entry.id)
        self.assertEqual(state.book, "John")
        self.assertIs(app.open_entry("missing"), state)

    def test_set_locale_translates_editor_and_persists_profile(self) -> None:
        app = self._app()
        app.edit(book="요한복음", chapter=3)
        app.set_locale("en")
        self.assertEqual(app.state.book, "John")
        db = GraceLogDatabase(self.db_file)
        self.assertEqual(db.load_user().locale, "en")
        self.assertEqual(db.load_last_reference(), LastReference("John", 3))
        with self.assertRaises(ValueError):
            app.set_locale("fr")

    def test_report_requires_premium(self) -> None:
        app = self._app()
        app.edit(reflection_text="Day one", tags=("grace",))
        app.save()
        with self.assertRaises(PremiumRequiredError):
            app.report()

        self.assertEqual(app.toggle_subscription(), "PREMIUM")
        report = app.report()
        self.assertEqual(report.streak, 1)
        self.assertEqual(report.total, 1)
        self.assertEqual(report.recent_tags, ["grace"])
        self.assertTrue(GraceLogDatabase(self.db_file).load_user().is_premium)

    def test_month_view_lists_selected_day(self) -> None:
        app = self._app()
        app.edit(reflection_text="Marked")
        entry = app.save()
        view = app.month_view()
        self.assertEqual(view.label, "2024. 01")
        self.assertEqual(view.selected_day, "2024-01-03")
        self.assertEqual(view.entries, [entry])
        marked = [cell.day for cell in view.cells if cell.has_entry]
        self.assertEqual(marked, ["2024-01-03"])

    def test_ai_help_requires_premium_and_length(self) -> None:
        app = self._app()
        app.edit(reflection_text="Long enough text")
        with self.assertRaises(PremiumRequiredError):
            app.request_ai_help()
        app.set_subscription("PREMIUM")
        app.edit(reflection_text="abc")
        with self.assertRaises(ValidationError):
            app.request_ai_help()
        self.assertEqual(self.assistant.requests, [])

    def test_ai_help_returns_suggestions(self) -> None:
        app = self._app()
        app.set_subscription("PREMIUM")
        app.edit(book="요한복음", chapter=3, reflection_text="God so loved", tags=("love",))
        result = app.request_ai_help()
        self.assertIs(result, RESPONSE)
        self.assertIs(app.suggestions, RESPONSE)
        self.assertFalse(app.ai_pending)
        request = self.assistant.requests[0]
        self.assertEqual((request.book, request.chapter, request.locale), ("요한복음", 3, "ko"))
        self.assertEqual(request.tags, ("love",))

    def test_ai_failure_leaves_editor_untouched(self) -> None:
        self.assistant = _FakeAssistant(error=AssistError("timeout"))
        app = self._app()
        app.set_subscription("PREMIUM")
        app.edit(reflection_text="God so loved")
        before = app.state
        with self.assertRaises(AssistError):
            app.request_ai_help()
        self.assertEqual(app.state, before)
        self.assertFalse(app.ai_pending)
        self.assertIsNone(app.suggestions)

    def test_second_ai_request_while_pending_is_refused(self) -> None:
        started = threading.Event()
        release = threading.Event()

        class _SlowAssistant:
            def generate(self, request):
                started.set()
                release.wait(5)
                return RESPONSE

        self.assistant = _SlowAssistant()
        app = self._app()
        app.set_subscription("PREMIUM")
        app.edit(reflection_text="God so loved")
        worker = threading.Thread(target=app.request_ai_help)
        worker.start()
        try:
            self.assertTrue(started.wait(5))
            self.assertTrue(app.ai_pending)
            with self.assertRaises(AssistBusyError):
                app.request_ai_help()
        finally:
            release.set()
            worker.join(5)
        self.assertFalse(app.ai_pending)
        self.assertIs(app.suggestions, RESPONSE)

    def test_missing_api_key_is_reported_as_assist_error(self) -> None:
        db = GraceLogDatabase(self.db_file)
        db.save_user(UserProfile(subscription_status="PREMIUM"))
        db.save_draft(Draft(book="요한복음", chapter=3, reflection_text="God so loved"))
        app = GraceLogApp(db, today=lambda: self.today)
        app._ai_settings = lambda: ("gemini", "", "", "", 60.0)
        with self.assertRaises(AssistError):
            app.request_ai_help()
        self.assertFalse(app.ai_pending)


class CliTests(unittest.TestCase):
    def _run(self, *argv: str) -> tuple[int, str, str]:
        out, err = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(out), contextlib.redirect_stderr(err):
            code = main(["--data-dir", self.data_dir, *argv])
        return code, out.getvalue(), err.getvalue()

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = self._tmp.name

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_write_and_save(self) -> None:
        code, out, _ = self._run(
            "write", "--book", "Ruth", "--chapter", "1", "--reflection", "Loyal love", "--tag", "ruth"
        )
        self.assertEqual(code, 0)
        self.assertIn("reference: Ruth 1", out)
        self.assertIn("#ruth", out)

        code, out, _ = self._run("save")
        self.assertEqual(code, 0)
        self.assertIn("saved", out)

        code, out, _ = self._run("status")
        self.assertIn("mode: editing", out)
        self.assertIn("entries: 1", out)

    def _stored(self):
        return GraceLogDatabase(Path(self.data_dir) / "gracelog.sqlite3").load_entries()

    def test_edits_to_saved_entry_survive_between_commands(self) -> None:
        self.assertEqual(self._run("write", "--reflection", "first", "--save")[0], 0)
        self.assertEqual(self._run("write", "--reflection", "second")[0], 0)

        code, out, _ = self._run("status")
        self.assertIn("mode: editing", out)
        self.assertIn("reflection: second", out)

        self.assertEqual(self._run("save")[0], 0)
        stored = self._stored()
        self.assertEqual([entry.reflection_text for entry in stored], ["second"])

    def test_open_binds_older_entry_across_commands(self) -> None:
        self._run("write", "--book", "Ruth", "--chapter", "2", "--reflection", "Gleaning", "--save")
        db = GraceLogDatabase(Path(self.data_dir) / "gracelog.sqlite3")
        entry = replace(db.load_entries()[0], day="2020-01-01")
        db.save_entries([entry])

        self.assertIn("mode: creating", self._run("status")[1])
        code, out, _ = self._run("open", entry.id)
        self.assertEqual(code, 0)
        self.assertIn(f"mode: editing ({entry.id})", out)

        self.assertIn(f"mode: editing ({entry.id})", self._run("status")[1])
        self._run("write", "--reflection", "Under his wings", "--save")
        stored = self._stored()
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0].id, entry.id)
        self.assertEqual(stored[0].reflection_text, "Under his wings")

    def test_open_unknown_entry_fails(self) -> None:
        code, _, err = self._run("open", "missing")
        self.assertEqual(code, 1)
        self.assertIn("missing", err)

    def test_tag_command_adds_and_removes(self) -> None:
        code, out, _ = self._run("tag", "hope", "grace")
        self.assertEqual(code, 0)
        self.assertIn("tags: #hope #grace", out)

        code, out, _ = self._run("tag", "--remove", "hope")
        self.assertEqual(code, 0)
        self.assertIn("tags: #grace", out)
        self.assertNotIn("#hope", out)

    def test_validation_errors_exit_with_one(self) -> None:
        code, _, err = self._run("save")
        self.assertEqual(code, 1)
        self.assertIn("묵상 내용을 입력해주세요.", err)

        code, _, err = self._run("report")
        self.assertEqual(code, 1)
        self.assertIn("프리미엄", err)

    def test_locale_subscription_and_config(self) -> None:
        self.assertEqual(self._run("locale", "en")[0], 0)
        code, out, _ = self._run("subscription", "premium")
        self.assertIn("PREMIUM", out)
        self.assertEqual(self._run("config", "ai_model", "gemini-1.5-pro")[0], 0)
        self.assertEqual(self._run("config", "ai_model")[1].strip(), "gemini-1.5-pro")

    def test_calendar_prints_month(self) -> None:
        code, out, _ = self._run("calendar", "2024-02", "--day", "2024-02-01")
        self.assertEqual(code, 0)
        self.assertIn("2024. 02", out)
        self.assertIn("2024-02-01 (0)", out)

    def test_version(self) -> None:
        code, out, _ = self._run("--version")
        self.assertEqual(code, 0)
        self.assertRegex(out.strip(), r"^\d+\.\d+\.\d+$")


if __name__ == "__main__":
    unittest.main()
