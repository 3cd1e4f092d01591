from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
import time
import uuid
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Callable, Iterable

from . import __version__
from . import session as editor
from .ai import (
    DEFAULT_OLLAMA_ENDPOINT,
    DEFAULT_TIMEOUT_SECONDS,
    AssistGateway,
    AssistRequest,
    AssistResponse,
    build_assistant,
    check_assist_allowed,
)
from .calendar_grid import build_month_grid, month_label
from .catalog import format_reference, translate_book
from .database import GraceLogDatabase
from .errors import AssistBusyError, AssistError, GraceLogError, PremiumRequiredError
from .models import (
    SUBSCRIPTION_FREE,
    SUBSCRIPTION_PREMIUM,
    SUBSCRIPTION_STATUSES,
    SUPPORTED_LOCALES,
    Entry,
    MonthView,
    Report,
)
from .paths import data_directory, database_path, ensure_directories
from .repository import EntryRepository

log = logging.getLogger(__name__)

AI_PROVIDER_SETTING_KEY = "ai_provider"
AI_MODEL_SETTING_KEY = "ai_model"
AI_API_KEY_SETTING_KEY = "ai_api_key"
AI_ENDPOINT_SETTING_KEY = "ai_endpoint"
AI_TIMEOUT_SETTING_KEY = "ai_timeout_seconds"
SETTING_KEYS = (
    AI_PROVIDER_SETTING_KEY,
    AI_MODEL_SETTING_KEY,
    AI_API_KEY_SETTING_KEY,
    AI_ENDPOINT_SETTING_KEY,
    AI_TIMEOUT_SETTING_KEY,
)
RECENT_TAG_LIMIT = 10
WEEKDAY_HEADERS = {
    "ko": ("일", "월", "화", "수", "목", "금", "토"),
    "en": ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"),
}


def _new_entry_id() -> str:
    return uuid.uuid4().hex[:12]


def _now_millis() -> int:
    return int(time.time() * 1000)


class GraceLogApp:
    """Owns the store, the entries and the editor for one running session.

    Every action applies its persistence effects before returning, so the
    database always mirrors the in-memory state.
    """

    def __init__(
        self,
        db: GraceLogDatabase,
        assistant_factory: Callable[[], AssistGateway] | None = None,
        today: Callable[[], date] | None = None,
        clock: Callable[[], int] | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.db = db
        self._assistant_factory = assistant_factory or self._assistant_from_settings
        self._today = today or date.today
        self._clock = clock or _now_millis
        self._new_id = id_factory or _new_entry_id
        self._assist_lock = threading.Lock()
        self.ai_pending = False
        self.suggestions: AssistResponse | None = None

        self.user = db.load_user()
        self.repository = EntryRepository(db.load_entries())
        self.state = editor.initialize(
            self.repository,
            db.load_draft(),
            db.load_last_reference(),
            self.user.locale,
            self._today(),
        )
        log.info(
            "Loaded %d entries; editor is %s %s.",
            len(self.repository),
            self.state.mode,
            format_reference(self.state.book, self.state.chapter),
        )

    @property
    def locale(self) -> str:
        return self.user.locale

    def _apply(self, effects: Iterable[editor.Effect]) -> None:
        for effect in effects:
            if isinstance(effect, editor.PersistDraft):
                self.db.save_draft(effect.draft)
            elif isinstance(effect, editor.PersistLastReference):
                self.db.save_last_reference(effect.reference)
            elif isinstance(effect, editor.ClearDraft):
                self.db.clear_draft()
            elif isinstance(effect, editor.PersistEntries):
                self.db.save_entries(self.repository.entries)

    def edit(self, **changes) -> editor.EditorState:
        self.state, effects = editor.update_fields(self.state, self.locale, **changes)
        self._apply(effects)
        return self.state

    def add_tag(self, raw: str) -> editor.EditorState:
        self.state, effects = editor.add_tag(self.state, raw)
        self._apply(effects)
        return self.state

    def remove_tag(self, tag: str) -> editor.EditorState:
        self.state, effects = editor.remove_tag(self.state, tag)
        self._apply(effects)
        return self.state

    def save(self) -> Entry:
        self.state, entry, effects = editor.save(
            self.state,
            self.repository,
            today=self._today(),
            now=self._clock(),
            new_id=self._new_id,
            locale=self.locale,
        )
        self._apply(effects)
        log.info("Saved entry %s for %s.", entry.id, entry.day)
        return entry

    def open_entry(self, entry_id: str) -> editor.EditorState:
        entry = self.repository.get(entry_id)
        if entry is None:
            log.warning("No entry with id %s; editor left unchanged.", entry_id)
            return self.state
        self.state, effects = editor.open_entry(entry, self.locale)
        self._apply(effects)
        return self.state

    def set_locale(self, locale: str) -> None:
        if locale not in SUPPORTED_LOCALES:
            raise ValueError(f"Unsupported locale: {locale}")
        if locale == self.user.locale:
            return
        self.user = replace(self.user, locale=locale)
        self.db.save_user(self.user)
        self.state, effects = editor.change_locale(self.state, locale)
        self._apply(effects)

    def set_subscription(self, status: str) -> None:
        if status not in SUBSCRIPTION_STATUSES:
            raise ValueError(f"Unsupported subscription status: {status}")
        self.user = replace(self.user, subscription_status=status)
        self.db.save_user(self.user)

    def toggle_subscription(self) -> str:
        status = SUBSCRIPTION_FREE if self.user.is_premium else SUBSCRIPTION_PREMIUM
        self.set_subscription(status)
        return status

    def streak(self) -> int:
        return self.repository.streak(self._today())

    def report(self) -> Report:
        if not self.user.is_premium:
            raise PremiumRequiredError("report_premium_required", self.locale)
        return Report(
            streak=self.streak(),
            total=len(self.repository),
            recent_tags=self.repository.tag_frequency_top(RECENT_TAG_LIMIT),
        )

    def month_view(
        self,
        year: int | None = None,
        month: int | None = None,
        selected_day: str | None = None,
    ) -> MonthView:
        today = self._today()
        year = year or today.year
        month = month or today.month
        selected = selected_day or today.isoformat()
        return MonthView(
            label=month_label(year, month),
            cells=build_month_grid(year, month, self.repository.days_with_entries()),
            selected_day=selected,
            entries=self.repository.filter_by_date(selected),
        )

    def display_book(self, entry: Entry) -> str:
        return translate_book(entry.book, self.locale)

    def request_ai_help(self) -> AssistResponse:
        check_assist_allowed(self.user, self.state.reflection_text)
        if not self._assist_lock.acquire(blocking=False):
            raise AssistBusyError(self.locale)
        self.ai_pending = True
        try:
            request = AssistRequest(
                book=self.state.book,
                chapter=self.state.chapter,
                reflection_text=self.state.reflection_text,
                tags=self.state.tags,
                locale=self.locale,
            )
            try:
                assistant = self._assistant_factory()
            except ValueError as exc:
                raise AssistError(str(exc)) from exc
            result = assistant.generate(request)
        finally:
            self.ai_pending = False
            self._assist_lock.release()
        self.suggestions = result
        log.info("AI commentary received for %s %s.", request.book, request.chapter)
        return result

    def _ai_settings(self) -> tuple[str, str, str, str, float]:
        provider = self.db.get_setting(AI_PROVIDER_SETTING_KEY, "gemini") or "gemini"
        model = self.db.get_setting(AI_MODEL_SETTING_KEY, "") or ""
        api_key = self.db.get_setting(AI_API_KEY_SETTING_KEY, "") or os.environ.get("GEMINI_API_KEY", "")
        endpoint = self.db.get_setting(AI_ENDPOINT_SETTING_KEY, DEFAULT_OLLAMA_ENDPOINT) or ""
        timeout = self.db.get_setting_float(AI_TIMEOUT_SETTING_KEY, DEFAULT_TIMEOUT_SECONDS)
        return provider, model, api_key, endpoint, timeout

    def _assistant_from_settings(self) -> AssistGateway:
        provider, model, api_key, endpoint, timeout = self._ai_settings()
        return build_assistant(provider, api_key=api_key, model=model, endpoint=endpoint, timeout=timeout)


def _print_editor(app: GraceLogApp) -> None:
    state = app.state
    print(f"mode: {state.mode}" + (f" ({state.editing_id})" if state.editing_id else ""))
    print(f"reference: {format_reference(state.book, state.chapter, state.verse_range)}")
    print(f"reflection: {state.reflection_text}")
    print(f"application: {state.application_text}")
    print(f"prayer: {state.prayer_text}")
    print(f"tags: {' '.join('#' + tag for tag in state.tags)}")


def _print_entries(app: GraceLogApp, entries: list[Entry]) -> None:
    for entry in entries:
        reference = format_reference(app.display_book(entry), entry.chapter, entry.verse_range)
        preview = entry.reflection_text.splitlines()[0][:60] if entry.reflection_text else ""
        print(f"{entry.id}  {entry.day}  {reference}  {preview}")


def _print_month(app: GraceLogApp, view: MonthView) -> None:
    print(view.label)
    print(" ".join(f"{name:>3}" for name in WEEKDAY_HEADERS.get(app.locale, WEEKDAY_HEADERS["en"])))
    row: list[str] = []
    for cell in view.cells:
        if not cell.current:
            row.append("   ")
        else:
            marker = "*" if cell.has_entry else " "
            row.append(f"{cell.number:>2}{marker}")
        if len(row) == 7:
            print(" ".join(row))
            row = []
    if row:
        print(" ".join(row))
    print(f"{view.selected_day} ({len(view.entries)})")
    _print_entries(app, view.entries)


def _parse_month(value: str) -> tuple[int, int]:
    try:
        year_text, month_text = value.split("-", 1)
        year, month = int(year_text), int(month_text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Use YYYY-MM format.") from exc
    if not 1 <= month <= 12:
        raise argparse.ArgumentTypeError("Month must be between 01 and 12.")
    return year, month


def _parse_day(value: str) -> str:
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Use YYYY-MM-DD format.") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gracelog", description="Scripture journal")
    parser.add_argument("--version", action="store_true", help="Print app version and exit")
    parser.add_argument("--data-dir", type=Path, help="Directory holding gracelog.sqlite3")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress to stderr")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show the editor and today's streak")

    write = sub.add_parser("write", help="Edit the current draft or entry")
    write.add_argument("--book")
    write.add_argument("--chapter")
    write.add_argument("--verse", dest="verse_range")
    write.add_argument("--reflection", dest="reflection_text")
    write.add_argument("--application", dest="application_text")
    write.add_argument("--prayer", dest="prayer_text")
    write.add_argument("--tag", action="append", default=[], help="Add a tag (repeatable)")
    write.add_argument("--untag", action="append", default=[], help="Remove a tag (repeatable)")
    write.add_argument("--save", action="store_true", help="Save after editing")

    tag = sub.add_parser("tag", help="Add or remove tags on the editor")
    tag.add_argument("tags", nargs="+", metavar="TAG")
    tag.add_argument("-r", "--remove", action="store_true", help="Remove the tags instead of adding them")

    sub.add_parser("save", help="Save the editor as today's entry")

    show = sub.add_parser("show", help="List entries for a day")
    show.add_argument("day", type=_parse_day)

    open_cmd = sub.add_parser("open", help="Bind the editor to a stored entry for editing")
    open_cmd.add_argument("entry_id")

    cal = sub.add_parser("calendar", help="Print a month grid")
    cal.add_argument("month", nargs="?", type=_parse_month)
    cal.add_argument("--day", type=_parse_day, help="Day whose entries are listed")

    sub.add_parser("report", help="Streak, totals and recent tags (Premium)")

    locale = sub.add_parser("locale", help="Switch language")
    locale.add_argument("locale", choices=SUPPORTED_LOCALES)

    subscription = sub.add_parser("subscription", help="Switch subscription")
    subscription.add_argument("status", choices=("free", "premium"))

    sub.add_parser("assist", help="Ask the AI for commentary (Premium)")

    config = sub.add_parser("config", help="Read or write a setting")
    config.add_argument("key", choices=SETTING_KEYS)
    config.add_argument("value", nargs="?")
    return parser


def _run_command(app: GraceLogApp, args: argparse.Namespace) -> int:
    command = args.command or "status"
    if command == "status":
        _print_editor(app)
        print(f"entries: {len(app.repository)}  streak: {app.streak()}")
        if app.db.degraded:
            print("warning: storage unavailable, changes are kept in memory only")
        return 0

    if command == "write":
        changes = {
            name: getattr(args, name)
            for name in editor.EDITABLE_FIELDS
            if name != "tags" and getattr(args, name, None) is not None
        }
        if changes:
            app.edit(**changes)
        for tag in args.tag:
            app.add_tag(tag)
        for tag in args.untag:
            app.remove_tag(tag)
        if args.save:
            entry = app.save()
            print(f"saved {entry.id}")
        _print_editor(app)
        return 0

    if command == "tag":
        for name in args.tags:
            if args.remove:
                app.remove_tag(name)
            else:
                app.add_tag(name)
        _print_editor(app)
        return 0

    if command == "save":
        entry = app.save()
        print(f"saved {entry.id}")
        return 0

    if command == "show":
        entries = app.repository.filter_by_date(args.day)
        if not entries:
            print("no records")
        _print_entries(app, entries)
        return 0

    if command == "open":
        if app.repository.get(args.entry_id) is None:
            print(f"no entry {args.entry_id}", file=sys.stderr)
            return 1
        app.open_entry(args.entry_id)
        _print_editor(app)
        return 0

    if command == "calendar":
        year, month = args.month or (None, None)
        _print_month(app, app.month_view(year, month, args.day))
        return 0

    if command == "report":
        report = app.report()
        print(f"streak: {report.streak}")
        print(f"total: {report.total}")
        print(f"recent tags: {' '.join('#' + tag for tag in report.recent_tags)}")
        return 0

    if command == "locale":
        app.set_locale(args.locale)
        print(f"locale: {app.locale}")
        return 0

    if command == "subscription":
        app.set_subscription(args.status.upper())
        print(f"subscription: {app.user.subscription_status}")
        return 0

    if command == "assist":
        result = app.request_ai_help()
        print(result.sharing_summary.summary)
        for question in result.sharing_summary.questions:
            print(f"- {question}")
        if result.sharing_summary.prayer_point:
            print(result.sharing_summary.prayer_point)
        return 0

    if command == "config":
        if args.value is None:
            print(app.db.get_setting(args.key, "") or "")
        else:
            app.db.set_setting(args.key, args.value)
        return 0

    raise ValueError(f"Unknown command: {command}")


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(__version__)
        return 0

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    base = args.data_dir or data_directory()
    try:
        ensure_directories(base)
    except OSError as exc:
        log.error("Cannot create data directory %s: %s", base, exc)
    app = GraceLogApp(GraceLogDatabase(database_path(base)))
    try:
        return _run_command(app, args)
    except GraceLogError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
