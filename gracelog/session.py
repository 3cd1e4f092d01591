"""Editor session state machine.

The editor is either *creating* a new entry or *editing* an existing one
(bound to its id). Transitions are pure: each returns the next
``EditorState`` together with the persistence effects the caller has to
apply, in order, before handling the next user action.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Any, Callable, Union

from .catalog import chapter_count, default_book, translate_book
from .errors import ValidationError
from .models import TEMPLATE_FREE, Draft, Entry, LastReference
from .repository import EntryRepository

CREATING = "creating"
EDITING = "editing"

EDITABLE_FIELDS = (
    "book",
    "chapter",
    "verse_range",
    "reflection_text",
    "application_text",
    "prayer_text",
    "tags",
)


@dataclass(frozen=True)
class EditorState:
    book: str
    chapter: int = 1
    verse_range: str = ""
    reflection_text: str = ""
    application_text: str = ""
    prayer_text: str = ""
    tags: tuple[str, ...] = ()
    editing_id: str | None = None

    @property
    def mode(self) -> str:
        return EDITING if self.editing_id else CREATING

    def draft(self) -> Draft:
        return Draft(
            book=self.book,
            chapter=self.chapter,
            verse_range=self.verse_range,
            reflection_text=self.reflection_text,
            application_text=self.application_text,
            prayer_text=self.prayer_text,
            tags=self.tags,
            editing_id=self.editing_id,
        )

    def last_reference(self) -> LastReference:
        return LastReference(book=self.book, chapter=self.chapter)


@dataclass(frozen=True)
class PersistDraft:
    draft: Draft


@dataclass(frozen=True)
class PersistLastReference:
    reference: LastReference


@dataclass(frozen=True)
class ClearDraft:
    pass


@dataclass(frozen=True)
class PersistEntries:
    pass


Effect = Union[PersistDraft, PersistLastReference, ClearDraft, PersistEntries]


def _coerce_chapter(value: Any) -> int:
    try:
        chapter = int(value)
    except (TypeError, ValueError):
        return 1
    return chapter if chapter >= 1 else 1


def _bounded_chapter(book: str, chapter: int, locale: str) -> int:
    if chapter > chapter_count(book, locale):
        return 1
    return chapter


def _edit_effects(state: EditorState) -> tuple[Effect, ...]:
    return (PersistDraft(state.draft()), PersistLastReference(state.last_reference()))


def _from_draft(draft: Draft, editing_id: str | None) -> EditorState:
    return EditorState(
        book=draft.book,
        chapter=draft.chapter,
        verse_range=draft.verse_range,
        reflection_text=draft.reflection_text,
        application_text=draft.application_text,
        prayer_text=draft.prayer_text,
        tags=tuple(draft.tags),
        editing_id=editing_id,
    )


def initialize(
    repository: EntryRepository,
    draft: Draft | None,
    last_reference: LastReference | None,
    locale: str,
    today: date,
) -> EditorState:
    """Pick the starting editor content.

    Unsaved edits to a stored entry win, then today's entry, then a draft for
    a new entry (verbatim), then the last used reference, then the first book
    of the locale.
    """
    if draft is not None and draft.editing_id:
        if repository.get(draft.editing_id) is not None:
            return _from_draft(draft, draft.editing_id)
        draft = replace(draft, editing_id=None)

    todays_entry = repository.find_by_date(today.isoformat())
    if todays_entry is not None:
        return load_entry(todays_entry, locale)

    if draft is not None:
        return _from_draft(draft, None)

    if last_reference is not None:
        book = translate_book(last_reference.book, locale)
        chapter = _bounded_chapter(book, _coerce_chapter(last_reference.chapter), locale)
        return EditorState(book=book, chapter=chapter)

    return EditorState(book=default_book(locale), chapter=1)


def load_entry(entry: Entry, locale: str) -> EditorState:
    return EditorState(
        book=translate_book(entry.book, locale),
        chapter=entry.chapter,
        verse_range=entry.verse_range,
        reflection_text=entry.reflection_text,
        application_text=entry.application_text,
        prayer_text=entry.prayer_text,
        tags=tuple(entry.tags),
        editing_id=entry.id,
    )


def open_entry(entry: Entry, locale: str) -> tuple[EditorState, tuple[Effect, ...]]:
    """Bind the editor to ``entry`` and persist the binding with the draft."""
    state = load_entry(entry, locale)
    return state, _edit_effects(state)


def update_fields(
    state: EditorState,
    locale: str,
    **changes: Any,
) -> tuple[EditorState, tuple[Effect, ...]]:
    unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
    if unknown:
        raise TypeError(f"Unknown editor fields: {', '.join(unknown)}")

    values = dict(changes)
    if "chapter" in values:
        values["chapter"] = _coerce_chapter(values["chapter"])
    if "tags" in values:
        values["tags"] = tuple(str(tag) for tag in values["tags"])
    for name in ("book", "verse_range", "reflection_text", "application_text", "prayer_text"):
        if name in values:
            values[name] = str(values[name])

    updated = replace(state, **values)
    if "book" in values or "chapter" in values:
        updated = replace(updated, chapter=_bounded_chapter(updated.book, updated.chapter, locale))

    if updated == state:
        return state, ()
    return updated, _edit_effects(updated)


def change_locale(state: EditorState, locale: str) -> tuple[EditorState, tuple[Effect, ...]]:
    return update_fields(state, locale, book=translate_book(state.book, locale))


def add_tag(state: EditorState, raw: str) -> tuple[EditorState, tuple[Effect, ...]]:
    tag = raw.strip()
    if not tag or tag in state.tags:
        return state, ()
    updated = replace(state, tags=state.tags + (tag,))
    return updated, _edit_effects(updated)


def remove_tag(state: EditorState, tag: str) -> tuple[EditorState, tuple[Effect, ...]]:
    if tag not in state.tags:
        return state, ()
    updated = replace(state, tags=tuple(existing for existing in state.tags if existing != tag))
    return updated, _edit_effects(updated)


def save(
    state: EditorState,
    repository: EntryRepository,
    today: date,
    now: int,
    new_id: Callable[[], str],
    locale: str = "en",
) -> tuple[EditorState, Entry, tuple[Effect, ...]]:
    """Commit the editor into the repository.

    Raises ``ValidationError`` without touching anything when the reflection
    is blank. The draft is cleared; the last reference is kept and seeds the
    next session.
    """
    if not state.reflection_text.strip():
        raise ValidationError("reflection_required", locale)

    previous = repository.get(state.editing_id) if state.editing_id else None
    entry_id = state.editing_id or new_id()
    if previous is not None:
        created_at = previous.created_at
        updated_at = max(now, previous.updated_at + 1)
    else:
        created_at = now
        updated_at = now

    entry = Entry(
        id=entry_id,
        day=today.isoformat(),
        book=state.book,
        chapter=state.chapter,
        verse_range=state.verse_range,
        template_type=previous.template_type if previous else TEMPLATE_FREE,
        reflection_text=state.reflection_text,
        application_text=state.application_text,
        prayer_text=state.prayer_text,
        tags=tuple(state.tags),
        is_favorite=previous.is_favorite if previous else False,
        created_at=created_at,
        updated_at=updated_at,
    )
    stored = repository.upsert(entry)
    return replace(state, editing_id=stored.id), stored, (PersistEntries(), ClearDraft())
