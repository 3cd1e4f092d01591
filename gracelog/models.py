from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

LOCALE_KO = "ko"
LOCALE_EN = "en"
SUPPORTED_LOCALES = (LOCALE_KO, LOCALE_EN)
DEFAULT_LOCALE = LOCALE_KO

SUBSCRIPTION_FREE = "FREE"
SUBSCRIPTION_PREMIUM = "PREMIUM"
SUBSCRIPTION_STATUSES = (SUBSCRIPTION_FREE, SUBSCRIPTION_PREMIUM)

TEMPLATE_FREE = "FREE"
TEMPLATE_SOAP = "SOAP"
TEMPLATE_ACTS = "ACTS"
TEMPLATE_TYPES = (TEMPLATE_FREE, TEMPLATE_SOAP, TEMPLATE_ACTS)


def _tags(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"tags must be a list, got {type(value).__name__}")
    return tuple(str(tag) for tag in value)


@dataclass(frozen=True)
class UserProfile:
    user_id: str = "guest"
    locale: str = DEFAULT_LOCALE
    subscription_status: str = SUBSCRIPTION_FREE

    @property
    def is_premium(self) -> bool:
        return self.subscription_status == SUBSCRIPTION_PREMIUM

    def to_record(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> UserProfile:
        locale = str(data.get("locale", DEFAULT_LOCALE))
        status = str(data.get("subscription_status", SUBSCRIPTION_FREE))
        return cls(
            user_id=str(data.get("user_id", "guest")),
            locale=locale if locale in SUPPORTED_LOCALES else DEFAULT_LOCALE,
            subscription_status=status if status in SUBSCRIPTION_STATUSES else SUBSCRIPTION_FREE,
        )


@dataclass(frozen=True)
class Entry:
    id: str
    day: str
    book: str
    chapter: int
    reflection_text: str
    verse_range: str = ""
    template_type: str = TEMPLATE_FREE
    application_text: str = ""
    prayer_text: str = ""
    tags: tuple[str, ...] = ()
    is_favorite: bool = False
    created_at: int = 0
    updated_at: int = 0

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        record["tags"] = list(self.tags)
        return record

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> Entry:
        return cls(
            id=str(data["id"]),
            day=str(data["day"]),
            book=str(data["book"]),
            chapter=int(data["chapter"]),
            reflection_text=str(data["reflection_text"]),
            verse_range=str(data.get("verse_range") or ""),
            template_type=str(data.get("template_type") or TEMPLATE_FREE),
            application_text=str(data.get("application_text") or ""),
            prayer_text=str(data.get("prayer_text") or ""),
            tags=_tags(data.get("tags")),
            is_favorite=bool(data.get("is_favorite", False)),
            created_at=int(data.get("created_at") or 0),
            updated_at=int(data.get("updated_at") or 0),
        )


@dataclass(frozen=True)
class Draft:
    book: str
    chapter: int
    verse_range: str = ""
    reflection_text: str = ""
    application_text: str = ""
    prayer_text: str = ""
    tags: tuple[str, ...] = ()
    # id of the entry these edits belong to; None for a new entry
    editing_id: str | None = None

    def to_record(self) -> dict[str, Any]:
        record = asdict(self)
        record["tags"] = list(self.tags)
        return record

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> Draft:
        return cls(
            book=str(data["book"]),
            chapter=int(data["chapter"]),
            verse_range=str(data.get("verse_range") or ""),
            reflection_text=str(data.get("reflection_text") or ""),
            application_text=str(data.get("application_text") or ""),
            prayer_text=str(data.get("prayer_text") or ""),
            tags=_tags(data.get("tags")),
            editing_id=str(data["editing_id"]) if data.get("editing_id") else None,
        )


@dataclass(frozen=True)
class LastReference:
    book: str
    chapter: int

    def to_record(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> LastReference:
        return cls(book=str(data["book"]), chapter=int(data["chapter"]))


@dataclass(frozen=True)
class CalendarDay:
    number: int
    current: bool
    day: str
    has_entry: bool = False


@dataclass(frozen=True)
class Report:
    streak: int
    total: int
    recent_tags: list[str]


@dataclass(frozen=True)
class MonthView:
    label: str
    cells: list[CalendarDay]
    selected_day: str
    entries: list[Entry]
