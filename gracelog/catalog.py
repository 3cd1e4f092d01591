"""Static Bible book table shared by every locale.

Names are aligned by position: the Korean name at index *i* and the English
name at index *i* refer to the same book, which is how translation works.
"""

from __future__ import annotations

from .models import DEFAULT_LOCALE, LOCALE_EN, LOCALE_KO

_BOOKS: tuple[tuple[str, str, int], ...] = (
    ("창세기", "Genesis", 50),
    ("출애굽기", "Exodus", 40),
    ("레위기", "Leviticus", 27),
    ("민수기", "Numbers", 36),
    ("신명기", "Deuteronomy", 34),
    ("여호수아", "Joshua", 24),
    ("사사기", "Judges", 21),
    ("룻기", "Ruth", 4),
    ("사무엘상", "1 Samuel", 31),
    ("사무엘하", "2 Samuel", 24),
    ("열왕기상", "1 Kings", 22),
    ("열왕기하", "2 Kings", 25),
    ("역대상", "1 Chronicles", 29),
    ("역대하", "2 Chronicles", 36),
    ("에스라", "Ezra", 10),
    ("느헤미야", "Nehemiah", 13),
    ("에스더", "Esther", 10),
    ("욥기", "Job", 42),
    ("시편", "Psalms", 150),
    ("잠언", "Proverbs", 31),
    ("전도서", "Ecclesiastes", 12),
    ("아가", "Song of Solomon", 8),
    ("이사야", "Isaiah", 66),
    ("예레미야", "Jeremiah", 52),
    ("예레미야애가", "Lamentations", 5),
    ("에스겔", "Ezekiel", 48),
    ("다니엘", "Daniel", 12),
    ("호세아", "Hosea", 14),
    ("요엘", "Joel", 3),
    ("아모스", "Amos", 9),
    ("오바댜", "Obadiah", 1),
    ("요나", "Jonah", 4),
    ("미가", "Micah", 7),
    ("나훔", "Nahum", 3),
    ("하박국", "Habakkuk", 3),
    ("스바냐", "Zephaniah", 3),
    ("학개", "Haggai", 2),
    ("스가랴", "Zechariah", 14),
    ("말라기", "Malachi", 4),
    ("마태복음", "Matthew", 28),
    ("마가복음", "Mark", 16),
    ("누가복음", "Luke", 24),
    ("요한복음", "John", 21),
    ("사도행전", "Acts", 28),
    ("로마서", "Romans", 16),
    ("고린도전서", "1 Corinthians", 16),
    ("고린도후서", "2 Corinthians", 13),
    ("갈라디아서", "Galatians", 6),
    ("에베소서", "Ephesians", 6),
    ("빌립보서", "Philippians", 4),
    ("골로새서", "Colossians", 4),
    ("데살로니가전서", "1 Thessalonians", 5),
    ("데살로니가후서", "2 Thessalonians", 3),
    ("디모데전서", "1 Timothy", 6),
    ("디모데후서", "2 Timothy", 4),
    ("디도서", "Titus", 3),
    ("빌레몬서", "Philemon", 1),
    ("히브리서", "Hebrews", 13),
    ("야고보서", "James", 5),
    ("베드로전서", "1 Peter", 5),
    ("베드로후서", "2 Peter", 3),
    ("요한일서", "1 John", 5),
    ("요한이서", "2 John", 1),
    ("요한삼서", "3 John", 1),
    ("유다서", "Jude", 1),
    ("요한계시록", "Revelation", 22),
)

# Search order for names of unknown origin.
LOCALE_SEARCH_ORDER = (LOCALE_KO, LOCALE_EN)

BOOK_NAMES: dict[str, tuple[str, ...]] = {
    LOCALE_KO: tuple(row[0] for row in _BOOKS),
    LOCALE_EN: tuple(row[1] for row in _BOOKS),
}
CHAPTER_COUNTS: tuple[int, ...] = tuple(row[2] for row in _BOOKS)


def _index_of(name: str, locales: tuple[str, ...] = LOCALE_SEARCH_ORDER) -> int | None:
    for locale in locales:
        names = BOOK_NAMES.get(locale, ())
        if name in names:
            return names.index(name)
    return None


def translate_book(name: str, to_locale: str) -> str:
    index = _index_of(name)
    target = BOOK_NAMES.get(to_locale)
    if index is None or target is None:
        return name
    return target[index]


def chapter_count(book: str, locale: str = DEFAULT_LOCALE) -> int:
    preferred = (locale,) + tuple(code for code in LOCALE_SEARCH_ORDER if code != locale)
    index = _index_of(book, preferred)
    if index is None:
        return 1
    return CHAPTER_COUNTS[index]


def books_for_locale(locale: str) -> list[tuple[str, int]]:
    names = BOOK_NAMES.get(locale) or BOOK_NAMES[DEFAULT_LOCALE]
    return list(zip(names, CHAPTER_COUNTS))


def default_book(locale: str) -> str:
    return books_for_locale(locale)[0][0]


def format_reference(book: str, chapter: int, verse_range: str = "") -> str:
    verses = verse_range.strip()
    if verses:
        return f"{book} {chapter}:{verses}"
    return f"{book} {chapter}"
