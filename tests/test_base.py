import pytest

from sources.base import (
    ContentLocation, Entry, Provider, SearchResult, chapter_sort_key,
    clean_chapter_title, extract_chapter_number, mark_latest
)
from kamilist_resolver.messages import describe_failure


def make_entry(number):
    return Entry(id=f"c{number}", number=number, title=f"Chapter {number}", content_ref=f"c{number}", provider=Provider.KATANA)


def test_chapter_numbers_sort_numerically():
    numbers = ["10", "2", "10.5", "1", "extra", "100"]

    assert sorted(numbers, key=chapter_sort_key) == ["1", "2", "10", "10.5", "100", "extra"]


@pytest.mark.parametrize("title,position,explicit,raw_id,expected", [
    ("Chapter 12: Start", 0, None, None, "12"),
    ("Vol.2 Ch.10.5", 0, None, None, "2"),
    ("Epilogue", 4, None, "slug/c88", "88"),
    ("Epilogue", 4, None, "slug/extra", "5"),
    (None, 0, 7, None, "7"),
    ("Chapter 3", 0, 3.0, None, "3"),
    ("Chapter 3", 0, "3.5", None, "3.5"),
    ("Chapter 8", 0, float("nan"), None, "8"),
    (None, 2, float("inf"), "slug/c14", "14"),
    (None, 2, float("nan"), None, "3"),
])
def test_extract_chapter_number(title, position, explicit, raw_id, expected):
    assert extract_chapter_number(title, position, explicit=explicit, raw_id=raw_id) == expected


@pytest.mark.parametrize("title,number,expected", [
    ("10", "10", "Chapter 10"),
    ("Chapter 10", "10", "Chapter 10"),
    ("chap 10 -", "10", "Chapter 10"),
    ("", "4", "Chapter 4"),
    (None, "4", "Chapter 4"),
    ("Chapter - The Beginning", "1", "The Beginning"),
    ("  : Finale :  ", "9", "Finale"),
])
def test_clean_chapter_title(title, number, expected):
    assert clean_chapter_title(title, number) == expected


def test_mark_latest_picks_highest_number():
    entries = mark_latest([make_entry("9"), make_entry("10"), make_entry("9.5")])

    assert [e.is_latest for e in entries] == [False, True, False]


def test_non_finite_numbers_sort_last():
    assert chapter_sort_key("nan") == float("inf")
    assert chapter_sort_key("inf") == float("inf")
    assert sorted(["nan", "2", "1"], key=chapter_sort_key) == ["1", "2", "nan"]


def test_mark_latest_first_wins_ties():
    entries = mark_latest([make_entry("3"), make_entry("3.0")])

    assert [e.is_latest for e in entries] == [True, False]


def test_to_dict_uses_canonical_camel_case():
    result = SearchResult(id="x", title="X", provider=Provider.MANGADEX, cover_image="c.jpg", chapter_count=3)
    entry = make_entry("1")
    location = ContentLocation(url="https://img.test/1.jpg", headers={"Referer": "r"}, index=0)

    assert set(result.to_dict()) == {
        "id", "title", "provider", "coverImage", "status", "genres", "summary", "chapterCount", "lastUpdated"
    }
    assert set(entry.to_dict()) == {
        "id", "number", "title", "contentRef", "provider", "volume", "pages", "language",
        "updatedAt", "scanlationGroup", "isLatest", "thumbnail"
    }
    assert location.to_dict() == {"url": "https://img.test/1.jpg", "headers": {"Referer": "r"}, "index": 0}


def test_provider_parse():
    assert Provider.parse("KATANA") is Provider.KATANA
    assert Provider.parse(Provider.MANGAFIRE) is Provider.MANGAFIRE
    with pytest.raises(ValueError):
        Provider.parse("comick")


@pytest.mark.parametrize("provider,expected", [
    ("mangadex", "MangaDex is currently unavailable due to DMCA restrictions. Please try enabling 'Auto-Select Best Source' or choose a different provider."),
    (Provider.MANGAFIRE, "MangaFire is currently unavailable. Please try enabling 'Auto-Select Best Source' or choose a different provider."),
    ("katana", "Katana is currently unavailable. Please try enabling 'Auto-Select Best Source' or choose a different provider."),
    ("unknown", "The selected provider is currently unavailable. Please try enabling 'Auto-Select Best Source' or choose a different provider."),
    (None, "The selected provider is currently unavailable. Please try enabling 'Auto-Select Best Source' or choose a different provider."),
])
def test_describe_failure_single_provider(provider, expected):
    assert describe_failure(provider, False) == expected


def test_describe_failure_with_auto_fallback():
    assert describe_failure("mangadex", True) == "All manga sources are currently unavailable. Please try again later."
