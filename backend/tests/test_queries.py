from cardsync.services.ebay import build_search_queries
from cardsync.services.ebay.queries import extract_year


def test_extract_year():
    assert extract_year("1992 Marvel Masterpieces") == "1992"
    assert extract_year("Marvel Universe Series II") == ""
    assert extract_year("") == ""


def test_variants_most_specific_first():
    queries = build_search_queries("1992 Marvel Masterpieces", "Spider-Man", "1")

    assert queries == [
        "1992 1992 Marvel Masterpieces Spider-Man #1",
        "1992 Marvel Masterpieces Spider-Man #1",
        "1992 Spider-Man Marvel 1",
        "Spider-Man Marvel 1",
        "Spider-Man Marvel",
    ]


def test_year_variants_skipped_without_year():
    queries = build_search_queries("Marvel Universe Series II", "Wolverine", "14")

    assert queries == [
        "Marvel Universe Series II Wolverine #14",
        "Wolverine Marvel 14",
        "Wolverine Marvel",
    ]


def test_brand_is_configurable():
    queries = build_search_queries("Star Wars Galaxy", "Luke", "3", brand="Topps")

    assert queries[-1] == "Luke Topps"


def test_punctuation_is_stripped():
    queries = build_search_queries("1990 Marvel Universe", "Dr. Doom!", "#47a")

    assert queries[0] == "1990 1990 Marvel Universe Dr Doom #47a"
    assert "Dr Doom Marvel 47a" in queries


def test_missing_number_collapses_duplicates():
    queries = build_search_queries("Marvel Universe", "Thor", "")

    assert queries == ["Marvel Universe Thor", "Thor Marvel"]
    assert len(queries) == len(set(queries))


def test_insert_description_variants_come_first():
    queries = build_search_queries(
        "1992 Marvel Masterpieces",
        "Wolverine",
        "3",
        is_insert=True,
        description="Battle Spectra",
    )

    assert queries[:2] == [
        "1992 1992 Marvel Masterpieces Wolverine #3 Battle Spectra",
        "1992 Marvel Masterpieces Wolverine #3 Battle Spectra",
    ]
    assert len(queries) == 7


def test_description_ignored_for_base_cards():
    base = build_search_queries("1992 Marvel Masterpieces", "Wolverine", "3")
    with_description = build_search_queries(
        "1992 Marvel Masterpieces", "Wolverine", "3", description="Battle Spectra"
    )

    assert base == with_description
