from decimal import Decimal

from cardsync.services.ebay import average_price, filter_relevant
from cardsync.services.ebay.filtering import is_relevant, name_keywords

from conftest import make_listing


def test_name_keywords_drop_short_tokens():
    assert name_keywords("Spider-Man vs. Venom") == ["spider", "man", "venom"]
    assert name_keywords("Dr. X") == []


def test_relevant_title_needs_category_and_name_keyword():
    keywords = name_keywords("Wolverine")

    assert is_relevant("1992 Marvel Masterpieces Wolverine #14 card", keywords)
    assert not is_relevant("Wolverine action figure", keywords)
    assert not is_relevant("1992 Marvel Masterpieces Cyclops #10", keywords)


def test_miscategorized_and_graded_listings_rejected():
    keywords = name_keywords("Wolverine")

    assert not is_relevant("Marvel Wolverine #1 comic book variant cover", keywords)
    assert not is_relevant("1992 Marvel Masterpieces Wolverine PSA 9", keywords)
    assert not is_relevant("Wolverine Marvel card BGS 9.5 gem mint", keywords)
    assert not is_relevant("1992 Marvel Masterpieces Wolverine #14 card Grade 9", keywords)


def test_filter_caps_to_five():
    listings = [
        make_listing(f"Marvel Masterpieces Wolverine card {i}", "10.00", url=f"u{i}")
        for i in range(8)
    ]

    kept = filter_relevant(listings, "Wolverine")

    assert [item.url for item in kept] == ["u0", "u1", "u2", "u3", "u4"]


def test_filter_empty_input():
    assert filter_relevant([], "Wolverine") == []


def test_average_price_rounds_half_up():
    listings = [
        make_listing("a", "10.00"),
        make_listing("b", "10.00"),
        make_listing("c", "10.01"),
    ]
    # 30.01 / 3 = 10.00333...
    assert average_price(listings) == Decimal("10.00")

    assert average_price([make_listing("a", "1.00"), make_listing("b", "1.01")]) == Decimal(
        "1.01"
    )


def test_average_price_of_nothing_is_zero():
    assert average_price([]) == Decimal("0.00")
