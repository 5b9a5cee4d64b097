"""
Search query variants for a catalog card.

Variants run from most to least specific. The search client stops at the
first variant that returns listings, so the broad ones only matter for
sparsely listed cards.
"""

import logging
import re
from typing import Optional

logger = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"(\d{4})")
_NAME_JUNK_RE = re.compile(r"[^\w\s-]")
_NUMBER_JUNK_RE = re.compile(r"[^\w]")


def extract_year(set_name: str) -> str:
    """'1992 Marvel Masterpieces' -> '1992'; no year -> ''."""
    match = _YEAR_RE.search(set_name or "")
    return match.group(1) if match else ""


def _join(*parts: str) -> str:
    return " ".join(p for p in parts if p)


def build_search_queries(
    set_name: str,
    card_name: str,
    card_number: str,
    brand: str = "Marvel",
    is_insert: bool = False,
    description: Optional[str] = None,
) -> list[str]:
    """
    Build the ordered query list:

        {year} {set} {name} #{number}
        {set} {name} #{number}
        {year} {name} {brand} {number}
        {name} {brand} {number}
        {name} {brand}

    Insert cards with a description get two extra, description-enhanced
    variants in front.
    """
    year = extract_year(set_name)
    name = _NAME_JUNK_RE.sub("", card_name or "").strip()
    number = _NUMBER_JUNK_RE.sub("", card_number or "")
    hashed = f"#{number}" if number else ""
    set_name = (set_name or "").strip()

    queries: list[str] = []

    insert_keyword = ""
    if is_insert and description:
        insert_keyword = _NAME_JUNK_RE.sub("", description).strip()

    if insert_keyword:
        if year:
            queries.append(_join(year, set_name, name, hashed, insert_keyword))
        queries.append(_join(set_name, name, hashed, insert_keyword))

    if year:
        queries.append(_join(year, set_name, name, hashed))
    queries.append(_join(set_name, name, hashed))
    if year:
        queries.append(_join(year, name, brand, number))
    queries.append(_join(name, brand, number))
    queries.append(_join(name, brand))

    # Cards without a number collapse some variants into the same string
    seen: set[str] = set()
    ordered = []
    for query in queries:
        if query and query not in seen:
            seen.add(query)
            ordered.append(query)

    logger.debug(
        "Built %d query variants for '%s' (%s #%s)",
        len(ordered),
        card_name,
        set_name,
        card_number,
    )
    return ordered
