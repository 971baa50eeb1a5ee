"""
Card name search ranking.

Cards whose name equals the query come first, then cards whose name starts
with it, then everything else. Within the two latter groups cards are
ordered by Levenshtein distance to the query, ties broken by id.
"""

from collections.abc import Iterable

import textdistance

from cardkeep.models.card import Card


def rank_by_name(cards: Iterable[Card], query: str) -> list[Card]:
    """Order cards by how well their name matches `query`."""
    exact: list[Card] = []
    top: list[Card] = []
    bottom: list[Card] = []

    for card in cards:
        if card.name == query:
            exact.append(card)
        elif card.name.startswith(query):
            top.append(card)
        else:
            bottom.append(card)

    def score(card: Card) -> tuple[int, int]:
        return textdistance.levenshtein.distance(card.name, query), card.id

    return exact + sorted(top, key=score) + sorted(bottom, key=score)
