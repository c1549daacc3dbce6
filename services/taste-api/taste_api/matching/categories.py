"""
Taste categories and the note types that feed them.

Scores are only ever computed within one category. Note types without a
taste category (e.g. WINERY_VISIT) never take part in matching.
"""
from enum import Enum
from typing import Optional

from taste_api.errors import InvalidCategory


class TasteCategory(str, Enum):
    RESTAURANT = "RESTAURANT"
    WINE = "WINE"
    SPIRIT = "SPIRIT"

    def __str__(self) -> str:
        return self.value


ALL_CATEGORIES: tuple[TasteCategory, ...] = tuple(TasteCategory)

NOTE_TYPE_TO_CATEGORY: dict[str, TasteCategory] = {
    "RESTAURANT": TasteCategory.RESTAURANT,
    "WINE": TasteCategory.WINE,
    "SPIRIT": TasteCategory.SPIRIT,
}


def note_type_to_category(note_type: Optional[str]) -> Optional[TasteCategory]:
    if not note_type:
        return None
    return NOTE_TYPE_TO_CATEGORY.get(str(note_type).upper())


def parse_category(value: object) -> TasteCategory:
    """Strict parse used at the extractor boundary."""
    if isinstance(value, TasteCategory):
        return value
    if isinstance(value, str):
        try:
            return TasteCategory(value.strip().upper())
        except ValueError:
            pass
    raise InvalidCategory(value)
