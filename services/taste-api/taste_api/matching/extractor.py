"""
Rated-Item Extractor.

Turns a user's notes in one category into a map of identity key → RatedItem,
where the identity key says "this is the same dish / wine / spirit" across
users:

  RESTAURANT  r:<venue_id>:<dish>     (r:*:<dish> when no venue)
  WINE        w:<wine>:<vintage|nv>   (w:<wine> when vintage is not identity)
  SPIRIT      s:<spirit>              (s:<spirit>:<distillery> if enabled)

When a user logged the same item more than once, the most recent
experience wins.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from taste_api.config import settings
from taste_api.matching.categories import TasteCategory, parse_category
from taste_api.matching.notes import RestaurantNote, SpiritNote, WineNote

AnyNote = RestaurantNote | WineNote | SpiritNote

NO_VENUE = "*"
NON_VINTAGE = "nv"


@dataclass(frozen=True)
class RatedItem:
    category: TasteCategory
    identity_key: str
    rating: int
    owner_id: str
    note_id: str
    experienced_at: datetime


def normalize_name(value: object) -> str:
    """Case-fold, trim and collapse internal whitespace."""
    if value is None:
        return ""
    return " ".join(str(value).split()).casefold()


def identity_key(
    note: AnyNote,
    *,
    wine_vintage_in_key: Optional[bool] = None,
    spirit_distillery_in_key: Optional[bool] = None,
) -> Optional[str]:
    if wine_vintage_in_key is None:
        wine_vintage_in_key = settings.tss_wine_vintage_in_key
    if spirit_distillery_in_key is None:
        spirit_distillery_in_key = settings.tss_spirit_distillery_in_key

    category = parse_category(note.type)

    if category is TasteCategory.RESTAURANT:
        dish = normalize_name(note.extension.dish_name)
        if not dish:
            return None
        venue = (note.venue_id or "").strip() or NO_VENUE
        return f"r:{venue}:{dish}"

    if category is TasteCategory.WINE:
        name = normalize_name(note.extension.wine_name)
        if not name:
            return None
        if not wine_vintage_in_key:
            return f"w:{name}"
        vintage = normalize_name(note.extension.vintage) or NON_VINTAGE
        return f"w:{name}:{vintage}"

    # SPIRIT
    name = normalize_name(note.extension.spirit_name)
    if not name:
        return None
    if spirit_distillery_in_key:
        return f"s:{name}:{normalize_name(note.extension.distillery)}"
    return f"s:{name}"


def extract_rated_items(
    notes: Iterable[AnyNote],
    category: TasteCategory | str,
    *,
    wine_vintage_in_key: Optional[bool] = None,
    spirit_distillery_in_key: Optional[bool] = None,
) -> dict[str, RatedItem]:
    category = parse_category(category)
    items: dict[str, RatedItem] = {}

    for note in notes:
        if note.type != category.value:
            continue
        key = identity_key(
            note,
            wine_vintage_in_key=wine_vintage_in_key,
            spirit_distillery_in_key=spirit_distillery_in_key,
        )
        if key is None:
            continue

        item = RatedItem(
            category=category,
            identity_key=key,
            rating=note.rating,
            owner_id=note.author_id,
            note_id=note.id,
            experienced_at=note.experienced_at,
        )
        current = items.get(key)
        if current is None or _is_newer(item, current):
            items[key] = item

    return items


def _is_newer(candidate: RatedItem, current: RatedItem) -> bool:
    return (candidate.experienced_at, candidate.note_id) > (
        current.experienced_at,
        current.note_id,
    )
