"""
Typed note records as returned by the note store.

The CRUD backend keeps category-specific fields in a free-form `extension`
bag. Here each category gets its own payload model and the record is a
tagged union on `type`, validated once at the note-store boundary.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from taste_api.matching.categories import TasteCategory
from taste_api.schemas import CamelModel, UtcDatetime


class RestaurantExtension(CamelModel):
    dish_name: Optional[str] = None
    dish_category: Optional[str] = None


class WineExtension(CamelModel):
    wine_name: Optional[str] = None
    vintage: Optional[Union[int, str]] = None


class SpiritExtension(CamelModel):
    spirit_name: Optional[str] = None
    distillery: Optional[str] = None


class _NoteBase(CamelModel):
    id: str
    author_id: str
    rating: int = Field(..., ge=1, le=10)
    experienced_at: UtcDatetime


class RestaurantNote(_NoteBase):
    type: Literal["RESTAURANT"] = "RESTAURANT"
    venue_id: Optional[str] = None
    extension: RestaurantExtension = Field(default_factory=RestaurantExtension)

    @property
    def category(self) -> TasteCategory:
        return TasteCategory.RESTAURANT


class WineNote(_NoteBase):
    type: Literal["WINE"] = "WINE"
    extension: WineExtension = Field(default_factory=WineExtension)

    @property
    def category(self) -> TasteCategory:
        return TasteCategory.WINE


class SpiritNote(_NoteBase):
    type: Literal["SPIRIT"] = "SPIRIT"
    extension: SpiritExtension = Field(default_factory=SpiritExtension)

    @property
    def category(self) -> TasteCategory:
        return TasteCategory.SPIRIT


NoteRecord = Annotated[
    Union[RestaurantNote, WineNote, SpiritNote],
    Field(discriminator="type"),
]

note_list_adapter = TypeAdapter(list[NoteRecord])
