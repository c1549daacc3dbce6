"""FastAPI dependency providers shared by the routers."""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taste_api.clients.note_store_client import note_store_client
from taste_api.database import get_db
from taste_api.matching.classifier import TierPolicy
from taste_api.matching.ranker import SocialRanker
from taste_api.matching.service import NoteStore, TasteMatchingService
from taste_api.matching.store import SimilarityStore
from taste_api.social.pins import FriendPinRegistry


def get_note_store() -> NoteStore:
    return note_store_client


def get_policy() -> TierPolicy:
    return TierPolicy.from_settings()


def get_matching_service(
    note_store: NoteStore = Depends(get_note_store),
) -> TasteMatchingService:
    return TasteMatchingService(note_store)


def get_pin_registry(
    db: AsyncSession = Depends(get_db),
    matching: TasteMatchingService = Depends(get_matching_service),
    policy: TierPolicy = Depends(get_policy),
) -> FriendPinRegistry:
    return FriendPinRegistry(db, matching, policy)


def get_similarity_store(db: AsyncSession = Depends(get_db)) -> SimilarityStore:
    return SimilarityStore(db)


def get_ranker(
    matching: TasteMatchingService = Depends(get_matching_service),
    policy: TierPolicy = Depends(get_policy),
) -> SocialRanker:
    return SocialRanker(matching, policy)
