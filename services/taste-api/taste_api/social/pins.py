"""
Friend Pin Registry — persists and serves Gourmet Friend relationships.

Eligibility is a point-in-time gate: a category can only be added while the
pair currently clears the TSS threshold, but an existing pin is never
re-validated afterwards. One row per (pinner, pinned) pair; categories are
unioned on repeated pins and the row disappears with its last category.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from opentelemetry import trace
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taste_api.errors import (
    DataUnavailable,
    IneligibleCategory,
    InvalidPinRequest,
    PinNotFound,
)
from taste_api.matching.categories import ALL_CATEGORIES, TasteCategory, parse_category
from taste_api.matching.classifier import (
    DEFAULT_POLICY,
    EligibilityResult,
    TierPolicy,
    evaluate,
)
from taste_api.matching.scorer import SimilarityResult
from taste_api.matching.service import TasteMatchingService
from taste_api.models import GourmetFriendPin
from taste_api.telemetry import PIN_REJECTIONS_TOTAL

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class CanPinResult:
    can_pin: bool
    eligible_categories: list[TasteCategory]
    compatibility: list[EligibilityResult]


@dataclass(frozen=True)
class GourmetFriend:
    pin: GourmetFriendPin
    similarities: list[SimilarityResult]


def _ordered(categories: Iterable[TasteCategory]) -> list[str]:
    """Stable storage order: the declaration order of TasteCategory."""
    wanted = set(categories)
    return [c.value for c in ALL_CATEGORIES if c in wanted]


def pin_categories(pin: GourmetFriendPin) -> frozenset[TasteCategory]:
    return frozenset(TasteCategory(c) for c in pin.categories)


class FriendPinRegistry:
    def __init__(
        self,
        db: AsyncSession,
        matching: TasteMatchingService,
        policy: TierPolicy = DEFAULT_POLICY,
    ) -> None:
        self.db = db
        self.matching = matching
        self.policy = policy

    # ── writes ────────────────────────────────────────────────────────────

    async def pin(
        self,
        viewer_id: str,
        target_id: str,
        categories: Iterable[TasteCategory | str],
    ) -> GourmetFriendPin:
        requested = self._validate_request(viewer_id, target_id, categories)

        with tracer.start_as_current_span("pins.pin") as span:
            span.set_attribute("pin.categories", [c.value for c in requested])
            await self._require_eligible(viewer_id, target_id, requested)

            pin = await self._get(viewer_id, target_id)
            if pin is not None:
                pin.categories = _ordered(pin_categories(pin) | requested)
                await self.db.flush()
                await self.db.refresh(pin)
                logger.info("%s extended pin on %s: %s", viewer_id, target_id, pin.categories)
                return pin

            pin = GourmetFriendPin(
                pinner_id=viewer_id,
                pinned_id=target_id,
                categories=_ordered(requested),
            )
            self.db.add(pin)
            try:
                await self.db.flush()
            except IntegrityError:
                # A concurrent pin created the row first; merge into it.
                await self.db.rollback()
                pin = await self._get(viewer_id, target_id)
                if pin is None:
                    raise
                pin.categories = _ordered(pin_categories(pin) | requested)
                await self.db.flush()

            await self.db.refresh(pin)
            logger.info("%s pinned %s as gourmet friend: %s", viewer_id, target_id, pin.categories)
            return pin

    async def set_categories(
        self,
        viewer_id: str,
        target_id: str,
        categories: Iterable[TasteCategory | str],
    ) -> GourmetFriendPin:
        """Replace the category set; only newly added categories are gated."""
        requested = self._validate_request(viewer_id, target_id, categories)
        pin = await self._get(viewer_id, target_id)
        if pin is None:
            raise PinNotFound(viewer_id, target_id)

        added = requested - pin_categories(pin)
        await self._require_eligible(viewer_id, target_id, added)

        pin.categories = _ordered(requested)
        await self.db.flush()
        await self.db.refresh(pin)
        return pin

    async def unpin(self, viewer_id: str, target_id: str) -> bool:
        result = await self.db.execute(
            delete(GourmetFriendPin).where(
                GourmetFriendPin.pinner_id == viewer_id,
                GourmetFriendPin.pinned_id == target_id,
            )
        )
        removed = (result.rowcount or 0) > 0
        if removed:
            logger.info("%s unpinned %s", viewer_id, target_id)
        return removed

    async def unpin_category(
        self,
        viewer_id: str,
        target_id: str,
        category: TasteCategory | str,
    ) -> Optional[GourmetFriendPin]:
        """Drop one category; returns None when the pin itself went away."""
        category = parse_category(category)
        pin = await self._get(viewer_id, target_id)
        if pin is None:
            raise PinNotFound(viewer_id, target_id)

        remaining = pin_categories(pin) - {category}
        if not remaining:
            await self.db.delete(pin)
            await self.db.flush()
            return None
        pin.categories = _ordered(remaining)
        await self.db.flush()
        await self.db.refresh(pin)
        return pin

    # ── reads ─────────────────────────────────────────────────────────────

    async def can_pin(self, viewer_id: str, target_id: str) -> CanPinResult:
        results = await self.matching.compare_all(viewer_id, target_id)
        compatibility = [evaluate(r, self.policy) for r in results]
        eligible = [c.category for c in compatibility if c.eligible]
        return CanPinResult(
            can_pin=bool(eligible) and viewer_id != target_id,
            eligible_categories=eligible,
            compatibility=compatibility,
        )

    async def list_friends(self, viewer_id: str) -> list[GourmetFriend]:
        rows = await self.db.execute(
            select(GourmetFriendPin)
            .where(GourmetFriendPin.pinner_id == viewer_id)
            .order_by(GourmetFriendPin.created_at.desc(), GourmetFriendPin.pinned_id)
        )
        pins = list(rows.scalars().all())
        similarities = await asyncio.gather(
            *[self._display_similarities(viewer_id, p.pinned_id) for p in pins]
        )
        return [GourmetFriend(pin=p, similarities=s) for p, s in zip(pins, similarities)]

    async def pinned_categories(self, viewer_id: str) -> dict[str, frozenset[TasteCategory]]:
        """Snapshot of target → pinned categories, read once per feed request."""
        rows = await self.db.execute(
            select(GourmetFriendPin).where(GourmetFriendPin.pinner_id == viewer_id)
        )
        return {p.pinned_id: pin_categories(p) for p in rows.scalars().all()}

    async def get_pin(self, viewer_id: str, target_id: str) -> Optional[GourmetFriendPin]:
        return await self._get(viewer_id, target_id)

    async def is_pinned(self, viewer_id: str, target_id: str) -> bool:
        return await self._get(viewer_id, target_id) is not None

    # ── helpers ───────────────────────────────────────────────────────────

    async def _get(self, viewer_id: str, target_id: str) -> Optional[GourmetFriendPin]:
        return await self.db.get(GourmetFriendPin, (viewer_id, target_id))

    def _validate_request(
        self,
        viewer_id: str,
        target_id: str,
        categories: Iterable[TasteCategory | str],
    ) -> frozenset[TasteCategory]:
        if viewer_id == target_id:
            raise InvalidPinRequest("Cannot pin yourself")
        requested = frozenset(parse_category(c) for c in categories)
        if not requested:
            raise InvalidPinRequest("At least one category is required")
        return requested

    async def _require_eligible(
        self,
        viewer_id: str,
        target_id: str,
        categories: frozenset[TasteCategory],
    ) -> None:
        """All-or-nothing gate: raise before anything is written."""
        if not categories:
            return
        ordered = sorted(categories)
        results = await asyncio.gather(
            *[self.matching.compare(viewer_id, target_id, c) for c in ordered]
        )
        failing = [r.category for r in results if not evaluate(r, self.policy).eligible]
        if failing:
            for category in failing:
                PIN_REJECTIONS_TOTAL.labels(category=category.value).inc()
            raise IneligibleCategory(
                _ordered(failing), self.policy.pin_min_score, self.policy.min_overlap
            )

    async def _display_similarities(
        self, viewer_id: str, target_id: str
    ) -> list[SimilarityResult]:
        async def _one(category: TasteCategory) -> SimilarityResult:
            try:
                return await self.matching.compare(viewer_id, target_id, category)
            except DataUnavailable as exc:
                logger.warning(
                    "Showing insufficient data for %s/%s/%s: %s",
                    viewer_id, target_id, category, exc.message,
                )
                return SimilarityResult(category, viewer_id, target_id, 0, None)

        return list(await asyncio.gather(*[_one(c) for c in ALL_CATEGORIES]))
