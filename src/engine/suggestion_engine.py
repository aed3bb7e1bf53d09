"""
Booking suggestion engine.

Orchestrates one suggestion request: validates input, fans out one task
per eligible technician (calendar fetch, candidate generation, origin
resolution, travel estimation, scoring), waits for them under a
request-wide deadline, and hands everything that finished to the ranker.

All caches live in a per-request context, so nothing leaks between
requests except the providers' own connection pools.

Usage:
    engine = SuggestionEngine(directions=provider, booking_store=store)
    result = await engine.suggest(request, technicians)
    result.top_picks[0].technician_name
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Optional

import httpx

from src.config import AppConfig, EngineConfig, ScoringConfig
from src.engine.availability import AvailabilityResolver
from src.engine.origin import OriginResolver
from src.engine.ranking import rank
from src.engine.scoring import EfficiencyScorer, efficiency_label, travel_band
from src.engine.slot_generator import CandidateSlot, generate_candidates
from src.engine.travel import TravelTimeEstimator
from src.errors import SuggestionError, SuggestionErrorCode
from src.logging_context import get_request_logger, set_request_id
from src.providers.directions import (
    DirectionsProvider,
    GoogleDistanceMatrixProvider,
    HaversineDirectionsProvider,
)
from src.providers.geocoding import GeocodingProvider, GoogleGeocodingProvider, RequestGeocoder
from src.providers.store import BookingStore, TechnicianDirectory, VehicleLocationProvider
from src.schemas.scheduling_schema import Coordinate, NewCaseRequest, Technician
from src.schemas.suggestion_schema import RankedSuggestions, SingleSuggestion, SuggestionStatus
from src.utils import localize, parse_hhmm

logger = get_request_logger(__name__)


@dataclass
class _RequestContext:
    """Per-request caches and helpers. Discarded when the request ends."""

    request: NewCaseRequest
    range_start: datetime
    range_end: datetime
    calendar_start: datetime
    calendar_end: datetime
    duration: timedelta
    geocoder: RequestGeocoder
    estimator: TravelTimeEstimator
    availability: AvailabilityResolver
    origins: OriginResolver
    destination: Optional[Coordinate] = None

    def cancel_pending(self) -> int:
        return (
            self.estimator.cancel_pending()
            + self.geocoder.cancel_pending()
            + self.origins.cancel_pending()
        )


class SuggestionEngine:
    """Proposes ranked time slots for a new case across a technician pool."""

    def __init__(
        self,
        directions: DirectionsProvider,
        booking_store: BookingStore,
        geocoder: Optional[GeocodingProvider] = None,
        directory: Optional[TechnicianDirectory] = None,
        vehicle_locations: Optional[VehicleLocationProvider] = None,
        config: Optional[EngineConfig] = None,
        scoring: Optional[ScoringConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.directions = directions
        self.booking_store = booking_store
        self.geocoder = geocoder
        self.directory = directory
        self.vehicle_locations = vehicle_locations
        self.config = config or EngineConfig()
        self.scorer = EfficiencyScorer(scoring)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.tz = self.config.tz
        self.home_commute_after = parse_hhmm(self.config.home_commute_after)

    async def suggest(
        self,
        request: NewCaseRequest,
        technicians: Optional[list[Technician]] = None,
    ) -> RankedSuggestions:
        set_request_id()
        ctx = self._build_context(request)
        pool = await self._eligible_technicians(request, technicians)
        logger.info(
            "Suggesting %d min slots %s..%s across %d technician(s)",
            request.duration_minutes,
            ctx.range_start.isoformat(),
            ctx.range_end.isoformat(),
            len(pool),
        )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.suggestion_deadline_sec
        try:
            ctx.destination = await ctx.geocoder.resolve(request.location)
            if ctx.destination is None:
                logger.warning("Case location %r could not be resolved", request.location.address)

            tasks = {
                tech.id: asyncio.ensure_future(self._suggest_for_technician(ctx, tech))
                for tech in pool
            }
            remaining = max(0.0, deadline - loop.time())
            await asyncio.wait(tasks.values(), timeout=remaining)

            suggestions: list[SingleSuggestion] = []
            incomplete: list[str] = []
            cancelled: list[asyncio.Future] = []
            failed = 0
            for tech_id, task in tasks.items():
                if not task.done():
                    task.cancel()
                    cancelled.append(task)
                    incomplete.append(tech_id)
                    continue
                error = task.exception()
                if error is not None:
                    logger.error(
                        "Suggestions for %s failed: %s", tech_id, error,
                        exc_info=error,
                    )
                    incomplete.append(tech_id)
                    failed += 1
                    continue
                suggestions.extend(task.result())
            if cancelled:
                await asyncio.wait(cancelled)
        finally:
            ctx.cancel_pending()

        if failed == len(pool):
            raise SuggestionError(
                SuggestionErrorCode.PROVIDER_UNAVAILABLE,
                "No technician could be evaluated",
            )
        if incomplete:
            logger.warning(
                "%d technician(s) not fully evaluated: %s",
                len(incomplete), ", ".join(sorted(incomplete)),
            )

        result = rank(suggestions, top_n=self.config.top_picks)
        result.incomplete_technicians = sorted(incomplete)
        result.estimates_unavailable = bool(suggestions) and not any(
            s.estimate_available for s in suggestions
        )
        result.status = self._status(result)
        logger.info(
            "Done: %d suggestion(s), status=%s, %d travel call(s), %d cache hit(s)",
            result.total_candidates,
            result.status.value,
            ctx.estimator.provider_calls,
            ctx.estimator.cache_hits,
        )
        return result

    def _build_context(self, request: NewCaseRequest) -> _RequestContext:
        if request.duration_minutes <= 0:
            raise SuggestionError(
                SuggestionErrorCode.INVALID_DURATION,
                f"duration_minutes must be positive, got {request.duration_minutes}",
            )
        range_start = localize(request.range_start, self.tz)
        range_end = localize(request.range_end, self.tz)
        if range_end <= range_start:
            raise SuggestionError(
                SuggestionErrorCode.INVALID_DATE_RANGE,
                f"range_end ({range_end.isoformat()}) must be after "
                f"range_start ({range_start.isoformat()})",
            )

        timeout = self.config.travel_lookup_timeout_sec
        return _RequestContext(
            request=request,
            range_start=range_start,
            range_end=range_end,
            calendar_start=datetime.combine(range_start.date(), time.min, tzinfo=self.tz),
            calendar_end=datetime.combine(
                range_end.date() + timedelta(days=1), time.min, tzinfo=self.tz
            ),
            duration=timedelta(minutes=request.duration_minutes),
            geocoder=RequestGeocoder(self.geocoder, timeout_sec=timeout),
            estimator=TravelTimeEstimator(self.directions, self.config),
            availability=AvailabilityResolver(self.booking_store),
            origins=OriginResolver(
                today=self.clock().astimezone(self.tz).date(),
                vehicle_locations=self.vehicle_locations,
                vehicle_timeout_sec=timeout,
            ),
        )

    async def _eligible_technicians(
        self, request: NewCaseRequest, technicians: Optional[list[Technician]]
    ) -> list[Technician]:
        if technicians is None and self.directory is not None:
            technicians = await self.directory.list_active_technicians()
        pool = [t for t in technicians or [] if t.active]
        if request.technician_ids is not None:
            wanted = set(request.technician_ids)
            pool = [t for t in pool if t.id in wanted]
        if request.pest_type and request.pest_type.strip():
            pool = [t for t in pool if t.is_qualified_for(request.pest_type)]
            logger.debug("%d technician(s) qualified for %r", len(pool), request.pest_type)

        without_home = [t.id for t in pool if not t.home.is_resolvable]
        if without_home:
            logger.warning(
                "Skipping technician(s) with no home address: %s", ", ".join(without_home)
            )
            pool = [t for t in pool if t.home.is_resolvable]

        if not pool:
            raise SuggestionError(
                SuggestionErrorCode.EMPTY_TECHNICIAN_POOL,
                "No active technicians match the request",
            )
        return sorted(pool, key=lambda t: t.id)

    async def _suggest_for_technician(
        self, ctx: _RequestContext, technician: Technician
    ) -> list[SingleSuggestion]:
        calendar = await ctx.availability.get_calendar(
            technician, ctx.calendar_start, ctx.calendar_end
        )
        candidates = generate_candidates(
            technician,
            calendar.bookings,
            ctx.range_start,
            ctx.range_end,
            ctx.duration,
            absences=calendar.absences,
            tz=self.tz,
        )
        if not candidates:
            return []
        return list(
            await asyncio.gather(
                *(self._evaluate(ctx, technician, candidate) for candidate in candidates)
            )
        )

    async def _evaluate(
        self, ctx: _RequestContext, technician: Technician, candidate: CandidateSlot
    ) -> SingleSuggestion:
        origin = await ctx.origins.resolve(technician, candidate)
        origin_point = await ctx.geocoder.resolve(origin.location)
        estimate = await ctx.estimator.estimate(origin_point, ctx.destination)

        home_minutes = None
        if candidate.is_last_job and candidate.end.time() >= self.home_commute_after:
            home_point = await ctx.geocoder.resolve(technician.home)
            home_minutes = (await ctx.estimator.estimate(ctx.destination, home_point)).minutes

        score = self.scorer.score(
            estimate.minutes,
            candidate.is_first_job,
            candidate.slack_minutes,
            degraded=origin.degraded,
        )
        return SingleSuggestion(
            technician_id=technician.id,
            technician_name=technician.name,
            start_time=candidate.start,
            end_time=candidate.end,
            travel_time_minutes=estimate.minutes,
            estimate_available=estimate.available,
            travel_band=travel_band(estimate.minutes),
            origin=origin.to_descriptor(),
            origin_description=origin.describe(),
            efficiency_score=score,
            efficiency_label=efficiency_label(score),
            is_first_job=candidate.is_first_job,
            travel_time_home_minutes=home_minutes,
        )

    @staticmethod
    def _status(result: RankedSuggestions) -> SuggestionStatus:
        if result.incomplete_technicians:
            return SuggestionStatus.PARTIAL
        if result.total_candidates == 0:
            return SuggestionStatus.NO_AVAILABILITY
        if result.estimates_unavailable:
            return SuggestionStatus.ESTIMATES_UNAVAILABLE
        return SuggestionStatus.OK


def build_engine(
    config: AppConfig,
    client: httpx.AsyncClient,
    booking_store: BookingStore,
    directory: Optional[TechnicianDirectory] = None,
    vehicle_locations: Optional[VehicleLocationProvider] = None,
) -> SuggestionEngine:
    """Wire an engine to the configured providers over a shared HTTP client."""
    if config.providers.directions_backend == "haversine":
        directions: DirectionsProvider = HaversineDirectionsProvider(
            config.providers.haversine_speed_kmh
        )
    else:
        directions = GoogleDistanceMatrixProvider(client, config.providers)
    return SuggestionEngine(
        directions=directions,
        booking_store=booking_store,
        geocoder=GoogleGeocodingProvider(client, config.providers),
        directory=directory,
        vehicle_locations=vehicle_locations,
        config=config.engine,
        scoring=config.scoring,
    )
