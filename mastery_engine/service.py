"""
Mastery Engine facade.

Wires the pure components to the stores for one deployment:

    attempt -> BKT updater (atomic per key via the state store)
    readiness / session mode / anomalies -> one snapshot read per player

Stores are passed in explicitly; nothing here opens a connection of its own.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from loguru import logger

from config import Settings, get_settings
from mastery_engine.anomaly.detector import AnomalyConfig, SkillAnomaly, detect_anomalies
from mastery_engine.bkt.params import BKTParams, default_params_for
from mastery_engine.bkt.updater import apply_attempt, new_belief_state
from mastery_engine.core.catalog import SkillCatalog, default_catalog
from mastery_engine.core.models import (
    AttemptRecord,
    ProgressionDeferral,
    SkillBeliefState,
    SkipEvent,
)
from mastery_engine.deferral.registry import DeferralRegistry
from mastery_engine.planning.session_mode import (
    PlannerConfig,
    SessionModeResult,
    plan_session_mode,
)
from mastery_engine.readiness.assessor import ReadinessResult, assess_all
from mastery_engine.readiness.thresholds import ReadinessThresholds
from mastery_engine.store.base import DeferralStore, SkillStateStore, SkipLog
from mastery_engine.store.memory import (
    InMemoryDeferralStore,
    InMemorySkillStateStore,
    InMemorySkipLog,
)


class MasteryEngine:
    """Per-player mastery tracking, readiness, session planning, and review flags."""

    def __init__(
        self,
        catalog: SkillCatalog,
        state_store: SkillStateStore,
        deferral_registry: DeferralRegistry,
        skip_log: SkipLog,
        settings: Settings | None = None,
    ):
        self.catalog = catalog
        self.state_store = state_store
        self.deferral_registry = deferral_registry
        self.skip_log = skip_log
        self.settings = settings or get_settings()

        self.base_params = BKTParams.from_config(self.settings.get_bkt_config())
        self.thresholds = ReadinessThresholds.from_settings(self.settings)
        self.planner_config = PlannerConfig.from_settings(self.settings)
        self.anomaly_config = AnomalyConfig.from_settings(self.settings)

    @classmethod
    def in_memory(
        cls, catalog: SkillCatalog | None = None, settings: Settings | None = None
    ) -> MasteryEngine:
        """Engine over fresh in-memory stores."""
        settings = settings or get_settings()
        return cls(
            catalog=catalog or default_catalog(),
            state_store=InMemorySkillStateStore(),
            deferral_registry=DeferralRegistry(
                InMemoryDeferralStore(), timedelta(days=settings.deferral_default_days)
            ),
            skip_log=InMemorySkipLog(),
            settings=settings,
        )

    @classmethod
    def with_stores(
        cls,
        state_store: SkillStateStore,
        deferral_store: DeferralStore,
        skip_log: SkipLog,
        catalog: SkillCatalog | None = None,
        settings: Settings | None = None,
    ) -> MasteryEngine:
        settings = settings or get_settings()
        return cls(
            catalog=catalog or default_catalog(),
            state_store=state_store,
            deferral_registry=DeferralRegistry(
                deferral_store, timedelta(days=settings.deferral_default_days)
            ),
            skip_log=skip_log,
            settings=settings,
        )

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def params_for(self, skill_id: str) -> BKTParams:
        """BKT parameters for a catalog skill (raises UnknownSkill)."""
        return default_params_for(self.catalog.get(skill_id), self.base_params)

    @property
    def window_sizes(self) -> tuple[int, int]:
        """Speed and accuracy window capacities the current thresholds need."""
        t = self.thresholds
        accuracy = max(
            t.accuracy_window_size,
            t.last_n_all_correct,
            t.no_help_in_last_n,
            self.planner_config.struggling_window_size,
        )
        return t.speed_window_size, accuracy

    def _initial_state(self, player_id: str, skill_id: str, params: BKTParams) -> SkillBeliefState:
        speed, accuracy = self.window_sizes
        return new_belief_state(
            player_id,
            skill_id,
            params,
            speed_window_size=speed,
            accuracy_window_size=accuracy,
        )

    def _fit_windows(self, state: SkillBeliefState) -> SkillBeliefState:
        # States stored under smaller thresholds grow their windows on load
        return state.with_min_windows(*self.window_sizes)

    def record_attempt(self, player_id: str, attempt: AttemptRecord) -> SkillBeliefState:
        """
        Apply one attempt and persist the new belief.

        Raises:
            InvalidAttempt: malformed attempt (nothing is written)
            UnknownSkill: skill id absent from the catalog
            StoreConflict: write race not resolved within the retry budget
        """
        attempt.validate()
        params = self.params_for(attempt.skill_id)

        def update(current: SkillBeliefState | None) -> SkillBeliefState:
            base = (
                self._fit_windows(current)
                if current is not None
                else self._initial_state(player_id, attempt.skill_id, params)
            )
            return apply_attempt(base, attempt, params)

        state = self.state_store.update(player_id, attempt.skill_id, update)
        logger.debug(
            f"Recorded attempt player={player_id} skill={attempt.skill_id} "
            f"correct={attempt.is_correct} p_known={state.p_known:.3f}"
        )
        return state

    def record_attempts(
        self, player_id: str, attempts: Iterable[AttemptRecord]
    ) -> list[SkillBeliefState]:
        """
        Apply a batch in order; each attempt sees the state left by the previous one.

        The whole batch is validated before anything is written.
        """
        attempts = list(attempts)
        for attempt in attempts:
            attempt.validate()
        self.catalog.require(attempt.skill_id for attempt in attempts)
        return [self.record_attempt(player_id, attempt) for attempt in attempts]

    def skill_states(self, player_id: str) -> dict[str, SkillBeliefState]:
        return {
            skill_id: self._fit_windows(state)
            for skill_id, state in self.state_store.list_for_player(player_id).items()
        }

    # ------------------------------------------------------------------
    # Readiness and planning
    # ------------------------------------------------------------------

    def readiness(self, player_id: str) -> dict[str, ReadinessResult]:
        return assess_all(self.skill_states(player_id), self.thresholds)

    def session_mode(self, player_id: str, now: datetime | None = None) -> SessionModeResult:
        now = now or datetime.now(UTC)
        result = plan_session_mode(
            self.skill_states(player_id),
            self.deferral_registry.active_for_player(player_id, now),
            now,
            thresholds=self.thresholds,
            config=self.planner_config,
            catalog=self.catalog,
        )
        logger.info(f"Session mode for {player_id}: {result.mode.value}")
        return result

    # ------------------------------------------------------------------
    # Deferrals
    # ------------------------------------------------------------------

    def defer_progression(
        self,
        player_id: str,
        skill_id: str,
        now: datetime | None = None,
        duration: timedelta | None = None,
    ) -> ProgressionDeferral:
        self.catalog.get(skill_id)
        return self.deferral_registry.defer(
            player_id, skill_id, now or datetime.now(UTC), duration
        )

    def clear_deferral(self, player_id: str, skill_id: str) -> None:
        self.deferral_registry.clear(player_id, skill_id)

    # ------------------------------------------------------------------
    # Anomalies
    # ------------------------------------------------------------------

    def record_tutorial_skip(
        self, player_id: str, skill_id: str, skipped_at: datetime | None = None
    ) -> SkipEvent:
        self.catalog.get(skill_id)
        event = SkipEvent(player_id, skill_id, skipped_at or datetime.now(UTC))
        self.skip_log.append(event)
        return event

    def anomalies(self, player_id: str, now: datetime | None = None) -> list[SkillAnomaly]:
        found = detect_anomalies(
            self.skill_states(player_id),
            self.skip_log.list_for_player(player_id),
            now or datetime.now(UTC),
            thresholds=self.thresholds,
            config=self.anomaly_config,
        )
        if found:
            logger.info(f"Found {len(found)} anomalies for {player_id}")
        return found
