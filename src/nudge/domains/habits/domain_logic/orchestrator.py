"""Per-habit planning pipeline.

Stages run in a fixed order and none is skipped::

    COLLECT_CONTEXT -> GENERATE_BASE -> ENRICH_TEXT -> ANALYZE_BEHAVIOR
        -> PREDICT_INTENT -> MERGE_CANDIDATES -> ADMIT -> DONE

Base reminders are produced before any behavior or intent analysis and reach
the admission filter unchanged apart from their text.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Any
from zoneinfo import ZoneInfo

from nudge.domains.habits.domain_logic.admission import admit
from nudge.domains.habits.domain_logic.base_reminders import create_base_reminders
from nudge.domains.habits.domain_logic.behavior_analyzer import (
    analyze_completion_pattern,
    determine_optimal_strategy,
    predict_completion_probability,
)
from nudge.domains.habits.domain_logic.context_builder import build_planning_context
from nudge.domains.habits.domain_logic.enrichment import TextGenerator, enrich_notifications
from nudge.domains.habits.domain_logic.intent_predictor import (
    detect_emotional_state,
    determine_user_needs,
    predict_user_intent,
)
from nudge.domains.habits.domain_logic.models import (
    DEFAULT_CONFIG,
    Behavior,
    EmotionalState,
    Habit,
    Intent,
    MissedEvent,
    Notification,
    PlanningConfig,
    PlanningContext,
    UserNeed,
)
from nudge.domains.habits.domain_logic.smart_notifications import create_smart_notifications

logger = logging.getLogger(__name__)


class PlanningStage(str, enum.Enum):
    COLLECT_CONTEXT = "collect_context"
    GENERATE_BASE = "generate_base"
    ENRICH_TEXT = "enrich_text"
    ANALYZE_BEHAVIOR = "analyze_behavior"
    PREDICT_INTENT = "predict_intent"
    MERGE_CANDIDATES = "merge_candidates"
    ADMIT = "admit"
    DONE = "done"


@dataclass(frozen=True)
class HabitAnalysis:
    """Everything the pipeline learned about a habit, before scheduling."""

    habit: Habit  # with derived streak / completion_rate / consecutive_misses
    context: PlanningContext
    behavior: Behavior
    intent: Intent
    emotional_state: EmotionalState
    needs: tuple[UserNeed, ...]
    strategy: str


@dataclass
class HabitPlan:
    notifications: list[Notification]
    new_missed_events: list[MissedEvent]
    analysis: HabitAnalysis | None = None
    base_reminders: list[Notification] = field(default_factory=list)
    stages: list[PlanningStage] = field(default_factory=list)


def with_derived_stats(habit: Habit, context: PlanningContext) -> Habit:
    return replace(
        habit,
        streak=context.habit.streak,
        completion_rate=context.habit.completion_rate,
        consecutive_misses=context.habit.consecutive_misses,
    )


class NotificationOrchestrator:
    """Plans the notifications for one habit at a time.

    Usage::

        orchestrator = NotificationOrchestrator(text_generator=generator)
        plan = await orchestrator.plan_habit(habit, now_ms, ZoneInfo("Europe/Berlin"))
    """

    def __init__(
        self,
        text_generator: TextGenerator | None = None,
        config: PlanningConfig = DEFAULT_CONFIG,
    ) -> None:
        self.text_generator = text_generator
        self.config = config

    async def plan_habit(
        self,
        habit: Habit,
        now_ms: int,
        tz: ZoneInfo,
        *,
        user_id: str = "",
        user_profile: dict[str, Any] | None = None,
    ) -> HabitPlan:
        stages: list[PlanningStage] = []
        config = self.config

        stages.append(PlanningStage.COLLECT_CONTEXT)
        context = build_planning_context(
            habit, now_ms, tz, user_id=user_id, user_profile=user_profile, config=config
        )
        habit = with_derived_stats(habit, context)

        stages.append(PlanningStage.GENERATE_BASE)
        base = create_base_reminders(habit, habit.completions, now_ms, tz, config)

        stages.append(PlanningStage.ENRICH_TEXT)
        base = await self._enrich(base, habit, context)

        stages.append(PlanningStage.ANALYZE_BEHAVIOR)
        behavior = self._analyze_behavior(habit, context, now_ms, tz)

        stages.append(PlanningStage.PREDICT_INTENT)
        intent, emotional_state, needs = self._predict_intent(habit, context, behavior, now_ms, tz)

        stages.append(PlanningStage.MERGE_CANDIDATES)
        smart = create_smart_notifications(
            habit, context, intent, emotional_state, now_ms, tz, config
        )
        smart = await self._enrich(smart, habit, context)
        candidates = [*base, *smart]

        stages.append(PlanningStage.ADMIT)
        admitted = admit(candidates, habit, now_ms, tz, config)

        stages.append(PlanningStage.DONE)
        logger.info(
            "Planned habit %s: %d base + %d smart candidates -> %d admitted "
            "(intent=%s, state=%s, p=%.2f)",
            habit.id,
            len(base),
            len(smart),
            len(admitted),
            intent.type,
            emotional_state.state,
            behavior.probability,
        )

        return HabitPlan(
            notifications=admitted,
            new_missed_events=list(context.habit.new_missed_events),
            analysis=HabitAnalysis(
                habit=habit,
                context=context,
                behavior=behavior,
                intent=intent,
                emotional_state=emotional_state,
                needs=tuple(needs),
                strategy=determine_optimal_strategy(behavior.probability),
            ),
            base_reminders=base,
            stages=stages,
        )

    def analyze(
        self,
        habit: Habit,
        now_ms: int,
        tz: ZoneInfo,
        *,
        user_id: str = "",
        user_profile: dict[str, Any] | None = None,
    ) -> HabitAnalysis:
        """Context, behavior and intent for a habit without scheduling anything."""
        context = build_planning_context(
            habit, now_ms, tz, user_id=user_id, user_profile=user_profile, config=self.config
        )
        habit = with_derived_stats(habit, context)
        behavior = self._analyze_behavior(habit, context, now_ms, tz)
        intent, emotional_state, needs = self._predict_intent(habit, context, behavior, now_ms, tz)
        return HabitAnalysis(
            habit=habit,
            context=context,
            behavior=behavior,
            intent=intent,
            emotional_state=emotional_state,
            needs=tuple(needs),
            strategy=determine_optimal_strategy(behavior.probability),
        )

    # ----- stages -----

    async def _enrich(
        self, notifications: list[Notification], habit: Habit, context: PlanningContext
    ) -> list[Notification]:
        return await enrich_notifications(
            notifications,
            habit,
            context,
            self.text_generator,
            timeout=self.config.enrichment_timeout_seconds,
            concurrency=self.config.enrichment_concurrency,
        )

    @staticmethod
    def _analyze_behavior(
        habit: Habit, context: PlanningContext, now_ms: int, tz: ZoneInfo
    ) -> Behavior:
        behavior = analyze_completion_pattern(
            habit, habit.completions, habit.snooze_events, now_ms, tz
        )
        probability = predict_completion_probability(
            habit, context, habit.completions, habit.snooze_events, now_ms, tz
        )
        return replace(behavior, probability=probability)

    @staticmethod
    def _predict_intent(
        habit: Habit,
        context: PlanningContext,
        behavior: Behavior,
        now_ms: int,
        tz: ZoneInfo,
    ) -> tuple[Intent, EmotionalState, list[UserNeed]]:
        intent = predict_user_intent(
            habit, context, behavior, habit.completions, habit.snooze_events, now_ms, tz
        )
        emotional_state = detect_emotional_state(
            habit, habit.completions, habit.snooze_events, now_ms, tz
        )
        return intent, emotional_state, determine_user_needs(behavior, intent, emotional_state)
