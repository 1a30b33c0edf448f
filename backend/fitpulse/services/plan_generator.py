"""
Periodized training plan generation.

A plan is picked from a fixed (type, difficulty) template table: a weekly day
pattern (more rest days for beginners), a peak weekly volume and a starting
ratio. Weeks are split into base -> build -> peak -> taper; volume rises
linearly up to the peak and falls during the taper. Generation is pure and
deterministic: the same inputs always give the same schedule.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from types import MappingProxyType

from sqlalchemy.ext.asyncio import AsyncSession

from fitpulse.config import settings
from fitpulse.core.errors import ValidationError
from fitpulse.models.training_plan import PlanWeek, PlanWorkout, TrainingPlan

logger = logging.getLogger(__name__)

PLAN_TYPES = ("5k", "10k", "half_marathon", "marathon", "general_fitness", "strength")
DIFFICULTIES = ("beginner", "intermediate", "advanced")
PHASES = ("base", "build", "peak", "taper")

PHASE_THEMES = {
    "base": "Aerobic Base",
    "build": "Building Volume",
    "peak": "Peak Training",
    "taper": "Taper & Recover",
}
TAPER_FACTORS = {1: (0.7,), 2: (0.7, 0.5)}

# Minutes per km by intensity; a run prescribed at distance d takes d * pace minutes.
PACE_FACTORS = MappingProxyType({"recovery": 7.0, "easy": 6.5, "moderate": 6.0, "hard": 5.0})
DIFFICULTY_PACE = MappingProxyType({"beginner": 1.1, "intermediate": 1.0, "advanced": 0.9})


@dataclass(frozen=True)
class Slot:
    type: str  # run | cardio | lift | cross_training | rest
    name: str
    share: float
    intensity: str
    description: str = ""


@dataclass(frozen=True)
class PlanTemplate:
    type: str
    difficulty: str
    name: str
    unit: str  # km | min
    peak_volume: float
    start_ratio: float
    days: tuple[Slot, ...]  # Monday .. Sunday


@dataclass(frozen=True)
class WorkoutDraft:
    day: int
    position: int
    type: str
    name: str
    description: str
    duration_min: float
    distance_km: float | None
    intensity: str


@dataclass(frozen=True)
class WeekDraft:
    week_number: int
    phase: str
    theme: str
    total_distance_km: float
    total_duration_min: float
    workouts: tuple[WorkoutDraft, ...]


@dataclass(frozen=True)
class PlanDraft:
    name: str
    type: str
    difficulty: str
    duration_weeks: int
    start_date: date
    end_date: date
    weeks: tuple[WeekDraft, ...]

    @property
    def total_workouts(self) -> int:
        return sum(1 for w in self.weeks for s in w.workouts if s.type != "rest")

    @property
    def target_distance_km(self) -> float:
        return round(sum(w.total_distance_km for w in self.weeks), 1)


REST = Slot("rest", "Rest Day", 0.0, "rest", "Full rest or light mobility")

_RUN_DAYS = {
    "beginner": (
        REST,
        Slot("run", "Easy Run", 0.25, "easy", "Conversational pace"),
        REST,
        Slot("run", "Tempo Run", 0.25, "moderate", "Comfortably hard, steady effort"),
        REST,
        Slot("run", "Long Run", 0.35, "easy", "Slow and steady, build endurance"),
        Slot("run", "Recovery Run", 0.15, "recovery", "Very easy shakeout"),
    ),
    "intermediate": (
        REST,
        Slot("run", "Easy Run", 0.2, "easy", "Conversational pace"),
        Slot("run", "Intervals", 0.2, "hard", "Repeats at 5K effort with jog recoveries"),
        Slot("run", "Easy Run", 0.15, "easy", "Conversational pace"),
        REST,
        Slot("run", "Long Run", 0.3, "easy", "Slow and steady, build endurance"),
        Slot("run", "Recovery Run", 0.15, "recovery", "Very easy shakeout"),
    ),
    "advanced": (
        REST,
        Slot("run", "Intervals", 0.18, "hard", "Repeats at 5K effort with jog recoveries"),
        Slot("run", "Easy Run", 0.14, "easy", "Conversational pace"),
        Slot("run", "Tempo Run", 0.16, "moderate", "Comfortably hard, steady effort"),
        Slot("run", "Easy Run", 0.12, "easy", "Conversational pace"),
        Slot("run", "Long Run", 0.28, "easy", "Slow and steady, build endurance"),
        Slot("run", "Recovery Run", 0.12, "recovery", "Very easy shakeout"),
    ),
}

_FITNESS_DAYS = {
    "beginner": (
        REST,
        Slot("cardio", "Cardio", 0.3, "easy", "Bike, row or elliptical at easy effort"),
        REST,
        Slot("lift", "Full Body Strength", 0.2, "moderate", "Compound lifts, 3 sets each"),
        REST,
        Slot("run", "Easy Run", 0.3, "easy", "Conversational pace"),
        Slot("cross_training", "Mobility & Core", 0.2, "recovery", "Stretching and core work"),
    ),
    "intermediate": (
        REST,
        Slot("cardio", "Cardio Intervals", 0.2, "hard", "Short hard efforts with easy recoveries"),
        Slot("lift", "Full Body Strength", 0.2, "moderate", "Compound lifts, 3-4 sets each"),
        Slot("run", "Easy Run", 0.2, "easy", "Conversational pace"),
        REST,
        Slot("run", "Long Run", 0.25, "easy", "Slow and steady, build endurance"),
        Slot("cross_training", "Mobility & Core", 0.15, "recovery", "Stretching and core work"),
    ),
    "advanced": (
        REST,
        Slot("cardio", "Cardio Intervals", 0.18, "hard", "Short hard efforts with easy recoveries"),
        Slot("lift", "Upper Body Strength", 0.15, "moderate", "Push and pull, 4 sets each"),
        Slot("run", "Tempo Run", 0.17, "moderate", "Comfortably hard, steady effort"),
        Slot("lift", "Lower Body Strength", 0.15, "moderate", "Squat and hinge, 4 sets each"),
        Slot("run", "Long Run", 0.23, "easy", "Slow and steady, build endurance"),
        Slot("cross_training", "Mobility & Core", 0.12, "recovery", "Stretching and core work"),
    ),
}

_STRENGTH_DAYS = {
    "beginner": (
        REST,
        Slot("lift", "Full Body A", 0.3, "moderate", "Squat, bench press, row"),
        REST,
        Slot("lift", "Full Body B", 0.3, "moderate", "Deadlift, overhead press, pull-up"),
        REST,
        Slot("lift", "Full Body A", 0.25, "moderate", "Squat, bench press, row"),
        Slot("cross_training", "Mobility", 0.15, "recovery", "Stretching and foam rolling"),
    ),
    "intermediate": (
        REST,
        Slot("lift", "Upper Body", 0.22, "hard", "Bench press, row, overhead press"),
        Slot("lift", "Lower Body", 0.22, "hard", "Squat, Romanian deadlift, lunges"),
        Slot("cardio", "Conditioning", 0.14, "easy", "Low-intensity cardio"),
        REST,
        Slot("lift", "Full Body", 0.27, "moderate", "Deadlift, pull-up, dips"),
        Slot("cross_training", "Mobility", 0.15, "recovery", "Stretching and foam rolling"),
    ),
    "advanced": (
        REST,
        Slot("lift", "Push", 0.18, "hard", "Bench press, overhead press, dips"),
        Slot("lift", "Pull", 0.18, "hard", "Deadlift, row, pull-up"),
        Slot("lift", "Legs", 0.2, "hard", "Squat, lunges, hamstring curls"),
        Slot("cardio", "Conditioning", 0.12, "moderate", "Intervals on bike or rower"),
        Slot("lift", "Full Body Power", 0.2, "moderate", "Cleans, jumps, carries"),
        Slot("cross_training", "Mobility", 0.12, "recovery", "Stretching and foam rolling"),
    ),
}

# type -> (plan name, unit, intermediate peak weekly volume, day patterns)
_TYPE_BASE = {
    "5k": ("5K Running Plan", "km", 25.0, _RUN_DAYS),
    "10k": ("10K Running Plan", "km", 42.0, _RUN_DAYS),
    "half_marathon": ("Half Marathon Plan", "km", 58.0, _RUN_DAYS),
    "marathon": ("Marathon Training Plan", "km", 75.0, _RUN_DAYS),
    "general_fitness": ("General Fitness Plan", "km", 25.0, _FITNESS_DAYS),
    "strength": ("Strength Building Plan", "min", 240.0, _STRENGTH_DAYS),
}
_DIFFICULTY_SCALE = {"beginner": (0.75, 0.55), "intermediate": (1.0, 0.6), "advanced": (1.25, 0.65)}


def _build_templates() -> MappingProxyType[tuple[str, str], PlanTemplate]:
    table = {}
    for plan_type, (name, unit, peak, patterns) in _TYPE_BASE.items():
        for difficulty, (scale, start_ratio) in _DIFFICULTY_SCALE.items():
            table[(plan_type, difficulty)] = PlanTemplate(
                type=plan_type,
                difficulty=difficulty,
                name=name,
                unit=unit,
                peak_volume=round(peak * scale, 1),
                start_ratio=start_ratio,
                days=patterns[difficulty],
            )
    return MappingProxyType(table)


TEMPLATES = _build_templates()


def get_template(plan_type: str, difficulty: str) -> PlanTemplate:
    if plan_type not in PLAN_TYPES:
        raise ValidationError("type", f"Unknown plan type {plan_type!r}.")
    if difficulty not in DIFFICULTIES:
        raise ValidationError("difficulty", f"Unknown difficulty {difficulty!r}.")
    return TEMPLATES[(plan_type, difficulty)]


def _half_up(x: float) -> int:
    return math.floor(x + 0.5)


def taper_weeks(duration_weeks: int) -> int:
    if duration_weeks >= 10:
        return 2
    if duration_weeks >= 3:
        return 1
    return 0


def phase_schedule(duration_weeks: int) -> list[str]:
    """Phase per week: base (~30% of pre-taper weeks), build, peak (~20%), taper (last 1-2 weeks)."""
    taper = taper_weeks(duration_weeks)
    pre = duration_weeks - taper
    base = max(1, _half_up(pre * 0.3)) if pre else 0
    peak = max(1, _half_up(pre * 0.2)) if pre >= 4 else 0
    build = pre - base - peak
    return ["base"] * base + ["build"] * build + ["peak"] * peak + ["taper"] * taper


def volume_ratios(duration_weeks: int, start_ratio: float) -> list[float]:
    """Share of peak volume per week: linear rise to 1.0 over pre-taper weeks, then taper factors."""
    taper = taper_weeks(duration_weeks)
    pre = duration_weeks - taper
    if pre == 1:
        ratios = [1.0]
    else:
        ratios = [start_ratio + (1.0 - start_ratio) * i / (pre - 1) for i in range(pre)]
    return ratios + list(TAPER_FACTORS.get(taper, ()))


def _draft_workout(template: PlanTemplate, slot: Slot, day: int, volume: float) -> WorkoutDraft:
    if slot.type == "rest":
        return WorkoutDraft(day, day, "rest", slot.name, slot.description, 0.0, None, "rest")
    amount = slot.share * volume
    pace = PACE_FACTORS.get(slot.intensity, PACE_FACTORS["moderate"]) * DIFFICULTY_PACE[template.difficulty]
    if template.unit == "min":
        return WorkoutDraft(day, day, slot.type, slot.name, slot.description, float(_half_up(amount)), None, slot.intensity)
    if slot.type in ("run", "cardio"):
        distance = round(amount, 1)
        return WorkoutDraft(
            day, day, slot.type, slot.name, slot.description, float(_half_up(distance * pace)), distance, slot.intensity
        )
    # Non-distance sessions in km plans get the time the same share would take to run.
    return WorkoutDraft(
        day, day, slot.type, slot.name, slot.description, float(_half_up(amount * pace)), None, slot.intensity
    )


def generate(
    plan_type: str,
    difficulty: str,
    duration_weeks: int,
    start_date: date,
    *,
    name: str | None = None,
) -> PlanDraft:
    """Build the full week/workout schedule for a plan without touching storage."""
    template = get_template(plan_type, difficulty)
    if isinstance(duration_weeks, bool) or not isinstance(duration_weeks, int):
        raise ValidationError("duration_weeks", "Duration must be a whole number of weeks.")
    if not 1 <= duration_weeks <= settings.max_plan_weeks:
        raise ValidationError("duration_weeks", f"Duration must be between 1 and {settings.max_plan_weeks} weeks.")
    if not isinstance(start_date, date):
        raise ValidationError("start_date", "Start date is required.")
    if isinstance(start_date, datetime):
        start_date = start_date.date()

    weeks = []
    for number, (phase, ratio) in enumerate(
        zip(phase_schedule(duration_weeks), volume_ratios(duration_weeks, template.start_ratio)), start=1
    ):
        volume = template.peak_volume * ratio
        workouts = tuple(_draft_workout(template, slot, day, volume) for day, slot in enumerate(template.days))
        weeks.append(
            WeekDraft(
                week_number=number,
                phase=phase,
                theme=PHASE_THEMES[phase],
                total_distance_km=round(sum(w.distance_km or 0.0 for w in workouts), 1),
                total_duration_min=sum(w.duration_min for w in workouts),
                workouts=workouts,
            )
        )
    return PlanDraft(
        name=(name or template.name).strip()[:100],
        type=plan_type,
        difficulty=difficulty,
        duration_weeks=duration_weeks,
        start_date=start_date,
        end_date=start_date + timedelta(days=7 * duration_weeks),
        weeks=tuple(weeks),
    )


def to_model(draft: PlanDraft, user_id: int) -> TrainingPlan:
    plan = TrainingPlan(
        user_id=user_id,
        name=draft.name,
        type=draft.type,
        difficulty=draft.difficulty,
        duration_weeks=draft.duration_weeks,
        start_date=draft.start_date,
        end_date=draft.end_date,
        current_week=1,
        status="active",
        progress_percentage=0,
        total_workouts=draft.total_workouts,
        completed_workouts=0,
        target_distance_km=draft.target_distance_km,
        created_at=datetime.now(timezone.utc),
    )
    plan.weeks = [
        PlanWeek(
            week_number=w.week_number,
            phase=w.phase,
            theme=w.theme,
            total_distance_km=w.total_distance_km,
            total_duration_min=w.total_duration_min,
            workouts=[
                PlanWorkout(
                    day=s.day,
                    position=s.position,
                    type=s.type,
                    name=s.name,
                    description=s.description,
                    duration_min=s.duration_min,
                    distance_km=s.distance_km,
                    intensity=s.intensity,
                    completed=False,
                )
                for s in w.workouts
            ],
        )
        for w in draft.weeks
    ]
    return plan


async def generate_plan(
    session: AsyncSession,
    user_id: int,
    plan_type: str,
    difficulty: str,
    duration_weeks: int,
    start_date: date,
    *,
    name: str | None = None,
) -> TrainingPlan:
    """Generate and store a plan for the user."""
    draft = generate(plan_type, difficulty, duration_weeks, start_date, name=name)
    plan = to_model(draft, user_id)
    session.add(plan)
    await session.flush()
    logger.info(
        "Training plan %s generated for user %s: %s/%s, %s weeks, %s sessions",
        plan.id,
        user_id,
        plan_type,
        difficulty,
        duration_weeks,
        plan.total_workouts,
    )
    return plan
