from __future__ import annotations
import logging
import math
from typing import Dict, Iterable, List, Optional, Tuple
from models import (
    DAY_KEYS,
    DaySlot,
    Discipline,
    DisciplineUpdate,
    GenerationResult,
    PlanningSubmission,
    StudyBlock,
    StudyPlan,
)


logger = logging.getLogger(__name__)

DAY_LABELS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]

# Longest block first
BLOCK_DURATIONS = (1.5, 1.0, 0.5)
MIN_BLOCK_HOURS = BLOCK_DURATIONS[-1]

PHASE_A_ITERATIONS_PER_DAY = 100
PHASE_B_MAX_PASSES = 50

NO_ACTIVE_DAYS_MESSAGE = "Configure at least one study day with hours."
NO_WEEKLY_HOURS_MESSAGE = "Configure weekly hours for the disciplines."
HOURS_EXCEEDED_MESSAGE = "Total discipline hours exceed the hours available on the study days."
EMPTY_PLANNING_MESSAGE = "Refusing to save a planning without study blocks."


class PlanningError(ValueError):
    """A planning that cannot be generated or saved as it stands."""


def discipline_weight(d: Discipline) -> float:
    # less known, more important subjects get more time
    return d.importance * (6 - d.knowledge)


def _round_half_hour(hours: float) -> float:
    # Math.round semantics: halves round up
    return math.floor(hours * 2 + 0.5) / 2


def default_day_slots() -> List[DaySlot]:
    return [DaySlot(day_of_week=i, planned_hours=0.0) for i in range(7)]


def distribute_weekly_hours(
    disciplines: List[Discipline],
    days: List[DaySlot],
) -> List[Discipline]:
    """
    Split the week's available hours across the selected disciplines in
    proportion to their weight, rounded to half hours.
    Returns the input unchanged when there are no hours or no weight.
    """
    total_available = sum(d.planned_hours for d in days)
    if total_available == 0:
        return list(disciplines)

    selected = [d for d in disciplines if d.selected]
    weight_total = sum(discipline_weight(d) for d in selected)
    if weight_total == 0:
        return list(disciplines)

    out: List[Discipline] = []
    for d in disciplines:
        if d.selected:
            share = discipline_weight(d) / weight_total
            hours = _round_half_hour(share * total_available)
        else:
            hours = 0.0
        out.append(d.model_copy(update={"weekly_hours": hours}))
    return out


def _pick_discipline(
    ordered: List[Discipline],
    budget: Dict[int, float],
    remaining: float,
    skip: set[int],
) -> Optional[Tuple[Discipline, float]]:
    for d in ordered:
        if d.id in skip:
            continue
        left = budget[d.id]
        if left <= 0:
            continue
        for duration in BLOCK_DURATIONS:
            if duration <= remaining and duration <= left:
                return d, duration
    return None


def generate_study_blocks(
    disciplines: List[Discipline],
    days: List[DaySlot],
) -> GenerationResult:
    """
    Greedy allocation of 1.5h/1h/0.5h blocks onto the active days.

    Phase A fills each day in order, preferring disciplines not yet placed
    that day and falling back to repeats. Phase B sweeps any slack left
    once budgets ran out unevenly. Disciplines are prioritised by weight,
    ties keeping their input order.
    """
    active_days = [d for d in days if d.active and d.planned_hours > 0]
    if not active_days:
        return GenerationResult(blocks=[], error=NO_ACTIVE_DAYS_MESSAGE)

    funded = [d for d in disciplines if d.selected and d.weekly_hours > 0]
    if not funded:
        return GenerationResult(blocks=[], error=NO_WEEKLY_HOURS_MESSAGE)

    ordered = sorted(funded, key=discipline_weight, reverse=True)
    budget: Dict[int, float] = {d.id: d.weekly_hours for d in ordered}
    blocks: List[StudyBlock] = []

    def day_blocks(day: DaySlot) -> List[StudyBlock]:
        return [b for b in blocks if b.day_of_week == day.day_of_week]

    def place(day: DaySlot, d: Discipline, duration: float) -> None:
        blocks.append(StudyBlock(
            day_of_week=day.day_of_week,
            order=len(day_blocks(day)) + 1,
            duration_hours=duration,
            discipline_id=d.id,
        ))
        budget[d.id] -= duration

    safety = len(active_days) * PHASE_A_ITERATIONS_PER_DAY
    iterations = 0
    for day in active_days:
        while iterations < safety:
            iterations += 1
            placed = day_blocks(day)
            remaining = day.planned_hours - sum(b.duration_hours for b in placed)
            if remaining < MIN_BLOCK_HOURS:
                break

            seen_today = {b.discipline_id for b in placed}
            choice = _pick_discipline(ordered, budget, remaining, seen_today)
            if choice is None:
                choice = _pick_discipline(ordered, budget, remaining, set())
            if choice is None:
                break
            place(day, *choice)

    for _ in range(PHASE_B_MAX_PASSES):
        placed_any = False
        for day in active_days:
            remaining = day.planned_hours - sum(b.duration_hours for b in day_blocks(day))
            if remaining < MIN_BLOCK_HOURS:
                continue
            choice = _pick_discipline(ordered, budget, remaining, set())
            if choice is None:
                continue
            place(day, *choice)
            placed_any = True
            break
        if not placed_any:
            break

    logger.debug(
        "Generated %d blocks over %d days (%d phase A iterations)",
        len(blocks), len(active_days), iterations,
    )
    return GenerationResult(blocks=blocks)


def validate_planning(disciplines: List[Discipline], days: List[DaySlot]) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    if not any(d.active and d.planned_hours > 0 for d in days):
        errors["days"] = NO_ACTIVE_DAYS_MESSAGE

    discipline_total = sum(d.weekly_hours for d in disciplines if d.selected)
    day_total = sum(d.planned_hours for d in days)
    if discipline_total > day_total:
        errors["hours"] = HOURS_EXCEEDED_MESSAGE
    return errors


def seed_day_slots(blocks: Iterable[StudyBlock], plan: StudyPlan | None = None) -> List[DaySlot]:
    """
    Rebuild the seven day slots from persisted blocks. Days with no blocks
    fall back to the hours stored on the plan record.
    """
    per_day = hours_by_day(blocks)
    slots = []
    for i in range(7):
        hours = per_day.get(i, 0.0)
        if hours == 0 and plan is not None:
            hours = plan.day_hours(i)
        slots.append(DaySlot(day_of_week=i, planned_hours=hours))
    return slots


def seed_disciplines(disciplines: List[Discipline], blocks: Iterable[StudyBlock]) -> List[Discipline]:
    allocated: Dict[int, float] = {}
    for b in blocks:
        allocated[b.discipline_id] = allocated.get(b.discipline_id, 0.0) + b.duration_hours

    out = []
    for d in disciplines:
        if d.id in allocated:
            out.append(d.model_copy(update={
                "weekly_hours": allocated[d.id],
                "selected": True,
            }))
        else:
            out.append(d.model_copy())
    return out


def blocks_by_day(blocks: Iterable[StudyBlock]) -> Dict[int, List[StudyBlock]]:
    grouped: Dict[int, List[StudyBlock]] = {i: [] for i in range(7)}
    for b in blocks:
        grouped[b.day_of_week].append(b)
    for day in grouped.values():
        day.sort(key=lambda b: b.order)
    return grouped


def hours_by_day(blocks: Iterable[StudyBlock]) -> Dict[int, float]:
    totals: Dict[int, float] = {}
    for b in blocks:
        totals[b.day_of_week] = totals.get(b.day_of_week, 0.0) + b.duration_hours
    return totals


def hours_to_hhmm(hours: float) -> str:
    total_minutes = int(round(hours * 60))
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def build_submission(
    disciplines: List[Discipline],
    days: List[DaySlot],
    blocks: List[StudyBlock],
) -> PlanningSubmission:
    plan_data: Dict[str, float | bool] = {}
    by_day = {d.day_of_week: d for d in days}
    for i, key in enumerate(DAY_KEYS):
        slot = by_day.get(i)
        hours = slot.planned_hours if slot else 0.0
        plan_data[f"{key}_ativo"] = hours > 0
        plan_data[f"{key}_horas"] = hours

    updates = [
        DisciplineUpdate(
            id=d.id,
            weekly_hours=d.weekly_hours if d.selected else 0.0,
            selected=d.selected,
        )
        for d in disciplines
    ]
    return PlanningSubmission(
        blocks=list(blocks),
        plan_data=plan_data,
        updated_disciplines=updates,
    )


def planning_key(disciplines: List[Discipline], days: List[DaySlot]) -> Tuple:
    """
    Everything block generation reads from the form. A preview is only valid
    while the key it was built from matches the form's current key.
    """
    return (
        tuple((d.id, d.selected, d.importance, d.knowledge, d.weekly_hours) for d in disciplines),
        tuple((d.day_of_week, d.planned_hours) for d in days),
    )


def prepare_submission(disciplines: List[Discipline], days: List[DaySlot]) -> PlanningSubmission:
    # blocks are always rebuilt from the inputs being saved
    result = generate_study_blocks(disciplines, days)
    if not result.ok:
        raise PlanningError(result.error)
    return build_submission(disciplines, days, result.blocks)
