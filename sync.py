from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar
from api_client import ApiClient
from planner import EMPTY_PLANNING_MESSAGE, PlanningError
from models import PlanningSubmission, StudyBlock


logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def _fan_out(fn: Callable[[T], R], items: Iterable[T], max_workers: int) -> List[R]:
    items = list(items)
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as pool:
        # list() re-raises the first failure in submission order
        return list(pool.map(fn, items))


def save_planning(
    client: ApiClient,
    plan_id: int,
    submission: PlanningSubmission,
    existing_blocks: List[StudyBlock],
    max_workers: int = 8,
) -> List[StudyBlock]:
    """
    Persist a planning form: plan day flags, discipline hours, then replace
    every block of the plan. Steps run in order, requests within a step run
    concurrently. Nothing is rolled back if a step fails.
    """
    if not submission.blocks:
        raise PlanningError(EMPTY_PLANNING_MESSAGE)

    logger.info("Saving planning for plan %s (%d blocks)", plan_id, len(submission.blocks))
    client.update_plan(plan_id, submission.to_api()["dadosPlano"])

    _fan_out(
        lambda u: client.update_discipline(u.id, u.to_api()),
        submission.updated_disciplines,
        max_workers,
    )
    logger.info("Updated %d disciplines", len(submission.updated_disciplines))

    old_ids = [b.id for b in existing_blocks if b.id is not None]
    _fan_out(client.delete_block, old_ids, max_workers)
    logger.info("Deleted %d previous blocks", len(old_ids))

    new_blocks = [b.model_copy(update={"id": None, "plan_id": plan_id}) for b in submission.blocks]
    created = _fan_out(client.create_block, new_blocks, max_workers)
    logger.info("Created %d blocks", len(created))
    return created
