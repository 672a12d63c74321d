from __future__ import annotations
import logging
from typing import Dict, List
from api_client import ApiClient
from models import Topic


logger = logging.getLogger(__name__)


def next_topic_order(topics: List[Topic]) -> int:
    orders = [t.order for t in topics if t.order is not None]
    return max(orders) + 1 if orders else 1


def sort_topics(topics: List[Topic]) -> List[Topic]:
    return sorted(topics, key=lambda t: (t.order is None, t.order or 0))


def move_topic(topics: List[Topic], topic_id: int, offset: int) -> List[Topic]:
    """
    Move a topic up (negative offset) or down within its discipline and
    renumber everything 1..n. Moves past either end stop at the end.
    """
    ordered = sort_topics(topics)
    index = next(i for i, t in enumerate(ordered) if t.id == topic_id)
    target = max(0, min(len(ordered) - 1, index + offset))
    ordered.insert(target, ordered.pop(index))
    return [t.model_copy(update={"order": i}) for i, t in enumerate(ordered, start=1)]


def order_changes(before: List[Topic], after: List[Topic]) -> Dict[int, int]:
    old = {t.id: t.order for t in before}
    return {t.id: t.order for t in after if old.get(t.id) != t.order}


def save_topic_move(client: ApiClient, topics: List[Topic], topic_id: int, offset: int) -> List[Topic]:
    moved = move_topic(topics, topic_id, offset)
    changes = order_changes(topics, moved)
    for changed_id, order in changes.items():
        client.update_topic(changed_id, {"ordem": order})
    logger.info("Reordered %d topics", len(changes))
    return moved
