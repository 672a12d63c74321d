from __future__ import annotations

import threading

import pytest

from api_client import ApiError
from models import DaySlot, Discipline, StudyBlock
from planner import PlanningError, build_submission, generate_study_blocks
from sync import save_planning


class RecordingClient:
    def __init__(self, fail_on_create: bool = False) -> None:
        self.calls: list[tuple[str, object]] = []
        self.fail_on_create = fail_on_create
        self._lock = threading.Lock()
        self._next_id = 100

    def _record(self, kind: str, value: object) -> None:
        with self._lock:
            self.calls.append((kind, value))

    def update_plan(self, plan_id, data):
        self._record("plan", (plan_id, data))

    def update_discipline(self, discipline_id, data):
        self._record("discipline", (discipline_id, data))

    def delete_block(self, block_id):
        self._record("delete", block_id)

    def create_block(self, block):
        if self.fail_on_create:
            raise ApiError(500, "database down")
        with self._lock:
            self._next_id += 1
            created = block.model_copy(update={"id": self._next_id})
        self._record("create", created)
        return created


def _submission():
    disciplines = [
        Discipline(id=1, title="Penal", importance=5, knowledge=1, weekly_hours=3, selected=True),
        Discipline(id=2, title="Info", importance=2, knowledge=4, weekly_hours=1, selected=True),
        Discipline(id=3, title="Ética", selected=False),
    ]
    days = [DaySlot(day_of_week=1, planned_hours=2), DaySlot(day_of_week=4, planned_hours=2)]
    blocks = generate_study_blocks(disciplines, days).blocks
    return build_submission(disciplines, days, blocks)


def _existing() -> list[StudyBlock]:
    return [
        StudyBlock(id=11, day_of_week=0, order=1, duration_hours=1.0, discipline_id=1, plan_id=5),
        StudyBlock(id=12, day_of_week=0, order=2, duration_hours=1.0, discipline_id=2, plan_id=5),
    ]


def test_save_planning_replaces_all_blocks_in_order() -> None:
    client = RecordingClient()
    submission = _submission()
    created = save_planning(client, 5, submission, _existing(), max_workers=4)

    kinds = [kind for kind, _ in client.calls]
    order = ["plan", "discipline", "delete", "create"]
    assert kinds == sorted(kinds, key=order.index)
    assert kinds.count("discipline") == 3
    assert sorted(v for k, v in client.calls if k == "delete") == [11, 12]

    plan_id, plan_data = client.calls[0][1]
    assert plan_id == 5
    assert plan_data["segunda_horas"] == 2
    assert plan_data["domingo_ativo"] is False

    assert len(created) == len(submission.blocks)
    assert all(b.plan_id == 5 and b.id is not None for b in created)
    assert [(b.day_of_week, b.order) for b in created] == [(b.day_of_week, b.order) for b in submission.blocks]


def test_save_planning_does_not_roll_back_on_failure() -> None:
    client = RecordingClient(fail_on_create=True)
    with pytest.raises(ApiError, match="database down"):
        save_planning(client, 5, _submission(), _existing())
    kinds = {kind for kind, _ in client.calls}
    assert kinds == {"plan", "discipline", "delete"}


def test_save_planning_rejects_empty_block_list() -> None:
    client = RecordingClient()
    submission = _submission().model_copy(update={"blocks": []})
    with pytest.raises(PlanningError) as excinfo:
        save_planning(client, 5, submission, _existing())
    assert not isinstance(excinfo.value, ApiError)
    assert client.calls == []
