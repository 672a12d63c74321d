from __future__ import annotations

from datetime import date, datetime

from models import Discipline, Review, StudyBlock, StudySession, Topic
from progress import (
    discipline_progress,
    question_performance,
    topic_coverage,
    total_study_time,
    upcoming_reviews,
)


def _session(discipline_id: int, hours: float, right: int = 0, wrong: int = 0) -> StudySession:
    return StudySession(discipline_id=discipline_id, tempo_estudo=hours, questoes_acertos=right, questoes_erros=wrong)


def test_total_study_time_formats_hours() -> None:
    assert total_study_time([_session(1, 2.5), _session(2, 0.75)]) == "03:15"
    assert total_study_time([]) == "00:00"


def test_question_performance() -> None:
    assert question_performance([_session(1, 1, right=10, wrong=2)]) == 83
    assert question_performance([_session(1, 1)]) == 0


def test_topic_coverage() -> None:
    topics = [Topic(id=1, concluido=True), Topic(id=2), Topic(id=3)]
    assert topic_coverage(topics) == 33
    assert topic_coverage([]) == 0


def test_discipline_progress_sorted_by_completion() -> None:
    disciplines = [Discipline(id=1, title="Penal"), Discipline(id=2, title="Constitucional"), Discipline(id=3, title="Info")]
    blocks = [
        StudyBlock(day_of_week=1, order=1, duration_hours=1.5, discipline_id=1),
        StudyBlock(day_of_week=2, order=1, duration_hours=1.0, discipline_id=2),
    ]
    sessions = [_session(1, 1.5, right=3, wrong=1), _session(2, 0.5)]
    df = discipline_progress(disciplines, blocks, sessions)
    assert list(df["Discipline"]) == ["Info", "Constitucional", "Penal"]
    assert list(df["Completion %"]) == [0.0, 50.0, 100.0]
    assert df.loc[df["Discipline"] == "Penal", "Performance %"].item() == 75


def test_discipline_progress_empty() -> None:
    assert discipline_progress([], [], []).empty


def test_upcoming_reviews_skips_done_and_past() -> None:
    reviews = [
        Review(id=1, numero=2, data_programada=datetime(2026, 10, 25, 10), situacao_revisao="AGENDADA"),
        Review(id=2, numero=1, data_programada=datetime(2026, 10, 20, 10), situacao_revisao="AGENDADA"),
        Review(id=3, numero=1, data_programada=datetime(2026, 10, 21, 10), situacao_revisao="CONCLUIDA"),
        Review(id=4, numero=1, data_programada=datetime(2026, 10, 1, 10)),
    ]
    pending = upcoming_reviews(reviews, date(2026, 10, 19))
    assert [r.id for r in pending] == [2, 1]
    assert len(upcoming_reviews(reviews, date(2026, 10, 19), limit=1)) == 1
