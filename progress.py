from __future__ import annotations
from datetime import date
from typing import List
import pandas as pd
from models import Discipline, Review, StudyBlock, StudySession, Topic
from planner import hours_to_hhmm


DONE_REVIEW_STATES = {"CONCLUIDA", "CONCLUÍDO", "CANCELADA", "CANCELADO", "IGNORADA", "IGNORADO"}


def total_study_time(sessions: List[StudySession]) -> str:
    return hours_to_hhmm(sum(s.tempo_estudo for s in sessions))


def question_performance(sessions: List[StudySession]) -> int:
    right = sum(s.questoes_acertos for s in sessions)
    wrong = sum(s.questoes_erros for s in sessions)
    total = right + wrong
    if total == 0:
        return 0
    return int(round(right / total * 100))


def topic_coverage(topics: List[Topic]) -> int:
    if not topics:
        return 0
    done = sum(1 for t in topics if t.concluido)
    return int(round(done / len(topics) * 100))


def discipline_progress(
    disciplines: List[Discipline],
    blocks: List[StudyBlock],
    sessions: List[StudySession],
) -> pd.DataFrame:
    """
    Planned weekly hours against hours actually studied, one row per
    discipline. Sorted by completion, lowest first.
    """
    rows = []
    for d in disciplines:
        planned = sum(b.duration_hours for b in blocks if b.discipline_id == d.id)
        d_sessions = [s for s in sessions if s.discipline_id == d.id]
        studied = sum(s.tempo_estudo for s in d_sessions)
        rows.append({
            "Discipline": d.title,
            "Planned (h/week)": planned,
            "Studied (h)": studied,
            "Completion %": round(studied / planned * 100, 1) if planned else 0.0,
            "Performance %": question_performance(d_sessions),
        })

    columns = ["Discipline", "Planned (h/week)", "Studied (h)", "Completion %", "Performance %"]
    df = pd.DataFrame(rows, columns=columns)
    if df.empty:
        return df
    return df.sort_values(by="Completion %", ascending=True, kind="stable").reset_index(drop=True)


def upcoming_reviews(reviews: List[Review], today: date, limit: int = 10) -> List[Review]:
    pending = [
        r for r in reviews
        if (r.situacao_revisao or "").upper() not in DONE_REVIEW_STATES
        and r.data_programada.date() >= today
    ]
    pending.sort(key=lambda r: (r.data_programada, r.numero))
    return pending[:limit]
