from __future__ import annotations
import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional
from pydantic import BaseModel
from api_client import ApiClient, ApiError
from models import SESSION_CATEGORIES, Review, StudyBlock, StudySession, Topic


logger = logging.getLogger(__name__)

REVIEW_DELAY_DAYS = 2
SCHEDULED_REVIEW = "AGENDADA"
FINISHED_SESSION = "CONCLUIDA"


class SessionFormError(ValueError):
    pass


class LoggedSession(BaseModel):
    session: StudySession
    block_completed: bool = False
    review: Optional[Review] = None


def pending_topics(topics: Iterable[Topic]) -> List[Topic]:
    """Topics a session can still be logged against, in syllabus order."""
    pending = [t for t in topics if not t.concluido and t.edital]
    return sorted(pending, key=lambda t: (t.order is None, t.order or 0))


def build_session(
    plan_id: int,
    block: StudyBlock,
    topic_id: Optional[int],
    category: str,
    hours: float,
    started_on: date,
    questions_right: int = 0,
    questions_wrong: int = 0,
    pages_read: int = 0,
    topic_finished: bool = False,
    notes: str = "",
    now: Optional[datetime] = None,
) -> StudySession:
    if block.id is None:
        raise SessionFormError("Save the planning before logging sessions on its blocks.")
    if not topic_id:
        raise SessionFormError("Select a topic.")
    if not hours or hours <= 0:
        raise SessionFormError("Enter the study time.")
    if category not in SESSION_CATEGORIES:
        raise SessionFormError(f"Unknown session category: {category}")

    now = now or datetime.now()
    return StudySession(
        plan_id=plan_id,
        discipline_id=block.discipline_id,
        topic_id=topic_id,
        block_id=block.id,
        categoria_sessao=category,
        situacao_sessao=FINISHED_SESSION,
        questoes_acertos=questions_right,
        questoes_erros=questions_wrong,
        tempo_estudo=hours,
        paginas_lidas=pages_read,
        topico_finalizado=topic_finished,
        concluida=True,
        started_at=datetime.combine(started_on, now.time()),
        finished_at=now,
        notes=notes.strip() or None,
    )


def next_review_number(client: ApiClient, topic_id: int) -> int:
    try:
        reviews = client.list_topic_reviews(topic_id)
    except ApiError as e:
        # the backend answers 404 when a topic has no reviews yet
        if e.status != 404:
            raise
        reviews = []
    return len(reviews) + 1


def record_session(
    client: ApiClient,
    session: StudySession,
    block: StudyBlock,
    schedule_review: bool = False,
) -> LoggedSession:
    """
    Create the session, then mark the topic and the block done when they
    are, and optionally schedule the topic's next review two days after
    the session. Steps run in order; an ApiError stops the remaining ones.
    """
    created = client.create_session(session)
    logger.info("Logged %.2fh on block %s", session.tempo_estudo, block.id)

    if session.topico_finalizado:
        client.update_topic(session.topic_id, {"concluido": True})

    studied = sum(s.tempo_estudo for s in client.list_block_sessions(block.id))
    block_completed = studied >= block.duration_hours
    if block_completed:
        client.update_block(block.id, {"concluido": True})

    review = None
    if schedule_review:
        started = (session.started_at or datetime.now()).date()
        review = client.create_review(Review(
            numero=next_review_number(client, session.topic_id),
            data_programada=datetime.combine(started + timedelta(days=REVIEW_DELAY_DAYS), time()),
            situacao_revisao=SCHEDULED_REVIEW,
            concluida=False,
            plan_id=session.plan_id,
            discipline_id=session.discipline_id,
            topic_id=session.topic_id,
        ))
        logger.info("Scheduled review %s for topic %s", review.numero, session.topic_id)

    return LoggedSession(session=created, block_completed=block_completed, review=review)
