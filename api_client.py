from __future__ import annotations
import logging
from typing import Any, List, Optional
import requests
from auth import SessionStore
from config import Settings
from models import (
    AuthSession,
    Discipline,
    DisciplineInput,
    PlanInput,
    Review,
    StudyBlock,
    StudyPlan,
    StudySession,
    Topic,
    TopicInput,
    User,
)


logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status: Optional[int], message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.status}: {self.message}"


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message"):
            if body.get(key):
                return str(body[key])
    return resp.reason or f"HTTP {resp.status_code}"


class ApiClient:
    """
    Thin client for the Studium REST backend. Every call sends the bearer
    token held by the SessionStore; a 401 clears it.
    """

    def __init__(
        self,
        settings: Settings,
        sessions: SessionStore,
        http: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = settings.api_base_url
        self.timeout = settings.api_timeout
        self.sessions = sessions
        self.http = http or requests.Session()
        self.http.headers.update({"Content-Type": "application/json"})

    def request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = dict(kwargs.pop("headers", {}) or {})
        if self.sessions.token:
            headers["Authorization"] = f"Bearer {self.sessions.token}"

        logger.debug("%s %s", method, url)
        try:
            resp = self.http.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise ApiError(None, f"Could not reach the server: {exc}") from exc

        if resp.status_code == 401:
            logger.warning("Unauthorized on %s %s, clearing session", method, url)
            self.sessions.clear()
        if not resp.ok:
            message = _error_message(resp)
            logger.warning("%s %s -> %s %s", method, url, resp.status_code, message)
            raise ApiError(resp.status_code, message)

        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    def get(self, path: str, **kwargs: Any) -> Any:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, payload: dict) -> Any:
        return self.request("POST", path, json=payload)

    def put(self, path: str, payload: dict) -> Any:
        return self.request("PUT", path, json=payload)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # auth

    def login(self, username: str, password: str) -> AuthSession:
        data = self.post("/auth/login", {"username": username, "password": password})
        data = data or {}
        if not data.get("token"):
            raise ApiError(None, "Login response did not include a token.")
        user = User.model_validate(data["usuario"]) if data.get("usuario") else None
        session = AuthSession(token=data["token"], user=user)
        self.sessions.set(session)
        logger.info("Logged in as %s", username)
        return session

    def logout(self) -> None:
        self.sessions.clear()

    # plans

    def list_plans(self, user_id: int) -> List[StudyPlan]:
        return [StudyPlan.model_validate(p) for p in self.get(f"/planoEstudo/usuario/{user_id}") or []]

    def get_plan(self, plan_id: int) -> StudyPlan:
        return StudyPlan.model_validate(self.get(f"/planoEstudo/{plan_id}"))

    def create_plan(self, plan: PlanInput) -> StudyPlan:
        return StudyPlan.model_validate(self.post("/planoEstudo", plan.to_api()))

    def update_plan(self, plan_id: int, data: dict) -> Any:
        return self.put(f"/planoEstudo/{plan_id}", data)

    def delete_plan(self, plan_id: int) -> None:
        self.delete(f"/planoEstudo/{plan_id}")

    # disciplines and topics

    def list_disciplines(self, plan_id: int) -> List[Discipline]:
        return [Discipline.model_validate(d) for d in self.get(f"/disciplina/plano/{plan_id}") or []]

    def create_discipline(self, discipline: DisciplineInput) -> Discipline:
        return Discipline.model_validate(self.post("/disciplina", discipline.to_api()))

    def update_discipline(self, discipline_id: int, data: dict) -> Any:
        return self.put(f"/disciplina/{discipline_id}", data)

    def delete_discipline(self, discipline_id: int) -> None:
        self.delete(f"/disciplina/{discipline_id}")

    def list_topics(self, discipline_id: int) -> List[Topic]:
        return [Topic.model_validate(t) for t in self.get(f"/topico/disciplina/{discipline_id}") or []]

    def create_topic(self, topic: TopicInput) -> Topic:
        return Topic.model_validate(self.post("/topico", topic.to_api()))

    def update_topic(self, topic_id: int, data: dict) -> Any:
        return self.put(f"/topico/{topic_id}", data)

    def delete_topic(self, topic_id: int) -> None:
        self.delete(f"/topico/{topic_id}")

    # study blocks

    def list_blocks(self, plan_id: int) -> List[StudyBlock]:
        raw = self.get("/blocoEstudo", params={"planoEstudoId": plan_id}) or []
        blocks = [StudyBlock.model_validate(b) for b in raw]
        # older backends ignore the query filter
        return [b for b in blocks if b.plan_id in (None, plan_id)]

    def create_block(self, block: StudyBlock) -> StudyBlock:
        return StudyBlock.model_validate(self.post("/blocoEstudo", block.to_api()))

    def delete_block(self, block_id: int) -> None:
        self.delete(f"/blocoEstudo/{block_id}")

    def update_block(self, block_id: int, data: dict) -> Any:
        return self.put(f"/blocoEstudo/{block_id}", data)

    # history

    def list_sessions(self, plan_id: int) -> List[StudySession]:
        return [StudySession.model_validate(s) for s in self.get(f"/sessaoEstudo/planoEstudo/{plan_id}") or []]

    def list_reviews(self, plan_id: int) -> List[Review]:
        return [Review.model_validate(r) for r in self.get(f"/revisao/planoEstudo/{plan_id}") or []]

    def list_block_sessions(self, block_id: int) -> List[StudySession]:
        return [StudySession.model_validate(s) for s in self.get(f"/sessaoEstudo/blocoEstudo/{block_id}") or []]

    def create_session(self, session: StudySession) -> StudySession:
        return StudySession.model_validate(self.post("/sessaoEstudo", session.to_api()))

    def list_topic_reviews(self, topic_id: int) -> List[Review]:
        return [Review.model_validate(r) for r in self.get(f"/revisao/topico/{topic_id}") or []]

    def create_review(self, review: Review) -> Review:
        return Review.model_validate(self.post("/revisao", review.to_api()))
