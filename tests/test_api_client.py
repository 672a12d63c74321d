from __future__ import annotations

import json
from datetime import date

import pytest
import requests

from api_client import ApiClient, ApiError
from auth import SessionStore
from config import Settings
from models import AuthSession, DisciplineInput, PlanInput, StudyBlock, StudySession, TopicInput


class FakeResponse:
    def __init__(self, status_code: int = 200, body=None, reason: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.reason = reason
        self.content = b"" if body is None else json.dumps(body).encode()

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


class FakeHttp:
    def __init__(self, *responses) -> None:
        self.headers: dict = {}
        self.responses = list(responses)
        self.calls: list[dict] = []

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "headers": headers, "timeout": timeout, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(*responses, token: str | None = None) -> tuple[ApiClient, FakeHttp]:
    http = FakeHttp(*responses)
    store = SessionStore(persist=False)
    if token:
        store.set(AuthSession(token=token))
    settings = Settings(api_base_url="http://api.test/api/", api_timeout=5)
    return ApiClient(settings, store, http=http), http


def test_login_stores_session_and_sends_bearer_token() -> None:
    client, http = _client(
        FakeResponse(200, {"token": "abc", "usuario": {"id": 7, "nome": "Ana"}}),
        FakeResponse(200, []),
    )
    session = client.login("ana", "secret")
    assert session.token == "abc"
    assert session.user.id == 7
    assert http.calls[0]["url"] == "http://api.test/api/auth/login"
    assert http.calls[0]["json"] == {"username": "ana", "password": "secret"}
    assert "Authorization" not in http.calls[0]["headers"]

    assert client.list_plans(7) == []
    assert http.calls[1]["url"] == "http://api.test/api/planoEstudo/usuario/7"
    assert http.calls[1]["headers"]["Authorization"] == "Bearer abc"
    assert http.calls[1]["timeout"] == 5


def test_login_without_token_fails() -> None:
    client, _ = _client(FakeResponse(200, {"usuario": {"id": 1}}))
    with pytest.raises(ApiError):
        client.login("ana", "secret")
    assert not client.sessions.is_authenticated


def test_unauthorized_clears_session() -> None:
    client, _ = _client(FakeResponse(401, {"error": "Token inválido"}), token="stale")
    with pytest.raises(ApiError) as exc_info:
        client.get_plan(1)
    assert exc_info.value.status == 401
    assert exc_info.value.message == "Token inválido"
    assert not client.sessions.is_authenticated


def test_server_error_message_is_kept() -> None:
    client, _ = _client(FakeResponse(409, {"error": "Já existe bloco"}), token="t")
    with pytest.raises(ApiError) as exc_info:
        client.create_block(StudyBlock(day_of_week=1, order=1, duration_hours=1.0, discipline_id=2))
    assert str(exc_info.value) == "409: Já existe bloco"
    assert client.sessions.is_authenticated


def test_error_without_body_uses_reason() -> None:
    client, _ = _client(FakeResponse(502, None, reason="Bad Gateway"), token="t")
    with pytest.raises(ApiError, match="Bad Gateway"):
        client.list_disciplines(1)


def test_network_failure_becomes_api_error() -> None:
    client, _ = _client(requests.ConnectionError("refused"), token="t")
    with pytest.raises(ApiError) as exc_info:
        client.list_reviews(1)
    assert exc_info.value.status is None


def test_delete_with_no_content_returns_none() -> None:
    client, http = _client(FakeResponse(204), token="t")
    assert client.delete_block(12) is None
    assert (http.calls[0]["method"], http.calls[0]["url"]) == ("DELETE", "http://api.test/api/blocoEstudo/12")


def test_list_blocks_filters_other_plans() -> None:
    client, http = _client(FakeResponse(200, [
        {"id": 1, "diaSemana": 1, "ordem": 1, "totalHorasPlanejadas": "1.5", "disciplinaId": 3, "planoEstudoId": 2},
        {"id": 2, "diaSemana": 2, "ordem": 1, "totalHorasPlanejadas": "1.0", "disciplinaId": 3, "planoEstudoId": 9},
    ]), token="t")
    blocks = client.list_blocks(2)
    assert [b.id for b in blocks] == [1]
    assert blocks[0].duration_hours == 1.5
    assert http.calls[0]["params"] == {"planoEstudoId": 2}


def test_create_block_posts_backend_fields() -> None:
    created = {"id": 40, "diaSemana": 5, "ordem": 2, "totalHorasPlanejadas": 0.5, "disciplinaId": 8, "planoEstudoId": 1}
    client, http = _client(FakeResponse(201, created), token="t")
    block = client.create_block(StudyBlock(day_of_week=5, order=2, duration_hours=0.5, discipline_id=8, plan_id=1))
    assert block.id == 40
    assert http.calls[0]["json"] == {
        "diaSemana": 5,
        "ordem": 2,
        "totalHorasPlanejadas": 0.5,
        "disciplinaId": 8,
        "planoEstudoId": 1,
    }


def test_create_and_edit_discipline() -> None:
    created = {"id": 12, "titulo": "Informática", "cor": "#00AAFF", "importancia": 2, "conhecimento": 3, "planoId": 4}
    client, http = _client(FakeResponse(201, created), FakeResponse(200, created), token="t")
    form = DisciplineInput(title="Informática", color="#00aaff", importance=2, knowledge=3, plan_id=4)

    discipline = client.create_discipline(form)
    assert (discipline.id, discipline.plan_id) == (12, 4)
    assert (http.calls[0]["method"], http.calls[0]["url"]) == ("POST", "http://api.test/api/disciplina")
    assert http.calls[0]["json"]["planoId"] == 4

    client.update_discipline(12, form.to_api())
    assert (http.calls[1]["method"], http.calls[1]["url"]) == ("PUT", "http://api.test/api/disciplina/12")
    assert http.calls[1]["json"]["cor"] == "#00AAFF"


def test_create_plan_posts_form() -> None:
    client, http = _client(FakeResponse(201, {"id": 3, "titulo": "TRF"}), token="t")
    plan = client.create_plan(PlanInput(
        title="TRF", concurso="TRF 4", cargo="Técnico", banca="FCC", exam_date=date(2027, 3, 1), user_id=7, situacao="NOVO",
    ))
    assert plan.id == 3
    assert http.calls[0]["json"]["usuarioId"] == 7
    assert http.calls[0]["json"]["dataProva"] == "2027-03-01T00:00:00Z"


def test_topic_helpers_hit_topic_routes() -> None:
    client, http = _client(
        FakeResponse(201, {"id": 5, "titulo": "Crase", "ordem": 1, "disciplinaId": 2}),
        FakeResponse(200, {"id": 5}),
        FakeResponse(204),
        token="t",
    )
    topic = client.create_topic(TopicInput(title="Crase", order=1, discipline_id=2))
    assert topic.edital is True
    client.update_topic(5, {"concluido": True})
    client.delete_topic(5)
    assert [(c["method"], c["url"]) for c in http.calls] == [
        ("POST", "http://api.test/api/topico"),
        ("PUT", "http://api.test/api/topico/5"),
        ("DELETE", "http://api.test/api/topico/5"),
    ]


def test_create_session_and_list_block_sessions() -> None:
    stored = {"id": 30, "tempoEstudo": "1.25", "blocoEstudoId": 9, "categoriaSessao": "TEORIA"}
    client, http = _client(FakeResponse(201, stored), FakeResponse(200, [stored]), token="t")
    session = StudySession(plan_id=1, discipline_id=2, topic_id=3, block_id=9, categoria_sessao="TEORIA", tempo_estudo=1.25)
    assert client.create_session(session).id == 30
    assert http.calls[0]["json"]["blocoEstudoId"] == 9
    assert http.calls[0]["json"]["tempoEstudo"] == 1.25

    sessions = client.list_block_sessions(9)
    assert [s.tempo_estudo for s in sessions] == [1.25]
    assert http.calls[1]["url"] == "http://api.test/api/sessaoEstudo/blocoEstudo/9"
