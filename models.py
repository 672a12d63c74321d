from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from datetime import date, datetime, timezone
from typing import Dict, List, Optional


# 0=Sunday ... 6=Saturday, the backend's diaSemana convention
DAY_KEYS = ["domingo", "segunda", "terca", "quarta", "quinta", "sexta", "sabado"]

# backend categoriaSessao enum -> label
SESSION_CATEGORIES = {
    "TEORIA": "Theory",
    "REVISAO": "Review",
    "RESOLUCAO_QUESTOES": "Practice questions",
    "LEITURA": "Reading",
    "OUTROS": "Other",
}
DEFAULT_COLOR = "#FFFFFF"
NEW_PLAN_SITUATION = "NOVO"


def validation_message(exc: ValidationError) -> str:
    """First error of a ValidationError, without pydantic's prefix."""
    errors = exc.errors()
    if not errors:
        return str(exc)
    return str(errors[0]["msg"]).removeprefix("Value error, ")


def _required_text(value: str, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError(f"{label} is required.")
    return value


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_api(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Discipline(ApiModel):
    id: int
    title: str = Field(default="", alias="titulo")
    color: Optional[str] = Field(default=None, alias="cor")
    importance: float = Field(default=2.5, ge=0, le=5, alias="importancia")
    knowledge: float = Field(default=2.5, ge=0, le=5, alias="conhecimento")
    weekly_hours: float = Field(default=0.0, ge=0, alias="horasSemanais")
    selected: bool = Field(default=False, alias="selecionada")
    plan_id: Optional[int] = Field(default=None, alias="planoId")


class DaySlot(ApiModel):
    day_of_week: int = Field(ge=0, le=6, alias="diaSemana")
    planned_hours: float = Field(default=0.0, ge=0, alias="horasPlanejadas")
    active: bool = Field(default=False, alias="ativo")

    @model_validator(mode="after")
    def _sync_active(self) -> "DaySlot":
        self.active = self.planned_hours > 0
        return self


class StudyBlock(ApiModel):
    id: Optional[int] = None
    day_of_week: int = Field(ge=0, le=6, alias="diaSemana")
    order: int = Field(ge=1, alias="ordem")
    duration_hours: float = Field(gt=0, alias="totalHorasPlanejadas")
    discipline_id: int = Field(alias="disciplinaId")
    plan_id: Optional[int] = Field(default=None, alias="planoEstudoId")
    completed: Optional[bool] = Field(default=None, alias="concluido")


class StudyPlan(ApiModel):
    id: int
    title: str = Field(default="", alias="titulo")
    concurso: Optional[str] = None
    cargo: Optional[str] = None
    banca: Optional[str] = None
    exam_date: Optional[datetime] = Field(default=None, alias="dataProva")
    situacao: Optional[str] = None
    user_id: Optional[int] = Field(default=None, alias="usuarioId")
    domingo_horas: float = 0.0
    domingo_ativo: bool = False
    segunda_horas: float = 0.0
    segunda_ativo: bool = False
    terca_horas: float = 0.0
    terca_ativo: bool = False
    quarta_horas: float = 0.0
    quarta_ativo: bool = False
    quinta_horas: float = 0.0
    quinta_ativo: bool = False
    sexta_horas: float = 0.0
    sexta_ativo: bool = False
    sabado_horas: float = 0.0
    sabado_ativo: bool = False

    def day_hours(self, day_of_week: int) -> float:
        key = DAY_KEYS[day_of_week]
        if not getattr(self, f"{key}_ativo"):
            return 0.0
        return float(getattr(self, f"{key}_horas"))


class Topic(ApiModel):
    id: int
    title: str = Field(default="", alias="titulo")
    order: Optional[int] = Field(default=None, alias="ordem")
    discipline_id: Optional[int] = Field(default=None, alias="disciplinaId")
    concluido: bool = False
    edital: bool = True
    estabilidade: Optional[float] = None
    dificuldade: Optional[float] = None


class StudySession(ApiModel):
    id: Optional[int] = None
    plan_id: Optional[int] = Field(default=None, alias="planoEstudoId")
    discipline_id: Optional[int] = Field(default=None, alias="disciplinaId")
    topic_id: Optional[int] = Field(default=None, alias="topicoId")
    block_id: Optional[int] = Field(default=None, alias="blocoEstudoId")
    categoria_sessao: Optional[str] = Field(default=None, alias="categoriaSessao")
    situacao_sessao: Optional[str] = Field(default=None, alias="situacaoSessao")
    questoes_acertos: int = Field(default=0, ge=0, alias="questoesAcertos")
    questoes_erros: int = Field(default=0, ge=0, alias="questoesErros")
    tempo_estudo: float = Field(default=0.0, ge=0, alias="tempoEstudo")
    paginas_lidas: int = Field(default=0, ge=0, alias="paginasLidas")
    topico_finalizado: bool = Field(default=False, alias="topicoFinalizado")
    concluida: bool = False
    started_at: Optional[datetime] = Field(default=None, alias="dataInicio")
    finished_at: Optional[datetime] = Field(default=None, alias="dataTermino")
    notes: Optional[str] = Field(default=None, alias="observacoes")


class Review(ApiModel):
    id: Optional[int] = None
    numero: int = Field(default=1, ge=1)
    data_programada: datetime = Field(alias="dataProgramada")
    plan_id: Optional[int] = Field(default=None, alias="planoEstudoId")
    discipline_id: Optional[int] = Field(default=None, alias="disciplinaId")
    topic_id: Optional[int] = Field(default=None, alias="topicoId")
    situacao_revisao: Optional[str] = Field(default=None, alias="situacaoRevisao")
    concluida: Optional[bool] = None


class DisciplineUpdate(ApiModel):
    id: int
    weekly_hours: float = Field(alias="horasSemanais")
    selected: bool = Field(alias="selecionada")


class PlanningSubmission(ApiModel):
    blocks: List[StudyBlock] = Field(default_factory=list, alias="blocos")
    plan_data: Dict[str, float | bool] = Field(default_factory=dict, alias="dadosPlano")
    updated_disciplines: List[DisciplineUpdate] = Field(
        default_factory=list, alias="disciplinasAtualizadas"
    )


class GenerationResult(BaseModel):
    blocks: List[StudyBlock] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class User(ApiModel):
    id: int
    nome: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None


class AuthSession(BaseModel):
    token: Optional[str] = None
    user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)


class DisciplineInput(ApiModel):
    """Fields a user edits on a discipline; the weekly hours belong to planning."""

    title: str = Field(alias="titulo")
    color: str = Field(default=DEFAULT_COLOR, alias="cor")
    importance: float = Field(default=1.0, ge=0, le=5, alias="importancia")
    knowledge: float = Field(default=0.0, ge=0, le=5, alias="conhecimento")
    plan_id: Optional[int] = Field(default=None, alias="planoId")

    @field_validator("title")
    @classmethod
    def _title(cls, value: str) -> str:
        return _required_text(value, "Discipline name")

    @field_validator("color")
    @classmethod
    def _color(cls, value: str) -> str:
        value = (value or "").strip()
        if len(value) != 7 or not value.startswith("#"):
            raise ValueError("Pick a valid color.")
        try:
            int(value[1:], 16)
        except ValueError:
            raise ValueError("Pick a valid color.") from None
        return value.upper()

    @classmethod
    def from_discipline(cls, d: Discipline) -> "DisciplineInput":
        return cls(
            title=d.title,
            color=d.color or DEFAULT_COLOR,
            importance=d.importance,
            knowledge=d.knowledge,
            plan_id=d.plan_id,
        )


class PlanInput(ApiModel):
    title: str = Field(alias="titulo")
    concurso: str
    cargo: str
    banca: str
    exam_date: datetime = Field(alias="dataProva")
    user_id: Optional[int] = Field(default=None, alias="usuarioId")
    situacao: Optional[str] = None

    @field_validator("title", "concurso", "cargo", "banca")
    @classmethod
    def _required(cls, value: str, info) -> str:
        labels = {"title": "Title", "concurso": "Exam", "cargo": "Position", "banca": "Exam board"}
        return _required_text(value, labels[info.field_name])

    @field_validator("exam_date", mode="before")
    @classmethod
    def _midnight_utc(cls, value):
        # the backend stores the exam day as midnight UTC
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        return value


class TopicInput(ApiModel):
    title: str = Field(alias="titulo")
    order: int = Field(ge=1, alias="ordem")
    discipline_id: int = Field(alias="disciplinaId")

    @field_validator("title")
    @classmethod
    def _title(cls, value: str) -> str:
        return _required_text(value, "Topic title")
