"""Validação e estado do formulário de alunos.

O formulário passa por ``closed`` -> ``create``/``edit`` -> (envio) ->
``closed`` em caso de sucesso, ou volta ao mesmo modo em caso de falha.
Enquanto um envio está pendente, um segundo envio é recusado.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Dict, Optional, Tuple

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ValidationError, field_validator
from pydantic_core import PydanticCustomError

NOME_MAX_LENGTH = 100
DATE_INPUT_FORMATS = ("%Y-%m-%d", "%d/%m/%Y")
FORM_FIELDS = ("nome", "email", "data_nascimento")

FORM_CLOSED = "closed"
FORM_CREATE = "create"
FORM_EDIT = "edit"


class FormValidationError(ValueError):
    """Raised when the submitted fields fail validation."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = dict(errors)


class FormStateError(RuntimeError):
    """Raised on an invalid form transition (e.g. double submission)."""


def _parse_birth_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    for fmt in DATE_INPUT_FORMATS:
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    return None


class AlunoForm(BaseModel):
    nome: str
    email: str
    data_nascimento: date

    @field_validator("nome", mode="before")
    @classmethod
    def _check_nome(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise PydanticCustomError("nome_obrigatorio", "Nome é obrigatório")
        if len(text) > NOME_MAX_LENGTH:
            raise PydanticCustomError("nome_longo", "Nome muito longo")
        return text

    @field_validator("email", mode="before")
    @classmethod
    def _check_email(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise PydanticCustomError("email_obrigatorio", "Email é obrigatório")
        try:
            validate_email(text, check_deliverability=False)
        except EmailNotValidError:
            raise PydanticCustomError("email_invalido", "Email inválido")
        return text

    @field_validator("data_nascimento", mode="before")
    @classmethod
    def _check_data_nascimento(cls, value: Any) -> date:
        if value in (None, "") or (isinstance(value, str) and not value.strip()):
            raise PydanticCustomError(
                "data_obrigatoria", "Data de nascimento é obrigatória"
            )
        parsed = _parse_birth_date(value)
        if parsed is None:
            raise PydanticCustomError("data_invalida", "Data de nascimento inválida")
        return parsed

    def as_payload(self) -> Dict[str, Any]:
        return {
            "nome": self.nome,
            "email": self.email,
            "data_nascimento": self.data_nascimento,
        }


def parse_aluno_form(nome: Any, email: Any, data_nascimento: Any) -> AlunoForm:
    """Validate raw inputs, raising FormValidationError with one message per field."""

    try:
        return AlunoForm(nome=nome, email=email, data_nascimento=data_nascimento)
    except ValidationError as exc:
        errors: Dict[str, str] = {}
        for error in exc.errors():
            loc = error.get("loc") or ()
            field = str(loc[0]) if loc else "form"
            errors.setdefault(field, str(error.get("msg") or "Valor inválido"))
        raise FormValidationError(errors) from exc


def validate_aluno_form(
    nome: Any, email: Any, data_nascimento: Any
) -> Tuple[Optional[AlunoForm], Dict[str, str]]:
    try:
        return parse_aluno_form(nome, email, data_nascimento), {}
    except FormValidationError as err:
        return None, err.errors


@dataclass(frozen=True)
class AlunoFormState:
    mode: str = FORM_CLOSED
    aluno_id: Optional[str] = None
    submitting: bool = False

    @property
    def is_open(self) -> bool:
        return self.mode != FORM_CLOSED

    @property
    def is_edit(self) -> bool:
        return self.mode == FORM_EDIT


def open_for_create(state: Optional[AlunoFormState] = None) -> AlunoFormState:
    if state is not None and state.submitting:
        raise FormStateError("Aguarde o envio em andamento.")
    return AlunoFormState(mode=FORM_CREATE)


def open_for_edit(aluno_id: Optional[str], state: Optional[AlunoFormState] = None) -> AlunoFormState:
    if state is not None and state.submitting:
        raise FormStateError("Aguarde o envio em andamento.")
    if not aluno_id:
        raise FormStateError("Selecione um aluno para editar.")
    return AlunoFormState(mode=FORM_EDIT, aluno_id=aluno_id)


def close_form(state: Optional[AlunoFormState]) -> AlunoFormState:
    if state is not None and state.submitting:
        raise FormStateError("Aguarde o envio em andamento.")
    return AlunoFormState()


def begin_submit(state: Optional[AlunoFormState]) -> AlunoFormState:
    if state is None or not state.is_open:
        raise FormStateError("Formulário fechado.")
    if state.submitting:
        raise FormStateError("Já existe um envio em andamento.")
    return replace(state, submitting=True)


def resolve_submit(state: AlunoFormState, *, success: bool) -> AlunoFormState:
    if not state.submitting:
        raise FormStateError("Nenhum envio em andamento.")
    if success:
        return AlunoFormState()
    return replace(state, submitting=False)


__all__ = [
    "NOME_MAX_LENGTH",
    "FORM_FIELDS",
    "FORM_CLOSED",
    "FORM_CREATE",
    "FORM_EDIT",
    "FormValidationError",
    "FormStateError",
    "AlunoForm",
    "AlunoFormState",
    "parse_aluno_form",
    "validate_aluno_form",
    "open_for_create",
    "open_for_edit",
    "close_form",
    "begin_submit",
    "resolve_submit",
]
