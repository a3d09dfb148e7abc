"""Rotinas de cadastro de alunos com escopo por proprietário.

Perfis: usuários autenticados, cada um enxergando e alterando apenas os
alunos que cadastrou. O cliente usa a chave de serviço (que ignora RLS), por
isso toda operação passa pela verificação de propriedade deste módulo.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from postgrest.exceptions import APIError
from supabase import Client

from .common import (
    SupabaseAuthorizationError,
    SupabaseNotFoundError,
    SupabaseOperationError,
    _get_client,
    _handle_api_error,
    _parse_date,
    _parse_timestamp,
    _response_rows,
)

ALUNOS_TABLE = "alunos"
ALUNO_COLUMNS = "id,nome,email,data_nascimento,created_by,created_at,updated_at"
MUTABLE_FIELDS = ("nome", "email", "data_nascimento")

DUPLICATE_EMAIL_MESSAGE = "Já existe um aluno cadastrado com este email."


def _log(msg: str) -> None:
    print(f"[ALUNOS] {msg}")


@dataclass
class AlunoRecord:
    id: Optional[str]
    nome: str
    email: str
    data_nascimento: Optional[date]
    created_by: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_raw(cls, data: Dict[str, Any]) -> "AlunoRecord":
        return cls(
            id=data.get("id"),
            nome=str(data.get("nome") or ""),
            email=str(data.get("email") or ""),
            data_nascimento=_parse_date(data.get("data_nascimento")),
            created_by=data.get("created_by"),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


def _require_caller(owner_id: Optional[str]) -> str:
    caller = str(owner_id or "").strip()
    if not caller:
        raise SupabaseAuthorizationError("Faça login para gerenciar alunos.")
    return caller


def _serialize_value(field: str, value: Any) -> Any:
    if field == "data_nascimento":
        parsed = _parse_date(value)
        if parsed is None:
            raise SupabaseOperationError("Data de nascimento inválida.")
        return parsed.isoformat()
    return str(value or "").strip()


def _writable_payload(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only client-editable columns; ownership and timestamps never pass."""

    return {
        field: _serialize_value(field, fields[field])
        for field in MUTABLE_FIELDS
        if field in fields
    }


def _next_updated_at(previous: Any) -> str:
    """Current UTC time, strictly after the stored ``updated_at``."""

    now = datetime.now(timezone.utc)
    stored = _parse_timestamp(previous)
    if stored is not None and now <= stored:
        now = stored + timedelta(microseconds=1)
    return now.isoformat()


def _fetch_aluno_row(client: Client, table: str, aluno_id: str) -> Optional[Dict[str, Any]]:
    try:
        response = (
            client.table(table)
            .select(ALUNO_COLUMNS)
            .eq("id", aluno_id)
            .limit(1)
            .execute()
        )
    except APIError as err:
        raise _handle_api_error(err, duplicate_message=DUPLICATE_EMAIL_MESSAGE) from err
    except Exception as exc:
        raise SupabaseOperationError(str(exc)) from exc

    rows = _response_rows(response)
    return rows[0] if rows else None


def _owned_row(client: Client, table: str, *, aluno_id: str, caller: str) -> Dict[str, Any]:
    """Return the row if ``caller`` owns it; reject otherwise."""

    if not aluno_id:
        raise SupabaseOperationError("Aluno não informado.")

    row = _fetch_aluno_row(client, table, aluno_id)
    if row is None:
        raise SupabaseNotFoundError("Aluno não encontrado.")
    if str(row.get("created_by") or "") != caller:
        _log(f"acesso negado: aluno={aluno_id} solicitante={caller}")
        raise SupabaseAuthorizationError("Você não tem permissão para alterar este aluno.")
    return row


def list_alunos(
    url: str,
    key: str,
    *,
    owner_id: Optional[str],
    table: str = ALUNOS_TABLE,
) -> List[AlunoRecord]:
    """Return the caller's students, newest first."""

    caller = _require_caller(owner_id)
    client = _get_client(url, key)

    try:
        response = (
            client.table(table)
            .select(ALUNO_COLUMNS)
            .eq("created_by", caller)
            .order("created_at", desc=True)
            .execute()
        )
    except APIError as err:
        raise _handle_api_error(err, duplicate_message=DUPLICATE_EMAIL_MESSAGE) from err
    except Exception as exc:
        raise SupabaseOperationError(str(exc)) from exc

    return [AlunoRecord.from_raw(row) for row in _response_rows(response)]


def create_aluno(
    url: str,
    key: str,
    *,
    owner_id: Optional[str],
    nome: str,
    email: str,
    data_nascimento: Any,
    table: str = ALUNOS_TABLE,
) -> AlunoRecord:
    """Insert a student attributed to the caller."""

    caller = _require_caller(owner_id)
    payload = _writable_payload(
        {"nome": nome, "email": email, "data_nascimento": data_nascimento}
    )
    payload["created_by"] = caller

    client = _get_client(url, key)
    try:
        response = client.table(table).insert(payload).execute()
    except APIError as err:
        raise _handle_api_error(err, duplicate_message=DUPLICATE_EMAIL_MESSAGE) from err
    except Exception as exc:
        raise SupabaseOperationError(str(exc)) from exc

    rows = _response_rows(response)
    if not rows:
        raise SupabaseOperationError("O Supabase não retornou o aluno criado.")
    created = rows[0]
    if str(created.get("created_by") or "") != caller:
        raise SupabaseAuthorizationError("Aluno criado com proprietário inesperado.")

    _log(f"aluno criado: id={created.get('id')} por {caller}")
    return AlunoRecord.from_raw(created)


def update_aluno(
    url: str,
    key: str,
    *,
    owner_id: Optional[str],
    aluno_id: str,
    table: str = ALUNOS_TABLE,
    **fields: Any,
) -> AlunoRecord:
    """Update name/email/birth date of a student owned by the caller.

    Any ``created_by``, ``created_at`` or ``updated_at`` passed in ``fields``
    is discarded; ``updated_at`` is always stamped here.
    """

    caller = _require_caller(owner_id)
    client = _get_client(url, key)
    current = _owned_row(client, table, aluno_id=aluno_id, caller=caller)

    payload = _writable_payload(fields)
    if not payload:
        return AlunoRecord.from_raw(current)
    payload["updated_at"] = _next_updated_at(current.get("updated_at"))

    try:
        response = (
            client.table(table)
            .update(payload)
            .eq("id", aluno_id)
            .eq("created_by", caller)
            .execute()
        )
    except APIError as err:
        raise _handle_api_error(err, duplicate_message=DUPLICATE_EMAIL_MESSAGE) from err
    except Exception as exc:
        raise SupabaseOperationError(str(exc)) from exc

    rows = _response_rows(response)
    if not rows:
        raise SupabaseNotFoundError("Aluno não encontrado.")

    _log(f"aluno atualizado: id={aluno_id} campos={sorted(payload)}")
    return AlunoRecord.from_raw(rows[0])


def delete_aluno(
    url: str,
    key: str,
    *,
    owner_id: Optional[str],
    aluno_id: str,
    table: str = ALUNOS_TABLE,
) -> None:
    """Remove a student owned by the caller."""

    caller = _require_caller(owner_id)
    client = _get_client(url, key)
    _owned_row(client, table, aluno_id=aluno_id, caller=caller)

    try:
        client.table(table).delete().eq("id", aluno_id).eq("created_by", caller).execute()
    except APIError as err:
        raise _handle_api_error(err, duplicate_message=DUPLICATE_EMAIL_MESSAGE) from err
    except Exception as exc:
        raise SupabaseOperationError(str(exc)) from exc

    _log(f"aluno excluído: id={aluno_id} por {caller}")


__all__ = [
    "ALUNOS_TABLE",
    "AlunoRecord",
    "list_alunos",
    "create_aluno",
    "update_aluno",
    "delete_aluno",
]
