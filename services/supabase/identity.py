"""Registro, login e perfis de usuários.

Perfis: visitantes (registro/login) e usuários autenticados consultando o
próprio perfil. As contas vivem no Supabase Auth; a tabela ``profiles``
guarda exatamente uma linha por conta.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from postgrest.exceptions import APIError
from supabase import AuthError, Client

from .common import (
    SupabaseAuthorizationError,
    SupabaseError,
    SupabaseInvalidCredentialsError,
    SupabaseOperationError,
    SupabaseUserExistsError,
    _get_client,
    _handle_api_error,
    _new_client,
    _normalize_login,
    _parse_timestamp,
    _response_rows,
)

PROFILES_TABLE = "profiles"

_USER_EXISTS_CODES = {"email_exists", "user_already_exists"}
_INVALID_CREDENTIALS_CODES = {"invalid_credentials", "invalid_grant"}


def _log(msg: str) -> None:
    print(f"[AUTH] {msg}")


@dataclass
class ProfileRecord:
    id: Optional[str]
    email: Optional[str]
    created_at: Optional[datetime]

    @classmethod
    def from_raw(cls, data: Dict[str, Any]) -> "ProfileRecord":
        return cls(
            id=data.get("id"),
            email=data.get("email"),
            created_at=_parse_timestamp(data.get("created_at")),
        )


@dataclass
class IdentityRecord:
    id: str
    email: str
    profile: Optional[ProfileRecord] = None


def _handle_auth_error(error: AuthError) -> SupabaseError:
    message = getattr(error, "message", None) or str(error) or "Erro de autenticação"
    code = str(getattr(error, "code", "") or "").lower()
    lowered = message.lower()
    if code in _USER_EXISTS_CODES or "already" in lowered:
        return SupabaseUserExistsError("Usuário já cadastrado.")
    if code in _INVALID_CREDENTIALS_CODES or "invalid login credentials" in lowered:
        return SupabaseInvalidCredentialsError("Email ou senha incorretos.")
    return SupabaseOperationError(message)


def _user_from_response(response: Any) -> Any:
    user = getattr(response, "user", None)
    if user is None or not getattr(user, "id", None):
        raise SupabaseOperationError("O Supabase não retornou o usuário.")
    return user


def _provision_profile(
    client: Client, *, user_id: str, email: str, table: str = PROFILES_TABLE
) -> ProfileRecord:
    """Upsert the one profile row for ``user_id``.

    Keyed on ``id``, so running after the database trigger leaves a single row.
    """

    payload = {"id": user_id, "email": email}
    try:
        response = client.table(table).upsert(payload, on_conflict="id").execute()
    except APIError as err:
        raise _handle_api_error(err) from err
    except Exception as exc:
        raise SupabaseOperationError(str(exc)) from exc

    rows = _response_rows(response)
    return ProfileRecord.from_raw(rows[0] if rows else payload)


def _rollback_identity(client: Client, user_id: str, reason: Exception) -> None:
    try:
        client.auth.admin.delete_user(user_id)
    except Exception as exc:
        _log(f"falha ao desfazer registro de {user_id}: {exc}")
        raise SupabaseOperationError(
            f"Falha ao criar perfil ({reason}) e ao desfazer o registro ({exc})."
        ) from exc
    _log(f"registro desfeito para {user_id}: {reason}")


def register_identity(
    url: str,
    key: str,
    *,
    email: str,
    password: str,
    profiles_table: str = PROFILES_TABLE,
) -> IdentityRecord:
    """Create an identity and its profile; either both exist or neither."""

    login = _normalize_login(email)
    if not login or not password:
        raise SupabaseOperationError("Informe email e senha para registrar.")

    client = _get_client(url, key)
    try:
        response = client.auth.admin.create_user(
            {"email": login, "password": password, "email_confirm": True}
        )
    except AuthError as err:
        raise _handle_auth_error(err) from err
    except Exception as exc:
        raise SupabaseOperationError(str(exc)) from exc

    user = _user_from_response(response)
    user_email = _normalize_login(getattr(user, "email", None)) or login

    try:
        profile = _provision_profile(
            client, user_id=user.id, email=user_email, table=profiles_table
        )
    except SupabaseError as err:
        _rollback_identity(client, user.id, err)
        raise

    _log(f"registro concluído: {user_email} ({user.id})")
    return IdentityRecord(id=user.id, email=user_email, profile=profile)


def fetch_profile(
    url: str,
    key: str,
    *,
    user_id: str,
    caller_id: Optional[str],
    table: str = PROFILES_TABLE,
) -> Optional[ProfileRecord]:
    """Return the caller's own profile row (or None if missing)."""

    if not caller_id or str(caller_id) != str(user_id):
        raise SupabaseAuthorizationError("Apenas o próprio usuário pode ver seu perfil.")

    client = _get_client(url, key)
    try:
        response = (
            client.table(table)
            .select("id,email,created_at")
            .eq("id", user_id)
            .limit(1)
            .execute()
        )
    except APIError as err:
        raise _handle_api_error(err) from err
    except Exception as exc:
        raise SupabaseOperationError(str(exc)) from exc

    rows = _response_rows(response)
    return ProfileRecord.from_raw(rows[0]) if rows else None


def ensure_profile(
    url: str,
    key: str,
    *,
    user_id: str,
    email: str,
    table: str = PROFILES_TABLE,
) -> ProfileRecord:
    """Return the profile for ``user_id``, provisioning it if it is missing."""

    existing = fetch_profile(url, key, user_id=user_id, caller_id=user_id, table=table)
    if existing is not None:
        return existing
    _log(f"perfil ausente para {user_id}; criando")
    client = _get_client(url, key)
    return _provision_profile(client, user_id=user_id, email=_normalize_login(email), table=table)


def authenticate_identity(
    url: str,
    key: str,
    *,
    email: str,
    password: str,
    service_key: Optional[str] = None,
    profiles_table: str = PROFILES_TABLE,
) -> IdentityRecord:
    """Check credentials against Supabase Auth.

    Sign-in runs on a throwaway client built from ``key`` (normally the anon
    key) so the cached service-role client never holds a user session.
    Profile lookups go through ``service_key`` (defaults to ``key``).
    """

    login = _normalize_login(email)
    if not login or not password:
        raise SupabaseInvalidCredentialsError("Informe email e senha.")

    auth_client = _new_client(url, key)
    try:
        response = auth_client.auth.sign_in_with_password(
            {"email": login, "password": password}
        )
    except AuthError as err:
        raise _handle_auth_error(err) from err
    except Exception as exc:
        raise SupabaseOperationError(str(exc)) from exc

    user = _user_from_response(response)
    user_email = _normalize_login(getattr(user, "email", None)) or login

    try:
        auth_client.auth.sign_out()
    except Exception as exc:
        _log(f"sign_out do cliente temporário falhou: {exc}")

    profile = ensure_profile(
        url,
        service_key or key,
        user_id=user.id,
        email=user_email,
        table=profiles_table,
    )

    _log(f"login ok: {user_email} ({user.id})")
    return IdentityRecord(id=user.id, email=user_email, profile=profile)


__all__ = [
    "PROFILES_TABLE",
    "ProfileRecord",
    "IdentityRecord",
    "register_identity",
    "authenticate_identity",
    "fetch_profile",
    "ensure_profile",
]
