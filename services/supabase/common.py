"""Componentes compartilhados entre integrações do Supabase.

Perfis: utilitários e clientes usados pelos serviços de identidade e de
alunos (sempre por meio das camadas de serviço autorizadas).
"""

from __future__ import annotations

import threading
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from postgrest.exceptions import APIError
from supabase import Client, create_client


class SupabaseError(RuntimeError):
    """Base exception for Supabase related failures."""


class SupabaseConfigurationError(SupabaseError):
    """Raised when the Supabase client is not properly configured."""


class SupabaseOperationError(SupabaseError):
    """Raised when an operation against Supabase fails."""


class SupabaseAuthorizationError(SupabaseError):
    """Raised when the caller is not allowed to touch the requested rows."""


class SupabaseInvalidCredentialsError(SupabaseAuthorizationError):
    """Raised when email/password do not match an identity."""


class SupabaseUniquenessError(SupabaseError):
    """Raised when a unique constraint rejects the payload."""


class SupabaseUserExistsError(SupabaseUniquenessError):
    """Raised when attempting to create a user that already exists."""


class SupabaseNotFoundError(SupabaseError):
    """Raised when the requested row does not exist."""


_cached_client: Optional[Client] = None
_client_signature: Optional[Tuple[str, str]] = None
_client_lock = threading.Lock()

# SQLSTATE codes returned by PostgREST
_UNIQUE_VIOLATION = "23505"
_INSUFFICIENT_PRIVILEGE = "42501"
_JWT_ERRORS = {"PGRST301", "PGRST302"}


def _log(msg: str) -> None:
    print(f"[SUPABASE] {msg}")


def _is_placeholder(value: str) -> bool:
    if not value:
        return True
    markers = (
        "YOUR_SUPABASE",
        "SUPABASE_SERVICE_ROLE_KEY",
        "CHANGE_ME",
        "REPLACE_ME",
        "YOUR_PROJECT",
    )
    upper_value = value.upper()
    return any(marker in upper_value for marker in markers)


def _normalize_login(login: Optional[str]) -> str:
    return (login or "").strip().lower()


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse assorted timestamp inputs into an aware UTC datetime."""

    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        try:
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _response_rows(response: Any) -> List[Dict[str, Any]]:
    data = getattr(response, "data", None) if not isinstance(response, dict) else response.get("data")
    if isinstance(data, list):
        return [row for row in data if isinstance(row, dict)]
    if isinstance(data, dict):
        return [data]
    return []


def _get_client(url: str, key: str) -> Client:
    """Return a cached Supabase client, creating it if necessary."""

    if _is_placeholder(url) or _is_placeholder(key):
        raise SupabaseConfigurationError(
            "Credenciais do Supabase ausentes. Atualize SUPABASE_URL e SUPABASE_SERVICE_ROLE_KEY."
        )

    global _cached_client, _client_signature
    with _client_lock:
        signature = (url, key)
        if _cached_client is None or _client_signature != signature:
            try:
                _cached_client = create_client(url, key)
                _client_signature = signature
                _log(f"cliente inicializado para {url}")
            except Exception as exc:  # pragma: no cover - depende de rede/configuração real
                raise SupabaseOperationError(
                    f"Não foi possível inicializar o cliente Supabase: {exc}"
                ) from exc
    return _cached_client


def _new_client(url: str, key: str) -> Client:
    """Return a fresh, uncached client (used for per-user sign-in)."""

    if _is_placeholder(url) or _is_placeholder(key):
        raise SupabaseConfigurationError(
            "Credenciais do Supabase ausentes. Atualize SUPABASE_URL e SUPABASE_ANON_KEY."
        )
    try:
        return create_client(url, key)
    except Exception as exc:  # pragma: no cover - depende de rede/configuração real
        raise SupabaseOperationError(
            f"Não foi possível inicializar o cliente Supabase: {exc}"
        ) from exc


def _handle_api_error(
    error: APIError,
    *,
    duplicate_message: str = "Registro duplicado no Supabase.",
) -> SupabaseError:
    message = error.message or "Erro de Supabase"
    details = (error.details or "").lower()
    combined = f"{message} {details}".lower()
    code = str(error.code or "")
    if code == _UNIQUE_VIOLATION or (
        not code and ("duplicate" in combined or "already exists" in combined)
    ):
        return SupabaseUniquenessError(duplicate_message)
    if code == _INSUFFICIENT_PRIVILEGE or "row-level security" in combined:
        return SupabaseAuthorizationError("Operação não permitida para este usuário.")
    if code in _JWT_ERRORS:
        return SupabaseAuthorizationError("Sessão inválida ou expirada.")
    return SupabaseOperationError(message)


def reset_cached_client() -> None:
    """Clear the cached Supabase client (useful for tests)."""

    global _cached_client, _client_signature
    with _client_lock:
        _cached_client = None
        _client_signature = None


__all__ = [
    "SupabaseError",
    "SupabaseConfigurationError",
    "SupabaseOperationError",
    "SupabaseAuthorizationError",
    "SupabaseInvalidCredentialsError",
    "SupabaseUniquenessError",
    "SupabaseUserExistsError",
    "SupabaseNotFoundError",
    "_get_client",
    "_new_client",
    "_handle_api_error",
    "_normalize_login",
    "_parse_timestamp",
    "_parse_date",
    "_response_rows",
    "reset_cached_client",
]
