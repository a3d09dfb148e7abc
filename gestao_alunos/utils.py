"""Utility helpers shared across UI pages."""

from datetime import date, datetime
from typing import Any, Dict, Optional


def _empty_auth_state() -> Dict[str, Any]:
    return {
        "isAuth": False,
        "user_id": None,
        "email": None,
        "profile_created_at": None,
    }


def _normalize_email(value: Optional[str]) -> str:
    """Normalize emails to ease comparisons inside Supabase payloads."""
    return (value or "").strip().lower()


def _auth_user_id(auth: Optional[Dict[str, Any]]) -> Optional[str]:
    return (auth or {}).get("user_id")


def _auth_email(auth: Optional[Dict[str, Any]]) -> str:
    return _normalize_email((auth or {}).get("email"))


def _is_authenticated(auth: Optional[Dict[str, Any]]) -> bool:
    return bool(auth and auth.get("isAuth") is True and _auth_user_id(auth))


def _merge_notice(text: str, notice: str) -> str:
    if not notice:
        return text
    base = text or ""
    if not base:
        return notice
    return f"{notice}\n\n{base}"


def _format_date(value: Any) -> str:
    """Render a birth date as dd/mm/aaaa."""
    if value in (None, ""):
        return "—"
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10]).strftime("%d/%m/%Y")
    except ValueError:
        return text or "—"


def _format_timestamp(value: Any) -> str:
    if value in (None, ""):
        return "—"
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return "—"
        try:
            if text.endswith("Z"):
                text = text.replace("Z", "+00:00")
            return datetime.fromisoformat(text).strftime("%d/%m/%Y %H:%M")
        except ValueError:
            return text
    return str(value)
