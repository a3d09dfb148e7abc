"""Authentication helpers and login/register views."""

from __future__ import annotations

from dataclasses import dataclass

import gradio as gr
from email_validator import EmailNotValidError, validate_email

from services.supabase.common import (
    SupabaseConfigurationError,
    SupabaseError,
    SupabaseInvalidCredentialsError,
    SupabaseUserExistsError,
)
from services.supabase.identity import authenticate_identity, register_identity

from gestao_alunos.config import (
    APP_TITLE,
    MIN_PASSWORD_LENGTH,
    SUPABASE_ANON_KEY,
    SUPABASE_PROFILES_TABLE,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)
from gestao_alunos.utils import _empty_auth_state, _is_authenticated, _normalize_email


WELCOME_HEADER = f"### 👋 Bem-vindo ao {APP_TITLE}! Faça login para continuar."


@dataclass
class AuthViews:
    header: gr.Markdown
    view_login: gr.Column
    auth_mode: gr.Radio
    email: gr.Textbox
    password: gr.Textbox
    confirm_password: gr.Textbox
    btn_login: gr.Button
    btn_register: gr.Button
    login_msg: gr.Markdown


def build_auth_views(*, blocks: gr.Blocks) -> AuthViews:
    """Create header and the login/register section."""
    header = gr.Markdown(WELCOME_HEADER, elem_id="hdr")

    with gr.Column(visible=True) as viewLogin:
        gr.Markdown("## 🔐 Login / Registro")
        authMode = gr.Radio(["Login", "Registrar"], value="Login", label="Modo de acesso")
        with gr.Row():
            email = gr.Textbox(label="E-mail", placeholder="ex: nome@dominio.com")
            password = gr.Textbox(label="Senha", type="password", placeholder="••••••••")
            confirmPassword = gr.Textbox(
                label="Confirmar senha",
                type="password",
                placeholder="Repita a senha",
                visible=False,
            )
        with gr.Row():
            btnLogin = gr.Button("Entrar", variant="primary", visible=True)
            btnRegister = gr.Button("Registrar", visible=False)
        loginMsg = gr.Markdown("")

    authMode.change(
        switch_auth_mode,
        inputs=authMode,
        outputs=[btnLogin, btnRegister, confirmPassword, loginMsg],
    )

    return AuthViews(
        header=header,
        view_login=viewLogin,
        auth_mode=authMode,
        email=email,
        password=password,
        confirm_password=confirmPassword,
        btn_login=btnLogin,
        btn_register=btnRegister,
        login_msg=loginMsg,
    )


def _route_home(auth):
    is_auth = _is_authenticated(auth)
    email = (auth or {}).get("email") or ""
    print(f"[NAV] _route_home: isAuth={is_auth} email='{email}'")
    if not is_auth:
        return (
            gr.update(value=WELCOME_HEADER, visible=True),
            gr.update(visible=True),
            gr.update(visible=False),
        )
    return (
        gr.update(visible=False),
        gr.update(visible=False),
        gr.update(visible=True),
    )


def switch_auth_mode(mode):
    is_register = str(mode or "").strip().lower() == "registrar"
    return (
        gr.update(visible=not is_register),
        gr.update(visible=is_register),
        gr.update(visible=is_register, value=""),
        gr.update(value=""),
    )


def _valid_email(value: str) -> bool:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def doRegister(email, password, confirm_password, authState):
    login_email = _normalize_email(email)
    pw = password or ""
    confirm_pw = confirm_password or ""
    print(f"[AUTH] doRegister: email='{login_email}'")
    if not login_email or not pw or not confirm_pw:
        return gr.update(value="Warning: Informe e-mail, senha e confirmação."), authState

    if not _valid_email(login_email):
        return gr.update(value="Warning: Email inválido."), authState

    if len(pw) < MIN_PASSWORD_LENGTH:
        return (
            gr.update(value=f"Warning: A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres."),
            authState,
        )

    if pw != confirm_pw:
        return gr.update(value="Warning: As senhas informadas não coincidem."), authState

    try:
        created = register_identity(
            SUPABASE_URL,
            SUPABASE_SERVICE_ROLE_KEY,
            email=login_email,
            password=pw,
            profiles_table=SUPABASE_PROFILES_TABLE,
        )
        print(f"[AUTH] doRegister: Supabase created -> {created.id}")
    except SupabaseConfigurationError:
        warn = "Warning: Configure SUPABASE_URL e SUPABASE_SERVICE_ROLE_KEY antes de registrar usuários."
        print("[AUTH] doRegister: configuração Supabase ausente")
        return gr.update(value=warn), authState
    except SupabaseUserExistsError:
        print(f"[AUTH] doRegister: usuário já existe -> {login_email}")
        return gr.update(value="Warning: Usuário já cadastrado."), authState
    except SupabaseError as err:
        print(f"[AUTH] doRegister: erro Supabase -> {err}")
        return gr.update(value=f"ERROR: Erro ao registrar: {err}"), authState

    return gr.update(value="OK: Usuário registrado! Faça login com suas credenciais."), authState


def doLogin(email, password, authState):
    login_email = _normalize_email(email)
    pw = password or ""
    if not login_email or not pw:
        return gr.update(value="Warning: Informe e-mail e senha."), authState

    try:
        identity = authenticate_identity(
            SUPABASE_URL,
            SUPABASE_ANON_KEY,
            email=login_email,
            password=pw,
            service_key=SUPABASE_SERVICE_ROLE_KEY,
            profiles_table=SUPABASE_PROFILES_TABLE,
        )
    except SupabaseConfigurationError:
        warn = "Warning: Configure SUPABASE_URL e SUPABASE_SERVICE_ROLE_KEY para efetuar login."
        return gr.update(value=warn), authState
    except SupabaseInvalidCredentialsError:
        print(f"[AUTH] doLogin: credenciais inválidas -> {login_email}")
        return gr.update(value="ERROR: Email ou senha incorretos."), authState
    except SupabaseError as err:
        print(f"[AUTH] doLogin: erro Supabase -> {err}")
        return gr.update(value=f"ERROR: Erro ao fazer login: {err}"), authState

    profile = identity.profile
    authState = {
        "isAuth": True,
        "user_id": identity.id,
        "email": identity.email,
        "profile_created_at": profile.created_at.isoformat() if profile and profile.created_at else None,
    }
    print(f"[AUTH] doLogin: sucesso -> {identity.email} ({identity.id})")
    return gr.update(value=f"OK: Bem-vindo, **{identity.email}**."), authState


def _doLogout():
    print("[AUTH] logout")
    return (
        _empty_auth_state(),
        gr.update(value=WELCOME_HEADER, visible=True),
        gr.update(visible=True),
        gr.update(visible=False),
        gr.update(value=""),
        gr.update(value=""),
    )


__all__ = [
    "AuthViews",
    "WELCOME_HEADER",
    "build_auth_views",
    "_route_home",
    "switch_auth_mode",
    "doRegister",
    "doLogin",
    "_doLogout",
]
