"""Cadastro de alunos: listagem, busca, formulário e exclusão."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import gradio as gr

from services.supabase.alunos import (
    AlunoRecord,
    create_aluno,
    delete_aluno,
    list_alunos,
    update_aluno,
)
from services.supabase.common import (
    SupabaseAuthorizationError,
    SupabaseConfigurationError,
    SupabaseError,
    SupabaseNotFoundError,
    SupabaseUniquenessError,
)

from gestao_alunos.config import (
    APP_TITLE,
    SUPABASE_ALUNOS_TABLE,
    SUPABASE_SERVICE_ROLE_KEY,
    SUPABASE_URL,
)
from gestao_alunos.forms import (
    FORM_FIELDS,
    AlunoFormState,
    FormStateError,
    begin_submit,
    close_form,
    open_for_create,
    open_for_edit,
    resolve_submit,
    validate_aluno_form,
)
from gestao_alunos.utils import (
    _auth_email,
    _auth_user_id,
    _format_date,
    _format_timestamp,
    _is_authenticated,
    _merge_notice,
)


ALUNOS_TABLE_HEADERS: Tuple[str, ...] = (
    "Nome",
    "Email",
    "Nascimento",
    "Cadastrado em",
)

EMPTY_LIST_MESSAGE = "Info: Nenhum aluno cadastrado ainda."
EMPTY_SEARCH_MESSAGE = "Info: Nenhum aluno encontrado com esse termo."
LOGIN_REQUIRED_MESSAGE = "Warning: Faça login para gerenciar seus alunos."


@dataclass
class AlunosView:
    container: gr.Column
    header: gr.Markdown
    btn_logout: gr.Button
    search: gr.Textbox
    btn_refresh: gr.Button
    btn_new: gr.Button
    notice: gr.Markdown
    table: gr.Dataframe
    selector: gr.Dropdown
    btn_edit: gr.Button
    btn_delete: gr.Button
    confirm_row: gr.Column
    confirm_md: gr.Markdown
    btn_confirm_delete: gr.Button
    btn_cancel_delete: gr.Button
    form_container: gr.Column
    form_title: gr.Markdown
    nome: gr.Textbox
    email: gr.Textbox
    data_nascimento: gr.Textbox
    nome_error: gr.Markdown
    email_error: gr.Markdown
    data_error: gr.Markdown
    btn_cancel_form: gr.Button
    btn_save: gr.Button
    alunos_state: gr.State
    form_state: gr.State
    pending_delete: gr.State


# Listing ---------------------------------------------------------------


def filter_alunos(alunos: Optional[Sequence[AlunoRecord]], search_term: Optional[str]) -> List[AlunoRecord]:
    """Case-insensitive substring match over name or email."""

    entries = list(alunos or [])
    term = (search_term or "").strip().lower()
    if not term:
        return entries
    return [
        aluno
        for aluno in entries
        if term in (aluno.nome or "").lower() or term in (aluno.email or "").lower()
    ]


def _alunos_table_data(entries: Sequence[AlunoRecord]) -> List[List[str]]:
    return [
        [
            aluno.nome or "—",
            aluno.email or "—",
            _format_date(aluno.data_nascimento),
            _format_timestamp(aluno.created_at),
        ]
        for aluno in entries
    ]


def _dropdown_label(aluno: AlunoRecord) -> str:
    return f"{aluno.nome} — {aluno.email}"


def prepare_alunos_listing(
    alunos: Optional[Sequence[AlunoRecord]],
    search_term: Optional[str],
    current_value: Optional[str] = None,
) -> Tuple[Any, List[AlunoRecord], Any, str]:
    """Filter the in-memory list and build table, selector and message."""

    filtered = filter_alunos(alunos, search_term)
    choices = [(_dropdown_label(aluno), aluno.id) for aluno in filtered if aluno.id]
    valid_ids = [value for _, value in choices]
    if current_value in valid_ids:
        selected = current_value
    else:
        selected = valid_ids[0] if valid_ids else None

    if filtered:
        message = f"Info: {len(filtered)} aluno(s) exibido(s)."
    elif (search_term or "").strip():
        message = EMPTY_SEARCH_MESSAGE
    else:
        message = EMPTY_LIST_MESSAGE

    return (
        gr.update(value=_alunos_table_data(filtered)),
        filtered,
        gr.update(choices=choices, value=selected),
        message,
    )


def _find_aluno(alunos: Optional[Sequence[AlunoRecord]], aluno_id: Optional[str]) -> Optional[AlunoRecord]:
    return next((a for a in (alunos or []) if a.id == aluno_id), None)


def _describe_failure(action: str, err: SupabaseError) -> str:
    if isinstance(err, SupabaseConfigurationError):
        return f"Warning: Configure SUPABASE_URL e SUPABASE_SERVICE_ROLE_KEY para {action}."
    if isinstance(err, SupabaseAuthorizationError):
        return f"⛔ Erro ao {action}: {err}"
    if isinstance(err, (SupabaseUniquenessError, SupabaseNotFoundError)):
        return f"Warning: Erro ao {action}: {err}"
    return f"ERROR: Erro ao {action}: {err}"


def _fetch_alunos(auth) -> List[AlunoRecord]:
    return list_alunos(
        SUPABASE_URL,
        SUPABASE_SERVICE_ROLE_KEY,
        owner_id=_auth_user_id(auth),
        table=SUPABASE_ALUNOS_TABLE,
    )


def _reload_alunos(auth, previous, search_term, current_value=None):
    """Full re-fetch; on failure the previous list is kept."""

    try:
        alunos = _fetch_alunos(auth)
        failure = ""
    except SupabaseError as err:
        print(f"[ALUNOS] recarga falhou -> {err}")
        alunos = list(previous or [])
        failure = _describe_failure("carregar alunos", err)

    table_update, _, dropdown_update, message = prepare_alunos_listing(
        alunos, search_term, current_value
    )
    return alunos, table_update, dropdown_update, failure or message


def alunos_header(auth):
    email = _auth_email(auth)
    subtitle = f"\n\n{email}" if email else ""
    return gr.update(value=f"## 🎓 {APP_TITLE}{subtitle}")


def alunos_refresh(auth, search_term, alunos=None):
    if not _is_authenticated(auth):
        return (
            [],
            gr.update(value=[]),
            gr.update(choices=[], value=None),
            LOGIN_REQUIRED_MESSAGE,
        )
    return _reload_alunos(auth, alunos, search_term)


def alunos_search(search_term, alunos, current_value=None):
    table_update, _, dropdown_update, message = prepare_alunos_listing(
        alunos, search_term, current_value
    )
    return table_update, dropdown_update, message


# Form ------------------------------------------------------------------


def _no_errors():
    return gr.update(value=""), gr.update(value=""), gr.update(value="")


def _field_errors(errors: Dict[str, str]):
    return tuple(
        gr.update(value=f"⚠️ {errors[field]}" if errors.get(field) else "")
        for field in FORM_FIELDS
    )


def _save_label(form_state: Optional[AlunoFormState]) -> str:
    return "Atualizar" if form_state and form_state.is_edit else "Criar"


def open_create_form(form_state):
    try:
        state = open_for_create(form_state)
    except FormStateError as err:
        return (form_state, gr.update(), gr.update(), gr.update(), gr.update(), gr.update(),
                *_no_errors(), gr.update(), f"Warning: {err}")
    return (
        state,
        gr.update(visible=True),
        gr.update(value="### Novo Aluno"),
        gr.update(value=""),
        gr.update(value=""),
        gr.update(value=""),
        *_no_errors(),
        gr.update(value=_save_label(state), interactive=True),
        "",
    )


def open_edit_form(aluno_id, alunos, form_state):
    aluno = _find_aluno(alunos, aluno_id)
    try:
        if aluno is None:
            raise FormStateError("Selecione um aluno para editar.")
        state = open_for_edit(aluno.id, form_state)
    except FormStateError as err:
        return (form_state, gr.update(), gr.update(), gr.update(), gr.update(), gr.update(),
                *_no_errors(), gr.update(), f"Warning: {err}")
    birth = aluno.data_nascimento.isoformat() if aluno.data_nascimento else ""
    return (
        state,
        gr.update(visible=True),
        gr.update(value="### Editar Aluno"),
        gr.update(value=aluno.nome),
        gr.update(value=aluno.email),
        gr.update(value=birth),
        *_no_errors(),
        gr.update(value=_save_label(state), interactive=True),
        "",
    )


def close_aluno_form(form_state):
    try:
        state = close_form(form_state)
    except FormStateError as err:
        return form_state, gr.update(), *_no_errors(), f"Warning: {err}"
    return state, gr.update(visible=False), *_no_errors(), ""


def lock_aluno_form(form_state):
    """First step of a submission: mark it in flight and disable the button.

    A refused submission raises ``gr.Error`` so the ``.success`` chain that
    follows (the request itself) never runs for that click.
    """

    try:
        state = begin_submit(form_state)
    except FormStateError as err:
        print(f"[ALUNOS] envio ignorado -> {err}")
        raise gr.Error(str(err)) from err
    return state, gr.update(value="Salvando...", interactive=False)


def unlock_aluno_form(form_state):
    return gr.update(value=_save_label(form_state), interactive=True)


def submit_aluno_form(nome, email, data_nascimento, form_state, auth, alunos, search_term):
    """Validate and send the form; re-fetch the list on success.

    Returns (form_state, alunos, form visibility, 3 field errors, table,
    selector, notice).
    """

    if form_state is None or not form_state.submitting:
        return (form_state, alunos, gr.update(), *(gr.update(),) * 3,
                gr.update(), gr.update(), gr.update())

    form, errors = validate_aluno_form(nome, email, data_nascimento)
    if errors:
        state = resolve_submit(form_state, success=False)
        return (state, alunos, gr.update(visible=True), *_field_errors(errors),
                gr.update(), gr.update(), "Warning: Corrija os campos destacados.")

    if not _is_authenticated(auth):
        state = resolve_submit(form_state, success=False)
        return (state, alunos, gr.update(visible=True), *_no_errors(),
                gr.update(), gr.update(), LOGIN_REQUIRED_MESSAGE)

    owner_id = _auth_user_id(auth)
    is_edit = form_state.is_edit
    action = "atualizar aluno" if is_edit else "criar aluno"
    try:
        if is_edit:
            saved = update_aluno(
                SUPABASE_URL,
                SUPABASE_SERVICE_ROLE_KEY,
                owner_id=owner_id,
                aluno_id=form_state.aluno_id,
                table=SUPABASE_ALUNOS_TABLE,
                **form.as_payload(),
            )
        else:
            saved = create_aluno(
                SUPABASE_URL,
                SUPABASE_SERVICE_ROLE_KEY,
                owner_id=owner_id,
                table=SUPABASE_ALUNOS_TABLE,
                **form.as_payload(),
            )
    except SupabaseError as err:
        print(f"[ALUNOS] {action} falhou -> {err}")
        state = resolve_submit(form_state, success=False)
        return (state, alunos, gr.update(visible=True), *_no_errors(),
                gr.update(), gr.update(), _describe_failure(action, err))

    state = resolve_submit(form_state, success=True)
    refreshed, table_update, dropdown_update, listing_msg = _reload_alunos(
        auth, alunos, search_term, current_value=saved.id
    )
    if is_edit:
        notice = "OK: Aluno atualizado! As informações foram atualizadas com sucesso."
    else:
        notice = "OK: Aluno criado! O aluno foi cadastrado com sucesso."
    if listing_msg.startswith(("ERROR", "Warning", "⛔")):
        notice = _merge_notice(listing_msg, notice)
    return (state, refreshed, gr.update(visible=False), *_no_errors(),
            table_update, dropdown_update, notice)


# Delete ----------------------------------------------------------------


def request_delete(aluno_id, alunos):
    aluno = _find_aluno(alunos, aluno_id)
    if aluno is None:
        return None, gr.update(visible=False), gr.update(value=""), "Warning: Selecione um aluno para excluir."
    prompt = (
        "### Confirmar exclusão\n\n"
        f"Tem certeza que deseja excluir **{aluno.nome}**? Esta ação não pode ser desfeita."
    )
    return aluno.id, gr.update(visible=True), gr.update(value=prompt), ""


def cancel_delete():
    return None, gr.update(visible=False)


def confirm_delete(pending_id, auth, alunos, search_term):
    """Returns (pending, confirm visibility, alunos, table, selector, notice)."""

    if not pending_id:
        return (None, gr.update(visible=False), alunos, gr.update(), gr.update(),
                "Warning: Selecione um aluno para excluir.")
    if not _is_authenticated(auth):
        return (None, gr.update(visible=False), alunos, gr.update(), gr.update(),
                LOGIN_REQUIRED_MESSAGE)

    try:
        delete_aluno(
            SUPABASE_URL,
            SUPABASE_SERVICE_ROLE_KEY,
            owner_id=_auth_user_id(auth),
            aluno_id=pending_id,
            table=SUPABASE_ALUNOS_TABLE,
        )
    except SupabaseError as err:
        print(f"[ALUNOS] exclusão falhou -> {err}")
        return (None, gr.update(visible=False), alunos, gr.update(), gr.update(),
                _describe_failure("excluir aluno", err))

    refreshed, table_update, dropdown_update, listing_msg = _reload_alunos(
        auth, alunos, search_term
    )
    notice = "OK: Aluno excluído. O aluno foi removido com sucesso."
    if listing_msg.startswith(("ERROR", "Warning", "⛔")):
        notice = _merge_notice(listing_msg, notice)
    return (None, gr.update(visible=False), refreshed, table_update, dropdown_update, notice)


def alunos_cleanup():
    """Reset every roster output on logout."""

    return (
        [],
        AlunoFormState(),
        None,
        gr.update(value=[]),
        gr.update(choices=[], value=None),
        gr.update(value=""),
        gr.update(value=""),
        gr.update(visible=False),
        gr.update(visible=False),
    )


# Layout ----------------------------------------------------------------


def build_alunos_view(*, blocks: gr.Blocks, auth_state: gr.State) -> AlunosView:
    alunos_state = gr.State([])
    form_state = gr.State(AlunoFormState())
    pending_delete = gr.State(None)

    with gr.Column(visible=False) as container:
        with gr.Row():
            header = gr.Markdown(f"## 🎓 {APP_TITLE}")
            btn_logout = gr.Button("Sair", variant="secondary", scale=0)

        gr.Markdown("### Alunos Cadastrados\nGerencie os alunos da sua instituição")
        with gr.Row():
            search = gr.Textbox(
                label="Buscar",
                placeholder="Buscar por nome ou email...",
                scale=4,
            )
            btn_refresh = gr.Button("Recarregar", scale=1)
            btn_new = gr.Button("➕ Adicionar Aluno", variant="primary", scale=1)
        notice = gr.Markdown("")
        table = gr.Dataframe(
            headers=list(ALUNOS_TABLE_HEADERS),
            value=[],
            interactive=False,
            wrap=True,
        )
        with gr.Row():
            selector = gr.Dropdown(
                choices=[], value=None, label="Selecione o aluno", interactive=True, scale=3
            )
            btn_edit = gr.Button("✏️ Editar", scale=1)
            btn_delete = gr.Button("🗑️ Excluir", variant="stop", scale=1)

        with gr.Column(visible=False) as confirm_row:
            confirm_md = gr.Markdown("")
            with gr.Row():
                btn_cancel_delete = gr.Button("Cancelar")
                btn_confirm_delete = gr.Button("Excluir", variant="stop")

        with gr.Column(visible=False) as form_container:
            form_title = gr.Markdown("### Novo Aluno")
            nome = gr.Textbox(label="Nome Completo", placeholder="Digite o nome completo")
            nome_error = gr.Markdown("")
            email = gr.Textbox(label="Email", placeholder="aluno@email.com")
            email_error = gr.Markdown("")
            data_nascimento = gr.Textbox(
                label="Data de Nascimento", placeholder="DD/MM/AAAA ou AAAA-MM-DD"
            )
            data_error = gr.Markdown("")
            with gr.Row():
                btn_cancel_form = gr.Button("Cancelar")
                btn_save = gr.Button("Criar", variant="primary")

    form_outputs = [
        form_state,
        form_container,
        form_title,
        nome,
        email,
        data_nascimento,
        nome_error,
        email_error,
        data_error,
        btn_save,
        notice,
    ]

    btn_refresh.click(
        alunos_refresh,
        inputs=[auth_state, search, alunos_state],
        outputs=[alunos_state, table, selector, notice],
    )
    search.change(
        alunos_search,
        inputs=[search, alunos_state, selector],
        outputs=[table, selector, notice],
    )
    btn_new.click(open_create_form, inputs=form_state, outputs=form_outputs)
    btn_edit.click(
        open_edit_form,
        inputs=[selector, alunos_state, form_state],
        outputs=form_outputs,
    )
    btn_cancel_form.click(
        close_aluno_form,
        inputs=form_state,
        outputs=[form_state, form_container, nome_error, email_error, data_error, notice],
    )

    btn_save.click(
        lock_aluno_form,
        inputs=form_state,
        outputs=[form_state, btn_save],
    ).success(
        submit_aluno_form,
        inputs=[nome, email, data_nascimento, form_state, auth_state, alunos_state, search],
        outputs=[
            form_state,
            alunos_state,
            form_container,
            nome_error,
            email_error,
            data_error,
            table,
            selector,
            notice,
        ],
    ).then(
        unlock_aluno_form,
        inputs=form_state,
        outputs=btn_save,
    )

    btn_delete.click(
        request_delete,
        inputs=[selector, alunos_state],
        outputs=[pending_delete, confirm_row, confirm_md, notice],
    )
    btn_cancel_delete.click(cancel_delete, outputs=[pending_delete, confirm_row])
    btn_confirm_delete.click(
        confirm_delete,
        inputs=[pending_delete, auth_state, alunos_state, search],
        outputs=[pending_delete, confirm_row, alunos_state, table, selector, notice],
    )

    return AlunosView(
        container=container,
        header=header,
        btn_logout=btn_logout,
        search=search,
        btn_refresh=btn_refresh,
        btn_new=btn_new,
        notice=notice,
        table=table,
        selector=selector,
        btn_edit=btn_edit,
        btn_delete=btn_delete,
        confirm_row=confirm_row,
        confirm_md=confirm_md,
        btn_confirm_delete=btn_confirm_delete,
        btn_cancel_delete=btn_cancel_delete,
        form_container=form_container,
        form_title=form_title,
        nome=nome,
        email=email,
        data_nascimento=data_nascimento,
        nome_error=nome_error,
        email_error=email_error,
        data_error=data_error,
        btn_cancel_form=btn_cancel_form,
        btn_save=btn_save,
        alunos_state=alunos_state,
        form_state=form_state,
        pending_delete=pending_delete,
    )


__all__ = [
    "AlunosView",
    "ALUNOS_TABLE_HEADERS",
    "build_alunos_view",
    "filter_alunos",
    "prepare_alunos_listing",
    "alunos_header",
    "alunos_refresh",
    "alunos_search",
    "open_create_form",
    "open_edit_form",
    "close_aluno_form",
    "lock_aluno_form",
    "unlock_aluno_form",
    "submit_aluno_form",
    "request_delete",
    "cancel_delete",
    "confirm_delete",
    "alunos_cleanup",
]
