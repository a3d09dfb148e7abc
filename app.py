"""Application entrypoint assembling Gradio layouts from modular pages."""

from __future__ import annotations

import gradio as gr

from gestao_alunos.config import APP_SERVER_NAME, APP_SERVER_PORT, APP_TITLE
from gestao_alunos.pages.alunos import (
    AlunosView,
    alunos_cleanup,
    alunos_header,
    alunos_refresh,
    build_alunos_view,
)
from gestao_alunos.pages.auth import (
    AuthViews,
    _doLogout,
    _route_home,
    build_auth_views,
    doLogin,
    doRegister,
)
from gestao_alunos.utils import _empty_auth_state


APP_CSS = """
#hdr h3 {
    margin-bottom: 0.25rem;
}
"""


def build_app() -> gr.Blocks:
    with gr.Blocks(title=APP_TITLE, theme=gr.themes.Default(), fill_height=True, css=APP_CSS) as demo:
        auth_state = gr.State(_empty_auth_state())

        auth_views: AuthViews = build_auth_views(blocks=demo)
        alunos_view: AlunosView = build_alunos_view(blocks=demo, auth_state=auth_state)

        def _after_auth(event):
            return event.then(
                _route_home,
                inputs=auth_state,
                outputs=[auth_views.header, auth_views.view_login, alunos_view.container],
            ).then(
                alunos_header,
                inputs=auth_state,
                outputs=alunos_view.header,
            ).then(
                alunos_refresh,
                inputs=[auth_state, alunos_view.search, alunos_view.alunos_state],
                outputs=[
                    alunos_view.alunos_state,
                    alunos_view.table,
                    alunos_view.selector,
                    alunos_view.notice,
                ],
            )

        # Authentication flows ---------------------------------------------
        _after_auth(
            auth_views.btn_login.click(
                doLogin,
                inputs=[auth_views.email, auth_views.password, auth_state],
                outputs=[auth_views.login_msg, auth_state],
            )
        )

        auth_views.btn_register.click(
            doRegister,
            inputs=[
                auth_views.email,
                auth_views.password,
                auth_views.confirm_password,
                auth_state,
            ],
            outputs=[auth_views.login_msg, auth_state],
        )

        # Logout handling ---------------------------------------------------
        alunos_view.btn_logout.click(
            _doLogout,
            outputs=[
                auth_state,
                auth_views.header,
                auth_views.view_login,
                alunos_view.container,
                auth_views.password,
                auth_views.login_msg,
            ],
        ).then(
            alunos_cleanup,
            outputs=[
                alunos_view.alunos_state,
                alunos_view.form_state,
                alunos_view.pending_delete,
                alunos_view.table,
                alunos_view.selector,
                alunos_view.notice,
                alunos_view.search,
                alunos_view.form_container,
                alunos_view.confirm_row,
            ],
        )

        demo.queue()

    return demo


def launch():
    app = build_app()
    app.launch(server_name=APP_SERVER_NAME, server_port=APP_SERVER_PORT)


if __name__ == "__main__":
    launch()
