import unittest
from datetime import date

from gestao_alunos.forms import (
    FORM_CLOSED,
    FORM_CREATE,
    FORM_EDIT,
    NOME_MAX_LENGTH,
    AlunoFormState,
    FormStateError,
    FormValidationError,
    begin_submit,
    close_form,
    open_for_create,
    open_for_edit,
    parse_aluno_form,
    resolve_submit,
    validate_aluno_form,
)


VALID = {"nome": "Ana Souza", "email": "ana@escola.com.br", "data_nascimento": "2010-05-04"}


def _errors(**overrides):
    values = dict(VALID, **overrides)
    _, errors = validate_aluno_form(values["nome"], values["email"], values["data_nascimento"])
    return errors


class AlunoFormValidationTests(unittest.TestCase):
    def test_valid_input_is_normalized(self):
        form = parse_aluno_form("  Ana Souza  ", " ana@escola.com.br ", "2010-05-04")

        self.assertEqual(
            form.as_payload(),
            {"nome": "Ana Souza", "email": "ana@escola.com.br", "data_nascimento": date(2010, 5, 4)},
        )

    def test_brazilian_date_format_is_accepted(self):
        form = parse_aluno_form("Ana", "ana@escola.com.br", "04/05/2010")

        self.assertEqual(form.data_nascimento, date(2010, 5, 4))

    def test_nome_messages(self):
        self.assertEqual(_errors(nome=""), {"nome": "Nome é obrigatório"})
        self.assertEqual(_errors(nome="   "), {"nome": "Nome é obrigatório"})
        self.assertEqual(_errors(nome="a" * (NOME_MAX_LENGTH + 1)), {"nome": "Nome muito longo"})
        self.assertEqual(_errors(nome="a" * NOME_MAX_LENGTH), {})

    def test_email_messages(self):
        self.assertEqual(_errors(email=""), {"email": "Email é obrigatório"})
        self.assertEqual(_errors(email="not-an-email"), {"email": "Email inválido"})

    def test_data_nascimento_messages(self):
        self.assertEqual(_errors(data_nascimento=""), {"data_nascimento": "Data de nascimento é obrigatória"})
        self.assertEqual(_errors(data_nascimento=None), {"data_nascimento": "Data de nascimento é obrigatória"})
        self.assertEqual(_errors(data_nascimento="31/02/2010"), {"data_nascimento": "Data de nascimento inválida"})
        self.assertEqual(_errors(data_nascimento="ontem"), {"data_nascimento": "Data de nascimento inválida"})

    def test_all_fields_report_at_once(self):
        with self.assertRaises(FormValidationError) as ctx:
            parse_aluno_form("", "x", "")

        self.assertEqual(
            ctx.exception.errors,
            {
                "nome": "Nome é obrigatório",
                "email": "Email inválido",
                "data_nascimento": "Data de nascimento é obrigatória",
            },
        )


class AlunoFormStateTests(unittest.TestCase):
    def test_create_submit_success_closes_form(self):
        state = open_for_create()
        self.assertEqual(state.mode, FORM_CREATE)
        self.assertTrue(state.is_open)

        state = begin_submit(state)
        self.assertTrue(state.submitting)

        state = resolve_submit(state, success=True)
        self.assertEqual(state, AlunoFormState())
        self.assertEqual(state.mode, FORM_CLOSED)

    def test_failed_submit_returns_to_same_mode(self):
        state = begin_submit(open_for_edit("aluno-1"))

        state = resolve_submit(state, success=False)

        self.assertEqual(state, AlunoFormState(mode=FORM_EDIT, aluno_id="aluno-1"))
        self.assertTrue(state.is_edit)

    def test_second_submit_while_pending_is_refused(self):
        state = begin_submit(open_for_create())

        with self.assertRaises(FormStateError):
            begin_submit(state)
        with self.assertRaises(FormStateError):
            close_form(state)
        with self.assertRaises(FormStateError):
            open_for_edit("aluno-1", state)

    def test_invalid_transitions(self):
        with self.assertRaises(FormStateError):
            begin_submit(AlunoFormState())
        with self.assertRaises(FormStateError):
            open_for_edit(None)
        with self.assertRaises(FormStateError):
            resolve_submit(open_for_create(), success=True)

    def test_close_returns_to_closed(self):
        self.assertEqual(close_form(open_for_edit("aluno-1")), AlunoFormState())


if __name__ == "__main__":
    unittest.main()
