import unittest
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

from services.supabase.alunos import create_aluno, delete_aluno, list_alunos, update_aluno
from services.supabase.common import (
    SupabaseAuthorizationError,
    SupabaseConfigurationError,
    SupabaseNotFoundError,
    SupabaseOperationError,
    SupabaseUniquenessError,
    _get_client,
    _handle_api_error,
    _parse_timestamp,
    reset_cached_client,
)

from tests.fake_backend import FakeSupabase, api_error


URL = "https://demo.supabase.co"
KEY = "service-role-key"
USER_A = "user-a"
USER_B = "user-b"


class AlunosServiceTests(unittest.TestCase):
    def setUp(self):
        self.backend = FakeSupabase()
        patcher = patch("services.supabase.alunos._get_client", return_value=self.backend)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _create(self, owner, nome, email, nascimento="2010-05-04"):
        return create_aluno(
            URL, KEY, owner_id=owner, nome=nome, email=email, data_nascimento=nascimento
        )

    def test_create_attributes_record_to_caller(self):
        record = self._create(USER_A, "  Ana Souza ", "ana@escola.com.br")

        self.assertEqual(record.created_by, USER_A)
        self.assertEqual(record.nome, "Ana Souza")
        self.assertEqual(record.data_nascimento, date(2010, 5, 4))
        self.assertEqual(self.backend.tables["alunos"][0]["created_by"], USER_A)
        self.assertEqual(self.backend.tables["alunos"][0]["data_nascimento"], "2010-05-04")

    def test_records_are_invisible_to_other_owners(self):
        record = self._create(USER_A, "Ana", "ana@escola.com.br")

        self.assertEqual(list_alunos(URL, KEY, owner_id=USER_B), [])
        self.assertEqual([a.id for a in list_alunos(URL, KEY, owner_id=USER_A)], [record.id])

    def test_other_owner_cannot_update_or_delete(self):
        record = self._create(USER_A, "Ana", "ana@escola.com.br")

        with self.assertRaises(SupabaseAuthorizationError):
            update_aluno(URL, KEY, owner_id=USER_B, aluno_id=record.id, nome="Invasor")
        with self.assertRaises(SupabaseAuthorizationError):
            delete_aluno(URL, KEY, owner_id=USER_B, aluno_id=record.id)

        stored = self.backend.tables["alunos"]
        self.assertEqual(len(stored), 1)
        self.assertEqual(stored[0]["nome"], "Ana")
        self.assertNotIn(("alunos", "update"), self.backend.calls)
        self.assertNotIn(("alunos", "delete"), self.backend.calls)

    def test_unauthenticated_caller_is_rejected_before_any_request(self):
        with self.assertRaises(SupabaseAuthorizationError):
            list_alunos(URL, KEY, owner_id=None)
        with self.assertRaises(SupabaseAuthorizationError):
            self._create("", "Ana", "ana@escola.com.br")

        self.assertEqual(self.backend.calls, [])

    def test_list_is_ordered_by_creation_desc(self):
        for nome in ("Primeiro", "Segundo", "Terceiro"):
            self._create(USER_A, nome, f"{nome.lower()}@escola.com.br")

        nomes = [a.nome for a in list_alunos(URL, KEY, owner_id=USER_A)]

        self.assertEqual(nomes, ["Terceiro", "Segundo", "Primeiro"])

    def test_duplicate_email_raises_uniqueness_error_and_keeps_list(self):
        self._create(USER_A, "Ana", "ana@escola.com.br")

        with self.assertRaises(SupabaseUniquenessError) as ctx:
            self._create(USER_B, "Outra Ana", "ana@escola.com.br")

        self.assertEqual(str(ctx.exception), "Já existe um aluno cadastrado com este email.")
        self.assertEqual(len(list_alunos(URL, KEY, owner_id=USER_A)), 1)
        self.assertEqual(list_alunos(URL, KEY, owner_id=USER_B), [])

    def test_update_to_taken_email_raises_uniqueness_error(self):
        self._create(USER_A, "Ana", "ana@escola.com.br")
        bruno = self._create(USER_A, "Bruno", "bruno@escola.com.br")

        with self.assertRaises(SupabaseUniquenessError):
            update_aluno(URL, KEY, owner_id=USER_A, aluno_id=bruno.id, email="ana@escola.com.br")

        emails = sorted(row["email"] for row in self.backend.tables["alunos"])
        self.assertEqual(emails, ["ana@escola.com.br", "bruno@escola.com.br"])

    def test_update_ignores_ownership_and_timestamp_fields(self):
        record = self._create(USER_A, "Ana", "ana@escola.com.br")

        updated = update_aluno(
            URL,
            KEY,
            owner_id=USER_A,
            aluno_id=record.id,
            nome="Ana Lima",
            created_by=USER_B,
            updated_at="2000-01-01T00:00:00+00:00",
        )

        self.assertEqual(updated.nome, "Ana Lima")
        self.assertEqual(updated.created_by, USER_A)
        self.assertEqual(updated.created_at, record.created_at)
        self.assertGreater(updated.updated_at, record.updated_at)

    def test_update_advances_updated_at_strictly(self):
        record = self._create(USER_A, "Ana", "ana@escola.com.br")
        future = datetime(2999, 1, 1, tzinfo=timezone.utc)
        self.backend.tables["alunos"][0]["updated_at"] = future.isoformat()

        first = update_aluno(URL, KEY, owner_id=USER_A, aluno_id=record.id, nome="Ana B")
        second = update_aluno(URL, KEY, owner_id=USER_A, aluno_id=record.id, nome="Ana C")

        self.assertEqual(first.updated_at, future + timedelta(microseconds=1))
        self.assertGreater(second.updated_at, first.updated_at)
        self.assertEqual(
            _parse_timestamp(self.backend.tables["alunos"][0]["updated_at"]), second.updated_at
        )

    def test_update_without_editable_fields_returns_current_record(self):
        record = self._create(USER_A, "Ana", "ana@escola.com.br")

        same = update_aluno(URL, KEY, owner_id=USER_A, aluno_id=record.id, created_by=USER_B)

        self.assertEqual(same, record)
        self.assertNotIn(("alunos", "update"), self.backend.calls)

    def test_update_missing_record_reports_not_found(self):
        with self.assertRaises(SupabaseNotFoundError):
            update_aluno(URL, KEY, owner_id=USER_A, aluno_id="missing", nome="X")

    def test_delete_removes_record_and_retry_reports_not_found(self):
        record = self._create(USER_A, "Ana", "ana@escola.com.br")

        delete_aluno(URL, KEY, owner_id=USER_A, aluno_id=record.id)

        self.assertEqual(list_alunos(URL, KEY, owner_id=USER_A), [])
        with self.assertRaises(SupabaseNotFoundError):
            delete_aluno(URL, KEY, owner_id=USER_A, aluno_id=record.id)

    def test_row_level_security_rejection_maps_to_authorization_error(self):
        self.backend.fail_on[("alunos", "select")] = api_error(
            "42501", 'new row violates row-level security policy for table "alunos"'
        )

        with self.assertRaises(SupabaseAuthorizationError):
            list_alunos(URL, KEY, owner_id=USER_A)

    def test_transport_failure_maps_to_operation_error(self):
        self.backend.fail_on[("alunos", "insert")] = ConnectionError("timeout")

        with self.assertRaises(SupabaseOperationError) as ctx:
            self._create(USER_A, "Ana", "ana@escola.com.br")

        self.assertIn("timeout", str(ctx.exception))
        self.assertEqual(self.backend.tables["alunos"], [])


class ApiErrorMappingTests(unittest.TestCase):
    def test_unique_violation_code_maps_to_uniqueness(self):
        error = _handle_api_error(api_error("23505", "duplicate key value"), duplicate_message="dup")

        self.assertIsInstance(error, SupabaseUniquenessError)
        self.assertEqual(str(error), "dup")

    def test_duplicate_text_with_other_code_is_not_uniqueness(self):
        error = _handle_api_error(api_error("P0001", "duplicate entry detected by trigger"))

        self.assertNotIsInstance(error, SupabaseUniquenessError)
        self.assertIsInstance(error, SupabaseOperationError)

    def test_duplicate_text_without_code_falls_back_to_uniqueness(self):
        error = _handle_api_error(api_error(None, "Key (email) already exists."))

        self.assertIsInstance(error, SupabaseUniquenessError)


class ClientConfigurationTests(unittest.TestCase):
    def setUp(self):
        reset_cached_client()
        self.addCleanup(reset_cached_client)

    def test_placeholder_credentials_are_rejected(self):
        with self.assertRaises(SupabaseConfigurationError):
            _get_client("https://YOUR_PROJECT.supabase.co", "YOUR_SUPABASE_SERVICE_ROLE_KEY")


if __name__ == "__main__":
    unittest.main()
