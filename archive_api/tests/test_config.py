import os
import unittest
from unittest.mock import MagicMock, patch

from archive_api.backend import InMemoryBackendClient, SupabaseBackendClient
from archive_api.config import ConfigurationError, Settings
from archive_api.dependencies import build_clients

CLEAN_ENV = {
    "SUPABASE_URL": "",
    "SUPABASE_KEY": "",
    "SUPABASE_SERVICE_KEY": "",
    "USE_IN_MEMORY_BACKENDS": "false",
    "PORT": "8000",
}


class SettingsTests(unittest.TestCase):
    def test_missing_url_is_fatal(self):
        with patch.dict(os.environ, CLEAN_ENV):
            with self.assertRaises(ConfigurationError) as ctx:
                Settings(_env_file=None)
        self.assertIn("SUPABASE_URL", str(ctx.exception))

    def test_missing_anon_key_is_fatal(self):
        env = {**CLEAN_ENV, "SUPABASE_URL": "https://abc.supabase.co"}
        with patch.dict(os.environ, env):
            with self.assertRaises(ConfigurationError) as ctx:
                Settings(_env_file=None)
        self.assertIn("SUPABASE_KEY", str(ctx.exception))

    def test_defaults(self):
        env = {
            **CLEAN_ENV,
            "SUPABASE_URL": "https://abc.supabase.co",
            "SUPABASE_KEY": "anon",
        }
        with patch.dict(os.environ, env):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.port, 8000)
        self.assertEqual(settings.api_prefix, "/api")
        self.assertEqual(settings.storage_bucket, "archive-files")
        self.assertEqual(settings.cors_origins, ["*"])

    def test_port_from_environment(self):
        env = {
            **CLEAN_ENV,
            "SUPABASE_URL": "https://abc.supabase.co",
            "SUPABASE_KEY": "anon",
            "PORT": "9001",
        }
        with patch.dict(os.environ, env):
            self.assertEqual(Settings(_env_file=None).port, 9001)

    def test_in_memory_needs_no_backend(self):
        with patch.dict(os.environ, CLEAN_ENV):
            settings = Settings(_env_file=None, use_in_memory_backends=True)
        backend, _ = build_clients(settings)
        self.assertIsInstance(backend, InMemoryBackendClient)


class BuildClientsTests(unittest.TestCase):
    @patch("archive_api.dependencies.create_client")
    def test_service_key_falls_back_to_anon_key(self, mock_create):
        settings = Settings(
            _env_file=None,
            supabase_url="https://abc.supabase.co",
            supabase_key="anon",
            supabase_service_key=None,
            use_in_memory_backends=False,
        )
        with self.assertLogs("archive_api.dependencies", level="WARNING"):
            backend, _ = build_clients(settings)

        self.assertIsInstance(backend, SupabaseBackendClient)
        keys = [c.args[1] for c in mock_create.call_args_list]
        self.assertEqual(keys, ["anon", "anon"])

    @patch("archive_api.dependencies.create_client")
    def test_elevated_client_uses_service_key(self, mock_create):
        settings = Settings(
            _env_file=None,
            supabase_url="https://abc.supabase.co",
            supabase_key="anon",
            supabase_service_key="service",
            use_in_memory_backends=False,
        )
        build_clients(settings)
        keys = [c.args[1] for c in mock_create.call_args_list]
        self.assertEqual(keys, ["anon", "service"])

    @patch("archive_api.dependencies.create_client")
    def test_sign_in_gets_its_own_anon_client(self, mock_create):
        mock_create.side_effect = lambda *args, **kwargs: MagicMock()
        settings = Settings(
            _env_file=None,
            supabase_url="https://abc.supabase.co",
            supabase_key="anon",
            supabase_service_key="service",
            use_in_memory_backends=False,
        )
        backend, storage = build_clients(settings)

        first = backend.session_client_factory()
        second = backend.session_client_factory()
        self.assertIsNot(first, second)
        self.assertIsNot(first, backend.client)
        self.assertIsNot(first, backend.admin_client)
        self.assertIs(storage._client, backend.client)
        self.assertEqual(mock_create.call_args.args, ("https://abc.supabase.co", "anon"))


if __name__ == "__main__":
    unittest.main()
