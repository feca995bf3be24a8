"""Shared fixtures for the API tests."""

import unittest

from fastapi.testclient import TestClient

from archive_api.app import create_app
from archive_api.backend import InMemoryBackendClient
from archive_api.config import Settings
from archive_api.schemas import Role
from archive_api.storage import InMemoryStorageClient


class ApiTestCase(unittest.TestCase):
    """Builds an app over fresh in-memory clients for every test."""

    def setUp(self):
        self.backend = InMemoryBackendClient()
        self.storage = InMemoryStorageClient()
        self.app = create_app(
            Settings(use_in_memory_backends=True),
            backend=self.backend,
            storage=self.storage,
        )
        self.client = TestClient(self.app)

    def make_user(self, name="Alice", email=None, role=Role.USER):
        email = email or f"{name.lower()}@example.com"
        profile = self.backend.create_account(name, email, "secret")
        if role is not Role.USER:
            self.backend.update_profile(profile.id, {"role": role.value})
        token = self.backend.issue_token(profile.id)
        return profile.id, {"Authorization": f"Bearer {token}"}

    def make_archive(self, owner_id, title="Report", **fields):
        data = {"title": title, "created_by": owner_id, "tags": []}
        data.update(fields)
        return self.backend.create_archive(data)
