import unittest
from unittest.mock import MagicMock

from archive_api.authz import (
    Requirement,
    authorize,
    extract_token,
    optional_resolve,
    resolve_identity,
    resolve_profile,
)
from archive_api.backend import InMemoryBackendClient
from archive_api.errors import (
    AuthenticationError,
    BackendError,
    InvalidToken,
    MissingToken,
    ProfileNotFound,
)
from archive_api.schemas import ArchiveItem, Identity, Profile, Role


def _profile(user_id="u1", role=Role.USER):
    return Profile(id=user_id, name="Test", email=f"{user_id}@example.com", role=role)


def _item(owner="u1"):
    return ArchiveItem(id="a1", title="Doc", created_by=owner)


class ResolveIdentityTests(unittest.TestCase):
    def setUp(self):
        self.backend = InMemoryBackendClient()
        self.profile = self.backend.create_account("Ann", "ann@example.com", "pw")
        self.token = self.backend.issue_token(self.profile.id)

    def test_valid_token_resolves(self):
        identity = resolve_identity(f"Bearer {self.token}", self.backend)
        self.assertEqual(identity.id, self.profile.id)
        self.assertEqual(identity.email, "ann@example.com")
        self.assertLess(identity.issued_at, identity.expiry)

    def test_missing_header(self):
        for header in (None, "", "Basic abc", "Bearer ", "Bearer    "):
            with self.subTest(header=header):
                with self.assertRaises(MissingToken):
                    resolve_identity(header, self.backend)

    def test_rejected_token(self):
        with self.assertRaises(InvalidToken):
            resolve_identity("Bearer nope", self.backend)

    def test_backend_failure_is_authentication_error(self):
        backend = MagicMock()
        backend.get_identity.side_effect = BackendError("connection reset")
        with self.assertRaises(AuthenticationError) as ctx:
            resolve_identity("Bearer abc", backend)
        self.assertEqual(ctx.exception.message, "Authentication failed")

    def test_extract_token_strips_prefix(self):
        self.assertEqual(extract_token("Bearer abc.def"), "abc.def")

    def test_optional_resolve_never_raises(self):
        self.assertIsNone(optional_resolve(None, self.backend))
        self.assertIsNone(optional_resolve("Bearer nope", self.backend))
        identity = optional_resolve(f"Bearer {self.token}", self.backend)
        self.assertEqual(identity.id, self.profile.id)


class ResolveProfileTests(unittest.TestCase):
    def test_profile_found(self):
        backend = InMemoryBackendClient()
        profile = backend.create_account("Ann", "ann@example.com", "pw")
        resolved = resolve_profile(Identity(id=profile.id), backend)
        self.assertEqual(resolved, profile)

    def test_profile_missing(self):
        with self.assertRaises(ProfileNotFound):
            resolve_profile(Identity(id="ghost"), InMemoryBackendClient())


class AuthorizeTests(unittest.TestCase):
    def test_none_always_allows(self):
        self.assertTrue(authorize(None, Requirement.NONE).allowed)

    def test_authenticated_requires_profile(self):
        self.assertFalse(authorize(None, Requirement.AUTHENTICATED).allowed)
        self.assertTrue(authorize(_profile(), Requirement.AUTHENTICATED).allowed)

    def test_admin_role(self):
        denied = authorize(_profile(), Requirement.ADMIN)
        self.assertFalse(denied.allowed)
        self.assertEqual(denied.reason, "Admin access required")
        self.assertTrue(authorize(_profile(role=Role.ADMIN), Requirement.ADMIN).allowed)

    def test_owner_or_admin(self):
        item = _item(owner="u1")
        self.assertTrue(
            authorize(_profile("u1"), Requirement.OWNER_OR_ADMIN, item).allowed
        )
        self.assertFalse(
            authorize(_profile("u2"), Requirement.OWNER_OR_ADMIN, item).allowed
        )
        self.assertTrue(
            authorize(
                _profile("u2", role=Role.ADMIN), Requirement.OWNER_OR_ADMIN, item
            ).allowed
        )

    def test_owner_or_admin_without_resource_denies(self):
        decision = authorize(_profile(), Requirement.OWNER_OR_ADMIN)
        self.assertFalse(decision.allowed)


if __name__ == "__main__":
    unittest.main()
