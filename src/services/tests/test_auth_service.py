"""Unit tests for AuthService against the in-memory user repository."""

import threading
import unittest
from dataclasses import asdict

from adapter.fake.user_repository import FakeUserRepository
from domain.model.errors import AuthenticationError, DuplicateError, OAuthError, ValidationError
from domain.model.user import ExternalIdentity, User
from services.auth_service import (
    ACCOUNT_DEACTIVATED,
    EMAIL_TAKEN_OAUTH,
    INVALID_CREDENTIALS,
    AuthService,
)
from services.passwords import verify_password
from services.token_service import TokenService
from utils.config import Settings

TEST_SETTINGS = Settings(
    jwt_secret='test-access-secret',
    jwt_refresh_secret='test-refresh-secret',
    bcrypt_rounds=4,
)

PASSWORD = 'secret1'


def _github_identity(provider_id='gh-42', email='octo@example.com') -> ExternalIdentity:
    return ExternalIdentity(
        provider='github',
        provider_id=provider_id,
        email=email,
        first_name='Octo',
        last_name='Cat',
        avatar='https://avatars.example.com/octo.png',
    )


class AuthServiceTestCase(unittest.TestCase):

    def setUp(self):
        self.repo = FakeUserRepository()
        self.tokens = TokenService(TEST_SETTINGS)
        self.service = AuthService(self.repo, self.tokens, TEST_SETTINGS)

    def _register(self, email='alice@example.com', password=PASSWORD):
        return self.service.register(email, password, 'Alice', 'Smith')


class TestRegister(AuthServiceTestCase):

    def test_register_creates_local_user(self):
        result = self._register()

        stored = self.repo.get_by_email('alice@example.com')
        self.assertIsNotNone(stored)
        self.assertEqual(stored.provider, 'local')
        self.assertEqual(stored.role, 'user')
        self.assertTrue(stored.is_active)
        self.assertFalse(stored.is_email_verified)
        self.assertTrue(verify_password(PASSWORD, stored.password_hash))
        self.assertEqual(result.user.id, stored.id)

    def test_register_result_never_contains_secrets(self):
        result = self._register()

        user_fields = asdict(result.user)
        self.assertNotIn('password_hash', user_fields)
        self.assertNotIn('refresh_token', user_fields)
        self.assertNotIn(PASSWORD, str(user_fields))

    def test_register_persists_refresh_token(self):
        result = self._register()

        stored = self.repo.get_by_id(result.user.id)
        self.assertEqual(stored.refresh_token, result.refresh_token)
        self.assertIsNotNone(stored.last_login_at)

    def test_register_duplicate_email_raises(self):
        self._register()

        with self.assertRaises(DuplicateError):
            self._register()
        self.assertEqual(len(self.repo.store), 1)

    def test_register_overlong_password_raises(self):
        with self.assertRaises(ValidationError):
            self._register(password='x' * 73)
        self.assertEqual(len(self.repo.store), 0)

    def test_concurrent_registration_exactly_one_wins(self):
        outcomes = []
        barrier = threading.Barrier(4)

        def attempt():
            barrier.wait()
            try:
                self._register()
                outcomes.append('ok')
            except DuplicateError:
                outcomes.append('conflict')

        threads = [threading.Thread(target=attempt) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(outcomes.count('ok'), 1)
        self.assertEqual(outcomes.count('conflict'), 3)
        self.assertEqual(len(self.repo.store), 1)

    def test_store_level_duplicate_maps_to_conflict(self):
        """Existence check passes but the store rejects the insert."""
        self._register()
        self.repo.get_by_email = lambda email: None

        with self.assertRaises(DuplicateError):
            self._register()


class TestLogin(AuthServiceTestCase):

    def test_login_success_issues_new_pair(self):
        registered = self._register()

        result = self.service.login('alice@example.com', PASSWORD)

        self.assertNotEqual(result.refresh_token, registered.refresh_token)
        self.assertNotEqual(result.access_token, registered.access_token)
        stored = self.repo.get_by_id(result.user.id)
        self.assertEqual(stored.refresh_token, result.refresh_token)

    def test_login_updates_last_login(self):
        self._register()
        before = self.repo.get_by_email('alice@example.com').last_login_at

        result = self.service.login('alice@example.com', PASSWORD)

        self.assertIsNotNone(result.user.last_login_at)
        self.assertGreaterEqual(result.user.last_login_at, before)

    def test_wrong_password_unknown_email_and_oauth_only_share_message(self):
        self._register()
        self.service.github_login(_github_identity())

        messages = []
        for email, password in [
            ('alice@example.com', 'Wrong1234'),
            ('nobody@example.com', PASSWORD),
            ('octo@example.com', PASSWORD),
        ]:
            with self.assertRaises(AuthenticationError) as ctx:
                self.service.login(email, password)
            messages.append(str(ctx.exception))

        self.assertEqual(messages, [INVALID_CREDENTIALS] * 3)

    def test_login_inactive_account_rejected(self):
        registered = self._register()
        self.repo.update(registered.user.id, {'is_active': False})

        with self.assertRaises(AuthenticationError) as ctx:
            self.service.login('alice@example.com', PASSWORD)
        self.assertEqual(str(ctx.exception), ACCOUNT_DEACTIVATED)


class TestValidateCredentials(AuthServiceTestCase):

    def test_valid_credentials_return_user_without_issuing_tokens(self):
        registered = self._register()
        token_before = self.repo.get_by_id(registered.user.id).refresh_token

        user = self.service.validate_credentials('alice@example.com', PASSWORD)

        self.assertIsInstance(user, User)
        self.assertEqual(user.id, registered.user.id)
        self.assertEqual(self.repo.get_by_id(user.id).refresh_token, token_before)

    def test_invalid_credentials_return_none(self):
        self._register()
        self.assertIsNone(self.service.validate_credentials('alice@example.com', 'Nope12345'))
        self.assertIsNone(self.service.validate_credentials('ghost@example.com', PASSWORD))


class TestGithubLogin(AuthServiceTestCase):

    def test_first_login_creates_verified_github_user(self):
        result = self.service.github_login(_github_identity())

        stored = self.repo.get_by_id(result.user.id)
        self.assertEqual(stored.provider, 'github')
        self.assertEqual(stored.provider_id, 'gh-42')
        self.assertTrue(stored.is_email_verified)
        self.assertIsNone(stored.password_hash)
        self.assertEqual(stored.avatar, 'https://avatars.example.com/octo.png')
        self.assertEqual(stored.refresh_token, result.refresh_token)

    def test_repeat_login_reuses_existing_user(self):
        first = self.service.github_login(_github_identity())
        first_login_at = self.repo.get_by_id(first.user.id).last_login_at

        second = self.service.github_login(_github_identity())

        self.assertEqual(len(self.repo.store), 1)
        self.assertEqual(second.user.id, first.user.id)
        self.assertGreaterEqual(self.repo.get_by_id(first.user.id).last_login_at, first_login_at)

    def test_email_of_local_account_is_rejected_not_linked(self):
        self._register(email='octo@example.com')

        with self.assertRaises(DuplicateError) as ctx:
            self.service.github_login(_github_identity(email='octo@example.com'))

        self.assertEqual(str(ctx.exception), EMAIL_TAKEN_OAUTH)
        self.assertEqual(len(self.repo.store), 1)
        self.assertIsNone(self.repo.get_by_provider('github', 'gh-42'))

    def test_inactive_github_account_rejected(self):
        result = self.service.github_login(_github_identity())
        self.repo.update(result.user.id, {'is_active': False})

        with self.assertRaises(AuthenticationError):
            self.service.github_login(_github_identity())

    def test_github_login_requires_github_identity(self):
        identity = ExternalIdentity(provider='gitlab', provider_id='1', email='x@example.com')
        with self.assertRaises(OAuthError):
            self.service.github_login(identity)


class TestRefreshTokens(AuthServiceTestCase):

    def test_refresh_rotates_stored_token(self):
        login = self._register()

        refreshed = self.service.refresh_tokens(login.refresh_token)

        self.assertNotEqual(refreshed.refresh_token, login.refresh_token)
        stored = self.repo.get_by_id(login.user.id)
        self.assertEqual(stored.refresh_token, refreshed.refresh_token)

    def test_superseded_token_is_rejected(self):
        login = self._register()
        self.service.refresh_tokens(login.refresh_token)

        with self.assertRaises(AuthenticationError):
            self.service.refresh_tokens(login.refresh_token)

    def test_refresh_after_logout_rejected(self):
        login = self._register()
        self.service.logout(login.user.id)

        with self.assertRaises(AuthenticationError):
            self.service.refresh_tokens(login.refresh_token)

    def test_access_token_cannot_be_used_to_refresh(self):
        login = self._register()
        with self.assertRaises(AuthenticationError):
            self.service.refresh_tokens(login.access_token)

    def test_garbage_token_rejected(self):
        with self.assertRaises(AuthenticationError):
            self.service.refresh_tokens('not-a-jwt')

    def test_refresh_for_deleted_user_rejected(self):
        login = self._register()
        self.repo.delete(login.user.id)

        with self.assertRaises(AuthenticationError):
            self.service.refresh_tokens(login.refresh_token)

    def test_refresh_for_inactive_user_rejected(self):
        login = self._register()
        self.repo.update(login.user.id, {'is_active': False})

        with self.assertRaises(AuthenticationError):
            self.service.refresh_tokens(login.refresh_token)

    def test_concurrent_refresh_with_same_token_single_winner(self):
        login = self._register()
        outcomes = []
        barrier = threading.Barrier(5)

        def attempt():
            barrier.wait()
            try:
                self.service.refresh_tokens(login.refresh_token)
                outcomes.append('ok')
            except AuthenticationError:
                outcomes.append('rejected')

        threads = [threading.Thread(target=attempt) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(outcomes.count('ok'), 1)
        self.assertEqual(outcomes.count('rejected'), 4)

    def test_full_rotation_scenario(self):
        registered = self._register()
        login = self.service.login('alice@example.com', PASSWORD)
        self.assertNotEqual(login.refresh_token, registered.refresh_token)

        first_refresh = self.service.refresh_tokens(login.refresh_token)
        self.assertNotEqual(first_refresh.refresh_token, login.refresh_token)

        with self.assertRaises(AuthenticationError):
            self.service.refresh_tokens(login.refresh_token)


class TestLogout(AuthServiceTestCase):

    def test_logout_clears_token_and_is_idempotent(self):
        login = self._register()

        self.service.logout(login.user.id)
        self.service.logout(login.user.id)

        self.assertIsNone(self.repo.get_by_id(login.user.id).refresh_token)


class TestAuthenticateAccessToken(AuthServiceTestCase):

    def test_valid_access_token_resolves_user(self):
        login = self._register()
        user = self.service.authenticate_access_token(login.access_token)
        self.assertEqual(user.id, login.user.id)

    def test_refresh_token_is_not_an_access_token(self):
        login = self._register()
        with self.assertRaises(AuthenticationError):
            self.service.authenticate_access_token(login.refresh_token)

    def test_deactivated_user_rejected(self):
        login = self._register()
        self.repo.update(login.user.id, {'is_active': False})
        with self.assertRaises(AuthenticationError):
            self.service.authenticate_access_token(login.access_token)


if __name__ == '__main__':
    unittest.main()
