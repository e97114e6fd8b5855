"""Tests for /auth routes."""

import unittest
from urllib.parse import parse_qs, urlparse

import httpx
from fastapi.testclient import TestClient

from adapter.external.github_oauth import GitHubOAuthAdapter
from adapter.fake.oauth_provider import FakeOAuthProvider
from adapter.fake.user_repository import FakeUserRepository
from api.dependencies import get_github_provider, get_settings, get_user_repo
from api.main import app
from api.rate_limit import limiter
from domain.model.user import ExternalIdentity
from utils.config import Settings

TEST_SETTINGS = Settings(
    jwt_secret='test-access-secret',
    jwt_refresh_secret='test-refresh-secret',
    bcrypt_rounds=4,
    frontend_url='http://frontend.test',
)

REGISTER_BODY = {
    'email': 'alice@example.com',
    'password': 'secret1',
    'firstName': 'Alice',
    'lastName': 'Smith',
}


class AuthRoutesTestCase(unittest.TestCase):

    def setUp(self):
        limiter.reset()
        self.repo = FakeUserRepository()
        self.provider = FakeOAuthProvider()
        app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
        app.dependency_overrides[get_user_repo] = lambda: self.repo
        app.dependency_overrides[get_github_provider] = lambda: self.provider
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()

    def _register(self, body=None):
        return self.client.post('/auth/register', json=body or REGISTER_BODY)

    def _login(self, email='alice@example.com', password='secret1'):
        return self.client.post('/auth/login', json={'email': email, 'password': password})

    def _bearer(self, token):
        return {'Authorization': f'Bearer {token}'}


class TestRegisterRoute(AuthRoutesTestCase):

    def test_register_returns_201_with_token_pair(self):
        response = self._register()

        self.assertEqual(response.status_code, 201)
        data = response.json()
        self.assertIn('accessToken', data)
        self.assertIn('refreshToken', data)
        self.assertEqual(data['user']['email'], 'alice@example.com')
        self.assertEqual(data['user']['firstName'], 'Alice')
        self.assertEqual(data['user']['provider'], 'local')

    def test_register_response_has_no_secret_fields(self):
        user = self._register().json()['user']

        for key in ('password', 'passwordHash', 'password_hash', 'refreshToken', 'refresh_token'):
            self.assertNotIn(key, user)

    def test_duplicate_email_returns_409(self):
        self._register()
        response = self._register()
        self.assertEqual(response.status_code, 409)

    def test_overlong_password_returns_400(self):
        response = self._register({**REGISTER_BODY, 'password': 'Aa1' + 'x' * 97})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.repo.store, {})

    def test_multibyte_password_over_72_bytes_returns_400(self):
        response = self._register({**REGISTER_BODY, 'password': 'é' * 40})
        self.assertEqual(response.status_code, 400)

    def test_invalid_email_returns_422(self):
        response = self._register({**REGISTER_BODY, 'email': 'not-an-email'})
        self.assertEqual(response.status_code, 422)


class TestLoginRoute(AuthRoutesTestCase):

    def test_login_success(self):
        self._register()
        response = self._login()

        self.assertEqual(response.status_code, 200)
        self.assertIn('accessToken', response.json())

    def test_login_failures_are_indistinguishable(self):
        self._register()
        self.repo.create(
            email='octo@example.com', first_name='Octo', last_name='Cat',
            provider='github', provider_id='42',
        )

        responses = [
            self._login(password='Wrong1234'),
            self._login(email='nobody@example.com'),
            self._login(email='octo@example.com'),
        ]

        self.assertEqual({r.status_code for r in responses}, {401})
        self.assertEqual({r.json()['detail'] for r in responses}, {'Invalid credentials'})


class TestRefreshAndLogout(AuthRoutesTestCase):

    def test_register_login_refresh_scenario(self):
        registered = self.client.post('/auth/register', json={
            'email': 'alice@example.com',
            'password': 'secret1',
            'firstName': 'Alice',
            'lastName': 'Smith',
        })
        self.assertEqual(registered.status_code, 201)
        self.assertIn('accessToken', registered.json())

        login = self.client.post('/auth/login', json={'email': 'alice@example.com', 'password': 'secret1'})
        self.assertEqual(login.status_code, 200)
        first_refresh = login.json()['refreshToken']
        self.assertNotEqual(first_refresh, registered.json()['refreshToken'])

        rotated = self.client.post('/auth/refresh', json={'refreshToken': first_refresh})
        self.assertEqual(rotated.status_code, 200)
        self.assertNotEqual(rotated.json()['refreshToken'], first_refresh)

        superseded = self.client.post('/auth/refresh', json={'refreshToken': first_refresh})
        self.assertEqual(superseded.status_code, 401)

    def test_refresh_token_in_header_is_not_accepted(self):
        tokens = self._register().json()
        response = self.client.post('/auth/refresh', headers=self._bearer(tokens['refreshToken']))
        self.assertEqual(response.status_code, 422)

    def test_logout_revokes_refresh_token(self):
        tokens = self._register().json()

        response = self.client.post('/auth/logout', headers=self._bearer(tokens['accessToken']))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'message': 'Successfully logged out'})

        refresh = self.client.post('/auth/refresh', json={'refreshToken': tokens['refreshToken']})
        self.assertEqual(refresh.status_code, 401)

    def test_logout_requires_bearer(self):
        response = self.client.post('/auth/logout')
        self.assertEqual(response.status_code, 401)


class TestProfileRoutes(AuthRoutesTestCase):

    def test_profile_returns_sanitized_user(self):
        tokens = self._register().json()

        response = self.client.get('/auth/profile', headers=self._bearer(tokens['accessToken']))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['email'], 'alice@example.com')
        self.assertNotIn('passwordHash', response.json())

    def test_refresh_token_cannot_access_profile(self):
        tokens = self._register().json()
        response = self.client.get('/auth/profile', headers=self._bearer(tokens['refreshToken']))
        self.assertEqual(response.status_code, 401)

    def test_check(self):
        tokens = self._register().json()
        response = self.client.get('/auth/check', headers=self._bearer(tokens['accessToken']))
        self.assertEqual(response.json(), {'message': 'Authenticated', 'valid': True})


class TestGithubRoutes(AuthRoutesTestCase):

    def setUp(self):
        super().setUp()
        self.provider.add_identity('good-code', ExternalIdentity(
            provider='github', provider_id='42', email='octo@example.com',
            first_name='Octo', last_name='Cat',
        ))

    def _start(self) -> str:
        response = self.client.get('/auth/github', follow_redirects=False)
        self.assertEqual(response.status_code, 302)
        return parse_qs(urlparse(response.headers['location']).query)['state'][0]

    def _callback(self, **params):
        return self.client.get('/auth/github/callback', params=params, follow_redirects=False)

    def test_github_redirects_to_provider_with_state(self):
        state = self._start()
        self.assertEqual(self.client.cookies.get('oauth_state'), state)

    def test_callback_success_redirects_with_tokens(self):
        state = self._start()

        response = self._callback(code='good-code', state=state)

        self.assertEqual(response.status_code, 302)
        location = urlparse(response.headers['location'])
        self.assertEqual(f'{location.scheme}://{location.netloc}', 'http://frontend.test')
        self.assertEqual(location.path, '/auth/callback')
        params = parse_qs(location.query)
        self.assertIn('token', params)
        self.assertIn('refreshToken', params)
        self.assertEqual(
            self.repo.get_by_provider('github', '42').refresh_token,
            params['refreshToken'][0],
        )

    def test_callback_email_collision_redirects_to_error_page(self):
        self._register({**REGISTER_BODY, 'email': 'octo@example.com'})
        state = self._start()

        response = self._callback(code='good-code', state=state)

        location = urlparse(response.headers['location'])
        self.assertEqual(location.path, '/auth/error')
        self.assertIn('existing account', parse_qs(location.query)['message'][0])
        self.assertIsNone(self.repo.get_by_provider('github', '42'))

    def test_callback_state_mismatch_rejected(self):
        self._start()

        response = self._callback(code='good-code', state='forged')

        self.assertEqual(urlparse(response.headers['location']).path, '/auth/error')
        self.assertEqual(self.provider.exchanged, [])

    def test_callback_bad_code_redirects_with_message(self):
        state = self._start()

        response = self._callback(code='bad-code', state=state)

        location = urlparse(response.headers['location'])
        self.assertEqual(location.path, '/auth/error')
        self.assertEqual(parse_qs(location.query)['message'], ['Invalid authorization code'])

    def test_callback_malformed_github_response_redirects_to_error_page(self):
        def handler(request):
            if request.url.path == '/login/oauth/access_token':
                return httpx.Response(200, json={'access_token': 'gho_token'})
            return httpx.Response(200, text='<html>oops</html>', headers={'Content-Type': 'text/html'})

        adapter = GitHubOAuthAdapter(
            client_id='id', client_secret='secret',
            callback_url='http://testserver/auth/github/callback',
            transport=httpx.MockTransport(handler),
        )
        app.dependency_overrides[get_github_provider] = lambda: adapter
        state = self._start()

        response = self._callback(code='code-1', state=state)

        self.assertEqual(response.status_code, 302)
        location = urlparse(response.headers['location'])
        self.assertEqual(location.path, '/auth/error')
        self.assertEqual(parse_qs(location.query)['message'], ['Unexpected response from GitHub'])
        self.assertEqual(self.repo.store, {})

    def test_github_not_configured_returns_503(self):
        del app.dependency_overrides[get_github_provider]
        response = self.client.get('/auth/github', follow_redirects=False)
        self.assertEqual(response.status_code, 503)


if __name__ == '__main__':
    unittest.main()
