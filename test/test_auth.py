import pytest
from botocore.exceptions import ClientError
from chalice.app import AuthRequest

from chalicelib import auth
from chalicelib.constants.constants import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_OWNER, USER_STATUS_SUSPENDED
from chalicelib.constants.status_codes import http200, http201, http400, http401
from chalicelib.utils.auth import get_user_id_by_token
from chalicelib.utils.exceptions import ValidationException
from test.utils.fixtures import id_admin, id_customer, id_owner
from test.utils.request_utils import make_request


class FakeCognitoUser:
    """
    Stands in for pycognito.Cognito, records the calls it receives
    """
    calls = []

    def __init__(self, fail_with=None, **kwargs):
        self.kwargs = kwargs
        self.fail_with = fail_with
        self.id_token, self.access_token, self.refresh_token = 'id-token', 'access-token', 'refresh-token'

    def _call(self, method_name, *args, **kwargs):
        FakeCognitoUser.calls.append((method_name, args, kwargs))
        if self.fail_with:
            raise ClientError({'Error': {'Code': self.fail_with, 'Message': f'{self.fail_with} happened'}},
                              method_name)

    def set_base_attributes(self, **kwargs):
        self._call('set_base_attributes', **kwargs)

    def add_custom_attributes(self, **kwargs):
        self._call('add_custom_attributes', **kwargs)

    def register(self, username, password):
        self._call('register', username, password)
        return {'UserSub': 'new-sub', 'UserConfirmed': False}

    def authenticate(self, password):
        self._call('authenticate', password=password)

    def initiate_forgot_password(self):
        self._call('initiate_forgot_password')


class FakeCognitoClient:
    def __init__(self, users=None):
        self.users = users or []

    def list_users(self, **kwargs):
        return {'Users': self.users}


@pytest.fixture
def fake_cognito(monkeypatch):
    FakeCognitoUser.calls = []
    failures = {}
    monkeypatch.setattr(auth, 'cognito', lambda **kwargs: FakeCognitoUser(fail_with=failures.get('code'), **kwargs))
    yield failures


def route_paths(auth_response):
    return {route.path for route in auth_response.routes}


def authorize(token):
    return auth.role_authorizer(AuthRequest('TOKEN', token, 'arn:aws:execute-api:region:account:api/test/GET/'))


def test_user_id_from_token(monkeypatch):
    monkeypatch.setenv('AUTH_MODE', 'local')
    assert get_user_id_by_token('Bearer abc') == 'abc'
    assert get_user_id_by_token('abc') == 'abc'


@pytest.mark.local_db_test
def test_authorizer_routes_per_role(seed):
    customer_paths = route_paths(authorize(id_customer))
    assert '/restaurants/*/reservations' in customer_paths
    assert '/users/me' in customer_paths
    assert '/admin/*' not in customer_paths

    owner_paths = route_paths(authorize(id_owner))
    assert {'/restaurants', '/restaurants/*', '/dashboards/owner', '/image-upload'} <= owner_paths
    assert '/admin/*' not in owner_paths

    admin_response = authorize(id_admin)
    assert admin_response.principal_id == id_admin
    assert {'/admin/*', '/dashboards/admin', '/notifications'} <= route_paths(admin_response)


@pytest.mark.local_db_test
def test_authorizer_denies_unknown_and_suspended_users(seed):
    assert authorize('unknown-user').routes == []
    assert authorize('').routes == []

    suspended = seed.user(role=ROLE_CUSTOMER, status=USER_STATUS_SUSPENDED)
    assert authorize(suspended).routes == []

    no_role = seed.user(role='chef')
    assert authorize(no_role).routes == []


@pytest.mark.local_db_test
def test_pre_signup(monkeypatch, seed):
    event = {'request': {'userAttributes': {'email': 'sari@test.id', 'custom:role': ROLE_OWNER}}}
    monkeypatch.setattr(auth, 'cognito_client', FakeCognitoClient())
    assert auth.cognito_pre_signup(event, None) == event

    monkeypatch.setattr(auth, 'cognito_client', FakeCognitoClient(users=[{'Username': 'sari'}]))
    with pytest.raises(ValidationException):
        auth.cognito_pre_signup(event, None)

    monkeypatch.setattr(auth, 'cognito_client', FakeCognitoClient())
    admin_event = {'request': {'userAttributes': {'email': 'boss@test.id', 'custom:role': ROLE_ADMIN}}}
    with pytest.raises(ValidationException):
        auth.cognito_pre_signup(admin_event, None)


@pytest.mark.local_db_test
def test_post_confirmation_creates_user(seed):
    event = {
        'triggerSource': 'PostConfirmation_ConfirmSignUp',
        'request': {'userAttributes': {'sub': 'cognito-sub-1', 'email': 'sari@test.id', 'name': 'Sari',
                                       'phone_number': '+628111111111', 'custom:role': ROLE_OWNER}}
    }
    assert auth.cognito_post_confirmation(event, None) == event

    user = seed.get_user('cognito-sub-1')
    assert user['email'] == 'sari@test.id'
    assert user['display_name'] == 'Sari'
    assert user['role'] == ROLE_OWNER
    assert user['status'] == 'active'


@pytest.mark.local_db_test
def test_post_confirmation_ignores_forgot_password(seed):
    event = {'triggerSource': 'PostConfirmation_ConfirmForgotPassword',
             'request': {'userAttributes': {'sub': 'cognito-sub-2', 'email': 'lupa@test.id'}}}
    auth.cognito_post_confirmation(event, None)
    assert seed.get_user('cognito-sub-2') is None


@pytest.mark.local_db_test
def test_register(client, fake_cognito):
    response = make_request(client, endpoint='/auth/register', method='POST',
                            json_body={'email': 'sari@test.id', 'password': 'Secret123!', 'name': 'Sari',
                                       'role': ROLE_OWNER})
    assert response.status_code == http201, response.body
    assert response.json_body == {'user_id': 'new-sub', 'user_confirmed': False}
    assert ('set_base_attributes', (), {'email': 'sari@test.id', 'name': 'Sari'}) in FakeCognitoUser.calls
    assert ('add_custom_attributes', (), {'role': ROLE_OWNER}) in FakeCognitoUser.calls

    admin = make_request(client, endpoint='/auth/register', method='POST',
                         json_body={'email': 'boss@test.id', 'password': 'Secret123!', 'role': ROLE_ADMIN})
    assert admin.status_code == http400

    missing = make_request(client, endpoint='/auth/register', method='POST', json_body={'email': 'sari@test.id'})
    assert missing.status_code == http400


@pytest.mark.local_db_test
def test_login(client, fake_cognito):
    response = make_request(client, endpoint='/auth/login', method='POST',
                            json_body={'username': 'sari@test.id', 'password': 'Secret123!'})
    assert response.status_code == http200
    assert response.json_body['token'] == 'id-token'
    assert response.json_body['refresh_token'] == 'refresh-token'

    fake_cognito['code'] = 'NotAuthorizedException'
    wrong = make_request(client, endpoint='/auth/login', method='POST',
                         json_body={'username': 'sari@test.id', 'password': 'wrong'})
    assert wrong.status_code == http401


@pytest.mark.local_db_test
def test_forgot_password_does_not_reveal_accounts(client, fake_cognito):
    fake_cognito['code'] = 'UserNotFoundException'
    response = make_request(client, endpoint='/auth/forgot-password', method='POST',
                            json_body={'email': 'nobody@test.id'})
    assert response.status_code == http200
    assert response.json_body == {'status': 'code_sent'}
