import functools
import os
from typing import Dict, Iterable

import jwt
from chalice.app import Request

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import USER_STATUS_SUSPENDED
from chalicelib.utils import exceptions as utils_exceptions, db as utils_db
from chalicelib.utils.logger import log_request, logger, set_request_id, log_exception

_JWK_CLIENT = None


def cognito_idp_url():
    return f"https://cognito-idp.{os.environ.get('DEFAULT_REGION')}.amazonaws.com/{os.environ.get('COGNITO_POOL_ID')}"


def cognito_jwk_url():
    return f'{cognito_idp_url()}/.well-known/jwks.json'


def get_jwk_client() -> jwt.PyJWKClient:
    global _JWK_CLIENT
    if _JWK_CLIENT is None:
        _JWK_CLIENT = jwt.PyJWKClient(cognito_jwk_url())
    return _JWK_CLIENT


def decode_cognito_token(token: str) -> Dict:
    try:
        signing_key = get_jwk_client().get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=['RS256'],
            audience=os.environ['COGNITO_CLIENT_ID'],
            issuer=cognito_idp_url())
    except jwt.PyJWTError as error:
        setattr(error, 'LEVEL', 'warning')
        log_exception(error, 401, f"decode_cognito_token ::: {error}")
        raise utils_exceptions.AuthorizationException(str(error))


def get_user_id_by_token(token: str) -> str:
    """
    cognito stage: token is a Cognito ID token, user id is its `sub`
    local/test stages: token is the user id itself
    """
    if not token:
        raise utils_exceptions.NotAuthorizedException('Authorization token is missing')
    if token.lower().startswith('bearer '):
        token = token[7:]
    if os.environ.get('AUTH_MODE') == 'cognito':
        return decode_cognito_token(token)['sub']
    return token


def get_user_record(user_id: str) -> Dict:
    return utils_db.get_db_item(
        partkey=keys_structure.users_pk,
        sortkey=keys_structure.users_sk.format(user_id=user_id)
    )


def get_auth_result(request: Request) -> Dict:
    token = (request.headers or {}).get('authorization')
    user_id = get_user_id_by_token(token)
    try:
        user_item = get_user_record(user_id)
    except utils_exceptions.RecordNotFound:
        raise utils_exceptions.NotAuthorizedException('Unknown user')
    if user_item.get('status') == USER_STATUS_SUSPENDED:
        raise utils_exceptions.UserSuspended(f'User {user_id} is suspended')
    return {
        'user_id': user_id,
        'role': user_item.get('role'),
        'status': user_item.get('status'),
        'email': user_item.get('email'),
        'display_name': user_item.get('display_name') or user_item.get('email') or 'User',
        'phone': user_item.get('phone')
    }


def authenticate(func):
    """
    Wrapper for functions which require user's authentication
    """

    @functools.wraps(func)
    def result_auth(*args, **kwargs):
        request = args[0]
        set_request_id(request)
        log_request(request)
        setattr(request, 'auth_result', get_auth_result(request))
        result = func(*args, **kwargs)
        logger.info(f'authenticate ::: SUCCESS, func.__name__ {func.__name__}')
        return result

    return result_auth


def authenticate_class(func):
    """
    Wrapper for class methods which require user's authentication
    """

    @functools.wraps(func)
    def result_auth(*args, **kwargs):
        request = args[1]
        set_request_id(request)
        log_request(request)
        setattr(request, 'auth_result', get_auth_result(request))
        logger.info(f'authenticate_class ::: SUCCESS, func.__name__ {func.__name__}')
        return func(*args, **kwargs)

    return result_auth


def require_role(auth_result: Dict, roles: Iterable[str]):
    if auth_result.get('role') not in roles:
        raise utils_exceptions.AccessDenied(f"Role {auth_result.get('role')} is not allowed, expected one of {roles}")


def get_optional_auth_result(request: Request):
    """
    Guest routes: resolve the caller when a token is sent, None for anonymous callers
    """
    if not (request.headers or {}).get('authorization'):
        return None
    try:
        return get_auth_result(request)
    except (utils_exceptions.NotAuthorizedException, utils_exceptions.AccessDenied) as error:
        logger.warning(f'get_optional_auth_result ::: treating caller as guest, {error}')
        return None
