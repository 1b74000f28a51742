import os

from botocore.exceptions import ClientError
from chalice import AuthResponse, AuthRoute, Response
from pycognito import Cognito

from chalicelib.constants.constants import ROLE_CUSTOMER, ROLE_OWNER, ROLE_ADMIN, SELF_SIGNUP_ROLES, \
    USER_STATUS_ACTIVE, USER_STATUS_SUSPENDED
from chalicelib.constants.status_codes import http200, http201
from chalicelib.users import User
from chalicelib.utils import app as utils_app, data as utils_data
from chalicelib.utils.auth import get_user_id_by_token
from chalicelib.utils.boto_clients import cognito_client
from chalicelib.utils.exceptions import AuthorizationException, NotAuthorizedException, RecordNotFound, \
    ValidationException
from chalicelib.utils.logger import logger

COMMON_ROUTES = [
    AuthRoute(path='/users/me', methods=['GET', 'PUT']),
    AuthRoute(path='/notifications', methods=['GET', 'DELETE']),
    AuthRoute(path='/notifications/*', methods=['GET', 'PUT', 'DELETE']),
    AuthRoute(path='/favorites', methods=['GET']),
    AuthRoute(path='/favorites/*', methods=['GET', 'POST'])
]

ROLE_ROUTES = {
    ROLE_CUSTOMER: [
        AuthRoute(path='/restaurants/*/reservations', methods=['POST']),
        AuthRoute(path='/restaurants/*/reservations/*', methods=['GET', 'PUT']),
        AuthRoute(path='/reservations/mine', methods=['GET']),
        AuthRoute(path='/restaurants/*/reviews', methods=['POST']),
        AuthRoute(path='/restaurants/*/reviews/*/report', methods=['POST']),
        AuthRoute(path='/reviews/mine', methods=['GET'])
    ],
    ROLE_OWNER: [
        AuthRoute(path='/restaurants', methods=['POST']),
        AuthRoute(path='/restaurants/mine', methods=['GET']),
        AuthRoute(path='/restaurants/*', methods=['GET', 'POST', 'PUT', 'DELETE']),
        AuthRoute(path='/reviews/owner', methods=['GET']),
        AuthRoute(path='/dashboards/owner', methods=['GET']),
        AuthRoute(path='/image-upload', methods=['POST'])
    ],
    ROLE_ADMIN: [
        AuthRoute(path='/admin/*', methods=['GET', 'POST', 'PUT', 'DELETE']),
        AuthRoute(path='/restaurants/*', methods=['GET', 'PUT', 'DELETE']),
        AuthRoute(path='/dashboards/admin', methods=['GET'])
    ]
}


def role_authorizer(auth_request):
    """
    Unknown or suspended users get no routes, handlers still check roles and ownership
    """
    try:
        user: User = User.init_by_id(get_user_id_by_token(auth_request.token))
    except (RecordNotFound, NotAuthorizedException) as e:
        logger.warning(f'role_authorizer ::: access denied, {e}')
        return AuthResponse(routes=[], principal_id='')
    if user.status == USER_STATUS_SUSPENDED or user.role not in ROLE_ROUTES:
        logger.warning(f'role_authorizer ::: user {user.id_} {user.role=} {user.status=} has no access')
        return AuthResponse(routes=[], principal_id=user.id_)
    return AuthResponse(routes=[*COMMON_ROUTES, *ROLE_ROUTES[user.role]], principal_id=user.id_)


def cognito(**kwargs) -> Cognito:
    return Cognito(os.environ['COGNITO_POOL_ID'], os.environ['COGNITO_CLIENT_ID'],
                   user_pool_region=os.environ['DEFAULT_REGION'], **kwargs)


def required_fields(body, *fields):
    missing = [field for field in fields if not body.get(field)]
    if missing:
        raise ValidationException(f'Fields {missing} are required')


@utils_app.request_exception_handler
@utils_app.log_start_finish
def register_cognito(current_request) -> Response:
    body = utils_data.parse_raw_body(current_request)
    required_fields(body, 'email', 'password')
    role = body.get('role') or ROLE_CUSTOMER
    if role not in SELF_SIGNUP_ROLES:
        raise ValidationException(f'Role {role} can not be chosen on sign up')
    u = cognito()
    u.set_base_attributes(email=body['email'], name=body.get('name') or body['email'])
    u.add_custom_attributes(role=role)
    try:
        resp = u.register(body['email'], body['password'])
    except ClientError as e:
        raise ValidationException(e.response.get('Error', {}).get('Message', str(e)))
    logger.info(f"register_cognito ::: registered {body['email']} as {role}")
    return Response(status_code=http201, body={
        'user_id': resp.get('UserSub'),
        'user_confirmed': resp.get('UserConfirmed', False)
    })


@utils_app.request_exception_handler
@utils_app.log_start_finish
def confirm_sign_up_cognito(current_request) -> Response:
    body = utils_data.parse_raw_body(current_request)
    required_fields(body, 'email', 'code')
    try:
        cognito().confirm_sign_up(body['code'], username=body['email'])
    except ClientError as e:
        raise ValidationException(e.response.get('Error', {}).get('Message', str(e)))
    return Response(status_code=http200, body={'status': 'confirmed'})


@utils_app.request_exception_handler
@utils_app.log_start_finish
def login_cognito(current_request) -> Response:
    body = utils_data.parse_raw_body(current_request)
    required_fields(body, 'username', 'password')
    u = cognito(username=body['username'])
    try:
        u.authenticate(password=body['password'])
    except ClientError as e:
        logger.warning(f'login_cognito ::: {e}')
        raise AuthorizationException('Wrong username or password')
    return Response(status_code=http200, body={
        'token': u.id_token,
        'id_token': u.id_token,
        'access_token': u.access_token,
        'refresh_token': u.refresh_token
    })


@utils_app.request_exception_handler
@utils_app.log_start_finish
def refresh_id_token_cognito(current_request) -> Response:
    body = utils_data.parse_raw_body(current_request)
    required_fields(body, 'id_token', 'refresh_token')
    u = cognito(id_token=body['id_token'], refresh_token=body['refresh_token'],
                access_token=body.get('access_token'))
    try:
        u.renew_access_token()
    except ClientError as e:
        logger.warning(f'refresh_id_token_cognito ::: {e}')
        raise AuthorizationException('Refresh token is not valid')
    return Response(status_code=http200, body={'status': 'success', 'id_token': u.id_token,
                                               'access_token': u.access_token})


@utils_app.request_exception_handler
@utils_app.log_start_finish
def forgot_password_cognito(current_request) -> Response:
    body = utils_data.parse_raw_body(current_request)
    required_fields(body, 'email')
    try:
        cognito(username=body['email']).initiate_forgot_password()
    except ClientError as e:
        # the answer must not reveal whether the address is registered
        logger.warning(f'forgot_password_cognito ::: {e}')
    return Response(status_code=http200, body={'status': 'code_sent'})


@utils_app.request_exception_handler
@utils_app.log_start_finish
def reset_password_cognito(current_request) -> Response:
    body = utils_data.parse_raw_body(current_request)
    required_fields(body, 'email', 'code', 'password')
    try:
        cognito(username=body['email']).confirm_forgot_password(body['code'], body['password'])
    except ClientError as e:
        raise ValidationException(e.response.get('Error', {}).get('Message', str(e)))
    return Response(status_code=http200, body={'status': 'password_reset'})


def email_is_registered(email: str) -> bool:
    users = cognito_client.list_users(
        UserPoolId=os.environ['COGNITO_POOL_ID'],
        AttributesToGet=['email'],
        Filter=f'email = "{email}"'
    )['Users']
    logger.info(f'email_is_registered ::: found {len(users)} users for {email}')
    return len(users) > 0


def cognito_pre_signup(event, context):
    logger.info(f'cognito_pre_signup ::: triggered: event={event}')
    attributes = event['request']['userAttributes']
    new_user_email = attributes.get('email')
    role = attributes.get('custom:role') or ROLE_CUSTOMER
    if role not in SELF_SIGNUP_ROLES:
        msg = f"Role {role} can not be chosen on sign up"
        logger.warning(f'cognito_pre_signup ::: {msg}')
        raise ValidationException(msg)
    if email_is_registered(new_user_email):
        msg = f"User with email {new_user_email} already exists and cannot be created"
        logger.warning(f'cognito_pre_signup ::: {msg}')
        raise ValidationException(msg)
    logger.info(f'cognito_pre_signup ::: email {new_user_email} is correct')
    return event


def create_db_user(user_id: str, email: str, display_name: str, phone: str, role: str) -> User:
    logger.info(f'create_db_user ::: email: {email}, phone: {phone}, user_id: {user_id}, role: {role}')
    user = User(
        id_=user_id,
        email=email,
        display_name=display_name or email,
        phone=phone or None,
        role=role,
        status=USER_STATUS_ACTIVE
    )
    user._create_db_record()
    return user


def cognito_post_confirmation(event, context):
    logger.info(f'cognito_post_confirmation ::: triggered: event={event}')
    if event.get('triggerSource') != 'PostConfirmation_ConfirmSignUp':
        # password recovery confirmations must not create users
        return event
    attributes = event['request'].get('userAttributes', {})
    create_db_user(
        user_id=attributes['sub'],
        email=attributes.get('email', ''),
        display_name=attributes.get('name'),
        phone=attributes.get('phone_number'),
        role=attributes.get('custom:role') or ROLE_CUSTOMER
    )
    return event
