from typing import Tuple, List, Dict

from boto3.dynamodb.conditions import Key, Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_ADMIN, ROLES, USER_STATUS_ACTIVE, USER_STATUS_SUSPENDED
from chalicelib.constants.status_codes import http200
from chalicelib.moderation_logs import write_suspension_log, get_suspension_logs
from chalicelib.utils import auth as utils_auth, app as utils_app, data as utils_data, db as utils_db, exceptions
from chalicelib.utils.data import is_non_empty_str, now_iso
from chalicelib.utils.logger import logger


class User(EntityBase):
    pk = keys_structure.users_pk
    sk = keys_structure.users_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'email': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'role': lambda x: x in ROLES,
        'status': lambda x: x in (USER_STATUS_ACTIVE, USER_STATUS_SUSPENDED),
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'display_name': lambda x: isinstance(x, str),
        'phone': lambda x: isinstance(x, str),
        'suspension_reason': lambda x: isinstance(x, str),
        'suspended_at': lambda x: isinstance(x, str)
    }

    profile_fields = ('display_name', 'phone')

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.request_data = kwargs.get('request_data', {})

        self.email = kwargs.get('email')
        self.display_name = kwargs.get('display_name')
        self.phone = kwargs.get('phone')
        self.role = kwargs.get('role')
        self.status = kwargs.get('status') or USER_STATUS_ACTIVE
        self.suspension_reason = kwargs.get('suspension_reason')
        self.suspended_at = kwargs.get('suspended_at')
        self.date_created = kwargs.get('date_created') or now_iso()
        self.date_updated = kwargs.get('date_updated') or now_iso()
        self.record_type = 'user'

    @classmethod
    def init_by_id(cls, id_):
        logger.info("init_by_id ::: started")
        c = cls(id_)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    @utils_auth.authenticate_class
    def init_request_user(cls, request):
        logger.info("init_request_user ::: started")
        return cls.init_by_id(request.auth_result['user_id'])

    @classmethod
    @utils_auth.authenticate_class
    def init_request_update(cls, request):
        logger.info("init_request_update ::: started")
        auth_result = request.auth_result
        user = cls.init_by_id(auth_result['user_id'])
        request_body = utils_data.parse_raw_body(request)
        request_body = {key: value for key, value in request_body.items() if key in cls.profile_fields}
        return cls(**{**user._to_dict(), **request_body, 'request_data': {'auth_result': auth_result}})

    @classmethod
    @utils_auth.authenticate_class
    def init_request_admin(cls, request, user_id):
        logger.info("init_request_admin ::: started")
        utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
        user = cls.init_by_id(user_id)
        user.request_data = {'auth_result': request.auth_result}
        return user

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_get_users(request) -> Response:
        utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
        qp = request.query_params or {}
        conditions = [Attr(field).eq(qp[field]) for field in ('role', 'status') if qp.get(field)]
        filter_expression = None
        for condition in conditions:
            filter_expression = condition if filter_expression is None else filter_expression & condition
        records: List[Dict] = utils_db.query_items_paged(
            Key('partkey').eq(keys_structure.users_pk),
            filter_expression=filter_expression
        )
        return Response(status_code=http200, body=[User(**record)._to_ui() for record in records])

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_get_suspension_logs(request) -> Response:
        utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
        return Response(status_code=http200, body=get_suspension_logs())

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_get_user(self) -> Response:
        return Response(status_code=http200, body=self._to_ui())

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_update_user(self) -> Response:
        self._update_db_record()
        return Response(status_code=http200, body={'message': 'User was successfully updated', 'id': self.id_})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_set_role(self, role) -> Response:
        if role not in ROLES:
            raise exceptions.ValidationException(f'Unknown role={role}')
        utils_db.update_fields(self._get_key(), {'role': role, 'date_updated': now_iso()})
        logger.info(f"endpoint_set_role ::: user {self.id_} role {self.role} -> {role}")
        self.role = role
        return Response(status_code=http200, body=self._to_ui())

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_suspend(self, reason) -> Response:
        if not is_non_empty_str(reason):
            raise exceptions.ValidationException('Suspension reason is required')
        admin_id = self.request_data['auth_result']['user_id']
        if admin_id == self.id_:
            raise exceptions.ValidationException('Admin can not suspend own account')
        suspend_user(self.id_, reason, admin_id)
        return Response(status_code=http200, body={'id': self.id_, 'status': USER_STATUS_SUSPENDED})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_unsuspend(self) -> Response:
        utils_db.update_fields(self._get_key(), {
            'status': USER_STATUS_ACTIVE,
            'suspension_reason': '',
            'date_updated': now_iso()
        })
        return Response(status_code=http200, body={'id': self.id_, 'status': USER_STATUS_ACTIVE})

    def _update_fields_whitelist(self) -> List:
        return [*self.profile_fields, 'date_updated']

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(user_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'email': self.email,
            'display_name': self.display_name,
            'phone': self.phone,
            'role': self.role,
            'status': self.status,
            'suspension_reason': self.suspension_reason,
            'suspended_at': self.suspended_at,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }


def user_key(user_id: str) -> Dict:
    return {'partkey': keys_structure.users_pk, 'sortkey': keys_structure.users_sk.format(user_id=user_id)}


def suspend_user(user_id: str, reason: str, suspended_by: str):
    stamp = now_iso()
    utils_db.update_fields(user_key(user_id), {
        'status': USER_STATUS_SUSPENDED,
        'suspension_reason': reason,
        'suspended_at': stamp,
        'date_updated': stamp
    })
    write_suspension_log('user', user_id, reason, suspended_by)
    logger.info(f"suspend_user ::: user {user_id} suspended by {suspended_by}")


def get_user_records() -> List[Dict]:
    return utils_db.query_items_paged(Key('partkey').eq(keys_structure.users_pk))
