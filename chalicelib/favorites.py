from typing import Tuple

from boto3.dynamodb.conditions import Key
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200
from chalicelib.restaurants import Restaurant
from chalicelib.utils import auth as utils_auth, db as utils_db, app as utils_app, exceptions
from chalicelib.utils.data import now_iso
from chalicelib.utils.logger import logger


class Favorite(EntityBase):
    pk = keys_structure.favorites_pk
    sk = keys_structure.favorites_sk

    required_immutable_fields_validation = {
        'user_id': lambda x: isinstance(x, str),
        'restaurant_id': lambda x: isinstance(x, str),
        'restaurant_data': lambda x: isinstance(x, dict),
        'added_at': lambda x: isinstance(x, str)
    }

    def __init__(self, user_id, restaurant_id, **kwargs):
        EntityBase.__init__(self, f'{user_id}_{restaurant_id}')
        self.user_id: str = user_id
        self.restaurant_id: str = restaurant_id
        self.restaurant_data: dict = kwargs.get('restaurant_data') or {}
        self.added_at: str = kwargs.get('added_at') or now_iso()
        self.record_type = 'favorite'

    @classmethod
    @utils_auth.authenticate_class
    def init_request(cls, request, restaurant_id):
        logger.info("init_request ::: started")
        return cls(user_id=request.auth_result['user_id'], restaurant_id=restaurant_id)

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_get_favorites(request) -> Response:
        records = utils_db.query_items_paged(
            Key('partkey').eq(keys_structure.favorites_pk.format(user_id=request.auth_result['user_id']))
        )
        records.sort(key=lambda record: record.get('added_at', ''), reverse=True)
        return Response(status_code=http200, body=[Favorite(**record)._to_ui() for record in records])

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_is_favorite(self) -> Response:
        return Response(status_code=http200, body={'restaurant_id': self.restaurant_id,
                                                   'is_favorite': self.exists()})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_toggle(self) -> Response:
        if self.exists():
            self._delete_db_record()
            return Response(status_code=http200, body={'action': 'removed', 'is_favorite': False,
                                                       'restaurant_id': self.restaurant_id})
        self.restaurant_data = Restaurant.init_by_id(self.restaurant_id).snapshot()
        self._create_db_record()
        return Response(status_code=http200, body={'action': 'added', 'is_favorite': True,
                                                   'restaurant_id': self.restaurant_id})

    def exists(self) -> bool:
        try:
            self._get_db_item()
            return True
        except exceptions.RecordNotFound:
            return False

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(user_id=self.user_id), self.sk.format(restaurant_id=self.restaurant_id)

    def _to_dict(self):
        return {
            'user_id': self.user_id,
            'restaurant_id': self.restaurant_id,
            'restaurant_data': self.restaurant_data,
            'added_at': self.added_at
        }

    def _to_ui(self):
        return {'id': self.id_, **self._to_dict()}
