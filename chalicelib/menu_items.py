from decimal import Decimal
from typing import List, Dict, Tuple
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200, http201
from chalicelib.restaurants import get_owned_restaurant
from chalicelib.utils import auth as utils_auth, data as utils_data, db as utils_db, app as utils_app
from chalicelib.utils.data import is_number, is_non_empty_str, now_iso, to_decimal
from chalicelib.utils.logger import logger


class MenuItem(EntityBase):
    pk = keys_structure.menu_items_pk
    sk = keys_structure.menu_items_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'restaurant_id': lambda x: isinstance(x, str),
        'created_by': lambda x: isinstance(x, str),
        "date_created": lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'name': is_non_empty_str,
        'price': lambda x: is_number(x) and x >= 0,
        'is_available': lambda x: isinstance(x, bool),
        "date_updated": lambda x: isinstance(x, str),
        "archived": lambda x: isinstance(x, bool)
    }

    optional_fields_validation = {
        'description': lambda x: isinstance(x, str),
        'category': lambda x: isinstance(x, str),
        'image': lambda x: isinstance(x, str),
        "updated_by": lambda x: isinstance(x, str)
    }

    def __init__(self, id_, restaurant_id, **kwargs):
        EntityBase.__init__(self, id_)

        self.request_data = kwargs.get('request_data', {})

        self.restaurant_id: str = restaurant_id
        self.name: str = kwargs.get('name')
        self.category: str = kwargs.get('category')
        self.description: str = kwargs.get('description')
        self.price: Decimal = to_decimal(kwargs.get('price'))
        self.is_available: bool = kwargs.get('is_available', True)
        self.image: str = kwargs.get('image')
        self.created_by: str = kwargs.get('created_by') or self.request_data.get('auth_result', {}).get('user_id')
        self.updated_by: str = kwargs.get('updated_by') or self.request_data.get('auth_result', {}).get('user_id')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.archived: bool = kwargs.get('archived', False)
        self.record_type = 'menu_item'

    @classmethod
    @utils_auth.authenticate_class
    def init_request_create(cls, request, restaurant_id):
        logger.info("init_request_create ::: started")
        auth_result = request.auth_result
        get_owned_restaurant(auth_result, restaurant_id)
        request_body = utils_data.parse_raw_body(request)
        request_body = {key: value for key, value in request_body.items()
                        if key in cls.mutable_fields() and key != 'archived'}
        return cls(id_=str(uuid4()), restaurant_id=restaurant_id,
                   request_data={'auth_result': auth_result}, **request_body)

    @classmethod
    @utils_auth.authenticate_class
    def init_request_update(cls, request, restaurant_id, menu_item_id, special_body=None):
        logger.info("init_request_update ::: started")
        auth_result = request.auth_result
        get_owned_restaurant(auth_result, restaurant_id)
        menu_item = cls.init_get_by_id(menu_item_id, restaurant_id)
        request_body = special_body or utils_data.parse_raw_body(request)
        request_body = {key: value for key, value in request_body.items() if key in cls.mutable_fields()}
        return cls(**{**menu_item._to_dict(), **request_body, 'request_data': {'auth_result': auth_result}})

    @classmethod
    def init_get_by_id(cls, menu_item_id, restaurant_id):
        logger.info("init_get_by_id ::: started")
        c = cls(id_=menu_item_id, restaurant_id=restaurant_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def mutable_fields(cls) -> List:
        return [key for key in [*cls.required_mutable_fields_validation, *cls.optional_fields_validation]
                if key not in ('date_updated', 'updated_by')]

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_get_menu_items(request, restaurant_id) -> Response:
        menu_items: List[Dict] = [MenuItem(**record)._to_ui() for record in get_menu_item_records(restaurant_id)]
        logger.info(f"endpoint_get_menu_items ::: returning menu items={[item['id'] for item in menu_items]}")
        return Response(status_code=http200, body=menu_items)

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_create_menu_item(self) -> Response:
        self._create_db_record()
        return Response(status_code=http201, body={'message': 'Menu item successfully created', 'id': self.id_})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_update_menu_item(self) -> Response:
        self._update_db_record()
        return Response(status_code=http200, body={'message': 'Menu item was successfully updated', 'id': self.id_})

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(restaurant_id=self.restaurant_id), self.sk.format(menu_item_id=self.id_)

    def is_orderable(self) -> bool:
        return self.is_available and not self.archived

    def _to_dict(self):
        return {
            'id_': self.id_,
            'restaurant_id': self.restaurant_id,
            'name': self.name,
            'category': self.category,
            'description': self.description,
            'price': self.price,
            'is_available': self.is_available,
            'image': self.image,
            "date_created": self.date_created,
            "date_updated": self.date_updated,
            'created_by': self.created_by,
            'updated_by': self.updated_by,
            "archived": self.archived
        }


def get_menu_item_records(restaurant_id: str) -> List[Dict]:
    return utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.menu_items_pk.format(restaurant_id=restaurant_id)),
        filter_expression=Attr('archived').eq(False)
    )
