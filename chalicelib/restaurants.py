import math
from decimal import Decimal
from typing import Tuple, List, Dict
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_OWNER, ROLE_ADMIN, RESTAURANT_STATUS_PENDING, \
    RESTAURANT_STATUS_APPROVED, RESTAURANT_STATUS_REJECTED, RESTAURANT_STATUS_SUSPENDED, RESTAURANT_STATUSES
from chalicelib.constants.status_codes import http200, http201
from chalicelib.moderation_logs import write_suspension_log
from chalicelib.utils import auth as utils_auth, data as utils_data, exceptions, db as utils_db, app as utils_app
from chalicelib.utils.data import is_number, is_non_empty_str, now_iso, to_decimal
from chalicelib.utils.logger import logger

EARTH_RADIUS_KM = 6371
DEFAULT_NEARBY_RADIUS_KM = 10


class Restaurant(EntityBase):
    pk = keys_structure.restaurants_pk
    sk = keys_structure.restaurants_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'owner_id': lambda x: isinstance(x, str),
        'created_by': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'name': is_non_empty_str,
        'address': is_non_empty_str,
        'category': is_non_empty_str,
        'is_open': lambda x: isinstance(x, bool),
        'status': lambda x: x in RESTAURANT_STATUSES,
        'rating': is_number,
        'review_count': is_number,
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'description': lambda x: isinstance(x, str),
        'cuisine': lambda x: isinstance(x, list),
        'price_range': lambda x: isinstance(x, str),
        'phone': lambda x: isinstance(x, str),
        'opening_time': lambda x: isinstance(x, str),
        'closing_time': lambda x: isinstance(x, str),
        'latitude': lambda x: is_number(x) and -90 <= x <= 90,
        'longitude': lambda x: is_number(x) and -180 <= x <= 180,
        'image': lambda x: isinstance(x, str),
        'updated_by': lambda x: isinstance(x, str)
    }

    # fields an owner may change through the update endpoint
    owner_mutable_fields = (
        'name', 'description', 'address', 'category', 'cuisine', 'price_range', 'phone',
        'opening_time', 'closing_time', 'latitude', 'longitude'
    )

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.request_data = kwargs.get('request_data', {})

        self.owner_id: str = kwargs.get('owner_id')
        self.name: str = kwargs.get('name')
        self.description: str = kwargs.get('description')
        self.address: str = kwargs.get('address')
        self.category: str = kwargs.get('category')
        self.cuisine: list = kwargs.get('cuisine') or []
        self.price_range: str = kwargs.get('price_range')
        self.phone: str = kwargs.get('phone')
        self.opening_time: str = kwargs.get('opening_time')
        self.closing_time: str = kwargs.get('closing_time')
        self.latitude: Decimal = to_decimal(kwargs.get('latitude'), '1.000000')
        self.longitude: Decimal = to_decimal(kwargs.get('longitude'), '1.000000')
        self.is_open: bool = kwargs.get('is_open', True)
        self.status: str = kwargs.get('status') or RESTAURANT_STATUS_PENDING
        self.rejection_reason: str = kwargs.get('rejection_reason')
        self.suspension_reason: str = kwargs.get('suspension_reason')
        self.rating: Decimal = to_decimal(kwargs.get('rating'), '1.0') or Decimal('0.0')
        self.review_count: int = int(kwargs.get('review_count') or 0)
        self.last_rating_update: str = kwargs.get('last_rating_update')
        self.is_promo: bool = kwargs.get('is_promo', False)
        self.promo_title: str = kwargs.get('promo_title')
        self.promo_description: str = kwargs.get('promo_description')
        self.promo_discount: Decimal = kwargs.get('promo_discount')
        self.promo_discount_type: str = kwargs.get('promo_discount_type')
        self.promo_expiry: str = kwargs.get('promo_expiry')
        self.image: str = kwargs.get('image')
        self.created_by: str = kwargs.get('created_by') or self.request_data.get('auth_result', {}).get('user_id')
        self.updated_by: str = kwargs.get('updated_by') or self.request_data.get('auth_result', {}).get('user_id')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'restaurant'

    @classmethod
    def init_by_id(cls, restaurant_id):
        logger.info("init_by_id ::: started")
        c = cls(restaurant_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    @utils_auth.authenticate_class
    def init_request_create(cls, request):
        logger.info("init_request_create ::: started")
        auth_result = request.auth_result
        utils_auth.require_role(auth_result, [ROLE_OWNER])
        if get_restaurants_by_owner(auth_result['user_id']):
            raise exceptions.ValidationException('Owner already has a registered restaurant')
        request_body = utils_data.parse_raw_body(request)
        request_body = {key: value for key, value in request_body.items() if key in cls.owner_mutable_fields}
        return cls(id_=str(uuid4()), owner_id=auth_result['user_id'], status=RESTAURANT_STATUS_PENDING,
                   rating=0, review_count=0, request_data={'auth_result': auth_result}, **request_body)

    @classmethod
    @utils_auth.authenticate_class
    def init_request_update(cls, request, restaurant_id):
        logger.info("init_request_update ::: started")
        auth_result = request.auth_result
        restaurant = get_owned_restaurant(auth_result, restaurant_id)
        request_body = utils_data.parse_raw_body(request)
        request_body = {key: value for key, value in request_body.items() if key in cls.owner_mutable_fields}
        return cls(**{**restaurant._to_dict(), **request_body, 'request_data': {'auth_result': auth_result}})

    @classmethod
    @utils_auth.authenticate_class
    def init_request_owner(cls, request, restaurant_id):
        logger.info("init_request_owner ::: started")
        restaurant = get_owned_restaurant(request.auth_result, restaurant_id)
        restaurant.request_data = {'auth_result': request.auth_result}
        return restaurant

    @classmethod
    @utils_auth.authenticate_class
    def init_request_mine(cls, request):
        logger.info("init_request_mine ::: started")
        auth_result = request.auth_result
        utils_auth.require_role(auth_result, [ROLE_OWNER])
        records = get_restaurants_by_owner(auth_result['user_id'])
        if not records:
            raise exceptions.RecordNotFound(f"Owner {auth_result['user_id']} has no restaurant")
        return cls(**records[0], request_data={'auth_result': auth_result})

    @classmethod
    @utils_auth.authenticate_class
    def init_request_admin(cls, request, restaurant_id):
        logger.info("init_request_admin ::: started")
        utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
        restaurant = cls.init_by_id(restaurant_id)
        restaurant.request_data = {'auth_result': request.auth_result}
        return restaurant

    @classmethod
    def init_request_get(cls, request, restaurant_id):
        logger.info("init_request_get ::: started")
        restaurant = cls.init_by_id(restaurant_id)
        restaurant.request_data = {'auth_result': utils_auth.get_optional_auth_result(request) or {}}
        return restaurant

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_get_all(request) -> Response:
        qp = request.query_params or {}
        records = get_approved_restaurants()
        restaurants = filter_restaurants(
            records,
            category=qp.get('category'),
            text=qp.get('q'),
            promo_only=utils_data.query_param_flag(qp.get('promo')),
            today=now_iso()[:10]
        )
        if qp.get('sort') == 'rating':
            restaurants = sort_by_popularity(restaurants)
        restaurants = [Restaurant(**record)._to_ui() for record in restaurants]
        logger.info(f"endpoint_get_all ::: returning restaurants={[rest['id'] for rest in restaurants]}")
        return Response(status_code=http200, body=restaurants)

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_get_nearby(request) -> Response:
        qp = request.query_params or {}
        lat, lng = to_decimal(qp.get('lat'), '1.000000'), to_decimal(qp.get('lng'), '1.000000')
        if lat is None or lng is None:
            raise exceptions.ValidationException('lat and lng query parameters are required')
        radius_km = utils_data.query_param_decimal(qp, 'radius_km', DEFAULT_NEARBY_RADIUS_KM)
        nearby = find_nearby(get_approved_restaurants(), float(lat), float(lng), float(radius_km))
        body = [{**Restaurant(**record)._to_ui(), 'distance_km': distance} for record, distance in nearby]
        return Response(status_code=http200, body=body)

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_admin_get_all(request) -> Response:
        utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
        status = (request.query_params or {}).get('status')
        filter_expression = Attr('status').eq(status) if status and status != 'all' else None
        records = utils_db.query_items_paged(
            Key('partkey').eq(keys_structure.restaurants_pk),
            filter_expression=filter_expression
        )
        records.sort(key=lambda record: record.get('date_created', ''), reverse=True)
        return Response(status_code=http200, body=[Restaurant(**record)._to_ui() for record in records])

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_get_by_id(self) -> Response:
        auth_result = self.request_data.get('auth_result', {})
        privileged = auth_result.get('role') == ROLE_ADMIN or auth_result.get('user_id') == self.owner_id
        if self.status != RESTAURANT_STATUS_APPROVED and not privileged:
            raise exceptions.RecordNotFound(f'Restaurant {self.id_} is not available')
        return Response(status_code=http200, body=self._to_ui())

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_create(self) -> Response:
        self._create_db_record()
        return Response(status_code=http201, body={'message': 'Restaurant successfully created', 'id': self.id_,
                                                   'status': self.status})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_update(self) -> Response:
        self._update_db_record()
        return Response(status_code=http200, body={'message': 'Restaurant was successfully updated', 'id': self.id_})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_set_open_status(self, is_open) -> Response:
        if not isinstance(is_open, bool):
            raise exceptions.ValidationException('is_open must be a boolean')
        self.is_open = is_open
        utils_db.update_fields(self._get_key(), {'is_open': is_open, 'date_updated': now_iso()})
        return Response(status_code=http200, body={'id': self.id_, 'is_open': is_open})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_set_status(self, status, reason=None) -> Response:
        if status not in (RESTAURANT_STATUS_APPROVED, RESTAURANT_STATUS_REJECTED):
            raise exceptions.ValidationException(f'Restaurant status must be approved or rejected, got {status}')
        fields = {'status': status, 'date_updated': now_iso()}
        if status == RESTAURANT_STATUS_REJECTED:
            fields['rejection_reason'] = reason or 'Rejected by admin'
        utils_db.update_fields(self._get_key(), fields)
        logger.info(f"endpoint_set_status ::: restaurant {self.id_} status {self.status} -> {status}")
        return Response(status_code=http200, body={'id': self.id_, 'status': status})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_suspend(self, reason) -> Response:
        if not is_non_empty_str(reason):
            raise exceptions.ValidationException('Suspension reason is required')
        admin_id = self.request_data.get('auth_result', {}).get('user_id')
        utils_db.update_fields(self._get_key(), {
            'status': RESTAURANT_STATUS_SUSPENDED,
            'suspension_reason': reason,
            'date_updated': now_iso()
        })
        write_suspension_log('restaurant', self.id_, reason, admin_id)
        return Response(status_code=http200, body={'id': self.id_, 'status': RESTAURANT_STATUS_SUSPENDED})

    def _update_fields_whitelist(self) -> List:
        return [*self.owner_mutable_fields, 'date_updated', 'updated_by']

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(restaurant_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'owner_id': self.owner_id,
            'name': self.name,
            'description': self.description,
            'address': self.address,
            'category': self.category,
            'cuisine': self.cuisine,
            'price_range': self.price_range,
            'phone': self.phone,
            'opening_time': self.opening_time,
            'closing_time': self.closing_time,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'is_open': self.is_open,
            'status': self.status,
            'rejection_reason': self.rejection_reason,
            'suspension_reason': self.suspension_reason,
            'rating': self.rating,
            'review_count': self.review_count,
            'last_rating_update': self.last_rating_update,
            'is_promo': self.is_promo,
            'promo_title': self.promo_title,
            'promo_description': self.promo_description,
            'promo_discount': self.promo_discount,
            'promo_discount_type': self.promo_discount_type,
            'promo_expiry': self.promo_expiry,
            'image': self.image,
            'date_created': self.date_created,
            'date_updated': self.date_updated,
            'created_by': self.created_by,
            'updated_by': self.updated_by
        }

    def snapshot(self) -> Dict:
        return {
            'name': self.name,
            'image': self.image,
            'category': self.category,
            'description': self.description,
            'rating': self.rating,
            'price_range': self.price_range,
            'address': self.address
        }


def get_owned_restaurant(auth_result: Dict, restaurant_id: str) -> Restaurant:
    """
    Owner may touch only own restaurant, admin may touch any
    """
    utils_auth.require_role(auth_result, [ROLE_OWNER, ROLE_ADMIN])
    restaurant = Restaurant.init_by_id(restaurant_id)
    if auth_result['role'] == ROLE_OWNER and restaurant.owner_id != auth_result['user_id']:
        raise exceptions.AccessDenied(f"User {auth_result['user_id']} does not own restaurant {restaurant_id}")
    return restaurant


def get_available_restaurant(restaurant_id: str) -> Restaurant:
    try:
        restaurant = Restaurant.init_by_id(restaurant_id)
    except exceptions.RecordNotFound:
        raise exceptions.RestaurantNotAvailable(f'Restaurant {restaurant_id} does not exist')
    if restaurant.status != RESTAURANT_STATUS_APPROVED:
        raise exceptions.RestaurantNotAvailable(f'Restaurant {restaurant_id} is not available')
    return restaurant


def get_restaurants_by_owner(owner_id: str) -> List[Dict]:
    return utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.restaurants_pk),
        filter_expression=Attr('owner_id').eq(owner_id)
    )


def get_all_restaurant_records() -> List[Dict]:
    return utils_db.query_items_paged(Key('partkey').eq(keys_structure.restaurants_pk))


def get_approved_restaurants() -> List[Dict]:
    return utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.restaurants_pk),
        filter_expression=Attr('status').eq(RESTAURANT_STATUS_APPROVED)
    )


def has_running_promo(record: Dict, today: str) -> bool:
    return bool(record.get('is_promo')) and (not record.get('promo_expiry') or record['promo_expiry'] >= today)


def matches_text(record: Dict, text: str) -> bool:
    text = text.lower()
    haystack = [record.get('name'), record.get('description'), record.get('address'), *(record.get('cuisine') or [])]
    return any(text in value.lower() for value in haystack if isinstance(value, str))


def filter_restaurants(records: List[Dict], category=None, text=None, promo_only=False, today=None) -> List[Dict]:
    result = records
    if category:
        result = [record for record in result if (record.get('category') or '').lower() == category.lower()]
    if text:
        result = [record for record in result if matches_text(record, text)]
    if promo_only:
        result = [record for record in result if has_running_promo(record, today)]
    return result


def sort_by_popularity(records: List[Dict]) -> List[Dict]:
    return sorted(
        records,
        key=lambda record: (record.get('rating') or 0, record.get('review_count') or 0),
        reverse=True
    )


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = math.sin(d_lat / 2) ** 2 + \
        math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def find_nearby(records: List[Dict], lat: float, lng: float, radius_km: float) -> List[Tuple[Dict, float]]:
    """
    Restaurants without coordinates are skipped, result is sorted by distance ascending
    """
    result = []
    for record in records:
        if record.get('latitude') is None or record.get('longitude') is None:
            continue
        distance = haversine_km(lat, lng, float(record['latitude']), float(record['longitude']))
        if distance <= radius_km:
            result.append((record, round(distance, 2)))
    return sorted(result, key=lambda pair: pair[1])
