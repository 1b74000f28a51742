from decimal import Decimal
from typing import Tuple, List, Dict
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_CUSTOMER, ROLE_OWNER, ROLE_ADMIN, RESERVATION_PENDING_APPROVAL, \
    RESERVATION_CONFIRMED, RESERVATION_CANCELLED, RESERVATION_COMPLETED, RESERVATION_STATUSES, PAYMENT_UNPAID
from chalicelib.constants.status_codes import http200, http201
from chalicelib.promos import price_order, resolve_order_items, get_active_promos, today_iso
from chalicelib.restaurants import get_available_restaurant, get_owned_restaurant
from chalicelib.utils import auth as utils_auth, data as utils_data, exceptions, db as utils_db, app as utils_app
from chalicelib.utils.data import is_number, is_non_empty_str, now_iso, substitute_records
from chalicelib.constants.substitute_keys import from_db
from chalicelib.utils.logger import logger

OWNER_TRANSITIONS = {
    RESERVATION_PENDING_APPROVAL: (RESERVATION_CONFIRMED, RESERVATION_CANCELLED),
    RESERVATION_CONFIRMED: (RESERVATION_COMPLETED, RESERVATION_CANCELLED)
}

CUSTOMER_TRANSITIONS = {
    RESERVATION_PENDING_APPROVAL: (RESERVATION_CANCELLED,),
    RESERVATION_CONFIRMED: (RESERVATION_CANCELLED,)
}

TRANSITIONS_BY_ACTOR = {
    ROLE_OWNER: OWNER_TRANSITIONS,
    ROLE_ADMIN: OWNER_TRANSITIONS,
    ROLE_CUSTOMER: CUSTOMER_TRANSITIONS
}


def check_transition(current_status: str, new_status: str, actor: str):
    """
    completed and cancelled are terminal for everybody
    """
    allowed = TRANSITIONS_BY_ACTOR.get(actor, {}).get(current_status, ())
    if new_status not in allowed:
        raise exceptions.InvalidStatusTransition(
            f'{actor} can not move reservation from {current_status} to {new_status}')


class Reservation(EntityBase):
    pk = keys_structure.reservations_pk
    sk = keys_structure.reservations_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'restaurant_id': lambda x: isinstance(x, str),
        'restaurant_owner_id': lambda x: isinstance(x, str),
        'user_id': lambda x: isinstance(x, str),
        'date': is_non_empty_str,
        'time': is_non_empty_str,
        'guests': lambda x: isinstance(x, int) and not isinstance(x, bool) and x >= 1,
        'menu_items': lambda x: isinstance(x, list),
        'total_before_discount': is_number,
        'discount': is_number,
        'total_price': is_number,
        'down_payment': is_number,
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'status': lambda x: x in RESERVATION_STATUSES,
        'payment_status': lambda x: isinstance(x, str),
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'restaurant_name': lambda x: isinstance(x, str),
        'user_name': lambda x: isinstance(x, str),
        'user_email': lambda x: isinstance(x, str),
        'user_phone': lambda x: isinstance(x, str),
        'area': lambda x: isinstance(x, str),
        'special_requests': lambda x: isinstance(x, str),
        'promo_applied': lambda x: isinstance(x, list)
    }

    def __init__(self, id_, restaurant_id, **kwargs):
        EntityBase.__init__(self, id_)

        self.request_data = kwargs.get('request_data', {})

        self.restaurant_id: str = restaurant_id
        self.restaurant_name: str = kwargs.get('restaurant_name')
        self.restaurant_owner_id: str = kwargs.get('restaurant_owner_id')
        self.user_id: str = kwargs.get('user_id')
        self.user_name: str = kwargs.get('user_name')
        self.user_email: str = kwargs.get('user_email')
        self.user_phone: str = kwargs.get('user_phone')
        self.date: str = kwargs.get('date')
        self.time: str = kwargs.get('time')
        self.area: str = kwargs.get('area')
        guests = kwargs.get('guests')
        self.guests: int = int(guests) if is_number(guests) else guests
        self.menu_items: list = kwargs.get('menu_items') or []
        self.special_requests: str = kwargs.get('special_requests')
        self.total_before_discount: Decimal = kwargs.get('total_before_discount')
        self.discount: Decimal = kwargs.get('discount')
        self.promo_applied: list = kwargs.get('promo_applied') or []
        self.total_price: Decimal = kwargs.get('total_price')
        self.down_payment: Decimal = kwargs.get('down_payment')
        self.status: str = kwargs.get('status') or RESERVATION_PENDING_APPROVAL
        self.payment_status: str = kwargs.get('payment_status') or PAYMENT_UNPAID
        self.transitions: dict = {
            f'{status}_{suffix}': kwargs.get(f'{status}_{suffix}')
            for status in (RESERVATION_CONFIRMED, RESERVATION_CANCELLED, RESERVATION_COMPLETED)
            for suffix in ('at', 'by')
        }
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'reservation'

    @classmethod
    @utils_auth.authenticate_class
    def init_request_create(cls, request, restaurant_id):
        logger.info("init_request_create ::: started")
        auth_result = request.auth_result
        utils_auth.require_role(auth_result, [ROLE_CUSTOMER])
        restaurant = get_available_restaurant(restaurant_id)
        body = utils_data.parse_raw_body(request)
        if not is_non_empty_str(body.get('date')) or not is_non_empty_str(body.get('time')):
            raise exceptions.ValidationException('Reservation date and time are required')
        items = resolve_order_items(restaurant_id, body.get('menu_items') or [])
        totals = price_order(items, get_active_promos(restaurant_id, today_iso()))
        return cls(
            id_=str(uuid4()),
            restaurant_id=restaurant_id,
            restaurant_name=restaurant.name,
            restaurant_owner_id=restaurant.owner_id,
            user_id=auth_result['user_id'],
            user_name=body.get('name') or auth_result.get('display_name'),
            user_email=auth_result.get('email'),
            user_phone=body.get('phone') or auth_result.get('phone') or '',
            date=body['date'],
            time=body['time'],
            area=body.get('area'),
            guests=body.get('guests', 1),
            menu_items=items,
            special_requests=body.get('special_requests'),
            request_data={'auth_result': auth_result},
            **totals
        )

    @classmethod
    @utils_auth.authenticate_class
    def init_request_get(cls, request, restaurant_id, reservation_id):
        logger.info("init_request_get ::: started")
        reservation = cls.init_by_id(reservation_id, restaurant_id)
        reservation.request_data = {'auth_result': request.auth_result}
        reservation.resolve_actor()
        return reservation

    @classmethod
    def init_by_id(cls, reservation_id, restaurant_id):
        c = cls(id_=reservation_id, restaurant_id=restaurant_id)
        c.__init__(**c._get_db_item())
        return c

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_get_my_reservations(request) -> Response:
        utils_auth.require_role(request.auth_result, [ROLE_CUSTOMER])
        records = get_user_reservation_records(request.auth_result['user_id'])
        substitute_records(records, from_db)
        return Response(status_code=http200, body=records)

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_get_restaurant_reservations(request, restaurant_id) -> Response:
        get_owned_restaurant(request.auth_result, restaurant_id)
        status = (request.query_params or {}).get('status')
        records = get_restaurant_reservation_records(restaurant_id, status)
        records.sort(key=lambda record: record.get('date_created', ''), reverse=True)
        substitute_records(records, from_db)
        return Response(status_code=http200, body=records)

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_create(self) -> Response:
        self._create_db_record()
        return Response(status_code=http201, body=self._to_ui())

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_get_by_id(self) -> Response:
        return Response(status_code=http200, body=self._to_ui())

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_change_status(self, new_status) -> Response:
        actor = self.resolve_actor()
        check_transition(self.status, new_status, actor)
        actor_id = self.request_data['auth_result']['user_id']
        stamp = now_iso()
        utils_db.update_fields(self._get_key(), {
            'status': new_status,
            f'{new_status}_at': stamp,
            f'{new_status}_by': actor_id,
            'date_updated': stamp
        })
        logger.info(f"endpoint_change_status ::: reservation {self.id_} {self.status} -> {new_status} by {actor}")
        self.status = new_status
        self.transitions.update({f'{new_status}_at': stamp, f'{new_status}_by': actor_id})
        return Response(status_code=http200, body=self._to_ui())

    def resolve_actor(self) -> str:
        """
        Role the caller acts in for this reservation, AccessDenied for strangers
        """
        auth_result = self.request_data.get('auth_result', {})
        if auth_result.get('role') == ROLE_ADMIN:
            return ROLE_ADMIN
        if auth_result.get('role') == ROLE_OWNER and auth_result.get('user_id') == self.restaurant_owner_id:
            return ROLE_OWNER
        if auth_result.get('role') == ROLE_CUSTOMER and auth_result.get('user_id') == self.user_id:
            return ROLE_CUSTOMER
        raise exceptions.AccessDenied(f"User {auth_result.get('user_id')} has no access to reservation {self.id_}")

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(restaurant_id=self.restaurant_id), self.sk.format(reservation_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'restaurant_id': self.restaurant_id,
            'restaurant_name': self.restaurant_name,
            'restaurant_owner_id': self.restaurant_owner_id,
            'user_id': self.user_id,
            'user_name': self.user_name,
            'user_email': self.user_email,
            'user_phone': self.user_phone,
            'date': self.date,
            'time': self.time,
            'area': self.area,
            'guests': self.guests,
            'menu_items': self.menu_items,
            'special_requests': self.special_requests,
            'total_before_discount': self.total_before_discount,
            'discount': self.discount,
            'promo_applied': self.promo_applied,
            'total_price': self.total_price,
            'down_payment': self.down_payment,
            'status': self.status,
            'payment_status': self.payment_status,
            **{key: value for key, value in self.transitions.items() if value is not None},
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }

    def _init_db_record(self) -> None:
        EntityBase._init_db_record(self)
        self.db_record = utils_data.cleanup_dict(self.db_record, [None])


def get_user_reservation_records(user_id: str) -> List[Dict]:
    return utils_db.query_items_paged(
        Key('user_id').eq(user_id),
        filter_expression=Attr('record_type').eq('reservation'),
        index_name=keys_structure.gsi_user_records,
        scan_index_forward=False
    )


def get_restaurant_reservation_records(restaurant_id: str, status: str = None) -> List[Dict]:
    filter_expression = Attr('status').eq(status) if status and status != 'all' else None
    return utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.reservations_pk.format(restaurant_id=restaurant_id)),
        filter_expression=filter_expression
    )
