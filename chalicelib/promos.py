from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Dict, Tuple
from uuid import uuid4

from boto3.dynamodb.conditions import Key
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import PROMO_ACTIVE, PROMO_STATUSES, DISCOUNT_PERCENTAGE, DISCOUNT_TYPES, \
    DOWN_PAYMENT_RATIO
from chalicelib.constants.status_codes import http200, http201
from chalicelib.menu_items import MenuItem, get_menu_item_records
from chalicelib.restaurants import Restaurant, get_owned_restaurant, get_available_restaurant
from chalicelib.utils import auth as utils_auth, data as utils_data, exceptions, db as utils_db, app as utils_app
from chalicelib.utils.data import is_number, is_non_empty_str, now_iso, to_decimal
from chalicelib.utils.logger import logger

ZERO = Decimal('0')
PROMO_SUMMARY_FIELDS = ('promo_title', 'promo_description', 'promo_discount', 'promo_discount_type', 'promo_expiry')
WHOLE = Decimal('1')


def is_iso_date(value) -> bool:
    try:
        date.fromisoformat(value)
        return True
    except (TypeError, ValueError):
        return False


def normalize_iso_date(value):
    """
    YYYY-MM-DD form of any ISO date (20240101 included), other values are returned unchanged
    """
    try:
        return date.fromisoformat(value).isoformat()
    except (TypeError, ValueError):
        return value


class Promo(EntityBase):
    pk = keys_structure.promos_pk
    sk = keys_structure.promos_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'restaurant_id': lambda x: isinstance(x, str),
        'created_by': lambda x: isinstance(x, str),
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'name': is_non_empty_str,
        'discount_type': lambda x: x in DISCOUNT_TYPES,
        'discount_value': lambda x: is_number(x) and x > 0,
        'menu_ids': lambda x: isinstance(x, list),
        'status': lambda x: x in PROMO_STATUSES,
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'description': lambda x: isinstance(x, str),
        'min_purchase': lambda x: is_number(x) and x >= 0,
        'start_date': is_iso_date,
        'end_date': is_iso_date,
        'updated_by': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, restaurant_id, **kwargs):
        EntityBase.__init__(self, id_)

        self.request_data = kwargs.get('request_data', {})

        self.restaurant_id: str = restaurant_id
        self.name: str = kwargs.get('name')
        self.description: str = kwargs.get('description')
        self.discount_type: str = kwargs.get('discount_type')
        self.discount_value: Decimal = to_decimal(kwargs.get('discount_value'))
        self.min_purchase: Decimal = to_decimal(kwargs.get('min_purchase'))
        self.start_date: str = normalize_iso_date(kwargs.get('start_date'))
        self.end_date: str = normalize_iso_date(kwargs.get('end_date'))
        self.menu_ids: list = kwargs.get('menu_ids') or []
        self.status: str = kwargs.get('status') or PROMO_ACTIVE
        self.created_by: str = kwargs.get('created_by') or self.request_data.get('auth_result', {}).get('user_id')
        self.updated_by: str = kwargs.get('updated_by') or self.request_data.get('auth_result', {}).get('user_id')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'promo'

    @classmethod
    @utils_auth.authenticate_class
    def init_request_create(cls, request, restaurant_id):
        logger.info("init_request_create ::: started")
        auth_result = request.auth_result
        get_owned_restaurant(auth_result, restaurant_id)
        request_body = utils_data.parse_raw_body(request)
        request_body = {key: value for key, value in request_body.items() if key in cls.mutable_fields()}
        return cls(id_=str(uuid4()), restaurant_id=restaurant_id,
                   request_data={'auth_result': auth_result}, **request_body)

    @classmethod
    @utils_auth.authenticate_class
    def init_request_update(cls, request, restaurant_id, promo_id):
        logger.info("init_request_update ::: started")
        auth_result = request.auth_result
        get_owned_restaurant(auth_result, restaurant_id)
        promo = cls.init_by_id(promo_id, restaurant_id)
        request_body = utils_data.parse_raw_body(request)
        request_body = {key: value for key, value in request_body.items() if key in cls.mutable_fields()}
        return cls(**{**promo._to_dict(), **request_body, 'request_data': {'auth_result': auth_result}})

    @classmethod
    @utils_auth.authenticate_class
    def init_request_owner(cls, request, restaurant_id, promo_id):
        logger.info("init_request_owner ::: started")
        get_owned_restaurant(request.auth_result, restaurant_id)
        return cls.init_by_id(promo_id, restaurant_id)

    @classmethod
    def init_by_id(cls, promo_id, restaurant_id):
        c = cls(id_=promo_id, restaurant_id=restaurant_id)
        c.__init__(**c._get_db_item())
        return c

    @classmethod
    def mutable_fields(cls) -> List:
        return [key for key in [*cls.required_mutable_fields_validation, *cls.optional_fields_validation]
                if key not in ('date_updated', 'updated_by')]

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_get_restaurant_promos(request, restaurant_id) -> Response:
        get_owned_restaurant(request.auth_result, restaurant_id)
        promos = [Promo(**record)._to_ui() for record in get_promo_records(restaurant_id)]
        return Response(status_code=http200, body=promos)

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_get_active_promos(request, restaurant_id) -> Response:
        get_available_restaurant(restaurant_id)
        active = get_active_promos(restaurant_id, today_iso())
        return Response(status_code=http200, body=[Promo(**record)._to_ui() for record in active])

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_quote(request, restaurant_id) -> Response:
        get_available_restaurant(restaurant_id)
        requested = utils_data.parse_raw_body(request).get('menu_items') or []
        items = resolve_order_items(restaurant_id, requested)
        totals = price_order(items, get_active_promos(restaurant_id, today_iso()))
        return Response(status_code=http200, body={'menu_items': items, **totals})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_create(self) -> Response:
        self._validate_business_rules()
        self._create_db_record()
        refresh_restaurant_promo_summary(self.restaurant_id)
        return Response(status_code=http201, body={'message': 'Promo successfully created', 'id': self.id_})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_update(self) -> Response:
        self._init_db_record()
        self._validate_mandatory_fields()
        self._validate_optional_fields()
        self._validate_business_rules()
        self._update_db_record()
        refresh_restaurant_promo_summary(self.restaurant_id)
        return Response(status_code=http200, body={'message': 'Promo was successfully updated', 'id': self.id_})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_delete(self) -> Response:
        self._delete_db_record()
        refresh_restaurant_promo_summary(self.restaurant_id)
        return Response(status_code=http200, body={'message': 'Promo was successfully deleted', 'id': self.id_})

    def _validate_business_rules(self):
        if self.discount_type == DISCOUNT_PERCENTAGE and self.discount_value is not None \
                and self.discount_value > 100:
            raise exceptions.ValidationException('Percentage discount can not exceed 100')
        if self.start_date and self.end_date and is_iso_date(self.start_date) and is_iso_date(self.end_date) \
                and self.end_date < self.start_date:
            raise exceptions.ValidationException('end_date must not be before start_date')
        if self.menu_ids:
            known_ids = {record['id_'] for record in get_menu_item_records(self.restaurant_id)}
            unknown = [menu_id for menu_id in self.menu_ids if menu_id not in known_ids]
            if unknown:
                raise exceptions.ValidationException(f'Unknown menu items for restaurant: {unknown}')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(restaurant_id=self.restaurant_id), self.sk.format(promo_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'restaurant_id': self.restaurant_id,
            'name': self.name,
            'description': self.description,
            'discount_type': self.discount_type,
            'discount_value': self.discount_value,
            'min_purchase': self.min_purchase,
            'start_date': self.start_date,
            'end_date': self.end_date,
            'menu_ids': self.menu_ids,
            'status': self.status,
            'date_created': self.date_created,
            'date_updated': self.date_updated,
            'created_by': self.created_by,
            'updated_by': self.updated_by
        }


def today_iso() -> str:
    return date.today().isoformat()


def get_promo_records(restaurant_id: str) -> List[Dict]:
    return utils_db.query_items_paged(Key('partkey').eq(keys_structure.promos_pk.format(restaurant_id=restaurant_id)))


def get_active_promos(restaurant_id: str, today: str) -> List[Dict]:
    return [promo for promo in get_promo_records(restaurant_id) if is_promo_active(promo, today)]


def is_promo_active(promo: Dict, today: str) -> bool:
    """
    Active status and today within [start_date, end_date], a missing bound is open
    """
    if promo.get('status') != PROMO_ACTIVE:
        return False
    start_date, end_date = normalize_iso_date(promo.get('start_date')), normalize_iso_date(promo.get('end_date'))
    if start_date and start_date[:10] > today:
        return False
    if end_date and end_date[:10] < today:
        return False
    return True


def _value(promo: Dict) -> Decimal:
    return Decimal(str(promo.get('discount_value') or 0))


def unit_discount(promo: Dict, price) -> Decimal:
    if promo.get('discount_type') == DISCOUNT_PERCENTAGE:
        return Decimal(str(price)) * _value(promo) / 100
    return _value(promo)


def is_restaurant_wide(promo: Dict) -> bool:
    return not promo.get('menu_ids')


def build_menu_promo_map(active_promos: List[Dict], menu_prices: Dict[str, Decimal]) -> Dict[str, Dict]:
    """
    menu_id -> item promo with the largest unit discount for that item, the first one wins a tie
    """
    promo_map = {}
    for promo in active_promos:
        if is_restaurant_wide(promo):
            continue
        for menu_id in promo['menu_ids']:
            existing = promo_map.get(menu_id)
            price = menu_prices.get(menu_id, ZERO)
            if existing is None or unit_discount(promo, price) > unit_discount(existing, price):
                promo_map[menu_id] = promo
    return promo_map


def _meets_min_purchase(promo: Dict, subtotal: Decimal) -> bool:
    return not promo.get('min_purchase') or subtotal >= Decimal(str(promo['min_purchase']))


def calculate_totals(items: List[Dict], active_promos: List[Dict]) -> Dict:
    """
    items: [{id, price, quantity}]
    Item promos and the best restaurant-wide promo are not stacked,
    the restaurant promo wins only when strictly larger than the sum of item discounts
    """
    subtotal = sum((Decimal(str(item['price'])) * int(item['quantity']) for item in items), ZERO)
    if subtotal <= 0:
        return {'subtotal': ZERO, 'discount': ZERO, 'total': ZERO, 'applied': []}

    menu_prices = {item['id']: Decimal(str(item['price'])) for item in items}
    promo_map = build_menu_promo_map(active_promos, menu_prices)

    item_discount, applied_item_promos = ZERO, []
    for item in items:
        promo = promo_map.get(item['id'])
        if promo is None or not _meets_min_purchase(promo, subtotal):
            continue
        price, quantity = Decimal(str(item['price'])), int(item['quantity'])
        discount = min(unit_discount(promo, price) * quantity, price * quantity)
        if discount > 0:
            item_discount += discount
            applied_item_promos.append({'type': 'menu', 'promo_id': promo.get('id_'), 'name': promo.get('name'),
                                        'menu_id': item['id'], 'amount': discount})

    best_promo, best_amount = None, ZERO
    for promo in active_promos:
        if not is_restaurant_wide(promo) or not _meets_min_purchase(promo, subtotal):
            continue
        amount = min(unit_discount(promo, subtotal), subtotal)
        if amount > best_amount:
            best_promo, best_amount = promo, amount

    discount, applied = item_discount, applied_item_promos
    if best_amount > item_discount:
        discount = best_amount
        applied = [{'type': 'restaurant', 'promo_id': best_promo.get('id_'), 'name': best_promo.get('name'),
                    'amount': best_amount}]

    return {'subtotal': subtotal, 'discount': discount, 'total': max(ZERO, subtotal - discount), 'applied': applied}


def round_currency(value: Decimal) -> Decimal:
    return Decimal(value).quantize(WHOLE, rounding=ROUND_HALF_UP)


def price_order(items: List[Dict], active_promos: List[Dict]) -> Dict:
    """
    Reservation money fields: discount and total are whole currency units, down payment is half of the total
    """
    totals = calculate_totals(items, active_promos)
    total_price = round_currency(totals['total'])
    return {
        'total_before_discount': totals['subtotal'],
        'discount': round_currency(totals['discount']),
        'promo_applied': [{**applied, 'amount': round_currency(applied['amount'])} for applied in totals['applied']],
        'total_price': total_price,
        'down_payment': round_currency(total_price * Decimal(DOWN_PAYMENT_RATIO))
    }


def resolve_order_items(restaurant_id: str, requested: List[Dict]) -> List[Dict]:
    """
    Prices always come from the menu, never from the client
    """
    menu = {record['id_']: record for record in get_menu_item_records(restaurant_id)}
    items = []
    for requested_item in requested:
        menu_id = requested_item.get('id')
        quantity = requested_item.get('quantity', 1)
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
            raise exceptions.ValidationException(f'Wrong quantity={quantity} for menu item {menu_id}')
        record = menu.get(menu_id)
        if record is None or not MenuItem(**record).is_orderable():
            raise exceptions.SomeItemsAreNotAvailable(f'Menu item {menu_id} is not available')
        items.append({'id': menu_id, 'name': record.get('name'), 'price': record.get('price'),
                      'quantity': quantity})
    return items


def refresh_restaurant_promo_summary(restaurant_id: str):
    """
    Restaurant card shows the newest promo that is active or starts later
    """
    today = today_iso()
    candidates = [
        promo for promo in get_promo_records(restaurant_id)
        if promo.get('status') == PROMO_ACTIVE
        and (not promo.get('end_date') or normalize_iso_date(promo['end_date'])[:10] >= today)
    ]
    key = Restaurant(restaurant_id)._get_key()
    if not candidates:
        utils_db.update_db_record(
            key=key,
            update_body={'is_promo': False, 'date_updated': now_iso(), **{field: '' for field in PROMO_SUMMARY_FIELDS}},
            allowed_attrs_to_update=['is_promo', 'date_updated', *PROMO_SUMMARY_FIELDS],
            allowed_attrs_to_delete=list(PROMO_SUMMARY_FIELDS)
        )
        logger.info(f"refresh_restaurant_promo_summary ::: restaurant {restaurant_id} has no promo")
        return
    promo = max(candidates, key=lambda record: record.get('date_created', ''))
    utils_db.update_fields(key, {
        'is_promo': True,
        'promo_title': promo.get('name'),
        'promo_description': promo.get('description') or '',
        'promo_discount': promo.get('discount_value'),
        'promo_discount_type': promo.get('discount_type'),
        'promo_expiry': normalize_iso_date(promo.get('end_date')) or '',
        'date_updated': now_iso()
    })
    logger.info(f"refresh_restaurant_promo_summary ::: restaurant {restaurant_id} shows promo {promo.get('id_')}")
