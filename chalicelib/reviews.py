from decimal import Decimal
from typing import Tuple, List, Dict
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_CUSTOMER, ROLE_OWNER, ROLE_ADMIN
from chalicelib.constants.status_codes import http200, http201
from chalicelib.constants.substitute_keys import from_db
from chalicelib.moderation_logs import write_review_deletion_log
from chalicelib.ratings import compute_rating, rating_distribution, get_review_records, update_restaurant_rating
from chalicelib.restaurants import get_available_restaurant, get_owned_restaurant, get_restaurants_by_owner
from chalicelib.utils import auth as utils_auth, data as utils_data, exceptions, db as utils_db, app as utils_app
from chalicelib.utils.data import is_non_empty_str, now_iso, substitute_records
from chalicelib.utils.logger import logger


def is_valid_rating(value) -> bool:
    return isinstance(value, (int, Decimal)) and not isinstance(value, bool) and value == int(value) \
        and 1 <= value <= 5


class Review(EntityBase):
    pk = keys_structure.reviews_pk
    sk = keys_structure.reviews_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'restaurant_id': lambda x: isinstance(x, str),
        'user_id': lambda x: isinstance(x, str),
        'rating': is_valid_rating,
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'has_owner_reply': lambda x: isinstance(x, bool)
    }

    optional_fields_validation = {
        'restaurant_name': lambda x: isinstance(x, str),
        'user_name': lambda x: isinstance(x, str),
        'user_email': lambda x: isinstance(x, str),
        'comment': lambda x: isinstance(x, str),
        'owner_reply': lambda x: isinstance(x, str),
        'owner_id': lambda x: isinstance(x, str),
        'owner_name': lambda x: isinstance(x, str),
        'replied_at': lambda x: isinstance(x, str),
        'report_status': lambda x: isinstance(x, str),
        'reported_at': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, restaurant_id, **kwargs):
        EntityBase.__init__(self, id_)

        self.request_data = kwargs.get('request_data', {})

        self.restaurant_id: str = restaurant_id
        self.restaurant_name: str = kwargs.get('restaurant_name')
        self.user_id: str = kwargs.get('user_id')
        self.user_name: str = kwargs.get('user_name')
        self.user_email: str = kwargs.get('user_email')
        rating = kwargs.get('rating')
        self.rating = int(rating) if is_valid_rating(rating) else rating
        self.comment: str = kwargs.get('comment') or ''
        self.has_owner_reply: bool = kwargs.get('has_owner_reply', False)
        self.owner_reply: str = kwargs.get('owner_reply')
        self.owner_id: str = kwargs.get('owner_id')
        self.owner_name: str = kwargs.get('owner_name')
        self.replied_at: str = kwargs.get('replied_at')
        self.report_status: str = kwargs.get('report_status')
        self.reported_at: str = kwargs.get('reported_at')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.record_type = 'review'

    @classmethod
    @utils_auth.authenticate_class
    def init_request_create(cls, request, restaurant_id):
        logger.info("init_request_create ::: started")
        auth_result = request.auth_result
        utils_auth.require_role(auth_result, [ROLE_CUSTOMER])
        restaurant = get_available_restaurant(restaurant_id)
        body = utils_data.parse_raw_body(request)
        if not is_valid_rating(body.get('rating')):
            raise exceptions.ValidationException('Rating must be an integer from 1 to 5')
        return cls(
            id_=str(uuid4()),
            restaurant_id=restaurant_id,
            restaurant_name=restaurant.name,
            user_id=auth_result['user_id'],
            user_name=auth_result.get('display_name'),
            user_email=auth_result.get('email'),
            rating=body['rating'],
            comment=body.get('comment'),
            request_data={'auth_result': auth_result}
        )

    @classmethod
    @utils_auth.authenticate_class
    def init_request_reply(cls, request, restaurant_id, review_id):
        logger.info("init_request_reply ::: started")
        utils_auth.require_role(request.auth_result, [ROLE_OWNER])
        get_owned_restaurant(request.auth_result, restaurant_id)
        review = cls.init_by_id(review_id, restaurant_id)
        review.request_data = {'auth_result': request.auth_result}
        return review

    @classmethod
    @utils_auth.authenticate_class
    def init_request_admin(cls, request, restaurant_id, review_id):
        logger.info("init_request_admin ::: started")
        utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
        review = cls.init_by_id(review_id, restaurant_id)
        review.request_data = {'auth_result': request.auth_result}
        return review

    @classmethod
    def init_by_id(cls, review_id, restaurant_id):
        c = cls(id_=review_id, restaurant_id=restaurant_id)
        c.__init__(**c._get_db_item())
        return c

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_get_restaurant_reviews(request, restaurant_id) -> Response:
        records = newest_first(get_review_records(restaurant_id))
        return Response(status_code=http200, body=[Review(**record)._to_ui() for record in records])

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_get_review_summary(request, restaurant_id) -> Response:
        records = get_review_records(restaurant_id)
        rating, count = compute_rating(records)
        return Response(status_code=http200, body={
            'restaurant_id': restaurant_id,
            'rating': rating,
            'review_count': count,
            'distribution': rating_distribution(records)
        })

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_get_my_reviews(request) -> Response:
        records = utils_db.query_items_paged(
            Key('user_id').eq(request.auth_result['user_id']),
            filter_expression=Attr('record_type').eq('review'),
            index_name=keys_structure.gsi_user_records,
            scan_index_forward=False
        )
        substitute_records(records, from_db)
        return Response(status_code=http200, body=records)

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_get_owner_reviews(request) -> Response:
        utils_auth.require_role(request.auth_result, [ROLE_OWNER])
        records = []
        for restaurant in get_restaurants_by_owner(request.auth_result['user_id']):
            records.extend(get_review_records(restaurant['id_']))
        return Response(status_code=http200, body=[Review(**record)._to_ui() for record in newest_first(records)])

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_create(self) -> Response:
        self._create_db_record()
        rating = update_restaurant_rating(self.restaurant_id)
        return Response(status_code=http201, body={
            'message': 'Review successfully created',
            'id': self.id_,
            'restaurant_rating': rating['rating'],
            'review_count': rating['review_count']
        })

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_reply(self, reply) -> Response:
        if not is_non_empty_str(reply):
            raise exceptions.ValidationException('Reply text is required')
        auth_result = self.request_data['auth_result']
        self.owner_reply = reply.strip()
        self.owner_id = auth_result['user_id']
        self.owner_name = auth_result.get('display_name')
        self.replied_at = now_iso()
        self.has_owner_reply = True
        utils_db.update_fields(self._get_key(), {
            'owner_reply': self.owner_reply,
            'owner_id': self.owner_id,
            'owner_name': self.owner_name,
            'replied_at': self.replied_at,
            'has_owner_reply': True
        })
        return Response(status_code=http200, body=self._to_ui())

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_delete(self, reason=None) -> Response:
        admin_id = self.request_data['auth_result']['user_id']
        rating = delete_review(self._to_dict(), admin_id, reason or 'Deleted by admin')
        return Response(status_code=http200, body={
            'message': 'Review was successfully deleted',
            'id': self.id_,
            'restaurant_rating': rating['rating'],
            'review_count': rating['review_count']
        })

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(restaurant_id=self.restaurant_id), self.sk.format(review_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'restaurant_id': self.restaurant_id,
            'restaurant_name': self.restaurant_name,
            'user_id': self.user_id,
            'user_name': self.user_name,
            'user_email': self.user_email,
            'rating': self.rating,
            'comment': self.comment,
            'has_owner_reply': self.has_owner_reply,
            'owner_reply': self.owner_reply,
            'owner_id': self.owner_id,
            'owner_name': self.owner_name,
            'replied_at': self.replied_at,
            'report_status': self.report_status,
            'reported_at': self.reported_at,
            'date_created': self.date_created
        }

    def _init_db_record(self) -> None:
        EntityBase._init_db_record(self)
        self.db_record = utils_data.cleanup_dict(self.db_record, [None])


def newest_first(records: List[Dict]) -> List[Dict]:
    return sorted(records, key=lambda record: record.get('date_created', ''), reverse=True)


def review_key(restaurant_id: str, review_id: str) -> Dict:
    return {
        'partkey': keys_structure.reviews_pk.format(restaurant_id=restaurant_id),
        'sortkey': keys_structure.reviews_sk.format(review_id=review_id)
    }


def delete_review(review: Dict, deleted_by: str, reason: str) -> Dict:
    """
    Delete, keep a deletion log and recompute the restaurant rating
    """
    utils_db.delete_db_record(review_key(review['restaurant_id'], review['id_']))
    write_review_deletion_log(review, deleted_by, reason)
    return update_restaurant_rating(review['restaurant_id'])
