from collections import defaultdict
from typing import Tuple, List, Dict
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_CUSTOMER, ROLE_OWNER, ROLE_ADMIN, REPORT_PENDING, REPORT_APPROVED, \
    REPORT_REJECTED, REPORT_STATUSES, REPORT_SUSPENSION_THRESHOLD, NEGATIVE_REVIEW_THRESHOLD, \
    NEGATIVE_REVIEW_MAX_RATING, LOW_RATING_THRESHOLD, USER_STATUS_SUSPENDED, SYSTEM_RECIPIENT
from chalicelib.constants.status_codes import http200, http201
from chalicelib.ratings import get_review_records
from chalicelib.restaurants import Restaurant, get_all_restaurant_records
from chalicelib.reviews import Review, delete_review, review_key
from chalicelib.users import suspend_user, get_user_records
from chalicelib.utils import auth as utils_auth, data as utils_data, exceptions, db as utils_db, app as utils_app
from chalicelib.utils.data import is_non_empty_str, now_iso
from chalicelib.utils.logger import logger


class Report(EntityBase):
    pk = keys_structure.reports_pk
    sk = keys_structure.reports_sk

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'review_id': lambda x: isinstance(x, str),
        'restaurant_id': lambda x: isinstance(x, str),
        'user_id': lambda x: isinstance(x, str),
        'reporter_id': lambda x: isinstance(x, str),
        'reason': is_non_empty_str,
        'date_created': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'status': lambda x: x in REPORT_STATUSES,
        'date_updated': lambda x: isinstance(x, str)
    }

    optional_fields_validation = {
        'restaurant_name': lambda x: isinstance(x, str),
        'category': lambda x: isinstance(x, str),
        'reporter_role': lambda x: isinstance(x, str),
        'review_rating': lambda x: x is not None,
        'review_comment': lambda x: isinstance(x, str),
        'admin_notes': lambda x: isinstance(x, str),
        'resolved_at': lambda x: isinstance(x, str),
        'resolved_by': lambda x: isinstance(x, str)
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_)

        self.request_data = kwargs.get('request_data', {})

        self.review_id: str = kwargs.get('review_id')
        self.restaurant_id: str = kwargs.get('restaurant_id')
        self.restaurant_name: str = kwargs.get('restaurant_name')
        self.user_id: str = kwargs.get('user_id')
        self.reporter_id: str = kwargs.get('reporter_id')
        self.reporter_role: str = kwargs.get('reporter_role')
        self.reason: str = kwargs.get('reason')
        self.category: str = kwargs.get('category')
        self.review_rating = kwargs.get('review_rating')
        self.review_comment: str = kwargs.get('review_comment')
        self.status: str = kwargs.get('status') or REPORT_PENDING
        self.admin_notes: str = kwargs.get('admin_notes')
        self.resolved_at: str = kwargs.get('resolved_at')
        self.resolved_by: str = kwargs.get('resolved_by')
        self.date_created: str = kwargs.get('date_created') or now_iso()
        self.date_updated: str = kwargs.get('date_updated') or now_iso()
        self.record_type = 'report'

    @classmethod
    @utils_auth.authenticate_class
    def init_request_create(cls, request, restaurant_id, review_id):
        logger.info("init_request_create ::: started")
        auth_result = request.auth_result
        utils_auth.require_role(auth_result, [ROLE_CUSTOMER, ROLE_OWNER])
        review = Review.init_by_id(review_id, restaurant_id)
        if auth_result['role'] == ROLE_OWNER:
            restaurant = Restaurant.init_by_id(restaurant_id)
            if restaurant.owner_id != auth_result['user_id']:
                raise exceptions.AccessDenied('Owner can report reviews of own restaurant only')
        if review.user_id == auth_result['user_id']:
            raise exceptions.ValidationException('You can not report your own review')
        body = utils_data.parse_raw_body(request)
        return cls(
            id_=str(uuid4()),
            review_id=review_id,
            restaurant_id=restaurant_id,
            restaurant_name=review.restaurant_name,
            user_id=review.user_id,
            reporter_id=auth_result['user_id'],
            reporter_role=auth_result['role'],
            reason=body.get('reason'),
            category=body.get('category'),
            review_rating=review.rating,
            review_comment=review.comment,
            request_data={'auth_result': auth_result}
        )

    @classmethod
    @utils_auth.authenticate_class
    def init_request_admin(cls, request, report_id):
        logger.info("init_request_admin ::: started")
        utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
        report = cls(report_id)
        report.__init__(**report._get_db_item())
        report.request_data = {'auth_result': request.auth_result}
        return report

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_get_reports(request) -> Response:
        utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
        status = (request.query_params or {}).get('status') or REPORT_PENDING
        records = get_report_records(status)
        records.sort(key=lambda record: record.get('date_created', ''), reverse=True)
        return Response(status_code=http200, body=[Report(**record)._to_ui() for record in records])

    @staticmethod
    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    @utils_auth.authenticate
    def endpoint_get_insights(request) -> Response:
        utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
        qp = request.query_params or {}
        min_count = utils_data.query_param_int(qp, 'min_count', 1)
        negative_threshold = utils_data.query_param_int(qp, 'negative_threshold', NEGATIVE_REVIEW_THRESHOLD)
        rating_threshold = utils_data.query_param_decimal(qp, 'rating_threshold', LOW_RATING_THRESHOLD)
        users_by_id = {record['id_']: record for record in get_user_records()}
        restaurants = get_all_restaurant_records()
        restaurants_by_id = {record['id_']: record for record in restaurants}
        reviews = [review for restaurant in restaurants for review in get_review_records(restaurant['id_'])]
        return Response(status_code=http200, body={
            'users_with_approved_reports': users_with_approved_reports(
                get_report_records(REPORT_APPROVED), users_by_id, min_count),
            'users_with_repeated_negative_reviews': users_with_repeated_negative_reviews(
                reviews, users_by_id, restaurants_by_id, negative_threshold),
            'low_rated_restaurants': low_rated_restaurants(restaurants, rating_threshold),
            'reported_users': reported_users(get_report_records(REPORT_PENDING), users_by_id)
        })

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_create(self) -> Response:
        self._create_db_record()
        stamp = now_iso()
        utils_db.update_fields(review_key(self.restaurant_id, self.review_id), {
            'report_status': REPORT_PENDING,
            'reported_at': stamp
        })
        return Response(status_code=http201, body={'message': 'Review was reported', 'id': self.id_})

    @utils_app.request_exception_handler
    @utils_app.log_start_finish
    def endpoint_resolve(self, status, admin_notes=None) -> Response:
        admin_id = self.request_data['auth_result']['user_id']
        result = resolve_report(self._to_dict(), status, admin_id, admin_notes or '')
        return Response(status_code=http200, body=result)

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(report_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'review_id': self.review_id,
            'restaurant_id': self.restaurant_id,
            'restaurant_name': self.restaurant_name,
            'user_id': self.user_id,
            'reporter_id': self.reporter_id,
            'reporter_role': self.reporter_role,
            'reason': self.reason,
            'category': self.category,
            'review_rating': self.review_rating,
            'review_comment': self.review_comment,
            'status': self.status,
            'admin_notes': self.admin_notes,
            'resolved_at': self.resolved_at,
            'resolved_by': self.resolved_by,
            'date_created': self.date_created,
            'date_updated': self.date_updated
        }

    def _init_db_record(self) -> None:
        EntityBase._init_db_record(self)
        self.db_record = utils_data.cleanup_dict(self.db_record, [None])


def report_key(report_id: str) -> Dict:
    return {'partkey': keys_structure.reports_pk, 'sortkey': keys_structure.reports_sk.format(report_id=report_id)}


def get_report_records(status: str = 'all') -> List[Dict]:
    filter_expression = Attr('status').eq(status) if status and status != 'all' else None
    return utils_db.query_items_paged(Key('partkey').eq(keys_structure.reports_pk),
                                      filter_expression=filter_expression)


def count_approved_reports(user_id: str) -> int:
    return len(utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.reports_pk),
        filter_expression=Attr('user_id').eq(user_id) & Attr('status').eq(REPORT_APPROVED)
    ))


def resolve_report(report: Dict, status: str, admin_id: str, admin_notes: str) -> Dict:
    """
    Approval deletes the review and may suspend its author, rejection only closes the report
    """
    if status not in (REPORT_APPROVED, REPORT_REJECTED):
        raise exceptions.ValidationException(f'Report can be approved or rejected, got {status}')
    if report.get('status') != REPORT_PENDING:
        raise exceptions.InvalidStatusTransition(f"Report {report['id_']} is already {report.get('status')}")

    stamp = now_iso()
    utils_db.update_fields(report_key(report['id_']), {
        'status': status,
        'admin_notes': admin_notes,
        'resolved_at': stamp,
        'resolved_by': admin_id,
        'date_updated': stamp
    })
    result = {'id': report['id_'], 'status': status, 'review_deleted': False, 'author_suspended': False}
    if status == REPORT_REJECTED:
        logger.info(f"resolve_report ::: report {report['id_']} rejected")
        return result

    key = review_key(report['restaurant_id'], report['review_id'])
    try:
        review = utils_db.get_db_item(key['partkey'], key['sortkey'])
    except exceptions.RecordNotFound:
        review = None
        logger.warning(f"resolve_report ::: review {report['review_id']} is already deleted")
    if review is not None:
        utils_db.update_fields(key, {'report_status': REPORT_APPROVED})
        delete_review({**review, 'report_status': REPORT_APPROVED}, admin_id, 'Report approved')
        result['review_deleted'] = True

    approved_count = count_approved_reports(report['user_id'])
    result['author_approved_reports'] = approved_count
    if approved_count >= REPORT_SUSPENSION_THRESHOLD:
        try:
            author = utils_db.get_db_item(keys_structure.users_pk,
                                          keys_structure.users_sk.format(user_id=report['user_id']))
        except exceptions.RecordNotFound:
            author = None
        if author is not None and author.get('status') != USER_STATUS_SUSPENDED:
            suspend_user(report['user_id'],
                         f'Automatically suspended after {approved_count} approved reports', SYSTEM_RECIPIENT)
            result['author_suspended'] = True
    logger.info(f"resolve_report ::: report {report['id_']} approved, {result=}")
    return result


def users_with_approved_reports(reports: List[Dict], users_by_id: Dict, min_count: int = 1) -> List[Dict]:
    counts, last_at = defaultdict(int), {}
    for report in reports:
        if report.get('status') != REPORT_APPROVED or not report.get('user_id'):
            continue
        user_id = report['user_id']
        counts[user_id] += 1
        last_at[user_id] = max(last_at.get(user_id, ''), report.get('date_created', ''))
    result = [
        {
            'user_id': user_id,
            'count': count,
            'last_report_at': last_at[user_id] or None,
            'display_name': users_by_id.get(user_id, {}).get('display_name', ''),
            'email': users_by_id.get(user_id, {}).get('email', '')
        }
        for user_id, count in counts.items() if count >= min_count
    ]
    return sorted(result, key=lambda row: row['count'], reverse=True)


def users_with_repeated_negative_reviews(reviews: List[Dict], users_by_id: Dict, restaurants_by_id: Dict,
                                         threshold: int = NEGATIVE_REVIEW_THRESHOLD,
                                         max_rating: int = NEGATIVE_REVIEW_MAX_RATING) -> List[Dict]:
    """
    Negative reviews are counted per (user, restaurant) pair
    """
    counts, last_at = defaultdict(int), {}
    for review in reviews:
        user_id, restaurant_id = review.get('user_id'), review.get('restaurant_id')
        if not user_id or not restaurant_id or (review.get('rating') or 0) > max_rating:
            continue
        pair = (user_id, restaurant_id)
        counts[pair] += 1
        last_at[pair] = max(last_at.get(pair, ''), review.get('date_created', ''))
    result = [
        {
            'user_id': user_id,
            'restaurant_id': restaurant_id,
            'count': count,
            'last_at': last_at[(user_id, restaurant_id)] or None,
            'user_name': users_by_id.get(user_id, {}).get('display_name', ''),
            'user_email': users_by_id.get(user_id, {}).get('email', ''),
            'restaurant_name': restaurants_by_id.get(restaurant_id, {}).get('name', '')
        }
        for (user_id, restaurant_id), count in counts.items() if count >= threshold
    ]
    return sorted(result, key=lambda row: row['count'], reverse=True)


def low_rated_restaurants(restaurants: List[Dict], threshold=LOW_RATING_THRESHOLD) -> List[Dict]:
    """
    Only restaurants that have been rated at all are taken into account
    """
    result = [
        {
            'id': restaurant['id_'],
            'name': restaurant.get('name'),
            'rating': restaurant.get('rating'),
            'review_count': restaurant.get('review_count'),
            'status': restaurant.get('status')
        }
        for restaurant in restaurants
        if (restaurant.get('review_count') or 0) > 0 and (restaurant.get('rating') or 0) < threshold
    ]
    return sorted(result, key=lambda row: row['rating'] or 0)


def reported_users(reports: List[Dict], users_by_id: Dict, status: str = REPORT_PENDING) -> List[Dict]:
    counts, last_at = defaultdict(int), {}
    for report in reports:
        if report.get('status') != status or not report.get('user_id'):
            continue
        user_id = report['user_id']
        counts[user_id] += 1
        last_at[user_id] = max(last_at.get(user_id, ''), report.get('date_created', ''))
    result = [
        {
            'user_id': user_id,
            'count': count,
            'last_report_at': last_at[user_id] or None,
            'display_name': users_by_id.get(user_id, {}).get('display_name', ''),
            'email': users_by_id.get(user_id, {}).get('email', '')
        }
        for user_id, count in counts.items()
    ]
    return sorted(result, key=lambda row: row['count'], reverse=True)
