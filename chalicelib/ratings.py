from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Tuple

from boto3.dynamodb.conditions import Key
from chalice import Response

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_ADMIN
from chalicelib.constants.status_codes import http200
from chalicelib.restaurants import get_all_restaurant_records
from chalicelib.utils import auth as utils_auth, app as utils_app, db as utils_db
from chalicelib.utils.data import now_iso
from chalicelib.utils.logger import logger, log_exception

ONE_DECIMAL = Decimal('0.1')


def compute_rating(reviews: List[Dict]) -> Tuple[Decimal, int]:
    """
    Average of positive ratings rounded to one decimal and the number of such reviews
    """
    ratings = [Decimal(str(review['rating'])) for review in reviews if (review.get('rating') or 0) > 0]
    if not ratings:
        return Decimal('0'), 0
    average = sum(ratings) / len(ratings)
    return average.quantize(ONE_DECIMAL, rounding=ROUND_HALF_UP), len(ratings)


def rating_distribution(reviews: List[Dict]) -> Dict[str, int]:
    distribution = {str(stars): 0 for stars in range(1, 6)}
    for review in reviews:
        key = str(int(review.get('rating') or 0))
        if key in distribution:
            distribution[key] += 1
    return distribution


def get_review_records(restaurant_id: str) -> List[Dict]:
    return utils_db.query_items_paged(Key('partkey').eq(keys_structure.reviews_pk.format(restaurant_id=restaurant_id)))


def update_restaurant_rating(restaurant_id: str) -> Dict:
    rating, count = compute_rating(get_review_records(restaurant_id))
    result = {'rating': rating, 'review_count': count, 'last_rating_update': now_iso()}
    utils_db.update_fields(
        key={
            'partkey': keys_structure.restaurants_pk,
            'sortkey': keys_structure.restaurants_sk.format(restaurant_id=restaurant_id)
        },
        fields=result
    )
    logger.info(f"update_restaurant_rating ::: restaurant {restaurant_id} {rating=} {count=}")
    return {'restaurant_id': restaurant_id, **result}


def sync_all_ratings() -> Dict:
    """
    Recompute every restaurant, a failure on one restaurant does not stop the others
    """
    updated, failed = [], []
    for record in get_all_restaurant_records():
        try:
            updated.append(update_restaurant_rating(record['id_']))
        except Exception as e:
            log_exception(e, 500, f"sync_all_ratings ::: restaurant {record.get('id_')} failed")
            failed.append(record.get('id_'))
    logger.info(f"sync_all_ratings ::: updated={len(updated)} failed={len(failed)}")
    return {'updated': updated, 'failed': failed}


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_sync_all_ratings(request) -> Response:
    utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
    return Response(status_code=http200, body=sync_all_ratings())
