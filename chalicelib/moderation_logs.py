from typing import Dict, List
from uuid import uuid4

from boto3.dynamodb.conditions import Key

from chalicelib.constants import keys_structure
from chalicelib.utils import db as utils_db
from chalicelib.utils.data import now_iso, substitute_records
from chalicelib.constants.substitute_keys import from_db
from chalicelib.utils.logger import logger


def write_suspension_log(target_type: str, target_id: str, reason: str, suspended_by: str) -> Dict:
    """
    target_type is `user` or `restaurant`, suspended_by is an admin id or `system`
    """
    date_created = now_iso()
    log_id = str(uuid4())
    record = {
        'partkey': keys_structure.suspension_logs_pk,
        'sortkey': keys_structure.suspension_logs_sk.format(date_created=date_created, log_id=log_id),
        'record_type': 'suspension_log',
        'id_': log_id,
        'target_type': target_type,
        'target_id': target_id,
        'reason': reason,
        'suspended_by': suspended_by,
        'date_created': date_created
    }
    utils_db.put_db_record(record)
    logger.info(f"write_suspension_log ::: {target_type=} {target_id=} suspended by {suspended_by}")
    return record


def write_review_deletion_log(review: Dict, deleted_by: str, reason: str) -> Dict:
    date_created = now_iso()
    record = {
        'partkey': keys_structure.review_deletions_pk,
        'sortkey': keys_structure.review_deletions_sk.format(date_created=date_created, review_id=review.get('id_')),
        'record_type': 'review_deletion',
        'id_': review.get('id_'),
        'restaurant_id': review.get('restaurant_id'),
        'review_author_id': review.get('user_id'),
        'rating': review.get('rating'),
        'comment': review.get('comment'),
        'deleted_by': deleted_by,
        'reason': reason,
        'date_created': date_created
    }
    utils_db.put_db_record(record)
    logger.info(f"write_review_deletion_log ::: review {review.get('id_')} deleted by {deleted_by}")
    return record


def get_suspension_logs() -> List[Dict]:
    records = utils_db.query_items_paged(
        Key('partkey').eq(keys_structure.suspension_logs_pk),
        scan_index_forward=False
    )
    substitute_records(records, from_db)
    return records
