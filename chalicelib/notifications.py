from typing import Dict, List
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from chalice import Response

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_ADMIN, SYSTEM_RECIPIENT, NOTIFICATIONS_LIMIT, \
    SYSTEM_NOTIFICATIONS_LIMIT
from chalicelib.constants.status_codes import http200
from chalicelib.constants.substitute_keys import from_db
from chalicelib.utils import auth as utils_auth, app as utils_app, db as utils_db, exceptions
from chalicelib.utils.data import now_iso, substitute_records, cleanup_dict, query_param_int
from chalicelib.utils.logger import logger


def create_notification(recipient_id: str, notification_type: str, title: str, message: str, **related) -> Dict:
    """
    related: reservation_id, restaurant_id, review_id, report_id and payload fields shown by the client
    """
    date_created = now_iso()
    notification_id = str(uuid4())
    record = cleanup_dict({
        'partkey': keys_structure.notifications_pk.format(recipient_id=recipient_id),
        'sortkey': keys_structure.notifications_sk.format(date_created=date_created, notification_id=notification_id),
        'record_type': 'notification',
        'id_': notification_id,
        'recipient_id': recipient_id,
        'type': notification_type,
        'title': title,
        'message': message,
        'is_read': False,
        'date_created': date_created,
        **related
    }, [None, ''])
    utils_db.put_db_record(record)
    logger.info(f"create_notification ::: {notification_type=} for {recipient_id=}")
    return record


def create_system_notification(notification_type: str, title: str, message: str, **related) -> Dict:
    return create_notification(SYSTEM_RECIPIENT, notification_type, title, message, **related)


def recipient_of(auth_result: Dict) -> str:
    """
    Admins share the system inbox
    """
    return SYSTEM_RECIPIENT if auth_result.get('role') == ROLE_ADMIN else auth_result['user_id']


def notifications_partkey(recipient_id: str) -> str:
    return keys_structure.notifications_pk.format(recipient_id=recipient_id)


def get_notification_records(recipient_id: str, unread_only: bool = False) -> List[Dict]:
    return utils_db.query_items_paged(
        Key('partkey').eq(notifications_partkey(recipient_id)),
        filter_expression=Attr('is_read').eq(False) if unread_only else None,
        scan_index_forward=False
    )


def find_notification(recipient_id: str, notification_id: str) -> Dict:
    records = utils_db.query_items_paged(
        Key('partkey').eq(notifications_partkey(recipient_id)),
        filter_expression=Attr('id_').eq(notification_id)
    )
    if not records:
        raise exceptions.RecordNotFound(f'Notification {notification_id} not found')
    return records[0]


def notification_key(record: Dict) -> Dict:
    return {'partkey': record['partkey'], 'sortkey': record['sortkey']}


def count_unread(recipient_id: str) -> int:
    return len(get_notification_records(recipient_id, unread_only=True))


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_get_notifications(request) -> Response:
    recipient_id = recipient_of(request.auth_result)
    default_limit = SYSTEM_NOTIFICATIONS_LIMIT if recipient_id == SYSTEM_RECIPIENT else NOTIFICATIONS_LIMIT
    limit = query_param_int(request.query_params, 'limit', default_limit)
    records, _ = utils_db.query_items_paginated(
        Key('partkey').eq(notifications_partkey(recipient_id)),
        limit=limit,
        scan_index_forward=False
    )
    substitute_records(records, from_db)
    return Response(status_code=http200, body=records)


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_get_unread_count(request) -> Response:
    return Response(status_code=http200, body={'count': count_unread(recipient_of(request.auth_result))})


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_mark_read(request, notification_id) -> Response:
    record = find_notification(recipient_of(request.auth_result), notification_id)
    utils_db.update_fields(notification_key(record), {'is_read': True, 'read_at': now_iso()})
    return Response(status_code=http200, body={'id': notification_id, 'is_read': True})


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_mark_all_read(request) -> Response:
    stamp = now_iso()
    records = get_notification_records(recipient_of(request.auth_result), unread_only=True)
    for record in records:
        utils_db.update_fields(notification_key(record), {'is_read': True, 'read_at': stamp})
    return Response(status_code=http200, body={'updated': len(records)})


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_delete(request, notification_id) -> Response:
    record = find_notification(recipient_of(request.auth_result), notification_id)
    utils_db.delete_db_record(notification_key(record))
    return Response(status_code=http200, body={'id': notification_id, 'deleted': True})


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_delete_all(request) -> Response:
    records = get_notification_records(recipient_of(request.auth_result))
    for record in records:
        utils_db.delete_db_record(notification_key(record))
    return Response(status_code=http200, body={'deleted': len(records)})
