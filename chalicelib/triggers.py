from boto3.dynamodb.types import TypeDeserializer
from chalice.app import DynamoDBEvent

from chalicelib import notifications
from chalicelib.constants.constants import RESERVATION_CONFIRMED
from chalicelib.restaurants import Restaurant
from chalicelib.users import User
from chalicelib.utils import email_templates, notifications as utils_notifications
from chalicelib.utils.exceptions import RecordNotFound
from chalicelib.utils.logger import logger, log_exception


deserializer = TypeDeserializer()


def deserialize_ddb_rec(record=None):
    if record is None:
        record = {}
    return {key: deserializer.deserialize(value) for key, value in record.items()}


def get_user_email(user_id: str):
    try:
        return User.init_by_id(user_id).email
    except RecordNotFound:
        logger.warning(f'get_user_email ::: user {user_id} not found')
        return None


def db_trigger_reservation_record(record_old: dict, record_new: dict, event_id: str, event_name: str):
    logger.info(f'db_trigger_reservation_record ::: {event_id=}, {event_name=}')
    if event_name.lower() == 'insert':
        notifications.create_notification(
            record_new['restaurant_owner_id'], 'new_reservation', 'New reservation',
            f"{record_new.get('user_name')} booked a table for {record_new.get('guests')} on "
            f"{record_new.get('date')} at {record_new.get('time')}",
            reservation_id=record_new.get('id_'),
            restaurant_id=record_new.get('restaurant_id')
        )
        utils_notifications.send_email_ses(
            [get_user_email(record_new['restaurant_owner_id'])],
            utils_notifications.email_from(),
            f"New reservation at {record_new.get('restaurant_name')}, reservation ID - {record_new.get('id_')}",
            email_templates.get_owner_new_reservation_message(record_new)
        )
    elif event_name.lower() == 'modify' and record_old.get('status') != record_new.get('status'):
        status = record_new.get('status')
        notifications.create_notification(
            record_new['user_id'], f'reservation_{status}', f'Reservation {status}',
            f"Your reservation at {record_new.get('restaurant_name')} on {record_new.get('date')} is now {status}",
            reservation_id=record_new.get('id_'),
            restaurant_id=record_new.get('restaurant_id')
        )
        if status == RESERVATION_CONFIRMED:
            utils_notifications.send_email_ses(
                [record_new.get('user_email')],
                utils_notifications.email_from(),
                f"Your reservation at {record_new.get('restaurant_name')} is confirmed",
                email_templates.get_reservation_confirmation_message(record_new)
            )


def db_trigger_review_record(record_old: dict, record_new: dict, event_id: str, event_name: str):
    logger.info(f'db_trigger_review_record ::: {event_id=}, {event_name=}')
    if event_name.lower() != 'insert':
        return
    owner_id = Restaurant.init_by_id(record_new['restaurant_id']).owner_id
    notifications.create_notification(
        owner_id, 'new_review', 'New review',
        f"{record_new.get('user_name')} rated {record_new.get('restaurant_name')} {record_new.get('rating')}/5",
        review_id=record_new.get('id_'),
        restaurant_id=record_new.get('restaurant_id')
    )


def db_trigger_restaurant_record(record_old: dict, record_new: dict, event_id: str, event_name: str):
    logger.info(f'db_trigger_restaurant_record ::: {event_id=}, {event_name=}')
    if event_name.lower() == 'insert':
        notifications.create_system_notification(
            'restaurant_registration', 'New restaurant registration',
            f"Restaurant {record_new.get('name')} is waiting for approval",
            restaurant_id=record_new.get('id_')
        )


def db_trigger_report_record(record_old: dict, record_new: dict, event_id: str, event_name: str):
    logger.info(f'db_trigger_report_record ::: {event_id=}, {event_name=}')
    if event_name.lower() == 'insert':
        notifications.create_system_notification(
            'review_report', 'New review report',
            f"A review at {record_new.get('restaurant_name')} was reported: {record_new.get('reason')}",
            report_id=record_new.get('id_'),
            review_id=record_new.get('review_id'),
            restaurant_id=record_new.get('restaurant_id')
        )


def db_trigger_user_record(record_old: dict, record_new: dict, event_id: str, event_name: str):
    logger.info(f'db_trigger_user_record ::: {event_id=}, {event_name=}')
    if event_name.lower() == 'insert':
        notifications.create_system_notification(
            'user_registration', 'New user registration',
            f"{record_new.get('display_name')} signed up as {record_new.get('role')}",
            related_user_id=record_new.get('id_')
        )


table_trigger_func_dict = {
    'reservation': db_trigger_reservation_record,
    'review': db_trigger_review_record,
    'restaurant': db_trigger_restaurant_record,
    'report': db_trigger_report_record,
    'user': db_trigger_user_record
}


def db_table_stream_trigger(ddb_event: DynamoDBEvent):
    logger.debug(f'db_table_stream_trigger ::: function triggered ddb_event={ddb_event.to_dict()}')
    for record in ddb_event:
        try:
            normalized_new = deserialize_ddb_rec(record.new_image)
            normalized_old = deserialize_ddb_rec(record.old_image)
            func_key = normalized_new.get('record_type') or normalized_old.get('record_type')
            if func_key in table_trigger_func_dict.keys():
                table_trigger_func_dict[func_key](normalized_old, normalized_new, record.event_id, record.event_name)
        except Exception as e:
            log_exception(e)
