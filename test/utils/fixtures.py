import os
from decimal import Decimal
from uuid import uuid4

import boto3
import pytest
from boto3.dynamodb.conditions import Attr
from chalice.test import Client
from moto import mock_aws

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_CUSTOMER, ROLE_OWNER, ROLE_ADMIN, USER_STATUS_ACTIVE, \
    RESTAURANT_STATUS_APPROVED, PROMO_ACTIVE
from chalicelib.utils import db as utils_db, notifications as utils_notifications, s3 as utils_s3
from chalicelib.utils.boto_clients import aws_config_ddb
from chalicelib.utils.data import now_iso

PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

id_admin = '13303309-d941-486f-b600-3e90929ac50f'
id_owner = '8178f948-cdc2-4e8c-b013-07a956e7e72a'
id_customer = 'e5b01491-e538-4be3-8d3c-a57db7fc43c1'


class FakeSes:
    def __init__(self):
        self.sent = []

    def send_email(self, **kwargs):
        self.sent.append(kwargs)
        return {'MessageId': str(uuid4())}


class FakeS3:
    def __init__(self):
        self.objects = {}

    def upload_fileobj(self, file_obj, bucket, key, ExtraArgs=None):
        self.objects[key] = {'bucket': bucket, 'body': file_obj.read(), 'extra_args': ExtraArgs}

    def put_object_acl(self, ACL, Bucket, Key):
        self.objects[Key]['acl'] = ACL


class Seed:
    """
    Writes records straight to the table, the way stored records look after the API created them
    """

    def __init__(self, table):
        self.table = table

    def user(self, user_id=None, role=ROLE_CUSTOMER, status=USER_STATUS_ACTIVE, email=None, display_name=None,
             **extra):
        user_id = user_id or str(uuid4())
        utils_db.put_db_record({
            'partkey': keys_structure.users_pk,
            'sortkey': keys_structure.users_sk.format(user_id=user_id),
            'record_type': 'user',
            'id_': user_id,
            'email': email or f'{user_id[:8]}@test.id',
            'display_name': display_name or f'{role} {user_id[:4]}',
            'phone': '+628123456789',
            'role': role,
            'status': status,
            'date_created': now_iso(),
            'date_updated': now_iso(),
            **extra
        })
        return user_id

    def default_users(self):
        self.user(id_admin, role=ROLE_ADMIN, display_name='Admin')
        self.user(id_owner, role=ROLE_OWNER, display_name='Owner')
        self.user(id_customer, role=ROLE_CUSTOMER, display_name='Budi')

    def restaurant(self, owner_id=id_owner, status=RESTAURANT_STATUS_APPROVED, restaurant_id=None, **extra):
        restaurant_id = restaurant_id or str(uuid4())
        record = {
            'partkey': keys_structure.restaurants_pk,
            'sortkey': keys_structure.restaurants_sk.format(restaurant_id=restaurant_id),
            'record_type': 'restaurant',
            'id_': restaurant_id,
            'owner_id': owner_id,
            'name': 'Warung Nyam',
            'description': 'Home style Indonesian food',
            'address': 'Jl. Sudirman 1, Jakarta',
            'category': 'indonesian',
            'cuisine': ['Indonesian'],
            'price_range': '$$',
            'is_open': True,
            'status': status,
            'rating': Decimal('0'),
            'review_count': 0,
            'is_promo': False,
            'created_by': owner_id,
            'date_created': now_iso(),
            'date_updated': now_iso()
        }
        record.update(extra)
        utils_db.put_db_record(record)
        return restaurant_id

    def menu_item(self, restaurant_id, price, name='Nasi Goreng', is_available=True, menu_item_id=None):
        menu_item_id = menu_item_id or str(uuid4())
        utils_db.put_db_record({
            'partkey': keys_structure.menu_items_pk.format(restaurant_id=restaurant_id),
            'sortkey': keys_structure.menu_items_sk.format(menu_item_id=menu_item_id),
            'record_type': 'menu_item',
            'id_': menu_item_id,
            'restaurant_id': restaurant_id,
            'name': name,
            'category': 'main',
            'price': Decimal(str(price)),
            'is_available': is_available,
            'archived': False,
            'created_by': id_owner,
            'date_created': now_iso(),
            'date_updated': now_iso()
        })
        return menu_item_id

    def promo(self, restaurant_id, discount_type, discount_value, menu_ids=None, min_purchase=None,
              start_date=None, end_date=None, status=PROMO_ACTIVE, name='Promo'):
        promo_id = str(uuid4())
        record = {
            'partkey': keys_structure.promos_pk.format(restaurant_id=restaurant_id),
            'sortkey': keys_structure.promos_sk.format(promo_id=promo_id),
            'record_type': 'promo',
            'id_': promo_id,
            'restaurant_id': restaurant_id,
            'name': name,
            'discount_type': discount_type,
            'discount_value': Decimal(str(discount_value)),
            'menu_ids': menu_ids or [],
            'status': status,
            'created_by': id_owner,
            'date_created': now_iso(),
            'date_updated': now_iso()
        }
        for key, value in (('min_purchase', min_purchase), ('start_date', start_date), ('end_date', end_date)):
            if value is not None:
                record[key] = Decimal(str(value)) if key == 'min_purchase' else value
        utils_db.put_db_record(record)
        return promo_id

    def review(self, restaurant_id, user_id=id_customer, rating=5, comment='Enak!', date_created=None):
        review_id = str(uuid4())
        utils_db.put_db_record({
            'partkey': keys_structure.reviews_pk.format(restaurant_id=restaurant_id),
            'sortkey': keys_structure.reviews_sk.format(review_id=review_id),
            'record_type': 'review',
            'id_': review_id,
            'restaurant_id': restaurant_id,
            'restaurant_name': 'Warung Nyam',
            'user_id': user_id,
            'user_name': 'Budi',
            'rating': rating,
            'comment': comment,
            'has_owner_reply': False,
            'date_created': date_created or now_iso()
        })
        return review_id

    def get(self, partkey, sortkey):
        return self.table.get_item(Key={'partkey': partkey, 'sortkey': sortkey}).get('Item')

    def get_restaurant(self, restaurant_id):
        return self.get(keys_structure.restaurants_pk,
                        keys_structure.restaurants_sk.format(restaurant_id=restaurant_id))

    def get_user(self, user_id):
        return self.get(keys_structure.users_pk, keys_structure.users_sk.format(user_id=user_id))


def create_gen_table():
    """
    Same key schema and user index as the deployed table
    """
    if os.environ.get('ENDPOINT_URL'):
        dynamodb = boto3.resource('dynamodb', endpoint_url=os.environ['ENDPOINT_URL'])
    else:
        dynamodb = boto3.resource('dynamodb', config=aws_config_ddb)
    table = dynamodb.create_table(
        TableName=os.environ['GEN_TABLE_NAME'],
        KeySchema=[
            {'AttributeName': 'partkey', 'KeyType': 'HASH'},
            {'AttributeName': 'sortkey', 'KeyType': 'RANGE'}
        ],
        AttributeDefinitions=[
            {'AttributeName': 'partkey', 'AttributeType': 'S'},
            {'AttributeName': 'sortkey', 'AttributeType': 'S'},
            {'AttributeName': 'user_id', 'AttributeType': 'S'},
            {'AttributeName': 'date_created', 'AttributeType': 'S'}
        ],
        GlobalSecondaryIndexes=[{
            'IndexName': keys_structure.gsi_user_records,
            'KeySchema': [
                {'AttributeName': 'user_id', 'KeyType': 'HASH'},
                {'AttributeName': 'date_created', 'KeyType': 'RANGE'}
            ],
            'Projection': {'ProjectionType': 'ALL'}
        }],
        BillingMode='PAY_PER_REQUEST'
    )
    table.wait_until_exists()
    return table


def records_of_type(table, record_type: str) -> list:
    scan_kwargs = {'FilterExpression': Attr('record_type').eq(record_type)}
    items = []
    while True:
        response = table.scan(**scan_kwargs)
        items.extend(response['Items'])
        if 'LastEvaluatedKey' not in response:
            return items
        scan_kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']


@pytest.fixture(autouse=True)
def ddb_table(monkeypatch):
    """
    DynamoDB Local when ENDPOINT_URL is set, moto otherwise
    """
    monkeypatch.setattr(utils_db, '_DB', None)
    if os.environ.get('ENDPOINT_URL'):
        table = create_gen_table()
        yield utils_db.get_gen_table()
        table.delete()
        table.wait_until_not_exists()
    else:
        with mock_aws():
            create_gen_table()
            yield utils_db.get_gen_table()


@pytest.fixture(autouse=True)
def fake_ses(monkeypatch) -> FakeSes:
    ses = FakeSes()
    monkeypatch.setattr(utils_notifications, 'ses_client', ses)
    yield ses


@pytest.fixture(autouse=True)
def fake_s3(monkeypatch) -> FakeS3:
    s3 = FakeS3()
    monkeypatch.setattr(utils_s3, 's3_client', s3)
    yield s3


@pytest.fixture
def seed(ddb_table) -> Seed:
    seed_ = Seed(ddb_table)
    seed_.default_users()
    yield seed_


@pytest.fixture
def client() -> Client:
    from app import app
    with Client(app, stage_name='test', project_dir=PROJECT_DIR) as client_:
        yield client_
