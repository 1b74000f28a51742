import pytest

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import DISCOUNT_PERCENTAGE, RESERVATION_PENDING_APPROVAL, \
    RESERVATION_CONFIRMED, RESERVATION_CANCELLED, RESERVATION_COMPLETED, RESTAURANT_STATUS_PENDING, \
    ROLE_OWNER, ROLE_CUSTOMER, ROLE_ADMIN
from chalicelib.constants.status_codes import http200, http201, http400, http403, http409
from chalicelib.reservations import check_transition
from chalicelib.utils.exceptions import InvalidStatusTransition
from test.utils.fixtures import id_owner, id_customer, id_admin
from test.utils.request_utils import make_request


def create_reservation(client, restaurant_id, menu_items=None, token=id_customer):
    return make_request(client, endpoint=f'/restaurants/{restaurant_id}/reservations', method='POST', token=token,
                        json_body={'date': '2030-01-15', 'time': '19:00', 'guests': 4, 'area': 'indoor',
                                   'special_requests': 'Window seat', 'menu_items': menu_items or []})


@pytest.mark.parametrize('current, new, actor', [
    (RESERVATION_PENDING_APPROVAL, RESERVATION_CONFIRMED, ROLE_OWNER),
    (RESERVATION_PENDING_APPROVAL, RESERVATION_CANCELLED, ROLE_OWNER),
    (RESERVATION_CONFIRMED, RESERVATION_COMPLETED, ROLE_OWNER),
    (RESERVATION_CONFIRMED, RESERVATION_CANCELLED, ROLE_ADMIN),
    (RESERVATION_PENDING_APPROVAL, RESERVATION_CANCELLED, ROLE_CUSTOMER),
    (RESERVATION_CONFIRMED, RESERVATION_CANCELLED, ROLE_CUSTOMER),
])
def test_allowed_transitions(current, new, actor):
    check_transition(current, new, actor)


@pytest.mark.parametrize('current, new, actor', [
    (RESERVATION_PENDING_APPROVAL, RESERVATION_COMPLETED, ROLE_OWNER),
    (RESERVATION_COMPLETED, RESERVATION_CANCELLED, ROLE_OWNER),
    (RESERVATION_CANCELLED, RESERVATION_CONFIRMED, ROLE_ADMIN),
    (RESERVATION_PENDING_APPROVAL, RESERVATION_CONFIRMED, ROLE_CUSTOMER),
    (RESERVATION_CONFIRMED, RESERVATION_COMPLETED, ROLE_CUSTOMER),
])
def test_rejected_transitions(current, new, actor):
    with pytest.raises(InvalidStatusTransition):
        check_transition(current, new, actor)


@pytest.mark.local_db_test
def test_create_reservation_prices_pre_order(client, seed, ddb_table):
    restaurant_id = seed.restaurant()
    soto = seed.menu_item(restaurant_id, 30000, name='Soto Ayam')
    teh = seed.menu_item(restaurant_id, 5000, name='Es Teh')
    seed.promo(restaurant_id, DISCOUNT_PERCENTAGE, 10, menu_ids=[soto])

    response = create_reservation(client, restaurant_id, [{'id': soto, 'quantity': 2}, {'id': teh, 'quantity': 3}])
    assert response.status_code == http201, response.body
    body = response.json_body
    assert body['status'] == RESERVATION_PENDING_APPROVAL
    assert body['payment_status'] == 'unpaid'
    assert body['total_before_discount'] == 75000
    assert body['discount'] == 6000
    assert body['total_price'] == 69000
    assert body['down_payment'] == 34500
    assert body['user_id'] == id_customer
    assert body['restaurant_owner_id'] == id_owner

    stored = ddb_table.get_item(Key={
        'partkey': keys_structure.reservations_pk.format(restaurant_id=restaurant_id),
        'sortkey': keys_structure.reservations_sk.format(reservation_id=body['id'])
    })['Item']
    assert stored['guests'] == 4
    assert [item['quantity'] for item in stored['menu_items']] == [2, 3]


@pytest.mark.local_db_test
def test_create_reservation_requires_date_and_time(client, seed):
    restaurant_id = seed.restaurant()
    response = make_request(client, endpoint=f'/restaurants/{restaurant_id}/reservations', method='POST',
                            token=id_customer, json_body={'guests': 2})
    assert response.status_code == http400


@pytest.mark.local_db_test
def test_create_reservation_at_unapproved_restaurant(client, seed):
    restaurant_id = seed.restaurant(status=RESTAURANT_STATUS_PENDING)
    assert create_reservation(client, restaurant_id).status_code == http400


@pytest.mark.local_db_test
def test_create_reservation_with_unavailable_item(client, seed):
    restaurant_id = seed.restaurant()
    sold_out = seed.menu_item(restaurant_id, 10000, is_available=False)
    assert create_reservation(client, restaurant_id, [{'id': sold_out, 'quantity': 1}]).status_code == http400


@pytest.mark.local_db_test
def test_owner_can_not_create_reservation(client, seed):
    restaurant_id = seed.restaurant()
    assert create_reservation(client, restaurant_id, token=id_owner).status_code == http403


@pytest.mark.local_db_test
def test_reservation_lifecycle(client, seed):
    restaurant_id = seed.restaurant()
    reservation_id = create_reservation(client, restaurant_id).json_body['id']
    status_endpoint = f'/restaurants/{restaurant_id}/reservations/{reservation_id}/status'

    confirmed = make_request(client, endpoint=status_endpoint, method='PUT', token=id_owner,
                             json_body={'status': RESERVATION_CONFIRMED})
    assert confirmed.status_code == http200, confirmed.body
    assert confirmed.json_body['status'] == RESERVATION_CONFIRMED
    assert confirmed.json_body['confirmed_by'] == id_owner
    assert confirmed.json_body['confirmed_at']

    completed = make_request(client, endpoint=status_endpoint, method='PUT', token=id_owner,
                             json_body={'status': RESERVATION_COMPLETED})
    assert completed.status_code == http200
    assert completed.json_body['completed_by'] == id_owner

    cancelled = make_request(client, endpoint=status_endpoint, method='PUT', token=id_customer,
                             json_body={'status': RESERVATION_CANCELLED})
    assert cancelled.status_code == http409


@pytest.mark.local_db_test
def test_customer_cancels_own_reservation(client, seed):
    restaurant_id = seed.restaurant()
    reservation_id = create_reservation(client, restaurant_id).json_body['id']
    status_endpoint = f'/restaurants/{restaurant_id}/reservations/{reservation_id}/status'

    confirm = make_request(client, endpoint=status_endpoint, method='PUT', token=id_customer,
                           json_body={'status': RESERVATION_CONFIRMED})
    assert confirm.status_code == http409

    cancel = make_request(client, endpoint=status_endpoint, method='PUT', token=id_customer,
                          json_body={'status': RESERVATION_CANCELLED})
    assert cancel.status_code == http200
    assert cancel.json_body['cancelled_by'] == id_customer


@pytest.mark.local_db_test
def test_other_customer_can_not_see_reservation(client, seed):
    restaurant_id = seed.restaurant()
    reservation_id = create_reservation(client, restaurant_id).json_body['id']
    stranger = seed.user(role=ROLE_CUSTOMER)

    response = make_request(client, endpoint=f'/restaurants/{restaurant_id}/reservations/{reservation_id}',
                            method='GET', token=stranger)
    assert response.status_code == http403

    own = make_request(client, endpoint=f'/restaurants/{restaurant_id}/reservations/{reservation_id}',
                       method='GET', token=id_customer)
    assert own.status_code == http200
    assert own.json_body['id'] == reservation_id


@pytest.mark.local_db_test
def test_list_reservations(client, seed):
    restaurant_id = seed.restaurant()
    first = create_reservation(client, restaurant_id).json_body['id']
    second = create_reservation(client, restaurant_id).json_body['id']
    make_request(client, endpoint=f'/restaurants/{restaurant_id}/reservations/{first}/status', method='PUT',
                 token=id_owner, json_body={'status': RESERVATION_CONFIRMED})

    mine = make_request(client, endpoint='/reservations/mine', method='GET', token=id_customer)
    assert mine.status_code == http200
    assert {reservation['id'] for reservation in mine.json_body} == {first, second}

    pending = make_request(client, endpoint=f'/restaurants/{restaurant_id}/reservations', method='GET',
                           token=id_owner, query=f'status={RESERVATION_PENDING_APPROVAL}')
    assert pending.status_code == http200
    assert [reservation['id'] for reservation in pending.json_body] == [second]

    as_admin = make_request(client, endpoint=f'/restaurants/{restaurant_id}/reservations', method='GET',
                            token=id_admin)
    assert len(as_admin.json_body) == 2


@pytest.mark.local_db_test
def test_owner_of_other_restaurant_can_not_list_reservations(client, seed):
    restaurant_id = seed.restaurant()
    other_owner = seed.user(role=ROLE_OWNER)
    response = make_request(client, endpoint=f'/restaurants/{restaurant_id}/reservations', method='GET',
                            token=other_owner)
    assert response.status_code == http403
