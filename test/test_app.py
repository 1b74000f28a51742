from decimal import Decimal

import pytest

from app import app
from chalicelib.constants.status_codes import http200, http403
from test.utils.fixtures import id_customer
from test.utils.request_utils import make_request


def test_routes_are_registered():
    for path in ('/restaurants', '/restaurants/{restaurant_id}/reservations', '/admin/reports/{report_id}',
                 '/notifications/unread-count', '/image-upload', '/auth/login'):
        assert path in app.routes


@pytest.mark.local_db_test
def test_guest_routes_need_no_token(client, seed):
    restaurant_id = seed.restaurant()
    for endpoint in ('/restaurants', f'/restaurants/{restaurant_id}', f'/restaurants/{restaurant_id}/menu',
                     f'/restaurants/{restaurant_id}/reviews', f'/restaurants/{restaurant_id}/promos/active'):
        assert make_request(client, endpoint=endpoint, method='GET').status_code == http200, endpoint


@pytest.mark.local_db_test
def test_customer_can_not_reach_admin_routes(client, seed):
    for endpoint in ('/admin/users', '/admin/reports', '/admin/insights', '/dashboards/admin'):
        assert make_request(client, endpoint=endpoint, method='GET', token=id_customer).status_code == http403


@pytest.mark.local_db_test
def test_daily_rating_sync(client, seed):
    restaurant_id = seed.restaurant(rating=Decimal('2.0'), review_count=5)
    seed.review(restaurant_id, rating=4)

    event = client.events.generate_cw_event(source='aws.events', detail_type='Scheduled Event', detail={},
                                            resources=[])
    client.lambda_.invoke('daily_rating_sync', event)

    restaurant = seed.get_restaurant(restaurant_id)
    assert restaurant['rating'] == Decimal('4.0')
    assert restaurant['review_count'] == 1


@pytest.mark.local_db_test
def test_post_confirmation_lambda(client, seed):
    event = {
        'triggerSource': 'PostConfirmation_ConfirmSignUp',
        'request': {'userAttributes': {'sub': 'cognito-sub-3', 'email': 'dewi@test.id', 'name': 'Dewi'}}
    }
    response = client.lambda_.invoke('cognito_post_confirmation', event)
    assert response.payload == event
    assert seed.get_user('cognito-sub-3')['role'] == 'customer'
