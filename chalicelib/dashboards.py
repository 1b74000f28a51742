from collections import Counter
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List

from chalice import Response

from chalicelib.constants.constants import ROLE_OWNER, ROLE_ADMIN, RESERVATION_PENDING_APPROVAL, REPORT_PENDING, \
    SYSTEM_RECIPIENT
from chalicelib.constants.status_codes import http200
from chalicelib.notifications import count_unread
from chalicelib.promos import today_iso
from chalicelib.reports import get_report_records
from chalicelib.reservations import get_restaurant_reservation_records
from chalicelib.restaurants import get_restaurants_by_owner, get_all_restaurant_records
from chalicelib.users import get_user_records
from chalicelib.utils import auth as utils_auth, app as utils_app


def owner_stats(restaurants: List[Dict], reservations: List[Dict], today: str) -> Dict:
    review_count = sum(int(restaurant.get('review_count') or 0) for restaurant in restaurants)
    weighted = sum(Decimal(str(restaurant.get('rating') or 0)) * int(restaurant.get('review_count') or 0)
                   for restaurant in restaurants)
    average = (weighted / review_count).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP) if review_count else \
        Decimal('0')
    return {
        'total_restaurants': len(restaurants),
        'pending_reservations': len([r for r in reservations if r.get('status') == RESERVATION_PENDING_APPROVAL]),
        'today_reservations': len([r for r in reservations if (r.get('date') or '')[:10] == today]),
        'review_count': review_count,
        'average_rating': average
    }


def admin_stats(users: List[Dict], restaurants: List[Dict], pending_reports: int, unread_system: int) -> Dict:
    return {
        'users_by_role': dict(Counter(user.get('role') for user in users)),
        'restaurants_by_status': dict(Counter(restaurant.get('status') for restaurant in restaurants)),
        'pending_reports': pending_reports,
        'unread_system_notifications': unread_system
    }


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_owner_dashboard(request) -> Response:
    utils_auth.require_role(request.auth_result, [ROLE_OWNER])
    restaurants = get_restaurants_by_owner(request.auth_result['user_id'])
    reservations = [reservation for restaurant in restaurants
                    for reservation in get_restaurant_reservation_records(restaurant['id_'])]
    return Response(status_code=http200, body=owner_stats(restaurants, reservations, today_iso()))


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_admin_dashboard(request) -> Response:
    utils_auth.require_role(request.auth_result, [ROLE_ADMIN])
    return Response(status_code=http200, body=admin_stats(
        get_user_records(),
        get_all_restaurant_records(),
        len(get_report_records(REPORT_PENDING)),
        count_unread(SYSTEM_RECIPIENT)
    ))
