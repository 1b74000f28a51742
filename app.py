import os

from chalice import Chalice, Rate

from chalicelib import auth, dashboards, favorites, images, menu_items, notifications, promos, ratings, reports, \
    reservations, restaurants, reviews, triggers, users
from chalicelib.utils import app as utils_app, data as utils_data

app = Chalice(app_name='nyam-makan')

app.api.binary_types.insert(0, 'multipart/form-data')
app.debug = os.environ.get('CHALICE_DEBUG', 'false').lower() == 'true'


def get_table_stream_arn():
    return os.environ["TABLE_STREAM_ARN"]


def request_body():
    return utils_data.parse_raw_body(app.current_request)


@app.authorizer()
def role_authorizer(auth_request):
    return auth.role_authorizer(auth_request)


@app.on_dynamodb_record(stream_arn=get_table_stream_arn())
def db_table_stream_trigger(event):
    return triggers.db_table_stream_trigger(event)


@app.lambda_function(name='cognito_pre_signup')
def cognito_pre_signup(event, context):
    return auth.cognito_pre_signup(event, context)


@app.lambda_function(name='cognito_post_confirmation')
def cognito_post_confirmation(event, context):
    return auth.cognito_post_confirmation(event, context)


@app.schedule(Rate(1, unit=Rate.DAYS))
def daily_rating_sync(event):
    return ratings.sync_all_ratings()


# AUTH
@app.route('/auth/register', methods=['POST'], cors=True)
def register():
    return auth.register_cognito(app.current_request)


@app.route('/auth/confirm', methods=['POST'], cors=True)
def confirm_sign_up():
    return auth.confirm_sign_up_cognito(app.current_request)


@app.route('/auth/login', methods=['POST'], cors=True)
def login():
    return auth.login_cognito(app.current_request)


@app.route('/auth/refresh', methods=['POST'], cors=True)
def refresh_token():
    return auth.refresh_id_token_cognito(app.current_request)


@app.route('/auth/forgot-password', methods=['POST'], cors=True)
def forgot_password():
    return auth.forgot_password_cognito(app.current_request)


@app.route('/auth/reset-password', methods=['POST'], cors=True)
def reset_password():
    return auth.reset_password_cognito(app.current_request)


# USERS
@app.route('/users/me', methods=['GET'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def get_user():
    return users.User.init_request_user(app.current_request).endpoint_get_user()


@app.route('/users/me', methods=['PUT'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def update_user():
    return users.User.init_request_update(app.current_request).endpoint_update_user()


@app.route('/admin/users', methods=['GET'], authorizer=role_authorizer, cors=True)
def admin_get_users():
    return users.User.endpoint_get_users(app.current_request)


@app.route('/admin/users/{user_id}/role', methods=['PUT'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def admin_set_user_role(user_id):
    return users.User.init_request_admin(app.current_request, user_id).endpoint_set_role(request_body().get('role'))


@app.route('/admin/users/{user_id}/suspend', methods=['POST'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def admin_suspend_user(user_id):
    return users.User.init_request_admin(app.current_request, user_id).endpoint_suspend(request_body().get('reason'))


@app.route('/admin/users/{user_id}/unsuspend', methods=['POST'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def admin_unsuspend_user(user_id):
    return users.User.init_request_admin(app.current_request, user_id).endpoint_unsuspend()


@app.route('/admin/suspension-logs', methods=['GET'], authorizer=role_authorizer, cors=True)
def admin_get_suspension_logs():
    return users.User.endpoint_get_suspension_logs(app.current_request)


# RESTAURANTS
@app.route('/restaurants', methods=['GET'], cors=True)
def get_restaurants():
    return restaurants.Restaurant.endpoint_get_all(app.current_request)


@app.route('/restaurants/nearby', methods=['GET'], cors=True)
def get_nearby_restaurants():
    return restaurants.Restaurant.endpoint_get_nearby(app.current_request)


@app.route('/restaurants/mine', methods=['GET'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def get_my_restaurant():
    return restaurants.Restaurant.init_request_mine(app.current_request).endpoint_get_by_id()


@app.route('/restaurants/{restaurant_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_restaurant_by_id(restaurant_id):
    return restaurants.Restaurant.init_request_get(app.current_request, restaurant_id).endpoint_get_by_id()


@app.route('/restaurants', methods=['POST'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def create_restaurant():
    """
    owner operation, restaurant waits for admin approval
    """
    return restaurants.Restaurant.init_request_create(app.current_request).endpoint_create()


@app.route('/restaurants/{restaurant_id}', methods=['PUT'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def update_restaurant(restaurant_id):
    return restaurants.Restaurant.init_request_update(app.current_request, restaurant_id).endpoint_update()


@app.route('/restaurants/{restaurant_id}/open-status', methods=['PUT'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def set_restaurant_open_status(restaurant_id):
    return restaurants.Restaurant.init_request_owner(app.current_request, restaurant_id).\
        endpoint_set_open_status(request_body().get('is_open'))


@app.route('/admin/restaurants', methods=['GET'], authorizer=role_authorizer, cors=True)
def admin_get_restaurants():
    return restaurants.Restaurant.endpoint_admin_get_all(app.current_request)


@app.route('/admin/restaurants/{restaurant_id}/status', methods=['PUT'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def admin_set_restaurant_status(restaurant_id):
    body = request_body()
    return restaurants.Restaurant.init_request_admin(app.current_request, restaurant_id).\
        endpoint_set_status(body.get('status'), body.get('reason'))


@app.route('/admin/restaurants/{restaurant_id}/suspend', methods=['POST'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def admin_suspend_restaurant(restaurant_id):
    return restaurants.Restaurant.init_request_admin(app.current_request, restaurant_id).\
        endpoint_suspend(request_body().get('reason'))


# MENU ITEMS
@app.route('/restaurants/{restaurant_id}/menu', methods=['GET'], cors=True)
def get_restaurant_menu(restaurant_id):
    return menu_items.MenuItem.endpoint_get_menu_items(app.current_request, restaurant_id=restaurant_id)


@app.route('/restaurants/{restaurant_id}/menu', methods=['POST'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def create_menu_item(restaurant_id):
    return menu_items.MenuItem.init_request_create(app.current_request, restaurant_id=restaurant_id).\
        endpoint_create_menu_item()


@app.route('/restaurants/{restaurant_id}/menu/{menu_item_id}', methods=['PUT'], authorizer=role_authorizer,
           cors=True)
@utils_app.request_exception_handler
def update_menu_item(restaurant_id, menu_item_id):
    return menu_items.MenuItem.init_request_update(
        app.current_request, restaurant_id=restaurant_id, menu_item_id=menu_item_id).endpoint_update_menu_item()


@app.route('/restaurants/{restaurant_id}/menu/{menu_item_id}', methods=['DELETE'], authorizer=role_authorizer,
           cors=True)
@utils_app.request_exception_handler
def delete_menu_item(restaurant_id, menu_item_id):
    """
    menu items are archived, reservations keep pointing at them
    """
    return menu_items.MenuItem.init_request_update(
        app.current_request, restaurant_id=restaurant_id,
        menu_item_id=menu_item_id, special_body={'archived': True}
    ).endpoint_update_menu_item()


# PROMOS
@app.route('/restaurants/{restaurant_id}/promos', methods=['GET'], authorizer=role_authorizer, cors=True)
def get_restaurant_promos(restaurant_id):
    return promos.Promo.endpoint_get_restaurant_promos(app.current_request, restaurant_id)


@app.route('/restaurants/{restaurant_id}/promos/active', methods=['GET'], cors=True)
def get_active_promos(restaurant_id):
    return promos.Promo.endpoint_get_active_promos(app.current_request, restaurant_id)


@app.route('/restaurants/{restaurant_id}/quote', methods=['POST'], cors=True)
def quote_order(restaurant_id):
    return promos.Promo.endpoint_quote(app.current_request, restaurant_id)


@app.route('/restaurants/{restaurant_id}/promos', methods=['POST'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def create_promo(restaurant_id):
    return promos.Promo.init_request_create(app.current_request, restaurant_id).endpoint_create()


@app.route('/restaurants/{restaurant_id}/promos/{promo_id}', methods=['PUT'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def update_promo(restaurant_id, promo_id):
    return promos.Promo.init_request_update(app.current_request, restaurant_id, promo_id).endpoint_update()


@app.route('/restaurants/{restaurant_id}/promos/{promo_id}', methods=['DELETE'], authorizer=role_authorizer,
           cors=True)
@utils_app.request_exception_handler
def delete_promo(restaurant_id, promo_id):
    return promos.Promo.init_request_owner(app.current_request, restaurant_id, promo_id).endpoint_delete()


# RESERVATIONS
@app.route('/restaurants/{restaurant_id}/reservations', methods=['POST'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def create_reservation(restaurant_id):
    return reservations.Reservation.init_request_create(app.current_request, restaurant_id).endpoint_create()


@app.route('/restaurants/{restaurant_id}/reservations', methods=['GET'], authorizer=role_authorizer, cors=True)
def get_restaurant_reservations(restaurant_id):
    return reservations.Reservation.endpoint_get_restaurant_reservations(app.current_request, restaurant_id)


@app.route('/reservations/mine', methods=['GET'], authorizer=role_authorizer, cors=True)
def get_my_reservations():
    return reservations.Reservation.endpoint_get_my_reservations(app.current_request)


@app.route('/restaurants/{restaurant_id}/reservations/{reservation_id}', methods=['GET'],
           authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def get_reservation_by_id(restaurant_id, reservation_id):
    return reservations.Reservation.init_request_get(app.current_request, restaurant_id, reservation_id).\
        endpoint_get_by_id()


@app.route('/restaurants/{restaurant_id}/reservations/{reservation_id}/status', methods=['PUT'],
           authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def change_reservation_status(restaurant_id, reservation_id):
    return reservations.Reservation.init_request_get(app.current_request, restaurant_id, reservation_id).\
        endpoint_change_status(request_body().get('status'))


# REVIEWS
@app.route('/restaurants/{restaurant_id}/reviews', methods=['GET'], cors=True)
def get_restaurant_reviews(restaurant_id):
    return reviews.Review.endpoint_get_restaurant_reviews(app.current_request, restaurant_id)


@app.route('/restaurants/{restaurant_id}/reviews/summary', methods=['GET'], cors=True)
def get_review_summary(restaurant_id):
    return reviews.Review.endpoint_get_review_summary(app.current_request, restaurant_id)


@app.route('/restaurants/{restaurant_id}/reviews', methods=['POST'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def create_review(restaurant_id):
    return reviews.Review.init_request_create(app.current_request, restaurant_id).endpoint_create()


@app.route('/reviews/mine', methods=['GET'], authorizer=role_authorizer, cors=True)
def get_my_reviews():
    return reviews.Review.endpoint_get_my_reviews(app.current_request)


@app.route('/reviews/owner', methods=['GET'], authorizer=role_authorizer, cors=True)
def get_owner_reviews():
    return reviews.Review.endpoint_get_owner_reviews(app.current_request)


@app.route('/restaurants/{restaurant_id}/reviews/{review_id}/reply', methods=['PUT'], authorizer=role_authorizer,
           cors=True)
@utils_app.request_exception_handler
def reply_to_review(restaurant_id, review_id):
    return reviews.Review.init_request_reply(app.current_request, restaurant_id, review_id).\
        endpoint_reply(request_body().get('reply'))


@app.route('/restaurants/{restaurant_id}/reviews/{review_id}/report', methods=['POST'], authorizer=role_authorizer,
           cors=True)
@utils_app.request_exception_handler
def report_review(restaurant_id, review_id):
    return reports.Report.init_request_create(app.current_request, restaurant_id, review_id).endpoint_create()


@app.route('/admin/reviews/{restaurant_id}/{review_id}', methods=['DELETE'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def admin_delete_review(restaurant_id, review_id):
    reason = (app.current_request.query_params or {}).get('reason')
    return reviews.Review.init_request_admin(app.current_request, restaurant_id, review_id).endpoint_delete(reason)


# REPORTS
@app.route('/admin/reports', methods=['GET'], authorizer=role_authorizer, cors=True)
def admin_get_reports():
    return reports.Report.endpoint_get_reports(app.current_request)


@app.route('/admin/reports/{report_id}', methods=['PUT'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def admin_resolve_report(report_id):
    body = request_body()
    return reports.Report.init_request_admin(app.current_request, report_id).\
        endpoint_resolve(body.get('status'), body.get('admin_notes'))


@app.route('/admin/insights', methods=['GET'], authorizer=role_authorizer, cors=True)
def admin_get_insights():
    return reports.Report.endpoint_get_insights(app.current_request)


@app.route('/admin/ratings/sync', methods=['POST'], authorizer=role_authorizer, cors=True)
def admin_sync_ratings():
    return ratings.endpoint_sync_all_ratings(app.current_request)


# NOTIFICATIONS
@app.route('/notifications', methods=['GET'], authorizer=role_authorizer, cors=True)
def get_notifications():
    return notifications.endpoint_get_notifications(app.current_request)


@app.route('/notifications/unread-count', methods=['GET'], authorizer=role_authorizer, cors=True)
def get_unread_count():
    return notifications.endpoint_get_unread_count(app.current_request)


@app.route('/notifications/read-all', methods=['PUT'], authorizer=role_authorizer, cors=True)
def mark_all_notifications_read():
    return notifications.endpoint_mark_all_read(app.current_request)


@app.route('/notifications/{notification_id}/read', methods=['PUT'], authorizer=role_authorizer, cors=True)
def mark_notification_read(notification_id):
    return notifications.endpoint_mark_read(app.current_request, notification_id)


@app.route('/notifications/{notification_id}', methods=['DELETE'], authorizer=role_authorizer, cors=True)
def delete_notification(notification_id):
    return notifications.endpoint_delete(app.current_request, notification_id)


@app.route('/notifications', methods=['DELETE'], authorizer=role_authorizer, cors=True)
def delete_all_notifications():
    return notifications.endpoint_delete_all(app.current_request)


# FAVORITES
@app.route('/favorites', methods=['GET'], authorizer=role_authorizer, cors=True)
def get_favorites():
    return favorites.Favorite.endpoint_get_favorites(app.current_request)


@app.route('/favorites/{restaurant_id}', methods=['GET'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def is_favorite(restaurant_id):
    return favorites.Favorite.init_request(app.current_request, restaurant_id).endpoint_is_favorite()


@app.route('/favorites/{restaurant_id}', methods=['POST'], authorizer=role_authorizer, cors=True)
@utils_app.request_exception_handler
def toggle_favorite(restaurant_id):
    return favorites.Favorite.init_request(app.current_request, restaurant_id).endpoint_toggle()


# DASHBOARDS
@app.route('/dashboards/owner', methods=['GET'], authorizer=role_authorizer, cors=True)
def get_owner_dashboard():
    return dashboards.endpoint_owner_dashboard(app.current_request)


@app.route('/dashboards/admin', methods=['GET'], authorizer=role_authorizer, cors=True)
def get_admin_dashboard():
    return dashboards.endpoint_admin_dashboard(app.current_request)


# IMAGES
@app.route('/image-upload', methods=['POST'], content_types=['multipart/form-data'], authorizer=role_authorizer,
           cors=True)
def image_upload():
    """
    owner operation, entityType is restaurant or menu_item
    """
    return images.image_upload(app.current_request)
