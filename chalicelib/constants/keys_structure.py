users_pk = 'users'
users_sk = '{user_id}'

restaurants_pk = 'restaurants'
restaurants_sk = '{restaurant_id}'

menu_items_pk = 'menu_items_{restaurant_id}'
menu_items_sk = '{menu_item_id}'

promos_pk = 'promos_{restaurant_id}'
promos_sk = '{promo_id}'

reservations_pk = 'reservations_{restaurant_id}'
reservations_sk = '{reservation_id}'

reviews_pk = 'reviews_{restaurant_id}'
reviews_sk = '{review_id}'

reports_pk = 'reports'
reports_sk = '{report_id}'

notifications_pk = 'notifications_{recipient_id}'
notifications_sk = '{date_created}_{notification_id}'

favorites_pk = 'favorites_{user_id}'
favorites_sk = '{restaurant_id}'

suspension_logs_pk = 'suspension_logs'
suspension_logs_sk = '{date_created}_{log_id}'

review_deletions_pk = 'review_deletions'
review_deletions_sk = '{date_created}_{review_id}'

gsi_user_records = 'user_id-date_created-index'
