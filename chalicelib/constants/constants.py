SYSTEM_RECIPIENT = 'system'

ROLE_CUSTOMER = 'customer'
ROLE_OWNER = 'owner'
ROLE_ADMIN = 'admin'
ROLES = (ROLE_CUSTOMER, ROLE_OWNER, ROLE_ADMIN)
SELF_SIGNUP_ROLES = (ROLE_CUSTOMER, ROLE_OWNER)

USER_STATUS_ACTIVE = 'active'
USER_STATUS_SUSPENDED = 'suspended'

RESTAURANT_STATUS_PENDING = 'pending'
RESTAURANT_STATUS_APPROVED = 'approved'
RESTAURANT_STATUS_REJECTED = 'rejected'
RESTAURANT_STATUS_SUSPENDED = 'suspended'
RESTAURANT_STATUSES = (RESTAURANT_STATUS_PENDING, RESTAURANT_STATUS_APPROVED, RESTAURANT_STATUS_REJECTED,
                       RESTAURANT_STATUS_SUSPENDED)

RESERVATION_PENDING_APPROVAL = 'pending_approval'
RESERVATION_CONFIRMED = 'confirmed'
RESERVATION_CANCELLED = 'cancelled'
RESERVATION_COMPLETED = 'completed'
RESERVATION_STATUSES = (RESERVATION_PENDING_APPROVAL, RESERVATION_CONFIRMED, RESERVATION_CANCELLED,
                        RESERVATION_COMPLETED)
PAYMENT_UNPAID = 'unpaid'

REPORT_PENDING = 'pending'
REPORT_APPROVED = 'approved'
REPORT_REJECTED = 'rejected'
REPORT_STATUSES = (REPORT_PENDING, REPORT_APPROVED, REPORT_REJECTED)

PROMO_ACTIVE = 'active'
PROMO_INACTIVE = 'inactive'
DISCOUNT_PERCENTAGE = 'percentage'
DISCOUNT_FIXED = 'fixed'
PROMO_STATUSES = (PROMO_ACTIVE, PROMO_INACTIVE)
DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED)

DOWN_PAYMENT_RATIO = '0.5'
REPORT_SUSPENSION_THRESHOLD = 10
NEGATIVE_REVIEW_THRESHOLD = 10
NEGATIVE_REVIEW_MAX_RATING = 2
LOW_RATING_THRESHOLD = 2
NOTIFICATIONS_LIMIT = 50
SYSTEM_NOTIFICATIONS_LIMIT = 20

MAIN_IMAGE_NAME = 'main.jpg'
THUMB_IMAGE_NAME = 'thumb.jpg'
