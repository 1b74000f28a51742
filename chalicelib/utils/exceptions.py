__all__ = ["NotAuthorizedException", "AccessDenied", "UserSuspended", "RecordNotFound", "NumberOfRetriesExceeded",
           "ValidationException", "AuthorizationException", "SomeItemsAreNotAvailable",
           "InvalidStatusTransition", "RestaurantNotAvailable"]


class NotAuthorizedException(Exception):
    pass


# Generic Exceptions
class AccessDenied(Exception):
    pass


class UserSuspended(AccessDenied):
    pass


# DynamoDB exceptions
class RecordNotFound(Exception):
    LEVEL = 'warning'


# DB Performance Exception
class NumberOfRetriesExceeded(Exception):
    pass


# Validations exceptions
class ValidationException(Exception):
    LEVEL = 'warning'


class AuthorizationException(NotAuthorizedException):
    pass


class SomeItemsAreNotAvailable(ValidationException):
    pass


class RestaurantNotAvailable(ValidationException):
    pass


class InvalidStatusTransition(Exception):
    LEVEL = 'warning'
