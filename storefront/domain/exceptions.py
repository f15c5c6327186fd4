class DomainException(Exception):
    pass


class ValidationError(DomainException):
    pass


class NotFoundError(DomainException):
    pass


class ProductNotFoundError(NotFoundError):
    pass


class OrderNotFoundError(NotFoundError):
    pass


class UserNotFoundError(NotFoundError):
    pass


class AuthenticationError(DomainException):
    pass


class ForbiddenError(DomainException):
    pass


class InsufficientStockError(DomainException):
    def __init__(self, product_name: str, available: int, required: int):
        self.product_name = product_name
        self.available = available
        self.required = required
        super().__init__(f"Not enough stock for {product_name}. Only {available} available")


class InvalidStatusTransitionError(ValidationError):
    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change order status from {current.value} to {requested.value}")


class PaymentProviderError(DomainException):
    pass


class SignatureVerificationError(DomainException):
    pass
