# Fulfillment error taxonomy
# Every core operation raises one of these; the API layer maps them to HTTP status codes


class FulfillmentError(Exception):
    """Base class for errors surfaced to the caller of a core operation"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FulfillmentError, ValueError):
    """Malformed or out-of-range input (bad amount, overpayment, missing field, unknown label)"""

    status_code = 400


class StateError(FulfillmentError):
    """Transition not permitted from the current status, or a payment gate is unmet"""

    status_code = 409


class ConflictError(FulfillmentError):
    """Duplicate schedule assignment"""

    status_code = 409


class NotFoundError(FulfillmentError, LookupError):
    """Unknown order or staff reference"""

    status_code = 404


class NotificationFailure(Exception):
    """
    Customer notification could not be delivered.

    Never surfaced to the caller that triggered the state change; the
    notification dispatcher logs it and records the failed attempt.
    """
