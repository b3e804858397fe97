"""Exceptions raised by retention intelligence collaborators and services."""


class RetentionError(Exception):
    """Base class for retention errors."""


class UnknownSignalTypeError(RetentionError, ValueError):
    """Signal type has no entry in the signal catalog."""

    def __init__(self, signal_type):
        self.signal_type = signal_type
        super().__init__(f"Unknown signal type: {getattr(signal_type, 'value', signal_type)}")


class CustomerNotFoundError(RetentionError, LookupError):
    """Customer directory has no record for the requested customer."""

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer {customer_id} not found")
