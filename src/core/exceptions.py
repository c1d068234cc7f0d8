class DomainError(Exception):
    """Base class for domain-specific errors."""

    pass


class SlotNotFoundError(DomainError):
    """Raised when no live draft slot exists for a key."""

    pass


class InvalidTransitionError(DomainError):
    """Raised when a draft slot operation is not allowed in its current state."""

    def __init__(self, operation: str, status: str) -> None:
        super().__init__(f"Cannot {operation} a draft in status '{status}'")
        self.operation = operation
        self.status = status


class UnknownContentKindError(DomainError):
    """Raised when a content kind name is not in the catalog."""

    pass


class InvalidRequestError(DomainError):
    """Raised when a generation request cannot be built from its inputs."""

    pass
