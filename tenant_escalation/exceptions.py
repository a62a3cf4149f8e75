"""Exceptions raised by the escalation collaborators."""


class EscalationError(Exception):
    """Base class for errors surfaced during an escalation cycle."""


class RepositoryError(EscalationError):
    """The work-order store could not be read or written."""


class ConcurrentUpdateError(RepositoryError):
    """A guarded write found the record already advanced by another cycle."""

    def __init__(self, request_id: str):
        super().__init__(f"Work order {request_id} was updated concurrently")
        self.request_id = request_id


class DirectoryError(EscalationError):
    """Parties for a work order could not be resolved."""


class NotificationError(EscalationError):
    """A notice could not be handed to the mail transport."""

    def __init__(self, message: str, recipient: str = ""):
        super().__init__(message)
        self.recipient = recipient
