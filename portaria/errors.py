"""
Error taxonomy for the entrance workflow.

Store adapters never raise: they return StoreResult(data, error). The
workflow branches on `error` and raises one of these. Every error is fatal to
the current registration; the only tolerated failures (photo refresh and
visitor stats update) are logged as warnings and never reach this module.
"""


class RegistrationError(Exception):
    """Base class. `detail` holds the underlying store message, if any."""

    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(f"{message}: {detail}" if detail else message)


class InvalidRequest(RegistrationError):
    """Required form data is missing or malformed."""


class LookupFailed(RegistrationError):
    """The visitor store could not be read."""


class PhotoRequired(RegistrationError):
    """A new visitor cannot be created without a stored photo."""


class VisitorCreationFailed(RegistrationError):
    """The visitor record could not be persisted."""


class VisitorNotFound(RegistrationError):
    """No visitor with the given id or national ID."""


class LogWriteFailed(RegistrationError):
    """The access log entry could not be persisted."""


class ReasonRequired(RegistrationError):
    """Banning a visitor needs a non-empty reason."""


class BannedVisitor(RegistrationError):
    """The visitor is on the banned list; `reason` is always set."""

    def __init__(self, reason: str, name: str | None = None):
        self.reason = reason or "no reason recorded"
        self.name = name
        who = name or "Visitor"
        super().__init__(f"{who} is banned from entering", self.reason)
