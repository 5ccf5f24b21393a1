"""Exception types raised by the tracking core."""


class WakeyError(Exception):
    """Base class for wakey errors."""


class ProbeFailure(WakeyError):
    """The window probe raised, timed out, or could not read the foreground window."""


class InvalidStateError(WakeyError):
    """A focus-session transition was requested from a state that does not allow it."""

    def __init__(self, action: str, state: str):
        super().__init__(f"cannot {action} while session manager is {state}")
        self.action = action
        self.state = state


class StoreWriteFailure(WakeyError):
    """A database write kept failing after all retries."""


class CategorizerFailure(WakeyError):
    """A categorizer could not produce a category."""
