"""Exceptions raised for misuse of cursors and sequences."""


class PreconditionViolation(RuntimeError):
    """Raised when a caller breaks a cursor or sequence contract.

    These are programmer errors: they are raised immediately and are never
    retried or swallowed by the library.
    """
    pass


class CursorStateError(PreconditionViolation):
    """Raised when a value is read from a cursor that is not holding one."""
    pass


class UnboundedSequenceError(PreconditionViolation):
    """Raised when an exhausting terminal is run over an unbounded sequence."""
    pass


class CursorOwnershipError(PreconditionViolation):
    """Raised when a cursor would end up with more than one consumer."""
    pass


class SourceLimitExceeded(RuntimeError):
    """Raised when a capped source is pulled past its element limit."""
    pass
