"""Exceptions raised by the tap and its hosts."""


class StrudelTapError(Exception):
    """Base class for strudeltap errors."""


class InterceptionUnsupported(StrudelTapError):
    """The host's connection primitive cannot be intercepted."""


class CaptureUnsupported(StrudelTapError):
    """The host cannot create a capturable stream or a suitable encoder."""


class InvalidAccessError(StrudelTapError):
    """A graph operation crossed execution contexts."""
