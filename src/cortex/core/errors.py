"""Exception hierarchy shared across the package."""


class CortexError(Exception):
    """Base class for all library errors."""


class CollaboratorError(CortexError):
    """An external collaborator returned an unusable result."""


class ContextOverflowError(CortexError):
    """The generation collaborator ran out of context window."""
