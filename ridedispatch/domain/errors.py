"""
Error taxonomy.

Only store-level problems are raised to callers.  Conflicts and missing
records travel as data (``TransitionOutcome``, ``None``, empty lists);
``ValidationError`` is raised inside the components and turned into a
failure value by ``DispatchFacade``.
"""


class DispatchError(Exception):
    """Base class for all dispatch errors."""


class ValidationError(DispatchError):
    """Input rejected before the store was touched."""


class StoreFault(DispatchError):
    """The store could not complete the operation; its outcome is unknown."""


class MappingError(StoreFault):
    """A stored value (status, role) does not map onto a known enum member."""
