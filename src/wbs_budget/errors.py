"""Exceptions raised by the budget tree engine."""


class BudgetError(Exception):
    """Base class for budget engine errors."""


class NodeNotFoundError(BudgetError, KeyError):
    """A node id does not exist in the current budget."""


class StructuralError(BudgetError, ValueError):
    """An operation would break the tree invariants."""
