from __future__ import annotations


class FocusFlowError(Exception):
    """Base error for FocusFlow."""


class StoreError(FocusFlowError):
    """The backing store rejected a read or write."""


class ValidationError(FocusFlowError):
    pass


class NotFoundError(FocusFlowError):
    pass


class NoPendingPhaseError(FocusFlowError):
    pass


class NotAuthenticatedError(FocusFlowError):
    pass
