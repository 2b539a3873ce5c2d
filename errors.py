from dataclasses import dataclass
from typing import Optional


class LedgerError(Exception):
    """Base class for every error the ledger surfaces to callers."""


class ValidationError(LedgerError, ValueError):
    pass


class NotFoundError(ValidationError):
    pass


class InvalidStateError(ValidationError):
    pass


class Unauthenticated(LedgerError):
    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class StoreError(LedgerError):
    """The record store failed to complete a call. Never retried internally."""


class ReferentialIntegrityError(StoreError):
    pass


class DuplicateRowError(StoreError):
    pass


class CategoryInUseError(ReferentialIntegrityError):
    def __init__(self, category_id: int) -> None:
        super().__init__(
            "Cannot delete a category that still has transactions, rules, "
            "installment plans or alerts attached to it"
        )
        self.category_id = category_id


class OrphanedPlanError(StoreError):
    """Creating the parcels failed and deleting the plan row failed as well.

    The plan identified by ``plan_id`` exists without its transactions and has
    to be removed by hand.
    """

    def __init__(
        self,
        plan_id: int,
        cause: BaseException,
        compensation_error: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"Installment plan {plan_id} was left without transactions: {cause}"
        )
        self.plan_id = plan_id
        self.cause = cause
        self.compensation_error = compensation_error


@dataclass(frozen=True)
class UnitFailure:
    """One rule or plan that a reconciliation pass could not process."""

    unit_id: int
    error: str
