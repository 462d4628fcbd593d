"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP layer, background jobs, tests) must react to failures by
kind, not by parsing message text:

    try:
        closer.execute_close(period_id, org_id, actor_id)
    except ConcurrentModificationError:
        return conflict_response()          # safe to retry after re-read
    except ConfigurationError as e:
        return setup_error(e.setting)       # actionable setup problem

Every exception carries:
  1. A TYPED class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- NotFoundError
    |   +-- OrganizationNotFoundError
    |   +-- AccountNotFoundError
    |   +-- ContactNotFoundError
    |   +-- MembershipNotFoundError
    |   +-- TransactionNotFoundError
    |   +-- PeriodNotFoundError
    |   +-- BankAccountNotFoundError
    |   +-- StatementNotFoundError
    |   +-- StatementLineNotFoundError
    |   +-- MatchNotFoundError
    |
    +-- ConcurrentModificationError
    |
    +-- InvalidStateError
    |   +-- PeriodAlreadyClosedError
    |   +-- PeriodNotClosedError
    |   +-- PeriodImmutableError
    |   +-- ClosedPeriodError
    |   +-- NoAccountsError
    |   +-- AccountInactiveError
    |   +-- DuplicateCodeError
    |   +-- EntityNotDeletedError
    |   +-- TransactionVoidedError
    |   +-- StatementAlreadyCompletedError
    |   +-- StatementClosedError
    |   +-- UnresolvedLinesError
    |
    +-- ConfigurationError
    |
    +-- ValidationError
        +-- ExceedsLineAmountError
        +-- PeriodOverlapError
        +-- InvalidAmountError
        +-- InvalidPostingError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-------------------------------
NotFound        | *_NOT_FOUND                   | Missing, or owned by another org
Concurrency     | CONCURRENT_MODIFICATION       | Version close affected 0 rows
State           | PERIOD_ALREADY_CLOSED         | Close/edit of a CLOSED period
                | PERIOD_NOT_CLOSED             | Reopen of an OPEN period
                | PERIOD_IMMUTABLE              | Edit/delete of a CLOSED period
                | CLOSED_PERIOD                 | Posting dated in a CLOSED period
                | NO_ACCOUNTS_TO_CLOSE          | Close with nothing to zero
                | ACCOUNT_INACTIVE              | Posting to an inactive account
                | DUPLICATE_CODE                | Account code / slug in use
                | ENTITY_NOT_DELETED            | Restore of a live entity
                | TRANSACTION_VOIDED            | Edit/void of a voided entry
                | STATEMENT_ALREADY_COMPLETED   | Completing twice
                | STATEMENT_CLOSED              | Mutating a finished statement
                | UNRESOLVED_LINES              | Completing with open lines
Configuration   | CONFIGURATION_ERROR           | Missing organization setting
Validation      | EXCEEDS_LINE_AMOUNT           | Manual allocations too large
                | PERIOD_OVERLAP                | Date ranges intersect
                | INVALID_AMOUNT                | Non-positive amount
                | INVALID_POSTING               | Debit and credit are the same

===============================================================================
RETRY POLICY
===============================================================================

Nothing is retried inside the kernel. ConcurrentModificationError is the
only kind a caller may retry, and only after re-reading current state.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Not-found exceptions


class NotFoundError(LedgerKernelError):
    """Entity does not exist or is not visible to the requesting organization."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str, entity_type: str | None = None):
        self.entity_id = str(entity_id)
        if entity_type is not None:
            self.entity_type = entity_type
        super().__init__(f"{self.entity_type} not found: {self.entity_id}")


class OrganizationNotFoundError(NotFoundError):
    code: str = "ORGANIZATION_NOT_FOUND"
    entity_type: str = "Organization"


class AccountNotFoundError(NotFoundError):
    code: str = "ACCOUNT_NOT_FOUND"
    entity_type: str = "Account"


class ContactNotFoundError(NotFoundError):
    code: str = "CONTACT_NOT_FOUND"
    entity_type: str = "Contact"


class MembershipNotFoundError(NotFoundError):
    code: str = "MEMBERSHIP_NOT_FOUND"
    entity_type: str = "Membership"


class TransactionNotFoundError(NotFoundError):
    code: str = "TRANSACTION_NOT_FOUND"
    entity_type: str = "Transaction"


class PeriodNotFoundError(NotFoundError):
    code: str = "PERIOD_NOT_FOUND"
    entity_type: str = "FiscalPeriod"


class BankAccountNotFoundError(NotFoundError):
    code: str = "BANK_ACCOUNT_NOT_FOUND"
    entity_type: str = "BankAccount"


class StatementNotFoundError(NotFoundError):
    code: str = "STATEMENT_NOT_FOUND"
    entity_type: str = "BankStatement"


class StatementLineNotFoundError(NotFoundError):
    code: str = "STATEMENT_LINE_NOT_FOUND"
    entity_type: str = "BankStatementLine"


class MatchNotFoundError(NotFoundError):
    code: str = "MATCH_NOT_FOUND"
    entity_type: str = "BankStatementLineMatch"


# Concurrency


class ConcurrentModificationError(LedgerKernelError):
    """
    A version-close race was lost.

    The conditional close of the version affected zero rows, meaning another
    writer superseded it first. Safe to retry after re-reading current state.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_type: str, version_id: str):
        self.entity_type = entity_type
        self.version_id = str(version_id)
        super().__init__(
            f"{entity_type} version {self.version_id} was modified by another "
            "writer; re-read the current version and retry"
        )


# Business-rule (state) violations


class InvalidStateError(LedgerKernelError):
    """Base exception for business rule violations."""

    code: str = "INVALID_STATE"


class PeriodAlreadyClosedError(InvalidStateError):
    """Period is already closed."""

    code: str = "PERIOD_ALREADY_CLOSED"

    def __init__(self, period_name: str):
        self.period_name = period_name
        super().__init__(f"Period {period_name} is already closed")


class PeriodNotClosedError(InvalidStateError):
    """Reopen requested for a period that is not closed."""

    code: str = "PERIOD_NOT_CLOSED"

    def __init__(self, period_name: str, status: str):
        self.period_name = period_name
        self.status = status
        super().__init__(
            f"Period {period_name} cannot be reopened from status {status}"
        )


class PeriodImmutableError(InvalidStateError):
    """Attempted to modify a closed period."""

    code: str = "PERIOD_IMMUTABLE"

    def __init__(self, period_name: str, operation: str):
        self.period_name = period_name
        self.operation = operation
        super().__init__(
            f"Cannot {operation} closed period {period_name}: "
            "reopen the period first"
        )


class ClosedPeriodError(InvalidStateError):
    """Attempted to post a transaction dated inside a closed period."""

    code: str = "CLOSED_PERIOD"

    def __init__(self, period_name: str, transaction_date: str):
        self.period_name = period_name
        self.transaction_date = transaction_date
        super().__init__(
            f"Cannot post to closed period {period_name} "
            f"(transaction_date: {transaction_date})"
        )


class NoAccountsError(InvalidStateError):
    """No revenue or expense account carries a balance to close."""

    code: str = "NO_ACCOUNTS_TO_CLOSE"

    def __init__(self, period_name: str):
        self.period_name = period_name
        super().__init__(
            f"Period {period_name} has no revenue or expense balances to close"
        )


class AccountInactiveError(InvalidStateError):
    """Posting targets a deactivated account."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str):
        self.account_id = str(account_id)
        super().__init__(f"Account {self.account_id} is inactive")


class DuplicateCodeError(InvalidStateError):
    """A unique business code (account code, slug) is already taken."""

    code: str = "DUPLICATE_CODE"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"{field} {value!r} is already in use")


class EntityNotDeletedError(InvalidStateError):
    """Restore requested for an entity that is not deleted."""

    code: str = "ENTITY_NOT_DELETED"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} {self.entity_id} is not deleted")


class TransactionVoidedError(InvalidStateError):
    """Edit or void requested for an already-voided transaction."""

    code: str = "TRANSACTION_VOIDED"

    def __init__(self, transaction_id: str):
        self.transaction_id = str(transaction_id)
        super().__init__(f"Transaction {self.transaction_id} is voided")


class StatementAlreadyCompletedError(InvalidStateError):
    code: str = "STATEMENT_ALREADY_COMPLETED"

    def __init__(self, statement_id: str):
        self.statement_id = str(statement_id)
        super().__init__(f"Statement {self.statement_id} is already reconciled")


class StatementClosedError(InvalidStateError):
    """Matching work attempted on a completed or cancelled statement."""

    code: str = "STATEMENT_CLOSED"

    def __init__(self, statement_id: str, status: str):
        self.statement_id = str(statement_id)
        self.status = status
        super().__init__(
            f"Statement {self.statement_id} is {status}; matches can no longer change"
        )


class UnresolvedLinesError(InvalidStateError):
    """Statement completion blocked by lines that are neither matched nor skipped."""

    code: str = "UNRESOLVED_LINES"

    def __init__(self, statement_id: str, unresolved_count: int):
        self.statement_id = str(statement_id)
        self.unresolved_count = unresolved_count
        super().__init__(
            f"Statement {self.statement_id} has {unresolved_count} unmatched "
            "line(s); match, skip, or acknowledge them before completing"
        )


# Configuration


class ConfigurationError(LedgerKernelError):
    """A required organization setting is missing or points nowhere."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, organization_id: str, setting: str, detail: str = ""):
        self.organization_id = str(organization_id)
        self.setting = setting
        self.detail = detail
        message = f"Organization {self.organization_id} is missing setting {setting}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


# Input validation


class ValidationError(LedgerKernelError):
    """Base exception for operation-specific input validation failures."""

    code: str = "VALIDATION_ERROR"


class ExceedsLineAmountError(ValidationError):
    """Manual allocations would exceed the statement line's absolute amount."""

    code: str = "EXCEEDS_LINE_AMOUNT"

    def __init__(
        self,
        line_id: str,
        line_amount: str,
        already_matched: str,
        requested: str,
    ):
        self.line_id = str(line_id)
        self.line_amount = line_amount
        self.already_matched = already_matched
        self.requested = requested
        super().__init__(
            f"Allocating {requested} to line {self.line_id} would exceed its "
            f"amount {line_amount} (already matched: {already_matched})"
        )


class PeriodOverlapError(ValidationError):
    """New period date range overlaps with an existing period of the organization."""

    code: str = "PERIOD_OVERLAP"

    def __init__(
        self,
        new_period_name: str,
        existing_period_name: str,
        overlap_start: str,
        overlap_end: str,
    ):
        self.new_period_name = new_period_name
        self.existing_period_name = existing_period_name
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        super().__init__(
            f"Period {new_period_name} overlaps with {existing_period_name} "
            f"({overlap_start} to {overlap_end})"
        )


class InvalidAmountError(ValidationError):
    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str, reason: str = "must be positive"):
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"Invalid amount {self.amount}: {reason}")


class InvalidPostingError(ValidationError):
    """Posting does not debit one account and credit a different one."""

    code: str = "INVALID_POSTING"

    def __init__(self, debit_account_id: str, credit_account_id: str):
        self.debit_account_id = str(debit_account_id)
        self.credit_account_id = str(credit_account_id)
        super().__init__(
            "A posting must debit and credit two different accounts "
            f"(debit={self.debit_account_id}, credit={self.credit_account_id})"
        )
