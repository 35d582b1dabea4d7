"""
Typed Exception Hierarchy for the Agency Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payout computation touches real money. Callers must be able to tell a
fatal configuration mistake from a recoverable data gap without parsing
message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way to handle errors:
    try:
        service.compute_preview_payouts(month_id)
    except Exception as e:
        if "double-counting" in str(e):  # FRAGILE
            ...

Example - RIGHT way:
    try:
        service.compute_preview_payouts(month_id)
    except AmbiguousPercentageConfigError as e:
        notify_finance(member=e.member_id, bucket=e.bucket)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AgencyLedgerError (base)
    |
    +-- ConfigurationError
    |   +-- AmbiguousPercentageConfigError
    |   +-- InvalidSettingsError
    |
    +-- PeriodError
    |   +-- MonthNotFoundError
    |   +-- InvalidMonthKeyError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- CurrencyMismatchError
    |   +-- InvalidExchangeRateError
    |
    +-- BasisError
    |   +-- InvalidHourlyEntryError
    |   +-- DuplicateHourlyEntryError
    |
    +-- PayoutRunError
    |   +-- PayoutRunNotFoundError
    |   +-- PayoutLineNotFoundError
    |   +-- InvalidRunTransitionError
    |
    +-- IdentityKeyError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-----------------------------------
Configuration   | AMBIGUOUS_PERCENTAGE_CONFIG   | Total-net AND msgs/tips % set for
                |                               | one bucket (aborts the month)
                | INVALID_SETTINGS              | Settings value out of range
----------------|-------------------------------|-----------------------------------
Period          | MONTH_NOT_FOUND               | Month id unknown to the store
                | INVALID_MONTH_KEY             | Month has no/invalid YYYY-MM key
----------------|-------------------------------|-----------------------------------
Currency        | INVALID_CURRENCY              | Currency other than USD/EUR
                | CURRENCY_MISMATCH             | USD and EUR mixed in one sum
                | INVALID_EXCHANGE_RATE         | Rate is zero/negative/non-finite
----------------|-------------------------------|-----------------------------------
Basis           | INVALID_HOURLY_ENTRY          | Hours or rate not positive
                | DUPLICATE_HOURLY_ENTRY        | Second hourly entry, same month
----------------|-------------------------------|-----------------------------------
Payout run      | PAYOUT_RUN_NOT_FOUND          | Run id unknown
                | PAYOUT_LINE_NOT_FOUND         | Line id unknown
                | INVALID_RUN_TRANSITION        | Action not allowed from status
----------------|-------------------------------|-----------------------------------
Identity        | INVALID_IDENTITY_KEY          | Natural key cannot be parsed

Recoverable conditions (unknown basis member, missing net revenue, missing
FX rate) are NOT exceptions: the engine degrades the affected line and
records the condition in diagnostics / breakdown.
"""


class AgencyLedgerError(Exception):
    """
    Base exception for all agency engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "AGENCY_LEDGER_ERROR"


# Configuration exceptions


class ConfigurationError(AgencyLedgerError):
    """Base exception for compensation / settings configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class AmbiguousPercentageConfigError(ConfigurationError):
    """
    Manager/VA has both a total-net and a messages/tips-net percentage
    set for the same revenue bucket.

    Fatal for the whole month: summing the two would silently over-pay.
    """

    code: str = "AMBIGUOUS_PERCENTAGE_CONFIG"

    def __init__(
        self,
        member_id: str,
        bucket: str,
        total_pct: str,
        msgs_tips_pct: str,
    ):
        self.member_id = member_id
        self.bucket = bucket
        self.total_pct = total_pct
        self.msgs_tips_pct = msgs_tips_pct
        super().__init__(
            f"Member {member_id} has both {bucket}_percentage ({total_pct}) and "
            f"{bucket}_percentage_messages_tips ({msgs_tips_pct}) > 0 "
            f"(double-counting)"
        )


class InvalidSettingsError(ConfigurationError):
    """A settings value is missing or out of range."""

    code: str = "INVALID_SETTINGS"

    def __init__(self, setting_name: str, value: str, reason: str):
        self.setting_name = setting_name
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid setting {setting_name}={value}: {reason}")


# Period exceptions


class PeriodError(AgencyLedgerError):
    """Base exception for month resolution errors."""

    code: str = "PERIOD_ERROR"


class MonthNotFoundError(PeriodError):
    """Month record id does not resolve."""

    code: str = "MONTH_NOT_FOUND"

    def __init__(self, month_id: str):
        self.month_id = month_id
        super().__init__(f"Month not found: {month_id}")


class InvalidMonthKeyError(PeriodError):
    """Month key is empty or not in YYYY-MM form."""

    code: str = "INVALID_MONTH_KEY"

    def __init__(self, month_key: str, month_id: str | None = None):
        self.month_key = month_key
        self.month_id = month_id
        super().__init__(
            f"Invalid month key {month_key!r}"
            + (f" for month {month_id}" if month_id else "")
        )


# Currency exceptions


class CurrencyError(AgencyLedgerError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency is not one of the supported pair."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Unsupported currency: {currency}")


class CurrencyMismatchError(CurrencyError):
    """Amounts in different currencies combined without conversion."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__(f"Currency mismatch: expected {expected}, received {received}")


class InvalidExchangeRateError(CurrencyError):
    """Exchange rate is zero, negative or not a number."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, rate: str, reason: str = "rate must be positive"):
        self.rate = rate
        self.reason = reason
        super().__init__(f"Invalid exchange rate {rate}: {reason}")


# Basis exceptions


class BasisError(AgencyLedgerError):
    """Base exception for manual basis entry errors."""

    code: str = "BASIS_ERROR"


class InvalidHourlyEntryError(BasisError):
    """Hourly entry has non-positive hours or rate."""

    code: str = "INVALID_HOURLY_ENTRY"

    def __init__(self, field_name: str, value: str):
        self.field_name = field_name
        self.value = value
        super().__init__(f"{field_name} must be a positive number, got {value}")


class DuplicateHourlyEntryError(BasisError):
    """Member already has an hourly entry for the month."""

    code: str = "DUPLICATE_HOURLY_ENTRY"

    def __init__(self, team_member_id: str, month_key: str, existing_entry_id: str):
        self.team_member_id = team_member_id
        self.month_key = month_key
        self.existing_entry_id = existing_entry_id
        super().__init__(
            f"Duplicate hourly entry for team member {team_member_id} in "
            f"{month_key} (existing {existing_entry_id})"
        )


# Payout run exceptions


class PayoutRunError(AgencyLedgerError):
    """Base exception for payout run persistence errors."""

    code: str = "PAYOUT_RUN_ERROR"


class PayoutRunNotFoundError(PayoutRunError):
    """Payout run id does not exist."""

    code: str = "PAYOUT_RUN_NOT_FOUND"

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Payout run not found: {run_id}")


class PayoutLineNotFoundError(PayoutRunError):
    """Payout line id does not exist."""

    code: str = "PAYOUT_LINE_NOT_FOUND"

    def __init__(self, line_id: str):
        self.line_id = line_id
        super().__init__(f"Payout line not found: {line_id}")


class InvalidRunTransitionError(PayoutRunError):
    """Requested action is not a valid transition from the run's status."""

    code: str = "INVALID_RUN_TRANSITION"

    def __init__(self, run_id: str, current_status: str, action: str):
        self.run_id = run_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} payout run {run_id} from status {current_status}"
        )


# Identity exceptions


class IdentityKeyError(AgencyLedgerError):
    """Natural identity key cannot be built or parsed."""

    code: str = "INVALID_IDENTITY_KEY"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid identity key {key!r}: {reason}")
