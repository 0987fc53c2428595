from decimal import Decimal

DEFAULT_TRIAL_PERIOD_DAYS = 30
DEFAULT_TRANSACTION_FEE_RATE = Decimal("5.00")

MIN_TRANSACTION_FEE_RATE = Decimal("0")
MAX_TRANSACTION_FEE_RATE = Decimal("100")

# Length of one paid billing period, per plan type.
PLAN_PERIOD_DAYS = {
    "MONTHLY": 30,
    "YEARLY": 365,
}

ACTIVE_STATUSES = ("ACTIVE_TRIAL", "ACTIVE_PAID")
