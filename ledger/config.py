# ledger/config.py
from decimal import Decimal
from typing import Dict, Any, List, Tuple


class LedgerConfig:
    """
    Canonical money rules for signup, referral, deposit, withdrawal and bots.
    Per-currency amounts are expressed in that currency.
    """

    SIGNUP_BONUS = {
        "KSH": Decimal("200"),
        "USD": Decimal("1.5"),
    }

    # Paid to the referrer, in the referrer's currency
    REFERRAL_BONUS = {
        "KSH": Decimal("300"),
        "USD": Decimal("2.3"),
    }

    # Deposit that completes the depositor's pending referral bonus
    REFERRAL_QUALIFYING_DEPOSIT = {
        "KSH": Decimal("10000"),
        "USD": Decimal("66.67"),
    }

    MIN_WITHDRAWAL = {
        "KSH": Decimal("1200"),
        "USD": Decimal("10"),
    }

    BOT_CYCLE_DAYS = 30
    MINING_INTERVAL_HOURS = 24

    # (minimum KSH investment, multiplier), highest bracket first
    PROFIT_BRACKETS: List[Tuple[Decimal, Decimal]] = [
        (Decimal("100000"), Decimal("2.5")),
        (Decimal("70000"), Decimal("2.8")),
        (Decimal("50000"), Decimal("2.25")),
        (Decimal("45000"), Decimal("2.3")),
        (Decimal("40000"), Decimal("2.3")),
        (Decimal("30000"), Decimal("2.6")),
        (Decimal("20000"), Decimal("2.5")),
        (Decimal("15000"), Decimal("2.4")),
        (Decimal("10000"), Decimal("2.3")),
        (Decimal("7000"), Decimal("2.65")),
        (Decimal("2000"), Decimal("2.33")),
    ]
    DEFAULT_MULTIPLIER = Decimal("2.2")

    DEMO_BALANCE = Decimal("10000")
    DEMO_CURRENCY = "USD"

    @staticmethod
    def profit_multiplier(investment_ksh: Decimal) -> Decimal:
        """Step function over PROFIT_BRACKETS; first bracket whose minimum is met wins."""
        amount = Decimal(str(investment_ksh))
        for minimum, multiplier in LedgerConfig.PROFIT_BRACKETS:
            if amount >= minimum:
                return multiplier
        return LedgerConfig.DEFAULT_MULTIPLIER

    @staticmethod
    def signup_bonus(currency: str) -> Decimal:
        return LedgerConfig.SIGNUP_BONUS[currency]

    @staticmethod
    def referral_bonus(currency: str) -> Decimal:
        return LedgerConfig.REFERRAL_BONUS[currency]

    @staticmethod
    def qualifies_for_referral(amount: Decimal, currency: str) -> bool:
        return Decimal(str(amount)) >= LedgerConfig.REFERRAL_QUALIFYING_DEPOSIT[currency]

    @staticmethod
    def min_withdrawal(currency: str) -> Decimal:
        return LedgerConfig.MIN_WITHDRAWAL[currency]

    @staticmethod
    def get_bracket_summary() -> Dict[str, Any]:
        return {
            "brackets": [
                {"min_investment_ksh": float(minimum), "multiplier": float(multiplier)}
                for minimum, multiplier in LedgerConfig.PROFIT_BRACKETS
            ],
            "default_multiplier": float(LedgerConfig.DEFAULT_MULTIPLIER),
            "cycle_days": LedgerConfig.BOT_CYCLE_DAYS,
        }
