"""
Constants used throughout the application.
"""
from decimal import Decimal

# Money is stored with two decimal places
MONEY_QUANTUM = Decimal('0.01')
ZERO = Decimal('0.00')

# Stock Status Colors
# Using Tailwind CSS color palette for consistency
STOCK_STATUS_COLORS = {
    'OUT_OF_STOCK': '#EF4444',  # Red-500
    'LOW_STOCK': '#F59E0B',     # Amber-500
    'IN_STOCK': '#10B981',      # Green-500
}

# Labels used when building human readable payment summaries
PAYMENT_METHOD_LABELS = {
    'Credit': 'Credit',
    'Cash': 'Cash',
    'Cheque': 'Cheque',
    'BankTransfer': 'Bank Transfer',
    'ReturnCredit': 'Return Credit',
}

# Order in which payment methods appear in a summary
PAYMENT_SUMMARY_ORDER = ['Credit', 'Cash', 'Cheque', 'BankTransfer', 'ReturnCredit']


def quantize_money(value) -> Decimal:
    """Round a number to two decimal places as a Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(MONEY_QUANTUM)
