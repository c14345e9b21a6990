"""
Module: estate_kernel.db.types
Responsibility: Annotated type aliases for monetary and weight columns, so
    every model stores amounts with identical precision.
Architecture position: Kernel > DB. May be imported by models/ and selectors/.

Invariants enforced:
    - Monetary columns are Numeric(18, 2): cents, never floats.
    - Weight columns keep six fractional digits (areas in m2, consumption
      readings, permille shares).
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

# Monetary amount at cent precision
MoneyAmount = Annotated[Decimal, Numeric(18, 2)]

# Distribution weight (area, permille, head-count, consumption)
Weight = Annotated[Decimal, Numeric(18, 6)]

# Percentage rate such as a VAT or interest rate
Rate = Annotated[Decimal, Numeric(9, 4)]

# ISO 4217 currency code
CurrencyCode = Annotated[str, String(3)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

MONEY_DECIMAL_PLACES = 2
