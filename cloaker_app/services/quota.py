from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

Number = Union[int, float, Decimal, str]


def scaled_click_limit(original_click_limit: int, multiplier: Optional[Number]) -> int:
    """
    Campaign quota for a URL: round(original_click_limit * multiplier).

    Rounds half up. A missing or non-positive multiplier counts as 1 and
    the result is never below 1.
    """
    factor = Decimal(str(multiplier)) if multiplier is not None else Decimal(1)
    if factor <= 0:
        factor = Decimal(1)
    value = (Decimal(original_click_limit) * factor).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return max(int(value), 1)
