"""
Coupon validation: compute a discount for a subtotal or reject with a reason.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from models.coupon import Coupon, CouponRejection, CouponResult, CouponType
from utils.datetime_utils import ensure_aware

CENTS = Decimal("0.01")

REJECTION_MESSAGES = {
    CouponRejection.NOT_FOUND: "Coupon not found",
    CouponRejection.NOT_YET_VALID: "Coupon is not valid yet",
    CouponRejection.EXPIRED: "Coupon has expired",
    CouponRejection.USAGE_EXHAUSTED: "Coupon usage limit reached",
}


def _money(value: Union[Decimal, int, float, str]) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _reject(reason: CouponRejection, message: Optional[str] = None, coupon_id=None) -> CouponResult:
    return CouponResult(
        valid=False,
        reason=reason,
        message=message or REJECTION_MESSAGES[reason],
        coupon_id=coupon_id,
    )


def calculate_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    """Percentage of the subtotal, or the fixed value capped at the subtotal."""
    if coupon.type == CouponType.PERCENTAGE:
        discount = subtotal * coupon.value / Decimal("100")
    else:
        discount = min(coupon.value, subtotal)
    return discount.quantize(CENTS, rounding=ROUND_HALF_UP)


def validate_coupon(
    coupon: Optional[Coupon],
    subtotal: Union[Decimal, int, float, str],
    now: datetime,
) -> CouponResult:
    """
    Validate a coupon against a cart subtotal.

    Checks run in order: not found/inactive, not yet valid, expired, usage
    exhausted, below minimum purchase. The first failing check wins.

    Args:
        coupon: Coupon row looked up by code, or None if no row matched
        subtotal: Amount the coupon applies to
        now: Current time (naive values are treated as UTC)

    Returns:
        CouponResult with the discount when valid, or the rejection reason
    """
    subtotal = _money(subtotal)

    if coupon is None or not coupon.is_active:
        return _reject(CouponRejection.NOT_FOUND)

    now = ensure_aware(now)
    if coupon.valid_from and ensure_aware(coupon.valid_from) > now:
        return _reject(CouponRejection.NOT_YET_VALID, coupon_id=coupon.id)
    if coupon.valid_until and ensure_aware(coupon.valid_until) < now:
        return _reject(CouponRejection.EXPIRED, coupon_id=coupon.id)

    # max_uses of 0 or null means unlimited
    if coupon.max_uses and coupon.uses_count >= coupon.max_uses:
        return _reject(CouponRejection.USAGE_EXHAUSTED, coupon_id=coupon.id)

    if coupon.min_purchase and subtotal < coupon.min_purchase:
        return _reject(
            CouponRejection.BELOW_MINIMUM_PURCHASE,
            f"Minimum purchase of {coupon.min_purchase:.2f} required",
            coupon_id=coupon.id,
        )

    discount = calculate_discount(coupon, subtotal)
    if coupon.type == CouponType.PERCENTAGE:
        message = f"{coupon.value.normalize():f}% discount applied"
    else:
        message = f"{coupon.value:.2f} discount applied"

    return CouponResult(
        valid=True,
        discount=discount,
        message=message,
        coupon_id=coupon.id,
    )
