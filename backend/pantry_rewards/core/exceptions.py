# backend/pantry_rewards/core/exceptions.py
"""
Domain errors for the pantry, recipe and rewards services.

Every error carries the HTTP status it maps to so the API layer can render
it with a single exception handler.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for all caller-visible errors"""

    status_code = 500
    error_code = "internal_error"

    def __init__(self, detail: Optional[str] = None, **extra: Any):
        self.detail = detail or self.__class__.__doc__ or self.error_code
        self.extra = extra
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "success": False,
            "error": self.error_code,
            "detail": self.detail,
        }
        payload.update(self.extra)
        return payload


# ===== VALIDATION =====

class ValidationError(AppError):
    """Invalid input"""
    status_code = 400
    error_code = "validation_error"


class InvalidAmountError(ValidationError):
    """Amount must be a positive integer"""
    error_code = "invalid_amount"

    def __init__(self, amount: Any):
        super().__init__(f"Amount must be a positive integer, got {amount!r}", amount=amount)
        self.amount = amount


class InvalidStatusError(ValidationError):
    """Unknown status value"""
    error_code = "invalid_status"


# ===== NOT FOUND =====

class NotFoundError(AppError):
    """Resource not found"""
    status_code = 404
    error_code = "not_found"


class VoucherNotFoundError(NotFoundError):
    """Voucher not found"""
    error_code = "voucher_not_found"


class RedemptionNotFoundError(NotFoundError):
    """Redemption not found"""
    error_code = "redemption_not_found"


class PointsAccountNotFoundError(NotFoundError):
    """User has no points account"""
    error_code = "points_account_not_found"


class FoodItemNotFoundError(NotFoundError):
    """Food item not found"""
    error_code = "food_not_found"


class DonationMarketNotFoundError(NotFoundError):
    """Donation market not found"""
    error_code = "market_not_found"


class RecipeNotFoundError(NotFoundError):
    """Recipe not found"""
    error_code = "recipe_not_found"


class DonationNotFoundError(NotFoundError):
    """Donation not found"""
    error_code = "donation_not_found"


class SupermarketNotFoundError(NotFoundError):
    """Supermarket not found"""
    error_code = "supermarket_not_found"


class ProductNotFoundError(NotFoundError):
    """Product not found"""
    error_code = "product_not_found"


class OrderNotFoundError(NotFoundError):
    """Order not found"""
    error_code = "order_not_found"


# ===== BUSINESS RULES =====

class BusinessRuleError(AppError):
    """Request violates a business rule"""
    status_code = 409
    error_code = "business_rule_violation"


class InsufficientPointsError(BusinessRuleError):
    """Not enough available points"""
    status_code = 422
    error_code = "insufficient_points"

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Insufficient points: need {required}, have {available}",
            required=required,
            available=available,
        )
        self.required = required
        self.available = available


class VoucherError(BusinessRuleError):
    """Voucher cannot be redeemed"""
    error_code = "voucher_error"


class InactiveVoucherError(VoucherError):
    """Voucher is not active"""
    error_code = "voucher_inactive"


class OutOfStockError(VoucherError):
    """Voucher is out of stock"""
    error_code = "voucher_out_of_stock"


class VoucherExpiredError(VoucherError):
    """Voucher has expired"""
    error_code = "voucher_expired"


class VoucherNotYetValidError(VoucherExpiredError):
    """Voucher is not valid yet"""
    error_code = "voucher_not_yet_valid"


class InvalidRedemptionStateError(BusinessRuleError):
    """Redemption cannot be used in its current state"""
    error_code = "invalid_redemption_state"


class InsufficientFoodQuantityError(BusinessRuleError):
    """Not enough food quantity"""
    status_code = 422
    error_code = "insufficient_food_quantity"


class FoodOwnershipError(BusinessRuleError):
    """Food item belongs to another user"""
    status_code = 403
    error_code = "food_not_owned"


class InactiveMarketError(BusinessRuleError):
    """Donation market is not active"""
    error_code = "market_inactive"


class ProductOutOfStockError(BusinessRuleError):
    """Not enough product stock"""
    status_code = 422
    error_code = "product_out_of_stock"


class MinimumPurchaseNotMetError(BusinessRuleError):
    """Order total is below the voucher's minimum purchase"""
    status_code = 422
    error_code = "minimum_purchase_not_met"

    def __init__(self, min_purchase: float, subtotal: float):
        super().__init__(
            f"Voucher needs a minimum purchase of {min_purchase:g}, order total is {subtotal:g}",
            min_purchase=min_purchase,
            subtotal=subtotal,
        )
        self.min_purchase = min_purchase
        self.subtotal = subtotal


class InvalidOrderStateError(BusinessRuleError):
    """Order cannot change from its current status"""
    error_code = "invalid_order_state"


# ===== INFRASTRUCTURE =====

class TransactionConflictError(AppError):
    """The operation could not be committed, retry the request"""
    status_code = 503
    error_code = "transaction_conflict"


class RecipeProviderError(AppError):
    """Recipe provider is unavailable"""
    status_code = 502
    error_code = "upstream_unavailable"
