"""Error kinds raised by the marketplace.

Each one is an ``AppException`` so FastAPI turns it straight into an HTTP
response; ``code`` is what clients switch on.
"""
from fastapi import status

from shared.utils import AppException, NotFoundException, UnauthorizedException


class Unauthenticated(UnauthorizedException):
    code = "unauthenticated"

    def __init__(self, detail: str = "Not authenticated"):
        super().__init__(detail=detail)


class Forbidden(AppException):
    code = "forbidden"

    def __init__(self, detail: str = "Not allowed"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class EmptyCart(AppException):
    code = "empty_cart"

    def __init__(self):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail="Cart is empty")


class ProductUnavailable(AppException):
    code = "product_unavailable"

    def __init__(self, product_name: str):
        self.product_name = product_name
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Product {product_name} is not available in requested quantity",
        )


class InsufficientStock(AppException):
    """Stock ran out between validation and the write (a lost race)."""

    code = "insufficient_stock"

    def __init__(self, product_name: str):
        self.product_name = product_name
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Insufficient stock for {product_name}",
        )


class ProfileNotFound(NotFoundException):
    code = "profile_not_found"

    def __init__(self, detail: str = "User profile not found"):
        super().__init__(detail=detail)


class CampaignNotFound(NotFoundException):
    code = "campaign_not_found"

    def __init__(self, detail: str = "Campaign not found"):
        super().__init__(detail=detail)


class CampaignClosed(AppException):
    code = "campaign_closed"

    def __init__(self, detail: str = "Campaign has expired"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidStatusTransition(AppException):
    code = "invalid_status_transition"

    def __init__(self, current: str, target: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot move from {current} to {target}",
        )


class InvalidFarmer(AppException):
    code = "invalid_farmer"

    def __init__(self, farmer_id: str):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid farmer: '{farmer_id}' not found",
        )


class InviteCodeUnavailable(AppException):
    code = "invite_code_unavailable"

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not allocate an invite code, try again",
        )
