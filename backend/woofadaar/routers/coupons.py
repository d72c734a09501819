"""Coupon engine and coupon administration API endpoints."""

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from woofadaar.core.auth import get_current_user, require_admin
from woofadaar.core.database import get_db
from woofadaar.models.coupon import Coupon, CouponStatus
from woofadaar.models.coupon_usage import CouponUsage
from woofadaar.models.user import User
from woofadaar.repositories.coupon_repository import CouponRepository
from woofadaar.repositories.coupon_usage_repository import CouponUsageRepository
from woofadaar.schemas.coupon import (
    MAX_AMOUNT,
    ApplyCouponRequest,
    CouponAnalyticsResponse,
    CouponApplicationResponse,
    CouponCreate,
    CouponResponse,
    CouponUpdate,
    CouponUsageResponse,
    CouponValidationResponse,
    ReferralCouponRequest,
    ValidateCouponRequest,
)
from woofadaar.services.coupon_service import CouponPersistenceError, CouponService
from woofadaar.services.promotion_service import (
    CouponAlreadyExistsError,
    CouponUpdateError,
    PromotionService,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/validate",
    response_model=CouponValidationResponse,
    summary="Validate coupon",
    responses={
        401: {"description": "Unauthorized"},
        422: {"description": "Validation error"},
    },
)
async def validate_coupon(
    data: ValidateCouponRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> CouponValidationResponse:
    """Check a coupon against an order amount without redeeming it."""
    result = CouponService(db).validate_coupon(
        data.code,
        user.id,  # type: ignore[arg-type]
        data.order_amount,
        data.plan_id,
    )
    return CouponValidationResponse.model_validate(result, from_attributes=True)


@router.post(
    "/apply",
    response_model=CouponApplicationResponse,
    status_code=201,
    summary="Apply coupon",
    responses={
        200: {"description": "Usage already recorded for this order"},
        400: {"description": "Coupon rejected"},
        401: {"description": "Unauthorized"},
        422: {"description": "Validation error"},
        500: {"description": "Coupon usage could not be recorded"},
    },
)
async def apply_coupon(
    data: ApplyCouponRequest,
    response: Response,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> CouponApplicationResponse:
    """Validate a coupon and record its usage against the caller's order."""
    try:
        result = CouponService(db).apply_coupon(
            data.code,
            user.id,  # type: ignore[arg-type]
            data.order_amount,
            order_id=data.order_id,
            subscription_id=data.subscription_id,
            plan_id=data.plan_id,
        )
    except CouponPersistenceError:
        raise HTTPException(status_code=500, detail="Failed to apply coupon") from None

    if not result.success:
        response.status_code = 400
    elif result.replayed:
        response.status_code = 200
    return CouponApplicationResponse.model_validate(result, from_attributes=True)


@router.get(
    "/available",
    response_model=list[CouponResponse],
    summary="List available coupons",
    responses={401: {"description": "Unauthorized"}},
)
async def list_available_coupons(
    plan_id: str | None = Query(default=None, max_length=255),
    order_amount: Decimal | None = Query(default=None, gt=0, le=MAX_AMOUNT, decimal_places=2),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> list[Coupon]:
    """List coupons the caller can redeem right now."""
    return CouponService(db).get_user_available_coupons(
        user.id,  # type: ignore[arg-type]
        plan_id=plan_id,
        order_amount=order_amount,
    )


@router.post(
    "/",
    response_model=CouponResponse,
    status_code=201,
    summary="Create coupon",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Administrator access required"},
        409: {"description": "Coupon with this code already exists"},
        422: {"description": "Validation error"},
    },
)
async def create_coupon(
    data: CouponCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Coupon:
    """Create a new coupon."""
    try:
        return PromotionService(db).create_coupon(data, str(admin.id))
    except CouponAlreadyExistsError:
        raise HTTPException(
            status_code=409, detail="Coupon with this code already exists"
        ) from None


@router.get(
    "/",
    response_model=list[CouponResponse],
    summary="List coupons",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Administrator access required"},
    },
)
async def list_coupons(
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    order_by: str | None = Query(default=None),
    status: CouponStatus | None = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list[Coupon]:
    """List coupons with optional status filter."""
    repo = CouponRepository(db)
    response.headers["X-Total-Count"] = str(repo.count(status))
    return repo.get_all(skip=skip, limit=limit, status=status, order_by=order_by)


@router.post(
    "/referral",
    response_model=CouponResponse,
    status_code=201,
    summary="Create referral reward coupon",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Administrator access required"},
        404: {"description": "User not found"},
        409: {"description": "Referral coupon already exists for this user"},
    },
)
async def create_referral_coupon(
    data: ReferralCouponRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Coupon:
    """Mint a personal referral reward coupon for a user."""
    try:
        return PromotionService(db).create_referral_coupon(data.user_id, data.amount)
    except CouponAlreadyExistsError:
        raise HTTPException(
            status_code=409, detail="Referral coupon already exists for this user"
        ) from None
    except ValueError:
        raise HTTPException(status_code=404, detail="User not found") from None


@router.get(
    "/{code}",
    response_model=CouponResponse,
    summary="Get coupon",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Administrator access required"},
        404: {"description": "Coupon not found"},
    },
)
async def get_coupon(
    code: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Coupon:
    """Get a coupon by code."""
    coupon = CouponRepository(db).get_by_code(code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


@router.put(
    "/{code}",
    response_model=CouponResponse,
    summary="Update coupon",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Administrator access required"},
        404: {"description": "Coupon not found"},
        422: {"description": "Validation error"},
    },
)
async def update_coupon(
    code: str,
    data: CouponUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> Coupon:
    """Update caps, thresholds or the validity window of a coupon."""
    try:
        coupon = PromotionService(db).update_coupon(code, data, str(admin.id))
    except CouponUpdateError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from None
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    return coupon


@router.delete(
    "/{code}",
    status_code=204,
    summary="Terminate coupon",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Administrator access required"},
        404: {"description": "Coupon not found"},
    },
)
async def terminate_coupon(
    code: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> None:
    """Terminate a coupon by code. Its usage history is kept."""
    coupon = CouponRepository(db).terminate(code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    logger.info("Coupon %s terminated by %s", coupon.code, admin.id)


@router.get(
    "/{code}/usages",
    response_model=list[CouponUsageResponse],
    summary="List coupon usages",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Administrator access required"},
        404: {"description": "Coupon not found"},
    },
)
async def list_coupon_usages(
    code: str,
    response: Response,
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=1000),
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> list[CouponUsage]:
    """List the usage ledger of a coupon, newest first."""
    coupon = CouponRepository(db).get_by_code(code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")

    usage_repo = CouponUsageRepository(db)
    response.headers["X-Total-Count"] = str(usage_repo.count_by_coupon_id(coupon.id))  # type: ignore[arg-type]
    return usage_repo.get_all_by_coupon_id(
        coupon.id,  # type: ignore[arg-type]
        skip=skip,
        limit=limit,
        order_by=order_by,
    )


@router.get(
    "/{code}/analytics",
    response_model=CouponAnalyticsResponse,
    summary="Get coupon analytics",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Administrator access required"},
        404: {"description": "Coupon not found"},
    },
)
async def get_coupon_analytics(
    code: str,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
) -> CouponAnalyticsResponse:
    """Get usage analytics for a coupon."""
    coupon = CouponRepository(db).get_by_code(code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")

    usage_repo = CouponUsageRepository(db)
    times_redeemed = usage_repo.count_by_coupon_id(coupon.id)  # type: ignore[arg-type]

    remaining_uses: int | None = None
    if coupon.usage_limit is not None:
        remaining_uses = max(coupon.usage_limit - times_redeemed, 0)  # type: ignore[assignment]

    return CouponAnalyticsResponse(
        times_redeemed=times_redeemed,
        unique_users=usage_repo.count_unique_users(coupon.id),  # type: ignore[arg-type]
        total_discount_amount=usage_repo.total_discount(coupon.id),  # type: ignore[arg-type]
        remaining_uses=remaining_uses,
    )
