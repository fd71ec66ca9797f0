"""
Coupons API Endpoints.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import catalog_dependency, gateway_dependency
from api.models import ValidateCouponRequest, ValidateCouponResponse
from repositories.payment_gateway import PaymentGateway
from repositories.product_repository import ProductCatalog
from services.coupon_service import validate_coupon as validate_coupon_code
from services.errors import ProductNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/validate-coupon",
    response_model=ValidateCouponResponse,
    response_model_exclude_none=True,
    responses={404: {"model": ValidateCouponResponse}, 500: {"model": ValidateCouponResponse}},
    summary="Validate Coupon",
    description="Check a coupon code against a product. Business rejections return 200 with valid=false."
)
def validate_coupon(
    request: ValidateCouponRequest,
    catalog: ProductCatalog = Depends(catalog_dependency),
    gateway: PaymentGateway = Depends(gateway_dependency),
):
    """
    Validate a coupon code (case-insensitive).

    **Example response:**
    ```json
    {
      "valid": true,
      "couponId": "SAVE10",
      "discountType": "percent",
      "discountAmount": 10,
      "name": "Ten percent off"
    }
    ```
    """
    try:
        result = validate_coupon_code(
            request.code,
            request.product_slug,
            catalog=catalog,
            gateway=gateway,
        )
    except ProductNotFoundError:
        return JSONResponse(status_code=404, content={"valid": False, "error": "Product not found"})
    except Exception:
        logger.error(f"Failed to validate coupon for {request.product_slug}", exc_info=True)
        return JSONResponse(status_code=500, content={"valid": False, "error": "Failed to validate coupon"})

    return ValidateCouponResponse.from_domain(result)
