import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from woofadaar.core.config import settings
from woofadaar.routers import coupons

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

OPENAPI_TAGS = [
    {"name": "Coupons", "description": "Validate, apply and administer discount coupons."},
]

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Billing API for Woofadaar. Validates and redeems promotional coupons "
        "against subscription orders and manages the coupon catalog."
    ),
    openapi_tags=OPENAPI_TAGS,
    debug=settings.DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Total-Count"],
)

app.include_router(coupons.router, prefix="/v1/coupons", tags=["Coupons"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
