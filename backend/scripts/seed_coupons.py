"""Create the default campaign coupons (WELCOME50, YEARLY25, DIWALI2024).

Safe to run repeatedly: codes that already exist are skipped.
"""

import logging

from woofadaar.core.database import SessionLocal
from woofadaar.services.promotion_service import PromotionService

logger = logging.getLogger(__name__)


def main() -> int:
    db = SessionLocal()
    try:
        created = PromotionService(db).seed_default_coupons()
        for coupon in created:
            logger.info("Seeded coupon %s", coupon.code)
        return len(created)
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    count = main()
    print(f"Seeded {count} coupon(s)")
