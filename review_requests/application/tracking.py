"""
Email tracking: open pixel and click redirect.

Both handlers are idempotent. The first open / first click timestamp is kept
forever; repeats are no-ops. Neither handler raises for an unknown customer.
"""

import logging
from typing import Optional

from ..infrastructure.persistence import Database

logger = logging.getLogger(__name__)


def record_open(db: Database, customer_id: str) -> bool:
    """Stamp email_opened_at if unset. Returns True only for the first open."""
    first_open = db.mark_opened(customer_id)
    if first_open:
        logger.info(f"Email opened: {customer_id}")
    return first_open


def record_click(db: Database, customer_id: str) -> Optional[str]:
    """
    Stamp email_clicked_at if unset and return the customer's review link.

    The link is returned on every click so the redirect always works;
    None means the customer does not exist.
    """
    customer = db.get_customer(customer_id)
    if customer is None:
        return None

    if customer.email_clicked_at is None and db.mark_clicked(customer_id):
        logger.info(f"Link clicked: {customer_id}")

    return customer.review_link or None
