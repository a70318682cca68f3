"""
Inventory status background service.

WHAT: Daily job that marks implant materials past their expiry date as
expired.

WHY: Status is derived on every write, but an item nobody touches keeps
its last status after the expiry date passes. Expired stock must not be
picked for a procedure.

HOW: APScheduler calls refresh_statuses() every
INVENTORY_STATUS_INTERVAL_SECONDS. Candidates are recalculated through
ImplantMaterial.recalculate(), which also deactivates expired items.
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.dao.inventory import InventoryDAO
from app.db.session import AsyncSessionLocal
from app.models.inventory import MaterialStatus


logger = logging.getLogger(__name__)


INVENTORY_STATUS_INTERVAL_SECONDS = settings.INVENTORY_STATUS_INTERVAL_SECONDS


class InventoryStatusService:
    """Background service that keeps stored inventory statuses current."""

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        self._session_factory = session_factory or AsyncSessionLocal

    async def refresh_statuses(self, today: Optional[date] = None) -> dict:
        """
        Recalculate items that have passed their expiry date.

        Returns:
            Dict with counts of checked, expired and deactivated items
        """
        logger.info("Starting inventory status refresh job")
        start_time = datetime.utcnow()
        today = today or date.today()

        stats = {"checked": 0, "expired": 0, "deactivated": 0, "errors": 0}

        session = self._session_factory()
        try:
            items = await InventoryDAO(session).get_refresh_candidates(today)
            stats["checked"] = len(items)

            for item in items:
                try:
                    was_active = item.is_active
                    item.recalculate(today=today)
                    if item.status == MaterialStatus.EXPIRED:
                        stats["expired"] += 1
                    if was_active and not item.is_active:
                        stats["deactivated"] += 1
                except Exception as e:
                    logger.error(f"Error refreshing status for inventory item {item.id}: {e}")
                    stats["errors"] += 1

            await session.commit()

        except Exception as e:
            logger.error(f"Error in inventory status refresh job: {e}")
            await session.rollback()
            raise

        finally:
            await session.close()

        elapsed = (datetime.utcnow() - start_time).total_seconds()
        logger.info(
            f"Inventory status refresh completed in {elapsed:.2f}s. "
            f"Expired: {stats['expired']}, Deactivated: {stats['deactivated']}, Errors: {stats['errors']}"
        )
        return stats


_inventory_status_service: Optional[InventoryStatusService] = None


def get_inventory_status_service() -> InventoryStatusService:
    """Get or create the inventory status service instance."""
    global _inventory_status_service
    if _inventory_status_service is None:
        _inventory_status_service = InventoryStatusService()
    return _inventory_status_service
