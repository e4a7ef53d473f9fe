"""
Inventory Cache Store
Durable snapshot of the last successful Square sync. The whole snapshot is
replaced in one transaction so readers see either the old or the new set.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from profit_dashboard.database import init_db
from profit_dashboard.models.inventory_cache import InventoryCacheItem, MerchantCache, SyncMetadata
from profit_dashboard.schemas.inventory import InventoryRecord, MerchantInfo, SyncStatus

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last_sync"


def _parse_last_sync(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Ignoring malformed last_sync value: %s", value)
        return None


class InventoryCacheStore:
    """SQL-backed cache of reconciled inventory records and merchant info"""

    def __init__(self, engine: Engine, session_factory: sessionmaker):
        self.engine = engine
        self.session_factory = session_factory
        self._write_lock = threading.Lock()

    def init_schema(self) -> None:
        """Create cache tables if they don't exist yet"""
        init_db(self.engine)

    def get_last_sync_time(self) -> Optional[datetime]:
        db = self.session_factory()
        try:
            row = db.query(SyncMetadata).filter(SyncMetadata.key == LAST_SYNC_KEY).first()
            return _parse_last_sync(row.value) if row else None
        except SQLAlchemyError as e:
            logger.error("Error getting last sync time: %s", e)
            return None
        finally:
            db.close()

    def get_sync_status(self) -> SyncStatus:
        """
        Get cache bookkeeping

        Returns:
            SyncStatus; all-empty defaults if the store can't be read
        """
        db = self.session_factory()
        try:
            item_count = db.query(func.count(InventoryCacheItem.id)).scalar() or 0
            merchant_count = db.query(func.count(MerchantCache.id)).scalar() or 0
            row = db.query(SyncMetadata).filter(SyncMetadata.key == LAST_SYNC_KEY).first()

            return SyncStatus(
                last_sync=_parse_last_sync(row.value) if row else None,
                item_count=item_count,
                has_merchant=merchant_count > 0,
                is_cached=item_count > 0,
            )
        except SQLAlchemyError as e:
            logger.error("Error getting sync status: %s", e)
            return SyncStatus()
        finally:
            db.close()

    def get_cached_inventory(self) -> List[InventoryRecord]:
        """Get all cached inventory records"""
        db = self.session_factory()
        try:
            rows = db.query(InventoryCacheItem).order_by(InventoryCacheItem.full_name, InventoryCacheItem.id).all()
            return [InventoryRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error("Error getting cached inventory: %s", e)
            return []
        finally:
            db.close()

    def get_cached_merchant(self) -> Optional[MerchantInfo]:
        """Get cached merchant info, or None before the first sync"""
        db = self.session_factory()
        try:
            row = db.query(MerchantCache).first()
            if not row:
                return None
            return MerchantInfo(name=row.name, id=row.merchant_id, country=row.country)
        except SQLAlchemyError as e:
            logger.error("Error getting cached merchant: %s", e)
            return None
        finally:
            db.close()

    def update_inventory_cache(self, records: List[InventoryRecord], merchant: Optional[MerchantInfo]) -> bool:
        """
        Replace the whole cache with a new snapshot

        Deletes all records and the merchant row, inserts the new ones and
        stamps last_sync, all in one transaction. Writers are serialized.

        Args:
            records: Reconciled inventory records
            merchant: Merchant info (skipped if None)

        Returns:
            True if committed; False if anything failed (old data kept)
        """
        now = datetime.now(timezone.utc)

        with self._write_lock:
            db = self.session_factory()
            try:
                db.query(InventoryCacheItem).delete(synchronize_session=False)
                db.query(MerchantCache).delete(synchronize_session=False)

                if merchant:
                    db.add(MerchantCache(
                        id="default",
                        name=merchant.name,
                        merchant_id=merchant.id,
                        country=merchant.country,
                        updated_at=now,
                    ))

                db.add_all([
                    InventoryCacheItem(
                        id=record.id,
                        item_id=record.item_id,
                        name=record.name,
                        variation_name=record.variation_name,
                        full_name=record.full_name,
                        price=record.price,
                        cost_price=record.cost_price,
                        sku=record.sku,
                        stock_count=record.stock_count,
                        last_sold_at=record.last_sold_at,
                        is_taxable=record.is_taxable,
                        tax_info=[tax.model_dump() for tax in record.tax_info],
                        track_inventory=record.track_inventory,
                        updated_at=now,
                    )
                    for record in records
                ])

                meta = db.get(SyncMetadata, LAST_SYNC_KEY)
                if meta:
                    meta.value = now.isoformat()
                    meta.updated_at = now
                else:
                    db.add(SyncMetadata(key=LAST_SYNC_KEY, value=now.isoformat(), updated_at=now))

                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Error updating inventory cache: %s", e)
                return False
            finally:
                db.close()

        logger.info("Cached %d items", len(records))
        return True

    def clear_cache(self) -> bool:
        """Wipe records, merchant and sync metadata"""
        with self._write_lock:
            db = self.session_factory()
            try:
                db.query(InventoryCacheItem).delete(synchronize_session=False)
                db.query(MerchantCache).delete(synchronize_session=False)
                db.query(SyncMetadata).delete(synchronize_session=False)
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Error clearing cache: %s", e)
                return False
            finally:
                db.close()

        logger.info("Cache cleared")
        return True
