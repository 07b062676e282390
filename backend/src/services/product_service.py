"""
Product service: CRUD over the products table with audit events.
"""

from typing import List, Optional

from fastapi import Depends
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.src.core.logging import get_logger
from backend.src.models.product import Product
from backend.src.models.product_event import Actor, ProductAction, ProductEvent
from backend.src.models.product_patch import ProductPatch
from backend.src.services.event_publisher import EventPublisher, get_event_publisher

logger = get_logger(__name__)


class ProductService:
    """
    Service owning the product lifecycle.

    Every mutation that reaches the database is followed by one audit event
    handed to the publisher. Publishing never affects the mutation's result.
    """

    def __init__(self, publisher: EventPublisher):
        self.publisher = publisher

    async def create(
        self,
        name: str,
        price: float,
        stock: int,
        db: AsyncSession,
        actor: Optional[Actor] = None,
    ) -> Product:
        """
        Insert a product and return the stored row.

        Args:
            name: Product name
            price: Unit price
            stock: Units in stock
            db: Database session
            actor: Acting user, if known

        Returns:
            The new product with id and timestamps
        """
        product = Product(name=name, price=price, stock=stock)
        db.add(product)
        await db.commit()
        await db.refresh(product)

        logger.info(
            "Product created",
            extra={"product_id": product.id, "product_name": product.name},
        )

        self._record(ProductAction.CREATE_PRODUCT, product.id, product.name, actor)
        return product

    async def get_all(self, db: AsyncSession) -> List[Product]:
        """All products, most recently updated first."""
        result = await db.execute(
            select(Product).order_by(Product.updated_at.desc(), Product.id.desc())
        )
        return list(result.scalars().all())

    async def get_by_id(self, product_id: int, db: AsyncSession) -> Optional[Product]:
        """Product with the given id, or None."""
        result = await db.execute(
            select(Product)
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update(
        self,
        product_id: int,
        patch: ProductPatch,
        db: AsyncSession,
        actor: Optional[Actor] = None,
    ) -> Optional[Product]:
        """
        Apply a partial update.

        Only the fields set on the patch are written. An empty patch returns
        the current row without touching the database or recording an event.

        Args:
            product_id: Product ID
            patch: Fields to change
            db: Database session
            actor: Acting user, if known

        Returns:
            Updated product, or None if it does not exist
        """
        existing = await self.get_by_id(product_id, db)
        if existing is None:
            return None

        if patch.is_empty:
            return existing

        await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(**patch.assignments())
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        updated = await self.get_by_id(product_id, db)
        if updated is None:
            # deleted by a concurrent request between the write and the re-read
            return None

        logger.info(
            "Product updated",
            extra={"product_id": product_id, "fields": list(patch.fields_set)},
        )

        self._record(ProductAction.UPDATE_PRODUCT, product_id, updated.name, actor)
        return updated

    async def delete(
        self,
        product_id: int,
        db: AsyncSession,
        actor: Optional[Actor] = None,
    ) -> bool:
        """
        Delete a product.

        Args:
            product_id: Product ID
            db: Database session
            actor: Acting user, recorded on the event

        Returns:
            True if a row was removed
        """
        existing = await self.get_by_id(product_id, db)
        if existing is None:
            return False

        product_name = existing.name
        result = await db.execute(
            delete(Product)
            .where(Product.id == product_id)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info(
                "Product deleted",
                extra={"product_id": product_id, "product_name": product_name},
            )
            self._record(ProductAction.DELETE_PRODUCT, product_id, product_name, actor)
        return deleted

    def _record(
        self,
        action: ProductAction,
        product_id: int,
        product_name: Optional[str],
        actor: Optional[Actor],
    ) -> None:
        try:
            event = ProductEvent.now(action, product_id, product_name, actor)
            self.publisher.enqueue(event)
        except Exception as e:
            logger.error(
                "Failed to record product event",
                extra={"action": action.value, "product_id": product_id, "error": str(e)},
                exc_info=True,
            )


def get_product_service(
    publisher: EventPublisher = Depends(get_event_publisher),
) -> ProductService:
    """Dependency to get ProductService instance."""
    return ProductService(publisher)
