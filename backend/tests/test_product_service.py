"""Tests for the product service and its audit events."""

from datetime import datetime, timedelta

import pytest

from backend.src.models.product import Product
from backend.src.models.product_event import Actor, ProductAction
from backend.src.models.product_patch import ProductPatch
from backend.src.services.product_service import ProductService

ACTOR = Actor(id="7", email="ana@stockroom.io")


class TestCreate:
    """Product creation."""

    @pytest.mark.asyncio
    async def test_create_returns_stored_row_and_records_event(self, session_factory, publisher):
        service = ProductService(publisher)

        async with session_factory() as db:
            product = await service.create("Widget", 9.99, 5, db, actor=ACTOR)

        assert product.id >= 1
        assert product.name == "Widget"
        assert product.price == pytest.approx(9.99)
        assert product.stock == 5
        assert product.created_at is not None
        assert product.updated_at is not None

        assert len(publisher.events) == 1
        event = publisher.events[0]
        assert event.action is ProductAction.CREATE_PRODUCT
        assert event.product_id == product.id
        assert event.product_name == "Widget"
        assert event.user_id == "7"
        assert event.user_email == "ana@stockroom.io"

    @pytest.mark.asyncio
    async def test_publisher_failure_does_not_affect_the_mutation(self, session_factory, failing_publisher):
        """The product is stored even if the event cannot be handed off."""
        service = ProductService(failing_publisher)

        async with session_factory() as db:
            product = await service.create("Widget", 1.0, 1, db)
            stored = await service.get_by_id(product.id, db)

        assert stored is not None
        assert stored.name == "Widget"


class TestRead:
    """Listing and lookups."""

    @pytest.mark.asyncio
    async def test_get_all_orders_by_last_update(self, session_factory, publisher):
        now = datetime.utcnow()
        async with session_factory() as db:
            db.add_all(
                [
                    Product(name="old", price=1, stock=1, updated_at=now - timedelta(hours=2)),
                    Product(name="new", price=1, stock=1, updated_at=now),
                    Product(name="mid", price=1, stock=1, updated_at=now - timedelta(hours=1)),
                ]
            )
            await db.commit()

            products = await ProductService(publisher).get_all(db)

        assert [p.name for p in products] == ["new", "mid", "old"]

    @pytest.mark.asyncio
    async def test_get_all_on_empty_store(self, session_factory, publisher):
        async with session_factory() as db:
            assert await ProductService(publisher).get_all(db) == []

    @pytest.mark.asyncio
    async def test_get_by_id_absent(self, session_factory, publisher):
        async with session_factory() as db:
            assert await ProductService(publisher).get_by_id(999, db) is None

        assert publisher.events == []


class TestUpdate:
    """Partial updates."""

    @pytest.mark.asyncio
    async def test_only_supplied_fields_change(self, session_factory, publisher):
        service = ProductService(publisher)
        async with session_factory() as db:
            product = await service.create("Widget", 9.99, 5, db)
            updated = await service.update(product.id, ProductPatch(stock=0), db, actor=ACTOR)

        assert updated is not None
        assert updated.stock == 0
        assert updated.name == "Widget"
        assert updated.price == pytest.approx(9.99)
        assert updated.updated_at >= product.updated_at

        assert publisher.actions() == ["CREATE_PRODUCT", "UPDATE_PRODUCT"]
        assert publisher.events[-1].product_name == "Widget"
        assert publisher.events[-1].user_email == "ana@stockroom.io"

    @pytest.mark.asyncio
    async def test_zero_price_is_applied(self, session_factory, publisher):
        service = ProductService(publisher)
        async with session_factory() as db:
            product = await service.create("Widget", 9.99, 5, db)
            updated = await service.update(product.id, ProductPatch(price=0.0), db)

        assert updated.price == 0
        assert updated.stock == 5

    @pytest.mark.asyncio
    async def test_event_carries_the_new_name(self, session_factory, publisher):
        service = ProductService(publisher)
        async with session_factory() as db:
            product = await service.create("Widget", 1.0, 1, db)
            await service.update(product.id, ProductPatch(name="Gadget"), db)

        assert publisher.events[-1].product_name == "Gadget"

    @pytest.mark.asyncio
    async def test_missing_product_returns_none_without_event(self, session_factory, publisher):
        async with session_factory() as db:
            result = await ProductService(publisher).update(42, ProductPatch(stock=1), db)

        assert result is None
        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_empty_patch_leaves_row_untouched(self, session_factory, publisher):
        service = ProductService(publisher)
        async with session_factory() as db:
            product = await service.create("Widget", 1.0, 1, db)
            result = await service.update(product.id, ProductPatch(), db)

        assert result is not None
        assert result.updated_at == product.updated_at
        assert publisher.actions() == ["CREATE_PRODUCT"]


class TestDelete:
    """Deletion."""

    @pytest.mark.asyncio
    async def test_delete_records_pre_delete_name(self, session_factory, publisher):
        service = ProductService(publisher)
        async with session_factory() as db:
            product = await service.create("Widget", 1.0, 1, db)
            deleted = await service.delete(product.id, db, actor=ACTOR)
            remaining = await service.get_by_id(product.id, db)

        assert deleted is True
        assert remaining is None
        event = publisher.events[-1]
        assert event.action is ProductAction.DELETE_PRODUCT
        assert event.product_id == product.id
        assert event.product_name == "Widget"
        assert event.user_id == "7"

    @pytest.mark.asyncio
    async def test_delete_missing_product(self, session_factory, publisher):
        async with session_factory() as db:
            assert await ProductService(publisher).delete(5, db) is False

        assert publisher.events == []

    @pytest.mark.asyncio
    async def test_second_delete_reports_absent(self, session_factory, publisher):
        service = ProductService(publisher)
        async with session_factory() as db:
            product = await service.create("Widget", 1.0, 1, db)
            assert await service.delete(product.id, db) is True
            assert await service.delete(product.id, db) is False

        assert publisher.actions() == ["CREATE_PRODUCT", "DELETE_PRODUCT"]
