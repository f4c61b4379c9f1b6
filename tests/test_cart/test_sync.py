"""
Test suite for the durable sync adapter.

Tests cover opening the durable record, best-effort mirroring with failures
and timeouts, the empty-record cleanup policy, and once-per-session hydration.
"""

import asyncio
import uuid
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from shopcart.schemas.cart import DurableCartRow
from shopcart.services.cart.exceptions import DurableSyncError
from shopcart.services.cart.items import LineItem
from shopcart.services.cart.repository import CartRepository
from shopcart.services.cart.sync import HYDRATION_FLAG_KEY, CartSyncAdapter


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def cart_id():
    return uuid.uuid4()


@pytest.fixture
def mock_repository(cart_id):
    """Mock durable repository for testing."""
    mock = AsyncMock(spec=CartRepository)
    mock.find_or_create = AsyncMock(return_value=cart_id)
    mock.upsert_row = AsyncMock(return_value=None)
    mock.update_row = AsyncMock(return_value=True)
    mock.delete_row = AsyncMock(return_value=True)
    mock.count_rows = AsyncMock(return_value=1)
    mock.delete_record = AsyncMock(return_value=True)
    mock.find_by_owner = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def adapter(mock_repository, identity, storage):
    return CartSyncAdapter(mock_repository, identity, storage, timeout_seconds=0.5)


@pytest.fixture
def owner_adapter(mock_repository, signed_in_identity, storage):
    return CartSyncAdapter(
        mock_repository, signed_in_identity, storage, timeout_seconds=0.5
    )


@pytest.fixture
def sample_item():
    return LineItem.create("p1", "Shirt", 10, 1)


@pytest.fixture
def durable_rows():
    return [
        DurableCartRow(
            row_id="r1", product_id="p1", name="Shirt", price=Decimal("10"), quantity=Decimal("2")
        )
    ]


# ============================================================================
# Unit Tests - Opening the Durable Record
# ============================================================================


class TestOpen:
    """Test scoping the durable record."""

    @pytest.mark.asyncio
    async def test_open_anonymous(self, adapter, mock_repository, cart_id, identity):
        assert await adapter.open() == cart_id

        mock_repository.find_or_create.assert_awaited_once_with(
            None, identity.current_session_id()
        )
        assert adapter.cart_id == cart_id

    @pytest.mark.asyncio
    async def test_open_signed_in(self, owner_adapter, mock_repository, signed_in_identity):
        await owner_adapter.open()

        mock_repository.find_or_create.assert_awaited_once_with(
            "owner-42", signed_in_identity.current_session_id()
        )

    @pytest.mark.asyncio
    async def test_open_failure_leaves_adapter_inert(self, adapter, mock_repository):
        mock_repository.find_or_create.side_effect = DurableSyncError("db down")

        assert await adapter.open() is None
        assert adapter.cart_id is None

    @pytest.mark.asyncio
    async def test_mirror_reopens_after_failed_open(
        self, adapter, mock_repository, cart_id, sample_item
    ):
        mock_repository.find_or_create.side_effect = [DurableSyncError("db down"), cart_id]
        await adapter.open()

        await adapter.mirror_add(sample_item)

        mock_repository.upsert_row.assert_awaited_once_with(cart_id, sample_item)

    @pytest.mark.asyncio
    async def test_destroy_reopens_after_failed_open(
        self, adapter, mock_repository, cart_id
    ):
        mock_repository.find_or_create.side_effect = [RuntimeError("db down"), cart_id]
        await adapter.open()

        await adapter.mirror_destroy()

        mock_repository.delete_record.assert_awaited_once_with(cart_id)
        assert adapter.cart_id is None

    @pytest.mark.asyncio
    async def test_remove_reopens_after_failed_open(
        self, adapter, mock_repository, cart_id
    ):
        mock_repository.find_or_create.side_effect = [RuntimeError("db down"), cart_id]
        await adapter.open()

        await adapter.mirror_remove("r1")

        mock_repository.delete_row.assert_awaited_once_with(cart_id, "r1")

    @pytest.mark.asyncio
    async def test_mirror_skipped_when_record_unavailable(
        self, adapter, mock_repository, sample_item
    ):
        mock_repository.find_or_create.side_effect = DurableSyncError("db down")

        await adapter.mirror_add(sample_item)
        await adapter.mirror_update(sample_item)

        mock_repository.upsert_row.assert_not_awaited()
        mock_repository.update_row.assert_not_awaited()


# ============================================================================
# Unit Tests - Mirroring
# ============================================================================


class TestMirroring:
    """Test best-effort mirror operations."""

    @pytest.mark.asyncio
    async def test_mirror_update(self, adapter, mock_repository, cart_id, sample_item):
        await adapter.open()

        await adapter.mirror_update(sample_item)

        mock_repository.update_row.assert_awaited_once_with(cart_id, sample_item)

    @pytest.mark.asyncio
    async def test_mirror_update_missing_row_is_tolerated(
        self, adapter, mock_repository, sample_item
    ):
        mock_repository.update_row.return_value = False
        await adapter.open()

        await adapter.mirror_update(sample_item)

    @pytest.mark.asyncio
    async def test_repository_error_is_swallowed(self, adapter, mock_repository, sample_item):
        mock_repository.upsert_row.side_effect = DurableSyncError("write failed")
        await adapter.open()

        await adapter.mirror_add(sample_item)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_swallowed(self, adapter, mock_repository, sample_item):
        mock_repository.upsert_row.side_effect = RuntimeError("driver bug")
        await adapter.open()

        await adapter.mirror_add(sample_item)

    @pytest.mark.asyncio
    async def test_slow_repository_times_out(self, mock_repository, identity, storage, sample_item):
        async def slow_upsert(*args):
            await asyncio.sleep(5)

        mock_repository.upsert_row.side_effect = slow_upsert
        adapter = CartSyncAdapter(mock_repository, identity, storage, timeout_seconds=0.01)
        await adapter.open()

        await asyncio.wait_for(adapter.mirror_add(sample_item), timeout=1)

    @pytest.mark.asyncio
    async def test_mirror_remove_without_record_does_nothing(self, adapter, mock_repository):
        mock_repository.find_or_create.side_effect = DurableSyncError("db down")

        await adapter.mirror_remove("r1")
        await adapter.mirror_destroy()

        mock_repository.delete_row.assert_not_awaited()
        mock_repository.delete_record.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mirror_destroy(self, adapter, mock_repository, cart_id):
        await adapter.open()

        await adapter.mirror_destroy()

        mock_repository.delete_record.assert_awaited_once_with(cart_id)
        assert adapter.cart_id is None

    @pytest.mark.asyncio
    async def test_mirror_destroy_failure_keeps_record_id(
        self, adapter, mock_repository, cart_id
    ):
        mock_repository.delete_record.side_effect = DurableSyncError("boom")
        await adapter.open()

        await adapter.mirror_destroy()

        assert adapter.cart_id == cart_id


# ============================================================================
# Unit Tests - Empty Record Cleanup
# ============================================================================


class TestEmptyRecordCleanup:
    """Test deleting the durable record once its last row is removed."""

    @pytest.mark.asyncio
    async def test_last_row_deletes_record(self, adapter, mock_repository, cart_id):
        mock_repository.count_rows.return_value = 0
        await adapter.open()

        await adapter.mirror_remove("r1")

        mock_repository.delete_row.assert_awaited_once_with(cart_id, "r1")
        mock_repository.delete_record.assert_awaited_once_with(cart_id)
        assert adapter.cart_id is None

    @pytest.mark.asyncio
    async def test_remaining_rows_keep_record(self, adapter, mock_repository, cart_id):
        mock_repository.count_rows.return_value = 2
        await adapter.open()

        await adapter.mirror_remove("r1")

        mock_repository.delete_record.assert_not_awaited()
        assert adapter.cart_id == cart_id

    @pytest.mark.asyncio
    async def test_policy_off_keeps_empty_record(
        self, mock_repository, identity, storage
    ):
        mock_repository.count_rows.return_value = 0
        adapter = CartSyncAdapter(
            mock_repository, identity, storage, delete_empty_record=False
        )
        await adapter.open()

        await adapter.mirror_remove("r1")

        mock_repository.count_rows.assert_not_awaited()
        mock_repository.delete_record.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_delete_skips_cleanup(self, adapter, mock_repository):
        mock_repository.delete_row.side_effect = DurableSyncError("boom")
        await adapter.open()

        await adapter.mirror_remove("r1")

        mock_repository.count_rows.assert_not_awaited()


# ============================================================================
# Unit Tests - Hydration
# ============================================================================


class TestHydration:
    """Test once-per-session hydration queries."""

    @pytest.mark.asyncio
    async def test_returns_owner_rows_and_sets_flag(
        self, owner_adapter, mock_repository, storage, durable_rows
    ):
        mock_repository.find_by_owner.return_value = durable_rows

        rows = await owner_adapter.hydrate(store_is_empty=True)

        assert rows == durable_rows
        mock_repository.find_by_owner.assert_awaited_once_with("owner-42")
        assert await storage.get(HYDRATION_FLAG_KEY) is True

    @pytest.mark.asyncio
    async def test_runs_once_per_session(
        self, owner_adapter, mock_repository, durable_rows
    ):
        mock_repository.find_by_owner.return_value = durable_rows

        await owner_adapter.hydrate(store_is_empty=True)
        second = await owner_adapter.hydrate(store_is_empty=True)

        assert second == []
        mock_repository.find_by_owner.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_skipped_when_store_has_items(self, owner_adapter, mock_repository, storage):
        assert await owner_adapter.hydrate(store_is_empty=False) == []

        mock_repository.find_by_owner.assert_not_awaited()
        assert await storage.get(HYDRATION_FLAG_KEY) is None

    @pytest.mark.asyncio
    async def test_skipped_for_anonymous_shopper(self, adapter, mock_repository, storage):
        assert await adapter.hydrate(store_is_empty=True) == []

        mock_repository.find_by_owner.assert_not_awaited()
        assert await storage.get(HYDRATION_FLAG_KEY) is None

    @pytest.mark.asyncio
    async def test_flag_set_before_failed_query(
        self, owner_adapter, mock_repository, storage
    ):
        mock_repository.find_by_owner.side_effect = DurableSyncError("boom")

        assert await owner_adapter.hydrate(store_is_empty=True) == []
        assert await storage.get(HYDRATION_FLAG_KEY) is True

    @pytest.mark.asyncio
    async def test_owner_without_record(self, owner_adapter, mock_repository):
        mock_repository.find_by_owner.return_value = None

        assert await owner_adapter.hydrate(store_is_empty=True) == []
