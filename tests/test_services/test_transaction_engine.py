"""
Tests for the Transaction Engine

Tests cover:
- Purchase: ownership transfer, payment exactness, check order
- Rent: rental record, duplicates, ownership unchanged
- Settlement to the right recipient
- All-or-nothing behaviour when the gateway fails
"""

import pytest
from structlog.testing import capture_logs

from nexml.models.events import EventType
from nexml.models.marketplace import PaymentKind
from nexml.repositories.memory import InMemoryMarketplaceRepository
from nexml.services.errors import (
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    PaymentError,
    UnauthorizedError,
)
from nexml.services.marketplace import MarketplaceService
from nexml.services.payments import PaymentGateway

SELLER = "0xseller"
BUYER = "0xbuyer"
THIRD = "0xthird"
MISSING = "0x2a81a3637e7cef75d250e8833c5f3ffabef50f97757fa5eadeb8b1eed11ce2fb"


class FailingGateway(PaymentGateway):
    """Gateway that refuses every transfer."""

    def __init__(self):
        self.attempts = 0

    async def settle(self, payer, recipient, amount, listing_id, kind):
        self.attempts += 1
        raise PaymentError("insufficient funds", recipient=recipient, amount=amount)


class TestPurchaseModel:
    """Tests for purchase_model."""

    @pytest.mark.asyncio
    async def test_purchase_transfers_ownership(self, service, upload, events):
        model_id = await upload(caller=SELLER, for_rent=True, for_sale=True, rent_price=100, sale_price=200)
        before = await service.get_model(model_id)

        await service.purchase_model(BUYER, model_id, 200)

        after = await service.get_model(model_id)
        assert after.owner == BUYER
        assert after.terms() == before.terms()
        assert after.creator == SELLER

        event = events.last(EventType.MODEL_PURCHASED)
        assert event.payload == {"model_id": model_id, "buyer": BUYER, "amount": 200}

    @pytest.mark.asyncio
    async def test_purchase_settles_to_prior_owner(self, service, upload, payments):
        model_id = await upload(caller=SELLER, sale_price=200)

        record = await service.purchase_model(BUYER, model_id, 200)

        assert record.recipient == SELLER
        assert record.payer == BUYER
        assert record.amount == 200
        assert record.kind == PaymentKind.PURCHASE
        assert payments.credited(SELLER) == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize("paid", [0, 199, 201, 10_000])
    async def test_wrong_amount_rejected(self, service, upload, payments, paid):
        """Over- and under-payment both fail without moving ownership."""
        model_id = await upload(caller=SELLER, sale_price=200)

        with pytest.raises(InvalidInputError, match="incorrect payment amount"):
            await service.purchase_model(BUYER, model_id, paid)

        assert (await service.get_model(model_id)).owner == SELLER
        assert payments.records() == []

    @pytest.mark.asyncio
    async def test_not_for_sale(self, service, upload):
        model_id = await upload(caller=SELLER, for_sale=False, sale_price=0)

        with pytest.raises(InvalidStateError, match="listing is not for sale"):
            await service.purchase_model(BUYER, model_id, 0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("paid", [200, 1, 0])
    async def test_owner_cannot_purchase(self, service, upload, paid):
        model_id = await upload(caller=SELLER, sale_price=200)

        with pytest.raises(ForbiddenError, match="owner cannot purchase own listing"):
            await service.purchase_model(SELLER, model_id, paid)

    @pytest.mark.asyncio
    async def test_unknown_listing(self, service):
        with pytest.raises(NotFoundError, match="listing does not exist"):
            await service.purchase_model(BUYER, MISSING, 200)

    @pytest.mark.asyncio
    async def test_sale_check_precedes_owner_check(self, service, upload):
        model_id = await upload(caller=SELLER, for_sale=False, sale_price=0)

        with pytest.raises(InvalidStateError):
            await service.purchase_model(SELLER, model_id, 0)

    @pytest.mark.asyncio
    async def test_new_owner_can_update_and_resell(self, service, upload):
        model_id = await upload(caller=SELLER, sale_price=200)
        await service.purchase_model(BUYER, model_id, 200)

        await service.update_model_state(BUYER, model_id, "QmResold", False, True, 0, 300)
        await service.purchase_model(THIRD, model_id, 300)

        assert (await service.get_model(model_id)).owner == THIRD

    @pytest.mark.asyncio
    async def test_prior_owner_loses_update_rights(self, service, upload):
        model_id = await upload(caller=SELLER, sale_price=200)
        await service.purchase_model(BUYER, model_id, 200)

        with pytest.raises(UnauthorizedError):
            await service.update_model_state(SELLER, model_id, "QmBack", False, False, 0, 0)

    @pytest.mark.asyncio
    async def test_creation_index_not_updated_on_transfer(self, service, upload):
        model_id = await upload(caller=SELLER, sale_price=200)

        await service.purchase_model(BUYER, model_id, 200)

        assert await service.get_models_by_user(SELLER) == [model_id]
        assert await service.get_models_by_user(BUYER) == []


class TestRentModel:
    """Tests for rent_model."""

    @pytest.mark.asyncio
    async def test_rent_appends_renter(self, service, upload, events):
        model_id = await upload(caller=SELLER, rent_price=100)

        await service.rent_model(BUYER, model_id, 100)

        assert await service.get_renter(model_id, 0) == BUYER
        event = events.last(EventType.MODEL_RENTED)
        assert event.payload == {"model_id": model_id, "renter": BUYER, "amount": 100}

    @pytest.mark.asyncio
    async def test_rent_keeps_ownership(self, service, upload):
        model_id = await upload(caller=SELLER, rent_price=100)

        await service.rent_model(BUYER, model_id, 100)

        assert (await service.get_model(model_id)).owner == SELLER

    @pytest.mark.asyncio
    async def test_duplicate_and_concurrent_renters(self, service, upload):
        """Rentals are a participation log: repeats and many renters allowed."""
        model_id = await upload(caller=SELLER, for_sale=False, sale_price=0, rent_price=1)

        await service.rent_model(BUYER, model_id, 1)
        await service.rent_model(THIRD, model_id, 1)
        await service.rent_model(BUYER, model_id, 1)

        assert await service.get_renters(model_id) == [BUYER, THIRD, BUYER]

    @pytest.mark.asyncio
    async def test_rent_settles_to_owner(self, service, upload, payments):
        model_id = await upload(caller=SELLER, rent_price=100)

        record = await service.rent_model(BUYER, model_id, 100)

        assert record.recipient == SELLER
        assert record.kind == PaymentKind.RENT
        assert payments.credited(SELLER) == 100

    @pytest.mark.asyncio
    async def test_rent_pays_current_owner_after_purchase(self, service, upload, payments):
        model_id = await upload(caller=SELLER, rent_price=100, sale_price=200)
        await service.purchase_model(BUYER, model_id, 200)

        await service.rent_model(THIRD, model_id, 100)

        assert payments.credited(BUYER) == 100

    @pytest.mark.asyncio
    async def test_wrong_amount_rejected(self, service, upload):
        model_id = await upload(caller=SELLER, rent_price=100)

        with pytest.raises(InvalidInputError, match="incorrect payment amount"):
            await service.rent_model(BUYER, model_id, 50)

        assert await service.get_renters(model_id) == []

    @pytest.mark.asyncio
    async def test_not_for_rent(self, service, upload):
        model_id = await upload(caller=SELLER, for_rent=False, rent_price=100)

        with pytest.raises(InvalidStateError, match="listing is not for rent"):
            await service.rent_model(BUYER, model_id, 100)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("paid", [100, 1, 0, 999])
    async def test_owner_cannot_rent(self, service, upload, paid):
        """The owner check fires before the amount check, whatever is paid."""
        model_id = await upload(caller=SELLER, rent_price=100)

        with pytest.raises(ForbiddenError, match="owner cannot rent own listing"):
            await service.rent_model(SELLER, model_id, paid)

        assert await service.get_renters(model_id) == []

    @pytest.mark.asyncio
    async def test_unknown_listing(self, service):
        with pytest.raises(NotFoundError):
            await service.rent_model(BUYER, MISSING, 100)

    @pytest.mark.asyncio
    async def test_renter_index_out_of_range(self, service, upload):
        model_id = await upload(caller=SELLER)

        with pytest.raises(NotFoundError):
            await service.get_renter(model_id, 0)


class TestSettlementFailure:
    """A failed settlement leaves no trace."""

    @pytest.fixture
    def failing_service(self):
        return MarketplaceService(payments=FailingGateway())

    @pytest.mark.asyncio
    async def test_failed_purchase_keeps_owner(self, failing_service):
        service = failing_service
        model_id = await service.upload_model(SELLER, "QmX", False, True, 0, 10)
        uploaded = len(service.events)

        with pytest.raises(PaymentError):
            await service.purchase_model(BUYER, model_id, 10)

        assert (await service.get_model(model_id)).owner == SELLER
        assert len(service.events) == uploaded
        assert service.payments.attempts == 1

    @pytest.mark.asyncio
    async def test_failed_rent_records_no_renter(self, failing_service):
        service = failing_service
        model_id = await service.upload_model(SELLER, "QmX", True, False, 10, 0)

        with pytest.raises(PaymentError):
            await service.rent_model(BUYER, model_id, 10)

        assert await service.get_renters(model_id) == []

    @pytest.mark.asyncio
    async def test_validation_happens_before_settlement(self, failing_service):
        service = failing_service
        model_id = await service.upload_model(SELLER, "QmX", True, False, 10, 0)

        with pytest.raises(InvalidInputError):
            await service.rent_model(BUYER, model_id, 9)

        assert service.payments.attempts == 0


class BrokenWriteRepository(InMemoryMarketplaceRepository):
    """Stores uploads but fails every later listing or renter write."""

    async def save_listing(self, listing):
        raise ConnectionError("storage unavailable")

    async def append_renter(self, listing_id, renter):
        raise ConnectionError("storage unavailable")


class TestStorageFailureAfterSettlement:
    """A write failure after settlement is surfaced for reconciliation."""

    @pytest.fixture
    def broken_service(self, payments):
        return MarketplaceService(repository=BrokenWriteRepository(), payments=payments)

    @pytest.mark.asyncio
    async def test_purchase_logs_uncommitted_settlement(self, broken_service, payments):
        service = broken_service
        model_id = await service.upload_model(SELLER, "QmX", False, True, 0, 10)
        uploaded = len(service.events)

        with capture_logs() as logs:
            with pytest.raises(ConnectionError):
                await service.purchase_model(BUYER, model_id, 10)

        (record,) = payments.records()
        uncommitted = [e for e in logs if e["event"] == "settlement_uncommitted"]
        assert len(uncommitted) == 1
        assert uncommitted[0]["payment_id"] == record.id
        assert uncommitted[0]["log_level"] == "error"
        assert (await service.get_model(model_id)).owner == SELLER
        assert len(service.events) == uploaded

    @pytest.mark.asyncio
    async def test_rent_logs_uncommitted_settlement(self, broken_service, payments):
        service = broken_service
        model_id = await service.upload_model(SELLER, "QmX", True, False, 10, 0)

        with capture_logs() as logs:
            with pytest.raises(ConnectionError):
                await service.rent_model(BUYER, model_id, 10)

        uncommitted = [e for e in logs if e["event"] == "settlement_uncommitted"]
        assert uncommitted[0]["recipient"] == SELLER
        assert uncommitted[0]["amount"] == 10
        assert service.events.last(EventType.MODEL_RENTED) is None
