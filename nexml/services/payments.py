"""
Payment Settlement

The registry hands every accepted payment to a PaymentGateway before it
commits the purchase or rental. A gateway either settles the full amount
and returns a record, or raises PaymentError; there are no partial
settlements. A settled payment is not rolled back if the registry then
fails to store the change; the transaction engine logs it as
``settlement_uncommitted`` for reconciliation against the record id and
reference.
"""

from abc import ABC, abstractmethod
from collections import defaultdict

import structlog

from nexml.models.marketplace import PaymentKind, PaymentRecord
from nexml.services.errors import PaymentError

logger = structlog.get_logger(__name__)


class PaymentGateway(ABC):
    """Transfers an amount to a recipient on behalf of a payer."""

    @abstractmethod
    async def settle(
        self,
        payer: str,
        recipient: str,
        amount: int,
        listing_id: str,
        kind: PaymentKind,
    ) -> PaymentRecord:
        """
        Settle ``amount`` to ``recipient``.

        Raises:
            PaymentError: If the transfer did not happen
        """


class LedgerPaymentGateway(PaymentGateway):
    """
    Gateway that records settlements in memory.

    Keeps the full settlement history and the running total credited to
    each recipient.
    """

    def __init__(self) -> None:
        self._records: list[PaymentRecord] = []
        self._credited: dict[str, int] = defaultdict(int)

    async def settle(
        self,
        payer: str,
        recipient: str,
        amount: int,
        listing_id: str,
        kind: PaymentKind,
    ) -> PaymentRecord:
        if amount < 0:
            raise PaymentError("amount must be non-negative", recipient=recipient, amount=amount)

        record = PaymentRecord(
            listing_id=listing_id,
            payer=payer,
            recipient=recipient,
            amount=amount,
            kind=kind,
            reference=f"ledger:{len(self._records) + 1}",
        )
        self._records.append(record)
        self._credited[recipient] += amount

        logger.info(
            "payment_settled",
            payment_id=record.id,
            listing_id=listing_id,
            payer=payer,
            recipient=recipient,
            amount=amount,
            kind=record.kind,
            reference=record.reference,
        )
        return record

    def records(self, recipient: str | None = None) -> list[PaymentRecord]:
        """Settlement history, oldest first."""
        if recipient is None:
            return list(self._records)
        return [r for r in self._records if r.recipient == recipient]

    def credited(self, recipient: str) -> int:
        """Total amount settled to a recipient."""
        return self._credited.get(recipient, 0)
