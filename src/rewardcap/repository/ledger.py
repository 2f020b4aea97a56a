import json
from datetime import date
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from rewardcap.domain.models import LedgerSlice, PaymentMethod, Transaction


class TransactionLedger(Protocol):
    async def list_transactions(self, payment_method_id: str, start: date, end: date) -> LedgerSlice:
        ...


class PaymentMethodDirectory(Protocol):
    async def get_payment_method(self, payment_method_id: str) -> PaymentMethod | None:
        ...


class LedgerDocument(BaseModel):
    payment_methods: list[PaymentMethod] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)


def slice_transactions(
    transactions: list[Transaction], payment_method_id: str, start: date, end: date
) -> LedgerSlice:
    return LedgerSlice(
        payment_method_id=payment_method_id,
        start=start,
        end=end,
        transactions=[
            txn
            for txn in transactions
            if txn.payment_method_id == payment_method_id and start <= txn.date < end
        ],
    )


class InMemoryLedger:
    """Ledger and payment-method directory backed by plain lists.

    ``on_change`` is called with the payment method id after every write so a
    usage cache can be invalidated.
    """

    def __init__(
        self,
        payment_methods: list[PaymentMethod] | None = None,
        transactions: list[Transaction] | None = None,
        on_change=None,
    ):
        self.payment_methods = {pm.id: pm for pm in payment_methods or []}
        self.transactions = list(transactions or [])
        self.on_change = on_change

    async def get_payment_method(self, payment_method_id: str) -> PaymentMethod | None:
        return self.payment_methods.get(payment_method_id)

    async def list_transactions(self, payment_method_id: str, start: date, end: date) -> LedgerSlice:
        return slice_transactions(self.transactions, payment_method_id, start, end)

    def _changed(self, payment_method_id: str) -> None:
        if self.on_change is not None:
            self.on_change(payment_method_id)

    def add(self, txn: Transaction) -> None:
        self.transactions.append(txn)
        self._changed(txn.payment_method_id)

    def replace(self, txn: Transaction) -> None:
        for index, existing in enumerate(self.transactions):
            if existing.id == txn.id:
                self.transactions[index] = txn
                self._changed(existing.payment_method_id)
                if existing.payment_method_id != txn.payment_method_id:
                    self._changed(txn.payment_method_id)
                return
        raise KeyError(f"Transaction not found: {txn.id}")

    def remove(self, transaction_id: str) -> None:
        for index, existing in enumerate(self.transactions):
            if existing.id == transaction_id:
                del self.transactions[index]
                self._changed(existing.payment_method_id)
                return
        raise KeyError(f"Transaction not found: {transaction_id}")


class JsonLedger:
    """Read-only ledger over a JSON document of payment methods and transactions."""

    def __init__(self, ledger_file: str | Path):
        self.ledger_file = Path(ledger_file)

    def load(self) -> LedgerDocument:
        if not self.ledger_file.exists():
            raise FileNotFoundError(f"Ledger file not found: {self.ledger_file}")

        with self.ledger_file.open("r", encoding="utf-8") as fh:
            data = json.load(fh)

        return LedgerDocument.model_validate(data)

    async def get_payment_method(self, payment_method_id: str) -> PaymentMethod | None:
        document = self.load()
        return next((pm for pm in document.payment_methods if pm.id == payment_method_id), None)

    async def list_transactions(self, payment_method_id: str, start: date, end: date) -> LedgerSlice:
        document = self.load()
        return slice_transactions(document.transactions, payment_method_id, start, end)
