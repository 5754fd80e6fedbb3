import logging
from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from typing import Dict, NamedTuple, Optional

from models import LEDGER_CONTEXT, DisputePolicy, Transaction, TransactionStatus, TransactionType

logger = logging.getLogger(__name__)


class AccountSnapshot(NamedTuple):
    client: int
    available: Decimal
    held: Decimal
    total: Decimal
    locked: bool


@dataclass
class ClientAccount:
    """
    Running balances and transaction history for one client.

    All mutation goes through apply(). Transactions that break a business rule
    (insufficient funds, unknown tx id, wrong dispute status under the strict
    policy) are ignored without touching balances.
    """

    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    locked: bool = False
    dispute_policy: DisputePolicy = DisputePolicy.PERMISSIVE

    history: Dict[int, Transaction] = field(default_factory=dict, repr=False)
    disputed: Dict[int, Transaction] = field(default_factory=dict, repr=False)
    resolved: Dict[int, Transaction] = field(default_factory=dict, repr=False)
    chargedback: Dict[int, Transaction] = field(default_factory=dict, repr=False)
    statuses: Dict[int, TransactionStatus] = field(default_factory=dict, repr=False)

    def apply(self, transaction: Transaction) -> None:
        with localcontext(LEDGER_CONTEXT):
            match transaction.transaction_type:
                case TransactionType.DEPOSIT:
                    self._apply_deposit(transaction)
                case TransactionType.WITHDRAWAL:
                    self._apply_withdrawal(transaction)
                case TransactionType.DISPUTE:
                    self._apply_dispute(transaction)
                case TransactionType.RESOLVE:
                    self._apply_resolve(transaction)
                case TransactionType.CHARGEBACK:
                    self._apply_chargeback(transaction)

    def status_of(self, transaction_id: int) -> Optional[TransactionStatus]:
        return self.statuses.get(transaction_id)

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(self.client_id, self.available, self.held, self.total, self.locked)

    def _apply_deposit(self, transaction: Transaction) -> None:
        self.available += transaction.amount
        self.total += transaction.amount
        self._record(transaction)

    def _apply_withdrawal(self, transaction: Transaction) -> None:
        if self.available < transaction.amount:
            logger.debug(f"Withdrawal tx {transaction.transaction_id}: insufficient funds "
                         f"(available {self.available}, requested {transaction.amount})")
            return
        self.available -= transaction.amount
        self.total -= transaction.amount
        self._record(transaction)

    def _apply_dispute(self, transaction: Transaction) -> None:
        original = self._referenced(transaction, TransactionStatus.NORMAL)
        if original is None:
            return
        self.available -= original.amount
        self.held += original.amount
        self.disputed[transaction.transaction_id] = transaction
        self.statuses[transaction.transaction_id] = TransactionStatus.DISPUTED

    def _apply_resolve(self, transaction: Transaction) -> None:
        original = self._referenced(transaction, TransactionStatus.DISPUTED)
        if original is None:
            return
        self.held -= original.amount
        self.available += original.amount
        self.resolved[transaction.transaction_id] = transaction
        self.statuses[transaction.transaction_id] = TransactionStatus.RESOLVED

    def _apply_chargeback(self, transaction: Transaction) -> None:
        original = self._referenced(transaction, TransactionStatus.DISPUTED)
        if original is None:
            return
        self.held -= original.amount
        self.total -= original.amount
        self.locked = True
        self.chargedback[transaction.transaction_id] = transaction
        self.statuses[transaction.transaction_id] = TransactionStatus.CHARGED_BACK

    def _record(self, transaction: Transaction) -> None:
        self.history[transaction.transaction_id] = transaction
        self.statuses[transaction.transaction_id] = TransactionStatus.NORMAL

    def _referenced(self, transaction: Transaction, required: TransactionStatus) -> Optional[Transaction]:
        """
        Look up the deposit or withdrawal a follow-up record refers to.

        Returns None when the follow-up must be ignored. The amount always
        comes from the original record, never from the follow-up.
        """
        kind = transaction.transaction_type.value.capitalize()
        original = self.history.get(transaction.transaction_id)
        if original is None:
            logger.debug(f"{kind} for tx {transaction.transaction_id}: transaction not found for client {self.client_id}")
            return None

        if self.dispute_policy == DisputePolicy.STRICT:
            current = self.statuses[transaction.transaction_id]
            if current != required:
                logger.debug(f"{kind} for tx {transaction.transaction_id}: transaction is {current.value}, expected {required.value}")
                return None

        return original
