import logging
from typing import Dict, Iterable

from account import ClientAccount
from csv_io import read_transactions
from models import DisputePolicy, ProcessingStats, Transaction

logger = logging.getLogger(__name__)


class PaymentsEngine:
    """
    Routes transactions to per-client accounts in input order.
    Accounts are created on first sight of a client id and owned by the engine.
    """

    def __init__(self, dispute_policy: DisputePolicy = DisputePolicy.PERMISSIVE):
        self._dispute_policy = dispute_policy
        self._accounts: Dict[int, ClientAccount] = {}
        self.stats = ProcessingStats()

    @property
    def accounts(self) -> Dict[int, ClientAccount]:
        return dict(self._accounts)

    def process(self, transactions: Iterable[Transaction]) -> Dict[int, ClientAccount]:
        """Apply every transaction and return the account table."""
        for transaction in transactions:
            account = self._get_or_create_account(transaction.client_id)
            account.apply(transaction)
            self.stats.record_processed()
        return self.accounts

    def process_file(self, filepath: str, skip_malformed: bool = True) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states."""
        logger.info(f"Processing {filepath}")
        accounts = self.process(read_transactions(filepath, skip_malformed=skip_malformed, stats=self.stats))
        logger.info(
            f"Processed: {self.stats.processed}, "
            f"Skipped: {self.stats.skipped}, "
            f"Accounts: {len(accounts)}"
        )
        return accounts

    def _get_or_create_account(self, client_id: int) -> ClientAccount:
        account = self._accounts.get(client_id)
        if account is None:
            account = ClientAccount(client_id=client_id, dispute_policy=self._dispute_policy)
            self._accounts[client_id] = account
        return account
