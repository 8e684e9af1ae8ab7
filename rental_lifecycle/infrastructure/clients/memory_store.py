"""
In-memory transaction store.

Behaves like the remote store for the operations the jobs use: patches are
deep-merged into protectedData, transitions apply line items and patch
together, and reads return copies. Used by the test suite and, seeded
from a JSON:API document file (`--store-seed`), for local rehearsal runs
that touch no remote store.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from rental_lifecycle.domain.exceptions import NotFoundError, StoreError
from rental_lifecycle.domain.models import LineItem, Page, Transaction
from rental_lifecycle.domain.state import deep_merge
from rental_lifecycle.infrastructure.clients.store import parse_document

logger = logging.getLogger(__name__)

# Transitions that move a transaction into a new state
STATE_CHANGES = {
    "transition/cancel": "cancelled",
}


class InMemoryTransactionStore:
    """Dict-backed store with call recording and failure injection"""

    def __init__(self, transactions: Optional[Iterable[Transaction]] = None):
        self._store: Dict[str, Transaction] = {}
        self.line_items: Dict[str, List[LineItem]] = {}
        self.transitions: List[Dict[str, Any]] = []
        self.updates: List[Dict[str, Any]] = []
        self._failures: Dict[Tuple[str, Optional[str]], Exception] = {}
        for tx in transactions or []:
            self.add(tx)

    @classmethod
    def from_file(cls, path: str) -> "InMemoryTransactionStore":
        """Seed from a file holding a store query response (`data` plus `included`)"""
        try:
            document = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(f"Cannot read store seed {path}: {e}") from e
        if not isinstance(document, dict):
            raise StoreError(f"Store seed {path} must hold a JSON object")
        transactions = parse_document(document)
        logger.info("Seeded in-memory store", extra={"path": path, "count": len(transactions)})
        return cls(transactions)

    def add(self, tx: Transaction) -> None:
        self._store[tx.id] = copy.deepcopy(tx)

    def get(self, tx_id: str) -> Transaction:
        """Current stored copy, without failure injection"""
        return copy.deepcopy(self._store[tx_id])

    def fail(self, operation: str, error: Exception, tx_id: Optional[str] = None) -> None:
        """Make the next calls of operation (for tx_id, or any transaction) raise error"""
        self._failures[(operation, tx_id)] = error

    def _check_failure(self, operation: str, tx_id: Optional[str] = None) -> None:
        error = self._failures.get((operation, tx_id)) or self._failures.get((operation, None))
        if error is not None:
            raise error

    def _require(self, tx_id: str) -> Transaction:
        if tx_id not in self._store:
            raise NotFoundError(f"Transaction {tx_id} not found", status_code=404)
        return self._store[tx_id]

    async def query(self, states: Sequence[str], page: int = 1, per_page: int = 100) -> Page:
        self._check_failure("query")
        if page < 1 or per_page < 1:
            raise StoreError("page and per_page must be positive", status_code=400)
        matching = [tx for tx in self._store.values() if tx.state in states]
        start = (page - 1) * per_page
        chunk = matching[start : start + per_page]
        next_page = page + 1 if start + per_page < len(matching) else None
        return Page(transactions=[copy.deepcopy(tx) for tx in chunk], page=page, next_page=next_page)

    async def show(self, tx_id: str) -> Transaction:
        self._check_failure("show", tx_id)
        return copy.deepcopy(self._require(tx_id))

    async def update(self, tx_id: str, protected_data_patch: Dict[str, Any]) -> Transaction:
        self._check_failure("update", tx_id)
        tx = self._require(tx_id)
        tx.protected_data = deep_merge(tx.protected_data, protected_data_patch)
        self.updates.append({"tx_id": tx_id, "patch": copy.deepcopy(protected_data_patch)})
        return copy.deepcopy(tx)

    async def transition(
        self,
        tx_id: str,
        name: str,
        line_items: Optional[List[LineItem]] = None,
        protected_data_patch: Optional[Dict[str, Any]] = None,
    ) -> Transaction:
        self._check_failure("transition", tx_id)
        tx = self._require(tx_id)
        if protected_data_patch:
            tx.protected_data = deep_merge(tx.protected_data, protected_data_patch)
        if line_items:
            self.line_items.setdefault(tx_id, []).extend(copy.deepcopy(line_items))
        tx.state = STATE_CHANGES.get(name, tx.state)
        self.transitions.append(
            {
                "tx_id": tx_id,
                "name": name,
                "line_items": [item.code for item in line_items or []],
                "patch": copy.deepcopy(protected_data_patch),
            }
        )
        logger.debug("In-memory transition", extra={"tx_id": tx_id, "transition": name})
        return copy.deepcopy(tx)
