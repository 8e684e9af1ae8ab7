"""Interfaces of the external collaborators the engine and jobs depend on"""

from typing import Any, Dict, List, Optional, Protocol, Sequence

from rental_lifecycle.domain.models import LineItem, Page, SendResult, Transaction


class TransactionStore(Protocol):
    async def query(
        self,
        states: Sequence[str],
        page: int = 1,
        per_page: int = 100,
    ) -> Page: ...

    async def show(self, tx_id: str) -> Transaction: ...

    async def update(self, tx_id: str, protected_data_patch: Dict[str, Any]) -> Transaction: ...

    async def transition(
        self,
        tx_id: str,
        name: str,
        line_items: Optional[List[LineItem]] = None,
        protected_data_patch: Optional[Dict[str, Any]] = None,
    ) -> Transaction: ...


class NotificationDispatcher(Protocol):
    simulate: bool

    def is_configured(self) -> bool: ...

    async def send(
        self,
        to: str,
        body: str,
        tag: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> SendResult: ...


class LinkShortener(Protocol):
    async def shorten(self, url: str) -> str: ...
