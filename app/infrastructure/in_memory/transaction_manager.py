from contextlib import asynccontextmanager

from app.application.interfaces.transaction_manager import TransactionManager


class NoopTransactionManager(TransactionManager):
    """In-memory repositories write immediately; there is nothing to commit or roll back."""

    @asynccontextmanager
    async def start(self):
        yield
