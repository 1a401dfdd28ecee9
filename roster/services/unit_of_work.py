from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..domain.ports.record_store import RecordStore


@asynccontextmanager
async def unit_of_work(store: RecordStore) -> AsyncIterator[RecordStore]:
    """Commit the block's writes, or roll all of them back if it raises."""
    try:
        yield store
        await store.commit()
    except Exception:
        await store.rollback()
        raise
