from collections import defaultdict
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Tuple
import copy
import logging
import uuid

from supabase import create_client, Client
from growth_academy.config import settings
from growth_academy.errors import StoreUnavailable

logger = logging.getLogger(__name__)

# callback(record_id, value); value is None once the record is deleted
ChangeCallback = Callable[[str, Optional[dict]], None]

# Supabase Client Setup
@lru_cache
def get_supabase_client() -> Client:
    """Get Supabase client for authentication operations"""
    return create_client(
        settings.supabase_url,
        settings.supabase_anon_key.get_secret_value()
    )

@lru_cache
def get_supabase_admin_client() -> Client:
    """Get Supabase admin client for table operations"""
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key.get_secret_value()
    )


class ChangeFeed:
    """Fans out record writes to subscribers of a collection or of a single record"""

    def __init__(self):
        self._subscribers: Dict[Tuple[str, Optional[str]], List[ChangeCallback]] = defaultdict(list)

    def subscribe(self, collection: str, callback: ChangeCallback, record_id: str = None) -> Callable[[], None]:
        key = (collection, record_id)
        self._subscribers[key].append(callback)

        def unsubscribe():
            callbacks = self._subscribers.get(key)
            if callbacks and callback in callbacks:
                callbacks.remove(callback)
                if not callbacks:
                    del self._subscribers[key]

        return unsubscribe

    def publish(self, collection: str, record_id: str, value: Optional[dict]):
        for key in ((collection, record_id), (collection, None)):
            for callback in list(self._subscribers.get(key, ())):
                try:
                    callback(record_id, copy.deepcopy(value))
                except Exception as e:
                    logger.error(f"Change subscriber for {collection}/{record_id} failed: {e}")


class RecordStore:
    """Document store contract used by the session guard and the quiz engine.

    Every method raises StoreUnavailable on transient backend failures.
    """

    def __init__(self):
        self.changes = ChangeFeed()

    def get(self, collection: str, record_id: str) -> Optional[dict]:
        raise NotImplementedError

    def list(self, collection: str, filters: dict = None, limit: int = None) -> List[dict]:
        raise NotImplementedError

    def add(self, collection: str, record: dict) -> str:
        """Insert a record and return the identifier assigned by the store"""
        raise NotImplementedError

    def upsert(self, collection: str, record_id: str, record: dict):
        """Create the record or merge the given fields into it"""
        raise NotImplementedError

    def delete(self, collection: str, record_id: str):
        raise NotImplementedError

    def subscribe(self, collection: str, callback: ChangeCallback, record_id: str = None) -> Callable[[], None]:
        """Register for change notifications; returns the unsubscribe callable"""
        return self.changes.subscribe(collection, callback, record_id)


class Database(RecordStore):
    """Record store backed by the Supabase REST API"""

    def __init__(self, client_factory: Callable[[], Client] = get_supabase_admin_client):
        super().__init__()
        self._client_factory = client_factory

    @property
    def client(self) -> Client:
        return self._client_factory()

    def get(self, collection: str, record_id: str) -> Optional[dict]:
        try:
            result = self.client.table(collection).select("*").eq("id", record_id).limit(1).execute()
        except Exception as e:
            logger.error(f"Get error in {collection}/{record_id}: {e}")
            raise StoreUnavailable(f"Failed to read {collection}/{record_id}") from e
        return result.data[0] if result.data else None

    def list(self, collection: str, filters: dict = None, limit: int = None) -> List[dict]:
        try:
            query = self.client.table(collection).select("*")

            if filters:
                for key, value in filters.items():
                    query = query.eq(key, value)

            if limit:
                query = query.limit(limit)

            result = query.execute()
        except Exception as e:
            logger.error(f"Select error in {collection}: {e}")
            raise StoreUnavailable(f"Failed to list {collection}") from e
        return result.data or []

    def add(self, collection: str, record: dict) -> str:
        try:
            result = self.client.table(collection).insert(record).execute()
        except Exception as e:
            logger.error(f"Insert error in {collection}: {e}")
            raise StoreUnavailable(f"Failed to insert into {collection}") from e
        if not result.data:
            raise StoreUnavailable(f"Insert into {collection} returned no record")
        row = result.data[0]
        record_id = str(row["id"])
        self.changes.publish(collection, record_id, row)
        return record_id

    def upsert(self, collection: str, record_id: str, record: dict):
        data = dict(record, id=record_id)
        try:
            result = self.client.table(collection).upsert(data).execute()
        except Exception as e:
            logger.error(f"Upsert error in {collection}/{record_id}: {e}")
            raise StoreUnavailable(f"Failed to write {collection}/{record_id}") from e
        self.changes.publish(collection, record_id, result.data[0] if result.data else data)

    def delete(self, collection: str, record_id: str):
        try:
            self.client.table(collection).delete().eq("id", record_id).execute()
        except Exception as e:
            logger.error(f"Delete error in {collection}/{record_id}: {e}")
            raise StoreUnavailable(f"Failed to delete {collection}/{record_id}") from e
        self.changes.publish(collection, record_id, None)


class MemoryDatabase(RecordStore):
    """In-process record store for local runs"""

    def __init__(self):
        super().__init__()
        self._collections: Dict[str, Dict[str, dict]] = defaultdict(dict)

    def get(self, collection: str, record_id: str) -> Optional[dict]:
        record = self._collections[collection].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def list(self, collection: str, filters: dict = None, limit: int = None) -> List[dict]:
        records = [
            copy.deepcopy(record)
            for record in self._collections[collection].values()
            if all(record.get(key) == value for key, value in (filters or {}).items())
        ]
        return records[:limit] if limit else records

    def add(self, collection: str, record: dict) -> str:
        record_id = uuid.uuid4().hex
        stored = dict(copy.deepcopy(record), id=record_id)
        self._collections[collection][record_id] = stored
        self.changes.publish(collection, record_id, stored)
        return record_id

    def upsert(self, collection: str, record_id: str, record: dict):
        stored = self._collections[collection].setdefault(record_id, {"id": record_id})
        stored.update(copy.deepcopy(record))
        self.changes.publish(collection, record_id, stored)

    def delete(self, collection: str, record_id: str):
        if self._collections[collection].pop(record_id, None) is not None:
            self.changes.publish(collection, record_id, None)


@lru_cache
def get_record_store() -> RecordStore:
    """Record store selected by configuration"""
    if settings.use_memory_store:
        logger.info("Using in-memory record store")
        return MemoryDatabase()
    return Database()
