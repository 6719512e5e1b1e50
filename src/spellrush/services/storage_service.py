"""Key-value storage backed by the database."""
import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from spellrush.exceptions import PersistenceFailure
from spellrush.models.models import StoredValue
from spellrush.monitoring import error_count

logger = logging.getLogger(__name__)


class StorageService:
    """Opaque get/set/remove over string keys with JSON values."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db

    def get(self, key: str) -> Optional[Any]:
        """Get the decoded value stored under a key, or None."""
        try:
            row = self.db.get(StoredValue, key)
            if row is None:
                return None
            return json.loads(row.value)
        except (SQLAlchemyError, ValueError) as e:
            self._fail("read", key, e)

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under a key."""
        try:
            encoded = json.dumps(value, ensure_ascii=False)
            row = self.db.get(StoredValue, key)
            if row is None:
                self.db.add(StoredValue(key=key, value=encoded))
            else:
                row.value = encoded
            self.db.commit()
        except (SQLAlchemyError, TypeError, ValueError) as e:
            self._fail("write", key, e)

    def remove(self, key: str) -> None:
        """Delete a key; missing keys are ignored."""
        try:
            row = self.db.get(StoredValue, key)
            if row is not None:
                self.db.delete(row)
                self.db.commit()
        except SQLAlchemyError as e:
            self._fail("remove", key, e)

    def load_all(self, prefix: str = "") -> Dict[str, Any]:
        """Get every stored value whose key starts with a prefix."""
        try:
            query = self.db.query(StoredValue)
            if prefix:
                query = query.filter(StoredValue.key.startswith(prefix, autoescape=True))
            return {row.key: json.loads(row.value) for row in query.all()}
        except (SQLAlchemyError, ValueError) as e:
            self._fail("load", prefix, e)

    def _fail(self, operation: str, key: str, error: Exception) -> None:
        """Roll back, count and re-raise a storage error as PersistenceFailure."""
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed after storage %s error", operation)
        error_count.labels(error_type="persistence").inc()
        logger.error("Storage %s failed for key %s: %s", operation, key, error)
        raise PersistenceFailure(key, f"Storage {operation} failed") from error
