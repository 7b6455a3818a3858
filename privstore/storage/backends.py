"""
Storage media for privstore
String key-value backends: in-memory (session scope, tests) and SQLAlchemy (durable)
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import structlog
from sqlalchemy import create_engine, Column, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

logger = structlog.get_logger(__name__)

Base = declarative_base()


class StorageBackend(ABC):
    """Flat string-to-string medium with no isolation between callers"""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string or None when absent"""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Create or overwrite a key"""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Delete a key; absent keys are ignored"""

    @abstractmethod
    def keys(self) -> List[str]:
        """All keys currently present, internal ones included"""

    @abstractmethod
    def clear(self) -> None:
        """Remove every key"""

    def items(self) -> Dict[str, str]:
        result: Dict[str, str] = {}
        for key in self.keys():
            value = self.get_item(key)
            if value is not None:
                result[key] = value
        return result

    def __contains__(self, key: str) -> bool:
        return self.get_item(key) is not None

    def __len__(self) -> int:
        return len(self.keys())


class InMemoryStorageBackend(StorageBackend):
    """In-memory medium; used as the session medium and for testing"""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def clear(self) -> None:
        self._data.clear()

    def items(self) -> Dict[str, str]:
        return dict(self._data)


class KVEntryDB(Base):
    """SQLAlchemy model for a persisted key-value pair"""
    __tablename__ = "kv_entries"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)


class SQLStorageBackend(StorageBackend):
    """Durable medium backed by a relational database"""

    def __init__(self, database_url: Optional[str] = None):
        # Default to SQLite for development
        self.database_url = database_url or "sqlite:///privstore.db"
        self.engine = create_engine(self.database_url)
        self.SessionLocal = sessionmaker(bind=self.engine)

        # Create tables
        Base.metadata.create_all(bind=self.engine)

    def get_item(self, key: str) -> Optional[str]:
        with self.SessionLocal() as session:
            row = session.get(KVEntryDB, key)
            return row.value if row is not None else None

    def set_item(self, key: str, value: str) -> None:
        with self.SessionLocal() as session:
            row = session.get(KVEntryDB, key)
            if row is None:
                session.add(KVEntryDB(key=key, value=value))
            else:
                row.value = value
            session.commit()

    def remove_item(self, key: str) -> None:
        with self.SessionLocal() as session:
            session.query(KVEntryDB).filter_by(key=key).delete()
            session.commit()

    def keys(self) -> List[str]:
        with self.SessionLocal() as session:
            return [row.key for row in session.query(KVEntryDB.key).all()]

    def items(self) -> Dict[str, str]:
        with self.SessionLocal() as session:
            return {row.key: row.value for row in session.query(KVEntryDB).all()}

    def clear(self) -> None:
        with self.SessionLocal() as session:
            deleted_count = session.query(KVEntryDB).delete()
            session.commit()

        logger.info("Cleared storage medium", count=deleted_count)
