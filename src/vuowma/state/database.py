"""
Database module for message and batch storage.

Uses SQLAlchemy with SQLite by default.
"""

import json
from datetime import datetime
from typing import Iterable, List, Optional

import structlog
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Text,
    create_engine,
    select,
    update,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from vuowma.config import ForwarderSettings, get_config

logger = structlog.get_logger(__name__)

Base = declarative_base()


class InvalidMessageError(Exception):
    """A submitted message is not a JSON object."""
    pass


class BatchRecord(Base):
    """Database model for batches."""

    __tablename__ = "batches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sent = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    sent_at = Column(DateTime, nullable=True)


class MessageRecord(Base):
    """Database model for messages."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    data = Column(Text, nullable=False)  # JSON encoded card
    batch_id = Column(Integer, ForeignKey("batches.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    def get_data(self) -> str:
        """Raw JSON payload of the message."""
        return self.data


class MessageStore:
    """
    Database interface for pending messages and their batches.

    Messages start out without a batch; a forwarding run groups all of
    them into a new batch, which stays unsent until delivery succeeds.
    """

    def __init__(self, config: Optional[ForwarderSettings] = None):
        """
        Initialize database connection.

        Args:
            config: VuOwma configuration
        """
        self.config = config or get_config()
        self._engine = None
        self._session_factory = None

    def connect(self) -> None:
        """Initialize database connection and create tables."""
        self._engine = create_engine(self.config.database_url, echo=False)
        self._session_factory = sessionmaker(
            self._engine,
            class_=Session,
            expire_on_commit=False,
        )
        Base.metadata.create_all(self._engine)

        logger.info("database_connected", url=self.config.database_url.split("///")[0])

    def disconnect(self) -> None:
        """Close database connection."""
        if self._engine:
            self._engine.dispose()
            self._engine = None
            logger.info("database_disconnected")

    def _get_session(self) -> Session:
        """Get a new database session."""
        if not self._session_factory:
            raise RuntimeError("Database not connected")
        return self._session_factory()

    # Message operations

    def add_message(self, data: str) -> MessageRecord:
        """
        Store a new pending message.

        Args:
            data: JSON encoded card with at least a text field

        Returns:
            The stored record

        Raises:
            InvalidMessageError: If data is not a JSON object
        """
        try:
            decoded = json.loads(data)
        except json.JSONDecodeError as e:
            raise InvalidMessageError(f"Message is not valid JSON: {e}") from e
        if not isinstance(decoded, dict):
            raise InvalidMessageError("Message must be a JSON object")

        record = MessageRecord(data=data)
        with self._get_session() as session:
            session.add(record)
            session.commit()

        logger.debug("message_stored", message_id=record.id)
        return record

    def load_pending_messages(self) -> List[MessageRecord]:
        """Load messages not yet assigned to a batch, oldest first."""
        with self._get_session() as session:
            result = session.execute(
                select(MessageRecord)
                .where(MessageRecord.batch_id.is_(None))
                .order_by(MessageRecord.id)
            )
            return list(result.scalars().all())

    def load_batch_messages(self, batch_id: int) -> List[MessageRecord]:
        """Load the messages of a batch, oldest first."""
        with self._get_session() as session:
            result = session.execute(
                select(MessageRecord)
                .where(MessageRecord.batch_id == batch_id)
                .order_by(MessageRecord.id)
            )
            return list(result.scalars().all())

    # Batch operations

    def create_batch(self, messages: Iterable[MessageRecord]) -> int:
        """
        Create a new unsent batch and assign messages to it.

        Returns:
            ID of the new batch
        """
        message_ids = [m.id for m in messages]
        with self._get_session() as session:
            batch = BatchRecord(sent=False)
            session.add(batch)
            session.flush()
            if message_ids:
                session.execute(
                    update(MessageRecord)
                    .where(MessageRecord.id.in_(message_ids))
                    .values(batch_id=batch.id)
                )
            session.commit()
            batch_id = batch.id

        logger.info("batch_created", batch_id=batch_id, message_count=len(message_ids))
        return batch_id

    def load_batch(self, batch_id: int) -> Optional[BatchRecord]:
        """Load a batch by ID."""
        with self._get_session() as session:
            return session.get(BatchRecord, batch_id)

    def load_unsent_batch_ids(self, exclude: Optional[int] = None) -> List[int]:
        """Load IDs of batches that have not been delivered, lowest first."""
        query = select(BatchRecord.id).where(BatchRecord.sent.is_(False))
        if exclude is not None:
            query = query.where(BatchRecord.id != exclude)
        with self._get_session() as session:
            result = session.execute(query.order_by(BatchRecord.id))
            return list(result.scalars().all())

    def mark_batches_sent(self, batch_ids: Iterable[int]) -> None:
        """Mark batches as delivered."""
        ids = list(batch_ids)
        if not ids:
            return
        with self._get_session() as session:
            session.execute(
                update(BatchRecord)
                .where(BatchRecord.id.in_(ids))
                .values(sent=True, sent_at=datetime.utcnow())
            )
            session.commit()

        logger.info("batches_marked_sent", batch_ids=ids)


def init_database(config: Optional[ForwarderSettings] = None) -> MessageStore:
    """
    Initialize and connect to the database.

    Args:
        config: VuOwma configuration

    Returns:
        Connected MessageStore instance
    """
    store = MessageStore(config)
    store.connect()
    return store
