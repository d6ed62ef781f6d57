"""
Database abstraction over the image-reference fields, with a SQLAlchemy
implementation and an in-memory one for development and tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from sqlalchemy import Column, String, create_engine, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker


@dataclass(frozen=True)
class ImageCollection:
    """A record collection holding one image-reference field."""

    name: str
    table: str
    field: str
    label_field: str


USER_PROFILE_IMAGES = ImageCollection(
    name="user profile images",
    table="users",
    field="profile_image_url",
    label_field="email",
)
SERVICE_IMAGES = ImageCollection(
    name="service images",
    table="service_images",
    field="image_url",
    label_field="service_title",
)
CATEGORY_ICONS = ImageCollection(
    name="category icons",
    table="categories",
    field="icon_url",
    label_field="name",
)

IMAGE_COLLECTIONS = (USER_PROFILE_IMAGES, SERVICE_IMAGES, CATEGORY_ICONS)


@dataclass
class ImageRefRecord:
    record_id: str
    value: Optional[str]
    label: Optional[str] = None


class DbClient(Protocol):
    """Interface for reading and rewriting stored image references."""

    def find_image_refs(
        self, collection: ImageCollection, marker: str
    ) -> list[ImageRefRecord]:
        ...

    def get_image_ref(
        self, collection: ImageCollection, record_id: str
    ) -> Optional[ImageRefRecord]:
        ...

    def update_image_ref(
        self, collection: ImageCollection, record_id: str, value: Optional[str]
    ) -> None:
        ...

    def save_image_ref(
        self,
        collection: ImageCollection,
        record_id: str,
        value: Optional[str],
        label: Optional[str] = None,
    ) -> None:
        ...


class RecordNotFoundError(LookupError):
    pass


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.records: Dict[str, Dict[str, ImageRefRecord]] = {
            collection.table: {} for collection in IMAGE_COLLECTIONS
        }

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        for table in self.records.values():
            table.clear()

    def find_image_refs(
        self, collection: ImageCollection, marker: str
    ) -> list[ImageRefRecord]:
        return [
            ImageRefRecord(record.record_id, record.value, record.label)
            for record in self.records[collection.table].values()
            if record.value and marker in record.value
        ]

    def get_image_ref(
        self, collection: ImageCollection, record_id: str
    ) -> Optional[ImageRefRecord]:
        record = self.records[collection.table].get(record_id)
        if record is None:
            return None
        return ImageRefRecord(record.record_id, record.value, record.label)

    def update_image_ref(
        self, collection: ImageCollection, record_id: str, value: Optional[str]
    ) -> None:
        record = self.records[collection.table].get(record_id)
        if record is None:
            raise RecordNotFoundError(f"{collection.table}/{record_id}")
        record.value = value

    def save_image_ref(
        self,
        collection: ImageCollection,
        record_id: str,
        value: Optional[str],
        label: Optional[str] = None,
    ) -> None:
        self.records[collection.table][record_id] = ImageRefRecord(
            record_id, value, label
        )


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True)
    profile_image_url = Column(String, nullable=True)


class ServiceImageRow(Base):
    __tablename__ = "service_images"

    id = Column(String, primary_key=True)
    service_title = Column(String, nullable=True)
    image_url = Column(String, nullable=True)


class CategoryRow(Base):
    __tablename__ = "categories"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    icon_url = Column(String, nullable=True)


_ROWS = {
    UserRow.__tablename__: UserRow,
    ServiceImageRow.__tablename__: ServiceImageRow,
    CategoryRow.__tablename__: CategoryRow,
}


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_record(self, collection: ImageCollection, row) -> ImageRefRecord:
        return ImageRefRecord(
            record_id=row.id,
            value=getattr(row, collection.field),
            label=getattr(row, collection.label_field),
        )

    def find_image_refs(
        self, collection: ImageCollection, marker: str
    ) -> list[ImageRefRecord]:
        row_cls = _ROWS[collection.table]
        column = getattr(row_cls, collection.field)
        with self.Session() as session:
            stmt = (
                select(row_cls)
                .where(column.is_not(None), column.contains(marker, autoescape=True))
                .order_by(row_cls.id.asc())
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(collection, row) for row in rows]

    def get_image_ref(
        self, collection: ImageCollection, record_id: str
    ) -> Optional[ImageRefRecord]:
        with self.Session() as session:
            row = session.get(_ROWS[collection.table], record_id)
            if not row:
                return None
            return self._to_record(collection, row)

    def update_image_ref(
        self, collection: ImageCollection, record_id: str, value: Optional[str]
    ) -> None:
        with self.Session() as session:
            row = session.get(_ROWS[collection.table], record_id)
            if not row:
                raise RecordNotFoundError(f"{collection.table}/{record_id}")
            setattr(row, collection.field, value)
            session.commit()

    def save_image_ref(
        self,
        collection: ImageCollection,
        record_id: str,
        value: Optional[str],
        label: Optional[str] = None,
    ) -> None:
        row_cls = _ROWS[collection.table]
        with self.Session() as session:
            row = session.get(row_cls, record_id)
            if row is None:
                row = row_cls(id=record_id)
                session.add(row)
            setattr(row, collection.field, value)
            setattr(row, collection.label_field, label)
            session.commit()
