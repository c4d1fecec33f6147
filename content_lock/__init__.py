from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, declarative_base

Base = declarative_base()


class EntityKind(str, PyEnum):
    """Resource types the host tracks. The column stays a free string so new kinds need no migration."""
    ITEMS = "items"
    ITEM_SETS = "item_sets"
    MEDIA = "media"


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(190), nullable=False)
    email: Mapped[str] = mapped_column(String(190), nullable=False, unique=True)


class ContentLock(Base):
    __tablename__ = "content_lock"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    # Not a join column: the locked resource may be deleted behind our back
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    entity_kind: Mapped[str] = mapped_column(String(190), nullable=False)
    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    __table_args__ = (
        UniqueConstraint('entity_id', 'entity_kind', name='uix_content_lock_entity'),
    )

    @property
    def key(self) -> tuple:
        return self.entity_id, self.entity_kind

    def __repr__(self):
        return (f"ContentLock(id={self.id!r}, entity={self.entity_kind}#{self.entity_id}, "
                f"owner_id={self.owner_id}, created_at={self.created_at})")
