from datetime import datetime
from enum import Enum as PyEnum
from typing import Iterable, Optional, Union

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from config.database.exceptions import DatabaseError, DuplicateEntityError, EntityNotFoundError
from config.database.repository import BaseRepository
from content_lock import ContentLock, User
from content_lock.outcomes import InsertResult, InsertStatus
from utils.date_util import ensure_utc
from utils.id_util import get_id
from utils.logging_util import logger


def normalize_kind(entity_kind: Union[str, PyEnum]) -> str:
    if isinstance(entity_kind, PyEnum):
        return str(entity_kind.value)
    return str(entity_kind)


class ContentLockRepository(BaseRepository[ContentLock]):
    def __init__(self, db_manager):
        super().__init__(db_manager, ContentLock)
        self.logger = logger

    def _get_model_class(self) -> type:
        return ContentLock

    def _create_detached_copy(self, db_obj: Optional[ContentLock]) -> Optional[ContentLock]:
        if not db_obj:
            return None

        return ContentLock(
            id=db_obj.id,
            entity_id=db_obj.entity_id,
            entity_kind=db_obj.entity_kind,
            owner_id=db_obj.owner_id,
            created_at=ensure_utc(db_obj.created_at)
        )

    def find_by_key(self, entity_id: int, entity_kind: str) -> Optional[ContentLock]:
        with self.db_manager.session() as session:
            lock = session.query(self.model_class).filter(
                self.model_class.entity_id == entity_id,
                self.model_class.entity_kind == normalize_kind(entity_kind)
            ).first()
            return self._create_detached_copy(lock)

    def insert_if_absent(self, entity_id: int, entity_kind: str, owner_id: int,
                         created_at: datetime) -> InsertResult:
        """
        Insert a lock for the key unless one exists.

        The unique constraint on (entity_id, entity_kind) settles concurrent inserts:
        the loser gets the winning row back tagged ALREADY_EXISTS instead of an error.
        """
        kind = normalize_kind(entity_kind)
        try:
            with self.db_manager.session() as session:
                lock = ContentLock(
                    id=get_id(),
                    entity_id=entity_id,
                    entity_kind=kind,
                    owner_id=owner_id,
                    created_at=created_at
                )
                session.add(lock)
                session.flush()
                inserted = self._create_detached_copy(lock)
        except IntegrityError as e:
            winner = self.find_by_key(entity_id, kind)
            if winner is None:
                # Not a lost race: the row was refused, e.g. an unknown owner or a winner removed since
                self.logger.warning(f"Lock insert for {kind} #{entity_id} by user #{owner_id} rejected: {e.orig}")
            else:
                self.logger.info(f"Lock for {kind} #{entity_id} inserted concurrently by user #{winner.owner_id}")
            return InsertResult(InsertStatus.ALREADY_EXISTS, winner)
        except SQLAlchemyError as e:
            self.logger.error(f"Error inserting lock for {kind} #{entity_id}: {str(e)}")
            raise DatabaseError(f"Error inserting lock: {str(e)}")

        return InsertResult(InsertStatus.INSERTED, inserted)

    def refresh(self, lock_id: str, created_at: datetime) -> Optional[ContentLock]:
        """Move the lock timestamp forward; it never goes backwards."""
        try:
            with self.db_manager.session() as session:
                lock = session.get(self.model_class, lock_id)
                if lock is None:
                    return None
                current = ensure_utc(lock.created_at)
                lock.created_at = max(current, ensure_utc(created_at))
                session.flush()
                return self._create_detached_copy(lock)
        except SQLAlchemyError as e:
            self.logger.error(f"Error refreshing lock {lock_id}: {str(e)}")
            raise DatabaseError(f"Error refreshing lock: {str(e)}")

    def delete_by_id(self, lock_id: str) -> bool:
        return self._delete(f"lock {lock_id}", self.model_class.id == lock_id) > 0

    def delete_by_key(self, entity_id: int, entity_kind: str) -> int:
        return self._delete(
            f"lock for {normalize_kind(entity_kind)} #{entity_id}",
            self.model_class.entity_id == entity_id,
            self.model_class.entity_kind == normalize_kind(entity_kind)
        )

    def delete_owned(self, entity_id: int, entity_kind: str, owner_id: int) -> bool:
        return self._delete(
            f"lock for {normalize_kind(entity_kind)} #{entity_id} owned by #{owner_id}",
            self.model_class.entity_id == entity_id,
            self.model_class.entity_kind == normalize_kind(entity_kind),
            self.model_class.owner_id == owner_id
        ) > 0

    def delete_by_owner(self, owner_id: int) -> int:
        """Cascade step for stores that do not enforce the users foreign key."""
        return self._delete(f"locks of user #{owner_id}", self.model_class.owner_id == owner_id)

    def delete_older_than(self, cutoff: datetime) -> int:
        return self._delete(f"locks created before {cutoff}", self.model_class.created_at < cutoff)

    def count_matching(self, cutoff: Optional[datetime], owner_ids: Iterable[int] = ()) -> int:
        try:
            with self.db_manager.session() as session:
                return self._matching_query(session, cutoff, owner_ids).count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting locks: {str(e)}")
            raise DatabaseError(f"Error counting locks: {str(e)}")

    def delete_matching(self, cutoff: Optional[datetime], owner_ids: Iterable[int] = ()) -> int:
        try:
            with self.db_manager.session() as session:
                return self._matching_query(session, cutoff, owner_ids).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            self.logger.error(f"Error removing locks: {str(e)}")
            raise DatabaseError(f"Error removing locks: {str(e)}")

    def _matching_query(self, session, cutoff: Optional[datetime], owner_ids: Iterable[int]):
        """Locks created at or before cutoff (None means any age), restricted to owner_ids when given."""
        query = session.query(self.model_class)
        if cutoff is not None:
            query = query.filter(self.model_class.created_at <= cutoff)
        owner_ids = list(owner_ids or [])
        if owner_ids:
            query = query.filter(self.model_class.owner_id.in_(owner_ids))
        return query

    def _delete(self, description: str, *criteria) -> int:
        try:
            with self.db_manager.session() as session:
                return session.query(self.model_class).filter(*criteria).delete(synchronize_session=False)
        except SQLAlchemyError as e:
            self.logger.error(f"Error removing {description}: {str(e)}")
            raise DatabaseError(f"Error removing {description}: {str(e)}")


class UserRepository(BaseRepository[User]):
    """Minimal access to the host's user table, enough to resolve names and remove users."""

    def __init__(self, db_manager):
        super().__init__(db_manager, User)
        self.logger = logger

    def _get_model_class(self) -> type:
        return User

    def _create_detached_copy(self, db_obj: Optional[User]) -> Optional[User]:
        if not db_obj:
            return None
        return User(id=db_obj.id, name=db_obj.name, email=db_obj.email)

    def create(self, name: str, email: str) -> User:
        try:
            with self.db_manager.session() as session:
                user = User(name=name, email=email)
                session.add(user)
                session.flush()
                return self._create_detached_copy(user)
        except IntegrityError:
            raise DuplicateEntityError("User", email)

    def get_name(self, user_id: int) -> str:
        user = self.find_by_id(user_id)
        return user.name if user else f"#{user_id}"

    def delete(self, user_id: int) -> None:
        """Remove a user; the foreign key cascade removes their locks."""
        with self.db_manager.session() as session:
            user = session.get(User, user_id)
            if user is None:
                raise EntityNotFoundError("User", user_id)
            session.delete(user)
        self.logger.info(f"User #{user_id} deleted")
