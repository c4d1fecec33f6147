from typing import TypeVar, Generic, Optional, List

T = TypeVar('T')


class BaseRepository(Generic[T]):
    def __init__(self, db_manager, model_class=None):
        self.db_manager = db_manager
        self.model_class = model_class or self._get_model_class()

    def _get_model_class(self) -> type:
        """Get the model class from the generic type parameter"""
        raise NotImplementedError

    def _create_detached_copy(self, db_obj: Optional[T]) -> Optional[T]:
        """Copy a session-bound entity so it stays readable after the session closes"""
        raise NotImplementedError

    def find_by_id(self, id: any) -> Optional[T]:
        with self.db_manager.session() as session:
            return self._create_detached_copy(session.get(self.model_class, id))

    def find_by_filter(self, **filters) -> List[T]:
        with self.db_manager.session() as session:
            result = session.query(self.model_class).filter_by(**filters).all()
            return [self._create_detached_copy(item) for item in result]

    def count(self, **filters) -> int:
        with self.db_manager.session() as session:
            return session.query(self.model_class) \
                .filter_by(**filters) \
                .count()

    def delete_by_filter(self, **filters) -> int:
        with self.db_manager.session() as session:
            return session.query(self.model_class) \
                .filter_by(**filters) \
                .delete(synchronize_session=False)
