from contextlib import contextmanager
from typing import Generator, Union

from sqlalchemy import URL, create_engine, event
from sqlalchemy.orm import sessionmaker, Session

from utils.logger_init import logger


class DatabaseManager:
    def __init__(self, uri: Union[str, URL], **engine_options):
        self.init_db(uri, **engine_options)

    def init_db(self, uri: Union[str, URL], **engine_options):
        self.engine = create_engine(uri, **engine_options)
        if self.engine.dialect.name == "sqlite":
            # SQLite only honours ON DELETE CASCADE when foreign keys are switched on per connection
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)
        self.SessionFactory = sessionmaker(bind=self.engine)

    def create_tables(self, metadata):
        metadata.create_all(self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        session = self.SessionFactory()
        try:
            yield session
            session.commit()
        except Exception as e:
            logger.error(f"Error: {e}")
            session.rollback()
            raise e
        finally:
            session.close()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
