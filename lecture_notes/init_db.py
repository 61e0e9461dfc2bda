from sqlmodel import SQLModel

from lecture_notes.config import get_config
from lecture_notes.api.dependencies import engine
from lecture_notes.api.models import User, Folder, Note  # noqa: F401  (register tables)
from lecture_notes.main import _ensure_sqlite_directory


def init_db():
    database_url = get_config().database_url
    print(f"Initializing database at {database_url}")
    _ensure_sqlite_directory(database_url)
    SQLModel.metadata.create_all(engine)
    print("Database tables created.")


if __name__ == "__main__":
    init_db()
