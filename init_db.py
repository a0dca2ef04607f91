"""Create every table on the configured database."""

from app.backend.src.db import get_engine
from app.backend.src.models.base import Base
import app.backend.src.models  # noqa: F401  registers the mapped tables


def init_db() -> None:
    engine = get_engine()
    print(f"Connecting to {engine.url.render_as_string(hide_password=True)}")
    Base.metadata.create_all(bind=engine)
    print("Tables created successfully!")


if __name__ == "__main__":
    init_db()
