from fitpulse.db.session import async_session_maker, get_db, init_db
from fitpulse.db.base import Base

__all__ = ["Base", "async_session_maker", "get_db", "init_db"]
