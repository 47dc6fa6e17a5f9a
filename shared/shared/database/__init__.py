from shared.database.postgres import Base, get_async_engine, session_factory_for

__all__ = ["Base", "get_async_engine", "session_factory_for"]
