from grimoire.db.database import async_session_factory, init_db
from grimoire.db.operations import delete_value, get_value, list_keys, set_value

__all__ = [
    "async_session_factory",
    "delete_value",
    "get_value",
    "init_db",
    "list_keys",
    "set_value",
]
