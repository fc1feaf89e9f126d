"""Settings table: operator-editable knobs for the backend worker."""

from typing import Any, Callable, Optional, TypeVar

from .db_config import get_db

T = TypeVar("T")

# key -> (default value, description); inserted once, operator edits survive restarts
DEFAULT_SETTINGS = {
    "model_server_home": ("", "Working directory of backend workers (empty=application root)"),
    "worker_entry": ("mms/model_service_worker.py", "Worker script, relative to the model server home"),
    "worker_python": ("python", "Interpreter used to launch the backend worker"),
    "worker_port": ("9000", "Port the backend worker listens on, also names the UNIX socket (0=any free port)"),
    "worker_prefer_unix_socket": ("true", "Use a UNIX domain socket when the platform supports it (true/false)"),
    "worker_socket_dir": ("/tmp", "Directory holding worker UNIX domain sockets"),
    "worker_startup_timeout_seconds": ("120", "Max seconds to wait for the worker readiness line"),
    "metrics_retention_days": ("30", "Days of worker metrics to keep in the database"),
}

TRUE_VALUES = ("true", "1", "yes", "on")


def init_settings_table():
    """Create the settings table and insert missing defaults."""
    with get_db() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                description TEXT,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)
        conn.executemany(
            "INSERT OR IGNORE INTO settings (key, value, description) VALUES (?, ?, ?)",
            [(key, value, description) for key, (value, description) in DEFAULT_SETTINGS.items()],
        )


def get_setting(key: str, default: Any = None) -> Optional[str]:
    """
    Get a raw setting value.

    Returns default when the key, or the whole table, is missing, so
    configuration can be read before init_settings_table() has run.
    """
    with get_db() as conn:
        has_table = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'settings'"
        ).fetchone()
        if has_table is None:
            return default
        row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default


def _get_converted(key: str, convert: Callable[[str], T], default: T) -> T:
    value = get_setting(key)
    if value is None or value.strip() == "":
        return default
    try:
        return convert(value.strip())
    except (ValueError, TypeError):
        return default


def get_setting_int(key: str, default: int = 0) -> int:
    """Setting as int; default when missing, empty or not a number."""
    return _get_converted(key, int, default)


def get_setting_float(key: str, default: Optional[float] = None) -> Optional[float]:
    """Setting as float; default when missing, empty or not a number."""
    return _get_converted(key, float, default)


def get_setting_bool(key: str, default: bool = False) -> bool:
    """Setting as bool: true/1/yes/on, anything else is False."""
    return _get_converted(key, lambda v: v.lower() in TRUE_VALUES, default)
