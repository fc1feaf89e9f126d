"""Application configuration for the model server home and data paths."""

import os
from pathlib import Path

# Environment variable names
MMS_HOME_ENV = "MMS_HOME"
MMS_DATA_DIR_ENV = "MMS_DATA_DIR"
# Module search path handed to backend workers
PYTHONPATH_ENV = "PYTHONPATH"


def get_app_root() -> Path:
    """
    Get the application root directory.

    Returns /mms in production, or project root in development.
    """
    # Check if we're in production (container install)
    if os.path.exists("/mms"):
        return Path("/mms")

    # Development: return project root
    return Path(__file__).parent.parent


def get_data_dir() -> Path:
    """
    Get the data directory for the settings and metrics database.

    Checks MMS_DATA_DIR environment variable first, then falls back to:
    - /mms/data in production
    - {project_root}/data in development
    """
    if env_data_dir := os.getenv(MMS_DATA_DIR_ENV):
        return Path(env_data_dir)

    return get_app_root() / "data"


def get_model_server_home() -> Path:
    """
    Get the model server home, the working directory of backend workers.

    Priority order:
    1. Environment variable (MMS_HOME)
    2. Database settings (model_server_home)
    3. Default (application root)

    Returns:
        Model server home path (not canonicalized)
    """
    env_home = os.getenv(MMS_HOME_ENV)
    if env_home:
        return Path(env_home)

    # Avoid circular import by importing here
    from model_server.db.settings import get_setting

    db_home = get_setting("model_server_home")
    if db_home:
        return Path(db_home)

    return get_app_root()

