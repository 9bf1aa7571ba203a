"""Database bootstrapping utilities."""

from __future__ import annotations

import logging

from app.packages.drive.core.config import get_settings
from app.packages.drive.db import session as db_session
from app.packages.drive.models.base import Base
from app.packages.drive.models.file_node import FileNode  # noqa: F401 - ensure table registration

logger = logging.getLogger("droply.init_db")


def init_db() -> None:
    """Create the ``files`` table if missing and prepare the local storage root."""
    Base.metadata.create_all(bind=db_session.engine)

    settings = get_settings()
    if (settings.storage_type or "").upper() == "LOCAL":
        root = settings.storage_local_directory
        root.mkdir(parents=True, exist_ok=True)
        logger.info("Local storage root ready at %s", root)
