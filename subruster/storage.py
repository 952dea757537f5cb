from __future__ import annotations

"""Persistence facade for subruster.

Scan history and saved runtime defaults live in one SQLite file; the
implementation is in `subruster.storage_parts.db`.
"""

from .storage_parts.db import (
    STORAGE_ERRORS,
    count_reports,
    delete_report,
    get_db_path,
    get_report,
    get_setting,
    get_settings,
    init_db,
    list_reports,
    save_scan,
    set_setting,
)

__all__ = [
    "STORAGE_ERRORS",
    "get_db_path",
    "init_db",
    "save_scan",
    "list_reports",
    "count_reports",
    "get_report",
    "delete_report",
    "get_setting",
    "get_settings",
    "set_setting",
]
