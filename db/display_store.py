"""
Shared settings for the dashboard display surfaces.

Every process (the API, the Streamlit page, a periodic refresher) reads and
writes the same MongoDB document, so hiding balances in one place hides them
everywhere and a refresh requested anywhere is seen by every refresher.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from db.engine import get_mongo_collection

logger = logging.getLogger(__name__)

SETTINGS_ID = "display"
DEFAULT_REFRESH_INTERVAL_S = 3600


def _now() -> int:
    return int(datetime.now(timezone.utc).timestamp())


class DisplayStore:
    """
    Visibility flag and refresh signal for display surfaces.

    :param collection: A pymongo collection. Defaults to ``display_settings``.
    """

    def __init__(self, collection=None):
        self.collection = collection if collection is not None else get_mongo_collection("display_settings")

    def _settings(self) -> dict:
        return self.collection.find_one({"_id": SETTINGS_ID}) or {}

    def get_visibility_flag(self) -> bool:
        """True when balances should be hidden. Unset means visible."""
        return bool(self._settings().get("hidden", False))

    def set_visibility_flag(self, hidden: bool) -> None:
        self.collection.update_one(
            {"_id": SETTINGS_ID},
            {"$set": {"hidden": bool(hidden), "updated_at": _now()}},
            upsert=True,
        )
        logger.info("Display visibility flag set to hidden=%s", bool(hidden))

    def request_refresh(self) -> int:
        """
        Records an explicit refresh signal.

        :return: The signal's timestamp (UTC epoch seconds).
        :rtype: int
        """
        ts = _now()
        self.collection.update_one({"_id": SETTINGS_ID}, {"$set": {"refresh_requested_at": ts}}, upsert=True)
        return ts

    def last_refresh(self) -> Optional[int]:
        return self._settings().get("refresh_requested_at")

    def acknowledge_refresh(self, now: Optional[int] = None) -> int:
        """
        Records that a surface has rendered, clearing any pending refresh signal.

        :return: The acknowledgement timestamp (UTC epoch seconds).
        :rtype: int
        """
        ts = _now() if now is None else now
        self.collection.update_one({"_id": SETTINGS_ID}, {"$set": {"refreshed_at": ts}}, upsert=True)
        return ts

    def next_refresh(self, interval_s: int = DEFAULT_REFRESH_INTERVAL_S, now: Optional[int] = None) -> int:
        """
        When a surface refreshing every ``interval_s`` seconds should render next.

        A refresh signal newer than both the last interval boundary and the
        last acknowledged render means now.
        """
        now = _now() if now is None else now
        last_boundary = now - now % interval_s
        settings = self._settings()
        requested = settings.get("refresh_requested_at")
        handled = max(last_boundary, settings.get("refreshed_at") or 0)
        if requested is not None and requested > handled:
            return now
        return last_boundary + interval_s
