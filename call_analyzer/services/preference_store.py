"""
Preference Store - remembers the connected spreadsheet and keeps analysis history.
"""
import logging
from typing import List, Optional
from datetime import datetime
from motor.motor_asyncio import AsyncIOMotorClient

from call_analyzer.core.config import Settings, get_settings
from call_analyzer.models.analysis import AnalysisRecord

logger = logging.getLogger(__name__)

SHEET_ID_KEY = "googleSheetId"


class PreferenceStore:
    """
    MongoDB-backed persistence for the analyzer.

    Without a MongoDB client the store is disabled: nothing is remembered
    and history is empty.
    """

    def __init__(self, mongo_client: Optional[AsyncIOMotorClient], settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.enabled = mongo_client is not None
        if self.enabled:
            self.db = mongo_client[settings.mongo_db_name]
            self.preferences_collection = self.db[settings.mongo_preferences_collection]
            self.analyses_collection = self.db[settings.mongo_analyses_collection]
        else:
            logger.warning("MongoDB not configured - spreadsheet id and analysis history will not persist")

    async def get_sheet_id(self) -> Optional[str]:
        """Spreadsheet id saved by the last successful connection."""
        if not self.enabled:
            return None
        try:
            doc = await self.preferences_collection.find_one({"key": SHEET_ID_KEY})
        except Exception as e:
            logger.error(f"Error reading saved spreadsheet id: {e}")
            return None
        return doc.get("value") if doc else None

    async def remember_sheet_id(self, sheet_id: str) -> bool:
        if not self.enabled or not sheet_id:
            return False
        try:
            await self.preferences_collection.update_one(
                {"key": SHEET_ID_KEY},
                {"$set": {"value": sheet_id, "last_updated": datetime.utcnow()}},
                upsert=True
            )
            return True
        except Exception as e:
            logger.error(f"Error saving spreadsheet id: {e}")
            return False

    async def save_analysis(self, record: AnalysisRecord) -> bool:
        """Store a completed analysis in the history collection."""
        if not self.enabled:
            return False
        try:
            await self.analyses_collection.insert_one(record.model_dump(mode="json"))
            logger.info(f"Analysis stored in MongoDB - mode: {record.input_mode.value}")
            return True
        except Exception as e:
            logger.error(f"Error storing analysis: {e}")
            return False

    async def recent_analyses(self, limit: int = 10) -> List[AnalysisRecord]:
        """Most recent analyses first."""
        if not self.enabled:
            return []

        cursor = self.analyses_collection.find().sort([("timestamp", -1)]).limit(limit)
        records = []
        async for doc in cursor:
            doc.pop("_id", None)
            records.append(AnalysisRecord.model_validate(doc))
        return records
