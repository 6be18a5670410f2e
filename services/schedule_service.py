"""
Schedule Service
Builds the calendar dose schedule for a patient's active medications
"""

import logging
from typing import Dict, List, Optional, Any
from datetime import date, timedelta
from sqlalchemy.orm import Session

from services.medication_service import medication_service
from tools.scheduler import schedule_generator, to_calendar_events


logger = logging.getLogger(__name__)


class ScheduleService:
    """
    Service for the derived (never stored) dose schedule
    """

    async def get_calendar(
        self,
        user_id: int,
        start_date: Optional[date] = None,
        days: int = 7,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """
        Calendar events from start_date through start_date + days

        Args:
            user_id: Patient ID
            start_date: First day (default today)
            days: Days after start_date to include
            db: Database session
        """
        start = start_date or date.today()
        medications = await medication_service.get_active_medications(user_id, db=db)
        entries = schedule_generator.generate(medications, start, start + timedelta(days=days))
        logger.debug(f"Generated {len(entries)} schedule entries for user {user_id}")
        return to_calendar_events(entries, medications)


# Singleton instance
schedule_service = ScheduleService()
