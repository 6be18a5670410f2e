"""
Report Service
Assembles adherence report data and hands it to the PDF renderer
"""

import logging
from typing import Dict, Optional, Any
from datetime import datetime, date, time
from sqlalchemy.orm import Session

from database import get_db_context
import models
from services.adherence_service import adherence_service
from services.exceptions import NotFound, ValidationFailed
from tools import adherence_stats
from tools.report_renderer import render_adherence_report


logger = logging.getLogger(__name__)


class ReportService:
    """
    Service for patient adherence reports
    """

    async def build_report(
        self,
        user_id: int,
        start_date: date,
        end_date: date,
        db: Optional[Session] = None
    ) -> Dict[str, Any]:
        """
        Stats and chronological history for [start_date, end_date],
        the end date counted in full
        """
        if end_date < start_date:
            raise ValidationFailed(
                "Validation failed",
                {"endDate": "End date must not precede start date"}
            )

        def _load_user(session: Session) -> str:
            user = session.query(models.User).filter(models.User.id == user_id).first()
            if not user:
                raise NotFound("User not found")
            return user.full_name

        if db:
            patient_name = _load_user(db)
        else:
            with get_db_context() as session:
                patient_name = _load_user(session)

        start = datetime.combine(start_date, time.min)
        end = datetime.combine(end_date, time.max)
        history = await adherence_service.get_records_between(user_id, start, end, db=db)

        stats = adherence_stats.summarize(history)

        return {
            "patient_name": patient_name,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "stats": stats,
            "history": [
                {
                    "taken_at": h["taken_at"].strftime("%Y-%m-%d %H:%M"),
                    "medication_name": h["medication"]["name"] if h["medication"] else "Unknown",
                    "status": h["status"],
                }
                for h in history
            ],
        }

    async def render_pdf(
        self,
        user_id: int,
        start_date: date,
        end_date: date,
        db: Optional[Session] = None
    ) -> bytes:
        """Build the report and render it to PDF bytes"""
        report = await self.build_report(user_id, start_date, end_date, db=db)
        pdf = render_adherence_report(report)
        logger.info(f"Generated PDF report for user {user_id} ({start_date} to {end_date})")
        return pdf

    @staticmethod
    def filename(start_date: date, end_date: date) -> str:
        return f"CareSync_Adherence_Report_{start_date.isoformat()}_to_{end_date.isoformat()}.pdf"


# Singleton instance
report_service = ReportService()
