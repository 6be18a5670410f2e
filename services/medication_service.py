"""
Medication Service
Business logic for medication management and stock
"""

import logging
from typing import Dict, List, Optional, Any, Tuple
from datetime import datetime, date
from sqlalchemy.orm import Session
from sqlalchemy import and_, desc, func, update

from database import get_db_context, transaction
import models
from services.exceptions import NotFound, ValidationFailed
from tools.refill_monitor import medications_needing_refill, needs_refill
from tools.scheduler import schedule_generator, UpcomingDose


logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "name", "dosage", "dosage_unit", "frequency", "times_per_day",
    "total_quantity", "remaining_quantity", "instructions",
    "start_date", "end_date", "is_active",
}

# Columns an update may change but never clear, with their API names
REQUIRED_FIELDS = {
    "name": "name",
    "dosage": "dosage",
    "dosage_unit": "dosageUnit",
    "frequency": "frequency",
    "times_per_day": "timesPerDay",
    "total_quantity": "totalQuantity",
    "remaining_quantity": "remainingQuantity",
    "is_active": "isActive",
}


class MedicationService:
    """
    Service for medication-related operations
    """

    async def add_medication(
        self,
        user_id: int,
        name: str,
        dosage: str,
        dosage_unit: str = "mg",
        frequency: str = "1x daily",
        times_per_day: int = 1,
        total_quantity: int = 0,
        remaining_quantity: Optional[int] = None,
        instructions: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        db: Optional[Session] = None
    ) -> models.Medication:
        """
        Add a new medication for a patient

        Args:
            user_id: Owning patient
            name: Medication name
            dosage: Dose amount (e.g. "500")
            dosage_unit: Unit of the dose (e.g. "mg")
            frequency: Human-readable frequency label
            times_per_day: Doses per day
            total_quantity: Units dispensed
            remaining_quantity: Units left (defaults to total_quantity)
            instructions: Special instructions
            start_date: Start date (default today)
            end_date: End date, if the course is limited
            db: Database session

        Returns:
            Created Medication object
        """
        def _add(session: Session) -> models.Medication:
            if end_date and start_date and end_date < start_date:
                raise ValidationFailed("Validation failed", {"endDate": "End date must not precede start date"})

            medication = models.Medication(
                user_id=user_id,
                name=name,
                dosage=dosage,
                dosage_unit=dosage_unit,
                frequency=frequency,
                times_per_day=times_per_day or 1,
                total_quantity=total_quantity,
                remaining_quantity=total_quantity if remaining_quantity is None else remaining_quantity,
                instructions=instructions,
                start_date=start_date or date.today(),
                end_date=end_date,
                is_active=True
            )

            with transaction(session):
                session.add(medication)
            session.refresh(medication)

            logger.info(f"Added medication {name} for user {user_id}")
            return medication

        if db:
            return _add(db)

        with get_db_context() as session:
            return _add(session)

    def _get_owned(self, session: Session, medication_id: int, user_id: int) -> models.Medication:
        medication = session.query(models.Medication).filter(
            and_(
                models.Medication.id == medication_id,
                models.Medication.user_id == user_id
            )
        ).first()
        if not medication:
            raise NotFound("Medication not found")
        return medication

    async def get_medication(
        self,
        medication_id: int,
        user_id: int,
        db: Optional[Session] = None
    ) -> models.Medication:
        """Get a medication owned by user_id"""
        def _get(session: Session) -> models.Medication:
            return self._get_owned(session, medication_id, user_id)

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)

    async def list_medications(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 20,
        status: str = "active",
        search: Optional[str] = None,
        db: Optional[Session] = None
    ) -> Tuple[List[models.Medication], int]:
        """Page of a patient's medications, newest first, with total count"""
        def _list(session: Session) -> Tuple[List[models.Medication], int]:
            query = session.query(models.Medication).filter(
                models.Medication.user_id == user_id
            )
            if status != "all":
                query = query.filter(models.Medication.is_active == (status == "active"))
            if search:
                query = query.filter(func.lower(models.Medication.name).contains(search.lower()))

            total = query.count()
            rows = query.order_by(
                desc(models.Medication.created_at), desc(models.Medication.id)
            ).offset((page - 1) * limit).limit(limit).all()
            return rows, total

        if db:
            return _list(db)

        with get_db_context() as session:
            return _list(session)

    async def get_active_medications(
        self,
        user_id: int,
        db: Optional[Session] = None
    ) -> List[models.Medication]:
        """All active medications for a patient"""
        def _get(session: Session) -> List[models.Medication]:
            return session.query(models.Medication).filter(
                and_(
                    models.Medication.user_id == user_id,
                    models.Medication.is_active == True
                )
            ).order_by(models.Medication.id).all()

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)

    async def update_medication(
        self,
        medication_id: int,
        user_id: int,
        updates: Dict[str, Any],
        db: Optional[Session] = None
    ) -> models.Medication:
        """Update medication information"""
        def _update(session: Session) -> models.Medication:
            cleared = {
                REQUIRED_FIELDS[k]: "Field cannot be null"
                for k, v in updates.items()
                if k in REQUIRED_FIELDS and v is None
            }
            if cleared:
                raise ValidationFailed("Validation failed", cleared)

            with transaction(session):
                medication = self._get_owned(session, medication_id, user_id)
                for field, value in updates.items():
                    if field in UPDATABLE_FIELDS:
                        setattr(medication, field, value)
                medication.updated_at = datetime.utcnow()
            session.refresh(medication)
            return medication

        if db:
            return _update(db)

        with get_db_context() as session:
            return _update(session)

    async def deactivate_medication(
        self,
        medication_id: int,
        user_id: int,
        db: Optional[Session] = None
    ) -> models.Medication:
        """Soft delete; the row stays for past adherence records"""
        medication = await self.update_medication(
            medication_id, user_id, {"is_active": False}, db
        )
        logger.info(f"Deactivated medication {medication_id} for user {user_id}")
        return medication

    async def refill_medication(
        self,
        medication_id: int,
        user_id: int,
        quantity: int,
        db: Optional[Session] = None
    ) -> models.Medication:
        """Add units to remaining stock"""
        def _refill(session: Session) -> models.Medication:
            if quantity <= 0:
                raise ValidationFailed("Validation failed", {"quantity": "Quantity must be positive"})

            with transaction(session):
                medication = self._get_owned(session, medication_id, user_id)
                table = models.Medication.__table__
                session.execute(
                    update(table)
                    .where(table.c.id == medication.id)
                    .values(
                        remaining_quantity=func.coalesce(table.c.remaining_quantity, 0) + quantity,
                        updated_at=datetime.utcnow()
                    )
                )
            session.refresh(medication)
            logger.info(f"Refilled medication {medication_id} with {quantity} units")
            return medication

        if db:
            return _refill(db)

        with get_db_context() as session:
            return _refill(session)

    async def get_medications_needing_refill(
        self,
        user_id: int,
        db: Optional[Session] = None
    ) -> List[models.Medication]:
        """Active medications at or below a week of supply"""
        medications = await self.get_active_medications(user_id, db=db)
        return medications_needing_refill(medications)

    async def get_upcoming_doses(
        self,
        user_id: int,
        hours: float = 24,
        now: Optional[datetime] = None,
        db: Optional[Session] = None
    ) -> List[UpcomingDose]:
        """Approximate next doses within `hours` (see ScheduleGenerator.next_doses)"""
        medications = await self.get_active_medications(user_id, db=db)
        return schedule_generator.next_doses(medications, now or datetime.utcnow(), hours)

    async def get_medication_stats(
        self,
        user_id: int,
        db: Optional[Session] = None
    ) -> Dict[str, int]:
        """Active medication count and how many are low on stock"""
        medications = await self.get_active_medications(user_id, db=db)
        return {
            "total": len(medications),
            "lowStock": sum(1 for m in medications if needs_refill(m)),
        }


# Singleton instance
medication_service = MedicationService()
