"""
Adherence Service
Adherence ledger: records intake events, keeps medication stock in step,
and serves the statistics built on top of the records
"""

import logging
from typing import Dict, List, Optional, Any, Tuple
from datetime import datetime, date, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import and_, desc, update
from sqlalchemy.exc import SQLAlchemyError

from database import get_db_context, transaction
from config import settings
import models
from models import AdherenceStatus
from services.exceptions import CareSyncError, AccessDenied, NotFound, ValidationFailed, InternalError
from tools import adherence_stats


logger = logging.getLogger(__name__)

# Fields a patient may correct on an existing record
ALLOWED_UPDATE_FIELDS = ("status", "taken_at", "scheduled_time", "notes")

# Correctable fields that may not be cleared, with their API names
REQUIRED_UPDATE_FIELDS = {"status": "status", "taken_at": "takenAt", "scheduled_time": "scheduledTime"}


def _coerce_status(value: Any) -> AdherenceStatus:
    if isinstance(value, AdherenceStatus):
        return value
    if value is None:
        return AdherenceStatus.TAKEN
    return AdherenceStatus(getattr(value, "value", value))


def _snapshot(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return getattr(value, "value", value)


def serialize_record(record: models.AdherenceRecord, medication: Optional[models.Medication]) -> Dict[str, Any]:
    """Record plus a short medication summary, keyed like the API schema"""
    return {
        "id": record.id,
        "user_id": record.user_id,
        "medication_id": record.medication_id,
        "status": record.status.value,
        "scheduled_time": record.scheduled_time,
        "taken_at": record.taken_at,
        "notes": record.notes,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "medication": {
            "id": medication.id,
            "name": medication.name,
            "dosage": medication.dosage,
            "dosage_unit": medication.dosage_unit,
        } if medication else None,
    }


class AdherenceService:
    """
    Service for the adherence ledger
    """

    # ==================== STOCK ====================

    def _owned_medication(
        self,
        session: Session,
        user_id: int,
        medication_id: int,
        lock: bool = False
    ) -> models.Medication:
        query = session.query(models.Medication).filter(
            and_(
                models.Medication.id == medication_id,
                models.Medication.user_id == user_id
            )
        )
        if lock:
            query = query.with_for_update()
        medication = query.first()
        if not medication:
            raise NotFound("Medication not found")
        return medication

    def _consume_stock(self, session: Session, medication_id: int) -> bool:
        """
        Take one unit from stock, never going below zero.
        Returns whether a unit was actually removed.
        """
        table = models.Medication.__table__
        result = session.execute(
            update(table)
            .where(and_(table.c.id == medication_id, table.c.remaining_quantity > 0))
            .values(remaining_quantity=table.c.remaining_quantity - 1)
        )
        return result.rowcount == 1

    def _restore_stock(self, session: Session, medication_id: int) -> None:
        table = models.Medication.__table__
        session.execute(
            update(table)
            .where(table.c.id == medication_id)
            .values(remaining_quantity=table.c.remaining_quantity + 1)
        )

    # ==================== WRITES ====================

    async def record_intake(
        self,
        user_id: int,
        medication_id: int,
        status: Optional[AdherenceStatus] = None,
        scheduled_time: Optional[datetime] = None,
        taken_at: Optional[datetime] = None,
        notes: Optional[str] = None,
        db: Optional[Session] = None
    ) -> models.AdherenceRecord:
        """
        Record an intake event

        Args:
            user_id: Patient reporting the intake
            medication_id: Medication owned by the patient
            status: taken, missed or skipped (default taken)
            scheduled_time: When the dose was due (default now)
            taken_at: When the event happened (default now)
            notes: Free-text notes
            db: Database session

        Returns:
            Created AdherenceRecord

        A taken record removes one unit of stock in the same transaction,
        with the medication row locked against concurrent reports.
        """
        def _record(session: Session) -> models.AdherenceRecord:
            now = datetime.utcnow()
            adherence_status = _coerce_status(status)

            try:
                with transaction(session):
                    self._owned_medication(session, user_id, medication_id, lock=True)

                    record = models.AdherenceRecord(
                        user_id=user_id,
                        medication_id=medication_id,
                        status=adherence_status,
                        scheduled_time=scheduled_time or now,
                        taken_at=taken_at or now,
                        notes=notes
                    )
                    if adherence_status == AdherenceStatus.TAKEN:
                        record.stock_decremented = self._consume_stock(session, medication_id)
                    session.add(record)
            except CareSyncError:
                raise
            except SQLAlchemyError as e:
                logger.error(
                    f"Failed to record intake for user {user_id}, medication {medication_id}",
                    exc_info=True
                )
                raise InternalError("Failed to record adherence") from e

            session.refresh(record)
            logger.info(
                f"Recorded {adherence_status.value} for user {user_id}, "
                f"medication {medication_id}"
            )
            return record

        if db:
            return _record(db)

        with get_db_context() as session:
            return _record(session)

    def _validate_batch(
        self,
        session: Session,
        user_id: int,
        records: List[Dict[str, Any]]
    ) -> Dict[str, str]:
        errors: Dict[str, str] = {}
        requested = {r.get("medication_id") for r in records if r.get("medication_id") is not None}
        owned = set()
        if requested:
            owned = {
                row.id for row in session.query(models.Medication.id).filter(
                    and_(
                        models.Medication.user_id == user_id,
                        models.Medication.id.in_(requested)
                    )
                )
            }

        for index, item in enumerate(records):
            medication_id = item.get("medication_id")
            if medication_id is None:
                errors[f"records.{index}.medicationId"] = "Medication is required"
            elif medication_id not in owned:
                errors[f"records.{index}.medicationId"] = "Medication not found"
            try:
                _coerce_status(item.get("status"))
            except ValueError:
                errors[f"records.{index}.status"] = "Status must be taken, missed or skipped"
        return errors

    async def bulk_record(
        self,
        user_id: int,
        records: List[Dict[str, Any]],
        db: Optional[Session] = None
    ) -> List[models.AdherenceRecord]:
        """
        Record a batch of intake events (e.g. a device sync).

        The whole batch is validated before anything is written, then every
        record and stock change commits together or not at all.
        """
        def _bulk(session: Session) -> List[models.AdherenceRecord]:
            if not records:
                raise ValidationFailed("Records array is required", {"records": "Records array is required"})

            errors = self._validate_batch(session, user_id, records)
            if errors:
                raise ValidationFailed("Validation failed", errors)

            now = datetime.utcnow()
            created: List[models.AdherenceRecord] = []
            try:
                with transaction(session):
                    medication_ids = sorted({r["medication_id"] for r in records})
                    session.query(models.Medication).filter(
                        models.Medication.id.in_(medication_ids)
                    ).order_by(models.Medication.id).with_for_update().all()

                    for item in records:
                        adherence_status = _coerce_status(item.get("status"))
                        record = models.AdherenceRecord(
                            user_id=user_id,
                            medication_id=item["medication_id"],
                            status=adherence_status,
                            scheduled_time=item.get("scheduled_time") or now,
                            taken_at=item.get("taken_at") or now,
                            notes=item.get("notes")
                        )
                        if adherence_status == AdherenceStatus.TAKEN:
                            record.stock_decremented = self._consume_stock(session, item["medication_id"])
                        session.add(record)
                        created.append(record)
            except SQLAlchemyError as e:
                logger.error(f"Bulk adherence insert failed for user {user_id}", exc_info=True)
                raise InternalError("Failed to record adherence batch") from e

            for record in created:
                session.refresh(record)
            logger.info(f"Recorded {len(created)} adherence records for user {user_id}")
            return created

        if db:
            return _bulk(db)

        with get_db_context() as session:
            return _bulk(session)

    async def update_record(
        self,
        record_id: int,
        updates: Dict[str, Any],
        requester_id: int,
        db: Optional[Session] = None
    ) -> models.AdherenceRecord:
        """
        Correct an adherence record. Only the patient who owns it may do so;
        caregivers can read history but never edit it.

        The previous values are kept in an AdherenceCorrection row, and stock
        follows the record in or out of the taken state.
        """
        def _update(session: Session) -> models.AdherenceRecord:
            try:
                with transaction(session):
                    record = session.query(models.AdherenceRecord).filter(
                        models.AdherenceRecord.id == record_id
                    ).with_for_update().first()

                    if not record:
                        raise NotFound("Adherence record not found")
                    if record.user_id != requester_id:
                        raise AccessDenied("Access denied")

                    changes = {k: v for k, v in updates.items() if k in ALLOWED_UPDATE_FIELDS}
                    cleared = {
                        REQUIRED_UPDATE_FIELDS[k]: "Field cannot be null"
                        for k, v in changes.items()
                        if k in REQUIRED_UPDATE_FIELDS and v is None
                    }
                    if cleared:
                        raise ValidationFailed("Validation failed", cleared)
                    if "status" in changes:
                        try:
                            changes["status"] = _coerce_status(changes["status"])
                        except ValueError:
                            raise ValidationFailed(
                                "Validation failed",
                                {"status": "Status must be taken, missed or skipped"}
                            )
                    if not changes:
                        return record

                    session.add(models.AdherenceCorrection(
                        record_id=record.id,
                        corrected_by=requester_id,
                        previous={k: _snapshot(getattr(record, k)) for k in changes},
                        changes={k: _snapshot(v) for k, v in changes.items()}
                    ))

                    was_taken = record.status == AdherenceStatus.TAKEN
                    will_be_taken = changes.get("status", record.status) == AdherenceStatus.TAKEN
                    if will_be_taken and not was_taken:
                        record.stock_decremented = self._consume_stock(session, record.medication_id)
                    elif was_taken and not will_be_taken:
                        if record.stock_decremented:
                            self._restore_stock(session, record.medication_id)
                        record.stock_decremented = False

                    for field, value in changes.items():
                        setattr(record, field, value)
            except CareSyncError:
                raise
            except SQLAlchemyError as e:
                logger.error(f"Failed to update adherence record {record_id}", exc_info=True)
                raise InternalError("Failed to update adherence record") from e

            session.refresh(record)
            logger.info(f"User {requester_id} corrected adherence record {record_id}")
            return record

        if db:
            return _update(db)

        with get_db_context() as session:
            return _update(session)

    # ==================== READS ====================

    def _records_query(
        self,
        session: Session,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        medication_id: Optional[int] = None
    ):
        query = session.query(models.AdherenceRecord).filter(
            models.AdherenceRecord.user_id == user_id
        )
        if start:
            query = query.filter(models.AdherenceRecord.taken_at >= start)
        if end:
            query = query.filter(models.AdherenceRecord.taken_at <= end)
        if medication_id:
            query = query.filter(models.AdherenceRecord.medication_id == medication_id)
        return query

    def _medications_by_id(self, session: Session, records) -> Dict[int, models.Medication]:
        ids = {r.medication_id for r in records}
        if not ids:
            return {}
        return {
            m.id: m for m in session.query(models.Medication).filter(models.Medication.id.in_(ids))
        }

    async def describe_records(
        self,
        records: List[models.AdherenceRecord],
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """Serialize freshly written records with their medication summaries"""
        def _describe(session: Session) -> List[Dict[str, Any]]:
            meds = self._medications_by_id(session, records)
            return [serialize_record(r, meds.get(r.medication_id)) for r in records]

        if db:
            return _describe(db)

        with get_db_context() as session:
            return _describe(session)

    async def list_records(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 20,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        medication_id: Optional[int] = None,
        db: Optional[Session] = None
    ) -> Tuple[List[Dict[str, Any]], int]:
        """Page of records, newest first, with the total count"""
        def _list(session: Session) -> Tuple[List[Dict[str, Any]], int]:
            query = self._records_query(session, user_id, start, end, medication_id)
            total = query.count()
            rows = query.order_by(desc(models.AdherenceRecord.taken_at)).offset(
                (page - 1) * limit
            ).limit(limit).all()
            meds = self._medications_by_id(session, rows)
            return [serialize_record(r, meds.get(r.medication_id)) for r in rows], total

        if db:
            return _list(db)

        with get_db_context() as session:
            return _list(session)

    async def get_record(
        self,
        record_id: int,
        db: Optional[Session] = None
    ) -> Dict[str, Any]:
        """Single record with its medication summary"""
        def _get(session: Session) -> Dict[str, Any]:
            record = session.query(models.AdherenceRecord).filter(
                models.AdherenceRecord.id == record_id
            ).first()
            if not record:
                raise NotFound("Adherence record not found")
            medication = session.query(models.Medication).filter(
                models.Medication.id == record.medication_id
            ).first()
            return serialize_record(record, medication)

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)

    async def get_stats(
        self,
        user_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        period: str = "month",
        db: Optional[Session] = None
    ) -> Dict[str, Any]:
        """
        Adherence rate and counts. Without an explicit range the last
        DEFAULT_STATS_DAYS days are used.
        """
        def _stats(session: Session) -> Dict[str, Any]:
            range_start, range_end = start, end
            if not (range_start and range_end):
                range_end = datetime.utcnow()
                range_start = range_end - timedelta(days=settings.DEFAULT_STATS_DAYS)
            records = self._records_query(session, user_id, range_start, range_end).all()
            summary = adherence_stats.summarize(records)
            summary["period"] = period
            return summary

        if db:
            return _stats(db)

        with get_db_context() as session:
            return _stats(session)

    async def get_trends(
        self,
        user_id: int,
        days: int = 30,
        now: Optional[datetime] = None,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """Daily adherence buckets for the last `days` days"""
        def _trends(session: Session) -> List[Dict[str, Any]]:
            reference = now or datetime.utcnow()
            # one spare day so the reference-timezone date window is fully covered
            since = reference - timedelta(days=days + 1)
            records = self._records_query(session, user_id, start=since).order_by(
                models.AdherenceRecord.taken_at
            ).all()
            return adherence_stats.trends(records, window_days=days, now=reference)

        if db:
            return _trends(db)

        with get_db_context() as session:
            return _trends(session)

    async def get_medication_adherence(
        self,
        user_id: int,
        medication_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        db: Optional[Session] = None
    ) -> Dict[str, Any]:
        """Records and stats for one medication"""
        def _get(session: Session) -> Dict[str, Any]:
            records = self._records_query(
                session, user_id, start, end, medication_id
            ).order_by(desc(models.AdherenceRecord.taken_at)).all()
            meds = self._medications_by_id(session, records)
            return {
                "medication_id": medication_id,
                "records": [serialize_record(r, meds.get(r.medication_id)) for r in records],
                "stats": adherence_stats.medication_stats(records, medication_id),
            }

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)

    async def get_records_between(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """Chronological records in [start, end], used for reports"""
        def _get(session: Session) -> List[Dict[str, Any]]:
            records = self._records_query(session, user_id, start, end).order_by(
                models.AdherenceRecord.taken_at
            ).all()
            meds = self._medications_by_id(session, records)
            return [serialize_record(r, meds.get(r.medication_id)) for r in records]

        if db:
            return _get(db)

        with get_db_context() as session:
            return _get(session)


# Singleton instance
adherence_service = AdherenceService()
