"""
Caregiver Service
Lifecycle of caregiver-patient relationships: invite, accept, decline, remove
"""

import logging
from typing import Dict, List, Optional, Any
from sqlalchemy.orm import Session
from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError

from database import get_db_context, transaction
from config import engine_config
import models
from models import UserRole
from services.exceptions import AccessDenied, Conflict, NotFound, ValidationFailed


logger = logging.getLogger(__name__)


def _status_label(relation: models.CaregiverPatient) -> str:
    return "Active" if relation.is_verified else "Pending"


def _user_summary(user: models.User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "phone": user.phone,
    }


class CaregiverService:
    """
    Service for caregiver relationships.

    States: pending (verified=False, active=True) -> accepted (verified=True);
    pending or accepted -> closed (active=False). Closed is terminal; a new
    invite creates a new row.
    """

    async def invite_caregiver(
        self,
        patient: models.User,
        email: str,
        relationship_type: Optional[str] = None,
        permissions: Optional[Dict[str, bool]] = None,
        db: Optional[Session] = None
    ) -> models.CaregiverPatient:
        """
        Create a pending relationship from the patient to the caregiver
        registered under `email`.

        Raises:
            AccessDenied: requester is not a patient
            NotFound: no user with that email
            ValidationFailed: self-invite or the user is not a caregiver
            Conflict: an active relationship already exists
        """
        def _invite(session: Session) -> models.CaregiverPatient:
            if patient.role != UserRole.PATIENT:
                raise AccessDenied("Only patients can invite caregivers")

            caregiver = session.query(models.User).filter(
                models.User.email == email
            ).first()
            if not caregiver:
                raise NotFound("User not found. Please ask them to register first.")
            if caregiver.id == patient.id:
                raise ValidationFailed("You cannot invite yourself.", {"email": "You cannot invite yourself."})
            if caregiver.role != UserRole.CAREGIVER:
                raise ValidationFailed(
                    "User is not registered as a caregiver.",
                    {"email": "User is not registered as a caregiver."}
                )

            try:
                with transaction(session):
                    existing = session.query(models.CaregiverPatient).filter(
                        and_(
                            models.CaregiverPatient.caregiver_id == caregiver.id,
                            models.CaregiverPatient.patient_id == patient.id,
                            models.CaregiverPatient.is_active == True
                        )
                    ).first()
                    if existing:
                        raise Conflict("Caregiver already connected.")

                    relation = models.CaregiverPatient(
                        caregiver_id=caregiver.id,
                        patient_id=patient.id,
                        relationship_type=relationship_type or "other",
                        permissions=permissions or dict(engine_config.DEFAULT_PERMISSIONS),
                        is_verified=False,
                        is_active=True
                    )
                    session.add(relation)
            except IntegrityError:
                # lost a race with a concurrent invite for the same pair
                raise Conflict("Caregiver already connected.")

            session.refresh(relation)
            logger.info(f"Caregiver invited: {email} by user {patient.id}")
            return relation

        if db:
            return _invite(db)

        with get_db_context() as session:
            return _invite(session)

    def _pending_for(
        self,
        session: Session,
        relationship_id: int,
        caregiver_id: int
    ) -> models.CaregiverPatient:
        relation = session.query(models.CaregiverPatient).filter(
            and_(
                models.CaregiverPatient.id == relationship_id,
                models.CaregiverPatient.caregiver_id == caregiver_id,
                models.CaregiverPatient.is_verified == False,
                models.CaregiverPatient.is_active == True
            )
        ).with_for_update().first()
        if not relation:
            raise NotFound("Invitation not found")
        return relation

    async def accept_invitation(
        self,
        relationship_id: int,
        caregiver: models.User,
        db: Optional[Session] = None
    ) -> models.CaregiverPatient:
        """Pending -> accepted"""
        def _accept(session: Session) -> models.CaregiverPatient:
            with transaction(session):
                relation = self._pending_for(session, relationship_id, caregiver.id)
                relation.is_verified = True
            session.refresh(relation)
            logger.info(f"Caregiver {caregiver.email} accepted invitation {relationship_id}")
            return relation

        if db:
            return _accept(db)

        with get_db_context() as session:
            return _accept(session)

    async def decline_invitation(
        self,
        relationship_id: int,
        caregiver: models.User,
        db: Optional[Session] = None
    ) -> models.CaregiverPatient:
        """Pending -> closed"""
        def _decline(session: Session) -> models.CaregiverPatient:
            with transaction(session):
                relation = self._pending_for(session, relationship_id, caregiver.id)
                relation.is_active = False
            session.refresh(relation)
            logger.info(f"Caregiver {caregiver.email} declined invitation {relationship_id}")
            return relation

        if db:
            return _decline(db)

        with get_db_context() as session:
            return _decline(session)

    async def remove_caregiver(
        self,
        relationship_or_caregiver_id: int,
        patient: models.User,
        db: Optional[Session] = None
    ) -> models.CaregiverPatient:
        """
        Close the patient's active relationship, looked up by relationship id
        first and then by caregiver id.
        """
        def _remove(session: Session) -> models.CaregiverPatient:
            base = session.query(models.CaregiverPatient).filter(
                and_(
                    models.CaregiverPatient.patient_id == patient.id,
                    models.CaregiverPatient.is_active == True
                )
            )
            with transaction(session):
                relation = base.filter(
                    models.CaregiverPatient.id == relationship_or_caregiver_id
                ).with_for_update().first()
                if not relation:
                    relation = base.filter(
                        models.CaregiverPatient.caregiver_id == relationship_or_caregiver_id
                    ).with_for_update().first()
                if not relation:
                    raise NotFound("Relationship not found")
                relation.is_active = False
            session.refresh(relation)
            logger.info(f"User {patient.id} removed caregiver relationship {relation.id}")
            return relation

        if db:
            return _remove(db)

        with get_db_context() as session:
            return _remove(session)

    async def list_caregivers(
        self,
        patient_id: int,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """Open relationships of a patient with caregiver details"""
        def _list(session: Session) -> List[Dict[str, Any]]:
            rows = session.query(models.CaregiverPatient, models.User).join(
                models.User, models.User.id == models.CaregiverPatient.caregiver_id
            ).filter(
                and_(
                    models.CaregiverPatient.patient_id == patient_id,
                    models.CaregiverPatient.is_active == True
                )
            ).order_by(models.CaregiverPatient.id).all()

            return [
                {
                    **_user_summary(user),
                    "relationship_id": relation.id,
                    "relationship_type": relation.relationship_type,
                    "permissions": relation.permissions or {},
                    "status": _status_label(relation),
                }
                for relation, user in rows
            ]

        if db:
            return _list(db)

        with get_db_context() as session:
            return _list(session)

    async def list_pending_invitations(
        self,
        caregiver_id: int,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """Invitations waiting on the caregiver"""
        def _list(session: Session) -> List[Dict[str, Any]]:
            rows = session.query(models.CaregiverPatient, models.User).join(
                models.User, models.User.id == models.CaregiverPatient.patient_id
            ).filter(
                and_(
                    models.CaregiverPatient.caregiver_id == caregiver_id,
                    models.CaregiverPatient.is_verified == False,
                    models.CaregiverPatient.is_active == True
                )
            ).order_by(models.CaregiverPatient.id).all()

            return [
                {
                    "id": relation.id,
                    "patient_id": user.id,
                    "relationship_type": relation.relationship_type,
                    "permissions": relation.permissions or {},
                    "patient_name": user.full_name,
                    "patient_email": user.email,
                    "created_at": relation.created_at,
                }
                for relation, user in rows
            ]

        if db:
            return _list(db)

        with get_db_context() as session:
            return _list(session)

    async def list_patients(
        self,
        caregiver_id: int,
        db: Optional[Session] = None
    ) -> List[Dict[str, Any]]:
        """Patients who granted the caregiver verified access"""
        def _list(session: Session) -> List[Dict[str, Any]]:
            rows = session.query(models.CaregiverPatient, models.User).join(
                models.User, models.User.id == models.CaregiverPatient.patient_id
            ).filter(
                and_(
                    models.CaregiverPatient.caregiver_id == caregiver_id,
                    models.CaregiverPatient.is_verified == True,
                    models.CaregiverPatient.is_active == True
                )
            ).order_by(models.CaregiverPatient.id).all()

            return [
                {
                    "id": relation.id,
                    "patient_id": user.id,
                    "relationship_type": relation.relationship_type,
                    "status": _status_label(relation),
                    "patient": _user_summary(user),
                }
                for relation, user in rows
            ]

        if db:
            return _list(db)

        with get_db_context() as session:
            return _list(session)


# Singleton instance
caregiver_service = CaregiverService()
