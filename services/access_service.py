"""
Access Service
Relationship-based authorization gate for cross-user data access
"""

import logging
from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_

from database import get_db_context
from config import engine_config
import models
from services.exceptions import AccessDenied


logger = logging.getLogger(__name__)


def _role(user: models.User) -> str:
    role = user.role
    return getattr(role, "value", role)


class AccessService:
    """
    Decides whether a requester may act on a target user's data.

    Rules, first match wins:
        1. requester is the target
        2. requester is an admin or healthcare provider
        3. requester is a caregiver with an active, verified relationship
           to the target
        4. otherwise denied
    """

    def check(
        self,
        session: Session,
        requester: models.User,
        target_user_id: int,
        capability: Optional[str] = None,
        lock: bool = False
    ) -> bool:
        """
        Evaluate the rules against the session's current snapshot.

        With lock=True the relationship row is read FOR SHARE, so it cannot
        be revoked until the caller's transaction ends.
        """
        if requester.id == target_user_id:
            return True

        role = _role(requester)
        if role in engine_config.PRIVILEGED_ROLES:
            return True

        if role != models.UserRole.CAREGIVER.value:
            return False

        query = session.query(models.CaregiverPatient).filter(
            and_(
                models.CaregiverPatient.caregiver_id == requester.id,
                models.CaregiverPatient.patient_id == target_user_id,
                models.CaregiverPatient.is_active == True,
                models.CaregiverPatient.is_verified == True
            )
        )
        if lock:
            query = query.with_for_update(read=True)

        relation = query.first()
        if relation is None:
            return False

        if capability and (relation.permissions or {}).get(capability) is False:
            return False

        return True

    async def authorize(
        self,
        requester: models.User,
        target_user_id: int,
        capability: Optional[str] = None,
        lock: bool = False,
        db: Optional[Session] = None
    ) -> bool:
        """Return whether requester may act on target_user_id's data"""
        if db:
            return self.check(db, requester, target_user_id, capability, lock)

        with get_db_context() as session:
            return self.check(session, requester, target_user_id, capability, lock)

    async def ensure_access(
        self,
        requester: models.User,
        target_user_id: int,
        capability: Optional[str] = None,
        lock: bool = False,
        db: Optional[Session] = None
    ) -> int:
        """
        Raise AccessDenied unless authorized.

        Returns:
            target_user_id, for use as the scope of the guarded operation
        """
        allowed = await self.authorize(
            requester, target_user_id, capability=capability, lock=lock, db=db
        )
        if not allowed:
            logger.warning(
                f"Denied user {requester.id} ({_role(requester)}) access to user {target_user_id}"
            )
            raise AccessDenied()
        return target_user_id


# Singleton instance
access_service = AccessService()
