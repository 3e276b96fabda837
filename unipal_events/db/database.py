"""
Database connection, session management and repositories for the UniPal Events Service.

Repositories hand out immutable pydantic records; events are written back with
a version check so two concurrent transitions on the same event cannot both win.
"""

import logging
from typing import Dict, Generator, Iterable, List, Optional, Sequence
from sqlalchemy import cast, create_engine, func, or_, select, text, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from ..core.errors import ConflictError
from ..models.event import Base, Event, EventInvitation, Feedback, utc_now
from ..models.user import User
from ..schemas.event import EventRecord
from ..schemas.invitation import InvitationRecord
from ..schemas.stats import EventRollup

logger = logging.getLogger(__name__)

EVENT_DATETIME_FIELDS = (
    "date", "approved_at", "attendance_code_expires_at", "finalized_at", "report_sent_at"
)
EVENT_IMMUTABLE_FIELDS = {"id", "version", "created_at", "updated_at"}


class DatabaseConnection:
    """
    Database connection manager for the Events Service.
    Handles the engine, session factory and table creation.
    """

    def __init__(self):
        self.engine = None
        self.SessionLocal = None
        self._initialized = False

    def initialize(self, database_url: str):
        """
        Initialize database connection.

        Args:
            database_url: Database connection URL
        """
        try:
            engine_kwargs = {"pool_pre_ping": True, "echo": False}
            if database_url.startswith("sqlite"):
                engine_kwargs["poolclass"] = StaticPool
                engine_kwargs["connect_args"] = {"check_same_thread": False}
            else:
                engine_kwargs["pool_recycle"] = 300

            self.engine = create_engine(database_url, **engine_kwargs)
            self.SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine
            )

            self._initialized = True
            logger.info("Database connection initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize database connection: {e}")
            raise

    def get_session(self) -> Generator[Session, None, None]:
        """
        Get database session.

        Yields:
            SQLAlchemy database session
        """
        if not self._initialized:
            raise RuntimeError("Database not initialized")

        session = self.SessionLocal()
        try:
            yield session
        finally:
            session.close()

    def create_tables(self):
        """Create all database tables."""
        if not self._initialized:
            raise RuntimeError("Database not initialized")

        try:
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Failed to create database tables: {e}")
            raise

    def health_check(self) -> bool:
        if not self._initialized:
            return False

        try:
            session = self.SessionLocal()
            try:
                session.execute(text("SELECT 1"))
                return True
            finally:
                session.close()
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    def close(self):
        if self.engine is not None:
            self.engine.dispose()
        self._initialized = False


class EventRepository:
    """
    Repository for Event rows, exchanged as ``EventRecord`` values.
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def to_record(event: Event) -> EventRecord:
        return EventRecord.model_validate(event)

    @staticmethod
    def _row_values(record: EventRecord) -> dict:
        """Column values for a record; JSON columns get plain JSON data."""
        values = record.model_dump(mode="json", exclude=EVENT_IMMUTABLE_FIELDS)
        for field in EVENT_DATETIME_FIELDS:
            values[field] = getattr(record, field)
        return values

    def create(self, record: EventRecord) -> EventRecord:
        """Insert a new event and return it with its id and version."""
        event = Event(**self._row_values(record))
        event.version = 1
        self.session.add(event)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.error(f"Failed to create event: {e}")
            raise ConflictError("Event could not be stored")
        self.session.refresh(event)
        return self.to_record(event)

    def get_by_id(self, event_id: int) -> Optional[EventRecord]:
        event = self.session.query(Event).filter(Event.id == event_id).first()
        return self.to_record(event) if event else None

    def save(self, record: EventRecord) -> EventRecord:
        """
        Persist a transitioned record.

        The row is only written if its version still matches the one the record
        was loaded with; otherwise ``ConflictError`` is raised and nothing changes.
        """
        values = self._row_values(record)
        values["version"] = record.version + 1
        values["updated_at"] = utc_now()

        statement = (
            update(Event)
            .where(Event.id == record.id, Event.version == record.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.session.execute(statement)
            if result.rowcount == 0:
                self.session.rollback()
                raise ConflictError("Event was modified by another request; please retry")
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.error(f"Failed to save event {record.id}: {e}")
            raise ConflictError("Event could not be stored")

        self.session.expire_all()
        return self.get_by_id(record.id)

    def list(
        self,
        skip: int = 0,
        limit: int = 100,
        status: Optional[str] = None,
        approval_status: Optional[str] = None,
        school: Optional[str] = None,
        department: Optional[str] = None,
        category: Optional[str] = None,
        upcoming_only: bool = False
    ) -> List[EventRecord]:
        """List events ordered by date with optional filters."""
        query = self._filtered(status, approval_status, school, department, category, upcoming_only)
        events = query.order_by(Event.date).offset(skip).limit(limit).all()
        return [self.to_record(event) for event in events]

    def count(
        self,
        status: Optional[str] = None,
        approval_status: Optional[str] = None,
        school: Optional[str] = None,
        department: Optional[str] = None,
        category: Optional[str] = None,
        upcoming_only: bool = False
    ) -> int:
        return self._filtered(status, approval_status, school, department, category, upcoming_only).count()

    def _filtered(self, status, approval_status, school, department, category, upcoming_only):
        query = self.session.query(Event)
        if status:
            query = query.filter(Event.status == status)
        if approval_status:
            query = query.filter(Event.approval_status == approval_status)
        if school:
            query = query.filter(Event.school == school)
        if department:
            query = query.filter(Event.department == department)
        if category:
            query = query.filter(Event.category == category)
        if upcoming_only:
            query = query.filter(Event.date >= utc_now())
        return query

    def _json_array_contains(self, column, value: int):
        """Membership test on a JSON integer array column."""
        if self.session.get_bind().dialect.name == "postgresql":
            return cast(column, JSONB).contains([value])
        elements = func.json_each(column).table_valued("value")
        return select(elements.c.value).where(elements.c.value == value).exists()

    def list_for_attendee(self, user_id: int) -> List[EventRecord]:
        """Events the user is registered for."""
        events = self.session.query(Event).filter(
            self._json_array_contains(Event.attendees, user_id)
        ).order_by(Event.date).all()
        return [self.to_record(event) for event in events]

    def list_for_coordinator(self, user_id: int) -> List[EventRecord]:
        """Events the user created or coordinates."""
        events = self.session.query(Event).filter(
            or_(Event.created_by == user_id, self._json_array_contains(Event.coordinators, user_id))
        ).order_by(Event.date).all()
        return [self.to_record(event) for event in events]

    def rollup(self, coordinator_id: Optional[int] = None) -> List[EventRollup]:
        """
        Event and attendance totals grouped by approval status, status and department.

        Args:
            coordinator_id: Only count events this user coordinates
        """
        query = self.session.query(
            Event.approval_status,
            Event.status,
            Event.department,
            func.count(Event.id),
            func.coalesce(func.sum(func.json_array_length(Event.attendance)), 0)
        )
        if coordinator_id is not None:
            query = query.filter(self._json_array_contains(Event.coordinators, coordinator_id))
        rows = query.group_by(Event.approval_status, Event.status, Event.department).all()
        return [
            EventRollup(
                approval_status=approval_status,
                status=status,
                department=department,
                events=events,
                attendance=int(attendance),
            )
            for approval_status, status, department, events, attendance in rows
        ]

    def recent(self, limit: int) -> List[EventRecord]:
        """Most recently created events, newest first."""
        events = self.session.query(Event).order_by(
            Event.created_at.desc(), Event.id.desc()
        ).limit(limit).all()
        return [self.to_record(event) for event in events]

    def delete(self, event_id: int) -> bool:
        event = self.session.query(Event).filter(Event.id == event_id).first()
        if event:
            self.session.delete(event)
            self.session.commit()
            return True
        return False


class InvitationRepository:
    """
    Repository for invitations. At most one invitation exists per (event, invitee).
    """

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def to_record(invitation: EventInvitation) -> InvitationRecord:
        return InvitationRecord.model_validate(invitation)

    def get_by_id(self, invitation_id: int) -> Optional[InvitationRecord]:
        invitation = self.session.query(EventInvitation).filter(
            EventInvitation.id == invitation_id
        ).first()
        return self.to_record(invitation) if invitation else None

    def get_for(self, event_id: int, invitee_id: int) -> Optional[InvitationRecord]:
        invitation = self._find(event_id, invitee_id)
        return self.to_record(invitation) if invitation else None

    def list_for_event(self, event_id: int) -> List[InvitationRecord]:
        invitations = self.session.query(EventInvitation).filter(
            EventInvitation.event_id == event_id
        ).order_by(EventInvitation.created_at.desc(), EventInvitation.id.desc()).all()
        return [self.to_record(i) for i in invitations]

    def list_for_invitee(self, invitee_id: int, status: Optional[str] = None) -> List[InvitationRecord]:
        query = self.session.query(EventInvitation).filter(EventInvitation.invitee_id == invitee_id)
        if status:
            query = query.filter(EventInvitation.status == status)
        invitations = query.order_by(EventInvitation.created_at.desc(), EventInvitation.id.desc()).all()
        return [self.to_record(i) for i in invitations]

    def upsert(self, record: InvitationRecord) -> InvitationRecord:
        return self.bulk_upsert([record])[0]

    def bulk_upsert(self, records: Sequence[InvitationRecord]) -> List[InvitationRecord]:
        """Insert or overwrite invitations keyed by (event_id, invitee_id)."""
        rows = []
        for record in records:
            values = record.model_dump(mode="json", exclude={"id", "created_at", "updated_at", "responded_at"})
            values["responded_at"] = record.responded_at
            invitation = self._find(record.event_id, record.invitee_id)
            if invitation is None:
                invitation = EventInvitation(**values)
                self.session.add(invitation)
            else:
                for key, value in values.items():
                    setattr(invitation, key, value)
                invitation.updated_at = utc_now()
            rows.append(invitation)

        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.error(f"Failed to store invitations: {e}")
            raise ConflictError("Invitation was modified by another request; please retry")

        for invitation in rows:
            self.session.refresh(invitation)
        return [self.to_record(i) for i in rows]

    def delete_for_event(self, event_id: int) -> int:
        deleted = self.session.query(EventInvitation).filter(
            EventInvitation.event_id == event_id
        ).delete(synchronize_session=False)
        self.session.commit()
        return deleted

    def _find(self, event_id: int, invitee_id: int) -> Optional[EventInvitation]:
        return self.session.query(EventInvitation).filter(
            EventInvitation.event_id == event_id,
            EventInvitation.invitee_id == invitee_id
        ).first()


class UserRepository:
    """Read access to the user directory."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.session.query(User).filter(User.id == user_id).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.session.query(User).filter(User.email == email.strip().lower()).first()

    def get_many(self, user_ids: Iterable[int]) -> Dict[int, User]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        users = self.session.query(User).filter(User.id.in_(ids)).all()
        return {user.id: user for user in users}

    def get_many_by_email(self, emails: Iterable[str]) -> Dict[str, User]:
        addresses = list({email.strip().lower() for email in emails if email})
        if not addresses:
            return {}
        users = self.session.query(User).filter(User.email.in_(addresses)).all()
        return {user.email: user for user in users}

    def list_by_roles(self, roles: Sequence[str]) -> List[User]:
        return self.session.query(User).filter(User.role.in_(list(roles))).order_by(User.id).all()

    def create(self, user_data: dict) -> User:
        user = User(**user_data)
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user


class FeedbackRepository:
    """Repository for attendee feedback."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, event_id: int, user_id: int, rating: int, comments: Optional[str] = None) -> Feedback:
        feedback = Feedback(event_id=event_id, user_id=user_id, rating=rating, comments=comments)
        self.session.add(feedback)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            logger.error(f"Failed to store feedback for event {event_id}: {e}")
            raise ConflictError("Feedback could not be stored")
        self.session.refresh(feedback)
        return feedback

    def list_for_event(self, event_id: int) -> List[Feedback]:
        return self.session.query(Feedback).filter(
            Feedback.event_id == event_id
        ).order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()

    def ratings_for_event(self, event_id: int) -> List[int]:
        rows = self.session.query(Feedback.rating).filter(Feedback.event_id == event_id).all()
        return [row[0] for row in rows]

    def delete_for_event(self, event_id: int) -> int:
        deleted = self.session.query(Feedback).filter(
            Feedback.event_id == event_id
        ).delete(synchronize_session=False)
        self.session.commit()
        return deleted
