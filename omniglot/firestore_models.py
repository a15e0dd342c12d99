"""
Firestore document models using Python dataclasses.

Each model includes:
  - An `id` field for the Firestore document ID
  - A `to_dict()` instance method for serialization
  - A `from_dict(data, doc_id)` classmethod for deserialization

The DAO layer hands out plain dicts; services lift them into these models
where a rule has to be enforced (reschedule negotiation, rating guard,
flashcard priorities) and write the resulting fields back.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from omniglot.errors import Conflict, ValidationError

DATE_FORMAT = "%Y-%m-%d"
TIMESLOT_FORMAT = "%H:%M"

LOCATION_TYPES = ("online", "at-student", "at-teacher")
CLASS_TYPES = ("private", "group")
LEVELS = ("beginner", "elementary", "intermediate", "upper-intermediate", "advanced", "native")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_datetime(value) -> Optional[datetime]:
    """Convert a value to datetime. Accepts datetime objects, ISO-format
    strings, and Firestore DatetimeWithNanoseconds objects."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        value = value.replace("Z", "+00:00")
        try:
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_schedule(date: str, timeslot: str) -> datetime:
    """Return the naive local start datetime for a `YYYY-MM-DD` date and an
    `HH:MM` timeslot, raising ValidationError on malformed input."""
    try:
        return datetime.strptime(f"{date} {timeslot}", f"{DATE_FORMAT} {TIMESLOT_FORMAT}")
    except (TypeError, ValueError):
        raise ValidationError("Please pick a valid date (YYYY-MM-DD) and time slot (HH:MM).")


def _clean_languages(values) -> List[str]:
    seen = []
    for value in values or []:
        value = (value or "").strip().lower()
        if value and value not in seen:
            seen.append(value)
    return seen


# ===========================================================================
# 1. User
# ===========================================================================

@dataclass
class User:
    id: Optional[str] = None          # Firebase Auth UID
    username: str = ""
    email: str = ""
    gender: Optional[str] = None
    birthdate: Optional[str] = None
    country: Optional[str] = None
    profile_picture: Optional[str] = None
    profile_picture_path: Optional[str] = None
    teaches: List[str] = field(default_factory=list)
    learns: List[str] = field(default_factory=list)
    private: bool = False
    professional: bool = False
    chat_ids: List[str] = field(default_factory=list)
    offer_ids: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.teaches = _clean_languages(self.teaches)
        self.learns = _clean_languages(self.learns)

    def validate(self):
        if not self.username or not self.email:
            raise ValidationError("Please provide your username and email.")
        if not self.teaches and not self.learns:
            raise ValidationError("Please choose at least one language you'd like to teach or learn.")

    def participant_card(self) -> Dict[str, Any]:
        """Display metadata attached to chats and notifications."""
        return {
            "id": self.id,
            "username": self.username,
            "profile_picture": self.profile_picture,
            "professional": self.professional,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "email": self.email,
            "gender": self.gender,
            "birthdate": self.birthdate,
            "country": self.country,
            "profile_picture": self.profile_picture,
            "profile_picture_path": self.profile_picture_path,
            "teaches": self.teaches,
            "learns": self.learns,
            "private": self.private,
            "professional": self.professional,
            "chat_ids": self.chat_ids,
            "offer_ids": self.offer_ids,
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> User:
        return cls(
            id=doc_id or data.get("id"),
            username=data.get("username", ""),
            email=data.get("email", ""),
            gender=data.get("gender"),
            birthdate=data.get("birthdate"),
            country=data.get("country"),
            profile_picture=data.get("profile_picture"),
            profile_picture_path=data.get("profile_picture_path"),
            teaches=list(data.get("teaches") or []),
            learns=list(data.get("learns") or []),
            private=bool(data.get("private", False)),
            professional=bool(data.get("professional", False)),
            chat_ids=list(data.get("chat_ids") or []),
            offer_ids=list(data.get("offer_ids") or []),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


# ===========================================================================
# 2. Offer
# ===========================================================================

@dataclass
class Offer:
    id: Optional[str] = None
    teacher_id: Optional[str] = None
    name: str = ""
    language: str = ""
    level: str = ""
    location_type: str = "online"
    location: Optional[str] = None
    duration: int = 60                # minutes
    class_type: str = "private"
    max_group_size: Optional[int] = None
    price: float = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def validate(self):
        if not all([self.name, self.language, self.level, self.location_type, self.class_type]):
            raise ValidationError()
        if self.location_type not in LOCATION_TYPES:
            raise ValidationError("Unknown location type.")
        if self.class_type not in CLASS_TYPES:
            raise ValidationError("Unknown class type.")
        if not self.duration or self.duration <= 0:
            raise ValidationError("Duration must be a positive number of minutes.")
        if self.price is None or self.price < 0:
            raise ValidationError("Price cannot be negative.")
        if self.class_type == "group":
            if not self.max_group_size or self.max_group_size < 2:
                raise ValidationError("Group classes need a maximum group size of at least 2.")
        elif self.max_group_size is not None:
            raise ValidationError("Only group classes have a maximum group size.")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "teacher_id": self.teacher_id,
            "name": self.name,
            "language": self.language,
            "level": self.level,
            "location_type": self.location_type,
            "location": self.location,
            "duration": self.duration,
            "class_type": self.class_type,
            "max_group_size": self.max_group_size,
            "price": self.price,
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Offer:
        return cls(
            id=doc_id or data.get("id"),
            teacher_id=data.get("teacher_id"),
            name=data.get("name", ""),
            language=data.get("language", ""),
            level=data.get("level", ""),
            location_type=data.get("location_type", "online"),
            location=data.get("location"),
            duration=int(data.get("duration") or 0),
            class_type=data.get("class_type", "private"),
            max_group_size=data.get("max_group_size"),
            price=data.get("price", 0),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


# ===========================================================================
# 3. Class + Reschedule
# ===========================================================================

class RescheduleStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


@dataclass
class Reschedule:
    new_date: str
    new_timeslot: str
    initiator_id: str
    status: RescheduleStatus = RescheduleStatus.PENDING
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.status == RescheduleStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "new_date": self.new_date,
            "new_timeslot": self.new_timeslot,
            "initiator_id": self.initiator_id,
            "status": self.status.value,
            "created_at": self.created_at or _now(),
            "resolved_at": self.resolved_at,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional[Reschedule]:
        if not data:
            return None
        return cls(
            new_date=data.get("new_date", ""),
            new_timeslot=data.get("new_timeslot", ""),
            initiator_id=data.get("initiator_id", ""),
            status=RescheduleStatus(data.get("status", "pending")),
            created_at=_parse_datetime(data.get("created_at")),
            resolved_at=_parse_datetime(data.get("resolved_at")),
        )


@dataclass
class Class:
    """One booked lesson. The document ID is the payment session ID."""

    id: Optional[str] = None
    student_id: Optional[str] = None
    teacher_id: Optional[str] = None
    offer_id: Optional[str] = None
    date: str = ""                    # YYYY-MM-DD
    timeslot: str = ""                # HH:MM
    language: str = ""
    level: str = ""
    class_type: str = "private"
    max_group_size: Optional[int] = None
    location_type: str = "online"
    location: Optional[str] = None
    duration: int = 60
    is_rated: bool = False
    reschedule: Optional[Reschedule] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_offer(cls, offer: Offer, student_id: str, date: str, timeslot: str,
                   payment_session_id: Optional[str] = None) -> Class:
        parse_schedule(date, timeslot)
        return cls(
            id=payment_session_id,
            student_id=student_id,
            teacher_id=offer.teacher_id,
            offer_id=offer.id,
            date=date,
            timeslot=timeslot,
            language=offer.language,
            level=offer.level,
            class_type=offer.class_type,
            max_group_size=offer.max_group_size,
            location_type=offer.location_type,
            location=offer.location,
            duration=offer.duration,
        )

    # -- Schedule ------------------------------------------------------------

    @property
    def starts_at(self) -> datetime:
        return parse_schedule(self.date, self.timeslot)

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration)

    def is_past(self, now: Optional[datetime] = None) -> bool:
        return self.ends_at <= (now or datetime.now())

    # -- Participants --------------------------------------------------------

    def role_of(self, user_id: str) -> Optional[str]:
        if user_id == self.student_id:
            return "student"
        if user_id == self.teacher_id:
            return "teacher"
        return None

    def other_party(self, user_id: str) -> Optional[str]:
        if user_id == self.student_id:
            return self.teacher_id
        if user_id == self.teacher_id:
            return self.student_id
        return None

    # -- Reschedule negotiation ----------------------------------------------

    def propose_reschedule(self, new_date: str, new_timeslot: str, initiator_id: str) -> Reschedule:
        if self.reschedule and self.reschedule.is_pending:
            raise Conflict("A reschedule proposal is already waiting for an answer.")
        parse_schedule(new_date, new_timeslot)
        self.reschedule = Reschedule(
            new_date=new_date,
            new_timeslot=new_timeslot,
            initiator_id=initiator_id,
            created_at=_now(),
        )
        return self.reschedule

    def resolve_reschedule(self, accept: bool) -> Reschedule:
        if not self.reschedule or not self.reschedule.is_pending:
            raise Conflict("There is no pending reschedule proposal for this class.")
        if accept:
            self.date = self.reschedule.new_date
            self.timeslot = self.reschedule.new_timeslot
            self.reschedule.status = RescheduleStatus.ACCEPTED
        else:
            self.reschedule.status = RescheduleStatus.DECLINED
        self.reschedule.resolved_at = _now()
        return self.reschedule

    # -- Serialization -------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "student_id": self.student_id,
            "teacher_id": self.teacher_id,
            "offer_id": self.offer_id,
            "date": self.date,
            "timeslot": self.timeslot,
            "language": self.language,
            "level": self.level,
            "class_type": self.class_type,
            "max_group_size": self.max_group_size,
            "location_type": self.location_type,
            "location": self.location,
            "duration": self.duration,
            "is_rated": self.is_rated,
            "reschedule": self.reschedule.to_dict() if self.reschedule else None,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Class:
        return cls(
            id=doc_id or data.get("id"),
            student_id=data.get("student_id"),
            teacher_id=data.get("teacher_id"),
            offer_id=data.get("offer_id"),
            date=data.get("date", ""),
            timeslot=data.get("timeslot", ""),
            language=data.get("language", ""),
            level=data.get("level", ""),
            class_type=data.get("class_type", "private"),
            max_group_size=data.get("max_group_size"),
            location_type=data.get("location_type", "online"),
            location=data.get("location"),
            duration=int(data.get("duration") or 0),
            is_rated=bool(data.get("is_rated", False)),
            reschedule=Reschedule.from_dict(data.get("reschedule")),
            created_at=_parse_datetime(data.get("created_at")),
        )


# ===========================================================================
# 4. Chat / Message
# ===========================================================================

@dataclass
class Chat:
    id: Optional[str] = None
    participant_ids: List[str] = field(default_factory=list)
    message_ids: List[str] = field(default_factory=list)
    last_message_timestamp: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @staticmethod
    def id_for(user_a: str, user_b: str) -> str:
        """Deterministic document ID for the unordered pair."""
        first, second = sorted([user_a, user_b])
        return f"{first}_{second}"

    def other_participant(self, user_id: str) -> Optional[str]:
        for participant in self.participant_ids:
            if participant != user_id:
                return participant
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "participant_ids": sorted(self.participant_ids),
            "message_ids": self.message_ids,
            "last_message_timestamp": self.last_message_timestamp,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Chat:
        return cls(
            id=doc_id or data.get("id"),
            participant_ids=list(data.get("participant_ids") or []),
            message_ids=list(data.get("message_ids") or []),
            last_message_timestamp=_parse_datetime(data.get("last_message_timestamp")),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass
class Message:
    id: Optional[str] = None
    chat_id: Optional[str] = None
    sender_id: Optional[str] = None
    recipient_id: Optional[str] = None
    body: str = ""
    created_at: Optional[datetime] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe shape pushed over the socket."""
        return {
            "id": self.id,
            "chat_id": self.chat_id,
            "sender": self.sender_id,
            "recipient": self.recipient_id,
            "message": self.body,
            "timestamp": _isoformat(self.created_at),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chat_id": self.chat_id,
            "sender_id": self.sender_id,
            "recipient_id": self.recipient_id,
            "body": self.body,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Message:
        return cls(
            id=doc_id or data.get("id"),
            chat_id=data.get("chat_id"),
            sender_id=data.get("sender_id"),
            recipient_id=data.get("recipient_id"),
            body=data.get("body", ""),
            created_at=_parse_datetime(data.get("created_at")),
        )


# ===========================================================================
# 5. Review
# ===========================================================================

@dataclass
class Review:
    id: Optional[str] = None
    author_id: Optional[str] = None
    subject_id: Optional[str] = None  # the reviewed teacher
    class_id: Optional[str] = None
    rating: int = 0
    text: str = ""
    # snapshot of the class context
    date: str = ""
    language: str = ""
    level: str = ""
    class_type: str = ""
    location_type: str = ""
    created_at: Optional[datetime] = None

    @classmethod
    def for_class(cls, lesson: Class, author_id: str, rating: int, text: str) -> Review:
        return cls(
            author_id=author_id,
            subject_id=lesson.teacher_id,
            class_id=lesson.id,
            rating=rating,
            text=text or "",
            date=lesson.date,
            language=lesson.language,
            level=lesson.level,
            class_type=lesson.class_type,
            location_type=lesson.location_type,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "author_id": self.author_id,
            "subject_id": self.subject_id,
            "class_id": self.class_id,
            "rating": self.rating,
            "text": self.text,
            "date": self.date,
            "language": self.language,
            "level": self.level,
            "class_type": self.class_type,
            "location_type": self.location_type,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Review:
        return cls(
            id=doc_id or data.get("id"),
            author_id=data.get("author_id"),
            subject_id=data.get("subject_id"),
            class_id=data.get("class_id"),
            rating=data.get("rating", 0),
            text=data.get("text", ""),
            date=data.get("date", ""),
            language=data.get("language", ""),
            level=data.get("level", ""),
            class_type=data.get("class_type", ""),
            location_type=data.get("location_type", ""),
            created_at=_parse_datetime(data.get("created_at")),
        )


# ===========================================================================
# 6. Notification
# ===========================================================================

class NotificationType(str, enum.Enum):
    REVIEW = "review"
    BOOKING = "booking"
    CANCEL_STUDENT = "cancel-student"
    CANCEL_TEACHER = "cancel-teacher"
    MESSAGE = "message"
    CLONE = "clone"
    RESCHEDULE_STUDENT_PENDING = "reschedule-student-pending"
    RESCHEDULE_TEACHER_PENDING = "reschedule-teacher-pending"
    RESCHEDULE_STUDENT_ACCEPTED = "reschedule-student-accepted"
    RESCHEDULE_TEACHER_ACCEPTED = "reschedule-teacher-accepted"
    RESCHEDULE_STUDENT_DECLINED = "reschedule-student-declined"
    RESCHEDULE_TEACHER_DECLINED = "reschedule-teacher-declined"

    @classmethod
    def cancel_by(cls, role: str) -> NotificationType:
        return cls(f"cancel-{role}")

    @classmethod
    def reschedule(cls, role: str, status: str) -> NotificationType:
        return cls(f"reschedule-{role}-{status}")


@dataclass
class Notification:
    id: Optional[str] = None
    source_id: Optional[str] = None
    target_id: Optional[str] = None
    type: NotificationType = NotificationType.MESSAGE
    ref_id: Optional[str] = None      # class, deck or chat the event is about
    read: bool = False
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "type": self.type.value,
            "ref_id": self.ref_id,
            "read": self.read,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Notification:
        return cls(
            id=doc_id or data.get("id"),
            source_id=data.get("source_id"),
            target_id=data.get("target_id"),
            type=NotificationType(data.get("type", "message")),
            ref_id=data.get("ref_id"),
            read=bool(data.get("read", False)),
            created_at=_parse_datetime(data.get("created_at")),
        )


# ===========================================================================
# 7. Deck / Flashcard
# ===========================================================================

@dataclass
class Deck:
    id: Optional[str] = None
    creator_id: Optional[str] = None
    language: str = ""
    level: str = ""
    topic: str = ""
    card_ids: List[str] = field(default_factory=list)
    cloned_from: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "creator_id": self.creator_id,
            "language": self.language,
            "level": self.level,
            "topic": self.topic,
            "card_ids": self.card_ids,
            "cloned_from": self.cloned_from,
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Deck:
        return cls(
            id=doc_id or data.get("id"),
            creator_id=data.get("creator_id"),
            language=data.get("language", ""),
            level=data.get("level", ""),
            topic=data.get("topic", ""),
            card_ids=list(data.get("card_ids") or []),
            cloned_from=data.get("cloned_from"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


REVIEW_OUTCOMES = {"again": 2, "good": -1, "easy": -3}


@dataclass
class Flashcard:
    MASTERED = -10
    LOWEST_ACTIVE = -9

    id: Optional[str] = None
    deck_id: Optional[str] = None
    front: str = ""
    back: str = ""
    priority: int = 0
    created_at: Optional[datetime] = None

    @property
    def is_mastered(self) -> bool:
        return self.priority == self.MASTERED

    def review(self, outcome: str) -> int:
        """Apply a study outcome and return the new priority."""
        if outcome == "mastered":
            self.priority = self.MASTERED
            return self.priority
        if outcome not in REVIEW_OUTCOMES:
            raise ValidationError(f"Unknown review outcome: {outcome}")
        base = 0 if self.is_mastered else self.priority
        self.priority = max(self.LOWEST_ACTIVE, base + REVIEW_OUTCOMES[outcome])
        return self.priority

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deck_id": self.deck_id,
            "front": self.front,
            "back": self.back,
            "priority": self.priority,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Flashcard:
        return cls(
            id=doc_id or data.get("id"),
            deck_id=data.get("deck_id"),
            front=data.get("front", ""),
            back=data.get("back", ""),
            priority=int(data.get("priority", 0)),
            created_at=_parse_datetime(data.get("created_at")),
        )
