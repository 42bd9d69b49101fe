"""Enum definitions for application constants."""

from enum import Enum


class FieldType(str, Enum):
    """Closed set of field variants a form may contain."""

    TEXT = "text"
    TEXTAREA = "textarea"
    EMAIL = "email"
    NUMBER = "number"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"
    FILE = "file"
    LOCATION = "location"


CHOICE_FIELD_TYPES = frozenset({FieldType.SELECT, FieldType.RADIO, FieldType.CHECKBOX})


class LogicCondition(str, Enum):
    """Comparison applied to a trigger field's answer."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"


class FormStatus(str, Enum):
    """Publication status set by the form owner."""

    DRAFT = "Draft"
    LIVE = "Live"
    CLOSED = "Closed"


class FormVisibility(str, Enum):
    PUBLIC = "Public"
    PRIVATE = "Private"
    PASSWORD_PROTECTED = "Password Protected"


class GateStatus(str, Enum):
    """Outcome of the admission gate for a new submission attempt."""

    ALLOWED = "allowed"
    ALREADY_SUBMITTED = "already_submitted"
    CLOSED = "closed"
    DEACTIVATED = "deactivated"
    EXPIRED = "expired"
    LIMIT_REACHED = "limit_reached"


class FormActivityType(str, Enum):
    """Types of events appended to a form's activity log."""

    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    RESPONSE_RECEIVED = "response_received"
    FINAL_SUBMISSION_SAVED = "final_submission_saved"
    SETTINGS_UPDATED = "settings_updated"
    SUBMISSION_INITIATED = "submission_initiated"
    SUBMISSION_UNDONE = "submission_undone"


class DeviceType(str, Enum):
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"
    UNKNOWN = "unknown"


class SequencerState(str, Enum):
    """States of the respondent-side commit countdown."""

    IDLE = "idle"
    PENDING = "pending"
    COMMITTING = "committing"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class SequencerEventType(str, Enum):
    """Transition events emitted by the commit sequencer."""

    INITIATED = "initiated"
    CANCELLED = "cancelled"
    COMMITTED = "committed"
    FAILED = "failed"
