"""
SCORM Runtime API Service

Emulates a minimal SCORM 1.2 run-time data store for one learner playing one
content object, plus the call surface content uses to drive it. Errors are
never raised to content; they are reported through the last-error code.
"""

import logging
import re
from enum import Enum
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

MAX_VALUE_LENGTH = 4096


class ErrorCode(str, Enum):
    NO_ERROR = "0"
    GENERAL_EXCEPTION = "101"
    NOT_INITIALIZED = "112"
    READ_ONLY = "403"
    ELEMENT_NOT_FOUND = "404"
    INVALID_DATA = "405"


ERROR_MESSAGES = {
    ErrorCode.NO_ERROR.value: "No error",
    ErrorCode.GENERAL_EXCEPTION.value: "General exception",
    ErrorCode.NOT_INITIALIZED.value: "LMS not initialized",
    ErrorCode.READ_ONLY.value: "Element is read only",
    ErrorCode.ELEMENT_NOT_FOUND.value: "Element not found",
    ErrorCode.INVALID_DATA.value: "Invalid data",
}


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    TERMINATED = "terminated"


READ_ONLY_ELEMENTS = frozenset({
    "cmi.core.student_id",
    "cmi.core.student_name",
    "cmi.core.credit",
    "cmi.core.entry",
    "cmi.core.lesson_mode",
    "cmi.core.total_time",
    "cmi.launch_data",
    "cmi.comments_from_lms",
})

LESSON_STATUS_VALUES = frozenset({
    "passed", "completed", "failed", "incomplete", "browsed", "not attempted",
})
EXIT_VALUES = frozenset({"time-out", "suspend", "logout", "normal", ""})
SCORE_ELEMENTS = frozenset({
    "cmi.core.score.raw", "cmi.core.score.max", "cmi.core.score.min",
})
TIME_ELEMENTS = frozenset({"cmi.core.session_time", "cmi.core.total_time"})

SCORE_PATTERN = re.compile(r"^-?\d*\.?\d*$", re.ASCII)
# Digit counts only; minutes/seconds are not range checked
TIME_PATTERN = re.compile(r"^\d{2,4}:\d{2}:\d{2}(\.\d{1,2})?$", re.ASCII)

SCRIPT_BLOCK_PATTERN = re.compile(
    r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE
)
JAVASCRIPT_URI_PATTERN = re.compile(r"javascript:", re.IGNORECASE)
# ASCII word characters only, Unicode whitespace
EVENT_HANDLER_PATTERN = re.compile(r"on[A-Za-z0-9_]+\s*=", re.IGNORECASE)


def _code_units(value: str) -> int:
    """Length in UTF-16 code units, the unit content scripts count in."""
    return len(value.encode("utf-16-le")) // 2


def _truncate(value: str, limit: int = MAX_VALUE_LENGTH) -> str:
    if _code_units(value) <= limit:
        return value
    encoded = value.encode("utf-16-le")[: limit * 2]
    return encoded.decode("utf-16-le", errors="ignore")


def default_data_model(student_id: Optional[str] = None,
                       student_name: Optional[str] = None) -> Dict[str, str]:
    """Initial cmi values for a fresh attempt."""
    return {
        "cmi.core.student_id": student_id or "student_001",
        "cmi.core.student_name": student_name or "Student",
        "cmi.core.lesson_location": "",
        "cmi.core.credit": "credit",
        "cmi.core.lesson_status": "not attempted",
        "cmi.core.entry": "ab-initio",
        "cmi.core.lesson_mode": "normal",
        "cmi.core.exit": "",
        "cmi.core.session_time": "00:00:00",
        "cmi.core.total_time": "00:00:00",
        "cmi.core.score.raw": "",
        "cmi.core.score.max": "",
        "cmi.core.score.min": "",
        "cmi.suspend_data": "",
        "cmi.launch_data": "",
        "cmi.comments": "",
        "cmi.comments_from_lms": "",
    }


def validate_element(element: str, value: str) -> bool:
    """Structural validation of a value written to ``element``."""
    if _code_units(value) > MAX_VALUE_LENGTH:
        return False

    if element == "cmi.core.lesson_status":
        return value in LESSON_STATUS_VALUES
    if element == "cmi.core.exit":
        return value in EXIT_VALUES
    if element in SCORE_ELEMENTS:
        return bool(SCORE_PATTERN.fullmatch(value)) and len(value) <= 10
    if element in TIME_ELEMENTS:
        return bool(TIME_PATTERN.fullmatch(value))
    return True


def sanitize_value(value: str) -> str:
    """Strip script-bearing sequences before a value is stored."""
    value = SCRIPT_BLOCK_PATTERN.sub("", value)
    value = JAVASCRIPT_URI_PATTERN.sub("", value)
    value = EVENT_HANDLER_PATTERN.sub("", value)
    return _truncate(value.strip())


class LocalRuntimeDataStore:
    """In-memory session data store for one content object.

    A new instance is created for every navigation; nothing is shared between
    instances, so no locking is involved. ``on_commit`` is the hook where a
    host can attach persistence; it receives a snapshot of the data model.
    """

    def __init__(
        self,
        student_id: Optional[str] = None,
        student_name: Optional[str] = None,
        initial_values: Optional[Dict[str, str]] = None,
        on_commit: Optional[Callable[[Dict[str, str]], None]] = None,
    ):
        self.data = default_data_model(student_id, student_name)
        if initial_values:
            self.data.update(initial_values)
        self.state = SessionState.UNINITIALIZED
        self.error_code = ErrorCode.NO_ERROR.value
        self.on_commit = on_commit

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.ACTIVE

    def _fail(self, code: ErrorCode) -> bool:
        self.error_code = code.value
        return False

    def _ok(self) -> bool:
        self.error_code = ErrorCode.NO_ERROR.value
        return True

    def initialize(self) -> bool:
        if self.state != SessionState.UNINITIALIZED:
            # Already active, or terminated for good
            return self._fail(ErrorCode.GENERAL_EXCEPTION)
        self.state = SessionState.ACTIVE
        return self._ok()

    def terminate(self) -> bool:
        if not self.is_active:
            return self._fail(ErrorCode.NOT_INITIALIZED)
        self.state = SessionState.TERMINATED
        return self._ok()

    def get_value(self, element: str) -> str:
        if not self.is_active:
            self._fail(ErrorCode.NOT_INITIALIZED)
            return ""
        self._ok()
        return self.data.get(element) or ""

    def set_value(self, element: str, value: str) -> bool:
        if not self.is_active:
            return self._fail(ErrorCode.NOT_INITIALIZED)
        if element in READ_ONLY_ELEMENTS:
            return self._fail(ErrorCode.READ_ONLY)
        if not validate_element(element, value):
            return self._fail(ErrorCode.INVALID_DATA)
        self.data[element] = sanitize_value(value)
        return self._ok()

    def commit(self) -> bool:
        if not self.is_active:
            return self._fail(ErrorCode.NOT_INITIALIZED)
        if self.on_commit is not None:
            self.on_commit(self.get_all())
        logger.debug("Runtime data committed")
        return self._ok()

    def get_last_error(self) -> str:
        return self.error_code

    def get_error_string(self, code: str) -> str:
        return ERROR_MESSAGES.get(str(code), "Unknown error")

    def get_all(self) -> Dict[str, str]:
        return dict(self.data)


class UnknownApiCallError(Exception):
    """Raised when a call name belongs to neither protocol convention."""


class RuntimeApi:
    """Canonical call surface over a data store; every call returns a string."""

    def __init__(self, data_store: LocalRuntimeDataStore):
        self.data_store = data_store

    @staticmethod
    def _flag(result: bool) -> str:
        return "true" if result else "false"

    def initialize(self, param: str = "") -> str:
        return self._flag(self.data_store.initialize())

    def terminate(self, param: str = "") -> str:
        self.data_store.commit()
        return self._flag(self.data_store.terminate())

    def get_value(self, element: str = "") -> str:
        return self.data_store.get_value(element)

    def set_value(self, element: str = "", value: str = "") -> str:
        return self._flag(self.data_store.set_value(element, value))

    def commit(self, param: str = "") -> str:
        return self._flag(self.data_store.commit())

    def get_last_error(self, param: str = "") -> str:
        return self.data_store.get_last_error()

    def get_error_string(self, code: str = "") -> str:
        return self.data_store.get_error_string(code)

    def get_diagnostic(self, code: str = "") -> str:
        return ""


# SCORM 1.2 names
LEGACY_CALLS = {
    "LMSInitialize": "initialize",
    "LMSFinish": "terminate",
    "LMSGetValue": "get_value",
    "LMSSetValue": "set_value",
    "LMSCommit": "commit",
    "LMSGetLastError": "get_last_error",
    "LMSGetErrorString": "get_error_string",
    "LMSGetDiagnostic": "get_diagnostic",
}

# SCORM 2004 names
CURRENT_CALLS = {
    "Initialize": "initialize",
    "Terminate": "terminate",
    "GetValue": "get_value",
    "SetValue": "set_value",
    "Commit": "commit",
    "GetLastError": "get_last_error",
    "GetErrorString": "get_error_string",
    "GetDiagnostic": "get_diagnostic",
}


class ProtocolAdapter:
    """Exposes one naming convention as attributes forwarding to ``RuntimeApi``.

    ``adapter.LMSSetValue("cmi.core.score.raw", "80")`` and
    ``adapter.call("LMSSetValue", "cmi.core.score.raw", "80")`` are
    equivalent.
    """

    def __init__(self, api: RuntimeApi, names: Dict[str, str]):
        self.api = api
        self.names = names

    def __getattr__(self, name: str):
        names = self.__dict__.get("names", {})
        if name not in names:
            raise AttributeError(name)
        return getattr(self.api, names[name])

    def __contains__(self, name: str) -> bool:
        return name in self.names

    def call(self, name: str, *args: str) -> str:
        if name not in self.names:
            raise UnknownApiCallError(f"Unknown API call: {name}")
        logger.debug("API call %s%r", name, args)
        return getattr(self.api, self.names[name])(*args)


def create_scorm_api(data_store: LocalRuntimeDataStore):
    """Build the legacy (``API``) and current (``API_1484_11``) surfaces."""
    api = RuntimeApi(data_store)
    return ProtocolAdapter(api, LEGACY_CALLS), ProtocolAdapter(api, CURRENT_CALLS)
