"""
Runtime session registry

One ``RuntimeSession`` exists per navigated-to item: it owns a fresh data
store and the bridge that exposes it. Sessions live in process memory only
and are discarded when the learner navigates away; committed values are not
persisted.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from scorm_player.services.api_bridge import (
    ApiBridge,
    ExecutionContext,
    SessionContext,
)
from scorm_player.services.runtime_api import (
    LocalRuntimeDataStore,
    UnknownApiCallError,
)

logger = logging.getLogger(__name__)


class SessionNotFoundError(Exception):
    """Raised when a runtime session id is unknown or already torn down."""


@dataclass
class RuntimeSession:
    session_id: str
    package_id: str
    item_identifier: str
    href: Optional[str]
    student_id: Optional[str]
    context: SessionContext
    bridge: ApiBridge
    host: ExecutionContext

    def call(self, method: str, *args: str) -> str:
        """Dispatch a legacy or current protocol call name."""
        if method in self.context.api:
            return self.context.api.call(method, *args)
        if method in self.context.api_1484_11:
            return self.context.api_1484_11.call(method, *args)
        raise UnknownApiCallError(f"Unknown API call: {method}")

    def snapshot(self) -> dict:
        store = self.context.data_store
        return {
            "sessionId": self.session_id,
            "packageId": self.package_id,
            "itemIdentifier": self.item_identifier,
            "href": self.href,
            "state": store.state.value,
            "lastError": store.get_last_error(),
            "data": store.get_all(),
        }


class RuntimeSessionRegistry:
    def __init__(self):
        self._sessions: Dict[str, RuntimeSession] = {}

    def open(
        self,
        package_id: str,
        item_identifier: str,
        href: Optional[str] = None,
        student_id: Optional[str] = None,
        student_name: Optional[str] = None,
    ) -> RuntimeSession:
        """Start the session for a navigated-to item.

        Navigating away discards the learner's previous session in the same
        package, so at most one session per package and learner is live.
        """
        for previous in self._sessions_for(package_id, student_id):
            self.close(previous.session_id)

        data_store = LocalRuntimeDataStore(
            student_id=student_id,
            student_name=student_name,
            initial_values={"cmi.core.lesson_location": item_identifier},
        )
        context = SessionContext(data_store)
        bridge = ApiBridge(context)
        host = ExecutionContext("host")
        bridge.install(host)

        session = RuntimeSession(
            session_id=uuid.uuid4().hex,
            package_id=package_id,
            item_identifier=item_identifier,
            href=href,
            student_id=student_id,
            context=context,
            bridge=bridge,
            host=host,
        )
        self._sessions[session.session_id] = session
        logger.info(
            f"Runtime session {session.session_id} opened for "
            f"{package_id}/{item_identifier}"
        )
        return session

    def get(self, session_id: str) -> RuntimeSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError
        return session

    def _sessions_for(
        self, package_id: str, student_id: Optional[str]
    ) -> List[RuntimeSession]:
        return [
            s for s in self._sessions.values()
            if s.package_id == package_id and s.student_id == student_id
        ]

    def close(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFoundError
        logger.info(f"Runtime session {session_id} closed")

    def __len__(self) -> int:
        return len(self._sessions)


runtime_sessions = RuntimeSessionRegistry()


def get_runtime_sessions() -> RuntimeSessionRegistry:
    """FastAPI dependency returning the process-wide session registry."""
    return runtime_sessions
