"""
SCORM API Bridge

Connects a runtime session to content running in an isolated embedded
document. Content finds the host's API object by ascending its chain of
enclosing execution contexts (window -> parent -> ...) until one of the two
well-known bindings is present. ``ExecutionContext`` models that chain so the
discovery rules can be exercised server-side, and ``inject_bootstrap``
rewrites hosted HTML so the browser performs the same discovery on load.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from bs4 import BeautifulSoup

from scorm_player.services.runtime_api import (
    LocalRuntimeDataStore,
    ProtocolAdapter,
    create_scorm_api,
)

logger = logging.getLogger(__name__)

LEGACY_BINDING = "API"
CURRENT_BINDING = "API_1484_11"
DISCOVERY_BINDING = "findAPI"
MAX_DISCOVERY_ASCENTS = 500

# Executed inside the embedded document. Mirrors find_api() below.
DISCOVERY_BOOTSTRAP = """
window.findAPI = function(win) {
  var attempts = 0;
  while ((!win.API && !win.API_1484_11) && (win.parent != null) &&
         (win.parent != win) && attempts < 500) {
    attempts++;
    win = win.parent;
  }
  return win.API || win.API_1484_11;
};
window.addEventListener('load', function() {
  var api = window.findAPI(window);
  window.API = api;
  window.API_1484_11 = api;
});
"""


class ExecutionContext:
    """A named scope of global bindings with a link to its parent scope.

    A top-level context is its own parent, like a browser's top window.
    """

    def __init__(self, name: str, parent: Optional["ExecutionContext"] = None):
        self.name = name
        self.parent = parent if parent is not None else self
        self.bindings: Dict[str, Any] = {}

    @property
    def is_top(self) -> bool:
        return self.parent is self

    def has_api(self) -> bool:
        return bool(
            self.bindings.get(LEGACY_BINDING)
            or self.bindings.get(CURRENT_BINDING)
        )

    def __repr__(self) -> str:
        return f"ExecutionContext({self.name!r})"


def find_api(context: Optional[ExecutionContext]):
    """Ascend from ``context`` until an API binding is found.

    Stops at the first context carrying ``API`` or ``API_1484_11``, at a
    context whose parent is missing or itself, or after 500 ascents.
    Returns the ``API`` binding if present, then ``API_1484_11``, else None.
    """
    if context is None:
        return None
    attempts = 0
    while (
        not context.has_api()
        and context.parent is not None
        and context.parent is not context
        and attempts < MAX_DISCOVERY_ASCENTS
    ):
        attempts += 1
        context = context.parent
    found = context.bindings.get(LEGACY_BINDING) or context.bindings.get(
        CURRENT_BINDING
    )
    logger.debug(
        "API discovery from %r: %s after %d ascent(s)",
        context,
        "found" if found else "not found",
        attempts,
    )
    return found


@dataclass
class SessionContext:
    """Everything the bridge needs to expose one runtime session."""
    data_store: LocalRuntimeDataStore
    api: ProtocolAdapter = field(init=False)
    api_1484_11: ProtocolAdapter = field(init=False)

    def __post_init__(self):
        self.api, self.api_1484_11 = create_scorm_api(self.data_store)


class ApiBridge:
    """The only component that publishes API bindings into contexts."""

    def __init__(self, session: SessionContext):
        self.session = session

    def install(self, host: ExecutionContext) -> None:
        """Publish both API surfaces and the discovery function on the host."""
        host.bindings[LEGACY_BINDING] = self.session.api
        host.bindings[CURRENT_BINDING] = self.session.api_1484_11
        host.bindings[DISCOVERY_BINDING] = find_api
        logger.info("SCORM API installed on %r", host)

    def attach(self, content: ExecutionContext,
               parent: ExecutionContext) -> None:
        """Place an embedded context below ``parent`` and give it discovery."""
        content.parent = parent
        content.bindings[DISCOVERY_BINDING] = find_api

    def on_content_loaded(self, content: ExecutionContext):
        """Run discovery for ``content`` and republish under both names."""
        found = find_api(content)
        content.bindings[LEGACY_BINDING] = found
        content.bindings[CURRENT_BINDING] = found
        return found

    @staticmethod
    def inject_bootstrap(html: Union[bytes, str]) -> str:
        """Insert the discovery bootstrap into an HTML document's head.

        Raw bytes are decoded by BeautifulSoup from the document's declared
        or detected encoding. The result is text whose charset declaration,
        if any, is rewritten to UTF-8.
        """
        soup = BeautifulSoup(html, "html.parser")
        script = soup.new_tag("script")
        script.string = DISCOVERY_BOOTSTRAP

        if soup.head is not None:
            soup.head.append(script)
        elif soup.html is not None:
            head = soup.new_tag("head")
            head.append(script)
            soup.html.insert(0, head)
        else:
            soup.insert(0, script)
        return str(soup)


def is_html_path(path: str) -> bool:
    lower = path.lower()
    return lower.endswith(".html") or lower.endswith(".htm")
