"""
Partial-update protocol: response-mode negotiation and DOM-patch instructions.

A client that can apply DOM patches advertises the Turbo Stream media type in
its Accept header. Such requests get a list of ``<turbo-stream>`` elements,
each naming an action, a target element id and, for inserts and
replacements, the markup to apply. Everyone else gets the full-page flow.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union

from markupsafe import Markup

from .models import TodoEntity

TURBO_STREAM_MEDIA_TYPE = "text/vnd.turbo-stream.html"

LIST_CONTAINER_ID = "todos"


class ResponseMode(str, Enum):
    PARTIAL = "partial"
    FULL_PAGE = "full_page"


class StreamActionType(str, Enum):
    PREPEND = "prepend"
    REPLACE = "replace"
    REMOVE = "remove"


# PUBLIC_INTERFACE
def negotiate(accept: Optional[str]) -> ResponseMode:
    """
    Pick the response mode for a request from its Accept header.

    Pure function of the header: PARTIAL when the Turbo Stream media type is
    listed with a non-zero quality, FULL_PAGE otherwise.
    """
    if not accept:
        return ResponseMode.FULL_PAGE
    for part in accept.split(","):
        media_type, *params = [p.strip() for p in part.split(";")]
        if media_type.lower() != TURBO_STREAM_MEDIA_TYPE:
            continue
        quality = next((p[2:] for p in params if p.lower().startswith("q=")), "1")
        try:
            if float(quality) > 0:
                return ResponseMode.PARTIAL
        except ValueError:
            return ResponseMode.PARTIAL
    return ResponseMode.FULL_PAGE


# PUBLIC_INTERFACE
def dom_id(todo: Union[TodoEntity, int]) -> str:
    """Element id of a rendered todo item, e.g. ``todo_42``."""
    todo_id = todo if isinstance(todo, int) else todo["id"]
    return f"todo_{todo_id}"


@dataclass(frozen=True)
class StreamAction:
    """A single DOM-patch instruction."""

    action: StreamActionType
    target: str
    markup: Optional[str] = None

    @classmethod
    def prepend(cls, target: str, markup: str) -> "StreamAction":
        return cls(StreamActionType.PREPEND, target, markup)

    @classmethod
    def replace(cls, target: str, markup: str) -> "StreamAction":
        return cls(StreamActionType.REPLACE, target, markup)

    @classmethod
    def remove(cls, target: str) -> "StreamAction":
        return cls(StreamActionType.REMOVE, target)

    def render(self) -> Markup:
        head = Markup('<turbo-stream action="{}" target="{}">').format(self.action.value, self.target)
        if self.action is StreamActionType.REMOVE or self.markup is None:
            return head + Markup("</turbo-stream>")
        # markup is trusted template output
        return head + Markup("<template>") + Markup(self.markup) + Markup("</template></turbo-stream>")


# PUBLIC_INTERFACE
def render_stream(actions: Iterable[StreamAction]) -> str:
    """Serialise DOM-patch instructions into a Turbo Stream document."""
    return str(Markup("\n").join(a.render() for a in actions))

