# archie_sandbox/inspector/protocol.py
"""
Window-message protocol between the in-browser inspector and its host frame.

The inspector runs inside the dev app's iframe. The host frame sends it
commands (toggle inspection, clear selection, navigate, ...) and receives
events back (element selected/inspected, navigation state, ...). Every
message is a JSON object tagged by ``type``.

Both directions are modeled as closed tagged unions. ``parse_inbound`` and
``parse_outbound`` narrow a raw payload to exactly one message class and
reject unknown tags or missing fields instead of trusting the shape.

Element identity attributes come from the build-time source instrumentation:
``data-archie-id`` / ``data-archie-name`` plus the component path, file and
line/column span.
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator
from typing_extensions import Annotated

ELEMENT_ID_ATTR = "data-archie-id"
ELEMENT_NAME_ATTR = "data-archie-name"


class InvalidInspectorMessage(ValueError):
    """Raised when a payload is not a well-formed protocol message."""


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


# ---------- payloads ----------

class ElementData(_Message):
    """Source coordinates of one instrumented element."""
    id: str
    name: str = ""
    path: str = ""
    line: int = 0
    file: str = ""
    line_start: int = Field(0, alias="lineStart")
    line_end: int = Field(0, alias="lineEnd")
    col_start: int = Field(0, alias="colStart")
    col_end: int = Field(0, alias="colEnd")


class ElementMetrics(_Message):
    width: float
    height: float
    x: float
    y: float


class ElementDetails(ElementData):
    metrics: ElementMetrics
    color: Optional[str] = None


class ElementRef(_Message):
    id: str


class NavigationState(_Message):
    can_go_back: bool = Field(False, alias="canGoBack")
    can_go_forward: bool = Field(False, alias="canGoForward")
    current_path: str = Field(alias="currentPath")


class CurrentUrl(_Message):
    path: str
    search: str = ""
    hash: str = ""


# ---------- inbound: host frame -> inspector ----------

class ToggleInspection(_Message):
    type: Literal["TOGGLE_INSPECTION"] = "TOGGLE_INSPECTION"
    enabled: bool


class ClearSelection(_Message):
    type: Literal["CLEAR_SELECTION"] = "CLEAR_SELECTION"


class RemoveElement(_Message):
    type: Literal["REMOVE_ELEMENT"] = "REMOVE_ELEMENT"
    id: str = Field(min_length=1)


class NavigationAction(_Message):
    type: Literal["NAVIGATION_ACTION"] = "NAVIGATION_ACTION"
    action: Literal["back", "forward", "navigate", "reload"]
    url: Optional[str] = None

    @model_validator(mode="after")
    def _url_for_navigate(self):
        if self.action == "navigate" and not self.url:
            raise ValueError("url is required when action is 'navigate'")
        return self


class RequestCurrentUrl(_Message):
    type: Literal["REQUEST_CURRENT_URL"] = "REQUEST_CURRENT_URL"


InboundMessage = Annotated[
    Union[ToggleInspection, ClearSelection, RemoveElement, NavigationAction, RequestCurrentUrl],
    Field(discriminator="type"),
]


# ---------- outbound: inspector -> host frame ----------

class ElementSelected(_Message):
    type: Literal["ELEMENT_SELECTED"] = "ELEMENT_SELECTED"
    data: ElementDetails


class ElementInspected(_Message):
    type: Literal["ELEMENT_INSPECTED"] = "ELEMENT_INSPECTED"
    data: ElementDetails


class ElementDeselected(_Message):
    type: Literal["ELEMENT_DESELECTED"] = "ELEMENT_DESELECTED"
    data: ElementRef


class ElementRemoved(_Message):
    type: Literal["ELEMENT_REMOVED"] = "ELEMENT_REMOVED"
    data: ElementRef


class SelectionsCleared(_Message):
    type: Literal["SELECTIONS_CLEARED"] = "SELECTIONS_CLEARED"


class NavigationStateMessage(_Message):
    type: Literal["NAVIGATION_STATE"] = "NAVIGATION_STATE"
    data: NavigationState


class CurrentUrlMessage(_Message):
    type: Literal["CURRENT_URL"] = "CURRENT_URL"
    data: CurrentUrl


class InspectionActive(_Message):
    type: Literal["INSPECTION_ACTIVE"] = "INSPECTION_ACTIVE"


OutboundMessage = Annotated[
    Union[
        ElementSelected,
        ElementInspected,
        ElementDeselected,
        ElementRemoved,
        SelectionsCleared,
        NavigationStateMessage,
        CurrentUrlMessage,
        InspectionActive,
    ],
    Field(discriminator="type"),
]

_inbound = TypeAdapter(InboundMessage)
_outbound = TypeAdapter(OutboundMessage)


def _parse(adapter: TypeAdapter, payload: Any, direction: str):
    try:
        if isinstance(payload, (str, bytes)):
            return adapter.validate_json(payload)
        return adapter.validate_python(payload)
    except ValidationError as e:
        raise InvalidInspectorMessage(f"Invalid {direction} inspector message: {e}") from e


def parse_inbound(payload: Any):
    """Narrow a raw host-frame command (dict or JSON text) to its message class."""
    return _parse(_inbound, payload, "inbound")


def parse_outbound(payload: Any):
    """Narrow a raw inspector event (dict or JSON text) to its message class."""
    return _parse(_outbound, payload, "outbound")


def to_wire(message: _Message) -> dict:
    """Serialize a message the way the browser side expects it (camelCase keys)."""
    return message.model_dump(by_alias=True, exclude_none=True)
