from .protocol import (
    ELEMENT_ID_ATTR,
    ELEMENT_NAME_ATTR,
    InvalidInspectorMessage,
    parse_inbound,
    parse_outbound,
    to_wire,
)

__all__ = [
    "ELEMENT_ID_ATTR",
    "ELEMENT_NAME_ATTR",
    "InvalidInspectorMessage",
    "parse_inbound",
    "parse_outbound",
    "to_wire",
]
