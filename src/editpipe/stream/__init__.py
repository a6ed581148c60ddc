from .scanner import (  # noqa: F401
    IncompleteTag,
    TagDescriptor,
    TagStreamScanner,
    ascan_stream,
    parse_attributes,
    scan_stream,
)
