"""Context export: levels 0-2 in structured or tabular encoding."""

from codegraph.export.engine import (
    EDGE_FIELDS,
    LEVEL1_FIELDS,
    LEVEL2_FIELDS,
    ContextExport,
    ContextExporter,
    Encoding,
    ExportLevel,
    ExportMetadata,
    SplitExport,
    entity_fields,
    parse_tabular,
)
from codegraph.export.tabular import (
    DELIMITERS,
    TabularDecodeError,
    decode_records,
    encode_records,
)
from codegraph.export.tokens import naive_token_count, reduction

__all__ = [
    "DELIMITERS",
    "EDGE_FIELDS",
    "LEVEL1_FIELDS",
    "LEVEL2_FIELDS",
    "ContextExport",
    "ContextExporter",
    "Encoding",
    "ExportLevel",
    "ExportMetadata",
    "SplitExport",
    "TabularDecodeError",
    "decode_records",
    "encode_records",
    "entity_fields",
    "naive_token_count",
    "parse_tabular",
    "reduction",
]
