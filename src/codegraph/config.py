"""Configuration constants and environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from codegraph.errors import ConfigurationError

DEFAULT_DATA_DIR = ".codegraph"
DEFAULT_DB_NAME = "graph.db"

# Environment variable names
ENV_DB = "CODEGRAPH_DB"
ENV_TEST_ENTITIES = "CODEGRAPH_TEST_ENTITIES"
ENV_MAX_FILE_BYTES = "CODEGRAPH_MAX_FILE_BYTES"
ENV_DEBUG = "CODEGRAPH_DEBUG"
ENV_DELIMITER = "CODEGRAPH_DELIMITER"

# skip extraction for large files (likely generated/minified)
DEFAULT_MAX_FILE_BYTES = 500_000

# sentinel filter meaning "select everything"
ALL = "ALL"

DEFAULT_EXCLUDE_DIRS = frozenset(
    {
        "node_modules",
        ".git",
        "__pycache__",
        ".venv",
        "venv",
        "target",
        "dist",
        "build",
        ".next",
        DEFAULT_DATA_DIR,
    }
)


class TestEntityMode(str, Enum):
    """What ingestion does with entities classified as TEST."""

    __test__ = False  # keep pytest from collecting this enum

    STORE = "store"
    EXCLUDE = "exclude"

    @classmethod
    def parse(cls, value: str | TestEntityMode | None) -> TestEntityMode:
        if isinstance(value, TestEntityMode):
            return value
        if not value:
            raise ConfigurationError(
                "test entity mode is required: pass 'store' or 'exclude' "
                f"(or set {ENV_TEST_ENTITIES})"
            )
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ConfigurationError(
                f"invalid test entity mode {value!r}: "
                "expected 'store' or 'exclude'"
            ) from None


@dataclass
class Settings:
    """Runtime settings, usually built from the environment."""

    db_path: Path
    test_mode: TestEntityMode | None = None
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    delimiter: str = ","
    debug: bool = False

    @classmethod
    def from_env(cls, root: Path | None = None) -> Settings:
        root = root or Path.cwd()
        db = os.environ.get(ENV_DB)
        db_path = (
            Path(db) if db else root / DEFAULT_DATA_DIR / DEFAULT_DB_NAME
        )

        raw_mode = os.environ.get(ENV_TEST_ENTITIES)
        test_mode = TestEntityMode.parse(raw_mode) if raw_mode else None

        raw_max = os.environ.get(ENV_MAX_FILE_BYTES)
        try:
            max_bytes = int(raw_max) if raw_max else DEFAULT_MAX_FILE_BYTES
        except ValueError:
            raise ConfigurationError(
                f"{ENV_MAX_FILE_BYTES} must be an integer, got {raw_max!r}"
            ) from None

        return cls(
            db_path=db_path,
            test_mode=test_mode,
            max_file_bytes=max_bytes,
            delimiter=parse_delimiter(os.environ.get(ENV_DELIMITER, ",")),
            debug=bool(os.environ.get(ENV_DEBUG)),
        )

    def require_test_mode(self) -> TestEntityMode:
        if self.test_mode is None:
            return TestEntityMode.parse(None)
        return self.test_mode


_DELIMITER_NAMES = {
    "comma": ",",
    ",": ",",
    "tab": "\t",
    "\\t": "\t",
    "\t": "\t",
    "pipe": "|",
    "|": "|",
}


def parse_delimiter(value: str) -> str:
    """Resolve a delimiter name (comma, tab, pipe) or literal character."""
    delim = _DELIMITER_NAMES.get(value) or _DELIMITER_NAMES.get(value.strip())
    if delim is None:
        raise ConfigurationError(
            f"invalid delimiter {value!r}: expected comma, tab or pipe"
        )
    return delim
