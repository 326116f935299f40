"""Error and warning types shared by the extraction pipeline."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class FormatErrorKind(str, Enum):
    BAD_MAGIC = "bad_magic"
    MISSING_JSON_CHUNK = "missing_json_chunk"
    INVALID_DOCUMENT = "invalid_document"
    TRUNCATED = "truncated"


class FormatError(Exception):
    """Malformed container: fatal for the input it was raised on."""

    def __init__(self, kind: FormatErrorKind, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        message = f"Invalid GLB/glTF ({kind.value})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class CompactionError(Exception):
    """A kept buffer view cannot be cut out of the binary payload."""


@dataclass(frozen=True)
class StructuralWarning:
    """
    Non-fatal structural problem found while decoding or pruning.

    kind is one of: unsupported_version, length_mismatch, unknown_chunk,
    extra_chunk, dangling_reference, unsupported_buffer.
    """

    kind: str
    message: str

    def __str__(self) -> str:
        return f"[{self.kind}] {self.message}"
