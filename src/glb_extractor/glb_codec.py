"""
Binary glTF (GLB) container codec.

Layout handled here:
1) 12-byte header: magic "glTF", version, total length (little-endian uint32).
2) A JSON chunk (length, type, UTF-8 text padded with spaces).
3) An optional BIN chunk (length, type, raw bytes padded with zeros).

The codec knows nothing about scene semantics apart from running the sanitizer
before every encode.
"""

import base64
import binascii
import copy
import json
import logging
import re
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import FormatError, FormatErrorKind, StructuralWarning
from .sanitizer import sanitize_document

logger = logging.getLogger(__name__)

GLB_MAGIC = 0x46546C67  # b"glTF"
GLB_VERSION = 2
GLB_HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8

CHUNK_TYPE_JSON = 0x4E4F534A  # b"JSON"
CHUNK_TYPE_BIN = 0x004E4942  # b"BIN\0"

JSON_PADDING_BYTE = b" "
BIN_PADDING_BYTE = b"\x00"

DATA_URI_RE = re.compile(r"^data:([^;,]+);base64,(.+)$", re.DOTALL)


@dataclass
class Container:
    """Decoded GLB/glTF: the JSON document plus the BIN chunk, if any."""

    document: Dict[str, Any]
    binary_payload: Optional[bytes] = None
    warnings: List[StructuralWarning] = field(default_factory=list)


def _warn(warnings: List[StructuralWarning], kind: str, message: str) -> None:
    logger.warning(message)
    warnings.append(StructuralWarning(kind, message))


def _pad_length(length: int) -> int:
    return (4 - length % 4) % 4


def _parse_document(text_bytes: bytes) -> Dict[str, Any]:
    try:
        document = json.loads(text_bytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise FormatError(FormatErrorKind.INVALID_DOCUMENT, str(exc)) from exc
    if not isinstance(document, dict):
        raise FormatError(FormatErrorKind.INVALID_DOCUMENT, "JSON root is not an object")
    return document


# -----------------------------------------------------------
# Decoding
# -----------------------------------------------------------
def decode_glb(data: bytes) -> Container:
    """
    Decode a binary glTF container.

    Args:
        data: Raw file contents.

    Returns:
        Container with the parsed document, the BIN chunk bytes (or None) and
        any structural warnings collected on the way.

    Raises:
        FormatError: bad magic, missing/undecodable JSON chunk, or truncation.
    """
    warnings: List[StructuralWarning] = []

    if len(data) < GLB_HEADER_SIZE:
        raise FormatError(FormatErrorKind.TRUNCATED, f"file is {len(data)} bytes, shorter than the GLB header")

    magic, version, total_length = struct.unpack_from("<III", data, 0)
    if magic != GLB_MAGIC:
        raise FormatError(FormatErrorKind.BAD_MAGIC, f"magic 0x{magic:08X}, expected 0x{GLB_MAGIC:08X}")

    logger.debug(f"GLB version: {version}, declared length: {total_length} bytes")
    if version != GLB_VERSION:
        _warn(warnings, "unsupported_version", f"Unsupported GLB version {version}, trying to process anyway")

    end = len(data)
    if total_length != len(data):
        _warn(
            warnings,
            "length_mismatch",
            f"GLB header declares {total_length} bytes but {len(data)} bytes were read",
        )
        end = min(total_length, len(data))

    # First chunk must be JSON
    offset = GLB_HEADER_SIZE
    if offset + CHUNK_HEADER_SIZE > end:
        raise FormatError(FormatErrorKind.MISSING_JSON_CHUNK, "no chunk follows the header")
    json_length, json_type = struct.unpack_from("<II", data, offset)
    offset += CHUNK_HEADER_SIZE
    if json_type != CHUNK_TYPE_JSON:
        raise FormatError(FormatErrorKind.MISSING_JSON_CHUNK, f"first chunk has type 0x{json_type:08X}")
    if offset + json_length > end:
        raise FormatError(FormatErrorKind.TRUNCATED, "JSON chunk runs past the end of the file")

    document = _parse_document(data[offset : offset + json_length])
    offset += json_length
    logger.debug(f"GLTF JSON parsed: {', '.join(document.keys())}")

    binary_payload: Optional[bytes] = None
    while offset + CHUNK_HEADER_SIZE <= end:
        chunk_length, chunk_type = struct.unpack_from("<II", data, offset)
        offset += CHUNK_HEADER_SIZE
        if offset + chunk_length > end:
            raise FormatError(FormatErrorKind.TRUNCATED, f"chunk 0x{chunk_type:08X} runs past the end of the file")
        chunk_data = data[offset : offset + chunk_length]
        offset += chunk_length

        if chunk_type == CHUNK_TYPE_BIN and binary_payload is None:
            logger.debug(f"BIN chunk size: {chunk_length} bytes")
            binary_payload = bytes(chunk_data)
        elif chunk_type == CHUNK_TYPE_BIN:
            _warn(warnings, "extra_chunk", "Ignoring additional BIN chunk")
        else:
            _warn(warnings, "unknown_chunk", f"Skipping unknown chunk type 0x{chunk_type:08X}")

    return Container(document=document, binary_payload=binary_payload, warnings=warnings)


def decode_gltf(data: bytes) -> Container:
    """Decode a plain .gltf JSON document; there is never a binary payload."""
    return Container(document=_parse_document(data), binary_payload=None)


def decode_data_uri(uri: str) -> Optional[Tuple[str, bytes]]:
    """Return (mime type, bytes) for a base64 `data:` URI, None for anything else."""
    match = DATA_URI_RE.match(uri or "")
    if not match:
        return None
    try:
        return match.group(1), base64.b64decode(match.group(2), validate=True)
    except binascii.Error as exc:
        logger.warning(f"Undecodable base64 data URI: {exc}")
        return None


def resolve_binary_payload(container: Container) -> Optional[bytes]:
    """
    Bytes backing buffer 0: the BIN chunk, or an embedded base64 data URI.

    External buffer files are not supported and resolve to None.
    """
    if container.binary_payload is not None:
        return container.binary_payload

    buffers = container.document.get("buffers") or []
    if buffers and isinstance(buffers[0], dict) and "uri" in buffers[0]:
        decoded = decode_data_uri(buffers[0]["uri"])
        if decoded is not None:
            return decoded[1]
        logger.warning(f"Buffer 0 references external data ({buffers[0]['uri'][:64]}), which is not supported")
    return None


def decode_container(data: bytes, filename: str) -> Container:
    """Pick the binary or plain decoder from the file name, not the content."""
    if filename.lower().endswith(".glb"):
        logger.info("Processing GLB binary format")
        return decode_glb(data)
    logger.info("Processing GLTF JSON format")
    return decode_gltf(data)


def read_container(path: Path) -> Container:
    """Read a .glb/.gltf file from disk and decode it."""
    path = Path(path)
    return decode_container(path.read_bytes(), path.name)


# -----------------------------------------------------------
# Encoding
# -----------------------------------------------------------
def encode_glb(document: Dict[str, Any], binary_payload: Optional[bytes] = None) -> bytes:
    """
    Sanitize a document and pack it, with an optional BIN chunk, into GLB bytes.

    The caller's document is not modified; a sanitized copy is serialized.

    Args:
        document: glTF JSON document.
        binary_payload: Bytes for the BIN chunk. Omitted when None or empty.

    Returns:
        The complete GLB file contents.
    """
    gltf = sanitize_document(copy.deepcopy(document))
    if "asset" not in gltf:
        gltf["asset"] = {"version": "2.0"}

    json_bytes = json.dumps(gltf, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    json_padded_length = len(json_bytes) + _pad_length(len(json_bytes))

    has_binary = bool(binary_payload)
    bin_padded_length = 0
    if has_binary:
        bin_padded_length = len(binary_payload) + _pad_length(len(binary_payload))

    total_length = GLB_HEADER_SIZE + CHUNK_HEADER_SIZE + json_padded_length
    if has_binary:
        total_length += CHUNK_HEADER_SIZE + bin_padded_length

    buffer = bytearray(total_length)
    struct.pack_into("<III", buffer, 0, GLB_MAGIC, GLB_VERSION, total_length)

    offset = GLB_HEADER_SIZE
    struct.pack_into("<II", buffer, offset, json_padded_length, CHUNK_TYPE_JSON)
    offset += CHUNK_HEADER_SIZE
    buffer[offset : offset + json_padded_length] = json_bytes.ljust(json_padded_length, JSON_PADDING_BYTE)
    offset += json_padded_length

    if has_binary:
        struct.pack_into("<II", buffer, offset, bin_padded_length, CHUNK_TYPE_BIN)
        offset += CHUNK_HEADER_SIZE
        buffer[offset : offset + bin_padded_length] = bytes(binary_payload).ljust(bin_padded_length, BIN_PADDING_BYTE)

    logger.debug(
        f"Packed GLB: JSON {len(json_bytes)} (+{json_padded_length - len(json_bytes)}) bytes, "
        f"BIN {bin_padded_length} bytes, total {total_length} bytes"
    )
    return bytes(buffer)
