"""
Repack the byte ranges of kept buffer views into a new BIN payload.

Regions are laid out in original buffer view order, each starting on a 4-byte
boundary; gaps are zero-filled.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from .errors import CompactionError, StructuralWarning

logger = logging.getLogger(__name__)

ALIGNMENT = 4


@dataclass
class CompactedBuffers:
    """New BIN payload plus the buffer views and index map that describe it."""

    payload: Optional[bytes]
    buffer_views: List[Dict[str, Any]] = field(default_factory=list)
    buffer_view_map: Dict[int, int] = field(default_factory=dict)
    warnings: List[StructuralWarning] = field(default_factory=list)

    @property
    def byte_length(self) -> int:
        return len(self.payload) if self.payload else 0


def align_offset(offset: int, alignment: int = ALIGNMENT) -> int:
    return offset + (alignment - offset % alignment) % alignment


def compact_buffers(
    binary_payload: Optional[bytes],
    gltf: Dict[str, Any],
    kept_buffer_views: List[int],
) -> CompactedBuffers:
    """
    Cut the kept buffer views out of the source payload and pack them tightly.

    Args:
        binary_payload: Source BIN chunk (buffer 0). May be None.
        gltf: Source glTF document, read for its bufferViews; not modified.
        kept_buffer_views: Source buffer view indices, in original order.

    Returns:
        CompactedBuffers. `payload` is None when nothing is kept.

    Raises:
        CompactionError: a kept buffer view lies outside the source payload.
    """
    buffer_views = gltf.get("bufferViews") or []
    result = CompactedBuffers(payload=None)

    regions = []
    for old_index in kept_buffer_views:
        buffer_view = copy.deepcopy(buffer_views[old_index])
        buffer_index = buffer_view.get("buffer", 0)
        if buffer_index != 0:
            message = f"bufferViews[{old_index}] uses buffer {buffer_index}; only buffer 0 (BIN chunk) is supported"
            logger.warning(message)
            result.warnings.append(StructuralWarning("unsupported_buffer", message))
            continue
        if binary_payload is None:
            raise CompactionError(f"bufferViews[{old_index}] needs binary data but the container has none")

        start = int(buffer_view.get("byteOffset", 0))
        length = int(buffer_view["byteLength"])
        if start < 0 or length < 0 or start + length > len(binary_payload):
            raise CompactionError(
                f"bufferViews[{old_index}] range {start}..{start + length} exceeds the {len(binary_payload)}-byte payload"
            )
        logger.debug(f"BufferView {old_index}: offset={start}, length={length}")
        regions.append((old_index, buffer_view, start, length))

    if not regions:
        return result

    # Assign aligned offsets
    total_length = 0
    placements = []
    for old_index, buffer_view, start, length in regions:
        total_length = align_offset(total_length)
        buffer_view["byteOffset"] = total_length
        buffer_view["buffer"] = 0
        placements.append((start, total_length, length))

        result.buffer_view_map[old_index] = len(result.buffer_views)
        result.buffer_views.append(buffer_view)
        total_length += length

    source = np.frombuffer(binary_payload, dtype=np.uint8)
    packed = np.zeros(total_length, dtype=np.uint8)
    for start, new_offset, length in placements:
        packed[new_offset : new_offset + length] = source[start : start + length]

    result.payload = packed.tobytes()
    logger.debug(f"New binary chunk length: {total_length} bytes ({len(result.buffer_views)} bufferViews)")
    return result


def _set_accessor_buffer_views(accessor: Dict[str, Any], buffer_view_map: Dict[int, int]) -> None:
    holders = [accessor]
    sparse = accessor.get("sparse") or {}
    holders.extend(sparse[part] for part in ("indices", "values") if isinstance(sparse.get(part), dict))

    for holder in holders:
        if "bufferView" not in holder:
            continue
        old_index = holder["bufferView"]
        new_index = None
        if isinstance(old_index, int) and not isinstance(old_index, bool):
            new_index = buffer_view_map.get(old_index)
        if new_index is None:
            del holder["bufferView"]
        else:
            holder["bufferView"] = new_index


def apply_compaction(gltf: Dict[str, Any], compacted: CompactedBuffers) -> Dict[str, Any]:
    """
    Install compacted buffer views into a pruned document.

    Rewrites every accessor (and sparse) `bufferView` through the compaction
    map, dropping references to views that were not carried over, and replaces
    `bufferViews` and `buffers`.
    """
    for accessor in gltf.get("accessors") or []:
        _set_accessor_buffer_views(accessor, compacted.buffer_view_map)

    gltf["bufferViews"] = compacted.buffer_views
    if compacted.payload:
        gltf["buffers"] = [{"byteLength": compacted.byte_length}]
    else:
        logger.debug("No binary data needed for this material")
        gltf["buffers"] = []
    return gltf
