"""
Per-material extraction: one self-contained, texture-free GLB per material.

Workflow for each material:
1) Compute its reference closure (reference_graph).
2) Prune and re-index a fresh copy of the document (scene_pruner).
3) Repack the kept buffer views (buffer_compactor).
4) Sanitize and encode the result (glb_codec).

Each run reads the decoded container without modifying it, so materials are
independent of each other; a failure is recorded on that material's record
and the batch moves on.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tqdm import tqdm

from .buffer_compactor import apply_compaction, compact_buffers
from .config_utils import ExtractorConfig
from .glb_codec import Container, encode_glb, resolve_binary_payload
from .reference_graph import compute_material_closure
from .scene_pruner import material_name, prune_document

logger = logging.getLogger(__name__)

# (holder, key) pairs naming the texture slots of a glTF material.
TEXTURE_SLOTS = (
    ("pbrMetallicRoughness", "baseColorTexture"),
    ("pbrMetallicRoughness", "metallicRoughnessTexture"),
    (None, "normalTexture"),
    (None, "occlusionTexture"),
    (None, "emissiveTexture"),
)


@dataclass
class MaterialRecord:
    name: str
    index: int
    primitive_count: int
    base_color: Optional[List[float]] = None
    texture_indices: List[int] = field(default_factory=list)
    glb_bytes: Optional[bytes] = None
    error: Optional[str] = None


def count_primitives_using_material(gltf: Dict[str, Any], material_index: int) -> int:
    count = 0
    for mesh in gltf.get("meshes") or []:
        for primitive in mesh.get("primitives") or []:
            material = primitive.get("material")
            if isinstance(material, int) and not isinstance(material, bool) and material == material_index:
                count += 1
    return count


def find_textures_used_by_material(material: Dict[str, Any]) -> List[int]:
    """Texture indices referenced by a material's standard slots, first use first."""
    found: List[int] = []
    for holder_key, slot in TEXTURE_SLOTS:
        holder = material.get(holder_key) if holder_key else material
        texture_info = (holder or {}).get(slot)
        if isinstance(texture_info, dict) and "index" in texture_info and texture_info["index"] not in found:
            found.append(texture_info["index"])
    return found


def list_materials(gltf: Dict[str, Any]) -> List[MaterialRecord]:
    """Describe every material of the document, without building any GLB."""
    records = []
    materials = gltf.get("materials") or []
    if not materials:
        logger.info("No materials defined in GLTF structure")
        return records

    logger.info(f"Found {len(materials)} materials in GLTF structure")
    for index, material in enumerate(materials):
        material = material or {}
        base_color = (material.get("pbrMetallicRoughness") or {}).get("baseColorFactor")
        record = MaterialRecord(
            name=material_name(gltf, index),
            index=index,
            primitive_count=count_primitives_using_material(gltf, index),
            base_color=list(base_color) if base_color is not None else None,
            texture_indices=find_textures_used_by_material(material),
        )
        logger.debug(
            f"Material {record.name} uses {len(record.texture_indices)} textures "
            f"and appears in {record.primitive_count} primitives"
        )
        records.append(record)
    return records


def create_glb_for_material(
    container: Container,
    material_index: int,
    config: Optional[ExtractorConfig] = None,
    binary_payload: Optional[bytes] = None,
) -> bytes:
    """
    Build the single-material GLB for one material of a decoded container.

    Args:
        container: Decoded source container; not modified.
        material_index: Material to isolate.
        config: Extractor settings.
        binary_payload: Pre-resolved buffer 0 bytes; resolved from the
            container when omitted.

    Returns:
        GLB file contents.
    """
    gltf = container.document
    if binary_payload is None:
        binary_payload = resolve_binary_payload(container)

    closure = compute_material_closure(gltf, material_index)
    pruned, _ = prune_document(gltf, closure, config)
    compacted = compact_buffers(binary_payload, gltf, closure.kept_buffer_views)
    apply_compaction(pruned, compacted)

    glb_bytes = encode_glb(pruned, compacted.payload)
    logger.debug(
        f"Material {material_index}: {len(pruned['meshes'])} meshes, {len(pruned['accessors'])} accessors, "
        f"{compacted.byte_length} BIN bytes, {len(glb_bytes)} bytes total"
    )
    return glb_bytes


def extract_materials(
    container: Container,
    config: Optional[ExtractorConfig] = None,
    show_progress: bool = False,
) -> List[MaterialRecord]:
    """
    Build a GLB for every material, isolating failures per material.

    Returns:
        One MaterialRecord per material; failed materials have glb_bytes None
        and the failure message in `error`.
    """
    records = list_materials(container.document)
    binary_payload = resolve_binary_payload(container)

    for record in tqdm(records, desc="Materials", disable=not show_progress):
        try:
            record.glb_bytes = create_glb_for_material(container, record.index, config, binary_payload)
        except Exception as exc:  # noqa: BLE001
            record.error = str(exc)
            logger.error(f"Error creating GLB for material {record.index} ({record.name}): {exc}")

    failed = sum(1 for record in records if record.glb_bytes is None)
    logger.info(f"Extracted {len(records) - failed} of {len(records)} materials")
    return records


def log_document_summary(gltf: Dict[str, Any], label: str = "GLTF") -> None:
    counts = ", ".join(
        f"{key}={len(gltf.get(key) or [])}"
        for key in ("nodes", "meshes", "materials", "accessors", "bufferViews", "images")
    )
    logger.info(f"{label} summary: {counts}")
