"""
Extract embedded images from a decoded container.

Images are read from base64 data URIs or from buffer views over buffer 0 (the
BIN chunk or an embedded data URI buffer); external image files are skipped.
Each image is named after the first material slot that uses it, e.g.
`Body_baseColor`.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .glb_codec import Container, decode_data_uri, resolve_binary_payload

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/png"

# (holder, key, role) for each texture slot of a glTF material.
TEXTURE_ROLES = (
    ("pbrMetallicRoughness", "baseColorTexture", "baseColor"),
    ("pbrMetallicRoughness", "metallicRoughnessTexture", "metallicRoughness"),
    (None, "normalTexture", "normal"),
    (None, "occlusionTexture", "occlusion"),
    (None, "emissiveTexture", "emissive"),
)


@dataclass
class TextureRecord:
    name: str
    data: bytes
    mime_type: str


def extension_for_mime(mime_type: Optional[str]) -> str:
    """File extension from a MIME subtype: image/jpeg -> jpg, unknown -> bin."""
    parts = (mime_type or "").split("/")
    if len(parts) > 1 and parts[1]:
        return parts[1].replace("jpeg", "jpg")
    return "bin"


def find_meaningful_texture_name(gltf: Dict[str, Any], image_index: int, fallback_name: str) -> str:
    """Name an image `<material>_<role>` after the first material slot using it."""
    textures = gltf.get("textures") or []
    materials = gltf.get("materials") or []
    if not textures or not materials:
        return fallback_name

    using_image = {index for index, texture in enumerate(textures) if (texture or {}).get("source") == image_index}
    if not using_image:
        return fallback_name

    for material_index, material in enumerate(materials):
        material = material or {}
        material_name = material.get("name") or f"material_{material_index}"
        for holder_key, slot, role in TEXTURE_ROLES:
            holder = material.get(holder_key) if holder_key else material
            texture_info = (holder or {}).get(slot)
            if isinstance(texture_info, dict) and texture_info.get("index") in using_image:
                return f"{material_name}_{role}"
    return fallback_name


def _image_bytes(gltf: Dict[str, Any], image: Dict[str, Any], binary_payload: Optional[bytes]):
    """Return (data, mime type override) for an image, or (None, None)."""
    if "uri" in image:
        decoded = decode_data_uri(image["uri"])
        if decoded is None:
            logger.warning(f"Image references external URI: {image['uri'][:64]} (not supported)")
            return None, None
        return decoded[1], decoded[0]

    if "bufferView" in image and binary_payload is not None:
        buffer_views = gltf.get("bufferViews") or []
        view_index = image["bufferView"]
        if not isinstance(view_index, int) or not 0 <= view_index < len(buffer_views):
            logger.error(f"Missing bufferView {view_index}")
            return None, None
        buffer_view = buffer_views[view_index]
        start = int(buffer_view.get("byteOffset", 0))
        length = int(buffer_view["byteLength"])
        logger.debug(f"Image stored in bufferView {view_index}: offset={start}, length={length}")
        return binary_payload[start : start + length], None

    return None, None


def extract_textures(container: Container) -> List[TextureRecord]:
    """
    Collect every embedded image of a container.

    Args:
        container: Decoded source container; not modified.

    Returns:
        One TextureRecord per image whose bytes could be found.
    """
    gltf = container.document
    images = gltf.get("images") or []
    if not images:
        logger.info("No images defined in GLTF structure")
        return []

    logger.info(f"Found {len(images)} images in GLTF structure")
    binary_payload = resolve_binary_payload(container)
    records = []
    for image_index, image in enumerate(images):
        try:
            image = image or {}
            data, uri_mime_type = _image_bytes(gltf, image, binary_payload)
            if not data:
                continue
            fallback_name = image.get("name") or f"image_{image_index}"
            records.append(
                TextureRecord(
                    name=find_meaningful_texture_name(gltf, image_index, fallback_name),
                    data=bytes(data),
                    mime_type=uri_mime_type or image.get("mimeType") or DEFAULT_MIME_TYPE,
                )
            )
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Error processing image {image_index}: {exc}")

    logger.info(f"Extracted {len(records)} textures")
    return records
