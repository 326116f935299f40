"""
GLB material extraction.

Splits a GLB/glTF asset into self-contained GLB files, one per material, each
carrying only the geometry of that material and a flat synthetic color.
"""

from .errors import CompactionError, FormatError, FormatErrorKind, StructuralWarning
from .glb_codec import Container, decode_container, decode_glb, decode_gltf, encode_glb
from .material_extractor import MaterialRecord, create_glb_for_material, extract_materials
from .texture_extractor import TextureRecord, extract_textures

__version__ = "0.1.0"
__all__ = [
    "CompactionError",
    "Container",
    "FormatError",
    "FormatErrorKind",
    "MaterialRecord",
    "StructuralWarning",
    "TextureRecord",
    "create_glb_for_material",
    "decode_container",
    "decode_glb",
    "decode_gltf",
    "encode_glb",
    "extract_materials",
    "extract_textures",
]
