"""
Structural repair pass run before every GLB encode.

Rules, in order:
1) Nodes: drop empty `children`, drop a `matrix` that is not 16 numbers.
2) Primitives: clamp an invalid `material` to 0, drop empty `targets`.
3) Scenes: drop empty `nodes`, drop an empty `scenes` array, keep `scene` in range.
4) Extensions: remove texture-dependent extensions, strip material extensions.
5) Recursively remove None values, empty objects and empty arrays.

The pass mutates the document it is given and is idempotent.
"""

from typing import Any, Dict, List

# Extensions that only make sense with the texture data this tool removes.
TEXTURE_DEPENDENT_EXTENSIONS = (
    "KHR_materials_pbrSpecularGlossiness",
    "KHR_materials_clearcoat",
    "KHR_materials_transmission",
    "KHR_materials_sheen",
    "KHR_materials_unlit",
)


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _sanitize_nodes(nodes: List[Any]) -> None:
    for node in nodes:
        if not isinstance(node, dict):
            continue
        if node.get("children") == []:
            del node["children"]
        matrix = node.get("matrix")
        if matrix is not None and not (isinstance(matrix, list) and len(matrix) == 16):
            del node["matrix"]


def _sanitize_meshes(meshes: List[Any], material_count: int) -> None:
    for mesh in meshes:
        if not isinstance(mesh, dict):
            continue
        for primitive in mesh.get("primitives") or []:
            if "material" in primitive:
                material = primitive["material"]
                if not _is_index(material) or not 0 <= material < material_count:
                    primitive["material"] = 0
            if primitive.get("targets") == []:
                del primitive["targets"]


def _sanitize_scenes(gltf: Dict[str, Any]) -> None:
    scenes = gltf.get("scenes")
    if isinstance(scenes, list):
        for scene in scenes:
            if isinstance(scene, dict) and scene.get("nodes") == []:
                del scene["nodes"]
        if not scenes:
            del gltf["scenes"]
            scenes = None

    if "scene" in gltf:
        if not scenes:
            # No scene left to point at
            del gltf["scene"]
        elif not _is_index(gltf["scene"]) or not 0 <= gltf["scene"] < len(scenes):
            gltf["scene"] = 0


def _sanitize_extensions(gltf: Dict[str, Any]) -> None:
    for key in ("extensionsUsed", "extensionsRequired"):
        if key not in gltf:
            continue
        kept = [name for name in gltf[key] or [] if name not in TEXTURE_DEPENDENT_EXTENSIONS]
        if kept:
            gltf[key] = kept
        else:
            del gltf[key]

    for material in gltf.get("materials") or []:
        if isinstance(material, dict):
            material.pop("extensions", None)


def cleanup_object(obj: Any) -> None:
    """
    Recursively delete keys holding None, an empty dict or an empty list.

    List elements are never removed, only cleaned, since their positions are
    indices referenced elsewhere in the document.
    """
    if isinstance(obj, dict):
        for key in list(obj.keys()):
            value = obj[key]
            if value is None:
                del obj[key]
                continue
            cleanup_object(value)
            if isinstance(value, (dict, list)) and not value:
                del obj[key]
    elif isinstance(obj, list):
        for item in obj:
            cleanup_object(item)


def sanitize_document(gltf: Dict[str, Any]) -> Dict[str, Any]:
    """
    Enforce the structural invariants of an output document in place.

    Args:
        gltf: glTF JSON document.

    Returns:
        The same document, for chaining.
    """
    nodes = gltf.get("nodes")
    if isinstance(nodes, list):
        _sanitize_nodes(nodes)

    materials = gltf.get("materials")
    material_count = len(materials) if isinstance(materials, list) else 0
    meshes = gltf.get("meshes")
    if isinstance(meshes, list):
        _sanitize_meshes(meshes, material_count)

    _sanitize_scenes(gltf)
    _sanitize_extensions(gltf)
    cleanup_object(gltf)
    return gltf
