"""
Prune a glTF document down to a material closure and re-index it.

Workflow:
1) Replace `materials` with a single flat-color synthetic material.
2) Keep the closure's meshes, nodes and accessors in original order and
   rewrite every mesh/node/accessor reference through the index maps.
3) Synthesize one node per mesh when meshes survive without any node.
4) Filter scenes to surviving roots, synthesizing a scene when none survive.
5) Drop textures, images and samplers.

Accessor `bufferView` fields still hold source indices afterwards; the buffer
compactor rewrites them once the new buffer view positions are known.
"""

import colorsys
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .config_utils import ExtractorConfig, SyntheticMaterialOptions
from .reference_graph import MaterialClosure

logger = logging.getLogger(__name__)

GOLDEN_ANGLE_DEGREES = 137.5

# Top-level keys rebuilt by the pruner; everything else is carried over as-is.
REBUILT_KEYS = frozenset(
    ["asset", "materials", "meshes", "nodes", "scenes", "scene", "accessors", "textures", "images", "samplers"]
)


@dataclass
class IndexMaps:
    """Old index -> new index for each re-numbered array."""

    meshes: Dict[int, int] = field(default_factory=dict)
    nodes: Dict[int, int] = field(default_factory=dict)
    accessors: Dict[int, int] = field(default_factory=dict)


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _remap(value: Any, mapping: Dict[int, int]) -> Optional[int]:
    if _is_index(value):
        return mapping.get(value)
    return None


def _index_map(kept: List[int]) -> Dict[int, int]:
    return {old: new for new, old in enumerate(kept)}


# -----------------------------------------------------------
# Synthetic material
# -----------------------------------------------------------
def color_from_index(index: int, saturation: float = 0.75, lightness: float = 0.6) -> List[float]:
    """
    Generate a repeatable, well spread RGBA color for a material index.

    The hue advances by the golden angle per index so neighbouring indices get
    clearly different colors.
    """
    hue = (index * GOLDEN_ANGLE_DEGREES) % 360
    r, g, b = colorsys.hls_to_rgb(hue / 360.0, lightness, saturation)
    return [r, g, b, 1.0]


def material_name(gltf: Dict[str, Any], material_index: int) -> str:
    materials = gltf.get("materials") or []
    if 0 <= material_index < len(materials):
        name = (materials[material_index] or {}).get("name")
        if name:
            return name
    return f"material_{material_index}"


def build_synthetic_material(
    source_material: Optional[Dict[str, Any]],
    material_index: int,
    name: str,
    options: SyntheticMaterialOptions,
) -> Dict[str, Any]:
    """
    Build the flat-color material that replaces a source material.

    A source material produced by an earlier extraction keeps its original
    color seed (`extras.sourceMaterialIndex`), so re-extracting an output is a
    no-op.
    """
    seed = material_index
    extras = (source_material or {}).get("extras")
    if isinstance(extras, dict) and _is_index(extras.get("sourceMaterialIndex")):
        seed = extras["sourceMaterialIndex"]

    return {
        "name": name,
        "pbrMetallicRoughness": {
            "baseColorFactor": color_from_index(seed, options.saturation, options.lightness),
            "metallicFactor": options.metallic_factor,
            "roughnessFactor": options.roughness_factor,
        },
        "extras": {"sourceMaterialIndex": seed},
    }


# -----------------------------------------------------------
# Per-array rewrites
# -----------------------------------------------------------
def _remap_attributes(attributes: Dict[str, Any], accessor_map: Dict[int, int]) -> Dict[str, int]:
    remapped = {}
    for semantic, accessor in attributes.items():
        new_accessor = _remap(accessor, accessor_map)
        if new_accessor is not None:
            remapped[semantic] = new_accessor
    return remapped


def _remap_primitive(primitive: Dict[str, Any], accessor_map: Dict[int, int]) -> Dict[str, Any]:
    primitive = copy.deepcopy(primitive)
    primitive["material"] = 0
    primitive["attributes"] = _remap_attributes(primitive.get("attributes") or {}, accessor_map)

    if "indices" in primitive:
        new_indices = _remap(primitive["indices"], accessor_map)
        if new_indices is None:
            del primitive["indices"]
        else:
            primitive["indices"] = new_indices

    if "targets" in primitive:
        primitive["targets"] = [
            _remap_attributes(target or {}, accessor_map) for target in primitive["targets"] or []
        ]
    return primitive


def _prune_meshes(gltf: Dict[str, Any], closure: MaterialClosure, maps: IndexMaps) -> List[Dict[str, Any]]:
    meshes = gltf.get("meshes") or []
    logger.debug(f"Original mesh count: {len(meshes)}")

    new_meshes = []
    for mesh_index in closure.kept_meshes:
        mesh = {key: copy.deepcopy(value) for key, value in meshes[mesh_index].items() if key != "primitives"}
        primitives = meshes[mesh_index]["primitives"]
        mesh["primitives"] = [
            _remap_primitive(primitives[position], maps.accessors)
            for position in closure.kept_primitives[mesh_index]
        ]
        new_meshes.append(mesh)

    logger.debug(f"Filtered down to {len(new_meshes)} meshes")
    return new_meshes


def _prune_nodes(gltf: Dict[str, Any], closure: MaterialClosure, maps: IndexMaps) -> List[Dict[str, Any]]:
    nodes = gltf.get("nodes") or []
    new_nodes = []
    for node_index in closure.kept_nodes:
        node = copy.deepcopy(nodes[node_index])

        if "mesh" in node:
            new_mesh = _remap(node["mesh"], maps.meshes)
            if new_mesh is None:
                del node["mesh"]
            else:
                node["mesh"] = new_mesh

        if "children" in node:
            children = [maps.nodes[child] for child in node["children"] or [] if _remap(child, maps.nodes) is not None]
            if children:
                node["children"] = children
            else:
                del node["children"]

        new_nodes.append(node)

    logger.debug(f"Nodes: {len(nodes)} -> {len(new_nodes)}")
    return new_nodes


def _synthesize_nodes(mesh_count: int, name: str, nodes_absent: bool) -> List[Dict[str, Any]]:
    if nodes_absent:
        logger.info(f"Document has no nodes, creating {mesh_count} node(s)")
    else:
        logger.info(f"No nodes reference the kept meshes, creating {mesh_count} node(s)")
    return [{"mesh": mesh_index, "name": f"{name}_node_{mesh_index}"} for mesh_index in range(mesh_count)]


def _prune_scenes(gltf: Dict[str, Any], node_map: Dict[int, int], node_count: int) -> List[Dict[str, Any]]:
    new_scenes = []
    for scene in gltf.get("scenes") or []:
        roots = [node_map[node] for node in scene.get("nodes") or [] if _remap(node, node_map) is not None]
        if not roots:
            continue
        scene = copy.deepcopy(scene)
        scene["nodes"] = roots
        new_scenes.append(scene)

    if not new_scenes and node_count:
        # Every surviving node is listed, not only true roots.
        logger.debug(f"Creating new scene with {node_count} nodes")
        new_scenes = [{"nodes": list(range(node_count))}]
    return new_scenes


# -----------------------------------------------------------
# Entry point
# -----------------------------------------------------------
def prune_document(
    gltf: Dict[str, Any],
    closure: MaterialClosure,
    config: Optional[ExtractorConfig] = None,
) -> Tuple[Dict[str, Any], IndexMaps]:
    """
    Build a fresh single-material document from a source document and closure.

    Args:
        gltf: Source glTF document; not modified.
        closure: Result of compute_material_closure for the target material.
        config: Extractor settings (generator string, synthetic material).

    Returns:
        new_gltf: The pruned document (accessor bufferViews not yet remapped).
        maps: Mesh, node and accessor index maps.
    """
    config = config or ExtractorConfig()
    material_index = closure.material_index
    name = material_name(gltf, material_index)

    maps = IndexMaps(
        meshes=_index_map(closure.kept_meshes),
        nodes=_index_map(closure.kept_nodes),
        accessors=_index_map(closure.kept_accessors),
    )

    new_gltf = {key: copy.deepcopy(value) for key, value in gltf.items() if key not in REBUILT_KEYS}
    new_gltf["asset"] = {**copy.deepcopy(gltf.get("asset") or {}), "version": "2.0", "generator": config.generator}

    materials = gltf.get("materials") or []
    source_material = materials[material_index] if 0 <= material_index < len(materials) else None
    new_gltf["materials"] = [
        build_synthetic_material(source_material, material_index, name, config.synthetic_material)
    ]

    new_gltf["meshes"] = _prune_meshes(gltf, closure, maps)

    if closure.needs_synthetic_nodes:
        new_gltf["nodes"] = _synthesize_nodes(len(new_gltf["meshes"]), name, closure.nodes_absent)
    else:
        new_gltf["nodes"] = _prune_nodes(gltf, closure, maps)

    scenes = _prune_scenes(gltf, maps.nodes, len(new_gltf["nodes"]))
    if scenes:
        new_gltf["scenes"] = scenes
        new_gltf["scene"] = 0

    accessors = gltf.get("accessors") or []
    new_gltf["accessors"] = [copy.deepcopy(accessors[index]) for index in closure.kept_accessors]
    logger.debug(f"Accessors: {len(accessors)} -> {len(new_gltf['accessors'])}")

    return new_gltf, maps
