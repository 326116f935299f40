"""
Reference closure for a single material.

Workflow:
1) Keep the primitives whose `material` equals the target; a mesh survives if
   any of its primitives do.
2) Collect the accessors referenced by kept primitives (attributes, indices,
   morph targets).
3) Mark nodes that instance a kept mesh, then add their ancestors until the
   set stops growing.
4) Collect the buffer views referenced by kept accessors (including sparse
   storage).

Synthetic nodes are never created here; when meshes survive but no node does,
`MaterialClosure.needs_synthetic_nodes` tells the pruner to build them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Set

from .errors import StructuralWarning

logger = logging.getLogger(__name__)


@dataclass
class MaterialClosure:
    material_index: int
    kept_primitives: Dict[int, List[int]] = field(default_factory=dict)
    kept_meshes: List[int] = field(default_factory=list)
    kept_nodes: List[int] = field(default_factory=list)
    kept_accessors: List[int] = field(default_factory=list)
    kept_buffer_views: List[int] = field(default_factory=list)
    nodes_absent: bool = False
    warnings: List[StructuralWarning] = field(default_factory=list)

    @property
    def primitive_count(self) -> int:
        return sum(len(positions) for positions in self.kept_primitives.values())

    @property
    def is_empty(self) -> bool:
        return not self.kept_meshes

    @property
    def needs_synthetic_nodes(self) -> bool:
        return bool(self.kept_meshes) and not self.kept_nodes


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def primitive_accessor_refs(primitive: Dict[str, Any]) -> Iterator[Any]:
    """Yield every accessor reference held by a primitive."""
    yield from (primitive.get("attributes") or {}).values()
    if "indices" in primitive:
        yield primitive["indices"]
    for target in primitive.get("targets") or []:
        yield from (target or {}).values()


def accessor_buffer_view_refs(accessor: Dict[str, Any]) -> Iterator[Any]:
    """Yield every buffer view reference held by an accessor."""
    if "bufferView" in accessor:
        yield accessor["bufferView"]
    sparse = accessor.get("sparse") or {}
    for part in ("indices", "values"):
        if "bufferView" in (sparse.get(part) or {}):
            yield sparse[part]["bufferView"]


class _ClosureBuilder:
    def __init__(self, gltf: Dict[str, Any], material_index: int):
        self.gltf = gltf
        self.closure = MaterialClosure(material_index=material_index)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.closure.warnings.append(StructuralWarning("dangling_reference", message))

    def in_range(self, value: Any, kind: str, owner: str) -> bool:
        size = len(self.gltf.get(kind) or [])
        if _is_index(value) and 0 <= value < size:
            return True
        self.warn(f"{owner} references {kind}[{value}], outside 0..{size - 1}")
        return False

    def collect_primitives(self) -> None:
        material_index = self.closure.material_index
        for mesh_index, mesh in enumerate(self.gltf.get("meshes") or []):
            kept = []
            for position, primitive in enumerate(mesh.get("primitives") or []):
                material = primitive.get("material")
                if _is_index(material) and material == material_index:
                    kept.append(position)
            if kept:
                self.closure.kept_primitives[mesh_index] = kept
                logger.debug(f"Mesh {mesh_index} ({mesh.get('name', 'unnamed')}): keeping primitives {kept}")
        self.closure.kept_meshes = sorted(self.closure.kept_primitives)

    def collect_accessors(self) -> None:
        meshes = self.gltf.get("meshes") or []
        accessors: Set[int] = set()
        for mesh_index, positions in self.closure.kept_primitives.items():
            primitives = meshes[mesh_index]["primitives"]
            for position in positions:
                owner = f"meshes[{mesh_index}].primitives[{position}]"
                for ref in primitive_accessor_refs(primitives[position]):
                    if self.in_range(ref, "accessors", owner):
                        accessors.add(ref)
        self.closure.kept_accessors = sorted(accessors)

    def collect_nodes(self) -> None:
        nodes = self.gltf.get("nodes") or []
        if not nodes:
            self.closure.nodes_absent = True
            return

        kept_meshes = set(self.closure.kept_meshes)
        marked: Set[int] = set()
        for node_index, node in enumerate(nodes):
            mesh = node.get("mesh")
            if _is_index(mesh) and mesh in kept_meshes:
                marked.add(node_index)

        for node_index, node in enumerate(nodes):
            for child in node.get("children") or []:
                self.in_range(child, "nodes", f"nodes[{node_index}].children")

        # Ancestor closure: repeat until no parent of a marked node is added.
        previous_size = -1
        while previous_size != len(marked):
            previous_size = len(marked)
            for node_index, node in enumerate(nodes):
                if node_index in marked:
                    continue
                if any(child in marked for child in node.get("children") or []):
                    logger.debug(f"Adding parent node {node_index} to keep hierarchy")
                    marked.add(node_index)

        self.closure.kept_nodes = sorted(marked)

    def collect_buffer_views(self) -> None:
        accessors = self.gltf.get("accessors") or []
        buffer_views: Set[int] = set()
        for accessor_index in self.closure.kept_accessors:
            owner = f"accessors[{accessor_index}]"
            for ref in accessor_buffer_view_refs(accessors[accessor_index]):
                if self.in_range(ref, "bufferViews", owner):
                    buffer_views.add(ref)
        self.closure.kept_buffer_views = sorted(buffer_views)


def compute_material_closure(gltf: Dict[str, Any], material_index: int) -> MaterialClosure:
    """
    Compute everything a single-material output must retain.

    Args:
        gltf: Source glTF document; not modified.
        material_index: Index into `materials` of the material to isolate.

    Returns:
        MaterialClosure with sorted (original order) index lists. An unused
        material yields an empty closure.
    """
    builder = _ClosureBuilder(gltf, material_index)
    builder.collect_primitives()
    builder.collect_accessors()
    builder.collect_nodes()
    builder.collect_buffer_views()

    closure = builder.closure
    logger.debug(
        f"Material {material_index} closure: {closure.primitive_count} primitives, "
        f"{len(closure.kept_meshes)} meshes, {len(closure.kept_nodes)} nodes, "
        f"{len(closure.kept_accessors)} accessors, {len(closure.kept_buffer_views)} bufferViews"
    )
    return closure
