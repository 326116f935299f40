import json
import struct

import pytest

from glb_extractor.glb_codec import Container

GLB_MAGIC = 0x46546C67
CHUNK_JSON = 0x4E4F534A
CHUNK_BIN = 0x004E4942


def pack_chunk(chunk_type, data, pad=b"\x00"):
    data = bytes(data)
    data += pad * ((4 - len(data) % 4) % 4)
    return struct.pack("<II", len(data), chunk_type) + data


def make_glb(document=None, payload=None, magic=GLB_MAGIC, version=2, json_bytes=None, extra_chunks=()):
    """Assemble GLB bytes by hand, independently of encode_glb."""
    if json_bytes is None:
        json_bytes = json.dumps(document).encode("utf-8")
    body = pack_chunk(CHUNK_JSON, json_bytes, pad=b" ")
    for chunk_type, data in extra_chunks:
        body += pack_chunk(chunk_type, data)
    if payload is not None:
        body += pack_chunk(CHUNK_BIN, payload)
    return struct.pack("<III", magic, version, 12 + len(body)) + body


def layout_views(lengths, start=0):
    """bufferViews for consecutive 4-byte aligned regions of the given lengths."""
    views = []
    offset = start
    for length in lengths:
        offset += (4 - offset % 4) % 4
        views.append({"buffer": 0, "byteOffset": offset, "byteLength": length})
        offset += length
    return views, offset


def fill_payload(views, total_length):
    """Payload where bufferView i holds the byte value i + 1; gaps are zero."""
    payload = bytearray(total_length)
    for index, view in enumerate(views):
        start = view["byteOffset"]
        payload[start : start + view["byteLength"]] = bytes([index + 1]) * view["byteLength"]
    return bytes(payload)


def accessor(buffer_view, count=1, accessor_type="VEC3"):
    return {"bufferView": buffer_view, "componentType": 5126, "count": count, "type": accessor_type}


@pytest.fixture
def two_material_container():
    """
    Two materials, three meshes.

    mesh 0: primitive (material 0) + primitive (material 1)
    mesh 1, mesh 2: material 1 only
    node 0 (root) -> children 1 (mesh 0), 2 (mesh 1); node 2 -> child 3 (mesh 2)
    bufferView 6 holds a PNG image used by material 0's base color texture.
    """
    views, total = layout_views([12, 6, 12, 24, 6, 12, 8])
    payload = fill_payload(views, total)
    document = {
        "asset": {"version": "2.0", "generator": "test"},
        "extensionsUsed": ["KHR_materials_unlit", "KHR_texture_transform"],
        "materials": [
            {
                "name": "Red Paint",
                "pbrMetallicRoughness": {"baseColorFactor": [1.0, 0.0, 0.0, 1.0], "baseColorTexture": {"index": 0}},
                "extensions": {"KHR_materials_unlit": {}},
            },
            {"name": "Blue"},
        ],
        "meshes": [
            {
                "name": "shared",
                "primitives": [
                    {"attributes": {"POSITION": 0}, "indices": 1, "material": 0},
                    {"attributes": {"POSITION": 2}, "material": 1},
                ],
            },
            {"name": "second", "primitives": [{"attributes": {"POSITION": 3}, "indices": 4, "material": 1}]},
            {"name": "third", "primitives": [{"attributes": {"POSITION": 5}, "material": 1}]},
        ],
        "nodes": [
            {"name": "root", "children": [1, 2]},
            {"name": "shared_node", "mesh": 0},
            {"name": "second_node", "mesh": 1, "children": [3]},
            {"name": "third_node", "mesh": 2},
        ],
        "scenes": [{"name": "Scene", "nodes": [0]}],
        "scene": 0,
        "accessors": [
            accessor(0),
            accessor(1, accessor_type="SCALAR"),
            accessor(2),
            accessor(3, count=2),
            accessor(4, accessor_type="SCALAR"),
            accessor(5),
        ],
        "bufferViews": views,
        "buffers": [{"byteLength": total}],
        "textures": [{"source": 0, "sampler": 0}],
        "images": [{"bufferView": 6, "mimeType": "image/png"}],
        "samplers": [{"magFilter": 9729}],
    }
    return Container(document=document, binary_payload=payload)


@pytest.fixture
def glb_factory():
    return make_glb
