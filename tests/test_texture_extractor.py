import base64

import pytest

from glb_extractor.glb_codec import Container
from glb_extractor.texture_extractor import extension_for_mime, extract_textures, find_meaningful_texture_name


def _data_uri(mime_type, data):
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def test_buffer_view_image_is_named_after_its_material(two_material_container):
    records = extract_textures(two_material_container)

    assert len(records) == 1
    assert records[0].name == "Red Paint_baseColor"
    assert records[0].mime_type == "image/png"
    assert records[0].data == b"\x07" * 8


def test_data_uri_media_type_overrides_declared_mime_type():
    document = {"images": [{"uri": _data_uri("image/jpeg", b"\xff\xd8\xff"), "mimeType": "image/png"}]}

    records = extract_textures(Container(document=document))

    assert [(r.name, r.mime_type, r.data) for r in records] == [("image_0", "image/jpeg", b"\xff\xd8\xff")]


def test_external_and_unresolvable_images_are_skipped():
    document = {
        "images": [
            {"uri": "textures/wood.png"},
            {"bufferView": 3, "mimeType": "image/png"},
            {"name": "logo", "uri": _data_uri("image/png", b"\x89PNG")},
        ],
        "bufferViews": [{"buffer": 0, "byteLength": 4}],
    }

    records = extract_textures(Container(document=document, binary_payload=b"\x00" * 4))

    assert [r.name for r in records] == ["logo"]


def test_no_images():
    assert extract_textures(Container(document={"asset": {"version": "2.0"}})) == []


def test_name_falls_back_without_using_material():
    gltf = {
        "textures": [{"source": 0}, {"source": 1}],
        "materials": [{"normalTexture": {"index": 1}}],
    }

    assert find_meaningful_texture_name(gltf, 0, "image_0") == "image_0"
    assert find_meaningful_texture_name(gltf, 1, "image_1") == "material_0_normal"
    assert find_meaningful_texture_name({"images": [{}]}, 0, "image_0") == "image_0"


def test_first_material_slot_wins():
    gltf = {
        "textures": [{"source": 0}],
        "materials": [
            {"name": "Body", "emissiveTexture": {"index": 0}, "pbrMetallicRoughness": {"baseColorTexture": {"index": 0}}},
            {"name": "Trim", "normalTexture": {"index": 0}},
        ],
    }

    assert find_meaningful_texture_name(gltf, 0, "image_0") == "Body_baseColor"


@pytest.mark.parametrize(
    "mime_type,extension",
    [("image/png", "png"), ("image/jpeg", "jpg"), ("image/webp", "webp"), ("image", "bin"), ("", "bin"), (None, "bin")],
)
def test_extension_for_mime(mime_type, extension):
    assert extension_for_mime(mime_type) == extension


def test_buffer_view_image_over_embedded_data_uri_buffer(two_material_container):
    document = dict(two_material_container.document)
    payload = two_material_container.binary_payload
    document["buffers"] = [{"byteLength": len(payload), "uri": _data_uri("application/octet-stream", payload)}]

    records = extract_textures(Container(document=document, binary_payload=None))

    assert [(r.name, r.data) for r in records] == [("Red Paint_baseColor", b"\x07" * 8)]
