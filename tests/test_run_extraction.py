import copy

import pytest

from glb_extractor.glb_codec import decode_glb
from glb_extractor.material_extractor import MaterialRecord
from glb_extractor.run_extraction import (
    EXIT_FORMAT_ERROR,
    EXIT_OK,
    EXIT_PARTIAL_FAILURE,
    main,
    safe_filename,
    unique_filenames,
    write_materials,
)


@pytest.fixture
def input_glb(tmp_path, two_material_container, glb_factory):
    path = tmp_path / "Chair Model.glb"
    path.write_bytes(glb_factory(two_material_container.document, two_material_container.binary_payload))
    return path


def test_main_writes_materials_and_textures(input_glb, tmp_path):
    out_dir = tmp_path / "out"

    code = main([str(input_glb), "--output-dir", str(out_dir), "--quiet"])

    assert code == EXIT_OK
    materials_dir = out_dir / "Chair Model_materials"
    assert sorted(p.name for p in materials_dir.iterdir()) == ["blue.glb", "red_paint.glb"]
    red = decode_glb((materials_dir / "red_paint.glb").read_bytes())
    assert red.document["materials"][0]["name"] == "Red Paint"
    textures_dir = out_dir / "Chair Model_textures"
    assert (textures_dir / "red_paint_basecolor.png").read_bytes() == b"\x07" * 8


def test_outputs_default_to_input_directory(input_glb):
    assert main([str(input_glb), "--no-textures", "--quiet"]) == EXIT_OK

    assert (input_glb.parent / "Chair Model_materials" / "blue.glb").is_file()
    assert not (input_glb.parent / "Chair Model_textures").exists()


def test_no_materials_flag(input_glb, tmp_path):
    out_dir = tmp_path / "out"

    assert main([str(input_glb), "--output-dir", str(out_dir), "--no-materials", "--quiet"]) == EXIT_OK

    assert not (out_dir / "Chair Model_materials").exists()
    assert (out_dir / "Chair Model_textures").is_dir()


def test_failed_material_gives_partial_failure(tmp_path, two_material_container, glb_factory):
    document = copy.deepcopy(two_material_container.document)
    document["bufferViews"][3]["byteOffset"] = 10_000
    path = tmp_path / "broken.glb"
    path.write_bytes(glb_factory(document, two_material_container.binary_payload))

    code = main([str(path), "--no-textures", "--quiet"])

    assert code == EXIT_PARTIAL_FAILURE
    assert [p.name for p in (tmp_path / "broken_materials").iterdir()] == ["red_paint.glb"]


def test_bad_magic_is_a_format_error(tmp_path, glb_factory):
    path = tmp_path / "bad.glb"
    path.write_bytes(glb_factory({"asset": {"version": "2.0"}}, magic=0x12345678))

    assert main([str(path), "--quiet"]) == EXIT_FORMAT_ERROR


def test_missing_input(tmp_path):
    assert main([str(tmp_path / "nothing.glb"), "--quiet"]) == EXIT_FORMAT_ERROR


@pytest.mark.parametrize(
    "name,expected",
    [("Red Paint", "red_paint"), ("Body/Trim #2", "body_trim__2"), ("Émail", "_mail"), ("", "")],
)
def test_safe_filename(name, expected):
    assert safe_filename(name) == expected


def test_unique_filenames_suffix_collisions():
    assert unique_filenames(["Wood", "wood", "Metal", "WOOD"]) == ["wood", "wood_1", "metal", "wood_3"]


def test_unique_filenames_skip_names_taken_by_earlier_suffixes():
    assert unique_filenames(["Metal", "Metal_2", "Metal"]) == ["metal", "metal_2", "metal_2_1"]
    assert unique_filenames(["wood", "wood", "wood_1"]) == ["wood", "wood_1", "wood_1_2"]


def test_write_materials_keeps_every_colliding_material(tmp_path):
    records = [
        MaterialRecord(name=name, index=index, primitive_count=1, glb_bytes=bytes([index]))
        for index, name in enumerate(["Metal", "Metal_2", "Metal"])
    ]

    assert write_materials(records, tmp_path) == 3

    assert sorted(p.name for p in tmp_path.iterdir()) == ["metal.glb", "metal_2.glb", "metal_2_1.glb"]
    assert (tmp_path / "metal_2_1.glb").read_bytes() == b"\x02"


def test_missing_config_file_is_reported(input_glb, tmp_path, capsys):
    code = main([str(input_glb), "--config", str(tmp_path / "nope.yml"), "--quiet"])

    assert code == EXIT_FORMAT_ERROR
    assert any(line.startswith("error:") for line in capsys.readouterr().err.splitlines())


@pytest.mark.parametrize("text", ["extractor: [unclosed\n", "other: {}\n"])
def test_invalid_config_file_is_reported(input_glb, tmp_path, text):
    path = tmp_path / "bad.yml"
    path.write_text(text)

    assert main([str(input_glb), "--config", str(path), "--quiet"]) == EXIT_FORMAT_ERROR
    assert not (input_glb.parent / "Chair Model_materials").exists()
