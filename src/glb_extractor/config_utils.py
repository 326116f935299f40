from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:
    raise ImportError(
        "PyYAML is required to read the extractor configuration. "
        "Install with `pip install pyyaml`."
    ) from exc

CONFIG_PATH = Path(__file__).resolve().parents[2] / "config/extractor.yml"


@dataclass(frozen=True)
class SyntheticMaterialOptions:
    metallic_factor: float = 0.0
    roughness_factor: float = 0.8
    saturation: float = 0.75
    lightness: float = 0.6


@dataclass(frozen=True)
class OutputOptions:
    materials_suffix: str = "_materials"
    textures_suffix: str = "_textures"


@dataclass(frozen=True)
class ExtractorConfig:
    generator: str = "GLB Material Extractor"
    synthetic_material: SyntheticMaterialOptions = field(default_factory=SyntheticMaterialOptions)
    output: OutputOptions = field(default_factory=OutputOptions)


def _section(config: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = config.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'extractor.{key}' must be a mapping, got {type(value).__name__}.")
    return value


def load_config(config_path: Optional[Path] = None) -> ExtractorConfig:
    """
    Load extractor settings from YAML, falling back to defaults for missing keys.

    Without an explicit path the repository's config/extractor.yml is used when
    present, built-in defaults otherwise.
    """
    if config_path is None:
        if not CONFIG_PATH.is_file():
            return ExtractorConfig()
        config_path = CONFIG_PATH

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    extractor_cfg = config.get("extractor")
    if not isinstance(extractor_cfg, dict):
        raise ValueError(f"{config_path} is missing the 'extractor' section.")

    defaults = ExtractorConfig()
    material_cfg = _section(extractor_cfg, "synthetic_material")
    output_cfg = _section(extractor_cfg, "output")

    synthetic_material = SyntheticMaterialOptions(
        metallic_factor=float(material_cfg.get("metallic_factor", defaults.synthetic_material.metallic_factor)),
        roughness_factor=float(material_cfg.get("roughness_factor", defaults.synthetic_material.roughness_factor)),
        saturation=float(material_cfg.get("saturation", defaults.synthetic_material.saturation)),
        lightness=float(material_cfg.get("lightness", defaults.synthetic_material.lightness)),
    )
    output = OutputOptions(
        materials_suffix=str(output_cfg.get("materials_suffix", defaults.output.materials_suffix)),
        textures_suffix=str(output_cfg.get("textures_suffix", defaults.output.textures_suffix)),
    )

    return ExtractorConfig(
        generator=str(extractor_cfg.get("generator", defaults.generator)),
        synthetic_material=synthetic_material,
        output=output,
    )
