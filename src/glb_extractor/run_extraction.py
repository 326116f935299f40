#!/usr/bin/env python3
"""
CLI entrypoint for splitting a GLB/glTF into per-material GLBs and textures.

Workflow:
1) Read and decode the input (.glb as binary container, anything else as JSON).
2) Optionally dump every embedded image to <stem>_textures/.
3) Optionally write one flat-colored GLB per material to <stem>_materials/.
"""

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import Iterable, List, Optional

import yaml

from .config_utils import ExtractorConfig, load_config
from .errors import FormatError
from .glb_codec import read_container
from .material_extractor import MaterialRecord, extract_materials, log_document_summary
from .texture_extractor import TextureRecord, extension_for_mime, extract_textures

EXIT_OK = 0
EXIT_PARTIAL_FAILURE = 1
EXIT_FORMAT_ERROR = 2


def setup_logging(logfile: Path | None = None, verbose: bool = True) -> logging.Logger:
    """
    Configure logging to console and optional file.

    Args:
        logfile: Optional path to save logs.
        verbose: Whether to emit info-level logs (True) or only warnings (False).

    Returns:
        Configured logger instance.
    """
    level = logging.INFO if verbose else logging.WARNING
    fmt = "[%(asctime)s] [%(levelname)s] %(message)s"

    handlers = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(logfile))

    logging.basicConfig(level=level, format=fmt, handlers=handlers)
    logger = logging.getLogger(__name__)
    return logger


def safe_filename(name: str) -> str:
    """Lower-case a name and replace anything outside [a-z0-9] with '_'."""
    return re.sub(r"[^a-z0-9]", "_", name, flags=re.IGNORECASE).lower()


def unique_filenames(names: Iterable[str]) -> List[str]:
    """safe_filename for each name, suffixing `_<position>` (then `_<position>_<n>`) on collisions."""
    result = []
    seen = set()
    for position, name in enumerate(names):
        candidate = safe_filename(name)
        if candidate in seen:
            base = f"{candidate}_{position}"
            candidate = base
            attempt = 1
            while candidate in seen:
                candidate = f"{base}_{attempt}"
                attempt += 1
        seen.add(candidate)
        result.append(candidate)
    return result


def write_materials(records: List[MaterialRecord], out_dir: Path) -> int:
    """Write each successful material GLB; returns the number written."""
    out_dir.mkdir(parents=True, exist_ok=True)
    written = 0
    for record, stem in zip(records, unique_filenames(record.name for record in records)):
        if record.glb_bytes is None:
            continue
        (out_dir / f"{stem}.glb").write_bytes(record.glb_bytes)
        written += 1
    return written


def write_textures(records: List[TextureRecord], out_dir: Path) -> int:
    out_dir.mkdir(parents=True, exist_ok=True)
    for record, stem in zip(records, unique_filenames(record.name for record in records)):
        (out_dir / f"{stem}.{extension_for_mime(record.mime_type)}").write_bytes(record.data)
    return len(records)


def run(args: argparse.Namespace, config: ExtractorConfig, logger: logging.Logger) -> int:
    """
    Extract textures and/or materials from args.input into args.output_dir.

    Returns:
        Process exit code.
    """
    input_path: Path = args.input
    output_dir: Path = args.output_dir or input_path.parent
    stem = input_path.stem

    logger.info("---------------------------------------------------")
    logger.info("            GLB Material Extractor                 ")
    logger.info("---------------------------------------------------")
    logger.info(f"Input file:        {input_path}")
    logger.info(f"Output directory:  {output_dir}")
    logger.info(f"Textures:          {not args.no_textures}")
    logger.info(f"Materials:         {not args.no_materials}")
    logger.info("---------------------------------------------------")

    container = read_container(input_path)
    log_document_summary(container.document, label=input_path.name)

    if not args.no_textures:
        textures = extract_textures(container)
        if textures:
            textures_dir = output_dir / f"{stem}{config.output.textures_suffix}"
            count = write_textures(textures, textures_dir)
            logger.info(f"Wrote {count} textures to {textures_dir}")

    exit_code = EXIT_OK
    if not args.no_materials:
        materials = extract_materials(container, config, show_progress=not args.quiet)
        if materials:
            materials_dir = output_dir / f"{stem}{config.output.materials_suffix}"
            count = write_materials(materials, materials_dir)
            logger.info(f"Wrote {count} material GLBs to {materials_dir}")
        failed = [record for record in materials if record.glb_bytes is None]
        for record in failed:
            logger.error(f"Material {record.index} ({record.name}) failed: {record.error}")
        if failed:
            exit_code = EXIT_PARTIAL_FAILURE

    logger.info("Extraction completed.")
    return exit_code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Split a GLB/glTF into one flat-colored GLB per material and dump its embedded textures."
    )

    parser.add_argument("input", type=Path,
                        help="Input .glb or .gltf file")
    parser.add_argument("--output-dir", type=Path, default=None,
                        help="Directory for the output folders (default: next to the input)")

    parser.add_argument("--no-materials", action="store_true",
                        help="Skip per-material GLB extraction")
    parser.add_argument("--no-textures", action="store_true",
                        help="Skip texture extraction")

    parser.add_argument("--config", type=Path, default=None,
                        help="Extractor YAML config (default: config/extractor.yml)")
    parser.add_argument("--log", type=Path, default=None,
                        help="Optional log file to save logs")
    parser.add_argument("--quiet", action="store_true",
                        help="Suppress console logging (only warnings) and progress bars")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logging(args.log, verbose=not args.quiet)

    if not args.input.is_file():
        print(f"error: input not found: {args.input}", file=sys.stderr)
        return EXIT_FORMAT_ERROR

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error(f"Error loading config {args.config}: {exc}")
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FORMAT_ERROR

    try:
        return run(args, config, logger)
    except FormatError as exc:
        logger.error(f"Error parsing {args.input}: {exc}")
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FORMAT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
