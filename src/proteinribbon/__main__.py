"""
Command-line interface.

Usage:
    $ python -m proteinribbon protein.pdb --output ribbon.h5
    $ python -m proteinribbon protein.pdb --output out_dir/ --classifier geometric
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from proteinribbon.config import RibbonConfig, ConfigError, CLASSIFIER_CHOICES
from proteinribbon.controller.pipeline import RibbonPipeline
from proteinribbon.logging_config import setup_logging
from proteinribbon.model.io import IOManager

logger = logging.getLogger("proteinribbon.cli")

EXIT_OK = 0
EXIT_EMPTY = 1
EXIT_INPUT_ERROR = 2


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proteinribbon",
        description="Build ribbon diagram meshes from a PDB coordinate file.",
    )
    parser.add_argument("input", help="PDB coordinate file")
    parser.add_argument("-o", "--output", help="'.h5' file, or a directory for VTK (.vtp) export")
    parser.add_argument("-c", "--config", help="JSON configuration file")
    parser.add_argument("--classifier", choices=CLASSIFIER_CHOICES, help="secondary-structure strategy")
    parser.add_argument("--hetatm", action="store_true", help="include HETATM records")
    parser.add_argument(
        "--extend-ends", action="store_true",
        help="overlap each segment with its neighbours' boundary residues; without it "
             "consecutive segment meshes leave a gap of about one residue",
    )
    parser.add_argument("--end-caps", action="store_true", help="close the ends of every tube and ribbon")
    parser.add_argument("-j", "--workers", type=int, default=1, help="segments processed in parallel")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", help="also write the log to this file")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        config = RibbonConfig.load(args.config) if args.config else RibbonConfig()
        if args.classifier:
            config = config.with_changes(classifier={"strategy": args.classifier})
        if args.hetatm:
            config = config.with_changes(parser={"include_hetero_atoms": True})
        if args.extend_ends:
            config = config.with_changes(classifier={"extend_segment_ends": True})
        if args.end_caps:
            config = config.with_changes(extrusion={"end_caps": True})
    except (OSError, ConfigError) as e:
        logger.error(f"Could not read configuration: {e}")
        return EXIT_INPUT_ERROR

    pipeline = RibbonPipeline(config, max_workers=args.workers)
    try:
        result = pipeline.run_file(args.input)
    except OSError as e:
        logger.error(f"Could not read input: {e}")
        return EXIT_INPUT_ERROR

    if result.is_empty:
        logger.warning(f"No ribbon geometry could be built from {args.input}.")
        return EXIT_EMPTY

    for mesh in result.meshes:
        print(f"{mesh.chain_id or '-':>3} {mesh.segment_index:>5} {mesh.structure_type:<6} "
              f"{mesh.vertex_count:>7} vertices {mesh.triangle_count:>7} triangles")
    print(f"{len(result.meshes)} meshes, {result.vertex_count} vertices, "
          f"{result.triangle_count} triangles")

    if args.output:
        if args.output.lower().endswith((".h5", ".hdf5")):
            IOManager.save_meshes(result.meshes, args.output, config=config)
        else:
            IOManager.export_vtk(result, args.output)

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
