#!/usr/bin/env python
"""
Command line interface for methylset stores.

Usage:
    methylset init betas.bin --platform EPIC --reference refs/ --samples-file samples.txt
    methylset fill betas.bin cohort_betas.tsv
    methylset slice betas.bin --samples S1 S2 --probes cg00000029 cg00000108
    methylset info betas.bin

Exit Status:
    0: Success
    1: A store operation failed
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import numpy as np

from .errors import FileSetError
from .fileset import allocate, allocate_for_platform, describe, open_store
from .ingest import fill_from_file
from .observability import configure_logging, get_profiler
from .platforms import Platform, ProbeReference

logger = logging.getLogger(__name__)


def _read_id_file(path: str) -> List[str]:
    with open(path, 'r', encoding='utf-8') as f:
        return [line.strip() for line in f if line.strip()]


def _ids(inline: Optional[List[str]], id_file: Optional[str]) -> List[str]:
    ids = list(inline or [])
    if id_file:
        ids.extend(_read_id_file(id_file))
    return ids


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="methylset",
        description="Indexed out-of-core store for DNA-methylation beta values"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--log-file",
        type=str,
        help="Also write detailed logs to this file"
    )
    parser.add_argument(
        "--profile-json",
        type=str,
        help="Write operation timings to this JSON file on exit"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init", help="Allocate a new store")
    init.add_argument("path", type=str, help="Path of the matrix file")
    init.add_argument("--samples", nargs="+", help="Sample ids (column order)")
    init.add_argument("--samples-file", type=str, help="File with one sample id per line")
    init.add_argument("--probes", nargs="+", help="Probe ids (row order)")
    init.add_argument("--probes-file", type=str, help="File with one probe id per line")
    init.add_argument(
        "--platform",
        type=str,
        choices=[p.value for p in Platform],
        help="Take the probe list from this platform's catalog in --reference"
    )
    init.add_argument("--reference", type=str,
                      help="Directory of <PLATFORM>.probes.txt files or an HDF5 reference")
    init.add_argument("--cell-bytes", type=int, default=8, choices=[4, 8],
                      help="Bytes per cell: 4 (float32) or 8 (float64, default)")
    init.add_argument("--overwrite", action="store_true", help="Replace an existing store")

    fill = subparsers.add_parser("fill", help="Fill samples from a labelled beta matrix")
    fill.add_argument("path", type=str, help="Path of the matrix file")
    fill.add_argument("input_path", type=str, help="Beta matrix (.npz, .h5, .csv, .tsv)")
    fill.add_argument("--format", type=str, default="auto",
                      choices=["auto", "npz", "hdf5", "csv", "tsv"],
                      help="Input format (default: auto-detect)")
    fill.add_argument("--dataset", type=str, help="For npz/HDF5: name of the beta dataset")
    fill.add_argument("--strict", action="store_true", help="Fail on probe ids not in the store")
    fill.add_argument("--skip-unknown-samples", action="store_true",
                      help="Skip matrix columns whose sample is not in the store")

    slc = subparsers.add_parser("slice", help="Print selected cells as TSV")
    slc.add_argument("path", type=str, help="Path of the matrix file")
    slc.add_argument("--samples", nargs="+", help="Sample ids")
    slc.add_argument("--samples-file", type=str, help="File with one sample id per line")
    slc.add_argument("--probes", nargs="+", help="Probe ids")
    slc.add_argument("--probes-file", type=str, help="File with one probe id per line")
    slc.add_argument("--drop-unfilled", action="store_true",
                     help="Omit probes whose values are all unfilled")
    slc.add_argument("--json", action="store_true",
                     help="Print a JSON object sample -> probe -> value instead of TSV")

    info = subparsers.add_parser("info", help="Show store dimensions and size check")
    info.add_argument("path", type=str, help="Path of the matrix file")

    return parser


def _load_reference(path: str) -> ProbeReference:
    if path.endswith((".h5", ".hdf5")):
        return ProbeReference.from_hdf5(path)
    return ProbeReference.from_directory(path)


def _cmd_init(args) -> int:
    samples = _ids(args.samples, args.samples_file)
    if args.platform:
        handle = allocate_for_platform(args.path, args.platform, samples,
                                       _load_reference(args.reference),
                                       cell_byte_width=args.cell_bytes, overwrite=args.overwrite)
    else:
        handle = allocate(args.path, _ids(args.probes, args.probes_file), samples,
                          cell_byte_width=args.cell_bytes, overwrite=args.overwrite)
    print(handle)
    return 0


def _cmd_fill(args) -> int:
    handle = open_store(args.path)
    written = fill_from_file(handle, args.input_path, input_format=args.format,
                             strict=args.strict, skip_unknown_samples=args.skip_unknown_samples,
                             dataset_name=args.dataset)
    print(f"Filled {len(written)} samples into {handle.path}")
    return 0


def _cmd_slice(args, out=None) -> int:
    out = out or sys.stdout
    handle = open_store(args.path)
    samples = _ids(args.samples, args.samples_file) or list(handle.samples)
    probes = _ids(args.probes, args.probes_file)
    result = handle.slice(samples, probes)
    if args.drop_unfilled:
        result = result.drop_unfilled()
    if args.json:
        json.dump(result.to_dict(), out, indent=2)
        out.write("\n")
        return 0
    out.write("\t".join(["probe"] + result.samples) + "\n")
    for probe, row in zip(result.probes, result.values):
        cells = ["NA" if np.isnan(v) else repr(float(v)) for v in row]
        out.write("\t".join([probe] + cells) + "\n")
    return 0


def _cmd_info(args) -> int:
    summary = describe(open_store(args.path))
    for key, value in summary.items():
        print(f"{key:<16} {value}")
    return 0 if summary['size_ok'] else 1


COMMANDS = {
    "init": _cmd_init,
    "fill": _cmd_fill,
    "slice": _cmd_slice,
    "info": _cmd_info,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the command line interface."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "init" and args.platform and not args.reference:
        parser.error("--platform requires --reference")
    configure_logging(level=args.log_level, log_file=args.log_file)
    try:
        status = COMMANDS[args.command](args)
    except FileSetError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    get_profiler().log_summary()
    if args.profile_json:
        get_profiler().save_json(args.profile_json)
    return status


if __name__ == "__main__":
    sys.exit(main())
