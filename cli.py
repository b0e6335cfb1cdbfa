"""
Headless CLI entry point for the volume filter plugins.

Runs one plugin (load -> declare output -> process -> export) without any
host application or display server.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from typing import Dict, List, Optional, Sequence, Tuple

from config import CLI_DEFAULT_FORMATS, CLI_DEFAULT_LOG_LEVEL
from core import ExecutionResult, ExecutionStatus, InvocationDTO, Marker, VolumeDescriptor, run_filter
from core.errors import PreconditionError
from core.progress import ProgressBus, TerminalProgressObserver
from exporters import export_volume, normalize_formats
from loaders import NumpyVolumeLoader, SyntheticVolumeLoader
from plugins import available_plugins, get_plugin


def _parse_param(text: str) -> Tuple[str, str]:
    name, sep, value = text.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"Expected name=value, got '{text}'.")
    return name.strip(), value.strip()


def _parse_triple(text: str) -> Tuple[float, float, float]:
    parts = [p for p in text.replace(";", ",").split(",") if p.strip()]
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"Expected x,y,z, got '{text}'.")
    try:
        return tuple(float(p) for p in parts)  # type: ignore[return-value]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python cli.py",
        description="Headless volume filter runner",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "--config",
        metavar="FILE",
        help="Path to YAML or JSON invocation file. Overrides other flags.",
    )
    parser.add_argument("--plugin", metavar="KEY", default="", help="Plugin key (see --list).")
    parser.add_argument("--input", metavar="PATH", default="", help="Input volume (.npy or .npz).")
    parser.add_argument("--loader", metavar="TYPE", default="numpy", help="Loader type: numpy | synthetic.")
    parser.add_argument("--pattern", metavar="NAME", default="sphere", help="Synthetic pattern: sphere | outlier.")
    parser.add_argument(
        "--shape",
        metavar="N",
        type=int,
        nargs=3,
        default=[32, 32, 32],
        help="Synthetic volume shape (z y x).",
    )
    parser.add_argument("--kind", metavar="TYPE", default="uint8", help="Synthetic voxel type.")
    parser.add_argument("--second-input", metavar="PATH", default=None, help="Second input volume.")
    parser.add_argument(
        "--param",
        metavar="NAME=VALUE",
        type=_parse_param,
        action="append",
        default=[],
        help="Plugin parameter (repeatable).",
    )
    parser.add_argument(
        "--marker",
        metavar="X,Y,Z",
        type=_parse_triple,
        action="append",
        default=[],
        help="Seed marker position (repeatable).",
    )
    parser.add_argument(
        "--marker-frame",
        metavar="FRAME",
        default="world",
        choices=("world", "index"),
        help="Marker coordinates: world (mm) or index (voxels).",
    )
    parser.add_argument("--output", metavar="PATH", default=None, help="Output path stem.")
    parser.add_argument(
        "--formats",
        metavar="FMT",
        nargs="+",
        default=list(CLI_DEFAULT_FORMATS),
        help="Export formats: npy tiff vti (space-separated).",
    )
    parser.add_argument("--list", action="store_true", help="List available plugins and exit.")
    parser.add_argument("--describe", metavar="KEY", default=None, help="Print plugin metadata and exit.")
    parser.add_argument("--dry-run", action="store_true", help="Print resolved invocation without running.")
    parser.add_argument("--quiet", action="store_true", help="Do not render progress.")
    parser.add_argument("--log-level", metavar="LEVEL", default=CLI_DEFAULT_LOG_LEVEL, help="Logging level.")
    return parser


def _resolve_dto(args: argparse.Namespace, parser: argparse.ArgumentParser) -> InvocationDTO:
    """Resolve DTO from config file or inline CLI flags."""
    if args.config:
        cfg_path = args.config
        if cfg_path.endswith(".json"):
            return InvocationDTO.from_json(cfg_path)
        return InvocationDTO.from_yaml(cfg_path)

    if not args.plugin:
        parser.error("Provide --config FILE or --plugin KEY")
    if args.loader == "numpy" and not args.input:
        parser.error("Provide --input PATH or --loader synthetic")

    params: Dict[str, str] = dict(args.param)
    return InvocationDTO(
        plugin=args.plugin,
        parameters=params,
        input_path=args.input,
        loader_type=args.loader,
        synthetic_pattern=args.pattern,
        synthetic_shape=tuple(args.shape),
        synthetic_kind=args.kind,
        second_input_path=args.second_input,
        markers=tuple(args.marker),
        marker_frame=args.marker_frame,
        output_path=args.output,
        export_formats=tuple(args.formats),
    )


def load_inputs(dto: InvocationDTO) -> Tuple[VolumeDescriptor, Optional[VolumeDescriptor]]:
    if dto.loader_type == "synthetic":
        volume = SyntheticVolumeLoader().load(dto.synthetic_pattern, shape=dto.synthetic_shape, kind=dto.synthetic_kind)
    elif dto.loader_type == "numpy":
        volume = NumpyVolumeLoader().load(dto.input_path)
    else:
        raise PreconditionError(f"Unknown loader type '{dto.loader_type}'. Expected numpy or synthetic.")
    second = NumpyVolumeLoader().load(dto.second_input_path) if dto.second_input_path else None
    return volume, second


def run_invocation(dto: InvocationDTO, progress_bus: Optional[ProgressBus] = None) -> Tuple[ExecutionResult, List[str]]:
    """
    Execute one invocation end to end.

    Returns:
        The execution result and the exported file paths.
    """
    try:
        spec = get_plugin(dto.plugin)
        formats = normalize_formats(dto.export_formats) if dto.output_path else []
        volume, second = load_inputs(dto)
    except PreconditionError as exc:
        return ExecutionResult(ExecutionStatus.PRECONDITION_ERROR, message=str(exc)), []

    markers = [Marker(position=m, frame=dto.marker_frame) for m in dto.markers]
    result, output = run_filter(spec, volume, dto.parameters, markers, second, progress_bus)

    exported: List[str] = []
    if result.succeeded and output is not None and dto.output_path:
        exported = export_volume(output, dto.output_path, formats)
    return result, exported


def _print_plugins() -> None:
    print("Available plugins:")
    for key in available_plugins():
        spec = get_plugin(key)
        print(f"  {key:<32} {spec.group} / {spec.name}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.list:
        _print_plugins()
        return 0
    if args.describe:
        try:
            spec = get_plugin(args.describe)
        except PreconditionError as exc:
            print(f"[CLI] {exc}")
            return ExecutionStatus.PRECONDITION_ERROR.exit_code
        print(json.dumps(spec.describe(), indent=2))
        return 0

    dto = _resolve_dto(args, parser)

    if args.dry_run:
        print("Resolved InvocationDTO:")
        print(json.dumps(dto.to_dict(), indent=2))
        return 0

    progress_bus = ProgressBus()
    if not args.quiet:
        progress_bus.subscribe(TerminalProgressObserver())

    print(f"[CLI] Running plugin '{dto.plugin}'")
    t_start = time.perf_counter()
    try:
        result, exported = run_invocation(dto, progress_bus)
    except KeyboardInterrupt:
        print("\n[CLI] Aborted by user.")
        return ExecutionStatus.PIPELINE_ERROR.exit_code
    elapsed = time.perf_counter() - t_start

    if not result.succeeded:
        print(f"\n[CLI] {result.status.value}: {result.message}")
        return result.status.exit_code

    print(f"\n[CLI] {result.message} ({elapsed:.2f}s, {result.iterations} iterations)")
    if result.report:
        print(result.report)
    if exported:
        print("Exported files:")
        for path in exported:
            print(f"  {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
