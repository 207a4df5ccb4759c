"""Command-line interface for the point cloud painter."""

import argparse
import logging
import sys
from pathlib import Path

from pointpaint.config import PainterConfig
from pointpaint.images import ImageDecodeError
from pointpaint.io import RequestManifest, save_colorized_cloud, save_debug_clouds
from pointpaint.painter import PointcloudPainter
from pointpaint.transforms import TransformBuffer, load_transforms


def init_config_command(config_path: Path) -> PainterConfig:
    """Write a configuration file with all default values.

    Args:
        config_path: Path of the YAML file to create.

    Returns:
        The default PainterConfig that was written.
    """
    config = PainterConfig()
    config.to_yaml(config_path)
    print(f"Default configuration written to {config_path}")
    return config


def paint_command(
    manifest_path: Path,
    config_path: Path | None = None,
    transforms_path: Path | None = None,
    output: Path | None = None,
    debug_dir: Path | None = None,
    verbose: bool = False,
) -> None:
    """Paint the range cloud described by a request manifest.

    Args:
        manifest_path: Path to the request manifest YAML file.
        config_path: Optional painter config YAML file (defaults otherwise).
        transforms_path: Optional static transforms YAML file. Without it
            only identical frames can be related.
        output: Output cloud path, overriding the manifest's output.
        debug_dir: If set, also write the flat, spherical and range direction
            clouds to this directory.
        verbose: If True, set logging to DEBUG level.
    """
    # 1. Configure logging
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    # Silence noisy third-party loggers
    for name in ("PIL", "open3d"):
        logging.getLogger(name).setLevel(logging.WARNING)

    # 2. Load config
    if config_path is not None:
        if not config_path.exists():
            print(f"Error: Config file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
        try:
            config = PainterConfig.from_yaml(config_path)
        except Exception as e:
            print(f"Error: Failed to load config: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        config = PainterConfig()

    # 3. Load transforms and request
    try:
        transforms = (
            load_transforms(transforms_path)
            if transforms_path is not None
            else TransformBuffer()
        )
        manifest = RequestManifest.from_yaml(manifest_path)
        request = manifest.to_request()
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    output_path = output or (Path(manifest.output) if manifest.output else None)
    if output_path is None:
        output_path = manifest_path.with_name(f"{manifest_path.stem}_painted.ply")

    # 4. Paint
    painter = PointcloudPainter(config, transforms)
    try:
        result = painter.paint(request)
    except (ImageDecodeError, ValueError) as e:
        print(f"Error: Paint request failed: {e}", file=sys.stderr)
        sys.exit(1)

    save_colorized_cloud(result.cloud, output_path)
    if debug_dir is not None:
        save_debug_clouds(result, debug_dir)

    timings = result.timings
    print(f"\nPainted {len(result.cloud)} points -> {output_path}")
    print(f"  depth preprocessing: {timings.depth_preprocessing:.3f}s")
    for index, seconds in enumerate(timings.image_processing):
        print(f"  image {index}: {seconds:.3f}s")
    print(f"  image voxelizing:    {timings.image_voxelizing:.3f}s")
    print(f"  color search:        {timings.color_search:.3f}s")
    print(f"  total:               {timings.total:.3f}s\n")


def main() -> None:
    """Main entry point for the pointpaint CLI."""
    parser = argparse.ArgumentParser(
        prog="pointpaint",
        description="Color range scans with images from wide-angle cameras.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-config subcommand
    init_parser = subparsers.add_parser(
        "init-config",
        help="Write a config file with default values",
    )
    init_parser.add_argument(
        "config",
        type=Path,
        nargs="?",
        default=Path("pointpaint.yaml"),
        help="Path to output config YAML file (default: pointpaint.yaml)",
    )

    # paint subcommand
    paint_parser = subparsers.add_parser(
        "paint",
        help="Paint a range cloud described by a request manifest",
    )
    paint_parser.add_argument(
        "manifest",
        type=Path,
        help="Path to request manifest YAML file",
    )
    paint_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to painter config YAML file (default: built-in defaults)",
    )
    paint_parser.add_argument(
        "--transforms",
        type=Path,
        default=None,
        help="Path to static transforms YAML file",
    )
    paint_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output cloud path (.ply, .pcd or .npz), overrides the manifest",
    )
    paint_parser.add_argument(
        "--debug-dir",
        type=Path,
        default=None,
        help="Directory for intermediate flat, spherical and range direction clouds",
    )
    paint_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    args = parser.parse_args()

    # Dispatch
    if args.command == "init-config":
        init_config_command(args.config)
    elif args.command == "paint":
        paint_command(
            manifest_path=args.manifest,
            config_path=args.config,
            transforms_path=args.transforms,
            output=args.output,
            debug_dir=args.debug_dir,
            verbose=args.verbose,
        )
    else:
        parser.print_help()
        sys.exit(1)
