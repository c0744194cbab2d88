#!/usr/bin/env python3
"""Render a scene of ellipsoids and CT volumes.

Without --scene the built-in demo scene is rendered (three ellipsoids and a
synthetic CT phantom). With --scene a JSON scene description is loaded; see
src/volray/scene/config.py for its format.

Usage:
    python -m examples.render_scene [options]

Options:
    --width WIDTH       Image width in pixels (default: 640)
    --height HEIGHT     Image height in pixels (default: 480)
    --scene FILE        JSON scene description (default: demo scene)
    --mode MODE         Override the hit policy of every CT volume
                        (isosurface or composite)
    --output OUTPUT     Output file path (default: render.png)
    --quiet             Suppress progress output

Example:
    python -m examples.render_scene --scene examples/scenes/ellipsoids.json --width 320 --height 240
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

import taichi as ti


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a scene of ellipsoids and CT volumes.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--width",
        type=int,
        default=640,
        help="Image width in pixels (default: 640)",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=480,
        help="Image height in pixels (default: 480)",
    )
    parser.add_argument(
        "--scene",
        type=str,
        default=None,
        help="JSON scene description (default: built-in demo scene)",
    )
    parser.add_argument(
        "--mode",
        choices=["isosurface", "composite"],
        default=None,
        help="Override the hit policy of every CT volume",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="render.png",
        help="Output file path (default: render.png)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )
    return parser.parse_args()


def render_scene(
    width: int = 640,
    height: int = 480,
    scene_path: str | None = None,
    mode: str | None = None,
    output_path: str = "render.png",
    quiet: bool = False,
) -> Path:
    """Build the scene, render it and save a PNG.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        scene_path: JSON scene description, or None for the demo scene.
        mode: If given, hit policy forced on every CT volume.
        output_path: Output file path (PNG).
        quiet: If True, suppress progress output.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from src.volray.core.renderer import RayTracer
    from src.volray.geometry.ct_scan import VolumeRenderMode
    from src.volray.scene.config import SceneConfig, create_demo_scene, scene_from_config

    start_time = time.time()

    if scene_path is None:
        if not quiet:
            print("Creating demo scene...")
        demo_mode = VolumeRenderMode[mode.upper()] if mode is not None else VolumeRenderMode.ISOSURFACE
        scene, camera = create_demo_scene(mode=demo_mode)
    else:
        if not quiet:
            print(f"Loading scene from {scene_path}...")
        path = Path(scene_path)
        config = SceneConfig.from_dict(json.loads(path.read_text()))
        if mode is not None:
            for ct in config.ct_scans:
                ct["mode"] = mode
        scene, camera = scene_from_config(config, base_dir=path.parent)

    if not quiet:
        print(f"Scene: {scene!r}")
        print(f"Rendering {width}x{height}...")

    output_file = RayTracer(scene).render_to_file(camera, width, height, output_path)

    total_time = time.time() - start_time
    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total time: {total_time:.2f}s")

    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()

    # Use GPU if available, fall back to CPU
    try:
        ti.init(arch=ti.gpu)
        if not args.quiet:
            print("Using GPU backend")
    except Exception:
        ti.init(arch=ti.cpu)
        if not args.quiet:
            print("Using CPU backend")

    try:
        render_scene(
            width=args.width,
            height=args.height,
            scene_path=args.scene,
            mode=args.mode,
            output_path=args.output,
            quiet=args.quiet,
        )
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
