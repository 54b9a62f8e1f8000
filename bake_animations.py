#!/usr/bin/env python3
"""CLI: Bake the skeletal clips of .glb/.gltf files into per-frame bone matrices.

Usage:
    python bake_animations.py character.glb --output-dir baked --fps 60
    python bake_animations.py assets/ --workers 4 --strict-paths
"""

import argparse
import logging
import sys
from concurrent.futures import ProcessPoolExecutor, as_completed
from pathlib import Path

from skinbake.bake_config import load_settings
from skinbake.errors import BakeError
from skinbake.gltf_source import load_subject
from skinbake.pipeline import build_skeleton, bake_file
from skinbake.store import DirectoryStore

log = logging.getLogger("skinbake")

SUFFIXES = (".glb", ".gltf")


def gather_inputs(paths):
    """Resolve input paths to a list of glTF files."""
    files = []
    for p in paths:
        p = Path(p)
        if p.is_file() and p.suffix.lower() in SUFFIXES:
            files.append(p)
        elif p.is_dir():
            files.extend(sorted(f for f in p.iterdir() if f.suffix.lower() in SUFFIXES))
        else:
            log.warning(f"Skipping {p} (not a .glb/.gltf file or directory)")
    return files


def bake_one(args):
    """Wrapper for ProcessPoolExecutor."""
    path, settings = args
    try:
        baked = bake_file(path, DirectoryStore(settings.output_dir), settings)
        return str(path), [b.name for b in baked], None
    except Exception as e:
        return str(path), [], str(e)


def print_hierarchy(path, settings):
    skeleton = build_skeleton(load_subject(path, settings.channels))
    print(f"{path}:")
    print(skeleton.format_hierarchy())


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Bake glTF skeletal animation clips to fixed-rate bone matrices"
    )
    parser.add_argument("input", nargs="+", help="Input .glb/.gltf file(s) or directory")
    parser.add_argument("--config", type=str, default=None,
                        help="YAML file overriding the packaged defaults")
    parser.add_argument("--fps", type=int, default=None, help="Sample rate (default: 60)")
    parser.add_argument("--output-dir", type=str, default=None,
                        help="Folder receiving <skeleton>/<clip>.npz")
    parser.add_argument("--sentinel", type=str, default=None,
                        help="Curve path of the armature wrapper node (default: Armature)")
    parser.add_argument("--strict-paths", action="store_true",
                        help="Fail a clip when a curve path matches several bones")
    parser.add_argument("--workers", type=int, default=1,
                        help="Number of parallel workers (default: 1)")
    parser.add_argument("--print-hierarchy", action="store_true",
                        help="Print each skeleton's bone tree and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s | %(message)s")

    try:
        settings = load_settings(
            args.config,
            fps=args.fps,
            output_dir=args.output_dir,
            armature_sentinel=args.sentinel,
            ambiguous_paths="error" if args.strict_paths else None,
        )
    except (OSError, ValueError) as e:
        log.error(f"Bad configuration: {e}")
        return 1

    files = gather_inputs(args.input)
    if not files:
        log.error("No .glb/.gltf files found.")
        return 1

    if args.print_hierarchy:
        status = 0
        for f in files:
            try:
                print_hierarchy(f, settings)
            except BakeError as e:
                log.error(f"{f.name}: {e}")
                status = 1
        return status

    log.info(f"Baking {len(files)} file(s) at {settings.fps} fps with {args.workers} worker(s)...")
    tasks = [(f, settings) for f in files]
    failed = 0

    def _report(name, clips, err):
        nonlocal failed
        if err:
            failed += 1
            log.error(f"FAIL: {Path(name).name}: {err}")
        else:
            log.info(f"OK: {Path(name).name} ({len(clips)} clip(s))")

    if args.workers <= 1:
        for task in tasks:
            _report(*bake_one(task))
    else:
        with ProcessPoolExecutor(max_workers=args.workers) as pool:
            futures = {pool.submit(bake_one, t): t for t in tasks}
            for future in as_completed(futures):
                _report(*future.result())

    log.info(f"Done. Output: {settings.output_dir}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
