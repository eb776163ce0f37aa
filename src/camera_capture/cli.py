"""Command-line entry point: capture a fixed number of frames to disk.

Example::

    camera-capture --cti /opt/ids/cti/ids_u3vgentl.cti --frames 300
    camera-capture --camera simulated --frames 10 --output-dir /tmp/cap
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from typing import Sequence

from camera_capture import __version__
from camera_capture.cameras.factory import create_provider
from camera_capture.config.loader import load_config
from camera_capture.config.schema import AcquisitionMode, CameraCaptureConfig
from camera_capture.consumers import CompositeConsumer, FrameCounter, ImageFileWriter
from camera_capture.errors import ConfigRejected, DeviceUnavailable, StreamError
from camera_capture.session import AcquisitionSession

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_DEVICE = 1
EXIT_CONFIG = 2
EXIT_STREAM = 3


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="camera-capture",
        description="Capture a fixed number of frames from a GenICam camera.",
    )
    p.add_argument("--config", help="YAML configuration file")
    p.add_argument("--camera", help="driver: genicam or simulated")
    p.add_argument("--cti", help="GenTL producer .cti file")
    p.add_argument("--index", type=int, help="camera enumeration index")
    p.add_argument("--serial", help="camera serial number")
    p.add_argument("--frames", type=int, help="number of frames to wait for")
    p.add_argument("--timeout-ms", type=int, help="per-frame timeout")
    p.add_argument(
        "--mode", choices=[m.value for m in AcquisitionMode],
        help="acquisition mode",
    )
    p.add_argument("--exposure-us", type=float, help="exposure time")
    p.add_argument("--width", type=int)
    p.add_argument("--height", type=int)
    p.add_argument("--output-dir", help="directory receiving run folders")
    p.add_argument("--no-save", action="store_true", help="do not write images")
    p.add_argument("--list", action="store_true", help="list cameras and exit")
    p.add_argument("-v", "--verbose", action="count", default=0)
    p.add_argument("--version", action="version", version=__version__)
    return p


def _override(obj, **changes):
    """``dataclasses.replace`` that ignores options left unset."""
    changes = {k: v for k, v in changes.items() if v is not None}
    return dataclasses.replace(obj, **changes) if changes else obj


def apply_overrides(
    config: CameraCaptureConfig,
    args: argparse.Namespace,
) -> CameraCaptureConfig:
    """Layer command-line options on top of a loaded configuration."""
    return dataclasses.replace(
        config,
        device=_override(
            config.device,
            camera_type=args.camera,
            cti_path=args.cti,
            index=args.index,
            serial_number=args.serial,
        ),
        acquisition=_override(
            config.acquisition,
            mode=AcquisitionMode(args.mode) if args.mode else None,
            exposure_us=args.exposure_us,
            width=args.width,
            height=args.height,
        ),
        capture=_override(
            config.capture,
            frame_count=args.frames,
            timeout_ms=args.timeout_ms,
        ),
        output=_override(
            config.output,
            output_dir=args.output_dir,
            save_images=False if args.no_save else None,
        ),
    )


def _make_provider(config: CameraCaptureConfig):
    kwargs = {}
    if config.device.cti_path:
        kwargs["cti_path"] = config.device.cti_path
    return create_provider(config.device.camera_type, **kwargs)


def run_capture(config: CameraCaptureConfig) -> int:
    """Open, configure, capture and close; return a process exit code."""
    try:
        config.capture.validate()
    except ConfigRejected as exc:
        print(f"Configuration rejected: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        provider = _make_provider(config)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    counter = FrameCounter()
    consumers = [counter]
    writer = None
    if config.output.save_images:
        writer = ImageFileWriter(config.output.output_dir, config.output.image_format)
        consumers.append(writer)

    try:
        with provider, AcquisitionSession(provider) as session:
            session.open(
                config=config.acquisition,
                index=config.device.index,
                serial_number=config.device.serial_number,
            )
            print(f"Camera opened: {session.device.descriptor.display_name}")
            result = session.run(
                config.capture.frame_count,
                config.capture.timeout_ms,
                CompositeConsumer(consumers),
            )
    except DeviceUnavailable as exc:
        print(str(exc) or "No camera found.", file=sys.stderr)
        return EXIT_NO_DEVICE
    except ConfigRejected as exc:
        print(f"Configuration rejected: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except StreamError as exc:
        print(f"Acquisition failed: {exc}", file=sys.stderr)
        return EXIT_STREAM

    print(
        f"Captured {result.frames_captured}/{result.frames_requested} frames "
        f"({result.frames_timed_out} timed out, "
        f"{result.frames_rejected} not saved) in {result.elapsed_s:.2f}s"
    )
    if writer is not None and writer.written:
        print(f"Frames written to {writer.run_dir}")
    return EXIT_OK


def list_devices(config: CameraCaptureConfig) -> int:
    try:
        with _make_provider(config) as provider:
            devices = provider.enumerate()
    except (ValueError, DeviceUnavailable) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_NO_DEVICE
    if not devices:
        print("No camera found.", file=sys.stderr)
        return EXIT_NO_DEVICE
    for d in devices:
        print(f"[{d.index}] {d.display_name}")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.WARNING - 10 * min(args.verbose, 2),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = apply_overrides(load_config(args.config), args)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    if args.list:
        return list_devices(config)
    return run_capture(config)


if __name__ == "__main__":
    sys.exit(main())
