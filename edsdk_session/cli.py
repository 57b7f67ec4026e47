"""Smoke-test entry point.

    python -m edsdk_session list
    python -m edsdk_session capture --save-dir shots --timeout 10
"""

from __future__ import annotations

import argparse
import logging
import os
import threading
from typing import Callable, List, Optional

from edsdk_session.config import SessionConfig
from edsdk_session.errors import DeviceNotFoundError, classify_error
from edsdk_session.manager import SessionManager
from edsdk_session.types import CameraIdentity, DownloadedImage

ManagerFactory = Callable[..., SessionManager]


def _pick_camera(cameras: List[CameraIdentity], port: Optional[str]) -> CameraIdentity:
    if not cameras:
        raise DeviceNotFoundError("No cameras connected")
    if port is None:
        return cameras[0]
    for camera in cameras:
        if camera.port_name == port:
            return camera
    raise DeviceNotFoundError(f"Unable to find camera at port name {port}")


def _cmd_list(manager: SessionManager, args: argparse.Namespace) -> int:
    cameras = manager.list_devices()
    if not cameras:
        print("No cameras connected")
    for camera in cameras:
        print(f"{camera.port_name}\t{camera.device_description}\t{camera.device_sub_type}")
    return 0


def _cmd_capture(manager: SessionManager, args: argparse.Namespace) -> int:
    camera = _pick_camera(manager.list_devices(), args.port)
    manager.open(camera)
    received: List[DownloadedImage] = []
    done = threading.Event()

    def on_image(image: DownloadedImage) -> None:
        received.append(image)
        done.set()

    unsubscribe = manager.subscribe_to_images(camera, on_image)
    try:
        manager.trigger_capture(camera)
        if not manager.wait_for(done, args.timeout):
            raise TimeoutError("Timed out waiting for image transfer event")
    finally:
        unsubscribe()
        manager.close(camera)
    for image in received:
        print("Saved:", image.path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="edsdk_session", description="Canon EDSDK session smoke test"
    )
    p.add_argument("--verbose", action="store_true", help="Verbose logging")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List connected cameras")

    cap = sub.add_parser("capture", help="Take one picture and download it")
    cap.add_argument("--port", default=None, help="Camera port name (default: first)")
    cap.add_argument("--save-dir", default=None, help="Directory to save images")
    cap.add_argument(
        "--timeout", type=float, default=10.0, help="Seconds to wait for the image"
    )
    cap.add_argument(
        "--settle",
        type=float,
        default=None,
        help="Seconds the shutter stays pressed (default: 0.4)",
    )
    cap.add_argument(
        "--pattern",
        default=None,
        help='File name pattern, e.g. "{timestamp}_{seq:04d}.{ext}"',
    )
    return p


def _config_from_args(args: argparse.Namespace) -> SessionConfig:
    config = SessionConfig()
    if getattr(args, "save_dir", None):
        os.makedirs(args.save_dir, exist_ok=True)
        config.download_dir = args.save_dir
    if getattr(args, "settle", None) is not None:
        config.shutter_settle_delay = args.settle
    if getattr(args, "pattern", None):
        config.file_pattern = args.pattern
    return config


def main(
    argv: Optional[List[str]] = None, manager_factory: ManagerFactory = SessionManager
) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    commands = {"list": _cmd_list, "capture": _cmd_capture}
    try:
        with manager_factory(config=_config_from_args(args), verbose=args.verbose) as manager:
            return commands[args.command](manager, args)
    except KeyboardInterrupt:
        print("Interrupted by user")
        return 1
    except Exception as e:
        info = classify_error(e)
        logging.getLogger(__name__).debug("%s: %s", info["type"], info["message"])
        print(f"Error: {e}")
        return 1
