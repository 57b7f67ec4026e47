"""Minimal capture example using SessionManager.

  1. List the connected cameras and open the first one
  2. Subscribe to downloaded images
  3. Trigger a capture and wait for the file to land in ``shots/``

Set the camera's mode dial to a mode that allows remote release (M / Av / Tv).
"""

import os
import threading

from edsdk_session import SessionConfig, SessionManager

save_dir = os.path.abspath("shots")
os.makedirs(save_dir, exist_ok=True)

config = SessionConfig(
    download_dir=save_dir,
    file_pattern="{timestamp}_{seq:04d}.{ext}",  # e.g. 20251111_153045_0001.JPG
)

with SessionManager(config=config, verbose=True) as manager:
    cameras = manager.list_devices()
    if not cameras:
        raise SystemExit("No cameras connected")
    camera = cameras[0]
    print("Using", camera)
    manager.open(camera)

    done = threading.Event()

    def on_image(image):
        print("Saved:", image.path, f"({image.size} bytes)")
        done.set()

    unsubscribe = manager.subscribe_to_images(camera, on_image)
    manager.trigger_capture(camera)
    if not manager.wait_for(done, 10):
        print("No image arrived within 10s")
    unsubscribe()
    manager.close(camera)
