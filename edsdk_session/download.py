from __future__ import annotations

import collections
import itertools
import logging
import os
import time
import uuid
from concurrent.futures import Executor, Future
from typing import Any, List, Optional, Tuple

from edsdk_session.binding import SdkBinding
from edsdk_session.constants import ACCESS_WRITE, FILE_CREATE_DISPOSITION_CREATE_ALWAYS
from edsdk_session.errors import DownloadError, NativeCallError
from edsdk_session.handles import NativeHandle
from edsdk_session.listeners import ListenerRegistry
from edsdk_session.types import DownloadedImage, ItemInfo

logger = logging.getLogger(__name__)


class ImageDownloadPipeline:
    """Pulls a transfer-ready item off the camera and announces it.

    ``run`` does the blocking work; ``dispatch`` hands it to an executor so
    the event pump that delivered the transfer request returns at once.
    """

    def __init__(
        self,
        binding: SdkBinding,
        registry: ListenerRegistry,
        download_dir: str,
        *,
        executor: Optional[Executor] = None,
        file_pattern: Optional[str] = None,
        seq_start: int = 1,
        unclaimed_limit: int = 32,
    ) -> None:
        self._binding = binding
        self._registry = registry
        self.download_dir = download_dir
        self._executor = executor
        self._file_pattern = file_pattern
        self._seq = itertools.count(int(seq_start))
        # Images written while nobody was subscribed, oldest dropped first
        self.unclaimed: "collections.deque[DownloadedImage]" = collections.deque(
            maxlen=unclaimed_limit
        )

    def drain_unclaimed(self) -> List[DownloadedImage]:
        """Return and forget the images nobody received."""
        images = []
        while self.unclaimed:
            images.append(self.unclaimed.popleft())
        return images

    # ---------- Naming ----------
    def destination(self, info: ItemInfo) -> Tuple[str, str]:
        orig_name = info.filename or f"{uuid.uuid4()}.bin"
        filename = orig_name
        if self._file_pattern:
            base, ext = os.path.splitext(orig_name)
            try:
                filename = self._file_pattern.format(
                    basename=base,
                    ext=(ext or ".bin").lstrip("."),
                    timestamp=time.strftime("%Y%m%d_%H%M%S"),
                    seq=next(self._seq),
                )
            except (KeyError, IndexError, ValueError) as e:
                logger.warning("Bad file pattern %r: %s", self._file_pattern, e)
                filename = orig_name
        # sanitize path separators in the device supplied name
        filename = filename.replace("\\", "_").replace("/", "_")
        return os.path.join(self.download_dir, filename), filename

    # ---------- Pipeline ----------
    def run(self, item: Any) -> DownloadedImage:
        try:
            info = self._binding.item_info(item)
        except NativeCallError as e:
            raise DownloadError.from_native("Unable to get directory item info", e) from e

        path, filename = self.destination(info)
        try:
            stream = NativeHandle.adopt(
                self._binding,
                self._binding.create_file_stream(
                    path, FILE_CREATE_DISPOSITION_CREATE_ALWAYS, ACCESS_WRITE
                ),
            )
        except NativeCallError as e:
            raise DownloadError.from_native(f"Unable to create file stream for {path}", e) from e

        with stream:
            try:
                self._binding.download(item, info.size, stream.ref)
            except NativeCallError as e:
                raise DownloadError.from_native(f"Unable to download {filename}", e) from e
            try:
                self._binding.download_complete(item)
            except NativeCallError as e:
                # the file is already on disk
                logger.warning("Unable to mark download of %s as complete: %s", filename, e)

        image = DownloadedImage(
            path=path, filename=filename, size=info.size, timestamp=info.timestamp
        )
        logger.info("Downloaded %s (%d bytes)", path, image.size)
        if self._registry.publish(image) == 0:
            self.unclaimed.append(image)
            logger.warning(
                "Got new image %s, but there were no listeners. "
                "Subscribe before triggering a capture.",
                filename,
            )
        return image

    def dispatch(self, item_ref: Any) -> Optional["Future[Optional[DownloadedImage]]"]:
        """Run the pipeline for ``item_ref`` in the background.

        The item is retained until the run finishes, since the SDK only
        guarantees it for the duration of the callback.
        """
        item = NativeHandle.retain(self._binding, item_ref)
        if self._executor is None:
            self._run_owned(item)
            return None
        try:
            return self._executor.submit(self._run_owned, item)
        except RuntimeError:
            # executor already shut down
            logger.error("Dropping transfer request, download executor is shut down")
            item.release()
            return None

    def _run_owned(self, item: NativeHandle) -> Optional[DownloadedImage]:
        try:
            return self.run(item.ref)
        except DownloadError as e:
            logger.error("Image download failed: %s", e)
        except Exception:
            logger.exception("Unexpected failure while downloading image")
        finally:
            item.release()
        return None
