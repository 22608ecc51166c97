"""Qt front end for decoding images off the GUI thread.

``ImageEngine`` chains the two background stages: ``DecodeLoader`` runs
cancelable decodes on its pool, and ``ConvertWorker`` turns the decoded
pixels into ``QImage`` on a dedicated thread. Results arrive on the thread
that owns the engine through ``image_ready``.
"""

from __future__ import annotations

from PySide6.QtCore import QObject, QThread, Signal
from PySide6.QtGui import QImage

from uri_image.logger import get_logger
from uri_image.settings_manager import SettingsManager

from .cancelable import CancelableDecodeOperation
from .convert_worker import ConvertWorker
from .loader import DecodeLoader
from .sample_size import NO_LIMIT
from .uri_image import UriImage

_logger = get_logger("engine")


class ImageEngine(QObject):
    """Decode and convert images in the background.

    Signals:
        image_ready: (location, qimage, error). ``qimage`` is null when
            ``error`` is set. Canceled and superseded decodes emit nothing.
    """

    image_ready = Signal(str, QImage, object)

    def __init__(self, settings: SettingsManager | None = None, parent: QObject | None = None):
        super().__init__(parent)
        self._settings = settings or SettingsManager()
        self._loader = DecodeLoader(self._settings)

        self._convert_thread = QThread(self)
        self._convert_worker = ConvertWorker()
        self._convert_worker.moveToThread(self._convert_thread)
        self._convert_thread.start()
        # Queued across threads: decode results land in the worker's thread.
        self._loader.image_decoded.connect(self._convert_worker.convert)
        self._convert_worker.image_converted.connect(self._on_image_converted)
        _logger.debug("ImageEngine initialized: workers=%s", self._settings.loader_workers)

    @property
    def loader(self) -> DecodeLoader:
        return self._loader

    @property
    def settings(self) -> SettingsManager:
        return self._settings

    def request_decode(
        self, image: UriImage, target_max_dimension: int = NO_LIMIT
    ) -> CancelableDecodeOperation | None:
        """Schedule a decode of ``image``; the result arrives via ``image_ready``."""
        return self._loader.request_load(image, target_max_dimension)

    def request_thumbnail(self, image: UriImage) -> CancelableDecodeOperation | None:
        return self._loader.request_load(image, self._settings.thumbnail_target_size)

    def cancel(self, location: str) -> bool:
        return self._loader.cancel(location)

    def shutdown(self) -> None:
        """Cancel outstanding decodes and stop the convert thread."""
        _logger.debug("ImageEngine shutting down")
        self._loader.shutdown()
        if self._convert_thread.isRunning():
            self._convert_thread.quit()
            self._convert_thread.wait()

    def _on_image_converted(self, location: str, qimage: QImage, error) -> None:
        if error or qimage.isNull():
            _logger.debug("image conversion failed for %s: %s", location, error)
            self.image_ready.emit(location, QImage(), error or "conversion failed")
            return
        _logger.debug("image ready: %s %dx%d", location, qimage.width(), qimage.height())
        self.image_ready.emit(location, qimage, None)
