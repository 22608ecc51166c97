"""Worker to convert decoded images into QImage on a background thread.

QImage creation from raw buffers can be done off the GUI thread; creating a
QPixmap must be done on the main thread.
"""

from PySide6.QtCore import QObject, Signal, Slot
from PySide6.QtGui import QImage

from .backend import PixelFormat
from .decoder import DecodedImage

_QIMAGE_FORMATS = {
    PixelFormat.ARGB_8888: QImage.Format.Format_RGBA8888,
    PixelFormat.RGB_888: QImage.Format.Format_RGB888,
    PixelFormat.ALPHA_8: QImage.Format.Format_Alpha8,
}


def to_qimage(image: DecodedImage) -> QImage:
    """Copy a DecodedImage into a QImage that owns its pixels."""
    arr = image.pixels
    if not arr.flags["C_CONTIGUOUS"]:
        arr = arr.copy()
    bytes_per_line = image.pixel_format.bands * image.width
    # .copy() detaches the QImage from the numpy buffer.
    return QImage(arr.data, image.width, image.height, bytes_per_line, _QIMAGE_FORMATS[image.pixel_format]).copy()


class ConvertWorker(QObject):
    """Background worker that creates QImage objects from decoded images."""

    # Emits: location, qimage, error
    image_converted = Signal(str, QImage, object)

    @Slot(str, object, object)
    def convert(self, location: str, image: object, error: object) -> None:
        """Convert a DecodedImage into a QImage.

        If ``error`` is truthy or ``image`` is None, an empty QImage is emitted
        with the original error.
        """
        if error or image is None:
            self.image_converted.emit(location, QImage(), error)
            return
        if not isinstance(image, DecodedImage):
            self.image_converted.emit(location, QImage(), f"unexpected image type: {type(image).__name__}")
            return
        self.image_converted.emit(location, to_qimage(image), None)
