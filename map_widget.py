"""
Map widget for displaying boundary outlines and the climate raster.
"""
import logging

from PyQt6.QtWidgets import QWidget
from PyQt6.QtCore import Qt, QRectF, QPointF, pyqtSignal
from PyQt6.QtGui import QPainter, QPen, QBrush, QColor, QImage, QPainterPath, QLinearGradient
from shapely.geometry import Point

logger = logging.getLogger(__name__)


def qimage_from_pil(image):
    """Copy a PIL RGBA image into a QImage that owns its pixels."""
    data = image.tobytes("raw", "RGBA")
    qimage = QImage(data, image.width, image.height, image.width * 4, QImage.Format.Format_RGBA8888)
    return qimage.copy()


class MapWidget(QWidget):
    """Boundary map with the raster drawn underneath at its projected rectangle.

    Everything arrives in projection output space (output_size) and is scaled
    uniformly to fit the widget, centered.
    """

    featureClicked = pyqtSignal(object)  # Feature
    featureHovered = pyqtSignal(object)  # Feature or None
    statusMessage = pyqtSignal(str)

    def __init__(self, output_size=(560, 320), parent=None):
        super().__init__(parent)
        self.output_size = output_size
        self.map_view = None
        self.placement = None
        self.raster_image = QImage()
        self.raster_image_layer = None  # RasterLayer raster_image was converted from
        self.legend = []
        self.legend_title = ""
        self.hovered = None
        self.highlighted_key = None
        self.show_legend = True
        self.setMouseTracking(True)
        self.setMinimumSize(*output_size)

    def set_map_view(self, map_view):
        self.map_view = map_view
        self.hovered = None
        self.update()

    def set_placement(self, placement):
        """Show the raster at a new rectangle; the image is only converted when the layer changes."""
        self.placement = placement
        if placement is None or placement.layer.released:
            self.raster_image = QImage()
            self.raster_image_layer = None
        elif placement.layer is not self.raster_image_layer:
            self.raster_image = qimage_from_pil(placement.image)
            self.raster_image_layer = placement.layer
        self.update()

    def set_legend(self, stops, title=""):
        self.legend = list(stops)
        self.legend_title = title
        self.update()

    def set_highlighted(self, key):
        self.highlighted_key = key
        self.update()

    def _view_transform(self):
        """(scale, dx, dy) taking output space to widget pixels."""
        ow, oh = self.output_size
        scale = min(self.width() / ow, self.height() / oh)
        dx = (self.width() - ow * scale) / 2
        dy = (self.height() - oh * scale) / 2
        return scale, dx, dy

    def to_widget(self, x, y):
        scale, dx, dy = self._view_transform()
        return QPointF(x * scale + dx, y * scale + dy)

    def to_output(self, point):
        scale, dx, dy = self._view_transform()
        return ((point.x() - dx) / scale, (point.y() - dy) / scale)

    def feature_at(self, point):
        """Feature under a widget position, or None."""
        if self.map_view is None:
            return None
        lon, lat = self.map_view.projection.invert(self.to_output(point))
        p = Point(lon, lat)
        for feature in self.map_view.features:
            if not feature.geometry.is_empty and feature.geometry.contains(p):
                return feature
        return None

    def _feature_path(self, feature):
        path = QPainterPath()
        for ring in self.map_view.projection.rings_for(feature):
            if not ring:
                continue
            path.moveTo(self.to_widget(*ring[0]))
            for x, y in ring[1:]:
                path.lineTo(self.to_widget(x, y))
            path.closeSubpath()
        return path

    def mouseMoveEvent(self, event):
        feature = self.feature_at(event.position())
        if feature is not self.hovered:
            self.hovered = feature
            self.featureHovered.emit(feature)
            if feature is not None:
                self.setToolTip(feature.name)
            else:
                self.setToolTip("")
            self.update()

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            return
        feature = self.feature_at(event.position())
        if feature is not None:
            self.featureClicked.emit(feature)

    def leaveEvent(self, event):
        if self.hovered is not None:
            self.hovered = None
            self.featureHovered.emit(None)
            self.update()
        super().leaveEvent(event)

    def paintEvent(self, event):
        """Paint the raster, then the boundary outlines, then the legend."""
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), QColor(235, 241, 245))

        if self.placement is not None and not self.raster_image.isNull():
            rect = self.placement.rect
            top_left = self.to_widget(rect.x, rect.y)
            bottom_right = self.to_widget(rect.x + rect.width, rect.y + rect.height)
            painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, False)
            painter.drawImage(QRectF(top_left, bottom_right), self.raster_image)

        if self.map_view is None:
            painter.setPen(QColor(90, 90, 90))
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, "No boundaries to display")
        else:
            for feature in self.map_view.features:
                if feature.id not in self.map_view.paths:
                    continue
                path = self._feature_path(feature)
                if feature is self.hovered:
                    painter.setBrush(QBrush(QColor(255, 255, 255, 70)))
                    painter.setPen(QPen(QColor(20, 20, 20), 2))
                elif self.highlighted_key is not None and feature.key == self.highlighted_key:
                    painter.setBrush(Qt.BrushStyle.NoBrush)
                    painter.setPen(QPen(QColor(200, 30, 30), 2))
                else:
                    painter.setBrush(Qt.BrushStyle.NoBrush)
                    painter.setPen(QPen(QColor(60, 60, 60), 1))
                painter.drawPath(path)

        self._draw_legend(painter)

    def _draw_legend(self, painter):
        """Color ramp with end labels in the upper left corner."""
        if not self.legend or not self.show_legend:
            return

        margin = 10
        padding = 8
        bar_width = 160
        bar_height = 12
        line_height = 16
        legend_width = bar_width + padding * 2
        legend_height = padding * 2 + line_height * 2 + bar_height

        x = margin
        y = margin
        painter.fillRect(QRectF(x, y, legend_width, legend_height), QColor(255, 255, 255, 200))
        painter.setPen(QPen(QColor(80, 80, 80), 1))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(QRectF(x, y, legend_width, legend_height))

        painter.drawText(int(x + padding), int(y + padding + line_height - 4), self.legend_title)

        bar = QRectF(x + padding, y + padding + line_height, bar_width, bar_height)
        gradient = QLinearGradient(bar.topLeft(), bar.topRight())
        for offset, _value, color in self.legend:
            gradient.setColorAt(offset, QColor(color))
        painter.fillRect(bar, QBrush(gradient))

        first, last = self.legend[0][1], self.legend[-1][1]
        label_y = int(bar.bottom() + line_height - 2)
        painter.drawText(int(bar.left()), label_y, f"{first:g}")
        last_text = f"{last:g}"
        text_width = painter.fontMetrics().horizontalAdvance(last_text)
        painter.drawText(int(bar.right() - text_width), label_y, last_text)
