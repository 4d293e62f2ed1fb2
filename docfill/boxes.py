"""Locate rectangular boxes in a rendered page.

The detector works on a binary edge map (Sobel magnitude against a fixed
threshold) and scans candidate top-left corners on a coarse grid. A corner is
accepted when a horizontal line runs right from it and a vertical line runs
down from it; the box then grows along those lines. Thresholds are tuned for
pages rendered at twice their point size.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .models import Rectangle

logger = logging.getLogger(__name__)

_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float32)


@dataclass(frozen=True)
class BoxDetectorConfig:
    edge_threshold: float = 50.0
    grid_step: int = 10
    min_width: int = 50
    min_height: int = 15
    min_coverage: float = 0.3
    max_width_ratio: float = 0.8
    max_height: int = 100
    # Rows/columns either side of a tracked line that still count as "on" it.
    line_tolerance: int = 1


def to_grayscale(pixels: np.ndarray) -> np.ndarray:
    if pixels.ndim == 2:
        return pixels.astype(np.float32)
    return pixels[..., :3].astype(np.float32) @ _LUMA


def sobel_magnitude(gray: np.ndarray) -> np.ndarray:
    p = np.pad(gray, 1, mode="edge")
    gx = (p[:-2, 2:] + 2 * p[1:-1, 2:] + p[2:, 2:]) - (p[:-2, :-2] + 2 * p[1:-1, :-2] + p[2:, :-2])
    gy = (p[2:, :-2] + 2 * p[2:, 1:-1] + p[2:, 2:]) - (p[:-2, :-2] + 2 * p[:-2, 1:-1] + p[:-2, 2:])
    return np.hypot(gx, gy)


def edge_map(pixels: np.ndarray, threshold: float = 50.0) -> np.ndarray:
    return sobel_magnitude(to_grayscale(pixels)) > threshold


class BoxDetector:
    """Find non-overlapping boxes in raster space."""

    def __init__(self, config: Optional[BoxDetectorConfig] = None) -> None:
        self.config = config or BoxDetectorConfig()

    def detect(self, pixels: np.ndarray, page: int = 1) -> List[Rectangle]:
        cfg = self.config
        edges = edge_map(pixels, cfg.edge_threshold)
        height, width = edges.shape
        max_width = int(width * cfg.max_width_ratio)
        half = cfg.grid_step // 2
        accepted: List[Rectangle] = []

        for grid_y in range(0, height - cfg.min_height, cfg.grid_step):
            for grid_x in range(0, width - cfg.min_width, cfg.grid_step):
                corner = self._find_corner(edges, grid_x, grid_y, half)
                if corner is None:
                    continue
                x, y = corner
                box_width = self._grow_width(edges, x, y, max_width)
                box_height = self._grow_height(edges, x, y)
                candidate = Rectangle(page=page, x=x, y=y, width=box_width, height=box_height)
                if any(candidate.intersects(existing) for existing in accepted):
                    continue
                accepted.append(candidate)

        logger.debug("Page %d: %d boxes detected", page, len(accepted))
        return accepted

    def _find_corner(self, edges: np.ndarray, grid_x: int, grid_y: int, half: int) -> Optional[Tuple[int, int]]:
        cfg = self.config
        height, width = edges.shape
        row_start, row_end = max(0, grid_y - half), min(height - cfg.min_height, grid_y + half)
        if row_end <= row_start:
            return None
        rows = edges[row_start:row_end, grid_x:grid_x + cfg.min_width]
        row_coverage = rows.mean(axis=1)
        best_row = int(np.argmax(row_coverage))
        if row_coverage[best_row] < cfg.min_coverage:
            return None
        y = row_start + best_row

        col_start, col_end = max(0, grid_x - half), min(width - cfg.min_width, grid_x + half)
        if col_end <= col_start:
            return None
        cols = edges[y:y + cfg.min_height, col_start:col_end]
        col_coverage = cols.mean(axis=0)
        best_col = int(np.argmax(col_coverage))
        if col_coverage[best_col] < cfg.min_coverage:
            return None
        x = col_start + best_col
        if self._row_coverage(edges, y, x, x + cfg.min_width) < cfg.min_coverage:
            return None
        return x, y

    def _row_coverage(self, edges: np.ndarray, row: int, x0: int, x1: int) -> float:
        tol = self.config.line_tolerance
        band = edges[max(0, row - tol):row + tol + 1, x0:x1]
        if band.size == 0:
            return 0.0
        return float(band.any(axis=0).mean())

    def _column_coverage(self, edges: np.ndarray, col: int, y0: int, y1: int) -> float:
        tol = self.config.line_tolerance
        band = edges[y0:y1, max(0, col - tol):col + tol + 1]
        if band.size == 0:
            return 0.0
        return float(band.any(axis=1).mean())

    def _grow_width(self, edges: np.ndarray, x: int, y: int, max_width: int) -> int:
        cfg = self.config
        image_width = edges.shape[1]
        box_width = cfg.min_width
        while box_width + cfg.grid_step <= max_width and x + box_width + cfg.grid_step <= image_width:
            segment = self._row_coverage(edges, y, x + box_width, x + box_width + cfg.grid_step)
            if segment < cfg.min_coverage:
                break
            box_width += cfg.grid_step
        return box_width

    def _grow_height(self, edges: np.ndarray, x: int, y: int) -> int:
        cfg = self.config
        image_height = edges.shape[0]
        box_height = cfg.min_height
        while box_height + cfg.grid_step <= cfg.max_height and y + box_height + cfg.grid_step <= image_height:
            segment = self._column_coverage(edges, x, y + box_height, y + box_height + cfg.grid_step)
            if segment < cfg.min_coverage:
                break
            box_height += cfg.grid_step
        return box_height


def detect_boxes(pixels: np.ndarray, page: int = 1, config: Optional[BoxDetectorConfig] = None) -> List[Rectangle]:
    return BoxDetector(config).detect(pixels, page)


__all__ = ["BoxDetector", "BoxDetectorConfig", "detect_boxes", "edge_map", "sobel_magnitude", "to_grayscale"]
