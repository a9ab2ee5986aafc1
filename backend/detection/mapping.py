"""
Detection mapping — turn camera object detections into shelf scan updates.

The object-detection model itself is external; this module only consumes
its output: ``{label, confidence, box}`` observations per frame.

Pipeline:
  1. Normalize boxes to [x, y, width, height]
  2. Drop detections at or below the confidence floor
  3. Map the highest-confidence known label to a shelf location
  4. Count detections per label and merge them into that shelf's items
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from inventory.models import Product, ScanUpdate, Shelf, utcnow

logger = structlog.get_logger()

DEFAULT_MIN_CONFIDENCE = 0.3
DEFAULT_DETECTED_THRESHOLD = 5

# Static label → candidate shelf locations (COCO class names)
LABEL_TO_SHELF_MAP: dict[str, tuple[str, ...]] = {
    # Electronics
    "laptop": ("A1", "A2"),
    "cell phone": ("A1", "A2", "A3"),
    "keyboard": ("A2", "A3"),
    "mouse": ("A2", "A3"),
    "remote": ("A4", "A5"),
    # Food
    "apple": ("B1", "B2", "B3"),
    "orange": ("B1", "B2", "B3"),
    "banana": ("B1", "B2"),
    "sandwich": ("B4", "B5", "B6"),
    "pizza": ("B4", "B5"),
    "donut": ("B6",),
    "cake": ("B6",),
    # Beverages
    "bottle": ("C1", "C2", "C3"),
    "wine glass": ("C1", "C2"),
    "cup": ("C4", "C5", "C6"),
    # Personal items
    "handbag": ("D1", "D2"),
    "suitcase": ("D1", "D2"),
    "backpack": ("D3", "D4"),
    "umbrella": ("D5", "D6"),
    # Household
    "book": ("E1", "E2"),
    "scissors": ("E3", "E4"),
    "hair dryer": ("E5", "E6"),
    "toothbrush": ("E5", "E6"),
}


@dataclass(frozen=True)
class Detection:
    label: str
    confidence: float
    box: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")
        label = self.label.strip().lower()
        if not label:
            raise ValueError("label cannot be empty")
        object.__setattr__(self, "label", label)
        object.__setattr__(self, "box", tuple(float(v) for v in self.box))


@dataclass(frozen=True)
class ShelfDetectionResult:
    detections: tuple[Detection, ...]
    mapped_shelf: str | None
    confidence: float
    timestamp: datetime = field(default_factory=utcnow)


def normalize_box(box: Sequence[float], corners: bool = False) -> tuple[float, float, float, float]:
    """
    Return a box as (x, y, width, height).

    ``corners=True`` reads the input as (xmin, ymin, xmax, ymax).
    """
    if len(box) < 4:
        return (0.0, 0.0, 0.0, 0.0)
    x, y, a, b = (float(v) for v in box[:4])
    if corners:
        return (x, y, max(0.0, a - x), max(0.0, b - y))
    return (x, y, a, b)


def filter_confident(detections: Iterable[Detection], min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> list[Detection]:
    return [d for d in detections if d.confidence > min_confidence]


def map_detections_to_shelf(
    detections: Iterable[Detection],
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    label_map: dict[str, tuple[str, ...]] | None = None,
    now: datetime | None = None,
) -> ShelfDetectionResult:
    """
    Pick the shelf for a frame.

    The highest-confidence detection whose label is in the map wins; ties go
    to the earlier detection, and the first listed shelf for that label is
    used so the result is deterministic.
    """
    label_map = label_map if label_map is not None else LABEL_TO_SHELF_MAP
    confident = filter_confident(detections, min_confidence)

    best: Detection | None = None
    for detection in confident:
        if not label_map.get(detection.label):
            continue
        if best is None or detection.confidence > best.confidence:
            best = detection

    if best is None:
        return ShelfDetectionResult(
            detections=tuple(confident),
            mapped_shelf=None,
            confidence=0.0,
            timestamp=now or utcnow(),
        )
    return ShelfDetectionResult(
        detections=tuple(confident),
        mapped_shelf=label_map[best.label][0],
        confidence=best.confidence,
        timestamp=now or utcnow(),
    )


def count_labels(detections: Iterable[Detection]) -> dict[str, int]:
    """Number of detections per label, in first-seen order."""
    counts: dict[str, int] = {}
    for detection in detections:
        counts[detection.label] = counts.get(detection.label, 0) + 1
    return counts


def detections_to_scan_update(
    shelf: Shelf,
    result: ShelfDetectionResult,
    default_threshold: int = DEFAULT_DETECTED_THRESHOLD,
) -> ScanUpdate:
    """
    Merge per-label counts into ``shelf``'s items.

    A label updates the first product whose name contains it
    (case-insensitive); unmatched labels become new products with
    ``default_threshold``. Products nothing was detected for keep their count.
    """
    items = list(shelf.items)
    for label, count in count_labels(result.detections).items():
        index = next((i for i, p in enumerate(items) if label in p.product.lower()), None)
        if index is not None:
            items[index] = items[index].with_count(count)
        else:
            items.append(Product(product=label.capitalize(), count=count, threshold=default_threshold))

    logger.debug(
        "detection.scan_update_built",
        shelf_id=shelf.id,
        labels=len(result.detections),
        mapped_shelf=result.mapped_shelf,
    )
    return ScanUpdate(shelf=shelf.id, items=tuple(items), timestamp=result.timestamp)
