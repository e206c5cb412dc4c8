"""
Plate candidate extraction.

Cameras send either a memo of comma-separated `label:confidence` detections
from the AI model, or a single `plate_number`. Memo labels are matched
against a blocklist of every non-plate object class the models emit, so odd
OCR reads and vanity plates still get through.
"""

import re
from typing import List, Optional

EXCLUDED_LABELS = frozenset(label.lower() for label in (
    "person", "people", "bicycle", "car", "motorcycle", "motorbike", "bus",
    "truck", "vehicle", "boat", "airplane", "train",
    "bird", "cat", "dog", "horse", "sheep", "cow", "bear", "deer", "rabbit",
    "raccoon", "fox", "skunk", "squirrel", "pig", "elephant", "zebra", "giraffe",
    "bottle", "chair", "cup", "table", "traffic light", "fire hydrant",
    "stop sign", "parking meter", "bench", "backpack", "umbrella", "handbag",
    "tie", "suitcase", "frisbee", "skis", "snowboard", "sports ball", "kite",
    "baseball bat", "baseball glove", "skateboard", "surfboard",
    "tennis racket", "wine glass", "fork", "knife", "spoon", "bowl", "banana",
    "apple", "sandwich", "orange", "broccoli", "carrot", "hot dog", "pizza",
    "donut", "cake", "couch", "potted plant", "bed", "dining table", "toilet",
    "tv", "laptop", "mouse", "remote", "keyboard", "cell phone", "microwave",
    "oven", "toaster", "sink", "refrigerator", "book", "clock", "vase",
    "scissors", "teddy bear", "hair drier", "toothbrush",
    # plate detector class names (not the plate text itself)
    "plate", "dayplate", "nightplate",
))

_WHITESPACE = re.compile(r"\s+")


def normalize_plate_number(text: Optional[str]) -> str:
    """Remove all whitespace and upper-case. No label filtering."""
    if not text:
        return ""
    return _WHITESPACE.sub("", text).upper()


def _clean_label(label: str) -> Optional[str]:
    label = label.strip()
    if not label or label.lower() in EXCLUDED_LABELS:
        return None
    # the older dayplate/nightplate models wrap the plate text in brackets
    if "[" in label and "]" in label:
        label = label.replace("[", "").replace("]", "")
    return normalize_plate_number(label) or None


def extract_plates_from_memo(memo: Optional[str]) -> List[str]:
    if not memo:
        return []

    plates: List[str] = []
    for detection in memo.split(","):
        label = detection.strip().split(":", 1)[0]
        plate = _clean_label(label)
        if plate and plate not in plates:
            plates.append(plate)
    return plates


def extract_candidates(memo: Optional[str] = None, plate_number: Optional[str] = None) -> List[str]:
    """Memo wins over plate_number; a plain plate_number skips the blocklist."""
    if memo:
        return extract_plates_from_memo(memo)
    plate = normalize_plate_number(plate_number)
    return [plate] if plate else []
