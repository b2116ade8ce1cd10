"""
Class label resolution for the detector model.

Labels come from the model metadata when present, then from a label file,
and finally fall back to generated placeholder names.
"""

from __future__ import annotations

import logging
import os
import re
from typing import List, Optional

NAMES_BLOCK_RE = re.compile(r"'names': \{(.*?)\}", re.DOTALL)
QUOTED_NAME_RE = re.compile(r"\"([^\"]*)\"|'([^']*)'")

FALLBACK_LABEL_COUNT = 1000


def names_from_metadata(metadata: Optional[str]) -> List[str]:
    """
    Extract class names from model metadata text.

    Expects an embedded dict such as ``'names': {0: 'person', 1: 'bicycle'}``.
    Returns an empty list if no names block is found.
    """
    if not metadata:
        return []
    match = NAMES_BLOCK_RE.search(metadata)
    if match is None:
        return []
    return [m.group(1) or m.group(2) for m in QUOTED_NAME_RE.finditer(match.group(1))]


def names_from_label_file(path: str) -> List[str]:
    """Read one label per line, stopping at the first blank line."""
    labels: List[str] = []
    try:
        with open(path, "r") as f:
            for line in f:
                name = line.rstrip("\r\n")
                if not name:
                    break
                labels.append(name)
    except OSError as e:
        logging.warning(f"Could not read label file {path}: {e}")
        return []
    return labels


def fallback_labels(count: int = FALLBACK_LABEL_COUNT) -> List[str]:
    return [f"class{i + 1}" for i in range(count)]


def resolve_labels(
    metadata_path: Optional[str] = None,
    labels_path: Optional[str] = None,
    metadata_text: Optional[str] = None,
) -> List[str]:
    """
    Resolve class labels in priority order: metadata, label file, fallback.

    Args:
        metadata_path: Path to a metadata text file exported with the model.
        labels_path: Path to a plain label file.
        metadata_text: Metadata content, used instead of reading metadata_path.
    """
    if metadata_text is None and metadata_path and os.path.exists(metadata_path):
        with open(metadata_path, "r") as f:
            metadata_text = f.read()

    labels = names_from_metadata(metadata_text)
    if labels:
        logging.info(f"Loaded {len(labels)} labels from model metadata")
        return labels

    if labels_path:
        labels = names_from_label_file(labels_path)
        if labels:
            logging.info(f"Loaded {len(labels)} labels from {labels_path}")
            return labels

    logging.warning("No labels found in metadata or label file, using placeholder class names")
    return fallback_labels()
