"""Pure functions for partitioning photos into item groups.

The initial partition chunks the upload in its original order. Manual
corrections (create, delete, rename, merge, split, move) take a group
list and return a new one. A refused correction returns the very same
list object, so callers can tell "nothing happened" by identity.
"""

import math
import random
from typing import Callable, Dict, List, Optional, Sequence

from bulklist.config import settings
from bulklist.models.group import Confidence, PhotoGroup, new_group_id

ChunkSizer = Callable[[], int]
ConfidencePicker = Callable[[], Confidence]

DEFAULT_CONFIDENCE_WEIGHTS: Dict[Confidence, float] = {
    Confidence.HIGH: 0.6,
    Confidence.MEDIUM: 0.3,
    Confidence.LOW: 0.1,
}


def random_chunk_sizer(
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> ChunkSizer:
    """Chunk sizer drawing uniformly from [min_size, max_size]."""
    low = min_size if min_size is not None else settings.min_group_size
    high = max_size if max_size is not None else settings.max_group_size
    if low < 1 or high < low:
        raise ValueError(f"Invalid chunk size range [{low}, {high}]")
    source = rng or random.Random()
    return lambda: source.randint(low, high)


def weighted_confidence_picker(
    rng: Optional[random.Random] = None,
    weights: Optional[Dict[Confidence, float]] = None,
) -> ConfidencePicker:
    """Confidence picker using weighted random choice."""
    source = rng or random.Random()
    table = weights or DEFAULT_CONFIDENCE_WEIGHTS
    levels = list(table.keys())
    odds = list(table.values())
    return lambda: source.choices(levels, weights=odds, k=1)[0]


def chunk_photos(photos: Sequence[str], chunk_size: ChunkSizer) -> List[List[str]]:
    """Split photos into contiguous chunks; the last chunk may be short."""
    chunks: List[List[str]] = []
    start = 0
    while start < len(photos):
        size = chunk_size()
        if size < 1:
            raise ValueError("Chunk size must be at least 1")
        chunks.append(list(photos[start : start + size]))
        start += size
    return chunks


def partition_photos(
    photos: Sequence[str],
    chunk_size: Optional[ChunkSizer] = None,
    confidence: Optional[ConfidencePicker] = None,
) -> List[PhotoGroup]:
    """Build the initial groups for an upload.

    Args:
        photos: Photo handles in upload order
        chunk_size: Size source (defaults to random sizes in the settings range)
        confidence: Confidence source (defaults to medium for every group)

    Returns:
        One pending group per chunk, covering every photo once, in order
    """
    sizer = chunk_size or random_chunk_sizer()
    return [
        PhotoGroup(
            photos=chunk,
            name=f"Item {number}",
            confidence=confidence() if confidence else Confidence.MEDIUM,
        )
        for number, chunk in enumerate(chunk_photos(photos, sizer), start=1)
    ]


def _find(groups: Sequence[PhotoGroup], group_id: str) -> int:
    for index, group in enumerate(groups):
        if group.id == group_id:
            return index
    return -1


def create_group(groups: List[PhotoGroup], name: Optional[str] = None) -> List[PhotoGroup]:
    """Append a new empty group."""
    group = PhotoGroup(
        name=name or f"New Group {len(groups) + 1}",
        confidence=Confidence.HIGH,
    )
    return [*groups, group]


def delete_group(groups: List[PhotoGroup], group_id: str) -> List[PhotoGroup]:
    """Remove a group; its photos are dropped with it."""
    index = _find(groups, group_id)
    if index < 0 or groups[index].is_posted:
        return groups
    return groups[:index] + groups[index + 1 :]


def rename_group(groups: List[PhotoGroup], group_id: str, name: str) -> List[PhotoGroup]:
    """Overwrite a group's name."""
    index = _find(groups, group_id)
    if index < 0 or groups[index].is_posted:
        return groups
    updated = list(groups)
    updated[index] = groups[index].replace(name=name)
    return updated


def merge_groups(groups: List[PhotoGroup], group_ids: Sequence[str]) -> List[PhotoGroup]:
    """Merge groups in selection order into the first selected group.

    The merged group keeps the first group's id and metadata, takes its
    position in the list, and is demoted to medium confidence. Needs at
    least two distinct, known, unposted groups.
    """
    selected: List[int] = []
    for group_id in dict.fromkeys(group_ids):
        index = _find(groups, group_id)
        if index >= 0:
            selected.append(index)
    if len(selected) < 2 or any(groups[i].is_posted for i in selected):
        return groups

    base = groups[selected[0]]
    merged = base.replace(
        photos=[photo for i in selected for photo in groups[i].photos],
        name=f"Merged {base.name}",
        confidence=Confidence.MEDIUM,
    )
    absorbed = set(selected[1:])
    result: List[PhotoGroup] = []
    for index, group in enumerate(groups):
        if index == selected[0]:
            result.append(merged)
        elif index not in absorbed:
            result.append(group)
    return result


def split_group(groups: List[PhotoGroup], group_id: str) -> List[PhotoGroup]:
    """Split a group at its midpoint (ceiling) into two new groups."""
    index = _find(groups, group_id)
    if index < 0:
        return groups
    group = groups[index]
    if len(group.photos) < 2 or group.is_posted:
        return groups

    midpoint = math.ceil(len(group.photos) / 2)
    first = group.replace(
        id=new_group_id(),
        photos=group.photos[:midpoint],
        name=f"{group.name} (1)",
    )
    second = group.replace(
        id=new_group_id(),
        photos=group.photos[midpoint:],
        name=f"{group.name} (2)",
    )
    return groups[:index] + [first, second] + groups[index + 1 :]


def move_photo(
    groups: List[PhotoGroup],
    source_id: str,
    target_id: str,
    photo_index: int,
) -> List[PhotoGroup]:
    """Move one photo to the end of another group, demoting the target."""
    if source_id == target_id:
        return groups
    source_index = _find(groups, source_id)
    target_index = _find(groups, target_id)
    if source_index < 0 or target_index < 0:
        return groups
    source = groups[source_index]
    target = groups[target_index]
    if source.is_posted or target.is_posted:
        return groups
    if not 0 <= photo_index < len(source.photos):
        return groups

    photo = source.photos[photo_index]
    updated = list(groups)
    updated[source_index] = source.replace(
        photos=source.photos[:photo_index] + source.photos[photo_index + 1 :]
    )
    updated[target_index] = target.replace(
        photos=[*target.photos, photo],
        confidence=Confidence.MEDIUM,
    )
    return updated


def prune_empty_groups(groups: List[PhotoGroup]) -> List[PhotoGroup]:
    """Drop groups without photos."""
    if all(group.photos for group in groups):
        return groups
    return [group for group in groups if group.photos]
