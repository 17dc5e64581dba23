"""Path handling for hierarchical configuration trees."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Set, Tuple


KeyMap = Callable[[str], str]


def split_path(path: str, delimiter: str = ".", key_map: Optional[KeyMap] = None) -> List[str]:
    """Split a delimiter-separated path into normalised segments.

    Empty segments are dropped, so ``""`` addresses the root.
    """
    segments = [part for part in path.split(delimiter) if part]
    if key_map is not None:
        segments = [key_map(part) for part in segments]
    return segments


def resolve(tree: Mapping[str, Any], segments: Iterable[str]) -> Tuple[bool, Any]:
    """Walk ``tree`` one segment at a time.

    Returns:
        Tuple of (found, value). A missing intermediate key yields
        ``(False, None)``.
    """
    node: Any = tree
    for part in segments:
        if not isinstance(node, Mapping) or part not in node:
            return False, None
        node = node[part]
    return True, node


def iter_leaves(
    data: Mapping[str, Any],
    parent: Tuple[str, ...] = (),
) -> Iterator[Tuple[Tuple[str, ...], Any]]:
    """Flatten nested mappings into (segments, leaf value) pairs.

    Sequences and scalars are leaves. An empty mapping is emitted as a leaf
    so that clearing a branch is still visible as a change.
    """
    for key, value in data.items():
        segments = parent + (key,)
        if isinstance(value, Mapping) and value:
            yield from iter_leaves(value, segments)
        else:
            yield segments, value


def touched_paths(delta: Mapping[str, Any]) -> Set[Tuple[str, ...]]:
    """Return every leaf path of ``delta`` as a tuple of segments."""
    return {segments for segments, _ in iter_leaves(delta)}


def overlaps(prefix: Tuple[str, ...], path: Tuple[str, ...]) -> bool:
    """True when one path is a segment-wise prefix of the other."""
    size = min(len(prefix), len(path))
    return prefix[:size] == path[:size]
