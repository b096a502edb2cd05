"""Dotted positional paths ("1", "1.2", "1.2.3") and their ordering."""


def _segments(path: str) -> list[int]:
    # Non-numeric segments sort as 0 so corrupt input never raises.
    result = []
    for part in path.split("."):
        try:
            result.append(int(part))
        except ValueError:
            result.append(0)
    return result


def compare(path_a: str, path_b: str) -> int:
    """Compare two paths numerically, segment by segment.

    A missing trailing segment counts as 0, so "1" < "1.1" < "1.2" < "1.10" < "2".

    Returns:
        -1, 0 or 1.
    """
    a = _segments(path_a)
    b = _segments(path_b)
    for i in range(max(len(a), len(b))):
        part_a = a[i] if i < len(a) else 0
        part_b = b[i] if i < len(b) else 0
        if part_a != part_b:
            return -1 if part_a < part_b else 1
    return 0


def sort_key(path: str) -> tuple[int, ...]:
    """Sort key consistent with compare()."""
    parts = _segments(path)
    while parts and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


def depth(path: str) -> int:
    """Number of segments minus one (roots are depth 0)."""
    return path.count(".")


def parent_path(path: str) -> str | None:
    """All segments but the last, or None for a root path."""
    if "." not in path:
        return None
    return path.rsplit(".", 1)[0]


def is_descendant_of(path: str, ancestor_path: str) -> bool:
    """True iff path lies strictly below ancestor_path ("10" is not below "1")."""
    return path.startswith(ancestor_path + ".")


def child_path(parent: str | None, index: int) -> str:
    """Path of the 1-based index-th child of parent (a root when parent is empty)."""
    return f"{parent}.{index}" if parent else str(index)


def increment_last(path: str) -> str:
    """Bump the final segment: "1.2.3" -> "1.2.4"."""
    head, _, last = path.rpartition(".")
    bumped = str(_segments(last)[0] + 1)
    return f"{head}.{bumped}" if head else bumped


def ancestor_paths(path: str) -> list[str]:
    """Prefixes of path from the root down, excluding path itself."""
    parts = path.split(".")
    return [".".join(parts[:i]) for i in range(1, len(parts))]
