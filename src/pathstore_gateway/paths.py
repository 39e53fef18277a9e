import functools


SEPARATOR = "/"


@functools.total_ordering
class Path:
    """Hierarchical object key made of ``/``-separated segments.

    Empty segments are dropped, so ``"a//b/"`` and ``"a/b"`` are the same
    path. Paths order segment by segment, which keeps every subtree
    contiguous: ``a`` < ``a/z`` < ``a-b``.
    """

    __slots__ = ("_segments",)

    def __init__(self, value=""):
        if isinstance(value, Path):
            segments = value._segments
        elif isinstance(value, str):
            segments = tuple(s for s in value.split(SEPARATOR) if s)
        else:
            segments = tuple(str(s) for s in value if s)
        self._segments = segments

    @property
    def segments(self):
        return self._segments

    def prepend(self, prefix):
        return Path(Path(prefix)._segments + self._segments)

    def append(self, *segments):
        return Path(self._segments + tuple(segments))

    def has_prefix(self, prefix):
        prefix = Path(prefix)
        n = len(prefix._segments)
        return self._segments[:n] == prefix._segments

    def strip_prefix(self, prefix):
        prefix = Path(prefix)
        if not self.has_prefix(prefix):
            raise ValueError(f"{str(prefix)!r} is not a prefix of {str(self)!r}")
        return Path(self._segments[len(prefix._segments) :])

    def __str__(self):
        return SEPARATOR.join(self._segments)

    def __repr__(self):
        return f"Path({str(self)!r})"

    def __len__(self):
        return len(self._segments)

    def __iter__(self):
        return iter(self._segments)

    def __bool__(self):
        return bool(self._segments)

    def __hash__(self):
        return hash(self._segments)

    def __eq__(self, other):
        if isinstance(other, str):
            other = Path(other)
        if not isinstance(other, Path):
            return NotImplemented
        return self._segments == other._segments

    def __lt__(self, other):
        if isinstance(other, str):
            other = Path(other)
        if not isinstance(other, Path):
            return NotImplemented
        return self._segments < other._segments
