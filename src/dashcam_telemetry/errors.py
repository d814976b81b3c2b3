"""Exceptions raised while walking the MP4 box structure."""


class MP4StructureError(ValueError):
    """The container's box table cannot be used to build a timeline."""


class BoxNotFound(MP4StructureError):
    def __init__(self, name: str, start: int, end: int):
        super().__init__(f"Box not found: {name} (searched bytes {start}..{end})")
        self.name = name


class Truncated(MP4StructureError):
    """A box header or table runs past the end of its enclosing range."""
