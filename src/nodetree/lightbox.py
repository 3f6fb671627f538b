"""Lightbox navigation state."""

from __future__ import annotations

from collections.abc import Sequence

from nodetree.layout import Node, collect_image_sources


class Lightbox:
    """Full-screen image viewer over the images of one post.

    Closed until ``open`` is called. Navigation stops at the first and last
    image; it does not wrap around.
    """

    def __init__(self, images: Sequence[str]) -> None:
        self.images: tuple[str, ...] = tuple(images)
        self.index: int | None = None

    @classmethod
    def from_tree(cls, node: Node) -> Lightbox:
        return cls(collect_image_sources(node))

    @property
    def is_open(self) -> bool:
        return self.index is not None

    @property
    def current(self) -> str | None:
        if self.index is None:
            return None
        return self.images[self.index]

    @property
    def counter(self) -> str:
        """Position label such as ``"2 / 5"``; empty when closed."""
        if self.index is None:
            return ""
        return f"{self.index + 1} / {len(self.images)}"

    @property
    def has_previous(self) -> bool:
        return self.index is not None and self.index > 0

    @property
    def has_next(self) -> bool:
        return self.index is not None and self.index < len(self.images) - 1

    def open(self, index: int) -> None:
        if not 0 <= index < len(self.images):
            raise IndexError(f"No image at index {index}")
        self.index = index

    def close(self) -> None:
        self.index = None

    def next(self) -> None:
        if self.has_next:
            assert self.index is not None
            self.index += 1

    def previous(self) -> None:
        if self.has_previous:
            assert self.index is not None
            self.index -= 1

    def handle_key(self, key: str) -> bool:
        """Apply a keyboard key; returns whether the key was handled."""
        if not self.is_open:
            return False
        if key == "Escape":
            self.close()
        elif key == "ArrowRight":
            self.next()
        elif key == "ArrowLeft":
            self.previous()
        else:
            return False
        return True


__all__ = ["Lightbox"]
