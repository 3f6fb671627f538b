"""Editorial image layout over an immutable content tree.

Consecutive images in a post body are grouped into an editorial layout:
a lone image is shown full width; in a run of two or more the first image
is full width and the rest are paired into two-column grids, with an odd
leftover shown full width. Empty filler between the images of a run
(line breaks, empty paragraphs) is hidden, not removed.

Every transform here is pure. ``apply_editorial_layout`` strips the
wrappers of any previous pass before classifying, so it is idempotent and
can be re-run on its own output.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, replace
from typing import Union

MEDIA_TAGS = frozenset({"img", "video", "iframe"})
# Blocks that keep a wrapper from counting as a plain image holder
BLOCKING_TAGS = frozenset({"video", "iframe", "table", "h1", "h2", "h3"})
# Wrappers with at least this much visible text are content, not image holders
MIN_CAPTION_TEXT = 5


@dataclass(frozen=True, slots=True)
class Text:
    text: str


@dataclass(frozen=True, slots=True)
class Element:
    tag: str
    attrs: tuple[tuple[str, str | None], ...] = ()
    children: tuple[Node, ...] = ()

    def get(self, name: str, default: str | None = None) -> str | None:
        for key, value in self.attrs:
            if key == name:
                return value
        return default

    @property
    def is_image(self) -> bool:
        return self.tag == "img"


@dataclass(frozen=True, slots=True)
class FullWidth:
    """An image (or image wrapper) spanning the full content width."""

    node: Node


@dataclass(frozen=True, slots=True)
class ImageGrid:
    """Two images side by side."""

    left: Node
    right: Node


@dataclass(frozen=True, slots=True)
class Hidden:
    """Filler hidden while it sits between grouped images."""

    node: Node


Node = Union[Text, Element, FullWidth, ImageGrid, Hidden]


def image(src: str, **attrs: str) -> Element:
    """Shorthand for an ``img`` element."""
    return Element("img", (("src", src), *attrs.items()))


def element(tag: str, *children: Node, **attrs: str) -> Element:
    """Shorthand for an element with children."""
    return Element(tag, tuple(attrs.items()), tuple(children))


# ---------------------------------------------------------------------------
# Tree queries
# ---------------------------------------------------------------------------


def _content(node: Node) -> Iterator[Node]:
    """Direct children, looking through layout wrappers."""
    if isinstance(node, Element):
        yield from node.children
    elif isinstance(node, (FullWidth, Hidden)):
        yield node.node
    elif isinstance(node, ImageGrid):
        yield node.left
        yield node.right


def iter_elements(node: Node) -> Iterator[Element]:
    """Every element below ``node`` in document order, excluding ``node``."""
    for child in _content(node):
        if isinstance(child, Element):
            yield child
        yield from iter_elements(child)


def text_content(node: Node) -> str:
    if isinstance(node, Text):
        return node.text
    return "".join(text_content(child) for child in _content(node))


def has_descendant(node: Node, tags: frozenset[str]) -> bool:
    return any(el.tag in tags for el in iter_elements(node))


def collect_image_sources(node: Node) -> list[str]:
    """Sources of every image in document order (the lightbox order)."""
    candidates = [node] if isinstance(node, Element) else []
    return [
        el.get("src") or ""
        for el in [*candidates, *iter_elements(node)]
        if el.is_image
    ]


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def is_direct_image(node: Node) -> bool:
    """An image, or a wrapper holding an image and (almost) no text."""
    if not isinstance(node, Element):
        return False
    if node.is_image:
        return True
    return (
        has_descendant(node, frozenset({"img"}))
        and not has_descendant(node, BLOCKING_TAGS)
        and len(text_content(node).strip()) < MIN_CAPTION_TEXT
    )


def is_skippable(node: Node) -> bool:
    """Structural filler: a line break, blank text, or an empty element."""
    if isinstance(node, Text):
        return not node.text.strip()
    if not isinstance(node, Element):
        return False
    if node.tag == "br":
        return True
    if node.tag in MEDIA_TAGS:
        return False
    return not text_content(node).strip() and not has_descendant(node, MEDIA_TAGS)


def strip_editorial_layout(node: Node) -> Node:
    """Undo a previous layout pass, restoring the original content."""
    if isinstance(node, Element):
        return replace(node, children=tuple(_strip_children(node.children)))
    if isinstance(node, (FullWidth, Hidden)):
        return strip_editorial_layout(node.node)
    return node


def _strip_children(children: tuple[Node, ...]) -> Iterator[Node]:
    for child in children:
        if isinstance(child, ImageGrid):
            yield strip_editorial_layout(child.left)
            yield strip_editorial_layout(child.right)
        else:
            yield strip_editorial_layout(child)


def apply_editorial_layout(root: Element) -> Element:
    """Classify the images of ``root`` into the editorial layout."""
    stripped = strip_editorial_layout(root)
    assert isinstance(stripped, Element)
    return _layout(stripped)


def _layout(container: Element) -> Element:
    children = container.children
    out: list[Node] = []
    i = 0

    while i < len(children):
        child = children[i]
        if not is_direct_image(child):
            if (
                isinstance(child, Element)
                and has_descendant(child, frozenset({"img"}))
                and sum(isinstance(c, Element) for c in child.children) > 1
            ):
                child = _layout(child)
            out.append(child)
            i += 1
            continue

        # Maximal run of images; filler in between is looked through
        images = [i]
        skipped: list[int] = []
        j = i + 1
        while j < len(children):
            following = children[j]
            if is_direct_image(following):
                images.append(j)
            elif is_skippable(following):
                skipped.append(j)
            else:
                break
            j += 1

        out.extend(_group_run(children, images, skipped))
        i = j

    return replace(container, children=tuple(out))


def _group_run(
    children: tuple[Node, ...], images: list[int], skipped: list[int]
) -> Iterator[Node]:
    """Emit one run in document order with its images grouped."""
    if len(images) == 1:
        yield FullWidth(children[images[0]])
        # A lone image leaves its trailing filler visible
        for index in skipped:
            yield children[index]
        return

    roles: dict[int, Node | None] = {images[0]: FullWidth(children[images[0]])}
    k = 1
    while k < len(images):
        if k + 1 < len(images):
            first, second = images[k], images[k + 1]
            roles[first] = ImageGrid(children[first], children[second])
            roles[second] = None  # moved into the grid
            k += 2
        else:
            roles[images[k]] = FullWidth(children[images[k]])
            k += 1
    for index in skipped:
        roles[index] = Hidden(children[index])

    for index in sorted(roles):
        node = roles[index]
        if node is not None:
            yield node


__all__ = [
    "Element",
    "FullWidth",
    "Hidden",
    "ImageGrid",
    "Node",
    "Text",
    "apply_editorial_layout",
    "collect_image_sources",
    "element",
    "image",
    "is_direct_image",
    "is_skippable",
    "iter_elements",
    "strip_editorial_layout",
    "text_content",
]
