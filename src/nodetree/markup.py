"""HTML adapter for the editorial layout.

``parse_html`` turns a stored post body into a content tree and, while doing
so, removes the markup of any earlier layout pass (grid and image-wrap
containers, the full-width class, hidden filler). ``render_html`` writes a
laid-out tree back as HTML with that markup.
"""

from __future__ import annotations

import html
from html.parser import HTMLParser

from nodetree.layout import (
    Element,
    FullWidth,
    Hidden,
    ImageGrid,
    Node,
    Text,
    apply_editorial_layout,
)

VOID_TAGS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "source",
        "track",
        "wbr",
    }
)

GRID_CLASS = "editorial-grid"
WRAP_CLASS = "editorial-img-wrap"
FULL_CLASS = "editorial-full"
HIDDEN_ATTR = "data-editorial-hidden"
HIDDEN_STYLE = "display:none"
# Their text is parsed undecoded, so it is written back unescaped
RAW_TEXT_TAGS = frozenset({"script", "style"})

Attrs = tuple[tuple[str, str | None], ...]


def _classes(attrs: Attrs) -> list[str]:
    for key, value in attrs:
        if key == "class":
            return (value or "").split()
    return []


def _set_attr(attrs: Attrs, name: str, value: str | None) -> Attrs:
    """Replace, add, or (with ``None``) drop one attribute."""
    kept = [(k, v) for k, v in attrs if k != name]
    if value is None:
        return tuple(kept)
    if len(kept) == len(attrs):
        return (*attrs, (name, value))
    return tuple((k, value if k == name else v) for k, v in attrs)


def _restore_attrs(attrs: Attrs) -> Attrs:
    """Drop the attributes an earlier layout pass added."""
    classes = [c for c in _classes(attrs) if c != FULL_CLASS]
    if any(k == "class" for k, _ in attrs):
        attrs = _set_attr(attrs, "class", " ".join(classes) or None)
    if any(k == HIDDEN_ATTR for k, _ in attrs):
        attrs = _set_attr(attrs, HIDDEN_ATTR, None)
        style = next((v for k, v in attrs if k == "style"), None) or ""
        parts = [
            p.strip()
            for p in style.split(";")
            if p.strip() and p.replace(" ", "").lower() != HIDDEN_STYLE
        ]
        attrs = _set_attr(attrs, "style", ";".join(parts) or None)
    return attrs


class _TreeBuilder(HTMLParser):
    """Builds ``Element`` trees; unknown end tags are ignored."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        # (tag, attrs, children) of every open element; index 0 is the root
        self._stack: list[tuple[str, Attrs, list[Node]]] = [("div", (), [])]

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in VOID_TAGS:
            self._append(self._build(tag, tuple(attrs), []))
        else:
            self._stack.append((tag, tuple(attrs), []))

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._append(self._build(tag, tuple(attrs), []))

    def handle_endtag(self, tag: str) -> None:
        if tag in VOID_TAGS:
            return
        for depth in range(len(self._stack) - 1, 0, -1):
            if self._stack[depth][0] == tag:
                while len(self._stack) > depth:
                    self._close()
                return

    def handle_data(self, data: str) -> None:
        self._append_text(data)

    def _append(self, nodes: list[Node]) -> None:
        self._stack[-1][2].extend(nodes)

    def _append_text(self, data: str) -> None:
        siblings = self._stack[-1][2]
        if siblings and isinstance(siblings[-1], Text):
            siblings[-1] = Text(siblings[-1].text + data)
        else:
            siblings.append(Text(data))

    def _close(self) -> None:
        tag, attrs, children = self._stack.pop()
        for node in self._build(tag, attrs, children):
            if isinstance(node, Text):
                self._append_text(node.text)
            else:
                self._append([node])

    @staticmethod
    def _build(tag: str, attrs: Attrs, children: list[Node]) -> list[Node]:
        """One element, or its children when it is a layout container."""
        if tag == "div" and {GRID_CLASS, WRAP_CLASS} & set(_classes(attrs)):
            return children
        return [Element(tag, _restore_attrs(attrs), tuple(children))]

    def root(self) -> Element:
        while len(self._stack) > 1:
            self._close()
        tag, attrs, children = self._stack[0]
        return Element(tag, attrs, tuple(children))


def parse_html(text: str) -> Element:
    """Parse an HTML fragment into a ``div`` root, undoing earlier layout."""
    builder = _TreeBuilder()
    builder.feed(text)
    builder.close()
    return builder.root()


def _render_attrs(attrs: Attrs) -> str:
    return "".join(
        f" {name}" if value is None else f' {name}="{html.escape(value, quote=True)}"'
        for name, value in attrs
    )


def _with_class(attrs: Attrs, name: str) -> Attrs:
    classes = _classes(attrs)
    if name in classes:
        return attrs
    return _set_attr(attrs, "class", " ".join([*classes, name]))


def _render_element(el: Element, attrs: Attrs | None = None) -> str:
    attrs = el.attrs if attrs is None else attrs
    opening = f"<{el.tag}{_render_attrs(attrs)}>"
    if el.tag in VOID_TAGS:
        return opening
    if el.tag in RAW_TEXT_TAGS:
        inner = "".join(
            child.text if isinstance(child, Text) else render_node(child)
            for child in el.children
        )
    else:
        inner = "".join(render_node(child) for child in el.children)
    return f"{opening}{inner}</{el.tag}>"


def _render_item(node: Node, *, full: bool) -> str:
    """An image slot; a bare ``img`` gets its own wrapper ``div``."""
    if isinstance(node, Element) and node.is_image:
        classes = f"{WRAP_CLASS} {FULL_CLASS}" if full else WRAP_CLASS
        return f'<div class="{classes}">{_render_element(node)}</div>'
    if full and isinstance(node, Element):
        return _render_element(node, _with_class(node.attrs, FULL_CLASS))
    return render_node(node)


def render_node(node: Node) -> str:
    if isinstance(node, Text):
        return html.escape(node.text, quote=False)
    if isinstance(node, FullWidth):
        return _render_item(node.node, full=True)
    if isinstance(node, ImageGrid):
        left = _render_item(node.left, full=False)
        right = _render_item(node.right, full=False)
        return f'<div class="{GRID_CLASS}">{left}{right}</div>'
    if isinstance(node, Hidden):
        inner = node.node
        if not isinstance(inner, Element):
            return render_node(inner)
        style = inner.get("style")
        style = f"{style.rstrip(';')};{HIDDEN_STYLE}" if style else HIDDEN_STYLE
        attrs = _set_attr(_set_attr(inner.attrs, "style", style), HIDDEN_ATTR, "true")
        return _render_element(inner, attrs)
    return _render_element(node)


def render_html(root: Element) -> str:
    """Render the children of ``root`` (the root element itself is implied)."""
    return "".join(render_node(child) for child in root.children)


def layout_html(text: str) -> str:
    """Apply the editorial layout to an HTML fragment."""
    return render_html(apply_editorial_layout(parse_html(text)))


__all__ = [
    "FULL_CLASS",
    "GRID_CLASS",
    "HIDDEN_ATTR",
    "RAW_TEXT_TAGS",
    "WRAP_CLASS",
    "layout_html",
    "parse_html",
    "render_html",
    "render_node",
]
