"""
Markup translator — rich-text tree to the messaging platform's inline markup.

    <p><strong>Hi</strong> there</p><p>Bye</p>   ->   "*Hi* there\n\nBye"

Delimiter characters that already appear in text content are passed through
unescaped, so a literal "*" in user text is read as formatting by the
receiving client.
"""

import re
from typing import Iterator, Optional, Union

from bulk_sender.models.richtext import ElementNode, TextNode

FORMAT_CODES: dict[str, str] = {
    "b": "*",
    "strong": "*",
    "i": "_",
    "em": "_",
    "strike": "~",
    "s": "~",
    "del": "~",
}

LINE_BREAK_TAG = "br"
PARAGRAPH_TAG = "p"

_EXCESS_NEWLINES = re.compile(r"\n{3,}")


def translate(root: Union[TextNode, ElementNode]) -> str:
    """Translate a rich-text tree into platform markup. Never raises."""
    rendered, _ = _render(root, None)
    return _EXCESS_NEWLINES.sub("\n\n", rendered).strip()


def _render(root: Union[TextNode, ElementNode], last_block: Optional[str]) -> tuple[str, Optional[str]]:
    """Render a tree depth-first without recursion.

    Returns (text, last block tag after the tree). Each open element keeps its
    own list of rendered child parts until its last child is done.
    """
    stack: list[tuple[ElementNode, Iterator[Union[TextNode, ElementNode]], list[str]]] = []
    node = root
    while True:
        if isinstance(node, TextNode):
            piece: Optional[str] = node.content
        elif node.tag == LINE_BREAK_TAG:
            piece = "\n"
        else:
            stack.append((node, iter(node.children), []))
            piece = None

        while True:
            if piece is not None:
                if not stack:
                    return piece, last_block
                stack[-1][2].append(piece)
                piece = None
            element, children, parts = stack[-1]
            child = next(children, None)
            if child is not None:
                node = child
                break
            stack.pop()
            piece, last_block = _close(element, "".join(parts), last_block)


def _close(node: ElementNode, inner: str, last_block: Optional[str]) -> tuple[str, Optional[str]]:
    """Wrap an element's rendered children. Returns (text, last block tag)."""
    if node.tag == PARAGRAPH_TAG:
        content = inner.strip()
        if last_block == PARAGRAPH_TAG:
            content = "\n" + content
        return content + "\n", PARAGRAPH_TAG

    code = FORMAT_CODES.get(node.tag)
    if code:
        return f"{code}{inner}{code}", last_block
    return inner, last_block
