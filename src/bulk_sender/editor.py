"""
Editor HTML -> RichTextNode tree.

The composer produces HTML; this turns it into the tree the markup
translator consumes. Parsing lives here so the translator never sees markup
text.
"""

from typing import Union

from bs4 import BeautifulSoup, Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag

from bulk_sender.markup import translate
from bulk_sender.models.richtext import ElementNode, TextNode

ROOT_TAG = "body"

_SKIPPED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)


def parse_html(html: str) -> ElementNode:
    """Parse an HTML fragment (or document) into a tree rooted at a `body` element."""
    soup = BeautifulSoup(html or "", "html.parser")
    container = soup.body or soup
    return ElementNode(tag=ROOT_TAG, children=_convert_children(container))


def translate_html(html: str) -> str:
    return translate(parse_html(html))


def _convert_children(tag: Tag) -> tuple[Union[TextNode, ElementNode], ...]:
    nodes: list[Union[TextNode, ElementNode]] = []
    for child in tag.children:
        if isinstance(child, _SKIPPED_STRINGS):
            continue
        if isinstance(child, NavigableString):
            nodes.append(TextNode(content=str(child)))
        elif isinstance(child, Tag):
            nodes.append(ElementNode(tag=child.name, children=_convert_children(child)))
    return tuple(nodes)
