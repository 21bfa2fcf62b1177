"""
Rich-text document tree fed to the markup translator.

A node is either a TextNode (literal text) or an ElementNode (a tag with
ordered children). Trees are immutable once built.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TextNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    content: str = ""


class ElementNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["element"] = "element"
    tag: str
    children: tuple[RichTextNode, ...] = ()

    @field_validator("tag")
    @classmethod
    def _normalize_tag(cls, v: str) -> str:
        return v.strip().lower()


RichTextNode = Annotated[Union[TextNode, ElementNode], Field(discriminator="kind")]

ElementNode.model_rebuild()


def text(content: str) -> TextNode:
    return TextNode(content=content)


def element(tag: str, *children: Union[TextNode, ElementNode]) -> ElementNode:
    return ElementNode(tag=tag, children=children)
