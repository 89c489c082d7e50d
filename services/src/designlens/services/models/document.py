"""Typed entities for raw design documents and normalized frames."""

from __future__ import annotations

from typing import Annotated, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from ..rounding import round_half_up

__all__ = [
    "AccessibilityInfo",
    "BoundingBox",
    "ComponentInfo",
    "Effect",
    "Frame",
    "FrameChild",
    "InteractionInfo",
    "Paint",
    "RGBA",
    "RawNode",
    "ShapeNode",
    "TextNode",
    "TypeStyle",
    "BLACK",
    "WHITE",
]


class RGBA(BaseModel):
    """Colour with channels expressed as floats in ``[0, 1]``."""

    model_config = ConfigDict(frozen=True)

    r: float = 0.0
    g: float = 0.0
    b: float = 0.0
    a: float = 1.0

    def to_hex(self) -> str:
        channels = (self.r, self.g, self.b)
        return "#" + "".join(f"{round_half_up(max(0.0, min(1.0, c)) * 255):02x}" for c in channels)


BLACK = RGBA(r=0.0, g=0.0, b=0.0, a=1.0)
WHITE = RGBA(r=1.0, g=1.0, b=1.0, a=1.0)


class BoundingBox(BaseModel):
    """Absolute geometry of a node in logical units."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2, self.y + self.height / 2

    def contains(self, x: float, y: float) -> bool:
        return self.x <= x <= self.x + self.width and self.y <= y <= self.y + self.height


class Paint(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str = "SOLID"
    visible: bool = True
    color: RGBA | None = None


class Effect(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str = ""
    visible: bool = True


class TypeStyle(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    font_size: float | None = Field(default=None, alias="fontSize")
    font_weight: float | None = Field(default=None, alias="fontWeight")
    font_family: str | None = Field(default=None, alias="fontFamily")


class ComponentInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    component_types: str | None = Field(default=None, alias="componentTypes")


class AccessibilityInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    role: str | None = None


class InteractionInfo(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    is_interactive: bool = Field(default=False, alias="isInteractive")


class RawNode(BaseModel):
    """A node of the design tool's document tree.

    Only the keys the evaluation engine reads are modelled; everything else in
    the upstream payload is ignored. Instances are produced by
    :func:`designlens.services.normalizer.parse_raw_node`, which drops
    malformed nodes instead of failing the whole tree.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str
    name: str = ""
    type: str
    visible: bool = True
    bounding_box: BoundingBox | None = Field(default=None, alias="absoluteBoundingBox")
    fills: list[Paint] = Field(default_factory=list)
    strokes: list[Paint] = Field(default_factory=list)
    effects: list[Effect] = Field(default_factory=list)
    background_color: RGBA | None = Field(default=None, alias="backgroundColor")
    background: list[Paint] = Field(default_factory=list)
    characters: str | None = None
    style: TypeStyle | None = None
    component: ComponentInfo | None = None
    accessibility: AccessibilityInfo | None = None
    interaction: InteractionInfo | None = None
    children: list["RawNode"] = Field(default_factory=list)

    def solid_fill(self) -> RGBA | None:
        """Return the first visible solid fill colour, if any."""

        for paint in self.fills:
            if paint.visible and paint.type == "SOLID" and paint.color is not None:
                return paint.color
        return None

    def iter_descendants(self) -> Iterator["RawNode"]:
        """Yield every descendant in depth-first pre-order."""

        for child in self.children:
            yield child
            yield from child.iter_descendants()


class TextNode(BaseModel):
    """Text-bearing node within a frame.

    Contrast fields stay ``None`` until the scorer produces a scored copy.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    id: str
    name: str = ""
    text: str
    font_size: float
    font_weight: float = 400.0
    font_family: str | None = None
    bold: bool = False
    color: RGBA = BLACK
    bounding_box: BoundingBox | None = None
    contrast_ratio: float | None = None
    contrast_score: int | None = None
    wcag_level: str | None = None

    @property
    def scored(self) -> bool:
        return self.contrast_ratio is not None


class ShapeNode(BaseModel):
    """Non-text node kept for its geometry and fill."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["shape"] = "shape"
    id: str
    name: str = ""
    node_type: str
    depth: int = 1
    bounding_box: BoundingBox
    fill: RGBA | None = None


FrameChild = Annotated[Union[TextNode, ShapeNode], Field(discriminator="kind")]


class Frame(BaseModel):
    """A normalized top-level screen with its flattened children."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    bounding_box: BoundingBox | None = None
    background: RGBA = WHITE
    children: list[FrameChild] = Field(default_factory=list)
    themed: bool = False
    average_contrast_score: int | None = None

    @property
    def text_nodes(self) -> list[TextNode]:
        return [child for child in self.children if isinstance(child, TextNode)]

    @property
    def shape_nodes(self) -> list[ShapeNode]:
        return [child for child in self.children if isinstance(child, ShapeNode)]
