"""Detected interactive elements."""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from .document import RGBA

__all__ = ["DetectedAccordion", "DetectedButton", "DetectedElement", "StyleVariant"]

StyleVariant = Literal["solid", "outline", "text", "icon", "ghost"]


class _DetectedBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    node_id: str
    node_name: str
    node_type: str
    frame_id: str | None = None


class DetectedButton(_DetectedBase):
    kind: Literal["button"] = "button"
    background_color: RGBA | None = None
    text_color: RGBA | None = None
    contrast_ratio: float | None = None
    style_variant: StyleVariant | None = None
    has_icon: bool = False
    has_visible_boundary: bool = False


class DetectedAccordion(_DetectedBase):
    kind: Literal["accordion"] = "accordion"


DetectedElement = Annotated[Union[DetectedButton, DetectedAccordion], Field(discriminator="kind")]
