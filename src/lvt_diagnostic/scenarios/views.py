"""View definitions for paged list item queries."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any, Literal

from pydantic import BaseModel, Field


class ViewQuery(BaseModel):
    """A list item query: view XML plus the continuation position."""

    scope: Literal["Default", "Recursive", "RecursiveAll", "FilesOnly"] = "RecursiveAll"
    row_limit: int = Field(default=1000, gt=0)
    position: str | None = None

    def view_xml(self) -> str:
        view = ET.Element("View", {"Scope": self.scope})
        ET.SubElement(view, "RowLimit").text = str(self.row_limit)
        return ET.tostring(view, encoding="unicode")

    def to_params(self) -> dict[str, Any]:
        params: dict[str, Any] = {"view_xml": self.view_xml()}
        if self.position is not None:
            params["position"] = self.position
        return params
