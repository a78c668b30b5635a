"""
Pydantic Models for SCORM Manifest Data

These models describe a parsed imsmanifest.xml. They are created once at
parse time and never mutated afterwards; derived views (resolved hrefs, the
flattened play-list) are produced as new instances.

Each organization stores its navigation tree as an arena: ``items`` holds the
nodes in pre-order document order and ``edges`` holds ``(parent, child)``
index pairs. Walking ``items`` by index is therefore a pre-order traversal.
"""

from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field


class Item(BaseModel):
    """Navigation tree node"""
    model_config = ConfigDict(frozen=True)

    identifier: str = Field(..., description="Item identifier")
    title: str = Field(default="Item", description="Display title")
    href: Optional[str] = Field(
        None,
        description="Resource identifier reference, or an href once resolved",
    )
    isVisible: bool = Field(default=True, description="Shown in navigation")
    prerequisites: Optional[str] = None
    maxTimeAllowed: Optional[str] = None
    timeLimitAction: Optional[str] = None
    dataFromLms: Optional[str] = None
    parameters: Optional[str] = None
    masteryScore: Optional[float] = Field(
        None, description="Mastery score, None when absent or non-numeric"
    )


class Organization(BaseModel):
    """One navigable course tree"""
    model_config = ConfigDict(frozen=True)

    identifier: str
    title: str = "Organization"
    items: List[Item] = Field(
        default_factory=list, description="Item arena in pre-order"
    )
    edges: List[Tuple[int, int]] = Field(
        default_factory=list, description="(parent, child) index pairs"
    )

    def roots(self) -> List[int]:
        """Indices of top-level items in document order."""
        children = {child for _, child in self.edges}
        return [i for i in range(len(self.items)) if i not in children]

    def children(self, index: int) -> List[int]:
        return [child for parent, child in self.edges if parent == index]

    def parent(self, index: int) -> Optional[int]:
        for parent, child in self.edges:
            if child == index:
                return parent
        return None

    def to_tree(self) -> List[Dict]:
        """Nested representation for display purposes."""
        def build(index: int) -> Dict:
            node = self.items[index].model_dump()
            node["children"] = [build(c) for c in self.children(index)]
            return node

        return [build(r) for r in self.roots()]


class Resource(BaseModel):
    """Playable content unit"""
    model_config = ConfigDict(frozen=True)

    identifier: str
    type: str = ""
    href: str = ""
    files: List[str] = Field(default_factory=list)


class Manifest(BaseModel):
    """Parsed course package structure"""
    model_config = ConfigDict(frozen=True)

    identifier: str
    version: str = "1.0"
    title: Optional[str] = "SCORM Course"
    organizations: List[Organization] = Field(default_factory=list)
    resources: List[Resource] = Field(default_factory=list)
    defaultOrganization: str = ""


class PlayableItem(BaseModel):
    """Flattened play-list entry returned to navigation clients"""
    index: int = Field(..., ge=0, description="Position in the play-list")
    organization: str
    item: Item
