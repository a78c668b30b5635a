"""SCORM manifest (imsmanifest.xml) parser.

Turns a manifest document into the typed tree in ``models.manifest`` and
derives the navigable views used by the player: resolved item hrefs and the
flattened play-list. Parsing is namespace-agnostic so SCORM 1.2, 2004 and
unqualified manifests are handled alike.
"""

from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional, Tuple

from scorm_player.models.manifest import (
    Item,
    Manifest,
    Organization,
    PlayableItem,
    Resource,
)

logger = logging.getLogger(__name__)

INVALID_MANIFEST = "INVALID_MANIFEST"

# Item metadata: model field -> attribute / adlcp element local name
_ITEM_FIELDS = {
    "prerequisites": "prerequisites",
    "maxTimeAllowed": "maxtimeallowed",
    "timeLimitAction": "timelimitaction",
    "dataFromLms": "datafromlms",
    "parameters": "parameters",
}


class ManifestParseError(ValueError):
    """Raised when the manifest is not well-formed or has no manifest root."""

    code = INVALID_MANIFEST


def _local(tag) -> str:
    if not isinstance(tag, str):  # comments / processing instructions
        return ""
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in element if _local(child.tag) == name]


def _child(element: ET.Element, name: str) -> Optional[ET.Element]:
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _attr(element: ET.Element, name: str) -> Optional[str]:
    """Attribute lookup ignoring any namespace prefix."""
    if name in element.attrib:
        return element.attrib[name]
    for key, value in element.attrib.items():
        if _local(key) == name:
            return value
    return None


def _text(element: Optional[ET.Element]) -> Optional[str]:
    if element is None:
        return None
    text = "".join(element.itertext()).strip()
    return text or None


def _parse_mastery_score(item_el: ET.Element) -> Optional[float]:
    raw = _text(_child(item_el, "masteryscore"))
    if raw is None:
        return None
    try:
        score = float(raw)
    except ValueError:
        return None
    return score if math.isfinite(score) else None


def _parse_item(item_el: ET.Element) -> Item:
    fields = {}
    for field, name in _ITEM_FIELDS.items():
        value = _attr(item_el, name)
        if value is None:
            value = _text(_child(item_el, name))
        fields[field] = value or None

    return Item(
        identifier=_attr(item_el, "identifier") or "",
        title=_text(_child(item_el, "title")) or "Item",
        href=_attr(item_el, "identifierref"),
        isVisible=_attr(item_el, "isvisible") != "false",
        masteryScore=_parse_mastery_score(item_el),
        **fields,
    )


def _parse_item_tree(
    org_el: ET.Element,
) -> Tuple[List[Item], List[Tuple[int, int]]]:
    """Flatten nested <item> elements into a pre-order arena."""
    items: List[Item] = []
    edges: List[Tuple[int, int]] = []
    # (element, parent index) pairs; reversed so pops follow document order
    stack = [(el, None) for el in reversed(_children(org_el, "item"))]
    while stack:
        item_el, parent = stack.pop()
        index = len(items)
        items.append(_parse_item(item_el))
        if parent is not None:
            edges.append((parent, index))
        stack.extend(
            (child, index)
            for child in reversed(_children(item_el, "item"))
        )
    return items, edges


def _parse_organization(org_el: ET.Element) -> Organization:
    items, edges = _parse_item_tree(org_el)
    return Organization(
        identifier=_attr(org_el, "identifier") or "",
        title=_text(_child(org_el, "title")) or "Organization",
        items=items,
        edges=edges,
    )


def _parse_resource(res_el: ET.Element) -> Resource:
    files = [
        href
        for href in (_attr(f, "href") for f in _children(res_el, "file"))
        if href
    ]
    return Resource(
        identifier=_attr(res_el, "identifier") or "",
        type=_attr(res_el, "type") or "",
        href=_attr(res_el, "href") or "",
        files=files,
    )


def _manifest_title(root: ET.Element) -> str:
    metadata = _child(root, "metadata")
    if metadata is not None:
        for element in metadata.iter():
            if _local(element.tag) == "title":
                title = _text(element)
                if title:
                    return title
    return "SCORM Course"


def parse_manifest(xml_text) -> Manifest:
    """Parse imsmanifest.xml content (str or bytes) into a ``Manifest``.

    Raises:
        ManifestParseError: document is malformed or has no manifest root
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise ManifestParseError(f"Invalid XML: {e}")

    if _local(root.tag) != "manifest":
        raise ManifestParseError("No manifest element found")

    organizations: List[Organization] = []
    default_organization = ""
    orgs_el = _child(root, "organizations")
    if orgs_el is not None:
        default_organization = _attr(orgs_el, "default") or ""
        organizations = [
            _parse_organization(org_el)
            for org_el in _children(orgs_el, "organization")
        ]

    resources: List[Resource] = []
    resources_el = _child(root, "resources")
    if resources_el is not None:
        resources = [
            _parse_resource(res_el)
            for res_el in _children(resources_el, "resource")
        ]

    manifest = Manifest(
        identifier=_attr(root, "identifier") or "",
        version=_attr(root, "version") or "1.0",
        title=_manifest_title(root),
        organizations=organizations,
        resources=resources,
        defaultOrganization=default_organization,
    )
    logger.info(
        "Parsed manifest %s: %d organization(s), %d resource(s)",
        manifest.identifier,
        len(organizations),
        len(resources),
    )
    return manifest


def resolve_item_resources(manifest: Manifest) -> Manifest:
    """Return a copy whose item references point at resource hrefs.

    A reference naming a known resource is replaced by that resource's href;
    anything else (including a direct href) is left as it is. The input
    manifest is not modified.
    """
    resource_map: Dict[str, Resource] = {
        r.identifier: r for r in manifest.resources
    }

    def resolve(item: Item) -> Item:
        if item.href and item.href in resource_map:
            return item.model_copy(
                update={"href": resource_map[item.href].href}
            )
        return item

    organizations = [
        org.model_copy(
            update={
                "items": [resolve(item) for item in org.items],
                "edges": list(org.edges),
            }
        )
        for org in manifest.organizations
    ]
    return manifest.model_copy(update={"organizations": organizations})


def get_playable_items(manifest: Manifest) -> List[Item]:
    """Visible items with an href, in pre-order across all organizations.

    Skipped parents do not hide their descendants: every node is visited.
    """
    return [
        item
        for org in manifest.organizations
        for item in org.items
        if item.href and item.isVisible
    ]


def build_playlist(manifest: Manifest) -> List[PlayableItem]:
    """Resolve and flatten, tagging each entry with its organization."""
    resolved = resolve_item_resources(manifest)
    playlist: List[PlayableItem] = []
    for org in resolved.organizations:
        for item in org.items:
            if item.href and item.isVisible:
                playlist.append(
                    PlayableItem(
                        index=len(playlist),
                        organization=org.identifier,
                        item=item,
                    )
                )
    return playlist


def find_item(manifest: Manifest, identifier: str) -> Optional[Item]:
    """Look up an item by identifier in the resolved manifest."""
    for org in resolve_item_resources(manifest).organizations:
        for item in org.items:
            if item.identifier == identifier:
                return item
    return None
