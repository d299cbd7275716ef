"""Parsers for THREDDS catalogs and WMTS capabilities documents.

Both document types are namespaced XML, and upstream servers are not
consistent about prefixes, so elements are matched on their local name only.
Malformed XML never raises out of this module: it is logged and treated as a
document with no references, no dates or no time range, which the resolver
reports as "no dates found".

Example:
    >>> from seaice.services import xml_catalog
    >>> xml_catalog.extract_catalog_refs(
    ...     '<catalog xmlns:xlink="http://www.w3.org/1999/xlink">'
    ...     '<catalogRef xlink:href="2024/catalog.xml"/></catalog>'
    ... )
    ['2024/catalog.xml']
"""

from __future__ import annotations

import datetime
import logging
import re
import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

_XLINK_HREF = "{http://www.w3.org/1999/xlink}href"


def _local_name(tag: object) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _parse(xml: str) -> ET.Element | None:
    try:
        return ET.fromstring(xml)
    except ET.ParseError as exc:
        logger.warning("Ignoring malformed XML document: %s", exc)
        return None


def _children(element: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            yield child


def _text(element: ET.Element, name: str) -> str | None:
    for child in _children(element, name):
        if child.text and child.text.strip():
            return child.text.strip()
    return None


def extract_catalog_refs(xml: str) -> list[str]:
    """Return the ``xlink:href`` of every ``catalogRef`` in a THREDDS catalog."""
    root = _parse(xml)
    if root is None:
        return []

    refs: list[str] = []
    for element in root.iter():
        if _local_name(element.tag) != "catalogRef":
            continue
        href = element.get(_XLINK_HREF) or element.get("href")
        if href:
            refs.append(href)
    return refs


def _dataset_names(root: ET.Element) -> Iterator[str]:
    for element in root.iter():
        if _local_name(element.tag) != "dataset":
            continue
        for attribute in ("name", "urlPath", "ID"):
            value = element.get(attribute)
            if value:
                yield value


def extract_dates(xml: str, file_pattern: re.Pattern[str]) -> set[str]:
    """Extract ISO dates from dataset filenames in a THREDDS month catalog.

    Args:
        xml: Catalog document text.
        file_pattern: Regex whose first group captures ``YYYYMMDD``.

    Returns:
        Set of ``YYYY-MM-DD`` strings; tokens that are not real calendar
        days are skipped.
    """
    root = _parse(xml)
    if root is None:
        return set()

    found: set[str] = set()
    for name in _dataset_names(root):
        for token in file_pattern.findall(name):
            try:
                day = datetime.datetime.strptime(token, "%Y%m%d").date()
            except ValueError:
                logger.debug("Skipping invalid date token %r in %s", token, name)
                continue
            found.add(day.isoformat())
    return found


def extract_time_range(xml: str, layer_id: str) -> str | None:
    """Find the time dimension value of a layer in a WMTS capabilities document.

    Args:
        xml: Capabilities document text.
        layer_id: ``ows:Identifier`` of the layer.

    Returns:
        The raw ``<Value>`` of the layer's ``time`` dimension, or None when
        the layer, its time dimension or its value is missing.
    """
    root = _parse(xml)
    if root is None:
        return None

    for layer in root.iter():
        if _local_name(layer.tag) != "Layer":
            continue
        if _text(layer, "Identifier") != layer_id:
            continue
        for dimension in _children(layer, "Dimension"):
            identifier = _text(dimension, "Identifier") or ""
            if identifier.lower() != "time":
                continue
            value = _text(dimension, "Value")
            if value:
                return value
    return None
