from __future__ import annotations

import unicodedata
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Iterator

from .archive import ArchiveReader
from .errors import (
    MalformedContainer,
    MalformedManifest,
    ManifestNotFound,
    MissingContainer,
    MissingRootfilePath,
)
from .logging_utils import debug_log

CONTAINER_PATH = "META-INF/container.xml"


def _strip_tag(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


class XmlElement:
    """Namespace-agnostic view of a single ElementTree element."""

    __slots__ = ("_elem",)

    def __init__(self, elem: ET.Element) -> None:
        self._elem = elem

    @property
    def name(self) -> str:
        return _strip_tag(self._elem.tag)

    def attribute(self, name: str) -> str | None:
        for attr, value in self._elem.attrib.items():
            if _strip_tag(attr) == name:
                return value
        return None

    def text(self) -> str:
        return "".join(self._elem.itertext()).strip()

    def iter_descendants(self, local_name: str) -> Iterator["XmlElement"]:
        for elem in self._elem.iter():
            if elem is self._elem:
                continue
            if isinstance(elem.tag, str) and _strip_tag(elem.tag) == local_name:
                yield XmlElement(elem)

    def find_first(self, local_name: str) -> "XmlElement | None":
        return next(self.iter_descendants(local_name), None)


class XmlDocument(XmlElement):
    """Parsed XML document; lookups match tag names without their namespace."""

    __slots__ = ()

    @classmethod
    def parse(cls, data: bytes | str) -> "XmlDocument":
        # Raises ET.ParseError; callers map it to their own error type.
        return cls(ET.fromstring(data))

    def find_first(self, local_name: str) -> XmlElement | None:
        if self.name == local_name:
            return self
        return super().find_first(local_name)

    def find_all(self, local_name: str) -> list[XmlElement]:
        found = [self] if self.name == local_name else []
        found.extend(self.iter_descendants(local_name))
        return found


@dataclass(slots=True)
class ManifestEntry:
    id: str
    path: str
    media_type: str = ""
    is_text_document: bool = False


@dataclass(slots=True)
class PackageMetadata:
    title: str | None = None
    author: str | None = None
    language: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {"title": self.title, "author": self.author, "language": self.language}


@dataclass(slots=True)
class PackageManifest:
    entries: dict[str, ManifestEntry]
    order: list[str]
    metadata: PackageMetadata = field(default_factory=PackageMetadata)


def _is_markup_media_type(media_type: str | None) -> bool:
    if not media_type:
        return False
    lowered = media_type.lower()
    return "html" in lowered or "xhtml" in lowered


def locate_manifest(archive: ArchiveReader) -> str:
    """Return the package document path declared by META-INF/container.xml."""
    if not archive.has_entry(CONTAINER_PATH):
        raise MissingContainer(f"{CONTAINER_PATH} not found in EPUB.")
    try:
        doc = XmlDocument.parse(archive.read_bytes(CONTAINER_PATH))
    except ET.ParseError as exc:
        raise MalformedContainer(f"{CONTAINER_PATH} is not well-formed XML: {exc}") from exc
    rootfile = doc.find_first("rootfile")
    full_path = rootfile.attribute("full-path") if rootfile is not None else None
    if not full_path:
        raise MissingRootfilePath(f"Could not find rootfile path in {CONTAINER_PATH}.")
    debug_log(f"Package document declared at {full_path}")
    return full_path


def _collect_entries(doc: XmlDocument) -> dict[str, ManifestEntry]:
    entries: dict[str, ManifestEntry] = {}
    for manifest in doc.find_all("manifest"):
        for item in manifest.iter_descendants("item"):
            item_id = item.attribute("id")
            href = item.attribute("href")
            media_type = item.attribute("media-type") or ""
            if not item_id or not href or not _is_markup_media_type(media_type):
                continue
            if item_id in entries:
                debug_log(f"Manifest id {item_id!r} declared again; keeping the later item")
            entries[item_id] = ManifestEntry(
                id=item_id,
                path=href,
                media_type=media_type,
                is_text_document=True,
            )
    return entries


def _collect_order(doc: XmlDocument) -> list[str]:
    order: list[str] = []
    for spine in doc.find_all("spine"):
        for itemref in spine.iter_descendants("itemref"):
            idref = itemref.attribute("idref")
            if idref:
                order.append(idref)
    return order


def _normalized_text(elem: XmlElement) -> str | None:
    value = unicodedata.normalize("NFKC", elem.text()).strip()
    return value or None


def read_package_metadata(doc: XmlDocument) -> PackageMetadata:
    """Best-effort Dublin Core title, author and language."""
    metadata = PackageMetadata()
    for title_el in doc.find_all("title"):
        metadata.title = _normalized_text(title_el)
        if metadata.title:
            break
    authors: list[str] = []
    for creator_el in doc.find_all("creator"):
        name = _normalized_text(creator_el)
        if not name:
            continue
        role = creator_el.attribute("role")
        if role and role.lower() not in {"aut", "author"}:
            continue
        if name not in authors:
            authors.append(name)
    if authors:
        metadata.author = ", ".join(authors)
    language_el = doc.find_first("language")
    if language_el is not None:
        metadata.language = _normalized_text(language_el)
    return metadata


def parse_manifest(archive: ArchiveReader, manifest_path: str) -> PackageManifest:
    """Parse the package document into text entries and the spine order."""
    if not archive.has_entry(manifest_path):
        raise ManifestNotFound(f"OPF file not found at path: {manifest_path}")
    try:
        doc = XmlDocument.parse(archive.read_bytes(manifest_path))
    except ET.ParseError as exc:
        raise MalformedManifest(f"{manifest_path} is not well-formed XML: {exc}") from exc
    entries = _collect_entries(doc)
    order = _collect_order(doc)
    debug_log(f"Manifest lists {len(entries)} text document(s); spine has {len(order)} reference(s)")
    return PackageManifest(entries=entries, order=order, metadata=read_package_metadata(doc))
