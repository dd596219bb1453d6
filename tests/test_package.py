from __future__ import annotations

import io
import zipfile

import pytest

from epubtag.archive import Archive
from epubtag.errors import (
    MalformedContainer,
    MalformedManifest,
    ManifestNotFound,
    MissingContainer,
    MissingRootfilePath,
)
from epubtag.package import XmlDocument, locate_manifest, parse_manifest

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="OEBPS/content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""


def _archive(files: dict[str, str]) -> Archive:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, payload in files.items():
            zf.writestr(name, payload)
    return Archive.load(buffer.getvalue())


def test_locate_manifest_reads_rootfile_full_path() -> None:
    archive = _archive({"META-INF/container.xml": CONTAINER_XML})
    assert locate_manifest(archive) == "OEBPS/content.opf"


def test_locate_manifest_accepts_unnamespaced_container() -> None:
    container = '<container><rootfiles><rootfile full-path="book.opf"/></rootfiles></container>'
    archive = _archive({"META-INF/container.xml": container})
    assert locate_manifest(archive) == "book.opf"


def test_locate_manifest_missing_container() -> None:
    archive = _archive({"mimetype": "application/epub+zip"})
    with pytest.raises(MissingContainer):
        locate_manifest(archive)


def test_locate_manifest_malformed_container() -> None:
    archive = _archive({"META-INF/container.xml": "<container><rootfiles>"})
    with pytest.raises(MalformedContainer):
        locate_manifest(archive)


@pytest.mark.parametrize(
    "container",
    [
        "<container><rootfiles/></container>",
        '<container><rootfiles><rootfile full-path=""/></rootfiles></container>',
    ],
)
def test_locate_manifest_without_rootfile_path(container: str) -> None:
    archive = _archive({"META-INF/container.xml": container})
    with pytest.raises(MissingRootfilePath):
        locate_manifest(archive)


OPF_XML = """<?xml version="1.0" encoding="UTF-8"?>
<package version="3.0" xmlns="http://www.idpf.org/2007/opf">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/" xmlns:opf="http://www.idpf.org/2007/opf">
    <dc:title>  The Sample Book </dc:title>
    <dc:creator opf:role="aut">Ada Writer</dc:creator>
    <dc:creator opf:role="ill">Ink Person</dc:creator>
    <dc:language>en</dc:language>
  </metadata>
  <manifest>
    <item id="ch1" href="Text/ch1.xhtml" media-type="application/xhtml+xml"/>
    <item id="ch2" href="Text/ch2.html" media-type="TEXT/HTML"/>
    <item id="css" href="style.css" media-type="text/css"/>
    <item id="cover" href="cover.jpg" media-type="image/jpeg"/>
    <item id="nohref" media-type="application/xhtml+xml"/>
    <item id="dup" href="first.xhtml" media-type="application/xhtml+xml"/>
    <item id="dup" href="second.xhtml" media-type="application/xhtml+xml"/>
  </manifest>
  <spine toc="ncx">
    <itemref idref="ch1"/>
    <itemref idref="ch2"/>
    <itemref idref="ch1"/>
    <itemref idref="cover"/>
    <itemref/>
  </spine>
</package>
"""


def test_parse_manifest_keeps_markup_items_only() -> None:
    archive = _archive({"OEBPS/content.opf": OPF_XML})
    manifest = parse_manifest(archive, "OEBPS/content.opf")
    assert list(manifest.entries) == ["ch1", "ch2", "dup"]
    assert manifest.entries["ch1"].path == "Text/ch1.xhtml"
    assert manifest.entries["ch2"].media_type == "TEXT/HTML"
    assert all(entry.is_text_document for entry in manifest.entries.values())


def test_parse_manifest_last_duplicate_id_wins() -> None:
    archive = _archive({"OEBPS/content.opf": OPF_XML})
    manifest = parse_manifest(archive, "OEBPS/content.opf")
    assert manifest.entries["dup"].path == "second.xhtml"


def test_parse_manifest_spine_preserves_order_and_duplicates() -> None:
    archive = _archive({"OEBPS/content.opf": OPF_XML})
    manifest = parse_manifest(archive, "OEBPS/content.opf")
    assert manifest.order == ["ch1", "ch2", "ch1", "cover"]


def test_parse_manifest_reads_metadata() -> None:
    archive = _archive({"OEBPS/content.opf": OPF_XML})
    meta = parse_manifest(archive, "OEBPS/content.opf").metadata
    assert meta.title == "The Sample Book"
    assert meta.author == "Ada Writer"
    assert meta.language == "en"


def test_parse_manifest_empty_sections_are_not_errors() -> None:
    opf = '<package xmlns="http://www.idpf.org/2007/opf"><manifest/><spine/></package>'
    archive = _archive({"content.opf": opf})
    manifest = parse_manifest(archive, "content.opf")
    assert manifest.entries == {}
    assert manifest.order == []
    assert manifest.metadata.title is None


def test_parse_manifest_not_found() -> None:
    archive = _archive({"content.opf": "<package/>"})
    with pytest.raises(ManifestNotFound):
        parse_manifest(archive, "OEBPS/content.opf")


def test_parse_manifest_malformed() -> None:
    archive = _archive({"content.opf": "<package><manifest></package>"})
    with pytest.raises(MalformedManifest):
        parse_manifest(archive, "content.opf")


def test_xml_document_ignores_namespace_prefixes() -> None:
    doc = XmlDocument.parse(
        b'<a:root xmlns:a="urn:a" xmlns:b="urn:b"><b:child b:name="x"/><child name="y"/></a:root>'
    )
    first = doc.find_first("child")
    assert first is not None
    assert first.attribute("name") == "x"
    assert [child.attribute("name") for child in doc.find_all("child")] == ["x", "y"]
    assert doc.find_first("root") is doc
    assert doc.find_first("missing") is None
