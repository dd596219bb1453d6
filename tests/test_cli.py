from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path

import pytest
from rich.console import Console

import epubtag.cli as cli
from epubtag.core import AnalysisResult
from epubtag.scoring import AggregateHit, CategoryResult

CONTAINER_XML = """<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="content.opf" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

OPF_XML = """<?xml version="1.0" encoding="UTF-8"?>
<package version="3.0" xmlns="http://www.idpf.org/2007/opf">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>CLI Book</dc:title>
  </metadata>
  <manifest>
    <item id="ch1" href="ch1.xhtml" media-type="application/xhtml+xml"/>
  </manifest>
  <spine>
    <itemref idref="ch1"/>
  </spine>
</package>
"""

CHAPTER = """<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
  <head><title>One</title></head>
  <body><p>The wizard cast a spell. Another spell followed the first.</p></body>
</html>
"""


def _write_epub(path: Path, chapter: str = CHAPTER) -> Path:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr("mimetype", "application/epub+zip")
        zf.writestr("META-INF/container.xml", CONTAINER_XML)
        zf.writestr("content.opf", OPF_XML)
        zf.writestr("ch1.xhtml", chapter)
    path.write_bytes(buffer.getvalue())
    return path


def _write_tables(tmp_path: Path) -> tuple[Path, Path]:
    genres = tmp_path / "genres.json"
    genres.write_text(json.dumps({"Fantasy": ["magic", "spell", "wizard"]}), encoding="utf-8")
    tags = tmp_path / "tags.toml"
    tags.write_text('"Magic System" = ["spell"]\n', encoding="utf-8")
    return genres, tags


def test_analyze_json_output(tmp_path: Path, capsys) -> None:
    epub_path = _write_epub(tmp_path / "book.epub")
    genres, tags = _write_tables(tmp_path)

    exit_code = cli.main([str(epub_path), "--genres", str(genres), "--tags", str(tags), "--json"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["genres"] == [
        {"name": "Fantasy", "score": 3, "hits": {"spell": 2, "wizard": 1}}
    ]
    assert payload["tags"][0]["name"] == "Magic System"
    assert payload["allHits"] == [
        {"keyword": "spell", "count": 4},
        {"keyword": "wizard", "count": 1},
    ]
    assert payload["metadata"]["title"] == "CLI Book"
    assert payload["source"] == str(epub_path)


def test_analyze_subcommand_alias_and_custom_keywords(tmp_path: Path, capsys) -> None:
    epub_path = _write_epub(tmp_path / "book.epub")
    genres, tags = _write_tables(tmp_path)

    exit_code = cli.main(
        ["analyze", str(epub_path), "--genres", str(genres), "--tags", str(tags), "-k", "cast, foll*wed", "--json"]
    )

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["custom"]["hits"] == {"cast": 1, "foll*wed": 1}


def test_analyze_table_output(tmp_path: Path, capsys) -> None:
    epub_path = _write_epub(tmp_path / "book.epub")
    genres, tags = _write_tables(tmp_path)

    exit_code = cli.main([str(epub_path), "--genres", str(genres), "--tags", str(tags)])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "CLI Book" in out
    assert "Fantasy" in out
    assert "Magic System" in out


def test_analyze_directory_reports_each_book(tmp_path: Path, capsys) -> None:
    books = tmp_path / "books"
    books.mkdir()
    _write_epub(books / "a.epub")
    _write_epub(books / "b.epub")
    genres, tags = _write_tables(tmp_path)

    exit_code = cli.main([str(books), "--genres", str(genres), "--tags", str(tags), "--json"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert [Path(item["source"]).name for item in payload] == ["a.epub", "b.epub"]


def test_analyze_reports_broken_epub(tmp_path: Path, capsys) -> None:
    broken = tmp_path / "broken.epub"
    broken.write_bytes(b"not a zip")

    exit_code = cli.main([str(broken)])

    assert exit_code == 1
    assert "broken.epub" in capsys.readouterr().err


def test_analyze_reports_empty_book(tmp_path: Path, capsys) -> None:
    epub_path = _write_epub(
        tmp_path / "empty.epub",
        chapter='<html xmlns="http://www.w3.org/1999/xhtml"><body> </body></html>',
    )

    exit_code = cli.main([str(epub_path)])

    assert exit_code == 1
    assert "Could not extract any text" in capsys.readouterr().err


def test_analyze_missing_input(tmp_path: Path, capsys) -> None:
    exit_code = cli.main([str(tmp_path / "nope.epub")])
    assert exit_code == 1
    assert "not found" in capsys.readouterr().err


def test_keywords_json_lists_tables(tmp_path: Path, capsys) -> None:
    genres, tags = _write_tables(tmp_path)

    exit_code = cli.main(["keywords", "--genres", str(genres), "--tags", str(tags), "--json"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload == {
        "genres": {"Fantasy": ["magic", "spell", "wizard"]},
        "tags": {"Magic System": ["spell"]},
    }


def test_keywords_rejects_bad_table(tmp_path: Path, capsys) -> None:
    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    assert cli.main(["keywords", "--genres", str(bad)]) == 1
    assert "Invalid keyword table" in capsys.readouterr().err


def test_no_arguments_prints_help(capsys) -> None:
    assert cli.main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_analyze_table_output_with_bracketed_names(tmp_path: Path, capsys) -> None:
    epub_path = _write_epub(tmp_path / "book.epub")
    genres = tmp_path / "genres.json"
    genres.write_text(json.dumps({"[/x] Weird": ["spell", "[b]wizard"]}), encoding="utf-8")
    tags = tmp_path / "tags.toml"
    tags.write_text('"[red]Magic" = ["spell"]\n', encoding="utf-8")

    exit_code = cli.main([str(epub_path), "--genres", str(genres), "--tags", str(tags)])

    assert exit_code == 0
    out = capsys.readouterr().out
    assert "[/x] Weird" in out
    assert "[red]Magic" in out


def test_render_result_keeps_markup_characters_literal() -> None:
    result = AnalysisResult(
        genres=[CategoryResult("[/x] Weird", 1, {"[i]rune": 1})],
        tags=[],
        all_hits=[AggregateHit("[i]rune", 1)],
    )
    console = Console(record=True, width=120)

    cli.render_result(console, Path("odd.epub"), result)

    text = console.export_text()
    assert "[/x] Weird" in text
    assert "[i]rune (1)" in text


@pytest.mark.parametrize("top", ["0", "-1"])
def test_analyze_rejects_non_positive_top(tmp_path: Path, capsys, top: str) -> None:
    epub_path = _write_epub(tmp_path / "book.epub")

    with pytest.raises(SystemExit) as excinfo:
        cli.main([str(epub_path), "--top", top])

    assert excinfo.value.code == 2
    assert "--top must be at least 1" in capsys.readouterr().err
