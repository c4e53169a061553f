"""Tree-of-cells view over an HTML results table.

Extraction code only sees ``Row`` and ``Cell``: ordered cells with text, line and
attribute accessors. BeautifulSoup stays behind this seam.
"""

import html as html_module
import re

from bs4 import BeautifulSoup, Tag

_BR = re.compile(r"<br\s*/?>", re.I)


def normalize_text(value: str | None) -> str:
    """Collapse whitespace and leftover entities (``&nbsp;``, double-escaped ``&amp;amp;``)."""
    if not value:
        return ""
    s = html_module.unescape(value).replace("\xa0", " ")
    return re.sub(r"\s+", " ", s).strip()


def _fragment_text(fragment: str) -> str:
    return BeautifulSoup(fragment, "html.parser").get_text()


class Cell:
    def __init__(self, tag: Tag | None):
        self._tag = tag

    @property
    def tag(self) -> Tag | None:
        return self._tag

    @property
    def present(self) -> bool:
        return self._tag is not None

    @property
    def html(self) -> str:
        return self._tag.decode_contents() if self._tag is not None else ""

    @property
    def raw_text(self) -> str:
        return self._tag.get_text() if self._tag is not None else ""

    @property
    def text(self) -> str:
        return normalize_text(self.raw_text)

    def attr(self, name: str, default: str = "") -> str:
        if self._tag is None:
            return default
        value = self._tag.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value if value is not None else default

    @property
    def colspan(self) -> int:
        try:
            return int(self.attr("colspan", "1") or 1)
        except ValueError:
            return 1

    def lines(self) -> list[str]:
        """Non-empty lines, split on ``<br>`` markup and on raw newlines."""
        out: list[str] = []
        for segment in _BR.split(self.html):
            for line in _fragment_text(segment).split("\n"):
                norm = normalize_text(line)
                if norm:
                    out.append(norm)
        return out

    def line(self, index: int) -> str:
        lines = self.lines()
        return lines[index] if 0 <= index < len(lines) else ""

    def break_split(self) -> list[str]:
        """Segments separated by ``<br>`` markup only (each segment whitespace-normalized)."""
        return [
            seg
            for seg in (normalize_text(_fragment_text(s)) for s in _BR.split(self.html))
            if seg
        ]

    def links(self) -> list[Tag]:
        if self._tag is None:
            return []
        return self._tag.find_all("a")

    def find_all(self, *args, **kwargs) -> list[Tag]:
        if self._tag is None:
            return []
        return self._tag.find_all(*args, **kwargs)


class Row:
    def __init__(self, tag: Tag):
        self._tag = tag
        self.cells = [Cell(td) for td in tag.find_all("td", recursive=False)]

    @property
    def tag(self) -> Tag:
        return self._tag

    def cell(self, index: int) -> Cell:
        return self.cells[index] if 0 <= index < len(self.cells) else Cell(None)

    @property
    def has_header_cells(self) -> bool:
        return self._tag.find("th", recursive=False) is not None

    @property
    def classes(self) -> list[str]:
        value = self._tag.get("class") or []
        return list(value) if isinstance(value, list) else str(value).split()

    @property
    def text(self) -> str:
        return normalize_text(self._tag.get_text(" "))

    def handlers(self) -> list[Tag]:
        """Elements carrying an inline ``onclick`` handler."""
        return self._tag.find_all(attrs={"onclick": True})

    def __str__(self) -> str:
        return str(self._tag)


def top_level_rows(markup: str) -> list[Row]:
    """Rows of the outermost tables; rows of nested sub-tables are left to their cells."""
    soup = BeautifulSoup(markup or "", "html.parser")
    return [Row(tr) for tr in soup.find_all("tr") if tr.find_parent("tr") is None]
