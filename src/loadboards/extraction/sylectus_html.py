"""Sylectus result-table HTML to typed load records.

The captured page is a table with one posting per top-level row. Columns are positional:

    0  posted by (company profile link, credit-history links, SAFER link)
    1  ref no / order no link (``orderno=`` or ``postingid=`` query parameter)
    2  load type / broker MC
    3  amount (bold inside a ``<font color>``)
    4  pickup location          5  delivery location
    6  pickup / delivery dates  7  post date / expires on
    8  vehicle size / miles     9  pieces     10  weight
    11 notes and bid link (optional)

Every field extractor returns a default instead of raising. A row that still fails is
logged with its markup and skipped.
"""

import logging
import re
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.core.errors import ExtractionRowError
from src.core.ids import generate_load_id
from src.loadboards.extraction.cells import Cell, Row, normalize_text, top_level_rows
from src.loadboards.extraction.dates import parse_sylectus_datetime
from src.loadboards.extraction.locations import SylectusLocation, parse_location

logger = logging.getLogger(__name__)

MIN_CELLS = 10

_ORDER_PARAM = re.compile(r"(?:orderno|postingid)=([^&'\"\s]+)", re.I)
_CREDIT_LINK = re.compile(r"credit\s*_?history", re.I)
_ONCLICK_URL = re.compile(
    r"['\"]((?:https?:)?//[^'\"]+|/[^'\"\s]+|[^'\"\s]+\.(?:aspx?|php|html?)(?:\?[^'\"]*)?)['\"]",
    re.I,
)
_INT = re.compile(r"\d[\d,]*")
_MC = re.compile(r"MC\W*(\d+)", re.I)
_RECORDS_FOUND = re.compile(r"([\d,]+)\s*record\(s\)\s*found", re.I)


class CreditInfo(BaseModel):
    days: int | None = None
    score: str | None = None


class SylectusLoad(BaseModel):
    """One posting, carrying both the table-view shape and the legacy detailed shape."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str

    # table view
    age: str = ""
    rate: str = ""
    trip: int = 0
    origin: str = ""
    destination: str = ""
    pick_up: str = ""
    eq: str = ""
    length: str = ""
    weight: int = 0
    capacity: str = ""
    company: str = ""
    pieces: int = 0

    # detailed
    posted_by: str = ""
    ref_no: str = ""
    order_no: str = ""
    load_type: str = ""
    broker_mc: str = Field(default="", alias="brokerMC")
    amount: str = ""
    pickup_location: SylectusLocation = Field(default_factory=SylectusLocation)
    pickup_date_time: str = ""
    delivery_location: SylectusLocation = Field(default_factory=SylectusLocation)
    delivery_date_time: str = ""
    post_date_time: str = ""
    expires_on: str = ""
    vehicle_size: str = ""
    miles: int = 0
    notes: str | None = None
    other_info: str | None = None
    days_to_pay_credit: CreditInfo | None = None
    safer_url: str | None = None
    bid_url: str | None = None

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass
class SylectusExtraction:
    loads: list[SylectusLoad] = field(default_factory=list)
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
    total_records: int | None = None


# ---------------------------------------------------------------------------
# Row classification
# ---------------------------------------------------------------------------


def _skip_reason(row: Row) -> str | None:
    if row.has_header_cells or any("header" in c.lower() for c in row.classes):
        return "header"
    if "record(s) found" in row.text.lower():
        return "footer"
    if len(row.cells) == 1:
        return "note"
    if len(row.cells) < MIN_CELLS:
        return "short"
    return None


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------


def _to_int(text: str) -> int:
    m = _INT.search(text or "")
    if not m:
        return 0
    try:
        return int(m.group(0).replace(",", ""))
    except ValueError:
        return 0


def _order_link(cell: Cell):
    for link in cell.links():
        target = f"{link.get('href') or ''} {link.get('onclick') or ''}"
        if _ORDER_PARAM.search(target):
            return link
    return None


def extract_identity(row: Row) -> str:
    link = _order_link(row.cell(1))
    if link is not None:
        m = _ORDER_PARAM.search(f"{link.get('href') or ''} {link.get('onclick') or ''}")
        if m and m.group(1).strip():
            return m.group(1).strip()
    return generate_load_id()


def extract_company(cell: Cell) -> str:
    links = cell.links()
    for link in links:
        if "profile" in (link.get("href") or "").lower() or "profile" in (
            link.get("onclick") or ""
        ).lower():
            text = normalize_text(link.get_text())
            if text:
                return text
    if links:
        text = normalize_text(links[0].get_text())
        if text:
            return text
    return cell.line(0)


def extract_amount(cell: Cell) -> str:
    for font in cell.find_all("font"):
        if not font.get("color"):
            continue
        bold = font.find("b")
        if bold is not None:
            text = normalize_text(bold.get_text())
            if text:
                return text
    return ""


def split_dates(cell: Cell) -> tuple[str, str]:
    """Two date tokens from one cell: ``<br>`` first, then raw newlines, else one token."""
    parts = cell.break_split()
    if len(parts) == 2:
        return parts[0], parts[1]
    lines = [normalize_text(s) for s in cell.raw_text.split("\n")]
    lines = [s for s in lines if s]
    if len(lines) >= 2:
        return lines[0], lines[1]
    return cell.text, ""


def extract_vehicle_size(cell: Cell) -> str:
    return re.sub(r"\d+$", "", cell.line(0)).strip()


def extract_credit(cell: Cell) -> CreditInfo | None:
    links = [
        link
        for link in cell.links()
        if _CREDIT_LINK.search(f"{link.get('href') or ''} {link.get('onclick') or ''}")
    ]
    if len(links) < 2:
        return None
    days_text = normalize_text(links[0].get_text())
    score = normalize_text(links[1].get_text())
    return CreditInfo(days=_to_int(days_text) if _INT.search(days_text) else None, score=score or None)


def _onclick_url(onclick: str) -> str | None:
    m = _ONCLICK_URL.search(onclick or "")
    return m.group(1) if m else None


def extract_safer_url(row: Row) -> str | None:
    for el in row.handlers():
        onclick = el.get("onclick") or ""
        if "safer" in onclick.lower() or "safer" in el.get_text().lower():
            url = _onclick_url(onclick)
            if url:
                return url
    for link in row.tag.find_all("a", href=True):
        if "safer" in link["href"].lower():
            return link["href"]
    return None


def extract_bid_url(row: Row) -> str | None:
    for el in row.handlers():
        onclick = el.get("onclick") or ""
        if "bid" in onclick.lower():
            url = _onclick_url(onclick)
            if url:
                return url
    return None


def extract_broker_mc(text: str) -> str:
    m = _MC.search(text)
    return m.group(1) if m else text


def extract_notes(cell: Cell) -> tuple[str | None, str | None]:
    if not cell.present:
        return None, None
    lines = [
        line for line in cell.lines() if line.lower() not in ("bid", "place bid", "bid now")
    ]
    if not lines:
        return None, None
    notes = lines[0]
    other = " ".join(lines[1:]) or None
    return notes, other


# ---------------------------------------------------------------------------
# Row assembly
# ---------------------------------------------------------------------------


def extract_row(row: Row) -> SylectusLoad:
    order = _order_link(row.cell(1))
    pickup = parse_location(row.cell(4).text)
    delivery = parse_location(row.cell(5).text)
    pickup_raw, delivery_raw = split_dates(row.cell(6))
    post_raw, expires_raw = split_dates(row.cell(7))
    pickup_at = parse_sylectus_datetime(pickup_raw)
    posted_at = parse_sylectus_datetime(post_raw)
    company = extract_company(row.cell(0))
    amount = extract_amount(row.cell(3))
    load_type = row.cell(2).line(0)
    vehicle_size = extract_vehicle_size(row.cell(8))
    miles = _to_int(row.cell(8).line(1))
    pieces = _to_int(row.cell(9).line(1))
    weight = _to_int(row.cell(10).line(1))
    notes, other_info = extract_notes(row.cell(11))

    return SylectusLoad(
        id=extract_identity(row),
        age=posted_at,
        rate=amount,
        trip=miles,
        origin=pickup.full_address,
        destination=delivery.full_address,
        pick_up=pickup_at,
        eq=vehicle_size,
        length="",
        weight=weight,
        capacity=load_type,
        company=company,
        pieces=pieces,
        posted_by=company,
        ref_no=row.cell(1).line(0),
        order_no=normalize_text(order.get_text()) if order is not None else "",
        load_type=load_type,
        broker_mc=extract_broker_mc(row.cell(2).line(1)),
        amount=amount,
        pickup_location=pickup,
        pickup_date_time=pickup_at,
        delivery_location=delivery,
        delivery_date_time=parse_sylectus_datetime(delivery_raw),
        post_date_time=posted_at,
        expires_on=parse_sylectus_datetime(expires_raw),
        vehicle_size=vehicle_size,
        miles=miles,
        notes=notes,
        other_info=other_info,
        days_to_pay_credit=extract_credit(row.cell(0)),
        safer_url=extract_safer_url(row),
        bid_url=extract_bid_url(row),
    )


def extract_sylectus_table(html: str) -> SylectusExtraction:
    out = SylectusExtraction()
    for row in top_level_rows(html):
        reason = _skip_reason(row)
        if reason is not None:
            if reason == "footer":
                m = _RECORDS_FOUND.search(row.text)
                if m:
                    out.total_records = _to_int(m.group(1))
            out.skipped += 1
            continue
        try:
            out.loads.append(extract_row(row))
        except Exception as e:
            err = ExtractionRowError(f"{type(e).__name__}: {e}", str(row))
            logger.warning("Sylectus row skipped (%s): %s", err, err.row_html[:500])
            out.errors.append(str(err))
            out.skipped += 1
    logger.debug(
        "Sylectus extraction: %d loads, %d rows skipped", len(out.loads), out.skipped
    )
    return out


def extract_sylectus_loads(html: str) -> list[SylectusLoad]:
    return extract_sylectus_table(html).loads
