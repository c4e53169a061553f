"""``"City, ST 12345"`` strings to structured locations."""

import re

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

_STATE_ZIP = re.compile(r"\b([A-Z]{2})\s+(\d{5})\b")
_STATE = re.compile(r"\b([A-Z]{2})\b")


class SylectusLocation(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    city: str = ""
    state: str = ""
    zip_code: str | None = Field(default=None)
    full_address: str = ""


def parse_location(text: str | None) -> SylectusLocation:
    raw = " ".join((text or "").split())
    if not raw:
        return SylectusLocation()
    if "," not in raw:
        return SylectusLocation(city=raw, full_address=raw)

    city, rest = raw.split(",", 1)
    rest = rest.strip().upper()
    m = _STATE_ZIP.search(rest)
    if m:
        return SylectusLocation(
            city=city.strip(), state=m.group(1), zip_code=m.group(2), full_address=raw
        )
    m = _STATE.search(rest)
    return SylectusLocation(
        city=city.strip(), state=m.group(1) if m else "", full_address=raw
    )
