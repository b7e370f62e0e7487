"""
Carriers and their public tracking pages
"""

from enum import Enum
from urllib.parse import quote

from bookbuyback.kernel.errors import ValidationError


class Carrier(str, Enum):
    YAMATO = "yamato"
    SAGAWA = "sagawa"
    JAPAN_POST = "japan_post"


TRACKING_URL_TEMPLATES: dict[Carrier, str] = {
    Carrier.YAMATO: "https://toi.kuronekoyamato.co.jp/cgi-bin/tneko?number={tracking_number}",
    Carrier.SAGAWA: "https://k2k.sagawa-exp.co.jp/p/web/okurijosearch.do?okurijoNo={tracking_number}",
    Carrier.JAPAN_POST: "https://trackings.post.japanpost.jp/services/srv/search?requestNo1={tracking_number}",
}


def parse_carrier(value: "Carrier | str") -> Carrier:
    """
    Raises:
        ValidationError: For a carrier we do not ship with
    """
    try:
        return Carrier(value)
    except ValueError as e:
        raise ValidationError(f"Unknown carrier: {value}") from e


def tracking_url(carrier: Carrier | str, tracking_number: str) -> str:
    """Public tracking page for a parcel"""
    template = TRACKING_URL_TEMPLATES[parse_carrier(carrier)]
    return template.format(tracking_number=quote(tracking_number, safe=""))
