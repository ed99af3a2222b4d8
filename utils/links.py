"""Clause link builder for the two external law viewers.

Each record carries a law id plus optional clause-location fragments
(``sp``, ``a``/``p``/``i``, ``AppdxTable``).  ``build_clause_link`` turns
those into a deep link for either viewer:

    Lawtext  https://yamachig.github.io/lawtext-app/#/v1:<id>/a=1/p=2
    e-Gov    https://elaws.e-gov.go.jp/document?lawid=<id>#Mp-At_1-Pr_2
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

LAWTEXT_BASE_URL = "https://yamachig.github.io/lawtext-app/#/v1:"
EGOV_BASE_URL = "https://elaws.e-gov.go.jp/document?lawid="


class ClauseLinkSite(str, Enum):
    """External viewer a clause link points at."""

    LAWTEXT = "Lawtext"
    EGOV = "e-Gov"

    @classmethod
    def parse(cls, value: Any) -> "ClauseLinkSite | None":
        """Return the matching site, or None for anything unrecognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


def _lawtext_fragments(record: Mapping[str, Any]) -> list[str]:
    fragments = [str(record["LawId"])]
    if record.get("sp"):
        fragments.append("sp")
    if record.get("a"):
        fragments.append(f"a={record['a']}")
    if record.get("p"):
        fragments.append(f"p={record['p']}")
    if record.get("i"):
        fragments.append(f"i={record['i']}")
    if record.get("AppdxTable"):
        fragments.append(f"AppdxTable={record['AppdxTable']}")
    return fragments


def _egov_fragments(record: Mapping[str, Any]) -> list[str]:
    # sp > AppdxTable > article/paragraph/item
    if record.get("sp"):
        return [str(record["LawId"]), "Sp"]
    if record.get("AppdxTable"):
        return [str(record["LawId"]), f"Mpat_{record['AppdxTable']}"]
    fragments = ["Mp"]
    if record.get("a"):
        fragments.append(f"At_{record['a']}")
    if record.get("p"):
        fragments.append(f"Pr_{record['p']}")
    if record.get("i"):
        fragments.append(f"It_{record['i']}")
    return fragments


def build_clause_link(record: Mapping[str, Any], site: Any) -> str | None:
    """Return the viewer URL for ``record`` on ``site``.

    Args:
        record: A loaded record; missing clause fields are normal.
        site: A ``ClauseLinkSite`` or its string value.

    Returns:
        The URL, or None when the record has no ``LawId`` or the site is
        not one of the known viewers.
    """
    if not record.get("LawId"):
        return None
    site = ClauseLinkSite.parse(site)
    if site is ClauseLinkSite.LAWTEXT:
        return LAWTEXT_BASE_URL + "/".join(_lawtext_fragments(record))
    if site is ClauseLinkSite.EGOV:
        return f"{EGOV_BASE_URL}{record['LawId']}#" + "-".join(_egov_fragments(record))
    return None


def clause_shapes(record: Mapping[str, Any]) -> list[str]:
    """List the clause-location shapes present on ``record``.

    A well-formed record has at most one of ``"sp"``, ``"AppdxTable"`` and
    ``"api"`` (any of the article/paragraph/item fields).
    """
    shapes = []
    if record.get("sp"):
        shapes.append("sp")
    if record.get("AppdxTable"):
        shapes.append("AppdxTable")
    if record.get("a") or record.get("p") or record.get("i"):
        shapes.append("api")
    return shapes
