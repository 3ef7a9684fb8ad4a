# services/permanent_text.py
from typing import Any, Dict, List

from config import M3_SCHEMA
from db import rquery_limited, first
from models import (
    ResolvedText,
    RunContext,
    TEXT_CATEGORY_PRETEXT,
    DOCUMENT_TYPE_ORDER,
    PRINT_FLAG_ACTIVE,
)
from logger import get_logger

log = get_logger("permanent_text")

CUSTOMER = "CUSTOMER"
CHAIN = "CHAIN"

# Primary key order of ODTXTH; the last qualifying row in this order wins.
PERMANENT_TEXT_SQL = f"""
SELECT
    t.UVTXID AS TXID,
    t.UVTXDO AS TXDO,
    t.UVTXPR AS TXPR,
    t.UVENDT AS ENDT,
    t.UVLNCD AS LNCD
FROM {M3_SCHEMA}.ODTXTH t
WHERE t.UVCONO = ?
  AND t.UVTXCD = ?
  AND t.UVTXKY = ?
  AND t.UVLNCD = ?
ORDER BY t.UVCONO, t.UVTXCD, t.UVTXKY, t.UVLNCD, t.UVTXID
"""


def read_permanent_texts(conn, ctx: RunContext, key: str, lncd: str) -> List[Dict[str, Any]]:
    return rquery_limited(
        conn,
        PERMANENT_TEXT_SQL,
        (ctx.cono, TEXT_CATEGORY_PRETEXT, key, lncd),
        ctx.max_records,
    )


def is_qualifying(row: Dict[str, Any], today: int) -> bool:
    return (
        int(first(row, "TXDO", default=0) or 0) == DOCUMENT_TYPE_ORDER
        and int(first(row, "TXPR", default=0) or 0) == PRINT_FLAG_ACTIVE
        and today <= int(first(row, "ENDT", default=0) or 0)
    )


def _apply(rows: List[Dict[str, Any]], today: int, source_key: str, current: ResolvedText) -> ResolvedText:
    out = current
    for r in rows:
        log.debug(
            f"ODTXTH TXID/TXDO/TXPR/ENDT: {first(r, 'TXID')}/{first(r, 'TXDO')}/"
            f"{first(r, 'TXPR')}/{first(r, 'ENDT')}"
        )
        if is_qualifying(r, today):
            out = ResolvedText(
                txid=int(first(r, "TXID", default=0) or 0),
                lncd=str(first(r, "LNCD", default="")).strip(),
                source_key=source_key,
            )
    return out


def resolve(conn, ctx: RunContext, customer: str, lncd: str, chain_key: str) -> ResolvedText:
    """
    Customer key first. The chain key is only tried when the customer key
    returned no rows at all; customer rows that merely fail the filter do not fall back.
    """
    result = ResolvedText()

    rows = read_permanent_texts(conn, ctx, customer, lncd)
    if rows:
        log.debug(f"ODTXTH: {len(rows)} row(s) for customer {customer}")
        result = _apply(rows, ctx.today, CUSTOMER, result)
    else:
        log.debug(f"ODTXTH: no rows for customer {customer}, trying chain key {chain_key!r}")
        rows = read_permanent_texts(conn, ctx, chain_key, lncd)
        result = _apply(rows, ctx.today, CHAIN, result)

    log.debug(
        f"Resolved TXID={result.txid} LNCD={result.lncd!r} "
        f"(order LNCD={lncd!r}, source={result.source_key or '-'})"
    )
    return result
