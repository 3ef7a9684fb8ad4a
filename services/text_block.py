# services/text_block.py
#
# CRS980MI text block transactions. Each call returns the decoded result;
# callers decide whether a failure aborts.

from typing import Any, Dict, List

from api import call_mi
from config import M3_SCHEMA
from db import rquery_limited, first
from models import ApiDecodeResult, RunContext, MAX_TEXT_LINE_LEN
from logger import get_logger

log = get_logger("text_block")

PROGRAM = "CRS980MI"

TEXT_FILE = "OOHEAD00"          # file the block is attached to
TEXT_HEAD_FILE = "OSYTXH"       # file identities are drawn from
TEXT_VERSION = "CO02"           # customer order pretext block version
TEXT_EXT_INT = "2"              # external text


def allocate_text_id(logger=log) -> ApiDecodeResult:
    """RtvNewTextID; TXID is in out.record["TXID"] (blank means failure)."""
    out = call_mi(PROGRAM, "RtvNewTextID", {"FILE": TEXT_HEAD_FILE}, logger)
    if out.ok and not out.record.get("TXID", "").strip():
        out.raw_error = "RtvNewTextID returned no TXID"
        out.messages.append(out.raw_error)
    return out


def add_text_head(ctx: RunContext, txid: str, orno: str, logger=log) -> ApiDecodeResult:
    fields = {
        "FILE": TEXT_FILE,
        "TXID": txid,
        "CONO": ctx.cono,
        "TFIL": TEXT_HEAD_FILE,
        "KFLD": orno,
        "LNCD": "",
        "USID": ctx.user,
        "TXVR": TEXT_VERSION,
        "DIVI": ctx.divi,
        "TX40": "",
        "TXEI": TEXT_EXT_INT,
    }
    logger.debug("run CRS980MI.AddTxtBlockHead")
    return call_mi(PROGRAM, "AddTxtBlockHead", fields, logger)


def truncate_line(text: str, logger=log) -> str:
    text = text or ""
    if len(text) > MAX_TEXT_LINE_LEN:
        logger.warning(f"Text line length {len(text)} > {MAX_TEXT_LINE_LEN}, truncated: {text!r}")
        text = text[:MAX_TEXT_LINE_LEN]
    return text


def add_text_line(ctx: RunContext, txid: str, text: str, logger=log) -> ApiDecodeResult:
    fields = {
        "FILE": TEXT_FILE,
        "TXID": txid,
        "TFIL": TEXT_HEAD_FILE,
        "TX60": truncate_line(text, logger),
        "CONO": ctx.cono,
        "LNCD": "",
        "DIVI": ctx.divi,
        "TXVR": TEXT_VERSION,
    }
    logger.debug("run CRS980MI.AddTxtBlockLine")
    return call_mi(PROGRAM, "AddTxtBlockLine", fields, logger)


def delete_text_lines(ctx: RunContext, txid, logger=log) -> ApiDecodeResult:
    fields = {
        "FILE": TEXT_FILE,
        "TXID": txid,
        "CONO": ctx.cono,
        "TXVR": TEXT_VERSION,
        "DIVI": ctx.divi,
        "LNCD": "",
    }
    logger.debug("run CRS980MI.DltTxtBlockLins")
    return call_mi(PROGRAM, "DltTxtBlockLins", fields, logger)


def read_template_lines(conn, ctx: RunContext, template_id: int) -> List[str]:
    """OSYTXL lines of a permanent text, in line order."""
    sql = f"""
    SELECT l.TLLINO AS LINO, l.TLTX60 AS TX60
    FROM {M3_SCHEMA}.OSYTXL l
    WHERE l.TLCONO = ?
      AND l.TLDIVI = ?
      AND l.TLTXID = ?
      AND l.TLTXVR = ?
      AND l.TLLNCD = ?
    ORDER BY l.TLLINO
    """
    rows: List[Dict[str, Any]] = rquery_limited(
        conn, sql, (ctx.cono, ctx.divi, int(template_id), "", ""), ctx.max_records
    )
    return [str(first(r, "TX60", default="") or "").rstrip() for r in rows]
