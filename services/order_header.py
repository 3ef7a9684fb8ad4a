# services/order_header.py
from typing import Optional

from config import M3_SCHEMA
from db import rquery, first
from models import OrderHeader, RunContext
from logger import get_logger

log = get_logger("order_header")


def get_order_header(conn, cono: int, orno: str) -> Optional[OrderHeader]:
    sql = f"""
    SELECT
        h.OACONO AS CONO,
        h.OAORNO AS ORNO,
        h.OACUNO AS CUNO,
        h.OALNCD AS LNCD,
        h.OACHL1 AS CHL1,
        h.OAORST AS ORST,
        h.OAPRTX AS PRTX,
        h.OACHNO AS CHNO
    FROM {M3_SCHEMA}.OOHEAD h
    WHERE h.OACONO = ?
      AND h.OAORNO = ?
    """
    rows = rquery(conn, sql, (cono, orno))
    if not rows:
        return None

    r0 = rows[0]
    return OrderHeader(
        cono=int(first(r0, "CONO", default=cono)),
        orno=str(first(r0, "ORNO", default=orno)).strip(),
        cuno=str(first(r0, "CUNO", default="")).strip(),
        lncd=str(first(r0, "LNCD", default="")).strip(),
        chl1=str(first(r0, "CHL1", default="")).strip(),
        orst=int(first(r0, "ORST", default=0) or 0),
        prtx=int(first(r0, "PRTX", default=0) or 0),
        chno=int(first(r0, "CHNO", default=0) or 0),
    )


def get_pretext_ref(conn, cono: int, orno: str) -> int:
    """Unlocked snapshot of OAPRTX. 0 when the order has no pretext (or vanished)."""
    hdr = get_order_header(conn, cono, orno)
    return hdr.prtx if hdr else 0


def update_pretext_locked(rw_conn, ctx: RunContext, orno: str, new_txid: str) -> Optional[str]:
    """
    Locked read-modify-write of OOHEAD: OAPRTX = new_txid, OACHNO + 1, OACHID, OALMDT.
    Returns None on success, otherwise the failure reason (connection rolled back).
    """
    lock_sql = f"""
    SELECT h.OACHNO
    FROM {M3_SCHEMA}.OOHEAD h
    WHERE h.OACONO = ?
      AND h.OAORNO = ?
    FOR UPDATE WITH RS
    """
    update_sql = f"""
    UPDATE {M3_SCHEMA}.OOHEAD
       SET OAPRTX = ?,
           OACHNO = ?,
           OACHID = ?,
           OALMDT = ?
     WHERE OACONO = ?
       AND OAORNO = ?
    """
    try:
        cur = rw_conn.cursor()
        cur.execute(lock_sql, (ctx.cono, orno))
        row = cur.fetchone()
        if row is None:
            rw_conn.rollback()
            return f"OOHEAD {ctx.cono}/{orno} not found for update"

        chno = int(row[0] or 0) + 1
        cur.execute(update_sql, (int(new_txid), chno, ctx.user, ctx.today, ctx.cono, orno))
        if cur.rowcount == 0:
            rw_conn.rollback()
            return f"OOHEAD {ctx.cono}/{orno} update touched no rows"

        rw_conn.commit()
    except Exception as e:
        log.error(f"OOHEAD {ctx.cono}/{orno} locked update failed: {e}")
        try:
            rw_conn.rollback()
        except Exception as rb:
            log.warning(f"Rollback after failed OOHEAD update also failed: {rb}")
        return str(e)

    log.info(f"OOHEAD {ctx.cono}/{orno} updated: OAPRTX={new_txid} OACHNO={chno} OACHID={ctx.user}")
    return None
