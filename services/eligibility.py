from config import DELIVERY_LINES_SQL
from db import rquery_limited, first
from models import (
    GateResult,
    RunContext,
    ORDER_STATUS_DELETED,
    DELIVERY_STATUS_IN_PROGRESS,
)
from services.order_header import get_order_header
from logger import get_logger

log = get_logger("eligibility")

NOT_FOUND = "NOT_FOUND"
DELETED = "DELETED"


def check_eligible(conn, ctx: RunContext, orno: str) -> GateResult:
    hdr = get_order_header(conn, ctx.cono, orno)
    if hdr is None:
        log.info(f"CO {ctx.cono}/{orno} not found in OOHEAD")
        return GateResult(rejected=NOT_FOUND)

    if hdr.orst == ORDER_STATUS_DELETED:
        log.info(f"CO {ctx.cono}/{orno} has status {hdr.orst} (deleted)")
        return GateResult(order=hdr, rejected=DELETED)

    log.debug(f"CO {ctx.cono}/{orno}: CUNO={hdr.cuno} LNCD={hdr.lncd} CHL1={hdr.chl1} PRTX={hdr.prtx}")
    return GateResult(order=hdr)


def check_delivery_progress(conn, ctx: RunContext, orno: str) -> bool:
    """
    True when the pretext may change: no delivery lines at all,
    or every delivery line still below status 68.
    """
    rows = rquery_limited(conn, DELIVERY_LINES_SQL, (ctx.cono, orno), ctx.max_records)
    if not rows:
        log.debug(f"CO {ctx.cono}/{orno}: no delivery lines, pretext change allowed")
        return True

    for r in rows:
        status = int(first(r, "ORST", default=0) or 0)
        if status >= DELIVERY_STATUS_IN_PROGRESS:
            log.info(
                f"CO {ctx.cono}/{orno}: delivery {first(r, 'DLIX')} status {status} "
                f">= {DELIVERY_STATUS_IN_PROGRESS}, pretext change blocked"
            )
            return False

    log.debug(f"CO {ctx.cono}/{orno}: {len(rows)} delivery line(s) all below {DELIVERY_STATUS_IN_PROGRESS}")
    return True
