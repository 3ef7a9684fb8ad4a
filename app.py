# pretext_sync/app.py

import argparse
import json
import sys
import uuid
from datetime import datetime, timezone
from typing import List, Optional

# ---------------- CONFIG / CORE ----------------
from config import ENV, ADMIN_EMAILS, get_readonly_conn, get_db_conn

from logger import get_logger
from emailer import send_email
from exceptions import ValidationError, NotFoundError, ConflictError, PretextError
from models import (
    PretextResult,
    RunContext,
    SyncResult,
    build_context,
    SUCCESS,
    NO_CHANGE,
    WARNING,
    ERROR,
)

# ---------------- RUN LEDGER ----------------
from db import init_state_db, record_run, record_orphan

# ---------------- WORKFLOW STEPS ----------------
from services.eligibility import check_eligible, check_delivery_progress, DELETED
from services.permanent_text import resolve
from services.text_sync import synchronize


log = get_logger("app")

STEP_START = "START"
STEP_VALIDATED = "VALIDATED"
STEP_DELIVERY = "DELIVERY_CHECKED"
STEP_RESOLVED = "RESOLVED"


# ------------------------------------------------------------
# The pretext decision procedure for ONE order
# ------------------------------------------------------------
def _run(ro_conn, rw_conn, ctx: RunContext, orno: str) -> PretextResult:
    gate = check_eligible(ro_conn, ctx, orno)
    if not gate.ok:
        if gate.rejected == DELETED:
            err = NotFoundError(
                f"Customer order number {orno} is deleted",
                variant="deleted", orno=orno, step=STEP_VALIDATED,
            )
        else:
            err = NotFoundError(
                f"Customer order number {orno} does not exist",
                variant="not_found", orno=orno, step=STEP_VALIDATED,
            )
        return PretextResult(ERROR, orno, STEP_VALIDATED, str(err), error=err)

    order = gate.order

    if not check_delivery_progress(ro_conn, ctx, orno):
        err = ConflictError(
            f"Delivery in progress for customer order {orno}; pretext not changed",
            orno=orno, step=STEP_DELIVERY,
        )
        return PretextResult(WARNING, orno, STEP_DELIVERY, str(err), error=err)

    text = resolve(ro_conn, ctx, order.cuno, order.lncd, order.chl1)
    if not text.found or text.lncd != order.lncd:
        msg = f"No permanent pretext applies to customer order {orno}"
        log.info(f"{msg} (CUNO={order.cuno} CHL1={order.chl1} LNCD={order.lncd})")
        return PretextResult(NO_CHANGE, orno, STEP_RESOLVED, msg, template_id=text.txid)

    log.info(f"CO {orno}: applying permanent text TXID={text.txid} from {text.source_key} key")
    sync = synchronize(ro_conn, rw_conn, ctx, order, text.txid)

    if not sync.applied:
        return PretextResult(
            ERROR, orno, sync.step, str(sync.error),
            template_id=text.txid, new_txid=sync.new_txid, error=sync.error, sync=sync,
        )

    return PretextResult(
        SUCCESS, orno, sync.step,
        f"Pretext {sync.new_txid} added to customer order {orno}",
        template_id=text.txid, new_txid=sync.new_txid, sync=sync,
    )


# ------------------------------------------------------------
# Diagnostics: ledger, orphans, admin email
# ------------------------------------------------------------
def _orphans(sync: Optional[SyncResult]) -> List[tuple]:
    if sync is None:
        return []
    out = []
    if not sync.applied and sync.new_txid:
        out.append((sync.new_txid, f"ABORTED_{sync.step}"))
    if sync.applied and sync.prior_txid and sync.prior_deleted is False:
        out.append((str(sync.prior_txid), "PRIOR_DELETE_FAILED"))
    return out


def _warn_partial(result: PretextResult) -> None:
    sync = result.sync
    if sync is None or sync.applied:
        return
    if sync.prior_deleted:
        log.warning(
            f"CO {result.orno} PARTIAL: prior pretext TXID={sync.prior_txid} lines were deleted "
            f"but the replacement failed at {sync.step}; OOHEAD still references the emptied block."
        )
    if sync.lines_failed:
        log.warning(
            f"CO {result.orno} PARTIAL: text block {sync.new_txid} holds "
            f"{sync.lines_total - sync.lines_failed}/{sync.lines_total} line(s) and is not referenced."
        )


def notify_admin(result: PretextResult) -> None:
    err = result.error
    api_messages = getattr(err, "api_messages", None) or []
    html = f"""
    <div style="font-family:Segoe UI,Arial,sans-serif; max-width:900px;">
      <h2 style="color:#b00020;">Pretext Sync Failure</h2>
      <p><b>Customer Order:</b> {result.orno}</p>
      <p><b>Failed Step:</b> {result.step}</p>
      <p><b>Error:</b> {result.message}</p>
      {"<p><b>New TXID (unreferenced):</b> " + result.new_txid + "</p>" if result.new_txid else ""}
      {"<h3>API Messages</h3><ul>" + "".join(f"<li>{m}</li>" for m in api_messages) + "</ul>" if api_messages else ""}
      <p style="color:#666;">No automatic rollback was performed.</p>
    </div>
    """
    if not send_email(ADMIN_EMAILS, f"Pretext Sync FAILED - CO {result.orno} ({result.step})", html):
        log.warning(f"CO {result.orno}: failure at {result.step} was not emailed to admins")


def _finish(result: PretextResult, ctx: RunContext, run_id: str, start_ts: str) -> None:
    _warn_partial(result)

    sync = result.sync
    err = result.error
    try:
        record_run(
            run_id=run_id,
            cono=ctx.cono,
            orno=result.orno,
            status=result.status,
            last_step=result.step,
            start_ts=start_ts,
            message=result.message,
            error_kind=err.kind if err is not None else None,
            template_id=result.template_id or None,
            prior_txid=sync.prior_txid if sync else None,
            new_txid=result.new_txid or None,
            prior_deleted=sync.prior_deleted if sync else None,
            lines_total=sync.lines_total if sync else None,
            lines_failed=sync.lines_failed if sync else None,
            api_messages_json=json.dumps(getattr(err, "api_messages", None) or []),
        )
        for txid, reason in _orphans(sync):
            record_orphan(txid, ctx.cono, result.orno, reason, run_id=run_id)
    except Exception as e:
        log.error(f"Could not write run ledger for CO {result.orno} (run {run_id}): {e}")

    if result.status == ERROR:
        log.error(f"CO {result.orno} FAILED at {result.step}: {result.message}")
        # caller input problems are answered to the caller only
        if not isinstance(err, (ValidationError, NotFoundError)):
            notify_admin(result)
    elif result.status == WARNING:
        log.warning(f"CO {result.orno}: {result.message}")
    else:
        log.info(f"CO {result.orno} {result.status}: {result.message}")


# ------------------------------------------------------------
# Entry point: AddPreText
# ------------------------------------------------------------
def add_pretext(
    orno: Optional[str],
    ctx: Optional[RunContext] = None,
    ro_conn=None,
    rw_conn=None,
) -> PretextResult:
    ctx = ctx or build_context()
    orno = (orno or "").strip()
    run_id = str(uuid.uuid4())
    start_ts = datetime.now(timezone.utc).isoformat()

    init_state_db()
    log.debug(f"Input CONO/ORNO: {ctx.cono}/{orno} (run {run_id}, env {ENV})")

    if not orno:
        err = ValidationError("Order number must be entered", step=STEP_START)
        result = PretextResult(ERROR, orno, STEP_START, str(err), error=err)
        _finish(result, ctx, run_id, start_ts)
        return result

    own_ro = ro_conn is None
    own_rw = rw_conn is None
    try:
        ro_conn = ro_conn or get_readonly_conn()
        rw_conn = rw_conn or get_db_conn()
        result = _run(ro_conn, rw_conn, ctx, orno)

    except Exception as e:
        # Real failure (ODBC down, unexpected data) - record it, then propagate
        try:
            err = e if isinstance(e, PretextError) else PretextError(str(e), orno=orno, step="UNEXPECTED")
            _finish(PretextResult(ERROR, orno, "UNEXPECTED", str(e), error=err), ctx, run_id, start_ts)
        finally:
            raise

    finally:
        for conn, owned in ((ro_conn, own_ro), (rw_conn, own_rw)):
            if owned and conn is not None:
                try:
                    conn.close()
                except Exception:
                    pass

    _finish(result, ctx, run_id, start_ts)
    return result


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Add permanent pretext to an M3 customer order header.")
    parser.add_argument("--orno", default="", help="customer order number")
    parser.add_argument("--cono", type=int, default=None, help="company (defaults to M3_CONO)")
    parser.add_argument("--user", default=None, help="user stamped as OACHID (defaults to M3_USER)")
    parser.add_argument("--max-records", type=int, default=None, help="read cap, 1-10000")
    args = parser.parse_args(argv)

    ctx = build_context(cono=args.cono, user=args.user, max_records=args.max_records)
    result = add_pretext(args.orno, ctx)

    print(f"{result.status}: {result.message}")
    return 1 if result.is_error else 0


if __name__ == "__main__":
    sys.exit(main())
