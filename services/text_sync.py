# services/text_sync.py

from exceptions import ExternalServiceError, LockError, PretextError
from models import ApiDecodeResult, OrderHeader, RunContext, SyncResult
from services.order_header import get_pretext_ref, update_pretext_locked
from services.text_block import (
    allocate_text_id,
    add_text_head,
    add_text_line,
    delete_text_lines,
    read_template_lines,
)
from logger import get_logger

log = get_logger("text_sync")

# Step names (also written to the run ledger)
STEP_DETECT_PRIOR = "DETECT_PRIOR"
STEP_DELETE_PRIOR = "DELETE_PRIOR"
STEP_ALLOCATE = "ALLOCATE_TXID"
STEP_HEAD = "ADD_TEXT_HEAD"
STEP_LINES = "ADD_TEXT_LINES"
STEP_COMMIT = "UPDATE_OOHEAD"
STEP_DONE = "DONE"


def _api_error(message: str, out: ApiDecodeResult, orno: str, step: str) -> ExternalServiceError:
    return ExternalServiceError(
        message,
        api_transaction=out.transaction,
        api_status=out.status_code,
        api_messages=out.messages,
        raw_response_text=out.raw_response_text,
        orno=orno,
        step=step,
    )


def synchronize(ro_conn, rw_conn, ctx: RunContext, order: OrderHeader, template_id: int) -> SyncResult:
    """
    Runs steps 1-6 once. Any unexpected error becomes res.error with the
    partial fields (prior_deleted, new_txid, line counts) kept for the run ledger.
    """
    res = SyncResult(applied=False, step=STEP_DETECT_PRIOR)
    try:
        _synchronize(res, ro_conn, rw_conn, ctx, order.orno, template_id)
    except Exception as e:
        log.error(f"CO {order.orno}: unexpected error at {res.step}: {e}")
        res.applied = False
        res.error = PretextError(
            f"Unexpected error at {res.step} for order {order.orno}: {e}",
            orno=order.orno,
            step=res.step,
        )
    return res


def _synchronize(res: SyncResult, ro_conn, rw_conn, ctx: RunContext, orno: str, template_id: int) -> None:
    # 1) existing pretext (unlocked snapshot)
    prior = get_pretext_ref(ro_conn, ctx.cono, orno)
    res.prior_txid = prior
    res.step = STEP_DELETE_PRIOR

    # 2) replace path: drop the old lines first; failure is not fatal
    if prior:
        out = delete_text_lines(ctx, prior, log)
        res.prior_deleted = out.ok
        if out.ok:
            log.info(f"CO {orno}: prior pretext TXID={prior} lines deleted")
        else:
            log.warning(f"CO {orno}: could not delete prior pretext TXID={prior}: {out.messages}")

    # 3) new identity
    res.step = STEP_ALLOCATE
    out = allocate_text_id(log)
    if not out.ok:
        res.error = _api_error(
            f"Could not retrieve a new text ID for order {orno}: {'; '.join(out.messages)}",
            out, orno, res.step,
        )
        return
    res.new_txid = out.record["TXID"].strip()
    log.debug(f"CO {orno}: new TXID = {res.new_txid}")

    # 4) block header
    res.step = STEP_HEAD
    out = add_text_head(ctx, res.new_txid, orno, log)
    if not out.ok:
        res.error = _api_error(
            f"Could not create text block header {res.new_txid} for order {orno}: {'; '.join(out.messages)}",
            out, orno, res.step,
        )
        return
    log.debug("Text header created")

    # 5) lines; the loop always completes, failures only raise the flag
    res.step = STEP_LINES
    lines = read_template_lines(ro_conn, ctx, template_id)
    res.lines_total = len(lines)
    last_failure = None
    for n, text in enumerate(lines, start=1):
        out = add_text_line(ctx, res.new_txid, text, log)
        if not out.ok:
            res.lines_failed += 1
            last_failure = out
            log.warning(f"CO {orno}: line {n}/{len(lines)} not added to TXID={res.new_txid}: {out.messages}")

    if res.lines_failed:
        res.error = _api_error(
            f"{res.lines_failed} of {res.lines_total} pretext line(s) could not be added "
            f"to text block {res.new_txid} for order {orno}",
            last_failure, orno, res.step,
        )
        return

    # 6) locked header update
    res.step = STEP_COMMIT
    reason = update_pretext_locked(rw_conn, ctx, orno, res.new_txid)
    if reason is not None:
        res.error = LockError(
            f"Could not update OOHEAD with new values for order {orno}: {reason}",
            orno=orno,
            step=res.step,
        )
        return

    res.step = STEP_DONE
    res.applied = True
