# db.py

import sqlite3
from datetime import datetime, timezone
from typing import Any, List, Dict, Optional, Tuple

import config
from logger import get_logger


log = get_logger("db")

# ---------- M3 (ODBC) Helpers ----------
def _row_dict(cols: List[str], row) -> Dict[str, Any]:
    d = dict(zip(cols, row))

    # Add lowercase aliases for all keys so code can use "orno" safely
    for k, v in list(d.items()):
        lk = str(k).lower()
        if lk not in d:
            d[lk] = v
    return d

def fetchall_dict(cur) -> List[Dict[str, Any]]:
    cols = [c[0] for c in cur.description]
    return [_row_dict(cols, row) for row in cur.fetchall()]

def rquery(conn, sql: str, params: Tuple[Any, ...] = ()) -> List[Dict[str, Any]]:
    cur = conn.cursor()
    cur.execute(sql, params)
    return fetchall_dict(cur)

def rquery_limited(conn, sql: str, params: Tuple[Any, ...], limit: int) -> List[Dict[str, Any]]:
    """Like rquery but never pulls more than `limit` rows off the cursor."""
    cur = conn.cursor()
    cur.execute(sql, params)
    cols = [c[0] for c in cur.description]
    return [_row_dict(cols, row) for row in cur.fetchmany(limit)]

def rexec(conn, sql: str, params: Tuple[Any, ...] = ()) -> int:
    cur = conn.cursor()
    cur.execute(sql, params)
    return cur.rowcount

def first(row: Dict[str, Any], *keys, default=None):
    """First non-None value among keys, matched case-insensitively."""
    for k in keys:
        if k in row and row[k] is not None:
            return row[k]
    lower_map = {str(k).lower(): k for k in row.keys()}
    for k in keys:
        lk = str(k).lower()
        if lk in lower_map and row[lower_map[lk]] is not None:
            return row[lower_map[lk]]
    return default

# ---------- Local Run Ledger ----------
def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def _table_columns(cur: sqlite3.Cursor, table: str) -> set[str]:
    cur.execute(f"PRAGMA table_info({table})")
    return {row[1] for row in cur.fetchall()}

def _ensure_column(cur: sqlite3.Cursor, table: str, column: str, col_type: str) -> None:
    cols = _table_columns(cur, table)
    if column not in cols:
        log.info(f"DB MIGRATION: adding column {table}.{column} {col_type}")
        cur.execute(f'ALTER TABLE {table} ADD COLUMN "{column}" {col_type}')

def state_conn() -> sqlite3.Connection:
    conn = sqlite3.connect(config.STATE_DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn

def init_state_db() -> None:
    conn = state_conn()
    cur = conn.cursor()

    cur.execute("""
    CREATE TABLE IF NOT EXISTS pretext_runs (
        run_id TEXT PRIMARY KEY,
        cono INTEGER,
        orno TEXT,
        status TEXT,
        last_step TEXT,
        message TEXT,
        error_kind TEXT,
        template_id INTEGER,
        prior_txid INTEGER,
        new_txid TEXT,
        prior_deleted INTEGER,
        lines_total INTEGER,
        lines_failed INTEGER,
        env TEXT,
        start_ts TEXT,
        end_ts TEXT
    )
    """)

    cur.execute("""
    CREATE TABLE IF NOT EXISTS text_orphans (
        txid TEXT,
        cono INTEGER,
        orno TEXT,
        reason TEXT,
        run_id TEXT,
        created_ts TEXT,
        swept_ts TEXT,
        PRIMARY KEY (txid, cono)
    )
    """)

    # ---- MIGRATIONS / SAFE UPGRADES ----
    _ensure_column(cur, "pretext_runs", "api_messages", "TEXT")
    _ensure_column(cur, "text_orphans", "sweep_error", "TEXT")

    conn.commit()
    conn.close()

    ensure_state_indexes()

def ensure_state_indexes() -> None:
    conn = state_conn()
    conn.executescript("""
    CREATE INDEX IF NOT EXISTS idx_pretext_runs_orno ON pretext_runs(orno);
    CREATE INDEX IF NOT EXISTS idx_pretext_runs_start_ts ON pretext_runs(start_ts);
    CREATE INDEX IF NOT EXISTS idx_text_orphans_swept_ts ON text_orphans(swept_ts);
    """)
    conn.commit()
    conn.close()

def record_run(
    run_id: str,
    cono: int,
    orno: str,
    status: str,
    last_step: str,
    start_ts: str,
    message: Optional[str] = None,
    error_kind: Optional[str] = None,
    template_id: Optional[int] = None,
    prior_txid: Optional[int] = None,
    new_txid: Optional[str] = None,
    prior_deleted: Optional[bool] = None,
    lines_total: Optional[int] = None,
    lines_failed: Optional[int] = None,
    api_messages_json: Optional[str] = None,
) -> None:
    conn = state_conn()
    conn.execute("""
    INSERT INTO pretext_runs (
        run_id, cono, orno, status, last_step, message, error_kind,
        template_id, prior_txid, new_txid, prior_deleted,
        lines_total, lines_failed, env, start_ts, end_ts, api_messages
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(run_id) DO UPDATE SET
        status=excluded.status,
        last_step=excluded.last_step,
        message=excluded.message,
        error_kind=excluded.error_kind,
        template_id=COALESCE(excluded.template_id, pretext_runs.template_id),
        prior_txid=COALESCE(excluded.prior_txid, pretext_runs.prior_txid),
        new_txid=COALESCE(excluded.new_txid, pretext_runs.new_txid),
        prior_deleted=COALESCE(excluded.prior_deleted, pretext_runs.prior_deleted),
        lines_total=COALESCE(excluded.lines_total, pretext_runs.lines_total),
        lines_failed=COALESCE(excluded.lines_failed, pretext_runs.lines_failed),
        end_ts=excluded.end_ts,
        api_messages=excluded.api_messages
    """, (
        run_id, cono, orno, status, last_step, message, error_kind,
        template_id, prior_txid, new_txid,
        None if prior_deleted is None else int(prior_deleted),
        lines_total, lines_failed, config.ENV, start_ts, _now(), api_messages_json,
    ))
    conn.commit()
    conn.close()

def record_orphan(txid: str, cono: int, orno: str, reason: str, run_id: Optional[str] = None) -> None:
    conn = state_conn()
    conn.execute("""
    INSERT INTO text_orphans (txid, cono, orno, reason, run_id, created_ts, swept_ts)
    VALUES (?, ?, ?, ?, ?, ?, NULL)
    ON CONFLICT(txid, cono) DO UPDATE SET
        reason=excluded.reason,
        run_id=excluded.run_id,
        swept_ts=NULL
    """, (str(txid), cono, orno, reason, run_id, _now()))
    conn.commit()
    conn.close()
    log.warning(f"Orphan text block recorded: TXID={txid} CONO={cono} ORNO={orno} reason={reason}")

def open_orphans(limit: int = 500) -> List[sqlite3.Row]:
    conn = state_conn()
    rows = conn.execute("""
        SELECT * FROM text_orphans
        WHERE swept_ts IS NULL
        ORDER BY created_ts
        LIMIT ?
    """, (limit,)).fetchall()
    conn.close()
    return rows

def mark_orphan_swept(txid: str, cono: int, sweep_error: Optional[str] = None) -> None:
    conn = state_conn()
    if sweep_error:
        conn.execute(
            "UPDATE text_orphans SET sweep_error=? WHERE txid=? AND cono=?",
            (sweep_error, str(txid), cono),
        )
    else:
        conn.execute(
            "UPDATE text_orphans SET swept_ts=?, sweep_error=NULL WHERE txid=? AND cono=?",
            (_now(), str(txid), cono),
        )
    conn.commit()
    conn.close()

def list_runs(q: str = "", limit: int = 25) -> List[sqlite3.Row]:
    conn = state_conn()
    if q:
        like = f"%{q}%"
        rows = conn.execute("""
            SELECT * FROM pretext_runs
            WHERE orno LIKE ? OR status LIKE ? OR new_txid LIKE ?
            ORDER BY start_ts DESC
            LIMIT ?
        """, (like, like, like, limit)).fetchall()
    else:
        rows = conn.execute(
            "SELECT * FROM pretext_runs ORDER BY start_ts DESC LIMIT ?", (limit,)
        ).fetchall()
    conn.close()
    return rows

def get_order_runs(orno: str) -> List[sqlite3.Row]:
    conn = state_conn()
    rows = conn.execute(
        "SELECT * FROM pretext_runs WHERE orno=? ORDER BY start_ts DESC",
        (orno,),
    ).fetchall()
    conn.close()
    return rows
