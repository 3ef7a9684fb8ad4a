# scripts/sweep_orphans.py
#
# Reconciliation pass for text blocks left behind by failed pretext runs:
# deletes their lines through CRS980MI and marks them swept in the run ledger.

import argparse
import os, sys

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT)

from db import init_state_db, open_orphans, mark_orphan_swept
from models import build_context
from services.text_block import delete_text_lines
from logger import get_logger

log = get_logger("sweep_orphans")


def sweep(limit: int = 500, dry_run: bool = False) -> tuple[int, int]:
    init_state_db()
    swept = failed = 0

    for row in open_orphans(limit):
        txid, cono = row["txid"], int(row["cono"])
        if dry_run:
            print(f"would sweep TXID={txid} CONO={cono} ORNO={row['orno']} reason={row['reason']}")
            continue

        out = delete_text_lines(build_context(cono=cono), txid, log)
        if out.ok:
            mark_orphan_swept(txid, cono)
            swept += 1
            log.info(f"Swept orphan TXID={txid} CONO={cono}")
        else:
            mark_orphan_swept(txid, cono, sweep_error="; ".join(out.messages) or out.raw_error)
            failed += 1
            log.warning(f"Orphan TXID={txid} CONO={cono} not swept: {out.messages}")

    return swept, failed


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Delete lines of orphaned pretext blocks.")
    parser.add_argument("--limit", type=int, default=500)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args(argv)

    swept, failed = sweep(args.limit, args.dry_run)
    print(f"swept={swept} failed={failed}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
