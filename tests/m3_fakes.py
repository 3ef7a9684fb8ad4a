"""
In-memory stand-ins for the M3 ODBC connection and the CRS980MI service,
shared by the workflow tests.
"""
from models import ApiDecodeResult


class FakeCursor:
    def __init__(self, store):
        self.store = store
        self.description = []
        self.rowcount = -1
        self._rows = []

    def _result(self, cols, rows):
        self.description = [(c,) for c in cols]
        self._rows = [tuple(r) for r in rows]

    def execute(self, sql, params=()):
        s = self.store
        s.executed.append((sql, params))

        if "FOR UPDATE" in sql:
            if s.fail_lock:
                raise RuntimeError("SQL0913N Unsuccessful execution caused by deadlock or timeout")
            cono, orno = params
            hdr = s.orders.get((cono, orno))
            self._result(["OACHNO"], [(hdr["CHNO"],)] if hdr else [])

        elif "UPDATE" in sql and "OOHEAD" in sql:
            prtx, chno, chid, lmdt, cono, orno = params
            hdr = s.orders.get((cono, orno))
            if hdr is None:
                self.rowcount = 0
                return
            hdr.update({"PRTX": prtx, "CHNO": chno, "CHID": chid, "LMDT": lmdt})
            s.updates.append((cono, orno, prtx, chno, chid, lmdt))
            self.rowcount = 1

        elif "OOHEAD" in sql:
            cono, orno = params
            hdr = s.orders.get((cono, orno))
            cols = ["CONO", "ORNO", "CUNO", "LNCD", "CHL1", "ORST", "PRTX", "CHNO"]
            rows = []
            if hdr:
                rows.append((cono, orno, hdr["CUNO"], hdr["LNCD"], hdr["CHL1"], hdr["ORST"], hdr["PRTX"], hdr["CHNO"]))
            self._result(cols, rows)

        elif "ODHEAD" in sql:
            cono, orno = params
            statuses = s.deliveries.get((cono, orno), [])
            self._result(["CONO", "ORNO", "DLIX", "ORST"],
                         [(cono, orno, i + 1, st) for i, st in enumerate(statuses)])

        elif "ODTXTH" in sql:
            cono, txcd, key, lncd = params
            rows = s.templates.get((cono, key, lncd), [])
            self._result(["TXID", "TXDO", "TXPR", "ENDT", "LNCD"],
                         [(r["TXID"], r["TXDO"], r["TXPR"], r["ENDT"], r["LNCD"]) for r in rows])

        elif "OSYTXL" in sql:
            cono, divi, txid, txvr, lncd = params
            lines = s.template_lines.get(txid, [])
            self._result(["LINO", "TX60"], [(i + 1, t) for i, t in enumerate(lines)])

        else:
            raise AssertionError(f"unexpected SQL: {sql}")

    def fetchall(self):
        return list(self._rows)

    def fetchmany(self, size):
        return list(self._rows[:size])

    def fetchone(self):
        return self._rows[0] if self._rows else None


class FakeM3:
    """Acts as both the read-only and the read-write connection."""

    def __init__(self):
        self.orders = {}
        self.deliveries = {}
        self.templates = {}
        self.template_lines = {}
        self.executed = []
        self.updates = []
        self.fail_lock = False
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def add_order(self, cono, orno, cuno, lncd, chl1="", orst=22, prtx=0, chno=1):
        self.orders[(cono, orno)] = {
            "CUNO": cuno, "LNCD": lncd, "CHL1": chl1, "ORST": orst, "PRTX": prtx, "CHNO": chno,
        }

    def add_template(self, cono, key, lncd, txid, lines=(), txdo=3, txpr=1, endt=20991231):
        self.templates.setdefault((cono, key, lncd), []).append(
            {"TXID": txid, "TXDO": txdo, "TXPR": txpr, "ENDT": endt, "LNCD": lncd}
        )
        self.template_lines[txid] = list(lines)

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


class FakeTextService:
    """CRS980MI: RtvNewTextID / AddTxtBlockHead / AddTxtBlockLine / DltTxtBlockLins."""

    def __init__(self, first_txid=500123):
        self.next_txid = first_txid
        self.heads = {}
        self.blocks = {}
        self.calls = []
        self.fail = {}          # transaction -> error message (or callable(fields) -> message)

    def _error(self, transaction, fields):
        f = self.fail.get(transaction)
        if callable(f):
            return f(fields)
        return f

    def call(self, program, transaction, fields, logger):
        self.calls.append((transaction, dict(fields)))
        err = self._error(transaction, fields)
        if err:
            return ApiDecodeResult(200, transaction, err, [err])

        if transaction == "RtvNewTextID":
            txid = str(self.next_txid)
            self.next_txid += 1
            return ApiDecodeResult(200, transaction, "", [], {"TXID": txid})
        if transaction == "AddTxtBlockHead":
            self.heads[fields["TXID"]] = dict(fields)
            self.blocks.setdefault(fields["TXID"], [])
        elif transaction == "AddTxtBlockLine":
            self.blocks.setdefault(fields["TXID"], []).append(fields["TX60"])
        elif transaction == "DltTxtBlockLins":
            self.blocks[str(fields["TXID"])] = []
        return ApiDecodeResult(200, transaction, "", [])

    def transactions(self):
        return [t for t, _ in self.calls]
