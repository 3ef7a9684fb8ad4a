import os
import sys
import unittest
from datetime import date
from unittest.mock import patch, MagicMock

# Add project root to Python path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from models import build_context
from services import permanent_text
from services.permanent_text import resolve, is_qualifying, CUSTOMER, CHAIN

TODAY = 20250101


def row(txid, txdo=3, txpr=1, endt=20261231, lncd="EN"):
    return {"TXID": txid, "TXDO": txdo, "TXPR": txpr, "ENDT": endt, "LNCD": lncd}


class TestQualifyingFilter(unittest.TestCase):

    def test_all_conditions_met(self):
        self.assertTrue(is_qualifying(row(1), TODAY))

    def test_expiry_today_still_qualifies(self):
        self.assertTrue(is_qualifying(row(1, endt=TODAY), TODAY))

    def test_expired(self):
        self.assertFalse(is_qualifying(row(1, endt=20241231), TODAY))

    def test_wrong_document_type(self):
        self.assertFalse(is_qualifying(row(1, txdo=2), TODAY))

    def test_inactive(self):
        self.assertFalse(is_qualifying(row(1, txpr=0), TODAY))


class TestResolve(unittest.TestCase):

    def setUp(self):
        self.ctx = build_context(cono=100, user="FHW", today=date(2025, 1, 1))
        self.conn = MagicMock()
        self.by_key = {}

        def fake_read(conn, ctx, key, lncd):
            return self.by_key.get(key, [])

        patcher = patch.object(permanent_text, "read_permanent_texts", side_effect=fake_read)
        self.mock_read = patcher.start()
        self.addCleanup(patcher.stop)

    def test_customer_template(self):
        self.by_key["17200"] = [row(880001)]

        out = resolve(self.conn, self.ctx, "17200", "EN", "CHAIN01")

        self.assertEqual(out.txid, 880001)
        self.assertEqual(out.lncd, "EN")
        self.assertEqual(out.source_key, CUSTOMER)
        self.mock_read.assert_called_once_with(self.conn, self.ctx, "17200", "EN")

    def test_last_qualifying_row_wins(self):
        self.by_key["17200"] = [row(1), row(2), row(3, endt=20200101)]

        out = resolve(self.conn, self.ctx, "17200", "EN", "CHAIN01")

        self.assertEqual(out.txid, 2)

    def test_fallback_to_chain_key(self):
        self.by_key["CHAIN01"] = [row(990001)]

        out = resolve(self.conn, self.ctx, "17200", "EN", "CHAIN01")

        self.assertEqual(out.txid, 990001)
        self.assertEqual(out.source_key, CHAIN)
        self.assertEqual(self.mock_read.call_count, 2)
        self.assertEqual(self.mock_read.call_args[0][2], "CHAIN01")

    def test_non_qualifying_customer_row_blocks_fallback(self):
        self.by_key["17200"] = [row(880001, endt=20240101)]
        self.by_key["CHAIN01"] = [row(990001)]

        out = resolve(self.conn, self.ctx, "17200", "EN", "CHAIN01")

        self.assertEqual(out.txid, 0)
        self.assertEqual(out.lncd, "")
        self.assertFalse(out.found)
        self.mock_read.assert_called_once()

    def test_nothing_anywhere(self):
        out = resolve(self.conn, self.ctx, "17200", "EN", "CHAIN01")

        self.assertFalse(out.found)
        self.assertEqual((out.txid, out.lncd), (0, ""))


class TestReadPermanentTexts(unittest.TestCase):

    @patch("services.permanent_text.rquery_limited")
    def test_query_uses_pretext_category_and_cap(self, mock_rq):
        mock_rq.return_value = []
        ctx = build_context(cono=100, user="FHW", max_records=250)

        permanent_text.read_permanent_texts(MagicMock(), ctx, "17200", "EN")

        sql, params, limit = mock_rq.call_args[0][1:]
        self.assertIn("ODTXTH", sql)
        self.assertEqual(params, (100, 3, "17200", "EN"))
        self.assertEqual(limit, 250)


if __name__ == "__main__":
    unittest.main()
