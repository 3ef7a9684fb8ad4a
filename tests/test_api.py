import os
import sys
import unittest
from unittest.mock import patch, MagicMock

import requests

# Add project root to Python path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

import api
from models import build_context
from services import text_block


def mi_response(status=200, body=None, text=None):
    resp = MagicMock(status_code=status)
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body
    resp.text = text if text is not None else str(body)
    return resp


class TestDecodeMiResponse(unittest.TestCase):

    def test_ok_record(self):
        resp = mi_response(body={
            "Program": "CRS980MI",
            "Transaction": "RtvNewTextID",
            "MIRecord": [{"RowIndex": 0, "NameValue": [{"Name": "TXID", "Value": "500123   "}]}],
        })

        out = api.decode_mi_response(resp, "RtvNewTextID")

        self.assertTrue(out.ok)
        self.assertEqual(out.record, {"TXID": "500123"})
        self.assertEqual(out.transaction, "RtvNewTextID")

    def test_server_returned_nok(self):
        resp = mi_response(body={"@type": "ServerReturnedNOK", "Message": "Text identity 1 does not exist"})

        out = api.decode_mi_response(resp, "DltTxtBlockLins")

        self.assertFalse(out.ok)
        self.assertEqual(out.messages, ["Text identity 1 does not exist"])

    def test_error_message_field(self):
        out = api.decode_mi_response(mi_response(body={"errorMessage": "boom"}), "AddTxtBlockLine")
        self.assertFalse(out.ok)
        self.assertEqual(out.raw_error, "boom")

    def test_http_error(self):
        out = api.decode_mi_response(mi_response(status=500, body={}, text="Internal Server Error"))
        self.assertFalse(out.ok)
        self.assertEqual(out.raw_error, "HTTP 500")

    def test_non_json(self):
        out = api.decode_mi_response(mi_response(body=ValueError("no json"), text="<html/>"))
        self.assertFalse(out.ok)
        self.assertIn("Exception parsing", out.raw_error)


class TestCallMi(unittest.TestCase):

    @patch("api.config.SESSION")
    def test_single_get_to_execute_endpoint(self, mock_session):
        mock_session.get.return_value = mi_response(body={"MIRecord": []})

        out = api.call_mi("CRS980MI", "AddTxtBlockLine", {"TXID": 5, "TX60": None}, MagicMock())

        self.assertTrue(out.ok)
        mock_session.get.assert_called_once()
        url = mock_session.get.call_args[0][0]
        self.assertTrue(url.endswith("/execute/CRS980MI/AddTxtBlockLine"))
        self.assertEqual(mock_session.get.call_args[1]["params"], {"TXID": "5", "TX60": ""})

    @patch("api.config.SESSION")
    def test_transport_error_is_a_failed_result(self, mock_session):
        mock_session.get.side_effect = requests.ConnectionError("refused")

        out = api.call_mi("CRS980MI", "RtvNewTextID", {"FILE": "OSYTXH"}, MagicMock())

        self.assertFalse(out.ok)
        self.assertIsNone(out.status_code)
        mock_session.get.assert_called_once()


class TestTextBlockCalls(unittest.TestCase):

    def setUp(self):
        self.ctx = build_context(cono=100, user="FHW")

    @patch("services.text_block.call_mi")
    def test_blank_txid_is_failure(self, mock_call):
        mock_call.return_value = api.ApiDecodeResult(200, "RtvNewTextID", "", [], {"TXID": " "})

        out = text_block.allocate_text_id()

        self.assertFalse(out.ok)
        self.assertEqual(mock_call.call_args[0][2], {"FILE": "OSYTXH"})

    @patch("services.text_block.call_mi")
    def test_add_line_truncates(self, mock_call):
        mock_call.return_value = api.ApiDecodeResult(200, "AddTxtBlockLine", "", [])

        text_block.add_text_line(self.ctx, "500123", "A" * 61)

        fields = mock_call.call_args[0][2]
        self.assertEqual(fields["TX60"], "A" * 60)
        self.assertEqual(fields["TXID"], "500123")
        self.assertEqual(fields["TXVR"], "CO02")

    def test_truncate_keeps_short_text(self):
        self.assertEqual(text_block.truncate_line("Handle with care"), "Handle with care")
        self.assertEqual(text_block.truncate_line(None), "")


if __name__ == "__main__":
    unittest.main()
