#api.py
from typing import Any, Dict, List

import requests

import config
from models import ApiDecodeResult
from logger import get_logger

log = get_logger("api")

def send_mi_request(program: str, transaction: str, fields: Dict[str, Any], logger) -> requests.Response:
    """
    Calls an M3 API transaction through the REST execute endpoint.
    Exactly one attempt; the shared session carries no retries.
    """
    url = f"{config.M3_API_URL}/execute/{program}/{transaction}"
    params = {k: "" if v is None else str(v) for k, v in fields.items()}

    logger.debug(f"Sending {program}/{transaction} fields: {params}")
    resp = config.SESSION.get(url, params=params, timeout=config.API_TIMEOUT)
    logger.debug(f"API Response: {resp.status_code} {resp.text[:2000]}")
    return resp

def _name_values(record: Dict[str, Any]) -> Dict[str, str]:
    out = {}
    for nv in record.get("NameValue", []) or []:
        name = nv.get("Name")
        if name:
            out[name] = (nv.get("Value") or "").strip()
    return out

def decode_mi_response(resp: requests.Response, transaction: str = "") -> ApiDecodeResult:
    """
    Decode an m3api-rest response.
    NOK replies come back either as HTTP errors or as {"@type": "ServerReturnedNOK", "Message": ...};
    a populated errorMessage field is treated the same way.
    """
    raw_text = ""
    try:
        raw_text = (resp.text or "").strip()
    except Exception:
        pass

    status = getattr(resp, "status_code", None)
    raw_err = ""
    messages: List[str] = []
    record: Dict[str, str] = {}

    if status is None or status >= 400:
        raw_err = f"HTTP {status}"
        if raw_text:
            messages.append(raw_text[:500])
        return ApiDecodeResult(status, transaction, raw_err, messages, record, raw_text[:2000])

    try:
        body = resp.json()
    except Exception as e:
        raw_err = f"Exception parsing API response JSON: {e}"
        return ApiDecodeResult(status, transaction, raw_err, [raw_err], record, raw_text[:2000])

    if not isinstance(body, dict):
        raw_err = "API did not return a JSON object."
        return ApiDecodeResult(status, transaction, raw_err, [raw_err], record, raw_text[:2000])

    transaction = body.get("Transaction") or transaction

    if body.get("@type") == "ServerReturnedNOK":
        raw_err = (body.get("Message") or "ServerReturnedNOK").strip()
    elif body.get("errorMessage"):
        raw_err = str(body.get("errorMessage")).strip()

    if raw_err:
        messages.append(raw_err)
    else:
        records = body.get("MIRecord") or []
        if records:
            record = _name_values(records[0])

    return ApiDecodeResult(status, transaction, raw_err, messages, record, raw_text[:2000])

def call_mi(program: str, transaction: str, fields: Dict[str, Any], logger) -> ApiDecodeResult:
    """send + decode; transport errors come back as a failed result, never raised."""
    try:
        resp = send_mi_request(program, transaction, fields, logger)
    except requests.RequestException as e:
        logger.error(f"{program}/{transaction} transport error: {e}")
        return ApiDecodeResult(None, transaction, str(e), [str(e)])

    out = decode_mi_response(resp, transaction)
    if not out.ok:
        logger.debug(f"{program} - {transaction}, error message: {out.messages}")
    return out
