#models.py
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, List

from config import M3_CONO, M3_USER, MAX_RECORDS, clamp_max_records, today_yyyymmdd
from exceptions import PretextError

# OOHEAD / ODHEAD status codes
ORDER_STATUS_DELETED = 90
DELIVERY_STATUS_IN_PROGRESS = 68

# ODTXTH filter
TEXT_CATEGORY_PRETEXT = 3
DOCUMENT_TYPE_ORDER = 3
PRINT_FLAG_ACTIVE = 1

MAX_TEXT_LINE_LEN = 60

# Workflow result statuses
SUCCESS = "SUCCESS"
NO_CHANGE = "NO_CHANGE"
WARNING = "WARNING"
ERROR = "ERROR"


@dataclass
class ApiDecodeResult:
    status_code: Optional[int]
    transaction: str
    raw_error: str
    messages: List[str] = field(default_factory=list)
    record: dict = field(default_factory=dict)
    raw_response_text: str = ""

    @property
    def ok(self) -> bool:
        return not self.raw_error and not self.messages


@dataclass(frozen=True)
class RunContext:
    cono: int
    user: str
    today: int                 # yyyymmdd
    max_records: int = MAX_RECORDS
    divi: str = ""


def build_context(
    cono: Optional[int] = None,
    user: Optional[str] = None,
    today: Optional[date] = None,
    max_records: Optional[int] = None,
) -> RunContext:
    return RunContext(
        cono=int(cono if cono is not None else M3_CONO),
        user=user or M3_USER,
        today=today_yyyymmdd(today),
        max_records=clamp_max_records(max_records if max_records is not None else MAX_RECORDS),
    )


@dataclass
class OrderHeader:
    cono: int
    orno: str
    cuno: str
    lncd: str
    chl1: str
    orst: int
    prtx: int = 0              # 0 = no pretext
    chno: int = 0


@dataclass
class GateResult:
    order: Optional[OrderHeader] = None
    rejected: Optional[str] = None     # NOT_FOUND / DELETED

    @property
    def ok(self) -> bool:
        return self.rejected is None and self.order is not None


@dataclass
class ResolvedText:
    txid: int = 0
    lncd: str = ""
    source_key: str = ""       # CUSTOMER / CHAIN

    @property
    def found(self) -> bool:
        return self.txid > 0


@dataclass
class SyncResult:
    applied: bool
    step: str
    new_txid: str = ""
    prior_txid: int = 0
    prior_deleted: Optional[bool] = None   # None = no prior block
    lines_total: int = 0
    lines_failed: int = 0
    error: Optional[PretextError] = None


@dataclass
class PretextResult:
    status: str                # SUCCESS / NO_CHANGE / WARNING / ERROR
    orno: str
    step: str
    message: str = ""
    template_id: int = 0
    new_txid: str = ""
    error: Optional[PretextError] = None
    sync: Optional[SyncResult] = None

    @property
    def is_error(self) -> bool:
        return self.status == ERROR

    def raise_for_status(self) -> None:
        if self.is_error and self.error is not None:
            raise self.error
