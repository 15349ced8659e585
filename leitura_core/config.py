from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional, Tuple


DEFAULT_PAGE_SIZE = 25
DEFAULT_TIMEOUT = 30.0
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

MONTH_ORDER: Dict[str, int] = {
    "JANEIRO": 1, "FEVEREIRO": 2, "MARÇO": 3, "ABRIL": 4, "MAIO": 5, "JUNHO": 6,
    "JULHO": 7, "AGOSTO": 8, "SETEMBRO": 9, "OUTUBRO": 10, "NOVEMBRO": 11, "DEZEMBRO": 12,
    "Janeiro": 1, "Fevereiro": 2, "Março": 3, "Abril": 4, "Maio": 5, "Junho": 6,
    "Julho": 7, "Agosto": 8, "Setembro": 9, "Outubro": 10, "Novembro": 11, "Dezembro": 12,
}

# Codes counted as "not completed" on the general overview.
IMPEDIMENT_CODES: FrozenSet[str] = frozenset({
    "3201", "3205", "3245", "3301", "3312", "3313", "3369", "3370", "3374", "3379",
    "3901", "3902", "3903", "3904", "3905", "3906", "3907", "3908", "5101", "5102",
    "5103", "5104", "5105", "5106", "5107", "5108", "5109", "5127", "5260", "5558",
    "5800", "5802", "3376",
})

# Stricter list used by the technician (leiturista) control report.
TECHNICIAN_IMPEDIMENT_CODES: FrozenSet[str] = frozenset({
    "3201", "3205", "3245", "3301", "3312", "3313", "3369", "3370", "3374",
    "3511", "3601", "3700", "3801", "3830", "3865", "3868", "3871", "3878",
    "3901", "3902", "3903", "3904", "3905", "3906", "3907", "3908",
    "5101", "5102", "5103", "5104", "5105", "5106", "5107", "5108", "5109",
    "5127", "5260", "5558", "5800", "5802",
    "3376", "3804", "3867", "3894", "3895", "2000", "6824",
})

# Values the source uses for "not available"; never valid choices.
PLACEHOLDER_TOKENS: FrozenSet[str] = frozenset({
    "", "NULL", "NONE", "NAN", "<NA>", "NA", "N/A", "UNDEFINED", "TODOS", "TODAS", "-",
})


def month_rank(value: object) -> int:
    if value is None:
        return 0
    s = str(value).strip()
    return MONTH_ORDER.get(s) or MONTH_ORDER.get(s.upper(), 0)


@dataclass(frozen=True)
class SeverityThresholds:
    critical: float = 50.0
    warning: float = 41.0


@dataclass(frozen=True)
class Settings:
    service_url: str = ""
    service_key: str = ""
    request_timeout: float = DEFAULT_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    thresholds: SeverityThresholds = field(default_factory=SeverityThresholds)
    log_level: str = "INFO"
    impediment_codes: FrozenSet[str] = IMPEDIMENT_CODES
    technician_impediment_codes: FrozenSet[str] = TECHNICIAN_IMPEDIMENT_CODES


def _as_float(value: Optional[str], default: float) -> float:
    if value is None or not str(value).strip():
        return default
    try:
        return float(str(value).replace(",", "."))
    except ValueError:
        return default


def _as_page_size(value: Optional[str]) -> int:
    try:
        size = int(str(value).strip())
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    return size if size >= 1 else DEFAULT_PAGE_SIZE


def _ordered_thresholds(critical: float, warning: float) -> Tuple[float, float]:
    if warning > critical:
        return warning, critical
    return critical, warning


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    defaults = SeverityThresholds()
    critical, warning = _ordered_thresholds(
        _as_float(env.get("SAL_SEVERITY_CRITICAL"), defaults.critical),
        _as_float(env.get("SAL_SEVERITY_WARNING"), defaults.warning),
    )
    return Settings(
        service_url=(env.get("SAL_SERVICE_URL") or "").strip().rstrip("/"),
        service_key=(env.get("SAL_SERVICE_KEY") or "").strip(),
        request_timeout=_as_float(env.get("SAL_REQUEST_TIMEOUT"), DEFAULT_TIMEOUT),
        page_size=_as_page_size(env.get("SAL_PAGE_SIZE")),
        thresholds=SeverityThresholds(critical=critical, warning=warning),
        log_level=(env.get("SAL_LOG_LEVEL") or "INFO").strip().upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
