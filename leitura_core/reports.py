from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from leitura_core.errors import UnknownReportError
from leitura_core.filters import AT_LEAST_ONE_MONTH, UL_RANGE_ORDERED, YEAR_PRESENT
from leitura_core.severity import AUDIT_POLICY, EFFICIENCY_POLICY, SeverityPolicy

EVIDENCE_AUDIT = "evidence_audit"
EVIDENCE_BY_TYPE = "evidence_by_type"
TECHNICIAN_CONTROL = "technician_control"
NOSB_IMPEDIMENTS = "nosb_impediments"
NOSB_SIMULATION = "nosb_simulation"
OVERVIEW = "overview"

# Parameter encodings understood by params.build_query_params.
INT = "int"
STR = "str"
ARRAY = "array"
JOIN = "join"


@dataclass(frozen=True)
class ParamSpec:
    name: str
    field: Optional[str]
    encoding: str = STR
    absent: object = None


@dataclass(frozen=True)
class ReportSpec:
    id: str
    label: str
    rpc: str
    params: Tuple[ParamSpec, ...]
    rules: Tuple[str, ...] = (UL_RANGE_ORDERED,)
    client_filters: Tuple[str, ...] = ()
    kind: str = "evidence"
    motive_key: Optional[str] = None
    severity: SeverityPolicy = AUDIT_POLICY
    # rows below this indicator are listed as alerts
    alert_below: Optional[float] = None
    file_stem: str = "SAL_Relatorio"


REPORTS: Dict[str, ReportSpec] = {
    EVIDENCE_AUDIT: ReportSpec(
        id=EVIDENCE_AUDIT,
        label="Controle de Evidências",
        rpc="rpc_controle_evidencias",
        params=(
            ParamSpec("p_ano", "year", INT),
            ParamSpec("p_mes", "months", ARRAY),
            ParamSpec("p_rz", "company"),
            ParamSpec("p_matr", "technician"),
            ParamSpec("p_ul_de", "ul_from", INT),
            ParamSpec("p_ul_para", "ul_to", INT),
        ),
        kind="evidence",
        file_stem="SAL_Auditoria_Evidencias",
    ),
    EVIDENCE_BY_TYPE: ReportSpec(
        id=EVIDENCE_BY_TYPE,
        label="Auditoria por Tipo (v9)",
        rpc="rpc_indicadores_por_tipo_v9",
        params=(
            ParamSpec("p_ano", "year", INT),
            ParamSpec("p_mes", "months", JOIN, absent="Todos"),
        ),
        client_filters=("company", "technician"),
        kind="evidence_type",
        severity=EFFICIENCY_POLICY,
        alert_below=50.0,
        file_stem="SAL_Auditoria_Tipo",
    ),
    TECHNICIAN_CONTROL: ReportSpec(
        id=TECHNICIAN_CONTROL,
        label="Controle de Leiturista",
        rpc="rpc_controle_leiturista_report_full",
        params=(
            ParamSpec("p_ano", "year", INT),
            ParamSpec("p_mes", "months", JOIN),
            ParamSpec("p_matr", "technician"),
        ),
        client_filters=("route_range",),
        kind="technician",
        file_stem="SAL_Controle_Leiturista_Analitico",
    ),
    NOSB_IMPEDIMENTS: ReportSpec(
        id=NOSB_IMPEDIMENTS,
        label="Impedimentos (NOSB)",
        rpc="rpc_ce_impedimentos",
        params=(
            ParamSpec("p_ano", "year", INT),
            ParamSpec("p_mes", "months", JOIN),
            ParamSpec("p_rz", None),
            ParamSpec("p_matr", None),
        ),
        rules=(YEAR_PRESENT, AT_LEAST_ONE_MONTH, UL_RANGE_ORDERED),
        client_filters=("company", "technician"),
        kind="nosb",
        motive_key="nosb_impedimento",
        file_stem="SAL_NOSB_Impedimentos",
    ),
    NOSB_SIMULATION: ReportSpec(
        id=NOSB_SIMULATION,
        label="Simulações (NOSB)",
        rpc="rpc_ce_simulacao_nosb",
        params=(
            ParamSpec("p_ano", "year", INT),
            ParamSpec("p_mes", "months", JOIN),
            ParamSpec("p_rz", None),
            ParamSpec("p_matr", None),
        ),
        rules=(YEAR_PRESENT, AT_LEAST_ONE_MONTH, UL_RANGE_ORDERED),
        client_filters=("company", "technician"),
        kind="nosb",
        motive_key="nosb_simulacao",
        file_stem="SAL_NOSB_Simulacao",
    ),
    OVERVIEW: ReportSpec(
        id=OVERVIEW,
        label="Indicadores Gerais",
        rpc="rpc_leituras_overview",
        params=(
            ParamSpec("p_ano", "year", ARRAY),
            ParamSpec("p_mes", "months", ARRAY),
            ParamSpec("p_rz", "company", ARRAY),
        ),
        kind="overview",
        file_stem="SAL_Indicadores_Gerais",
    ),
}


def get_report(report_id: str) -> ReportSpec:
    try:
        return REPORTS[report_id]
    except KeyError:
        raise UnknownReportError(f"Relatório desconhecido: {report_id}") from None


def list_reports() -> List[Dict[str, object]]:
    return [{"id": r.id, "label": r.label, "rules": list(r.rules)} for r in REPORTS.values()]
