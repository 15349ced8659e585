from __future__ import annotations

from typing import Any, Dict, Optional


class LeituraError(Exception):
    default_code = "system_error"
    default_message = "Não foi possível concluir a operação."

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None) -> None:
        self.code = (code or self.default_code).strip()
        self.message = (message or "").strip() or self.default_message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class OptionLoadError(LeituraError):
    """Candidate values for a filter dimension could not be fetched."""

    default_code = "option_load_error"
    default_message = "Falha ao carregar opções de filtro."


class QueryError(LeituraError):
    """The query source failed or answered with an error payload."""

    default_code = "query_error"
    default_message = "Falha na sincronização. Tente novamente em instantes."


class UnknownReportError(LeituraError):
    default_code = "unknown_report"
    default_message = "Relatório desconhecido."
