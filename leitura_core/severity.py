from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import pandas as pd

from leitura_core.config import SeverityThresholds


class SeverityTier(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    NORMAL = "normal"


# Categorical tags the backend may send; they win over the numeric thresholds.
TAG_TIERS: Dict[str, SeverityTier] = {
    "CRITICAL": SeverityTier.CRITICAL,
    "CRITICO": SeverityTier.CRITICAL,
    "CRÍTICO": SeverityTier.CRITICAL,
    "VERMELHO": SeverityTier.CRITICAL,
    "RED": SeverityTier.CRITICAL,
    "WARNING": SeverityTier.WARNING,
    "ALERTA": SeverityTier.WARNING,
    "AMARELO": SeverityTier.WARNING,
    "YELLOW": SeverityTier.WARNING,
    "NORMAL": SeverityTier.NORMAL,
    "VERDE": SeverityTier.NORMAL,
    "GREEN": SeverityTier.NORMAL,
}

TIER_LABELS: Dict[SeverityTier, str] = {
    SeverityTier.CRITICAL: "Crítico",
    SeverityTier.WARNING: "Atenção",
    SeverityTier.NORMAL: "Normal",
}


@dataclass(frozen=True)
class SeverityPolicy:
    """How a report reads its indicator.

    With ``higher_is_worse`` (evidence audit) ``indicator >= critical`` is critical
    and ``indicator >= warning`` is warning. Efficiency reports read it the other
    way: ``indicator <= critical`` is critical and ``indicator < warning`` is
    warning. ``thresholds`` of None means the configured ones.
    """

    higher_is_worse: bool = True
    thresholds: Optional[SeverityThresholds] = None

    def resolve(self, default: SeverityThresholds) -> SeverityThresholds:
        return self.thresholds or default


AUDIT_POLICY = SeverityPolicy()
EFFICIENCY_POLICY = SeverityPolicy(
    higher_is_worse=False,
    thresholds=SeverityThresholds(critical=40.0, warning=50.0),
)


def tier_from_tag(tag: Any) -> Optional[SeverityTier]:
    if tag is None:
        return None
    return TAG_TIERS.get(str(tag).strip().upper())


def classify(
    indicator: Any,
    override: Any = None,
    thresholds: SeverityThresholds = SeverityThresholds(),
    *,
    higher_is_worse: bool = True,
) -> SeverityTier:
    """Tier for one indicator value; a recognised override tag takes precedence.

    Values that are not finite numbers fall to normal.
    """
    tier = tier_from_tag(override)
    if tier is not None:
        return tier
    try:
        value = float(indicator)
    except (TypeError, ValueError):
        return SeverityTier.NORMAL
    if not math.isfinite(value):
        return SeverityTier.NORMAL
    if higher_is_worse:
        if value >= thresholds.critical:
            return SeverityTier.CRITICAL
        if value >= thresholds.warning:
            return SeverityTier.WARNING
        return SeverityTier.NORMAL
    if value <= thresholds.critical:
        return SeverityTier.CRITICAL
    if value < thresholds.warning:
        return SeverityTier.WARNING
    return SeverityTier.NORMAL


def classify_frame(
    df: pd.DataFrame,
    thresholds: SeverityThresholds = SeverityThresholds(),
    *,
    policy: SeverityPolicy = AUDIT_POLICY,
    indicator_col: str = "indicator_pct",
    tag_col: str = "severity_tag",
) -> pd.DataFrame:
    out = df.copy()
    if out.empty:
        out["severity"] = pd.Series(dtype=object)
        return out
    bounds = policy.resolve(thresholds)
    tags = out[tag_col] if tag_col in out.columns else pd.Series([None] * len(out), index=out.index)
    out["severity"] = [
        classify(value, tag, bounds, higher_is_worse=policy.higher_is_worse).value
        for value, tag in zip(out[indicator_col], tags)
    ]
    return out
