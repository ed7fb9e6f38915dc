"""
Insight Models

An insight is a derived, non-authoritative observation about a tenant's
spending. Insights are never stored and never change stored data.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class InsightType(str, Enum):
    """Kind of observation."""
    PATTERN = "pattern"
    ANOMALY = "anomaly"
    SUGGESTION = "suggestion"
    FORECAST = "forecast"


class InsightSeverity(str, Enum):
    """How much attention an insight deserves."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def weight(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class Insight(BaseModel):
    """A single advisory observation."""

    id: str = Field(
        ...,
        description="Stable identifier of the analysis that produced it"
    )
    type: InsightType
    title: str
    description: str
    severity: InsightSeverity
    category: Optional[str] = None
    amount: Optional[float] = None
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0
    )
    actionable: bool = False
    icon: str = Field(
        default="Info",
        description="Icon identifier, opaque to the core"
    )

    @property
    def rank_score(self) -> float:
        """Ranking key: severity weight times confidence."""
        return self.severity.weight * self.confidence
