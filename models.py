"""
Record types shared by the analytics core.

Inputs (ClientPoint, SalesBucket, PlanningContext) are produced by the
aggregation layer; every other type is derived and recomputed from scratch
on each input change.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class ClientPoint:
    key: str
    name: str = ""
    address: str = ""
    lat: float | None = None
    lon: float | None = None
    fact: float = 0.0
    daily_fact: dict[str, float] | None = None  # "YYYY-MM-DD" -> volume
    monthly_fact: dict[str, float] | None = None  # "YYYY-MM" -> volume
    abc_category: str | None = None  # "A" | "B" | "C"
    type: str | None = None  # sales channel; None when unidentified
    owner: str = ""
    region: str = ""
    potential: float = 0.0
    is_matched: bool = True

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None and not (self.lat == 0 and self.lon == 0)


@dataclass
class SalesBucket:
    """One region x brand x packaging row (or an RM/region rollup)."""
    region: str
    owner: str
    brand: str = ""
    packaging: str = ""
    fact: float = 0.0
    potential: float = 0.0
    growth_potential: float = 0.0
    clients: list[ClientPoint] = field(default_factory=list)
    growth_pct: float = 0.0
    plan: "PlanResult | None" = None

    @property
    def label(self) -> str:
        parts = [self.region, self.brand, self.packaging]
        return " / ".join(p for p in parts if p)


@dataclass(frozen=True)
class PlanningContext:
    base_rate: float = 15.0
    global_avg_sku: float = 0.0
    global_avg_sales: float = 0.0
    risk_level: str = "low"  # "low" | "medium" | "high"


@dataclass(frozen=True)
class PlanInputs:
    """Bucket totals fed to the growth planning engine."""
    total_fact: float = 0.0
    total_potential: float = 0.0
    matched_count: int = 0
    active_count: int = 0
    total_region_okb: int = 0
    avg_sku: float = 0.0
    avg_velocity: float = 0.0
    rm_global_velocity: float = 0.0


@dataclass(frozen=True)
class GrowthFactors:
    base: float = 0.0
    share: float = 0.0
    width: float = 0.0
    velocity: float = 0.0
    acquisition: float = 0.0

    def total(self) -> float:
        return self.base + self.share + self.width + self.velocity + self.acquisition


@dataclass(frozen=True)
class GrowthDetails:
    """Explainability snapshot shown next to a plan."""
    my_sku: float
    global_sku: float
    my_velocity: float
    global_velocity: float
    market_share: float
    rm_efficiency_ratio: float


@dataclass(frozen=True)
class PlanResult:
    plan: float
    growth_pct: float
    factors: GrowthFactors
    details: GrowthDetails


@dataclass(frozen=True)
class OutlierRecord:
    bucket: SalesBucket
    z_score: float
    reason: str
    is_extreme: bool = False


@dataclass(frozen=True)
class ClientContribution:
    client: ClientPoint
    fact: float
    contribution_pct: float
    diagnosis: str
    severity: str  # "critical" | "warning" | "info"


@dataclass(frozen=True)
class ChurnMetric:
    client_id: str
    risk_score: float
    risk_level: str  # "Low" | "Medium" | "High" | "Critical"
    days_since_last_order: int
    avg_order_gap: int
    volume_drop_pct: float
    client_name: str = ""
    owner: str = ""
    fact: float = 0.0


@dataclass(frozen=True)
class SuggestedAction:
    client_id: str
    type: str  # "churn" | "activation" | "growth" | "data_fix"
    priority_score: float
    reason: str
    recommended_step: str
    client_name: str = ""
    owner: str = ""
    fact: float = 0.0

    @property
    def task_id(self) -> str:
        """Task-store id: one decision per (client, action type)."""
        return f"{self.client_id}:{self.type}"


@dataclass(frozen=True)
class RegionMetric:
    name: str
    volume: float
    growth_pct: float
    potential: float
    similarity_score: float | None = None


@dataclass(frozen=True)
class CoverageMetric:
    region: str
    active_count: int
    okb_count: int
    coverage_pct: float
    gap: int
    priority_score: float


@dataclass(frozen=True)
class TaskDecision:
    """A dismissal recorded by the task store; consulted only for visibility."""
    target_id: str
    type: str  # "delete" | "snooze"
    reason: str = ""
    snooze_until: datetime | None = None
