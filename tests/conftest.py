import pytest

from models import ClientPoint, PlanInputs, PlanningContext, SalesBucket


def make_client(key: str, fact: float = 100.0, **kwargs) -> ClientPoint:
    defaults = {
        "name": f"Client {key}",
        "address": f"{key} Main Street",
        "lat": 55.75,
        "lon": 37.61,
        "type": "Retail",
        "owner": "RM1",
        "region": "North",
    }
    defaults.update(kwargs)
    return ClientPoint(key=key, fact=fact, **defaults)


def make_bucket(region: str, fact: float, clients=None, owner: str = "RM1", brand: str = "Brand", **kwargs) -> SalesBucket:
    return SalesBucket(region=region, owner=owner, brand=brand, fact=fact, clients=clients or [], **kwargs)


def monthly_history(start_year: int, start_month: int, volumes: list[float]) -> dict[str, float]:
    history = {}
    year, month = start_year, start_month
    for v in volumes:
        history[f"{year:04d}-{month:02d}"] = v
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return history


@pytest.fixture
def scenario_a_inputs() -> PlanInputs:
    return PlanInputs(
        total_fact=1000,
        matched_count=20,
        active_count=20,
        total_region_okb=100,
        avg_sku=3,
        avg_velocity=50,
    )


@pytest.fixture
def scenario_a_context() -> PlanningContext:
    return PlanningContext(base_rate=15, global_avg_sku=5, global_avg_sales=80, risk_level="low")
