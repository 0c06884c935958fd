import logging
import math
from dataclasses import replace
from typing import Any

import pandas as pd

from models import ClientPoint, SalesBucket

logger = logging.getLogger(__name__)


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = df.columns.astype(str).str.strip()
    col_map = {
        "Client Key": "Client_Key",
        "Client_Key": "Client_Key",
        "Client": "Client_Name",
        "Client Name": "Client_Name",
        "Клиент": "Client_Name",
        "Наименование": "Client_Name",
        "Address": "Address",
        "Адрес": "Address",
        "Адрес ТТ": "Address",
        "Lat": "Lat",
        "Latitude": "Lat",
        "Широта": "Lat",
        "Lon": "Lon",
        "Longitude": "Lon",
        "Долгота": "Lon",
        "Region": "Region",
        "Регион": "Region",
        "RM": "Owner",
        "Owner": "Owner",
        "РМ": "Owner",
        "Brand": "Brand",
        "Бренд": "Brand",
        "Packaging": "Packaging",
        "Фасовка": "Packaging",
        "Channel": "Channel",
        "Канал": "Channel",
        "Канал продаж": "Channel",
        "Fact": "Fact",
        "Sales": "Fact",
        "Факт": "Fact",
        "Вес, кг": "Fact",
        "Date": "Date",
        "Order Date": "Date",
        "Order_Date": "Date",
        "Дата": "Date",
        "Matched": "Matched",
    }
    for old, new in col_map.items():
        if old in df.columns and new not in df.columns:
            df = df.rename(columns={old: new})
    return df


normalize_columns = _normalize_columns

REQUIRED_COLUMNS = ("Region", "Owner", "Fact")


def _get_col(df: pd.DataFrame, *candidates: str) -> str:
    for c in candidates:
        if c in df.columns:
            return c
    raise ValueError(f"Required column not found. Tried: {candidates}")


def _text(value: Any) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    return str(value).strip()


def _coord(value: Any) -> float | None:
    try:
        f = float(str(value).replace(",", "."))
    except (TypeError, ValueError):
        return None
    return None if math.isnan(f) else f


def _flag(value: Any) -> bool:
    """Registry match flag; missing values count as matched."""
    text = _text(value).lower()
    if not text:
        return True
    return text not in ("0", "false", "no", "нет")


def _client_key(row: pd.Series) -> str:
    key = _text(row.get("Client_Key"))
    if key:
        return key
    address = " ".join(_text(row.get("Address")).lower().split())
    return address or _text(row.get("Client_Name")).lower()


def build_buckets(df: pd.DataFrame) -> list[SalesBucket]:
    """
    One bucket per (owner, region, brand, packaging) with its clients.
    Rows of the same client in a bucket are summed; a Date column fills the
    daily and monthly histories.
    """
    df = _normalize_columns(df)
    for col in REQUIRED_COLUMNS:
        _get_col(df, col)
    for col in ("Brand", "Packaging", "Address", "Client_Name", "Channel"):
        if col not in df.columns:
            df[col] = ""

    df["Fact"] = pd.to_numeric(df["Fact"], errors="coerce").fillna(0.0)
    has_dates = "Date" in df.columns
    if has_dates:
        df["Date"] = pd.to_datetime(df["Date"], dayfirst=True, errors="coerce")
    if df.empty:
        return []
    df["_key"] = df.apply(_client_key, axis=1)
    df = df[df["_key"] != ""].copy()
    for col in ("Owner", "Region", "Brand", "Packaging"):
        df[col] = df[col].map(_text)

    buckets = []
    group_cols = ["Owner", "Region", "Brand", "Packaging"]
    for (owner, region, brand, packaging), group in df.groupby(group_cols, sort=True):
        clients = []
        for key, rows in group.groupby("_key", sort=False):
            first = rows.iloc[0]
            daily = monthly = None
            if has_dates:
                dated = rows.dropna(subset=["Date"])
                if not dated.empty:
                    daily = dated.groupby(dated["Date"].dt.strftime("%Y-%m-%d"))["Fact"].sum().to_dict()
                    monthly = dated.groupby(dated["Date"].dt.strftime("%Y-%m"))["Fact"].sum().to_dict()
            matched = _flag(first.get("Matched"))
            clients.append(ClientPoint(
                key=str(key),
                name=_text(first.get("Client_Name")),
                address=_text(first.get("Address")),
                lat=_coord(first.get("Lat")),
                lon=_coord(first.get("Lon")),
                fact=float(rows["Fact"].sum()),
                daily_fact=daily,
                monthly_fact=monthly,
                type=_text(first.get("Channel")) or None,
                owner=owner,
                region=region,
                is_matched=matched,
            ))
        buckets.append(SalesBucket(
            region=region,
            owner=owner,
            brand=brand,
            packaging=packaging,
            fact=float(group["Fact"].sum()),
            clients=clients,
        ))
    logger.info("Built %d buckets from %d rows", len(buckets), len(df))
    return buckets


def _merge_history(a: dict[str, float] | None, b: dict[str, float] | None) -> dict[str, float] | None:
    if not a:
        return dict(b) if b else b
    merged = dict(a)
    for day, volume in (b or {}).items():
        merged[day] = merged.get(day, 0.0) + volume
    return merged


def collect_clients(buckets: list[SalesBucket]) -> list[ClientPoint]:
    """
    One record per client across all buckets: volume and dated histories are
    summed over every brand the client buys; descriptive fields come from the
    first occurrence. Returns new records.
    """
    merged: dict[str, ClientPoint] = {}
    for b in buckets:
        for c in b.clients:
            current = merged.get(c.key)
            if current is None:
                merged[c.key] = c
                continue
            merged[c.key] = replace(
                current,
                fact=(current.fact or 0) + (c.fact or 0),
                daily_fact=_merge_history(current.daily_fact, c.daily_fact),
                monthly_fact=_merge_history(current.monthly_fact, c.monthly_fact),
            )
    return list(merged.values())


def assign_abc_categories(buckets: list[SalesBucket]) -> list[SalesBucket]:
    """
    Pareto tiers over each client's total volume across buckets:
    A up to 80% of cumulative volume, B up to 95%, C for the rest.
    Returns new buckets with new client records.
    """
    totals: dict[str, float] = {}
    for b in buckets:
        for c in b.clients:
            totals[c.key] = totals.get(c.key, 0.0) + (c.fact or 0)

    grand_total = sum(totals.values())
    tiers: dict[str, str] = {}
    running = 0.0
    for key, fact in sorted(totals.items(), key=lambda kv: (-kv[1], kv[0])):
        running += fact
        pct = running / grand_total * 100 if grand_total > 0 else 100
        tiers[key] = "A" if pct <= 80 else "B" if pct <= 95 else "C"

    return [
        replace(b, clients=[replace(c, abc_category=tiers[c.key]) for c in b.clients])
        for b in buckets
    ]


def okb_counts_from_frame(df: pd.DataFrame) -> dict[str, int]:
    """Registry size per region from an OKB table with a Region column."""
    df = _normalize_columns(df)
    region_col = _get_col(df, "Region")
    counts = df[region_col].map(_text).value_counts()
    return {str(r): int(n) for r, n in counts.items() if r}
