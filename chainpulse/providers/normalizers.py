"""Pure normalizers mapping each provider's payload to canonical records; no I/O.

Each provider's schema is branched on exactly once, here. Callers only ever
see :class:`~chainpulse.models.Asset` and friends.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from ..errors import MalformedPayload
from ..metadata import StaticTables
from ..models import (
    Asset,
    AssetDetail,
    PricePoint,
    make_asset,
    non_negative,
    to_float,
)

CRYPTOCOMPARE_IMAGE_HOST = "https://www.cryptocompare.com"


def dedupe_assets(assets: Iterable[Asset]) -> list[Asset]:
    """Keep the first asset seen for each id, preserving provider order."""
    seen: set[str] = set()
    unique: list[Asset] = []
    for asset in assets:
        if asset.id in seen:
            continue
        seen.add(asset.id)
        unique.append(asset)
    return unique


def _with_tables(symbol: str, tables: StaticTables) -> dict[str, Any]:
    return {
        "category": tables.category_for(symbol),
        "ecosystems": tables.ecosystems_for(symbol),
    }


def _require_list(provider: str, value: Any, what: str) -> list[Any]:
    if not isinstance(value, list):
        raise MalformedPayload(provider, f"expected a list of {what}")
    return value


# ---------------------------------------------------------------------------
# CryptoCompare: no 7d change, no sparkline
# ---------------------------------------------------------------------------


def _cryptocompare_raw(entry: dict[str, Any]) -> dict[str, Any]:
    """The RAW block holds one quote currency per request; take it."""
    raw = entry.get("RAW") or {}
    if not isinstance(raw, dict) or not raw:
        return {}
    return next(iter(raw.values())) or {}


def normalize_cryptocompare(payload: Any, tables: StaticTables) -> list[Asset]:
    """Normalize a ``/top/mktcapfull`` response."""
    if not isinstance(payload, dict):
        raise MalformedPayload("cryptocompare", "expected a JSON object")
    if payload.get("Response") == "Error":
        raise MalformedPayload(
            "cryptocompare", payload.get("Message", "error response")
        )
    entries = _require_list("cryptocompare", payload.get("Data"), "coins")

    assets: list[Asset] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        info = entry.get("CoinInfo") or {}
        symbol = info.get("Name") or ""
        if not symbol:
            continue
        raw = _cryptocompare_raw(entry)
        image = info.get("ImageUrl")
        assets.append(
            make_asset(
                symbol,
                name=info.get("FullName", ""),
                image_ref=f"{CRYPTOCOMPARE_IMAGE_HOST}{image}" if image else "",
                price=raw.get("PRICE"),
                market_cap=raw.get("MKTCAP"),
                volume_24h=raw.get("TOTALVOLUME24H"),
                change_1h=raw.get("CHANGEPCTHOUR"),
                change_24h=raw.get("CHANGEPCT24HOUR"),
                **_with_tables(symbol, tables),
            )
        )
    return assets


def normalize_cryptocompare_detail(
    symbol: str, price_payload: Any, info_payload: Any
) -> AssetDetail:
    """Normalize ``/pricemultifull`` + ``/coin/generalinfo`` for one symbol."""
    if not isinstance(price_payload, dict):
        raise MalformedPayload("cryptocompare", "expected a JSON object")
    quotes = (price_payload.get("RAW") or {}).get(symbol.upper())
    if not isinstance(quotes, dict) or not quotes:
        raise MalformedPayload("cryptocompare", f"no quote for {symbol}")
    raw = next(iter(quotes.values())) or {}

    info: dict[str, Any] = {}
    if isinstance(info_payload, dict):
        data = info_payload.get("Data") or []
        if isinstance(data, list) and data:
            info = data[0].get("CoinInfo") or {}

    price = non_negative(raw.get("PRICE"))
    supply = non_negative(raw.get("SUPPLY"))
    image = raw.get("IMAGEURL") or info.get("ImageUrl")
    return AssetDetail(
        id=symbol.lower(),
        symbol=symbol.lower(),
        name=info.get("FullName") or symbol.upper(),
        image_ref=f"{CRYPTOCOMPARE_IMAGE_HOST}{image}" if image else "",
        price=price,
        market_cap=non_negative(raw.get("MKTCAP")),
        volume_24h=non_negative(raw.get("TOTALVOLUME24H")),
        change_24h=to_float(raw.get("CHANGEPCT24HOUR")),
        circulating_supply=supply or None,
        total_supply=supply or None,
        fdv=price * supply if supply else None,
        homepage=info.get("WebsiteUrl") or "",
        whitepaper=info.get("WhitepaperUrl") or "",
        twitter=(info.get("Twitter") or "").lstrip("@"),
    )


def normalize_cryptocompare_history(payload: Any) -> list[PricePoint]:
    """Normalize ``/v2/histohour`` into chronological price points."""
    if not isinstance(payload, dict):
        raise MalformedPayload("cryptocompare", "expected a JSON object")
    if payload.get("Response") == "Error":
        raise MalformedPayload(
            "cryptocompare", payload.get("Message", "error response")
        )
    inner = payload.get("Data") or {}
    rows = _require_list(
        "cryptocompare", inner.get("Data") if isinstance(inner, dict) else None, "candles"
    )
    points = [
        PricePoint(
            timestamp=datetime.fromtimestamp(int(row["time"]), tz=timezone.utc),
            price=non_negative(row.get("close")),
        )
        for row in rows
        if isinstance(row, dict) and "time" in row
    ]
    return sorted(points, key=lambda p: p.timestamp)


# ---------------------------------------------------------------------------
# CoinGecko: every window plus a 7d sparkline
# ---------------------------------------------------------------------------


def normalize_coingecko(payload: Any, tables: StaticTables) -> list[Asset]:
    """Normalize a ``/coins/markets`` response."""
    entries = _require_list("coingecko", payload, "markets")

    assets: list[Asset] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        symbol = entry.get("symbol") or ""
        if not symbol:
            continue
        sparkline = (entry.get("sparkline_in_7d") or {}).get("price") or ()
        assets.append(
            make_asset(
                symbol,
                name=entry.get("name", ""),
                image_ref=entry.get("image", ""),
                price=entry.get("current_price"),
                market_cap=entry.get("market_cap"),
                volume_24h=entry.get("total_volume"),
                change_1h=entry.get("price_change_percentage_1h_in_currency"),
                change_24h=entry.get("price_change_percentage_24h"),
                change_7d=entry.get("price_change_percentage_7d_in_currency"),
                sparkline_7d=sparkline,
                **_with_tables(symbol, tables),
            )
        )
    return assets


def normalize_coingecko_detail(symbol: str, payload: Any) -> AssetDetail:
    """Normalize a single-symbol ``/coins/markets`` response."""
    entries = _require_list("coingecko", payload, "markets")
    if not entries or not isinstance(entries[0], dict):
        raise MalformedPayload("coingecko", f"no market for {symbol}")
    entry = entries[0]
    return AssetDetail(
        id=symbol.lower(),
        symbol=symbol.lower(),
        name=entry.get("name") or symbol.upper(),
        image_ref=entry.get("image") or "",
        price=non_negative(entry.get("current_price")),
        market_cap=non_negative(entry.get("market_cap")),
        volume_24h=non_negative(entry.get("total_volume")),
        change_24h=to_float(entry.get("price_change_percentage_24h")),
        circulating_supply=non_negative(entry.get("circulating_supply")) or None,
        total_supply=non_negative(entry.get("total_supply")) or None,
        fdv=non_negative(entry.get("fully_diluted_valuation")) or None,
    )


def normalize_coingecko_history(payload: Any) -> list[PricePoint]:
    """Normalize ``/coins/{id}/market_chart`` (``prices`` = [[ms, price], ...])."""
    if not isinstance(payload, dict):
        raise MalformedPayload("coingecko", "expected a JSON object")
    rows = _require_list("coingecko", payload.get("prices"), "price pairs")
    points = [
        PricePoint(
            timestamp=datetime.fromtimestamp(row[0] / 1000, tz=timezone.utc),
            price=non_negative(row[1]),
        )
        for row in rows
        if isinstance(row, (list, tuple)) and len(row) >= 2
    ]
    return sorted(points, key=lambda p: p.timestamp)


# ---------------------------------------------------------------------------
# CoinCap: 24h change only, no image, no sparkline
# ---------------------------------------------------------------------------


def normalize_coincap(payload: Any, tables: StaticTables) -> list[Asset]:
    """Normalize a ``/v2/assets`` response (numbers arrive as strings)."""
    if not isinstance(payload, dict):
        raise MalformedPayload("coincap", "expected a JSON object")
    entries = _require_list("coincap", payload.get("data"), "assets")

    assets: list[Asset] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        symbol = entry.get("symbol") or ""
        if not symbol:
            continue
        assets.append(
            make_asset(
                symbol,
                name=entry.get("name", ""),
                price=entry.get("priceUsd"),
                market_cap=entry.get("marketCapUsd"),
                volume_24h=entry.get("volumeUsd24Hr"),
                change_24h=entry.get("changePercent24Hr"),
                **_with_tables(symbol, tables),
            )
        )
    return assets


def normalize_coincap_detail(symbol: str, payload: Any) -> AssetDetail:
    """Normalize a ``/v2/assets?search=`` response for one symbol."""
    if not isinstance(payload, dict):
        raise MalformedPayload("coincap", "expected a JSON object")
    entries = _require_list("coincap", payload.get("data"), "assets")
    match = next(
        (
            e for e in entries
            if isinstance(e, dict) and (e.get("symbol") or "").lower() == symbol.lower()
        ),
        None,
    )
    if match is None:
        raise MalformedPayload("coincap", f"no asset for {symbol}")

    price = non_negative(match.get("priceUsd"))
    supply = non_negative(match.get("supply"))
    max_supply = non_negative(match.get("maxSupply"))
    return AssetDetail(
        id=symbol.lower(),
        symbol=symbol.lower(),
        name=match.get("name") or symbol.upper(),
        price=price,
        market_cap=non_negative(match.get("marketCapUsd")),
        volume_24h=non_negative(match.get("volumeUsd24Hr")),
        change_24h=to_float(match.get("changePercent24Hr")),
        circulating_supply=supply or None,
        total_supply=max_supply or supply or None,
        fdv=price * max_supply if max_supply else None,
        homepage=match.get("explorer") or "",
    )
