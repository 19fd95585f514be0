"""Form layouts and value parsing behind the terminal key actions."""

from __future__ import annotations

from typing import Any, Optional

from portfolio_tracker.exceptions import ValidationError
from portfolio_tracker.models import ManagePositionModel, PositionCard
from portfolio_tracker.positions import SORT_OPTIONS
from portfolio_tracker.tui.forms import FormField

LOT_PREFIX = "lot-"

PREFERENCE_FIELDS = (
    ("take_profit_percent", "Take profit %"),
    ("stop_loss_percent", "Stop loss %"),
    ("notification_cooldown", "Notification cooldown (min)"),
    ("market_hours_interval", "Market hours refresh (min)"),
    ("after_hours_interval", "After hours refresh (min)"),
    ("default_view", "Default view"),
    ("family_name", "Family name"),
    ("theme", "Theme"),
)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        return f"{value:g}"
    return str(value)


def _or_none(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def optional_number(value: str, label: str) -> Optional[float]:
    """Blank means no value; anything else must parse as a number."""
    if value in (None, ""):
        return None
    try:
        return float(value)
    except ValueError:
        raise ValidationError(f"{label} must be a number.")


# -- dashboard -----------------------------------------------------------------


def sell_fields(card: PositionCard, today: str) -> list[FormField]:
    """Price, date and one quantity field per open lot of the position.

    A single lot is prefilled with its full remaining quantity.
    """
    fields = [FormField("price", "Price"), FormField("transaction_date", "Date", today)]
    single = card.is_single_lot
    for lot in card.lots:
        remaining = float(lot.get("quantity_remaining") or 0)
        fields.append(
            FormField(
                f"{LOT_PREFIX}{lot['id']}",
                f"Lot {lot['id']}: {lot.get('purchase_date', '')} @ {_text(lot.get('cost_basis'))} ({remaining:g} left)",
                f"{remaining:g}" if single else "",
                placeholder="quantity to sell",
            )
        )
    return fields


def chosen_lots(values: dict[str, str]) -> dict[str, float]:
    """Lot id to quantity for every lot field that was filled in."""
    chosen: dict[str, float] = {}
    for key, value in values.items():
        if not key.startswith(LOT_PREFIX) or not value:
            continue
        lot_id = key[len(LOT_PREFIX):]
        try:
            chosen[lot_id] = float(value)
        except ValueError:
            raise ValidationError(f"Quantity for lot {lot_id} must be a number.")
    if not chosen:
        raise ValidationError("Select at least one lot to sell from.")
    return chosen


def limit_fields(lot: dict) -> list[FormField]:
    return [
        FormField("lot_id", "Lot", str(lot.get("id", ""))),
        FormField("limit_up", "Take profit", _text(lot.get("limit_price_up"))),
        FormField("limit_up_expiration", "Take profit expires", _text(lot.get("limit_up_expiration"))),
        FormField("limit_down", "Stop loss", _text(lot.get("limit_price_down"))),
        FormField("limit_down_expiration", "Stop loss expires", _text(lot.get("limit_down_expiration"))),
    ]


def sort_field(current: str) -> FormField:
    return FormField("sort", "Sort", current, placeholder=" / ".join(SORT_OPTIONS))


# -- ledger --------------------------------------------------------------------


def edit_fields(transaction: dict, editable: tuple[str, ...]) -> list[FormField]:
    return [FormField(name, name.replace("_", " ").capitalize(), _text(transaction.get(name))) for name in editable]


def changed_values(original: dict, values: dict[str, str]) -> dict[str, str]:
    """Only the fields whose text differs from what the row shows."""
    return {key: value for key, value in values.items() if value != _text(original.get(key))}


# -- ideas and sources ---------------------------------------------------------


def idea_order(item: dict) -> dict[str, Any]:
    """Arguments for turning a trade idea row into an order prefill."""
    return {
        "source_id": item.get("advice_source_id") or item.get("source_id"),
        "ticker": item.get("ticker") or "",
        "entry_price": str(item.get("rec_entry_high") or item.get("rec_entry_low") or ""),
        "tp1": _or_none(item.get("rec_tp1")),
        "tp2": _or_none(item.get("rec_tp2")),
        "sl": _or_none(item.get("rec_stop_loss")),
        "journal_id": _or_none(item.get("journal_entry_id")),
    }


def technique_order(entry: dict) -> dict[str, Any]:
    """Same as ``idea_order`` for a journal row listed under a source."""
    return {
        "source_id": entry.get("advice_source_id") or entry.get("source_id"),
        "ticker": entry.get("ticker") or "",
        "entry_price": _text(entry.get("entry_price")),
        "tp1": _or_none(entry.get("target_price")),
        "tp2": _or_none(entry.get("target_price_2")),
        "sl": _or_none(entry.get("stop_loss_price")),
        "journal_id": _or_none(entry.get("id")),
    }


def idea_fields(ticker: str = "", source: str = "", technique: Optional[dict] = None) -> list[FormField]:
    """Trade idea form; a technique row seeds the guidelines."""
    technique = technique or {}
    entry = _text(technique.get("entry_price")) if technique.get("entry_price") else ""
    return [
        FormField("ticker", "Ticker", ticker),
        FormField("source", "Source (name or id)", source),
        FormField("rec_entry_low", "Entry low", entry),
        FormField("rec_entry_high", "Entry high"),
        FormField("rec_tp1", "Take profit 1", _text(technique.get("target_price"))),
        FormField("rec_tp2", "Take profit 2", _text(technique.get("target_price_2"))),
        FormField("rec_stop_loss", "Stop loss", _text(technique.get("stop_loss_price"))),
    ]


def resolve_source(value: str, sources: list[dict]) -> Optional[str]:
    """Match a typed source by id or by name, ignoring case."""
    value = (value or "").strip()
    if not value:
        return None
    for source in sources:
        if str(source.get("id")) == value or str(source.get("name", "")).lower() == value.lower():
            return str(source.get("id"))
    return None


def paper_trade_fields(today: str) -> list[FormField]:
    return [
        FormField("ticker", "Ticker"),
        FormField("exchange", "Exchange"),
        FormField("direction", "Direction", "BUY"),
        FormField("quantity", "Quantity"),
        FormField("entry_price", "Entry price"),
        FormField("target_price", "Target 1"),
        FormField("target_price_2", "Target 2"),
        FormField("stop_loss_price", "Stop loss"),
        FormField("entry_date", "Date", today),
        FormField("source", "Source (name or id)"),
        FormField("entry_reason", "Reason"),
        FormField("notes", "Notes"),
    ]


# -- settings ------------------------------------------------------------------


def preference_fields(settings: dict) -> list[FormField]:
    return [FormField(key, label, _text(settings.get(key))) for key, label in PREFERENCE_FIELDS]


def position_rows(model: ManagePositionModel) -> tuple[list[str], list[tuple]]:
    """One row per lot followed by the sales logged against it."""
    columns = ["Lot", "Date", "Qty", "Price", "Remaining", "Realized P/L"]
    rows: list[tuple] = []
    for lot in model.lots:
        rows.append(
            (
                str(lot.get("id", "")),
                lot.get("purchase_date", "") or "",
                _text(lot.get("quantity")),
                _text(lot.get("cost_basis")),
                _text(lot.get("quantity_remaining")),
                "",
            )
        )
        for sale in model.sales_by_lot.get(lot.get("id")) or []:
            rows.append(
                (
                    "  sale",
                    sale.get("transaction_date", "") or "",
                    _text(sale.get("quantity")),
                    _text(sale.get("price")),
                    "",
                    _text(sale.get("realized_pl")),
                )
            )
    return columns, rows
