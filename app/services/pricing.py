"""
Invoice line pricing.

Pure functions, no database access. All amounts are integers in kobo.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.models.feature import Feature, PricingType
from app.schemas.invoice import InvoiceLineCreate


@dataclass(frozen=True)
class PricedLine:
    """A selection with catalog defaults filled in and its total computed."""

    feature_id: UUID
    description: str
    quantity: int
    unit_price: int
    unit_measurement: PricingType
    negotiated_price: int | None
    start_date: date | None
    end_date: date | None
    total: int


def effective_price(unit_price: int, negotiated_price: int | None) -> int:
    """Negotiated price wins over the unit price when present."""
    if negotiated_price is not None:
        return negotiated_price
    return unit_price


def line_total(unit_price: int, quantity: int, negotiated_price: int | None = None) -> int:
    return effective_price(unit_price, negotiated_price) * quantity


def subtotal(lines: Iterable[PricedLine]) -> int:
    return sum(line.total for line in lines)


def final_amount(computed_subtotal: int, custom_amount: int | None) -> int:
    """A custom amount replaces the subtotal, it is never added to it."""
    if custom_amount is not None:
        return custom_amount
    return computed_subtotal


def _line_errors(
    index: int,
    selection: InvoiceLineCreate,
    feature: Feature,
    unit_price: int,
) -> list[dict[str, str]]:
    prefix = f"lines[{index}]"
    errors = []

    if selection.quantity < 1:
        errors.append({"field": f"{prefix}.quantity", "message": "Quantity must be at least 1"})
    if unit_price < 0:
        errors.append({"field": f"{prefix}.unit_price", "message": "Unit price cannot be negative"})
    if selection.negotiated_price is not None and selection.negotiated_price < 0:
        errors.append(
            {"field": f"{prefix}.negotiated_price", "message": "Negotiated price cannot be negative"}
        )

    if feature.requires_date_range:
        if selection.start_date is None:
            errors.append(
                {"field": f"{prefix}.start_date", "message": f"{feature.name} requires a start date"}
            )
        if selection.end_date is None:
            errors.append(
                {"field": f"{prefix}.end_date", "message": f"{feature.name} requires an end date"}
            )

    if (
        selection.start_date is not None
        and selection.end_date is not None
        and selection.start_date > selection.end_date
    ):
        errors.append(
            {"field": f"{prefix}.end_date", "message": "End date must be on or after start date"}
        )

    return errors


def price_lines(
    selections: Sequence[InvoiceLineCreate],
    features_by_id: Mapping[UUID, Feature],
) -> list[PricedLine]:
    """
    Turn feature selections into priced lines.

    Unit price, unit measurement and description default to the catalog
    values. Every problem across every line is collected and reported in a
    single ValidationError.
    """
    if not selections:
        raise ValidationError(
            "At least one feature must be selected",
            errors=[{"field": "lines", "message": "At least one feature must be selected"}],
        )

    errors: list[dict[str, str]] = []
    priced: list[PricedLine] = []

    for index, selection in enumerate(selections):
        feature = features_by_id.get(selection.feature_id)
        if feature is None:
            errors.append(
                {"field": f"lines[{index}].feature_id", "message": "Feature not found"}
            )
            continue

        unit_price = selection.unit_price if selection.unit_price is not None else feature.price
        line_errors = _line_errors(index, selection, feature, unit_price)
        if line_errors:
            errors.extend(line_errors)
            continue

        priced.append(
            PricedLine(
                feature_id=feature.id,
                description=selection.description or feature.name,
                quantity=selection.quantity,
                unit_price=unit_price,
                unit_measurement=PricingType(
                    selection.unit_measurement or feature.pricing_type
                ),
                negotiated_price=selection.negotiated_price,
                start_date=selection.start_date,
                end_date=selection.end_date,
                total=line_total(unit_price, selection.quantity, selection.negotiated_price),
            )
        )

    if errors:
        raise ValidationError("Invalid invoice lines", errors=errors)

    return priced


def format_amount(minor_units: int, currency_symbol: str | None = None) -> str:
    """Render kobo as e.g. ``₦1,234.50``."""
    symbol = settings.CURRENCY_SYMBOL if currency_symbol is None else currency_symbol
    sign = "-" if minor_units < 0 else ""
    major, minor = divmod(abs(minor_units), 100)
    return f"{sign}{symbol}{major:,}.{minor:02d}"
