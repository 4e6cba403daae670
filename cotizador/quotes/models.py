# cotizador/quotes/models.py
"""In-memory quotation being edited on the form."""

import uuid
from dataclasses import dataclass, field
from datetime import date as _date
from typing import Dict, List, Optional

from cotizador.quotes.numbers import parse_number, to_input_text

ITEM_FIELDS = ('description', 'quantity', 'unit_price')


def _new_id() -> str:
    return uuid.uuid4().hex


def _text(value) -> str:
    return '' if value is None else str(value)


class LineItem:
    """One row of the quotation detail table.

    ``quantity`` and ``unit_price`` keep the text the user typed; the parsed
    values are cached in ``quantity_value`` / ``unit_price_value`` and are
    refreshed whenever the text is assigned.
    """

    def __init__(self, id: Optional[str] = None, description: str = '',
                 quantity: str = '1', unit_price: str = '0') -> None:
        self.id = id or _new_id()
        self.description = description
        self.quantity = quantity
        self.unit_price = unit_price

    @property
    def description(self) -> str:
        return self._description

    @description.setter
    def description(self, value) -> None:
        self._description = _text(value)

    @property
    def quantity(self) -> str:
        return self._quantity

    @quantity.setter
    def quantity(self, value) -> None:
        self._quantity = to_input_text(value)
        self.quantity_value = parse_number(self._quantity)

    @property
    def unit_price(self) -> str:
        return self._unit_price

    @unit_price.setter
    def unit_price(self, value) -> None:
        self._unit_price = to_input_text(value)
        self.unit_price_value = parse_number(self._unit_price)

    @property
    def line_total(self) -> float:
        return self.quantity_value * self.unit_price_value

    def to_dict(self) -> Dict[str, str]:
        return {
            'id'          : self.id,
            'description' : self.description,
            'quantity'    : self.quantity,
            'unit_price'  : self.unit_price,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'LineItem':
        return cls(
            id          = str(data.get('id') or '') or None,
            description = data.get('description') or '',
            quantity    = data.get('quantity', '1'),
            unit_price  = data.get('unit_price', '0'),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, LineItem):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None  # mutable rows compare by value

    def __repr__(self) -> str:
        return (f"LineItem(id={self.id!r}, description={self.description!r}, "
                f"quantity={self.quantity!r}, unit_price={self.unit_price!r})")


@dataclass(frozen=True)
class TotalsRow:
    id: str
    description: str
    quantity: float
    unit_price: float
    total: float


@dataclass(frozen=True)
class Totals:
    rows: List[TotalsRow] = field(default_factory=list)
    subtotal: float = 0.0
    tax: float = 0.0
    total: float = 0.0

    def as_dict(self) -> dict:
        return {
            'rows': [
                {
                    'id'          : r.id,
                    'description' : r.description,
                    'quantity'    : r.quantity,
                    'unit_price'  : r.unit_price,
                    'total'       : r.total,
                }
                for r in self.rows
            ],
            'subtotal' : self.subtotal,
            'tax'      : self.tax,
            'total'    : self.total,
        }


class QuoteModel:
    """Form state: date, reference, VAT percentage and the ordered items."""

    def __init__(self, date: Optional[str] = None, reference: str = '',
                 tax_percent: str = '0', items: Optional[List[LineItem]] = None) -> None:
        self.date = _date.today().isoformat() if date is None else date
        self.reference = reference
        self.tax_percent = tax_percent
        self.items = list(items) if items is not None else [LineItem()]

    @property
    def date(self) -> str:
        return self._date

    @date.setter
    def date(self, value) -> None:
        self._date = _text(value)

    @property
    def reference(self) -> str:
        return self._reference

    @reference.setter
    def reference(self, value) -> None:
        self._reference = _text(value)

    @property
    def tax_percent(self) -> str:
        return self._tax_percent

    @tax_percent.setter
    def tax_percent(self, value) -> None:
        self._tax_percent = to_input_text(value)
        self.tax_percent_value = parse_number(self._tax_percent)

    # -- field edits -------------------------------------------------------

    def set_date(self, value: str) -> None:
        self.date = _text(value).strip()

    def set_reference(self, value: str) -> None:
        self.reference = _text(value)

    def set_tax_percent(self, value) -> None:
        self.tax_percent = value

    # -- item operations ---------------------------------------------------

    def find_item(self, item_id: str) -> Optional[LineItem]:
        return next((it for it in self.items if it.id == item_id), None)

    def add_item(self) -> LineItem:
        item = LineItem()
        self.items.append(item)
        return item

    def remove_item(self, item_id: str) -> None:
        self.items = [it for it in self.items if it.id != item_id]

    def update_item(self, item_id: str, field_name: str, value) -> None:
        if field_name not in ITEM_FIELDS:
            raise ValueError(f"Unknown item field: {field_name}")
        item = self.find_item(item_id)
        if item is None:
            return
        setattr(item, field_name, value)

    # -- derived values ----------------------------------------------------

    def compute_totals(self) -> Totals:
        rows = [
            TotalsRow(
                id          = it.id,
                description = it.description,
                quantity    = it.quantity_value,
                unit_price  = it.unit_price_value,
                total       = it.line_total,
            )
            for it in self.items
        ]
        subtotal = sum(r.total for r in rows)
        tax = subtotal * (self.tax_percent_value / 100)
        return Totals(rows=rows, subtotal=subtotal, tax=tax, total=subtotal + tax)

    # -- snapshots ---------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            'date'        : self.date,
            'reference'   : self.reference,
            'tax_percent' : self.tax_percent,
            'items'       : [it.to_dict() for it in self.items],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'QuoteModel':
        """Build a model from a stored snapshot.

        A snapshot without items yields the single blank row a new quote
        starts with, so the form never shows an empty table.
        """
        items = [LineItem.from_dict(it) for it in (data.get('items') or [])]
        tax = data.get('tax_percent')
        return cls(
            date        = str(data.get('date') or '')[:10],
            reference   = data.get('reference'),
            tax_percent = '0' if tax is None or tax == '' else tax,
            items       = items or [LineItem()],
        )

    def snapshot(self) -> 'QuoteModel':
        """Independent copy with the same item ids, for export and save."""
        return QuoteModel(
            date        = self.date,
            reference   = self.reference,
            tax_percent = self.tax_percent,
            items       = [LineItem(it.id, it.description, it.quantity, it.unit_price)
                           for it in self.items],
        )

    def replace_with(self, other: 'QuoteModel') -> None:
        """Overwrite this model in place with the contents of ``other``."""
        self.date = other.date
        self.reference = other.reference
        self.tax_percent = other.tax_percent
        self.items = list(other.items)

    def reset(self) -> None:
        self.replace_with(QuoteModel())
