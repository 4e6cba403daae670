# cotizador/quotes/validation.py
"""Business rules checked before a quote is exported or saved."""

from typing import Optional, Tuple

from cotizador.errors import ValidationError
from cotizador.quotes.models import QuoteModel

MESSAGES = {
    'date_required'        : 'La fecha es obligatoria',
    'reference_required'   : 'La referencia es obligatoria',
    'items_required'       : 'Agrega al menos un ítem',
    'description_required' : 'Cada ítem debe tener descripción',
    'quantity_positive'    : 'La cantidad debe ser mayor que 0',
    'unit_price_negative'  : 'El valor unitario no puede ser negativo',
}


def first_violation(model: QuoteModel) -> Optional[Tuple[str, str]]:
    """Return ``(rule, message)`` for the first failing rule, or ``None``."""
    if not model.date:
        rule = 'date_required'
    elif not model.reference.strip():
        rule = 'reference_required'
    elif not model.items:
        rule = 'items_required'
    else:
        rule = None
        for it in model.items:
            if not it.description.strip():
                rule = 'description_required'
            elif it.quantity_value <= 0:
                rule = 'quantity_positive'
            elif it.unit_price_value < 0:
                rule = 'unit_price_negative'
            if rule:
                break
    if rule is None:
        return None
    return rule, MESSAGES[rule]


def validate(model: QuoteModel) -> Optional[str]:
    """Message of the first violated rule, ``None`` when the quote is valid."""
    violation = first_violation(model)
    return violation[1] if violation else None


def ensure_valid(model: QuoteModel) -> None:
    violation = first_violation(model)
    if violation:
        raise ValidationError(*violation)
