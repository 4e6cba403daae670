# cotizador/quotes/document.py
"""Printable HTML rendition of a quote, handed to the PDF exporter."""

from jinja2 import Environment, PackageLoader

from cotizador.quotes.models import QuoteModel, Totals
from cotizador.quotes.numbers import format_cop, format_percent, format_quantity

DOCUMENT_TEMPLATE = 'quotes/document.html'
DEFAULT_LEGAL_ID = 'NIT. N.° 900-421730-1'

_ENTITIES = (
    ('&', '&amp;'),
    ('<', '&lt;'),
    ('>', '&gt;'),
    ('"', '&quot;'),
    ("'", '&#039;'),
)


def escape_html(value) -> str:
    """Escape ``& < > " '`` in user text before it is placed in markup.

    ``&`` goes first so the entities added afterwards are not escaped again.
    """
    text = '' if value is None else str(value)
    for char, entity in _ENTITIES:
        text = text.replace(char, entity)
    return text


# Autoescape is off: user text is escaped explicitly with the ``esc`` filter.
_env = Environment(
    loader=PackageLoader('cotizador', 'templates'),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters['esc'] = escape_html
_env.filters['cop'] = format_cop
_env.filters['qty'] = format_quantity


def build_context(model: QuoteModel, totals: Totals, *, logo_uri: str = '',
                  footer_uri: str = '', legal_id: str = DEFAULT_LEGAL_ID) -> dict:
    return {
        'date'        : model.date,
        'reference'   : model.reference,
        'tax_label'   : format_percent(model.tax_percent_value),
        'rows'        : totals.rows,
        'subtotal'    : totals.subtotal,
        'tax'         : totals.tax,
        'total'       : totals.total,
        'logo_uri'    : logo_uri or '',
        'footer_uri'  : footer_uri or '',
        'legal_id'    : legal_id,
    }


def render_quote_html(model: QuoteModel, totals: Totals, **branding) -> str:
    """Render the quote document.

    ``totals`` must come from ``model.compute_totals()`` after the last edit.
    ``branding`` accepts ``logo_uri``, ``footer_uri`` (data URIs) and
    ``legal_id``.
    """
    tpl = _env.get_template(DOCUMENT_TEMPLATE)
    return tpl.render(**build_context(model, totals, **branding))
