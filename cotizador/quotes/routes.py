# cotizador/quotes/routes.py

import logging
import os

from flask import (
    Blueprint,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    send_file,
    url_for,
)

from cotizador.errors import BusyError, ExportError, PersistenceError, ValidationError
from cotizador.quotes.document import render_quote_html
from cotizador.quotes.export import PdfExporter, asset_data_uri
from cotizador.quotes.guard import InFlightGuard
from cotizador.quotes.models import ITEM_FIELDS, QuoteModel
from cotizador.quotes.numbers import format_cop, format_percent, format_quantity
from cotizador.quotes.validation import ensure_valid
from cotizador.store import QuoteStore

bp = Blueprint('quotes', __name__)

STATE_KEY = 'cotizador'


class QuoteState:
    """The single in-process quote plus the collaborators acting on it."""

    def __init__(self, model, store, exporter, guard=None):
        self.model    = model
        self.store    = store
        self.exporter = exporter
        self.guard    = guard or InFlightGuard()


def init_quote_state(app):
    app.extensions[STATE_KEY] = QuoteState(
        model    = QuoteModel(),
        store    = QuoteStore(),
        exporter = PdfExporter(app.config['EXPORT_DIR'], app.config.get('WKHTMLTOPDF_PATH')),
    )
    app.jinja_env.filters['cop'] = format_cop
    app.jinja_env.filters['pct'] = format_percent
    app.jinja_env.filters['qty'] = format_quantity


def _state() -> QuoteState:
    return current_app.extensions[STATE_KEY]


def notify(title, message, category='info'):
    flash(f'{title}: {message}', category)


def _saved_list():
    # Listing failures leave the saved section empty; they only reach the log.
    try:
        return _state().store.list_all()
    except PersistenceError as e:
        logging.exception('could not list saved quotes: %s', e)
        return []


def _asset_path(name):
    if not name:
        return None
    if os.path.isabs(name):
        return name
    return os.path.join(current_app.static_folder, name)


def _document_html(model):
    cfg = current_app.config
    return render_quote_html(
        model,
        model.compute_totals(),
        logo_uri   = asset_data_uri(_asset_path(cfg.get('QUOTE_LOGO_PATH'))),
        footer_uri = asset_data_uri(_asset_path(cfg.get('QUOTE_FOOTER_PATH'))),
        legal_id   = cfg.get('QUOTE_LEGAL_ID'),
    )


def _apply_form(model, form):
    """Copy every edited field from the submitted form into the model."""
    if 'date' in form:
        model.set_date(form.get('date'))
    if 'reference' in form:
        model.set_reference(form.get('reference'))
    if 'tax_percent' in form:
        model.set_tax_percent(form.get('tax_percent'))
    for item_id in form.getlist('item_id'):
        for field in ITEM_FIELDS:
            key = f'{field}-{item_id}'
            if key in form:
                model.update_item(item_id, field, form.get(key))


def _export_pdf(state, form=None):
    """Apply pending form edits, validate, render and write the PDF.

    Runs under the in-flight token on a snapshot of the model, so later edits
    cannot change a document that is being rendered.
    """
    with state.guard.hold('export'):
        if form is not None:
            _apply_form(state.model, form)
        model = state.model.snapshot()
        ensure_valid(model)
        html = _document_html(model)
        return state.exporter.export(html, state.exporter.filename_for(model.reference))


def _save_quote(state, form=None):
    with state.guard.hold('save'):
        if form is not None:
            _apply_form(state.model, form)
        model = state.model.snapshot()
        ensure_valid(model)
        return state.store.save(model)


@bp.route('/', methods=['GET'])
def edit_quote():
    state  = _state()
    totals = state.model.compute_totals()
    return render_template(
        'quotes/form.html',
        quote=state.model,
        totals=totals,
        saved=_saved_list(),
        busy=state.guard.busy,
    )


@bp.route('/', methods=['POST'])
def submit_quote():
    """
    Single form submit: apply all edits, then run the requested action.
    action: recalc | add | remove:<item_id> | export | save
    """
    state  = _state()
    model  = state.model
    action = request.form.get('action', 'recalc')
    if action not in ('export', 'save'):
        _apply_form(model, request.form)

    if action == 'add':
        model.add_item()
    elif action.startswith('remove:'):
        model.remove_item(action.split(':', 1)[1])
    elif action == 'export':
        try:
            path = _export_pdf(state, request.form)
        except ValidationError as e:
            notify('Revisa los datos', e.message, 'warning')
        except BusyError as e:
            notify('Espera', str(e), 'warning')
        except ExportError as e:
            notify('Error al generar PDF', str(e) or 'Intenta de nuevo', 'danger')
        else:
            if current_app.config.get('SHARE_PDF'):
                return send_file(
                    path,
                    mimetype='application/pdf',
                    as_attachment=True,
                    download_name=path.name,
                )
            notify('PDF generado', f'Guardado en: {path}', 'success')
    elif action == 'save':
        try:
            _save_quote(state, request.form)
        except ValidationError as e:
            notify('Revisa los datos', e.message, 'warning')
        except BusyError as e:
            notify('Espera', str(e), 'warning')
        except PersistenceError as e:
            logging.exception('save failed: %s', e)
            notify('Error', 'No se pudo guardar.', 'danger')
        else:
            notify('Guardado', 'La cotización fue guardada localmente.', 'success')

    return redirect(url_for('quotes.edit_quote'))


@bp.route('/totals')
def quote_totals():
    state  = _state()
    totals = state.model.compute_totals()
    data   = totals.as_dict()
    data.update(
        tax_percent=state.model.tax_percent_value,
        formatted={
            'subtotal' : format_cop(totals.subtotal),
            'tax'      : format_cop(totals.tax),
            'total'    : format_cop(totals.total),
        },
    )
    return jsonify(data)


@bp.route('/fields', methods=['POST'])
def update_fields():
    data  = request.get_json() or {}
    model = _state().model
    if 'date' in data:
        model.set_date(data['date'])
    if 'reference' in data:
        model.set_reference(data['reference'])
    if 'tax_percent' in data:
        model.set_tax_percent(data['tax_percent'])
    return jsonify(success=True, quote=model.to_dict())


@bp.route('/add-item', methods=['POST'])
def add_item():
    item = _state().model.add_item()
    return jsonify(success=True, item=item.to_dict())


@bp.route('/update-item/<item_id>', methods=['POST'])
def update_item(item_id):
    data  = request.get_json() or {}
    model = _state().model
    if model.find_item(item_id) is None:
        return jsonify(error='Not found'), 404
    for field in ITEM_FIELDS:
        if field in data:
            model.update_item(item_id, field, data[field])
    item = model.find_item(item_id)
    return jsonify(success=True, item=item.to_dict(), line_total=item.line_total)


@bp.route('/remove-item/<item_id>', methods=['POST'])
def remove_item(item_id):
    _state().model.remove_item(item_id)
    return jsonify(success=True)


@bp.route('/save', methods=['POST'])
def save_quote():
    """JSON save: 400 invalid, 409 busy, 500 store failure."""
    try:
        saved = _save_quote(_state())
    except ValidationError as e:
        return jsonify(error=e.message, rule=e.rule), 400
    except BusyError as e:
        return jsonify(error=str(e)), 409
    except PersistenceError as e:
        logging.exception('save failed: %s', e)
        return jsonify(error='No se pudo guardar.'), 500
    return jsonify(success=True, key=saved.key, created_at=saved.created_at)


@bp.route('/saved')
def list_saved():
    return jsonify(quotes=[
        {
            'key'        : q.key,
            'date'       : q.date,
            'reference'  : q.reference,
            'created_at' : q.created_at,
        }
        for q in _saved_list()
    ])


@bp.route('/saved/<key>/load', methods=['POST'])
def load_saved(key):
    state = _state()
    try:
        saved = state.store.load_one(key)
    except KeyError:
        notify('Error', 'La cotización no existe.', 'danger')
    except PersistenceError as e:
        logging.exception('load failed: %s', e)
        notify('Error', 'No se pudo cargar la cotización.', 'danger')
    else:
        state.model.replace_with(saved.to_model())
        notify('Cargado', 'Se cargó la cotización seleccionada.', 'success')
    return redirect(url_for('quotes.edit_quote'))


@bp.route('/document')
def preview_document():
    """HTML preview of the document that the PDF export renders."""
    model = _state().model
    try:
        ensure_valid(model)
    except ValidationError as e:
        return jsonify(error=e.message, rule=e.rule), 400
    return _document_html(model), 200, {'Content-Type': 'text/html; charset=utf-8'}
