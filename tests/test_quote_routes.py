import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from cotizador import create_app, db
from cotizador.errors import PersistenceError
from cotizador.quotes import export as export_mod
from cotizador.quotes.models import LineItem, QuoteModel


def setup_app(tmp_path, **config):
    app = create_app('testing')
    app.config.update(EXPORT_DIR=str(tmp_path / 'exports'), **config)
    app.extensions['cotizador'].exporter.export_dir = tmp_path / 'exports'
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


def state(app):
    return app.extensions['cotizador']


def fill_valid(app):
    state(app).model.replace_with(QuoteModel(
        date='2024-01-01',
        reference='Proyecto A',
        tax_percent='19',
        items=[LineItem(description='Tornillos', quantity='10', unit_price='1000')],
    ))


def fake_pdfkit(monkeypatch):
    def fake_from_string(html, path, configuration=None, options=None):
        with open(path, 'wb') as fh:
            fh.write(b'%PDF-1.4 ' + html.encode('utf-8'))
        return True

    monkeypatch.setattr(export_mod.shutil, 'which', lambda name: '/usr/bin/wkhtmltopdf')
    monkeypatch.setattr(export_mod.pdfkit, 'configuration', lambda **kw: kw)
    monkeypatch.setattr(export_mod.pdfkit, 'from_string', fake_from_string)


def form_for(model, action='recalc'):
    data = {
        'date': model.date,
        'reference': model.reference,
        'tax_percent': model.tax_percent,
        'item_id': [it.id for it in model.items],
        'action': action,
    }
    for it in model.items:
        data[f'description-{it.id}'] = it.description
        data[f'quantity-{it.id}'] = it.quantity
        data[f'unit_price-{it.id}'] = it.unit_price
    return data


def test_root_redirects_to_form(tmp_path):
    app = setup_app(tmp_path)
    client = app.test_client()
    res = client.get('/')
    assert res.status_code == 302
    assert res.headers['Location'].endswith('/quotes/')
    page = client.get('/quotes/')
    assert page.status_code == 200
    assert 'Cotización' in page.get_data(as_text=True)


def test_form_submit_updates_model_and_totals(tmp_path):
    app = setup_app(tmp_path)
    client = app.test_client()
    model = state(app).model
    item_id = model.items[0].id
    data = form_for(model)
    data.update({
        'reference': 'Proyecto A',
        'tax_percent': '19',
        f'description-{item_id}': 'Tornillos',
        f'quantity-{item_id}': '10',
        f'unit_price-{item_id}': '1.000',
    })
    res = client.post('/quotes/', data=data, follow_redirects=True)
    html = res.get_data(as_text=True)
    assert '$11.900' in html
    totals = client.get('/quotes/totals').get_json()
    assert totals['subtotal'] == 10000
    assert totals['formatted'] == {'subtotal': '$10.000', 'tax': '$1.900', 'total': '$11.900'}


def test_add_and_remove_rows_via_form(tmp_path):
    app = setup_app(tmp_path)
    client = app.test_client()
    model = state(app).model
    client.post('/quotes/', data=form_for(model, 'add'))
    assert len(model.items) == 2
    first, second = model.items
    client.post('/quotes/', data=form_for(model, f'remove:{first.id}'))
    assert model.items == [second]


def test_json_item_operations(tmp_path):
    app = setup_app(tmp_path)
    client = app.test_client()
    added = client.post('/quotes/add-item').get_json()['item']
    assert added['quantity'] == '1' and added['unit_price'] == '0'
    res = client.post(f"/quotes/update-item/{added['id']}",
                      json={'quantity': '3', 'unit_price': '2.500'})
    assert res.get_json()['line_total'] == 7500
    assert client.post('/quotes/update-item/missing', json={'quantity': '1'}).status_code == 404
    client.post(f"/quotes/remove-item/{added['id']}")
    assert added['id'] not in [it.id for it in state(app).model.items]
    res = client.post('/quotes/fields', json={'reference': 'Obra', 'tax_percent': '5'})
    assert res.get_json()['quote']['reference'] == 'Obra'
    assert state(app).model.tax_percent_value == 5


def test_export_downloads_pdf(monkeypatch, tmp_path):
    fake_pdfkit(monkeypatch)
    app = setup_app(tmp_path)
    fill_valid(app)
    client = app.test_client()
    res = client.post('/quotes/', data=form_for(state(app).model, 'export'))
    assert res.status_code == 200
    assert res.mimetype == 'application/pdf'
    assert 'attachment' in res.headers['Content-Disposition']
    body = res.get_data()
    assert body.startswith(b'%PDF')
    assert '$11.900'.encode() in body
    res.close()


def test_export_without_share_reports_location(monkeypatch, tmp_path):
    fake_pdfkit(monkeypatch)
    app = setup_app(tmp_path, SHARE_PDF=False)
    fill_valid(app)
    client = app.test_client()
    res = client.post('/quotes/', data=form_for(state(app).model, 'export'), follow_redirects=True)
    html = res.get_data(as_text=True)
    assert 'PDF generado' in html
    assert 'Guardado en:' in html
    assert len(list((tmp_path / 'exports').glob('*.pdf'))) == 1


def test_export_failure_is_reported(monkeypatch, tmp_path):
    fake_pdfkit(monkeypatch)

    def broken(*args, **kwargs):
        raise OSError('sin espacio')

    monkeypatch.setattr(export_mod.pdfkit, 'from_string', broken)
    app = setup_app(tmp_path)
    fill_valid(app)
    client = app.test_client()
    res = client.post('/quotes/', data=form_for(state(app).model, 'export'), follow_redirects=True)
    html = res.get_data(as_text=True)
    assert 'Error al generar PDF' in html
    assert 'sin espacio' in html
    assert not state(app).guard.busy


def test_deleting_only_item_blocks_export_and_save(monkeypatch, tmp_path):
    fake_pdfkit(monkeypatch)
    app = setup_app(tmp_path)
    fill_valid(app)
    client = app.test_client()
    model = state(app).model
    client.post('/quotes/', data=form_for(model, f'remove:{model.items[0].id}'))
    assert model.items == []
    for action in ('export', 'save'):
        res = client.post('/quotes/', data=form_for(model, action), follow_redirects=True)
        assert res.status_code == 200
        assert 'Agrega al menos un ítem' in res.get_data(as_text=True)
    res = client.post('/quotes/save')
    assert res.status_code == 400
    assert res.get_json()['rule'] == 'items_required'
    with app.app_context():
        assert state(app).store.list_all() == []


def test_save_list_and_load(tmp_path):
    app = setup_app(tmp_path)
    fill_valid(app)
    client = app.test_client()
    res = client.post('/quotes/', data=form_for(state(app).model, 'save'), follow_redirects=True)
    assert 'La cotización fue guardada localmente.' in res.get_data(as_text=True)
    saved = client.get('/quotes/saved').get_json()['quotes']
    assert len(saved) == 1 and saved[0]['reference'] == 'Proyecto A'

    state(app).model.reset()
    assert state(app).model.reference == ''
    res = client.post(f"/quotes/saved/{saved[0]['key']}/load", follow_redirects=True)
    assert 'Se cargó la cotización seleccionada.' in res.get_data(as_text=True)
    model = state(app).model
    assert model.reference == 'Proyecto A'
    assert model.items[0].description == 'Tornillos'
    assert model.compute_totals().subtotal == 10000


def test_load_unknown_key(tmp_path):
    app = setup_app(tmp_path)
    client = app.test_client()
    before = state(app).model.to_dict()
    res = client.post('/quotes/saved/quote_1/load', follow_redirects=True)
    assert 'La cotización no existe.' in res.get_data(as_text=True)
    assert state(app).model.to_dict() == before


def test_save_failure_leaves_model_unchanged(monkeypatch, tmp_path):
    app = setup_app(tmp_path)
    fill_valid(app)
    before = state(app).model.to_dict()

    def broken(model):
        raise PersistenceError('disk full')

    monkeypatch.setattr(state(app).store, 'save', broken)
    client = app.test_client()
    res = client.post('/quotes/', data=form_for(state(app).model, 'save'), follow_redirects=True)
    assert 'No se pudo guardar.' in res.get_data(as_text=True)
    assert state(app).model.to_dict() == before
    assert client.post('/quotes/save').status_code == 500
    assert not state(app).guard.busy


def test_list_failure_degrades_to_empty(monkeypatch, tmp_path):
    app = setup_app(tmp_path)

    def broken():
        raise PersistenceError('locked')

    monkeypatch.setattr(state(app).store, 'list_all', broken)
    client = app.test_client()
    assert client.get('/quotes/saved').get_json() == {'quotes': []}
    res = client.get('/quotes/')
    assert res.status_code == 200
    assert 'Cotizaciones guardadas' not in res.get_data(as_text=True)


def test_busy_guard_rejects_overlapping_save(tmp_path):
    app = setup_app(tmp_path)
    fill_valid(app)
    client = app.test_client()
    with state(app).guard.hold('export'):
        res = client.post('/quotes/save')
        assert res.status_code == 409
    assert client.post('/quotes/save').status_code == 200


def test_document_preview(tmp_path):
    app = setup_app(tmp_path)
    client = app.test_client()
    res = client.get('/quotes/document')
    assert res.status_code == 400
    assert res.get_json()['rule'] == 'reference_required'
    fill_valid(app)
    res = client.get('/quotes/document')
    html = res.get_data(as_text=True)
    assert res.status_code == 200
    assert 'NIT. N.° 900-421730-1' in html
    assert 'data:image/png;base64,' in html
    assert '$11.900' in html


def test_unknown_page_renders_404(tmp_path):
    app = setup_app(tmp_path)
    res = app.test_client().get('/nope')
    assert res.status_code == 404
    assert 'Volver a la cotización' in res.get_data(as_text=True)


def test_numeric_json_values_survive_save_and_load(tmp_path):
    app = setup_app(tmp_path)
    client = app.test_client()
    client.post('/quotes/fields', json={'reference': 'Obra', 'tax_percent': 19})
    item_id = state(app).model.items[0].id
    client.post(f'/quotes/update-item/{item_id}',
                json={'description': 'Cable', 'quantity': 2.5, 'unit_price': 1000})
    assert client.get('/quotes/totals').get_json()['subtotal'] == 2500
    key = client.post('/quotes/save').get_json()['key']
    state(app).model.reset()
    client.post(f'/quotes/saved/{key}/load')
    totals = client.get('/quotes/totals').get_json()
    assert totals['subtotal'] == 2500
    assert totals['formatted']['total'] == '$2.975'


def test_non_text_json_fields_are_validated_not_crashing(tmp_path):
    app = setup_app(tmp_path)
    client = app.test_client()
    item_id = state(app).model.items[0].id
    client.post('/quotes/fields', json={'reference': 123})
    res = client.post('/quotes/save')
    assert res.status_code == 400
    assert res.get_json()['rule'] == 'description_required'
    client.post(f'/quotes/update-item/{item_id}', json={'description': 7, 'quantity': 1})
    res = client.post('/quotes/save')
    assert res.status_code == 200
    assert state(app).model.reference == '123'


def test_busy_export_leaves_form_edits_unapplied(monkeypatch, tmp_path):
    fake_pdfkit(monkeypatch)
    app = setup_app(tmp_path)
    fill_valid(app)
    client = app.test_client()
    data = form_for(state(app).model, 'export')
    data['reference'] = 'Cambio en curso'
    with state(app).guard.hold('save'):
        res = client.post('/quotes/', data=data, follow_redirects=True)
    assert 'Espera' in res.get_data(as_text=True)
    assert state(app).model.reference == 'Proyecto A'
