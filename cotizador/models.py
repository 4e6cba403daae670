from cotizador import db


class KeyValue(db.Model):
    """Flat string key/value pairs holding serialized saved quotes."""
    __tablename__ = 'kv_store'
    key   = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=False)
