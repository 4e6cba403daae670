# cotizador/store.py
"""Local persistence of saved quotes in a flat key/value table."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Tuple

from sqlalchemy.exc import SQLAlchemyError

from cotizador import db
from cotizador.errors import PersistenceError
from cotizador.models import KeyValue
from cotizador.quotes.models import QuoteModel
from cotizador.quotes.numbers import to_input_text

KEY_PREFIX = "quote_"


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class KeyValueStore:
    """String keys to string values, backed by the ``kv_store`` table."""

    def set_item(self, key: str, value: str) -> None:
        try:
            row = db.session.get(KeyValue, key)
            if row is None:
                db.session.add(KeyValue(key=key, value=value))
            else:
                row.value = value
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"write failed for {key}: {e}") from e

    def get_all_keys(self) -> List[str]:
        try:
            return [k for (k,) in db.session.query(KeyValue.key).all()]
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"key listing failed: {e}") from e

    def multi_get(self, keys: Iterable[str]) -> List[Tuple[str, str | None]]:
        keys = list(keys)
        if not keys:
            return []
        try:
            rows = KeyValue.query.filter(KeyValue.key.in_(keys)).all()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"read failed: {e}") from e
        values = {r.key: r.value for r in rows}
        return [(k, values.get(k)) for k in keys]

    def contains(self, key: str) -> bool:
        try:
            return db.session.get(KeyValue, key) is not None
        except SQLAlchemyError as e:
            db.session.rollback()
            raise PersistenceError(f"read failed for {key}: {e}") from e


@dataclass(frozen=True)
class SavedQuote:
    key: str
    date: str
    reference: str
    tax_percent: str
    items: List[dict] = field(default_factory=list)
    created_at: str = ""

    def to_json(self) -> str:
        return json.dumps({
            "key": self.key,
            "date": self.date,
            "reference": self.reference,
            "tax_percent": self.tax_percent,
            "items": self.items,
            "created_at": self.created_at,
        })

    @classmethod
    def from_json(cls, raw: str) -> "SavedQuote":
        data = json.loads(raw)
        return cls(
            key=data.get("key") or "",
            date=data.get("date") or "",
            reference=data.get("reference") or "",
            tax_percent=to_input_text(data.get("tax_percent")) or "0",
            items=list(data.get("items") or []),
            created_at=data.get("created_at") or "",
        )

    def to_model(self) -> QuoteModel:
        return QuoteModel.from_dict({
            "date": self.date,
            "reference": self.reference,
            "tax_percent": self.tax_percent,
            "items": self.items,
        })


class QuoteStore:
    """Append-only collection of saved quotes keyed by creation time."""

    def __init__(
        self,
        kv: KeyValueStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.kv = kv or KeyValueStore()
        self.clock = clock

    def _fresh_key(self) -> str:
        millis = int(self.clock() * 1000)
        key = f"{KEY_PREFIX}{millis}"
        while self.kv.contains(key):
            millis += 1
            key = f"{KEY_PREFIX}{millis}"
        return key

    def save(self, model: QuoteModel) -> SavedQuote:
        snapshot = model.to_dict()
        saved = SavedQuote(
            key=self._fresh_key(),
            date=snapshot["date"],
            reference=snapshot["reference"],
            tax_percent=snapshot["tax_percent"],
            items=snapshot["items"],
            created_at=utcnow_iso(),
        )
        self.kv.set_item(saved.key, saved.to_json())
        logging.info("quote saved key=%s items=%s", saved.key, len(saved.items))
        return saved

    def list_all(self) -> List[SavedQuote]:
        keys = [k for k in self.kv.get_all_keys() if k.startswith(KEY_PREFIX)]
        records = []
        for key, raw in self.kv.multi_get(keys):
            if raw is None:
                continue
            try:
                records.append(SavedQuote.from_json(raw))
            except (ValueError, TypeError, AttributeError) as e:
                raise PersistenceError(f"corrupt record {key}: {e}") from e
        records.sort(key=lambda q: (q.created_at, q.key), reverse=True)
        return records

    def load_one(self, key: str) -> SavedQuote:
        pairs = self.kv.multi_get([key])
        raw = pairs[0][1] if pairs else None
        if raw is None:
            raise KeyError(key)
        try:
            return SavedQuote.from_json(raw)
        except (ValueError, TypeError, AttributeError) as e:
            raise PersistenceError(f"corrupt record {key}: {e}") from e
