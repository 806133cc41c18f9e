"""Optional capabilities held by a repository: translations, blocks and revisions."""
from __future__ import annotations
import json
import logging
from typing import Any, Dict, Iterable, List, Optional
import sqlalchemy as sa
from sqlalchemy.orm import Session
from cmskit.core.errors import RecordNotFound
from cmskit.db.models import Block
from cmskit.runtime.model import ModuleModel, utcnow

log = logging.getLogger(__name__)


class TranslationHandler:
    def __init__(self, model: ModuleModel, locales: List[str], default_locale: str):
        self.model = model
        self.table = model.translation_table
        self.fk = model.foreign_key
        self.locales = locales
        self.default_locale = default_locale

    def save(self, db: Session, item_id: int, translated: Dict[str, Dict[str, Any]], active: Dict[str, bool]) -> None:
        for locale in sorted(set(translated) | set(active)):
            values = dict(translated.get(locale, {}))
            if locale in active:
                values["active"] = active[locale]
            existing = db.execute(
                sa.select(self.table.c.id).where(self.table.c[self.fk] == item_id, self.table.c.locale == locale)
            ).scalar_one_or_none()
            now = utcnow()
            if existing is None:
                values.setdefault("active", True)
                db.execute(sa.insert(self.table).values(
                    **values, locale=locale, created_at=now, updated_at=now, **{self.fk: item_id}
                ))
            elif values:
                db.execute(sa.update(self.table).where(self.table.c.id == existing).values(**values, updated_at=now))

    def fetch(self, db: Session, item_ids: Iterable[int]) -> Dict[int, List[Dict[str, Any]]]:
        ids = list(item_ids)
        if not ids:
            return {}
        rows = db.execute(
            sa.select(self.table).where(self.table.c[self.fk].in_(ids), self.table.c.deleted_at.is_(None))
        ).all()
        grouped: Dict[int, List[Dict[str, Any]]] = {}
        for row in rows:
            data = dict(row._mapping)
            grouped.setdefault(data[self.fk], []).append(data)
        return grouped

    def merge(self, item: Dict[str, Any], translations: List[Dict[str, Any]], locale: Optional[str] = None) -> Dict[str, Any]:
        """Attach translated attributes for ``locale``, falling back to the first active translation."""
        locale = locale or self.default_locale
        by_locale = {t["locale"]: t for t in translations}
        current = by_locale.get(locale)
        if current is None:
            current = next((t for t in translations if t["active"]), None)
        for attribute in self.model.descriptor.translated_attributes:
            item[attribute] = current.get(attribute) if current else None
        item["translations"] = {
            attribute: {t["locale"]: t.get(attribute) for t in translations}
            for attribute in self.model.descriptor.translated_attributes
        }
        item["languages"] = [
            {"value": t["locale"], "published": bool(t["active"])} for t in translations
        ]
        return item

    def duplicate(self, db: Session, source_id: int, target_id: int) -> None:
        rows = self.fetch(db, [source_id]).get(source_id, [])
        now = utcnow()
        for row in rows:
            values = {k: v for k, v in row.items() if k not in ("id", self.fk, "created_at", "updated_at")}
            db.execute(sa.insert(self.table).values(
                **values, created_at=now, updated_at=now, **{self.fk: target_id}
            ))


class BlockHandler:
    """Blocks live in the shared ``blocks`` table, keyed by model name and id."""

    def __init__(self, blockable_type: str):
        self.blockable_type = blockable_type

    def _query(self, db: Session, item_id: int):
        return db.query(Block).filter(
            Block.blockable_type == self.blockable_type,
            Block.blockable_id == item_id,
        )

    def sync(self, db: Session, item_id: int, blocks: List[Dict[str, Any]]) -> None:
        self._query(db, item_id).delete(synchronize_session=False)
        now = utcnow()
        for position, block in enumerate(blocks, start=1):
            db.add(Block(
                blockable_type=self.blockable_type,
                blockable_id=item_id,
                position=position,
                type=block["type"],
                editor_name=block.get("editor_name", "default"),
                content=block.get("content", {}),
                created_at=now,
                updated_at=now,
            ))
        db.flush()

    def get(self, db: Session, item_id: int) -> List[Dict[str, Any]]:
        return [b.to_dict() for b in self._query(db, item_id).order_by(Block.position).all()]

    def duplicate(self, db: Session, source_id: int, target_id: int) -> None:
        self.sync(db, target_id, self.get(db, source_id))

    def purge(self, db: Session, item_id: int) -> None:
        self._query(db, item_id).delete(synchronize_session=False)


class RevisionHandler:
    def __init__(self, model: ModuleModel):
        self.table = model.revision_table
        self.fk = model.foreign_key

    def create(self, db: Session, item_id: int, payload: Dict[str, Any], user_id: Optional[int] = None) -> None:
        now = utcnow()
        db.execute(sa.insert(self.table).values(
            payload=json.dumps(payload, default=str),
            user_id=user_id,
            created_at=now,
            updated_at=now,
            **{self.fk: item_id},
        ))

    def list(self, db: Session, item_id: int) -> List[Dict[str, Any]]:
        rows = db.execute(
            sa.select(self.table.c.id, self.table.c.user_id, self.table.c.created_at)
            .where(self.table.c[self.fk] == item_id)
            .order_by(self.table.c.id.desc())
        ).all()
        return [dict(r._mapping) for r in rows]

    def get(self, db: Session, item_id: int, revision_id: int) -> Dict[str, Any]:
        row = db.execute(
            sa.select(self.table).where(self.table.c.id == revision_id, self.table.c[self.fk] == item_id)
        ).first()
        if row is None:
            raise RecordNotFound(self.table.name, revision_id)
        return json.loads(row.payload)
