"""CRUD and bulk operations over a module's tables."""
from __future__ import annotations
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple
import sqlalchemy as sa
from sqlalchemy.orm import Session
from cmskit.core.errors import RecordNotFound
from cmskit.runtime.handlers import BlockHandler, RevisionHandler, TranslationHandler
from cmskit.runtime.model import ModuleModel, utcnow

log = logging.getLogger(__name__)

STATUSES = ("all", "published", "draft", "trash")


class ModuleRepository:
    def __init__(
        self,
        model: ModuleModel,
        db: Session,
        translations: Optional[TranslationHandler] = None,
        blocks: Optional[BlockHandler] = None,
        revisions: Optional[RevisionHandler] = None,
        locale: str = "en",
    ):
        self.model = model
        self.table = model.table
        self.db = db
        self.translations = translations
        self.blocks = blocks
        self.revisions = revisions
        self.locale = locale

    # Reads

    def _status_filter(self, query, status: str):
        c = self.table.c
        if status == "trash":
            return query.where(c.deleted_at.is_not(None))
        query = query.where(c.deleted_at.is_(None))
        if status == "published":
            query = query.where(c.published == sa.true())
        elif status == "draft":
            query = query.where(c.published == sa.false())
        return query

    def _search_filter(self, query, search: Optional[str], title_column: str):
        if not search:
            return query
        pattern = f"%{search}%"
        if self.model.has_column(title_column):
            return query.where(self.table.c[title_column].ilike(pattern))
        if self.translations and title_column in self.model.descriptor.translated_attributes:
            tt = self.translations.table
            ids = sa.select(tt.c[self.model.foreign_key]).where(tt.c[title_column].ilike(pattern))
            return query.where(self.table.c.id.in_(ids))
        return query

    def _ordering(self, sort: Optional[str], direction: str, by_position: bool):
        c = self.table.c
        if sort and sort in c:
            column = c[sort]
            return [column.desc() if direction == "desc" else column.asc(), c.id.asc()]
        if by_position:
            return [c.position.is_(None), c.position.asc(), c.id.asc()]
        return [c.created_at.desc(), c.id.desc()]

    def list(
        self,
        status: str = "all",
        search: Optional[str] = None,
        title_column: str = "title",
        sort: Optional[str] = None,
        direction: str = "asc",
        by_position: bool = False,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[List[Dict[str, Any]], int]:
        if status not in STATUSES:
            status = "all"
        base = self._search_filter(self._status_filter(sa.select(self.table), status), search, title_column)
        total = self.db.execute(sa.select(sa.func.count()).select_from(base.subquery())).scalar_one()
        query = base.order_by(*self._ordering(sort, direction, by_position))
        query = query.limit(per_page).offset((max(page, 1) - 1) * per_page)
        rows = [self.model.row_to_dict(r) for r in self.db.execute(query).all()]
        return self._hydrate(rows), total

    def counts(self) -> Dict[str, int]:
        counts = {}
        for status in STATUSES:
            query = self._status_filter(sa.select(sa.func.count()).select_from(self.table), status)
            counts[status] = self.db.execute(query).scalar_one()
        return counts

    def _hydrate(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not self.translations:
            return rows
        grouped = self.translations.fetch(self.db, [r["id"] for r in rows])
        return [self.translations.merge(r, grouped.get(r["id"], []), self.locale) for r in rows]

    def _row(self, record_id: int, trashed: Optional[bool] = False) -> Dict[str, Any]:
        """``trashed``: False live rows only, True trashed only, None either."""
        query = sa.select(self.table).where(self.table.c.id == record_id)
        if trashed is True:
            query = query.where(self.table.c.deleted_at.is_not(None))
        elif trashed is False:
            query = query.where(self.table.c.deleted_at.is_(None))
        row = self.db.execute(query).first()
        if row is None:
            raise RecordNotFound(self.table.name, record_id)
        return self.model.row_to_dict(row)

    def get(self, record_id: int, with_trashed: bool = False, with_blocks: bool = True) -> Dict[str, Any]:
        item = self._hydrate([self._row(record_id, None if with_trashed else False)])[0]
        if self.blocks and with_blocks:
            item["blocks"] = self.blocks.get(self.db, record_id)
        return item

    # Writes

    def _save_related(self, record_id: int, data: Dict[str, Any],
                      translated: Dict[str, Dict[str, Any]], active: Dict[str, bool],
                      user_id: Optional[int]) -> None:
        if self.translations:
            self.translations.save(self.db, record_id, translated, active)
        if self.blocks and data.get("blocks") is not None:
            self.blocks.sync(self.db, record_id, data["blocks"])
        if self.revisions:
            self.revisions.create(self.db, record_id, data, user_id=user_id)

    def create(self, data: Dict[str, Any], user_id: Optional[int] = None) -> Dict[str, Any]:
        main, translated, active = self.model.split(data, self.locale)
        now = utcnow()
        result = self.db.execute(sa.insert(self.table).values(**main, created_at=now, updated_at=now))
        record_id = result.inserted_primary_key[0]
        self._save_related(record_id, data, translated, active, user_id)
        self.db.commit()
        log.info("Created %s %s", self.model.name, record_id,
                 extra={"resource": self.model.schema.name_plural, "stage": "-"})
        return self.get(record_id)

    def update(self, record_id: int, data: Dict[str, Any], user_id: Optional[int] = None) -> Dict[str, Any]:
        self._row(record_id)
        main, translated, active = self.model.split(data, self.locale)
        self.db.execute(
            sa.update(self.table).where(self.table.c.id == record_id).values(**main, updated_at=utcnow())
        )
        self._save_related(record_id, data, translated, active, user_id)
        self.db.commit()
        return self.get(record_id)

    def update_basic(self, ids: Iterable[int], values: Dict[str, Any]) -> int:
        """Write main-table values to live rows without touching translations or revisions."""
        ids = list(ids)
        result = self.db.execute(
            sa.update(self.table)
            .where(self.table.c.id.in_(ids), self.table.c.deleted_at.is_(None))
            .values(**values, updated_at=utcnow())
        )
        self.db.commit()
        return result.rowcount

    def delete(self, ids: Iterable[int]) -> int:
        return self.update_basic(ids, {"deleted_at": utcnow()})

    def restore(self, ids: Iterable[int]) -> int:
        result = self.db.execute(
            sa.update(self.table)
            .where(self.table.c.id.in_(list(ids)), self.table.c.deleted_at.is_not(None))
            .values(deleted_at=None, updated_at=utcnow())
        )
        self.db.commit()
        return result.rowcount

    def force_delete(self, ids: Iterable[int]) -> int:
        """Permanently remove trashed rows with their translations, revisions and blocks."""
        ids = list(ids)
        trashed = self.db.execute(
            sa.select(self.table.c.id).where(self.table.c.id.in_(ids), self.table.c.deleted_at.is_not(None))
        ).scalars().all()
        if not trashed:
            return 0
        fk = self.model.foreign_key
        for related in (self.model.revision_table, self.model.translation_table, self.model.slug_table):
            self.db.execute(sa.delete(related).where(related.c[fk].in_(trashed)))
        if self.blocks:
            for record_id in trashed:
                self.blocks.purge(self.db, record_id)
        self.db.execute(sa.delete(self.table).where(self.table.c.id.in_(trashed)))
        self.db.commit()
        return len(trashed)

    def set_new_order(self, ids: List[int]) -> None:
        for position, record_id in enumerate(ids, start=1):
            self.db.execute(
                sa.update(self.table).where(self.table.c.id == record_id).values(position=position)
            )
        self.db.commit()

    def duplicate(self, record_id: int, user_id: Optional[int] = None) -> Dict[str, Any]:
        source = self._row(record_id)
        values = {k: v for k, v in source.items() if k not in ("id", "created_at", "updated_at", "deleted_at")}
        values["published"] = False
        now = utcnow()
        new_id = self.db.execute(
            sa.insert(self.table).values(**values, created_at=now, updated_at=now)
        ).inserted_primary_key[0]
        if self.translations:
            self.translations.duplicate(self.db, record_id, new_id)
        if self.blocks:
            self.blocks.duplicate(self.db, record_id, new_id)
        self.db.commit()
        log.info("Duplicated %s %s as %s", self.model.name, record_id, new_id,
                 extra={"resource": self.model.schema.name_plural, "stage": "-"})
        return self.get(new_id)

    def preview(self, record_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """The record as it would look with ``data`` applied. Nothing is written."""
        item = self.get(record_id)
        return self._apply(item, data)

    def _apply(self, item: Dict[str, Any], data: Dict[str, Any]) -> Dict[str, Any]:
        main, translated, _ = self.model.split(data, self.locale)
        item.update(main)
        for locale, values in translated.items():
            for attribute, value in values.items():
                item.setdefault("translations", {}).setdefault(attribute, {})[locale] = value
                if locale == self.locale:
                    item[attribute] = value
        if data.get("blocks") is not None:
            item["blocks"] = data["blocks"]
        return item

    def revision_state(self, record_id: int, revision_id: int) -> Dict[str, Any]:
        """The record with a stored revision's payload applied. Nothing is written."""
        if not self.revisions:
            raise RecordNotFound(self.model.revision_table.name, revision_id)
        payload = self.revisions.get(self.db, record_id, revision_id)
        return self._apply(self.get(record_id), self.model.validate(payload))

    def revision_list(self, record_id: int) -> List[Dict[str, Any]]:
        return self.revisions.list(self.db, record_id) if self.revisions else []
