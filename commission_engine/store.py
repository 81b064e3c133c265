"""
Record Store

The engine persists plain dict records through this interface. Two
interchangeable backends are provided: an in-memory store for tests and demos,
and a JSON file store that keeps the same data on disk.
"""

import copy
import json
import logging
import os
from pathlib import Path

from .errors import ConstraintViolation, NotFound, StoreError

logger = logging.getLogger(__name__)

SALES = "vendas"
COMMISSIONS = "comissoes"
PACKAGES = "marketing"
USERS = "users"

COLLECTIONS = (SALES, COMMISSIONS, PACKAGES, USERS)


class Store:
    """
    Interface of the record store.

    Filters are equality matches on record fields; a list or tuple value
    matches any of its members. Date bounds are inclusive and compare the
    first ten characters (YYYY-MM-DD) of the named field.
    """

    def find_by_id(self, collection: str, record_id: str) -> dict:
        raise NotImplementedError

    def find_where(
        self,
        collection: str,
        filters: dict | None = None,
        date_field: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[dict]:
        raise NotImplementedError

    def insert(self, collection: str, record: dict) -> dict:
        raise NotImplementedError

    def update(self, collection: str, record_id: str, changes: dict) -> dict:
        raise NotImplementedError

    def update_where(self, collection: str, filters: dict, changes: dict) -> list[dict]:
        raise NotImplementedError

    def delete(self, collection: str, record_id: str) -> None:
        raise NotImplementedError

    def delete_where(self, collection: str, filters: dict) -> int:
        raise NotImplementedError


def _matches(record: dict, filters: dict) -> bool:
    for key, expected in filters.items():
        actual = record.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


def _in_range(record: dict, date_field: str, start: str | None, end: str | None) -> bool:
    value = record.get(date_field)
    if value is None:
        return False
    day = str(value)[:10]
    if start and day < str(start)[:10]:
        return False
    if end and day > str(end)[:10]:
        return False
    return True


class InMemoryStore(Store):
    """Dict-backed store. Returned records are copies."""

    def __init__(self, data: dict[str, dict[str, dict]] | None = None):
        self._data: dict[str, dict[str, dict]] = {name: {} for name in COLLECTIONS}
        for name, records in (data or {}).items():
            self._data.setdefault(name, {}).update(copy.deepcopy(records))

    def _collection(self, collection: str) -> dict[str, dict]:
        try:
            return self._data[collection]
        except KeyError:
            raise StoreError(f"Unknown collection: {collection}") from None

    def find_by_id(self, collection: str, record_id: str) -> dict:
        records = self._collection(collection)
        if record_id not in records:
            raise NotFound(f"{collection} record {record_id} not found")
        return copy.deepcopy(records[record_id])

    def find_where(
        self,
        collection: str,
        filters: dict | None = None,
        date_field: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[dict]:
        results = []
        for record in self._collection(collection).values():
            if filters and not _matches(record, filters):
                continue
            if date_field and (start or end) and not _in_range(record, date_field, start, end):
                continue
            results.append(copy.deepcopy(record))
        return results

    def insert(self, collection: str, record: dict) -> dict:
        records = self._collection(collection)
        record_id = record.get("id")
        if not record_id:
            raise ConstraintViolation(f"{collection} record has no id")
        if record_id in records:
            raise ConstraintViolation(f"{collection} record {record_id} already exists")
        records[record_id] = copy.deepcopy(record)
        self._changed()
        return copy.deepcopy(record)

    def update(self, collection: str, record_id: str, changes: dict) -> dict:
        records = self._collection(collection)
        if record_id not in records:
            raise NotFound(f"{collection} record {record_id} not found")
        if "id" in changes and changes["id"] != record_id:
            raise ConstraintViolation(f"Cannot change id of {collection} record {record_id}")
        records[record_id].update(copy.deepcopy(changes))
        self._changed()
        return copy.deepcopy(records[record_id])

    def update_where(self, collection: str, filters: dict, changes: dict) -> list[dict]:
        if "id" in changes:
            raise ConstraintViolation(f"Cannot change ids in a bulk update of {collection}")
        updated = []
        for record in self._collection(collection).values():
            if _matches(record, filters):
                record.update(copy.deepcopy(changes))
                updated.append(copy.deepcopy(record))
        if updated:
            self._changed()
        return updated

    def delete(self, collection: str, record_id: str) -> None:
        records = self._collection(collection)
        if record_id not in records:
            raise NotFound(f"{collection} record {record_id} not found")
        del records[record_id]
        self._changed()

    def delete_where(self, collection: str, filters: dict) -> int:
        records = self._collection(collection)
        doomed = [record_id for record_id, record in records.items() if _matches(record, filters)]
        for record_id in doomed:
            del records[record_id]
        if doomed:
            self._changed()
        return len(doomed)

    def _changed(self) -> None:
        """Hook called after every successful write."""


class JsonFileStore(InMemoryStore):
    """In-memory store mirrored to a single JSON document on disk."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read store file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Store file {self.path} does not hold a JSON object")
        logger.info(f"Loaded store from {self.path}")
        return data

    def _changed(self) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as handle:
                json.dump(self._data, handle, default=str, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StoreError(f"Cannot write store file {self.path}: {e}") from e
