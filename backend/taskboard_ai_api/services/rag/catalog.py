from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass, field
import json
import logging
import sqlite3
from typing import Any

from .errors import CatalogDiscoveryError


logger = logging.getLogger(__name__)

STATUS_PROPERTY_NAMES = {"status", "状态"}


@dataclass(frozen=True)
class PropertyCatalog:
    """Card property ids grouped by the role they play in generated filters."""

    person_prop_ids: list[str] = field(default_factory=list)
    multi_person_prop_ids: list[str] = field(default_factory=list)
    # status property id -> {upper-cased option label -> option id}
    status_prop_options: dict[str, dict[str, str]] = field(default_factory=dict)
    date_prop_ids: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "PropertyCatalog":
        return cls()

    @property
    def has_assignee_props(self) -> bool:
        return bool(self.person_prop_ids or self.multi_person_prop_ids)


def open_read_connection(db_path: str, busy_timeout_ms: int) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, timeout=max(0, busy_timeout_ms) / 1000.0)
    conn.execute(f"PRAGMA busy_timeout = {int(busy_timeout_ms)}")
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def _status_options(prop: dict[str, Any]) -> dict[str, str]:
    options: dict[str, str] = {}
    raw = prop.get("options")
    if not isinstance(raw, list):
        return options
    for opt in raw:
        if not isinstance(opt, dict):
            continue
        oid = opt.get("id")
        value = opt.get("value")
        if isinstance(oid, str) and oid and isinstance(value, str) and value:
            options[value.upper()] = oid
    return options


def build_catalog(card_properties: list[Any]) -> PropertyCatalog:
    """Classify already-decoded card property definitions into a catalog."""

    person: list[str] = []
    multi_person: list[str] = []
    status: dict[str, dict[str, str]] = {}
    dates: list[str] = []

    for prop in card_properties:
        if not isinstance(prop, dict):
            continue
        pid = prop.get("id")
        if not isinstance(pid, str) or not pid:
            continue
        ptype = prop.get("type")
        if ptype == "person":
            person.append(pid)
        elif ptype == "multiPerson":
            multi_person.append(pid)
        elif ptype in {"select", "multiSelect"}:
            name = str(prop.get("name") or "").strip().lower()
            if name in STATUS_PROPERTY_NAMES:
                options = _status_options(prop)
                if options:
                    status[pid] = options
        elif ptype == "date":
            dates.append(pid)

    return PropertyCatalog(
        person_prop_ids=person,
        multi_person_prop_ids=multi_person,
        status_prop_options=status,
        date_prop_ids=dates,
    )


def discover_property_catalog(db_path: str, busy_timeout_ms: int = 5000) -> PropertyCatalog:
    """
    Read every live board's `card_properties` and merge them into one catalog.

    A board whose JSON does not decode is skipped; connection or query failures raise
    `CatalogDiscoveryError` so the caller can decide to continue without a catalog.
    """

    try:
        with closing(open_read_connection(db_path, busy_timeout_ms)) as conn:
            rows = conn.execute("SELECT id, card_properties FROM boards WHERE delete_at=0").fetchall()
    except sqlite3.Error as e:
        raise CatalogDiscoveryError(f"property discovery failed: {e}") from e

    merged: list[Any] = []
    for board_id, raw in rows:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            props = json.loads(raw or "")
        except ValueError:
            logger.debug("skipping board with malformed card_properties board_id=%s", board_id)
            continue
        if not isinstance(props, list):
            logger.debug("skipping board with non-list card_properties board_id=%s", board_id)
            continue
        merged.extend(props)

    catalog = build_catalog(merged)
    logger.debug(
        "property catalog discovered person=%d multi_person=%d status=%d date=%d",
        len(catalog.person_prop_ids),
        len(catalog.multi_person_prop_ids),
        len(catalog.status_prop_options),
        len(catalog.date_prop_ids),
    )
    return catalog
