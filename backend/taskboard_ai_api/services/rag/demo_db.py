from __future__ import annotations

from contextlib import closing
import json
from pathlib import Path
import sqlite3
import time


DEMO_BOARD_ID = "board-demo"
DEMO_USER_ID = "u-demo"

ASSIGNEE_PROP = "a7assignee"
REVIEWERS_PROP = "a7reviewers"
STATUS_PROP = "a7status"
DUE_PROP = "a7duedate"

STATUS_TODO = "opt-todo"
STATUS_PROGRESS = "opt-progress"
STATUS_DONE = "opt-done"

_DAY_MS = 24 * 3600 * 1000

_SCHEMA = """
CREATE TABLE IF NOT EXISTS boards (
    id TEXT PRIMARY KEY,
    team_id TEXT,
    title TEXT,
    description TEXT,
    card_properties TEXT,
    create_at INTEGER,
    update_at INTEGER,
    delete_at INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS blocks (
    id TEXT PRIMARY KEY,
    board_id TEXT,
    parent_id TEXT,
    root_id TEXT,
    type TEXT,
    title TEXT,
    fields TEXT,
    create_at INTEGER,
    update_at INTEGER,
    delete_at INTEGER DEFAULT 0
);
"""


def demo_card_properties() -> list[dict]:
    return [
        {"id": ASSIGNEE_PROP, "name": "负责人", "type": "person", "options": []},
        {"id": REVIEWERS_PROP, "name": "评审人", "type": "multiPerson", "options": []},
        {
            "id": STATUS_PROP,
            "name": "Status",
            "type": "select",
            "options": [
                {"id": STATUS_TODO, "value": "待办", "color": "propColorGray"},
                {"id": STATUS_PROGRESS, "value": "进行中", "color": "propColorBlue"},
                {"id": STATUS_DONE, "value": "已完成", "color": "propColorGreen"},
            ],
        },
        {"id": DUE_PROP, "name": "截止日期", "type": "date", "options": []},
    ]


def _card_fields(
    *, assignee: str | None, status: str | None, due_ms: int | None, reviewers: list[str] | None = None
) -> str:
    props: dict = {}
    if assignee:
        props[ASSIGNEE_PROP] = assignee
    if reviewers:
        props[REVIEWERS_PROP] = reviewers
    if status:
        props[STATUS_PROP] = status
    if due_ms is not None:
        props[DUE_PROP] = json.dumps({"from": due_ms})
    return json.dumps({"properties": props}, ensure_ascii=False)


def ensure_demo_board_db(db_path: str, *, user_id: str = DEMO_USER_ID) -> None:
    """
    Create a small board database for local development and tests.

    One live board with person / multi-person / status / date properties, a handful of
    cards in different states (one soft-deleted), and one soft-deleted board. Idempotent.
    """

    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    now_ms = int(time.time() * 1000)

    with closing(sqlite3.connect(str(path))) as conn:
        cur = conn.cursor()
        cur.executescript(_SCHEMA)

        cur.execute("SELECT COUNT(*) FROM boards")
        if cur.fetchone()[0] == 0:
            cur.execute(
                """
                INSERT INTO boards (id, team_id, title, description, card_properties, create_at, update_at, delete_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 0)
                """,
                (
                    DEMO_BOARD_ID,
                    "team-demo",
                    "产品迭代",
                    "示例看板",
                    json.dumps(demo_card_properties(), ensure_ascii=False),
                    now_ms - 30 * _DAY_MS,
                    now_ms,
                ),
            )
            cur.execute(
                """
                INSERT INTO boards (id, team_id, title, description, card_properties, create_at, update_at, delete_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                ("board-archived", "team-demo", "已归档", "", "[]", now_ms - 90 * _DAY_MS, now_ms, now_ms),
            )

        cur.execute("SELECT COUNT(*) FROM blocks")
        if cur.fetchone()[0] == 0:
            cards = [
                ("card-1", "编写需求文档", _card_fields(assignee=user_id, status=STATUS_PROGRESS, due_ms=now_ms + 3 * _DAY_MS), 0),
                ("card-2", "修复登录问题", _card_fields(assignee=user_id, status=STATUS_TODO, due_ms=now_ms - 2 * _DAY_MS), 0),
                ("card-3", "发布 1.0 版本", _card_fields(assignee=user_id, status=STATUS_DONE, due_ms=now_ms - 5 * _DAY_MS), 0),
                ("card-4", "评审设计稿", _card_fields(assignee="u-other", status=STATUS_TODO, due_ms=None, reviewers=[user_id]), 0),
                ("card-5", "整理周报", _card_fields(assignee="u-other", status=STATUS_PROGRESS, due_ms=None), 0),
                ("card-6", "废弃的任务", _card_fields(assignee=user_id, status=STATUS_TODO, due_ms=None), now_ms),
            ]
            for i, (card_id, title, fields, delete_at) in enumerate(cards):
                cur.execute(
                    """
                    INSERT INTO blocks (id, board_id, parent_id, root_id, type, title, fields, create_at, update_at, delete_at)
                    VALUES (?, ?, ?, ?, 'card', ?, ?, ?, ?, ?)
                    """,
                    (
                        card_id,
                        DEMO_BOARD_ID,
                        DEMO_BOARD_ID,
                        DEMO_BOARD_ID,
                        title,
                        fields,
                        now_ms - 10 * _DAY_MS,
                        now_ms - i * 60_000,
                        delete_at,
                    ),
                )
            cur.execute(
                """
                INSERT INTO blocks (id, board_id, parent_id, root_id, type, title, fields, create_at, update_at, delete_at)
                VALUES ('view-1', ?, ?, ?, 'view', '看板视图', '{}', ?, ?, 0)
                """,
                (DEMO_BOARD_ID, DEMO_BOARD_ID, DEMO_BOARD_ID, now_ms, now_ms),
            )

        conn.commit()
