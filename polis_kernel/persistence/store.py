"""
Polis Store: append-oriented SQLite persistence for passes, chat, rooms and items.

Behavioral Contract:
- Pass records are append-only; no pass row is ever modified.
- The kernel writes here but never reads back for access control or
  membership; in-memory state stays authoritative.
- Queryable by recency, agent, room and timestamp for the dashboard and the
  room admin "recentActivity" tool.
"""

import json
import sqlite3
from datetime import datetime
from typing import List, Optional

from polis_kernel.models.agent_pass import PassRecord
from polis_kernel.models.chat import ChatMessage
from polis_kernel.models.items import (
    InteractionIO,
    ItemInteractionRecord,
    ItemRecord,
    ItemTemplate,
)


class PolisStore:
    """
    SQLite-backed store. ":memory:" by default for tests and demos.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS agent_passes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                agent_id TEXT NOT NULL,
                intent TEXT NOT NULL,
                followup_instructions TEXT NOT NULL,
                record_json TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_passes_agent ON agent_passes(agent_id, id DESC)
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS chat_messages (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                room TEXT NOT NULL,
                agent_id TEXT NOT NULL,
                handle TEXT NOT NULL,
                content TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_chat_room ON chat_messages(room, timestamp DESC)
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS rooms (
                name TEXT PRIMARY KEY,
                is_private INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS items (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at TEXT NOT NULL,
                room TEXT NOT NULL,
                owner_id TEXT NOT NULL,
                template_json TEXT NOT NULL,
                state_json TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_items_room ON items(room, created_at DESC)
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS item_interactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                item_id INTEGER NOT NULL,
                room TEXT NOT NULL,
                agent_id TEXT NOT NULL,
                interaction_name TEXT NOT NULL,
                inputs_json TEXT NOT NULL,
                outputs_json TEXT NOT NULL,
                description TEXT NOT NULL,
                updated_state_json TEXT NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_interactions_item
            ON item_interactions(item_id, timestamp DESC)
        """)
        self._conn.commit()

    # --- Passes ---

    def insert_pass(self, record: PassRecord) -> PassRecord:
        """Append a pass record and return it with its assigned id."""
        cur = self._conn.execute(
            """
            INSERT INTO agent_passes (
                timestamp, agent_id, intent, followup_instructions, record_json
            ) VALUES (?, ?, ?, ?, ?)
            """,
            (
                record.timestamp.isoformat(),
                record.agent_id,
                record.intent,
                record.followup_instructions,
                record.model_dump_json(),
            ),
        )
        self._conn.commit()
        return record.model_copy(update={"id": cur.lastrowid})

    def _deserialize_pass(self, row: sqlite3.Row) -> PassRecord:
        record = PassRecord.model_validate_json(row["record_json"])
        return record.model_copy(update={"id": row["id"]})

    def list_recent(self, limit: int = 50) -> List[PassRecord]:
        """Most recent pass records, newest first."""
        rows = self._conn.execute(
            "SELECT id, record_json FROM agent_passes ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [self._deserialize_pass(r) for r in rows]

    def list_recent_by_agent(self, agent_id: str, limit: int = 50) -> List[PassRecord]:
        rows = self._conn.execute(
            "SELECT id, record_json FROM agent_passes WHERE agent_id = ? "
            "ORDER BY id DESC LIMIT ?",
            (agent_id, limit),
        ).fetchall()
        return [self._deserialize_pass(r) for r in rows]

    def list_passes_since(
        self, since: datetime, limit: int = 200, agent_id: Optional[str] = None
    ) -> List[PassRecord]:
        """Passes after since, oldest first, optionally for one agent."""
        sql = "SELECT id, record_json FROM agent_passes WHERE timestamp > ?"
        args: list = [since.isoformat()]
        if agent_id:
            sql += " AND agent_id = ?"
            args.append(agent_id)
        rows = self._conn.execute(sql + " ORDER BY id ASC LIMIT ?", (*args, limit)).fetchall()
        return [self._deserialize_pass(r) for r in rows]

    def list_agents(self) -> List[dict]:
        """Agents seen in pass history with their last pass time."""
        rows = self._conn.execute(
            "SELECT agent_id, MAX(timestamp) AS last_timestamp, COUNT(*) AS passes "
            "FROM agent_passes GROUP BY agent_id ORDER BY last_timestamp DESC"
        ).fetchall()
        return [dict(r) for r in rows]

    def count_passes(self) -> int:
        row = self._conn.execute("SELECT COUNT(*) AS cnt FROM agent_passes").fetchone()
        return row["cnt"]

    # --- Chat ---

    def insert_chat_message(self, message: ChatMessage) -> int:
        cur = self._conn.execute(
            "INSERT INTO chat_messages (timestamp, room, agent_id, handle, content) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                message.timestamp.isoformat(),
                message.room,
                message.agent_id,
                message.handle,
                message.content,
            ),
        )
        self._conn.commit()
        return cur.lastrowid

    def _deserialize_chat(self, row: sqlite3.Row) -> ChatMessage:
        return ChatMessage(
            timestamp=datetime.fromisoformat(row["timestamp"]),
            room=row["room"],
            agent_id=row["agent_id"],
            handle=row["handle"],
            content=row["content"],
        )

    def list_recent_chat_by_room(self, room: str, limit: int = 20) -> List[ChatMessage]:
        """The last N messages of a room, in chronological order."""
        rows = self._conn.execute(
            """
            SELECT * FROM (
                SELECT id, timestamp, room, agent_id, handle, content
                FROM chat_messages WHERE room = ?
                ORDER BY timestamp DESC, id DESC LIMIT ?
            ) ORDER BY timestamp ASC, id ASC
            """,
            (room, limit),
        ).fetchall()
        return [self._deserialize_chat(r) for r in rows]

    def list_chat_by_room_since(
        self, room: str, since: datetime, limit: int = 200
    ) -> List[ChatMessage]:
        rows = self._conn.execute(
            "SELECT timestamp, room, agent_id, handle, content FROM chat_messages "
            "WHERE room = ? AND timestamp > ? ORDER BY timestamp ASC, id ASC LIMIT ?",
            (room, since.isoformat(), limit),
        ).fetchall()
        return [self._deserialize_chat(r) for r in rows]

    def list_chat_rooms(self) -> List[dict]:
        rows = self._conn.execute(
            "SELECT room, MAX(timestamp) AS last_timestamp FROM chat_messages "
            "GROUP BY room ORDER BY last_timestamp DESC"
        ).fetchall()
        return [dict(r) for r in rows]

    # --- Rooms ---

    def upsert_room(
        self, name: str, is_private: bool, created_at: Optional[datetime] = None
    ) -> None:
        """Register a room; an existing row keeps its creation time."""
        created = (created_at or datetime.utcnow()).isoformat()
        self._conn.execute(
            "INSERT INTO rooms (name, is_private, created_at) VALUES (?, ?, ?) "
            "ON CONFLICT(name) DO UPDATE SET is_private = excluded.is_private",
            (name, int(is_private), created),
        )
        self._conn.commit()

    def set_room_visibility(self, name: str, is_private: bool) -> None:
        self._conn.execute(
            "UPDATE rooms SET is_private = ? WHERE name = ?", (int(is_private), name)
        )
        self._conn.commit()

    def list_rooms(self) -> List[dict]:
        rows = self._conn.execute(
            "SELECT name, is_private, created_at FROM rooms ORDER BY created_at DESC"
        ).fetchall()
        return [
            {
                "name": r["name"],
                "is_private": bool(r["is_private"]),
                "created_at": r["created_at"],
            }
            for r in rows
        ]

    # --- Items ---

    def insert_item(
        self, room: str, owner_id: str, template: ItemTemplate, state: dict
    ) -> int:
        cur = self._conn.execute(
            "INSERT INTO items (created_at, room, owner_id, template_json, state_json) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                datetime.utcnow().isoformat(),
                room,
                owner_id,
                template.model_dump_json(),
                json.dumps(state),
            ),
        )
        self._conn.commit()
        return cur.lastrowid

    def update_item_state(self, item_id: int, state: dict) -> None:
        self._conn.execute(
            "UPDATE items SET state_json = ? WHERE id = ?", (json.dumps(state), item_id)
        )
        self._conn.commit()

    def delete_item(self, item_id: int) -> None:
        """Remove an item and its interaction history."""
        self._conn.execute("DELETE FROM item_interactions WHERE item_id = ?", (item_id,))
        self._conn.execute("DELETE FROM items WHERE id = ?", (item_id,))
        self._conn.commit()

    def _deserialize_item(self, row: sqlite3.Row) -> ItemRecord:
        last = row["last_timestamp"] if "last_timestamp" in row.keys() else None
        return ItemRecord(
            id=row["id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            room=row["room"],
            owner_id=row["owner_id"],
            template=ItemTemplate.model_validate_json(row["template_json"]),
            state=json.loads(row["state_json"]),
            last_interaction_at=datetime.fromisoformat(last) if last else None,
        )

    def get_item(self, item_id: int) -> Optional[ItemRecord]:
        row = self._conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()
        return self._deserialize_item(row) if row else None

    def list_items(self) -> List[ItemRecord]:
        """All items with their latest interaction time, most recently active first."""
        rows = self._conn.execute(
            """
            SELECT i.*, MAX(ii.timestamp) AS last_timestamp
            FROM items i
            LEFT JOIN item_interactions ii ON ii.item_id = i.id
            GROUP BY i.id
            ORDER BY COALESCE(MAX(ii.timestamp), i.created_at) DESC, i.id DESC
            """
        ).fetchall()
        return [self._deserialize_item(r) for r in rows]

    def insert_item_interaction(self, record: ItemInteractionRecord) -> int:
        cur = self._conn.execute(
            """
            INSERT INTO item_interactions (
                timestamp, item_id, room, agent_id, interaction_name,
                inputs_json, outputs_json, description, updated_state_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                record.timestamp.isoformat(),
                record.item_id,
                record.room,
                record.agent_id,
                record.interaction_name,
                json.dumps(record.inputs),
                json.dumps([o.model_dump(mode="json") for o in record.outputs]),
                record.description,
                json.dumps(record.updated_state),
            ),
        )
        self._conn.commit()
        return cur.lastrowid

    def list_recent_item_interactions(
        self, item_id: int, limit: int = 50
    ) -> List[ItemInteractionRecord]:
        rows = self._conn.execute(
            "SELECT * FROM item_interactions WHERE item_id = ? "
            "ORDER BY timestamp DESC, id DESC LIMIT ?",
            (item_id, limit),
        ).fetchall()
        return [
            ItemInteractionRecord(
                id=r["id"],
                timestamp=datetime.fromisoformat(r["timestamp"]),
                item_id=r["item_id"],
                room=r["room"],
                agent_id=r["agent_id"],
                interaction_name=r["interaction_name"],
                inputs=json.loads(r["inputs_json"]),
                outputs=[InteractionIO.model_validate(o) for o in json.loads(r["outputs_json"])],
                description=r["description"],
                updated_state=json.loads(r["updated_state_json"]),
            )
            for r in rows
        ]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
