"""JSON-lines conversation log, one file per room."""

import json
import re
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from ..errors import StoreUnavailable
from ..models import ConversationTurn
from .base import ConversationLogBase


class JsonlConversationLog(ConversationLogBase):
    """Appends turns to ``<conversations_path>/<room_id>.jsonl``."""

    def __init__(self, conversations_path: str):
        self.path = Path(conversations_path)
        self.path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _room_file(self, room_id: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", room_id)
        return self.path / f"{safe}.jsonl"

    def append_turn(
        self,
        room_id: str,
        role: str,
        message: str,
        summary_type: str | None = None,
    ) -> ConversationTurn:
        self.validate_turn(role, summary_type)
        turn = ConversationTurn(
            id=str(uuid.uuid4()),
            room_id=room_id,
            role=role,
            message=message,
            created_at=datetime.now(timezone.utc),
            summary_type=summary_type,
        )
        record = {
            "id": turn.id,
            "room_id": room_id,
            "role": role,
            "message": message,
            "created_at": turn.created_at.isoformat(),
            "summary_type": summary_type,
        }
        try:
            with self._lock, open(self._room_file(room_id), "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            raise StoreUnavailable(f"Could not append turn for room {room_id}: {e}") from e
        return turn

    def room_turns(self, room_id: str) -> list[ConversationTurn]:
        path = self._room_file(room_id)
        if not path.exists():
            return []
        try:
            with self._lock:
                lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise StoreUnavailable(f"Could not read turns for room {room_id}: {e}") from e

        turns = []
        for line in lines:
            if not line.strip():
                continue
            try:
                row = json.loads(line)
                turns.append(ConversationTurn(
                    id=row["id"],
                    room_id=row["room_id"],
                    role=row["role"],
                    message=row["message"],
                    created_at=datetime.fromisoformat(row["created_at"]),
                    summary_type=row.get("summary_type"),
                ))
            except (json.JSONDecodeError, KeyError, ValueError):
                continue  # torn write

        # Stable sort keeps file order for equal timestamps.
        turns.sort(key=lambda t: t.created_at)
        return list(reversed(turns))
