from datetime import datetime, UTC
from typing import Optional

from sqlmodel import SQLModel, Field

# ─────────────────────────────────────────────────────────────────────────────
# Persisted player state (one row per storage key)
# ─────────────────────────────────────────────────────────────────────────────

class PlayerStateEntry(SQLModel, table=True):
    __tablename__ = "player_state_entry"
    __table_args__ = {"extend_existing": True}

    key: str = Field(primary_key=True, max_length=64)
    value: str = Field(default="")
    updated_at: Optional[datetime] = Field(default_factory=lambda: datetime.now(UTC))
