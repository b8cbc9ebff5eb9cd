"""Read-only player directory consumed by the lineup engine.

The directory is owned by the club's roster store. The engine only needs the
active players with their skill score and creation timestamp; this module
ships the contract plus a CSV-backed reference implementation
(``data/players.csv``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Protocol

import pandas as pd

from tesoura.errors import EmptyRosterError
from tesoura.utils import canonical_name, display_name

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Player:
    """A directory entry.

    Attributes:
        handle: Display handle as stored by the roster store.
        key: Case-insensitive identity key (``canonical_name(handle)``).
        skill: Skill score used for squad balancing.
        active: Inactive players are hidden from ``active_players``.
        created_at: Registration timestamp; newer players lose exact ties.
    """

    handle: str
    key: str
    skill: int = 0
    active: bool = True
    created_at: datetime = EPOCH


def make_player(
    handle: str,
    skill: int = 0,
    *,
    active: bool = True,
    created_at: datetime | None = None,
) -> Player:
    return Player(
        handle=display_name(handle),
        key=canonical_name(handle),
        skill=int(skill),
        active=bool(active),
        created_at=created_at or EPOCH,
    )


class PlayerDirectory(Protocol):
    def active_players(self) -> List[Player]:
        raise NotImplementedError


def index_players(players: List[Player]) -> Dict[str, Player]:
    """Map canonical key -> player; first entry wins on duplicate keys."""

    out: Dict[str, Player] = {}
    for p in players:
        out.setdefault(p.key, p)
    return out


_COLUMNS = ["PlayerName", "Skill", "Active", "CreatedAt"]


def _parse_created_at(value) -> datetime:
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if ts is None or pd.isna(ts):
        return EPOCH
    return ts.to_pydatetime()


def players_from_frame(df: pd.DataFrame) -> List[Player]:
    """Normalise a players table (``PlayerName, Skill, Active, CreatedAt``).

    Column names are matched case-insensitively. Missing ``Active`` means
    active, missing ``Skill`` means 0 and a missing/unparseable
    ``CreatedAt`` falls back to the epoch.
    """

    lower_to_expected = {c.lower(): c for c in _COLUMNS}
    for col in list(df.columns):
        key = str(col).strip().lower()
        if key in lower_to_expected and lower_to_expected[key] not in df.columns:
            df = df.rename(columns={col: lower_to_expected[key]})
    if "PlayerName" not in df.columns:
        raise EmptyRosterError("players table needs a 'PlayerName' column")

    df = df.copy()
    for col, default in (("Skill", 0), ("Active", 1), ("CreatedAt", "")):
        if col not in df.columns:
            df[col] = default

    df["PlayerName"] = df["PlayerName"].fillna("").astype(str).map(display_name)
    df = df[df["PlayerName"] != ""]
    df["Skill"] = pd.to_numeric(df["Skill"], errors="coerce").fillna(0).astype(int)
    df["Active"] = pd.to_numeric(df["Active"], errors="coerce").fillna(1).astype(int)

    players: List[Player] = []
    seen: set[str] = set()
    for row in df.itertuples(index=False):
        key = canonical_name(row.PlayerName)
        if not key or key in seen:
            continue
        seen.add(key)
        players.append(
            Player(
                handle=row.PlayerName,
                key=key,
                skill=int(row.Skill),
                active=int(row.Active) != 0,
                created_at=_parse_created_at(row.CreatedAt),
            )
        )
    return players


class CsvPlayerDirectory:
    """Player directory backed by ``players.csv``; re-read on every call."""

    def __init__(self, path: str | Path = "data/players.csv"):
        self.path = Path(path)

    def all_players(self) -> List[Player]:
        if not self.path.exists():
            raise EmptyRosterError(f"player directory not found: {self.path}")
        try:
            df = pd.read_csv(self.path, dtype=str, comment="#")
        except (OSError, ValueError) as exc:
            raise EmptyRosterError(f"player directory not readable: {self.path} ({exc})") from exc
        return players_from_frame(df)

    def active_players(self) -> List[Player]:
        players = [p for p in self.all_players() if p.active]
        return sorted(players, key=lambda p: p.key)


__all__ = [
    "EPOCH",
    "Player",
    "PlayerDirectory",
    "CsvPlayerDirectory",
    "make_player",
    "index_players",
    "players_from_frame",
]
