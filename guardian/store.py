"""
Salvium Guardian - Bounty Store

Durable JSON document mapping escrow id -> bounty record. The whole document
is rewritten on every mutation (temp file + rename), so a crash leaves either
the previous or the new state on disk, never a partial one.
"""

import json
import logging
from pathlib import Path
from typing import Dict

from .escrow_types import BountyRecord

log = logging.getLogger("guardian.store")


class BountyStore:
    """
    JSON file persistence for finalized bounties.

    Usage:
        store = BountyStore(Path("/data/bounties.json"))
        records = store.load()
        records[record.escrow_id] = record
        store.save(records)
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, BountyRecord]:
        """Load all records. A missing file is an empty registry."""
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        records = {
            escrow_id: BountyRecord.from_dict(info, escrow_id=escrow_id)
            for escrow_id, info in data.items()
        }
        log.info(f"Loaded {len(records)} bounties from {self.path}")
        return records

    def save(self, records: Dict[str, BountyRecord]):
        """Persist to disk (atomic write via temp file + rename)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {escrow_id: rec.to_dict() for escrow_id, rec in records.items()}
        tmp_file = self.path.with_suffix(".tmp")
        with open(tmp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp_file.replace(self.path)
