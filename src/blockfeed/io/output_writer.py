from __future__ import annotations

import json
from pathlib import Path

from blockfeed.io.schemas import state_to_dict
from blockfeed.services.feed_state import FeedState


def write_snapshot_json(state: FeedState, out_dir: str, filename: str = "snapshot.json") -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(state_to_dict(state), f, indent=2)

    return str(out_path)
