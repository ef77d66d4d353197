import hashlib
import os
from pathlib import Path

CACHE_DIR = Path(os.environ.get("PORTFOLIO_MCTS_CACHE", "data_cache"))


def key_path(prefix: str, key: str, suffix: str = ".csv", cache_dir: Path = None) -> Path:
    h = hashlib.sha256(key.encode()).hexdigest()[:16]
    return Path(cache_dir or CACHE_DIR) / f"{prefix}_{h}{suffix}"
