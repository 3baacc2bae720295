"""
File Partitioner.

Finds the CSV shards for each entity. Shards are named
``<prefix>_<shardIndex>_<shardCount>.csv`` and the prefix match is
case-insensitive, so ``Person_0_0.csv`` and ``person_0_0.csv`` both belong
to the ``person`` prefix.
"""

import re
from pathlib import Path
from typing import Dict, List, Mapping

from loguru import logger


def shard_pattern(prefix: str) -> "re.Pattern":
    return re.compile(rf"^{re.escape(prefix)}_\d+_\d+\.csv$", re.IGNORECASE)


def discover_files(root: Path, prefixes: Mapping[str, str]) -> Dict[str, List[Path]]:
    """
    Match the files directly under ``root`` against each entity's prefix.

    Args:
        root: Directory holding the dataset shards.
        prefixes: Entity key (vertex label, property key or edge triple) → prefix.

    Returns:
        Entity key → sorted list of matching files. Keys without files map
        to an empty list.

    Raises:
        FileNotFoundError: if ``root`` is not a directory.
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Input directory not found: {root}")

    names = sorted(p for p in root.iterdir() if p.is_file())
    found: Dict[str, List[Path]] = {}
    for key, prefix in prefixes.items():
        pattern = shard_pattern(prefix)
        found[key] = [p for p in names if pattern.match(p.name)]
        if not found[key]:
            logger.debug(f"No files for {key} (prefix '{prefix}') in {root}")
    return found
