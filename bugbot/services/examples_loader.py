"""
Examples Loader
===============
Reads previously accepted bug reports used as few-shot style examples.

Source format: JSONL, one report object per line. Blank lines, malformed
lines and non-object lines are skipped. A missing or unreadable file means
"no examples", never an error: examples improve style but are optional.
"""
import json
import logging
import os
from typing import Any, Dict, List, Optional

from bugbot.core.config import EXAMPLES_FILE, MAX_EXAMPLES

logger = logging.getLogger(__name__)


def load_examples(path: Optional[str] = None, max_examples: int = MAX_EXAMPLES) -> List[Dict[str, Any]]:
    """
    Load up to ``max_examples`` report records from a JSONL file.

    Parameters
    ----------
    path : str or None
        JSONL file path. Defaults to EXAMPLES_FILE.
    max_examples : int
        Maximum number of records returned, in file order.
    """
    path = path or EXAMPLES_FILE
    if max_examples <= 0 or not os.path.exists(path):
        return []

    examples: List[Dict[str, Any]] = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if len(examples) >= max_examples:
                    break
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                except ValueError:
                    logger.debug("Skipping malformed example at %s:%d", path, line_number)
                    continue
                if isinstance(record, dict):
                    examples.append(record)
    except OSError as e:
        logger.warning("Could not read examples file %s: %s", path, e)
        return []

    return examples
