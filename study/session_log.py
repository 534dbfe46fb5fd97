"""Session logging -- writes a JSONL line after each review session."""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List


def log_session(
    log_path: Path,
    summary: Dict,
    gradings: List[Dict],
) -> Dict:
    """
    Append a session record to the JSONL log file.

    Args:
        log_path: Path to the session log file
        summary:  Summary dict from ReviewSession.summary()
        gradings: Per-grading dicts with card_id, quality, interval_days, ...

    Returns:
        The session record dict that was written.
    """
    histogram = {str(q): 0 for q in range(6)}
    for g in gradings:
        q = str(g.get('quality', 0))
        if q in histogram:
            histogram[q] += 1

    avg_quality = 0.0
    avg_interval = 0.0
    if gradings:
        avg_quality = round(sum(g.get('quality', 0) for g in gradings) / len(gradings), 2)
        avg_interval = round(sum(g.get('interval_days', 0) for g in gradings) / len(gradings), 2)

    record = {
        'timestamp': datetime.now().isoformat(),
        'user_id': summary.get('user_id'),
        'mode': summary.get('mode', 'flashcard'),
        'cards_total': summary.get('total', 0),
        'cards_graded': summary.get('graded', 0),
        'passed': summary.get('passed', 0),
        'failed': summary.get('failed', 0),
        'skipped': summary.get('skipped', 0),
        'unsaved': summary.get('unsaved', 0),
        'elapsed_seconds': summary.get('elapsed_seconds', 0.0),
        'avg_quality': avg_quality,
        'avg_interval_days': avg_interval,
        'quality_histogram': histogram,
        'card_details': gradings,
    }

    log_path = Path(log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with open(log_path, 'a', encoding='utf-8') as f:
        f.write(json.dumps(record, ensure_ascii=False) + '\n')

    return record


def read_session_log(log_path: Path) -> List[Dict]:
    """Read all session records from the log file."""
    records = []
    log_path = Path(log_path)
    if not log_path.exists():
        return records
    with open(log_path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if line:
                records.append(json.loads(line))
    return records
