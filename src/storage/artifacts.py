"""
Export of tabulation results as columnar artifacts.

Rounds and meta rows are validated against the published row shapes, loaded
into DuckDB tables and copied out as parquet. The manifest records each
artifact's sha256 next to the run's summary stats, so downstream consumers
can tell whether a cached artifact still matches.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from tabulation.results import (
    TabulationResult,
    validate_meta_row,
    validate_round_row,
    validate_stats,
)

from .database import temporary_connection

logger = logging.getLogger(__name__)

ARTIFACT_VERSION = "1.0.0"
MANIFEST_KEY = f"stv_rounds@{ARTIFACT_VERSION}"
ROUNDS_FILE = "stv_rounds.parquet"
META_FILE = "stv_meta.parquet"


def sha256(path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def export_tabulation(result: TabulationResult, output_dir) -> Dict[str, str]:
    """
    Write round and meta rows to parquet files.

    Args:
        result: Completed tabulation
        output_dir: Directory for the parquet files (created if missing)

    Returns:
        Dictionary with the artifact paths and their sha256 hashes
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)
    records = result.to_records()

    round_rows = [
        (row["round"], row["candidate_name"], row["votes"], row["status"])
        for row in map(validate_round_row, records["rounds"])
    ]
    meta_rows = [
        (
            row["round"],
            row["quota"],
            row["exhausted"],
            row["elected_this_round"],
            row["eliminated_this_round"],
        )
        for row in map(validate_meta_row, records["meta"])
    ]

    rounds_path = output_path / ROUNDS_FILE
    meta_path = output_path / META_FILE

    with temporary_connection() as conn:
        conn.execute(
            """
            CREATE TABLE stv_rounds (
                round INTEGER,
                candidate_name VARCHAR,
                votes DOUBLE,
                status VARCHAR
            )
        """
        )
        conn.execute(
            """
            CREATE TABLE stv_meta (
                round INTEGER,
                quota DOUBLE,
                exhausted DOUBLE,
                elected_this_round VARCHAR[],
                eliminated_this_round VARCHAR[]
            )
        """
        )
        if round_rows:
            conn.executemany("INSERT INTO stv_rounds VALUES (?, ?, ?, ?)", round_rows)
        if meta_rows:
            conn.executemany("INSERT INTO stv_meta VALUES (?, ?, ?, ?, ?)", meta_rows)

        # Escape quotes for SQL string literals
        rounds_literal = str(rounds_path).replace("'", "''")
        meta_literal = str(meta_path).replace("'", "''")
        conn.execute(
            f"COPY (SELECT * FROM stv_rounds ORDER BY round, candidate_name) "
            f"TO '{rounds_literal}' (FORMAT 'parquet')"
        )
        conn.execute(
            f"COPY (SELECT * FROM stv_meta ORDER BY round) "
            f"TO '{meta_literal}' (FORMAT 'parquet')"
        )

    logger.info(f"Exported STV rounds to: {rounds_path}")
    logger.info(f"Exported STV meta to: {meta_path}")
    return {
        "stv_rounds": str(rounds_path),
        "stv_meta": str(meta_path),
        "stv_rounds_hash": sha256(rounds_path),
        "stv_meta_hash": sha256(meta_path),
    }


def update_manifest(
    manifest_path,
    result: TabulationResult,
    artifacts: Dict[str, str],
    created_at: Optional[datetime] = None,
) -> Dict:
    """
    Record the run's stats and artifact hashes in a JSON manifest.

    Other sections of an existing manifest are preserved.

    Returns:
        The manifest section that was written
    """
    manifest_file = Path(manifest_path)
    manifest = {}
    if manifest_file.exists():
        with open(manifest_file, "r") as f:
            manifest = json.load(f)

    section = {
        "stats": validate_stats(result.to_records()["stats"]),
        "stv_rounds_hash": artifacts["stv_rounds_hash"],
        "stv_meta_hash": artifacts["stv_meta_hash"],
        "version": ARTIFACT_VERSION,
        "created_at": (created_at or datetime.now(timezone.utc)).isoformat(),
    }
    manifest[MANIFEST_KEY] = section

    manifest_file.parent.mkdir(parents=True, exist_ok=True)
    with open(manifest_file, "w") as f:
        json.dump(manifest, f, indent=2)

    logger.info(f"Updated manifest: {manifest_file}")
    return section
