import logging
import random
import time
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

import duckdb
import pandas as pd

from tabulation.ballots import BallotSet, Candidate, Contest

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("ballots_long", "candidates")


def connect_with_retry(
    db_path: str, read_only: bool = True, max_retries: int = 3
) -> duckdb.DuckDBPyConnection:
    """
    Open a DuckDB connection, backing off while another process holds the lock.

    Args:
        db_path: Path to DuckDB file, or ":memory:"
        read_only: Whether to open in read-only mode (avoids locks)
        max_retries: Maximum number of connection attempts

    Returns:
        DuckDB connection
    """
    for attempt in range(max_retries):
        try:
            if read_only and Path(db_path).exists():
                conn = duckdb.connect(db_path, read_only=True)
                logger.debug(f"Opened read-only connection to {db_path}")
            else:
                conn = duckdb.connect(db_path)
                logger.debug(f"Opened read-write connection to {db_path}")
            return conn

        except duckdb.IOException as e:
            if "Conflicting lock" in str(e) and attempt < max_retries - 1:
                # Exponential backoff with jitter
                wait_time = (2**attempt) + random.uniform(0, 1)  # nosec B311
                logger.warning(
                    f"Database locked, retrying in {wait_time:.2f}s (attempt {attempt + 1}/{max_retries})"
                )
                time.sleep(wait_time)
                continue
            logger.error(f"Failed to connect to database after {attempt + 1} attempts: {e}")
            raise

    raise duckdb.IOException(
        f"Could not establish database connection after {max_retries} attempts"
    )


class BallotDatabase:
    """
    Reads normalized ballots from a DuckDB file produced by ingestion.

    Expects a ``candidates`` table (candidate_id, candidate_name) and a
    ``ballots_long`` table (BallotID, candidate_id, rank_position, and
    optionally has_vote), one row per marked rank.
    """

    def __init__(self, db_path: Optional[str] = None, read_only: bool = True):
        """
        Initialize database access.

        Args:
            db_path: Path to DuckDB file. If None, uses in-memory database.
            read_only: Whether to open read-only (recommended for tabulation)
        """
        self.db_path = db_path or ":memory:"
        self.read_only = read_only
        self._conn = None

    @property
    def conn(self) -> duckdb.DuckDBPyConnection:
        """Get or create a database connection on-demand."""
        if self._conn is None:
            self._conn = connect_with_retry(self.db_path, self.read_only)
        return self._conn

    def query(self, sql: str, params: Optional[list] = None) -> pd.DataFrame:
        """Execute a SQL query and return results as DataFrame."""
        if params:
            return self.conn.execute(sql, params).fetchdf()
        return self.conn.execute(sql).fetchdf()

    def table_exists(self, table_name: str) -> bool:
        result = self.conn.execute(
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
            [table_name],
        ).fetchone()
        return result[0] > 0

    def missing_tables(self) -> List[str]:
        return [t for t in REQUIRED_TABLES if not self.table_exists(t)]

    def load_candidates(self, contest: Optional[Contest] = None) -> List[Candidate]:
        frame = self.query(
            "SELECT candidate_id, candidate_name FROM candidates ORDER BY candidate_id"
        )
        logger.info(f"Loaded {len(frame)} candidates")
        return [
            Candidate(
                candidate_id=int(row.candidate_id),
                name=str(row.candidate_name),
                contest=contest,
            )
            for row in frame.itertuples(index=False)
        ]

    def load_ballot_rows(self) -> pd.DataFrame:
        """Get all marked ballot rows in ballot and rank order."""
        columns = set(self.query("DESCRIBE ballots_long")["column_name"])
        where = "WHERE CAST(has_vote AS INTEGER) = 1" if "has_vote" in columns else ""
        return self.query(
            f"""
            SELECT
                BallotID,
                candidate_id,
                rank_position
            FROM ballots_long
            {where}
            ORDER BY BallotID, rank_position
        """
        )

    def load_ballot_set(self, contest: Optional[Contest] = None) -> BallotSet:
        """
        Build a validated BallotSet from the database tables.

        Raises:
            InvalidBallot: if any ballot row is malformed
        """
        candidates = self.load_candidates(contest)
        rows = self.load_ballot_rows()
        logger.info(f"Loaded {len(rows)} ballot rows")
        return BallotSet.from_long_frame(rows, candidates, contest=contest)

    def close(self):
        """Close database connection."""
        if self._conn:
            try:
                self._conn.close()
                logger.debug(f"Closed database connection to {self.db_path}")
            finally:
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


@contextmanager
def temporary_connection():
    """In-memory DuckDB connection that is always closed."""
    conn = duckdb.connect(":memory:")
    try:
        yield conn
    finally:
        conn.close()
