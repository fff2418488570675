"""PostgreSQL repository implementation for data persistence."""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Tuple
import psycopg2
from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)
from trending.domain.filters import LanguageEquals, RepositoryFilter, TextSearch
from trending.domain.models import Repository, Snapshot, TimeRange
from trending.domain.repository_interface import IRepositoryStorage


logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS repositories (
        id BIGSERIAL PRIMARY KEY,
        github_id BIGINT NOT NULL,
        owner VARCHAR(255) NOT NULL,
        name VARCHAR(255) NOT NULL,
        full_name VARCHAR(511) NOT NULL,
        url TEXT NOT NULL,
        description TEXT,
        language VARCHAR(255),
        stargazers_count INTEGER NOT NULL DEFAULT 0,
        forks_count INTEGER NOT NULL DEFAULT 0,
        open_issues_count INTEGER,
        topics TEXT[] NOT NULL DEFAULT '{}',
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL,
        last_synced_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        CONSTRAINT repositories_github_id_unique UNIQUE (github_id),
        CONSTRAINT repositories_full_name_unique UNIQUE (full_name)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_repositories_stargazers_count
    ON repositories(stargazers_count DESC)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_repositories_last_synced_at
    ON repositories(last_synced_at DESC)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_repositories_language
    ON repositories(language)
    """,
    """
    CREATE TABLE IF NOT EXISTS repository_snapshots (
        id BIGSERIAL PRIMARY KEY,
        repository_id BIGINT NOT NULL REFERENCES repositories(id) ON DELETE CASCADE,
        period VARCHAR(16) NOT NULL,
        period_start_date TIMESTAMPTZ NOT NULL,
        stars_at_start INTEGER NOT NULL,
        stars_at_end INTEGER NOT NULL,
        forks_at_start INTEGER NOT NULL,
        forks_at_end INTEGER NOT NULL,
        trending_score DOUBLE PRECISION NOT NULL DEFAULT 0,
        snapshot_date TIMESTAMPTZ NOT NULL,
        CONSTRAINT repository_snapshots_window_unique
            UNIQUE (repository_id, period, period_start_date)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_repository_snapshots_period_date
    ON repository_snapshots(period, snapshot_date DESC)
    """,
)

REPOSITORY_COLUMNS = """
    r.id AS repo_id, r.github_id, r.owner, r.name, r.url, r.description,
    r.language, r.stargazers_count, r.forks_count, r.open_issues_count,
    r.topics, r.created_at, r.updated_at, r.last_synced_at
"""

SNAPSHOT_COLUMNS = """
    s.id AS snapshot_id, s.repository_id, s.period, s.period_start_date,
    s.stars_at_start, s.stars_at_end, s.forks_at_start, s.forks_at_end,
    s.trending_score, s.snapshot_date
"""


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def compile_filter(repository_filter: RepositoryFilter, alias: str = "r") -> Tuple[str, Dict[str, Any]]:
    """Translate a repository filter into a SQL condition and its parameters.

    Returns:
        ``("TRUE", {})`` for an empty filter
    """
    if repository_filter.is_empty:
        return "TRUE", {}

    clauses = []
    params: Dict[str, Any] = {}

    for index, predicate in enumerate(repository_filter.predicates):
        if isinstance(predicate, LanguageEquals):
            key = f"language_{index}"
            clauses.append(f"{alias}.language = %({key})s")
            params[key] = predicate.language
        elif isinstance(predicate, TextSearch):
            pattern_key = f"search_pattern_{index}"
            topic_key = f"search_topic_{index}"
            columns = ("name", "full_name", "description", "owner")
            matches = [f"{alias}.{column} ILIKE %({pattern_key})s" for column in columns]
            matches.append(f"%({topic_key})s = ANY({alias}.topics)")
            clauses.append("(" + " OR ".join(matches) + ")")
            params[pattern_key] = f"%{_escape_like(predicate.text)}%"
            params[topic_key] = predicate.text.lower()
        else:
            raise TypeError(f"Unsupported filter predicate: {predicate!r}")

    return " AND ".join(clauses), params


def row_to_repository(row: Dict[str, Any]) -> Repository:
    return Repository(
        repo_id=row["repo_id"],
        github_id=row["github_id"],
        owner=row["owner"],
        name=row["name"],
        url=row["url"],
        description=row["description"],
        language=row["language"],
        stargazers_count=row["stargazers_count"],
        forks_count=row["forks_count"],
        open_issues_count=row["open_issues_count"],
        topics=tuple(row["topics"] or ()),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        last_synced_at=row["last_synced_at"]
    )


def row_to_snapshot(row: Dict[str, Any]) -> Snapshot:
    return Snapshot(
        snapshot_id=row["snapshot_id"],
        repository_id=row["repository_id"],
        period=TimeRange(row["period"]),
        period_start_date=row["period_start_date"],
        stars_at_start=row["stars_at_start"],
        stars_at_end=row["stars_at_end"],
        forks_at_start=row["forks_at_start"],
        forks_at_end=row["forks_at_end"],
        trending_score=float(row["trending_score"]),
        snapshot_date=row["snapshot_date"]
    )


MAX_CONNECTIONS = 10


@retry(
    retry=retry_if_exception_type(psycopg2.OperationalError),
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    reraise=True
)
def create_pool(connection_string: str, max_connections: int = MAX_CONNECTIONS) -> ThreadedConnectionPool:
    """Open the connection pool, retrying while the server is unreachable."""
    return ThreadedConnectionPool(1, max_connections, connection_string)


class PostgresTrendingStorage(IRepositoryStorage):
    """PostgreSQL implementation of repository and snapshot storage.

    Every call borrows a pooled connection and runs in its own transaction,
    so the storage can be shared between threads. Snapshot windows are
    protected by a unique constraint, so concurrent syncs cannot create two
    snapshots for the same repository, period and window.
    """

    def __init__(self, connection_string: str, max_connections: int = MAX_CONNECTIONS):
        """Initialize PostgreSQL connection pool.

        Args:
            connection_string: PostgreSQL connection string
            max_connections: Upper bound of simultaneously open connections
        """
        self._pool = create_pool(connection_string, max_connections)
        logger.info("Connected to PostgreSQL database")

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        """Borrow a live connection; connections found closed are discarded."""
        conn = self._pool.getconn()
        if conn.closed:
            logger.warning("Discarding closed PostgreSQL connection")
            self._pool.putconn(conn, close=True)
            conn = self._pool.getconn()
        try:
            yield conn
        finally:
            self._pool.putconn(conn, close=bool(conn.closed))

    def _execute(self, query: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run one statement in its own transaction and return its rows."""
        with self._connection() as conn:
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            try:
                cursor.execute(query, params)
                rows = cursor.fetchall() if cursor.description else []
                conn.commit()
                return rows
            except Exception as e:
                # A dropped connection has no transaction left to roll back
                if not conn.closed:
                    conn.rollback()
                logger.error(f"Error executing query: {e}")
                raise
            finally:
                cursor.close()

    def create_schema(self) -> None:
        """Create tables and indexes if they do not exist yet."""
        with self._connection() as conn:
            cursor = conn.cursor()
            try:
                for statement in SCHEMA_STATEMENTS:
                    cursor.execute(statement)
                conn.commit()
                logger.info("Database schema created successfully")
            except Exception as e:
                if not conn.closed:
                    conn.rollback()
                logger.error(f"Error creating schema: {e}")
                raise
            finally:
                cursor.close()

    def find_repository_by_github_id(self, github_id: int) -> Optional[Repository]:
        rows = self._execute(
            f"SELECT {REPOSITORY_COLUMNS} FROM repositories r WHERE r.github_id = %(github_id)s",
            {"github_id": github_id}
        )
        return row_to_repository(rows[0]) if rows else None

    def find_repository_by_full_name(self, full_name: str) -> Optional[Repository]:
        rows = self._execute(
            f"SELECT {REPOSITORY_COLUMNS} FROM repositories r WHERE r.full_name = %(full_name)s",
            {"full_name": full_name}
        )
        return row_to_repository(rows[0]) if rows else None

    def upsert_repository(self, repository: Repository) -> Repository:
        """Insert or fully replace a repository using ON CONFLICT on github_id."""
        query = f"""
            WITH upserted AS (
                INSERT INTO repositories (
                    github_id, owner, name, full_name, url, description, language,
                    stargazers_count, forks_count, open_issues_count, topics,
                    created_at, updated_at, last_synced_at
                )
                VALUES (
                    %(github_id)s, %(owner)s, %(name)s, %(full_name)s, %(url)s,
                    %(description)s, %(language)s, %(stargazers_count)s,
                    %(forks_count)s, %(open_issues_count)s, %(topics)s,
                    %(created_at)s, %(updated_at)s,
                    COALESCE(%(last_synced_at)s, CURRENT_TIMESTAMP)
                )
                ON CONFLICT (github_id)
                DO UPDATE SET
                    owner = EXCLUDED.owner,
                    name = EXCLUDED.name,
                    full_name = EXCLUDED.full_name,
                    url = EXCLUDED.url,
                    description = EXCLUDED.description,
                    language = EXCLUDED.language,
                    stargazers_count = EXCLUDED.stargazers_count,
                    forks_count = EXCLUDED.forks_count,
                    open_issues_count = EXCLUDED.open_issues_count,
                    topics = EXCLUDED.topics,
                    created_at = EXCLUDED.created_at,
                    updated_at = EXCLUDED.updated_at,
                    last_synced_at = EXCLUDED.last_synced_at
                RETURNING *
            )
            SELECT {REPOSITORY_COLUMNS} FROM upserted r
        """
        rows = self._execute(query, {
            "github_id": repository.github_id,
            "owner": repository.owner,
            "name": repository.name,
            "full_name": repository.full_name,
            "url": repository.url,
            "description": repository.description,
            "language": repository.language,
            "stargazers_count": repository.stargazers_count,
            "forks_count": repository.forks_count,
            "open_issues_count": repository.open_issues_count,
            "topics": list(repository.topics),
            "created_at": repository.created_at,
            "updated_at": repository.updated_at,
            "last_synced_at": repository.last_synced_at,
        })
        return row_to_repository(rows[0])

    def find_snapshot(
        self,
        repository_id: int,
        period: TimeRange,
        period_start_date: datetime
    ) -> Optional[Snapshot]:
        rows = self._execute(
            f"""
            SELECT {SNAPSHOT_COLUMNS} FROM repository_snapshots s
            WHERE s.repository_id = %(repository_id)s
              AND s.period = %(period)s
              AND s.period_start_date = %(period_start_date)s
            """,
            {
                "repository_id": repository_id,
                "period": period.value,
                "period_start_date": period_start_date,
            }
        )
        return row_to_snapshot(rows[0]) if rows else None

    def create_snapshot(self, snapshot: Snapshot) -> Snapshot:
        """Insert a snapshot; a concurrent insert for the same window wins.

        When another writer created the window first, the stored row is
        returned unchanged so its anchor values are preserved.
        """
        rows = self._execute(
            f"""
            WITH inserted AS (
                INSERT INTO repository_snapshots (
                    repository_id, period, period_start_date,
                    stars_at_start, stars_at_end, forks_at_start, forks_at_end,
                    trending_score, snapshot_date
                )
                VALUES (
                    %(repository_id)s, %(period)s, %(period_start_date)s,
                    %(stars_at_start)s, %(stars_at_end)s, %(forks_at_start)s,
                    %(forks_at_end)s, %(trending_score)s, %(snapshot_date)s
                )
                ON CONFLICT (repository_id, period, period_start_date) DO NOTHING
                RETURNING *
            )
            SELECT {SNAPSHOT_COLUMNS} FROM inserted s
            """,
            {
                "repository_id": snapshot.repository_id,
                "period": snapshot.period.value,
                "period_start_date": snapshot.period_start_date,
                "stars_at_start": snapshot.stars_at_start,
                "stars_at_end": snapshot.stars_at_end,
                "forks_at_start": snapshot.forks_at_start,
                "forks_at_end": snapshot.forks_at_end,
                "trending_score": snapshot.trending_score,
                "snapshot_date": snapshot.snapshot_date,
            }
        )
        if rows:
            return row_to_snapshot(rows[0])

        logger.warning(
            f"Snapshot for repository {snapshot.repository_id} ({snapshot.period.value}, "
            f"{snapshot.period_start_date.isoformat()}) was created concurrently"
        )
        return self.find_snapshot(snapshot.repository_id, snapshot.period, snapshot.period_start_date)

    def update_snapshot(self, snapshot: Snapshot) -> Snapshot:
        rows = self._execute(
            f"""
            WITH updated AS (
                UPDATE repository_snapshots
                SET stars_at_end = %(stars_at_end)s,
                    forks_at_end = %(forks_at_end)s,
                    trending_score = %(trending_score)s,
                    snapshot_date = %(snapshot_date)s
                WHERE id = %(snapshot_id)s
                RETURNING *
            )
            SELECT {SNAPSHOT_COLUMNS} FROM updated s
            """,
            {
                "snapshot_id": snapshot.snapshot_id,
                "stars_at_end": snapshot.stars_at_end,
                "forks_at_end": snapshot.forks_at_end,
                "trending_score": snapshot.trending_score,
                "snapshot_date": snapshot.snapshot_date,
            }
        )
        if not rows:
            raise LookupError(f"Snapshot {snapshot.snapshot_id} does not exist")
        return row_to_snapshot(rows[0])

    def find_snapshots(
        self,
        period: TimeRange,
        repository_filter: RepositoryFilter
    ) -> List[Tuple[Snapshot, Repository]]:
        condition, params = compile_filter(repository_filter)
        params["period"] = period.value
        rows = self._execute(
            f"""
            SELECT {SNAPSHOT_COLUMNS}, {REPOSITORY_COLUMNS}
            FROM repository_snapshots s
            JOIN repositories r ON r.id = s.repository_id
            WHERE s.period = %(period)s AND {condition}
            ORDER BY s.snapshot_date DESC, s.id DESC
            """,
            params
        )
        return [(row_to_snapshot(row), row_to_repository(row)) for row in rows]

    def find_repositories(
        self,
        repository_filter: RepositoryFilter,
        limit: int,
        offset: int = 0
    ) -> List[Repository]:
        condition, params = compile_filter(repository_filter)
        params.update({"limit": limit, "offset": offset})
        rows = self._execute(
            f"""
            SELECT {REPOSITORY_COLUMNS} FROM repositories r
            WHERE {condition}
            ORDER BY r.stargazers_count DESC, r.full_name ASC
            LIMIT %(limit)s OFFSET %(offset)s
            """,
            params
        )
        return [row_to_repository(row) for row in rows]

    def count_repositories(self, repository_filter: RepositoryFilter) -> int:
        condition, params = compile_filter(repository_filter)
        rows = self._execute(
            f"SELECT COUNT(*) AS total FROM repositories r WHERE {condition}",
            params
        )
        return rows[0]["total"]

    def latest_sync_time(self) -> Optional[datetime]:
        rows = self._execute("SELECT MAX(last_synced_at) AS latest FROM repositories")
        return rows[0]["latest"] if rows else None

    def close(self) -> None:
        """Close every pooled connection."""
        if not self._pool.closed:
            self._pool.closeall()
            logger.info("Closed PostgreSQL connections")
