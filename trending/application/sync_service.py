"""Sync service turning GitHub search results into trend snapshots."""
import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, List, Optional, Sequence
from trending.domain.clock import utc_now
from trending.domain.errors import PerRecordError
from trending.domain.github_interface import ITrendingSource
from trending.domain.models import PeriodSyncResult, Repository, SyncResult, TimeRange
from trending.domain.repository_interface import IRepositoryStorage
from trending.domain.scoring import advance_snapshot, open_snapshot, period_start_date


logger = logging.getLogger(__name__)


class TrendingSyncService:
    """Application service for syncing trending repositories.

    Processes every period one after the other and, within a period, every
    candidate one after the other. A failing candidate only costs its own
    record and a failing period only costs its own counters. Storage calls
    block, so each record is written from the default executor and the
    event loop stays free for other requests.
    """

    def __init__(
        self,
        source: ITrendingSource,
        storage: IRepositoryStorage,
        time_ranges: Sequence[TimeRange] = tuple(TimeRange),
        clock: Callable[[], datetime] = utc_now
    ):
        """Initialize sync service.

        Args:
            source: Source of trending candidates
            storage: Repository and snapshot storage implementation
            time_ranges: Periods to sync, in order
            clock: Returns the current time; read once per run for the
                snapshot windows and once per record for its sync stamp
        """
        self._source = source
        self._storage = storage
        self._time_ranges = list(time_ranges)
        self._clock = clock

    async def sync(self) -> SyncResult:
        """Sync every period and report per-period counters.

        Returns:
            SyncResult stamped with the run's start time
        """
        started = time.monotonic()
        now = self._clock()
        results: List[PeriodSyncResult] = []

        logger.info(f"Starting sync of trending repositories for {len(self._time_ranges)} time ranges")

        for time_range in self._time_ranges:
            results.append(await self.sync_time_range(time_range, now))

        duration_ms = int((time.monotonic() - started) * 1000)
        result = SyncResult(synced_at=now, duration_ms=duration_ms, time_ranges=results)

        logger.info(
            f"Sync completed in {duration_ms / 1000:.2f} seconds "
            f"with {result.total_errors} errors"
        )
        return result

    async def sync_time_range(self, time_range: TimeRange, now: datetime) -> PeriodSyncResult:
        """Sync the candidates of one period.

        Never raises: a source failure is reported as an all-errored period.
        """
        candidates: Optional[List[Repository]] = None
        synced = created = updated = errors = 0

        try:
            candidates = await self._source.fetch_trending_candidates(time_range)
            logger.info(f"Fetched {len(candidates)} {time_range.value} candidates")
            loop = asyncio.get_running_loop()

            for record in candidates:
                try:
                    if await loop.run_in_executor(None, self._sync_record, record, time_range, now):
                        created += 1
                    else:
                        updated += 1
                    synced += 1
                except PerRecordError as e:
                    errors += 1
                    if e.created is True:
                        created += 1
                    elif e.created is False:
                        updated += 1
                    logger.error(f"{e} (cause: {e.cause!r})")
                    # Continue with next repository

        except Exception as e:
            logger.error(f"Error syncing {time_range.value} repos: {e}")
            return PeriodSyncResult(
                time_range=time_range,
                errors=len(candidates) if candidates is not None else 0
            )

        result = PeriodSyncResult(
            time_range=time_range,
            synced=synced,
            created=created,
            updated=updated,
            errors=errors
        )
        logger.info(
            f"{time_range.value}: synced {synced} repos "
            f"({created} created, {updated} updated, {errors} errors)"
        )
        return result

    def _sync_record(self, record: Repository, time_range: TimeRange, now: datetime) -> bool:
        """Upsert one repository and refresh its snapshot.

        Returns:
            True when the repository row was created, False when updated

        Raises:
            PerRecordError: When any storage step fails
        """
        try:
            existing = self._storage.find_repository_by_github_id(record.github_id)
            repository = self._storage.upsert_repository(record.synced_at(self._clock()))
        except Exception as e:
            raise PerRecordError(record.full_name, "upsert", e) from e

        created = existing is None

        try:
            self._refresh_snapshot(repository, time_range, now)
        except Exception as e:
            raise PerRecordError(record.full_name, "snapshot", e, created=created) from e

        return created

    def _refresh_snapshot(self, repository: Repository, time_range: TimeRange, now: datetime) -> None:
        period_start = period_start_date(time_range, now)
        existing = self._storage.find_snapshot(repository.repo_id, time_range, period_start)

        if existing is not None:
            self._storage.update_snapshot(
                advance_snapshot(existing, repository.stargazers_count, repository.forks_count, now)
            )
        else:
            self._storage.create_snapshot(
                open_snapshot(
                    repository.repo_id,
                    time_range,
                    period_start,
                    repository.stargazers_count,
                    repository.forks_count,
                    now
                )
            )

    async def close(self) -> None:
        """Close connections."""
        await self._source.close()
