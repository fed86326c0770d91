"""Engine wiring.

``init_engine`` connects to Cassandra (and Redis when enabled), builds the
components and returns them in an ``Engine``. ``engine_lifespan`` does the
same for a FastAPI application and exposes the orchestrator on
``app.state`` for ``get_orchestrator``.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cyberlearn.config import Settings, get_settings
from cyberlearn.core.clock import Clock, utc_now
from cyberlearn.core.database import init_async_cassandra, shutdown_async_cassandra
from cyberlearn.core.locks import UserLockManager
from cyberlearn.core.logging import configure_structlog, get_logger
from cyberlearn.core.redis import init_redis, shutdown_redis
from cyberlearn.gamification.stats import ProfileStatsEngine
from cyberlearn.progress.aggregator import EnrollmentAggregator
from cyberlearn.progress.tracker import ProgressTracker
from cyberlearn.storage.cassandra import CassandraLearningStore
from cyberlearn.submissions.orchestrator import SubmissionOrchestrator


if TYPE_CHECKING:
    from fastapi import FastAPI
    from redis.asyncio import Redis

    from cyberlearn.storage.base import LearningStore

logger = get_logger(__name__)


class Engine:
    """Engine components container."""

    def __init__(
        self,
        store: "LearningStore",
        locks: UserLockManager,
        tracker: ProgressTracker,
        aggregator: EnrollmentAggregator,
        stats: ProfileStatsEngine,
        orchestrator: SubmissionOrchestrator,
        cassandra_session: Any = None,
    ):
        self.store = store
        self.locks = locks
        self.tracker = tracker
        self.aggregator = aggregator
        self.stats = stats
        self.orchestrator = orchestrator
        self.cassandra_session = cassandra_session


def build_engine(
    store: "LearningStore",
    redis: "Redis | None" = None,
    settings: Settings | None = None,
    clock: Clock = utc_now,
) -> Engine:
    """Assemble the engine components around a store."""
    settings = settings or get_settings()

    locks = UserLockManager(
        redis=redis, timeout_seconds=settings.profile_lock_timeout_seconds
    )
    tracker = ProgressTracker(store, settings=settings, clock=clock)
    aggregator = EnrollmentAggregator(store, settings=settings, clock=clock)
    stats = ProfileStatsEngine(store, locks=locks, settings=settings, clock=clock)
    orchestrator = SubmissionOrchestrator(
        store,
        tracker=tracker,
        aggregator=aggregator,
        stats=stats,
        settings=settings,
        clock=clock,
    )
    return Engine(
        store=store,
        locks=locks,
        tracker=tracker,
        aggregator=aggregator,
        stats=stats,
        orchestrator=orchestrator,
    )


async def init_engine(settings: Settings | None = None) -> Engine:
    """Connect to storage and build a ready-to-use engine."""
    settings = settings or get_settings()
    configure_structlog(settings, log_dir=Path(settings.log_dir))
    logger.info(
        "starting_engine",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    # Redis is optional: without it profile locks are process-local
    redis_client = None
    if settings.redis_enabled:
        try:
            redis_client = await init_redis(settings)
        except Exception as e:
            logger.warning(
                "redis_init_skipped",
                error=str(e),
                message="Running with process-local profile locks",
            )

    session = await init_async_cassandra()
    store = CassandraLearningStore(session=session, keyspace=settings.cassandra_keyspace)

    engine = build_engine(store, redis=redis_client, settings=settings)
    engine.cassandra_session = session
    logger.info(
        "engine_initialized",
        distributed_locks=engine.locks.distributed,
        short_answer_policy=settings.short_answer_policy,
    )
    return engine


async def shutdown_engine() -> None:
    """Close storage connections."""
    logger.info("shutting_down_engine")
    await shutdown_redis()
    await shutdown_async_cassandra()


@asynccontextmanager
async def engine_lifespan(app: "FastAPI") -> AsyncGenerator[None, None]:
    """FastAPI lifespan that owns the engine."""
    engine = await init_engine()
    app.state.engine = engine
    app.state.orchestrator = engine.orchestrator

    yield

    app.state.orchestrator = None
    await shutdown_engine()
