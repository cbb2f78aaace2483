"""
Environment Registry for datagate.

Holds one connection pool per configured environment and the process-wide
"active environment" selection.

Design:
    - Pools are created once from configuration and only ever selected,
      never added or removed at runtime
    - Selecting a non-default environment schedules a single revert back to
      the default after the dwell window; reselecting resets the countdown
    - Calls capture their Environment via resolve() at the start and keep
      that handle, so a concurrent select() cannot move them mid-flight
    - lease() is the only way to get a connection and always returns it

Usage:
    with EnvironmentRegistry(config) as registry:
        registry.select("dev")
        env = registry.resolve()
        with registry.lease(env) as conn:
            conn.execute(text("select 1"))
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.pool import QueuePool

from datagate.errors import (
    ConnectTimeoutError,
    PoolExhaustedError,
    StoreError,
    UnknownEnvironmentError,
)
from datagate.schema import DatagateConfig, EnvironmentConfig, ProbeResult
from datagate.store.classify import UNKNOWN_CATEGORY, classify_store_error

logger = logging.getLogger(__name__)

LIVENESS_STATEMENT = "SELECT 1"

TimerFactory = Callable[..., Any]


@dataclass(frozen=True)
class Environment:
    """
    A named pool representing one backing database.

    Attributes:
        name: Unique environment name
        config: Settings the pool was built from
        engine: SQLAlchemy engine owning the connection pool
    """

    name: str
    config: EnvironmentConfig
    engine: Engine


def build_engine(config: EnvironmentConfig) -> Engine:
    """
    Create a pooled SQLAlchemy engine for an environment.

    Every environment gets a QueuePool so pool_size, max_overflow and
    pool_timeout mean the same thing on every backend. Connections are
    opened read-only where the backend supports it. On PostgreSQL the
    session default is read-only and every transaction SQLAlchemy begins
    is also marked read-only.
    """
    url = make_url(config.url)
    backend = url.get_backend_name()
    execution_options: dict[str, Any] = {}

    if backend == "postgresql":
        connect_args: dict[str, Any] = {
            "connect_timeout": config.connect_timeout,
            "options": "-c default_transaction_read_only=on",
        }
        execution_options["postgresql_readonly"] = True
    elif backend == "sqlite":
        connect_args = {"check_same_thread": False, "timeout": config.connect_timeout}
    else:
        connect_args = {}

    engine = create_engine(
        url,
        poolclass=QueuePool,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_recycle=config.pool_recycle,
        pool_pre_ping=True,
        connect_args=connect_args,
        execution_options=execution_options,
    )

    if backend == "sqlite":
        event.listen(engine, "connect", _sqlite_query_only)

    return engine


def _sqlite_query_only(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA query_only = ON")
    finally:
        cursor.close()


class EnvironmentRegistry:
    """
    Registry of named connection pools plus the active selection.

    Attributes:
        default: Name of the default environment
        revert_after_seconds: Dwell window before a selection reverts
    """

    def __init__(
        self,
        config: DatagateConfig,
        timer_factory: TimerFactory = threading.Timer,
        engine_factory: Callable[[EnvironmentConfig], Engine] = build_engine,
    ) -> None:
        """
        Build one pool per configured environment.

        Args:
            config: Environment configuration
            timer_factory: threading.Timer-compatible factory for the revert timer
            engine_factory: Builds an engine for each environment
        """
        self.default = config.default_environment
        self.revert_after_seconds = config.revert_after_seconds
        self._timer_factory = timer_factory
        self._environments: dict[str, Environment] = {
            name: Environment(name=name, config=env_config, engine=engine_factory(env_config))
            for name, env_config in config.environments.items()
        }
        self._active = self.default
        self._lock = threading.Lock()
        self._revert_timer: Any = None
        self._generation = 0

    # =========================================================================
    # Selection
    # =========================================================================

    def names(self) -> list[str]:
        """Registered environment names, sorted."""
        return sorted(self._environments)

    def current(self) -> str:
        """Name of the active environment."""
        return self._active

    def select(self, name: str) -> str:
        """
        Make an environment active.

        Cancels any pending revert. Unless the default itself is selected,
        schedules a single revert to the default after revert_after_seconds.

        Raises:
            UnknownEnvironmentError: If the name is not registered; the
                selection is left unchanged
        """
        with self._lock:
            if name not in self._environments:
                raise UnknownEnvironmentError(environment=name, available=self.names())

            previous = self._active
            self._active = name
            self._generation += 1
            self._cancel_revert_locked()

            if name != self.default:
                timer = self._timer_factory(
                    self.revert_after_seconds,
                    self._revert,
                    args=(self._generation,),
                )
                timer.daemon = True
                timer.start()
                self._revert_timer = timer

        logger.info("Environment switched from %s to %s", previous, name)
        return name

    def has_pending_revert(self) -> bool:
        """Whether a revert to the default is scheduled."""
        return self._revert_timer is not None

    def _cancel_revert_locked(self) -> None:
        if self._revert_timer is not None:
            self._revert_timer.cancel()
            self._revert_timer = None

    def _revert(self, generation: int) -> None:
        with self._lock:
            # A newer select() superseded this timer after it started firing
            if generation != self._generation:
                return
            previous = self._active
            self._active = self.default
            self._revert_timer = None
        logger.info("Environment %s reverted to %s", previous, self.default)

    # =========================================================================
    # Connections
    # =========================================================================

    def resolve(self, name: str | None = None) -> Environment:
        """
        Capture an Environment handle.

        Args:
            name: Explicit environment, or None for the active one

        Raises:
            UnknownEnvironmentError: If the name is not registered
        """
        name = name or self._active
        environment = self._environments.get(name)
        if environment is None:
            raise UnknownEnvironmentError(environment=name, available=self.names())
        return environment

    @contextmanager
    def lease(self, environment: Environment) -> Iterator[Connection]:
        """
        Lease one connection from an environment's pool.

        The connection is returned to the pool (after a rollback) when the
        block exits, however it exits.

        Raises:
            PoolExhaustedError: No connection freed up within pool_timeout
            ConnectTimeoutError: A new connection could not be established
            StoreExecutionError: The store refused the connection for a
                classified reason (e.g. authentication failure)
        """
        try:
            conn = environment.engine.connect()
        except PoolTimeoutError as e:
            raise PoolExhaustedError(
                environment=environment.name,
                timeout_seconds=environment.config.pool_timeout,
            ) from e
        except SQLAlchemyError as e:
            classified = classify_store_error(e, environment.name)
            if classified.category != UNKNOWN_CATEGORY:
                raise classified from e
            raise ConnectTimeoutError(
                environment=environment.name,
                underlying_error=classified.underlying_error,
            ) from e

        try:
            yield conn
        finally:
            conn.close()

    def probe(self, name: str | None = None) -> ProbeResult:
        """
        Run a liveness statement against an environment.

        Never changes the selection and never raises for store failures.

        Raises:
            UnknownEnvironmentError: If the name is not registered
        """
        environment = self.resolve(name)
        start = time.perf_counter()
        try:
            with self.lease(environment) as conn:
                conn.execute(text(LIVENESS_STATEMENT)).scalar()
        except (StoreError, SQLAlchemyError) as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.warning("Probe of %s failed: %s", environment.name, e)
            message = e.message if isinstance(e, StoreError) else str(e)
            return ProbeResult(
                environment=environment.name,
                healthy=False,
                latency_ms=latency_ms,
                error=message,
            )

        return ProbeResult(
            environment=environment.name,
            healthy=True,
            latency_ms=(time.perf_counter() - start) * 1000,
        )

    def pool_status(self, name: str | None = None) -> dict[str, int]:
        """Checked-out and capacity figures for an environment's pool."""
        pool = self.resolve(name).engine.pool
        return {
            "size": pool.size(),
            "checked_out": pool.checkedout(),
            "overflow": pool.overflow(),
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Cancel any pending revert and dispose every pool."""
        with self._lock:
            self._generation += 1
            self._cancel_revert_locked()
        for environment in self._environments.values():
            environment.engine.dispose()

    def __enter__(self) -> "EnvironmentRegistry":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    def __repr__(self) -> str:
        """String representation of the registry."""
        return f"<EnvironmentRegistry: [{', '.join(self.names())}] active={self._active}>"
