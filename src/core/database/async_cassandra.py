"""Async Cassandra database connection using cassandra-asyncio-driver.

Provides:
- Cluster/session lifecycle management
- Session with aexecute() for non-blocking queries
- Keyspace and table initialization

The cassandra-asyncio-driver extends the standard cassandra-driver
with a ``session.aexecute()`` coroutine.
"""

from collections.abc import Iterable

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from src.config.settings import get_settings
from src.courses.models import COURSES_TABLES_CQL
from src.progress.models import PROGRESS_TABLES_CQL


logger = structlog.get_logger(__name__)


class AsyncCassandraConnection:
    """Async Cassandra connection manager (one cluster per process)."""

    _cluster: Cluster | None = None
    _session = None  # Session type from cassandra_asyncio

    @classmethod
    def connect(cls):
        """Establish connection to the Cassandra cluster.

        Connecting is synchronous; queries run through ``aexecute``.

        Raises:
            ConnectionError: If the cluster cannot be reached
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error("async_cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "async_cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return cls._session

    @classmethod
    def get_session(cls):
        """Get active session, connecting if necessary."""
        if cls._session is None:
            return cls.connect()
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        """Close the session and the cluster."""
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
            logger.info("async_cassandra_session_closed")

        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("async_cassandra_cluster_closed")

    @classmethod
    def is_connected(cls) -> bool:
        """Check if connection is active."""
        return cls._session is not None and not cls._session.is_shutdown


async def init_async_keyspace(session, keyspace: str) -> None:
    """Create keyspace if it does not exist."""
    settings = get_settings()

    if settings.is_production:
        replication = (
            "'class': 'NetworkTopologyStrategy', "
            f"'datacenter1': {settings.cassandra_replication_factor}"
        )
    else:
        replication = "'class': 'SimpleStrategy', 'replication_factor': 1"

    await session.aexecute(f"""
        CREATE KEYSPACE IF NOT EXISTS {keyspace}
        WITH replication = {{{replication}}}
        AND durable_writes = true
    """)
    logger.info("async_keyspace_created", keyspace=keyspace)


async def init_async_tables(
    session, keyspace: str, name: str, statements: Iterable[str]
) -> None:
    """Run a group of CREATE TABLE/INDEX statements."""
    for cql_template in statements:
        await session.aexecute(cql_template.format(keyspace=keyspace))
    logger.info("async_tables_created", keyspace=keyspace, group=name)


async def init_async_cassandra():
    """Initialize the Cassandra connection and schema.

    Returns:
        Configured Cassandra session with aexecute() support
    """
    settings = get_settings()
    keyspace = settings.cassandra_keyspace

    session = AsyncCassandraConnection.get_session()
    await init_async_keyspace(session, keyspace)
    session.set_keyspace(keyspace)

    await init_async_tables(session, keyspace, "courses", COURSES_TABLES_CQL)
    await init_async_tables(session, keyspace, "progress", PROGRESS_TABLES_CQL)

    logger.info("async_cassandra_initialized", keyspace=keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    """Shutdown the Cassandra connection."""
    AsyncCassandraConnection.disconnect()
