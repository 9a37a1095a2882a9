"""
Client and collection configuration
"""
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ConfigError

logger = logging.getLogger(__name__)

# DefaultEmbeddingFunction produces 384-dim embeddings
DEFAULT_VECTOR_DIMENSION = 384
DEFAULT_PORT = 2881
DEFAULT_MAX_CONNECTIONS = 5


class _NotProvided:
    """Sentinel distinguishing "parameter not provided" from an explicit None"""

    def __repr__(self) -> str:
        return "<not provided>"


_NOT_PROVIDED = _NotProvided()


class DistanceMetric(str, Enum):
    """Vector distance metric bound to a collection's vector index"""

    L2 = "l2"
    COSINE = "cosine"
    INNER_PRODUCT = "inner_product"

    @property
    def sql_function(self) -> str:
        """Name of the SQL function computing this distance"""
        return _DISTANCE_FUNCTIONS[self]

    @classmethod
    def parse(cls, value: Union[str, "DistanceMetric"]) -> "DistanceMetric":
        """Parse a metric name; 'ip' is accepted as an alias of inner_product"""
        if isinstance(value, DistanceMetric):
            return value
        if not isinstance(value, str):
            raise ConfigError(f"distance must be a string, got {type(value).__name__}")
        token = value.strip().strip("'\"").lower()
        if token == "ip":
            token = "inner_product"
        try:
            return cls(token)
        except ValueError:
            raise ConfigError(
                f"distance must be one of ['l2', 'cosine', 'inner_product'], got {value!r}"
            ) from None

    def __str__(self) -> str:
        return self.value


_DISTANCE_FUNCTIONS = {
    DistanceMetric.L2: "l2_distance",
    DistanceMetric.COSINE: "cosine_distance",
    DistanceMetric.INNER_PRODUCT: "inner_product",
}

DEFAULT_DISTANCE_METRIC = DistanceMetric.COSINE


@dataclass
class HNSWConfiguration:
    """
    HNSW (Hierarchical Navigable Small World) index configuration

    Args:
        dimension: Vector dimension (number of elements in each vector)
        distance: Distance metric ('l2', 'cosine', 'inner_product' or a DistanceMetric)
    """
    dimension: int
    distance: DistanceMetric = DistanceMetric.L2

    def __post_init__(self):
        if isinstance(self.dimension, bool) or not isinstance(self.dimension, int) or self.dimension <= 0:
            raise ConfigError(f"dimension must be a positive integer, got {self.dimension!r}")
        self.distance = DistanceMetric.parse(self.distance)


@dataclass
class ServerConfig:
    """
    Connection settings for a seekdb / OceanBase server

    The server authenticates ``user@tenant``; see ``full_user``.
    """
    host: str
    port: int = DEFAULT_PORT
    tenant: str = "sys"
    database: str = "test"
    user: str = "root"
    password: str = field(default="", repr=False)
    charset: str = "utf8mb4"
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    connect_kwargs: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.host:
            raise ConfigError("host must not be empty")
        if self.max_connections <= 0:
            raise ConfigError(f"max_connections must be positive, got {self.max_connections}")

    @property
    def full_user(self) -> str:
        return f"{self.user}@{self.tenant}"

    @classmethod
    def from_env(
        cls,
        prefix: str = "SERVER_",
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ServerConfig":
        """
        Build a config from environment variables

        Reads <prefix>HOST (required), PORT, TENANT, DATABASE, USER, PASSWORD
        and MAX_CONNECTIONS.

        Raises:
            ConfigError: if HOST is missing or a numeric variable is malformed
        """
        env = os.environ if environ is None else environ

        host = env.get(f"{prefix}HOST")
        if not host:
            raise ConfigError(f"Missing required environment variable {prefix}HOST")

        config = cls(
            host=host,
            port=_int_from_env(env, f"{prefix}PORT", DEFAULT_PORT),
            tenant=env.get(f"{prefix}TENANT", "sys"),
            database=env.get(f"{prefix}DATABASE", "test"),
            user=env.get(f"{prefix}USER", "root"),
            password=env.get(f"{prefix}PASSWORD", ""),
            max_connections=_int_from_env(env, f"{prefix}MAX_CONNECTIONS", DEFAULT_MAX_CONNECTIONS),
        )
        logger.debug(f"Loaded server config from environment: {config}")
        return config


def _int_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"Environment variable {name} must be an integer, got {raw!r}") from None
