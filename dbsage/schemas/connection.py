"""
Connection descriptor for target databases.
Supplied by the caller's config layer; dbsage never reads credential files.
"""

from enum import Enum
from urllib.parse import quote_plus

from pydantic import BaseModel, ConfigDict, Field


class DatabaseKind(str, Enum):
    """Supported target database engines."""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    ORACLE = "oracle"
    SQLSERVER = "sqlserver"
    MONGODB = "mongodb"

    @property
    def is_sql(self) -> bool:
        return self is not DatabaseKind.MONGODB


DEFAULT_PORTS: dict[DatabaseKind, int] = {
    DatabaseKind.MYSQL: 3306,
    DatabaseKind.POSTGRESQL: 5432,
    DatabaseKind.ORACLE: 1521,
    DatabaseKind.SQLSERVER: 1433,
    DatabaseKind.MONGODB: 27017,
}


class ConnectionDescriptor(BaseModel):
    """
    How to reach a target database.
    
    Either the discrete fields (host, port, database, credentials) or one of
    the raw forms (connection_string, jdbc_url) may be given; the raw forms
    take precedence when building driver URLs.
    """

    model_config = ConfigDict(frozen=True)

    kind: DatabaseKind = Field(
        ...,
        description="Database engine",
        examples=["postgresql", "oracle"],
    )
    host: str = Field(default="localhost", examples=["db01.internal"])
    port: int | None = Field(
        default=None,
        description="TCP port; the engine default is used when omitted",
        gt=0,
        lt=65536,
    )
    database: str = Field(default="", examples=["orders", "ORCLPDB1"])
    username: str = Field(default="")
    password: str = Field(default="", repr=False)
    is_remote: bool = Field(default=False)
    jdbc_url: str | None = Field(
        default=None,
        examples=["jdbc:postgresql://db01:5432/orders"],
    )
    connection_string: str | None = Field(
        default=None,
        description="Driver-native connection string or URL",
    )

    @property
    def effective_port(self) -> int:
        return self.port or DEFAULT_PORTS[self.kind]

    def summary(self) -> str:
        """Human-readable connection summary for prompts and reports (no credentials)."""
        return (
            f"Type: {self.kind.value}\n"
            f"Host: {self.host}:{self.effective_port}\n"
            f"Database: {self.database or 'N/A'}"
        )

    def mongo_uri(self) -> str:
        """Build a MongoDB URI from the raw forms or the discrete fields."""
        if self.connection_string:
            return self.connection_string
        if self.jdbc_url:
            return self.jdbc_url.replace("jdbc:mongodb://", "mongodb://", 1)

        database = self.database or "admin"
        if self.username:
            credentials = f"{quote_plus(self.username)}:{quote_plus(self.password)}@"
        else:
            credentials = ""
        return f"mongodb://{credentials}{self.host}:{self.effective_port}/{database}"

    def redacted(self) -> dict:
        """Serializable snapshot with the password masked."""
        data = self.model_dump(mode="json")
        if data.get("password"):
            data["password"] = "***"
        return data
