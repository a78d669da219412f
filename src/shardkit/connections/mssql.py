"""
MS SQL Server shard connection handle.

Wraps a single pyodbc connection to one shard. The handle is created with
the shard's full connection string and connects lazily on ``open()``.

Authentication follows the connection string:
- SQL logins (``User ID``/``Password``), ``Integrated Security`` or an
  explicit ``Authentication`` keyword are passed to the driver unchanged
- otherwise an Azure AD access token is acquired via DefaultAzureCredential
  and handed to the driver before connecting
"""
import struct
import time
from typing import Any, Dict, Optional

from azure.core.credentials import AccessToken
from azure.identity import DefaultAzureCredential

from shardkit.messages import get_logger
from shardkit.utility.exceptions import ShardConnectionError, ShardError

from .base import BaseShardConnection, ConnectionState
from .connection_string import ConnectionStringBuilder
from .constants import MSSQL_CONNECTION_DEFAULTS


class MssqlShardConnection(BaseShardConnection):
    """
    Connection handle for one SQL Server shard.

    Example:
        ```python
        handle = MssqlShardConnection(
            "User ID=u;Password=p;Data Source=ds1;Initial Catalog=db1",
            options={"driver": "ODBC Driver 18 for SQL Server"},
        )
        handle.open()
        cursor = handle.raw.cursor()
        ...
        handle.dispose()
        ```
    """

    # SQL Server constant for access token
    SQL_COPT_SS_ACCESS_TOKEN = 1256

    # Token refresh buffer (seconds before expiry)
    TOKEN_EXPIRY_BUFFER = 300  # 5 minutes

    TOKEN_SCOPE = "https://database.windows.net/.default"

    def __init__(self, connection_string: str, options: Optional[Dict[str, Any]] = None):
        """
        Initialize MSSQL shard connection handle.

        Args:
            connection_string: Connection string for the shard, including
                its Data Source and Initial Catalog
            options: Additional options, used only where the connection
                string is silent:
                - driver: ODBC driver name (default: "ODBC Driver 18 for SQL Server")
                - encrypt: Enable encryption (default: "Yes")
                - trust_cert: Trust server certificate (default: "Yes")
                - timeout: Connection timeout in seconds (default: 30)
        """
        super().__init__(connection_string, options)
        self.builder = ConnectionStringBuilder(connection_string)

        self.driver = self.options.get("driver", MSSQL_CONNECTION_DEFAULTS.driver)
        self.encrypt = self.options.get("encrypt", MSSQL_CONNECTION_DEFAULTS.encrypt)
        self.trust_cert = self.options.get(
            "trust_cert", MSSQL_CONNECTION_DEFAULTS.trust_cert
        )
        self.timeout = self.options.get("timeout", MSSQL_CONNECTION_DEFAULTS.timeout)

        # Created on first token request; nothing touches Azure until open()
        self._credential: Optional[DefaultAzureCredential] = None
        self._token: Optional[AccessToken] = None

        self._conn: Optional[Any] = None

        self.logger = get_logger("shardkit.connections.mssql")

    @property
    def data_source(self) -> Optional[str]:
        return self.builder.data_source

    @property
    def database(self) -> Optional[str]:
        return self.builder.initial_catalog

    @property
    def raw(self) -> Optional[Any]:
        """The underlying pyodbc connection while open."""
        return self._conn

    @property
    def uses_azure_ad_token(self) -> bool:
        return not (
            self.builder.user_id
            or self.builder.integrated_security
            or self.builder.authentication
        )

    def open(self) -> None:
        """
        Connect to the shard.

        Opening an already open handle does nothing.

        Raises:
            ShardError: If the handle was disposed or the driver fails
            ShardConnectionError: If the shard cannot be reached
        """
        if self._disposed:
            raise ShardError(f"Connection to {self._describe()} has been disposed")
        if self._state == ConnectionState.OPEN:
            return

        # Loaded on first connect; pyodbc needs the system ODBC manager
        try:
            import pyodbc
        except ImportError as e:
            raise ShardError(
                f"pyodbc could not be loaded: {str(e)}. "
                f"Install unixODBC and msodbcsql18"
            ) from e

        conn_str, attrs_before = self._build_connection_string()
        try:
            self.logger.debug(f"Connecting to {self._describe()}")
            if attrs_before:
                self._conn = pyodbc.connect(conn_str, attrs_before=attrs_before)
            else:
                self._conn = pyodbc.connect(conn_str)
        except pyodbc.Error as e:
            error_msg = str(e)
            sqlstate = e.args[0] if e.args else None

            if "IM002" in error_msg:
                raise ShardError(
                    f"ODBC Driver not found. Expected: {self.driver}. "
                    f"Install with: brew install msodbcsql18"
                ) from e

            # 08xxx are connection-related per SQL standard
            if isinstance(sqlstate, str) and sqlstate.startswith("08"):
                raise ShardConnectionError(
                    f"Connection error on {self._describe()}: {error_msg}"
                ) from e

            raise ShardError(
                f"Database connection failed on {self._describe()}: {error_msg}"
            ) from e

        self._state = ConnectionState.OPEN
        self.logger.debug(f"Connected to {self._describe()}")

    def close(self) -> None:
        """
        Close the pyodbc connection if there is one.

        Driver errors propagate; the handle is marked closed either way.
        """
        conn, self._conn = self._conn, None
        self._state = ConnectionState.CLOSED
        if conn is not None:
            conn.close()
            self.logger.debug(f"Connection to {self._describe()} closed")

    def _build_connection_string(self) -> tuple[str, Dict]:
        """
        Build ODBC connection string and attributes.

        Returns:
            Tuple of (connection_string, attrs_before_dict)
        """
        conn_str = self.builder.to_odbc(
            driver=self.driver,
            encrypt=self.encrypt,
            trust_cert=self.trust_cert,
            timeout=self.timeout,
        )

        if not self.uses_azure_ad_token:
            return conn_str, {}

        token_bytes = self._convert_token_to_bytes(self._get_token())
        return conn_str, {self.SQL_COPT_SS_ACCESS_TOKEN: token_bytes}

    def _get_token(self) -> AccessToken:
        """
        Get Azure AD token with caching.

        Only refreshes when within TOKEN_EXPIRY_BUFFER seconds of expiration.
        """
        if self._token:
            time_remaining = self._token.expires_on - time.time()
            if time_remaining > self.TOKEN_EXPIRY_BUFFER:
                self.logger.debug(
                    f"Using cached token ({time_remaining:.0f}s remaining)"
                )
                return self._token

        if self._credential is None:
            self._credential = DefaultAzureCredential()

        self.logger.debug("Fetching new Azure AD token")
        try:
            self._token = self._credential.get_token(self.TOKEN_SCOPE)
        except Exception as e:
            raise ShardConnectionError(
                f"Failed to acquire Azure AD token for {self._describe()}: {str(e)}"
            ) from e

        time_remaining = self._token.expires_on - time.time()
        self.logger.debug(f"New token acquired ({time_remaining:.0f}s until expiry)")
        return self._token

    def _convert_token_to_bytes(self, token: AccessToken) -> bytes:
        """
        Convert Azure AD token to MS Windows byte string format.

        SQL Server expects a length-prefixed UTF-16LE encoded token.
        """
        encoded_bytes = token.token.encode("utf-16-le")
        return struct.pack("<i", len(encoded_bytes)) + encoded_bytes

    def _describe(self) -> str:
        """Short server.database label for logging (first host label only)."""
        server = self.data_source or "?"
        if "." in server:
            server = server.split(".")[0]
        return f"{server}.{self.database or '?'}"

    def __repr__(self) -> str:
        return (
            f"MssqlShardConnection({self.data_source!r}, {self.database!r}, "
            f"state={self._state.value})"
        )
