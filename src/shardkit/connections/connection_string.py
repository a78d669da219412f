"""
SQL Server connection strings: parsing, rendering and template validation.

A multi-shard connection takes one connection string holding the settings
shared by every shard (credentials, timeouts, encryption) and derives one
connection string per shard by filling in the data source and initial
catalog. ConnectionStringBuilder is the structured form of such a string.

Example:
    ```python
    template = ConnectionStringBuilder("User ID=u;Password=p")
    template = with_application_name_suffix(template, "ESC_MSQv1.2.0")
    validate_template(template)

    shard = template.copy(data_source="ds1", initial_catalog="db1")
    shard.connection_string
    # 'User ID=u;Password=p;Application Name=ESC_MSQv1.2.0;'
    # 'Data Source=ds1;Initial Catalog=db1'
    ```
"""
from typing import Dict, Iterator, List, Optional, Tuple

from shardkit.utility.exceptions import ConfigError

DATA_SOURCE = "Data Source"
INITIAL_CATALOG = "Initial Catalog"
USER_ID = "User ID"
PASSWORD = "Password"
APPLICATION_NAME = "Application Name"
CONNECT_TIMEOUT = "Connect Timeout"
INTEGRATED_SECURITY = "Integrated Security"
TRUST_SERVER_CERTIFICATE = "TrustServerCertificate"
ENCRYPT = "Encrypt"
AUTHENTICATION = "Authentication"
DRIVER = "Driver"
MULTIPLE_ACTIVE_RESULT_SETS = "MultipleActiveResultSets"

# Lower-cased, whitespace-collapsed keyword -> canonical keyword
_SYNONYMS: Dict[str, str] = {
    "data source": DATA_SOURCE,
    "server": DATA_SOURCE,
    "address": DATA_SOURCE,
    "addr": DATA_SOURCE,
    "network address": DATA_SOURCE,
    "initial catalog": INITIAL_CATALOG,
    "database": INITIAL_CATALOG,
    "user id": USER_ID,
    "uid": USER_ID,
    "user": USER_ID,
    "password": PASSWORD,
    "pwd": PASSWORD,
    "application name": APPLICATION_NAME,
    "app": APPLICATION_NAME,
    "connect timeout": CONNECT_TIMEOUT,
    "connection timeout": CONNECT_TIMEOUT,
    "timeout": CONNECT_TIMEOUT,
    "integrated security": INTEGRATED_SECURITY,
    "trusted_connection": INTEGRATED_SECURITY,
    "trustservercertificate": TRUST_SERVER_CERTIFICATE,
    "trust server certificate": TRUST_SERVER_CERTIFICATE,
    "encrypt": ENCRYPT,
    "authentication": AUTHENTICATION,
    "driver": DRIVER,
    "multipleactiveresultsets": MULTIPLE_ACTIVE_RESULT_SETS,
    "multiple active result sets": MULTIPLE_ACTIVE_RESULT_SETS,
    "mars_connection": MULTIPLE_ACTIVE_RESULT_SETS,
}

# Canonical keyword -> ODBC Driver for SQL Server keyword
_ODBC_KEYWORDS: Dict[str, str] = {
    DRIVER: "DRIVER",
    DATA_SOURCE: "SERVER",
    INITIAL_CATALOG: "DATABASE",
    USER_ID: "UID",
    PASSWORD: "PWD",
    APPLICATION_NAME: "APP",
    CONNECT_TIMEOUT: "Timeout",
    INTEGRATED_SECURITY: "Trusted_Connection",
    TRUST_SERVER_CERTIFICATE: "TrustServerCertificate",
    ENCRYPT: "Encrypt",
    AUTHENTICATION: "Authentication",
    MULTIPLE_ACTIVE_RESULT_SETS: "MARS_Connection",
}

_ODBC_BOOLEAN_KEYS = {
    ENCRYPT,
    TRUST_SERVER_CERTIFICATE,
    INTEGRATED_SECURITY,
    MULTIPLE_ACTIVE_RESULT_SETS,
}

_TRUE_VALUES = {"true", "yes", "sspi", "1"}
_FALSE_VALUES = {"false", "no", "0"}

_QUOTE_TRIGGERS = set(";=\"'{}")


def _normalize_keyword(key: str) -> str:
    return " ".join(key.lower().split())


def _parse(connection_string: str) -> List[Tuple[str, str]]:
    """Split a connection string into (key, value) pairs, honouring quotes."""
    pairs = []
    text = connection_string
    i, n = 0, len(text)

    while i < n:
        if text[i] in " \t\r\n;":
            i += 1
            continue

        eq = text.find("=", i)
        semi = text.find(";", i)
        if eq == -1 or (semi != -1 and semi < eq):
            end = n if semi == -1 else semi
            raise ConfigError(
                f"Invalid connection string segment '{text[i:end].strip()}': "
                f"expected 'key=value'"
            )

        key = text[i:eq].strip()
        i = eq + 1
        while i < n and text[i] in " \t":
            i += 1

        if i < n and text[i] in "'\"{":
            opener = text[i]
            closer = "}" if opener == "{" else opener
            i += 1
            chars = []
            while True:
                if i >= n:
                    raise ConfigError(f"Unterminated quoted value for '{key}'")
                ch = text[i]
                if ch == closer:
                    # doubled closer is an escaped literal
                    if i + 1 < n and text[i + 1] == closer:
                        chars.append(ch)
                        i += 2
                        continue
                    i += 1
                    break
                chars.append(ch)
                i += 1
            value = "".join(chars)

            while i < n and text[i] in " \t":
                i += 1
            if i < n and text[i] != ";":
                raise ConfigError(
                    f"Unexpected characters after quoted value for '{key}'"
                )
            i += 1
        else:
            semi = text.find(";", i)
            if semi == -1:
                semi = n
            value = text[i:semi].strip()
            i = semi + 1

        pairs.append((key, value))

    return pairs


def _quote(value: str) -> str:
    if value and value == value.strip() and not (_QUOTE_TRIGGERS & set(value)):
        return value
    if '"' not in value:
        return f'"{value}"'
    if "'" not in value:
        return f"'{value}'"
    return '"' + value.replace('"', '""') + '"'


def _odbc_quote(value: str) -> str:
    if value == value.strip() and not (set(";{}") & set(value)):
        return value
    return "{" + value.replace("}", "}}") + "}"


def _odbc_value(key: str, value: str) -> str:
    if key in _ODBC_BOOLEAN_KEYS:
        lowered = value.lower()
        if lowered in _TRUE_VALUES:
            return "Yes"
        if lowered in _FALSE_VALUES:
            return "No"
    return value


class ConnectionStringBuilder:
    """
    Structured, mutable view of a SQL Server connection string.

    Keywords are case-insensitive and synonyms (``Server``, ``Database``,
    ``UID``...) are folded into one canonical keyword. Unknown keywords are
    kept as given. When a keyword appears more than once the last value
    wins.
    """

    def __init__(self, connection_string: str = ""):
        if connection_string is None:
            connection_string = ""
        self._settings: Dict[str, str] = {}
        for key, value in _parse(connection_string):
            if not key:
                raise ConfigError("Connection string contains an empty keyword")
            self[key] = value

    def _resolve(self, key: str) -> str:
        normalized = _normalize_keyword(key)
        if normalized in _SYNONYMS:
            return _SYNONYMS[normalized]
        for existing in self._settings:
            if _normalize_keyword(existing) == normalized:
                return existing
        return key.strip()

    def __getitem__(self, key: str) -> str:
        return self._settings[self._resolve(key)]

    def __setitem__(self, key: str, value: Optional[str]) -> None:
        resolved = self._resolve(key)
        if value is None or value == "":
            self._settings.pop(resolved, None)
            return
        # re-insert so the rendered order follows assignment order
        self._settings.pop(resolved, None)
        self._settings[resolved] = str(value)

    def __delitem__(self, key: str) -> None:
        del self._settings[self._resolve(key)]

    def __contains__(self, key: str) -> bool:
        return self._resolve(key) in self._settings

    def __iter__(self) -> Iterator[str]:
        return iter(self._settings)

    def __len__(self) -> int:
        return len(self._settings)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ConnectionStringBuilder):
            return NotImplemented
        return self._settings == other._settings

    def __repr__(self) -> str:
        return f"ConnectionStringBuilder({self.masked()!r})"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._settings.get(self._resolve(key), default)

    def items(self):
        return self._settings.items()

    @property
    def data_source(self) -> Optional[str]:
        return self.get(DATA_SOURCE)

    @data_source.setter
    def data_source(self, value: Optional[str]) -> None:
        self[DATA_SOURCE] = value

    @property
    def initial_catalog(self) -> Optional[str]:
        return self.get(INITIAL_CATALOG)

    @initial_catalog.setter
    def initial_catalog(self, value: Optional[str]) -> None:
        self[INITIAL_CATALOG] = value

    @property
    def application_name(self) -> Optional[str]:
        return self.get(APPLICATION_NAME)

    @application_name.setter
    def application_name(self, value: Optional[str]) -> None:
        self[APPLICATION_NAME] = value

    @property
    def user_id(self) -> Optional[str]:
        return self.get(USER_ID)

    @user_id.setter
    def user_id(self, value: Optional[str]) -> None:
        self[USER_ID] = value

    @property
    def password(self) -> Optional[str]:
        return self.get(PASSWORD)

    @password.setter
    def password(self, value: Optional[str]) -> None:
        self[PASSWORD] = value

    @property
    def authentication(self) -> Optional[str]:
        return self.get(AUTHENTICATION)

    @authentication.setter
    def authentication(self, value: Optional[str]) -> None:
        self[AUTHENTICATION] = value

    @property
    def integrated_security(self) -> bool:
        value = self.get(INTEGRATED_SECURITY)
        return value is not None and value.lower() in _TRUE_VALUES

    @property
    def multiple_active_result_sets(self) -> bool:
        value = self.get(MULTIPLE_ACTIVE_RESULT_SETS)
        return value is not None and value.lower() in _TRUE_VALUES

    @multiple_active_result_sets.setter
    def multiple_active_result_sets(self, value: bool) -> None:
        self[MULTIPLE_ACTIVE_RESULT_SETS] = "True" if value else "False"

    @property
    def connection_string(self) -> str:
        """The canonical ``key=value;...`` rendering."""
        return ";".join(f"{key}={_quote(value)}" for key, value in self.items())

    def masked(self) -> str:
        """Canonical rendering with the password hidden, for logs and output."""
        return ";".join(
            f"{key}={'****' if key == PASSWORD else _quote(value)}"
            for key, value in self.items()
        )

    def copy(self, **overrides) -> "ConnectionStringBuilder":
        """
        Return an independent builder, optionally overriding properties.

        Args:
            **overrides: Property names and values, e.g.
                ``copy(data_source="ds1", initial_catalog="db1")``

        Raises:
            TypeError: If an override does not name a settable property
        """
        clone = ConnectionStringBuilder()
        clone._settings = dict(self._settings)
        for name, value in overrides.items():
            attr = getattr(type(self), name, None)
            if not isinstance(attr, property) or attr.fset is None:
                raise TypeError(f"'{name}' is not a connection string property")
            setattr(clone, name, value)
        return clone

    def to_odbc(
        self,
        driver: Optional[str] = None,
        encrypt: Optional[str] = None,
        trust_cert: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> str:
        """
        Render a connection string for the ODBC Driver for SQL Server.

        The keyword arguments are fallbacks used only when the connection
        string itself does not set the corresponding keyword.
        """
        settings = dict(self._settings)
        parts = []

        driver = settings.pop(DRIVER, None) or driver
        if driver:
            parts.append(f"DRIVER={{{driver.strip('{}')}}}")

        fallbacks = {
            ENCRYPT: encrypt,
            TRUST_SERVER_CERTIFICATE: trust_cert,
            CONNECT_TIMEOUT: None if timeout is None else str(timeout),
        }
        for key, value in fallbacks.items():
            if value is not None and key not in settings:
                settings[key] = value

        for key, value in settings.items():
            odbc_key = _ODBC_KEYWORDS.get(key, key)
            parts.append(f"{odbc_key}={_odbc_quote(_odbc_value(key, value))}")

        return ";".join(parts)


def validate_template(builder: ConnectionStringBuilder) -> None:
    """
    Check that a connection string is usable as a shared shard template.

    The data source and initial catalog are supplied per shard, so a
    template must not carry either of them.

    Raises:
        ConfigError: If the data source or initial catalog is set
    """
    if builder.data_source:
        raise ConfigError("DataSource must not be set in the connection string")

    if builder.initial_catalog:
        raise ConfigError("InitialCatalog must not be set in the connection string")


def with_application_name_suffix(
    builder: ConnectionStringBuilder, suffix: str
) -> ConnectionStringBuilder:
    """
    Return a copy of ``builder`` whose Application Name ends with ``suffix``.

    A caller-supplied application name is kept as a prefix. A name that
    already ends with the suffix is left unchanged.
    """
    current = builder.application_name or ""
    if current.endswith(suffix):
        return builder.copy()
    return builder.copy(application_name=f"{current}{suffix}")
