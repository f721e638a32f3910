"""Database configuration loader.

The connection is described by a single connection string when one is
available. Otherwise a named profile from a YAML file, or discrete DB_*
environment variables, fill in the same fields.
"""

import os
import yaml
from urllib.parse import urlparse, parse_qs, unquote
from typing import Dict, Any, Optional
from pathlib import Path
from dotenv import load_dotenv

SSL_MODES = ('disable', 'allow', 'prefer', 'require', 'verify-ca', 'verify-full')

# Connection fields and the values libpq would assume for them
FIELD_DEFAULTS = {
    'host': 'localhost',
    'port': 5432,
    'database': 'postgres',
    'user': 'postgres',
    'password': ''
}


class DatabaseProfile:
    """One named way to reach a database.

    The connection fields come from ``uri`` when present, otherwise from
    discrete ``host``/``port``/``database``/``user``/``password`` keys.
    Timeouts and sslmode may be given under ``connection_options``.
    """

    def __init__(self, name: str, config: Dict[str, Any]):
        self.name = name
        self.config = config
        self.enabled = config.get('enabled', True)
        self.uri = config.get('uri', '')
        self.description = config.get('description', '')
        self.environment = config.get('environment', 'development')
        self.connection_options = config.get('connection_options', {}) or {}
        self._sslmode = self.connection_options.get('sslmode')

        self.fields = dict(FIELD_DEFAULTS)
        self.fields.update({key: config[key] for key in FIELD_DEFAULTS if config.get(key) is not None})
        if self.uri:
            self._parse_uri()

    def _parse_uri(self):
        """Fill the connection fields from a postgres:// or postgresql:// URI."""
        parsed = urlparse(self.uri)
        if parsed.scheme not in ('postgres', 'postgresql'):
            raise ValueError(
                f"Unsupported connection string scheme '{parsed.scheme}' for profile '{self.name}'"
            )
        self.fields.update({
            'host': parsed.hostname or FIELD_DEFAULTS['host'],
            'port': parsed.port or FIELD_DEFAULTS['port'],
            'database': unquote(parsed.path.lstrip('/')) or FIELD_DEFAULTS['database'],
            'user': unquote(parsed.username) if parsed.username else FIELD_DEFAULTS['user'],
            'password': unquote(parsed.password) if parsed.password else ''
        })

        sslmode = parse_qs(parsed.query).get('sslmode')
        if sslmode:
            self._sslmode = sslmode[-1]

    @property
    def host(self) -> str:
        return self.fields['host']

    @property
    def port(self) -> int:
        return int(self.fields['port'])

    @property
    def database(self) -> str:
        return self.fields['database']

    @property
    def user(self) -> str:
        return self.fields['user']

    @property
    def password(self) -> str:
        return self.fields['password']

    @property
    def sslmode(self) -> Optional[str]:
        return self._sslmode or os.getenv('DB_SSLMODE') or None

    @property
    def connect_timeout(self) -> int:
        return int(self.connection_options.get('connect_timeout', os.getenv('DB_CONNECT_TIMEOUT', '10')))

    @property
    def query_timeout(self) -> int:
        return int(self.connection_options.get('query_timeout', os.getenv('DB_QUERY_TIMEOUT', '30')))

    def to_dict(self) -> Dict[str, Any]:
        """Connection keywords for DatabaseService."""
        config = {
            'host': self.host,
            'port': self.port,
            'database': self.database,
            'user': self.user,
            'password': self.password,
            'connect_timeout': self.connect_timeout,
            'query_timeout': self.query_timeout
        }
        if self.sslmode:
            config['sslmode'] = self.sslmode
        return config


class DatabaseConfig:
    """Database configuration resolved from the first available source."""

    def __init__(self, connection_string: Optional[str] = None, profile_name: Optional[str] = None):
        load_dotenv()

        self.profiles: Dict[str, DatabaseProfile] = {}
        self.current_profile: Optional[DatabaseProfile] = None
        self._yaml_config: Optional[Dict[str, Any]] = None

        # Load configuration in priority order
        self._load_configuration(connection_string, profile_name)

        # Validate the current configuration
        if self.current_profile:
            self.validate()

    def _load_configuration(self, connection_string: Optional[str] = None,
                            profile_name: Optional[str] = None):
        """Resolve the current profile from the first source that provides one.

        Order: explicit connection string, DATABASE_URI / DATABASE_URL, the
        named YAML profile, the YAML default profile, DB_* variables.
        """
        if connection_string:
            self._use_uri(connection_string, 'cli')
            return

        uri = os.getenv('DATABASE_URI') or os.getenv('DATABASE_URL')
        if uri:
            self._use_uri(uri, 'uri_override')
            return

        requested = profile_name or os.getenv('DATABASE_PROFILE')
        if requested and self._use_yaml_profile(requested):
            return
        if self._use_yaml_profile(None):
            return

        self._use_env()

    def _use(self, profile: DatabaseProfile):
        self.profiles[profile.name] = profile
        self.current_profile = profile

    def _use_uri(self, uri: str, name: str):
        self._use(DatabaseProfile(name, {
            'description': 'Configuration from a connection string',
            'uri': uri,
            'environment': 'custom'
        }))

    def _use_yaml_profile(self, profile_name: Optional[str]) -> bool:
        """Select a YAML profile, or the file's default_profile when no name is given.

        Returns:
            False when there is no profile file, or no usable default

        Raises:
            ValueError: If a profile requested by name is missing or disabled
        """
        if not self._load_yaml_config():
            return False

        if profile_name is None:
            profile = self.profiles.get(self._yaml_config.get('default_profile'))
            if profile is None or not profile.enabled:
                return False
        else:
            profile = self.profiles.get(profile_name)
            if profile is None:
                raise ValueError(f"Database profile '{profile_name}' not found in configuration")
            if not profile.enabled:
                raise ValueError(f"Database profile '{profile_name}' is disabled")

        self.current_profile = profile
        return True

    def _load_yaml_config(self) -> bool:
        """Read every profile from the first YAML file found, once."""
        if self._yaml_config is not None:
            return bool(self._yaml_config)

        candidates = [
            Path('config/databases.yaml'),
            Path(__file__).parent.parent.parent.parent / 'config' / 'databases.yaml'
        ]
        if os.getenv('DATABASES_CONFIG'):
            candidates.insert(0, Path(os.environ['DATABASES_CONFIG']))

        self._yaml_config = {}
        for path in candidates:
            try:
                with open(path, 'r') as f:
                    config_data = yaml.safe_load(f) or {}
            except (FileNotFoundError, yaml.YAMLError):
                continue

            self._yaml_config = config_data or {'databases': {}}
            for name, profile_config in (config_data.get('databases') or {}).items():
                self.profiles[name] = DatabaseProfile(name, profile_config or {})
            return True

        return False

    def _use_env(self):
        """Build the profile from discrete DB_* variables."""
        self._validate_numeric_config()
        self._use(DatabaseProfile('env', {
            'description': 'Configuration from individual environment variables',
            'environment': 'env',
            'host': os.getenv('DB_HOST', 'localhost'),
            'port': int(os.getenv('DB_PORT', '5432')),
            'database': os.getenv('DB_DATABASE', 'postgres'),
            'user': os.getenv('DB_USER', 'postgres'),
            'password': os.getenv('DB_PASSWORD', '')
        }))

    @property
    def host(self) -> str:
        return self.current_profile.host if self.current_profile else 'localhost'

    @property
    def port(self) -> int:
        return self.current_profile.port if self.current_profile else 5432

    @property
    def database(self) -> str:
        return self.current_profile.database if self.current_profile else 'postgres'

    @property
    def user(self) -> str:
        return self.current_profile.user if self.current_profile else 'postgres'

    @property
    def password(self) -> str:
        return self.current_profile.password if self.current_profile else ''

    @property
    def sslmode(self) -> Optional[str]:
        return self.current_profile.sslmode if self.current_profile else None

    @property
    def connect_timeout(self) -> int:
        return self.current_profile.connect_timeout if self.current_profile else 10

    @property
    def query_timeout(self) -> int:
        return self.current_profile.query_timeout if self.current_profile else 30

    @property
    def pool_size(self) -> int:
        return int(os.getenv('DB_POOL_SIZE', '10'))

    @property
    def pool_timeout(self) -> int:
        return int(os.getenv('DB_POOL_TIMEOUT', '30'))

    def redacted_uri(self) -> str:
        """Connection URI safe for logs: the password is never included."""
        uri = f"postgresql://{self.user}@{self.host}:{self.port}/{self.database}"
        if self.sslmode:
            uri += f"?sslmode={self.sslmode}"
        return uri

    def get_profile_info(self) -> Dict[str, Any]:
        """Get information about the current profile, without credentials."""
        if not self.current_profile:
            return {'profile': None, 'status': 'not_configured'}

        return {
            'profile': self.current_profile.name,
            'description': self.current_profile.description,
            'environment': self.current_profile.environment,
            'database': self.database,
            'host': self.host,
            'port': self.port,
            'sslmode': self.sslmode
        }

    def validate(self):
        """Validate required configuration."""
        if not self.current_profile:
            raise ValueError("No database profile configured")

        name = self.current_profile.name
        if not self.host:
            raise ValueError(f"Host is required for database profile '{name}'")
        if not self.database:
            raise ValueError(f"Database name is required for database profile '{name}'")
        if not self.user:
            raise ValueError(f"User is required for database profile '{name}'")
        if self.sslmode and self.sslmode not in SSL_MODES:
            raise ValueError(
                f"Invalid sslmode '{self.sslmode}' for database profile '{name}'. "
                f"Use one of: {', '.join(SSL_MODES)}"
            )
        self._validate_numeric_config()

    def _validate_numeric_config(self):
        """Validate that numeric config values can be parsed."""
        for variable, default in (('DB_PORT', '5432'), ('DB_CONNECT_TIMEOUT', '10'),
                                  ('DB_QUERY_TIMEOUT', '30'), ('DB_POOL_SIZE', '10'),
                                  ('DB_POOL_TIMEOUT', '30')):
            value = os.getenv(variable, default)
            try:
                parsed = int(value)
            except ValueError:
                raise ValueError(f"Invalid {variable} value: {value}")
            if parsed <= 0:
                raise ValueError(f"Invalid {variable} value: {value}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert current profile to a dictionary for psycopg2."""
        if not self.current_profile:
            raise ValueError("No current database profile configured")

        return self.current_profile.to_dict()
