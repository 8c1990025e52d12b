import getpass
from dataclasses import dataclass


NON_VALIDATING_SSL_FACTORY = 'org.postgresql.ssl.NonValidatingFactory'


def current_user():
    try:
        return getpass.getuser()
    except Exception:
        return ''


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Where and how a PostgreSQL client should connect to the started server."""
    port: int
    host: str = 'localhost'
    database: str = 'default'
    user: str = ''
    password: str = ''
    query_mode: str = 'extended'
    ssl: bool = False

    @property
    def jdbc_url(self):
        return f'jdbc:postgresql://{self.host}:{self.port}/{self.database}'

    def jdbc_properties(self):
        props = {
            'user': self.user,
            'password': self.password,
            'prepareThreshold': '1',
            'preferQueryMode': self.query_mode,
        }
        if self.ssl:
            props['ssl'] = 'true'
            props['sslfactory'] = NON_VALIDATING_SSL_FACTORY
        return props

    def dsn(self):
        parts = [
            f'host={self.host}',
            f'port={self.port}',
            f'dbname={self.database}',
        ]
        if self.user:
            parts.append(f'user={self.user}')
        # empty password is never rendered
        if self.password:
            parts.append(f'password={self.password}')
        parts.append(f'sslmode={"require" if self.ssl else "disable"}')
        return ' '.join(parts)
