"""
Environment detection and .env file loading.

A single .env file is used on the desktop and inside Docker; runtime detection
picks the right location and the environment-specific defaults.
"""
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


class Environment:
    """Detect and configure environment."""

    def __init__(self):
        self.is_docker = self._detect_docker()
        self.env_name = "docker" if self.is_docker else "dev"
        self.env_file = self._find_env_file()
        self._loaded = False

    def _detect_docker(self) -> bool:
        """Detect if running in Docker container."""
        if os.path.exists('/.dockerenv'):
            return True
        if os.getenv('IN_DOCKER', '').lower() == 'true':
            return True
        try:
            with open('/proc/1/cgroup', 'r') as f:
                return 'docker' in f.read()
        except OSError:
            return False

    def _find_env_file(self) -> Optional[Path]:
        """Find the .env file for the current environment."""
        explicit = os.getenv('LEDGER_ENV_FILE')
        if explicit:
            env_path = Path(explicit)
        elif self.is_docker:
            env_path = Path('/app/.env')
        else:
            # Config/ -> project root
            env_path = Path(__file__).parents[1] / '.env'

        return env_path if env_path.exists() else None

    def load(self, force_reload: bool = False) -> None:
        """
        Load environment variables from file.

        Values already present in the process environment win over the file.

        Args:
            force_reload: If True, reload even if already loaded
        """
        if self._loaded and not force_reload:
            return

        if not self.env_file:
            self._loaded = True
            return

        load_dotenv(self.env_file, override=False)
        self._loaded = True

    # ========================================================================
    # Environment-Specific Helpers
    # ========================================================================

    @property
    def database_url(self) -> str:
        """Database DSN; SQLite file in the project root when unset."""
        url = os.getenv('DATABASE_URL')
        if url:
            return url
        if self.is_docker:
            return (
                f"postgresql+asyncpg://{os.getenv('DB_USER', 'ledger')}:{os.getenv('DB_PASSWORD', '')}"
                f"@{os.getenv('DB_HOST', 'db')}:{os.getenv('DB_PORT', '5432')}/{os.getenv('DB_NAME', 'ledger')}"
            )
        return 'sqlite+aiosqlite:///ledger.db'

    @property
    def log_dir(self) -> Path:
        """Get log directory for current environment."""
        explicit = os.getenv('LOG_DIR')
        if explicit:
            return Path(explicit)
        if self.is_docker:
            return Path('/app/logs')
        return Path(__file__).parents[1] / 'logs'

    def __repr__(self) -> str:
        return f"Environment(env={self.env_name}, docker={self.is_docker}, file={self.env_file})"


# ============================================================================
# Global Instance - Auto-load on import
# ============================================================================

env = Environment()
env.load()

is_docker = env.is_docker
env_name = env.env_name


def get_environment() -> str:
    """Name of the running environment ('dev' or 'docker')."""
    return env.env_name
