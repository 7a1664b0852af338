import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class TokenStore:
    """Keeps the bearer token on disk between runs."""

    def __init__(self, path: str | Path):
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> str | None:
        try:
            token = self._path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Discarding unreadable token file %s (%s)", self._path, exc)
            try:
                self.clear()
            except OSError as clear_exc:
                logger.warning("Could not remove %s (%s)", self._path, clear_exc)
            return None
        return token or None

    def save(self, token: str):
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(token, encoding="utf-8")
        try:
            self._path.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not restrict permissions on %s (%s)", self._path, exc)

    def clear(self):
        self._path.unlink(missing_ok=True)
