from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SESSIONS_DIR = PROJECT_ROOT / "sessions"

SCHEMA_VERSION = 1
UNDO_HISTORY_LIMIT = 50

DEFAULT_TARGET_POINTS = 21
DEFAULT_BEST_OF = 3
DEFAULT_DEUCE_ENABLED = True
