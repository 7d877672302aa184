import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME

DATA_PATH = Path(os.environ.get("TOOL_RENTAL_DATA_DIR") or (Path.cwd() / DATA_DIR))
DB_PATH = Path(os.environ.get("TOOL_RENTAL_DB") or (DATA_PATH / DB_FILE_NAME))
