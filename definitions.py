from pathlib import Path

# Define the root directory of the project
ROOT_DIR = Path(__file__).resolve().parent

# Define specific directories
LOGS_DIR = ROOT_DIR / "logs"
DATA_DIR = ROOT_DIR / "data"
UPLOADS_DIR = DATA_DIR / "uploads"

DEFAULT_CONFIG_FILE = ROOT_DIR / "config.yaml"
DEFAULT_DOCUMENTS_FILE = DATA_DIR / "documents.json"
