from pathlib import Path

# Define the root directory of the project
ROOT_DIR = Path(__file__).resolve().parent

# Define specific directories
LOGS_DIR = ROOT_DIR / "logs"
CORE_DIR = ROOT_DIR / "core"
UTILS_DIR = ROOT_DIR / "utils"
CONFIG_DIR = ROOT_DIR / "config"

# Ensure necessary directories exist
LOGS_DIR.mkdir(parents=True, exist_ok=True)
