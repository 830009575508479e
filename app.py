import sys
from pathlib import Path

# Ensure we can import the package from src/
repo_root = Path(__file__).resolve().parent
sys.path.append(str(repo_root / "src"))

import leakstopper.dashboard  # noqa: E402,F401  (streamlit runs the module on import)
