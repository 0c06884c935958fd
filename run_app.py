"""Launcher: loads .env, configures logging, then runs Streamlit."""
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
os.chdir(ROOT)

import settings
settings.load_env(ROOT)

logging.basicConfig(
    level=settings.get_log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

sys.argv = ["streamlit", "run", "app.py"]
from streamlit.web import cli as stcli
sys.exit(stcli.main())
