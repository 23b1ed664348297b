from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = BASE_DIR / "data"
DB_PATH = DATA_DIR / "positional.db"

# =========================
# GRID
# =========================

BLOCK_SIZE = 20.0

# Campos extra de cada punto cuando se importa una nube LAZ
LAZ_SCHEMA = [
    ("z", "REAL"),
    ("red", "INTEGER"),
    ("green", "INTEGER"),
    ("blue", "INTEGER"),
]

CHUNK_SIZE = 2_000_000  # puntos por chunk

# =========================
# API
# =========================

CORS_ORIGINS = ["http://localhost:4200"]

# =========================
# SERVIDOR
# =========================

HOST = "0.0.0.0"
PORT = 8000
RELOAD = True
LOG_LEVEL = "info"
