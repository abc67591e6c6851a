import os

# Project root directory (habitstock/)
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Local document store and generated artifacts
DATA_DIR = os.getenv("HABITSTOCK_DATA_DIR", os.path.join(BASE_DIR, "data"))
STORE_FILE = os.path.join(DATA_DIR, "store.json")
LOGS_DIR = os.path.join(BASE_DIR, "logs")

# Every new user starts trading at this price
DEFAULT_START_PRICE = 100.0

# End-of-day settlement never pushes a price below this floor
MIN_PRICE = 1.0

# One-time multiplier applied when news is generated for a completed task
NEWS_BOOST_MULTIPLIER = 1.5

MOVING_AVERAGE_WINDOWS = (5, 20, 60)

# Chart zoom never shows fewer candles than this
MIN_VISIBLE_POINTS = 5

NEWS_API_URL = os.getenv("HABITSTOCK_NEWS_API_URL", "http://127.0.0.1:5001/generateNews")
NEWS_API_TIMEOUT = float(os.getenv("HABITSTOCK_NEWS_API_TIMEOUT", "30"))

# Ensure required local directories exist
os.makedirs(DATA_DIR, exist_ok=True)
