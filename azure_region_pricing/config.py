# --- Configuration Constants ---

# Retail Prices API
RETAIL_PRICES_API_ENDPOINT = "https://prices.azure.com/api/retail/prices"
RETAIL_PRICES_API_VERSION = "2023-01-01-preview"
CURRENCY_CODE = "USD"
PRICE_TYPE = "Consumption"

# Query batching
FILTER_BATCH_SIZE = 10 # Max values per OR-group in a single $filter
MAX_FILTER_LENGTH = 2000 # Characters; longer filters get split into smaller batches

# Retries
MAX_RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY_SECONDS = 1.0
RETRY_MAX_DELAY_SECONDS = 30.0
REQUEST_TIMEOUT_SECONDS = 60
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

# Matching
MAX_WORKERS = 8 # Descriptors matched in parallel
PERCENTAGE_PRECISION = 2

# Settings
LOG_FILENAME = "region_price_compare_log.txt"
DEFAULT_OUTPUT_DIR = "region_price_comparison"
METER_ID_COLUMNS = ("MeterId", "meterId", "Meter ID", "ResourceMeterId")
