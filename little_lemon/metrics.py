from prometheus_client import Counter, Histogram

MENU_SYNC_RUNS = Counter(
    "menu_sync_runs_total",
    "Menu sync runs by outcome",
    ["outcome"],  # cold | warm | failed
)

MENU_FETCH_DURATION = Histogram(
    "menu_fetch_duration_seconds",
    "Time spent fetching the remote menu",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

IMAGE_CACHE_LOOKUPS = Counter(
    "image_cache_lookups_total",
    "Image cache lookups by outcome",
    ["outcome"],  # hit | miss | fallback
)

IMAGE_CACHE_EVICTIONS = Counter(
    "image_cache_evictions_total",
    "Cached images removed by the expiry sweep",
)
