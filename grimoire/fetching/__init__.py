from grimoire.fetching.batch import (
    BatchProgress,
    BatchResult,
    BatchUpdate,
    fetch_in_batches,
)

__all__ = ["BatchProgress", "BatchResult", "BatchUpdate", "fetch_in_batches"]
