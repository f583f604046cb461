"""Document search integration (sibling retrieval service)."""

from erp_analyst.documents.client import (
    DocumentSearchClient,
    DocumentSearchClientFactory,
    DocumentSearchCredentials,
    Passage,
)

__all__ = [
    "DocumentSearchClient",
    "DocumentSearchClientFactory",
    "DocumentSearchCredentials",
    "Passage",
]
