from __future__ import annotations

from satsurvey.storage.backends import ImportOutcome, SatelliteBackend, WriteOutcome
from satsurvey.storage.local import LocalBackend, LocalStore
from satsurvey.storage.sharepoint import SharePointBackend, SharePointClient

__all__ = [
    "ImportOutcome",
    "LocalBackend",
    "LocalStore",
    "SatelliteBackend",
    "SharePointBackend",
    "SharePointClient",
    "WriteOutcome",
]
