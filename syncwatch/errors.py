from __future__ import annotations


class SyncWatchError(Exception):
    """Base class for SyncWatch errors."""


class ConfigError(SyncWatchError):
    pass


class StoreConfigError(ConfigError):
    """The S3 client could not be built from the configured endpoint or region."""


class SubscriptionError(SyncWatchError):
    """The recursive filesystem subscription could not be set up."""

    def __init__(self, root: str, reason: str) -> None:
        super().__init__(f"Cannot watch {root}: {reason}")
        self.root = root
        self.reason = reason


class FileReadError(SyncWatchError):
    """A file vanished or became unreadable between detection and read."""

    def __init__(self, path: str, cause: OSError) -> None:
        super().__init__(f"Cannot read {path}: {cause}")
        self.path = path
        self.cause = cause


class UploadError(SyncWatchError):
    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(f"Upload failed for {key}: {cause}")
        self.key = key
        self.cause = cause


class DeleteError(SyncWatchError):
    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(f"Delete failed for {key}: {cause}")
        self.key = key
        self.cause = cause


class DownloadError(SyncWatchError):
    def __init__(self, key: str, cause: BaseException) -> None:
        super().__init__(f"Download failed for {key}: {cause}")
        self.key = key
        self.cause = cause


class RecordExistsError(SyncWatchError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Already tracking {path}")
        self.path = path


class RecordMissingError(SyncWatchError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Not tracking {path}")
        self.path = path
