"""Model management for downloading, caching, and status tracking."""

import os
import shutil
import threading
from enum import Enum
from pathlib import Path
from typing import Callable

from huggingface_hub import snapshot_download
from huggingface_hub.constants import HF_HUB_CACHE
from huggingface_hub.utils import LocalEntryNotFoundError

from .. import log
from ..errors import ModelDownloadError

logger = log.get_logger("models")

# Suppress HuggingFace Hub warnings
os.environ["HF_HUB_DISABLE_IMPLICIT_TOKEN"] = "1"
os.environ["HF_HUB_VERBOSITY"] = "error"


class ModelStatus(Enum):
    """Status of a model installation."""

    NOT_INSTALLED = "not_installed"
    DOWNLOADING = "downloading"
    READY = "ready"
    ERROR = "error"


# callback(done_repos, total_repos, repo_id)
ProgressCallback = Callable[[int, int, str], None]


class ModelManager:
    """Manages HuggingFace Hub model repositories.

    Tracks per-repository download status and the last error so the UI can
    report progress and failures. Safe to call from worker threads.
    """

    def __init__(self):
        self._download_status: dict[str, ModelStatus] = {}
        self._download_errors: dict[str, str] = {}
        self._lock = threading.Lock()

    def get_hf_cache_path(self, repo_id: str) -> Path:
        """Get HuggingFace cache directory for a repository.

        Args:
            repo_id: Repository ID (e.g., "org/model-name").

        Returns:
            Path to the cache directory for this repo.
        """
        # HuggingFace stores repos as: ~/.cache/huggingface/hub/models--org--repo/
        repo_folder = "models--" + repo_id.replace("/", "--")
        return Path(HF_HUB_CACHE) / repo_folder

    def is_installed(self, repo_id: str) -> bool:
        """Check whether a repository is fully present in the local cache."""
        try:
            snapshot_download(repo_id=repo_id, local_files_only=True)
        except LocalEntryNotFoundError:
            return False
        return True

    def missing(self, repo_ids: list[str]) -> list[str]:
        """Return the repositories from ``repo_ids`` that are not installed."""
        return [repo_id for repo_id in repo_ids if not self.is_installed(repo_id)]

    def get_status(self, repo_id: str) -> ModelStatus:
        with self._lock:
            if repo_id in self._download_status:
                return self._download_status[repo_id]
            if repo_id in self._download_errors:
                return ModelStatus.ERROR

        if self.is_installed(repo_id):
            return ModelStatus.READY
        return ModelStatus.NOT_INSTALLED

    def get_error(self, repo_id: str) -> str | None:
        """Get the error message of the last failed download, if any."""
        with self._lock:
            return self._download_errors.get(repo_id)

    def get_model_path(self, repo_id: str) -> Path | None:
        """Path of an installed repository, or None when not installed."""
        try:
            return Path(snapshot_download(repo_id=repo_id, local_files_only=True))
        except LocalEntryNotFoundError:
            return None

    def install(
        self,
        repo_ids: list[str],
        progress_callback: ProgressCallback | None = None,
    ) -> list[Path]:
        """Download and install model repositories.

        Args:
            repo_ids: Repositories to download, in order.
            progress_callback: Optional callback after each repository.

        Returns:
            List of paths to the installed model directories.

        Raises:
            ModelDownloadError: If any download fails.
        """
        model_paths = []
        total_repos = len(repo_ids)

        for idx, repo_id in enumerate(repo_ids):
            with self._lock:
                self._download_errors.pop(repo_id, None)
                self._download_status[repo_id] = ModelStatus.DOWNLOADING

            try:
                logger.info("downloading model", repo=repo_id, progress=f"{idx + 1}/{total_repos}")
                model_path = Path(snapshot_download(repo_id=repo_id))

                if progress_callback:
                    progress_callback(idx + 1, total_repos, repo_id)

                with self._lock:
                    self._download_status[repo_id] = ModelStatus.READY
                model_paths.append(model_path)
                logger.info("model download complete", repo=repo_id)

            except Exception as e:
                with self._lock:
                    self._download_status[repo_id] = ModelStatus.ERROR
                    self._download_errors[repo_id] = str(e)
                logger.error("model download failed", repo=repo_id, error=str(e))
                raise ModelDownloadError(f"Downloading {repo_id} failed: {e}") from e

            finally:
                # Keep error status, drop the transient ones
                with self._lock:
                    if self._download_status.get(repo_id) != ModelStatus.ERROR:
                        self._download_status.pop(repo_id, None)

        return model_paths

    def uninstall(self, repo_id: str) -> bool:
        """Remove a repository from the cache.

        Returns:
            True if something was removed.
        """
        removed = False
        cache_path = self.get_hf_cache_path(repo_id)
        if cache_path.exists():
            logger.info("uninstalling model", repo=repo_id)
            shutil.rmtree(cache_path)
            removed = True

        with self._lock:
            self._download_status.pop(repo_id, None)
            self._download_errors.pop(repo_id, None)
        return removed

    def repair(self, repo_id: str, progress_callback: ProgressCallback | None = None) -> Path:
        """Re-download a corrupted repository."""
        self.uninstall(repo_id)
        return self.install([repo_id], progress_callback)[0]
