from __future__ import annotations
from pathlib import Path
from typing import Optional
import logging
import os

from platformdirs import user_data_dir

from config.llama_models import LlamaModelSpec
from services.downloader import Downloader, ProgressCallback, StatusCallback
from services.model_store import ModelStore

logger = logging.getLogger(__name__)

APP_NAME = "PocketLLM"
APP_ORG = "PocketLLM"

# Determines where the app data should live
# In dev mode, uses .appdata
# In prod uses the OS-standard user data directory.
def get_app_base_dir(app_name: str = APP_NAME, org: str = APP_ORG) -> Path:
    # Explicit override (tests, packaged builds)
    override = os.getenv("APP_DATA_DIR")
    if override:
        return Path(override).expanduser().resolve()

    # Dev mode -> store inside the repo
    if os.getenv("DEV_MODE", "").strip() in {"1", "true", "True", "yes", "YES"}:
        project_root = Path(__file__).resolve().parents[1]
        return (project_root / ".appdata").resolve()

    # Prod mode -> OS-standard user data dir
    return Path(user_data_dir(app_name, org)).resolve()

# Ensures the model file for a catalog entry exists locally and returns its path.
# Reuses an existing non-empty file.
# Otherwise downloads it through the resilient downloader.
async def ensure_model(
    spec: LlamaModelSpec,
    store: ModelStore,
    downloader: Downloader,
    on_progress: Optional[ProgressCallback] = None,
    on_status: Optional[StatusCallback] = None,
) -> Path:
    existing = store.resolve(spec.hf_filename)
    if existing is not None and existing.stat().st_size > 0:
        logger.info("Model %s already present at %s", spec.display_name, existing)
        return existing

    return await downloader.download(
        spec.download_url,
        spec.hf_filename,
        on_progress=on_progress,
        on_status=on_status,
    )
