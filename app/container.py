# Import storage, network and session components.
from services.model_store import ModelStore
from services.downloader import Downloader
from services.session_manager import SessionManager
from services.settings_store import JsonSettingsStore
from services.settings_controller import SettingsController
from services.llm_service import LlmService

# Import the llama.cpp engine + orchestration
from nlp.llm.engine import LlamaCppEngine
from app.pipeline import ModelPipeline


def build_container(cfg, engine=None):
    """
    Dependency container builder
    Responsibility:
     - Takes a fully loaded config object
     - Constructs all shared services exactly once
     - Wires dependencies together
     - Returns a dictionary of ready-to-use services
    """

    # --------- Model cache ----------
    # Registry of downloaded model files under <appdata>/models
    store = ModelStore(models_dir=cfg.paths.models_dir)

    # Resilient downloader committing into the model cache
    downloader = Downloader(store=store, config=cfg.download)

    # ---------- Settings -----------
    # JSON-file settings store + controller owning presets and drift to custom
    settings_store = JsonSettingsStore(cfg.paths.settings_file)
    settings = SettingsController(store=settings_store, default=cfg.default_settings)

    # ---------- Engine + session -----------
    # Single active llama.cpp session; tokens are broadcast on sessions.progress
    sessions = SessionManager(engine=engine if engine is not None else LlamaCppEngine())

    # Inference entry point composing settings -> budget -> session
    llm = LlmService(
        settings=settings,
        sessions=sessions,
        fallback_threads=cfg.engine.fallback_threads,
    )

    # ---------- Orchestration -----------
    pipeline = ModelPipeline(
        store=store,
        downloader=downloader,
        settings=settings,
        sessions=sessions,
        llm=llm,
        fallback_threads=cfg.engine.fallback_threads,
        settings_updates=settings_store.updates.subscribe(),
        poll_settings=settings_store.poll_external,
    )

    # ---- RETURN CONTAINER -----
    return {
        "cfg": cfg,
        "store": store,
        "downloader": downloader,
        "settings_store": settings_store,
        "settings": settings,
        "sessions": sessions,
        "llm": llm,
        "pipeline": pipeline,
    }
