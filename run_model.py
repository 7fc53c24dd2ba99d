import asyncio
import logging

from app.settings import build_settings
from app.container import build_container
from app.llama_bootstrap import ensure_model
from app.model_selection import get_hardware_info, prompt_model_choice, recommend_model
from config.llama_models import MODEL_SPECS
from interfaces.errors import PocketLlmError


def _print_progress(downloaded, total):
    if total:
        print(f"\rDownloading... {downloaded * 100 // total}%", end="", flush=True)
    else:
        print(f"\rDownloading... {downloaded} bytes", end="", flush=True)


async def _echo_tokens(subscription):
    async for token in subscription:
        print(token, end="", flush=True)


async def choose_model(deps):
    """Offer the catalog when nothing usable is saved yet."""
    pipeline = deps["pipeline"]
    hw = get_hardware_info(deps["sessions"].is_acceleration_available())
    recommended = recommend_model(MODEL_SPECS, hw)
    installed = set(deps["store"].list_models())

    spec = await asyncio.to_thread(prompt_model_choice, MODEL_SPECS, recommended, installed, hw)
    if spec is None:
        return False
    print(spec.description)
    for link in spec.repository_links:
        print(f"  {link.label}: {link.url}")

    try:
        path = await ensure_model(
            spec,
            deps["store"],
            deps["downloader"],
            on_progress=_print_progress,
            on_status=print,
        )
    except PocketLlmError as exc:
        print(f"\nModel download failed: {exc}")
        await deps["settings"].clear_model_path()
        return False

    print()
    await pipeline.select_model(path.name)
    return True


async def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    # Build config (paths/download/engine defaults)
    print("Building the app settings")
    app_cfg = build_settings()
    print(f"Models folder: {app_cfg.paths.models_dir}")
    print(f"Settings file: {app_cfg.paths.settings_file}")

    # Build all services via a container
    deps = build_container(app_cfg)
    pipeline = deps["pipeline"]
    tokens = deps["sessions"].progress.subscribe()
    echo = asyncio.create_task(_echo_tokens(tokens))

    try:
        await pipeline.start()
        if pipeline.saved_model_file() is None and not await choose_model(deps):
            print("No model selected. Have a nice day!")
            return

        print("Loading the language model. Closing unused apps can help.")
        await pipeline.wait_idle()
        print(pipeline.status)

        while True:
            prompt = (await asyncio.to_thread(input, "\n> ")).strip()
            if prompt.lower() in {"", "q", "quit", "exit"}:
                break
            try:
                await pipeline.run_inference(prompt)
            except PocketLlmError as exc:
                print(f"\n{exc}")
            print()
    finally:
        print("Releasing the model. Have a nice day!")
        await pipeline.close()
        tokens.close()
        await asyncio.wait([echo])


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
