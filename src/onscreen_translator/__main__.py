"""Main entry point for Onscreen Translator.

This module is executed when running:
- python -m onscreen_translator
- onscreen-translator (via pyproject.toml entry point)
"""

import argparse
import asyncio
import sys

from . import __version__, log
from .backends.base import RecognitionProviderType
from .backends.translation import OpusMTTranslator
from .config import Settings
from .context import AppContext
from .errors import DownloadCancelledError, ModelDownloadError
from .geometry import Point, Rect
from .overlay import ConsoleOverlay
from .session.state import Failed

logger = log.get_logger("main")


def _parse_region(value: str) -> Rect:
    """Parse ``L,T,R,B`` into a rectangle."""
    try:
        left, top, right, bottom = (int(part) for part in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected L,T,R,B, got {value!r}") from None
    return Rect(left, top, right, bottom)


def _parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="onscreen-translator",
        description="Select a screen region, recognize its text and translate it",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yml (default: ./config.yml or ~/.onscreen_translator/config.yml)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Answer yes to download prompts (e.g. missing OPUS-MT models)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    capture = subparsers.add_parser("capture", help="Capture, recognize and translate a screen region")
    capture.add_argument(
        "--region",
        type=_parse_region,
        required=True,
        help="Region to capture as LEFT,TOP,RIGHT,BOTTOM in screen pixels",
    )
    capture.add_argument(
        "--ocr-provider",
        choices=[t.key for t in RecognitionProviderType],
        help="OCR engine to use (saved as the new selection)",
    )
    capture.add_argument("--ocr-lang", help="OCR language code, e.g. ja or zh-Hans")
    capture.add_argument("--provider", help="Translation provider key (saved as the new selection)")
    capture.add_argument("--target", help="Target language code (saved as the new selection)")

    subparsers.add_parser("languages", help="List OCR and translation languages")

    download = subparsers.add_parser("download", help="Download Tesseract data for a language")
    download.add_argument("lang", help="Language code (e.g. ja) or tessdata name (e.g. jpn)")

    return parser.parse_args(argv)


def _apply_selection(ctx: AppContext, args: argparse.Namespace) -> None:
    if args.ocr_provider:
        provider_type = RecognitionProviderType.from_key(args.ocr_provider)
        ctx.catalog.select_ocr_language(args.ocr_lang or ctx.preferences.selected_ocr_lang, provider_type)
    elif args.ocr_lang:
        ctx.catalog.select_ocr_language(args.ocr_lang, ctx.registry.selected_recognizer_type())
    if args.provider:
        ctx.catalog.select_translation_provider(args.provider)
    if args.target:
        ctx.catalog.select_translation_language(args.target)


async def _start_circling(ctx: AppContext) -> bool:
    """Start selecting, waiting once for a model download the provider asked for."""
    if await ctx.orchestrator.start_circling():
        return True

    translator = ctx.registry.selected_translator()
    if isinstance(translator, OpusMTTranslator) and translator.acquisition is not None:
        if await translator.acquisition:
            return await ctx.orchestrator.start_circling()
    return False


async def _run_capture(ctx: AppContext, args: argparse.Namespace) -> int:
    _apply_selection(ctx, args)
    orchestrator = ctx.orchestrator

    outcome = {"failed": False}

    def on_change(old, new):
        if isinstance(new, Failed):
            outcome["failed"] = True

    orchestrator.add_listener(on_change)

    if not await _start_circling(ctx):
        print("Translation provider is not ready.", file=sys.stderr)
        return 1

    parent = ctx.extractor.screen_bounds()
    region = args.region
    if orchestrator.select_area(parent, Point(region.left, region.top), Point(region.right, region.bottom)) is None:
        print(f"Region {region} does not fit the screen {parent}.", file=sys.stderr)
        orchestrator.back_to_idle()
        return 1

    orchestrator.start_capture(args.ocr_lang)
    await orchestrator.wait()
    orchestrator.back_to_idle()
    return 1 if outcome["failed"] else 0


def _list_languages(ctx: AppContext) -> int:
    recognizer = ctx.registry.selected_recognizer()
    print(f"OCR languages ({recognizer.provider_type.key}):")
    print("-" * 60)
    for lang in ctx.catalog.ocr_languages():
        marker = "*" if lang.selected else " "
        status = "" if lang.downloaded else "  (not downloaded)"
        print(f" {marker} {lang.code:<10} {lang.display_name}{status}")

    print()
    print("Translation providers:")
    print("-" * 60)
    for provider in ctx.catalog.translation_providers():
        marker = "*" if provider.selected else " "
        print(f" {marker} {provider.key:<22} {provider.display_name}")

        languages, hint = ctx.catalog.translation_panel(provider.key)
        if hint:
            print(f"      {hint}")
        if languages:
            codes = ", ".join(f"[{lang.code}]" if lang.selected else lang.code for lang in languages)
            print(f"      {codes}")

    print()
    print(f"Current: {ctx.catalog.language_label()}")
    return 0


async def _download(ctx: AppContext, code: str) -> int:
    recognizer = ctx.registry.recognizer(RecognitionProviderType.TESSERACT)
    language = next(
        (lang for lang in recognizer.supported_languages() if code in (lang.code, lang.inner_code)),
        None,
    )
    if language is None:
        print(f"Unknown Tesseract language: {code}", file=sys.stderr)
        return 1
    if language.downloaded:
        print(f"{language.display_name} is already downloaded.")
        return 0

    print(f"Downloading {language.display_name} ({language.inner_code})... Ctrl-C to cancel")
    try:
        await ctx.catalog.download_ocr_model(language)
    except asyncio.CancelledError:
        ctx.catalog.cancel_download()
        raise
    except DownloadCancelledError:
        print("Download cancelled.", file=sys.stderr)
        return 1
    except ModelDownloadError as e:
        print(f"Download failed: {e}", file=sys.stderr)
        return 1

    print("Done.")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = _parse_arguments(argv)
    log.configure(debug=args.debug)

    settings = Settings.load(args.config)
    ctx = AppContext(settings=settings, surface=ConsoleOverlay(auto_confirm=args.yes))
    try:
        if args.command == "capture":
            return asyncio.run(_run_capture(ctx, args))
        if args.command == "languages":
            return _list_languages(ctx)
        if args.command == "download":
            return asyncio.run(_download(ctx, args.lang))
        return 2
    except KeyboardInterrupt:
        print("Interrupted.", file=sys.stderr)
        return 130
    finally:
        ctx.close()


if __name__ == "__main__":
    sys.exit(main())
