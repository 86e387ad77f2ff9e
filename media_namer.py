#!/usr/bin/env python3
import argparse
import os
import sys

import config as cfg
from analysis import OllamaAnalyzer, create_client
from cleanup import CleanupScope
from errors import ConfigError, DependencyUnavailable
from file_utils import collect_media_files, log_message, setup_mimetypes
from renamer_core import MediaBatchProcessor


def build_parser(config):
    video = config.get("video_processing", {})
    batch = config.get("batch_processing", {})
    parser = argparse.ArgumentParser(
        description="Rename images and videos based on their content using an Ollama vision model.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument("paths", nargs="+", help="A folder containing media files, or individual media files.")
    parser.add_argument("--config", default=cfg.DEFAULT_CONFIG_FILENAME, help="Path to the JSON configuration file.")
    parser.add_argument("--vision-model", help=f"Ollama vision model (config: {config.get('models', {}).get('vision_model')}).")
    parser.add_argument("--ollama-host", help=f"Ollama server address (config: {config.get('ollama_host')}).")
    parser.add_argument("--strategy", choices=cfg.EXTRACTION_STRATEGIES, help=f"Video frame extraction strategy (config: {video.get('strategy')}).")
    parser.add_argument("--video-frames", type=int, help=f"Frames per video for the 'multiple' strategy (config: {video.get('frames_to_analyze')}).")
    parser.add_argument("--batch-size", type=int, help=f"Max frames per AI request (config: {batch.get('max_batch_size')}).")
    parser.add_argument("--max-tokens", type=int, help=f"Estimated token budget per AI request (config: {batch.get('max_tokens_per_request')}).")
    parser.add_argument("--timeout", type=float, help=f"Seconds to wait for one AI request (config: {config.get('request_timeout')}).")
    parser.add_argument("--output-dir", help="Copy renamed files into this folder instead of renaming in place.")
    parser.add_argument("--dry-run", action="store_true", help="Show proposed renames without touching any file.")
    parser.add_argument("--skip-extensions", nargs="*", default=[], help="List of file extensions to skip (e.g., .gif .webp).")
    parser.add_argument("--include-hidden", action="store_true", help="Also process hidden files when scanning a folder.")
    parser.add_argument("--no-optimize", action="store_true", help="Send images as they are on disk instead of re-encoding and shrinking them.")
    return parser


def config_path_from_argv(argv):
    """Finds --config before the full parser exists, since its defaults come from the config."""
    for i, arg in enumerate(argv):
        if arg == "--config" and i + 1 < len(argv):
            return argv[i + 1]
        if arg.startswith("--config="):
            return arg.split("=", 1)[1]
    return cfg.DEFAULT_CONFIG_FILENAME


def resolve_inputs(paths, skip_extensions, include_hidden):
    files = []
    for path in paths:
        if os.path.isdir(path):
            print(f"Scanning folder: {path}")
            files.extend(collect_media_files(path, skip_extensions, include_hidden))
        else:
            files.append(path)
    return files


def print_outcomes(outcomes, preview):
    print("\n--- Results ---")
    for outcome in outcomes:
        name = os.path.basename(outcome.original_path)
        if outcome.success:
            verb = "would become" if preview else "->"
            flag = "  (low confidence)" if outcome.analysis_result and outcome.analysis_result.degraded else ""
            print(f"  OK    {name} {verb} {os.path.basename(outcome.new_path)}{flag}")
        else:
            print(f"  FAIL  {name}: {outcome.error}")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    config = cfg.load_config(config_path_from_argv(argv))
    args = build_parser(config).parse_args(argv)

    try:
        settings = cfg.settings_from_config(
            config,
            vision_model=args.vision_model, ollama_host=args.ollama_host,
            extraction_strategy=args.strategy, frames_to_analyze=args.video_frames,
            max_batch_size=args.batch_size, max_tokens_per_request=args.max_tokens,
            request_timeout=args.timeout, output_dir=args.output_dir, preview=args.dry_run,
            optimize_images=False if args.no_optimize else None,
        )
    except ConfigError as e:
        print(f"Error: {e}")
        return 2

    setup_mimetypes()
    for path in args.paths:
        if not os.path.exists(path):
            print(f"Error: Path not found: {path}")
            return 2
    files = resolve_inputs(args.paths, args.skip_extensions, args.include_hidden)
    if not files:
        print("No supported media files found. Nothing to do.")
        return 0

    try:
        client = create_client(settings.ollama_host, settings.request_timeout)
        client.list()
        print(f"Successfully connected to Ollama at {settings.ollama_host}")
    except Exception as e:
        print(f"Error: Could not connect to Ollama at {settings.ollama_host}. Ensure Ollama is running. Details: {e}")
        return 2

    if settings.preview:
        print("DRY RUN MODE: No files will actually be renamed.")
    if settings.output_dir:
        print(f"OUTPUT MODE: Renamed copies will be written to {settings.output_dir}")

    analyzer = OllamaAnalyzer(client, settings.vision_model, settings.ollama_options,
                              optimize_images=settings.optimize_images)
    processor = MediaBatchProcessor(analyzer, settings)
    with CleanupScope() as scope:
        scope.install_signal_handlers()
        try:
            outcomes, stats = processor.process(files, scope)
        except DependencyUnavailable as e:
            log_message(f"Error: {e}")
            log_message("Install FFmpeg (e.g. 'brew install ffmpeg' or 'sudo apt install ffmpeg') to process videos.")
            return 2
        except KeyboardInterrupt:
            log_message("Interrupted. Files renamed so far keep their new names.")
            return 130

    print_outcomes(outcomes, settings.preview)
    print("\n--- Summary ---")
    for line in stats.summary_lines():
        print(line)
    return 0 if stats.failed_files == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
