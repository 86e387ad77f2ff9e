# config.py
import copy
import json
import os
from dataclasses import dataclass, field

from errors import ConfigError
from file_utils import log_message

DEFAULT_CONFIG_FILENAME = "config.json"
EXTRACTION_STRATEGIES = ("single", "multiple", "keyframes")

DEFAULT_PROMPTS = {
    "batch_analysis": "You are given {image_count} images, in order. Some of them may be frames taken from the same video. For each image, suggest a detailed and descriptive filename base (lowercase, underscores for spaces, no file extension). If an image features a recurring subject or scene element, use a consistent and specific term for that element. Example for a general scene: 'ginger_cat_sleeping_blue_armchair_sunlit_room'. Avoid generic names.\n\nAnswer with exactly one line per image, numbered from 1 in the order the images were given, in this format:\nDESC1: <filename base for image 1>\nDESC2: <filename base for image 2>\n\nDo not add any other text."
}
DEFAULT_CONFIG_DATA = {
  "models": {"vision_model": "llava:latest"},
  "ollama_host": "http://localhost:11434",
  "request_timeout": 120,
  "generation_parameters": {"temperature": 0.4, "num_predict": 1024},
  "batch_processing": {"max_batch_size": 40, "max_tokens_per_request": 15000, "avg_tokens_per_frame": 200},
  "retry": {"max_retries": 3, "base_delay": 1.0},
  "image_processing": {"optimize": True},
  "video_processing": {"strategy": "multiple", "frames_to_analyze": 5, "single_frame_offset": 10,
                       "extract_workers": 2, "extract_timeout": 300},
  "prompts": DEFAULT_PROMPTS
}


def load_config(filename=DEFAULT_CONFIG_FILENAME, log_callback=None):
    """Loads configuration from a JSON file, using defaults for missing keys."""
    if os.path.exists(filename):
        try:
            with open(filename, 'r') as f:
                config = json.load(f)
            if not isinstance(config, dict):
                raise ValueError("top-level value is not an object")
            # Ensure all default keys exist, one level down included
            for key, value in DEFAULT_CONFIG_DATA.items():
                if isinstance(value, dict) and isinstance(config.get(key), dict):
                    for sub_key, sub_value in value.items():
                        config[key].setdefault(sub_key, copy.deepcopy(sub_value))
                else:
                    config.setdefault(key, copy.deepcopy(value))
        except (OSError, ValueError) as e:
            log_message(f"Error loading {filename}: {e}. Using default config.", log_callback)
            config = copy.deepcopy(DEFAULT_CONFIG_DATA)
    else:
        log_message(f"Config file {filename} not found. Creating with default values.", log_callback)
        config = copy.deepcopy(DEFAULT_CONFIG_DATA)
        save_config(config, filename, log_callback)
    return config


def save_config(config, filename=DEFAULT_CONFIG_FILENAME, log_callback=None):
    """Saves the configuration to a JSON file."""
    try:
        with open(filename, 'w') as f:
            json.dump(config, f, indent=2)
        log_message(f"Saved configuration to {filename}", log_callback)
    except OSError as e:
        log_message(f"Error saving configuration to {filename}: {e}", log_callback)


@dataclass
class EngineSettings:
    """Plain values handed to the batch engine."""
    vision_model: str = DEFAULT_CONFIG_DATA["models"]["vision_model"]
    ollama_host: str = DEFAULT_CONFIG_DATA["ollama_host"]
    request_timeout: float = 120
    temperature: float = 0.4
    num_predict: int = 1024
    max_batch_size: int = 40
    max_tokens_per_request: int = 15000
    avg_tokens_per_frame: int = 200
    max_retries: int = 3
    retry_base_delay: float = 1.0
    extraction_strategy: str = "multiple"
    frames_to_analyze: int = 5
    single_frame_offset: int = 10
    extract_workers: int = 2
    extract_timeout: float = 300
    optimize_images: bool = True
    prompt_text: str = DEFAULT_PROMPTS["batch_analysis"]
    output_dir: str = None
    preview: bool = False
    ollama_options: dict = field(default_factory=dict)

    def validate(self):
        if self.max_batch_size < 1:
            raise ConfigError(f"max_batch_size must be at least 1, got {self.max_batch_size}")
        if self.max_tokens_per_request < 1 or self.avg_tokens_per_frame < 0:
            raise ConfigError("token budget values must be positive")
        if self.max_retries < 0:
            raise ConfigError(f"max_retries cannot be negative, got {self.max_retries}")
        if self.extraction_strategy not in EXTRACTION_STRATEGIES:
            raise ConfigError(f"Unknown extraction strategy '{self.extraction_strategy}'. "
                              f"Choose one of: {', '.join(EXTRACTION_STRATEGIES)}")
        if self.frames_to_analyze < 1:
            raise ConfigError(f"frames_to_analyze must be at least 1, got {self.frames_to_analyze}")
        if self.extract_workers < 1:
            raise ConfigError(f"extract_workers must be at least 1, got {self.extract_workers}")
        if not self.prompt_text or not self.prompt_text.strip():
            raise ConfigError("The batch analysis prompt is empty")
        return self


def settings_from_config(config, **overrides):
    """Builds EngineSettings from a config dictionary. Overrides set to None are ignored."""
    gen = config.get("generation_parameters", {})
    batch = config.get("batch_processing", {})
    retry = config.get("retry", {})
    video = config.get("video_processing", {})
    try:
        values = {
            "vision_model": (config.get("models", {}).get("vision_model") or "").strip(),
            "ollama_host": config.get("ollama_host"),
            "request_timeout": float(config.get("request_timeout", 120)),
            "temperature": float(gen.get("temperature", 0.4)),
            "num_predict": int(gen.get("num_predict", 1024)),
            "max_batch_size": int(batch.get("max_batch_size", 40)),
            "max_tokens_per_request": int(batch.get("max_tokens_per_request", 15000)),
            "avg_tokens_per_frame": int(batch.get("avg_tokens_per_frame", 200)),
            "max_retries": int(retry.get("max_retries", 3)),
            "retry_base_delay": float(retry.get("base_delay", 1.0)),
            "extraction_strategy": video.get("strategy", "multiple"),
            "frames_to_analyze": int(video.get("frames_to_analyze", 5)),
            "single_frame_offset": int(video.get("single_frame_offset", 10)),
            "extract_workers": int(video.get("extract_workers", 2)),
            "extract_timeout": float(video.get("extract_timeout", 300)),
            "optimize_images": bool(config.get("image_processing", {}).get("optimize", True)),
            "prompt_text": config.get("prompts", {}).get("batch_analysis", DEFAULT_PROMPTS["batch_analysis"]),
        }
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e

    values.update({key: value for key, value in overrides.items() if value is not None})
    if not values["vision_model"]:
        raise ConfigError("Vision model not set.")
    settings = EngineSettings(**values)
    settings.ollama_options = {"temperature": settings.temperature, "num_predict": settings.num_predict}
    return settings.validate()
