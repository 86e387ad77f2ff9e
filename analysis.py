# analysis.py
import base64
import os
import time
from dataclasses import dataclass

import ollama
from PIL import Image, UnidentifiedImageError

from errors import AnalysisError
from file_utils import format_file_size, log_message
from image_optimizer import PreparedImage, prepare_image


def create_client(host, timeout=120):
    """Ollama client with an explicit per-request timeout (seconds)."""
    return ollama.Client(host=host, timeout=timeout)


@dataclass
class PayloadSize:
    original_bytes: int = 0
    sent_bytes: int = 0


class OllamaAnalyzer:
    """Sends an ordered list of images and a prompt to an Ollama vision model.

    Images are re-encoded (and large ones shrunk) before sending unless
    optimize_images is off. last_payload holds the sizes of the most
    recent request.
    """

    def __init__(self, client, model, options=None, log_callback=None, optimize_images=True):
        self.client = client
        self.model = model
        self.options = options or {}
        self.log_callback = log_callback
        self.optimize_images = optimize_images
        self.last_payload = PayloadSize()

    def _prepare(self, path):
        try:
            if self.optimize_images:
                try:
                    return prepare_image(path)
                except UnidentifiedImageError:
                    log_message(f"  Warning: cannot decode {os.path.basename(path)}, sending it unchanged.",
                                self.log_callback)
            with open(path, 'rb') as f:
                data = f.read()
            return PreparedImage(data, len(data))
        except (OSError, Image.DecompressionBombError) as e:
            raise AnalysisError(f"Could not read image for analysis: {e}") from e

    def analyze(self, image_paths, prompt_text):
        """Returns the raw response text. Raises AnalysisError on any failure."""
        prepared = [self._prepare(path) for path in image_paths]
        images = [base64.b64encode(p.data).decode('utf-8') for p in prepared]
        self.last_payload = PayloadSize(sum(p.original_bytes for p in prepared),
                                        sum(p.optimized_bytes for p in prepared))

        prompt = prompt_text.replace('{image_count}', str(len(image_paths)))
        log_message(f"  Analyzing {len(images)} image(s) with {self.model} "
                    f"(payload {format_file_size(self.last_payload.sent_bytes)}, "
                    f"from {format_file_size(self.last_payload.original_bytes)})...", self.log_callback)
        try:
            response = self.client.generate(model=self.model, prompt=prompt, images=images,
                                            stream=False, options=self.options)
            return response['response']
        except ollama.ResponseError as e:
            raise AnalysisError(f"Ollama returned an error ({e.status_code}): {e.error}") from e
        except Exception as e:
            # connection refused, timeouts and other transport failures
            raise AnalysisError(f"Ollama request failed: {e}") from e


@dataclass
class DispatchResult:
    text: str
    success: bool
    attempts: int
    error: str = None
    original_bytes: int = 0
    sent_bytes: int = 0

    @property
    def retries(self):
        return max(0, self.attempts - 1)


class AnalysisDispatcher:
    """Calls the analyzer for one batch, retrying with a linear backoff.

    A batch gets one attempt plus max_retries retries. Before retry n the
    dispatcher sleeps base_delay * n seconds. Exhausting the retries marks
    the batch failed; it never raises for an analysis failure.
    """

    def __init__(self, analyzer, prompt_text, max_retries=3, base_delay=1.0, sleep=time.sleep, log_callback=None):
        self.analyzer = analyzer
        self.prompt_text = prompt_text
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.sleep = sleep
        self.log_callback = log_callback

    def dispatch(self, batch, batch_count=None):
        label = f"Batch {batch.index + 1}" + (f"/{batch_count}" if batch_count else "")
        attempt = 0
        while True:
            attempt += 1
            log_message(f"{label}: sending {len(batch.frames)} frame(s) "
                        f"(attempt {attempt}/{self.max_retries + 1})", self.log_callback)
            try:
                text = self.analyzer.analyze(list(batch.frames), self.prompt_text)
                payload = getattr(self.analyzer, "last_payload", None) or PayloadSize()
                return DispatchResult(text=text or "", success=True, attempts=attempt,
                                      original_bytes=payload.original_bytes, sent_bytes=payload.sent_bytes)
            except AnalysisError as e:
                if attempt > self.max_retries:
                    log_message(f"  ERROR: {label} failed after {attempt} attempts: {e}", self.log_callback)
                    return DispatchResult(text="", success=False, attempts=attempt, error=str(e))
                delay = self.base_delay * attempt
                log_message(f"  {label} failed, retrying in {delay:.1f}s "
                            f"({attempt}/{self.max_retries}): {e}", self.log_callback)
                self.sleep(delay)

