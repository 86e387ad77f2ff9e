# file_utils.py
import os
import re
import mimetypes

IMAGE_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.gif', '.bmp', '.webp', '.tiff', '.tif', '.heic', '.heif']
VIDEO_EXTENSIONS = ['.mp4', '.mov', '.avi', '.mkv', '.webm', '.mpeg', '.mpg', '.mts', '.m2ts',
                    '.wmv', '.flv', '.m4v', '.3gp', '.ogv']

# Words LLMs like to prepend to a suggestion ("Sure, here's a filename: ...")
FILLER_WORDS = ["sure", "heres_a_suggestion", "suggested_filename_base", "a_good_filename_base_would_be", "how_about",
                "filename_suggestion", "based_on_the_content", "filename_base", "the_filename", "a_filename",
                "a_descriptive_filename", "descriptive_filename", "filename", "certainly", "here", "heres",
                "the", "a", "an", "is", "of"]


def log_message(message, log_callback=None):
    """Utility to print messages and send them to a GUI/CLI callback if available."""
    if log_callback:
        log_callback(message)
    else:
        print(message)


def setup_mimetypes():
    """Adds custom mime types to the system's database."""
    types = {
        "video/mp2t": ".mts", "video/mp4": ".mp4", "video/mpeg": ".mpeg",
        "video/quicktime": ".mov", "video/x-msvideo": ".avi", "video/x-matroska": ".mkv",
        "video/webm": ".webm", "video/x-m4v": ".m4v", "video/3gpp": ".3gp",
        "image/webp": ".webp", "image/heic": ".heic", "image/heif": ".heif",
    }
    for mime, ext in types.items():
        mimetypes.add_type(mime, ext, strict=False)


def detect_media_type(filepath):
    """Returns 'image', 'video' or None for a file path."""
    ext = os.path.splitext(filepath)[1].lower()
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    mime_type, _ = mimetypes.guess_type(filepath, strict=False)
    if mime_type:
        if mime_type.startswith('image/'):
            return "image"
        if mime_type.startswith('video/'):
            return "video"
    return None


def collect_media_files(folder, skip_extensions=None, include_hidden=False, log_callback=None):
    """Lists the supported media files of a folder (not recursive), sorted by name."""
    skipped = [ext.lower() if ext.startswith('.') else '.' + ext.lower() for ext in (skip_extensions or [])]
    media_files = []
    for filename in sorted(os.listdir(folder)):
        filepath = os.path.join(folder, filename)
        if not os.path.isfile(filepath):
            continue
        if filename.startswith('.') and not include_hidden:
            log_message(f"Skipping hidden file: '{filename}'", log_callback)
            continue
        if os.path.splitext(filename)[1].lower() in skipped:
            log_message(f"Skipping '{filename}' due to extension filter.", log_callback)
            continue
        if detect_media_type(filepath) is None:
            log_message(f"Skipping unsupported file type: {filename}", log_callback)
            continue
        media_files.append(filepath)
    return media_files


def sanitize_filename_component(component):
    """Cleans a string to be a valid filename component."""
    name = component.strip().strip("'").strip('"').strip('`')
    name = re.sub(r'\s+', '_', name)
    name = re.sub(r'[^\w._-]', '', name)
    name = re.sub(r'_{2,}', '_', name)
    return name.strip('_.').lower()


def clean_suggestion(suggestion):
    """Turns a free-form model suggestion into a filename base. May return ''."""
    suggested_base = suggestion.strip()
    base_without_ext, ext = os.path.splitext(suggested_base)
    if ext and 1 < len(ext) < 6 and ' ' not in ext:  # Check for plausible extension
        suggested_base = base_without_ext

    cleaned_base = sanitize_filename_component(suggested_base)
    words = cleaned_base.split('_')
    filtered_words = [word for word in words if word not in FILLER_WORDS and word]
    return '_'.join(filtered_words)


def format_file_size(num_bytes):
    """Human-readable file size."""
    size = float(num_bytes)
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size < 1024 or unit == 'GB':
            return f"{size:.0f} {unit}" if unit == 'B' else f"{size:.2f} {unit}"
        size /= 1024
