from pathlib import Path

from photo_pipeline.moderation.exceptions import ModerationError

_DEFAULT_PROMPT_DIR = Path(__file__).parent / "prompts"


def load_prompt_template(path: Path | None = None) -> str:
    """Load the moderation prompt template from a file.

    Args:
        path: Path to the prompt template file.
              Defaults to the bundled moderation_prompt.txt.

    Returns:
        The raw template string with placeholders.

    Raises:
        ModerationError: if the file cannot be read.
    """
    if path is None:
        path = _DEFAULT_PROMPT_DIR / "moderation_prompt.txt"
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ModerationError(f"Failed to load prompt template: {exc}") from exc


def load_json_schema(path: Path | None = None) -> str:
    """Load the verdict JSON schema from a file.

    Raises:
        ModerationError: if the file cannot be read.
    """
    if path is None:
        path = _DEFAULT_PROMPT_DIR / "moderation_schema.json"
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ModerationError(f"Failed to load JSON schema: {exc}") from exc
