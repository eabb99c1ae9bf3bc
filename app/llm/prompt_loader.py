from pathlib import Path

from app.llm.exceptions import LlmError

_DEFAULT_PROMPT_DIR = Path(__file__).parent / "prompts"


def load_prompt_template(path: Path | None = None) -> str:
    """Load the receipt extraction system prompt from a file.

    Args:
        path: Path to the prompt file.
              Defaults to the bundled receipt_prompt.txt.

    Raises:
        LlmError: if the file cannot be read.
    """
    if path is None:
        path = _DEFAULT_PROMPT_DIR / "receipt_prompt.txt"
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise LlmError(f"Failed to load prompt template: {exc}") from exc
