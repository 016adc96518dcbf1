import json
import re
import unicodedata
from typing import Any, Dict, Optional

CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def normalize_text(text: str) -> str:
    """Purpose: Normalize free-form text for accent-insensitive matching.
    Inputs/Outputs: Input is a raw string; output is a lowercase ASCII-only string with
        diacritics removed, punctuation replaced by spaces and whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by the name resolver.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Fuzzy suggestions miss accented category names ("Été" vs "ete").
    Testing Notes: Validate French text is normalized (e.g., "Chaussures d'été" ->
        "chaussures d ete").
    """
    # Lowercase, strip diacritics, then collapse punctuation and whitespace.
    if not text:
        return ""
    lowered = text.lower().replace("œ", "oe").replace("æ", "ae")
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    cleaned = re.sub(r"[^a-z0-9\s]+", " ", stripped)
    return re.sub(r"\s+", " ", cleaned).strip()


def fold_case(text: str) -> str:
    """Case-fold and collapse whitespace; accents are kept."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip().casefold()


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code fence such as ```json ... ```."""
    return CODE_FENCE_RE.sub("", text.strip())


def extract_json_block(text: str) -> Optional[str]:
    """Purpose: Extract the first JSON object block from an arbitrary string.
    Inputs/Outputs: Input is a raw string; output is JSON substring or None.
    Side Effects / State: None; pure function.
    Dependencies: None beyond built-ins; used by safe_json_loads.
    Failure Modes: Returns None if braces are missing or inverted.
    If Removed: Model outputs wrapped in prose cannot be decoded into actions.
    Testing Notes: Provide strings with extra text before/after JSON and ensure extraction.
    """
    # Locate the outermost JSON braces to extract a parseable block.
    if not text:
        return None
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return text[start : end + 1]


def safe_json_loads(text: str) -> Optional[Dict[str, Any]]:
    """Purpose: Parse a JSON object from a model output string safely.
    Inputs/Outputs: Input is raw text; output is a dict or None if parsing fails.
    Side Effects / State: None; pure function.
    Dependencies: Uses strip_code_fence, extract_json_block and json.loads.
    Failure Modes: Returns None on JSONDecodeError, missing block or non-object JSON.
    If Removed: Intent parsing becomes brittle and crashes on malformed model output.
    Testing Notes: Validate valid JSON parses and malformed JSON returns None.
    """
    # Parse only the extracted JSON block to avoid non-JSON prefixes/suffixes.
    if not text:
        return None
    block = extract_json_block(strip_code_fence(text))
    if not block:
        return None
    try:
        data = json.loads(block)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    return data


def mask_secret(value: object) -> str:
    """Mask a credential-like value for safe logging."""
    raw = str(value or "")
    if len(raw) <= 4:
        return "*" * len(raw)
    return raw[:2] + "*" * (len(raw) - 4) + raw[-2:]
