import re

FENCE = "```"

_TRAILING_COMMA = re.compile(r",\s*([}\]])")


def _strip_fences(text: str) -> str:
    if not text.startswith(FENCE):
        return text

    # drop the opening fence line, including any language tag (```json)
    newline = text.find("\n")
    text = text[newline + 1:] if newline != -1 else text[len(FENCE):]

    if text.endswith(FENCE):
        text = text[: -len(FENCE)]
    return text.strip()


def _matching_brace(text: str, start: int) -> int | None:
    """
    Index of the "}" closing the "{" at `start`, or None if it never closes.
    Braces inside string literals are skipped.
    """
    depth = 0
    in_string = False
    escape = False

    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if in_string:
            if ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def _extract_object(text: str) -> str:
    start = text.find("{")
    if start == -1:
        return text

    end = _matching_brace(text, start)
    if end is None:
        # unbalanced (usually truncated output): last "}" is the best guess
        last = text.rfind("}")
        if last <= start:
            return text
        end = last
    return text[start:end + 1]


def _strip_control_chars(text: str) -> str:
    out = []
    for ch in text:
        if ch in "\n\t":
            out.append(" ")
        elif ord(ch) < 0x20:
            continue
        else:
            out.append(ch)
    return "".join(out)


def sanitize(raw: str) -> str:
    """
    Best-effort cleanup of model output into something json.loads can read.

    Strips markdown fences, slices out the first top-level JSON object,
    removes raw control characters and trailing commas. Never raises; when
    nothing can be recovered the result simply fails to parse.
    """
    text = raw.strip()
    text = _strip_fences(text)
    text = _extract_object(text)
    text = _strip_control_chars(text)
    text = _TRAILING_COMMA.sub(r"\1", text)
    return text.strip()
