"""
Chat message normalization shared by all providers.

Messages are plain dicts in the OpenAI chat shape::

    {"role": "user", "content": "text" | part | [part, ...]}

where a part is ``{"type": "text", "text": ...}``,
``{"type": "image_url", "image_url": {"url": ..., "detail": ...}}`` or
``{"type": "file_url", "file_url": {"url": ..., "mime_type": ...}}``.
"""

import json
from typing import Any, Dict, List, Union

Message = Dict[str, Any]
ContentPart = Dict[str, Any]
MessageContent = Union[str, ContentPart, List[Union[str, ContentPart]]]

ROLES = ("system", "user", "assistant", "tool", "function")
PART_TYPES = ("text", "image_url", "file_url")


def ensure_list(content: MessageContent) -> List[Union[str, ContentPart]]:
    return content if isinstance(content, list) else [content]


def normalize_content_part(part: Union[str, ContentPart]) -> ContentPart:
    """Turn a bare string into a text part and reject unknown part types."""
    if isinstance(part, str):
        return {"type": "text", "text": part}
    if isinstance(part, dict) and part.get("type") in PART_TYPES:
        return part
    raise ValueError("Unsupported message content part")


def normalize_message(message: Message) -> Message:
    """Normalize one message.

    Tool and function messages get their content joined into one string.
    Otherwise a lone text part collapses to a bare string and anything
    else stays a list of parts.
    """
    role = message["role"]
    if role not in ROLES:
        raise ValueError(f"Unsupported message role: {role}")

    normalized: Message = {"role": role}
    if message.get("name"):
        normalized["name"] = message["name"]

    if role in ("tool", "function"):
        if message.get("tool_call_id"):
            normalized["tool_call_id"] = message["tool_call_id"]
        normalized["content"] = "\n".join(
            part if isinstance(part, str) else json.dumps(part)
            for part in ensure_list(message["content"])
        )
        return normalized

    parts = [normalize_content_part(part) for part in ensure_list(message["content"])]
    if len(parts) == 1 and parts[0]["type"] == "text":
        normalized["content"] = parts[0]["text"]
    else:
        normalized["content"] = parts
    return normalized


def content_to_text(content: MessageContent) -> str:
    """Flatten content to plain text, dropping non-text parts."""
    if isinstance(content, str):
        return content
    texts = []
    for part in ensure_list(content):
        if isinstance(part, str):
            texts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            texts.append(part.get("text", ""))
        else:
            texts.append("")
    return "\n".join(texts)
