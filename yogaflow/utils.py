from typing import Any, Iterable, Optional

import httpx


def with_api_key(uri: str, api_key: str) -> httpx.URL:
    """Return ``uri`` with the API key appended as the ``key`` query parameter.

    Generated video URIs already carry query parameters (e.g. ``alt=media``),
    so the key is merged into them rather than replacing them.
    """
    url = httpx.URL(uri)
    return url.copy_merge_params({"key": api_key})


def first_inline_data(response: Any) -> Optional[Any]:
    """Return the ``inline_data`` of the first response part that carries one."""
    candidates: Iterable[Any] = getattr(response, "candidates", None) or []
    for candidate in candidates:
        content = getattr(candidate, "content", None)
        parts = getattr(content, "parts", None) or []
        for part in parts:
            inline_data = getattr(part, "inline_data", None)
            if inline_data is not None and getattr(inline_data, "data", None):
                return inline_data
        # Only the first candidate is considered.
        break
    return None


def first_video_uri(operation: Any) -> Optional[str]:
    response = getattr(operation, "response", None) or getattr(operation, "result", None)
    videos = getattr(response, "generated_videos", None) or []
    if not videos:
        return None
    video = getattr(videos[0], "video", None)
    return getattr(video, "uri", None) or None
