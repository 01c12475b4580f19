"""Pure request builders for the two providers.

No I/O here: everything takes caller fields in and returns dicts/strings, so
the same inputs always produce the same provider payload and prompt.
"""

from __future__ import annotations

from typing import Any

from kataru.services.errors import InvalidInput

# ---------------------------------------------------------------------------
# Scene generation (xAI)
# ---------------------------------------------------------------------------

DEFAULT_BRAND_TONE = "上質で信頼感のあるトーン"
DEFAULT_SCENE_STYLE = "洗練されたスタジオ撮影"
DEFAULT_MOTION_STYLE = "ゆっくりしたズーム"
DEFAULT_ASPECT_RATIO = "16:9"
DEFAULT_RESOLUTION = "720p"

DEFAULT_DURATION = 8
MIN_DURATION = 1
MAX_DURATION = 15

PORTRAIT_ASPECT_RATIOS = ("9:16", "3:4", "2:3")


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def clamp_duration(value: int | float | None) -> int:
    """Clamp a requested duration (seconds) into the provider's supported range."""
    if value is None:
        return DEFAULT_DURATION
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"duration must be a number, got {value!r}.") from None
    return max(MIN_DURATION, min(seconds, MAX_DURATION))


def build_scene_prompt(
    *,
    product_name: str | None = None,
    product_description: str | None = None,
    brand_tone: str | None = None,
    scene_style: str | None = None,
    motion_style: str | None = None,
    aspect_ratio: str | None = None,
    has_speaker: bool = False,
) -> str:
    """Build the structured Japanese promo prompt sent to the scene provider."""
    product_name = _clean(product_name)
    description = _clean(product_description) or ""
    brand_tone = _clean(brand_tone) or DEFAULT_BRAND_TONE
    scene_style = _clean(scene_style) or DEFAULT_SCENE_STYLE
    motion_style = _clean(motion_style) or DEFAULT_MOTION_STYLE
    aspect_ratio = _clean(aspect_ratio) or DEFAULT_ASPECT_RATIO

    if has_speaker:
        if aspect_ratio in PORTRAIT_ASPECT_RATIOS:
            layout_hint = "人物は上、商品は下に配置。"
        else:
            layout_hint = "人物は左、商品は右に配置。"
        subject = "提供画像の人物が主役の上品な日本人プレゼンター"
        action = "プレゼンターが商品を手に取り、やさしく紹介する。手元と商品が丁寧に映る。"
    else:
        layout_hint = "商品を画面中央に配置。"
        subject = "商品が主役"
        action = "商品がゆっくり回転し、素材の質感とディテールが際立つ。"

    lines = [
        "日本市場向けの短尺プロモーション映像。",
        "提供画像の人物・商品を忠実に再現し、形状と色を保つ。",
        f"【Subject】{subject}",
        f"【Context】{scene_style}。清潔感のあるミニマルな空間。",
        f"【Action】{action}",
        f"【Style】{brand_tone}なハイエンドCM。柔らかな色調と上質な質感。",
        f"【Camera】{motion_style}の滑らかなカメラワーク。浅い被写界深度。",
        f"【Composition】構図は{aspect_ratio}。三分割構図、{layout_hint}余白を活かして商品を際立たせる。",
        "【Ambience】柔らかな拡散光、淡いグラデーション背景、清潔感、上質な陰影。",
        "【Audio】テキスト・字幕・ロゴ・透かしは不要。",
    ]
    if product_name:
        lines.append(f"【Product】{product_name}")
    if description:
        lines.append(f"【Description】{description}")
    return "\n".join(lines)


def normalize_scene_parameters(raw: dict[str, Any], *, has_speaker: bool) -> dict[str, Any]:
    """Validate caller fields and fill defaults, including the rendered prompt."""
    description = _clean(raw.get("product_description"))
    if not description:
        raise InvalidInput("product_description is required.")

    params: dict[str, Any] = {
        "product_name": _clean(raw.get("product_name")),
        "product_description": description,
        "brand_tone": _clean(raw.get("brand_tone")),
        "scene_style": _clean(raw.get("scene_style")),
        "motion_style": _clean(raw.get("motion_style")),
        "aspect_ratio": _clean(raw.get("aspect_ratio")) or DEFAULT_ASPECT_RATIO,
        "duration": clamp_duration(raw.get("duration")),
        "resolution": _clean(raw.get("resolution")) or DEFAULT_RESOLUTION,
    }
    params["prompt"] = build_scene_prompt(
        product_name=params["product_name"],
        product_description=description,
        brand_tone=params["brand_tone"],
        scene_style=params["scene_style"],
        motion_style=params["motion_style"],
        aspect_ratio=params["aspect_ratio"],
        has_speaker=has_speaker,
    )
    return params


def build_scene_payload(
    params: dict[str, Any],
    *,
    model: str,
    image_url: str,
    use_image_object: bool,
) -> dict[str, Any]:
    """Image-to-video request body; the image reference shape is selectable."""
    payload: dict[str, Any] = {
        "model": model,
        "prompt": params["prompt"],
        "duration": params["duration"],
        "aspect_ratio": params["aspect_ratio"],
        "resolution": params["resolution"],
    }
    if use_image_object:
        payload["image"] = {"url": image_url}
    else:
        payload["image_url"] = image_url
    return payload


# ---------------------------------------------------------------------------
# Lip-sync (D-ID)
# ---------------------------------------------------------------------------

# Voice used when the caller picks a provider family but no voice
PROVIDER_DEFAULT_VOICES: dict[str, str] = {
    "microsoft": "ja-JP-NanamiNeural",
}


def resolve_voice(
    provider: str | None,
    voice_id: str | None,
    *,
    default_provider: str,
    fallback_voice_id: str | None,
) -> tuple[str, str]:
    """Pick ``(provider, voice_id)``: explicit id, family default, then global fallback."""
    provider = _clean(provider) or default_provider
    resolved = (
        _clean(voice_id)
        or PROVIDER_DEFAULT_VOICES.get(provider)
        or _clean(fallback_voice_id)
    )
    if not resolved:
        raise InvalidInput(f"No voice could be resolved for provider '{provider}'.")
    return provider, resolved


def normalize_lipsync_parameters(
    raw: dict[str, Any],
    *,
    default_provider: str,
    fallback_voice_id: str | None,
) -> dict[str, Any]:
    script_text = _clean(raw.get("script_text"))
    if not script_text:
        raise InvalidInput("script_text is required.")

    voice = raw.get("voice") or {}
    provider, voice_id = resolve_voice(
        voice.get("provider"),
        voice.get("voice_id"),
        default_provider=default_provider,
        fallback_voice_id=fallback_voice_id,
    )
    use_stitch = raw.get("use_stitch")
    return {
        "script_text": raw.get("script_text"),
        "voice": {
            "provider": provider,
            "voice_id": voice_id,
            "style": _clean(voice.get("style")),
        },
        "use_stitch": True if use_stitch is None else bool(use_stitch),
    }


def build_talk_script(params: dict[str, Any]) -> dict[str, Any]:
    """Text script with its TTS voice; ``style`` only when one was chosen."""
    voice = params["voice"]
    provider: dict[str, Any] = {"type": voice["provider"], "voice_id": voice["voice_id"]}
    if voice.get("style"):
        provider["style"] = voice["style"]
    return {"type": "text", "input": params["script_text"], "provider": provider}


def build_talk_payload(params: dict[str, Any], *, source_url: str) -> dict[str, Any]:
    """Talking-head request body for ``POST /talks``."""
    return {
        "source_url": source_url,
        "script": build_talk_script(params),
        "config": {"stitch": params["use_stitch"]},
    }
