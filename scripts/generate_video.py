"""Submit a generation job and wait for the result from the command line.

Run with:
    python3 scripts/generate_video.py lipsync --avatar me.png --product item.png --script "こんにちは"
    python3 scripts/generate_video.py scene --product item.png --description "新作の香水"
    python3 scripts/generate_video.py wait <job_id>

Uses the same settings (.env) as the API. Local image files are uploaded to
the media volume first; keys and URLs are passed through unchanged.
"""

import argparse
import asyncio
import base64
import logging
import mimetypes
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "backend"))

from kataru.config import get_settings  # noqa: E402
from kataru.database import close_db, get_session_factory  # noqa: E402
from kataru.models.job import JobKind  # noqa: E402
from kataru.services.errors import KataruError, PollTimeout  # noqa: E402
from kataru.services.factory import build_orchestrator, build_storage  # noqa: E402
from kataru.services.uploads import store_image_upload  # noqa: E402

logger = logging.getLogger("generate_video")


async def _image_ref(storage, bucket: str, value: str | None, max_bytes: int) -> str | None:
    if not value or not os.path.isfile(value):
        return value
    content_type = mimetypes.guess_type(value)[0] or "application/octet-stream"
    with open(value, "rb") as f:
        data_url = f"data:{content_type};base64,{base64.b64encode(f.read()).decode('ascii')}"
    return await store_image_upload(storage, bucket, data_url, max_bytes=max_bytes)


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    storage = build_storage(settings)
    orchestrator = build_orchestrator(settings, get_session_factory(), storage=storage)

    try:
        if args.command == "lipsync":
            refs = {
                "avatar_image": await _image_ref(storage, settings.AVATAR_BUCKET, args.avatar, settings.MAX_UPLOAD_BYTES),
                "product_image": await _image_ref(storage, settings.PRODUCT_BUCKET, args.product, settings.MAX_UPLOAD_BYTES),
            }
            params = {
                "script_text": args.script,
                "voice": {"provider": args.voice_provider, "voice_id": args.voice_id},
            }
            job_id = (await orchestrator.submit(JobKind.LIPSYNC, refs, params)).job_id
        elif args.command == "scene":
            refs = {
                "product_image": await _image_ref(storage, settings.PRODUCT_BUCKET, args.product, settings.MAX_UPLOAD_BYTES),
            }
            if args.scene:
                refs["scene_image"] = await _image_ref(storage, settings.PRODUCT_BUCKET, args.scene, settings.MAX_UPLOAD_BYTES)
            params = {
                "product_name": args.name,
                "product_description": args.description,
                "aspect_ratio": args.aspect_ratio,
                "duration": args.duration,
            }
            job_id = (await orchestrator.submit(JobKind.SCENE_GENERATION, refs, params)).job_id
        else:
            job_id = args.job_id

        print(f"job_id: {job_id}")
        view = await orchestrator.wait_for_result(
            job_id, max_attempts=args.attempts, interval=args.interval
        )
    except PollTimeout as e:
        print(f"still running, resume with: wait {e.job_id}")
        return 2
    except KataruError as e:
        print(f"error [{e.code}]: {e.message}")
        return 1
    finally:
        await close_db()

    if view.result_url:
        print(f"done: {view.result_url}")
        return 0
    print(f"error [{view.error_code}]: {view.error_message}")
    return 1


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--attempts", type=int, default=settings.WAIT_MAX_ATTEMPTS)
    parser.add_argument("--interval", type=float, default=settings.WAIT_INTERVAL_SECONDS)
    sub = parser.add_subparsers(dest="command", required=True)

    lipsync = sub.add_parser("lipsync")
    lipsync.add_argument("--avatar", required=True)
    lipsync.add_argument("--product", required=True)
    lipsync.add_argument("--script", required=True)
    lipsync.add_argument("--voice-provider")
    lipsync.add_argument("--voice-id")

    scene = sub.add_parser("scene")
    scene.add_argument("--product", required=True)
    scene.add_argument("--scene")
    scene.add_argument("--name")
    scene.add_argument("--description", required=True)
    scene.add_argument("--aspect-ratio", default="16:9")
    scene.add_argument("--duration", type=int, default=8)

    wait = sub.add_parser("wait")
    wait.add_argument("job_id")

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    return asyncio.run(_run(parser.parse_args()))


if __name__ == "__main__":
    sys.exit(main())
