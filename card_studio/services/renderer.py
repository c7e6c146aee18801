"""Rendering adapters.

- HTML -> PNG/JPEG via Playwright Chromium screenshots
- still image(s) -> MP4 or animated GIF via an FFmpeg child process

Both raise ``RenderError`` with a readable message; nothing partial is
returned.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from card_studio.config import get_settings

logger = logging.getLogger(__name__)

VIDEO_FPS = 30
GIF_FPS = 10
FADE_SECONDS = 0.5
_JPEG_QUALITY = 90


class RenderError(Exception):
    """Screenshot or encoding failed."""


# ---------------------------------------------------------------------------
# HTML -> image
# ---------------------------------------------------------------------------

async def html_to_image(
    html_content: str,
    width: int,
    height: int,
    image_format: str = "png",
    timeout: Optional[float] = None,
) -> bytes:
    """Convert HTML string to PNG/JPEG bytes using Playwright Chromium.

    The viewport is fixed to the card size so the screenshot matches the
    requested format exactly.
    """
    if image_format not in ("png", "jpeg"):
        raise RenderError(f"Unsupported image format '{image_format}'")
    timeout = timeout or get_settings().RENDER_TIMEOUT_SECONDS

    async def _render() -> bytes:
        async with async_playwright() as p:
            browser = await p.chromium.launch()
            try:
                page = await browser.new_page(viewport={"width": width, "height": height})
                await page.set_content(html_content, wait_until="networkidle")
                options = {"type": image_format, "full_page": False}
                if image_format == "jpeg":
                    options["quality"] = _JPEG_QUALITY
                return await page.screenshot(**options)
            finally:
                await browser.close()

    t_start = time.monotonic()
    try:
        image = await asyncio.wait_for(_render(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        raise RenderError(f"Screenshot timed out after {timeout:.0f}s") from exc
    except PlaywrightError as exc:
        logger.error("Playwright render failed: %s", exc)
        raise RenderError(f"Headless browser failed: {exc}") from exc

    logger.info("Rendered %dx%d %s (%d bytes) in %.2fs", width, height, image_format, len(image), time.monotonic() - t_start)
    return image


# ---------------------------------------------------------------------------
# Image(s) -> MP4
# ---------------------------------------------------------------------------

def _scale_pad(width: int, height: int) -> List[str]:
    return [
        f"scale={width}:{height}:force_original_aspect_ratio=decrease",
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2",
    ]


def build_image_to_video_command(
    ffmpeg: str,
    image_path: Path,
    output_path: Path,
    duration: float,
    width: int,
    height: int,
) -> List[str]:
    fade_out_start = max(duration - FADE_SECONDS, 0)
    filters = [
        f"fade=t=in:st=0:d={FADE_SECONDS}",
        f"fade=t=out:st={fade_out_start}:d={FADE_SECONDS}",
        *_scale_pad(width, height),
    ]
    return [
        ffmpeg, "-y",
        "-loop", "1",
        "-framerate", str(VIDEO_FPS),
        "-i", str(image_path),
        "-t", str(duration),
        "-vf", ",".join(filters),
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        "-r", str(VIDEO_FPS),
        "-movflags", "+faststart",
        "-crf", "23",
        str(output_path),
    ]


def build_slideshow_command(
    ffmpeg: str,
    image_paths: Sequence[Path],
    output_path: Path,
    seconds_per_image: float,
    width: int,
    height: int,
) -> List[str]:
    """One looped input per image, each faded and scaled, then concatenated."""
    cmd = [ffmpeg, "-y"]
    for path in image_paths:
        cmd += ["-loop", "1", "-framerate", str(VIDEO_FPS), "-t", str(seconds_per_image), "-i", str(path)]

    fade_out_start = max(seconds_per_image - FADE_SECONDS, 0)
    chains = []
    for index in range(len(image_paths)):
        steps = _scale_pad(width, height) + [
            "setsar=1",
            f"fade=t=in:st=0:d={FADE_SECONDS}",
            f"fade=t=out:st={fade_out_start}:d={FADE_SECONDS}",
        ]
        chains.append(f"[{index}:v]{','.join(steps)}[v{index}]")
    inputs = "".join(f"[v{i}]" for i in range(len(image_paths)))
    chains.append(f"{inputs}concat=n={len(image_paths)}:v=1:a=0[out]")

    cmd += [
        "-filter_complex", ";".join(chains),
        "-map", "[out]",
        "-c:v", "libx264",
        "-pix_fmt", "yuv420p",
        "-r", str(VIDEO_FPS),
        "-movflags", "+faststart",
        "-crf", "23",
        str(output_path),
    ]
    return cmd


def build_gif_command(
    ffmpeg: str,
    image_paths: Sequence[Path],
    output_path: Path,
    seconds_per_image: float,
    width: int,
    height: int,
) -> List[str]:
    """Looping GIF: frames concatenated, then a generated palette applied."""
    cmd = [ffmpeg, "-y"]
    for path in image_paths:
        cmd += ["-loop", "1", "-framerate", str(GIF_FPS), "-t", str(seconds_per_image), "-i", str(path)]

    chains = []
    for index in range(len(image_paths)):
        steps = _scale_pad(width, height) + ["setsar=1", f"fps={GIF_FPS}"]
        chains.append(f"[{index}:v]{','.join(steps)}[v{index}]")
    inputs = "".join(f"[v{i}]" for i in range(len(image_paths)))
    chains.append(f"{inputs}concat=n={len(image_paths)}:v=1:a=0,split[a][b]")
    chains.append("[a]palettegen[p]")
    chains.append("[b][p]paletteuse[out]")

    cmd += [
        "-filter_complex", ";".join(chains),
        "-map", "[out]",
        "-loop", "0",
        str(output_path),
    ]
    return cmd


async def _run_ffmpeg(cmd: List[str], timeout: float) -> None:
    if shutil.which(cmd[0]) is None:
        raise RenderError(f"FFmpeg binary not found: {cmd[0]}")

    logger.debug("FFmpeg command: %s", " ".join(cmd))
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as exc:
        process.kill()
        await process.wait()
        raise RenderError(f"FFmpeg timed out after {timeout:.0f}s") from exc

    if process.returncode != 0:
        tail = (stderr or b"").decode("utf-8", errors="replace")[-500:]
        logger.error("FFmpeg exited with %s: %s", process.returncode, tail)
        raise RenderError(f"FFmpeg failed with exit code {process.returncode}")


async def image_to_video(
    image: bytes,
    duration: float,
    width: int,
    height: int,
    image_suffix: str = ".png",
) -> bytes:
    """Encode a still image as an MP4 with fade in/out."""
    settings = get_settings()
    with tempfile.TemporaryDirectory(prefix="card-video-") as workdir:
        image_path = Path(workdir) / f"frame{image_suffix}"
        output_path = Path(workdir) / "video.mp4"
        image_path.write_bytes(image)
        cmd = build_image_to_video_command(
            settings.FFMPEG_BINARY, image_path, output_path, duration, width, height
        )
        await _run_ffmpeg(cmd, timeout=settings.RENDER_TIMEOUT_SECONDS)
        if not output_path.exists() or output_path.stat().st_size == 0:
            raise RenderError("FFmpeg produced no output")
        return output_path.read_bytes()


async def images_to_slideshow(
    images: Sequence[bytes],
    seconds_per_image: float,
    width: int,
    height: int,
) -> bytes:
    """Encode several images as one MP4, each shown for ``seconds_per_image``."""
    if not images:
        raise RenderError("No images to encode")
    settings = get_settings()
    with tempfile.TemporaryDirectory(prefix="card-slideshow-") as workdir:
        paths = []
        for index, data in enumerate(images):
            path = Path(workdir) / f"image_{index:03d}.img"
            path.write_bytes(data)
            paths.append(path)
        output_path = Path(workdir) / "slideshow.mp4"
        cmd = build_slideshow_command(
            settings.FFMPEG_BINARY, paths, output_path, seconds_per_image, width, height
        )
        await _run_ffmpeg(cmd, timeout=settings.RENDER_TIMEOUT_SECONDS)
        if not output_path.exists() or output_path.stat().st_size == 0:
            raise RenderError("FFmpeg produced no output")
        return output_path.read_bytes()


async def images_to_gif(
    images: Sequence[bytes],
    seconds_per_image: float,
    width: int,
    height: int,
) -> bytes:
    """Encode several images as an endlessly looping animated GIF."""
    if not images:
        raise RenderError("No images to encode")
    settings = get_settings()
    with tempfile.TemporaryDirectory(prefix="card-gif-") as workdir:
        paths = []
        for index, data in enumerate(images):
            path = Path(workdir) / f"image_{index:03d}.img"
            path.write_bytes(data)
            paths.append(path)
        output_path = Path(workdir) / "animated.gif"
        cmd = build_gif_command(settings.FFMPEG_BINARY, paths, output_path, seconds_per_image, width, height)
        await _run_ffmpeg(cmd, timeout=settings.RENDER_TIMEOUT_SECONDS)
        if not output_path.exists() or output_path.stat().st_size == 0:
            raise RenderError("FFmpeg produced no output")
        return output_path.read_bytes()


def ffmpeg_available() -> bool:
    return shutil.which(get_settings().FFMPEG_BINARY) is not None
