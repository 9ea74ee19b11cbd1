"""
Video dimensions via ffprobe
"""

import asyncio
import json
import os
import tempfile
from typing import Optional

from loguru import logger

from ..models import Dimensions


async def probe_video_dimensions(data: bytes, ffprobe_path: str = "ffprobe", timeout: float = 30) -> Optional[Dimensions]:
    """Width/height of the first video stream, or None when ffprobe can't tell"""
    fd, path = tempfile.mkstemp(suffix=".media")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)

        cmd = [
            ffprobe_path,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "json",
            path,
        ]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            logger.warning(f"ffprobe unavailable ({ffprobe_path}): {e}")
            return None

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.warning(f"ffprobe timed out after {timeout}s")
            return None

        if proc.returncode != 0:
            logger.debug(f"ffprobe failed: {stderr.decode(errors='replace')[:200]}")
            return None
        return parse_ffprobe_output(stdout)
    finally:
        try:
            os.unlink(path)
        except OSError:
            pass


def parse_ffprobe_output(output: bytes) -> Optional[Dimensions]:
    try:
        streams = json.loads(output.decode("utf-8", errors="replace")).get("streams") or []
    except (json.JSONDecodeError, AttributeError):
        return None
    for stream in streams:
        width, height = stream.get("width"), stream.get("height")
        if isinstance(width, int) and isinstance(height, int) and width > 0 and height > 0:
            return Dimensions(width=width, height=height)
    return None
