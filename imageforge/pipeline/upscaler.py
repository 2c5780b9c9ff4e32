"""
External Upscaler Invocation

Runs upscayl-bin as a child process and waits for it without blocking the
event loop. Three outcomes are kept apart:

- success: exit code 0, the output file was written
- UpscalerExitError: the process ran and exited non-zero
- UpscalerSpawnError: the process could not be started
"""

import asyncio
from pathlib import Path
from typing import List

from imageforge.core.config import UpscalerConfig
from imageforge.core.exceptions import UpscalerExitError, UpscalerSpawnError
from imageforge.core.logging import get_logger
from imageforge.core.metrics import record_upscaler_invocation

logger = get_logger(__name__)


def build_upscaler_args(
    input_path: Path,
    output_path: Path,
    models_path: str,
    model: str,
    scale: int = 4,
    output_format: str = "png"
) -> List[str]:
    """Positional flags understood by upscayl-bin."""
    return [
        "-i", str(input_path),
        "-o", str(output_path),
        "-s", str(scale),
        "-m", models_path,
        "-n", model,
        "-f", output_format,
    ]


async def run_upscaler(
    config: UpscalerConfig,
    input_path: Path,
    output_path: Path,
    model: str,
    scale: int = 4,
    output_format: str = "png"
) -> Path:
    """
    Upscale one image and wait for the executable to exit.

    Stderr is logged line by line; it never decides success on its own.
    There is no timeout: a hung executable blocks until it exits.

    Returns:
        output_path, once the process exited with code 0
    """
    args = build_upscaler_args(
        input_path, output_path, config.models_path, model, scale, output_format
    )
    logger.info("upscaler_running", binary=config.upscayl_bin, args=" ".join(args))

    try:
        process = await asyncio.create_subprocess_exec(
            config.upscayl_bin,
            *args,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        record_upscaler_invocation("spawn_error")
        raise UpscalerSpawnError(config.upscayl_bin, e.strerror or str(e))

    async for line in process.stderr:
        text = line.decode(errors="replace").rstrip()
        if text:
            logger.warning("upscaler_stderr", line=text)

    exit_code = await process.wait()
    if exit_code != 0:
        record_upscaler_invocation("exit_error")
        raise UpscalerExitError(exit_code, binary=config.upscayl_bin)

    record_upscaler_invocation("success")
    logger.info("upscaler_finished", output=str(output_path))
    return output_path
