"""
Preprocessors backed by external command-line compilers.

Less, Stylus and CoffeeScript have no maintained Python implementation, so
kiln pipes the source through `lessc`, `stylus` and `coffee`. The compiler
must be on PATH; a missing binary or a non-zero exit fails the transform.
"""
import asyncio
import shutil
from typing import List, Optional

from kiln.core.transform import preprocessor


async def run_compiler(
    args: List[str], source: str, encoding: str = "utf-8", cwd: Optional[str] = None
) -> str:
    """Feed source to a compiler on stdin and return what it writes to stdout."""
    executable = shutil.which(args[0])
    if executable is None:
        raise RuntimeError(f"'{args[0]}' was not found on PATH")

    process = await asyncio.create_subprocess_exec(
        executable,
        *args[1:],
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=cwd,
    )
    stdout, stderr = await process.communicate(source.encode(encoding))

    if process.returncode != 0:
        message = stderr.decode(encoding, errors="replace").strip()
        raise RuntimeError(message or f"{args[0]} exited with {process.returncode}")
    return stdout.decode(encoding)


@preprocessor("less")
async def compile_less(file, config) -> str:
    if file.content_type != "text/less":
        return file.contents
    return await run_compiler(
        ["lessc", f"--include-path={file.path.parent}", "-"],
        file.contents,
        config.encoding,
        cwd=str(file.path.parent),
    )


@preprocessor("stylus")
async def compile_stylus(file, config) -> str:
    if file.content_type != "text/stylus":
        return file.contents
    return await run_compiler(
        ["stylus", "--include", str(file.path.parent)],
        file.contents,
        config.encoding,
        cwd=str(file.path.parent),
    )


@preprocessor("coffeescript")
async def compile_coffeescript(file, config) -> str:
    if file.content_type != "application/coffeescript":
        return file.contents
    return await run_compiler(
        ["coffee", "--stdio", "--compile"],
        file.contents,
        config.encoding,
        cwd=str(file.path.parent),
    )
