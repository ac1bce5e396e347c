"""
Bundle minification: rcssmin for style flows, rjsmin for script flows.
"""
import asyncio

import rcssmin
import rjsmin

from kiln.core.transform import postprocessor


@postprocessor("minify")
async def minify(data: str, config) -> str:
    if config.type == "css":
        return await asyncio.to_thread(rcssmin.cssmin, data)
    return await asyncio.to_thread(rjsmin.jsmin, data)
