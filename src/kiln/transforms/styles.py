"""
Sass and SCSS compilation with libsass.
"""
import asyncio

import sass

from kiln.core.transform import preprocessor

SASS_CONTENT_TYPE = "text/sass"


@preprocessor("sass")
async def compile_sass(file, config) -> str:
    """
    Compile a .sass or .scss file to CSS.

    Files of any other content type pass through unchanged. The file's own
    directory is always on the include path, so relative @imports resolve.

    Options:
        sass_output_style: nested, expanded, compact or compressed
        sass_include_paths: extra directories searched by @import
    """
    if file.content_type != SASS_CONTENT_TYPE:
        return file.contents

    include_paths = [str(file.path.parent)]
    include_paths.extend(str(p) for p in config.options.get("sass_include_paths", []))

    return await asyncio.to_thread(
        sass.compile,
        string=file.contents,
        indented=file.extension == "sass",
        output_style=config.options.get("sass_output_style", "nested"),
        include_paths=include_paths,
    )
