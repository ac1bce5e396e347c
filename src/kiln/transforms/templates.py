"""
Template languages for jst flows.

A template language turns one template file into JavaScript that registers
it on the flow's namespace object (`JST` unless `jst_namespace` says
otherwise), keyed by the template's file name without its extension.
"""
import json

from kiln.core.transform import preprocessor


def template_name(file) -> str:
    return file.path.stem


@preprocessor("string")
def string_template(file, config) -> str:
    """Register the template's raw source as a JavaScript string."""
    namespace = config.jst_namespace or "JST"
    return (
        f"window.{namespace} = window.{namespace} || {{}};\n"
        f"window.{namespace}[{json.dumps(template_name(file))}] = "
        f"{json.dumps(file.contents)};"
    )
