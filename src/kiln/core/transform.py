"""
Transforms and the registry of built-in transforms.

A transform is a function that rewrites text. Preprocessors run once per
collected file and receive the FileRecord; postprocessors run once on the
whole concatenated bundle. Both receive the flow's FlowConfig and return the
replacement text, either directly or as an awaitable.

Transforms are referenced in configuration either by the name of a built-in
(`BuiltIn`) or by passing the callable itself (`Custom`). References are
resolved exactly once, when the flow config is normalized.

Example:
    ```python
    @preprocessor("upper")
    async def upper(file: FileRecord, config: FlowConfig) -> str:
        return file.contents.upper()
    ```
"""
import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Union

from kiln.utility.exceptions import ConfigError, TransformError

if TYPE_CHECKING:
    from .flow.config import FlowConfig
    from .records import FileRecord

TransformFunc = Callable[..., Union[str, Awaitable[str]]]

PREPROCESSOR = "preprocessor"
POSTPROCESSOR = "postprocessor"

# Content types that always get a compiler in front of the configured chain
LEADING_PREPROCESSORS: Dict[str, str] = {
    "application/coffeescript": "coffeescript",
    "text/sass": "sass",
    "text/less": "less",
    "text/stylus": "stylus",
}


@dataclass(frozen=True)
class BuiltIn:
    """Reference to a registered transform by name."""

    name: str


@dataclass(frozen=True)
class Custom:
    """Reference to a user-supplied transform callable."""

    func: TransformFunc

    @property
    def name(self) -> str:
        return getattr(self.func, "__name__", repr(self.func))


TransformRef = Union[BuiltIn, Custom]


@dataclass(frozen=True)
class Transform:
    """A resolved transform, ready to run."""

    name: str
    func: TransformFunc
    stage: str

    async def apply(self, subject: Any, config: "FlowConfig") -> str:
        """
        Run the transform and return its output.

        Any exception raised by the transform (or a non-string result) is
        reported as a TransformError naming the transform and, for
        preprocessors, the file being processed.
        """
        path = str(subject.path) if self.stage == PREPROCESSOR else None
        try:
            result = self.func(subject, config)
            if inspect.isawaitable(result):
                result = await result
        except TransformError:
            raise
        except Exception as e:
            raise TransformError(self.name, str(e), path=path) from e

        if not isinstance(result, str):
            raise TransformError(
                self.name,
                f"expected str output, got {type(result).__name__}",
                path=path,
            )
        return result


def to_ref(value: Any) -> TransformRef:
    """Turn a raw configuration entry into a transform reference."""
    if isinstance(value, (BuiltIn, Custom)):
        return value
    if isinstance(value, str):
        return BuiltIn(value)
    if isinstance(value, Transform):
        return Custom(value.func)
    if callable(value):
        return Custom(value)
    raise ConfigError(
        f'Invalid transform "{value}". Transforms must be the name of a '
        "built-in transform, or a transform function."
    )


class TransformRegistry:
    """
    Lookup of built-in transforms by stage and name.

    The default registry is filled at import time by the modules in
    `kiln.transforms` and is read-only afterwards.
    """

    def __init__(self):
        self._transforms: Dict[str, Dict[str, Transform]] = {
            PREPROCESSOR: {},
            POSTPROCESSOR: {},
        }

    def register(self, stage: str, name: str, func: TransformFunc) -> Transform:
        if stage not in self._transforms:
            raise ValueError(f"Unknown transform stage: {stage}")
        transform = Transform(name=name, func=func, stage=stage)
        self._transforms[stage][name] = transform
        return transform

    def names(self, stage: str) -> list:
        return sorted(self._transforms[stage])

    def get(self, stage: str, name: str) -> Optional[Transform]:
        return self._transforms[stage].get(name)

    def resolve(self, stage: str, value: Any) -> Transform:
        """
        Resolve a configuration entry into a runnable Transform.

        Raises:
            ConfigError: If a name is not a registered built-in, or the value
                is neither a name nor a callable
        """
        ref = to_ref(value)
        if isinstance(ref, Custom):
            return Transform(name=ref.name, func=ref.func, stage=stage)

        transform = self.get(stage, ref.name)
        if transform is None:
            raise ConfigError(f'Invalid {stage} "{ref.name}".')
        return transform

    def leading_for(self, content_type: Optional[str]) -> Optional[Transform]:
        """Get the compiler that must run first for a file's content type."""
        name = LEADING_PREPROCESSORS.get(content_type)
        if name is None:
            return None
        return self.get(PREPROCESSOR, name)


registry = TransformRegistry()


def preprocessor(name: str) -> Callable[[TransformFunc], TransformFunc]:
    """Register a built-in per-file transform."""

    def decorator(func: TransformFunc) -> TransformFunc:
        registry.register(PREPROCESSOR, name, func)
        return func

    return decorator


def postprocessor(name: str) -> Callable[[TransformFunc], TransformFunc]:
    """Register a built-in per-bundle transform."""

    def decorator(func: TransformFunc) -> TransformFunc:
        registry.register(POSTPROCESSOR, name, func)
        return func

    return decorator
