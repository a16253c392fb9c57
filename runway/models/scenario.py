"""
Scenario overrides over a business model.

An override names a field with a dotted path (``"tax_config.income_tax_rate"``)
and a replacement value. Paths are resolved against the pydantic schema when
the override is built, so a typo fails immediately instead of during a
projection. Applying overrides never touches the source model: each step
rebuilds the models along the path and re-validates them.
"""

import typing
from typing import Any, Dict, Iterable, List, Tuple, Type

from deepdiff import DeepDiff
from pydantic import BaseModel

from ..errors import InvalidOverridePathError
from .business_model import BusinessModel


def _model_type(annotation: Any):
    """The pydantic model class behind an annotation, or None."""
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return annotation
    if typing.get_origin(annotation) is typing.Union:
        models = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(models) == 1:
            return _model_type(models[0])
    return None


class FieldPath:
    """Dotted path to a field, validated against a model class."""

    def __init__(self, path: str, root: Type[BaseModel] = BusinessModel):
        if not isinstance(path, str) or not path:
            raise InvalidOverridePathError("Override path must be a non-empty string")
        self.path = path
        self.root = root
        self.segments: Tuple[str, ...] = tuple(path.split("."))
        self.leaf_annotation = self._resolve()

    @classmethod
    def parse(cls, path: str, root: Type[BaseModel] = BusinessModel) -> "FieldPath":
        """
        Resolve a dotted path against ``root``.

        Raises:
            InvalidOverridePathError: If a segment is not a field of the model
                reached so far
        """
        return cls(path, root)

    def _resolve(self) -> Any:
        current: Any = self.root
        annotation: Any = None
        for depth, segment in enumerate(self.segments):
            model = _model_type(current)
            if model is None:
                walked = ".".join(self.segments[:depth])
                raise InvalidOverridePathError(
                    f"Cannot descend into '{segment}': '{walked}' is not a model"
                )
            field = model.model_fields.get(segment)
            if field is None:
                raise InvalidOverridePathError(
                    f"Unknown field '{segment}' on {model.__name__} in path '{self.path}'"
                )
            annotation = field.annotation
            current = annotation
        return annotation

    def get(self, obj: BaseModel) -> Any:
        value: Any = obj
        for segment in self.segments:
            value = getattr(value, segment)
        return value

    def set(self, obj: BaseModel, value: Any) -> BaseModel:
        """Copy of ``obj`` with the leaf replaced; intermediate models are re-validated."""
        return self._set(obj, self.segments, value)

    def _set(self, obj: BaseModel, segments: Tuple[str, ...], value: Any) -> BaseModel:
        head, rest = segments[0], segments[1:]
        child = value if not rest else self._set(getattr(obj, head), rest, value)
        return type(obj).model_validate({**dict(obj), head: child})

    def __repr__(self) -> str:
        return f"FieldPath({self.path!r})"


class ScenarioOverride:
    """Replacement value for one field of a business model."""

    def __init__(self, field: str, value: Any, root: Type[BaseModel] = BusinessModel):
        self.field = field
        self.value = value
        self.path = FieldPath.parse(field, root)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScenarioOverride":
        return cls(data["field"], data["value"])

    def apply(self, model: BaseModel) -> BaseModel:
        return self.path.set(model, self.value)

    def __repr__(self) -> str:
        return f"ScenarioOverride({self.field!r}, {self.value!r})"


def build_overrides(overrides: Iterable[Any]) -> List[ScenarioOverride]:
    """Accept ScenarioOverride objects or ``{"field", "value"}`` dicts."""
    return [
        o if isinstance(o, ScenarioOverride) else ScenarioOverride.from_dict(o)
        for o in overrides
    ]


def apply_overrides(model: BusinessModel, overrides: Iterable[Any]) -> BusinessModel:
    """Deep copy of ``model`` with every override applied in order."""
    result = model.clone()
    for override in build_overrides(overrides):
        result = override.apply(result)
    return result


def compare_models(model_1: BusinessModel, model_2: BusinessModel) -> Dict[str, Any]:
    """
    Compare two business models.

    Args:
        model_1: Baseline model
        model_2: Model to compare against the baseline

    Returns:
        Dictionary with the DeepDiff result and a has_changes flag
    """
    diff = DeepDiff(
        model_1.model_dump(mode="json"),
        model_2.model_dump(mode="json"),
        ignore_order=True,
        exclude_paths=["root['id']"],
    )
    return {"changes": diff, "has_changes": bool(diff)}
