"""Filter instances and their per-kind parameter models."""
from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, ClassVar, Literal, Mapping, get_args, get_origin

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator
from pydantic.fields import FieldInfo

from ..config import settings
from ..exceptions import InvalidParamsError
from .kernels import identity_kernel

Padding = Literal['zero', 'edge', 'reflect']


class FilterKind(str, Enum):
    """All filter kinds a pipeline can hold."""
    BRIGHTNESS = 'brightness'
    CONTRAST = 'contrast'
    SATURATION = 'saturation'
    VIBRANCE = 'vibrance'
    HUE = 'hue'
    WHITES = 'whites'
    BLACKS = 'blacks'
    BLUR = 'blur'
    SHARPEN = 'sharpen'
    EDGE = 'edge'
    DENOISE = 'denoise'
    CUSTOM_CONV = 'customConv'


# Saturation is affine only in gamma mode; the executor decides per run
AFFINE_KINDS = frozenset({FilterKind.BRIGHTNESS, FilterKind.CONTRAST, FilterKind.HUE, FilterKind.SATURATION})
PER_PIXEL_KINDS = frozenset({FilterKind.VIBRANCE, FilterKind.WHITES, FilterKind.BLACKS})
CONVOLUTION_KINDS = frozenset({
    FilterKind.BLUR, FilterKind.SHARPEN, FilterKind.EDGE, FilterKind.DENOISE, FilterKind.CUSTOM_CONV,
})


def _number(value: float) -> str:
    """Format without a trailing ``.0`` for whole numbers."""
    return f"{value:g}"


def _signed(value: float) -> str:
    return f"+{_number(value)}" if value > 0 else _number(value)


def _check_kernel_rows(kernel: list[list[float]], size: int | None = None) -> None:
    rows = len(kernel)
    if rows == 0 or any(len(row) != rows for row in kernel):
        raise ValueError("kernel must be a non-empty square matrix")
    if rows % 2 == 0:
        raise ValueError(f"kernel size must be odd, got {rows}")
    if size is not None and rows != size:
        raise ValueError(f"kernel is {rows}x{rows} but size is {size}")


# ============================================================================
# Params models
# ============================================================================

class FilterParams(BaseModel):
    """Base class for per-kind filter parameters.

    Subclasses declare their ``kind`` and register themselves, so params can
    be looked up and defaulted by kind. Field ranges are enforced on
    construction.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=False,
        extra='forbid',
    )

    kind_id: ClassVar[FilterKind | None] = None
    label: ClassVar[str] = "Filter"
    # Values a newly added instance starts with, on top of the field defaults
    starter_values: ClassVar[dict[str, Any]] = {}

    _registry: ClassVar[dict[FilterKind, type['FilterParams']]] = {}

    def __init_subclass__(cls, **kwargs):
        """Register params subclass by kind."""
        super().__init_subclass__(**kwargs)
        if cls.kind_id is not None:
            FilterParams._registry[cls.kind_id] = cls

    @classmethod
    def starter(cls) -> 'FilterParams':
        """Params a freshly added instance of this kind starts with."""
        return cls(**cls.starter_values)

    @classmethod
    def lenient(cls, values: Mapping[str, Any] | None = None) -> 'FilterParams':
        """Parse ``values`` checking names, types and shape, but not ranges.

        Slider ranges are enforced where pipelines are edited. A pipeline
        handed straight to the executor only has to match its kind.

        Raises:
            InvalidParamsError: Unknown field, wrong type or bad kernel shape
        """
        values = dict(values or {})
        unknown = set(values) - set(cls.model_fields)
        if unknown:
            raise InvalidParamsError(f"Unknown params for {cls.kind_id.value!r}: {sorted(unknown)}")
        parsed = {}
        for name, value in values.items():
            try:
                parsed[name] = TypeAdapter(cls.model_fields[name].annotation).validate_python(value)
            except ValidationError as exc:
                raise InvalidParamsError(f"Invalid {name!r} for {cls.kind_id.value!r}: {exc}") from exc
        params = cls.model_construct(**parsed)
        try:
            params.check_shape()
        except ValueError as exc:
            raise InvalidParamsError(f"Invalid params for {cls.kind_id.value!r}: {exc}") from exc
        return params

    def check_shape(self) -> None:
        """Raise ValueError if the values do not fit together."""

    @model_validator(mode='after')
    def _validate_shape(self) -> 'FilterParams':
        self.check_shape()
        return self

    def format_value(self) -> str:
        """Short label of the primary value, for badges."""
        return ''

    @classmethod
    def get_params_schema(cls) -> list[dict[str, Any]]:
        """Slider / select schema generated from the model fields."""
        schema = []
        for field_name, field_info in cls.model_fields.items():
            param = _field_to_param_schema(field_name, field_info)
            if param:
                param['default'] = cls.starter_values.get(field_name, param['default'])
                schema.append(param)
        return schema


class BrightnessParams(FilterParams):
    kind_id: ClassVar[FilterKind] = FilterKind.BRIGHTNESS
    label: ClassVar[str] = "Brightness"

    value: float = Field(default=0.0, ge=-100, le=100, json_schema_extra={'step': 1})

    def format_value(self) -> str:
        return _signed(self.value)


class ContrastParams(FilterParams):
    kind_id: ClassVar[FilterKind] = FilterKind.CONTRAST
    label: ClassVar[str] = "Contrast"

    value: float = Field(default=1.0, ge=0, le=2, json_schema_extra={'step': 0.01, 'suffix': 'x'})

    def format_value(self) -> str:
        return f"{self.value:.2f}x"


class SaturationParams(FilterParams):
    kind_id: ClassVar[FilterKind] = FilterKind.SATURATION
    label: ClassVar[str] = "Saturation"

    value: float = Field(default=1.0, ge=0, le=2, json_schema_extra={'step': 0.01, 'suffix': 'x'})

    def format_value(self) -> str:
        return f"{self.value:.2f}x"


class VibranceParams(FilterParams):
    kind_id: ClassVar[FilterKind] = FilterKind.VIBRANCE
    label: ClassVar[str] = "Vibrance"

    vibrance: float = Field(default=0.0, ge=-1, le=1, json_schema_extra={'step': 0.01})

    def format_value(self) -> str:
        return f"+{self.vibrance:.2f}" if self.vibrance >= 0 else f"{self.vibrance:.2f}"


class HueParams(FilterParams):
    kind_id: ClassVar[FilterKind] = FilterKind.HUE
    label: ClassVar[str] = "Hue"

    hue: float = Field(default=0.0, ge=-180, le=180, json_schema_extra={'step': 1, 'suffix': '°'})

    def format_value(self) -> str:
        return f"{_signed(self.hue)}°"


class WhitesParams(FilterParams):
    kind_id: ClassVar[FilterKind] = FilterKind.WHITES
    label: ClassVar[str] = "Whites"

    value: float = Field(default=0.0, ge=-100, le=100, json_schema_extra={'step': 1})

    def format_value(self) -> str:
        return _signed(self.value)


class BlacksParams(FilterParams):
    kind_id: ClassVar[FilterKind] = FilterKind.BLACKS
    label: ClassVar[str] = "Blacks"

    value: float = Field(default=0.0, ge=-100, le=100, json_schema_extra={'step': 1})

    def format_value(self) -> str:
        return _signed(self.value)


class ConvolutionParams(FilterParams):
    """Options shared by every convolution kind."""

    stride: int = Field(default=1, ge=1, le=8, json_schema_extra={'step': 1})
    padding: Padding = Field(default_factory=lambda: settings.DEFAULT_PADDING)

    @property
    def stride_label(self) -> str:
        return f"s{self.stride}"


class BlurParams(ConvolutionParams):
    kind_id: ClassVar[FilterKind] = FilterKind.BLUR
    label: ClassVar[str] = "Blur"
    starter_values: ClassVar[dict[str, Any]] = {'sigma': 1.0}

    kind: Literal['box', 'gaussian'] = Field(default='gaussian')
    size: Literal[3, 5, 7] = Field(default=5)
    sigma: float | None = Field(default=None, gt=0, le=10, json_schema_extra={'step': 0.1})

    def format_value(self) -> str:
        return f"{self.kind} {self.size}×{self.size} {self.stride_label}"


class SharpenParams(ConvolutionParams):
    kind_id: ClassVar[FilterKind] = FilterKind.SHARPEN
    label: ClassVar[str] = "Sharpen"

    kind: Literal['unsharp', 'laplacian', 'edgeEnhance'] = Field(default='unsharp')
    amount: float = Field(default=1.0, ge=0, le=5, json_schema_extra={'step': 0.1})
    size: Literal[3, 5] = Field(default=3)
    kernel: list[list[float]] | None = Field(default=None)

    def check_shape(self) -> None:
        if self.kernel is not None:
            _check_kernel_rows(self.kernel)

    def format_value(self) -> str:
        return f"{self.kind} {self.amount:.2f} {self.size}×{self.size} {self.stride_label}"


class EdgeParams(ConvolutionParams):
    kind_id: ClassVar[FilterKind] = FilterKind.EDGE
    label: ClassVar[str] = "Edge Detect"

    operator: Literal['sobel', 'prewitt'] = Field(default='sobel')
    size: Literal[3, 5] = Field(default=3)
    combine: Literal['magnitude', 'x', 'y'] = Field(default='magnitude')

    def format_value(self) -> str:
        return f"{self.operator} {self.combine} {self.size}×{self.size} {self.stride_label}"


class DenoiseParams(ConvolutionParams):
    kind_id: ClassVar[FilterKind] = FilterKind.DENOISE
    label: ClassVar[str] = "Denoise"

    kind: Literal['mean', 'median'] = Field(default='mean')
    size: Literal[3, 5, 7] = Field(default=3)
    strength: float = Field(default=0.5, ge=0, le=1, json_schema_extra={'step': 0.05})

    def format_value(self) -> str:
        return f"{self.kind} {self.size}×{self.size} {self.stride_label} k={self.strength:.2f}"


class CustomConvParams(ConvolutionParams):
    kind_id: ClassVar[FilterKind] = FilterKind.CUSTOM_CONV
    label: ClassVar[str] = "Custom Convolution"

    size: Literal[3, 5, 7, 9] = Field(default=3)
    kernel: list[list[float]] = Field(default_factory=lambda: identity_kernel(3).tolist())

    def check_shape(self) -> None:
        _check_kernel_rows(self.kernel, self.size)

    def format_value(self) -> str:
        return f"custom {self.size}×{self.size} {self.stride_label}"


def _field_to_param_schema(field_name: str, field_info: FieldInfo) -> dict[str, Any] | None:
    """Map a Pydantic FieldInfo to a UI control description."""
    extra = field_info.json_schema_extra or {}
    annotation = field_info.annotation
    if annotation is None:
        return None

    # Kernels are edited with a grid, not a control
    if field_name == 'kernel':
        return None

    options = None
    schema_type = 'range'
    if get_origin(annotation) is Literal:
        options = list(get_args(annotation))
        schema_type = 'select'
    elif annotation is bool:
        schema_type = 'checkbox'

    param: dict[str, Any] = {
        'id': field_name,
        'name': extra.get('display_name', field_name.replace('_', ' ').title()),
        'type': schema_type,
        'default': field_info.get_default(call_default_factory=True),
    }
    if options is not None:
        param['options'] = options

    # Range constraints from Field(ge=, le=)
    for meta in (field_info.metadata or []):
        if getattr(meta, 'ge', None) is not None:
            param['min'] = meta.ge
        if getattr(meta, 'le', None) is not None:
            param['max'] = meta.le
        if getattr(meta, 'gt', None) is not None:
            param['min'] = meta.gt
        if getattr(meta, 'lt', None) is not None:
            param['max'] = meta.lt

    for key in ('step', 'suffix'):
        if key in extra:
            param[key] = extra[key]

    return param


# ============================================================================
# Registry helpers
# ============================================================================

def params_class_for(kind: FilterKind | str) -> type[FilterParams]:
    """Params model registered for ``kind``."""
    try:
        return FilterParams._registry[FilterKind(kind)]
    except (KeyError, ValueError):
        raise InvalidParamsError(f"Unknown filter kind: {kind!r}") from None


def default_params_for(kind: FilterKind | str) -> FilterParams:
    """Fresh starter params for ``kind``."""
    return params_class_for(kind).starter()


def label_for(kind: FilterKind | str) -> str:
    return params_class_for(kind).label


# ============================================================================
# Filter instance
# ============================================================================

class FilterInstance(BaseModel):
    """One entry of a pipeline: ``{id, kind, params, enabled}``.

    ``id`` is stable across mutation. ``params`` must be the model registered
    for ``kind``; plain dicts are parsed against that model.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=False,
        arbitrary_types_allowed=True,
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: FilterKind
    params: FilterParams
    enabled: bool = Field(default=True)

    @model_validator(mode='before')
    @classmethod
    def _parse_params(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        kind = data.get('kind')
        params = data.get('params')
        if kind is None or isinstance(params, FilterParams):
            return data
        params_cls = FilterParams._registry.get(FilterKind(kind))
        if params_cls is None:
            return data
        data['params'] = params_cls.starter() if params is None else params_cls.model_validate(params)
        return data

    @model_validator(mode='after')
    def _check_params_kind(self) -> 'FilterInstance':
        if getattr(type(self.params), 'kind_id', None) != self.kind:
            raise ValueError(
                f"params {type(self.params).__name__} do not match kind {self.kind.value!r}"
            )
        return self

    @classmethod
    def create(cls, kind: FilterKind | str, params: Mapping[str, Any] | FilterParams | None = None,
               enabled: bool = True, id: str | None = None) -> 'FilterInstance':
        """Create an instance, defaulting params for ``kind``.

        Raises:
            InvalidParamsError: Unknown kind, or params out of range / wrong shape
        """
        params_class_for(kind)
        data: dict[str, Any] = {'kind': kind, 'params': params, 'enabled': enabled}
        if id is not None:
            data['id'] = id
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise InvalidParamsError(f"Invalid params for {kind!r}: {exc}") from exc

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], lenient: bool = False) -> 'FilterInstance':
        """Build from ``{id, kind, params, enabled}``.

        With ``lenient`` the params are checked against their kind but not
        against the slider ranges (see :meth:`FilterParams.lenient`).
        """
        if 'kind' not in data:
            raise InvalidParamsError("Filter instance is missing 'kind'")
        params = data.get('params')
        if lenient and params is not None and not isinstance(params, FilterParams):
            params = params_class_for(data['kind']).lenient(params)
        return cls.create(
            data['kind'],
            params=params,
            enabled=data.get('enabled', True),
            id=data.get('id'),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'kind': self.kind.value,
            'params': self.params.model_dump(),
            'enabled': self.enabled,
        }

    @property
    def label(self) -> str:
        return self.params.label

    def format_value(self) -> str:
        return self.params.format_value()

    def with_params(self, params: FilterParams) -> 'FilterInstance':
        """Copy with replaced params; id, kind and enabled are kept."""
        return self.model_copy(update={'params': params})


def as_instance(item: FilterInstance | Mapping[str, Any]) -> FilterInstance:
    """Accept an instance or its dict form; dict params are not range checked."""
    if isinstance(item, FilterInstance):
        return item
    if isinstance(item, Mapping):
        return FilterInstance.from_dict(item, lenient=True)
    raise InvalidParamsError(f"Expected a filter instance, got {type(item).__name__}")


def require_params(instance: FilterInstance) -> FilterParams:
    """Params of ``instance``, checked against its kind.

    Raises:
        InvalidParamsError: The params shape does not match the kind
    """
    expected = params_class_for(instance.kind)
    if not isinstance(instance.params, expected):
        raise InvalidParamsError(
            f"Filter {instance.id!r} of kind {instance.kind.value!r} has "
            f"{type(instance.params).__name__} params, expected {expected.__name__}"
        )
    return instance.params


def kernel_array(kernel: list[list[float]]) -> np.ndarray:
    return np.asarray(kernel, dtype=np.float64)


__all__ = [
    'FilterKind', 'AFFINE_KINDS', 'PER_PIXEL_KINDS', 'CONVOLUTION_KINDS',
    'FilterParams', 'ConvolutionParams',
    'BrightnessParams', 'ContrastParams', 'SaturationParams', 'VibranceParams', 'HueParams',
    'WhitesParams', 'BlacksParams',
    'BlurParams', 'SharpenParams', 'EdgeParams', 'DenoiseParams', 'CustomConvParams',
    'params_class_for', 'default_params_for', 'label_for',
    'FilterInstance', 'as_instance', 'require_params', 'kernel_array',
]
