# FilterStack Filters Module
"""
Pixel-transformation engine: color math, convolution, and the pipeline
executor that applies an ordered filter stack to an RGBA buffer.
"""

from .constants import (
    LUMA_REC601,
    LUMA_REC709,
    LINEAR_LUMINANCE,
    LumaModel,
    PaddingMode,
)

from .affine import (
    AffineTransform,
    brightness_transform,
    contrast_transform,
    saturation_transform,
    hue_transform,
    compose,
    apply_affine,
)

from .instances import (
    FilterKind,
    FilterParams,
    FilterInstance,
    BrightnessParams,
    ContrastParams,
    SaturationParams,
    VibranceParams,
    HueParams,
    WhitesParams,
    BlacksParams,
    BlurParams,
    SharpenParams,
    EdgeParams,
    DenoiseParams,
    CustomConvParams,
    default_params_for,
    params_class_for,
    label_for,
)

from .pipeline import (
    FilterStack,
    execution_order,
    resize_custom_kernel,
)

from .executor import (
    PipelineOptions,
    PipelineExecutor,
    ExecutorState,
    ExecutionObserver,
    ExecutionReport,
    StepEvent,
    apply_pipeline,
)

from .trace import (
    PixelTrace,
    TraceStep,
    KernelTrace,
    trace_pixel,
)

__all__ = [
    # Constants
    'LUMA_REC601', 'LUMA_REC709', 'LINEAR_LUMINANCE', 'LumaModel', 'PaddingMode',
    # Affine
    'AffineTransform', 'brightness_transform', 'contrast_transform',
    'saturation_transform', 'hue_transform', 'compose', 'apply_affine',
    # Instances
    'FilterKind', 'FilterParams', 'FilterInstance',
    'BrightnessParams', 'ContrastParams', 'SaturationParams', 'VibranceParams',
    'HueParams', 'WhitesParams', 'BlacksParams',
    'BlurParams', 'SharpenParams', 'EdgeParams', 'DenoiseParams', 'CustomConvParams',
    'default_params_for', 'params_class_for', 'label_for',
    # Pipeline
    'FilterStack', 'execution_order', 'resize_custom_kernel',
    # Execution
    'PipelineOptions', 'PipelineExecutor', 'ExecutorState', 'ExecutionObserver',
    'ExecutionReport', 'StepEvent', 'apply_pipeline',
    # Trace
    'PixelTrace', 'TraceStep', 'KernelTrace', 'trace_pixel',
]
