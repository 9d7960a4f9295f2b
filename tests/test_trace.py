"""
Test the single-pixel trace.

Tests verify:
- One step per enabled instance, in execution order
- The trace agrees with what the bulk pass wrote
- Convolution steps expose window and per-cell products
"""

import numpy as np
import pytest

from filterstack import RasterBuffer
from filterstack.filters.executor import ExecutorState, PipelineExecutor, PipelineOptions
from filterstack.filters.pipeline import FilterStack
from filterstack.filters.trace import trace_pixel


def _stack(*entries) -> FilterStack:
    s = FilterStack()
    for kind, params in entries:
        s.add(kind, params)
    return s


class TestTraceSteps:
    def test_one_step_per_enabled_instance(self, random_image):
        stack = _stack(('brightness', {'value': 5}), ('vibrance', {'vibrance': 0.2}), ('blur', None))
        stack.toggle(stack[1].id)
        trace = trace_pixel(random_image, stack, 3, 4, PipelineOptions())
        assert [s.kind for s in trace.steps] == ['brightness', 'blur']

    def test_affine_batch_intermediates(self, single_pixel):
        buf = single_pixel(200, 150, 100)
        stack = _stack(('brightness', {'value': 20}), ('contrast', {'value': 1.0}))
        trace = trace_pixel(buf, stack, 0, 0, PipelineOptions())
        first, second = trace.steps
        assert first.input == (200.0, 150.0, 100.0)
        assert first.output == pytest.approx((220.0, 170.0, 120.0))
        assert second.input == pytest.approx((220.0, 170.0, 120.0))
        assert second.output == (220.0, 170.0, 120.0)
        assert trace.final == (220, 170, 120, 255)

    def test_unclamped_intermediate(self, single_pixel):
        buf = single_pixel(200, 200, 200)
        stack = _stack(('brightness', {'value': 100}), ('brightness', {'value': -100}))
        trace = trace_pixel(buf, stack, 0, 0, PipelineOptions())
        assert trace.steps[0].output == pytest.approx((300.0, 300.0, 300.0))
        assert trace.steps[1].output == (200.0, 200.0, 200.0)

    def test_transparent_pixel_unchanged(self, single_pixel):
        buf = single_pixel(40, 50, 60, 0)
        stack = _stack(('brightness', {'value': 30}), ('hue', {'hue': 90}), ('whites', {'value': 10}))
        trace = trace_pixel(buf, stack, 0, 0, PipelineOptions())
        for step in trace.steps:
            assert step.output == step.input == (40.0, 50.0, 60.0)

    def test_steps_chain(self, random_image):
        stack = _stack(
            ('contrast', {'value': 1.3}), ('whites', {'value': 20}),
            ('edge', None), ('vibrance', {'vibrance': -0.4}),
        )
        trace = trace_pixel(random_image, stack, 5, 5, PipelineOptions())
        for prev, step in zip(trace.steps, trace.steps[1:]):
            assert step.input == prev.output
        assert trace.steps[-1].output == tuple(float(v) for v in trace.final[:3])

    def test_stages(self, random_image):
        stack = _stack(('hue', {'hue': 20}), ('blacks', {'value': 10}), ('denoise', None))
        trace = trace_pixel(random_image, stack, 1, 1, PipelineOptions())
        assert [s.stage for s in trace.steps] == [
            ExecutorState.BATCHING_AFFINE,
            ExecutorState.APPLYING_PER_PIXEL,
            ExecutorState.APPLYING_CONVOLUTION,
        ]


class TestTraceAgreesWithExecutor:
    @pytest.mark.parametrize("linear", [False, True])
    def test_final_matches_bulk_pass(self, random_image, linear):
        stack = _stack(
            ('saturation', {'value': 1.4}), ('sharpen', {'amount': 0.7}),
            ('hue', {'hue': -60}), ('blacks', {'value': -15}),
        )
        options = PipelineOptions(linear_saturation=linear)
        bulk = random_image.copy()
        PipelineExecutor().run(bulk, stack, options)
        for x, y in [(0, 0), (4, 7), (11, 8)]:
            trace = trace_pixel(random_image, stack, x, y, options)
            assert trace.final == tuple(int(v) for v in bulk[y, x])

    def test_source_untouched(self, random_image):
        before = random_image.copy()
        buf = RasterBuffer(random_image)
        trace_pixel(buf, _stack(('blur', None), ('brightness', {'value': 50})), 2, 2)
        np.testing.assert_array_equal(random_image, before)


class TestConvolutionTrace:
    def test_box_blur_products(self, solid):
        img = solid(3, 3, (255, 255, 255, 255))
        stack = _stack(('blur', {'kind': 'box', 'size': 3}))
        step = trace_pixel(img, stack, 1, 1, PipelineOptions()).steps[0]
        assert step.window.shape == (3, 3, 3)
        assert np.all(step.window == 255)
        assert step.valid.all()
        kernel_trace = step.kernels[0]
        assert kernel_trace.label == 'box'
        np.testing.assert_allclose(kernel_trace.products, np.full((3, 3, 3), 255 / 9))
        np.testing.assert_allclose(kernel_trace.totals, [255, 255, 255])
        assert step.output == (255.0, 255.0, 255.0)

    def test_zero_padding_window(self, solid):
        img = solid(4, 4, (100, 100, 100, 255))
        stack = _stack(('blur', {'kind': 'box', 'size': 3, 'padding': 'zero'}))
        step = trace_pixel(img, stack, 0, 0, PipelineOptions()).steps[0]
        assert step.valid.sum() == 4
        np.testing.assert_allclose(step.kernels[0].totals, [400 / 9] * 3)
        assert step.output == (44.0, 44.0, 44.0)

    def test_edge_has_both_gradients(self, random_image):
        step = trace_pixel(random_image, _stack(('edge', None)), 4, 4, PipelineOptions()).steps[0]
        assert [k.label for k in step.kernels] == ['Gx', 'Gy']
        gx, gy = (k.totals for k in step.kernels)
        expected = np.clip(np.rint(np.hypot(gx, gy)), 0, 255)
        assert step.output == tuple(float(v) for v in expected)

    def test_median_window_without_kernels(self, random_image):
        step = trace_pixel(
            random_image, _stack(('denoise', {'kind': 'median'})), 6, 3, PipelineOptions(),
        ).steps[0]
        assert step.kernels == []
        expected = np.sort(step.window.reshape(-1, 3), axis=0)[4]
        assert step.output == tuple(float(v) for v in expected)

    def test_stride_samples_aligned_pixel(self, random_image):
        stack = _stack(('blur', {'stride': 3}))
        step = trace_pixel(random_image, stack, 5, 4, PipelineOptions()).steps[0]
        assert step.sample_xy == (3, 3)
        np.testing.assert_allclose(step.output, np.clip(step.kernels[0].totals, 0, 255), atol=0.51)
        bulk = random_image.copy()
        PipelineExecutor().run(bulk, stack, PipelineOptions())
        assert tuple(bulk[4, 5, :3]) == tuple(bulk[3, 3, :3])

    def test_describe_final(self, single_pixel):
        trace = trace_pixel(single_pixel(255, 0, 0), [], 0, 0, PipelineOptions())
        assert trace.steps == []
        assert trace.describe_final().hsv == pytest.approx((0.0, 1.0, 1.0))
