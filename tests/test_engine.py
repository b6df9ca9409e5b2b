import logging
import os

import numpy as np
import pytest
from pydantic import ValidationError
from pytest import approx
from scipy.stats import entropy

from regmetrics import HistogramConfig, ImageData, ImageMutualInformation
from regmetrics.errors import UnsupportedOutputTypeError, UnsupportedScalarTypeError
from regmetrics.execution import DaskTaskStrategy, RunContext, ThreadPoolStrategy
from regmetrics.histogram.binning import AffineKernel, select_kernel
from regmetrics.histogram.scalars import ScalarKind

STRATEGIES = ["threads", "tasks"]
WORKER_COUNTS = list(range(1, (os.cpu_count() or 1) + 1))


def random_pair(shape=(6, 20, 24)) -> tuple:
    np.random.seed(1234)
    image_a = np.random.normal(100.0, 30.0, size=shape).astype(np.float32)
    image_b = (0.5 * image_a + np.random.normal(0.0, 10.0, size=shape)).astype(np.float64)
    return image_a, image_b


def test_zeros_against_ones() -> None:
    zeros = np.zeros((1, 4, 4), dtype=np.uint8)
    ones = np.ones((1, 4, 4), dtype=np.uint8)

    for strategy in STRATEGIES:
        engine = ImageMutualInformation(number_of_bins=(2, 2), number_of_workers=2, execution_strategy=strategy)
        result = engine.compute(zeros, ones)

        expected = np.zeros((2, 2), dtype=np.float32)
        expected[1, 0] = 16
        assert np.array_equal(result.histogram, expected)
        assert result.count == 16
        assert result.mutual_information == 0.0
        assert result.normalized_mutual_information == 1.0
        assert engine.mutual_information == 0.0
        assert engine.normalized_mutual_information == 1.0


def test_total_count_matches_stencil() -> None:
    image_a, image_b = random_pair()
    mask = np.random.rand(*image_a.shape) > 0.3

    for strategy in STRATEGIES:
        for workers in WORKER_COUNTS:
            engine = ImageMutualInformation(
                number_of_bins=(32, 16),
                bin_origin=(0.0, 0.0),
                bin_spacing=(6.0, 5.0),
                output_scalar_type="int64",
                number_of_workers=workers,
                execution_strategy=strategy,
            )
            result = engine.compute(image_a, image_b, stencil=mask)

            assert result.histogram.shape == (16, 32)
            assert result.histogram.sum() == mask.sum()
            assert result.count == mask.sum()


def test_strategies_agree() -> None:
    image_a, image_b = random_pair()
    settings = dict(number_of_bins=(40, 40), bin_origin=(0.0, 0.0), bin_spacing=(5.0, 2.5))

    reference = ImageMutualInformation(number_of_workers=1, **settings).compute(image_a, image_b)
    assert reference.mutual_information > 0.1

    for strategy in STRATEGIES:
        for workers in WORKER_COUNTS:
            engine = ImageMutualInformation(
                number_of_workers=workers, number_of_pieces=3 * workers, execution_strategy=strategy, **settings
            )
            result = engine.compute(image_a, image_b)

            assert np.array_equal(result.histogram, reference.histogram)
            assert result.mutual_information == approx(reference.mutual_information, rel=1e-9)
            assert result.normalized_mutual_information == approx(reference.normalized_mutual_information, rel=1e-9)


def test_swapping_images_transposes_histogram() -> None:
    np.random.seed(1234)
    image_a = np.random.uniform(0, 255, size=(3, 30, 30))
    image_b = np.sqrt(image_a) * 10 + np.random.uniform(0, 60, size=image_a.shape)
    engine = ImageMutualInformation(number_of_bins=(16, 16), bin_spacing=(17.0, 17.0), number_of_workers=2)

    forward = engine.compute(image_a, image_b)
    backward = engine.compute(image_b, image_a)

    assert np.array_equal(forward.histogram, backward.histogram.T)
    assert backward.mutual_information == approx(forward.mutual_information, rel=1e-9)
    assert backward.normalized_mutual_information == approx(forward.normalized_mutual_information, rel=1e-9)


def test_identical_images() -> None:
    np.random.seed(1234)
    image = np.random.randint(0, 8, size=(4, 16, 16)).astype(np.uint8)

    for strategy in STRATEGIES:
        engine = ImageMutualInformation(number_of_bins=(8, 8), number_of_workers=3, execution_strategy=strategy)
        result = engine.compute(image, image)

        marginal_entropy = entropy(np.bincount(image.ravel(), minlength=8))
        assert result.mutual_information == approx(marginal_entropy, rel=1e-9)
        assert result.normalized_mutual_information == approx(2.0, rel=1e-9)
        assert np.array_equal(np.diag(result.histogram), np.bincount(image.ravel(), minlength=8))


def test_empty_mask_floor() -> None:
    image_a, image_b = random_pair()
    mask = np.zeros(image_a.shape, dtype=bool)

    for strategy in STRATEGIES:
        engine = ImageMutualInformation(number_of_workers=4, execution_strategy=strategy)
        result = engine.compute(image_a, image_b, stencil=mask)

        assert result.count == 0
        assert not result.histogram.any()
        assert result.mutual_information == 0.0
        assert result.normalized_mutual_information == 1.0


def test_prescaled_path_matches_generic() -> None:
    np.random.seed(1234)
    image_a = np.random.randint(0, 256, size=(5, 32, 32)).astype(np.uint8)
    image_b = ((image_a.astype(int) + np.random.randint(0, 40, size=image_a.shape)) % 256).astype(np.uint8)
    engine = ImageMutualInformation(number_of_bins=(64, 128), number_of_workers=2)

    fast = engine.compute(image_a, image_b)
    generic = engine.compute(image_a.astype(np.uint16), image_b.astype(np.int32))

    assert np.array_equal(fast.histogram, generic.histogram)
    assert fast.mutual_information == generic.mutual_information
    assert fast.normalized_mutual_information == generic.normalized_mutual_information


def test_prescaled_path_matches_generic_at_half_bin_origin() -> None:
    image = np.arange(4, dtype=np.uint8).reshape(1, 1, 4)
    engine = ImageMutualInformation(
        number_of_bins=(4, 4), bin_origin=(-0.5, -0.5), bin_spacing=(1.0, 1.0), number_of_workers=1
    )

    fast = engine.compute(image, image)
    generic = engine.compute(image.astype(np.uint16), image.astype(np.uint16))

    # every byte is shifted up one bin, the top two share the last bin
    expected = np.diag([0, 1, 1, 2]).astype(np.float32)
    assert np.array_equal(fast.histogram, expected)
    assert np.array_equal(generic.histogram, expected)
    assert fast.mutual_information == generic.mutual_information


def test_unsupported_input_type() -> None:
    image_a, image_b = random_pair()
    engine = ImageMutualInformation(number_of_bins=(8, 8), bin_spacing=(30.0, 20.0), number_of_workers=2)
    engine.compute(image_a, image_b)
    previous = (engine.mutual_information, engine.normalized_mutual_information)

    with pytest.raises(UnsupportedScalarTypeError):
        engine.compute(image_a > 100, image_b)
    with pytest.raises(UnsupportedScalarTypeError):
        engine.compute(image_a, image_b.astype(np.complex128))
    with pytest.raises(TypeError):
        engine.compute(image_a.astype(np.float16), image_b)

    assert (engine.mutual_information, engine.normalized_mutual_information) == previous


def test_unsupported_output_type() -> None:
    image_a, image_b = random_pair()
    for strategy in STRATEGIES:
        engine = ImageMutualInformation(output_scalar_type="bool", number_of_workers=2, execution_strategy=strategy)
        with pytest.raises(UnsupportedOutputTypeError):
            engine.compute(image_a, image_b)
        assert engine.result is None
        assert engine.mutual_information == 0.0


def test_output_type_and_window() -> None:
    zeros = np.zeros((2, 5, 5), dtype=np.int16)
    engine = ImageMutualInformation(number_of_bins=(4, 4), output_scalar_type="uint8", number_of_workers=1)

    result = engine.compute(zeros, zeros, output_extent=(0, 1, 0, 0, 0, 0))

    assert result.histogram.dtype == np.uint8
    # 50 voxels land in cell (0, 0)
    assert result.histogram.tolist() == [[50, 0]]


def test_offset_images_use_overlap() -> None:
    row = np.arange(10, dtype=np.uint8).reshape(1, 1, 10)
    image_a = ImageData(row)
    image_b = ImageData(row, offset=(5, 0, 0))
    engine = ImageMutualInformation(number_of_bins=(10, 10), output_scalar_type="int32", number_of_workers=2)

    result = engine.compute(image_a, image_b)

    assert result.count == 5
    for k in range(5):
        assert result.histogram[k, 5 + k] == 1

    disjoint = engine.compute(image_a, ImageData(row, offset=(20, 0, 0)))
    assert disjoint.count == 0
    assert disjoint.normalized_mutual_information == 1.0


def test_extent_restriction_and_shapes() -> None:
    image_a, image_b = random_pair()
    engine = ImageMutualInformation(bin_spacing=(5.0, 5.0), output_scalar_type="int64", number_of_workers=3)

    result = engine.compute(image_a, image_b, extent=(0, 3, 0, 3, 0, 0))
    assert result.count == 16

    # 2D arrays are one slice, extra components are ignored
    flat = engine.compute(image_a[0], image_b[0])
    with_components = engine.compute(
        np.stack([image_a, np.zeros_like(image_a)], axis=-1), np.stack([image_b, image_b], axis=-1)
    )
    full = engine.compute(image_a, image_b)
    assert flat.count == 20 * 24
    assert np.array_equal(with_components.histogram, full.histogram)


def test_config_validation() -> None:
    with pytest.raises(ValidationError):
        HistogramConfig(number_of_bins=(0, 4))
    with pytest.raises(ValidationError):
        HistogramConfig(bin_spacing=(1.0, 0.0))
    with pytest.raises(ValidationError):
        HistogramConfig(number_of_workers=0)
    with pytest.raises(ValidationError):
        HistogramConfig(execution_strategy="processes")

    config = HistogramConfig(number_of_workers=2)
    assert config.number_of_bins == (64, 64)
    assert config.pieces == 2
    engine = ImageMutualInformation(config, number_of_pieces=5)
    assert engine.config.pieces == 5
    assert engine.config.number_of_workers == 2


def test_strategy_releases_storage() -> None:
    np.random.seed(1234)
    image = ImageData(np.random.randint(0, 4, size=(6, 5, 5)).astype(np.uint8))
    config = HistogramConfig(number_of_bins=(4, 4), number_of_workers=3)
    kernel = select_kernel(ScalarKind.UINT8, ScalarKind.UINT8, (4, 4), (0.0, 0.0), (1.0, 1.0))

    for strategy in [ThreadPoolStrategy(3), DaskTaskStrategy(3, number_of_pieces=6)]:
        storage = strategy.create_storage((4, 4))
        context = RunContext(image, image, None, image.extent, kernel, config, storage)

        result = strategy.execute(context)

        assert result.count == 150
        assert len(storage) == 0


class FailingKernel(AffineKernel):
    def bin_coordinates(self, values_a: np.ndarray, values_b: np.ndarray) -> tuple:
        raise RuntimeError("kernel failure")


def test_worker_failure_propagates() -> None:
    image = ImageData(np.zeros((4, 3, 3), dtype=np.float32))
    config = HistogramConfig(number_of_bins=(4, 4), number_of_workers=2)
    kernel = FailingKernel((4, 4), (0.0, 0.0), (1.0, 1.0))

    for strategy in [ThreadPoolStrategy(2), DaskTaskStrategy(2)]:
        storage = strategy.create_storage((4, 4))
        context = RunContext(image, image, None, image.extent, kernel, config, storage)
        with pytest.raises(RuntimeError, match="kernel failure"):
            strategy.execute(context)
        assert len(storage) == 0


def test_debug_log_reports_active_voxels(caplog) -> None:
    image_a, image_b = random_pair()
    engine = ImageMutualInformation(number_of_workers=2)

    with caplog.at_level(logging.DEBUG, logger="regmetrics.histogram.engine"):
        engine.compute(image_a, image_b, extent=(0, 3, 0, 4, 0, 1))

    assert "Binning 40 voxels" in caplog.text
