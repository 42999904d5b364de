"""Tests for astrofit.core.presets: size tables and print quality maths."""

import pytest

from astrofit.core.presets import (
    DEFAULT_PRINT_SIZE_INDEX,
    PRINT_DPIS,
    PRINT_SIZES,
    WALLPAPER_PRESETS,
    assess_print_quality,
    megapixels,
    preview_dims,
    print_label,
    print_target,
    px,
    quality_label,
)


class TestTables:
    def test_default_print_size_is_poster(self):
        assert PRINT_SIZES[DEFAULT_PRINT_SIZE_INDEX].label == "12×18 in (Poster)"

    def test_dpis(self):
        assert PRINT_DPIS == (200, 300)

    def test_wallpaper_preset_to_dict(self):
        assert WALLPAPER_PRESETS[0].to_dict() == {"label": "Phone (1080×1920)", "width": 1080, "height": 1920}


class TestPrintTarget:
    def test_portrait(self):
        target = print_target(PRINT_SIZES[2], 300)
        assert (target.width, target.height) == (3600, 5400)
        assert (target.width_in, target.height_in) == (12, 18)

    def test_landscape_swaps(self):
        target = print_target(PRINT_SIZES[0], 200, "landscape")
        assert (target.width, target.height) == (2000, 1600)
        assert (target.width_in, target.height_in) == (10, 8)

    def test_px_rounds(self):
        assert px(8.5, 300) == 2550


class TestPreviewDims:
    def test_scales_long_edge(self):
        assert preview_dims(3600, 5400) == (1067, 1600)

    def test_small_unchanged(self):
        assert preview_dims(800, 600) == (800, 600)


class TestQuality:
    @pytest.mark.parametrize(
        "dpi, label",
        [(300, "Excellent"), (299, "Great"), (240, "Great"), (200, "Good"), (150, "Fair"), (149, "Low")],
    )
    def test_labels(self, dpi, label):
        assert quality_label(dpi) == label

    def test_large_source_keeps_nominal_dpi(self):
        quality = assess_print_quality(8000, 12000, 3600, 5400, 300)
        assert quality.upscale == 1.0
        assert quality.effective_dpi == 300
        assert quality.label == "Excellent"
        assert quality.source_megapixels == 96.0

    def test_small_source_is_upscaled(self):
        quality = assess_print_quality(1800, 2700, 3600, 5400, 300)
        assert quality.needed_scale == pytest.approx(2.0)
        assert quality.effective_dpi == 150
        assert quality.label == "Fair"

    def test_contain_uses_limiting_side(self):
        # Width needs 2x, height only 1.5x: fitting inside uses the smaller.
        quality = assess_print_quality(1800, 3600, 3600, 5400, 300)
        assert quality.needed_scale == pytest.approx(1.5)
        assert quality.effective_dpi == 200

    def test_rejects_zero(self):
        with pytest.raises(ValueError):
            assess_print_quality(0, 100, 100, 100, 300)

    def test_megapixels(self):
        assert megapixels(1920, 1080) == 2.1

    def test_to_dict_keys(self):
        payload = assess_print_quality(100, 100, 100, 100, 300).to_dict()
        assert set(payload) == {"source_megapixels", "needed_scale", "upscale", "effective_dpi", "label"}


class TestPrintLabel:
    def test_compacts_size_label(self):
        assert print_label("12×18 in (Poster)", 300, "portrait") == "12×18inPoster_300dpi_portrait_nocrop"

    def test_landscape(self):
        assert print_label("24×36 in (Large Poster)", 200, "landscape") == (
            "24×36inLargePoster_200dpi_landscape_nocrop"
        )
