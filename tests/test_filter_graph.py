"""
Tests for filter chain construction.

Test cases:
1. Identity options produce no filter stages
2. Color grade toggle and explicit values (union semantics)
3. Crop then rescale to even dimensions
4. Denoise and pitch/tempo audio stages in fixed order
5. atempo factors outside [0.5, 2.0] are chained
6. Same options always give the same chains
"""

import pytest

from vidremix.render.filter_graph import (
    FilterGraph,
    atempo_stages,
    build_audio_filters,
    build_filter_graph,
    build_video_filters,
    format_number,
)
from vidremix.schemas.options import TransformOptions


class TestFormatNumber:
    def test_integral_values_drop_fraction(self):
        assert format_number(1.0) == "1"
        assert format_number(0) == "0"
        assert format_number(-1.0) == "-1"

    def test_fractional_values(self):
        assert format_number(1.05) == "1.05"
        assert format_number(0.1) == "0.1"


class TestVideoFilters:
    """Test video chain building."""

    def test_defaults_produce_empty_chain(self):
        """Test no-op options emit no video stage at all."""
        graph = build_filter_graph(TransformOptions())

        assert graph.video == ()
        assert graph.video_chain == ""
        assert graph.is_passthrough

    def test_brightness_only(self):
        """Test a single deviation emits one eq stage with identity for the rest."""
        filters = build_video_filters(TransformOptions(brightness=0.1))

        assert filters == ("eq=brightness=0.1:contrast=1:saturation=1:gamma=1",)

    def test_color_grade_toggle_uses_defaults(self):
        """Test colorGrade alone applies the mild default grade."""
        filters = build_video_filters(TransformOptions(colorGrade="on"))

        assert filters == ("eq=brightness=0:contrast=1:saturation=1.05:gamma=1.02",)

    def test_explicit_saturation_without_toggle(self):
        """Test an explicit value activates saturation even with the toggle off."""
        filters = build_video_filters(TransformOptions(saturation=1.3))

        assert filters == ("eq=brightness=0:contrast=1:saturation=1.3:gamma=1",)

    def test_explicit_values_win_over_toggle_defaults(self):
        options = TransformOptions(colorGrade=True, saturation=1.2, gamma=0.9)

        filters = build_video_filters(options)

        assert filters == ("eq=brightness=0:contrast=1:saturation=1.2:gamma=0.9",)

    def test_explicit_identity_values_emit_nothing(self):
        """Test supplying identity values does not force a no-op stage."""
        options = TransformOptions(brightness=0, contrast=1, saturation=1, gamma=1)

        assert build_video_filters(options) == ()

    def test_crop_then_scale(self):
        """Test crop to 98% precedes the rescale to even dimensions."""
        filters = build_video_filters(TransformOptions(cropResize="on"))

        assert filters == (
            "crop=iw*0.98:ih*0.98",
            "scale=trunc(iw/0.98/2)*2:trunc(ih/0.98/2)*2",
        )

    def test_eq_comes_before_crop(self):
        options = TransformOptions(contrast=1.2, cropResize=True)

        filters = build_video_filters(options)

        assert filters[0].startswith("eq=")
        assert filters[1].startswith("crop=")
        assert filters[2].startswith("scale=")


class TestAudioFilters:
    """Test audio chain building."""

    def test_defaults_produce_empty_chain(self):
        assert build_audio_filters(TransformOptions()) == ()

    def test_noise_reduction(self):
        filters = build_audio_filters(TransformOptions(noiseReduction="on"))

        assert filters == ("highpass=f=100", "lowpass=f=10000", "afftdn=nr=12")

    def test_copyright_avoid_defaults(self):
        """Test default pitch 1.03 and tempo 0.98 at 44.1kHz."""
        filters = build_audio_filters(TransformOptions(copyrightAvoid="on"), sample_rate=44100)

        assert filters == (
            "asetrate=45423",
            "aresample=44100",
            f"atempo={0.98 / 1.03!r}",
        )

    def test_pitch_stage_uses_source_sample_rate(self):
        filters = build_audio_filters(TransformOptions(pitchShift=1.5), sample_rate=48000)

        assert filters[0] == "asetrate=72000"
        assert filters[1] == "aresample=48000"

    def test_explicit_tempo_activates_stage(self):
        """Test tempo alone opts in, with pitch falling back to its default."""
        filters = build_audio_filters(TransformOptions(tempo=1.03))

        assert filters == ("asetrate=45423", "aresample=44100", "atempo=1")

    def test_denoise_precedes_pitch(self):
        options = TransformOptions(noiseReduction=True, copyrightAvoid=True)

        filters = build_audio_filters(options)

        assert [f.split("=")[0] for f in filters] == [
            "highpass",
            "lowpass",
            "afftdn",
            "asetrate",
            "aresample",
            "atempo",
        ]


class TestAtempoStages:
    """Test splitting tempo factors into the filter's accepted range."""

    def test_factor_in_range(self):
        assert atempo_stages(0.95) == ["atempo=0.95"]

    def test_large_factor_is_chained(self):
        assert atempo_stages(3.0) == ["atempo=2", "atempo=1.5"]

    def test_small_factor_is_chained(self):
        assert atempo_stages(0.25) == ["atempo=0.5", "atempo=0.5"]

    @pytest.mark.parametrize("factor", [0.1, 0.3, 0.5, 1.0, 2.0, 3.7, 8.0])
    def test_every_stage_within_bounds(self, factor):
        for stage in atempo_stages(factor):
            value = float(stage.split("=")[1])
            assert 0.5 <= value <= 2.0, f"{stage} out of range for factor {factor}"


class TestFilterGraph:
    def test_add_bgm_does_not_change_chains(self):
        """Test background music is wired by the command builder, not the chains."""
        base = build_filter_graph(TransformOptions(brightness=0.2))
        with_bgm = build_filter_graph(TransformOptions(brightness=0.2, addBgm="on"))

        assert base == with_bgm

    def test_deterministic(self):
        """Test equal options give character-identical chains."""
        query = {
            "brightness": "0.1",
            "contrast": "1.1",
            "colorGrade": "on",
            "noiseReduction": "on",
            "cropResize": "on",
            "copyrightAvoid": "on",
        }

        first = build_filter_graph(TransformOptions.model_validate(query), 48000)
        second = build_filter_graph(TransformOptions.model_validate(dict(query)), 48000)

        assert first.video_chain == second.video_chain
        assert first.audio_chain == second.audio_chain

    def test_chains_are_comma_joined(self):
        graph = FilterGraph(video=("a", "b"), audio=("c",))

        assert graph.video_chain == "a,b"
        assert graph.audio_chain == "c"
        assert not graph.is_passthrough
