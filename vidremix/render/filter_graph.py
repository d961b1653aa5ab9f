"""
Filter chain construction for the ffmpeg filter mini-language.

Maps TransformOptions to an ordered video chain and an ordered audio chain.
Everything here is pure: equal options (and sample rate) always produce
character-identical chains.

Stage order is fixed:
- video: color grade (eq) -> crop -> scale
- audio: band-limit + spectral denoise -> pitch (asetrate/aresample) -> atempo
"""

from dataclasses import dataclass

from vidremix.schemas.options import TransformOptions

DEFAULT_SAMPLE_RATE = 44100

# colorGrade toggle without explicit values applies a mild grade
COLOR_GRADE_SATURATION = 1.05
COLOR_GRADE_GAMMA = 1.02

CROP_FACTOR = 0.98

DEFAULT_PITCH_SHIFT = 1.03
DEFAULT_TEMPO = 0.98

# atempo only accepts factors in this range per stage
ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0


@dataclass(frozen=True)
class FilterGraph:
    """Ordered video and audio filter chains."""

    video: tuple[str, ...] = ()
    audio: tuple[str, ...] = ()

    @property
    def video_chain(self) -> str:
        return ",".join(self.video)

    @property
    def audio_chain(self) -> str:
        return ",".join(self.audio)

    @property
    def is_passthrough(self) -> bool:
        return not self.video and not self.audio


def format_number(value: float) -> str:
    """Render a number the way it should appear inside a filter argument.

    Integral values drop the fractional part (``1`` not ``1.0``); everything
    else uses the shortest round-trip representation.
    """
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _color_values(options: TransformOptions) -> tuple[float, float, float, float]:
    saturation = 1.0
    if options.color_grade or options.saturation is not None:
        saturation = options.saturation if options.saturation is not None else COLOR_GRADE_SATURATION
    gamma = 1.0
    if options.color_grade or options.gamma is not None:
        gamma = options.gamma if options.gamma is not None else COLOR_GRADE_GAMMA
    return options.brightness, options.contrast, saturation, gamma


def build_video_filters(options: TransformOptions) -> tuple[str, ...]:
    """Build the video filter chain.

    Returns an empty tuple when nothing deviates from identity so callers can
    skip the filter argument entirely.
    """
    filters: list[str] = []

    brightness, contrast, saturation, gamma = _color_values(options)
    if brightness != 0 or contrast != 1 or saturation != 1 or gamma != 1:
        filters.append(
            f"eq=brightness={format_number(brightness)}"
            f":contrast={format_number(contrast)}"
            f":saturation={format_number(saturation)}"
            f":gamma={format_number(gamma)}"
        )

    if options.crop_resize:
        # Center crop, then scale back to even dimensions (yuv420p needs even sizes)
        filters.append(f"crop=iw*{CROP_FACTOR}:ih*{CROP_FACTOR}")
        filters.append(f"scale=trunc(iw/{CROP_FACTOR}/2)*2:trunc(ih/{CROP_FACTOR}/2)*2")

    return tuple(filters)


def atempo_stages(factor: float) -> list[str]:
    """Split a tempo factor into atempo stages within the filter's range."""
    stages: list[str] = []
    while factor > ATEMPO_MAX:
        stages.append(f"atempo={format_number(ATEMPO_MAX)}")
        factor /= ATEMPO_MAX
    while factor < ATEMPO_MIN:
        stages.append(f"atempo={format_number(ATEMPO_MIN)}")
        factor /= ATEMPO_MIN
    stages.append(f"atempo={format_number(factor)}")
    return stages


def pitch_tempo_factors(options: TransformOptions) -> tuple[float, float] | None:
    """Return (pitch, tempo) when the pitch/tempo stage is requested."""
    if not (options.copyright_avoid or options.pitch_shift is not None or options.tempo is not None):
        return None
    pitch = options.pitch_shift if options.pitch_shift is not None else DEFAULT_PITCH_SHIFT
    tempo = options.tempo if options.tempo is not None else DEFAULT_TEMPO
    return pitch, tempo


def build_audio_filters(
    options: TransformOptions,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> tuple[str, ...]:
    """Build the audio filter chain.

    Args:
        options: Transform options
        sample_rate: Sample rate of the source audio stream; the pitch stage
            raises the declared rate and resamples back to it

    Returns:
        Ordered audio filter stages (possibly empty)
    """
    filters: list[str] = []

    if options.noise_reduction:
        filters.extend(["highpass=f=100", "lowpass=f=10000", "afftdn=nr=12"])

    factors = pitch_tempo_factors(options)
    if factors is not None:
        pitch, tempo = factors
        # asetrate shifts pitch and speed by P together; atempo then applies
        # T/P so the net speed change is exactly T and the pitch change P
        filters.append(f"asetrate={round(sample_rate * pitch)}")
        filters.append(f"aresample={sample_rate}")
        filters.extend(atempo_stages(tempo / pitch))

    return tuple(filters)


def build_filter_graph(
    options: TransformOptions,
    sample_rate: int = DEFAULT_SAMPLE_RATE,
) -> FilterGraph:
    return FilterGraph(
        video=build_video_filters(options),
        audio=build_audio_filters(options, sample_rate),
    )
