from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_TRUE_VALUES = {"on", "true", "1", "yes"}
_FALSE_VALUES = {"off", "false", "0", "no", ""}


class TransformOptions(BaseModel):
    """User-facing transform parameters.

    Accepts the client's camelCase keys (``noiseReduction``) as well as
    snake_case. Toggles accept ``"on"``/``"off"`` as sent by the web client.

    ``saturation``, ``gamma``, ``pitch_shift`` and ``tempo`` are ``None`` when
    the client did not supply them; the filter builder treats a supplied value
    as an opt-in for the corresponding stage.
    """

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", frozen=True, allow_inf_nan=False
    )

    brightness: float = Field(default=0.0, ge=-1.0, le=1.0)
    contrast: float = Field(default=1.0, ge=0.0, le=2.0)
    saturation: float | None = Field(default=None, ge=0.0, le=2.0)
    gamma: float | None = Field(default=None, ge=0.5, le=2.0)
    color_grade: bool = Field(default=False, alias="colorGrade")

    noise_reduction: bool = Field(default=False, alias="noiseReduction")
    crop_resize: bool = Field(default=False, alias="cropResize")

    copyright_avoid: bool = Field(default=False, alias="copyrightAvoid")
    pitch_shift: float | None = Field(default=None, gt=0.0, le=4.0, alias="pitchShift")
    tempo: float | None = Field(default=None, gt=0.0, le=4.0)

    add_bgm: bool = Field(default=False, alias="addBgm")
    bgm_volume: float | None = Field(default=None, ge=0.0, le=4.0, alias="bgmVolume")

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        """Treat empty strings (unset form fields) as missing."""
        if isinstance(data, dict):
            data = {k: v for k, v in data.items() if v is not None and v != ""}
            # Legacy clients send the crop toggle as ``crop``
            if "crop" in data and "cropResize" not in data and "crop_resize" not in data:
                data["cropResize"] = data.pop("crop")
        return data

    @field_validator(
        "color_grade",
        "noise_reduction",
        "crop_resize",
        "copyright_avoid",
        "add_bgm",
        mode="before",
    )
    @classmethod
    def parse_toggle(cls, v: Any) -> Any:
        if isinstance(v, str):
            lowered = v.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
        return v


class PreviewParams(BaseModel):
    """Query parameters of the preview stream besides the transform options."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file_id: str = Field(alias="fileId", min_length=1)
    start: float = Field(default=0.0, allow_inf_nan=False)
    duration: float = Field(default=5.0, gt=0.0, allow_inf_nan=False)

    @model_validator(mode="before")
    @classmethod
    def drop_blank_values(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = {k: v for k, v in data.items() if v is not None and v != ""}
        return data


class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_id: str = Field(alias="fileId", min_length=1)
    options: TransformOptions = Field(default_factory=TransformOptions)


class ExportResponse(BaseModel):
    job_id: str = Field(serialization_alias="jobId")


class Segment(BaseModel):
    start: float = Field(allow_inf_nan=False)
    end: float = Field(allow_inf_nan=False)


class SplitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_id: str = Field(alias="fileId", min_length=1)
    segments: list[Segment] = Field(default_factory=list)


class DownloadResponse(BaseModel):
    download_url: str = Field(serialization_alias="downloadUrl")
