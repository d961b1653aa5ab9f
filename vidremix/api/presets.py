"""Preset list/append endpoints."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from vidremix.api.deps import Presets

router = APIRouter()


class PresetCreate(BaseModel):
    name: str = Field(min_length=1)
    options: dict[str, Any]


@router.get("/presets")
async def list_presets(presets: Presets) -> list[dict[str, Any]]:
    return presets.list()


@router.post("/presets")
async def create_preset(preset: PresetCreate, presets: Presets) -> dict[str, Any]:
    created = presets.append(preset.name, preset.options)
    return {"ok": True, "id": created["id"]}
