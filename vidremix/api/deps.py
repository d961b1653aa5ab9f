"""Process-wide service wiring and FastAPI dependencies.

``build_services`` is called once when the app is created; the resulting
``Services`` lives on ``app.state`` and handlers receive the pieces they
need through the ``Annotated`` aliases below. Tests swap the whole bundle by
building their own app with ``create_app(settings)``.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request

from vidremix.config import Settings
from vidremix.render.ffmpeg_command import FFmpegCommandBuilder
from vidremix.render.transform_runner import TransformRunner
from vidremix.services.bgm_library import BgmLibrary
from vidremix.services.job_store import JobStore
from vidremix.services.media_storage import MediaStorage
from vidremix.services.preset_store import PresetStore
from vidremix.services.split_archiver import SplitArchiver
from vidremix.services.transform_service import TransformService


@dataclass
class Services:
    settings: Settings
    storage: MediaStorage
    jobs: JobStore
    runner: TransformRunner
    bgm_library: BgmLibrary
    transforms: TransformService
    splitter: SplitArchiver
    presets: PresetStore


def build_services(settings: Settings, runner: TransformRunner | None = None) -> Services:
    storage = MediaStorage(settings)
    runner = runner or TransformRunner(settings)
    bgm_library = BgmLibrary(settings.bgm_dir)
    return Services(
        settings=settings,
        storage=storage,
        jobs=JobStore(),
        runner=runner,
        bgm_library=bgm_library,
        transforms=TransformService(storage, runner, bgm_library, settings),
        splitter=SplitArchiver(storage, runner, FFmpegCommandBuilder(settings)),
        presets=PresetStore(settings.presets_path),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_job_store(request: Request) -> JobStore:
    return get_services(request).jobs


def get_media_storage(request: Request) -> MediaStorage:
    return get_services(request).storage


def get_transform_service(request: Request) -> TransformService:
    return get_services(request).transforms


def get_split_archiver(request: Request) -> SplitArchiver:
    return get_services(request).splitter


def get_preset_store(request: Request) -> PresetStore:
    return get_services(request).presets


Jobs = Annotated[JobStore, Depends(get_job_store)]
Storage = Annotated[MediaStorage, Depends(get_media_storage)]
Transforms = Annotated[TransformService, Depends(get_transform_service)]
Splitter = Annotated[SplitArchiver, Depends(get_split_archiver)]
Presets = Annotated[PresetStore, Depends(get_preset_store)]
