"""
End-to-end transforms against a real ffmpeg binary.

Skipped automatically when ffmpeg/ffprobe are not installed.
"""

import shutil
import zipfile

import pytest

from conftest import requires_ffmpeg
from vidremix.render.transform_runner import Completed, Progress, TransformRunner
from vidremix.schemas.options import TransformOptions
from vidremix.services.bgm_library import BgmLibrary
from vidremix.services.job_store import JobState, JobStore
from vidremix.services.media_storage import MediaStorage
from vidremix.services.split_archiver import SplitArchiver
from vidremix.services.transform_service import TransformService
from vidremix.utils.media_info import probe_media

pytestmark = [requires_ffmpeg, pytest.mark.requires_ffmpeg]


@pytest.fixture
def uploaded(settings, real_video):
    path = settings.upload_dir / "source.mp4"
    shutil.copy(real_video, path)
    return path


@pytest.fixture
def transforms(settings) -> TransformService:
    storage = MediaStorage(settings)
    return TransformService(storage, TransformRunner(settings), BgmLibrary(settings.bgm_dir), settings)


class TestExportWithFfmpeg:
    @pytest.mark.asyncio
    async def test_full_option_set(self, settings, uploaded, transforms):
        jobs = JobStore()
        options = TransformOptions.model_validate(
            {
                "brightness": "0.05",
                "colorGrade": "on",
                "noiseReduction": "on",
                "cropResize": "on",
                "copyrightAvoid": "on",
            }
        )
        job_id, source = transforms.submit_export(jobs, uploaded.name)

        await transforms.run_export(jobs, job_id, source, options)

        status = jobs.get(job_id)
        assert status.status == JobState.COMPLETED, status.details
        info = await probe_media(str(settings.output_dir / f"{job_id}.mp4"))
        assert info.width % 2 == 0
        assert info.height % 2 == 0
        assert info.has_audio

    @pytest.mark.asyncio
    async def test_progress_events(self, settings, uploaded):
        transforms = TransformService(
            MediaStorage(settings), TransformRunner(settings), BgmLibrary(settings.bgm_dir), settings
        )
        prepared = await transforms.prepare(uploaded, TransformOptions(brightness=0.1))
        invocation = transforms.commands.build_export(
            prepared.source,
            prepared.graph,
            settings.output_dir / "progress.mp4",
            duration_s=prepared.info.duration_s,
        )

        events = [event async for event in transforms.runner.run(invocation)]

        percents = [e.percent for e in events if isinstance(e, Progress)]
        assert percents == sorted(percents)
        assert isinstance(events[-1], Completed)

    @pytest.mark.asyncio
    async def test_bgm_mix(self, settings, uploaded, transforms, real_video):
        music = settings.bgm_dir / "tone.m4a"
        shutil.copy(real_video, music)
        jobs = JobStore()
        job_id, source = transforms.submit_export(jobs, uploaded.name)

        await transforms.run_export(jobs, job_id, source, TransformOptions(addBgm=True))

        assert jobs.get(job_id).status == JobState.COMPLETED, jobs.get(job_id).details


class TestPreviewWithFfmpeg:
    @pytest.mark.asyncio
    async def test_preview_is_fragmented_mp4(self, uploaded, transforms):
        body = await transforms.open_preview(
            uploaded.name, TransformOptions(cropResize=True), start_s=2, duration_s=2
        )
        data = b"".join([chunk async for chunk in body])

        assert b"ftyp" in data[:64]
        assert b"moof" in data


class TestSplitWithFfmpeg:
    @pytest.mark.asyncio
    async def test_two_clips(self, settings, uploaded):
        storage = MediaStorage(settings)
        archiver = SplitArchiver(storage, TransformRunner(settings))

        archive_path = await archiver.split(uploaded, [(0, 5), (5, 10)])

        with zipfile.ZipFile(archive_path) as archive:
            assert archive.namelist() == ["clip_1.mp4", "clip_2.mp4"]
            extracted = settings.output_dir / "check"
            archive.extractall(extracted)
        info = await probe_media(str(extracted / "clip_1.mp4"))
        assert 4000 <= info.duration_ms <= 6000
