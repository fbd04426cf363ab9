"""
Tests for VideoGenerationService: phase ordering, fail-open enhancement,
rollback on fatal errors, and run isolation.
"""

import asyncio

import pytest

from conftest import FakeAngles, FakeEnhancer, FakeStore, FakeVideo, drain
from reelworker import metrics
from reelworker.pipeline.errors import ChannelClosedError
from reelworker.pipeline.models import Bucket, EventStatus, PipelineStatus, ProgressEvent
from reelworker.pipeline.progress import ProgressChannel


async def _run(service, front, back, run_id="run-1"):
    channel = ProgressChannel(run_id)
    run = await service.run(front, back, channel)
    return run, await drain(channel)


class TestSuccessfulRun:

    @pytest.mark.asyncio
    async def test_emits_every_phase_then_result(self, make_service, front_asset, back_asset):
        store = FakeStore()
        run, events = await _run(make_service(store=store), front_asset, back_asset)

        assert [e.progress for e in events] == [10, 25, 50, 80, 100]
        assert [e.step for e in events] == [1, 2, 3, 4, 5]
        assert [e.status for e in events[:-1]] == [EventStatus.PROCESSING] * 4
        assert run.status == PipelineStatus.SUCCEEDED

        final = events[-1]
        assert final.status == EventStatus.COMPLETE
        assert final.result.video_url.startswith("https://storage.test/generated-videos/")
        assert len(final.result.generated_images) == 4
        assert final.result.costs.total == pytest.approx(1.47)
        assert store.deleted == []

    @pytest.mark.asyncio
    async def test_uploads_land_in_expected_buckets(self, make_service, front_asset, back_asset):
        store = FakeStore()
        await _run(make_service(store=store), front_asset, back_asset)

        assert [u["bucket"] for u in store.uploads] == [
            Bucket.SOURCE_IMAGES, Bucket.SOURCE_IMAGES,
            Bucket.ENHANCED_IMAGES, Bucket.ENHANCED_IMAGES,
            Bucket.GENERATED_ANGLES, Bucket.GENERATED_ANGLES,
            Bucket.GENERATED_VIDEOS,
        ]
        assert store.uploads[0]["content_type"] == "image/jpeg"
        assert store.uploads[1]["content_type"] == "image/png"
        assert store.uploads[1]["key"].endswith("-back.png")
        assert store.uploads[-1]["content_type"] == "video/mp4"
        assert store.uploads[-1]["key"].endswith("-video.mp4")

    @pytest.mark.asyncio
    async def test_result_lists_originals_and_angles(self, make_service, front_asset, back_asset):
        store = FakeStore()
        run, _ = await _run(make_service(store=store), front_asset, back_asset)

        urls = [f"https://storage.test/{u['bucket'].value}/{u['key']}" for u in store.uploads]
        assert run.result.generated_images == [urls[0], urls[1], urls[4], urls[5]]
        assert run.result.enhanced_images == [urls[2], urls[3]]
        assert run.result.video_url == urls[6]

    @pytest.mark.asyncio
    async def test_enhanced_views_feed_synthesis(self, make_service, front_asset, back_asset):
        store, angles, video = FakeStore(), FakeAngles(), FakeVideo()
        await _run(make_service(store=store, angles=angles, video=video), front_asset, back_asset)

        urls = [f"https://storage.test/{u['bucket'].value}/{u['key']}" for u in store.uploads]
        front, back = angles.calls[0]
        assert front.data == b"ENHANCED"
        assert back.data == b"ENHANCED"
        assert (front.url, back.url) == (urls[2], urls[3])

        views = video.calls[0]
        assert views.left.data.endswith(b"left")
        assert views.right.data.endswith(b"right")
        assert [v.url for v in views.turntable()] == [urls[2], urls[4], urls[3], urls[5]]

    @pytest.mark.asyncio
    async def test_success_event_wire_format(self, make_service, front_asset, back_asset):
        _, events = await _run(make_service(), front_asset, back_asset)
        payload = events[-1].to_json()

        assert '"videoUrl"' in payload
        assert '"generatedImages"' in payload
        assert '"sideAngles":0.12' in payload
        assert '"videoCreation":1.27' in payload
        assert '"error"' not in payload


class TestValidation:

    @pytest.mark.asyncio
    async def test_missing_back_image(self, make_service, front_asset):
        store = FakeStore()
        run, events = await _run(make_service(store=store), front_asset, None)

        assert len(events) == 1
        assert events[0].status == EventStatus.ERROR
        assert "Both frontImage and backImage are required" in events[0].message
        assert events[0].result is None
        assert store.uploads == []
        assert store.deleted == []
        assert run.status == PipelineStatus.FAILED

    @pytest.mark.asyncio
    async def test_empty_image_rejected(self, make_service, front_asset, back_asset):
        store = FakeStore()
        empty = back_asset.model_copy(update={"data": b""})
        _, events = await _run(make_service(store=store), front_asset, empty)

        assert [e.status for e in events] == [EventStatus.ERROR]
        assert store.uploads == []


class TestEnhancementFailsOpen:

    @pytest.mark.asyncio
    async def test_provider_error_uses_original(self, make_service, front_asset, back_asset):
        store, angles = FakeStore(), FakeAngles()
        service = make_service(
            store=store, enhancer=FakeEnhancer(error=TimeoutError("deadline")), angles=angles
        )
        run, events = await _run(service, front_asset, back_asset)

        assert run.status == PipelineStatus.SUCCEEDED
        assert events[-1].progress == 100
        assert store.uploads[2]["data"] == front_asset.data
        assert store.uploads[3]["data"] == back_asset.data
        assert angles.calls[0][0].data == front_asset.data
        assert metrics.get_snapshot()["counters"]["enhancement.fallback"] == 2

    @pytest.mark.asyncio
    async def test_no_image_in_response_uses_original(self, make_service, front_asset, back_asset):
        store = FakeStore()
        run, _ = await _run(
            make_service(store=store, enhancer=FakeEnhancer(output=None)), front_asset, back_asset
        )

        assert run.status == PipelineStatus.SUCCEEDED
        assert store.uploads[3]["content_type"] == "image/png"


class TestRollback:

    @pytest.mark.asyncio
    async def test_angle_failure_deletes_prior_uploads(self, make_service, front_asset, back_asset):
        store = FakeStore()
        service = make_service(store=store, angles=FakeAngles(error=RuntimeError("seedream down")))
        run, events = await _run(service, front_asset, back_asset)

        assert [e.progress for e in events] == [10, 25, 50, 50]
        terminal = events[-1]
        assert terminal.status == EventStatus.ERROR
        assert terminal.error is True
        assert terminal.result is None
        assert "seedream down" in terminal.message

        assert [ref.bucket for ref in store.deleted] == [
            Bucket.SOURCE_IMAGES, Bucket.SOURCE_IMAGES,
            Bucket.ENHANCED_IMAGES, Bucket.ENHANCED_IMAGES,
        ]
        assert len({ref.key for ref in store.deleted}) == 4
        assert store.deleted == run.uploaded

    @pytest.mark.asyncio
    async def test_failure_records_phase_in_metrics(self, make_service, front_asset, back_asset):
        service = make_service(angles=FakeAngles(error=RuntimeError("seedream down")))
        await _run(service, front_asset, back_asset, run_id="run-angles")

        [entry] = metrics.get_snapshot()["recent_errors"]
        assert entry["run_id"] == "run-angles"
        assert entry["phase"] == "SYNTHESIZING_ANGLES"
        assert entry["error_type"] == "SynthesisFailure"
        assert metrics.get_snapshot()["failures_by_phase"] == {"SYNTHESIZING_ANGLES": 1}

    @pytest.mark.asyncio
    async def test_video_failure_deletes_angles_too(self, make_service, front_asset, back_asset):
        store = FakeStore()
        service = make_service(store=store, video=FakeVideo(error=RuntimeError("kling 500")))
        _, events = await _run(service, front_asset, back_asset)

        assert events[-1].status == EventStatus.ERROR
        assert events[-1].step == 4
        assert len(store.deleted) == 6
        assert store.deleted[-1].bucket == Bucket.GENERATED_ANGLES

    @pytest.mark.asyncio
    async def test_second_original_upload_rejected(self, make_service, front_asset, back_asset):
        store = FakeStore(fail_on_upload=2)
        _, events = await _run(make_service(store=store), front_asset, back_asset)

        assert [e.progress for e in events] == [10, 10]
        assert events[-1].status == EventStatus.ERROR
        assert "source-images" in events[-1].message
        assert len(store.deleted) == 1
        assert store.deleted[0].key == store.uploads[0]["key"]

    @pytest.mark.asyncio
    async def test_delete_errors_do_not_stop_cleanup(self, make_service, front_asset, back_asset):
        store = FakeStore(failing_deletes={1, 2})
        service = make_service(store=store, video=FakeVideo(error=RuntimeError("boom")))
        _, events = await _run(service, front_asset, back_asset)

        assert len(store.deleted) == 6
        assert sum(1 for e in events if e.status == EventStatus.ERROR) == 1
        counters = metrics.get_snapshot()["counters"]
        assert counters["rollback.failed"] == 2
        assert counters["rollback.deleted"] == 4


class TestChannelDiscipline:

    @pytest.mark.asyncio
    async def test_exactly_one_terminal_event(self, make_service, front_asset, back_asset):
        for service in (
            make_service(),
            make_service(angles=FakeAngles(error=RuntimeError("x"))),
        ):
            _, events = await _run(service, front_asset, back_asset)
            terminals = [e for e in events if e.is_terminal]
            assert len(terminals) == 1
            assert events[-1] is terminals[0]

    @pytest.mark.asyncio
    async def test_channel_closed_after_run(self, make_service, front_asset, back_asset):
        channel = ProgressChannel("closed-run")
        await make_service().run(front_asset, back_asset, channel)

        assert channel.closed
        with pytest.raises(ChannelClosedError):
            channel.emit(ProgressEvent(message="late", status=EventStatus.PROCESSING))

    @pytest.mark.asyncio
    async def test_start_runs_in_background(self, make_service, front_asset, back_asset):
        channel = make_service().start(front_asset, back_asset, run_id="bg")
        events = await asyncio.wait_for(drain(channel), timeout=5)

        assert channel.run_id == "bg"
        assert events[-1].progress == 100


class TestConcurrentRuns:

    @pytest.mark.asyncio
    async def test_runs_do_not_share_references(self, make_service, front_asset, back_asset):
        store = FakeStore()
        service = make_service(store=store)

        (run_a, events_a), (run_b, events_b) = await asyncio.gather(
            _run(service, front_asset, back_asset, run_id="a"),
            _run(service, front_asset, back_asset, run_id="b"),
        )

        assert len(run_a.uploaded) == 7
        assert len(run_b.uploaded) == 7
        assert not {r.key for r in run_a.uploaded} & {r.key for r in run_b.uploaded}
        assert events_a[-1].progress == events_b[-1].progress == 100

    @pytest.mark.asyncio
    async def test_failed_run_only_rolls_back_its_own(self, make_service, front_asset, back_asset):
        store = FakeStore()
        ok = make_service(store=store)
        failing = make_service(store=store, video=FakeVideo(error=RuntimeError("nope")))

        (good, _), (bad, _) = await asyncio.gather(
            _run(ok, front_asset, back_asset, run_id="ok"),
            _run(failing, front_asset, back_asset, run_id="bad"),
        )

        assert good.status == PipelineStatus.SUCCEEDED
        assert {r.key for r in store.deleted} == {r.key for r in bad.uploaded}
