"""Tests for folding frame descriptions back onto their files."""

from batch_planner import ItemState, MediaItem, plan_batches
from reconciler import reconcile
from result_mapper import ResultMapper, build_analysis_result


def _plan(items, size=40):
    return plan_batches(items, max_batch_size=size, max_token_budget=15000, avg_tokens_per_frame=200)


class TestBuildAnalysisResult:
    def test_cleans_suggestion_and_derives_tags(self):
        result = build_analysis_result("/m/IMG_1.jpg", "Sure, here's a filename: Sunny_Beach_sunny.jpg")

        assert result.suggested_name == "sunny_beach_sunny"
        assert result.tags == ("sunny", "beach")
        assert result.original_path == "/m/IMG_1.jpg"
        assert result.degraded is False

    def test_empty_suggestion_becomes_unnamed(self):
        assert build_analysis_result("/m/x.jpg", "the a an").suggested_name == "unnamed"


class TestResultMapper:
    def test_first_frame_description_wins(self):
        image = MediaItem("/m/a.jpg", ["/m/a.jpg"], "image")
        video = MediaItem("/m/b.mp4", ["/t/f1.jpg", "/t/f2.jpg", "/t/f3.jpg"], "video")
        batch = _plan([image, video])[0]

        resolutions = ResultMapper().map(batch, reconcile("DESC1: red car\nDESC2: dog\nDESC3: cat\nDESC4: cow", 4),
                                         set())

        assert [r.item for r in resolutions] == [image, video]
        assert resolutions[1].analysis_result.suggested_name == "dog"
        assert video.state is ItemState.ANALYZED

    def test_completed_items_skipped(self):
        video = MediaItem("/m/b.mp4", ["/t/f1.jpg", "/t/f2.jpg", "/t/f3.jpg"], "video")
        image = MediaItem("/m/c.jpg", ["/m/c.jpg"], "image")
        first, second = _plan([video, image], size=2)

        resolutions = ResultMapper().map(second, reconcile("DESC1: late frame\nDESC2: lake", 2), {"/m/b.mp4"})

        assert len(first) == 2
        assert [r.item.original_path for r in resolutions] == ["/m/c.jpg"]

    def test_degraded_flag_carried(self):
        image = MediaItem("/m/a.jpg", ["/m/a.jpg"], "image")
        batch = _plan([image])[0]

        resolutions = ResultMapper().map(batch, reconcile("", 1), set())

        assert resolutions[0].analysis_result.degraded is True
        assert resolutions[0].analysis_result.suggested_name == "image_content"

    def test_failed_items_are_distinct_and_open(self):
        video = MediaItem("/m/b.mp4", ["/t/f1.jpg", "/t/f2.jpg"], "video")
        image = MediaItem("/m/a.jpg", ["/m/a.jpg"], "image")
        batch = _plan([video, image])[0]

        assert ResultMapper().failed_items(batch, set()) == [video, image]
        assert ResultMapper().failed_items(batch, {"/m/b.mp4"}) == [image]

    def test_consume_counts_frames_per_item(self):
        video = MediaItem("/m/b.mp4", ["/t/f1.jpg", "/t/f2.jpg", "/t/f3.jpg"], "video")
        first, second = _plan([video], size=2)
        mapper = ResultMapper()

        mapper.consume(first)
        assert video.frames_consumed == 2
        assert not video.fully_consumed

        mapper.consume(second)
        assert video.fully_consumed
