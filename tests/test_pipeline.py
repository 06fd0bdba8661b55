"""End-to-end tests for the subtitle pipeline with fake collaborators."""

from caption_translator.config import FilterConfig, Settings, SubtitleOptions
from caption_translator.jobs import JobStatus, JobStore
from caption_translator.models import TextBox, VideoInfo
from caption_translator.pipeline import SubtitlePipeline, has_meaningful_text

from fakes import FakeFonts, FakeOCR, FakeRenderer, FakeTranslator, hello_box


class TestTranslateVideo:
    """Tests for SubtitlePipeline.translate_video."""

    def test_hello_becomes_bonjour(self, pipeline, fake_renderer, tmp_path):
        """A subtitle seen in two consecutive samples becomes one translated event."""
        result = pipeline.translate_video(tmp_path / "clip.mp4", "French", work_dir=tmp_path / "job")

        assert len(result.events) == 1
        event = result.events[0]
        assert event.text == "BONJOUR"
        assert (event.start_time, event.end_time) == (0.0, 2.0)
        assert result.output_path.read_bytes() == b"translated-video"
        assert result.preview_path.exists()
        assert "BONJOUR" in result.subtitles_path.read_text(encoding="utf-8")
        assert fake_renderer.rendered_events == result.events

    def test_stats(self, pipeline, tmp_path):
        result = pipeline.translate_video(tmp_path / "clip.mp4", "French", work_dir=tmp_path / "job")

        stats = result.stats
        assert stats.frames_processed == 2
        assert stats.frames_skipped == 0
        assert stats.texts_detected == 1
        assert stats.translations_applied == 1
        assert stats.events == 1
        assert stats.output_size_bytes == len(b"translated-video")

    def test_progress_reported_in_order(self, pipeline, tmp_path):
        seen = []

        pipeline.translate_video(
            tmp_path / "clip.mp4",
            "French",
            work_dir=tmp_path / "job",
            progress=lambda percent, message: seen.append(percent),
        )

        assert seen == sorted(seen)
        assert seen[0] > 10
        assert seen[-1] < 100

    def test_options_applied(self, pipeline, tmp_path):
        options = SubtitleOptions(base_font_size=30, anchor="top", margin_v=40)

        result = pipeline.translate_video(tmp_path / "clip.mp4", "French", options, work_dir=tmp_path / "job")

        event = result.events[0]
        assert event.font_size == 30
        assert event.position == (640, 40)

    def test_ocr_failure_means_no_text(self, settings, fake_translator, tmp_path):
        """A failing OCR call is treated as an empty frame, not a job failure."""
        pipeline = SubtitlePipeline(
            ocr=FakeOCR(fail=True),
            renderer=FakeRenderer(),
            settings=settings,
            translator_factory=lambda language: fake_translator,
        )

        result = pipeline.translate_video(tmp_path / "clip.mp4", "French", work_dir=tmp_path / "job")

        assert result.events == []
        assert fake_translator.requests == []

    def test_missing_translation_keeps_source(self, settings, tmp_path):
        pipeline = SubtitlePipeline(
            ocr=FakeOCR({1: [hello_box()], 2: [hello_box()]}),
            renderer=FakeRenderer(),
            settings=settings,
            translator_factory=lambda language: FakeTranslator({}),
        )

        result = pipeline.translate_video(tmp_path / "clip.mp4", "French", work_dir=tmp_path / "job")

        assert [e.text for e in result.events] == ["HELLO"]
        assert result.stats.translations_applied == 0

    def test_cjk_spacing_normalized(self, settings, tmp_path):
        pipeline = SubtitlePipeline(
            ocr=FakeOCR({1: [hello_box()], 2: [hello_box()]}),
            renderer=FakeRenderer(),
            settings=settings,
            translator_factory=lambda language: FakeTranslator({"HELLO": "你好 世界"}),
        )

        result = pipeline.translate_video(tmp_path / "clip.mp4", "Chinese", work_dir=tmp_path / "job")

        assert result.events[0].text == "你好世界"

    def test_filter_disabled_keeps_single_frame_text(self, settings, fake_translator, tmp_path):
        pipeline = SubtitlePipeline(
            ocr=FakeOCR({1: [hello_box()]}),
            renderer=FakeRenderer(),
            settings=settings,
            translator_factory=lambda language: fake_translator,
            filter_config=FilterConfig(enabled=False),
        )

        result = pipeline.translate_video(tmp_path / "clip.mp4", "French", work_dir=tmp_path / "job")

        assert [(e.text, e.start_time, e.end_time) for e in result.events] == [("BONJOUR", 0.0, 1.0)]

    def test_throttle_between_ocr_calls(self, tmp_path, fake_ocr, fake_translator):
        settings = Settings(_env_file=None, work_dir=tmp_path, ocr_throttle_seconds=0.5)
        sleeps = []
        pipeline = SubtitlePipeline(
            ocr=fake_ocr,
            renderer=FakeRenderer(frame_count=3),
            settings=settings,
            translator_factory=lambda language: fake_translator,
            sleep=sleeps.append,
        )

        pipeline.translate_video(tmp_path / "clip.mp4", "French", work_dir=tmp_path / "job")

        assert sleeps == [0.5, 0.5]
        assert fake_ocr.calls == 3

    def test_font_fetched_and_passed_to_renderer(self, settings, fake_ocr, fake_translator, tmp_path):
        renderer = FakeRenderer()
        fonts = FakeFonts()
        pipeline = SubtitlePipeline(
            ocr=fake_ocr,
            renderer=renderer,
            settings=settings,
            translator_factory=lambda language: fake_translator,
            fonts=fonts,
        )
        options = SubtitleOptions(font_url="https://example.com/Custom.otf", font_name="Custom Sans")

        pipeline.translate_video(tmp_path / "clip.mp4", "French", options, work_dir=tmp_path / "job")

        assert fonts.fetched == ["https://example.com/Custom.otf"]
        assert renderer.rendered_font.family == "Custom Sans"

    def test_font_failure_falls_back(self, settings, fake_ocr, fake_translator, tmp_path):
        renderer = FakeRenderer()
        pipeline = SubtitlePipeline(
            ocr=fake_ocr,
            renderer=renderer,
            settings=settings,
            translator_factory=lambda language: fake_translator,
            fonts=FakeFonts(fail=True),
        )
        options = SubtitleOptions(font_url="https://example.com/Custom.otf")

        result = pipeline.translate_video(tmp_path / "clip.mp4", "French", options, work_dir=tmp_path / "job")

        assert renderer.rendered_font is None
        assert len(result.events) == 1


class TestSelectFrames:
    def test_intro_and_outro_skipped(self, tmp_path):
        settings = Settings(_env_file=None, skip_intro_seconds=1, skip_outro_seconds=1)
        pipeline = SubtitlePipeline(ocr=FakeOCR(), renderer=FakeRenderer(), settings=settings)
        paths = [tmp_path / f"frame_{n}.png" for n in range(1, 5)]

        kept, skipped = pipeline.select_frames(paths, duration=4.0)

        assert [n for n, _ in kept] == [2, 3]
        assert skipped == 2


class TestRunJob:
    """Tests for SubtitlePipeline.run_job."""

    def test_completes_job(self, pipeline, settings, tmp_path):
        store = JobStore()
        job = store.create("French")
        store.update(job.job_id, video_path=str(tmp_path / "clip.mp4"))

        assert pipeline.run_job(store, job.job_id)

        done = store.get(job.job_id)
        assert done.status == JobStatus.COMPLETED
        assert done.progress == 100
        assert done.stats.events == 1
        assert done.output_path.startswith(str(settings.jobs_dir / job.job_id))
        assert done.preview_path is not None

    def test_translation_failure_fails_job(self, settings, fake_ocr, tmp_path):
        pipeline = SubtitlePipeline(
            ocr=fake_ocr,
            renderer=FakeRenderer(),
            settings=settings,
            translator_factory=lambda language: FakeTranslator(fail=True),
        )
        store = JobStore()
        job = store.create("French")
        store.update(job.job_id, video_path=str(tmp_path / "clip.mp4"))

        assert not pipeline.run_job(store, job.job_id)

        failed = store.get(job.job_id)
        assert failed.status == JobStatus.FAILED
        assert "quota exceeded" in failed.error
        assert failed.progress == 0
        assert not (settings.jobs_dir / job.job_id).exists()

    def test_missing_video_fails_job(self, pipeline):
        store = JobStore()
        job = store.create("French")

        assert not pipeline.run_job(store, job.job_id)
        assert store.get(job.job_id).status == JobStatus.FAILED

    def test_unknown_job(self, pipeline):
        assert not pipeline.run_job(JobStore(), "job_missing")

    def test_job_deleted_mid_run_discards_output(self, settings, fake_ocr, tmp_path):
        store = JobStore()
        job = store.create("French", video_path=str(tmp_path / "clip.mp4"))

        class DeletingTranslator(FakeTranslator):
            def translate(self, phrases, target_language):
                store.delete(job.job_id)
                return super().translate(phrases, target_language)

        pipeline = SubtitlePipeline(
            ocr=fake_ocr,
            renderer=FakeRenderer(),
            settings=settings,
            translator_factory=lambda language: DeletingTranslator({"HELLO": "BONJOUR"}),
        )

        assert not pipeline.run_job(store, job.job_id)
        assert store.get(job.job_id) is None
        assert not (settings.jobs_dir / job.job_id).exists()

    def test_terminal_job_not_restarted(self, pipeline, tmp_path):
        store = JobStore()
        job = store.create("French", video_path=str(tmp_path / "clip.mp4"))
        store.mark_failed(job.job_id, "cancelled")

        assert not pipeline.run_job(store, job.job_id)
        assert store.get(job.job_id).error == "cancelled"


class TestPreview:
    """Tests for SubtitlePipeline.preview."""

    def test_searches_forward_for_text(self, settings, fake_translator, tmp_path):
        renderer = FakeRenderer(info=VideoInfo(1280, 720, 3.0), frame_count=3)
        pipeline = SubtitlePipeline(
            ocr=FakeOCR({2: [hello_box()]}),
            renderer=renderer,
            settings=settings,
            translator_factory=lambda language: fake_translator,
        )

        result = pipeline.preview(tmp_path / "clip.mp4", "French", at_seconds=0.0, work_dir=tmp_path / "p")

        assert result.frame_number == 2
        assert result.source_text == "HELLO"
        assert result.text == "BONJOUR"
        assert result.image_path.exists()
        assert renderer.preview_at == 1.5
        assert [e.text for e in renderer.preview_events] == ["BONJOUR"]

    def test_searches_backward_when_nothing_ahead(self, settings, fake_translator, tmp_path):
        pipeline = SubtitlePipeline(
            ocr=FakeOCR({1: [hello_box()]}),
            renderer=FakeRenderer(info=VideoInfo(1280, 720, 3.0), frame_count=3),
            settings=settings,
            translator_factory=lambda language: fake_translator,
        )

        result = pipeline.preview(tmp_path / "clip.mp4", "French", at_seconds=2.0, work_dir=tmp_path / "p")

        assert result.frame_number == 1

    def test_no_text_renders_plain_frame(self, settings, fake_translator, tmp_path):
        renderer = FakeRenderer()
        pipeline = SubtitlePipeline(
            ocr=FakeOCR({1: [TextBox("...", 0, 500, 50, 30)]}),
            renderer=renderer,
            settings=settings,
            translator_factory=lambda language: fake_translator,
        )

        result = pipeline.preview(tmp_path / "clip.mp4", "French", at_seconds=0.5, work_dir=tmp_path / "p")

        assert result.frame_number is None
        assert renderer.preview_events == []
        assert fake_translator.requests == []


class TestMeaningfulText:
    def test_has_meaningful_text(self):
        assert has_meaningful_text("Hi!")
        assert has_meaningful_text("你好")
        assert not has_meaningful_text("... --")
