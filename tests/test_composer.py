import pytest

from app_state import ComposerPhase
from color_extract import AverageColorExtractor
from composer import EffectComposer
from config import FALLBACK_TINT
from errors import (
    AssetDecodeError, GraphBuildError, TextureLoadError, UnknownVariantError,
)
from tasks import InlineExecutor

from conftest import oversized_png, write_asset_set


class Sink:
    """Records every submitted frame."""

    def __init__(self):
        self.frames = []

    def __call__(self, graph, uniforms):
        self.frames.append((graph, uniforms.snapshot()))


@pytest.fixture
def sink():
    return Sink()


def make_composer(sink, assets, executor, clock, pointer=(0.0, 0.0)):
    return EffectComposer(submit_frame=sink, pointer_source=lambda: pointer,
                          assets=assets, executor=executor, clock=clock)


def test_inline_pipeline_reaches_running(sink, assets, clock):
    composer = make_composer(sink, assets, InlineExecutor(), clock,
                             pointer=(0.5, -0.25))
    assert composer.phase is ComposerPhase.UNINITIALIZED

    composer.select("lines", "pictures_1")
    assert composer.phase is ComposerPhase.TEXTURES_LOADING

    assert composer.frame(now=0.0)
    assert composer.phase is ComposerPhase.RUNNING
    graph, (pointer, progress, tint) = sink.frames[-1]
    assert graph is composer.graph
    assert graph.textures is composer.texture_pair
    assert pointer == (0.5, -0.25)
    assert progress == 0.0
    # image tint already published: (200, 100, 40) · 1.25 / 255
    assert tint == pytest.approx((200 * 1.25 / 255, 100 * 1.25 / 255,
                                  40 * 1.25 / 255), abs=1e-3)
    assert not composer.tint_slot.is_fallback
    assert composer.error is None


def test_phases_follow_background_work(sink, assets, clock, manual_executor):
    composer = make_composer(sink, assets, manual_executor, clock)
    composer.select("lines")

    # textures still loading: nothing to draw
    assert not composer.frame(now=0.0)
    assert composer.phase is ComposerPhase.TEXTURES_LOADING
    assert sink.frames == []

    manual_executor.run()             # texture load
    assert composer.frame(now=0.0)
    early = composer.graph
    assert early.tint == FALLBACK_TINT
    assert composer.tint_slot.is_fallback
    assert composer.driver.running

    manual_executor.run()             # colour extraction
    assert composer.frame(now=1.0)
    assert composer.graph is not early
    assert composer.graph.tint != FALLBACK_TINT
    assert composer.graph.signature == early.signature
    assert composer.phase is ComposerPhase.RUNNING
    assert composer.uniforms.progress > 0.0


def test_progress_follows_the_curve(sink, assets, clock):
    composer = make_composer(sink, assets, InlineExecutor(), clock)
    composer.select("crosses")
    composer.frame(now=100.0)
    composer.frame(now=104.5)
    assert sink.frames[-1][1][1] == pytest.approx(0.9)
    composer.frame(now=109.0)
    assert sink.frames[-1][1][1] == pytest.approx(0.0)


def test_variant_switch_resets_and_drops_old_pair(sink, assets, clock,
                                                  manual_executor):
    composer = make_composer(sink, assets, manual_executor, clock)
    composer.select("lines")
    manual_executor.run_all()
    composer.frame(now=0.0)
    composer.frame(now=2.0)
    old_pair = composer.texture_pair
    assert composer.uniforms.progress > 0.0

    composer.select("crosses")
    assert composer.uniforms.progress == 0.0
    assert composer.graph is None
    assert composer.texture_pair is None
    assert composer.uniforms.tint == FALLBACK_TINT
    assert composer.phase is ComposerPhase.TEXTURES_LOADING

    submitted = len(sink.frames)
    assert not composer.frame(now=2.5)
    assert len(sink.frames) == submitted

    manual_executor.run_all()
    composer.frame(now=3.0)
    composer.frame(now=3.5)
    for graph, _ in sink.frames[submitted:]:
        assert graph.textures is not old_pair
        assert graph.variant_id == "crosses"


def test_stale_load_is_never_applied(sink, assets, clock, manual_executor):
    composer = make_composer(sink, assets, manual_executor, clock)
    composer.select("lines", "pictures_1")
    first = manual_executor.jobs[0][0]
    composer.select("lines", "pictures_2")
    assert first.cancelled()

    manual_executor.run_all()
    composer.frame(now=0.0)
    assert composer.texture_pair.name == "pictures_2/lines"
    assert composer.asset_set == "pictures_2"


def test_stale_tint_is_never_applied(sink, assets, clock, manual_executor):
    composer = make_composer(sink, assets, manual_executor, clock)
    composer.select("lines", "pictures_1")
    manual_executor.run()             # load, tint request queued
    composer.frame(now=0.0)
    assert len(manual_executor.jobs) == 1
    manual_executor.run()             # lines tint done but not yet polled

    composer.select("crosses", "pictures_1")
    manual_executor.run_all()         # crosses load
    composer.frame(now=0.0)
    assert composer.uniforms.tint == FALLBACK_TINT

    manual_executor.run_all()         # crosses tint
    composer.frame(now=0.1)
    # tint from the crosses picture (40, 120, 220), not the lines one
    r, g, b = composer.uniforms.tint
    assert b > r
    assert composer.graph.tint == composer.uniforms.tint


def test_missing_pictures_surface_texture_load_error(sink, assets, clock):
    composer = make_composer(sink, assets, InlineExecutor(), clock)
    composer.select("lines", "pictures_3")
    with pytest.raises(TextureLoadError):
        composer.frame(now=0.0)
    assert isinstance(composer.error, TextureLoadError)
    assert composer.phase is ComposerPhase.UNINITIALIZED
    assert composer.graph is None
    # surfaced once; later frames simply draw nothing
    assert not composer.frame(now=0.1)

    composer.select("lines", "pictures_1")
    assert composer.error is None
    assert composer.frame(now=0.2)


def test_mismatched_pictures_surface_graph_build_error(sink, tmp_path, clock):
    from textures import AssetLibrary

    write_asset_set(tmp_path, "pictures_1", size=(8, 6), depth_size=(4, 3))
    assets = AssetLibrary(tmp_path, ["pictures_1"])
    composer = make_composer(sink, assets, InlineExecutor(), clock)
    composer.select("lines")
    with pytest.raises(GraphBuildError):
        composer.frame(now=0.0)
    assert composer.phase is ComposerPhase.UNINITIALIZED
    assert not composer.driver.running
    assert sink.frames == []


def test_unknown_variant_is_rejected_synchronously(sink, assets, clock):
    composer = make_composer(sink, assets, InlineExecutor(), clock)
    with pytest.raises(UnknownVariantError):
        composer.select("effect2")
    with pytest.raises(KeyError):
        composer.select("lines", "pictures_9")
    assert composer.phase is ComposerPhase.UNINITIALIZED


def test_teardown(sink, assets, clock, manual_executor):
    composer = make_composer(sink, assets, manual_executor, clock)
    composer.select("lines")
    manual_executor.run_all()
    composer.frame(now=0.0)
    composer.teardown()
    assert composer.phase is ComposerPhase.UNINITIALIZED
    assert composer.graph is None
    assert composer.variant is None
    assert not composer.driver.running
    assert not composer.frame(now=1.0)


def test_oversized_picture_surfaces_texture_load_error(sink, tmp_path, clock):
    from textures import AssetLibrary

    folder = write_asset_set(tmp_path, "pictures_1")
    (folder / "raw-1.png").write_bytes(oversized_png())
    assets = AssetLibrary(tmp_path, ["pictures_1"])
    composer = make_composer(sink, assets, InlineExecutor(), clock)
    composer.select("lines")
    with pytest.raises(TextureLoadError):
        composer.frame(now=0.0)
    assert isinstance(composer.error, TextureLoadError)
    assert composer.phase is ComposerPhase.UNINITIALIZED
    assert sink.frames == []


def test_unknown_variant_message_is_unquoted(sink, assets, clock):
    composer = make_composer(sink, assets, InlineExecutor(), clock)
    with pytest.raises(UnknownVariantError) as excinfo:
        composer.select("effect2")
    assert str(excinfo.value).startswith("Unknown effect 'effect2'")


class FailingExtractor(AverageColorExtractor):
    def extract(self, source):
        raise AssetDecodeError("unreadable")


def test_failed_tint_runs_with_fallback(sink, assets, clock):
    phases = []
    composer = EffectComposer(
        submit_frame=lambda g, u: phases.append(composer.phase),
        pointer_source=lambda: (0.0, 0.0), assets=assets,
        executor=InlineExecutor(), clock=clock,
        extractor=FailingExtractor(InlineExecutor()))
    composer.select("lines")
    assert composer.frame(now=0.0)
    assert phases == [ComposerPhase.COLOR_EXTRACTING]
    assert composer.phase is ComposerPhase.RUNNING
    assert composer.tint_slot.is_fallback
    assert composer.uniforms.tint == FALLBACK_TINT
    assert composer.error is None
