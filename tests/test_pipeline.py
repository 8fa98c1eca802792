"""
End-to-end tests: drawing snapshot -> recognition -> validation
"""

import random
import threading
import unittest

import numpy as np

import support  # noqa: F401  (adds src to sys.path)
from support import DensityPredictor, FailingPredictor, blank_canvas, paint_block, paint_plus

from nines.constants import PipelineConfig
from nines.drawing import MAX_ZOOM, MIN_ZOOM, Drawing
from nines.exceptions import ModelLoadError
from nines.game import GameState
from nines.models import ModelStore, SymbolClassifier
from nines.pipeline import NinesPipeline
from nines.raster import RasterBuffer
from nines.validation import ValidationResult


def nine_plus_nine_plus_nine():
    """Solid blocks read as '9', crosses as '+'; blocks start lower the further left they are."""
    canvas = blank_canvas(200, 60)
    paint_plus(canvas, 40, 5)
    paint_plus(canvas, 110, 8)
    paint_block(canvas, 5, 20, 14, 30)
    paint_block(canvas, 75, 15, 14, 30)
    paint_block(canvas, 150, 10, 14, 30)
    # dust below the minimum area
    paint_block(canvas, 190, 2, 2, 2)
    return RasterBuffer.from_array(canvas)


class PipelineFixture:
    """Pipeline over a fake predictor with a counting loader."""

    def make_pipeline(self, predictor=None, loader=None):
        self.predictor = predictor or DensityPredictor()
        self.loads = 0

        def default_loader(config):
            self.loads += 1
            return SymbolClassifier(self.predictor)

        store = ModelStore(PipelineConfig(), loader=loader or default_loader)
        return NinesPipeline(store)


class TestNinesPipeline(PipelineFixture, unittest.IsolatedAsyncioTestCase):
    """Test a full recognition pass"""

    async def test_recognise_orders_left_to_right(self):
        pipeline = self.make_pipeline()
        recognition = await pipeline.recognise(nine_plus_nine_plus_nine())
        self.assertEqual(recognition.expression, "9+9+9")
        self.assertEqual(len(recognition.regions), 5)
        anchors = [s.anchor_x for s in recognition.symbols]
        self.assertEqual(anchors, sorted(anchors))
        self.assertEqual(anchors, [5, 40, 75, 110, 150])
        self.assertAlmostEqual(recognition.average_confidence, 0.9, places=5)
        # single batched inference call
        self.assertEqual(self.predictor.batch_sizes, [5])

    async def test_check_correct(self):
        pipeline = self.make_pipeline()
        outcome = await pipeline.check(nine_plus_nine_plus_nine(), 27)
        self.assertEqual(outcome.result, ValidationResult(True, "Correct!", 27))
        self.assertEqual(outcome.expression, "9+9+9")

    async def test_evaluate_wrong_target(self):
        pipeline = self.make_pipeline()
        result = await pipeline.evaluate(nine_plus_nine_plus_nine(), 26)
        self.assertEqual(result, ValidationResult(False, "Result: 27, Target: 26", 27))

    async def test_blank_drawing_fails_nine_count_without_loading(self):
        pipeline = self.make_pipeline()
        result = await pipeline.evaluate(RasterBuffer.from_array(blank_canvas()), 27)
        self.assertEqual(result, ValidationResult(False, "Must use exactly three 9s"))
        self.assertEqual(self.loads, 0)

    async def test_model_is_loaded_once_across_passes(self):
        pipeline = self.make_pipeline()
        for _ in range(3):
            await pipeline.evaluate(nine_plus_nine_plus_nine(), 27)
        self.assertEqual(self.loads, 1)
        self.assertEqual(pipeline.store.references, 0)

    async def test_inference_failure_is_recovered(self):
        pipeline = self.make_pipeline(predictor=FailingPredictor())
        with self.assertLogs("nines.pipeline", level="ERROR"):
            outcome = await pipeline.check(nine_plus_nine_plus_nine(), 27)
        self.assertEqual(outcome.result, ValidationResult(False, "Recognition failed"))
        self.assertIsNone(outcome.recognition)
        self.assertEqual(pipeline.store.references, 0)

    async def test_model_load_failure_is_surfaced(self):
        def broken(config):
            raise ModelLoadError("no model")

        pipeline = self.make_pipeline(loader=broken)
        with self.assertLogs("nines.pipeline", level="ERROR"):
            with self.assertRaises(ModelLoadError):
                await pipeline.check(nine_plus_nine_plus_nine(), 27)

    async def test_config_min_area_applies(self):
        store = ModelStore(PipelineConfig(min_area=1), loader=lambda c: SymbolClassifier(DensityPredictor()))
        recognition = await NinesPipeline(store).recognise(nine_plus_nine_plus_nine())
        self.assertEqual(len(recognition.regions), 6)


class TestBlockingCheck(PipelineFixture, unittest.TestCase):
    """Test the entry point used from worker threads"""

    def test_run_check(self):
        pipeline = self.make_pipeline()
        outcome = pipeline.run_check(nine_plus_nine_plus_nine(), 27)
        self.assertTrue(outcome.result.valid)
        self.assertEqual(outcome.expression, "9+9+9")

    def test_run_check_from_thread(self):
        pipeline = self.make_pipeline()
        outcomes = []
        worker = threading.Thread(
            target=lambda: outcomes.append(pipeline.run_check(nine_plus_nine_plus_nine(), 26))
        )
        worker.start()
        worker.join()
        self.assertEqual(outcomes[0].result.message, "Result: 27, Target: 26")


class TestDrawing(PipelineFixture, unittest.TestCase):
    """Test the stroke model and snapshot rendering"""

    def draw(self, drawing, points):
        drawing.begin_stroke(*points[0])
        for point in points[1:]:
            drawing.extend_stroke(*point)
        drawing.end_stroke()

    def test_blank_render(self):
        buffer = Drawing().render(40, 30)
        self.assertEqual((buffer.width, buffer.height, buffer.channels), (40, 30, 4))
        self.assertTrue(np.all(buffer.pixels == 255))

    def test_strokes_become_separate_regions(self):
        drawing = Drawing()
        self.draw(drawing, [(10, 10), (10, 40)])
        self.draw(drawing, [(40, 10), (40, 40)])
        self.draw(drawing, [(70, 25), (90, 25)])
        pipeline = self.make_pipeline()
        mask, glyphs = pipeline.prepare(drawing.render(120, 60))
        self.assertEqual(len(glyphs), 3)
        self.assertEqual(mask.width, 120)

    def test_single_point_stroke_is_not_painted(self):
        drawing = Drawing()
        drawing.begin_stroke(10, 10)
        drawing.end_stroke()
        self.assertEqual(len(drawing.strokes), 1)
        self.assertTrue(np.all(drawing.render(20, 20).pixels == 255))

    def test_extend_without_begin(self):
        self.assertIsNone(Drawing().extend_stroke(5, 5))

    def test_pan_moves_snapshot(self):
        drawing = Drawing()
        self.draw(drawing, [(10, 10), (10, 30)])
        drawing.pan_by(50, 0)
        mask, glyphs = self.make_pipeline().prepare(drawing.render(100, 50))
        self.assertEqual(len(glyphs), 1)
        self.assertGreaterEqual(glyphs[0].region.min_x, 55)

    def test_zoom_keeps_cursor_point_fixed(self):
        drawing = Drawing()
        before = drawing.screen_to_world(30, 20)
        drawing.zoom_at(30, 20, 1)
        self.assertAlmostEqual(drawing.zoom, 1.05)
        after = drawing.screen_to_world(30, 20)
        self.assertAlmostEqual(before[0], after[0])
        self.assertAlmostEqual(before[1], after[1])

    def test_zoom_is_clamped(self):
        drawing = Drawing()
        for _ in range(100):
            drawing.zoom_at(0, 0, 1)
        self.assertEqual(drawing.zoom, MAX_ZOOM)
        for _ in range(100):
            drawing.zoom_at(0, 0, -1)
        self.assertEqual(drawing.zoom, MIN_ZOOM)

    def test_strokes_stored_in_world_coordinates(self):
        drawing = Drawing()
        drawing.zoom = 2.0
        drawing.pan = (10.0, 0.0)
        self.draw(drawing, [(30, 20), (50, 20)])
        self.assertEqual(drawing.strokes[0], [(10.0, 10.0), (20.0, 10.0)])

    def test_clear(self):
        drawing = Drawing()
        self.draw(drawing, [(1, 1), (5, 5)])
        drawing.clear()
        self.assertEqual(drawing.strokes, [])


class TestGameState(unittest.TestCase):
    """Test targets and attempt bookkeeping"""

    def test_targets_in_range(self):
        game = GameState(rng=random.Random(3))
        for _ in range(200):
            self.assertTrue(0 <= game.new_target() <= 99)

    def test_seeded_targets_are_reproducible(self):
        first = GameState(rng=random.Random(11))
        second = GameState(rng=random.Random(11))
        self.assertEqual(first.target, second.target)
        self.assertEqual(first.new_target(), second.new_target())

    def test_record_tracks_achieved_targets(self):
        game = GameState(rng=random.Random(0), target=27)
        game.record("9+9", ValidationResult(False, "Must use exactly three 9s"))
        game.record("9+9+9", ValidationResult(True, "Correct!", 27))
        self.assertEqual(len(game.attempts), 2)
        self.assertEqual(game.achieved, {27})
        self.assertNotIn(27, game.remaining)
        self.assertEqual(len(game.remaining), 99)

    def test_record_for_earlier_target(self):
        game = GameState(rng=random.Random(0), target=5)
        attempt = game.record("9-9+9", ValidationResult(True, "Correct!", 9), target=9)
        self.assertEqual(attempt.target, 9)
        self.assertEqual(game.achieved, {9})


if __name__ == "__main__":
    unittest.main()
