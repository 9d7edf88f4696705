import asyncio
import sys
import unittest
from pathlib import Path

FORM_SERVICE_ROOT = Path(__file__).resolve().parents[1]
if str(FORM_SERVICE_ROOT) not in sys.path:
    sys.path.insert(0, str(FORM_SERVICE_ROOT))

from form_engine.catalog import build_lead_schema  # noqa: E402
from form_engine.models import ScrollThresholds, UnknownSectionError  # noqa: E402
from form_engine.scroll_sync import (  # noqa: E402
    AsyncioScheduler,
    ManualScheduler,
    ScrollSyncNavigator,
    SectionBounds,
)
from form_engine.store import FormStateStore  # noqa: E402

LAYOUT = {
    "companyInfo": SectionBounds(0, 300),
    "customerInfo": SectionBounds(300, 500),
    "productInfo": SectionBounds(800, 400),
    "leadInfo": SectionBounds(1200, 600),
}


class FakeViewport:
    def __init__(self, layout, height=400.0, top=0.0):
        self.layout = dict(layout)
        self.height = height
        self.top = top
        self.scrolled_to = []

    def section_bounds(self, key):
        return self.layout.get(key)

    def scroll_top(self):
        return self.top

    def viewport_height(self):
        return self.height

    def scroll_to(self, offset, smooth=True):
        self.scrolled_to.append((offset, smooth))


class ScrollSyncTests(unittest.TestCase):
    def setUp(self):
        self.store = FormStateStore(build_lead_schema())
        self.viewport = FakeViewport(LAYOUT)
        self.scheduler = ManualScheduler()
        self.navigator = ScrollSyncNavigator(
            self.store, self.viewport, self.scheduler, ScrollThresholds(trigger_ratio=0.2, min_visible_ratio=0.1, debounce_ms=5)
        )

    def test_section_under_trigger_line_wins(self):
        self.viewport.top = 250
        self.assertEqual(self.navigator.recompute(), "customerInfo")
        self.assertEqual(self.store.active_section, "customerInfo")

    def test_update_waits_for_debounce(self):
        self.viewport.top = 250
        self.navigator.on_scroll()
        self.assertEqual(self.navigator.phase, ScrollSyncNavigator.SCROLLING)

        self.assertEqual(self.scheduler.advance(4), 0)
        self.assertEqual(self.store.active_section, "companyInfo")

        self.assertEqual(self.scheduler.advance(1), 1)
        self.assertEqual(self.store.active_section, "customerInfo")
        self.assertEqual(self.navigator.phase, ScrollSyncNavigator.IDLE)

    def test_scroll_burst_runs_once(self):
        for top in (100, 400, 900):
            self.viewport.top = top
            self.navigator.on_scroll()
            self.scheduler.advance(2)

        self.assertEqual(self.scheduler.advance(5), 1)
        self.assertEqual(self.scheduler.pending(), 0)
        self.assertEqual(self.store.active_section, "productInfo")

    def test_largest_visible_section_used_between_sections(self):
        self.viewport.layout = {
            "companyInfo": SectionBounds(0, 40),
            "customerInfo": SectionBounds(340, 400),
        }
        self.store.set_active_section("leadInfo")
        self.assertEqual(self.navigator.recompute(), "customerInfo")

    def test_slivers_leave_active_section_alone(self):
        self.viewport.layout = {
            "companyInfo": SectionBounds(0, 30),
            "customerInfo": SectionBounds(370, 400),
        }
        self.store.set_active_section("leadInfo")
        version = self.store.version
        self.assertIsNone(self.navigator.locate())
        self.assertEqual(self.navigator.recompute(), "leadInfo")
        self.assertEqual(self.store.version, version)

    def test_unchanged_section_is_not_rewritten(self):
        self.viewport.top = 250
        self.navigator.recompute()
        version = self.store.version
        self.navigator.recompute()
        self.assertEqual(self.store.version, version)

    def test_sections_without_layout_are_skipped(self):
        del self.viewport.layout["customerInfo"]
        self.viewport.top = 700
        self.assertEqual(self.navigator.recompute(), "productInfo")

    def test_scroll_to_section_offsets_by_trigger(self):
        self.navigator.scroll_to_section("productInfo")
        self.assertEqual(self.store.active_section, "productInfo")
        self.assertEqual(self.viewport.scrolled_to, [(720.0, True)])

        self.navigator.scroll_to_section("companyInfo")
        self.assertEqual(self.viewport.scrolled_to[-1], (0.0, True))

    def test_scroll_to_section_cancels_pending_update(self):
        self.viewport.top = 250
        self.navigator.on_scroll()
        self.navigator.scroll_to_section("leadInfo")
        self.assertEqual(self.scheduler.pending(), 0)
        self.scheduler.advance(10)
        self.assertEqual(self.store.active_section, "leadInfo")

    def test_unknown_section_rejected(self):
        with self.assertRaises(UnknownSectionError):
            self.navigator.scroll_to_section("billing")
        self.assertEqual(self.viewport.scrolled_to, [])

    def test_thresholds_default_to_schema(self):
        navigator = ScrollSyncNavigator(self.store, self.viewport, self.scheduler)
        self.assertEqual(navigator.thresholds, self.store.schema.scroll)
        self.assertEqual(navigator.thresholds.trigger_ratio, 0.2)


class AsyncioSchedulerTests(unittest.TestCase):
    def test_debounced_update_on_event_loop(self):
        store = FormStateStore(build_lead_schema())
        viewport = FakeViewport(LAYOUT, top=1300)

        async def scroll_and_wait():
            navigator = ScrollSyncNavigator(store, viewport, AsyncioScheduler(), ScrollThresholds(debounce_ms=5))
            navigator.on_scroll()
            navigator.on_scroll()
            await asyncio.sleep(0.05)
            return navigator.phase

        phase = asyncio.run(scroll_and_wait())

        self.assertEqual(phase, ScrollSyncNavigator.IDLE)
        self.assertEqual(store.active_section, "leadInfo")


if __name__ == "__main__":
    unittest.main()
