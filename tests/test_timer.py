import asyncio
import unittest

from study_portal.core.timer import CountdownTimer


class CountdownTimerTest(unittest.IsolatedAsyncioTestCase):

    async def test_ticks_until_callback_returns_false(self):
        ticks = []

        def on_tick():
            ticks.append(1)
            return len(ticks) < 3

        timer = CountdownTimer(on_tick, interval=0.01)
        timer.start()
        await asyncio.sleep(0.2)

        self.assertEqual(len(ticks), 3)
        self.assertFalse(timer.active)

    async def test_cancel_stops_ticking(self):
        ticks = []
        timer = CountdownTimer(lambda: ticks.append(1) or True, interval=0.01)
        timer.start()
        self.assertTrue(timer.active)

        timer.cancel()
        await asyncio.sleep(0.05)

        self.assertEqual(ticks, [])
        self.assertFalse(timer.active)

    async def test_restart_replaces_previous_run(self):
        timer = CountdownTimer(lambda: True, interval=10)
        timer.start()
        first = timer._task

        timer.start()
        await asyncio.sleep(0.01)

        self.assertTrue(first.cancelled())
        self.assertTrue(timer.active)
        timer.cancel()

    async def test_failing_tick_stops_without_raising(self):
        ticks = []

        def on_tick():
            ticks.append(1)
            raise RuntimeError("tick broke")

        timer = CountdownTimer(on_tick, interval=0.01)
        timer.start()
        task = timer._task
        await asyncio.sleep(0.1)

        self.assertEqual(ticks, [1])
        self.assertTrue(task.done())
        self.assertIsNone(task.exception())
        self.assertFalse(timer.active)

    def test_cancel_before_start_is_harmless(self):
        timer = CountdownTimer(lambda: True)

        timer.cancel()

        self.assertFalse(timer.active)


if __name__ == "__main__":
    unittest.main()
