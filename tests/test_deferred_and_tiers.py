from __future__ import annotations

import asyncio
import unittest

from ai.tiers import ModelTierController
from ai.tiers import is_quota_error
from misc.deferred import DeferredTask


class _QuotaError(Exception):
    status_code = 429


class _Sleeper:
    """Records requested delays; returns immediately unless held."""

    def __init__(self):
        self.calls: list[float] = []
        self.gate = asyncio.Event()
        self.gate.set()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        await self.gate.wait()


async def _drain(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class DeferredTaskTests(unittest.IsolatedAsyncioTestCase):
    async def test_schedule_is_single_slot_until_fired(self):
        sleeper = _Sleeper()
        sleeper.gate.clear()
        runs = []

        async def callback():
            runs.append(1)

        task = DeferredTask(5, callback, name="Test", sleep=sleeper)
        self.assertTrue(task.schedule())
        self.assertFalse(task.schedule())
        self.assertTrue(task.pending)

        sleeper.gate.set()
        await _drain()
        self.assertEqual(runs, [1])
        self.assertFalse(task.pending)
        self.assertEqual(sleeper.calls, [5.0])
        self.assertTrue(task.schedule())
        await _drain()
        self.assertEqual(runs, [1, 1])

    async def test_cancel_prevents_run(self):
        sleeper = _Sleeper()
        sleeper.gate.clear()
        runs = []

        async def callback():
            runs.append(1)

        task = DeferredTask(1, callback, sleep=sleeper)
        task.schedule()
        await _drain(2)
        self.assertTrue(task.cancel())
        self.assertFalse(task.cancel())
        sleeper.gate.set()
        await _drain()
        self.assertEqual(runs, [])

    async def test_callback_may_rearm_itself(self):
        runs = []
        holder = {}

        async def callback():
            runs.append(1)
            if len(runs) < 3:
                holder["task"].schedule()

        holder["task"] = DeferredTask(0, callback, sleep=_Sleeper())
        holder["task"].schedule()
        await _drain(20)
        self.assertEqual(len(runs), 3)

    async def test_callback_failure_is_logged_not_raised(self):
        async def callback():
            raise RuntimeError("boom")

        task = DeferredTask(0, callback, sleep=_Sleeper())
        task.schedule()
        await _drain()
        self.assertEqual(task.fired_count, 1)
        self.assertFalse(task.pending)


class QuotaClassificationTests(unittest.TestCase):
    def test_status_and_text_markers(self):
        self.assertTrue(is_quota_error(_QuotaError("whatever")))
        self.assertTrue(is_quota_error(RuntimeError("You exceeded your current quota")))
        self.assertTrue(is_quota_error(RuntimeError("Rate limit reached for requests")))
        self.assertTrue(is_quota_error(RuntimeError("Error code: rate_limit_exceeded")))
        self.assertFalse(is_quota_error(RuntimeError("invalid api key")))
        self.assertFalse(is_quota_error(RuntimeError("could not generate a moderate answer")))
        self.assertFalse(is_quota_error(RuntimeError("separate the prompt from the system message")))


class ModelTierControllerTests(unittest.IsolatedAsyncioTestCase):
    def _controller(self, behaviour, sleeper=None):
        calls = []

        async def call_model(model, payload):
            calls.append((model, payload))
            result = behaviour(model, payload)
            if isinstance(result, BaseException):
                raise result
            return result

        sleeper = sleeper or _Sleeper()
        # hold restore probes until a test releases them
        sleeper.gate.clear()
        controller = ModelTierController(
            call_model=call_model,
            models=("m0", "m1", "m2"),
            restore_after_seconds=3600,
            sleep=sleeper,
        )
        return controller, calls, sleeper

    async def test_requires_three_models(self):
        with self.assertRaises(ValueError):
            ModelTierController(call_model=None, models=("a", "b"), restore_after_seconds=1)

    async def test_demotes_one_tier_per_call_and_retries_once(self):
        exhausted = {"m0", "m1"}

        def behaviour(model, payload):
            return _QuotaError("quota") if model in exhausted else f"{model}:{payload}"

        controller, calls, _sleeper = self._controller(behaviour)

        # first call: m0 fails, retried once on m1 which also fails
        with self.assertRaises(_QuotaError):
            await controller.generate("hi")
        self.assertEqual(controller.tier, 1)
        self.assertEqual([c[0] for c in calls], ["m0", "m1"])

        answer = await controller.generate("again")
        self.assertEqual(answer, "m2:again")
        self.assertEqual(controller.tier, 2)
        self.assertTrue(controller.restore_pending)

        controller.shutdown()

    async def test_overlapping_quota_failures_demote_once(self):
        release = asyncio.Event()
        calls = []

        async def call_model(model, payload):
            calls.append(model)
            if model == "m0":
                await release.wait()
                raise _QuotaError("quota")
            return f"{model}:{payload}"

        sleeper = _Sleeper()
        sleeper.gate.clear()
        controller = ModelTierController(
            call_model=call_model,
            models=("m0", "m1", "m2"),
            restore_after_seconds=3600,
            sleep=sleeper,
        )
        first = asyncio.create_task(controller.generate("a"))
        second = asyncio.create_task(controller.generate("b"))
        await _drain(2)
        self.assertEqual(calls, ["m0", "m0"])

        release.set()
        self.assertEqual(await asyncio.gather(first, second), ["m1:a", "m1:b"])
        self.assertEqual(controller.tier, 1)
        self.assertEqual(calls, ["m0", "m0", "m1", "m1"])
        controller.shutdown()

    async def test_terminal_tier_failure_propagates(self):
        controller, calls, _sleeper = self._controller(lambda m, p: _QuotaError("429"))
        controller.tier = 2
        with self.assertRaises(_QuotaError):
            await controller.generate("x")
        self.assertEqual(controller.tier, 2)
        self.assertEqual(len(calls), 1)

    async def test_non_quota_failure_does_not_demote(self):
        controller, calls, _sleeper = self._controller(lambda m, p: RuntimeError("bad request"))
        with self.assertRaises(RuntimeError):
            await controller.generate("x")
        self.assertEqual(controller.tier, 0)
        self.assertFalse(controller.restore_pending)
        self.assertEqual(len(calls), 1)

    async def test_only_one_restore_timer(self):
        state = {"down": {"m0", "m1"}}

        def behaviour(model, payload):
            return _QuotaError("quota") if model in state["down"] else "ok"

        sleeper = _Sleeper()
        controller, _calls, _ = self._controller(behaviour, sleeper)
        with self.assertRaises(_QuotaError):
            await controller.generate("a")
        await controller.generate("b")
        await _drain()
        self.assertEqual(sleeper.calls, [3600.0])
        controller.shutdown()

    async def test_probe_failure_rearms_and_success_restores(self):
        state = {"down": {"m0"}}

        def behaviour(model, payload):
            return _QuotaError("quota") if model in state["down"] else "ok"

        sleeper = _Sleeper()
        controller, calls, _ = self._controller(behaviour, sleeper)
        self.assertEqual(await controller.generate("a"), "ok")
        self.assertEqual(controller.tier, 1)

        # first probe: primary still down
        sleeper.gate.set()
        await _drain(3)
        sleeper.gate.clear()
        await _drain()
        self.assertEqual(controller.tier, 1)
        self.assertTrue(controller.restore_pending)

        state["down"] = set()
        sleeper.gate.set()
        await _drain()
        self.assertEqual(controller.tier, 0)
        self.assertEqual(controller.current_model, "m0")
        self.assertFalse(controller.restore_pending)
        self.assertGreaterEqual(sum(1 for model, _p in calls if model == "m0"), 3)

    async def test_probe_at_tier_zero_is_noop(self):
        controller, calls, _ = self._controller(lambda m, p: "ok")
        self.assertTrue(await controller.probe_restore())
        self.assertEqual(calls, [])


if __name__ == "__main__":
    unittest.main()
