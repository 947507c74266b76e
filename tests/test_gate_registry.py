"""
Unit tests for GateRegistry: one gate per (session, movie), explicit teardown, idle eviction.
Run: python tests/test_gate_registry.py
"""

from pathlib import Path

from fakes import temp_kv

from syndl.default_catalog import default_movies
from syndl.gate_registry import GateRegistry
from syndl.playback_gate import GateState
from syndl.scheduler import SteppedScheduler
from syndl.settings import Settings
from syndl.unlock_grants import UnlockGrantStore


def assert_equal(actual, expected, msg):
	if actual != expected:
		raise AssertionError(f"{msg} | expected={expected}, actual={actual}")


def assert_true(cond, msg):
	if not cond:
		raise AssertionError(msg)


class Ticker:
	"""Monotonic seconds that only move when told to."""

	def __init__(self):
		self.current = 1000.0

	def __call__(self):
		return self.current


def make_registry(idle_minutes=30.0):
	clock = Ticker()
	scheduler = SteppedScheduler()
	settings = Settings(data_dir=Path('.'), gate_idle_minutes=idle_minutes)
	registry = GateRegistry(UnlockGrantStore(temp_kv()), scheduler, settings, now=clock)
	return registry, scheduler, clock


def test_one_gate_per_session_and_movie():
	registry, _, _ = make_registry()
	avatar, captain = default_movies()
	first = registry.open('s1', avatar)
	assert_true(registry.open('s1', avatar) is first, "revisit returns the live gate")
	assert_true(registry.open('s2', avatar) is not first, "other sessions get their own gate")
	registry.open('s1', captain)
	assert_equal(len(registry), 3, "three gates")
	assert_equal(registry.leave('s1', avatar.id), True, "left")
	assert_equal(registry.get('s1', avatar.id), None, "forgotten")
	assert_equal(registry.leave('s1', avatar.id), False, "nothing left to remove")


def test_idle_gates_are_evicted_and_their_polls_stopped():
	registry, scheduler, clock = make_registry(idle_minutes=10.0)
	avatar, captain = default_movies()
	idle = registry.open('anon-1', avatar)
	idle.start()
	idle.on_position(60.0)
	idle.request_unlock()
	assert_equal(scheduler.active_timers, 1, "poll running")

	clock.current += 9 * 60
	registry.get('anon-1', avatar.id)  # touching keeps it alive
	clock.current += 9 * 60
	registry.open('anon-2', captain)
	assert_equal(len(registry), 2, "recently touched gate survives")

	clock.current += 11 * 60
	assert_equal(registry.sweep(), 2, "both gates idle past the timeout")
	assert_equal(len(registry), 0, "registry emptied")
	assert_equal(scheduler.active_timers, 0, "evicted gate's poll cancelled")
	assert_equal(idle.state, GateState.AWAITING_VERIFICATION, "evicted gate is closed, not transitioned")


def test_anonymous_visits_do_not_accumulate():
	registry, _, clock = make_registry(idle_minutes=1.0)
	avatar = default_movies()[0]
	for i in range(50):
		registry.open(f'anon-{i}', avatar)
		clock.current += 61
	assert_equal(len(registry), 1, "each open sweeps the gates that went idle")


def test_close_all():
	registry, scheduler, _ = make_registry()
	gate = registry.open('s1', default_movies()[0])
	gate.start()
	gate.on_position(60.0)
	gate.request_unlock()
	registry.close_all()
	assert_equal((len(registry), scheduler.active_timers), (0, 0), "everything torn down")


def main():
	print("Running GateRegistry tests...")
	test_one_gate_per_session_and_movie()
	test_idle_gates_are_evicted_and_their_polls_stopped()
	test_anonymous_visits_do_not_accumulate()
	test_close_all()
	print("All GateRegistry tests passed!")


if __name__ == '__main__':
	main()
