"""Tests for sweep orchestration."""

import os
import tempfile
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from tempsweep.engine import SweepEngine, validate_targets
from tempsweep.errors import EngineBusyError, InvalidTargetsError
from tempsweep.models import EventKind, SweepState
from tempsweep.progress import ProgressSink
from tempsweep.sync import CancellationSignal


class CancelOnFirstDelete(ProgressSink):
    def __init__(self, cancel: CancellationSignal):
        super().__init__()
        self.cancel = cancel

    def emit(self, event):
        super().emit(event)
        if event.kind == EventKind.DELETED:
            self.cancel.cancel()


def scenario_tree(base: Path) -> Path:
    """T1 with files of 10, 20, 30 bytes, a read-only 5 byte file and an empty sub."""
    t1 = base / "T1"
    t1.mkdir()
    (t1 / "a.bin").write_bytes(b"x" * 10)
    (t1 / "b.bin").write_bytes(b"x" * 20)
    (t1 / "c.bin").write_bytes(b"x" * 30)
    ro = t1 / "ro.bin"
    ro.write_bytes(b"x" * 5)
    ro.chmod(0o444)
    (t1 / "sub").mkdir()
    return t1


class TestValidateTargets:
    def test_none_rejected(self):
        with pytest.raises(InvalidTargetsError):
            validate_targets(None)

    def test_single_string_rejected(self):
        with pytest.raises(InvalidTargetsError):
            validate_targets("/tmp")

    def test_relative_path_rejected(self):
        with pytest.raises(InvalidTargetsError, match="absolute"):
            validate_targets(["relative/dir"])

    def test_unexpanded_placeholder_rejected(self):
        with pytest.raises(InvalidTargetsError, match="placeholder"):
            validate_targets(["%USERPROFILE%/AppData/Local/Temp"])

    def test_non_path_rejected(self):
        with pytest.raises(InvalidTargetsError):
            validate_targets([42])

    def test_empty_string_rejected(self):
        with pytest.raises(InvalidTargetsError):
            validate_targets([""])

    def test_returns_tuple(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            targets = validate_targets([tmpdir, Path(tmpdir)])
            assert targets == (tmpdir, tmpdir)

    def test_empty_list_allowed(self):
        assert validate_targets([]) == ()


class TestRun:
    def test_concrete_scenario(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            t1 = scenario_tree(Path(tmpdir))
            sink = ProgressSink()
            engine = SweepEngine(max_workers=2)

            result = engine.run([str(t1)], sink=sink, group="Temp")

            events = sink.drain()
            assert result.group == "Temp"
            assert result.size_before == 65
            assert result.size_after == 0
            assert result.reclaimed == 65
            assert result.deleted_bytes == 65
            assert not result.cancelled
            assert len([e for e in events if e.kind == EventKind.DELETED]) == 4
            assert any(e.kind == EventKind.DELETED_EMPTY_DIR for e in events)
            assert not t1.exists()
            assert engine.state is SweepState.COMPLETED
            assert not engine.is_busy()
            assert engine.last_result == result

    def test_partial_failure(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir) / "target"
            root.mkdir()
            for name, size in (("a.bin", 10), ("b.bin", 20), ("locked.bin", 50)):
                (root / name).write_bytes(b"x" * size)
            real_remove = os.remove

            def _remove(path, *args, **kwargs):
                if Path(path).name == "locked.bin":
                    raise PermissionError(13, "File in use", str(path))
                return real_remove(path, *args, **kwargs)

            sink = ProgressSink()
            with patch("tempsweep.cleaner.os.remove", side_effect=_remove):
                result = SweepEngine().run([str(root)], sink=sink)

            warnings = [e for e in sink.drain() if e.kind == EventKind.WARNING]
            assert len(warnings) == 1
            assert result.reclaimed == 30
            assert result.size_after == 50

    def test_nonexistent_targets(self):
        sink = ProgressSink()
        result = SweepEngine().run(["/nonexistent/tempsweep/a", "/nonexistent/tempsweep/b"], sink=sink)

        assert result.size_before == 0
        assert result.reclaimed == 0
        assert sink.drain() == []

    def test_reclaimed_never_negative(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir) / "target"
            root.mkdir()
            (root / "small.bin").write_bytes(b"x" * 10)

            def grow(paths, cancel, sink, max_workers):
                (root / "big.bin").write_bytes(b"x" * 1000)
                return 0

            with patch("tempsweep.engine.sweep_paths", side_effect=grow):
                result = SweepEngine().run([str(root)])

            assert result.size_after > result.size_before
            assert result.reclaimed == 0

    def test_pre_cancelled_run_deletes_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            t1 = scenario_tree(Path(tmpdir))
            cancel = CancellationSignal()
            cancel.cancel()
            engine = SweepEngine()

            result = engine.run([str(t1)], cancel=cancel)

            assert result.cancelled
            assert result.reclaimed == 0
            assert (t1 / "a.bin").exists()
            assert engine.state is SweepState.CANCELLED

    def test_cancel_mid_sweep_still_remeasures(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            targets = []
            for name in ("p1", "p2", "p3"):
                d = Path(tmpdir) / name
                d.mkdir()
                (d / "f.bin").write_bytes(b"x" * 4)
                (d / "g.bin").write_bytes(b"x" * 4)
                targets.append(str(d))
            cancel = CancellationSignal()

            result = SweepEngine(max_workers=1).run(
                targets, cancel=cancel, sink=CancelOnFirstDelete(cancel)
            )

            assert result.cancelled
            assert result.size_before == 24
            assert result.deleted_bytes == 4
            assert result.size_after == 20
            assert result.reclaimed == 4

    def test_very_deep_tree(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir) / "chain"
            current = str(root)
            os.mkdir(current)
            for _ in range(1200):
                current = os.path.join(current, "d")
                os.mkdir(current)
            with open(os.path.join(current, "leaf.bin"), "wb") as f:
                f.write(b"x" * 7)

            result = SweepEngine(max_workers=1).run([str(root)])

            assert result.size_before == 7
            assert result.reclaimed == 7
            assert not root.exists()

    def test_invalid_targets_leave_engine_idle(self):
        engine = SweepEngine()
        with pytest.raises(InvalidTargetsError):
            engine.run(None)
        assert engine.state is SweepState.IDLE

    def test_internal_failure_propagates_and_resets(self):
        engine = SweepEngine()
        with patch("tempsweep.engine.measure_paths", side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                engine.run(["/nonexistent/tempsweep/a"])
        assert engine.state is SweepState.IDLE
        assert not engine.is_busy()

    def test_busy_gate_rejects_second_run(self):
        engine = SweepEngine()
        seen = {}

        def reenter(paths, cancel, sink, max_workers):
            seen["busy"] = engine.is_busy()
            with pytest.raises(EngineBusyError):
                engine.run(["/nonexistent/tempsweep/b"])
            with pytest.raises(EngineBusyError):
                engine.measure(["/nonexistent/tempsweep/b"])
            seen["checked"] = True
            return 0

        with patch("tempsweep.engine.sweep_paths", side_effect=reenter):
            engine.run(["/nonexistent/tempsweep/a"])

        assert seen == {"busy": True, "checked": True}
        # Once finished, a new sweep is accepted
        engine.run(["/nonexistent/tempsweep/a"])


class TestMeasure:
    def test_measure_does_not_delete(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            t1 = scenario_tree(Path(tmpdir))
            engine = SweepEngine()

            assert engine.measure([str(t1)]) == 65
            assert (t1 / "a.bin").exists()
            assert engine.state is SweepState.COMPLETED

    def test_measure_is_idempotent(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            t1 = scenario_tree(Path(tmpdir))
            engine = SweepEngine()
            assert engine.measure([str(t1)]) == engine.measure([str(t1)])


class TestRequestCancel:
    def test_idle_engine_has_nothing_to_cancel(self):
        assert SweepEngine().request_cancel() is False


class TestBackgroundOperations:
    def test_start_sweep_returns_future_and_closes_sink(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            t1 = scenario_tree(Path(tmpdir))
            sink = ProgressSink()

            with SweepEngine() as engine:
                future = engine.start_sweep("Temp", [str(t1)], sink)
                events = list(sink)
                result = future.result(timeout=30)

            assert result.reclaimed == 65
            assert sink.closed
            assert len([e for e in events if e.kind == EventKind.DELETED]) == 4

    def test_start_measure_all(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            t1 = scenario_tree(Path(tmpdir))
            sink = ProgressSink()

            with SweepEngine() as engine:
                future = engine.start_measure_all([str(t1)], sink)
                events = list(sink)
                assert future.result(timeout=30) == 65

            assert [e.kind for e in events] == [EventKind.INFO]
            assert (t1 / "a.bin").exists()

    def test_busy_while_running_and_cancellable(self):
        started = threading.Event()
        release = threading.Event()

        def blocking_sweep(paths, cancel, sink, max_workers):
            started.set()
            release.wait(timeout=30)
            return 0

        with SweepEngine() as engine:
            with patch("tempsweep.engine.sweep_paths", side_effect=blocking_sweep):
                future = engine.start_sweep("Temp", ["/nonexistent/tempsweep/a"])
                assert started.wait(timeout=30)

                assert engine.is_busy()
                with pytest.raises(EngineBusyError):
                    engine.start_sweep("Temp", ["/nonexistent/tempsweep/a"])
                with pytest.raises(EngineBusyError):
                    engine.start_measure_all(["/nonexistent/tempsweep/a"])

                assert engine.request_cancel() is True
                release.set()
                result = future.result(timeout=30)

        assert result.cancelled
        assert engine.state is SweepState.CANCELLED
        assert not engine.is_busy()

    def test_rejected_start_raises_immediately(self):
        with SweepEngine() as engine:
            with pytest.raises(InvalidTargetsError):
                engine.start_sweep("Temp", ["%USERPROFILE%/Temp"])
            assert engine.state is SweepState.IDLE
