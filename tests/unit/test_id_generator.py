"""Tests for pt_common.id_generator."""

import pytest
from pydantic import ValidationError

from config.settings import Settings, settings
from src.pt_common import id_generator
from src.pt_common.id_generator import SnowflakeIdGenerator


class TestSnowflakeIdGenerator:
    def test_returns_str(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        assert isinstance(gen.next_id(), str)

    def test_unique_ids(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        ids = {gen.next_int() for _ in range(1000)}
        assert len(ids) == 1000

    def test_monotonically_increasing(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=1)
        prev = gen.next_int()
        for _ in range(100):
            current = gen.next_int()
            assert current > prev
            prev = current

    def test_machine_id_bits(self) -> None:
        gen = SnowflakeIdGenerator(machine_id=7)
        assert (gen.next_int() >> 12) & 0x3FF == 7

    def test_workers_differ_within_same_millisecond(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(id_generator.time, "time", lambda: 1_800_000_000.0)
        a = SnowflakeIdGenerator(machine_id=0).next_int()
        b = SnowflakeIdGenerator(machine_id=1).next_int()
        assert a != b

    @pytest.mark.parametrize("machine_id", [-1, 1024])
    def test_machine_id_range(self, machine_id: int) -> None:
        with pytest.raises(ValueError):
            SnowflakeIdGenerator(machine_id=machine_id)


class TestWorkerIdSetting:
    def test_default_generator_uses_worker_id(self) -> None:
        assert id_generator._default_generator.machine_id == settings.WORKER_ID

    def test_worker_id_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("WORKER_ID", "12")
        assert Settings().WORKER_ID == 12

    @pytest.mark.parametrize("worker_id", ["-1", "1024"])
    def test_worker_id_out_of_range(
        self, monkeypatch: pytest.MonkeyPatch, worker_id: str
    ) -> None:
        monkeypatch.setenv("WORKER_ID", worker_id)
        with pytest.raises(ValidationError):
            Settings()
