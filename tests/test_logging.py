from pathlib import Path

import pytest
from loguru import logger

from liftoff.core.exceptions import ConfigurationError
from liftoff.logging import LogConfig, mask_access_keys, setup_logging, teardown_logging
from liftoff.profiles import ProfileRegistry
from liftoff.settings import MemorySettings
from tests.conftest import ACCESS_KEY, SECRET_KEY, credentials

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


class TestLogConfig:
    def test_from_raw(self, tmp_path: Path):
        config = LogConfig.from_raw({"level": "debug", "file": str(tmp_path / "l.log"), "console": False})
        assert config == LogConfig(level="DEBUG", file=tmp_path / "l.log", console=False)

    def test_defaults(self):
        assert LogConfig.from_raw({}) == LogConfig()

    @pytest.mark.parametrize(
        "raw",
        [{"level": "LOUD"}, {"console": "yes"}, {"colour": "always"}],
    )
    def test_invalid(self, raw):
        with pytest.raises(ConfigurationError):
            LogConfig.from_raw(raw)


class TestMasking:
    def test_access_key_ids_are_masked(self):
        masked = mask_access_keys(f"InvalidClientTokenId for {ACCESS_KEY}")
        assert ACCESS_KEY not in masked
        assert masked.endswith(f"AKIA{'*' * 12}{ACCESS_KEY[-4:]}")

    def test_other_text_untouched(self):
        assert mask_access_keys("bucket b1 selected") == "bucket b1 selected"


class TestSinks:
    def test_file_receives_liftoff_records_only(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "liftoff.log"
        ids = setup_logging(LogConfig(console=False, file=log_file))
        try:
            registry = ProfileRegistry(MemorySettings())
            registry.create_profile("dev", credentials())
            registry.select_profile("dev")
            logger.info("not from liftoff")
        finally:
            teardown_logging(ids)

        text = log_file.read_text()
        assert "Profile 'dev' created" in text
        assert "Profile 'dev' selected" in text
        assert "not from liftoff" not in text
        assert SECRET_KEY not in text

    def test_console_only(self):
        ids = setup_logging(LogConfig(level="WARNING"))
        try:
            assert len(ids) == 1
        finally:
            teardown_logging(ids)

    def test_no_handlers(self):
        ids = setup_logging(LogConfig(console=False))
        teardown_logging(ids)
        assert ids == []
