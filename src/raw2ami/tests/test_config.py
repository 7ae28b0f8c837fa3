"""Tests for configuration loading and the shared deadline."""

import pytest
import yaml
from pydantic import ValidationError

from raw2ami.config import AppConfig, UploadSettings
from raw2ami.errors import PublishTimeoutError
from raw2ami.utils.deadline import Deadline


class TestAppConfig:
    def test_defaults(self):
        config = AppConfig()
        assert config.upload.multipart_threshold == 4 * 1024 ** 3
        assert config.upload.part_size == 1024 ** 3
        assert config.upload.max_workers == 1
        assert config.conversion.poll_interval == 60

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "aws": {"region": "us-west-2", "profile": "images"},
            "upload": {"max_workers": 4},
        }))
        config = AppConfig.from_yaml(path)
        assert config.aws.region == "us-west-2"
        assert config.aws.profile == "images"
        assert config.upload.max_workers == 4

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert AppConfig.from_yaml(path) == AppConfig()

    def test_env_and_overrides(self, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "eu-central-1")
        config = AppConfig.from_env_and_args(aws={"profile": "ci", "region": None})
        assert config.aws.region == "eu-central-1"
        assert config.aws.profile == "ci"

    def test_part_size_floor(self):
        with pytest.raises(ValidationError):
            UploadSettings(part_size=1024)


class TestDeadline:
    def test_remaining_counts_down(self, clock):
        deadline = Deadline(120, clock=clock)
        assert deadline.remaining() == 120
        clock.now += 45
        assert deadline.remaining() == 75
        assert not deadline.expired

    def test_check_raises_when_expired(self, clock):
        deadline = Deadline(10, clock=clock)
        deadline.check("upload")
        clock.now += 11
        assert deadline.remaining() == 0
        with pytest.raises(PublishTimeoutError) as exc_info:
            deadline.check("upload")
        assert exc_info.value.phase == "upload"

    def test_non_positive_timeout(self):
        with pytest.raises(ValueError):
            Deadline(0)


class TestClients:
    def test_single_attempt_and_deadline_read_timeout(self):
        from raw2ami.aws.session import client_config

        config = client_config(600)
        assert config.retries["total_max_attempts"] == 1
        assert config.read_timeout == 600
        assert config.connect_timeout == 60

    def test_build_clients(self):
        from raw2ami.aws.session import build_clients
        from raw2ami.config import AwsConfig

        s3, ec2 = build_clients(AwsConfig(region="eu-west-1"), timeout=30, max_workers=4)
        assert s3.meta.service_model.service_name == "s3"
        assert ec2.meta.service_model.service_name == "ec2"
        assert ec2.meta.region_name == "eu-west-1"
        assert s3.meta.config.connect_timeout == 30


class TestLogging:
    def test_set_log_level_reaches_module_loggers(self):
        import logging

        from raw2ami.utils.logging import get_logger, set_log_level

        logger = get_logger("raw2ami.tests.logging")
        assert logger.level == logging.INFO
        try:
            set_log_level("debug")
            assert logger.level == logging.DEBUG
            assert logging.getLogger("raw2ami").level == logging.DEBUG
        finally:
            set_log_level("INFO")
        assert logger.level == logging.INFO

    def test_get_logger_attaches_one_rich_handler(self):
        from rich.logging import RichHandler

        from raw2ami.utils.logging import get_logger

        get_logger("raw2ami.tests.handlers")
        logger = get_logger("raw2ami.tests.handlers")
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)
