"""Tests for the raw2ami command line."""

from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from raw2ami.cli import main
from raw2ami.errors import PublishTimeoutError
from raw2ami.pipeline.publish import PublishResult


@pytest.fixture
def runner():
    return CliRunner()


class TestPush:
    def test_missing_bucket_fails_fast(self, runner, image_file):
        path = image_file(64)
        with patch("raw2ami.pipeline.publish.PublishPipeline") as pipeline_cls:
            result = runner.invoke(main, ["push", str(path)])
        assert result.exit_code == 1
        assert "Please provide the bucket to use" in result.output
        pipeline_cls.assert_not_called()

    def test_tpm_requires_uefi(self, runner, image_file):
        path = image_file(64)
        with patch("raw2ami.pipeline.publish.PublishPipeline") as pipeline_cls:
            result = runner.invoke(main, ["push", str(path), "--bucket", "b", "--tpm"])
        assert result.exit_code == 1
        assert "Cannot use tpm without uefi mode" in result.output
        pipeline_cls.assert_not_called()

    def test_success_prints_image_id(self, runner, image_file):
        path = image_file(64, name="file")
        ok = PublishResult(success=True, image_name="file", image_id="ami-1", snapshot_id="snap-1", duration="3s")
        with patch("raw2ami.pipeline.publish.PublishPipeline") as pipeline_cls:
            pipeline_cls.return_value.run.return_value = ok
            result = runner.invoke(main, ["push", str(path), "--bucket", "b", "--ena", "--sriov", "simple"])

        assert result.exit_code == 0, result.output
        assert "ami-1" in result.output
        request = pipeline_cls.return_value.run.call_args.args[0]
        assert request.bucket == "b"
        assert request.timeout == 600
        assert request.image.ena is True
        assert request.image.sriov == "simple"

    def test_env_vars_supply_defaults(self, runner, image_file, monkeypatch):
        monkeypatch.setenv("RAW2AMI_BUCKET", "env-bucket")
        monkeypatch.setenv("RAW2AMI_UPLOAD_TIMEOUT", "900")
        path = image_file(64)
        ok = PublishResult(success=True, image_name="disk", image_id="ami-2")
        with patch("raw2ami.pipeline.publish.PublishPipeline") as pipeline_cls:
            pipeline_cls.return_value.run.return_value = ok
            result = runner.invoke(main, ["push", str(path)])

        assert result.exit_code == 0, result.output
        request = pipeline_cls.return_value.run.call_args.args[0]
        assert request.bucket == "env-bucket"
        assert request.timeout == 900

    def test_timeout_exit_code_and_task_hint(self, runner, image_file):
        path = image_file(64)
        err = PublishTimeoutError("still active", phase="import_snapshot", task_id="import-snap-7")
        failed = PublishResult(
            success=False, image_name="disk", failed_stage="import_snapshot",
            error=str(err), exception=err, import_task_id="import-snap-7",
        )
        with patch("raw2ami.pipeline.publish.PublishPipeline") as pipeline_cls:
            pipeline_cls.return_value.run.return_value = failed
            result = runner.invoke(main, ["push", str(path), "--bucket", "b"])

        assert result.exit_code == 1
        assert "import_snapshot" in result.output
        assert "import-snap-7" in result.output

    def test_parallel_and_config_file(self, runner, image_file, tmp_path):
        config_path = tmp_path / "raw2ami.yaml"
        config_path.write_text(yaml.safe_dump({"aws": {"region": "eu-west-1"}, "conversion": {"poll_interval": 30}}))
        path = image_file(64)
        ok = PublishResult(success=True, image_name="disk", image_id="ami-3")
        with patch("raw2ami.pipeline.publish.PublishPipeline") as pipeline_cls:
            pipeline_cls.return_value.run.return_value = ok
            result = runner.invoke(main, ["push", str(path), "--bucket", "b", "--parallel", "4",
                                          "--config", str(config_path)])

        assert result.exit_code == 0, result.output
        config = pipeline_cls.call_args.args[0]
        assert config.aws.region == "eu-west-1"
        assert config.upload.max_workers == 4
        assert config.conversion.poll_interval == 30


class TestPlan:
    def test_simple_plan(self, runner, image_file):
        path = image_file(64, name="file")
        result = runner.invoke(main, ["plan", str(path)])
        assert result.exit_code == 0, result.output
        assert "Strategy: simple" in result.output
        assert "Key: file" in result.output

    def test_multipart_plan(self, runner, image_file, tmp_path):
        mib = 1024 * 1024
        config_path = tmp_path / "raw2ami.yaml"
        config_path.write_text(yaml.safe_dump({"upload": {"multipart_threshold": 5 * mib, "part_size": 5 * mib}}))
        path = image_file(11 * mib)

        result = runner.invoke(main, ["plan", str(path), "--config", str(config_path)])

        assert result.exit_code == 0, result.output
        assert "Strategy: multipart" in result.output
        assert "bytes 0-5242879" in result.output
        assert "bytes 10485760-11534335" in result.output
