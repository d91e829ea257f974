"""Tests for pvetemplate.cli module."""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from pvetemplate import cli
from pvetemplate.exceptions import GeneratorError
from pvetemplate.models import OptionSet

URL = "https://cloud.debian.org/images/cloud/bookworm/debian-12.qcow2"
ARGS = ["--url", URL, "--storage", "local-lvm", "--vmid", "101", "--qcow2"]


class TestParser:
    def test_dests_match_option_set(self):
        args = cli.build_parser().parse_args(ARGS + ["--uefi", "--rhel-derivative", "-y", "--scsi-controller", "lsi"])
        options = cli.options_from_args(args)
        assert options.source_url == URL
        assert options.vm_id == "101"
        assert options.bios_mode == "uefi"
        assert options.disk_format == "qcow2"
        assert options.scsi_controller == "lsi"
        assert options.is_rhel_derivative == "true"
        assert options.assume_yes == "true"
        assert options.update_packages is None

    def test_last_format_flag_wins(self):
        args = cli.build_parser().parse_args(["--qcow2", "--raw"])
        assert cli.options_from_args(args).disk_format == "raw"

    def test_enum_values_not_checked_by_parser(self):
        args = cli.build_parser().parse_args(["--machine", "bogus"])
        assert cli.options_from_args(args).machine_type == "bogus"

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            cli.build_parser().parse_args(["--version"])
        assert exc.value.code == 0
        assert "pve-template" in capsys.readouterr().out


class TestArgumentMode:
    def test_no_required_fields_is_interactive(self):
        assert cli.is_argument_mode(OptionSet(disk_format="raw", assume_yes="true")) is False

    @pytest.mark.parametrize("field", ["source_url", "storage_id", "vm_id"])
    def test_any_required_field_selects_argument_mode(self, field):
        assert cli.is_argument_mode(OptionSet(**{field: "x"})) is True


class TestPrintSummary:
    def test_default_plan(self, default_plan, image_cache, capsys):
        cli.print_summary(default_plan, image_cache)
        out = capsys.readouterr().out
        assert "Configuration Summary" in out
        assert "Will download image" in out
        assert "template-20260101" in out
        assert "SELinux Disabled" not in out

    def test_rhel_rows_and_inert_warning(self, default_plan, image_cache, capsys):
        plan = replace(default_plan, is_rhel_derivative=True, disable_selinux=True, selinux_relabel=True)
        cli.print_summary(plan, image_cache)
        out = capsys.readouterr().out
        assert "SELinux Disabled:" in out
        assert "SELinux Relabel" not in out
        assert "selinux_relabel is set but has no effect" in out

    def test_disabled_selinux_without_rhel(self, default_plan, image_cache, capsys):
        cli.print_summary(replace(default_plan, disable_selinux=True), image_cache)
        out = capsys.readouterr().out
        assert "SELinux Disabled:" in out
        assert "has no effect" not in out

    def test_cached_image(self, default_plan, image_cache, capsys):
        image_cache.prepare()
        image_cache.path_for(default_plan.source_url).write_bytes(b"x")
        cli.print_summary(default_plan, image_cache)
        assert "Using cached image" in capsys.readouterr().out


class TestPrintCommands:
    def test_lists_every_step(self, default_plan, image_cache, capsys):
        cli.print_commands(replace(default_plan, bios_mode="uefi"), image_cache)
        out = capsys.readouterr().out
        assert "virt-customize -a" in out
        assert "qm create 9000" in out
        assert "qm importdisk 9000" in out
        assert "--efidisk0" in out
        assert "qm template 9000" in out


class TestMain:
    @pytest.fixture(autouse=True)
    def _isolated_cache(self, image_cache):
        with patch("pvetemplate.cli.ImageCache", return_value=image_cache):
            yield

    def test_dry_run_branch(self, capsys):
        with patch("pvetemplate.cli.check_prerequisites") as mock_prereq:
            rc = cli.main(ARGS + ["--dry-run"])
        assert rc == 0
        mock_prereq.assert_not_called()
        out = capsys.readouterr().out
        assert "qm create 101" in out
        assert "pve-template --url" in out
        assert "Dry-run complete" in out

    def test_argument_mode_success(self):
        with (
            patch("pvetemplate.cli.check_prerequisites"),
            patch("pvetemplate.cli.check_for_updates") as mock_updates,
            patch("pvetemplate.cli.TemplateBuilder") as mock_builder_cls,
        ):
            rc = cli.main(ARGS + ["-y"])
        assert rc == 0
        mock_updates.assert_not_called()
        plan = mock_builder_cls.call_args[0][0]
        assert plan.vm_id == 101
        assert plan.assume_yes is True
        builder = mock_builder_cls.return_value
        builder.check.assert_called_once_with()
        builder.run.assert_called_once_with(interactive=False)

    def test_missing_required_prints_help(self, capsys):
        with patch("pvetemplate.cli.check_prerequisites"), patch("pvetemplate.cli.TemplateBuilder") as mock_builder_cls:
            rc = cli.main(["--url", URL, "--vmid", "101", "--qcow2"])
        assert rc == 1
        out = capsys.readouterr().out
        assert "Missing required argument: storage_id" in out
        assert "usage:" in out
        mock_builder_cls.assert_not_called()

    def test_missing_disk_format(self, capsys):
        with patch("pvetemplate.cli.check_prerequisites"), patch("pvetemplate.cli.TemplateBuilder"):
            rc = cli.main(["--url", URL, "--storage", "local", "--vmid", "101"])
        assert rc == 1
        assert "Disk format not specified" in capsys.readouterr().out

    def test_prerequisite_error_returns_1(self):
        with (
            patch("pvetemplate.cli.check_prerequisites", side_effect=GeneratorError("This tool must be run as root")),
            patch("pvetemplate.cli.log") as mock_log,
        ):
            rc = cli.main(ARGS)
        assert rc == 1
        mock_log.assert_any_call("ERROR", "This tool must be run as root")

    def test_option_file_merged_under_flags(self, tmp_path):
        config = tmp_path / "opts.yaml"
        config.write_text("storage: local\nvmid: 300\nupdate-packages: true\n")
        with patch("pvetemplate.cli.check_prerequisites"), patch("pvetemplate.cli.TemplateBuilder") as mock_builder_cls:
            rc = cli.main(["--config", str(config), "--url", URL, "--vmid", "301", "--raw"])
        assert rc == 0
        plan = mock_builder_cls.call_args[0][0]
        assert plan.storage_id == "local"
        assert plan.vm_id == 301
        assert plan.update_packages is True

    def test_interactive_mode(self, full_options, capsys):
        session = MagicMock()
        session.run.return_value = full_options
        with (
            patch("pvetemplate.cli.check_prerequisites"),
            patch("pvetemplate.cli.check_for_updates") as mock_updates,
            patch("pvetemplate.cli.InteractiveSession", return_value=session),
            patch("pvetemplate.cli.TemplateBuilder") as mock_builder_cls,
        ):
            builder = mock_builder_cls.return_value
            builder.ask.return_value = True
            rc = cli.main([])
        assert rc == 0
        mock_updates.assert_called_once_with()
        builder.check.assert_not_called()
        builder.run.assert_called_once_with(interactive=True)
        out = capsys.readouterr().out
        assert "For automated builds, use this command:" in out
        assert "--vmid 101" in out

    def test_interactive_declined(self, full_options):
        session = MagicMock()
        session.run.return_value = full_options
        with (
            patch("pvetemplate.cli.check_prerequisites"),
            patch("pvetemplate.cli.check_for_updates"),
            patch("pvetemplate.cli.InteractiveSession", return_value=session),
            patch("pvetemplate.cli.TemplateBuilder") as mock_builder_cls,
        ):
            mock_builder_cls.return_value.ask.return_value = False
            rc = cli.main([])
        assert rc == 1
        mock_builder_cls.return_value.run.assert_not_called()

    def test_keyboard_interrupt_returns_130(self):
        with patch("pvetemplate.cli.check_prerequisites", side_effect=KeyboardInterrupt()):
            assert cli.main(ARGS) == 130

    def test_unexpected_error_returns_1(self):
        with (
            patch("pvetemplate.cli.check_prerequisites"),
            patch("pvetemplate.cli.TemplateBuilder") as mock_builder_cls,
            patch("traceback.print_exc") as mock_tb,
        ):
            mock_builder_cls.return_value.run.side_effect = RuntimeError("boom")
            rc = cli.main(ARGS)
        assert rc == 1
        mock_tb.assert_called_once()
