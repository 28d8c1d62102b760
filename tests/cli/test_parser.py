"""
Unit tests for the CLI parser and dispatcher.
"""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from tvm.cli.parser import CLI, main, split_exec_args
from tvm.core.exceptions import CatalogError


class TestSplitExecArgs:
    def test_without_exec(self):
        assert split_exec_args(["install", "--force"]) == (["install", "--force"], [])

    def test_everything_after_exec_is_forwarded(self):
        own, forwarded = split_exec_args(["-v", "exec", "plan", "--help", "exec"])

        assert own == ["-v", "exec"]
        assert forwarded == ["plan", "--help", "exec"]

    def test_option_value_named_exec_is_not_the_command(self):
        own, forwarded = split_exec_args(["--project-root", "exec", "exec", "plan"])

        assert own == ["--project-root", "exec", "exec"]
        assert forwarded == ["plan"]

    def test_exec_after_another_command_is_not_split(self):
        assert split_exec_args(["list", "exec"]) == (["list", "exec"], [])

    def test_inline_option_value(self):
        own, forwarded = split_exec_args(["--config=exec", "exec", "version"])

        assert own == ["--config=exec", "exec"]
        assert forwarded == ["version"]


class TestParseArgs:
    def test_global_options(self, tmp_path):
        args = CLI().parse_args(
            ["-v", "--config", str(tmp_path / "c.yaml"), "--project-root", str(tmp_path), "list"]
        )

        assert args.verbose is True
        assert args.config == tmp_path / "c.yaml"
        assert args.project_root == tmp_path
        assert args.command == "list"
        assert args.installed is False
        assert args.forwarded_args == []

    def test_install_force(self):
        args = CLI().parse_args(["install", "--force"])

        assert args.command == "install"
        assert args.force is True

    def test_exec_forwards_options(self):
        args = CLI().parse_args(["exec", "apply", "-auto-approve", "--help"])

        assert args.command == "exec"
        assert args.forwarded_args == ["apply", "-auto-approve", "--help"]

    def test_project_root_named_exec(self):
        args = CLI().parse_args(["--project-root", "exec", "exec", "plan"])

        assert args.project_root == Path("exec")
        assert args.command == "exec"
        assert args.forwarded_args == ["plan"]

    def test_default_project_root(self):
        assert CLI().parse_args(["list"]).project_root == Path.cwd()

    def test_unknown_command(self):
        with pytest.raises(SystemExit):
            CLI().parse_args(["upgrade"])


class TestRun:
    def test_no_command_prints_help(self, capsys):
        assert CLI().run([]) == 1
        assert "usage: tvm" in capsys.readouterr().out

    def test_dispatches_to_command_module(self):
        with patch("tvm.cli.commands.list.run", return_value=0) as run:
            assert CLI().run(["list", "--installed"]) == 0

        args = run.call_args[0][0]
        assert args.installed is True

    def test_tvm_error_exit_code(self, caplog):
        with patch(
            "tvm.cli.commands.list.run", side_effect=CatalogError("Error getting index")
        ):
            assert CLI().run(["list"]) == 1

        assert "Error: Error getting index" in caplog.text

    def test_keyboard_interrupt(self):
        with patch("tvm.cli.commands.install.run", side_effect=KeyboardInterrupt):
            assert CLI().run(["install"]) == 130

    def test_run_shim_forwards_everything(self):
        with patch("tvm.cli.commands.exec.run", return_value=1) as run:
            assert CLI().run_shim(["plan", "--help"]) == 1

        args = run.call_args[0][0]
        assert args.command == "exec"
        assert args.forwarded_args == ["plan", "--help"]
        assert args.config is None


class TestConfigureLogging:
    @pytest.mark.parametrize(
        "argv, level",
        [
            (["-v", "list"], logging.DEBUG),
            (["-q", "list"], logging.ERROR),
            (["list"], logging.INFO),
        ],
    )
    def test_levels(self, argv, level, no_logging_reconfiguration):
        cli = CLI()
        cli._configure_logging(cli.parse_args(argv))

        assert no_logging_reconfiguration.call_args.kwargs["level"] == level


class TestMain:
    def test_shim_invocation(self):
        with patch("sys.argv", ["/usr/local/bin/terraform", "plan"]), patch(
            "tvm.cli.parser._shim_binary_name", return_value="terraform"
        ), patch.object(CLI, "run_shim", return_value=0) as run_shim:
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 0
        run_shim.assert_called_once_with(["plan"])

    def test_regular_invocation(self):
        with patch("sys.argv", ["tvm", "list"]), patch(
            "tvm.cli.parser._shim_binary_name", return_value="terraform"
        ), patch.object(CLI, "run", return_value=0) as run, patch.object(
            CLI, "run_shim"
        ) as run_shim:
            with pytest.raises(SystemExit):
                main()

        run.assert_called_once_with()
        run_shim.assert_not_called()
