"""
Tests for the buildpack command line stages.
"""

from pathlib import Path

import yaml

from logstash_buildpack import __version__
from logstash_buildpack.cli import main


class TestDetect:

    def test_logstash_application(self, tmp_path: Path, capsys):
        (tmp_path / "Logstash").write_text("")
        assert main(["detect", str(tmp_path)]) == 0
        assert capsys.readouterr().out.strip() == "logstash %s" % __version__

    def test_other_application(self, tmp_path: Path, capsys):
        (tmp_path / "package.json").write_text("{}")
        assert main(["detect", str(tmp_path)]) == 1
        assert capsys.readouterr().out == ""


class TestRelease:

    def test_release(self, tmp_path: Path, capsys):
        assert main(["release", str(tmp_path)]) == 0
        release = yaml.safe_load(capsys.readouterr().out)
        assert release["default_process_types"]["web"] == "bin/run.sh"


class TestErrors:

    def test_finalize_without_supply(self, tmp_path: Path, capsys):
        build = tmp_path / "build"
        build.mkdir()
        rc = main(["finalize", str(build), str(tmp_path / "cache"), str(tmp_path / "deps"), "0"])
        assert rc == 1
        assert capsys.readouterr().err.startswith("ERROR: ")

    def test_supply_without_manifest(self, tmp_path: Path, capsys):
        build = tmp_path / "build"
        build.mkdir()
        (build / "Logstash").write_text("")
        rc = main(["--buildpack-dir", str(tmp_path / "buildpack"), "supply",
                   str(build), str(tmp_path / "cache"), str(tmp_path / "deps"), "0"])
        assert rc == 1
        assert "manifest.yml" in capsys.readouterr().err
