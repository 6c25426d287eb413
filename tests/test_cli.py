"""
Tests for cerrla/cli.py and the command modules.
"""

import json

import pytest

from cerrla.cli import build_parser, main
from domain.blocks_world import blocks_world_spec
from optimizer.persistence import load_checkpoint, save_checkpoint
from optimizer.policy import PolicyDistribution
from relational.parsing import parse_rule


@pytest.fixture
def state_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text(json.dumps({
        "domain": "blocks_world",
        "facts": ["on(a, b)", "clear(a)", {"pred": "clear", "args": ["c"]}],
        "valid_actions": ["move(a, c)", {"pred": "move", "args": ["b", "c"]}],
    }), encoding="utf-8")
    return path


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_run_defaults(self):
        args = build_parser().parse_args(["run"])
        assert args.command == "run"
        assert args.domain == "blocks_world"
        assert args.iterations == 10
        assert args.step_size is None
        assert not args.absent

    def test_cover_options(self):
        args = build_parser().parse_args(["-v", "cover", "s.json", "--seed", "3"])
        assert args.verbose
        assert args.state == "s.json"
        assert args.seed == 3


class TestCommands:
    def test_domains(self, capsys):
        main(["domains"])
        out = capsys.readouterr().out
        assert "blocks_world" in out
        assert "move/2" in out

    def test_cover(self, state_file, capsys):
        main(["cover", str(state_file), "--seed", "0"])
        assert "clear(?Y) => move(?X, ?Y)" in capsys.readouterr().out

    def test_cover_missing_file(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["cover", str(tmp_path / "nope.json")])
        assert exc.value.code == 1
        assert "File not found" in capsys.readouterr().out

    def test_cover_without_domain(self, tmp_path, capsys):
        path = tmp_path / "bare.json"
        path.write_text(json.dumps({"facts": ["clear(a)"]}), encoding="utf-8")
        with pytest.raises(SystemExit):
            main(["cover", str(path)])
        assert "no domain given" in capsys.readouterr().out

    def test_show(self, tmp_path, capsys):
        dist = PolicyDistribution()
        dist.add_slot("move", parse_rule("clear(?X) => move(?X, ?Y)", blocks_world_spec()))
        path = tmp_path / "policy.txt"
        save_checkpoint(path, dist, {"update_size": 0.125})

        main(["show", str(path), "--domain", "blocks_world"])
        out = capsys.readouterr().out
        assert "clear(?X) => move(?X, ?Y)" in out
        assert "update_size" in out

    def test_show_missing_checkpoint(self, tmp_path):
        with pytest.raises(SystemExit) as exc:
            main(["show", str(tmp_path / "missing.txt")])
        assert exc.value.code == 1

    def test_run_writes_checkpoint_and_elites(self, tmp_path, capsys):
        checkpoint = tmp_path / "out" / "onab.txt"
        elites     = tmp_path / "out" / "onab.elites"
        main([
            "run", "--iterations", "1", "--max-steps", "5", "--blocks", "3",
            "--seed", "2", "--selection-ratio", "0.5",
            "--checkpoint", str(checkpoint), "--elites", str(elites),
        ])
        assert "Most likely policy" in capsys.readouterr().out
        loaded = load_checkpoint(checkpoint, blocks_world_spec())
        assert loaded.ok
        assert loaded.distribution.slot_for("move") is not None
        assert "converged_value" in loaded.metadata
        assert elites.read_text(encoding="utf-8").startswith("value: ")

    def test_run_unknown_domain(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["run", "--domain", "no_such_domain"])
        assert exc.value.code == 1
        assert "Unknown domain" in capsys.readouterr().out
