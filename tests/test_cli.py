"""Tests for the forcelayout command-line interface."""

import json

import pytest

from forcelayout import __version__
from forcelayout.cli import main
from forcelayout.cli.layout_cmd import load_graph
from forcelayout.exceptions import GraphFileError


def run_json(capsys, *argv):
    result = main(["run", *argv, "--format", "json", "-q"])
    captured = capsys.readouterr()
    assert result == 0, captured.err
    return json.loads(captured.out)


class TestMain:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "forcelayout" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestRunCommand:
    """Tests for `forcelayout run`."""

    def test_json_output(self, isolated_config, graph_file, capsys):
        result = run_json(capsys, str(graph_file), "--steps", "5", "--seed", "1")

        assert result["algorithm"] == "spring-layout"
        assert result["steps"] == 5
        assert set(result["positions"]) == {"a", "b", "c", "d"}
        assert all(len(p) == 2 for p in result["positions"].values())

    def test_frozen_node_keeps_given_position(self, isolated_config, graph_file, capsys):
        result = run_json(capsys, str(graph_file), "--steps", "20")
        assert result["positions"]["d"] == pytest.approx([5.0, 5.0])

    def test_three_dimensional_output(self, isolated_config, graph_file, capsys):
        result = run_json(capsys, str(graph_file), "--steps", "3", "--3d")
        assert all(len(p) == 3 for p in result["positions"].values())

    def test_seed_is_reproducible(self, isolated_config, graph_file, capsys):
        first = run_json(capsys, str(graph_file), "--steps", "10", "--seed", "9")
        second = run_json(capsys, str(graph_file), "--steps", "10", "--seed", "9")
        assert first["positions"] == second["positions"]

    def test_until_stable(self, isolated_config, graph_file, capsys):
        result = run_json(capsys, str(graph_file), "--steps", "2000", "--until-stable")
        assert result["stable"] is True
        assert 256 <= result["steps"] < 2000

    def test_table_output(self, isolated_config, graph_file, capsys):
        assert main(["run", str(graph_file), "--steps", "2", "-q"]) == 0
        out = capsys.readouterr().out
        assert "spring-layout" in out
        assert "Steps: 2" in out
        for node_id in "abcd":
            assert node_id in out

    def test_stats_file(self, isolated_config, graph_file, capsys, tmp_path):
        stats_path = tmp_path / "run.dat"
        run_json(capsys, str(graph_file), "--steps", "4", "--stats", str(stats_path))
        lines = stats_path.read_text().splitlines()
        assert len(lines) == 5

    def test_format_from_config(self, isolated_config, graph_file, capsys):
        (isolated_config / ".forcelayout.toml").write_text('[defaults]\nformat = "json"\n')
        assert main(["run", str(graph_file), "--steps", "1", "-q"]) == 0
        assert json.loads(capsys.readouterr().out)["steps"] == 1

    def test_missing_file(self, isolated_config, capsys):
        assert main(["run", "missing.json", "-q"]) == 1
        err = capsys.readouterr().err
        assert "Error" in err
        assert "Graph file not found" in err

    def test_invalid_json(self, isolated_config, tmp_path, capsys):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        assert main(["run", str(path), "-q"]) == 1
        assert "Invalid JSON" in capsys.readouterr().err

    def test_invalid_config(self, isolated_config, graph_file, capsys):
        (isolated_config / ".forcelayout.toml").write_text("[layout\n")
        assert main(["run", str(graph_file), "-q"]) == 1
        assert "Invalid TOML" in capsys.readouterr().err


class TestLoadGraph:
    """Tests for graph file validation."""

    def test_normalizes_nodes_and_edges(self, graph_file):
        graph = load_graph(graph_file)
        assert graph["nodes"][0] == {"id": "a"}
        assert graph["edges"][2]["id"] == "c-a#2"
        assert graph["attributes"] == {"layout.quality": 2}

    def test_defaults_for_missing_sections(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("{}")
        assert load_graph(path) == {"nodes": [], "edges": [], "attributes": {}}

    @pytest.mark.parametrize(
        "content, message",
        [
            ("[]", "JSON object"),
            ('{"nodes": {}}', "'nodes' must be a list"),
            ('{"nodes": [true]}', "Invalid node entry"),
            ('{"nodes": [{"id": "a", "position": [1]}]}', "Invalid position"),
            ('{"edges": [{"source": "a"}]}', "Invalid edge entry"),
            ('{"attributes": []}', "'attributes' must be an object"),
        ],
    )
    def test_rejects_malformed_graph(self, tmp_path, content, message):
        path = tmp_path / "graph.json"
        path.write_text(content)
        with pytest.raises(GraphFileError, match=message):
            load_graph(path)

    def test_invalid_edge_reports_index(self, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text('{"nodes": ["a"], "edges": [{"source": "a", "target": "a"}, {"source": "a"}]}')

        with pytest.raises(GraphFileError) as exc_info:
            load_graph(path)

        err = exc_info.value
        assert err.message == "Invalid edge entry"
        assert err.context == {"file": str(path), "index": 1}
        assert err.suggestions == ['Edges need "source" and "target" keys']

    def test_edge_to_unknown_node_loads(self, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text('{"nodes": ["a"], "edges": [{"id": "e", "source": "a", "target": "n9"}]}')
        assert load_graph(path)["edges"] == [{"id": "e", "source": "a", "target": "n9"}]


class TestConfigCommand:
    """Tests for `forcelayout config`."""

    def test_init_creates_template(self, isolated_config, capsys):
        assert main(["config", "--init"]) == 0
        target = isolated_config / ".forcelayout.toml"
        assert target.exists()
        assert "[layout]" in target.read_text()

    def test_init_refuses_to_overwrite(self, isolated_config, capsys):
        (isolated_config / ".forcelayout.toml").write_text("[defaults]\n")
        assert main(["config", "--init"]) == 1
        assert "already exists" in capsys.readouterr().err

    def test_show(self, isolated_config, capsys):
        (isolated_config / ".forcelayout.toml").write_text("[layout]\nquality = 3\n")
        assert main(["config", "--show"]) == 0
        out = capsys.readouterr().out
        assert "[defaults]" in out
        assert "[layout]" in out
        assert "quality = 3  # from: .forcelayout.toml" in out
        assert "theta = 0.7  # from: default" in out
        assert "seed = # not set" in out

    def test_paths(self, isolated_config, capsys):
        assert main(["config", "--paths"]) == 0
        assert "Project config search" in capsys.readouterr().out
