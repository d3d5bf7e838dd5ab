"""Tests for layered configuration"""
import json
import os
from pathlib import Path

import pytest

from git_wt.config import (
    Config,
    PartialConfig,
    default_config,
    find_config_files,
    get_global_config_path,
    load_config,
    load_config_file,
    merge_configs,
    parse_config,
    resolve_config,
)


def write_config(directory: Path, data) -> Path:
    path = directory / ".wt" / "config.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data if isinstance(data, str) else json.dumps(data))
    return path


@pytest.fixture
def scopes(temp_dir):
    """Global config file, repo root and a nested subdirectory."""
    global_path = temp_dir / "global" / "config.json"
    global_path.parent.mkdir()
    repo_root = temp_dir / "repo"
    subdir = repo_root / "packages" / "web"
    subdir.mkdir(parents=True)
    return global_path, repo_root, subdir


class TestParseConfig:
    """Test per-field parsing of a config document."""

    def test_parses_all_fields(self):
        """Test a fully valid document."""
        config = parse_config({
            "projectsDir": "/home/u/code",
            "worktreesDir": "/home/u/code/worktrees",
            "branchPrefix": "alice/",
            "hooks": {"post-create": ["npm install"]},
            "worktreeColors": {"api": "#112233"},
            "colorPalette": ["#AABBCC"],
        })
        assert config.projects_dir == "/home/u/code"
        assert config.worktrees_dir == "/home/u/code/worktrees"
        assert config.branch_prefix == "alice"
        assert config.hooks == {"post-create": ["npm install"]}
        assert config.worktree_colors == {"api": "#112233"}
        assert config.color_palette == ["#AABBCC"]

    def test_invalid_fields_are_dropped_individually(self):
        """Test that one bad field doesn't discard the others."""
        config = parse_config({
            "projectsDir": "relative/path",
            "worktreesDir": 42,
            "branchPrefix": "team",
            "hooks": ["not", "a", "mapping"],
        })
        assert config.projects_dir is None
        assert config.worktrees_dir is None
        assert config.hooks is None
        assert config.branch_prefix == "team"

    def test_non_object_document(self):
        """Test that a JSON array or scalar yields an empty config."""
        assert parse_config(["a"]) == PartialConfig()
        assert parse_config("text") == PartialConfig()

    def test_unknown_keys_ignored(self):
        """Test that unknown keys don't matter."""
        assert parse_config({"somethingElse": True}) == PartialConfig()

    def test_path_expands_environment_variables(self, monkeypatch):
        """Test $VAR and ~ expansion in paths."""
        monkeypatch.setenv("CODE_ROOT", "/srv/code")
        config = parse_config({"projectsDir": "$CODE_ROOT/projects", "worktreesDir": "~/wt"})
        assert config.projects_dir == "/srv/code/projects"
        assert config.worktrees_dir == os.path.join(str(Path.home()), "wt")

    def test_bad_hook_lists_and_colors_filtered(self):
        """Test that malformed hook lists and colors are dropped entry by entry."""
        config = parse_config({
            "hooks": {"post-create": ["ok"], "pre-destroy": "not-a-list", "other": [1, 2]},
            "worktreeColors": {"good": "#ABCDEF", "bad": "red", "short": "#ABC", "newline": "#ABCDEF\n"},
        })
        assert config.hooks == {"post-create": ["ok"]}
        assert config.worktree_colors == {"good": "#ABCDEF"}

    def test_palette_without_valid_colors_is_undefined(self):
        """Test that an empty or all-invalid palette counts as not set."""
        assert parse_config({"colorPalette": []}).color_palette is None
        assert parse_config({"colorPalette": ["blue"]}).color_palette is None
        assert parse_config({"colorPalette": ["blue", "#000000"]}).color_palette == ["#000000"]


class TestLoadConfig:
    """Test reading config files from disk."""

    def test_missing_file(self, temp_dir):
        """Test that a missing file is an empty config."""
        assert load_config_file(temp_dir / "nope.json") == PartialConfig()

    def test_corrupt_file(self, temp_dir):
        """Test that invalid JSON is an empty config."""
        path = write_config(temp_dir, "{not json")
        assert load_config_file(path) == PartialConfig()

    def test_load_config_prefers_dot_wt(self, temp_dir):
        """Test .wt/config.json is preferred over config.json in a directory."""
        write_config(temp_dir, {"branchPrefix": "dotwt"})
        (temp_dir / "config.json").write_text(json.dumps({"branchPrefix": "plain"}))
        assert load_config(temp_dir).branch_prefix == "dotwt"

    def test_load_config_falls_back_to_plain_file(self, temp_dir):
        """Test config.json is used when there is no .wt/config.json."""
        (temp_dir / "config.json").write_text(json.dumps({"branchPrefix": "plain"}))
        assert load_config(temp_dir).branch_prefix == "plain"

    def test_global_config_path_env_override(self, monkeypatch, temp_dir):
        """Test WT_CONFIG overrides the global config location."""
        monkeypatch.setenv("WT_CONFIG", str(temp_dir / "custom.json"))
        assert get_global_config_path() == temp_dir / "custom.json"

    def test_global_config_path_default(self):
        """Test the default global config location."""
        assert get_global_config_path() == Path.home() / ".wt" / "config.json"


class TestFindConfigFiles:
    """Test discovery of config files across scopes."""

    def test_order_least_specific_first(self, scopes):
        """Test global, then repo root, then each directory down to cwd."""
        global_path, repo_root, subdir = scopes
        global_path.write_text("{}")
        root_cfg = write_config(repo_root, {})
        mid_cfg = write_config(repo_root / "packages", {})
        leaf_cfg = write_config(subdir, {})

        paths = find_config_files(subdir, repo_root, global_path)
        assert paths == [global_path, root_cfg, mid_cfg, leaf_cfg]

    def test_cwd_outside_repo_uses_global_only(self, scopes, temp_dir):
        """Test that a cwd outside the repo sees only the global file."""
        global_path, repo_root, _ = scopes
        global_path.write_text("{}")
        write_config(repo_root, {})
        outside = temp_dir / "elsewhere"
        outside.mkdir()

        assert find_config_files(outside, repo_root, global_path) == [global_path]

    def test_no_repo_root(self, scopes):
        """Test that without a repository only the global file is used."""
        global_path, _, subdir = scopes
        assert find_config_files(subdir, None, global_path) == []

    def test_sibling_directories_not_included(self, scopes):
        """Test that configs in directories off the cwd path are ignored."""
        global_path, repo_root, subdir = scopes
        write_config(repo_root / "packages" / "api", {})
        assert find_config_files(subdir, repo_root, global_path) == []


class TestMergeConfigs:
    """Test merging of partial configs."""

    def test_scalars_last_wins(self):
        """Test that the later value of a scalar wins."""
        merged = merge_configs([
            PartialConfig(branch_prefix="a", projects_dir="/one"),
            PartialConfig(branch_prefix="b"),
        ])
        assert merged.branch_prefix == "b"
        assert merged.projects_dir == "/one"

    def test_hooks_merge_per_event(self):
        """Test that distinct events union and the same event is replaced wholesale."""
        merged = merge_configs([
            PartialConfig(hooks={"post-create": ["a", "b"], "pre-destroy": ["x"]}),
            PartialConfig(hooks={"post-create": ["c"]}),
        ])
        assert merged.hooks == {"post-create": ["c"], "pre-destroy": ["x"]}

    def test_colors_merge_per_name(self):
        """Test that color overrides merge per worktree name."""
        merged = merge_configs([
            PartialConfig(worktree_colors={"a": "#111111", "b": "#222222"}),
            PartialConfig(worktree_colors={"b": "#333333"}),
        ])
        assert merged.worktree_colors == {"a": "#111111", "b": "#333333"}

    def test_palette_is_replaced_not_merged(self):
        """Test that colorPalette behaves like a scalar."""
        merged = merge_configs([
            PartialConfig(color_palette=["#111111", "#222222"]),
            PartialConfig(color_palette=["#333333"]),
        ])
        assert merged.color_palette == ["#333333"]

    def test_undefined_fields_stay_undefined(self):
        """Test that nothing defined gives an all-None result."""
        assert merge_configs([PartialConfig(), PartialConfig()]) == PartialConfig()


class TestResolveConfig:
    """Test the effective configuration."""

    def test_subdirectory_scalar_wins(self, scopes):
        """Test three scopes setting the same scalar: the deepest wins."""
        global_path, repo_root, subdir = scopes
        global_path.write_text(json.dumps({"branchPrefix": "global"}))
        write_config(repo_root, {"branchPrefix": "repo"})
        write_config(subdir, {"branchPrefix": "sub"})

        config = resolve_config(subdir, repo_root, global_path)
        assert config.branch_prefix == "sub"

    def test_hooks_across_scopes(self, scopes):
        """Test hook events union across scopes with per-event replacement."""
        global_path, repo_root, subdir = scopes
        global_path.write_text(json.dumps({"hooks": {"pre-destroy": ["global-cleanup"]}}))
        write_config(repo_root, {"hooks": {"post-create": ["repo-setup"]}})
        write_config(subdir, {"hooks": {"post-create": ["sub-setup"]}})

        config = resolve_config(subdir, repo_root, global_path)
        assert config.get_hooks("post-create") == ["sub-setup"]
        assert config.get_hooks("pre-destroy") == ["global-cleanup"]
        assert config.get_hooks("unknown") == []

    def test_invalid_deeper_value_keeps_shallower(self, scopes):
        """Test that an invalid field in a deeper scope doesn't override a valid one."""
        global_path, repo_root, subdir = scopes
        write_config(repo_root, {"projectsDir": "/srv/code"})
        write_config(subdir, {"projectsDir": "not/absolute"})

        config = resolve_config(subdir, repo_root, global_path)
        assert config.projects_dir == "/srv/code"

    def test_defaults(self, scopes):
        """Test the built-in defaults when nothing is configured."""
        global_path, repo_root, subdir = scopes
        config = resolve_config(subdir, repo_root, global_path)
        home = Path.home()
        assert config.projects_dir == str(home / "projects")
        assert config.worktrees_dir == str(home / "projects" / "worktrees")
        assert config.branch_prefix == ""
        assert config.hooks == {}
        assert config.worktree_colors == {}
        assert config.color_palette is None

    def test_environment_defaults(self, monkeypatch, scopes):
        """Test W_* environment variables replace the built-in defaults."""
        global_path, repo_root, subdir = scopes
        monkeypatch.setenv("W_PROJECTS_DIR", "/srv/projects")
        monkeypatch.setenv("W_WORKTREES_DIR", "/srv/worktrees")
        monkeypatch.setenv("W_DEFAULT_BRANCH_PREFIX", "bot/")

        config = resolve_config(subdir, repo_root, global_path)
        assert config.projects_dir == "/srv/projects"
        assert config.worktrees_dir == "/srv/worktrees"
        assert config.branch_prefix == "bot"

    def test_file_overrides_environment_default(self, monkeypatch, scopes):
        """Test config files take precedence over environment defaults."""
        global_path, repo_root, subdir = scopes
        monkeypatch.setenv("W_DEFAULT_BRANCH_PREFIX", "bot")
        write_config(repo_root, {"branchPrefix": ""})

        assert resolve_config(subdir, repo_root, global_path).branch_prefix == ""

    def test_default_config_shape(self):
        """Test default_config fills every required field."""
        defaults = default_config()
        assert defaults.projects_dir and defaults.worktrees_dir
        assert defaults.branch_prefix == ""


class TestConfigModel:
    """Test Config validation and serialization."""

    def test_rejects_relative_paths(self):
        """Test that path fields must be absolute."""
        with pytest.raises(ValueError):
            Config(projects_dir="code", worktrees_dir="/wt")

    def test_rejects_trailing_slash_prefix(self):
        """Test that branch_prefix never ends with '/'."""
        with pytest.raises(ValueError):
            Config(projects_dir="/code", worktrees_dir="/wt", branch_prefix="alice/")

    def test_is_immutable(self):
        """Test that Config can't be mutated in place."""
        config = Config(projects_dir="/code", worktrees_dir="/wt")
        with pytest.raises(Exception):
            config.branch_prefix = "x"

    def test_to_dict_uses_document_keys(self):
        """Test the JSON-style view."""
        config = Config(
            projects_dir="/code",
            worktrees_dir="/wt",
            branch_prefix="alice",
            hooks={"post-create": ["make"]},
        )
        data = config.to_dict()
        assert data["projectsDir"] == "/code"
        assert data["worktreesDir"] == "/wt"
        assert data["branchPrefix"] == "alice"
        assert data["hooks"] == {"post-create": ["make"]}
        assert "colorPalette" not in data
