import pytest

from governor.config import (
    DEFAULT_MAX_OUTPUT,
    DEFAULT_TIMEOUT,
    Config,
    ConfigError,
    find_repo_root,
    load,
    parse_duration,
)


def _write(path, text):
    path.write_text(text, encoding="utf-8")


def test_load_from_repo_root(tmp_path):
    _write(tmp_path / "go.mod", "module example.com/test\n")
    _write(tmp_path / ".governor", "version: 1\ntimeout: 10m\n")

    res = load(str(tmp_path))
    assert res.repo_root == str(tmp_path)
    assert res.config.version == 1
    assert res.config.raw_timeout == "10m"
    assert res.config.timeout() == 600.0


def test_load_from_subdirectory(tmp_path):
    _write(tmp_path / "go.mod", "module example.com/test\n")
    _write(tmp_path / ".governor", "version: 2\n")
    sub = tmp_path / "pkg" / "foo"
    sub.mkdir(parents=True)

    res = load(str(sub))
    assert res.repo_root == str(tmp_path)
    assert res.config.version == 2


def test_load_no_go_mod(tmp_path):
    res = load(str(tmp_path))
    assert res.repo_root == str(tmp_path)
    assert res.config.raw_timeout == ""


def test_load_no_governor_file(tmp_path):
    _write(tmp_path / "go.mod", "module example.com/test\n")
    res = load(str(tmp_path))
    assert res.repo_root == str(tmp_path)
    assert res.config.version == 0
    assert res.config == Config()


def test_load_empty_governor_file(tmp_path):
    _write(tmp_path / "go.mod", "module example.com/test\n")
    _write(tmp_path / ".governor", "")
    assert load(str(tmp_path)).config == Config()


def test_load_full_document(tmp_path):
    _write(tmp_path / "go.mod", "module example.com/test\n")
    _write(
        tmp_path / ".governor",
        "max_output: 2048\n"
        "test:\n  args: [-race, -count=1]\n"
        "lint:\n  config: lint.yml\n  args: [--timeout=5m]\n"
        "staticcheck:\n  checks: [all, -ST1000]\n"
        "check:\n  steps: [test]\n"
        "audit:\n  steps: [dupl]\n  dupl:\n    threshold: 80\n  coverage:\n    args: [-short]\n",
    )
    cfg = load(str(tmp_path)).config
    assert cfg.max_output_bytes() == 2048
    assert cfg.test.args == ["-race", "-count=1"]
    assert cfg.lint.config == "lint.yml"
    assert cfg.lint.args == ["--timeout=5m"]
    assert cfg.staticcheck.checks == ["all", "-ST1000"]
    assert cfg.check_steps() == ["test"]
    assert cfg.audit_steps() == ["dupl"]
    assert cfg.dupl_threshold() == 80
    assert cfg.audit.coverage.args == ["-short"]


def test_load_invalid_yaml(tmp_path):
    _write(tmp_path / "go.mod", "module example.com/test\n")
    _write(tmp_path / ".governor", "version: [1\n")
    with pytest.raises(ConfigError, match="parsing .governor"):
        load(str(tmp_path))


def test_load_wrong_type(tmp_path):
    _write(tmp_path / "go.mod", "module example.com/test\n")
    _write(tmp_path / ".governor", "version: abc\n")
    with pytest.raises(ConfigError):
        load(str(tmp_path))


def test_from_dict_rejects_non_mapping():
    with pytest.raises(ConfigError):
        Config.from_dict(["test"])


def test_defaults():
    cfg = Config()
    assert cfg.timeout() == DEFAULT_TIMEOUT
    assert cfg.max_output_bytes() == DEFAULT_MAX_OUTPUT == 1 << 20
    assert cfg.check_steps() == ["test", "lint", "staticcheck"]
    assert cfg.audit_steps() == ["coverage", "complexity", "deadcode", "dupl", "vulncheck"]
    assert cfg.dupl_threshold() == 50


@pytest.mark.parametrize("raw", ["bogus", "-5s", "0", "10"])
def test_timeout_falls_back_to_default(raw):
    assert Config(raw_timeout=raw).timeout() == DEFAULT_TIMEOUT


@pytest.mark.parametrize(
    "text, seconds",
    [("5m", 300.0), ("30s", 30.0), ("10m", 600.0), ("1h30m", 5400.0), ("1.5s", 1.5), ("0", 0.0)],
)
def test_parse_duration(text, seconds):
    assert parse_duration(text) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "10", "abc", "5x", ".s", "-"])
def test_parse_duration_invalid(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_find_repo_root_walks_upward(tmp_path):
    _write(tmp_path / "go.mod", "module example.com/test\n")
    sub = tmp_path / "a" / "b"
    sub.mkdir(parents=True)
    assert find_repo_root(str(sub)) == str(tmp_path)