from pathlib import Path

import yaml

from homefield.core.config import ConfigError, DEFAULT_CONFIG, deep_merge, resolve_config, schema_from_config


def test_resolve_defaults():
    cfg = resolve_config()
    assert cfg == DEFAULT_CONFIG
    assert cfg is not DEFAULT_CONFIG
    schema = schema_from_config(cfg)
    assert schema.required == ("site", "year", "geno", "pheno")
    assert schema.popn is None


def test_yaml_then_overrides(tmp_path: Path):
    path = tmp_path / "cfg.yaml"
    with path.open("w", encoding="utf-8") as f:
        yaml.safe_dump({"columns": {"pheno": "yield", "popn": "pop"}, "permutation": {"times": 49}}, f)

    cfg = resolve_config(config_path=path, overrides={"permutation": {"seed": 7}})
    assert cfg["permutation"] == {"level": "population", "times": 49, "seed": 7}
    assert cfg["columns"]["site"] == "site"
    schema = schema_from_config(cfg)
    assert schema.pheno == "yield"
    assert schema.popn == "pop"
    assert schema.rel_col == "rel_yield"


def test_deep_merge_does_not_mutate():
    base = {"a": {"b": 1, "c": 2}}
    out = deep_merge(base, {"a": {"b": 3}})
    assert out == {"a": {"b": 3, "c": 2}}
    assert base == {"a": {"b": 1, "c": 2}}


def test_invalid_values_raise():
    bad = [
        {"permutation": {"level": "continent"}},
        {"permutation": {"times": 0}},
        {"parallel": {"backend": "gpu"}},
        {"parallel": {"workers": -1}},
        {"columns": {"site": ""}},
    ]
    for overrides in bad:
        try:
            resolve_config(overrides=overrides)
            assert False
        except ConfigError:
            pass


def test_missing_config_file(tmp_path: Path):
    try:
        resolve_config(config_path=tmp_path / "nope.yaml")
        assert False
    except ConfigError as exc:
        assert "not found" in str(exc)
