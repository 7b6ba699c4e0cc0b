"""Unit tests for configuration loading."""

import json

import pytest

from bivardpp.config.manager import (
    ConfigManager,
    ConfigurationError,
    LikelihoodConfig,
    load_config,
)
from bivardpp.core.exceptions import LikelihoodError
from bivardpp.core.likelihood import CompositeLikelihood
from bivardpp.core.spectral import QuadratureSettings


class TestLikelihoodConfig:
    def test_defaults(self):
        config = LikelihoodConfig.from_dict({})
        assert config == LikelihoodConfig()
        assert config.family == "gaussian"
        assert config.periodic is True
        assert config.series_terms == 50
        assert config.intensities is None
        assert config.quadrature == QuadratureSettings(epsabs=1e-11, epsrel=1e-10, limit=200)
        assert config.exhaustive_feasibility is False
        assert config.log_level == "WARNING"

    def test_nested_sections(self):
        config = LikelihoodConfig.from_dict(
            {
                "family": "BESSEL",
                "intensities": [120, 80.5],
                "quadrature": {"limit": 50},
                "feasibility": {"exhaustive": True},
                "logging": {"level": "debug"},
            }
        )
        assert config.family == "bessel"
        assert config.intensities == (120.0, 80.5)
        assert config.quadrature.limit == 50
        assert config.quadrature.epsrel == 1e-10
        assert config.exhaustive_feasibility is True
        assert config.log_level == "DEBUG"

    def test_numbers_given_as_strings(self):
        config = LikelihoodConfig.from_dict({"quadrature": {"epsabs": "1e-9"}, "series_terms": "20"})
        assert config.quadrature.epsabs == 1e-9
        assert config.series_terms == 20

    @pytest.mark.parametrize(
        "override",
        [
            {"family": "matern"},
            {"series_terms": 0},
            {"quadrature": {"epsrel": -1.0}},
            {"quadrature": {"limit": "many"}},
            {"intensities": [1.0, -1.0]},
            {"intensities": [1.0]},
            {"logging": {"level": "LOUD"}},
        ],
    )
    def test_invalid_values(self, override):
        with pytest.raises(ConfigurationError):
            LikelihoodConfig.from_dict(override)

    def test_error_hierarchy(self):
        assert issubclass(ConfigurationError, LikelihoodError)
        assert issubclass(ConfigurationError, ValueError)


class TestConfigManager:
    def test_yaml_file(self, tmp_path):
        path = tmp_path / "likelihood.yaml"
        path.write_text(
            "family: bessel\n"
            "periodic: false\n"
            "quadrature:\n"
            "  epsabs: 1e-11\n"
            "  limit: 300\n"
        )
        config = load_config(path)
        assert config.family == "bessel"
        assert config.periodic is False
        assert config.quadrature.epsabs == 1e-11
        assert config.quadrature.limit == 300

    def test_json_file(self, tmp_path):
        path = tmp_path / "likelihood.json"
        path.write_text(json.dumps({"series_terms": 30, "intensities": [4.0, 2.5]}))
        config = load_config(str(path))
        assert config.series_terms == 30
        assert config.intensities == (4.0, 2.5)

    def test_empty_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == LikelihoodConfig()

    def test_missing_file_falls_back_to_defaults(self, tmp_path, caplog):
        manager = ConfigManager(tmp_path / "missing.yaml")
        assert manager.to_likelihood_config() == LikelihoodConfig()
        assert "not found" in caplog.text

    @pytest.mark.parametrize(
        "name, text",
        [("broken.yaml", "family: [unclosed\n"), ("list.yaml", "- 1\n- 2\n"), ("broken.json", "{")],
    )
    def test_unparsable_file_falls_back_to_defaults(self, tmp_path, name, text):
        path = tmp_path / name
        path.write_text(text)
        assert ConfigManager(path).get("family") == "gaussian"

    def test_dot_notation(self):
        manager = ConfigManager(config_override={"quadrature": {"limit": 10}})
        assert manager.get("quadrature.limit") == 10
        assert manager.get("quadrature.epsrel") == 1e-10
        assert manager.get("missing.key", "fallback") == "fallback"

        manager.update_config("feasibility.exhaustive", True)
        manager.update_config("extra.nested.value", 1)
        assert manager.get_config()["extra"] == {"nested": {"value": 1}}
        assert manager.to_likelihood_config().exhaustive_feasibility is True


class TestEngineFromConfig:
    def test_from_dict(self):
        engine = CompositeLikelihood.from_config(
            {"family": "bessel", "periodic": False, "intensities": [4.0, 2.5]}
        )
        assert engine.family.name == "bessel"
        assert engine.use_periodic_domain is False
        assert engine.n_parameters == 4

    def test_from_file(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("family: gaussian\nseries_terms: 12\nfeasibility:\n  exhaustive: true\n")
        engine = CompositeLikelihood.from_config(path)
        assert engine.family.series_terms == 12
        assert engine.exhaustive_feasibility is True
        assert engine.n_parameters == 6

    def test_from_settings_object(self):
        settings = LikelihoodConfig(quadrature=QuadratureSettings(limit=75))
        engine = CompositeLikelihood.from_config(settings)
        assert engine.family.integrator.settings.limit == 75

    def test_defaults_and_bad_type(self):
        assert CompositeLikelihood.from_config().family.name == "gaussian"
        with pytest.raises(TypeError):
            CompositeLikelihood.from_config(42)
