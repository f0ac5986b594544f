import pytest
import yaml

from specserve.config import (
    CommandFlags,
    ConfigError,
    Configuration,
    GenerateOptions,
    OldConfiguration,
    OutputOptions,
    detect_config_style,
    detect_package_name,
    generation_targets,
    load_configuration,
    load_template_overrides,
    new_config_from_old_config,
    parse_command_line_list,
    update_config_from_flags,
    update_old_config_from_flags,
)


def test_parse_command_line_list_trims_and_drops_empty():
    assert parse_command_line_list(" a, b,,c ") == ["a", "b", "c"]


def test_parse_command_line_list_blank():
    assert parse_command_line_list("   ") == []


@pytest.mark.parametrize(
    "target, attribute",
    [
        ("iris", "iris_server"),
        ("chi-server", "chi_server"),
        ("fiber", "fiber_server"),
        ("server", "echo_server"),
        ("echo", "echo_server"),
        ("gin", "gin_server"),
        ("gorilla", "gorilla_server"),
        ("std-http", "std_http_server"),
        ("strict-server", "strict"),
        ("client", "client"),
        ("types", "models"),
        ("spec", "embedded_spec"),
    ],
)
def test_generation_targets_maps_aliases(target, attribute):
    config = Configuration()
    generation_targets(config, [target])
    assert getattr(config.generate, attribute) is True
    enabled = [k for k, v in vars(config.generate).items() if v]
    assert enabled == [attribute]


def test_generation_targets_replaces_previous_switches():
    config = Configuration(generate=GenerateOptions(echo_server=True, client=True))
    generation_targets(config, ["chi", "skip-fmt", "skip-prune"])
    assert config.generate == GenerateOptions(chi_server=True)
    assert config.output_options.skip_fmt is True
    assert config.output_options.skip_prune is True


def test_generation_targets_unknown_option():
    with pytest.raises(ConfigError, match="unknown generate option"):
        generation_targets(Configuration(), ["types", "bogus"])


def test_load_template_overrides_recurses(tmp_path):
    (tmp_path / "typedef.tmpl").write_text("//blah")
    (tmp_path / "echo").mkdir()
    (tmp_path / "echo" / "echo-wrappers.tmpl").write_text("wrap")
    templates = load_template_overrides(str(tmp_path))
    assert templates == {"typedef.tmpl": "//blah", "echo/echo-wrappers.tmpl": "wrap"}


def test_load_template_overrides_empty_dir_name():
    assert load_template_overrides("") == {}


def test_load_template_overrides_missing_dir(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_template_overrides(str(tmp_path / "missing"))


def test_configuration_round_trip():
    config = Configuration(
        package_name="api",
        generate=GenerateOptions(echo_server=True, models=True),
        output_options=OutputOptions(include_tags=["a"], user_templates={"x.tmpl": "y"}),
        import_mapping={"ext.yaml": "example/ext"},
        output_file="out.go",
    )
    assert Configuration.from_dict(config.to_dict()) == config
    assert Configuration.from_dict(yaml.safe_load(config.to_yaml())) == config


def test_configuration_to_dict_omits_empty_values():
    data = Configuration(package_name="api").to_dict()
    assert data == {"package": "api"}


def test_configuration_from_dict_rejects_unknown_key():
    with pytest.raises(ConfigError):
        Configuration.from_dict({"package": "api", "bogus": 1})


def test_configuration_from_dict_rejects_wrong_type():
    with pytest.raises(ConfigError):
        Configuration.from_dict({"generate": ["types"]})


def test_old_configuration_from_dict():
    old = OldConfiguration.from_dict({"package": "api", "generate": ["types", "client"]})
    assert old.package_name == "api"
    assert old.generate_targets == ["types", "client"]
    assert old.include_tags is None


def test_detect_style_old_layout():
    assert detect_config_style("generate:\n  - types\n", CommandFlags()) is True


def test_detect_style_new_layout():
    text = "generate:\n  models: true\noutput-options:\n  skip-fmt: true\n"
    assert detect_config_style(text, CommandFlags()) is False


def test_detect_style_neither_layout():
    with pytest.raises(ConfigError, match="old version or new version"):
        detect_config_style("bogus: 1\n", CommandFlags())


def test_detect_style_ambiguous_uses_deprecated_flags():
    text = "package: api\n"
    assert detect_config_style(text, CommandFlags()) is False
    flags = CommandFlags(set_flags=frozenset({"include-tags"}))
    assert detect_config_style(text, flags) is True


def test_detect_style_explicit_flag_wins():
    flags = CommandFlags(old_config_style=True)
    assert detect_config_style("generate:\n  models: true\n", flags) is True


def test_update_config_from_flags_overrides():
    config = Configuration(package_name="fromfile", output_file="file.go")
    flags = CommandFlags(
        package_name="fromflag",
        generate="chi,client",
        include_tags="t1,t2",
        exclude_schemas="S1",
        response_type_suffix="Resp",
        import_mapping="a.yaml:pkg/a,b.yaml:pkg/b",
        output_file="flag.go",
        initialism_overrides=True,
    )
    update_config_from_flags(config, flags)
    assert config.package_name == "fromflag"
    assert config.generate == GenerateOptions(chi_server=True, client=True)
    assert config.output_options.include_tags == ["t1", "t2"]
    assert config.output_options.exclude_schemas == ["S1"]
    assert config.output_options.response_type_suffix == "Resp"
    assert config.import_mapping == {"a.yaml": "pkg/a", "b.yaml": "pkg/b"}
    assert config.output_file == "file.go"
    assert config.output_options.initialism_overrides is True


def test_update_config_from_flags_default_generate_keeps_file_targets():
    config = Configuration(generate=GenerateOptions(gin_server=True))
    update_config_from_flags(config, CommandFlags(output_file="flag.go"))
    assert config.generate == GenerateOptions(gin_server=True)
    assert config.output_file == "flag.go"


def test_update_config_from_flags_alias_types_rejected():
    with pytest.raises(ConfigError, match="alias-types"):
        update_config_from_flags(Configuration(), CommandFlags(alias_types=True))


def test_update_config_from_flags_missing_templates(tmp_path):
    flags = CommandFlags(templates_dir=str(tmp_path / "missing"))
    with pytest.raises(ConfigError, match="load templates from"):
        update_config_from_flags(Configuration(), flags)


def test_update_config_from_flags_bad_import_mapping():
    with pytest.raises(ConfigError):
        update_config_from_flags(Configuration(), CommandFlags(import_mapping="noseparator"))


def test_update_old_config_prefers_file_values():
    old = OldConfiguration(package_name="file", include_tags=["x"])
    flags = CommandFlags(package_name="flag", include_tags="y", exclude_tags="z")
    merged = update_old_config_from_flags(old, flags)
    assert merged.package_name == "file"
    assert merged.include_tags == ["x"]
    assert merged.exclude_tags == ["z"]
    assert merged.generate_targets == ["types", "client", "server", "spec"]
    assert old.exclude_tags is None


def test_new_config_from_old_config():
    old = OldConfiguration(
        package_name="api",
        generate_targets=["types", "skip-prune"],
        exclude_tags=["internal"],
        response_type_suffix="Ignored",
    )
    config = new_config_from_old_config(old, CommandFlags(response_type_suffix="Resp"))
    assert config.package_name == "api"
    assert config.generate == GenerateOptions(models=True)
    assert config.output_options.skip_prune is True
    assert config.output_options.exclude_tags == ["internal"]
    assert config.output_options.response_type_suffix == "Resp"


def test_new_config_from_old_config_bad_target():
    old = OldConfiguration(generate_targets=["nope"])
    with pytest.raises(ConfigError, match="^generation targets"):
        new_config_from_old_config(old, CommandFlags())


def test_detect_package_name_keeps_existing():
    config = Configuration(package_name="api")
    assert detect_package_name(config, "whatever.yaml") == "api"
    assert config.package_name == "api"


def test_detect_package_name_from_spec_file():
    config = Configuration()
    assert detect_package_name(config, "/some/dir/api.yaml") == "api"
    config = Configuration()
    detect_package_name(config, "petstore-expanded.yaml")
    assert config.package_name == "petstoreExpanded"


def test_load_configuration_defaults_without_file():
    config = load_configuration(CommandFlags(spec_path="api.yaml"))
    assert config.generate == GenerateOptions(
        echo_server=True, client=True, models=True, embedded_spec=True
    )
    assert config.package_name == "api"


def test_load_configuration_new_style_file(tmp_path):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("package: api\ngenerate:\n  chi-server: true\noutput: out.go\n")
    config = load_configuration(CommandFlags(config_file=str(cfg), spec_path="spec.yaml"))
    assert config.package_name == "api"
    assert config.generate == GenerateOptions(chi_server=True)
    assert config.output_file == "out.go"


def test_load_configuration_old_style_file(tmp_path):
    cfg = tmp_path / "cfg.yaml"
    cfg.write_text("package: mypkg\ngenerate:\n  - models\n  - skip-prune\n")
    config = load_configuration(CommandFlags(config_file=str(cfg), spec_path="spec.yaml"))
    assert config.package_name == "mypkg"
    assert config.generate == GenerateOptions(models=True)
    assert config.output_options.skip_prune is True


def test_load_configuration_missing_file(tmp_path):
    flags = CommandFlags(config_file=str(tmp_path / "nope.yaml"), spec_path="spec.yaml")
    with pytest.raises(ConfigError, match="error reading config file"):
        load_configuration(flags)