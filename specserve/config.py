"""Configuration handling for the code generator command line.

Two configuration file layouts are understood: the current layout, where
generation targets are a mapping of switches and output settings live under
``output-options``, and an older flat layout that is converted on load.
Command line flags are merged into whichever layout is in use.
"""

from __future__ import annotations

import os
import posixpath
import re
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any

import yaml

DEFAULT_GENERATE = "types,client,server,spec"

# Flags whose presence means the caller is relying on the older layout.
DEPRECATED_FLAGS = frozenset(
    {
        "include-tags",
        "exclude-tags",
        "import-mapping",
        "exclude-schemas",
        "response-type-suffix",
        "alias-types",
    }
)


class ConfigError(Exception):
    """Raised when configuration cannot be read, parsed or combined."""


def _opt(key: str, kind: Any, **kwargs: Any) -> Any:
    return field(metadata={"key": key, "kind": kind}, **kwargs)


@dataclass
class GenerateOptions:
    """Which pieces of code to generate."""

    iris_server: bool = _opt("iris-server", "bool", default=False)
    chi_server: bool = _opt("chi-server", "bool", default=False)
    fiber_server: bool = _opt("fiber-server", "bool", default=False)
    echo_server: bool = _opt("echo-server", "bool", default=False)
    gin_server: bool = _opt("gin-server", "bool", default=False)
    gorilla_server: bool = _opt("gorilla-server", "bool", default=False)
    std_http_server: bool = _opt("std-http-server", "bool", default=False)
    strict: bool = _opt("strict-server", "bool", default=False)
    client: bool = _opt("client", "bool", default=False)
    models: bool = _opt("models", "bool", default=False)
    embedded_spec: bool = _opt("embedded-spec", "bool", default=False)


@dataclass
class OutputOptions:
    """Settings that shape the generated output."""

    skip_fmt: bool = _opt("skip-fmt", "bool", default=False)
    skip_prune: bool = _opt("skip-prune", "bool", default=False)
    include_tags: list[str] = _opt("include-tags", "list", default_factory=list)
    exclude_tags: list[str] = _opt("exclude-tags", "list", default_factory=list)
    include_operation_ids: list[str] = _opt(
        "include-operation-ids", "list", default_factory=list
    )
    exclude_operation_ids: list[str] = _opt(
        "exclude-operation-ids", "list", default_factory=list
    )
    user_templates: dict[str, str] = _opt("user-templates", "map", default_factory=dict)
    exclude_schemas: list[str] = _opt("exclude-schemas", "list", default_factory=list)
    response_type_suffix: str = _opt("response-type-suffix", "str", default="")
    initialism_overrides: bool = _opt("initialism-overrides", "bool", default=False)


@dataclass
class Configuration:
    """The current configuration layout, including the output file."""

    package_name: str = _opt("package", "str", default="")
    generate: GenerateOptions = _opt("generate", GenerateOptions, default_factory=GenerateOptions)
    compatibility: dict[str, Any] = _opt("compatibility", "mapping", default_factory=dict)
    output_options: OutputOptions = _opt(
        "output-options", OutputOptions, default_factory=OutputOptions
    )
    import_mapping: dict[str, str] = _opt("import-mapping", "map", default_factory=dict)
    output_file: str = _opt("output", "str", default="")

    def to_dict(self) -> dict[str, Any]:
        """Return the configuration as plain data, leaving out empty values."""
        return _encode(self)

    def to_yaml(self) -> str:
        """Return the configuration as a YAML document."""
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    @classmethod
    def from_dict(cls, data: Any) -> Configuration:
        """Build a configuration, rejecting unknown keys and wrong types."""
        return _decode(cls, data, strict=True, where="configuration")


@dataclass
class OldConfiguration:
    """The older, flat configuration layout."""

    package_name: str = _opt("package", "str", default="")
    generate_targets: list[str] | None = _opt("generate", "list", default=None)
    output_file: str = _opt("output", "str", default="")
    include_tags: list[str] | None = _opt("include-tags", "list", default=None)
    exclude_tags: list[str] | None = _opt("exclude-tags", "list", default=None)
    include_operation_ids: list[str] | None = _opt(
        "include-operation-ids", "list", default=None
    )
    exclude_operation_ids: list[str] | None = _opt(
        "exclude-operation-ids", "list", default=None
    )
    templates_dir: str = _opt("templates", "str", default="")
    import_mapping: dict[str, str] | None = _opt("import-mapping", "map", default=None)
    exclude_schemas: list[str] | None = _opt("exclude-schemas", "list", default=None)
    response_type_suffix: str = _opt("response-type-suffix", "str", default="")
    compatibility: dict[str, Any] = _opt("compatibility", "mapping", default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> OldConfiguration:
        """Build an old-layout configuration, rejecting unknown keys and wrong types."""
        return _decode(cls, data, strict=True, where="old configuration")


@dataclass
class CommandFlags:
    """Values given on the command line; ``set_flags`` names those given explicitly."""

    spec_path: str = ""
    output_file: str = ""
    config_file: str = ""
    old_config_style: bool = False
    output_config: bool = False
    print_version: bool = False
    package_name: str = ""
    print_usage: bool = False
    generate: str = DEFAULT_GENERATE
    templates_dir: str = ""
    include_tags: str = ""
    exclude_tags: str = ""
    include_operation_ids: str = ""
    exclude_operation_ids: str = ""
    import_mapping: str = ""
    exclude_schemas: str = ""
    response_type_suffix: str = ""
    alias_types: bool = False
    initialism_overrides: bool = False
    set_flags: frozenset[str] = frozenset()


def _describe(value: Any) -> str:
    return f"{type(value).__name__} {value!r}"


def _convert(raw: Any, kind: Any, *, strict: bool, where: str) -> Any:
    if isinstance(kind, type) and is_dataclass(kind):
        return _decode(kind, raw, strict=strict, where=where)
    if kind == "str":
        if not isinstance(raw, str):
            raise ConfigError(f"{where}: cannot read {_describe(raw)} as a string")
        return raw
    if kind == "bool":
        if not isinstance(raw, bool):
            raise ConfigError(f"{where}: cannot read {_describe(raw)} as a boolean")
        return raw
    if kind == "list":
        if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
            raise ConfigError(f"{where}: cannot read {_describe(raw)} as a list of strings")
        return list(raw)
    if kind == "map":
        if not isinstance(raw, Mapping) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in raw.items()
        ):
            raise ConfigError(f"{where}: cannot read {_describe(raw)} as a string mapping")
        return dict(raw)
    if kind == "mapping":
        if not isinstance(raw, Mapping):
            raise ConfigError(f"{where}: cannot read {_describe(raw)} as a mapping")
        return dict(raw)
    raise ConfigError(f"{where}: unsupported field kind {kind!r}")


def _decode(cls: type, data: Any, *, strict: bool, where: str) -> Any:
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"{where}: expected a mapping, got {_describe(data)}")
    by_key = {f.metadata["key"]: f for f in fields(cls) if "key" in f.metadata}
    values: dict[str, Any] = {}
    for key, raw in data.items():
        spec = by_key.get(key) if isinstance(key, str) else None
        if spec is None:
            if strict:
                raise ConfigError(f"{where}: field {key!r} not found")
            continue
        if raw is None:
            continue
        values[spec.name] = _convert(
            raw, spec.metadata["kind"], strict=strict, where=f"{where}.{key}"
        )
    return cls(**values)


def _encode(obj: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for spec in fields(obj):
        if "key" not in spec.metadata:
            continue
        value = getattr(obj, spec.name)
        if is_dataclass(value):
            value = _encode(value)
        elif isinstance(value, list):
            value = list(value)
        elif isinstance(value, dict):
            value = dict(value)
        if not value:
            continue
        out[spec.metadata["key"]] = value
    return out


def _load_yaml(text: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(str(exc)) from exc


def parse_command_line_list(value: str) -> list[str]:
    """Split a comma separated flag value into trimmed, non-empty items."""
    return [item.strip() for item in value.split(",") if item.strip()]


def _parse_command_line_map(value: str) -> dict[str, str]:
    """Parse ``key:value`` pairs separated by commas."""
    result: dict[str, str] = {}
    for entry in parse_command_line_list(value):
        key, sep, mapped = entry.partition(":")
        if not sep or not key.strip():
            raise ConfigError(f"failed to parse {entry!r} as a key:value pair")
        result[key.strip()] = mapped.strip()
    return result


_TARGETS = {
    "iris": "iris_server",
    "iris-server": "iris_server",
    "chi-server": "chi_server",
    "chi": "chi_server",
    "fiber-server": "fiber_server",
    "fiber": "fiber_server",
    "server": "echo_server",
    "echo-server": "echo_server",
    "echo": "echo_server",
    "gin": "gin_server",
    "gin-server": "gin_server",
    "gorilla": "gorilla_server",
    "gorilla-server": "gorilla_server",
    "std-http": "std_http_server",
    "std-http-server": "std_http_server",
    "strict-server": "strict",
    "client": "client",
    "types": "models",
    "models": "models",
    "spec": "embedded_spec",
    "embedded-spec": "embedded_spec",
}

_OUTPUT_TARGETS = {"skip-fmt": "skip_fmt", "skip-prune": "skip_prune"}


def generation_targets(config: Configuration, targets: list[str]) -> None:
    """Replace the generation switches of ``config`` with the named targets."""
    chosen: dict[str, bool] = {}
    for target in targets:
        if target in _TARGETS:
            chosen[_TARGETS[target]] = True
        elif target in _OUTPUT_TARGETS:
            setattr(config.output_options, _OUTPUT_TARGETS[target], True)
        else:
            raise ConfigError(f"unknown generate option {target!r}")
    config.generate = GenerateOptions(**chosen)


def load_template_overrides(templates_dir: str) -> dict[str, str]:
    """Read every file below ``templates_dir``, keyed by its relative path."""
    templates: dict[str, str] = {}
    if not templates_dir:
        return templates
    with os.scandir(templates_dir) as entries:
        ordered = sorted(entries, key=lambda entry: entry.name)
    for entry in ordered:
        if entry.is_dir():
            for sub_path, content in load_template_overrides(entry.path).items():
                templates[posixpath.join(entry.name, sub_path)] = content
            continue
        templates[entry.name] = Path(entry.path).read_text(encoding="utf-8")
    return templates


def _try_parse(cls: type, data: Any) -> Exception | None:
    try:
        cls.from_dict(data)
    except ConfigError as exc:
        return exc
    return None


def detect_config_style(text: str | None, flags: CommandFlags) -> bool:
    """Return True when the older configuration layout is in use."""
    if flags.old_config_style:
        return True
    if text is not None:
        try:
            data = _load_yaml(text)
        except ConfigError as exc:
            old_error: Exception | None = exc
            new_error: Exception | None = exc
        else:
            old_error = _try_parse(OldConfiguration, data)
            new_error = _try_parse(Configuration, data)
        if old_error is not None and new_error is None:
            return False
        if old_error is None and new_error is not None:
            return True
        if old_error is not None and new_error is not None:
            raise ConfigError(
                "error parsing configuration style as old version or new version\n\n"
                f"error when parsing using old config version:\n{old_error}\n\n"
                f"error when parsing using new config version:\n{new_error}"
            )
    return bool(DEPRECATED_FLAGS & flags.set_flags)


def update_config_from_flags(config: Configuration, flags: CommandFlags) -> None:
    """Let command line flags override values read from the configuration file."""
    if flags.package_name:
        config.package_name = flags.package_name
    if flags.generate != DEFAULT_GENERATE:
        generation_targets(config, parse_command_line_list(flags.generate))
    options = config.output_options
    if flags.include_tags:
        options.include_tags = parse_command_line_list(flags.include_tags)
    if flags.exclude_tags:
        options.exclude_tags = parse_command_line_list(flags.exclude_tags)
    if flags.include_operation_ids:
        options.include_operation_ids = parse_command_line_list(flags.include_operation_ids)
    if flags.exclude_operation_ids:
        options.exclude_operation_ids = parse_command_line_list(flags.exclude_operation_ids)
    if flags.templates_dir:
        try:
            options.user_templates = load_template_overrides(flags.templates_dir)
        except OSError as exc:
            raise ConfigError(f"load templates from {flags.templates_dir!r}: {exc}") from exc
    if flags.import_mapping:
        config.import_mapping = _parse_command_line_map(flags.import_mapping)
    if flags.exclude_schemas:
        options.exclude_schemas = parse_command_line_list(flags.exclude_schemas)
    if flags.response_type_suffix:
        options.response_type_suffix = flags.response_type_suffix
    if flags.alias_types:
        raise ConfigError("--alias-types isn't supported any more")
    if not config.output_file:
        config.output_file = flags.output_file
    options.initialism_overrides = flags.initialism_overrides


def update_old_config_from_flags(old: OldConfiguration, flags: CommandFlags) -> OldConfiguration:
    """Fill values missing from an old-layout file with flag values."""
    changes: dict[str, Any] = {}
    if not old.package_name:
        changes["package_name"] = flags.package_name
    if old.generate_targets is None:
        changes["generate_targets"] = parse_command_line_list(flags.generate)
    if old.include_tags is None:
        changes["include_tags"] = parse_command_line_list(flags.include_tags)
    if old.exclude_tags is None:
        changes["exclude_tags"] = parse_command_line_list(flags.exclude_tags)
    if not old.templates_dir:
        changes["templates_dir"] = flags.templates_dir
    if old.import_mapping is None and flags.import_mapping:
        try:
            changes["import_mapping"] = _parse_command_line_map(flags.import_mapping)
        except ConfigError as exc:
            raise ConfigError(f"error parsing import-mapping: {exc}") from exc
    if old.exclude_schemas is None:
        changes["exclude_schemas"] = parse_command_line_list(flags.exclude_schemas)
    if not old.output_file:
        changes["output_file"] = flags.output_file
    return replace(old, **changes)


def new_config_from_old_config(old: OldConfiguration, flags: CommandFlags) -> Configuration:
    """Convert an old-layout configuration, with flags applied, to the current layout."""
    merged = update_old_config_from_flags(old, flags)
    config = Configuration(package_name=merged.package_name)
    config.output_options.response_type_suffix = flags.response_type_suffix
    try:
        generation_targets(config, list(merged.generate_targets or []))
    except ConfigError as exc:
        raise ConfigError(f"generation targets: {exc}") from exc
    config.output_options.include_tags = list(merged.include_tags or [])
    config.output_options.exclude_tags = list(merged.exclude_tags or [])
    config.output_options.exclude_schemas = list(merged.exclude_schemas or [])
    try:
        config.output_options.user_templates = load_template_overrides(merged.templates_dir)
    except OSError as exc:
        raise ConfigError(f"loading template overrides: {exc}") from exc
    config.import_mapping = dict(merged.import_mapping or {})
    config.compatibility = dict(merged.compatibility)
    config.output_file = merged.output_file
    return config


def _to_camel_case(text: str) -> str:
    parts = [part for part in re.split(r"[^A-Za-z0-9]+", text) if part]
    return "".join(part[:1].upper() + part[1:] for part in parts)


def _lowercase_first(text: str) -> str:
    return text[:1].lower() + text[1:]


def detect_package_name(config: Configuration, spec_path: str) -> str:
    """Fill in the package name if missing and return it."""
    if config.package_name:
        return config.package_name

    if config.output_file:
        directory = os.path.dirname(config.output_file) or "."
        try:
            proc = subprocess.run(
                ["go", "list", "-f", "{{.Name}}", directory],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise ConfigError(f"detect package name for {directory!r} output: {exc}") from exc
        output = proc.stdout + proc.stderr
        if proc.returncode == 0:
            config.package_name = output.strip()
            return config.package_name
        ignorable = "expected 'package', found 'EOF'" in output or output.startswith(
            "no Go files in"
        )
        if not ignorable:
            raise ConfigError(
                f"detect package name for {directory!r} output: {output!r}: "
                f"exit status {proc.returncode}"
            )

    stem = os.path.basename(spec_path).split(".")[0]
    config.package_name = _lowercase_first(_to_camel_case(stem))
    return config.package_name


def _read_config_file(path: str) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"error reading config file '{path}': {exc}") from exc


def load_configuration(flags: CommandFlags) -> Configuration:
    """Read the configuration file, merge flags and return the final configuration."""
    text = _read_config_file(flags.config_file) if flags.config_file else None
    old_style = detect_config_style(text, flags)

    if not old_style:
        if text is not None:
            try:
                config = _decode(
                    Configuration, _load_yaml(text), strict=False, where="configuration"
                )
            except ConfigError as exc:
                raise ConfigError(f"error parsing '{flags.config_file}' as YAML: {exc}") from exc
        else:
            config = Configuration(
                generate=GenerateOptions(
                    echo_server=True, client=True, models=True, embedded_spec=True
                ),
                output_file=flags.output_file,
            )
        try:
            update_config_from_flags(config, flags)
        except ConfigError as exc:
            raise ConfigError(f"error processing flags: {exc}") from exc
    else:
        old = OldConfiguration()
        if text is not None:
            try:
                old = _decode(
                    OldConfiguration, _load_yaml(text), strict=False, where="old configuration"
                )
            except ConfigError as exc:
                raise ConfigError(f"error parsing '{flags.config_file}' as YAML: {exc}") from exc
        try:
            config = new_config_from_old_config(old, flags)
        except ConfigError as exc:
            raise ConfigError(f"error creating new config from old config: {exc}") from exc

    detect_package_name(config, flags.spec_path)
    return config