"""Typed pipeline configuration.

The whole pipeline is driven by one frozen `PipelineConfig`, built from
`tagrel.toml` and handed to the orchestrator at construction. Services never
read the process environment; credentials are plain fields filled in by the
CLI.

Example `tagrel.toml`:

    [trigger]
    tag_pattern = "v*"

    [build]
    command = ["make", "build-{profile}"]

    [[build.artifacts]]
    path = "target/release/kvs"
    name = "kvs"

    [release]
    policy = "skip-if-exists"

    [docs]
    output_dir = "target/doc/simple_kv"
    branch = "gh-pages"

    [cache.scopes]
    cargo-build = "target"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, cast

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_bool, get_str, get_str_list, get_table

__all__ = [
    "ArtifactSpec",
    "BuildConfig",
    "CacheConfig",
    "ConfigError",
    "DocsConfig",
    "PipelineConfig",
    "ReleaseConfig",
    "ReleasePolicy",
    "TriggerConfig",
    "CONFIG_FILE_NAME",
    "RELEASE_POLICIES",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILE_NAME = "tagrel.toml"

ReleasePolicy = Literal["fail", "skip-if-exists", "overwrite-assets"]
RELEASE_POLICIES: tuple[ReleasePolicy, ...] = ("fail", "skip-if-exists", "overwrite-assets")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class TriggerConfig:
    tag_pattern: str = "v*"


@dataclass(frozen=True, slots=True)
class ArtifactSpec:
    """A file the build produces at a known relative path."""

    path: str
    name: str
    content_type: str = DEFAULT_CONTENT_TYPE


def _default_artifacts() -> tuple[ArtifactSpec, ...]:
    return (ArtifactSpec(path="target/release/kvs", name="kvs"),)


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Build toolchain invocation.

    `{profile}` in any command argument is replaced with the build profile.
    """

    command: tuple[str, ...] = ("make", "build-{profile}")
    profile: str = "release"
    artifacts: tuple[ArtifactSpec, ...] = field(default_factory=_default_artifacts)
    timeout_seconds: float | None = None


@dataclass(frozen=True, slots=True)
class ReleaseConfig:
    # owner/name; None lets gh infer the repo from the checkout
    repo: str | None = None
    title_template: str = "Release {tag}"
    draft: bool = False
    prerelease: bool = False
    policy: ReleasePolicy = "fail"


@dataclass(frozen=True, slots=True)
class DocsConfig:
    enabled: bool = True
    command: tuple[str, ...] = ("cargo", "doc", "--all-features", "--no-deps")
    output_dir: str = "target/doc"
    branch: str = "gh-pages"
    remote: str = "origin"
    # docs failure after a public release degrades to partial success
    isolate: bool = True
    timeout_seconds: float | None = None


def _default_scopes() -> dict[str, str]:
    return {
        "cargo-registry": "~/.cargo/registry",
        "cargo-index": "~/.cargo/git",
        "cargo-build": "target",
    }


@dataclass(frozen=True, slots=True)
class CacheConfig:
    enabled: bool = True
    dir: str = ".tagrel-cache"
    # None: derived from the host platform (e.g. "linux")
    environment_class: str | None = None
    scopes: dict[str, str] = field(default_factory=_default_scopes)


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Main configuration container."""

    trigger: TriggerConfig = field(default_factory=TriggerConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    release: ReleaseConfig = field(default_factory=ReleaseConfig)
    docs: DocsConfig = field(default_factory=DocsConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    hosting_credential: str | None = field(default=None, repr=False)
    deploy_credential: str | None = field(default=None, repr=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PipelineConfig:
        """Create PipelineConfig from a parsed TOML mapping.

        Raises:
            ValueError: On values of the right type but an unknown meaning.
        """
        trigger: StrDict = get_table(data, "trigger") or {}
        build: StrDict = get_table(data, "build") or {}
        release: StrDict = get_table(data, "release") or {}
        docs: StrDict = get_table(data, "docs") or {}
        cache: StrDict = get_table(data, "cache") or {}

        defaults = cls()

        policy = get_str(release, "policy") or defaults.release.policy
        if policy not in RELEASE_POLICIES:
            raise ValueError(f"unknown release policy: {policy}")

        build_cmd = get_str_list(build, "command")
        docs_cmd = get_str_list(docs, "command")

        return cls(
            trigger=TriggerConfig(
                tag_pattern=get_str(trigger, "tag_pattern") or defaults.trigger.tag_pattern,
            ),
            build=BuildConfig(
                command=tuple(build_cmd) if build_cmd else defaults.build.command,
                profile=get_str(build, "profile") or defaults.build.profile,
                artifacts=_parse_artifacts(build) or defaults.build.artifacts,
                timeout_seconds=_get_seconds(build, "timeout_seconds"),
            ),
            release=ReleaseConfig(
                repo=get_str(release, "repo"),
                title_template=get_str(release, "title_template")
                or defaults.release.title_template,
                draft=_bool_or(release, "draft", defaults.release.draft),
                prerelease=_bool_or(release, "prerelease", defaults.release.prerelease),
                policy=cast(ReleasePolicy, policy),
            ),
            docs=DocsConfig(
                enabled=_bool_or(docs, "enabled", defaults.docs.enabled),
                command=tuple(docs_cmd) if docs_cmd else defaults.docs.command,
                output_dir=get_str(docs, "output_dir") or defaults.docs.output_dir,
                branch=get_str(docs, "branch") or defaults.docs.branch,
                remote=get_str(docs, "remote") or defaults.docs.remote,
                isolate=_bool_or(docs, "isolate", defaults.docs.isolate),
                timeout_seconds=_get_seconds(docs, "timeout_seconds"),
            ),
            cache=CacheConfig(
                enabled=_bool_or(cache, "enabled", defaults.cache.enabled),
                dir=get_str(cache, "dir") or defaults.cache.dir,
                environment_class=get_str(cache, "environment_class"),
                scopes=_parse_scopes(cache) or defaults.cache.scopes,
            ),
        )


def _bool_or(table: Mapping[str, object], key: str, default: bool) -> bool:
    value = get_bool(table, key)
    return default if value is None else value


def _get_seconds(table: Mapping[str, object], key: str) -> float | None:
    value = table.get(key)
    if value is None:
        return None
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    if value <= 0:
        raise ValueError(f"{key} must be positive")
    return float(value)


def _parse_artifacts(build: Mapping[str, object]) -> tuple[ArtifactSpec, ...]:
    raw = build.get("artifacts")
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError("build.artifacts must be an array of tables")

    out: list[ArtifactSpec] = []
    for item in cast(list[object], raw):
        tbl = as_str_dict(item)
        if tbl is None:
            raise ValueError("build.artifacts entries must be tables")
        path = get_str(tbl, "path")
        if path is None:
            raise ValueError("build.artifacts entry is missing 'path'")
        out.append(
            ArtifactSpec(
                path=path,
                name=get_str(tbl, "name") or Path(path).name,
                content_type=get_str(tbl, "content_type") or DEFAULT_CONTENT_TYPE,
            )
        )
    return tuple(out)


def _parse_scopes(cache: Mapping[str, object]) -> dict[str, str]:
    scopes = get_table(cache, "scopes")
    if scopes is None:
        return {}
    out: dict[str, str] = {}
    for name in scopes:
        path = get_str(scopes, name)
        if path is None:
            raise ValueError(f"cache scope '{name}' must map to a path")
        out[name] = path
    return out


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling import and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[PipelineConfig, ConfigError]:
    """Load and parse `tagrel.toml`.

    Args:
        path: Path to the config file

    Returns:
        Ok(PipelineConfig) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(PipelineConfig.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[PipelineConfig, ConfigError]:
    """Load config if the file exists, else return the defaults.

    A file that exists but is invalid is still an error.
    """
    if not path.exists():
        return Ok(PipelineConfig())
    return load_config(path)
