"""Load settings.yaml into typed dataclasses. Detects available API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class PromptsConfig:
    initial: str
    review: str
    synthesis: str
    personas: dict[str, str] = field(default_factory=dict)


@dataclass
class DefaultsConfig:
    timeout_sec: float
    output_dir: Path
    aggregator: str
    default_panel: list[str] = field(default_factory=list)
    full_panel: list[str] = field(default_factory=list)
    verbose: bool = False


@dataclass
class InboxConfig:
    dir: Path = Path("./inbox")
    archive_dir: Path = Path("./inbox/archive")


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    prompts: PromptsConfig
    inbox: InboxConfig = field(default_factory=InboxConfig)
    available_providers: set[str] = field(default_factory=set)


def _require(section: dict[str, Any], key: str, where: str) -> Any:
    if key not in section:
        raise ValueError(f"Missing required setting: {where}.{key}")
    return section[key]


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if a
    required setting is absent. Logs missing API keys but does not raise;
    callers check available_providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    defaults_raw = _require(raw, "defaults", "settings")
    defaults = DefaultsConfig(
        timeout_sec=float(_require(defaults_raw, "timeout_sec", "defaults")),
        output_dir=Path(_require(defaults_raw, "output_dir", "defaults")),
        aggregator=str(_require(defaults_raw, "aggregator", "defaults")),
        default_panel=list(defaults_raw.get("default_panel", [])),
        full_panel=list(defaults_raw.get("full_panel", [])),
        verbose=bool(defaults_raw.get("verbose", False)),
    )

    prompts_raw = _require(raw, "prompts", "settings")
    personas_raw = raw.get("personas") or {}
    prompts = PromptsConfig(
        initial=_require(prompts_raw, "initial", "prompts"),
        review=_require(prompts_raw, "review", "prompts"),
        synthesis=_require(prompts_raw, "synthesis", "prompts"),
        personas={k: str(v) for k, v in personas_raw.items()},
    )

    inbox_raw = raw.get("inbox") or {}
    inbox = InboxConfig()
    if "dir" in inbox_raw:
        inbox.dir = Path(inbox_raw["dir"])
        inbox.archive_dir = inbox.dir / "archive"
    if "archive_dir" in inbox_raw:
        inbox.archive_dir = Path(inbox_raw["archive_dir"])

    models: dict[str, ModelConfig] = {}
    available_providers: set[str] = set()

    for provider_name, model_raw in _require(raw, "models", "settings").items():
        where = f"models.{provider_name}"
        model_cfg = ModelConfig(
            name=provider_name,
            sdk=_require(model_raw, "sdk", where),
            model=_require(model_raw, "model", where),
            api_key_env=_require(model_raw, "api_key_env", where),
            timeout_sec=int(_require(model_raw, "timeout_sec", where)),
            max_tokens=int(_require(model_raw, "max_tokens", where)),
            base_url=model_raw.get("base_url"),
        )
        models[provider_name] = model_cfg

        api_key = os.environ.get(model_cfg.api_key_env, "").strip()
        if api_key:
            available_providers.add(provider_name)
            logger.info("Provider available: %s", provider_name)
        else:
            logger.info(
                "Provider skipped (no API key): %s, set %s in .env",
                provider_name,
                model_cfg.api_key_env,
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        prompts=prompts,
        inbox=inbox,
        available_providers=available_providers,
    )
