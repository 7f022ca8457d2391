from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import pandas as pd
import yaml
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TAG_STOP_WORDS = [
    "通过",
    "拒绝",
    "待审",
    "送审",
    "null",
    "无",
    "内容涉及",
    "请修改后重试",
]

DEFAULT_STRATEGY_NAMES = {
    "huiboxing_wenxin_model": "huiboxing文心大模型",
    "service_digital_human_check": "数字人物料机审",
    "service_sync_word": "业务线词表策略",
    "qr_code_detect": "二维码图片识别模型",
    "sensitive_img_model": "敏感图片模型",
    "img_ocr_strategy": "图片ocr策略",
    "service_variant_word_check": "习彭变体词表",
    "duxiaodian_review": "度小店审核",
    "service_short_text_check": "短文本机审",
    "sensitive_hardface": "敏感人脸模型",
    "service_word_3s_check": "3S敏感词策略",
}


class ColumnsConfig(BaseModel):
    review_time: str = "异步机审入审时间"
    sync_machine_status: str = "同步机审状态"
    async_machine_status: str = "异步机审状态"
    human_status: str = "人审状态"
    sync_strategies: str = "同步机审命中策略"
    async_strategies: str = "异步机审命中策略"
    human_tags: str = "人审标签"


class StatusConfig(BaseModel):
    reject: str = "拒绝"
    pending: str = "待审"


class MappingsConfig(BaseModel):
    strategy_names: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_STRATEGY_NAMES))
    tag_merge: dict[str, str] = Field(default_factory=dict)
    strategy_names_path: str | None = None
    tag_merge_path: str | None = None


class AnalysisConfig(BaseModel):
    """Everything the core pipeline reads while classifying and aggregating rows."""

    model_config = ConfigDict(frozen=True)

    columns: ColumnsConfig = Field(default_factory=ColumnsConfig)
    status: StatusConfig = Field(default_factory=StatusConfig)
    strategy_delimiter: str = "&&"
    tag_split_pattern: str = r"&&|\$\$|\+|[,\s，]+"
    tag_stop_words: list[str] = Field(default_factory=lambda: list(DEFAULT_TAG_STOP_WORDS))
    strategy_names: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_STRATEGY_NAMES))
    tag_merge: dict[str, str] = Field(default_factory=dict)
    black_sample_formula: Literal["machine_reject", "recall"] = "machine_reject"
    noise_min_peak_volume: int = Field(default=100, ge=0)
    noise_floor: float = Field(default=5.0, ge=0.0)
    noise_ratio: float = Field(default=0.005, ge=0.0, le=1.0)
    top_tags: int = Field(default=35, ge=1)


class RollupConfig(BaseModel):
    noise_min_peak_volume: int = Field(default=100, ge=0)
    noise_floor: float = Field(default=5.0, ge=0.0)
    noise_ratio: float = Field(default=0.005, ge=0.0, le=1.0)
    top_tags: int = Field(default=35, ge=1)


class InputConfig(BaseModel):
    encoding: Literal["utf-8", "utf-8-sig", "gbk", "gb18030"] = "utf-8-sig"
    max_rows: int = Field(default=2_000_000, ge=1)


class OutputsConfig(BaseModel):
    markdown: bool = True
    html: bool = True
    summary_json: bool = True


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    columns: ColumnsConfig = Field(default_factory=ColumnsConfig)
    status: StatusConfig = Field(default_factory=StatusConfig)
    tag_stop_words: list[str] = Field(default_factory=lambda: list(DEFAULT_TAG_STOP_WORDS))
    mappings: MappingsConfig = Field(default_factory=MappingsConfig)
    black_sample_formula: Literal["machine_reject", "recall"] = "machine_reject"
    rollup: RollupConfig = Field(default_factory=RollupConfig)
    input: InputConfig = Field(default_factory=InputConfig)
    outputs: OutputsConfig = Field(default_factory=OutputsConfig)

    def analysis(self) -> AnalysisConfig:
        strategy_names = dict(self.mappings.strategy_names)
        strategy_names.update(_load_mapping_table(self.mappings.strategy_names_path))
        tag_merge = dict(self.mappings.tag_merge)
        tag_merge.update(_load_mapping_table(self.mappings.tag_merge_path))
        return AnalysisConfig(
            columns=self.columns,
            status=self.status,
            tag_stop_words=list(self.tag_stop_words),
            strategy_names=strategy_names,
            tag_merge=tag_merge,
            black_sample_formula=self.black_sample_formula,
            noise_min_peak_volume=self.rollup.noise_min_peak_volume,
            noise_floor=self.rollup.noise_floor,
            noise_ratio=self.rollup.noise_ratio,
            top_tags=self.rollup.top_tags,
        )


DEFAULT_CONFIG_PATH = Path("configs/default.yaml")
ENCODING_ENV_VAR = "MODERATION_AUDIT_ENCODING"


def _resolve_optional_path(path_value: str | None, base_dir: Path) -> str | None:
    if not path_value:
        return None
    candidate = Path(path_value)
    if candidate.is_absolute():
        return str(candidate)
    return str((base_dir / candidate).resolve())


def _load_mapping_table(path: str | None) -> dict[str, str]:
    """Read a two-column CSV (raw code, display name) into a lookup table."""
    if not path:
        return {}
    file_path = Path(path)
    if not file_path.exists():
        raise ValueError(f"Mapping table not found: {file_path}")

    frame = pd.read_csv(file_path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    if len(frame.columns) < 2:
        raise ValueError(f"Mapping table needs two columns: {file_path}")
    mapping: dict[str, str] = {}
    for raw, display in zip(frame.iloc[:, 0], frame.iloc[:, 1]):
        raw = raw.strip()
        display = display.strip()
        if raw and display:
            mapping[raw] = display
    return mapping


def load_config(path: Path) -> AppConfig:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    config = AppConfig.model_validate(data)
    base_dir = path.resolve().parent

    config.mappings.strategy_names_path = _resolve_optional_path(
        config.mappings.strategy_names_path,
        base_dir,
    )
    config.mappings.tag_merge_path = _resolve_optional_path(
        config.mappings.tag_merge_path,
        base_dir,
    )
    env_encoding = os.getenv(ENCODING_ENV_VAR)
    if env_encoding:
        config.input = InputConfig.model_validate(
            {**config.input.model_dump(), "encoding": env_encoding.strip().lower()}
        )
    return config
