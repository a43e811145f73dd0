#!/usr/bin/env python3
"""
Gopher Geometry 設定管理システム

円柱生成・制約分類・リメッシュ・変形の各段で使用される設定値を
統一管理し、Magic Numberのハードコーディングを解消します。
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
import yaml

from . import get_logger
from .constants import (
    BASE_MAX_EDGE_LENGTH,
    BASE_MIN_EDGE_LENGTH,
    BOTTOM_PIN_TOLERANCE,
    DEFAULT_CYLINDER_SCALE,
    DEFAULT_PIN_WEIGHT,
    DEFAULT_REMESH_PASSES,
    DEFAULT_SMOOTH_SPEED,
    GROUP_PLANE_AXIS,
    GROUP_PLANE_OFFSET,
    HANDLE_OFFSET,
    HANDLE_QUERY_POINT,
    LOWER_GROUP_ID,
    REMESH_SOURCE_SLICES,
    SHARP_EDGE_ANGLE_DEG,
    UPPER_GROUP_ID,
)
from .data_types import InvalidParameterError

logger = get_logger(__name__)


@dataclass
class GeneratorConfig:
    """円柱生成設定"""
    slices: int = REMESH_SOURCE_SLICES
    no_shared_vertices: bool = False
    hole: bool = False
    scale: Tuple[float, float, float] = DEFAULT_CYLINDER_SCALE


@dataclass
class ConstraintConfig:
    """鋭角エッジ分類設定"""
    sharp_angle_deg: float = SHARP_EDGE_ANGLE_DEG
    group_axis: int = GROUP_PLANE_AXIS          # グループ判定の座標軸
    group_plane: float = GROUP_PLANE_OFFSET     # この値より上が upper_group_id
    upper_group_id: int = UPPER_GROUP_ID
    lower_group_id: int = LOWER_GROUP_ID


@dataclass
class RemeshConfig:
    """リメッシュ設定"""
    # エッジ長（resolution_factor 倍して使用）
    base_min_edge_length: float = BASE_MIN_EDGE_LENGTH
    base_max_edge_length: float = BASE_MAX_EDGE_LENGTH
    resolution_factor: float = 1.0

    smooth_speed: float = DEFAULT_SMOOTH_SPEED
    passes: int = DEFAULT_REMESH_PASSES

    # 編集操作の有効化
    enable_flips: bool = True
    enable_splits: bool = True
    enable_collapses: bool = True
    enable_smoothing: bool = True
    enable_projection: bool = True

    @property
    def min_edge_length(self) -> float:
        return self.base_min_edge_length * self.resolution_factor

    @property
    def max_edge_length(self) -> float:
        return self.base_max_edge_length * self.resolution_factor


@dataclass
class DeformConfig:
    """変形設定"""
    pin_weight: float = DEFAULT_PIN_WEIGHT
    bottom_tolerance: float = BOTTOM_PIN_TOLERANCE   # 最下点からこの範囲をピン留め
    handle_query_point: Tuple[float, float, float] = HANDLE_QUERY_POINT
    handle_offset: Tuple[float, float, float] = HANDLE_OFFSET
    handle_weight: float = DEFAULT_PIN_WEIGHT


@dataclass
class GopherConfig:
    """プロジェクト全体設定"""
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    constraints: ConstraintConfig = field(default_factory=ConstraintConfig)
    remesh: RemeshConfig = field(default_factory=RemeshConfig)
    deform: DeformConfig = field(default_factory=DeformConfig)

    def validate(self) -> None:
        """
        入力パラメータを検証

        Raises:
            InvalidParameterError: 不正な値
        """
        gen = self.generator
        if isinstance(gen.slices, bool) or not isinstance(gen.slices, int) or gen.slices < 3:
            raise InvalidParameterError("generator.slices", gen.slices, "must be an integer >= 3")
        if len(gen.scale) != 3 or any(not s > 0.0 for s in gen.scale):
            raise InvalidParameterError("generator.scale", gen.scale, "expected three positive factors")

        remesh = self.remesh
        if not remesh.resolution_factor > 0.0:
            raise InvalidParameterError("remesh.resolution_factor", remesh.resolution_factor, "must be positive")
        if not 0.0 < remesh.min_edge_length < remesh.max_edge_length:
            raise InvalidParameterError(
                "remesh.base_min_edge_length", remesh.base_min_edge_length,
                "edge lengths must satisfy 0 < min < max"
            )
        if not 0.0 <= remesh.smooth_speed <= 1.0:
            raise InvalidParameterError("remesh.smooth_speed", remesh.smooth_speed, "must be within [0, 1]")
        if remesh.passes < 0:
            raise InvalidParameterError("remesh.passes", remesh.passes, "must be non-negative")

        deform = self.deform
        for name in ("pin_weight", "handle_weight", "bottom_tolerance"):
            value = getattr(deform, name)
            if value < 0.0:
                raise InvalidParameterError(f"deform.{name}", value, "must be non-negative")


_SECTIONS = {
    'generator': GeneratorConfig,
    'constraints': ConstraintConfig,
    'remesh': RemeshConfig,
    'deform': DeformConfig,
}


class ConfigManager:
    """設定管理クラス"""

    def __init__(self):
        self._config: Optional[GopherConfig] = None
        self._config_file_path: Optional[Path] = None

    def load_config(self, config_file: Optional[Path] = None) -> GopherConfig:
        """
        設定ファイルを読み込み

        Args:
            config_file: 設定ファイルパス（Noneの場合はデフォルトパスを探索）

        Returns:
            読み込まれた設定
        """
        if config_file is None:
            # デフォルト設定ファイルを探す
            project_root = Path(__file__).parent.parent
            default_paths = [
                project_root / "gopher.yaml",
                Path.home() / ".gopher" / "config.yaml"
            ]

            for path in default_paths:
                if path.exists():
                    config_file = path
                    break

        config_file = Path(config_file) if config_file is not None else None
        if config_file and config_file.exists():
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    config_dict = yaml.safe_load(f) or {}

                self._config = self._dict_to_config(config_dict)
                self._config_file_path = config_file
                logger.info(f"Configuration loaded from {config_file}")

            except (OSError, yaml.YAMLError, TypeError, ValueError) as e:
                logger.warning(f"Failed to load config from {config_file}: {e}")
                logger.info("Using default configuration")
                self._config = GopherConfig()
        else:
            logger.info("No config file found, using default configuration")
            self._config = GopherConfig()

        return self._config

    def save_config(self, config_file: Optional[Path] = None) -> bool:
        """
        設定をファイルに保存

        Args:
            config_file: 保存先ファイルパス

        Returns:
            保存成功したかどうか
        """
        if self._config is None:
            logger.error("No configuration to save")
            return False

        if config_file is None:
            config_file = self._config_file_path or Path("gopher.yaml")
        config_file = Path(config_file)

        try:
            config_dict = self._config_to_dict(self._config)

            # ディレクトリが存在しない場合は作成
            config_file.parent.mkdir(parents=True, exist_ok=True)

            with open(config_file, 'w', encoding='utf-8') as f:
                yaml.safe_dump(config_dict, f, default_flow_style=False,
                               allow_unicode=True, indent=2)

            logger.info(f"Configuration saved to {config_file}")
            return True

        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to save config to {config_file}: {e}")
            return False

    def get_config(self) -> GopherConfig:
        """現在の設定を取得"""
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def set_config(self, config: GopherConfig) -> None:
        self._config = config

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> GopherConfig:
        """辞書を設定オブジェクトに変換（未知のキーは無視）"""
        if not isinstance(config_dict, dict):
            raise TypeError(f"Top-level configuration must be a mapping, got {type(config_dict).__name__}")
        config = GopherConfig()

        for section_name, section_cls in _SECTIONS.items():
            section_dict = config_dict.get(section_name)
            if not isinstance(section_dict, dict):
                continue
            section = getattr(config, section_name)
            tuple_fields = {f.name for f in fields(section_cls) if f.type == Tuple[float, float, float]}
            for key, value in section_dict.items():
                if hasattr(section, key) and not isinstance(getattr(type(section), key, None), property):
                    if key in tuple_fields:
                        value = tuple(float(v) for v in value)
                    setattr(section, key, value)

        return config

    def _config_to_dict(self, config: GopherConfig) -> Dict[str, Any]:
        """設定オブジェクトを辞書に変換（タプルはリストとして出力）"""
        def plain(value):
            if isinstance(value, dict):
                return {k: plain(v) for k, v in value.items()}
            if isinstance(value, (tuple, list)):
                return [plain(v) for v in value]
            return value

        return plain(asdict(config))

