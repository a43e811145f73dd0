#!/usr/bin/env python3
"""
pytest共通設定とフィクスチャ

テスト実行時の共通設定とメッシュ生成フィクスチャを提供し、
print()依存からlogging/assert依存への移行を支援します。
"""

import math
import pytest
import logging
import sys
import os
import tempfile
from typing import Generator, Optional
from dataclasses import dataclass

# gopherモジュールのパス追加
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from gopher import setup_logging, get_logger
from gopher.config import GopherConfig
from gopher.mesh import DynamicMesh, make_capped_cylinder, scale_mesh

# =============================================================================
# テストロギング設定
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def setup_test_logging():
    """テスト全体のロギング設定"""
    setup_logging(level="DEBUG")
    logger = get_logger("gopher.tests")
    logger.info("=== テストセッション開始 ===")
    yield
    logger.info("=== テストセッション終了 ===")


@pytest.fixture
def test_logger():
    """テスト用ロガー"""
    return get_logger("gopher.tests")


# =============================================================================
# パフォーマンス計測
# =============================================================================

@dataclass
class PerformanceMeasurement:
    """パフォーマンス計測結果"""
    execution_time_ms: float
    memory_usage_mb: float
    operations_per_second: Optional[float] = None
    target_met: bool = False

    def log_results(self, logger: logging.Logger, test_name: str, target_ms: float = None):
        """結果をログ出力（print()の代替）"""
        logger.info(f"=== {test_name} パフォーマンス結果 ===")
        logger.info(f"実行時間: {self.execution_time_ms:.3f}ms")
        logger.info(f"メモリ使用量: {self.memory_usage_mb:.2f}MB")
        if self.operations_per_second:
            logger.info(f"処理速度: {self.operations_per_second:.1f} ops/sec")
        if target_ms:
            self.target_met = self.execution_time_ms <= target_ms
            status = "✓ 達成" if self.target_met else "✗ 未達成"
            logger.info(f"目標時間: {target_ms}ms {status}")


@pytest.fixture
def performance_tracker():
    """パフォーマンス計測ユーティリティ"""
    import time
    import psutil
    import gc

    class PerformanceTracker:
        def __init__(self):
            self.start_time = None
            self.start_memory = None

        def start(self):
            """計測開始"""
            gc.collect()  # GC実行してメモリを正規化
            self.start_time = time.perf_counter()
            self.start_memory = psutil.Process().memory_info().rss / 1024 / 1024

        def stop(self, operations_count: int = None) -> PerformanceMeasurement:
            """計測終了"""
            end_time = time.perf_counter()
            end_memory = psutil.Process().memory_info().rss / 1024 / 1024

            execution_time_ms = (end_time - self.start_time) * 1000
            memory_usage_mb = end_memory - self.start_memory

            ops_per_sec = None
            if operations_count and execution_time_ms > 0:
                ops_per_sec = operations_count / (execution_time_ms / 1000)

            return PerformanceMeasurement(
                execution_time_ms=execution_time_ms,
                memory_usage_mb=memory_usage_mb,
                operations_per_second=ops_per_sec
            )

    return PerformanceTracker()


# =============================================================================
# テストデータフィクスチャ
# =============================================================================

@pytest.fixture
def scaled_cylinder_mesh() -> DynamicMesh:
    """(1, 2, 1) にスケールした16分割・頂点共有の閉じた円柱"""
    return scale_mesh(make_capped_cylinder(False, 16), (1.0, 2.0, 1.0))


@pytest.fixture
def hexagon_fan() -> DynamicMesh:
    """中心0と外周1..6からなる平面六角形ファン"""
    mesh = DynamicMesh()
    mesh.append_vertex((0.0, 0.0, 0.0))
    for i in range(6):
        angle = i * math.pi / 3.0
        mesh.append_vertex((math.cos(angle), math.sin(angle), 0.0))
    for i in range(6):
        mesh.append_triangle(0, 1 + i, 1 + (i + 1) % 6)
    return mesh


@pytest.fixture
def small_pipeline_config() -> GopherConfig:
    """テスト時間を抑えた粗いパイプライン設定"""
    config = GopherConfig()
    config.generator.slices = 16
    config.remesh.resolution_factor = 4.0
    config.remesh.passes = 3
    return config


@pytest.fixture
def temp_directory() -> Generator[str, None, None]:
    """一時ディレクトリ"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


# =============================================================================
# テストヘルパー
# =============================================================================

def pytest_configure(config):
    """pytest設定"""
    config.addinivalue_line(
        "markers", "slow: 実行時間の長いテスト"
    )
