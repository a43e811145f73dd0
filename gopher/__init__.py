#!/usr/bin/env python3
"""
Gopher Geometry メインパッケージ

円柱メッシュ生成、制約付きリメッシュ、ラプラシアン変形で共有する
ロガー取得とログ出力設定を提供します。

インポートしただけではログ出力を設定しません。パッケージロガー
``gopher`` には NullHandler のみが付き、出力先はホスト側の設定か
``setup_logging()`` の明示的な呼び出しで決まります。
"""

import logging
import sys
from pathlib import Path
from typing import Optional

# プロジェクト情報
__version__ = "0.1.0"
__author__ = "Gopher Geometry Development Team"

PACKAGE_LOGGER_NAME = "gopher"

_LOG_FORMATS = {
    "simple": "%(levelname)s: %(message)s",
    "detailed": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    "debug": "%(asctime)s [%(levelname)s] %(name)s:%(funcName)s:%(lineno)d: %(message)s",
}


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_style: str = "detailed",
    logger_name: str = PACKAGE_LOGGER_NAME
) -> logging.Logger:
    """
    ロガーに出力ハンドラーを設定

    対象ロガーに以前付けた出力ハンドラーは置き換えます。
    ルートロガーや他のロガーのハンドラーには触れません。

    Args:
        level: ログレベル (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: ログファイルパス（Noneならコンソールのみ）
        format_style: フォーマットスタイル ("simple", "detailed", "debug")
        logger_name: 設定するロガー名（既定はパッケージロガー）

    Returns:
        設定済みロガー

    Raises:
        ValueError: 不正なログレベル
    """
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    formatter = logging.Formatter(
        _LOG_FORMATS.get(format_style, _LOG_FORMATS["detailed"]), datefmt='%H:%M:%S'
    )

    logger = logging.getLogger(logger_name)
    logger.setLevel(numeric_level)
    for handler in logger.handlers[:]:
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
            handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    モジュール用ロガーを取得

    Args:
        name: ロガー名（通常は __name__ を使用）
    """
    return logging.getLogger(name)


# インポート時はパッケージロガーに NullHandler を1つ付けるだけ
if not any(isinstance(h, logging.NullHandler) for h in logging.getLogger(PACKAGE_LOGGER_NAME).handlers):
    logging.getLogger(PACKAGE_LOGGER_NAME).addHandler(logging.NullHandler())
